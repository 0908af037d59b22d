"""Billing-step lead capture: the draft is stored as an order_leads row before any payment attempt."""
import logging

from sqlmodel import Session

from agency.models import OrderLead
from agency.schemas.order import OrderDraft, OrderLeadCreate

log = logging.getLogger("agency.order")


def split_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def build_lead(draft: OrderDraft, body: OrderLeadCreate, user_id: int | None = None) -> OrderLead:
    first_name, last_name = split_name(draft.details.name)
    skip = body.skip_domain_template
    d = draft.details
    return OrderLead(
        flow_type=body.flow_type,
        domain=None if skip else (draft.domain or None),
        template_id=None if skip else draft.selected_template_id,
        template_name=None if skip else draft.selected_template_name,
        package_id=draft.selected_package_id,
        package_name=draft.selected_package_name,
        subscription_years=draft.subscription_years or None,
        add_ons=dict(draft.add_ons),
        subscription_add_ons=dict(draft.subscription_add_ons),
        first_name=first_name,
        last_name=last_name,
        email=d.email or None,
        phone=d.phone or None,
        business_name=d.business_name or None,
        province_code=d.province_code or None,
        province_name=d.province_name or None,
        city=d.city or None,
        amount_idr=body.amount_idr,
        promo_code=draft.promo_code or None,
        status="pending",
        user_id=user_id,
    )


def save_lead(db: Session, draft: OrderDraft, body: OrderLeadCreate, user_id: int | None = None) -> OrderLead:
    lead = build_lead(draft, body, user_id)
    db.add(lead)
    db.commit()
    db.refresh(lead)
    log.info("order lead saved id=%s flow=%s", lead.id, lead.flow_type)
    return lead
