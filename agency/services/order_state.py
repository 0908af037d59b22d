"""
Order draft mutations and the signed cookie codec.
Every checkout step reads the draft, applies one change and writes it back.
"""
import base64
import json
import logging
import math

from pydantic import ValidationError

from agency.core.security import sign_value, unsign_value
from agency.schemas.order import AppliedPromo, NamedRef, OrderDetails, OrderDraft, OrderDraftUpdate

log = logging.getLogger("agency.order")

DRAFT_COOKIE = "ema_order_v1"


def default_draft() -> OrderDraft:
    return OrderDraft()


def set_domain(draft: OrderDraft, domain: str) -> OrderDraft:
    draft.domain = (domain or "").strip()
    return draft


def set_domain_status(draft: OrderDraft, status: str | None) -> OrderDraft:
    draft.domain_status = status
    return draft


def set_template(draft: OrderDraft, template: NamedRef | None) -> OrderDraft:
    draft.selected_template_id = template.id if template else None
    draft.selected_template_name = template.name if template else None
    return draft


def set_package(draft: OrderDraft, package: NamedRef | None) -> OrderDraft:
    """Changing the package always clears both add-on selections."""
    draft.selected_package_id = package.id if package else None
    draft.selected_package_name = package.name if package else None
    draft.add_ons = {}
    draft.subscription_add_ons = {}
    return draft


def set_add_on_quantity(draft: OrderDraft, add_on_id: str, quantity) -> OrderDraft:
    try:
        q = float(quantity)
    except (TypeError, ValueError):
        q = 0.0
    q = max(0, math.floor(q)) if math.isfinite(q) else 0
    add_ons = dict(draft.add_ons)
    if q <= 0:
        add_ons.pop(add_on_id, None)
    else:
        add_ons[add_on_id] = int(q)
    draft.add_ons = add_ons
    return draft


def set_subscription_add_on_selected(draft: OrderDraft, add_on_id: str, selected: bool) -> OrderDraft:
    selected_map = dict(draft.subscription_add_ons)
    if selected:
        selected_map[add_on_id] = True
    else:
        selected_map.pop(add_on_id, None)
    draft.subscription_add_ons = selected_map
    return draft


def set_subscription_years(draft: OrderDraft, years: int | None) -> OrderDraft:
    draft.subscription_years = years
    return draft


def set_details(draft: OrderDraft, patch: dict) -> OrderDraft:
    """Partial merge; unknown keys are ignored."""
    merged = draft.details.model_dump()
    merged.update({k: v for k, v in (patch or {}).items() if k in OrderDetails.model_fields})
    draft.details = OrderDetails.model_validate(merged)
    return draft


def set_promo_code(draft: OrderDraft, code: str) -> OrderDraft:
    draft.promo_code = (code or "").strip()
    return draft


def set_applied_promo(draft: OrderDraft, promo: AppliedPromo | None) -> OrderDraft:
    draft.applied_promo = promo
    return draft


def set_order_marketing_id(draft: OrderDraft, marketing_id: str | None) -> OrderDraft:
    draft.order_marketing_id = marketing_id
    return draft


def apply_update(draft: OrderDraft, update: OrderDraftUpdate) -> OrderDraft:
    """Applies the fields present in a PATCH body. Package goes before add-ons since it clears them."""
    fields = update.model_fields_set
    if update.reset:
        draft = default_draft()
    if "domain" in fields:
        set_domain(draft, update.domain or "")
    if "domain_status" in fields:
        set_domain_status(draft, update.domain_status)
    if "template" in fields:
        set_template(draft, update.template)
    if "package" in fields:
        set_package(draft, update.package)
    if "add_ons" in fields:
        for add_on_id, qty in (update.add_ons or {}).items():
            set_add_on_quantity(draft, add_on_id, qty)
    if "subscription_add_ons" in fields:
        for add_on_id, selected in (update.subscription_add_ons or {}).items():
            set_subscription_add_on_selected(draft, add_on_id, selected)
    if "subscription_years" in fields:
        set_subscription_years(draft, update.subscription_years)
    if "details" in fields:
        set_details(draft, update.details or {})
    if "promo_code" in fields:
        set_promo_code(draft, update.promo_code or "")
    if "applied_promo" in fields:
        set_applied_promo(draft, update.applied_promo)
    if "order_marketing_id" in fields:
        set_order_marketing_id(draft, update.order_marketing_id)
    return draft


def dump_draft(draft: OrderDraft, secret: str | None = None) -> str:
    raw = json.dumps(draft.model_dump(), separators=(",", ":"))
    payload = base64.urlsafe_b64encode(raw.encode("utf-8")).decode().rstrip("=")
    return sign_value(payload, secret)


def load_draft(raw: str | None, secret: str | None = None) -> OrderDraft:
    """Missing, tampered or unreadable cookies yield the default draft; partial payloads merge over defaults."""
    payload = unsign_value(raw, secret)
    if payload is None:
        return default_draft()
    try:
        padded = payload + "=" * (-len(payload) % 4)
        parsed = json.loads(base64.urlsafe_b64decode(padded.encode()).decode("utf-8"))
        if not isinstance(parsed, dict):
            return default_draft()
        merged = default_draft().model_dump()
        details = parsed.pop("details", None)
        merged.update({k: v for k, v in parsed.items() if k in OrderDraft.model_fields})
        if isinstance(details, dict):
            merged["details"].update({k: v for k, v in details.items() if k in OrderDetails.model_fields})
        return OrderDraft.model_validate(merged)
    except (ValueError, ValidationError) as e:
        log.warning("Order draft cookie ignored: %s", e)
        return default_draft()
