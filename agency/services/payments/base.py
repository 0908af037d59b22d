"""
Order lifecycle shared by the three gateways: pending -> paid | failed.
Vendor callbacks overwrite the status; paid side effects run once, on the transition into paid.
"""
import calendar
import logging
from datetime import datetime

from sqlmodel import Session

from agency.core.clock import utcnow
from agency.models import Order, UserPackage
from agency.schemas.order import CheckoutBase
from agency.services.email_sender import send_invoice_email
from agency.services.promo import apply_promo_use
from agency.services.public_settings import get_default_package_id

log = logging.getLogger("agency.payments")

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_FAILED = "failed"


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class PaymentError(Exception):
    """Rendered as {"ok": false, "error": message, **extra} with status_code."""

    def __init__(self, message: str, status_code: int = 400, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}


def create_pending_order(
    db: Session,
    provider: str,
    env: str,
    body: CheckoutBase,
    user_id: int | None = None,
    **fields,
) -> Order:
    order = Order(
        provider=provider,
        env=env,
        status=STATUS_PENDING,
        user_id=user_id,
        subscription_years=body.subscription_years,
        package_id=body.selected_package_id,
        package_name=body.selected_package_name,
        domain=body.domain,
        template_id=body.selected_template_id,
        template_name=(body.selected_template_name or "").strip() or None,
        add_ons=dict(body.add_ons or {}),
        subscription_add_ons={k: True for k, v in (body.subscription_add_ons or {}).items() if v},
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        promo_code=(body.promo_code or "").strip().upper() or None,
        discount=body.discount or 0,
        **fields,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    log.info("order created id=%s provider=%s env=%s", order.id, provider, env)
    return order


def update_order(db: Session, order: Order, **fields) -> Order:
    for name, value in fields.items():
        setattr(order, name, value)
    order.updated_at = utcnow()
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def mark_failed(db: Session, order: Order, **fields) -> Order:
    log.info("order failed id=%s provider=%s", order.id, order.provider)
    return update_order(db, order, status=STATUS_FAILED, **fields)


def set_order_status(db: Session, order: Order, status: str, **fields) -> bool:
    """
    Overwrites the status. Returns True when the order has just become paid;
    in that case the paid side effects are executed.
    """
    became_paid = status == STATUS_PAID and order.status != STATUS_PAID
    if became_paid:
        fields.setdefault("paid_at", utcnow())
    update_order(db, order, status=status, **fields)
    log.info("order status id=%s provider=%s status=%s", order.id, order.provider, status)
    if became_paid:
        on_order_paid(db, order)
    return became_paid


def activate_user_package(db: Session, order: Order) -> UserPackage | None:
    """Subscription orders of signed-in users: years x 12 months on the default package."""
    years = order.subscription_years or 0
    if not order.user_id or years <= 0:
        return None
    package_id = order.package_id or get_default_package_id(db)
    if not package_id:
        log.warning("No package to activate for order %s", order.id)
        return None
    months = years * 12
    now = utcnow()
    row = UserPackage(
        user_id=order.user_id,
        package_id=package_id,
        order_id=order.id,
        duration_months=months,
        status="active",
        started_at=now,
        expires_at=add_months(now, months),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("user package activated user_id=%s package_id=%s months=%s", order.user_id, package_id, months)
    return row


def on_order_paid(db: Session, order: Order) -> None:
    if order.promo_code:
        apply_promo_use(db, order.promo_code)
    activate_user_package(db, order)
    if order.provider in ("midtrans", "paypal"):
        amount, currency = order.amount_usd or 0, "USD"
    else:
        amount, currency = order.amount_idr or 0, "IDR"
    send_invoice_email(
        order.customer_email or "",
        provider=order.provider,
        order_id=order.midtrans_order_id or order.id,
        domain=order.domain,
        amount=amount,
        currency=currency,
        env=order.env,
        customer_name=order.customer_name,
    )


def order_status_payload(order: Order) -> dict:
    return {
        "ok": True,
        "order_db_id": order.id,
        "provider": order.provider,
        "env": order.env,
        "status": order.status,
        "transaction_status": order.transaction_status,
        "redirect_url": order.redirect_url,
        "invoice_url": order.invoice_url,
        "paid_at": order.paid_at.isoformat() if order.paid_at else None,
    }
