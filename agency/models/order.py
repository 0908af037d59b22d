"""Checkout orders and leads. Orders move pending -> paid | failed and are never deleted."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    id: str = Field(default_factory=_uuid, primary_key=True)
    user_id: int | None = Field(default=None, index=True)
    provider: str = Field(index=True, max_length=16)  # midtrans | paypal | xendit
    env: str = Field(default="sandbox", max_length=16)  # sandbox | production
    status: str = Field(default="pending", index=True, max_length=16)  # pending | paid | failed
    amount_usd: float | None = None
    amount_idr: int | None = None
    currency: str = Field(default="IDR", max_length=8)
    subscription_years: int | None = None
    package_id: str | None = None
    package_name: str | None = None
    domain: str | None = Field(default=None, max_length=253)
    template_id: str | None = Field(default=None, max_length=80)
    template_name: str | None = Field(default=None, max_length=120)
    add_ons: dict | None = Field(default=None, sa_column=Column(JSON))
    subscription_add_ons: dict | None = Field(default=None, sa_column=Column(JSON))
    customer_name: str | None = Field(default=None, max_length=120)
    customer_email: str | None = None
    customer_phone: str | None = None
    promo_code: str | None = Field(default=None, max_length=64)
    discount: float = 0
    # Vendor identifiers
    midtrans_order_id: str | None = Field(default=None, unique=True, index=True)
    transaction_id: str | None = None
    payment_type: str | None = None
    transaction_status: str | None = None
    fraud_status: str | None = None
    redirect_url: str | None = None
    paypal_order_id: str | None = Field(default=None, index=True)
    xendit_invoice_id: str | None = None
    xendit_external_id: str | None = Field(default=None, index=True)
    invoice_url: str | None = None
    paid_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderLead(SQLModel, table=True):
    """Billing step submission, stored before any payment is attempted."""

    __tablename__ = "order_leads"
    id: str = Field(default_factory=_uuid, primary_key=True)
    flow_type: str = Field(default="website", max_length=16)  # website | marketing
    domain: str | None = None
    template_id: str | None = None
    template_name: str | None = None
    package_id: str | None = None
    package_name: str | None = None
    subscription_years: int | None = None
    add_ons: dict | None = Field(default=None, sa_column=Column(JSON))
    subscription_add_ons: dict | None = Field(default=None, sa_column=Column(JSON))
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    business_name: str | None = None
    province_code: str | None = None
    province_name: str | None = None
    city: str | None = None
    amount_idr: float | None = None
    promo_code: str | None = None
    status: str = "pending"
    user_id: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
