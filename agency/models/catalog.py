"""Catalog reference data edited by super admins: packages, durations, add-ons."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class MarketingPackage(SQLModel, table=True):
    __tablename__ = "packages"
    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str = Field(max_length=200)
    type: str = Field(default="website", max_length=32)  # website | marketing
    description: str | None = None
    price: float | None = None  # IDR per billing period; None = price on request
    billing_period: str = Field(default="monthly", max_length=16)  # monthly | annual
    features: list | None = Field(default=None, sa_column=Column(JSON))
    is_active: bool = True
    show_on_public: bool = True
    sort_order: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PackageDuration(SQLModel, table=True):
    """Commitment length with its discount (e.g. 12 months -> 10%)."""

    __tablename__ = "package_durations"
    __table_args__ = (UniqueConstraint("package_id", "duration_months", name="uq_package_duration"),)

    id: str = Field(default_factory=_uuid, primary_key=True)
    package_id: str = Field(index=True)
    duration_months: int
    discount_percent: float = 0
    is_active: bool = True
    sort_order: int = 0


class PackageAddOn(SQLModel, table=True):
    """Quantity based add-on (e.g. extra pages) priced per unit per month."""

    __tablename__ = "package_add_ons"
    __table_args__ = (UniqueConstraint("package_id", "add_on_key", name="uq_package_add_on_key"),)

    id: str = Field(default_factory=_uuid, primary_key=True)
    package_id: str = Field(index=True)
    add_on_key: str = Field(max_length=80)
    label: str = Field(max_length=200)
    price_per_unit: float = 0
    unit_step: int = 1
    unit: str = Field(default="unit", max_length=32)
    is_active: bool = True
    sort_order: int = 0
    max_quantity: int | None = None


class SubscriptionAddOn(SQLModel, table=True):
    """Toggle add-on billed monthly over the subscription length."""

    __tablename__ = "subscription_add_ons"
    id: str = Field(default_factory=_uuid, primary_key=True)
    package_id: str | None = Field(default=None, index=True)
    label: str = Field(max_length=200)
    description: str | None = None
    price_idr: int = 0
    is_active: bool | None = True
    sort_order: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
