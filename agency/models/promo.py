"""Promo code: percent / fixed discount, validity window, usage limit."""
from datetime import date, datetime

from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


class PromoCode(SQLModel, table=True):
    """Created by super admins, redeemed at checkout."""

    __tablename__ = "promo_codes"
    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # stored upper case, e.g. LAUNCH20
    promo_name: str = Field(default="", max_length=120)
    discount_type: str = Field(max_length=16)  # "percent" | "fixed"
    discount_value: float = Field()  # percent: 1-100, fixed: amount in the order currency
    valid_from: date | None = Field(default=None)  # inclusive
    valid_until: date | None = Field(default=None)  # inclusive
    max_uses: int | None = Field(default=None)  # null = unlimited
    use_count: int = Field(default=0)
    # Comma separated package ids; empty = every package
    package_ids: str | None = Field(default=None)
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=utcnow)
