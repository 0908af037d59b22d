"""Request bodies of the super-admin action endpoints: {"action": ..., **fields}."""
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class ActionRequest(BaseModel):
    action: str

    @field_validator("action", mode="before")
    @classmethod
    def strip_action(cls, v):
        return v.strip() if isinstance(v, str) else v


class MidtransSettingsAction(ActionRequest):
    enabled: bool = False
    env: str | None = None
    merchant_id: str | None = None
    client_key: str | None = None
    server_key: str | None = None


class PaypalSettingsAction(ActionRequest):
    enabled: bool = False
    env: str | None = None
    client_id: str | None = None


class PaypalSecretAction(ActionRequest):
    env: str | None = None
    client_secret: str | None = None


class XenditSecretAction(ActionRequest):
    enabled: bool = False
    api_key: str | None = None
    callback_token: str | None = None


class GscSettingsAction(ActionRequest):
    token: str | None = None


class Ga4SettingsAction(ActionRequest):
    measurement_id: str | None = None


class JsonSettingsAction(ActionRequest):
    """robots.txt, sitemap and JSON-LD panels: the normalizer validates `settings`."""

    settings: dict[str, Any] | None = None


class PaymentsListRequest(BaseModel):
    env: str | None = None
    limit: int | None = None


class PackagePayload(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1, max_length=200)
    type: Literal["website", "marketing"] = "website"
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    billing_period: Literal["monthly", "annual"] = "monthly"
    features: list[str] = Field(default_factory=list)
    is_active: bool = True
    show_on_public: bool = True
    sort_order: int = 0

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", mode="before")
    @classmethod
    def blank_price(cls, v):
        return None if v == "" else v

    @field_validator("features", mode="before")
    @classmethod
    def only_strings(cls, v):
        return [x for x in v if isinstance(x, str)] if isinstance(v, list) else []


class AddOnDraft(BaseModel):
    id: str | None = None
    add_on_key: str = ""
    label: str = ""
    price_per_unit: float = 0
    unit_step: int = 1
    unit: str = "unit"
    is_active: bool = True
    sort_order: int = 0
    max_quantity: int | None = None

    @field_validator("add_on_key", "label", "unit", mode="before")
    @classmethod
    def strip_text(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("max_quantity", mode="before")
    @classmethod
    def blank_max(cls, v):
        return None if v == "" else v


class DurationDraft(BaseModel):
    id: str | None = None
    duration_months: int = 1
    discount_percent: float = 0
    is_active: bool = True
    sort_order: int = 0


class PackageSaveRequest(BaseModel):
    """`start_url` omitted leaves the mapping untouched; null or "" clears it."""

    package: PackagePayload
    start_url: str | None = None
    add_ons: list[AddOnDraft] = Field(default_factory=list)
    removed_add_on_ids: list[str] = Field(default_factory=list)
    durations: list[DurationDraft] = Field(default_factory=list)
    removed_duration_ids: list[str] = Field(default_factory=list)


class PromoCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    promo_name: str = Field(default="", max_length=120)
    discount_type: Literal["percent", "fixed"]
    discount_value: float = Field(gt=0)
    valid_from: date | None = None
    valid_until: date | None = None
    max_uses: int | None = Field(default=None, ge=1)
    package_ids: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("code", mode="before")
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class PromoUpdate(BaseModel):
    promo_name: str | None = Field(default=None, max_length=120)
    discount_type: Literal["percent", "fixed"] | None = None
    discount_value: float | None = Field(default=None, gt=0)
    valid_from: date | None = None
    valid_until: date | None = None
    max_uses: int | None = Field(default=None, ge=1)
    package_ids: list[str] | None = None
    is_active: bool | None = None
