import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DomainStatus = Literal["available", "unavailable", "premium"]


class OrderDetails(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    business_name: str = ""
    province_code: str = ""
    province_name: str = ""
    city: str = ""
    accepted_terms: bool = False


class AppliedPromo(BaseModel):
    id: str
    code: str
    promo_name: str = ""
    discount: float = 0


class OrderDraft(BaseModel):
    """In-progress order kept between checkout steps (cookie ema_order_v1)."""

    domain: str = ""
    domain_status: DomainStatus | None = None
    selected_template_id: str | None = None
    selected_template_name: str | None = None
    selected_package_id: str | None = None
    selected_package_name: str | None = None
    # key: package_add_ons.id
    add_ons: dict[str, int] = Field(default_factory=dict)
    # key: subscription_add_ons.id; only True entries are kept
    subscription_add_ons: dict[str, bool] = Field(default_factory=dict)
    subscription_years: int | None = None
    details: OrderDetails = Field(default_factory=OrderDetails)
    promo_code: str = ""
    applied_promo: AppliedPromo | None = None
    order_marketing_id: str | None = None


class NamedRef(BaseModel):
    id: str
    name: str


class OrderDraftUpdate(BaseModel):
    """PATCH body: only the fields present are applied (null clears)."""

    reset: bool = False
    domain: str | None = None
    domain_status: DomainStatus | None = None
    template: NamedRef | None = None
    package: NamedRef | None = None
    add_ons: dict[str, float | int | str | None] | None = None
    subscription_add_ons: dict[str, bool] | None = None
    subscription_years: int | None = None
    details: dict | None = None
    promo_code: str | None = None
    applied_promo: AppliedPromo | None = None
    order_marketing_id: str | None = None


class QuoteRequest(BaseModel):
    package_id: str
    subscription_years: int | None = Field(default=None, ge=1, le=10)
    duration_months: int | None = Field(default=None, ge=1, le=120)
    add_ons: dict[str, int] = Field(default_factory=dict)
    subscription_add_ons: dict[str, bool] = Field(default_factory=dict)
    promo_code: str | None = Field(default=None, max_length=64)


class PromoValidateRequest(BaseModel):
    code: str = Field(max_length=64)
    base_total: float = Field(ge=0)
    package_id: str | None = None


class OrderLeadCreate(BaseModel):
    flow_type: Literal["website", "marketing"] = "website"
    amount_idr: float | None = Field(default=None, ge=0)
    # Marketing-only orders have no domain or template step
    skip_domain_template: bool = False


class CheckoutBase(BaseModel):
    """Fields shared by Midtrans charge, PayPal create order and Xendit invoice."""

    subscription_years: int = Field(ge=1, le=10)
    promo_code: str | None = Field(default=None, max_length=64)
    domain: str = Field(min_length=1, max_length=253)
    selected_template_id: str | None = Field(default=None, max_length=80)
    selected_template_name: str | None = Field(default=None, max_length=120)
    selected_package_id: str | None = Field(default=None, max_length=80)
    selected_package_name: str | None = Field(default=None, max_length=200)
    add_ons: dict[str, int] = Field(default_factory=dict)
    subscription_add_ons: dict[str, bool] = Field(default_factory=dict)
    customer_name: str = Field(min_length=1, max_length=120)
    customer_email: str = Field(max_length=254)
    customer_phone: str | None = Field(default=None, max_length=40)
    discount: float = Field(default=0, ge=0)

    @field_validator("domain", "customer_name", "customer_email", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("customer_email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        if not EMAIL_RE.match(v or ""):
            raise ValueError("customer_email is invalid")
        return v


class MidtransChargeRequest(CheckoutBase):
    token_id: str = Field(min_length=1, max_length=200)
    env: Literal["sandbox", "production"] | None = None
    amount_usd: float = Field(gt=0)


class PaypalCreateOrderRequest(CheckoutBase):
    amount_usd: float = Field(gt=0)


class PaypalCaptureRequest(BaseModel):
    paypal_order_id: str = Field(min_length=1, max_length=128)
    order_db_id: str = Field(min_length=1, max_length=128)

    @field_validator("paypal_order_id", "order_db_id")
    @classmethod
    def no_whitespace(cls, v: str) -> str:
        if re.search(r"\s", v):
            raise ValueError("id must not contain whitespace")
        return v


class XenditInvoiceRequest(CheckoutBase):
    # Legacy field name: the value is already in IDR
    amount_usd: float = Field(gt=0)
    success_redirect_url: str | None = Field(default=None, max_length=500)
    failure_redirect_url: str | None = Field(default=None, max_length=500)


class MidtransNotification(BaseModel):
    order_id: str = ""
    status_code: str = ""
    gross_amount: str = ""
    signature_key: str = ""
    transaction_status: str | None = None
    transaction_id: str | None = None
    payment_type: str | None = None
    fraud_status: str | None = None

    model_config = {"extra": "allow"}

    @field_validator("order_id", "status_code", "gross_amount", "signature_key", mode="before")
    @classmethod
    def as_text(cls, v):
        return "" if v is None else str(v).strip()
