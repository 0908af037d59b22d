from .admin import (
    ActionRequest,
    AddOnDraft,
    DurationDraft,
    Ga4SettingsAction,
    GscSettingsAction,
    JsonSettingsAction,
    MidtransSettingsAction,
    PackagePayload,
    PackageSaveRequest,
    PaymentsListRequest,
    PaypalSecretAction,
    PaypalSettingsAction,
    PromoCreate,
    PromoUpdate,
    XenditSecretAction,
)
from .auth import Token, UserCreate, UserLogin, UserResponse
from .order import (
    AppliedPromo,
    CheckoutBase,
    MidtransChargeRequest,
    MidtransNotification,
    NamedRef,
    OrderDetails,
    OrderDraft,
    OrderDraftUpdate,
    OrderLeadCreate,
    PaypalCaptureRequest,
    PaypalCreateOrderRequest,
    PromoValidateRequest,
    QuoteRequest,
    XenditInvoiceRequest,
)

__all__ = [
    "ActionRequest",
    "AddOnDraft",
    "AppliedPromo",
    "CheckoutBase",
    "DurationDraft",
    "Ga4SettingsAction",
    "GscSettingsAction",
    "JsonSettingsAction",
    "MidtransChargeRequest",
    "MidtransNotification",
    "MidtransSettingsAction",
    "NamedRef",
    "OrderDetails",
    "OrderDraft",
    "OrderDraftUpdate",
    "OrderLeadCreate",
    "PackagePayload",
    "PackageSaveRequest",
    "PaymentsListRequest",
    "PaypalCaptureRequest",
    "PaypalCreateOrderRequest",
    "PaypalSecretAction",
    "PaypalSettingsAction",
    "PromoCreate",
    "PromoUpdate",
    "PromoValidateRequest",
    "QuoteRequest",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "XenditInvoiceRequest",
]
