from .audit import AuditLog
from .blog import BlogPost
from .catalog import MarketingPackage, PackageAddOn, PackageDuration, SubscriptionAddOn
from .error_log import ErrorLog
from .order import Order, OrderLead
from .promo import PromoCode
from .settings import IntegrationSecret, WebsiteSetting
from .user import User, UserPackage, UserRole

__all__ = [
    "AuditLog",
    "BlogPost",
    "ErrorLog",
    "IntegrationSecret",
    "MarketingPackage",
    "Order",
    "OrderLead",
    "PackageAddOn",
    "PackageDuration",
    "PromoCode",
    "SubscriptionAddOn",
    "User",
    "UserPackage",
    "UserRole",
    "WebsiteSetting",
]
