"""Read-only settings and catalog data for the public checkout pages, parsed with tolerant fallbacks."""
import re
from typing import Any

from sqlalchemy import or_
from sqlmodel import Session, select

from agency.core.clock import utcnow
from agency.core.config import settings
from agency.models import BlogPost, MarketingPackage, PackageAddOn, PackageDuration, SubscriptionAddOn
from agency.services.pricing import discount_by_months
from agency.services.settings_store import get_setting, get_setting_string

TEMPLATES_KEY = "order_templates"
CONTACT_KEY = "order_contact"
SUBSCRIPTION_PLANS_KEY = "order_subscription_plans"
DEFAULT_PACKAGE_KEY = "default_package_id"

DEFAULT_CONTACT_HEADING = "Butuh bantuan?"
DEFAULT_CONTACT_DESCRIPTION = "Hubungi kami untuk bantuan order."

_IMAGE_URL_RE = re.compile(r"\.(png|jpe?g|webp|gif|svg)(\?|#|$)", re.IGNORECASE)


def _text(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def _number(v: Any) -> float | None:
    if isinstance(v, bool) or v is None:
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    return n if n == n and abs(n) != float("inf") else None


def _int_or_float(n: float) -> int | float:
    return int(n) if float(n).is_integer() else n


def fallback_subscription_plans() -> list[dict]:
    return [
        {"years": y, "label": f"{y} Tahun", "price_usd": None, "is_active": True, "sort_order": y,
         "discount_percent": 0, "base_price_idr": 0}
        for y in (1, 2, 3)
    ]


def is_likely_image_url(url: str) -> bool:
    u = (url or "").strip().lower()
    if not u:
        return False
    if "/template-previews/" in u:
        return True
    return bool(_IMAGE_URL_RE.search(u))


def parse_templates(value: Any) -> list[dict]:
    """
    Entries need id, name and category. Older rows stored the image in preview_url;
    such values are moved to preview_image_url and preview_url is kept only for demo links.
    """
    if not isinstance(value, list):
        return []
    out = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        tid, name, category = _text(raw.get("id")), _text(raw.get("name")), _text(raw.get("category"))
        if not tid or not name or not category:
            continue
        legacy = _text(raw.get("preview_url"))
        explicit_image = _text(raw.get("preview_image_url"))
        legacy_is_image = is_likely_image_url(legacy)
        sort_order = _number(raw.get("sort_order"))
        out.append({
            "id": tid,
            "name": name,
            "category": category,
            "is_active": raw["is_active"] if isinstance(raw.get("is_active"), bool) else True,
            "sort_order": _int_or_float(sort_order) if sort_order is not None else None,
            "preview_image_url": explicit_image or (legacy if legacy_is_image else "") or None,
            "preview_url": (legacy if not legacy_is_image else "") or None,
        })
    return out


def parse_contact(value: Any) -> dict:
    obj = value if isinstance(value, dict) else {}
    return {
        "heading": _text(obj.get("heading")) or DEFAULT_CONTACT_HEADING,
        "description": _text(obj.get("description")) or DEFAULT_CONTACT_DESCRIPTION,
        "whatsapp_phone": _text(obj.get("whatsapp_phone")),
        "whatsapp_message": _text(obj.get("whatsapp_message")),
        "email": _text(obj.get("email")),
    }


def parse_subscription_plans(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return fallback_subscription_plans()
    out = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        years = _number(raw.get("years"))
        if not years or years <= 0:
            continue
        years = _int_or_float(years)
        sort_order = _number(raw.get("sort_order"))
        out.append({
            "years": years,
            "label": _text(raw.get("label")) or f"{years} Tahun",
            "price_usd": _number(raw.get("price_usd")),
            "is_active": raw["is_active"] if isinstance(raw.get("is_active"), bool) else True,
            "sort_order": _int_or_float(sort_order) if sort_order is not None else years,
            "discount_percent": _number(raw.get("discount_percent")) or 0,
            "base_price_idr": _number(raw.get("base_price_idr")) or 0,
        })
    return out or fallback_subscription_plans()


def get_default_package_id(db: Session) -> str | None:
    return get_setting_string(db, DEFAULT_PACKAGE_KEY) or (settings.default_package_id or None)


def get_subscription_plans(db: Session, package_id: str | None = None) -> list[dict]:
    """Per-package plans (order_subscription_plans:<id>) win over the global list."""
    value = None
    if package_id:
        value = get_setting(db, f"{SUBSCRIPTION_PLANS_KEY}:{package_id}")
    if value is None:
        value = get_setting(db, SUBSCRIPTION_PLANS_KEY)
    return parse_subscription_plans(value)


def find_plan(plans: list[dict], years: int | None) -> dict | None:
    if not years:
        return None
    for plan in plans:
        if plan.get("is_active", True) and plan.get("years") == years:
            return plan
    return None


def list_package_durations(db: Session, package_id: str) -> list[PackageDuration]:
    stmt = (
        select(PackageDuration)
        .where(PackageDuration.package_id == package_id)
        .order_by(PackageDuration.sort_order, PackageDuration.duration_months)
    )
    return list(db.exec(stmt).all())


def list_package_add_ons(db: Session, package_id: str, active_only: bool = True) -> list[PackageAddOn]:
    stmt = select(PackageAddOn).where(PackageAddOn.package_id == package_id)
    if active_only:
        stmt = stmt.where(PackageAddOn.is_active == True)  # noqa: E712
    return list(db.exec(stmt.order_by(PackageAddOn.sort_order, PackageAddOn.label)).all())


def list_subscription_add_ons(db: Session, package_id: str) -> list[SubscriptionAddOn]:
    """Active add-ons for the package; a NULL is_active counts as active."""
    stmt = (
        select(SubscriptionAddOn)
        .where(SubscriptionAddOn.package_id == package_id)
        .where(or_(SubscriptionAddOn.is_active == True, SubscriptionAddOn.is_active == None))  # noqa: E711,E712
        .order_by(SubscriptionAddOn.sort_order)
    )
    return list(db.exec(stmt).all())


def list_public_packages(db: Session) -> list[dict]:
    stmt = (
        select(MarketingPackage)
        .where(MarketingPackage.is_active == True, MarketingPackage.show_on_public == True)  # noqa: E712
        .order_by(MarketingPackage.sort_order, MarketingPackage.name)
    )
    out = []
    for pkg in db.exec(stmt).all():
        discounts = discount_by_months(list_package_durations(db, pkg.id))
        out.append({
            "id": pkg.id,
            "name": pkg.name,
            "type": pkg.type,
            "description": pkg.description,
            "price": pkg.price,
            "billing_period": pkg.billing_period,
            "features": pkg.features or [],
            "max_discount_percent": max(discounts.values()) if discounts else 0,
            "discount_by_months": discounts,
        })
    return out


def get_order_settings(db: Session, package_id: str | None = None) -> dict:
    """Everything the checkout needs in one read: templates, contact, plans, default package."""
    default_pkg_id = get_default_package_id(db)
    effective_pkg_id = package_id or default_pkg_id
    pkg = db.get(MarketingPackage, effective_pkg_id) if effective_pkg_id else None
    durations = list_package_durations(db, effective_pkg_id) if effective_pkg_id else []
    return {
        "templates": [t for t in parse_templates(get_setting(db, TEMPLATES_KEY)) if t["is_active"]],
        "contact": parse_contact(get_setting(db, CONTACT_KEY)),
        "subscription_plans": [p for p in get_subscription_plans(db, effective_pkg_id) if p["is_active"]],
        "default_package_id": default_pkg_id,
        "package_price": pkg.price if pkg else None,
        "package_name": ((pkg.name or "").strip() or None) if pkg else None,
        "discount_by_months": discount_by_months(durations),
    }


def _published_posts():
    now = utcnow()
    return (
        select(BlogPost)
        .where(BlogPost.status == "published", BlogPost.is_public == True, BlogPost.noindex == False)  # noqa: E712
        .where(or_(BlogPost.publish_at == None, BlogPost.publish_at <= now))  # noqa: E711
    )


def published_blog_posts(db: Session, limit: int = 1000) -> list[BlogPost]:
    """Published, public, indexable posts whose publish date has passed."""
    stmt = _published_posts().order_by(BlogPost.publish_at.desc(), BlogPost.id.desc()).limit(limit)
    return list(db.exec(stmt).all())


def get_published_post(db: Session, slug: str) -> BlogPost | None:
    return db.exec(_published_posts().where(BlogPost.slug == slug)).first()
