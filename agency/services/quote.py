"""Server-side order quote: catalog rows + pricing functions + optional promo code."""
from sqlmodel import Session

from agency.models import MarketingPackage
from agency.schemas.order import QuoteRequest
from agency.services import pricing, public_settings
from agency.services.promo import validate_promo


def quote_order(db: Session, body: QuoteRequest) -> dict:
    """
    Months come from duration_months, else subscription_years × 12.
    The package's duration discount applies, else the subscription plan's discount;
    a plan with base_price_idr > 0 overrides the computed duration price.
    """
    pkg = db.get(MarketingPackage, body.package_id)
    if not pkg or not pkg.is_active:
        raise ValueError("Package not found")

    months = body.duration_months or ((body.subscription_years or 0) * 12) or None
    discounts = pricing.discount_by_months(public_settings.list_package_durations(db, pkg.id))
    plan = public_settings.find_plan(public_settings.get_subscription_plans(db, pkg.id), body.subscription_years)
    discount_percent = discounts.get(months or 0)
    if discount_percent is None:
        discount_percent = plan["discount_percent"] if plan else 0
    override = plan["base_price_idr"] if plan and not body.duration_months else None

    duration_price = pricing.compute_duration_price(
        pkg.price,
        months,
        discount_percent,
        billing_period=pkg.billing_period,
        currency="IDR",
        override_price=override,
    )
    add_ons = pricing.add_ons_total(
        public_settings.list_package_add_ons(db, pkg.id),
        body.add_ons,
        public_settings.list_subscription_add_ons(db, pkg.id),
        body.subscription_add_ons,
        months or 0,
    )

    promo_out, promo_error, promo_discount = None, None, 0.0
    if body.promo_code and body.promo_code.strip() and duration_price is not None:
        base_total = pricing.round_money(duration_price + add_ons, "IDR")
        promo, promo_discount, promo_error = validate_promo(db, body.promo_code, base_total, pkg.id)
        if promo:
            promo_out = {
                "id": str(promo.id),
                "code": promo.code,
                "promo_name": promo.promo_name,
                "discount": pricing.round_money(promo_discount, "IDR"),
            }

    quote = pricing.build_quote(duration_price, add_ons, promo_discount, "IDR")
    return {
        "ok": True,
        "package_id": pkg.id,
        "package_name": pkg.name,
        "months": months,
        "discount_percent": discount_percent,
        **quote.as_dict(),
        "promo": promo_out,
        "promo_error": promo_error,
    }
