"""Read-only data for the public pages and the checkout steps."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from agency.core.database import get_db
from agency.models import BlogPost, MarketingPackage
from agency.services import public_settings
from agency.services.payments import midtrans, paypal
from agency.services.payments.provider_select import payment_provider

router = APIRouter(prefix="/api", tags=["public"])


def _public_package(db: Session, package_id: str) -> MarketingPackage:
    pkg = db.get(MarketingPackage, package_id)
    if not pkg or not pkg.is_active:
        raise HTTPException(status_code=404, detail="Package not found")
    return pkg


@router.get("/order/settings")
def order_settings(package_id: str | None = None, db: Session = Depends(get_db)):
    return public_settings.get_order_settings(db, package_id)


@router.get("/packages")
def packages(db: Session = Depends(get_db)):
    return {"items": public_settings.list_public_packages(db)}


@router.get("/packages/{package_id}/durations")
def package_durations(package_id: str, db: Session = Depends(get_db)):
    _public_package(db, package_id)
    rows = public_settings.list_package_durations(db, package_id)
    return {
        "items": [
            {
                "id": d.id,
                "duration_months": d.duration_months,
                "discount_percent": d.discount_percent,
                "sort_order": d.sort_order,
            }
            for d in rows
            if d.is_active
        ]
    }


@router.get("/packages/{package_id}/add-ons")
def package_add_ons(package_id: str, db: Session = Depends(get_db)):
    _public_package(db, package_id)
    rows = public_settings.list_package_add_ons(db, package_id)
    return {
        "items": [
            {
                "id": a.id,
                "add_on_key": a.add_on_key,
                "label": a.label,
                "price_per_unit": a.price_per_unit,
                "unit_step": a.unit_step,
                "unit": a.unit,
                "max_quantity": a.max_quantity,
                "sort_order": a.sort_order,
            }
            for a in rows
        ]
    }


@router.get("/order/subscription-addons")
def subscription_add_ons(package_id: str | None = None, db: Session = Depends(get_db)):
    package_id = package_id or public_settings.get_default_package_id(db)
    if not package_id:
        return {"items": []}
    rows = public_settings.list_subscription_add_ons(db, package_id)
    return {
        "items": [
            {
                "id": a.id,
                "label": a.label,
                "description": a.description,
                "price_idr": a.price_idr,
                "sort_order": a.sort_order,
            }
            for a in rows
        ]
    }


@router.get("/payment-provider")
def provider(db: Session = Depends(get_db)):
    return payment_provider(db)


@router.get("/midtrans/order-settings")
def midtrans_order_settings(db: Session = Depends(get_db)):
    return midtrans.order_settings(db)


@router.get("/paypal/order-settings")
def paypal_order_settings(db: Session = Depends(get_db)):
    return paypal.order_settings(db)


def _post_summary(post: BlogPost) -> dict:
    return {
        "id": post.id,
        "slug": post.slug,
        "title": post.title,
        "excerpt": post.excerpt,
        "publish_at": post.publish_at.isoformat() if post.publish_at else None,
    }


@router.get("/blog")
def blog_posts(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return {"items": [_post_summary(p) for p in public_settings.published_blog_posts(db, limit)]}


@router.get("/blog/{slug}")
def blog_post(slug: str, db: Session = Depends(get_db)):
    post = public_settings.get_published_post(db, slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return {**_post_summary(post), "content": post.content}
