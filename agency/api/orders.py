"""Checkout steps: order draft cookie, quote, promo check, lead capture, order status poll."""
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlmodel import Session

from agency.api.deps import get_optional_user_id
from agency.core.config import settings
from agency.core.database import get_db
from agency.core.rate_limit import limiter
from agency.models import Order
from agency.schemas.order import OrderDraft, OrderDraftUpdate, OrderLeadCreate, PromoValidateRequest, QuoteRequest
from agency.services import order_state
from agency.services.order_leads import save_lead
from agency.services.payments.base import order_status_payload
from agency.services.pricing import round_money
from agency.services.promo import validate_promo
from agency.services.quote import quote_order

router = APIRouter(prefix="/api", tags=["orders"])
_PROMO_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"


def read_draft(request: Request) -> OrderDraft:
    return order_state.load_draft(request.cookies.get(order_state.DRAFT_COOKIE))


def write_draft(response: Response, draft: OrderDraft) -> None:
    response.set_cookie(
        order_state.DRAFT_COOKIE,
        order_state.dump_draft(draft),
        max_age=settings.order_draft_max_age_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )


@router.get("/order/draft")
def get_draft(draft: OrderDraft = Depends(read_draft)):
    return draft.model_dump()


@router.patch("/order/draft")
def patch_draft(body: OrderDraftUpdate, response: Response, draft: OrderDraft = Depends(read_draft)):
    draft = order_state.apply_update(draft, body)
    write_draft(response, draft)
    return draft.model_dump()


@router.delete("/order/draft")
def reset_draft(response: Response):
    response.delete_cookie(order_state.DRAFT_COOKIE)
    return order_state.default_draft().model_dump()


@router.post("/order/quote")
def quote(body: QuoteRequest, db: Session = Depends(get_db)):
    return quote_order(db, body)


@router.post("/promo/validate")
@limiter.limit(_PROMO_RATE_LIMIT)
def promo_validate(request: Request, body: PromoValidateRequest, db: Session = Depends(get_db)):
    promo, discount, error = validate_promo(db, body.code, body.base_total, body.package_id)
    if error:
        return {"ok": True, "valid": False, "error": error, "promo": None}
    return {
        "ok": True,
        "valid": True,
        "error": None,
        "promo": {
            "id": str(promo.id),
            "code": promo.code,
            "promo_name": promo.promo_name,
            "discount": round_money(discount, "IDR"),
        },
    }


@router.post("/order/lead")
def order_lead(
    body: OrderLeadCreate,
    draft: OrderDraft = Depends(read_draft),
    user_id: int | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    lead = save_lead(db, draft, body, user_id)
    return {"ok": True, "id": lead.id}


@router.get("/orders/{order_id}/status")
def order_status(order_id: str, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_status_payload(order)
