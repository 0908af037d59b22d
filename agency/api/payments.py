"""Checkout payment endpoints and vendor callbacks (Midtrans, PayPal, Xendit)."""
import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session

from agency.api.deps import get_optional_user_id
from agency.core.config import settings
from agency.core.database import get_db
from agency.core.rate_limit import limiter
from agency.schemas.order import (
    MidtransChargeRequest,
    MidtransNotification,
    PaypalCaptureRequest,
    PaypalCreateOrderRequest,
    XenditInvoiceRequest,
)
from agency.services.payments import midtrans, paypal, xendit

router = APIRouter(prefix="/api/payments", tags=["payments"])
log = logging.getLogger("agency.payments")
_CHECKOUT_RATE_LIMIT = f"{settings.rate_limit_checkout_per_minute}/minute"


async def _json_object(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/midtrans/charge")
@limiter.limit(_CHECKOUT_RATE_LIMIT)
def midtrans_charge(
    request: Request,
    body: MidtransChargeRequest,
    user_id: int | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    return midtrans.charge(db, body, user_id=user_id)


@router.post("/midtrans/webhook")
async def midtrans_webhook(request: Request, db: Session = Depends(get_db)):
    """Midtrans HTTP notification; always JSON, never rate limited."""
    note = MidtransNotification.model_validate(await _json_object(request))
    return midtrans.handle_notification(db, note)


@router.post("/paypal/create-order")
@limiter.limit(_CHECKOUT_RATE_LIMIT)
def paypal_create_order(
    request: Request,
    body: PaypalCreateOrderRequest,
    user_id: int | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    return paypal.create_order(db, body, user_id=user_id)


@router.post("/paypal/capture")
@limiter.limit(_CHECKOUT_RATE_LIMIT)
def paypal_capture(request: Request, body: PaypalCaptureRequest, db: Session = Depends(get_db)):
    return paypal.capture_order(db, body)


@router.post("/xendit/invoice")
@limiter.limit(_CHECKOUT_RATE_LIMIT)
def xendit_invoice(
    request: Request,
    body: XenditInvoiceRequest,
    user_id: int | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    return xendit.create_invoice(db, body, user_id=user_id)


@router.post("/xendit/webhook")
async def xendit_webhook(
    request: Request,
    x_callback_token: str | None = Header(None, alias="x-callback-token"),
    db: Session = Depends(get_db),
):
    return xendit.handle_callback(db, x_callback_token, await _json_object(request))
