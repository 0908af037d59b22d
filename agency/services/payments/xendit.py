"""Xendit Invoices v2: hosted invoice page, invoice callbacks, admin status lookups."""
import logging
import re
from urllib.parse import urlencode

from sqlmodel import Session, select

from agency.core.security import constant_time_equals
from agency.models import Order
from agency.schemas.order import XenditInvoiceRequest
from agency.services import http_client
from agency.services.payments.base import (
    STATUS_FAILED,
    STATUS_PAID,
    PaymentError,
    create_pending_order,
    mark_failed,
    set_order_status,
    update_order,
)
from agency.services.pricing import format_price, round_money
from agency.services.settings_store import get_plain_secret, get_setting, json_bool

log = logging.getLogger("agency.payments")

PROVIDER = "xendit"
BASE_URL = "https://api.xendit.co"
WS_ENABLED = "xendit_enabled"
SECRET_API_KEY = "api_key"
SECRET_CALLBACK_TOKEN = "callback_token"

INVALID_KEY_MESSAGE = (
    "API key Xendit tidak valid. Silakan gunakan Xendit *Secret* API Key "
    "(xnd_development_... / xnd_production_...) dan simpan di Super Admin → Integrations."
)
FORBIDDEN_MESSAGE = (
    "API key Xendit valid tetapi tidak punya izin untuk membuat Invoice (v2/invoices). "
    "Silakan atur permission/roles API key di Xendit Dashboard agar mengizinkan pembuatan Invoice, "
    "atau buat Secret key baru dengan akses yang sesuai."
)
GENERIC_FAILURE_MESSAGE = "Gagal membuat invoice Xendit"

PAID_STATUSES = {"PAID", "SETTLED"}
FAILED_STATUSES = {"EXPIRED"}


def validate_api_key(value: str | None) -> str:
    """Secret keys only: xnd_development_... / xnd_production_..."""
    key = (value or "").strip()
    if not key:
        raise ValueError("api_key is required")
    if re.search(r"\s", key) or len(key) < 8 or len(key) > 256:
        raise ValueError("Invalid api_key format")
    if not key.startswith("xnd_"):
        raise ValueError("Invalid Xendit key. Use a key that starts with 'xnd_'")
    if key.startswith("xnd_public_"):
        raise ValueError(
            "Invalid Xendit key for server-side usage. Please paste the Xendit *Secret* API Key "
            "(xnd_development_... / xnd_production_...), not the public key."
        )
    return key


def is_enabled(db: Session) -> bool:
    return json_bool(get_setting(db, WS_ENABLED), True)


def get_api_key(db: Session) -> str | None:
    key = get_plain_secret(db, PROVIDER, SECRET_API_KEY)
    if key and key.startswith("xnd_public_"):
        return None
    return key


def env_for_key(api_key: str) -> str:
    return "sandbox" if api_key.startswith("xnd_development_") else "production"


def is_ready(db: Session) -> bool:
    return is_enabled(db) and bool(get_api_key(db))


def external_id_for(order: Order) -> str:
    return f"ema-xendit-{order.id}"


def friendly_error(data) -> str:
    data = data if isinstance(data, dict) else {}
    code = str(data.get("error_code") or "").upper()
    message = str(data.get("message") or "")
    if code == "INVALID_API_KEY" or re.search(r"invalid api key", message, re.IGNORECASE):
        return INVALID_KEY_MESSAGE
    if (
        code == "REQUEST_FORBIDDEN_ERROR"
        or re.search(r"forbidden", message, re.IGNORECASE)
        or re.search(r"doesn't have sufficient permissions", message, re.IGNORECASE)
    ):
        return FORBIDDEN_MESSAGE
    return GENERIC_FAILURE_MESSAGE


def create_invoice(db: Session, body: XenditInvoiceRequest, user_id: int | None = None) -> dict:
    if not is_enabled(db):
        raise PaymentError("Xendit is disabled")
    api_key = get_api_key(db)
    if not api_key:
        raise PaymentError("Xendit API key not configured")

    # amount_usd already carries the IDR amount shown in the order flow
    amount_idr = max(1, int(round_money(body.amount_usd, "IDR")))
    order = create_pending_order(db, PROVIDER, env_for_key(api_key), body, user_id=user_id, amount_idr=amount_idr, currency="IDR")
    external_id = external_id_for(order)
    update_order(db, order, xendit_external_id=external_id)

    payload = {
        "external_id": external_id,
        "amount": amount_idr,
        "currency": "IDR",
        "description": f"Order {body.domain} ({body.subscription_years} tahun) – {format_price(amount_idr, 'IDR')}",
        "payer_email": body.customer_email,
        "customer": {"given_names": body.customer_name, "email": body.customer_email},
        "should_send_email": True,
        "metadata": {
            "order_db_id": order.id,
            "domain": body.domain,
            "selected_template_id": body.selected_template_id,
        },
    }
    if body.success_redirect_url:
        payload["success_redirect_url"] = body.success_redirect_url
    if body.failure_redirect_url:
        payload["failure_redirect_url"] = body.failure_redirect_url
    try:
        resp = http_client.request_json(
            "POST",
            f"{BASE_URL}/v2/invoices",
            headers={"Authorization": http_client.basic_auth(api_key)},
            json_body=payload,
        )
    except http_client.VendorUnavailable:
        mark_failed(db, order)
        raise

    if not resp.ok:
        mark_failed(db, order)
        log.warning("Xendit invoice failed order=%s http=%s", order.id, resp.status)
        raise PaymentError(friendly_error(resp.data), extra={"xendit": resp.data})

    data = resp.data if isinstance(resp.data, dict) else {}
    invoice_url = data.get("invoice_url") if isinstance(data.get("invoice_url"), str) else None
    update_order(db, order, xendit_invoice_id=data.get("id"), invoice_url=invoice_url, transaction_status=data.get("status"))
    return {
        "ok": True,
        "order_db_id": order.id,
        "external_id": external_id,
        "invoice_url": invoice_url,
        "xendit": {"id": data.get("id")},
    }


def handle_callback(db: Session, callback_token: str | None, payload: dict) -> dict:
    """Invoice callback; the x-callback-token header must equal the stored verification token."""
    expected = get_plain_secret(db, PROVIDER, SECRET_CALLBACK_TOKEN)
    if not expected:
        raise PaymentError("Xendit callback token not configured")
    if not constant_time_equals(callback_token, expected):
        log.warning("Xendit callback with invalid token")
        raise PaymentError("Invalid callback token", status_code=401)

    external_id = str(payload.get("external_id") or "").strip()
    if not external_id:
        raise PaymentError("Missing external_id")
    order = db.exec(select(Order).where(Order.xendit_external_id == external_id)).first()
    if not order:
        return {"ok": True, "ignored": True}

    vendor_status = str(payload.get("status") or "").upper()
    if vendor_status in PAID_STATUSES:
        status = STATUS_PAID
    elif vendor_status in FAILED_STATUSES:
        status = STATUS_FAILED
    else:
        status = order.status
    fields = {"transaction_status": vendor_status or None}
    if payload.get("payment_method"):
        fields["payment_type"] = str(payload["payment_method"])
    became_paid = set_order_status(db, order, status, **fields)
    return {"ok": True, "external_id": external_id, "status": status, "activated": became_paid}


def list_recent_payments(db: Session, limit: int = 20) -> dict:
    api_key = get_api_key(db)
    if not api_key:
        return {"ok": False, "error": "Xendit API key not configured"}
    stmt = select(Order).where(Order.provider == PROVIDER).order_by(Order.created_at.desc()).limit(limit)
    items = []
    for o in db.exec(stmt).all():
        row = {
            "id": o.id,
            "created_at": o.created_at.isoformat() if o.created_at else None,
            "domain": o.domain,
            "customer_name": o.customer_name,
            "customer_email": o.customer_email,
            "amount_idr": o.amount_idr,
            "status": o.status,
            "xendit_invoice_url": o.invoice_url,
        }
        query = urlencode({"external_id": o.xendit_external_id or external_id_for(o), "limit": 1})
        try:
            resp = http_client.request_json(
                "GET",
                f"{BASE_URL}/v2/invoices?{query}",
                headers={"Authorization": http_client.basic_auth(api_key)},
            )
        except http_client.VendorUnavailable:
            resp = None
        if resp is not None and resp.ok and isinstance(resp.data, list) and resp.data:
            items.append({**row, "xendit": resp.data[0], "xendit_error": None})
        else:
            items.append({**row, "xendit": None, "xendit_error": "Could not fetch Xendit invoice status"})
    return {"ok": True, "items": items}
