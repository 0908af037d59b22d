"""
Midtrans Core API: credit card charge (3DS), HTTP notifications, transaction status lookups.
Credentials: merchant id and client keys in website settings, server keys as plain secrets.
"""
import hashlib
import logging
import uuid
from urllib.parse import quote

from sqlmodel import Session, select

from agency.core.config import settings
from agency.core.security import constant_time_equals
from agency.models import Order
from agency.schemas.order import MidtransChargeRequest, MidtransNotification
from agency.services import http_client
from agency.services.payments.base import (
    STATUS_FAILED,
    STATUS_PAID,
    STATUS_PENDING,
    PaymentError,
    create_pending_order,
    mark_failed,
    set_order_status,
    update_order,
)
from agency.services.pricing import format_price, usd_to_idr
from agency.services.settings_store import (
    get_plain_secret,
    get_setting,
    get_setting_string,
    has_plain_secret,
    is_env,
    json_bool,
)

log = logging.getLogger("agency.payments")

PROVIDER = "midtrans"
SANDBOX_BASE_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_BASE_URL = "https://api.midtrans.com"

WS_ENABLED = "midtrans_enabled"
WS_MERCHANT_ID = "midtrans_merchant_id"
WS_ACTIVE_ENV = "midtrans_active_env"

PAID_STATUSES = {"settlement", "capture"}
FAILED_STATUSES = {"deny", "cancel", "expire"}


def base_url(env: str) -> str:
    return PRODUCTION_BASE_URL if env == "production" else SANDBOX_BASE_URL


def client_key_setting(env: str) -> str:
    return f"midtrans_client_key_{env}"


def server_key_name(env: str) -> str:
    return f"server_key_{env}"


def is_enabled(db: Session) -> bool:
    return json_bool(get_setting(db, WS_ENABLED), True)


def get_server_key(db: Session, env: str) -> str | None:
    return get_plain_secret(db, PROVIDER, server_key_name(env))


def get_client_key(db: Session, env: str) -> str | None:
    return get_setting_string(db, client_key_setting(env))


def get_merchant_id(db: Session) -> str | None:
    return get_setting_string(db, WS_MERCHANT_ID)


def is_env_ready(db: Session, env: str) -> bool:
    return bool(get_merchant_id(db) and get_client_key(db, env) and has_plain_secret(db, PROVIDER, server_key_name(env)))


def resolve_active_env(db: Session) -> str:
    """Admin selected env; otherwise production when fully configured, else sandbox."""
    chosen = get_setting(db, WS_ACTIVE_ENV)
    if is_env(chosen):
        return chosen.strip().lower()
    return "production" if is_env_ready(db, "production") else "sandbox"


def charge_env(db: Session, requested: str | None) -> str:
    """Env for a charge: request > admin selection > production if its server key exists > sandbox."""
    if is_env(requested):
        return requested
    chosen = get_setting(db, WS_ACTIVE_ENV)
    if is_env(chosen):
        return chosen.strip().lower()
    return "production" if has_plain_secret(db, PROVIDER, server_key_name("production")) else "sandbox"


def order_settings(db: Session) -> dict:
    """Public settings for the card form (client key only, never the server key)."""
    env = resolve_active_env(db)
    enabled = is_enabled(db)
    return {
        "ok": True,
        "enabled": enabled,
        "env": env,
        "merchant_id": get_merchant_id(db),
        "client_key": get_client_key(db, env),
        "ready": enabled and is_env_ready(db, env),
    }


def _text(data: dict, name: str) -> str | None:
    value = data.get(name) if isinstance(data, dict) else None
    return value if isinstance(value, str) else None


def _charge_succeeded(resp: http_client.VendorResponse) -> bool:
    if not resp.ok:
        return False
    # Core API may answer HTTP 200 with an error status_code in the body
    code = str(resp.data.get("status_code", "200")) if isinstance(resp.data, dict) else "200"
    return not code.startswith(("4", "5"))


def charge(db: Session, body: MidtransChargeRequest, user_id: int | None = None) -> dict:
    if not is_enabled(db):
        raise PaymentError("Midtrans is disabled")
    env = charge_env(db, body.env)
    server_key = get_server_key(db, env)
    if not server_key:
        raise PaymentError(f"Midtrans server key ({env}) is not configured")

    amount_idr = usd_to_idr(body.amount_usd, settings.usd_to_idr_rate)
    midtrans_order_id = f"ema-{uuid.uuid4()}"
    order = create_pending_order(
        db,
        PROVIDER,
        env,
        body,
        user_id=user_id,
        amount_usd=body.amount_usd,
        amount_idr=amount_idr,
        currency="IDR",
        midtrans_order_id=midtrans_order_id,
    )

    payload = {
        "payment_type": "credit_card",
        "transaction_details": {"order_id": midtrans_order_id, "gross_amount": amount_idr},
        "item_details": [
            {
                "id": body.selected_template_id or body.selected_package_id or "package",
                "price": amount_idr,
                "quantity": 1,
                "name": f"Service Package - {format_price(body.amount_usd, 'USD')} USD (charged in IDR)"[:50],
            }
        ],
        "credit_card": {"token_id": body.token_id, "authentication": True},
        "customer_details": {"first_name": body.customer_name, "email": body.customer_email},
    }
    try:
        resp = http_client.request_json(
            "POST",
            f"{base_url(env)}/v2/charge",
            headers={"Authorization": http_client.basic_auth(server_key)},
            json_body=payload,
        )
    except http_client.VendorUnavailable:
        mark_failed(db, order, transaction_status="failed")
        raise

    if not _charge_succeeded(resp):
        mark_failed(db, order, transaction_status="failed")
        log.warning("Midtrans charge failed order=%s http=%s", midtrans_order_id, resp.status)
        raise PaymentError(
            "Midtrans charge failed",
            extra={"order_id": midtrans_order_id, "midtrans": resp.data},
        )

    data = resp.data
    update_order(
        db,
        order,
        transaction_id=_text(data, "transaction_id"),
        payment_type=_text(data, "payment_type"),
        transaction_status=_text(data, "transaction_status"),
        fraud_status=_text(data, "fraud_status"),
        redirect_url=_text(data, "redirect_url"),
    )
    return {
        "ok": True,
        "order_id": midtrans_order_id,
        "order_db_id": order.id,
        "user_id": order.user_id,
        "env": env,
        "amount_idr": amount_idr,
        "redirect_url": order.redirect_url,
        "transaction_status": order.transaction_status,
    }


def signature_for(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(db: Session, note: MidtransNotification) -> str | None:
    """Env whose server key produced the signature (production checked first), else None."""
    for env in ("production", "sandbox"):
        key = get_server_key(db, env)
        if not key:
            continue
        expected = signature_for(note.order_id, note.status_code, note.gross_amount, key)
        if constant_time_equals(note.signature_key.lower(), expected):
            return env
    return None


def map_transaction_status(transaction_status: str | None) -> str:
    s = (transaction_status or "").strip().lower()
    if s in PAID_STATUSES:
        return STATUS_PAID
    if s in FAILED_STATUSES:
        return STATUS_FAILED
    return STATUS_PENDING


def handle_notification(db: Session, note: MidtransNotification) -> dict:
    if not (note.order_id and note.status_code and note.gross_amount and note.signature_key):
        raise PaymentError("Missing required fields")
    env = verify_signature(db, note)
    if env is None:
        log.warning("Midtrans notification with invalid signature order=%s", note.order_id)
        raise PaymentError("Invalid signature", status_code=401)

    order = db.exec(select(Order).where(Order.midtrans_order_id == note.order_id)).first()
    if not order:
        log.info("Midtrans notification for unknown order %s ignored", note.order_id)
        return {"ok": True, "ignored": True}

    status = map_transaction_status(note.transaction_status)
    fields = {"transaction_status": note.transaction_status, "env": env}
    if note.transaction_id:
        fields["transaction_id"] = note.transaction_id
    if note.payment_type:
        fields["payment_type"] = note.payment_type
    if note.fraud_status:
        fields["fraud_status"] = note.fraud_status
    became_paid = set_order_status(db, order, status, **fields)
    return {"ok": True, "order_id": note.order_id, "status": status, "activated": became_paid}


def fetch_transaction_status(env: str, midtrans_order_id: str, server_key: str) -> http_client.VendorResponse:
    return http_client.request_json(
        "GET",
        f"{base_url(env)}/v2/{quote(midtrans_order_id, safe='')}/status",
        headers={"Authorization": http_client.basic_auth(server_key)},
    )


def list_recent_payments(db: Session, env: str, limit: int = 20) -> dict:
    """Latest Midtrans orders of one env with their live status. Missing key is a soft error."""
    server_key = get_server_key(db, env)
    if not server_key:
        return {"ok": False, "error": f"Midtrans server key ({env}) is not configured"}
    stmt = (
        select(Order)
        .where(Order.provider == PROVIDER, Order.env == env)
        .order_by(Order.created_at.desc())
        .limit(limit)
    )
    items = []
    for o in db.exec(stmt).all():
        row = {
            "id": o.id,
            "created_at": o.created_at.isoformat() if o.created_at else None,
            "domain": o.domain,
            "customer_name": o.customer_name,
            "customer_email": o.customer_email,
            "amount_usd": o.amount_usd,
            "amount_idr": o.amount_idr,
            "payment_env": o.env,
            "status": o.status,
            "midtrans_order_id": o.midtrans_order_id,
            "midtrans_redirect_url": o.redirect_url,
        }
        if not o.midtrans_order_id:
            items.append({**row, "midtrans": None, "midtrans_error": "Missing midtrans_order_id"})
            continue
        try:
            resp = fetch_transaction_status(env, o.midtrans_order_id, server_key)
        except http_client.VendorUnavailable as e:
            items.append({**row, "midtrans": None, "midtrans_error": f"Midtrans unreachable: {e}"})
            continue
        error = None if resp.ok else f"Midtrans status failed ({resp.status})"
        items.append({**row, "midtrans": resp.data, "midtrans_error": error})
    return {"ok": True, "env": env, "items": items}
