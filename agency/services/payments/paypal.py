"""PayPal Orders v2: create an order for the JS buttons, capture it after buyer approval."""
import logging
import uuid
from urllib.parse import quote

from sqlmodel import Session

from agency.models import Order
from agency.schemas.order import PaypalCaptureRequest, PaypalCreateOrderRequest
from agency.services import http_client
from agency.services.payments.base import (
    STATUS_PAID,
    PaymentError,
    create_pending_order,
    mark_failed,
    set_order_status,
    update_order,
)
from agency.services.settings_store import (
    get_plain_secret,
    get_setting,
    get_setting_string,
    is_env,
    json_bool,
)

log = logging.getLogger("agency.payments")

PROVIDER = "paypal"
SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"
PRODUCTION_BASE_URL = "https://api-m.paypal.com"

WS_ENABLED = "paypal_enabled"
WS_ACTIVE_ENV = "paypal_active_env"


def base_url(env: str) -> str:
    return PRODUCTION_BASE_URL if env == "production" else SANDBOX_BASE_URL


def client_id_setting(env: str) -> str:
    return f"paypal_client_id_{env}"


def client_secret_name(env: str) -> str:
    return f"client_secret_{env}"


def is_enabled(db: Session) -> bool:
    return json_bool(get_setting(db, WS_ENABLED), True)


def active_env(db: Session) -> str:
    value = get_setting(db, WS_ACTIVE_ENV)
    return value.strip().lower() if is_env(value) else "sandbox"


def get_client_id(db: Session, env: str) -> str | None:
    return get_setting_string(db, client_id_setting(env))


def get_client_secret(db: Session, env: str) -> str | None:
    return get_plain_secret(db, PROVIDER, client_secret_name(env))


def is_env_ready(db: Session, env: str) -> bool:
    return bool(get_client_id(db, env) and get_client_secret(db, env))


def order_settings(db: Session) -> dict:
    """Public: client id for the JS SDK of the active env."""
    env = active_env(db)
    enabled = is_enabled(db)
    return {
        "ok": True,
        "env": env,
        "enabled": enabled,
        "client_id": get_client_id(db, env),
        "ready": enabled and is_env_ready(db, env),
    }


def credentials(db: Session, env: str | None = None) -> tuple[str, str, str]:
    """(env, client_id, client_secret) or PaymentError when disabled / not configured."""
    if not is_enabled(db):
        raise PaymentError("PayPal is disabled")
    env = env or active_env(db)
    client_id = get_client_id(db, env)
    client_secret = get_client_secret(db, env)
    if not client_id or not client_secret:
        raise PaymentError("PayPal is not configured")
    return env, client_id, client_secret


def get_access_token(env: str, client_id: str, client_secret: str) -> str:
    resp = http_client.request_json(
        "POST",
        f"{base_url(env)}/v1/oauth2/token",
        headers={"Authorization": http_client.basic_auth(client_id, client_secret)},
        form={"grant_type": "client_credentials"},
    )
    data = resp.data if isinstance(resp.data, dict) else {}
    if not resp.ok:
        message = data.get("error_description") or data.get("message") or "Failed to get PayPal token"
        raise PaymentError(str(message), extra={"paypal": resp.data})
    token = str(data.get("access_token") or "").strip()
    if not token:
        raise PaymentError("PayPal access token missing")
    return token


def create_order(db: Session, body: PaypalCreateOrderRequest, user_id: int | None = None) -> dict:
    env, client_id, client_secret = credentials(db)
    token = get_access_token(env, client_id, client_secret)

    order = create_pending_order(
        db,
        PROVIDER,
        env,
        body,
        user_id=user_id,
        amount_usd=body.amount_usd,
        currency="USD",
    )
    payload = {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "reference_id": order.id,
                "custom_id": order.id,
                "description": f"Order {body.domain} ({body.subscription_years} year)",
                "amount": {"currency_code": "USD", "value": f"{body.amount_usd:.2f}"},
            }
        ],
        "application_context": {"shipping_preference": "NO_SHIPPING", "user_action": "PAY_NOW"},
    }
    try:
        resp = http_client.request_json(
            "POST",
            f"{base_url(env)}/v2/checkout/orders",
            headers={
                "Authorization": f"Bearer {token}",
                "PayPal-Request-Id": f"ema-paypal-{uuid.uuid4()}",
            },
            json_body=payload,
        )
    except http_client.VendorUnavailable:
        mark_failed(db, order)
        raise

    paypal_order_id = str(resp.data.get("id") or "").strip() if isinstance(resp.data, dict) else ""
    if not resp.ok or not paypal_order_id:
        mark_failed(db, order)
        log.warning("PayPal create order failed order=%s http=%s", order.id, resp.status)
        raise PaymentError("PayPal create order failed", extra={"paypal": resp.data})

    update_order(db, order, paypal_order_id=paypal_order_id, transaction_status=resp.data.get("status"))
    return {
        "ok": True,
        "paypal_order_id": paypal_order_id,
        "order_db_id": order.id,
        "env": env,
        "meta": {"selected_template_id": body.selected_template_id},
    }


def capture_order(db: Session, body: PaypalCaptureRequest) -> dict:
    order = db.get(Order, body.order_db_id)
    if not order or order.provider != PROVIDER:
        raise PaymentError("Order not found")
    if order.paypal_order_id and order.paypal_order_id != body.paypal_order_id:
        raise PaymentError("PayPal order does not match this order")
    if order.status == STATUS_PAID:
        return {"ok": True, "paypal": {"id": body.paypal_order_id, "status": "COMPLETED"}}

    env, client_id, client_secret = credentials(db, order.env)
    token = get_access_token(env, client_id, client_secret)
    try:
        resp = http_client.request_json(
            "POST",
            f"{base_url(env)}/v2/checkout/orders/{quote(body.paypal_order_id, safe='')}/capture",
            headers={"Authorization": f"Bearer {token}"},
            json_body={},
        )
    except http_client.VendorUnavailable:
        mark_failed(db, order)
        raise

    if not resp.ok:
        mark_failed(db, order)
        log.warning("PayPal capture failed order=%s http=%s", order.id, resp.status)
        raise PaymentError("PayPal capture failed", extra={"paypal": resp.data})

    capture_status = resp.data.get("status") if isinstance(resp.data, dict) else None
    set_order_status(db, order, STATUS_PAID, paypal_order_id=body.paypal_order_id, transaction_status=capture_status)
    return {"ok": True, "paypal": {"id": body.paypal_order_id, "status": capture_status}}
