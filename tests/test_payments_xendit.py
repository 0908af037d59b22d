"""Xendit invoices: creation, friendly vendor errors, callback token and status mapping."""
from fastapi.testclient import TestClient
from sqlmodel import select

from agency.models import Order
from agency.services.payments import xendit
from agency.services.settings_store import set_plain_secret, set_setting

CALLBACK_TOKEN = "cb-token-123456"


def _configure(db, api_key: str = "xnd_development_secret123"):
    set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_API_KEY, api_key)
    set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_CALLBACK_TOKEN, CALLBACK_TOKEN)


def _invoice_body(**overrides) -> dict:
    body = {
        "amount_usd": 1_250_000.4,
        "subscription_years": 1,
        "domain": "tokoku.id",
        "customer_name": "Rina",
        "customer_email": "rina@example.com",
        "success_redirect_url": "https://agency.example/order/success",
    }
    body.update(overrides)
    return body


def test_create_invoice(client: TestClient, db, vendor):
    _configure(db)
    vendor.add("POST", "/v2/invoices", data={"id": "inv-1", "invoice_url": "https://checkout.xendit.co/inv-1", "status": "PENDING"})
    r = client.post("/api/payments/xendit/invoice", json=_invoice_body())
    assert r.status_code == 200
    j = r.json()
    assert j["invoice_url"] == "https://checkout.xendit.co/inv-1"
    assert j["external_id"] == f"ema-xendit-{j['order_db_id']}"

    call = vendor.calls_to("/v2/invoices")[0]
    assert call["json"]["amount"] == 1_250_000
    assert call["json"]["external_id"] == j["external_id"]
    assert call["json"]["success_redirect_url"] == "https://agency.example/order/success"
    assert "failure_redirect_url" not in call["json"]
    assert call["json"]["description"].endswith("Rp 1.250.000")

    order = db.get(Order, j["order_db_id"])
    assert order.env == "sandbox"
    assert order.xendit_invoice_id == "inv-1"
    assert order.amount_idr == 1_250_000


def test_env_follows_key_prefix(db):
    assert xendit.env_for_key("xnd_development_abc") == "sandbox"
    assert xendit.env_for_key("xnd_production_abc") == "production"


def test_friendly_errors():
    assert xendit.friendly_error({"error_code": "INVALID_API_KEY"}) == xendit.INVALID_KEY_MESSAGE
    assert xendit.friendly_error({"message": "Request forbidden"}) == xendit.FORBIDDEN_MESSAGE
    assert xendit.friendly_error({"error_code": "API_VALIDATION_ERROR"}) == xendit.GENERIC_FAILURE_MESSAGE
    assert xendit.friendly_error("oops") == xendit.GENERIC_FAILURE_MESSAGE


def test_invoice_failure_marks_order_failed(client: TestClient, db, vendor):
    _configure(db)
    vendor.add("POST", "/v2/invoices", status=403, data={"error_code": "REQUEST_FORBIDDEN_ERROR"})
    r = client.post("/api/payments/xendit/invoice", json=_invoice_body())
    assert r.status_code == 400
    assert r.json()["error"] == xendit.FORBIDDEN_MESSAGE
    assert r.json()["xendit"] == {"error_code": "REQUEST_FORBIDDEN_ERROR"}
    assert db.exec(select(Order)).first().status == "failed"


def test_invoice_requires_key_and_enabled(client: TestClient, db, vendor):
    r = client.post("/api/payments/xendit/invoice", json=_invoice_body())
    assert r.json()["error"] == "Xendit API key not configured"
    _configure(db)
    set_setting(db, xendit.WS_ENABLED, False)
    r = client.post("/api/payments/xendit/invoice", json=_invoice_body())
    assert r.json()["error"] == "Xendit is disabled"
    assert vendor.calls == []


def test_public_key_is_never_used(db):
    set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_API_KEY, "xnd_public_development_abc")
    assert xendit.get_api_key(db) is None
    assert xendit.is_ready(db) is False


def test_callback_marks_paid(client: TestClient, db, vendor):
    _configure(db)
    vendor.add("POST", "/v2/invoices", data={"id": "inv-1", "invoice_url": "https://checkout.xendit.co/inv-1"})
    created = client.post("/api/payments/xendit/invoice", json=_invoice_body()).json()

    r = client.post(
        "/api/payments/xendit/webhook",
        json={"external_id": created["external_id"], "status": "PAID", "payment_method": "BANK_TRANSFER"},
        headers={"x-callback-token": CALLBACK_TOKEN},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["activated"] is True

    db.expire_all()
    order = db.get(Order, created["order_db_id"])
    assert order.status == "paid"
    assert order.payment_type == "BANK_TRANSFER"
    assert client.get(f"/api/orders/{order.id}/status").json()["invoice_url"] == "https://checkout.xendit.co/inv-1"


def test_callback_status_mapping(client: TestClient, db):
    _configure(db)
    db.add(Order(provider="xendit", xendit_external_id="ema-xendit-1"))
    db.commit()
    headers = {"x-callback-token": CALLBACK_TOKEN}
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "ema-xendit-1", "status": "PENDING"}, headers=headers)
    assert r.json()["status"] == "pending"
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "ema-xendit-1", "status": "EXPIRED"}, headers=headers)
    assert r.json()["status"] == "failed"
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "other", "status": "PAID"}, headers=headers)
    assert r.json() == {"ok": True, "ignored": True}


def test_callback_rejections(client: TestClient, db):
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "x"}, headers={"x-callback-token": "t"})
    assert r.status_code == 400
    assert r.json()["error"] == "Xendit callback token not configured"

    _configure(db)
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "x", "status": "PAID"}, headers={"x-callback-token": "nope"})
    assert r.status_code == 401
    r = client.post("/api/payments/xendit/webhook", json={"external_id": "x", "status": "PAID"})
    assert r.status_code == 401
    r = client.post("/api/payments/xendit/webhook", json={"status": "PAID"}, headers={"x-callback-token": CALLBACK_TOKEN})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing external_id"


def test_xendit_preferred_when_ready(client: TestClient, db):
    _configure(db)
    j = client.get("/api/payment-provider").json()
    assert j["provider"] == "xendit"
    assert j["providers"]["xendit"] is True
