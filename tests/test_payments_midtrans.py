"""Midtrans: card charge, HTTP notifications and the paid side effects."""
from datetime import timezone

from fastapi.testclient import TestClient
from sqlmodel import select

from agency.models import Order, PromoCode, User, UserPackage
from agency.services.http_client import VendorUnavailable
from agency.services.payments import midtrans
from agency.services.settings_store import set_plain_secret, set_setting

SANDBOX_KEY = "SB-Mid-server-test-key"


def _charge_body(**overrides) -> dict:
    body = {
        "token_id": "tok-123",
        "amount_usd": 10,
        "subscription_years": 1,
        "domain": " tokoku.id ",
        "selected_package_id": "pkg-1",
        "selected_package_name": "Growth",
        "customer_name": "Budi",
        "customer_email": "budi@example.com",
        "promo_code": "launch",
    }
    body.update(overrides)
    return body


def _configure(db):
    set_plain_secret(db, midtrans.PROVIDER, midtrans.server_key_name("sandbox"), SANDBOX_KEY)


def _notification(order_id: str, transaction_status: str, key: str = SANDBOX_KEY) -> dict:
    gross = "160000.00"
    return {
        "order_id": order_id,
        "status_code": "200",
        "gross_amount": gross,
        "signature_key": midtrans.signature_for(order_id, "200", gross, key),
        "transaction_status": transaction_status,
        "transaction_id": "trx-1",
        "payment_type": "credit_card",
    }


def test_charge_success(client: TestClient, db, vendor):
    _configure(db)
    vendor.add("POST", "/v2/charge", data={
        "status_code": "201",
        "transaction_id": "trx-1",
        "transaction_status": "pending",
        "redirect_url": "https://api.sandbox.midtrans.com/3ds/abc",
    })
    r = client.post("/api/payments/midtrans/charge", json=_charge_body())
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is True
    assert j["env"] == "sandbox"
    assert j["amount_idr"] == 160_000
    assert j["redirect_url"] == "https://api.sandbox.midtrans.com/3ds/abc"
    assert j["order_id"].startswith("ema-")

    call = vendor.calls_to("/v2/charge")[0]
    assert call["url"] == "https://api.sandbox.midtrans.com/v2/charge"
    assert call["headers"]["Authorization"].startswith("Basic ")
    assert call["json"]["transaction_details"] == {"order_id": j["order_id"], "gross_amount": 160_000}
    assert call["json"]["credit_card"] == {"token_id": "tok-123", "authentication": True}

    order = db.get(Order, j["order_db_id"])
    assert order.status == "pending"
    assert order.domain == "tokoku.id"
    assert order.promo_code == "LAUNCH"
    assert order.transaction_id == "trx-1"

    status = client.get(f"/api/orders/{order.id}/status").json()
    assert status["status"] == "pending"
    assert status["redirect_url"] == "https://api.sandbox.midtrans.com/3ds/abc"


def test_charge_error_in_body_marks_order_failed(client: TestClient, db, vendor):
    _configure(db)
    vendor.add("POST", "/v2/charge", data={"status_code": "406", "status_message": "Duplicate order ID"})
    r = client.post("/api/payments/midtrans/charge", json=_charge_body())
    assert r.status_code == 400
    j = r.json()
    assert j["ok"] is False
    assert j["error"] == "Midtrans charge failed"
    assert j["midtrans"]["status_message"] == "Duplicate order ID"
    order = db.exec(select(Order).where(Order.midtrans_order_id == j["order_id"])).first()
    assert order.status == "failed"


def test_charge_vendor_unreachable(client: TestClient, db, vendor):
    _configure(db)
    vendor.fail("POST", "/v2/charge", VendorUnavailable("connection refused"))
    r = client.post("/api/payments/midtrans/charge", json=_charge_body())
    assert r.status_code == 502
    assert r.json()["ok"] is False
    assert db.exec(select(Order)).first().status == "failed"


def test_charge_requires_enabled_and_configured(client: TestClient, db, vendor):
    r = client.post("/api/payments/midtrans/charge", json=_charge_body())
    assert r.status_code == 400
    assert r.json()["error"] == "Midtrans server key (sandbox) is not configured"

    _configure(db)
    set_setting(db, midtrans.WS_ENABLED, False)
    r = client.post("/api/payments/midtrans/charge", json=_charge_body())
    assert r.json()["error"] == "Midtrans is disabled"
    assert vendor.calls == []


def test_charge_validation(client: TestClient):
    r = client.post("/api/payments/midtrans/charge", json=_charge_body(customer_email="not-an-email"))
    assert r.status_code == 400
    assert r.json()["error"] == "customer_email: customer_email is invalid"
    r = client.post("/api/payments/midtrans/charge", json=_charge_body(amount_usd=0))
    assert r.status_code == 400


def test_charge_env_selection(db):
    assert midtrans.charge_env(db, None) == "sandbox"
    set_plain_secret(db, midtrans.PROVIDER, midtrans.server_key_name("production"), "Mid-server-prod")
    assert midtrans.charge_env(db, None) == "production"
    set_setting(db, midtrans.WS_ACTIVE_ENV, "sandbox")
    assert midtrans.charge_env(db, None) == "sandbox"
    assert midtrans.charge_env(db, "production") == "production"


def test_notification_marks_paid_once(client: TestClient, db, vendor, user_headers):
    _configure(db)
    db.add(PromoCode(code="LAUNCH", discount_type="percent", discount_value=10))
    db.commit()
    vendor.add("POST", "/v2/charge", data={"status_code": "201", "transaction_status": "pending"})
    charged = client.post("/api/payments/midtrans/charge", json=_charge_body(), headers=user_headers).json()

    note = _notification(charged["order_id"], "settlement")
    r = client.post("/api/payments/midtrans/webhook", json=note)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "order_id": charged["order_id"], "status": "paid", "activated": True}

    # duplicate delivery: no second activation
    r = client.post("/api/payments/midtrans/webhook", json=note)
    assert r.json()["activated"] is False

    db.expire_all()
    order = db.get(Order, charged["order_db_id"])
    assert order.status == "paid"
    assert order.paid_at is not None
    assert db.exec(select(PromoCode)).first().use_count == 1

    member = db.exec(select(User).where(User.email == "member@example.com")).first()
    packages = db.exec(select(UserPackage).where(UserPackage.user_id == member.id)).all()
    assert len(packages) == 1
    assert packages[0].package_id == "pkg-1"
    assert packages[0].duration_months == 12
    assert packages[0].expires_at > packages[0].started_at

    assert client.get(f"/api/orders/{order.id}/status").json()["status"] == "paid"


def test_notification_failure_statuses(client: TestClient, db):
    _configure(db)
    db.add(Order(provider="midtrans", env="sandbox", midtrans_order_id="ema-x"))
    db.commit()
    r = client.post("/api/payments/midtrans/webhook", json=_notification("ema-x", "expire"))
    assert r.json()["status"] == "failed"
    r = client.post("/api/payments/midtrans/webhook", json=_notification("ema-x", "pending"))
    assert r.json()["status"] == "pending"


def test_new_rows_carry_utc_timestamps():
    assert Order(provider="midtrans", env="sandbox").created_at.tzinfo is timezone.utc
    assert PromoCode(code="X", discount_type="fixed", discount_value=1).created_at.tzinfo is timezone.utc


def test_notification_records_verified_env(client: TestClient, db):
    _configure(db)
    set_plain_secret(db, midtrans.PROVIDER, midtrans.server_key_name("production"), "Mid-server-live-key")
    db.add(Order(provider="midtrans", env="sandbox", midtrans_order_id="ema-live"))
    db.commit()
    r = client.post("/api/payments/midtrans/webhook", json=_notification("ema-live", "pending", key="Mid-server-live-key"))
    assert r.json()["status"] == "pending"
    db.expire_all()
    assert db.exec(select(Order).where(Order.midtrans_order_id == "ema-live")).first().env == "production"


def test_notification_rejections(client: TestClient, db):
    _configure(db)
    r = client.post("/api/payments/midtrans/webhook", json={"order_id": "ema-x"})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields"

    r = client.post("/api/payments/midtrans/webhook", json=_notification("ema-x", "settlement", key="wrong-key"))
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid signature"

    note = _notification("ema-x", "settlement")
    note["signature_key"] = "\u00e9" + note["signature_key"][1:]
    r = client.post("/api/payments/midtrans/webhook", json=note)
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid signature"

    r = client.post("/api/payments/midtrans/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400

    r = client.post("/api/payments/midtrans/webhook", json=_notification("ema-unknown", "settlement"))
    assert r.json() == {"ok": True, "ignored": True}


def test_public_midtrans_settings(client: TestClient, db):
    j = client.get("/api/midtrans/order-settings").json()
    assert j["ready"] is False
    assert j["env"] == "sandbox"

    _configure(db)
    set_setting(db, midtrans.WS_MERCHANT_ID, "G123456")
    set_setting(db, midtrans.client_key_setting("sandbox"), "SB-Mid-client-abc")
    j = client.get("/api/midtrans/order-settings").json()
    assert j["ready"] is True
    assert j["client_key"] == "SB-Mid-client-abc"
    assert "server_key" not in j
    assert client.get("/api/payment-provider").json()["provider"] == "midtrans"
