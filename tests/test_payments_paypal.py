"""PayPal Orders v2: create order, capture, credential handling."""
from fastapi.testclient import TestClient
from sqlmodel import select

from agency.models import Order
from agency.services.payments import paypal
from agency.services.settings_store import set_plain_secret, set_setting


def _configure(db, env: str = "sandbox"):
    set_setting(db, paypal.client_id_setting(env), f"client-id-{env}")
    set_plain_secret(db, paypal.PROVIDER, paypal.client_secret_name(env), f"secret-{env}")


def _order_body(**overrides) -> dict:
    body = {
        "amount_usd": 49.5,
        "subscription_years": 2,
        "domain": "tokoku.id",
        "selected_template_id": "t1",
        "customer_name": "Sari",
        "customer_email": "sari@example.com",
    }
    body.update(overrides)
    return body


def _vendor_ok(vendor, paypal_order_id: str = "PP-123"):
    vendor.add("POST", "/v1/oauth2/token", data={"access_token": "A21AA-token"})
    vendor.add("POST", "/v2/checkout/orders", status=201, data={"id": paypal_order_id, "status": "CREATED"})
    vendor.add("POST", "/capture", status=201, data={"id": paypal_order_id, "status": "COMPLETED"})


def test_create_order(client: TestClient, db, vendor):
    _configure(db)
    _vendor_ok(vendor)
    r = client.post("/api/payments/paypal/create-order", json=_order_body())
    assert r.status_code == 200
    j = r.json()
    assert j["paypal_order_id"] == "PP-123"
    assert j["env"] == "sandbox"
    assert j["meta"] == {"selected_template_id": "t1"}

    token_call = vendor.calls_to("/v1/oauth2/token")[0]
    assert token_call["url"].startswith("https://api-m.sandbox.paypal.com")
    assert token_call["form"] == {"grant_type": "client_credentials"}
    create_call = vendor.calls_to("/v2/checkout/orders")[0]
    assert create_call["headers"]["Authorization"] == "Bearer A21AA-token"
    unit = create_call["json"]["purchase_units"][0]
    assert unit["amount"] == {"currency_code": "USD", "value": "49.50"}
    assert unit["custom_id"] == j["order_db_id"]

    order = db.get(Order, j["order_db_id"])
    assert order.status == "pending"
    assert order.paypal_order_id == "PP-123"
    assert order.currency == "USD"


def test_capture_marks_paid(client: TestClient, db, vendor):
    _configure(db)
    _vendor_ok(vendor)
    created = client.post("/api/payments/paypal/create-order", json=_order_body()).json()

    r = client.post("/api/payments/paypal/capture", json={
        "paypal_order_id": "PP-123", "order_db_id": created["order_db_id"],
    })
    assert r.status_code == 200
    assert r.json() == {"ok": True, "paypal": {"id": "PP-123", "status": "COMPLETED"}}
    assert vendor.calls_to("/capture")[0]["url"].endswith("/v2/checkout/orders/PP-123/capture")

    db.expire_all()
    order = db.get(Order, created["order_db_id"])
    assert order.status == "paid"
    assert order.transaction_status == "COMPLETED"

    # a second capture is answered locally
    calls = len(vendor.calls)
    r = client.post("/api/payments/paypal/capture", json={
        "paypal_order_id": "PP-123", "order_db_id": created["order_db_id"],
    })
    assert r.json()["paypal"]["status"] == "COMPLETED"
    assert len(vendor.calls) == calls


def test_capture_uses_the_order_env(client: TestClient, db, vendor):
    _configure(db, "sandbox")
    _configure(db, "production")
    _vendor_ok(vendor)
    created = client.post("/api/payments/paypal/create-order", json=_order_body()).json()
    set_setting(db, paypal.WS_ACTIVE_ENV, "production")

    client.post("/api/payments/paypal/capture", json={"paypal_order_id": "PP-123", "order_db_id": created["order_db_id"]})
    assert vendor.calls_to("/capture")[0]["url"].startswith("https://api-m.sandbox.paypal.com")


def test_capture_rejections(client: TestClient, db, vendor):
    _configure(db)
    _vendor_ok(vendor)
    created = client.post("/api/payments/paypal/create-order", json=_order_body()).json()

    r = client.post("/api/payments/paypal/capture", json={"paypal_order_id": "PP-999", "order_db_id": created["order_db_id"]})
    assert r.status_code == 400
    assert r.json()["error"] == "PayPal order does not match this order"

    r = client.post("/api/payments/paypal/capture", json={"paypal_order_id": "PP-123", "order_db_id": "missing"})
    assert r.json()["error"] == "Order not found"

    r = client.post("/api/payments/paypal/capture", json={"paypal_order_id": "PP 123", "order_db_id": "x"})
    assert r.status_code == 400
    assert r.json()["error"] == "paypal_order_id: id must not contain whitespace"


def test_capture_failure_marks_failed(client: TestClient, db, vendor):
    _configure(db)
    _vendor_ok(vendor)
    created = client.post("/api/payments/paypal/create-order", json=_order_body()).json()
    vendor.add("POST", "/capture", status=422, data={"name": "UNPROCESSABLE_ENTITY"})

    r = client.post("/api/payments/paypal/capture", json={"paypal_order_id": "PP-123", "order_db_id": created["order_db_id"]})
    assert r.status_code == 400
    assert r.json()["paypal"] == {"name": "UNPROCESSABLE_ENTITY"}
    assert db.exec(select(Order)).first().status == "failed"


def test_token_failure_and_missing_config(client: TestClient, db, vendor):
    r = client.post("/api/payments/paypal/create-order", json=_order_body())
    assert r.status_code == 400
    assert r.json()["error"] == "PayPal is not configured"

    _configure(db)
    vendor.add("POST", "/v1/oauth2/token", status=401, data={"error": "invalid_client", "error_description": "Client Authentication failed"})
    r = client.post("/api/payments/paypal/create-order", json=_order_body())
    assert r.status_code == 400
    assert r.json()["error"] == "Client Authentication failed"
    # no order row before a token is obtained
    assert db.exec(select(Order)).all() == []

    set_setting(db, paypal.WS_ENABLED, "false")
    assert client.post("/api/payments/paypal/create-order", json=_order_body()).json()["error"] == "PayPal is disabled"


def test_public_paypal_settings(client: TestClient, db):
    _configure(db)
    j = client.get("/api/paypal/order-settings").json()
    assert j == {"ok": True, "env": "sandbox", "enabled": True, "client_id": "client-id-sandbox", "ready": True}
    assert client.get("/api/payment-provider").json()["provider"] == "paypal"
