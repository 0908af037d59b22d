"""Super admin settings panels: gateway credentials, SEO, packages, promo codes, payment listings."""
from fastapi.testclient import TestClient
from sqlmodel import select

from agency.models import (
    AuditLog,
    IntegrationSecret,
    MarketingPackage,
    Order,
    PackageAddOn,
    PackageDuration,
    PromoCode,
)
from agency.services.catalog_admin import START_URLS_KEY
from agency.services.http_client import VendorUnavailable
from agency.services.payments import midtrans, xendit
from agency.services.settings_store import get_setting, set_plain_secret

MIDTRANS_URL = "/api/admin/settings/midtrans"


def _audit_actions(db, provider: str) -> list[str]:
    return [a.action for a in db.exec(select(AuditLog).where(AuditLog.provider == provider).order_by(AuditLog.id)).all()]


def test_settings_require_super_admin(client: TestClient, user_headers):
    assert client.post(MIDTRANS_URL, json={"action": "get"}).status_code == 401
    r = client.post(MIDTRANS_URL, json={"action": "get"}, headers=user_headers)
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"


def test_unknown_action(client: TestClient, super_admin_headers):
    for path in ("midtrans", "paypal", "paypal/secret", "xendit", "gsc", "ga4", "robots", "sitemap", "schema"):
        r = client.post(f"/api/admin/settings/{path}", json={"action": "explode"}, headers=super_admin_headers)
        assert r.status_code == 400, path
        assert r.json()["error"] == "Unknown action"


def test_midtrans_set_get_reveal_clear(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    j = client.post(MIDTRANS_URL, json={"action": "get"}, headers=h).json()
    assert j["configured"] is False
    assert j["enabled"] is True
    assert j["sandbox"]["configured"] is False

    r = client.post(MIDTRANS_URL, json={
        "action": "set",
        "env": "Sandbox",
        "merchant_id": "G123456",
        "client_key": "SB-Mid-client-abcd1234",
        "server_key": "SB-Mid-server-wxyz9876",
    }, headers=h)
    assert r.status_code == 200

    j = client.post(MIDTRANS_URL, json={"action": "get"}, headers=h).json()
    assert j["configured"] is True
    assert j["merchant_id"] == "G123456"
    assert j["sandbox"]["configured"] is True
    assert j["sandbox"]["server_key_masked"].endswith("9876")
    assert "wxyz" not in j["sandbox"]["server_key_masked"]
    assert j["production"]["configured"] is False
    assert j["active_env"] is None

    r = client.post(MIDTRANS_URL, json={"action": "reveal", "env": "sandbox"}, headers=h)
    assert r.json()["server_key"] == "SB-Mid-server-wxyz9876"

    assert client.post(MIDTRANS_URL, json={"action": "clear", "env": "sandbox"}, headers=h).status_code == 200
    r = client.post(MIDTRANS_URL, json={"action": "reveal", "env": "sandbox"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Server key belum diset"

    assert _audit_actions(db, "midtrans") == ["set_setting", "reveal_secret", "clear_setting"]


def test_midtrans_validation(client: TestClient, super_admin_headers):
    h = super_admin_headers
    r = client.post(MIDTRANS_URL, json={"action": "set", "env": "staging"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "env must be sandbox or production"

    r = client.post(MIDTRANS_URL, json={
        "action": "set", "env": "sandbox", "merchant_id": "G1", "client_key": "x" * 10, "server_key": "y" * 10,
    }, headers=h)
    assert r.json()["error"] == "Invalid merchant_id format"

    r = client.post(MIDTRANS_URL, json={
        "action": "set", "env": "sandbox", "merchant_id": "G123", "client_key": "has space 123", "server_key": "y" * 10,
    }, headers=h)
    assert r.json()["error"] == "Invalid client_key format"


def test_midtrans_enabled_and_active_env(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    client.post(MIDTRANS_URL, json={"action": "set_enabled", "enabled": False}, headers=h)
    client.post(MIDTRANS_URL, json={"action": "set_active_env", "env": "production"}, headers=h)
    j = client.post(MIDTRANS_URL, json={"action": "get"}, headers=h).json()
    assert j["enabled"] is False
    assert j["active_env"] == "production"
    assert midtrans.resolve_active_env(db) == "production"


def test_paypal_settings_and_secret(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    url = "/api/admin/settings/paypal"
    client.post(url, json={"action": "set_client_id", "env": "sandbox", "client_id": "AcLientId123"}, headers=h)
    j = client.post(url, json={"action": "get"}, headers=h).json()
    assert j["sandbox"] == {"client_id_set": True, "secret_set": False, "ready": False}
    assert j["active_env"] is None

    client.post(f"{url}/secret", json={"action": "set", "env": "sandbox", "client_secret": "EsecretValue99"}, headers=h)
    secret = client.post(f"{url}/secret", json={"action": "get"}, headers=h).json()
    assert secret["sandbox"]["configured"] is True
    assert secret["sandbox"]["masked"].endswith("ue99")
    assert secret["production"]["configured"] is False
    assert client.post(url, json={"action": "get"}, headers=h).json()["sandbox"]["ready"] is True

    client.post(f"{url}/secret", json={"action": "clear", "env": "sandbox"}, headers=h)
    client.post(url, json={"action": "clear_client_id", "env": "sandbox"}, headers=h)
    j = client.post(url, json={"action": "get"}, headers=h).json()
    assert j["sandbox"] == {"client_id_set": False, "secret_set": False, "ready": False}
    assert _audit_actions(db, "paypal") == ["set_setting", "set_setting", "clear_setting", "clear_setting"]


def test_xendit_settings(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    url = "/api/admin/settings/xendit"
    r = client.post(url, json={"action": "set", "api_key": "xnd_public_development_abc"}, headers=h)
    assert r.status_code == 400
    assert "not the public key" in r.json()["error"]

    r = client.post(url, json={
        "action": "set", "api_key": "xnd_development_secret123", "callback_token": "cb-token-123456",
    }, headers=h)
    assert r.status_code == 200
    j = client.post(url, json={"action": "get"}, headers=h).json()
    assert j["configured"] is True
    assert j["callback_token_set"] is True
    assert j["api_key_masked"].endswith("t123")

    client.post(url, json={"action": "clear"}, headers=h)
    assert db.exec(select(IntegrationSecret).where(IntegrationSecret.provider == "xendit")).all() == []
    assert _audit_actions(db, "xendit") == ["set_setting", "clear_setting"]


def test_gsc_and_ga4(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    r = client.post("/api/admin/settings/gsc", json={"action": "set", "token": "abcdEFGH1234567"}, headers=h)
    assert r.json()["token_masked"] == "abcd*******4567"
    r = client.post("/api/admin/settings/gsc", json={"action": "set", "token": "bad token"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Format token tidak valid"

    r = client.post("/api/admin/settings/ga4", json={"action": "set", "measurement_id": "g-abcd1234"}, headers=h)
    assert r.json()["measurement_id"] == "G-ABCD1234"
    assert client.get("/api/public/verification").json() == {
        "gsc_verification_token": "abcdEFGH1234567",
        "ga4_measurement_id": "G-ABCD1234",
    }

    client.post("/api/admin/settings/ga4", json={"action": "clear"}, headers=h)
    j = client.post("/api/admin/settings/ga4", json={"action": "get"}, headers=h).json()
    assert j == {"configured": False, "updated_at": None, "measurement_id": None}


def test_robots_sitemap_schema_panels(client: TestClient, super_admin_headers):
    h = super_admin_headers
    r = client.post("/api/admin/settings/robots", json={
        "action": "set",
        "settings": {"sitemap": "https://agency.example/sitemap.xml", "disallow": ["/admin"]},
    }, headers=h)
    assert r.status_code == 200
    j = client.post("/api/admin/settings/robots", json={"action": "get"}, headers=h).json()
    assert j["configured"] is True
    assert j["settings"]["disallow"] == ["/admin"]
    assert j["robots_url"].endswith("/robots.txt")
    assert "Disallow: /admin" in client.get("/robots.txt").text

    r = client.post("/api/admin/settings/sitemap", json={"action": "set", "settings": {"base_url": "agency.example"}}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Base URL harus diawali http:// atau https://"
    client.post("/api/admin/settings/sitemap", json={
        "action": "set", "settings": {"base_url": "https://agency.example/", "include_blog_posts": False},
    }, headers=h)
    j = client.post("/api/admin/settings/sitemap", json={"action": "get"}, headers=h).json()
    assert j["settings"]["base_url"] == "https://agency.example"
    assert j["sitemap_url"].endswith("/sitemap.xml")
    assert client.get("/sitemap.xml").status_code == 200

    client.post("/api/admin/settings/schema", json={
        "action": "set", "settings": {"business_name": "Agency", "website_url": "https://agency.example"},
    }, headers=h)
    assert client.get("/schema-jsonld").json()["enabled"] is True
    client.post("/api/admin/settings/schema", json={"action": "clear"}, headers=h)
    assert client.get("/schema-jsonld").json()["enabled"] is False


def test_package_save_creates_and_updates(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    r = client.post("/api/admin/packages/save", json={
        "package": {"name": "  Starter ", "price": 150000, "features": ["Landing page", 3]},
        "start_url": "start/starter",
        "add_ons": [{"add_on_key": "pages", "label": "Extra page", "price_per_unit": 25000, "unit_step": 0}],
        "durations": [{"duration_months": 12, "discount_percent": 10}],
    }, headers=h)
    assert r.status_code == 200
    package_id = r.json()["id"]

    detail = client.get(f"/api/admin/packages/{package_id}", headers=h).json()
    assert detail["package"]["name"] == "Starter"
    assert detail["package"]["features"] == ["Landing page"]
    assert detail["start_url"] == "/start/starter"
    assert detail["add_ons"][0]["unit_step"] == 1
    add_on_id = detail["add_ons"][0]["id"]
    duration_id = detail["durations"][0]["id"]

    r = client.post("/api/admin/packages/save", json={
        "package": {"id": package_id, "name": "Starter", "price": 175000},
        "start_url": "",
        "add_ons": [{"id": add_on_id, "add_on_key": "pages", "label": "Page", "price_per_unit": 30000}],
        "removed_duration_ids": [duration_id],
    }, headers=h)
    assert r.status_code == 200

    db.expire_all()
    pkg = db.get(MarketingPackage, package_id)
    assert pkg.price == 175000
    add_ons = db.exec(select(PackageAddOn).where(PackageAddOn.package_id == package_id)).all()
    assert [(a.label, a.price_per_unit) for a in add_ons] == [("Page", 30000)]
    assert db.exec(select(PackageDuration).where(PackageDuration.package_id == package_id)).all() == []
    assert package_id not in get_setting(db, START_URLS_KEY)
    assert _audit_actions(db, "packages") == ["set_setting", "set_setting"]


def test_package_save_rejects_bad_id(client: TestClient, super_admin_headers):
    r = client.post("/api/admin/packages/save", json={"package": {"id": "not-a-uuid", "name": "X"}}, headers=super_admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "package.id must be a uuid"
    assert client.get("/api/admin/packages/nope", headers=super_admin_headers).status_code == 404


def test_promo_crud(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    r = client.post("/api/admin/promos", json={
        "code": " launch ", "discount_type": "percent", "discount_value": 15, "package_ids": ["a", " b "],
    }, headers=h)
    assert r.status_code == 200
    promo = r.json()
    assert promo["code"] == "LAUNCH"
    assert promo["package_ids"] == ["a", "b"]
    assert promo["discount_value"] == 15
    assert promo["is_active"] is True

    r = client.post("/api/admin/promos", json={"code": "LAUNCH", "discount_type": "fixed", "discount_value": 1}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Promo code already exists"

    r = client.post("/api/admin/promos", json={"code": "BIG", "discount_type": "percent", "discount_value": 120}, headers=h)
    assert r.status_code == 400

    r = client.patch(f"/api/admin/promos/{promo['id']}", json={
        "valid_from": "2025-02-01", "valid_until": "2025-01-01",
    }, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "valid_until must not be before valid_from"

    r = client.patch(f"/api/admin/promos/{promo['id']}", json={"is_active": False, "package_ids": []}, headers=h)
    assert r.json()["is_active"] is False
    assert r.json()["package_ids"] == []
    assert r.json()["code"] == "LAUNCH"
    assert r.json()["discount_value"] == 15

    for field in ("discount_value", "discount_type", "is_active"):
        r = client.patch(f"/api/admin/promos/{promo['id']}", json={field: None}, headers=h)
        assert r.status_code == 400
        assert r.json()["error"] == f"{field} must not be null"
    db.expire_all()
    assert db.get(PromoCode, promo["id"]).discount_value == 15

    assert len(client.get("/api/admin/promos", headers=h).json()["items"]) == 1
    assert client.delete(f"/api/admin/promos/{promo['id']}", headers=h).json() == {"ok": True}
    assert client.delete(f"/api/admin/promos/{promo['id']}", headers=h).status_code == 404
    assert _audit_actions(db, "promo") == ["set_setting", "set_setting", "clear_setting"]


def test_midtrans_payments_listing(client: TestClient, db, super_admin_headers, vendor):
    h = super_admin_headers
    r = client.post("/api/admin/payments/midtrans", json={"env": "sandbox"}, headers=h)
    assert r.json() == {"ok": False, "error": "Midtrans server key (sandbox) is not configured"}

    set_plain_secret(db, midtrans.PROVIDER, midtrans.server_key_name("sandbox"), "SB-Mid-server-key")
    for n in range(3):
        db.add(Order(provider="midtrans", env="sandbox", midtrans_order_id=f"ema-{n}", domain=f"d{n}.id"))
    db.add(Order(provider="midtrans", env="production", midtrans_order_id="ema-prod"))
    db.commit()
    vendor.add("GET", "/v2/ema-", data={"transaction_status": "settlement"})
    vendor.fail("GET", "/v2/ema-1/status", VendorUnavailable("timed out"))

    j = client.post("/api/admin/payments/midtrans", json={"env": "sandbox", "limit": 500}, headers=h).json()
    assert j["ok"] is True
    assert len(j["items"]) == 3
    by_id = {i["midtrans_order_id"]: i for i in j["items"]}
    assert by_id["ema-0"]["midtrans"] == {"transaction_status": "settlement"}
    assert by_id["ema-1"]["midtrans_error"] == "Midtrans unreachable: timed out"
    assert all("api.sandbox.midtrans.com" in c["url"] for c in vendor.calls)

    j = client.post("/api/admin/payments/midtrans", json={"env": "sandbox", "limit": 1}, headers=h).json()
    assert len(j["items"]) == 1

    r = client.post("/api/admin/payments/midtrans", json={"env": "live"}, headers=h)
    assert r.status_code == 400


def test_xendit_payments_listing(client: TestClient, db, super_admin_headers, vendor):
    h = super_admin_headers
    set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_API_KEY, "xnd_development_abc123")
    db.add(Order(provider="xendit", env="sandbox", xendit_external_id="ema-xendit-1"))
    db.commit()
    vendor.add("GET", "/v2/invoices", data=[{"id": "inv-1", "status": "PAID"}])

    j = client.post("/api/admin/payments/xendit", json={}, headers=h).json()
    assert j["items"][0]["xendit"] == {"id": "inv-1", "status": "PAID"}
    assert "external_id=ema-xendit-1" in vendor.calls[0]["url"]


def test_logs_and_users(client: TestClient, db, super_admin_headers):
    h = super_admin_headers
    client.post("/api/admin/settings/ga4", json={"action": "set", "measurement_id": "G-ABCD1234"}, headers=h)
    items = client.get("/api/admin/audit?provider=ga4", headers=h).json()["items"]
    assert items[0]["action"] == "set_setting"
    assert items[0]["metadata"]["key"] == "ga4_measurement_id"

    db.add(Order(provider="paypal", status="paid"))
    db.add(Order(provider="xendit"))
    db.commit()
    assert len(client.get("/api/admin/orders?status=paid", headers=h).json()["items"]) == 1
    assert len(client.get("/api/admin/orders?provider=xendit", headers=h).json()["items"]) == 1
    assert client.get("/api/admin/orders?status=weird", headers=h).status_code == 400

    users = client.get("/api/admin/users", headers=h).json()["items"]
    assert users[0]["roles"] == ["super_admin"]
