"""Pytest fixtures: test client, in-memory SQLite, super admin token, fake payment vendors."""
import os

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite for tests (must be set before the app is imported)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["SMTP_HOST"] = ""
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = ""
# High limits so the whole suite passes; rate limit tests use their own loop
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_CHECKOUT_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel  # noqa: E402

from agency.admin.routers.users import create_user  # noqa: E402
from agency.core.database import engine  # noqa: E402
from agency.core.rate_limit import limiter  # noqa: E402
from agency.core.security import create_access_token  # noqa: E402
from agency.main import app  # noqa: E402
from agency.services import http_client  # noqa: E402
from agency.services.http_client import VendorResponse  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_state():
    """Fresh tables and rate limit counters for every test."""
    from agency import models  # noqa: F401

    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    limiter.reset()
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


def _token_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
def super_admin_headers(db):
    user = create_user(db, "root@example.com", "root-pass-123", "Root", role="super_admin")
    return _token_headers(user.id)


@pytest.fixture
def user_headers(db):
    user = create_user(db, "member@example.com", "member-pass-123", "Member", role="user")
    return _token_headers(user.id)


class FakeVendor:
    """Replaces http_client.request_json: records calls, answers from a per-URL-fragment table."""

    def __init__(self):
        self.calls: list[dict] = []
        self.routes: list[tuple[str, str, object]] = []

    def add(self, method: str, url_part: str, status: int = 200, data=None) -> "FakeVendor":
        self.routes.append((method.upper(), url_part, VendorResponse(status=status, data=data if data is not None else {})))
        return self

    def fail(self, method: str, url_part: str, exc: Exception) -> "FakeVendor":
        self.routes.append((method.upper(), url_part, exc))
        return self

    def __call__(self, method, url, *, headers=None, json_body=None, form=None, timeout=None):
        self.calls.append({"method": method.upper(), "url": url, "headers": headers or {}, "json": json_body, "form": form})
        for m, part, answer in reversed(self.routes):
            if m == method.upper() and part in url:
                if isinstance(answer, Exception):
                    raise answer
                return answer
        raise AssertionError(f"unexpected vendor call {method} {url}")

    def calls_to(self, url_part: str) -> list[dict]:
        return [c for c in self.calls if url_part in c["url"]]


@pytest.fixture
def vendor(monkeypatch):
    fake = FakeVendor()
    monkeypatch.setattr(http_client, "request_json", fake)
    return fake
