"""
JSON over HTTP for the payment vendors (urllib).
Vendor error bodies are returned, not raised; only network failures raise VendorUnavailable.
"""
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request as UrlRequest
from urllib.request import urlopen

from agency.core.config import settings

log = logging.getLogger("agency.payments")


class VendorUnavailable(Exception):
    """The vendor could not be reached (DNS, TLS, timeout)."""


@dataclass
class VendorResponse:
    status: int
    data: Any = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def basic_auth(username: str, password: str = "") -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace") if raw else ""
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text[:2000]}


def request_json(
    method: str,
    url: str,
    *,
    headers: dict | None = None,
    json_body: Any = None,
    form: dict | None = None,
    timeout: int | None = None,
) -> VendorResponse:
    hdrs = {"Accept": "application/json"}
    hdrs.update(headers or {})
    data = None
    if json_body is not None:
        data = json.dumps(json_body).encode()
        hdrs["Content-Type"] = "application/json"
    elif form is not None:
        data = urlencode(form).encode()
        hdrs["Content-Type"] = "application/x-www-form-urlencoded"
    req = UrlRequest(url, data=data, method=method.upper(), headers=hdrs)
    try:
        with urlopen(req, timeout=timeout or settings.vendor_http_timeout) as resp:
            return VendorResponse(status=resp.status, data=_decode(resp.read()))
    except HTTPError as e:
        body = _decode(e.read())
        log.warning("Vendor HTTP %s: %s %s", e.code, method.upper(), url)
        return VendorResponse(status=e.code, data=body)
    except (URLError, TimeoutError, OSError) as e:
        log.exception("Vendor request failed: %s %s", method.upper(), url)
        raise VendorUnavailable(str(e)[:200]) from e
