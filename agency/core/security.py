import base64
import hashlib
import hmac
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt

from .clock import utcnow
from .config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days
MAX_BCRYPT_BYTES = 72  # bcrypt limit


def hash_password(password: str) -> str:
    p = password.encode("utf-8")[:MAX_BCRYPT_BYTES]
    return bcrypt.hashpw(p, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    p = plain.encode("utf-8")[:MAX_BCRYPT_BYTES]
    return bcrypt.checkpw(p, hashed.encode("utf-8"))


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def sign_value(payload: str, secret: str | None = None) -> str:
    """payload.signature (urlsafe base64 HMAC-SHA256) for cookies."""
    key = (secret or settings.secret_key or "agency").encode()
    digest = hmac.new(key, payload.encode("utf-8"), hashlib.sha256).digest()
    return payload + "." + base64.urlsafe_b64encode(digest).decode().rstrip("=")


def unsign_value(signed: str | None, secret: str | None = None) -> str | None:
    """Payload of a value produced by sign_value, or None when the signature does not match."""
    if not signed or "." not in signed:
        return None
    payload, _sig = signed.rsplit(".", 1)
    if not constant_time_equals(signed, sign_value(payload, secret)):
        return None
    return payload


def constant_time_equals(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
