"""
Website settings (key -> JSON value) and integration secrets.
Secrets are stored in plaintext with iv = "plain"; rows with any other iv are not readable here.
"""
from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session, select

from agency.core.clock import utcnow
from agency.models import IntegrationSecret, WebsiteSetting

PLAIN_IV = "plain"
ENVS = ("sandbox", "production")


def json_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v == "true":
            return True
        if v == "false":
            return False
    return fallback


def normalize_env(value: Any) -> str:
    v = str(value or "").strip().lower()
    if v not in ENVS:
        raise ValueError("env must be sandbox or production")
    return v


def is_env(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in ENVS


def get_setting_row(db: Session, key: str) -> WebsiteSetting | None:
    return db.get(WebsiteSetting, key)


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    row = db.get(WebsiteSetting, key)
    if row is None or row.value is None:
        return default
    return row.value


def get_setting_string(db: Session, key: str) -> str | None:
    """Trimmed non-empty string value, else None."""
    value = get_setting(db, key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_settings_map(db: Session, keys: list[str]) -> dict[str, WebsiteSetting]:
    rows = db.exec(select(WebsiteSetting).where(WebsiteSetting.key.in_(keys))).all()
    return {r.key: r for r in rows}


def set_setting(db: Session, key: str, value: Any, commit: bool = True) -> WebsiteSetting:
    row = db.get(WebsiteSetting, key)
    if row is None:
        row = WebsiteSetting(key=key, value=value)
    else:
        row.value = value
    row.updated_at = utcnow()
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row


def delete_setting(db: Session, key: str, commit: bool = True) -> bool:
    row = db.get(WebsiteSetting, key)
    if row is None:
        return False
    db.delete(row)
    if commit:
        db.commit()
    return True


def get_secret_row(db: Session, provider: str, name: str) -> IntegrationSecret | None:
    stmt = select(IntegrationSecret).where(
        IntegrationSecret.provider == provider,
        IntegrationSecret.name == name,
    )
    return db.exec(stmt).first()


def get_plain_secret(db: Session, provider: str, name: str) -> str | None:
    row = get_secret_row(db, provider, name)
    if row is None or row.iv != PLAIN_IV:
        return None
    value = (row.ciphertext or "").strip()
    return value or None


def has_plain_secret(db: Session, provider: str, name: str) -> bool:
    return get_plain_secret(db, provider, name) is not None


def set_plain_secret(db: Session, provider: str, name: str, value: str, commit: bool = True) -> IntegrationSecret:
    row = get_secret_row(db, provider, name)
    if row is None:
        row = IntegrationSecret(provider=provider, name=name, ciphertext=value, iv=PLAIN_IV)
    else:
        row.ciphertext = value
        row.iv = PLAIN_IV
    row.updated_at = utcnow()
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row


def delete_secret(db: Session, provider: str, name: str, commit: bool = True) -> bool:
    row = get_secret_row(db, provider, name)
    if row is None:
        return False
    db.delete(row)
    if commit:
        db.commit()
    return True


def mask_key(value: str | None) -> str | None:
    """'****abcd': everything but the last 4 characters hidden."""
    if not value:
        return None
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def mask_token(value: str | None) -> str | None:
    """'abcd****wxyz' for verification tokens."""
    if not value:
        return None
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]


def latest(*values: datetime | None) -> datetime | None:
    # rows read back from SQLite come without tzinfo; they are stored as UTC
    present = [v if v.tzinfo else v.replace(tzinfo=timezone.utc) for v in values if v is not None]
    return max(present) if present else None


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
