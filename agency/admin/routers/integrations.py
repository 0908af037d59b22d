"""Payment gateway credentials: website settings for public values, plain secrets for server keys."""
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.models import User
from agency.schemas.admin import MidtransSettingsAction, PaypalSecretAction, PaypalSettingsAction, XenditSecretAction
from agency.services.audit import write_audit
from agency.services.payments import midtrans, paypal, xendit
from agency.services.settings_store import (
    delete_secret,
    delete_setting,
    get_plain_secret,
    get_secret_row,
    get_setting,
    get_setting_row,
    get_setting_string,
    is_env,
    iso,
    json_bool,
    latest,
    mask_key,
    normalize_env,
    set_plain_secret,
    set_setting,
)

router = APIRouter()

_MERCHANT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{3,64}$")


def unknown_action() -> HTTPException:
    return HTTPException(status_code=400, detail="Unknown action")


def _active_env(db: Session, key: str) -> str | None:
    value = get_setting(db, key)
    return value.strip().lower() if is_env(value) else None


def normalize_merchant_id(value: str | None) -> str:
    v = (value or "").strip()
    if not v:
        raise ValueError("merchant_id is required")
    if not _MERCHANT_ID_RE.match(v):
        raise ValueError("Invalid merchant_id format")
    return v


def normalize_key(value: str | None, kind: str, max_length: int = 512) -> str:
    v = (value or "").strip()
    if not v:
        raise ValueError(f"{kind} is required")
    if re.search(r"\s", v) or len(v) < 8 or len(v) > max_length:
        raise ValueError(f"Invalid {kind} format")
    return v


# Midtrans

def midtrans_overview(db: Session) -> dict:
    merchant = get_setting_row(db, midtrans.WS_MERCHANT_ID)
    merchant_id = get_setting_string(db, midtrans.WS_MERCHANT_ID)
    envs = {}
    timestamps = [merchant.updated_at if merchant else None]
    for env in ("sandbox", "production"):
        client_row = get_setting_row(db, midtrans.client_key_setting(env))
        secret_row = get_secret_row(db, midtrans.PROVIDER, midtrans.server_key_name(env))
        client_key = midtrans.get_client_key(db, env)
        server_key = midtrans.get_server_key(db, env)
        timestamps += [client_row.updated_at if client_row else None, secret_row.updated_at if secret_row else None]
        envs[env] = {
            "configured": bool(client_key and server_key),
            "client_key_masked": mask_key(client_key),
            "server_key_masked": mask_key(server_key),
            "updated_at": iso(secret_row.updated_at) if secret_row else None,
        }
    return {
        "enabled": midtrans.is_enabled(db),
        "configured": bool(
            merchant_id
            or any(midtrans.get_client_key(db, e) or midtrans.get_server_key(db, e) for e in ("sandbox", "production"))
        ),
        "updated_at": iso(latest(*timestamps)),
        "active_env": _active_env(db, midtrans.WS_ACTIVE_ENV),
        "merchant_id": merchant_id,
        **envs,
    }


@router.post("/midtrans")
def midtrans_settings(
    body: MidtransSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        return midtrans_overview(db)

    if body.action == "set_enabled":
        set_setting(db, midtrans.WS_ENABLED, body.enabled)
        write_audit(db, request, admin.id, "set_setting", "midtrans", {"key": midtrans.WS_ENABLED, "enabled": body.enabled})
        return {"ok": True, "enabled": body.enabled}

    if body.action == "set_active_env":
        env = normalize_env(body.env)
        set_setting(db, midtrans.WS_ACTIVE_ENV, env)
        write_audit(db, request, admin.id, "set_setting", "midtrans", {"key": midtrans.WS_ACTIVE_ENV, "env": env})
        return {"ok": True, "active_env": env}

    if body.action == "reveal":
        env = normalize_env(body.env)
        key = midtrans.get_server_key(db, env)
        if not key:
            raise HTTPException(status_code=400, detail="Server key belum diset")
        write_audit(db, request, admin.id, "reveal_secret", "midtrans", {"env": env, "name": midtrans.server_key_name(env)})
        return {"server_key": key, "server_key_masked": mask_key(key)}

    if body.action == "set":
        env = normalize_env(body.env)
        merchant_id = normalize_merchant_id(body.merchant_id)
        client_key = normalize_key(body.client_key, "client_key")
        server_key = normalize_key(body.server_key, "server_key")
        set_setting(db, midtrans.WS_MERCHANT_ID, merchant_id, commit=False)
        set_setting(db, midtrans.client_key_setting(env), client_key, commit=False)
        set_plain_secret(db, midtrans.PROVIDER, midtrans.server_key_name(env), server_key, commit=False)
        db.commit()
        write_audit(db, request, admin.id, "set_setting", "midtrans", {"env": env, "merchant_id": merchant_id})
        return {"ok": True}

    if body.action == "clear":
        env = normalize_env(body.env)
        delete_setting(db, midtrans.client_key_setting(env), commit=False)
        delete_secret(db, midtrans.PROVIDER, midtrans.server_key_name(env), commit=False)
        db.commit()
        write_audit(db, request, admin.id, "clear_setting", "midtrans", {"env": env})
        return {"ok": True}

    raise unknown_action()


# PayPal

@router.post("/paypal")
def paypal_settings(
    body: PaypalSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        out = {"enabled": paypal.is_enabled(db), "active_env": _active_env(db, paypal.WS_ACTIVE_ENV)}
        for env in ("sandbox", "production"):
            client_id_set = bool(paypal.get_client_id(db, env))
            secret_set = bool(paypal.get_client_secret(db, env))
            out[env] = {"client_id_set": client_id_set, "secret_set": secret_set, "ready": client_id_set and secret_set}
        return out

    if body.action == "set_enabled":
        set_setting(db, paypal.WS_ENABLED, body.enabled)
        write_audit(db, request, admin.id, "set_setting", "paypal", {"key": paypal.WS_ENABLED, "enabled": body.enabled})
        return {"ok": True, "enabled": body.enabled}

    if body.action == "set_active_env":
        env = normalize_env(body.env)
        set_setting(db, paypal.WS_ACTIVE_ENV, env)
        write_audit(db, request, admin.id, "set_setting", "paypal", {"key": paypal.WS_ACTIVE_ENV, "env": env})
        return {"ok": True, "active_env": env}

    if body.action == "set_client_id":
        env = normalize_env(body.env)
        client_id = normalize_key(body.client_id, "client_id", max_length=256)
        set_setting(db, paypal.client_id_setting(env), client_id)
        write_audit(db, request, admin.id, "set_setting", "paypal", {"key": paypal.client_id_setting(env), "env": env})
        return {"ok": True}

    if body.action == "clear_client_id":
        env = normalize_env(body.env)
        delete_setting(db, paypal.client_id_setting(env))
        write_audit(db, request, admin.id, "clear_setting", "paypal", {"key": paypal.client_id_setting(env), "env": env})
        return {"ok": True}

    raise unknown_action()


@router.post("/paypal/secret")
def paypal_secret(
    body: PaypalSecretAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        out = {}
        for env in ("sandbox", "production"):
            row = get_secret_row(db, paypal.PROVIDER, paypal.client_secret_name(env))
            secret = paypal.get_client_secret(db, env)
            out[env] = {
                "configured": bool(secret),
                "updated_at": iso(row.updated_at) if row else None,
                "masked": mask_key(secret),
            }
        return out

    if body.action == "set":
        env = normalize_env(body.env)
        secret = normalize_key(body.client_secret, "client_secret")
        set_plain_secret(db, paypal.PROVIDER, paypal.client_secret_name(env), secret)
        write_audit(db, request, admin.id, "set_setting", "paypal", {"name": paypal.client_secret_name(env), "env": env})
        return {"ok": True}

    if body.action == "clear":
        env = normalize_env(body.env)
        delete_secret(db, paypal.PROVIDER, paypal.client_secret_name(env))
        write_audit(db, request, admin.id, "clear_setting", "paypal", {"name": paypal.client_secret_name(env), "env": env})
        return {"ok": True}

    raise unknown_action()


# Xendit

@router.post("/xendit")
def xendit_settings(
    body: XenditSecretAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_secret_row(db, xendit.PROVIDER, xendit.SECRET_API_KEY)
        token = get_plain_secret(db, xendit.PROVIDER, xendit.SECRET_CALLBACK_TOKEN)
        return {
            "enabled": json_bool(get_setting(db, xendit.WS_ENABLED), True),
            "configured": row is not None,
            "updated_at": iso(row.updated_at) if row else None,
            "api_key_masked": mask_key(xendit.get_api_key(db)),
            "callback_token_set": bool(token),
        }

    if body.action == "set_enabled":
        set_setting(db, xendit.WS_ENABLED, body.enabled)
        write_audit(db, request, admin.id, "set_setting", "xendit", {"key": xendit.WS_ENABLED, "enabled": body.enabled})
        return {"ok": True, "enabled": body.enabled}

    if body.action == "set":
        api_key = xendit.validate_api_key(body.api_key)
        set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_API_KEY, api_key, commit=False)
        if body.callback_token is not None and body.callback_token.strip():
            token = normalize_key(body.callback_token, "callback_token")
            set_plain_secret(db, xendit.PROVIDER, xendit.SECRET_CALLBACK_TOKEN, token, commit=False)
        db.commit()
        write_audit(db, request, admin.id, "set_setting", "xendit", {"name": xendit.SECRET_API_KEY})
        return {"ok": True}

    if body.action == "clear":
        delete_secret(db, xendit.PROVIDER, xendit.SECRET_API_KEY, commit=False)
        delete_secret(db, xendit.PROVIDER, xendit.SECRET_CALLBACK_TOKEN, commit=False)
        db.commit()
        write_audit(db, request, admin.id, "clear_setting", "xendit", {"name": xendit.SECRET_API_KEY})
        return {"ok": True}

    raise unknown_action()
