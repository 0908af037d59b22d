"""Search Console, GA4, robots.txt, sitemap and JSON-LD settings."""
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from agency.admin.routers.integrations import unknown_action
from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.models import User
from agency.schemas.admin import Ga4SettingsAction, GscSettingsAction, JsonSettingsAction
from agency.services import seo
from agency.services.audit import write_audit
from agency.services.settings_store import delete_setting, get_setting_row, iso, mask_token, set_setting

router = APIRouter()


def _clear(db: Session, request: Request, admin: User, key: str, provider: str) -> dict:
    delete_setting(db, key)
    write_audit(db, request, admin.id, "clear_setting", provider, {"key": key})
    return {"ok": True}


@router.post("/gsc")
def gsc_settings(
    body: GscSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_setting_row(db, seo.GSC_KEY)
        token = row.value if row and isinstance(row.value, str) else None
        return {
            "configured": bool(token),
            "updated_at": iso(row.updated_at) if row else None,
            "token_masked": mask_token(token),
        }
    if body.action == "set":
        token = seo.normalize_gsc_token(body.token)
        set_setting(db, seo.GSC_KEY, token)
        write_audit(db, request, admin.id, "set_setting", "gsc", {"key": seo.GSC_KEY})
        return {"ok": True, "token_masked": mask_token(token)}
    if body.action == "clear":
        return _clear(db, request, admin, seo.GSC_KEY, "gsc")
    raise unknown_action()


@router.post("/ga4")
def ga4_settings(
    body: Ga4SettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_setting_row(db, seo.GA4_KEY)
        measurement_id = row.value if row and isinstance(row.value, str) else None
        return {
            "configured": bool(measurement_id),
            "updated_at": iso(row.updated_at) if row else None,
            "measurement_id": measurement_id,
        }
    if body.action == "set":
        measurement_id = seo.normalize_ga4_id(body.measurement_id)
        set_setting(db, seo.GA4_KEY, measurement_id)
        write_audit(db, request, admin.id, "set_setting", "ga4", {"key": seo.GA4_KEY})
        return {"ok": True, "measurement_id": measurement_id}
    if body.action == "clear":
        return _clear(db, request, admin, seo.GA4_KEY, "ga4")
    raise unknown_action()


@router.post("/robots")
def robots_settings(
    body: JsonSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_setting_row(db, seo.ROBOTS_KEY)
        view = seo.robots_settings_view(row.value if row else None)
        return {
            "configured": bool(view and view["enabled"]),
            "updated_at": iso(row.updated_at) if row else None,
            "settings": view,
            "robots_url": str(request.url_for("robots_txt")),
        }
    if body.action == "set":
        settings = seo.normalize_robots_settings(body.settings)
        set_setting(db, seo.ROBOTS_KEY, settings)
        write_audit(db, request, admin.id, "set_setting", "robots", {"key": seo.ROBOTS_KEY})
        return {"ok": True, "settings": settings}
    if body.action == "clear":
        return _clear(db, request, admin, seo.ROBOTS_KEY, "robots")
    raise unknown_action()


@router.post("/sitemap")
def sitemap_settings(
    body: JsonSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_setting_row(db, seo.SITEMAP_KEY)
        view = seo.sitemap_settings_view(row.value if row else None)
        return {
            "configured": bool(view and view["base_url"]),
            "updated_at": iso(row.updated_at) if row else None,
            "settings": view,
            "sitemap_url": str(request.url_for("sitemap_xml")),
        }
    if body.action == "set":
        settings = seo.normalize_sitemap_settings(body.settings)
        set_setting(db, seo.SITEMAP_KEY, settings)
        write_audit(db, request, admin.id, "set_setting", "sitemap", {"key": seo.SITEMAP_KEY})
        return {"ok": True, "settings": settings}
    if body.action == "clear":
        return _clear(db, request, admin, seo.SITEMAP_KEY, "sitemap")
    raise unknown_action()


@router.post("/schema")
def schema_settings(
    body: JsonSettingsAction,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.action == "get":
        row = get_setting_row(db, seo.SCHEMA_KEY)
        view = seo.schema_settings_view(row.value if row else None)
        return {
            "configured": bool(view and view["enabled"]),
            "updated_at": iso(row.updated_at) if row else None,
            "settings": view,
        }
    if body.action == "set":
        settings = seo.normalize_schema_settings(body.settings)
        set_setting(db, seo.SCHEMA_KEY, settings)
        write_audit(db, request, admin.id, "set_setting", "schema", {"key": seo.SCHEMA_KEY})
        return {"ok": True, "settings": settings}
    if body.action == "clear":
        return _clear(db, request, admin, seo.SCHEMA_KEY, "schema")
    raise unknown_action()
