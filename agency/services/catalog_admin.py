"""Super-admin package editor: package fields, start URL mapping, add-on and duration drafts in one save."""
import logging
import math
import re

from sqlmodel import Session, select

from agency.core.clock import utcnow
from agency.models import MarketingPackage, PackageAddOn, PackageDuration
from agency.schemas.admin import AddOnDraft, DurationDraft, PackageSaveRequest
from agency.services.settings_store import get_setting, set_setting

log = logging.getLogger("agency")

START_URLS_KEY = "packages_start_urls"
_UUID_RE = re.compile(r"^[0-9a-fA-F-]{36}$")


def normalize_start_url(value: str | None) -> str:
    """"" clears; relative paths get a leading "/", absolute http(s) URLs are kept."""
    v = (value or "").strip()
    if not v or v.startswith("/") or re.match(r"^https?://", v, re.IGNORECASE):
        return v
    return f"/{v}"


def update_start_url(db: Session, package_id: str, start_url: str | None) -> dict:
    current = get_setting(db, START_URLS_KEY)
    mapping = dict(current) if isinstance(current, dict) else {}
    url = normalize_start_url(start_url)
    if url:
        mapping[package_id] = url
    else:
        mapping.pop(package_id, None)
    set_setting(db, START_URLS_KEY, mapping, commit=False)
    return mapping


def _finite(value: float, fallback: float = 0) -> float:
    return value if isinstance(value, (int, float)) and math.isfinite(value) else fallback


def _apply_add_on(row: PackageAddOn, package_id: str, a: AddOnDraft) -> PackageAddOn:
    row.package_id = package_id
    row.add_on_key = a.add_on_key
    row.label = a.label
    row.price_per_unit = _finite(a.price_per_unit)
    row.unit_step = max(1, a.unit_step)
    row.unit = a.unit or "unit"
    row.is_active = a.is_active
    row.sort_order = max(0, a.sort_order)
    row.max_quantity = None if a.max_quantity is None else max(0, a.max_quantity)
    return row


def _apply_duration(row: PackageDuration, package_id: str, d: DurationDraft) -> PackageDuration:
    row.package_id = package_id
    row.duration_months = max(1, d.duration_months)
    row.discount_percent = max(0.0, _finite(d.discount_percent))
    row.is_active = d.is_active
    row.sort_order = max(0, d.sort_order)
    return row


def save_add_ons(db: Session, package_id: str, drafts: list[AddOnDraft], removed_ids: list[str]) -> None:
    """Drafts with an id update that row; new drafts upsert on (package_id, add_on_key)."""
    for a in drafts:
        if not a.add_on_key or not a.label:
            continue
        row = db.get(PackageAddOn, a.id) if a.id else None
        if row is None:
            row = db.exec(
                select(PackageAddOn).where(PackageAddOn.package_id == package_id, PackageAddOn.add_on_key == a.add_on_key)
            ).first() or PackageAddOn(package_id=package_id, add_on_key=a.add_on_key, label=a.label)
        db.add(_apply_add_on(row, package_id, a))
    if removed_ids:
        stmt = select(PackageAddOn).where(PackageAddOn.id.in_(removed_ids), PackageAddOn.package_id == package_id)
        for row in db.exec(stmt).all():
            db.delete(row)


def save_durations(db: Session, package_id: str, drafts: list[DurationDraft], removed_ids: list[str]) -> None:
    """Same as add-ons, keyed on (package_id, duration_months)."""
    for d in drafts:
        if d.duration_months <= 0:
            continue
        row = db.get(PackageDuration, d.id) if d.id else None
        if row is None:
            row = db.exec(
                select(PackageDuration).where(
                    PackageDuration.package_id == package_id,
                    PackageDuration.duration_months == d.duration_months,
                )
            ).first() or PackageDuration(package_id=package_id, duration_months=d.duration_months)
        db.add(_apply_duration(row, package_id, d))
    if removed_ids:
        stmt = select(PackageDuration).where(PackageDuration.id.in_(removed_ids), PackageDuration.package_id == package_id)
        for row in db.exec(stmt).all():
            db.delete(row)


def save_package(db: Session, body: PackageSaveRequest) -> MarketingPackage:
    """
    Saves the package with its drafts in one transaction.
    A package id that does not exist yet creates the package; a non-uuid id is a ValueError.
    """
    p = body.package
    if p.id and not _UUID_RE.match(p.id.strip()):
        raise ValueError("package.id must be a uuid")
    pkg = db.get(MarketingPackage, p.id.strip()) if p.id else None
    if pkg is None:
        pkg = MarketingPackage(id=p.id.strip(), name=p.name) if p.id else MarketingPackage(name=p.name)
    pkg.name = p.name
    pkg.type = p.type
    pkg.description = p.description or None
    pkg.price = p.price
    pkg.billing_period = p.billing_period
    pkg.features = p.features
    pkg.is_active = p.is_active
    pkg.show_on_public = p.show_on_public
    pkg.sort_order = p.sort_order
    pkg.updated_at = utcnow()
    db.add(pkg)
    db.flush()

    if "start_url" in body.model_fields_set:
        update_start_url(db, pkg.id, body.start_url)
    save_add_ons(db, pkg.id, body.add_ons, body.removed_add_on_ids)
    save_durations(db, pkg.id, body.durations, body.removed_duration_ids)
    db.commit()
    db.refresh(pkg)
    log.info("package saved id=%s add_ons=%s durations=%s", pkg.id, len(body.add_ons), len(body.durations))
    return pkg


def package_detail(db: Session, pkg: MarketingPackage) -> dict:
    start_urls = get_setting(db, START_URLS_KEY)
    add_ons = db.exec(
        select(PackageAddOn).where(PackageAddOn.package_id == pkg.id).order_by(PackageAddOn.sort_order)
    ).all()
    durations = db.exec(
        select(PackageDuration).where(PackageDuration.package_id == pkg.id).order_by(PackageDuration.sort_order)
    ).all()
    return {
        "package": pkg.model_dump(mode="json"),
        "start_url": start_urls.get(pkg.id) if isinstance(start_urls, dict) else None,
        "add_ons": [a.model_dump(mode="json") for a in add_ons],
        "durations": [d.model_dump(mode="json") for d in durations],
    }
