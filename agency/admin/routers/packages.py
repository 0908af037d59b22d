"""Marketing package editor (package, start URL, add-ons, durations)."""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.models import MarketingPackage, User
from agency.schemas.admin import PackageSaveRequest
from agency.services.audit import write_audit
from agency.services.catalog_admin import package_detail, save_package

router = APIRouter()


@router.get("")
def packages_list(_=Depends(require_super_admin), db: Session = Depends(get_db)):
    rows = db.exec(select(MarketingPackage).order_by(MarketingPackage.sort_order, MarketingPackage.name)).all()
    return {"items": [p.model_dump(mode="json") for p in rows]}


@router.get("/{package_id}")
def package_get(package_id: str, _=Depends(require_super_admin), db: Session = Depends(get_db)):
    pkg = db.get(MarketingPackage, package_id)
    if not pkg:
        raise HTTPException(status_code=404, detail="Package not found")
    return package_detail(db, pkg)


@router.post("/save")
def package_save(
    body: PackageSaveRequest,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    pkg = save_package(db, body)
    write_audit(db, request, admin.id, "set_setting", "packages", {"package_id": pkg.id})
    return {"ok": True, "id": pkg.id}
