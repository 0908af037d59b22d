from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.models import PromoCode, User
from agency.schemas.admin import PromoCreate, PromoUpdate
from agency.services.audit import write_audit
from agency.services.promo import find_promo

router = APIRouter()

# columns that are NOT NULL on promo_codes
NON_NULL_FIELDS = ("promo_name", "discount_type", "discount_value", "is_active")


def _check_values(discount_type: str, discount_value: float, valid_from, valid_until) -> None:
    if discount_type == "percent" and discount_value > 100:
        raise HTTPException(status_code=400, detail="Percent discount must be between 1 and 100")
    if valid_from and valid_until and valid_until < valid_from:
        raise HTTPException(status_code=400, detail="valid_until must not be before valid_from")


def promo_out(p: PromoCode) -> dict:
    data = p.model_dump(mode="json")
    data["package_ids"] = [x for x in (p.package_ids or "").split(",") if x]
    return data


@router.get("")
def promos_list(_=Depends(require_super_admin), db: Session = Depends(get_db)):
    rows = db.exec(select(PromoCode).order_by(PromoCode.created_at.desc())).all()
    return {"items": [promo_out(p) for p in rows]}


@router.post("")
def promo_create(
    body: PromoCreate,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    _check_values(body.discount_type, body.discount_value, body.valid_from, body.valid_until)
    if find_promo(db, body.code):
        raise HTTPException(status_code=400, detail="Promo code already exists")
    promo = PromoCode(
        code=body.code,
        promo_name=body.promo_name,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        valid_from=body.valid_from,
        valid_until=body.valid_until,
        max_uses=body.max_uses,
        package_ids=",".join(p.strip() for p in body.package_ids if p.strip()) or None,
        is_active=body.is_active,
    )
    db.add(promo)
    db.commit()
    db.refresh(promo)
    out = promo_out(promo)
    write_audit(db, request, admin.id, "set_setting", "promo", {"code": promo.code})
    return out


@router.patch("/{promo_id}")
def promo_update(
    promo_id: int,
    body: PromoUpdate,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    promo = db.get(PromoCode, promo_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    data = body.model_dump(exclude_unset=True)
    for name in NON_NULL_FIELDS:
        if name in data and data[name] is None:
            raise HTTPException(status_code=400, detail=f"{name} must not be null")
    if "package_ids" in data:
        data["package_ids"] = ",".join(p.strip() for p in (data["package_ids"] or []) if p.strip()) or None
    for name, value in data.items():
        setattr(promo, name, value)
    _check_values(promo.discount_type, promo.discount_value, promo.valid_from, promo.valid_until)
    db.add(promo)
    db.commit()
    db.refresh(promo)
    out = promo_out(promo)
    write_audit(db, request, admin.id, "set_setting", "promo", {"code": promo.code})
    return out


@router.delete("/{promo_id}")
def promo_delete(
    promo_id: int,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    promo = db.get(PromoCode, promo_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    code = promo.code
    db.delete(promo)
    db.commit()
    write_audit(db, request, admin.id, "clear_setting", "promo", {"code": code})
    return {"ok": True}
