"""Promo code validation and discount calculation."""
from datetime import date

from sqlmodel import Session, select

from agency.models import PromoCode


def find_promo(db: Session, code: str) -> PromoCode | None:
    code_upper = (code or "").strip().upper()
    if not code_upper:
        return None
    return db.exec(select(PromoCode).where(PromoCode.code == code_upper)).first()


def validate_promo(
    db: Session,
    code: str,
    base_total: float,
    package_id: str | None = None,
) -> tuple[PromoCode | None, float, str | None]:
    """
    Validates the code and returns the discount in the order currency.
    (promo, discount, error_message). error_message is None when the code is usable.
    """
    if not code or not (code := code.strip()):
        return None, 0, "Kode promo belum diisi."
    promo = find_promo(db, code)
    if not promo:
        return None, 0, "Kode promo tidak valid."
    if not promo.is_active:
        return None, 0, "Kode promo tidak aktif."

    today = date.today()
    if promo.valid_from and today < promo.valid_from:
        return None, 0, "Kode promo belum berlaku."
    if promo.valid_until and today > promo.valid_until:
        return None, 0, "Kode promo sudah kedaluwarsa."

    if promo.max_uses is not None and promo.use_count >= promo.max_uses:
        return None, 0, "Kuota kode promo sudah habis."

    if promo.package_ids:
        allowed = [p.strip() for p in promo.package_ids.split(",") if p.strip()]
        if allowed and (package_id or "") not in allowed:
            return None, 0, "Kode promo tidak berlaku untuk paket ini."

    base_total = max(0.0, float(base_total or 0))
    if promo.discount_type == "percent":
        if not (0 < promo.discount_value <= 100):
            return None, 0, "Persentase promo tidak valid."
        discount = base_total * promo.discount_value / 100
    elif promo.discount_type == "fixed":
        discount = min(max(0.0, promo.discount_value), base_total)
    else:
        return None, 0, "Jenis promo tidak valid."

    if discount <= 0:
        return promo, 0, None
    return promo, discount, None


def apply_promo_use(db: Session, code: str | None) -> None:
    """Increments the usage counter (called once an order using the code is paid)."""
    promo = find_promo(db, code or "")
    if promo:
        promo.use_count = (promo.use_count or 0) + 1
        db.add(promo)
        db.commit()
