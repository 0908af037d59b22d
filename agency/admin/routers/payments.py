"""Recent gateway orders with their live status at the vendor."""
import math

from fastapi import APIRouter, Depends
from sqlmodel import Session

from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.schemas.admin import PaymentsListRequest
from agency.services.payments import midtrans, xendit
from agency.services.settings_store import normalize_env

router = APIRouter()

DEFAULT_LIMIT = 20
MAX_LIMIT = 50


def normalize_limit(value) -> int:
    """1..50, default 20."""
    if value is None or not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, int(value)))


@router.post("/midtrans")
def midtrans_payments(
    body: PaymentsListRequest,
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    env = normalize_env(body.env)
    return midtrans.list_recent_payments(db, env, normalize_limit(body.limit))


@router.post("/xendit")
def xendit_payments(
    body: PaymentsListRequest,
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return xendit.list_recent_payments(db, normalize_limit(body.limit))
