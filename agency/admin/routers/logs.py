"""Audit log, error log, orders and order leads listings."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from agency.api.deps import require_super_admin
from agency.core.database import get_db
from agency.models import AuditLog, ErrorLog, Order, OrderLead

router = APIRouter()

ORDER_STATUSES = ("pending", "paid", "failed")


@router.get("/audit")
def audit_logs(
    provider: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
    if provider:
        stmt = stmt.where(AuditLog.provider == provider)
    return {
        "items": [
            {
                "id": a.id,
                "actor_user_id": a.actor_user_id,
                "action": a.action,
                "provider": a.provider,
                "metadata": a.meta or {},
                "created_at": a.created_at.isoformat() if a.created_at else None,
            }
            for a in db.exec(stmt).all()
        ]
    }


@router.get("/errors")
def error_logs(
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    stmt = select(ErrorLog).order_by(ErrorLog.id.desc()).limit(limit)
    return {"items": [e.model_dump(mode="json", exclude={"stack_trace"}) for e in db.exec(stmt).all()]}


@router.get("/orders")
def orders_list(
    status_filter: str | None = Query(None, alias="status"),
    provider: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    stmt = select(Order).order_by(Order.created_at.desc()).limit(limit)
    if status_filter:
        if status_filter not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail="status must be pending, paid or failed")
        stmt = stmt.where(Order.status == status_filter)
    if provider:
        stmt = stmt.where(Order.provider == provider)
    return {"items": [o.model_dump(mode="json") for o in db.exec(stmt).all()]}


@router.get("/orders/{order_id}")
def order_detail(order_id: str, _=Depends(require_super_admin), db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order.model_dump(mode="json")


@router.get("/leads")
def order_leads(
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    stmt = select(OrderLead).order_by(OrderLead.created_at.desc()).limit(limit)
    return {"items": [lead.model_dump(mode="json") for lead in db.exec(stmt).all()]}
