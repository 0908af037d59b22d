import logging

from fastapi import Request
from sqlmodel import Session

from agency.core.rate_limit import get_client_ip
from agency.models import AuditLog

log = logging.getLogger("agency")


def write_audit(
    db: Session,
    request: Request | None,
    actor_user_id: int | None,
    action: str,
    provider: str | None = None,
    metadata: dict | None = None,
) -> AuditLog:
    meta = dict(metadata or {})
    if request is not None:
        meta.setdefault("user_agent", request.headers.get("user-agent"))
        meta.setdefault("ip", get_client_ip(request))
    row = AuditLog(actor_user_id=actor_user_id, action=action, provider=provider, meta=meta)
    db.add(row)
    db.commit()
    log.info("audit action=%s provider=%s actor=%s", action, provider, actor_user_id)
    return row
