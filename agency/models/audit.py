from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    id: int | None = Field(default=None, primary_key=True)
    actor_user_id: int | None = Field(default=None, index=True)
    action: str = Field(index=True)  # set_setting | clear_setting | reveal_secret | login ...
    provider: str | None = Field(default=None, index=True)  # midtrans | paypal | xendit | seo ...
    # "metadata" is reserved on SQLModel classes, the column keeps the name
    meta: dict | None = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow)
