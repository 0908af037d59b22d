from datetime import datetime

from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    full_name: str = ""
    created_at: datetime | None = Field(default_factory=utcnow)
    last_login_at: datetime | None = None


class UserRole(SQLModel, table=True):
    """Role grants; the admin panels require role = super_admin."""

    __tablename__ = "user_roles"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    role: str = Field(max_length=32)  # super_admin | admin | user
    created_at: datetime = Field(default_factory=utcnow)


class UserPackage(SQLModel, table=True):
    """Package activated for a user after a paid subscription order."""

    __tablename__ = "user_packages"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    package_id: str = Field(index=True)
    order_id: str | None = Field(default=None, index=True)
    duration_months: int = 12
    status: str = "active"  # active | expired
    started_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None
