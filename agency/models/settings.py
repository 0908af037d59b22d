"""Key-value website settings and integration secrets."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from agency.core.clock import utcnow


class WebsiteSetting(SQLModel, table=True):
    __tablename__ = "website_settings"
    key: str = Field(primary_key=True, max_length=128)
    value: Any = Field(default=None, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utcnow)


class IntegrationSecret(SQLModel, table=True):
    """
    Provider credentials. iv == "plain" marks a value stored as plaintext in ciphertext;
    other rows are not readable by this application.
    """

    __tablename__ = "integration_secrets"
    __table_args__ = (UniqueConstraint("provider", "name", name="uq_integration_secret_provider_name"),)

    id: int | None = Field(default=None, primary_key=True)
    provider: str = Field(index=True, max_length=32)  # midtrans | paypal | xendit
    name: str = Field(max_length=64)  # server_key_sandbox, client_secret_production, api_key ...
    ciphertext: str
    iv: str = "plain"
    updated_at: datetime = Field(default_factory=utcnow)
