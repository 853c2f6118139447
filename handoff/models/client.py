# Client model
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from handoff.models.base import TimestampedModel, UUIDModel


class Client(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "clients"

    owner_user_id: UUID = Field(foreign_key="users.id", index=True)
    name: str = Field(max_length=180)
    email: str | None = Field(default=None, max_length=255)
    company: str | None = Field(default=None, max_length=180)


class PortalToken(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "portal_tokens"

    owner_user_id: UUID = Field(foreign_key="users.id", index=True)
    client_id: UUID = Field(foreign_key="clients.id", index=True)
    token: str = Field(max_length=64, unique=True, index=True)
    expires_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
