from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlmodel import Field

from handoff.models.base import TimestampedModel, UUIDModel


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    ON_HOLD = "on_hold"


class Project(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "projects"

    owner_user_id: UUID = Field(foreign_key="users.id", index=True)
    client_id: UUID | None = Field(default=None, foreign_key="clients.id", index=True)
    name: str = Field(max_length=180)
    description: str | None = Field(default=None)
    status: str = Field(default=ProjectStatus.DRAFT.value, max_length=16)
    due_date: date | None = Field(default=None)
    budget: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)


class Message(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "messages"

    project_id: UUID = Field(foreign_key="projects.id", index=True)
    # None marks a message written by the external client through the portal.
    sender_id: UUID | None = Field(default=None, foreign_key="users.id")
    content: str
    is_internal: bool = Field(default=False)


class FileRecord(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "files"

    project_id: UUID = Field(foreign_key="projects.id", index=True)
    uploaded_by: UUID = Field(foreign_key="users.id")
    name: str = Field(max_length=255)
    storage_path: str = Field(max_length=512)
    size_bytes: int | None = Field(default=None)
    mime_type: str | None = Field(default=None, max_length=128)
