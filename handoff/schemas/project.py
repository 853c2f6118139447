from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from handoff.models.project import ProjectStatus
from handoff.schemas.common import IDModel
from handoff.utils.text import format_bytes


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=180)
    description: str | None = None
    client_id: UUID | None = None
    status: ProjectStatus = ProjectStatus.DRAFT
    due_date: date | None = None
    budget: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Project name is required")
        return cleaned


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=180)
    description: str | None = None
    client_id: UUID | None = None
    status: ProjectStatus | None = None
    due_date: date | None = None
    budget: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class ProjectRead(IDModel):
    owner_user_id: UUID
    client_id: UUID | None = None
    client_name: str | None = None
    name: str
    description: str | None = None
    status: str
    due_date: date | None = None
    budget: Decimal | None = None
    created_at: datetime


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    is_internal: bool = False

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Message content is required")
        return cleaned


class PortalMessageCreate(BaseModel):
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Message content is required")
        return cleaned


class MessageRead(IDModel):
    project_id: UUID
    sender_id: UUID | None = None
    content: str
    is_internal: bool = False
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def from_client(self) -> bool:
        return self.sender_id is None


class FileRead(IDModel):
    project_id: UUID
    uploaded_by: UUID
    name: str
    size_bytes: int | None = None
    mime_type: str | None = None
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_label(self) -> str:
        return format_bytes(self.size_bytes)


class DownloadUrl(BaseModel):
    file_id: UUID
    name: str
    url: str
    expires_in: int
