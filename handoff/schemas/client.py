from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from handoff.schemas.common import IDModel


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=180)
    email: EmailStr | None = None
    company: str | None = Field(default=None, max_length=180)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Client name is required")
        return cleaned


class ClientRead(IDModel):
    name: str
    email: str | None = None
    company: str | None = None
    created_at: datetime


class PortalClient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    company: str | None = None


class PortalTokenRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    client_id: UUID
    token: str
    portal_url: str
    created_at: datetime
    expires_at: datetime | None = None
