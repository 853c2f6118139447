from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from handoff.models.user import AccountType
from handoff.utils.text import slugify


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str | None = None
    org_name: str | None = None
    org_slug: str | None = None
    brand_color: str | None = None
    onboarded: bool = False
    account_type: str | None = None
    role: str | None = None
    plan: str = "free"


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, max_length=180)
    org_name: str | None = Field(default=None, max_length=180)
    org_slug: str | None = Field(default=None, max_length=120)
    brand_color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    account_type: AccountType | None = None
    role: str | None = Field(default=None, max_length=120)
    onboarded: bool | None = None

    @field_validator("org_slug")
    @classmethod
    def normalize_slug(cls, value: str | None) -> str | None:
        if value is None:
            return None
        slug = slugify(value)
        if not slug:
            raise ValueError("org_slug must contain letters or digits")
        return slug


class PortalBranding(BaseModel):
    org_name: str | None = None
    brand_color: str | None = None
