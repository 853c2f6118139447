from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from handoff.models.base import TimestampedModel, UUIDModel


class AccountType(str, Enum):
    FREELANCER = "freelancer"
    AGENCY = "agency"


class User(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "users"

    email: str = Field(index=True, unique=True)
    password_hash: str
    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class Profile(TimestampedModel, table=True):
    """Organisation profile of an owner account. Shares its id with the user."""

    __tablename__ = "profiles"

    id: UUID = Field(foreign_key="users.id", primary_key=True)
    full_name: str | None = Field(default=None, max_length=180)
    org_name: str | None = Field(default=None, max_length=180)
    org_slug: str | None = Field(default=None, max_length=120, unique=True, index=True)
    brand_color: str | None = Field(default=None, max_length=7)
    onboarded: bool = Field(default=False)
    account_type: str | None = Field(default=None, max_length=32)
    role: str | None = Field(default=None, max_length=120)
    plan: str = Field(default="free", max_length=32)
