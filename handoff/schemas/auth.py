from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from handoff.models.user import AccountType


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    onboarded: bool = False


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str | None = None
    org_name: str | None = None
    account_type: AccountType | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class UserRead(BaseModel):
    id: UUID
    email: EmailStr
    is_active: bool
