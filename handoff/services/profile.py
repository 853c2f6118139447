from __future__ import annotations

import secrets
from uuid import UUID

from sqlmodel import Session, select

from handoff.core.errors import NotFound, ValidationFailure
from handoff.models.user import Profile
from handoff.schemas.profile import PortalBranding, ProfileUpdate
from handoff.utils.dates import utcnow
from handoff.utils.text import slugify

DEFAULT_BRAND_COLOR = "#6366f1"


class ProfileService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: UUID) -> Profile:
        profile = self.session.get(Profile, user_id)
        if not profile:
            raise NotFound("Profile not found")
        return profile

    def branding(self, owner_user_id: UUID) -> PortalBranding:
        profile = self.session.get(Profile, owner_user_id)
        if not profile:
            return PortalBranding(brand_color=DEFAULT_BRAND_COLOR)
        return PortalBranding(
            org_name=profile.org_name or profile.full_name,
            brand_color=profile.brand_color or DEFAULT_BRAND_COLOR,
        )

    def update(self, user_id: UUID, payload: ProfileUpdate) -> Profile:
        profile = self.get(user_id)
        update_data = payload.model_dump(exclude_unset=True)

        if update_data.get("org_slug"):
            if self._slug_taken(update_data["org_slug"], exclude_id=profile.id):
                raise ValidationFailure("Organization slug already in use")
        elif "org_name" in update_data and not profile.org_slug:
            update_data["org_slug"] = self.unique_slug(update_data["org_name"] or "", exclude_id=profile.id)

        if update_data.get("account_type") is not None:
            update_data["account_type"] = payload.account_type.value

        for field, value in update_data.items():
            setattr(profile, field, value)
        profile.updated_at = utcnow()
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return profile

    def unique_slug(self, base_name: str, exclude_id: UUID | None = None) -> str | None:
        slug = slugify(base_name)
        if not slug:
            return None
        candidate = slug
        index = 1
        while self._slug_taken(candidate, exclude_id=exclude_id):
            index += 1
            candidate = f"{slug}-{index}"
            if index > 50:
                candidate = f"{slug}-{secrets.token_hex(3)}"
                break
        return candidate

    def _slug_taken(self, slug: str, exclude_id: UUID | None = None) -> bool:
        statement = select(Profile).where(Profile.org_slug == slug)
        if exclude_id is not None:
            statement = statement.where(Profile.id != exclude_id)
        return self.session.exec(statement).first() is not None
