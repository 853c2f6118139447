from fastapi import APIRouter, Depends
from sqlmodel import Session

from handoff.api.deps import get_current_user, get_db
from handoff.models.user import User
from handoff.schemas.profile import ProfileRead, ProfileUpdate
from handoff.services.profile import ProfileService

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileRead)
def read_profile(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(ProfileService(session).get(current_user.id))


@router.patch("", response_model=ProfileRead)
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ProfileRead:
    profile = ProfileService(session).update(current_user.id, payload)
    return ProfileRead.model_validate(profile)
