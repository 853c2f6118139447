from typing import Annotated, Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from handoff.core.config import settings
from handoff.db.session import get_session
from handoff.models.user import User
from handoff.services.auth import AuthService
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.portal_tokens import PortalTokenService
from handoff.services.scope import OwnerScope, PortalScope

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_str}/auth/login")


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[Session, Depends(get_db)],
) -> User:
    try:
        return AuthService(session).user_from_access_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_owner_gateway(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[Session, Depends(get_db)],
) -> ScopedQueryGateway:
    return ScopedQueryGateway(session, OwnerScope(owner_user_id=current_user.id))


def get_portal_scope(token: str, session: Annotated[Session, Depends(get_db)]) -> PortalScope:
    # InvalidToken propagates to the HandoffError handler (404).
    return PortalTokenService(session).resolve(token)


def get_portal_gateway(
    scope: Annotated[PortalScope, Depends(get_portal_scope)],
    session: Annotated[Session, Depends(get_db)],
) -> ScopedQueryGateway:
    return ScopedQueryGateway(session, scope)

