from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from sqlmodel import Session, select

from handoff.core.config import settings
from handoff.core.errors import InvalidToken, NotFound, PermissionDenied
from handoff.core.logging_setup import logger
from handoff.models.client import Client, PortalToken
from handoff.services.scope import PortalScope
from handoff.utils.dates import as_utc, utcnow
from handoff.utils.security import generate_portal_token


def build_portal_url(token: str) -> str:
    base = settings.resolved_public_app_url() or "http://localhost:3000"
    return f"{base}/portal/{token}"


class PortalTokenService:
    """Issues portal tokens to owners and resolves them for portal sessions."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def resolve(self, token: str) -> PortalScope:
        if not token:
            raise InvalidToken()
        statement = select(PortalToken).where(PortalToken.token == token)
        portal_token = self.session.exec(statement).first()
        if not portal_token:
            logger.info("Portal token rejected: unknown")
            raise InvalidToken()
        if portal_token.expires_at and as_utc(portal_token.expires_at) <= utcnow():
            logger.info("Portal token rejected: expired (client=%s)", portal_token.client_id)
            raise InvalidToken()
        return PortalScope(owner_user_id=portal_token.owner_user_id, client_id=portal_token.client_id)

    def get_active_token(self, owner_user_id: UUID, client_id: UUID) -> PortalToken | None:
        statement = (
            select(PortalToken)
            .where(PortalToken.owner_user_id == owner_user_id)
            .where(PortalToken.client_id == client_id)
            .order_by(PortalToken.created_at.desc())
        )
        now = utcnow()
        for candidate in self.session.exec(statement).all():
            if candidate.expires_at is None or as_utc(candidate.expires_at) > now:
                return candidate
        return None

    def issue(self, owner_user_id: UUID, client_id: UUID) -> PortalToken:
        client = self.session.get(Client, client_id)
        if not client:
            raise NotFound("Client not found")
        if client.owner_user_id != owner_user_id:
            raise PermissionDenied()

        existing = self.get_active_token(owner_user_id, client_id)
        if existing:
            return existing

        expires_at = None
        if settings.portal_token_ttl_days:
            expires_at = utcnow() + timedelta(days=settings.portal_token_ttl_days)
        portal_token = PortalToken(
            owner_user_id=owner_user_id,
            client_id=client_id,
            token=generate_portal_token(),
            expires_at=expires_at,
        )
        self.session.add(portal_token)
        self.session.commit()
        self.session.refresh(portal_token)
        logger.info("Portal token issued for client %s", client_id)
        return portal_token
