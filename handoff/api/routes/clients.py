from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from handoff.api.deps import get_current_user, get_db, get_owner_gateway
from handoff.models.user import User
from handoff.schemas.client import ClientCreate, ClientRead, PortalTokenRead
from handoff.schemas.project import ProjectRead
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.portal_tokens import PortalTokenService, build_portal_url

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> ClientRead:
    return gateway.create_client(payload)


@router.get("", response_model=list[ClientRead])
def list_clients(gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> list[ClientRead]:
    return gateway.list_clients()


@router.get("/{client_id}", response_model=ClientRead)
def read_client(client_id: UUID, gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> ClientRead:
    return gateway.get_client(client_id)


@router.get("/{client_id}/projects", response_model=list[ProjectRead])
def list_client_projects(
    client_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> list[ProjectRead]:
    return gateway.list_projects_for_client(client_id)


@router.post("/{client_id}/portal-token", response_model=PortalTokenRead)
def issue_portal_token(
    client_id: UUID,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> PortalTokenRead:
    portal_token = PortalTokenService(session).issue(current_user.id, client_id)
    return PortalTokenRead(
        client_id=portal_token.client_id,
        token=portal_token.token,
        portal_url=build_portal_url(portal_token.token),
        created_at=portal_token.created_at,
        expires_at=portal_token.expires_at,
    )
