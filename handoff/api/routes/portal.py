from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, status

from handoff.api.deps import get_portal_gateway
from handoff.api.live_socket import serve_live_session
from handoff.db.session import open_session
from handoff.realtime import change_feed
from handoff.schemas.invoice import InvoiceRead, InvoiceSummary
from handoff.schemas.live import PortalOverview
from handoff.schemas.project import DownloadUrl, FileRead, MessageRead, PortalMessageCreate
from handoff.services.gateway import ScopedQueryGateway
from handoff.sessions.portal import PortalSessionController, load_portal_overview

router = APIRouter(prefix="/portal", tags=["portal"])


@router.get("/{token}", response_model=PortalOverview)
def read_portal(token: str, gateway: ScopedQueryGateway = Depends(get_portal_gateway)) -> PortalOverview:
    return load_portal_overview(gateway)


@router.get("/{token}/projects/{project_id}/messages", response_model=list[MessageRead])
def list_portal_messages(
    token: str,
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> list[MessageRead]:
    return gateway.list_messages(project_id)


@router.post(
    "/{token}/projects/{project_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_portal_message(
    token: str,
    project_id: UUID,
    payload: PortalMessageCreate,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> MessageRead:
    return gateway.post_message(project_id, payload.content)


@router.get("/{token}/projects/{project_id}/files", response_model=list[FileRead])
def list_portal_files(
    token: str,
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> list[FileRead]:
    return gateway.list_files(project_id)


@router.get("/{token}/projects/{project_id}/invoices", response_model=list[InvoiceRead])
def list_portal_invoices(
    token: str,
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> list[InvoiceRead]:
    return gateway.list_invoices(project_id)


@router.get("/{token}/projects/{project_id}/summary", response_model=InvoiceSummary)
def read_portal_summary(
    token: str,
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> InvoiceSummary:
    return gateway.invoice_summary(project_id)


@router.get("/{token}/files/{file_id}/download-url", response_model=DownloadUrl)
def create_portal_download_url(
    token: str,
    file_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_portal_gateway),
) -> DownloadUrl:
    return gateway.file_download_url(file_id)


@router.websocket("/{token}/live")
async def portal_live(websocket: WebSocket, token: str) -> None:
    await websocket.accept()
    controller = PortalSessionController(token, open_session, change_feed)
    await serve_live_session(websocket, controller)
