from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status

from handoff.api.deps import get_owner_gateway
from handoff.schemas.invoice import InvoiceRead, InvoiceSummary
from handoff.schemas.project import (
    FileRead,
    MessageCreate,
    MessageRead,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
)
from handoff.services.gateway import ScopedQueryGateway

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[ProjectRead])
def list_projects(
    limit: int | None = None,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> list[ProjectRead]:
    return gateway.list_projects(limit=limit)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> ProjectRead:
    return gateway.create_project(payload)


@router.get("/{project_id}", response_model=ProjectRead)
def read_project(project_id: UUID, gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> ProjectRead:
    return gateway.get_project(project_id)


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: UUID,
    payload: ProjectUpdate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> ProjectRead:
    return gateway.update_project(project_id, payload)


@router.get("/{project_id}/messages", response_model=list[MessageRead])
def list_messages(project_id: UUID, gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> list[MessageRead]:
    return gateway.list_messages(project_id)


@router.post("/{project_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def post_message(
    project_id: UUID,
    payload: MessageCreate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> MessageRead:
    return gateway.post_message(project_id, payload.content, is_internal=payload.is_internal)


@router.get("/{project_id}/files", response_model=list[FileRead])
def list_files(project_id: UUID, gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> list[FileRead]:
    return gateway.list_files(project_id)


@router.post("/{project_id}/files", response_model=FileRead, status_code=status.HTTP_201_CREATED)
def upload_file(
    project_id: UUID,
    file: UploadFile = File(...),
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> FileRead:
    data = file.file.read()
    return gateway.upload_file(
        project_id,
        filename=file.filename or "",
        data=data,
        content_type=file.content_type,
    )


@router.get("/{project_id}/invoices", response_model=list[InvoiceRead])
def list_project_invoices(
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> list[InvoiceRead]:
    return gateway.list_invoices(project_id)


@router.get("/{project_id}/summary", response_model=InvoiceSummary)
def read_project_summary(
    project_id: UUID,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> InvoiceSummary:
    return gateway.invoice_summary(project_id)
