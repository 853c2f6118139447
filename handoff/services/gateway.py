from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_
from sqlmodel import Session, func, select

from handoff.core.config import settings
from handoff.core.errors import NotFound, PermissionDenied, ValidationFailure, require_text
from handoff.core.logging_setup import logger
from handoff.models.client import Client
from handoff.models.invoice import Invoice, InvoiceStatus
from handoff.models.project import FileRecord, Message, Project
from handoff.schemas.client import ClientCreate, ClientRead
from handoff.schemas.invoice import InvoiceCreate, InvoiceRead, InvoiceSummary
from handoff.schemas.project import (
    DownloadUrl,
    FileRead,
    MessageRead,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
)
from handoff.services.scope import OwnerScope, PortalScope, Scope
from handoff.services.storage import StorageBackend, get_storage
from handoff.utils.dates import utcnow


class ScopedQueryGateway:
    """Every read and write the dashboard or the portal performs.

    The gateway is bound to one scope at construction. Rows outside that scope
    raise ``PermissionDenied``; rows that do not exist raise ``NotFound``.
    Portal scopes may read their client's projects and post messages, nothing
    else.
    """

    def __init__(self, session: Session, scope: Scope, storage: StorageBackend | None = None) -> None:
        self.session = session
        self.scope = scope
        self._storage = storage

    @property
    def storage(self) -> StorageBackend:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    # Scope checks -------------------------------------------------------
    def _require_owner(self) -> OwnerScope:
        if isinstance(self.scope, PortalScope):
            raise PermissionDenied()
        return self.scope

    def _project_in_scope(self, project: Project) -> bool:
        if project.owner_user_id != self.scope.owner_user_id:
            return False
        if isinstance(self.scope, PortalScope):
            return project.client_id == self.scope.client_id
        return True

    def _load_project(self, project_id: UUID | str) -> Project:
        project = self.session.get(Project, UUID(str(project_id)))
        if not project:
            raise NotFound("Project not found")
        if not self._project_in_scope(project):
            raise PermissionDenied()
        return project

    def _load_client(self, client_id: UUID | str) -> Client:
        client = self.session.get(Client, UUID(str(client_id)))
        if not client:
            raise NotFound("Client not found")
        if client.owner_user_id != self.scope.owner_user_id:
            raise PermissionDenied()
        if isinstance(self.scope, PortalScope) and client.id != self.scope.client_id:
            raise PermissionDenied()
        return client

    def _project_filter(self):
        clauses = [Project.owner_user_id == self.scope.owner_user_id]
        if isinstance(self.scope, PortalScope):
            clauses.append(Project.client_id == self.scope.client_id)
        return clauses

    # Projects -----------------------------------------------------------
    @staticmethod
    def _project_read(project: Project, client_name: str | None) -> ProjectRead:
        return ProjectRead(**project.model_dump(), client_name=client_name)

    def list_projects(self, limit: int | None = None) -> list[ProjectRead]:
        statement = (
            select(Project, Client.name)
            .outerjoin(Client, Client.id == Project.client_id)
            .where(*self._project_filter())
            .order_by(Project.created_at.desc())
        )
        if limit:
            statement = statement.limit(limit)
        return [self._project_read(project, name) for project, name in self.session.exec(statement).all()]

    def list_projects_for_client(self, client_id: UUID | None = None) -> list[ProjectRead]:
        """Projects of one client, newest first. Portal scopes always get their own client."""
        if isinstance(self.scope, PortalScope):
            return self.list_projects()
        if client_id is None:
            raise ValidationFailure("client_id is required")
        self._load_client(client_id)
        return [project for project in self.list_projects() if project.client_id == UUID(str(client_id))]

    def get_project(self, project_id: UUID | str) -> ProjectRead:
        project = self._load_project(project_id)
        client_name = None
        if project.client_id:
            client = self.session.get(Client, project.client_id)
            client_name = client.name if client else None
        return self._project_read(project, client_name)

    def create_project(self, payload: ProjectCreate) -> ProjectRead:
        scope = self._require_owner()
        name = require_text(payload.name, "Project name")
        if payload.client_id:
            self._load_client(payload.client_id)
        project = Project(
            owner_user_id=scope.owner_user_id,
            client_id=payload.client_id,
            name=name,
            description=payload.description or None,
            status=payload.status.value,
            due_date=payload.due_date,
            budget=payload.budget,
        )
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        logger.info("Project %s created by %s", project.id, scope.owner_user_id)
        return self.get_project(project.id)

    def update_project(self, project_id: UUID | str, payload: ProjectUpdate) -> ProjectRead:
        self._require_owner()
        project = self._load_project(project_id)
        update_data = payload.model_dump(exclude_unset=True)
        # name and status are not nullable
        for field in ("name", "status"):
            if field in update_data and update_data[field] is None:
                del update_data[field]
        if "name" in update_data:
            update_data["name"] = require_text(update_data["name"], "Project name")
        if update_data.get("client_id"):
            self._load_client(update_data["client_id"])
        if "status" in update_data:
            update_data["status"] = payload.status.value
        for field, value in update_data.items():
            setattr(project, field, value)
        project.updated_at = utcnow()
        self.session.add(project)
        self.session.commit()
        return self.get_project(project.id)

    def count_projects(self) -> int:
        statement = select(func.count(Project.id)).where(*self._project_filter())
        return int(self.session.exec(statement).one() or 0)

    # Clients ------------------------------------------------------------
    def list_clients(self, limit: int | None = None) -> list[ClientRead]:
        statement = select(Client).where(Client.owner_user_id == self.scope.owner_user_id)
        if isinstance(self.scope, PortalScope):
            statement = statement.where(Client.id == self.scope.client_id)
        statement = statement.order_by(Client.created_at.desc())
        if limit:
            statement = statement.limit(limit)
        return [ClientRead.model_validate(item) for item in self.session.exec(statement).all()]

    def get_client(self, client_id: UUID | str) -> ClientRead:
        return ClientRead.model_validate(self._load_client(client_id))

    def create_client(self, payload: ClientCreate) -> ClientRead:
        scope = self._require_owner()
        client = Client(
            owner_user_id=scope.owner_user_id,
            name=require_text(payload.name, "Client name"),
            email=payload.email or None,
            company=payload.company or None,
        )
        self.session.add(client)
        self.session.commit()
        self.session.refresh(client)
        return ClientRead.model_validate(client)

    def count_clients(self) -> int:
        self._require_owner()
        statement = select(func.count(Client.id)).where(Client.owner_user_id == self.scope.owner_user_id)
        return int(self.session.exec(statement).one() or 0)

    # Messages -----------------------------------------------------------
    def list_messages(self, project_id: UUID | str) -> list[MessageRead]:
        project = self._load_project(project_id)
        statement = select(Message).where(Message.project_id == project.id)
        if isinstance(self.scope, PortalScope):
            statement = statement.where(Message.is_internal.is_(False))
        statement = statement.order_by(Message.created_at.asc())
        return [MessageRead.model_validate(item) for item in self.session.exec(statement).all()]

    def post_message(
        self,
        project_id: UUID | str,
        content: str,
        sender_id: UUID | None = None,
        is_internal: bool = False,
    ) -> MessageRead:
        project = self._load_project(project_id)
        text = require_text(content, "Message content")
        if isinstance(self.scope, PortalScope):
            # Portal messages are always attributed to the client and always visible.
            if sender_id is not None or is_internal:
                raise PermissionDenied()
        else:
            sender_id = sender_id or self.scope.owner_user_id
            if sender_id != self.scope.owner_user_id:
                raise PermissionDenied()
        message = Message(
            project_id=project.id,
            sender_id=sender_id,
            content=text,
            is_internal=is_internal,
        )
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return MessageRead.model_validate(message)

    # Files --------------------------------------------------------------
    def list_files(self, project_id: UUID | str) -> list[FileRead]:
        project = self._load_project(project_id)
        statement = (
            select(FileRecord)
            .where(FileRecord.project_id == project.id)
            .order_by(FileRecord.created_at.desc())
        )
        return [FileRead.model_validate(item) for item in self.session.exec(statement).all()]

    def upload_file(
        self,
        project_id: UUID | str,
        *,
        filename: str,
        data: bytes,
        content_type: str | None = None,
    ) -> FileRead:
        scope = self._require_owner()
        project = self._load_project(project_id)
        name = Path(require_text(filename, "File name")).name
        if not data:
            raise ValidationFailure("File is empty")
        storage_path = f"{scope.owner_user_id}/{project.id}/{int(time.time() * 1000)}-{name}"
        stored_path = self.storage.upload(storage_path, data, content_type)
        record = FileRecord(
            project_id=project.id,
            uploaded_by=scope.owner_user_id,
            name=name,
            storage_path=stored_path,
            size_bytes=len(data),
            mime_type=content_type or "application/octet-stream",
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return FileRead.model_validate(record)

    def file_download_url(self, file_id: UUID | str) -> DownloadUrl:
        record = self.session.get(FileRecord, UUID(str(file_id)))
        if not record:
            raise NotFound("File not found")
        self._load_project(record.project_id)
        ttl = settings.signed_url_ttl_seconds
        url = self.storage.create_signed_url(record.storage_path, ttl)
        return DownloadUrl(file_id=record.id, name=record.name, url=url, expires_in=ttl)

    # Invoices -----------------------------------------------------------
    def _invoice_rows(self, project_id: UUID | None) -> Iterable[tuple[Invoice, str | None, str | None]]:
        statement = (
            select(Invoice, Project.name, Client.name)
            .outerjoin(Project, Project.id == Invoice.project_id)
            .outerjoin(Client, Client.id == Invoice.client_id)
            .where(Invoice.owner_user_id == self.scope.owner_user_id)
        )
        if project_id is not None:
            statement = statement.where(Invoice.project_id == project_id)
        elif isinstance(self.scope, PortalScope):
            statement = statement.where(
                or_(
                    and_(Invoice.project_id.is_(None), Invoice.client_id == self.scope.client_id),
                    Project.client_id == self.scope.client_id,
                )
            )
        statement = statement.order_by(Invoice.created_at.desc())
        return self.session.exec(statement).all()

    def list_invoices(self, project_id: UUID | str | None = None) -> list[InvoiceRead]:
        project_uuid = self._load_project(project_id).id if project_id is not None else None
        return [
            InvoiceRead(**invoice.model_dump(), project_name=project_name, client_name=client_name)
            for invoice, project_name, client_name in self._invoice_rows(project_uuid)
        ]

    def create_invoice(self, payload: InvoiceCreate) -> InvoiceRead:
        scope = self._require_owner()
        client_id = payload.client_id
        if payload.project_id:
            project = self._load_project(payload.project_id)
            if client_id and project.client_id and project.client_id != client_id:
                raise ValidationFailure("Invoice client does not match the project's client")
            client_id = client_id or project.client_id
        if client_id:
            self._load_client(client_id)
        invoice = Invoice(
            owner_user_id=scope.owner_user_id,
            project_id=payload.project_id,
            client_id=client_id,
            amount=payload.amount,
            currency=payload.currency,
            status=payload.status.value,
            description=payload.description or None,
            due_date=payload.due_date,
        )
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        return self._invoice_read(invoice)

    def update_invoice_status(self, invoice_id: UUID | str, status: InvoiceStatus) -> InvoiceRead:
        self._require_owner()
        invoice = self.session.get(Invoice, UUID(str(invoice_id)))
        if not invoice:
            raise NotFound("Invoice not found")
        if invoice.owner_user_id != self.scope.owner_user_id:
            raise PermissionDenied()
        invoice.status = status.value
        invoice.updated_at = utcnow()
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        return self._invoice_read(invoice)

    def _invoice_read(self, invoice: Invoice) -> InvoiceRead:
        project = self.session.get(Project, invoice.project_id) if invoice.project_id else None
        client = self.session.get(Client, invoice.client_id) if invoice.client_id else None
        return InvoiceRead(
            **invoice.model_dump(),
            project_name=project.name if project else None,
            client_name=client.name if client else None,
        )

    def invoice_summary(self, project_id: UUID | str | None = None) -> InvoiceSummary:
        """Totals derived from the current invoice rows. Cancelled invoices are left out."""
        invoices = [
            invoice for invoice in self.list_invoices(project_id) if invoice.status != InvoiceStatus.CANCELLED.value
        ]
        total = sum(float(invoice.amount) for invoice in invoices)
        paid = sum(float(invoice.amount) for invoice in invoices if invoice.status == InvoiceStatus.PAID.value)
        summary = InvoiceSummary(
            total_invoiced=total,
            paid=paid,
            pending=total - paid,
            invoice_count=len(invoices),
        )
        if project_id is not None:
            project = self._load_project(project_id)
            if project.budget:
                budget = float(project.budget)
                summary.budget = budget
                summary.budget_progress = round(total / budget * 100, 2)
        return summary
