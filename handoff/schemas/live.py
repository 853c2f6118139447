from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from handoff.schemas.client import PortalClient
from handoff.schemas.dashboard import DashboardMetrics
from handoff.schemas.invoice import InvoiceRead, InvoiceSummary
from handoff.schemas.profile import PortalBranding, ProfileRead
from handoff.schemas.project import FileRead, MessageRead, ProjectRead


class ProjectActivity(BaseModel):
    project: ProjectRead
    messages: list[MessageRead] = Field(default_factory=list)
    files: list[FileRead] = Field(default_factory=list)
    invoices: list[InvoiceRead] = Field(default_factory=list)
    summary: InvoiceSummary = Field(default_factory=InvoiceSummary)


class PortalOverview(BaseModel):
    branding: PortalBranding
    client: PortalClient
    projects: list[ProjectRead]


class PortalView(BaseModel):
    state: str
    error: str | None = None
    branding: PortalBranding | None = None
    client: PortalClient | None = None
    projects: list[ProjectRead] = Field(default_factory=list)
    active_project_id: UUID | None = None
    activity: ProjectActivity | None = None


class DashboardView(BaseModel):
    state: str
    error: str | None = None
    profile: ProfileRead | None = None
    metrics: DashboardMetrics | None = None
    active_project_id: UUID | None = None
    activity: ProjectActivity | None = None
