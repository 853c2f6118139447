from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from handoff.models.invoice import InvoiceStatus
from handoff.schemas.common import IDModel


class InvoiceCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    description: str | None = None
    due_date: date | None = None
    project_id: UUID | None = None
    client_id: UUID | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceRead(IDModel):
    owner_user_id: UUID
    project_id: UUID | None = None
    project_name: str | None = None
    client_id: UUID | None = None
    client_name: str | None = None
    amount: Decimal
    currency: str
    status: str
    description: str | None = None
    due_date: date | None = None
    created_at: datetime


class InvoiceSummary(BaseModel):
    total_invoiced: float = 0.0
    paid: float = 0.0
    pending: float = 0.0
    invoice_count: int = 0
    budget: float | None = None
    budget_progress: float | None = None
