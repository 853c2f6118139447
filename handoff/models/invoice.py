from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlmodel import Field

from handoff.models.base import TimestampedModel, UUIDModel


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "invoices"

    owner_user_id: UUID = Field(foreign_key="users.id", index=True)
    project_id: UUID | None = Field(default=None, foreign_key="projects.id", index=True)
    client_id: UUID | None = Field(default=None, foreign_key="clients.id", index=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", max_length=3)
    status: str = Field(default=InvoiceStatus.DRAFT.value, max_length=16)
    description: str | None = Field(default=None)
    due_date: date | None = Field(default=None)
