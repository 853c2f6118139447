from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import Session, select

from handoff.models.invoice import Invoice, InvoiceStatus
from handoff.schemas.dashboard import DashboardMetrics, MonthlyRevenue
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.scope import OwnerScope
from handoff.utils.dates import utcnow

RECENT_LIMIT = 6
REVENUE_MONTHS = 6
PENDING_STATUSES = {InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value}


def _month_keys(now: datetime, count: int) -> list[str]:
    keys: list[str] = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def metrics(self, owner_user_id: UUID, now: datetime | None = None) -> DashboardMetrics:
        gateway = ScopedQueryGateway(self.session, OwnerScope(owner_user_id))
        invoices = self.session.exec(select(Invoice).where(Invoice.owner_user_id == owner_user_id)).all()

        pending = sum(1 for invoice in invoices if invoice.status in PENDING_STATUSES)
        paid = [invoice for invoice in invoices if invoice.status == InvoiceStatus.PAID.value]
        revenue = sum(float(invoice.amount) for invoice in paid)

        by_month = {key: 0.0 for key in _month_keys(now or utcnow(), REVENUE_MONTHS)}
        for invoice in paid:
            key = invoice.created_at.strftime("%Y-%m")
            if key in by_month:
                by_month[key] += float(invoice.amount)

        return DashboardMetrics(
            projects=gateway.count_projects(),
            clients=gateway.count_clients(),
            pending_invoices=pending,
            revenue=revenue,
            monthly_revenue=[MonthlyRevenue(month=key, amount=amount) for key, amount in by_month.items()],
            recent_projects=gateway.list_projects(limit=RECENT_LIMIT),
            recent_clients=gateway.list_clients(limit=RECENT_LIMIT),
        )
