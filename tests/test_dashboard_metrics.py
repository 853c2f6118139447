from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import Session

from handoff.models.invoice import Invoice, InvoiceStatus
from handoff.services.dashboard import DashboardService
from tests.conftest import create_client, create_owner, create_project


def _invoice(owner, project, amount: str, status: InvoiceStatus, created_at: datetime) -> Invoice:
    return Invoice(
        owner_user_id=owner.id,
        project_id=project.id,
        client_id=project.client_id,
        amount=Decimal(amount),
        status=status.value,
        created_at=created_at,
    )


def test_metrics_aggregate_only_the_callers_rows(db_session: Session) -> None:
    owner = create_owner(db_session)
    other = create_owner(db_session, email="other@example.com")
    client = create_client(db_session, owner)
    project = create_project(db_session, owner, client)
    other_project = create_project(db_session, other, create_client(db_session, other, name="Elsewhere"))

    db_session.add_all(
        [
            _invoice(owner, project, "400", InvoiceStatus.PAID, datetime(2026, 9, 10, tzinfo=timezone.utc)),
            _invoice(owner, project, "150", InvoiceStatus.PAID, datetime(2026, 3, 2, tzinfo=timezone.utc)),
            _invoice(owner, project, "200", InvoiceStatus.SENT, datetime(2026, 9, 12, tzinfo=timezone.utc)),
            _invoice(owner, project, "75", InvoiceStatus.OVERDUE, datetime(2026, 8, 1, tzinfo=timezone.utc)),
            _invoice(owner, project, "999", InvoiceStatus.DRAFT, datetime(2026, 9, 1, tzinfo=timezone.utc)),
            _invoice(other, other_project, "5000", InvoiceStatus.PAID, datetime(2026, 9, 10, tzinfo=timezone.utc)),
        ]
    )
    db_session.commit()

    metrics = DashboardService(db_session).metrics(owner.id, now=datetime(2026, 10, 19, tzinfo=timezone.utc))

    assert metrics.projects == 1
    assert metrics.clients == 1
    assert metrics.pending_invoices == 2
    assert metrics.revenue == 550
    assert [entry.month for entry in metrics.monthly_revenue] == [
        "2026-05",
        "2026-06",
        "2026-07",
        "2026-08",
        "2026-09",
        "2026-10",
    ]
    assert {entry.month: entry.amount for entry in metrics.monthly_revenue}["2026-09"] == 400
    assert [item.name for item in metrics.recent_projects] == ["Redesign"]
    assert metrics.recent_projects[0].client_name == "Acme"


def test_metrics_for_empty_account(db_session: Session) -> None:
    owner = create_owner(db_session)

    metrics = DashboardService(db_session).metrics(owner.id, now=datetime(2026, 1, 5, tzinfo=timezone.utc))

    assert metrics.projects == 0
    assert metrics.revenue == 0
    assert metrics.monthly_revenue[0].month == "2025-08"
    assert metrics.monthly_revenue[-1].month == "2026-01"
    assert metrics.recent_clients == []
