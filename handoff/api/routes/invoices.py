from uuid import UUID

from fastapi import APIRouter, Depends, status

from handoff.api.deps import get_owner_gateway
from handoff.schemas.invoice import InvoiceCreate, InvoiceRead, InvoiceStatusUpdate, InvoiceSummary
from handoff.services.gateway import ScopedQueryGateway

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    project_id: UUID | None = None,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> list[InvoiceRead]:
    return gateway.list_invoices(project_id)


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> InvoiceRead:
    return gateway.create_invoice(payload)


# Declared before "/{invoice_id}" routes so "summary" is not read as an id.
@router.get("/summary", response_model=InvoiceSummary)
def read_invoice_summary(gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> InvoiceSummary:
    return gateway.invoice_summary()


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice_status(
    invoice_id: UUID,
    payload: InvoiceStatusUpdate,
    gateway: ScopedQueryGateway = Depends(get_owner_gateway),
) -> InvoiceRead:
    return gateway.update_invoice_status(invoice_id, payload.status)
