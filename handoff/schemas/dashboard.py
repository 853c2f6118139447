from pydantic import BaseModel

from handoff.schemas.client import ClientRead
from handoff.schemas.project import ProjectRead


class MonthlyRevenue(BaseModel):
    month: str
    amount: float


class DashboardMetrics(BaseModel):
    projects: int
    clients: int
    pending_invoices: int
    revenue: float
    monthly_revenue: list[MonthlyRevenue]
    recent_projects: list[ProjectRead]
    recent_clients: list[ClientRead]
