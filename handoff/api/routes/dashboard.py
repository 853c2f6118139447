from fastapi import APIRouter, Depends
from sqlmodel import Session

from handoff.api.deps import get_current_user, get_db
from handoff.models.user import User
from handoff.schemas.dashboard import DashboardMetrics
from handoff.services.dashboard import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/metrics", response_model=DashboardMetrics)
def read_dashboard_metrics(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> DashboardMetrics:
    return DashboardService(session).metrics(current_user.id)
