"""Dashboard route — statistics shaped by the caller's role."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..models.user import User
from ..services.auth_dependency import get_current_user
from ..services.dashboard_service import DashboardStats, build_dashboard_stats
from ..services.funding_service import FundingService, get_funding_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# The payload shape depends on the role, so no single response model applies.
@router.get("/stats", response_model=None, summary="Role-based dashboard statistics")
def dashboard_stats(
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> DashboardStats:
    startup_id = str(user.startup.id) if user.startup is not None else None
    return build_dashboard_stats(service, str(user.id), user.role, startup_id=startup_id)
