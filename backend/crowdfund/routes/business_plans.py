"""Business plan routes — a startup registers the plan a round is reviewed against."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..constants import ROLE_STARTUP
from ..models.user import User
from ..schemas.round_schema import BusinessPlanCreateRequest, BusinessPlanRecord
from ..services.auth_dependency import require_roles
from ..services.funding_service import FundingService, get_funding_service
from .rounds import startup_id_for

router = APIRouter(prefix="/business-plans", tags=["Business Plans"])


@router.post(
    "",
    response_model=BusinessPlanRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a business plan",
)
def create_business_plan(
    payload: BusinessPlanCreateRequest,
    user: User = Depends(require_roles(ROLE_STARTUP)),
    service: FundingService = Depends(get_funding_service),
) -> BusinessPlanRecord:
    return service.create_business_plan(startup_id_for(user), payload)
