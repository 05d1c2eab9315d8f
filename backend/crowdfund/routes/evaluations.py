"""Committee member's own evaluation history."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..constants import ROLE_COMMITTEE
from ..models.user import User
from ..schemas.evaluation_schema import CommitteeEvaluationRecord
from ..services.auth_dependency import require_roles
from ..services.funding_service import FundingService, get_funding_service

router = APIRouter(prefix="/evaluations", tags=["Evaluations"])


@router.get("/mine", response_model=List[CommitteeEvaluationRecord], summary="My evaluations")
def my_evaluations(
    user: User = Depends(require_roles(ROLE_COMMITTEE)),
    service: FundingService = Depends(get_funding_service),
) -> List[CommitteeEvaluationRecord]:
    return service.list_evaluations_by_committee_member(str(user.id))
