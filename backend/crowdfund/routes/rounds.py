"""Funding round routes: lifecycle, commitments per round, committee evaluations.

The routes are thin: ownership / role checks happen here, everything else
lives in ``FundingService``.  Domain errors propagate to the handler
registered in ``main.py``.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..constants import (
    ADMIN_ROLES,
    PUBLIC_ROUND_STATUSES,
    ROLE_ADMIN,
    ROLE_COMMITTEE,
    ROLE_STARTUP,
    ROUND_LIVE,
)
from ..models.user import User
from ..schemas.commitment_schema import CommitmentRecord
from ..schemas.evaluation_schema import (
    CommitteeEvaluationRecord,
    EvaluationSubmission,
    RoundDecisionSummary,
)
from ..schemas.round_schema import (
    AssignmentRequest,
    AttachBusinessPlanRequest,
    RoundCreateRequest,
    RoundRecord,
    RoundStatus,
    RoundTotals,
    RoundView,
)
from ..services.auth_dependency import get_current_user, require_roles
from ..services.funding_service import FundingService, get_funding_service

router = APIRouter(
    prefix="/rounds",
    tags=["Rounds"],
)


def startup_id_for(user: User) -> str:
    """Return the startup profile id of a startup user, or 403."""
    if user.startup is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No startup profile for this account",
        )
    return str(user.startup.id)


def _is_owner_or_reviewer(user: User, record: RoundRecord) -> bool:
    if user.role in ADMIN_ROLES or user.role == ROLE_COMMITTEE:
        return True
    return user.role == ROLE_STARTUP and user.startup is not None and str(user.startup.id) == record.startup_id


def _can_view_round(user: User, record: RoundRecord) -> bool:
    return record.status in PUBLIC_ROUND_STATUSES or _is_owner_or_reviewer(user, record)


def _ensure_can_view_ledger(user: User, record: RoundRecord) -> None:
    """Commitments and evaluations are visible to admins, committee and the owner."""
    if not _is_owner_or_reviewer(user, record):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )


# ===================================================================== #
#  Queries                                                                #
# ===================================================================== #

@router.get("", response_model=List[RoundView], summary="List rounds")
def list_rounds(
    status_filter: Optional[RoundStatus] = Query(default=None, alias="status"),
    mine: bool = Query(default=False, description="Startups only: restrict to own rounds"),
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> List[RoundView]:
    startup_id = startup_id_for(user) if mine else None
    records = service.list_rounds(status=status_filter, startup_id=startup_id)
    return service.with_startups([r for r in records if _can_view_round(user, r)])


@router.get("/live", response_model=List[RoundView], summary="Rounds open for investment")
def list_live_rounds(
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> List[RoundView]:
    return service.with_startups(service.list_rounds(status=ROUND_LIVE))


@router.get("/{round_id}", response_model=RoundView, summary="Get a round")
def get_round(
    round_id: str,
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> RoundView:
    record = service.get_round(round_id)
    if not _can_view_round(user, record):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This round is not open to the public",
        )
    return service.with_startups([record])[0]


# ===================================================================== #
#  Startup actions                                                        #
# ===================================================================== #

@router.post(
    "",
    response_model=RoundRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Open a new round (draft)",
)
def create_round(
    payload: RoundCreateRequest,
    user: User = Depends(require_roles(ROLE_STARTUP)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.create_round(startup_id_for(user), payload)


@router.put(
    "/{round_id}/business-plan",
    response_model=RoundRecord,
    summary="Attach a business plan to a draft round",
)
def attach_business_plan(
    round_id: str,
    payload: AttachBusinessPlanRequest,
    user: User = Depends(require_roles(ROLE_STARTUP)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.attach_business_plan(round_id, startup_id_for(user), payload.business_plan_id)


@router.post(
    "/{round_id}/submit",
    response_model=RoundRecord,
    summary="Submit a draft round for committee review",
)
def submit_round(
    round_id: str,
    user: User = Depends(require_roles(ROLE_STARTUP)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.submit_round(round_id, startup_id_for(user))


# ===================================================================== #
#  Admin actions                                                          #
# ===================================================================== #

@router.post("/{round_id}/approve", response_model=RoundRecord, summary="Approve a reviewed round")
def approve_round(
    round_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.approve_round(round_id)


@router.post("/{round_id}/revise", response_model=RoundRecord, summary="Send a round back for revision")
def request_revision(
    round_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.request_revision(round_id)


@router.post("/{round_id}/cancel", response_model=RoundRecord, summary="Cancel a round")
def cancel_round(
    round_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.cancel_round(round_id)


@router.post("/{round_id}/close", response_model=RoundRecord, summary="Close a live round")
def close_round(
    round_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> RoundRecord:
    return service.close_round(round_id)


@router.post(
    "/{round_id}/recompute",
    response_model=RoundTotals,
    summary="Re-derive raised amount and investor count from paid commitments",
)
def recompute_totals(
    round_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> RoundTotals:
    return service.recompute_totals(round_id)


@router.post(
    "/{round_id}/assignments",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Assign a committee member to evaluate a round",
)
def assign_committee_member(
    round_id: str,
    payload: AssignmentRequest,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> None:
    service.assign_committee_member(round_id, payload.committee_id)


# ===================================================================== #
#  Ledger views                                                           #
# ===================================================================== #

@router.get(
    "/{round_id}/commitments",
    response_model=List[CommitmentRecord],
    summary="Commitments made against a round",
)
def list_round_commitments(
    round_id: str,
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> List[CommitmentRecord]:
    _ensure_can_view_ledger(user, service.get_round(round_id))
    return service.list_commitments_by_round(round_id)


# ===================================================================== #
#  Committee evaluations                                                  #
# ===================================================================== #

@router.post(
    "/{round_id}/evaluations",
    response_model=CommitteeEvaluationRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a committee evaluation",
)
def submit_evaluation(
    round_id: str,
    payload: EvaluationSubmission,
    user: User = Depends(require_roles(ROLE_COMMITTEE)),
    service: FundingService = Depends(get_funding_service),
) -> CommitteeEvaluationRecord:
    return service.submit_evaluation(
        round_id,
        str(user.id),
        payload.scores.model_dump(),
        payload.decision,
        payload.comments,
    )


@router.get(
    "/{round_id}/evaluations",
    response_model=List[CommitteeEvaluationRecord],
    summary="Evaluations submitted for a round",
)
def list_round_evaluations(
    round_id: str,
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> List[CommitteeEvaluationRecord]:
    _ensure_can_view_ledger(user, service.get_round(round_id))
    return service.list_evaluations_by_round(round_id)


@router.get(
    "/{round_id}/evaluation-summary",
    response_model=RoundDecisionSummary,
    summary="Decision counts and quorum status for a round",
)
def evaluation_summary(
    round_id: str,
    user: User = Depends(get_current_user),
    service: FundingService = Depends(get_funding_service),
) -> RoundDecisionSummary:
    _ensure_can_view_ledger(user, service.get_round(round_id))
    return service.round_summary(round_id)
