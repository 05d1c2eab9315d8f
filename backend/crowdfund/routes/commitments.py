"""Investment commitment routes.

Investors pledge against live rounds; admins review pledges and confirm
payments.  Confirming a payment is the only path that changes a round's
raised amount.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ..constants import ROLE_ADMIN, ROLE_INVESTOR
from ..models.user import User
from ..schemas.commitment_schema import (
    CommitmentCreateRequest,
    CommitmentRecord,
    PaymentConfirmationRequest,
)
from ..services.auth_dependency import require_roles
from ..services.funding_service import FundingService, get_funding_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commitments", tags=["Commitments"])


@router.post(
    "",
    response_model=CommitmentRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Pledge an amount against a live round",
)
def create_commitment(
    payload: CommitmentCreateRequest,
    user: User = Depends(require_roles(ROLE_INVESTOR)),
    service: FundingService = Depends(get_funding_service),
) -> CommitmentRecord:
    return service.accept_commitment(payload.round_id, str(user.id), payload.amount, payload.type)


@router.get("/mine", response_model=List[CommitmentRecord], summary="My commitments")
def my_commitments(
    user: User = Depends(require_roles(ROLE_INVESTOR)),
    service: FundingService = Depends(get_funding_service),
) -> List[CommitmentRecord]:
    return service.list_commitments_by_investor(str(user.id))


@router.post("/{commitment_id}/approve", response_model=CommitmentRecord, summary="Approve a pledge")
def approve_commitment(
    commitment_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> CommitmentRecord:
    return service.review_commitment(commitment_id, approve=True)


@router.post("/{commitment_id}/reject", response_model=CommitmentRecord, summary="Reject a pledge")
def reject_commitment(
    commitment_id: str,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> CommitmentRecord:
    return service.review_commitment(commitment_id, approve=False)


@router.post(
    "/{commitment_id}/confirm-payment",
    response_model=CommitmentRecord,
    summary="Mark an approved pledge as paid and refresh the round totals",
)
def confirm_payment(
    commitment_id: str,
    payload: PaymentConfirmationRequest,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    service: FundingService = Depends(get_funding_service),
) -> CommitmentRecord:
    logger.info("[COMMITMENT] Payment confirmation for %s by %s", commitment_id, user.email)
    return service.confirm_payment(commitment_id, payload.receipt_url)
