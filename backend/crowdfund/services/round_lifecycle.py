"""Round Lifecycle State Machine.

Governs the status of a funding round and of the commitments made against
it.  Every function takes plain snapshots and returns a new record; the
input is never mutated and nothing is persisted here.

Round transitions
-----------------
    draft            -> committee_review   startup submits (business plan attached)
    committee_review -> live               admin approves (approval policy satisfied)
    committee_review -> draft              admin requests revision (a revise decision exists)
    live             -> closed             target reached or funding window over
    any but closed   -> cancelled          administrative cancellation

Commitment transitions
----------------------
    pending  -> approved | rejected        admin review
    approved -> paid                       payment confirmed
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..constants import (
    COMMITMENT_APPROVED,
    COMMITMENT_PAID,
    COMMITMENT_PENDING,
    COMMITMENT_REJECTED,
    COMMITMENT_TYPES,
    ROUND_CANCELLED,
    ROUND_CLOSED,
    ROUND_COMMITTEE_REVIEW,
    ROUND_DRAFT,
    ROUND_LIVE,
)
from ..errors import (
    AboveMaximum,
    BelowMinimum,
    InvalidCommitmentState,
    InvalidTransition,
    RoundNotLive,
    ValidationError,
)
from ..schemas.commitment_schema import CommitmentRecord
from ..schemas.evaluation_schema import RoundDecisionSummary
from ..schemas.round_schema import RoundRecord, RoundTotals
from ..timeutils import parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

# (from, to) -> trigger.  Cancellation is handled separately below.
ROUND_TRANSITIONS: dict[tuple[str, str], str] = {
    (ROUND_DRAFT, ROUND_COMMITTEE_REVIEW): "submit",
    (ROUND_COMMITTEE_REVIEW, ROUND_LIVE): "approve",
    (ROUND_COMMITTEE_REVIEW, ROUND_DRAFT): "revise",
    (ROUND_LIVE, ROUND_CLOSED): "close",
}

CANCELLABLE_STATUSES: frozenset[str] = frozenset(
    {ROUND_DRAFT, ROUND_COMMITTEE_REVIEW, ROUND_LIVE}
)

COMMITMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    COMMITMENT_PENDING: frozenset({COMMITMENT_APPROVED, COMMITMENT_REJECTED}),
    COMMITMENT_APPROVED: frozenset({COMMITMENT_PAID}),
    COMMITMENT_REJECTED: frozenset(),
    COMMITMENT_PAID: frozenset(),
}


@dataclass(frozen=True)
class ApprovalPolicy:
    """How many approvals a round needs before it may go live.

    Kept outside the state machine so the committee's rules can change
    without touching the transition table.
    """

    min_approvals: int = 1
    require_quorum: bool = False

    def is_satisfied(self, summary: RoundDecisionSummary) -> bool:
        if summary.approve_count < max(self.min_approvals, 1):
            return False
        if self.require_quorum and not summary.quorum_reached:
            return False
        return True


# ===================================================================== #
#  Round status                                                           #
# ===================================================================== #

def can_transition(current: str, target: str) -> bool:
    if target == ROUND_CANCELLED:
        return current in CANCELLABLE_STATUSES
    return (current, target) in ROUND_TRANSITIONS


def _funding_window_over(round_record: RoundRecord, now: datetime) -> bool:
    end = parse_iso(round_record.end_date)
    return end is not None and now > end


def transition_round(
    round_record: RoundRecord,
    target: str,
    *,
    now: Optional[datetime] = None,
    business_plan_attached: Optional[bool] = None,
    decision_summary: Optional[RoundDecisionSummary] = None,
    policy: Optional[ApprovalPolicy] = None,
) -> RoundRecord:
    """Return a copy of *round_record* moved to *target*.

    Raises ``InvalidTransition`` when the move is not in the table or its
    guard fails.  Guards:

    - submit:  a business plan is attached (defaults to ``business_plan_id`` being set)
               and opens a new review cycle
    - approve: *policy* is satisfied by *decision_summary*
    - revise:  *decision_summary* contains at least one ``revise`` decision
    - close:   ``current_amount >= target_amount`` or ``now > end_date``
    """
    now = now or utcnow()
    current = round_record.status

    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move round from '{current}' to '{target}'",
            round_id=round_record.id,
            status=current,
            target=target,
        )

    trigger = "cancel" if target == ROUND_CANCELLED else ROUND_TRANSITIONS[(current, target)]

    stale = (
        decision_summary is not None
        and decision_summary.review_cycle is not None
        and decision_summary.review_cycle != round_record.review_cycle
    )
    if trigger in ("approve", "revise") and stale:
        raise InvalidTransition(
            "Decision summary belongs to an earlier review cycle",
            round_id=round_record.id,
            review_cycle=round_record.review_cycle,
            summary_cycle=decision_summary.review_cycle,
        )

    if trigger == "submit":
        attached = (
            bool(round_record.business_plan_id)
            if business_plan_attached is None
            else business_plan_attached
        )
        if not attached:
            raise InvalidTransition(
                "A business plan must be attached before submitting for committee review",
                round_id=round_record.id,
            )

    elif trigger == "approve":
        policy = policy or ApprovalPolicy()
        if decision_summary is None or not policy.is_satisfied(decision_summary):
            raise InvalidTransition(
                "Round does not meet the approval policy",
                round_id=round_record.id,
                approve_count=decision_summary.approve_count if decision_summary else 0,
                min_approvals=policy.min_approvals,
                require_quorum=policy.require_quorum,
            )

    elif trigger == "revise":
        if decision_summary is None or decision_summary.revise_count < 1:
            raise InvalidTransition(
                "Revision requires at least one 'revise' decision",
                round_id=round_record.id,
            )

    elif trigger == "close":
        target_reached = round_record.current_amount >= round_record.target_amount
        if not (target_reached or _funding_window_over(round_record, now)):
            raise InvalidTransition(
                "Round can only close once the target is reached or the funding window has ended",
                round_id=round_record.id,
                current_amount=round_record.current_amount,
                target_amount=round_record.target_amount,
                end_date=round_record.end_date,
            )

    logger.info("[ROUND] %s: %s -> %s (%s)", round_record.id, current, target, trigger)
    update = {"status": target, "updated_at": to_iso(now)}
    if trigger == "submit":
        update["review_cycle"] = round_record.review_cycle + 1
    return round_record.model_copy(update=update)


# ===================================================================== #
#  Commitments                                                            #
# ===================================================================== #

def accept_commitment(
    round_record: RoundRecord,
    investor_id: str,
    amount: int,
    commitment_type: str = "soft",
    *,
    now: Optional[datetime] = None,
    commitment_id: Optional[str] = None,
) -> CommitmentRecord:
    """Validate a pledge against *round_record* and return it as ``pending``.

    The round must be live before the amount is even looked at, so a
    non-live round always fails with ``RoundNotLive``.  Round totals are
    left alone; they only move when a commitment is paid.
    """
    if round_record.status != ROUND_LIVE:
        raise RoundNotLive(
            "Commitments are only accepted while the round is live",
            round_id=round_record.id,
            status=round_record.status,
        )
    if amount < round_record.min_investment:
        raise BelowMinimum(
            f"Minimum investment amount is {round_record.min_investment}",
            amount=amount,
            min_investment=round_record.min_investment,
        )
    if amount > round_record.max_investment:
        raise AboveMaximum(
            f"Maximum investment amount is {round_record.max_investment}",
            amount=amount,
            max_investment=round_record.max_investment,
        )
    if commitment_type not in COMMITMENT_TYPES:
        raise ValidationError(
            f"Commitment type must be one of: {', '.join(COMMITMENT_TYPES)}",
            type=commitment_type,
        )

    stamp = to_iso(now or utcnow())
    return CommitmentRecord(
        id=commitment_id or str(uuid.uuid4()),
        round_id=round_record.id,
        investor_id=investor_id,
        amount=amount,
        type=commitment_type,
        status=COMMITMENT_PENDING,
        created_at=stamp,
        updated_at=stamp,
    )


def transition_commitment(
    commitment: CommitmentRecord,
    target: str,
    *,
    now: Optional[datetime] = None,
    receipt_url: Optional[str] = None,
) -> CommitmentRecord:
    """Return a copy of *commitment* moved to *target*, or raise ``InvalidCommitmentState``."""
    allowed = COMMITMENT_TRANSITIONS.get(commitment.status, frozenset())
    if target not in allowed:
        raise InvalidCommitmentState(
            f"Cannot move commitment from '{commitment.status}' to '{target}'",
            commitment_id=commitment.id,
            status=commitment.status,
            target=target,
        )

    update: dict = {"status": target, "updated_at": to_iso(now or utcnow())}
    if target == COMMITMENT_PAID:
        update["receipt_uploaded"] = bool(receipt_url) or commitment.receipt_uploaded
        if receipt_url:
            update["receipt_url"] = receipt_url
    return commitment.model_copy(update=update)


def recompute_round_totals(
    round_record: RoundRecord,
    commitments: Iterable[CommitmentRecord],
) -> RoundTotals:
    """Derive ``current_amount`` and ``investor_count`` from paid commitments.

    Always computed from the full commitment set; never adjusted in place.
    """
    paid = [
        c for c in commitments
        if c.round_id == round_record.id and c.status == COMMITMENT_PAID
    ]
    return RoundTotals(
        current_amount=sum(c.amount for c in paid),
        investor_count=len({c.investor_id for c in paid}),
    )


def apply_round_totals(round_record: RoundRecord, totals: RoundTotals) -> RoundRecord:
    return round_record.model_copy(
        update={
            "current_amount": totals.current_amount,
            "investor_count": totals.investor_count,
        }
    )
