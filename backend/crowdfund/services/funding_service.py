"""Funding service — the stateless facade the routes talk to.

Resolves ids through a ``FundingRepository``, runs the pure lifecycle and
scoring functions, and persists what they return.  Every operation that
writes a round or checks its current state runs inside
``repository.round_transaction`` and re-reads the round there, so two
requests cannot both pass a check against the same stale snapshot or
save one back over the other's totals.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ..constants import (
    COMMITMENT_APPROVED,
    COMMITMENT_PAID,
    COMMITMENT_REJECTED,
    PENDING_SCOPE_ASSIGNED,
    ROUND_CANCELLED,
    ROUND_CLOSED,
    ROUND_COMMITTEE_REVIEW,
    ROUND_DRAFT,
    ROUND_LIVE,
    SCORE_MAX,
    SCORE_MIN,
)
from ..database import get_db
from ..errors import EvaluationAlreadySubmitted, InvalidTransition, NotFoundError, ValidationError
from ..schemas.commitment_schema import CommitmentRecord
from ..schemas.evaluation_schema import (
    CommitteeEvaluationRecord,
    CommitteeMemberStats,
    RoundDecisionSummary,
)
from ..schemas.round_schema import (
    BusinessPlanCreateRequest,
    BusinessPlanRecord,
    RoundCreateRequest,
    RoundRecord,
    RoundTotals,
    RoundView,
)
from ..timeutils import to_iso, utcnow
from . import evaluation_engine, platform_config, round_lifecycle
from .repository import FundingRepository, SqlFundingRepository
from .round_lifecycle import ApprovalPolicy

logger = logging.getLogger(__name__)


class FundingService:
    def __init__(
        self,
        repository: FundingRepository,
        *,
        policy: Optional[ApprovalPolicy] = None,
        quorum: Optional[int] = None,
        pending_scope: Optional[str] = None,
        enforce_round_state: Optional[bool] = None,
        enforce_score_range: Optional[bool] = None,
        enforce_single_evaluation: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.policy = policy or ApprovalPolicy(
            min_approvals=platform_config.APPROVAL_MIN_APPROVALS,
            require_quorum=platform_config.APPROVAL_REQUIRES_QUORUM,
        )
        self.quorum = platform_config.EVALUATION_QUORUM if quorum is None else quorum
        self.pending_scope = pending_scope or platform_config.PENDING_EVALUATION_SCOPE
        self.enforce_round_state = (
            platform_config.ENFORCE_EVALUATION_ROUND_STATE
            if enforce_round_state is None
            else enforce_round_state
        )
        self.enforce_score_range = (
            platform_config.ENFORCE_SCORE_RANGE
            if enforce_score_range is None
            else enforce_score_range
        )
        self.enforce_single_evaluation = (
            platform_config.ENFORCE_SINGLE_EVALUATION
            if enforce_single_evaluation is None
            else enforce_single_evaluation
        )
        self.clock = clock

    # ----------------------------------------------------------------- #
    #  Lookups                                                            #
    # ----------------------------------------------------------------- #

    def get_round(self, round_id: str) -> RoundRecord:
        record = self.repository.find_round(round_id)
        if record is None:
            raise NotFoundError("Round not found", round_id=round_id)
        return record

    def get_commitment(self, commitment_id: str) -> CommitmentRecord:
        record = self.repository.find_commitment(commitment_id)
        if record is None:
            raise NotFoundError("Commitment not found", commitment_id=commitment_id)
        return record

    def list_rounds(
        self, status: Optional[str] = None, startup_id: Optional[str] = None
    ) -> List[RoundRecord]:
        return self.repository.list_rounds(status=status, startup_id=startup_id)

    def with_startups(self, records: List[RoundRecord]) -> List[RoundView]:
        """Attach the raising company's summary to each round."""
        startups = self.repository.find_startups({r.startup_id for r in records})
        return [
            RoundView(**record.model_dump(), startup=startups.get(record.startup_id))
            for record in records
        ]

    # ----------------------------------------------------------------- #
    #  Round lifecycle                                                    #
    # ----------------------------------------------------------------- #

    def create_business_plan(
        self, startup_id: str, payload: BusinessPlanCreateRequest
    ) -> BusinessPlanRecord:
        record = BusinessPlanRecord(
            id=str(uuid.uuid4()),
            startup_id=startup_id,
            title=payload.title,
            description=payload.description,
        )
        return self.repository.save_business_plan(record)

    def _check_business_plan(self, startup_id: str, plan_id: Optional[str]) -> None:
        if plan_id is None:
            return
        plan = self.repository.find_business_plan(plan_id)
        if plan is None or plan.startup_id != startup_id:
            raise NotFoundError("Business plan not found", business_plan_id=plan_id)

    def create_round(self, startup_id: str, payload: RoundCreateRequest) -> RoundRecord:
        """Open a new round in ``draft`` for *startup_id*."""
        self._check_business_plan(startup_id, payload.business_plan_id)
        stamp = to_iso(self.clock())
        record = RoundRecord(
            id=str(uuid.uuid4()),
            startup_id=startup_id,
            title=payload.title,
            description=payload.description,
            target_amount=payload.target_amount,
            min_investment=payload.min_investment,
            max_investment=payload.max_investment,
            valuation_pre=payload.valuation_pre,
            valuation_post=payload.valuation_pre + payload.target_amount,
            platform_fee_percentage=payload.platform_fee_percentage,
            status=ROUND_DRAFT,
            start_date=payload.start_date,
            end_date=payload.end_date,
            business_plan_id=payload.business_plan_id,
            created_at=stamp,
            updated_at=stamp,
        )
        saved = self.repository.save_round(record)
        logger.info("[ROUND] Created %s for startup %s", saved.id, startup_id)
        return saved

    def attach_business_plan(self, round_id: str, startup_id: str, plan_id: str) -> RoundRecord:
        with self.repository.round_transaction(round_id):
            record = self._owned_round(round_id, startup_id)
            if record.status != ROUND_DRAFT:
                raise InvalidTransition(
                    "Business plans can only be changed while the round is a draft",
                    round_id=round_id,
                    status=record.status,
                )
            self._check_business_plan(startup_id, plan_id)
            return self.repository.save_round(
                record.model_copy(update={"business_plan_id": plan_id})
            )

    def _owned_round(self, round_id: str, startup_id: str) -> RoundRecord:
        record = self.get_round(round_id)
        if record.startup_id != startup_id:
            # Do not reveal other startups' rounds.
            raise NotFoundError("Round not found", round_id=round_id)
        return record

    def submit_round(self, round_id: str, startup_id: str) -> RoundRecord:
        """draft → committee_review, guarded by an existing business plan.

        Each submission opens a new review cycle; evaluations from earlier
        cycles no longer count towards approval or revision.
        """
        with self.repository.round_transaction(round_id):
            record = self._owned_round(round_id, startup_id)
            attached = (
                record.business_plan_id is not None
                and self.repository.find_business_plan(record.business_plan_id) is not None
            )
            moved = round_lifecycle.transition_round(
                record, ROUND_COMMITTEE_REVIEW, now=self.clock(), business_plan_attached=attached
            )
            return self.repository.save_round(moved)

    def approve_round(self, round_id: str) -> RoundRecord:
        """committee_review → live when the approval policy is satisfied."""
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            moved = round_lifecycle.transition_round(
                record,
                ROUND_LIVE,
                now=self.clock(),
                decision_summary=self._current_cycle_summary(record),
                policy=self.policy,
            )
            return self.repository.save_round(moved)

    def request_revision(self, round_id: str) -> RoundRecord:
        """committee_review → draft when a committee member asked for revisions."""
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            moved = round_lifecycle.transition_round(
                record, ROUND_DRAFT, now=self.clock(), decision_summary=self._current_cycle_summary(record)
            )
            return self.repository.save_round(moved)

    def cancel_round(self, round_id: str) -> RoundRecord:
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            moved = round_lifecycle.transition_round(record, ROUND_CANCELLED, now=self.clock())
            return self.repository.save_round(moved)

    def close_round(self, round_id: str) -> RoundRecord:
        """live → closed once the target is reached or the window is over."""
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            totals = round_lifecycle.recompute_round_totals(
                record, self.repository.list_commitments_by_round(round_id)
            )
            record = round_lifecycle.apply_round_totals(record, totals)
            moved = round_lifecycle.transition_round(record, ROUND_CLOSED, now=self.clock())
            return self.repository.save_round(moved)

    def recompute_totals(self, round_id: str) -> RoundTotals:
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            totals = round_lifecycle.recompute_round_totals(
                record, self.repository.list_commitments_by_round(round_id)
            )
            self.repository.save_round(round_lifecycle.apply_round_totals(record, totals))
        return totals

    def assign_committee_member(self, round_id: str, member_id: str) -> None:
        self.get_round(round_id)
        self.repository.assign_committee_member(round_id, member_id)
        logger.info("[ROUND] Assigned committee member %s to %s", member_id, round_id)

    # ----------------------------------------------------------------- #
    #  Commitments                                                        #
    # ----------------------------------------------------------------- #

    def accept_commitment(
        self, round_id: str, investor_id: str, amount: int, commitment_type: str = "soft"
    ) -> CommitmentRecord:
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            try:
                commitment = round_lifecycle.accept_commitment(
                    record, investor_id, amount, commitment_type, now=self.clock()
                )
            except ValidationError as exc:
                logger.warning("[COMMITMENT] Rejected on %s: %s", round_id, exc.code)
                raise
            saved = self.repository.save_commitment(commitment)
        logger.info(
            "[COMMITMENT] %s pledged %s on round %s (%s)",
            investor_id, amount, round_id, commitment_type,
        )
        return saved

    def review_commitment(self, commitment_id: str, approve: bool) -> CommitmentRecord:
        commitment = self.get_commitment(commitment_id)
        target = COMMITMENT_APPROVED if approve else COMMITMENT_REJECTED
        moved = round_lifecycle.transition_commitment(commitment, target, now=self.clock())
        return self.repository.save_commitment(moved)

    def confirm_payment(
        self, commitment_id: str, receipt_url: Optional[str] = None
    ) -> CommitmentRecord:
        """approved → paid, then re-derive the round totals from scratch."""
        commitment = self.get_commitment(commitment_id)
        with self.repository.round_transaction(commitment.round_id):
            commitment = self.get_commitment(commitment_id)
            moved = round_lifecycle.transition_commitment(
                commitment, COMMITMENT_PAID, now=self.clock(), receipt_url=receipt_url
            )
            saved = self.repository.save_commitment(moved)

            record = self.get_round(commitment.round_id)
            totals = round_lifecycle.recompute_round_totals(
                record, self.repository.list_commitments_by_round(record.id)
            )
            self.repository.save_round(round_lifecycle.apply_round_totals(record, totals))
        logger.info(
            "[COMMITMENT] %s paid; round %s now at %s from %s investors",
            commitment_id, commitment.round_id, totals.current_amount, totals.investor_count,
        )
        return saved

    def list_commitments_by_round(self, round_id: str) -> List[CommitmentRecord]:
        self.get_round(round_id)
        return self.repository.list_commitments_by_round(round_id)

    def list_commitments_by_investor(self, investor_id: str) -> List[CommitmentRecord]:
        return self.repository.list_commitments_by_investor(investor_id)

    # ----------------------------------------------------------------- #
    #  Evaluations                                                        #
    # ----------------------------------------------------------------- #

    def submit_evaluation(
        self,
        round_id: str,
        committee_member_id: str,
        scores: Mapping[str, Any],
        decision: str,
        comments: str = "",
    ) -> CommitteeEvaluationRecord:
        with self.repository.round_transaction(round_id):
            record = self.get_round(round_id)
            if self.enforce_single_evaluation:
                already = any(
                    e.committee_id == committee_member_id
                    and e.is_completed
                    and e.review_cycle == record.review_cycle
                    for e in self.repository.list_evaluations_by_round(round_id)
                )
                if already:
                    raise EvaluationAlreadySubmitted(
                        "This committee member has already evaluated this submission of the round",
                        round_id=round_id,
                        committee_id=committee_member_id,
                        review_cycle=record.review_cycle,
                    )
            evaluation = evaluation_engine.submit_evaluation(
                record,
                committee_member_id,
                scores,
                decision,
                comments,
                now=self.clock(),
                require_review_status=self.enforce_round_state,
                score_range=(SCORE_MIN, SCORE_MAX) if self.enforce_score_range else None,
            )
            saved = self.repository.save_evaluation(evaluation)
        logger.info(
            "[EVALUATION] %s scored round %s: total=%s avg=%s decision=%s",
            committee_member_id, round_id, saved.total_score, saved.average_score, saved.decision,
        )
        return saved

    def list_evaluations_by_round(self, round_id: str) -> List[CommitteeEvaluationRecord]:
        self.get_round(round_id)
        return self.repository.list_evaluations_by_round(round_id)

    def list_evaluations_by_committee_member(self, member_id: str) -> List[CommitteeEvaluationRecord]:
        return self.repository.list_evaluations_by_committee_member(member_id)

    def round_summary(self, round_id: str) -> RoundDecisionSummary:
        """Decision counts for the round's current review cycle."""
        return self._current_cycle_summary(self.get_round(round_id))

    def _current_cycle_summary(self, record: RoundRecord) -> RoundDecisionSummary:
        return evaluation_engine.aggregate_for_round(
            record.id,
            self.repository.list_evaluations_by_round(record.id),
            self.quorum,
            review_cycle=record.review_cycle,
        )

    def member_stats(self, member_id: str) -> CommitteeMemberStats:
        assigned = (
            self.repository.list_assigned_round_ids(member_id)
            if self.pending_scope == PENDING_SCOPE_ASSIGNED
            else None
        )
        return evaluation_engine.aggregate_for_committee_member(
            member_id,
            self.repository.list_evaluations_by_committee_member(member_id),
            self.repository.list_rounds(status=ROUND_COMMITTEE_REVIEW),
            assigned_round_ids=assigned,
        )


def get_funding_service(db: Session = Depends(get_db)) -> FundingService:
    """FastAPI dependency: a ``FundingService`` over the request's DB session."""
    return FundingService(SqlFundingRepository(db))
