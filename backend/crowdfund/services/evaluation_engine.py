"""Deterministic Evaluation Scoring Engine.

Turns one committee member's 17 criterion scores into a stored evaluation
record, and folds evaluation sets into the statistics shown on the
committee dashboard and the round decision summary.

Rules
-----
- NO DB reads or writes — callers pass snapshots and persist the result
- NO clock reads unless ``now`` is omitted
- ``total_score`` / ``average_score`` are always recomputed from ``scores``
- Averages round half-up to 2 decimals
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional, Tuple

from ..constants import (
    CRITERIA_COUNT,
    DECISION_APPROVE,
    DECISION_REJECT,
    DECISION_REVISE,
    EVALUATION_CRITERIA,
    EVALUATION_DECISIONS,
    ROUND_COMMITTEE_REVIEW,
)
from ..errors import InvalidRoundState, InvalidScore, MissingCriterion, NotFoundError, ValidationError
from ..schemas.evaluation_schema import (
    CommitteeEvaluationRecord,
    CommitteeMemberStats,
    RoundDecisionSummary,
)
from ..schemas.round_schema import RoundRecord
from ..timeutils import to_iso, utcnow

_TWO_PLACES = Decimal("0.01")


def round_score(value: float) -> float:
    """Round *value* half-up to 2 decimal places."""
    return float(Decimal(str(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def validate_scores(
    scores: Mapping[str, Any],
    score_range: Optional[Tuple[float, float]] = None,
) -> dict[str, float]:
    """Check that *scores* holds exactly the 17 criteria as finite numbers.

    Returns the scores as floats in canonical criterion order.  When
    *score_range* is given, every value must also lie inside it.
    """
    missing = [name for name in EVALUATION_CRITERIA if name not in scores]
    if missing:
        raise MissingCriterion(
            f"Missing score for {len(missing)} criteria: {', '.join(missing)}",
            missing=missing,
        )

    unknown = sorted(set(scores) - set(EVALUATION_CRITERIA))
    if unknown:
        raise InvalidScore(f"Unknown criteria: {', '.join(unknown)}", unknown=unknown)

    cleaned: dict[str, float] = {}
    for name in EVALUATION_CRITERIA:
        value = scores[name]
        # bool is an int subclass; a checkbox value is not a score
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidScore(f"Score for {name} must be a number", criterion=name)
        value = float(value)
        if not math.isfinite(value):
            raise InvalidScore(f"Score for {name} must be finite", criterion=name)
        if score_range is not None:
            lo, hi = score_range
            if not lo <= value <= hi:
                raise InvalidScore(
                    f"Score for {name} must be between {lo:g} and {hi:g}",
                    criterion=name,
                    value=value,
                )
        cleaned[name] = value
    return cleaned


def compute_score_totals(scores: Mapping[str, float]) -> Tuple[float, float]:
    """Return ``(total_score, average_score)`` for a validated score set."""
    total = sum(scores[name] for name in EVALUATION_CRITERIA)
    return total, round_score(total / CRITERIA_COUNT)


def submit_evaluation(
    round_record: Optional[RoundRecord],
    committee_member_id: str,
    scores: Mapping[str, Any],
    decision: str,
    comments: str = "",
    *,
    now: Optional[datetime] = None,
    evaluation_id: Optional[str] = None,
    require_review_status: bool = True,
    score_range: Optional[Tuple[float, float]] = None,
) -> CommitteeEvaluationRecord:
    """Build the completed evaluation record for one member and one round.

    Parameters
    ----------
    round_record : RoundRecord | None
        Snapshot of the evaluated round; ``None`` means it does not exist.
    require_review_status : bool
        When true the round must be in ``committee_review``.
    score_range : (lo, hi) | None
        Optional inclusive bounds for each criterion score.

    Raises
    ------
    NotFoundError, InvalidRoundState, MissingCriterion, InvalidScore,
    ValidationError
    """
    if round_record is None:
        raise NotFoundError("Round not found")

    if require_review_status and round_record.status != ROUND_COMMITTEE_REVIEW:
        raise InvalidRoundState(
            f"Round is '{round_record.status}', evaluations are only accepted "
            f"during '{ROUND_COMMITTEE_REVIEW}'",
            round_id=round_record.id,
            status=round_record.status,
        )

    if decision not in EVALUATION_DECISIONS:
        raise ValidationError(
            f"Decision must be one of: {', '.join(EVALUATION_DECISIONS)}",
            decision=decision,
        )

    cleaned = validate_scores(scores, score_range)
    total_score, average_score = compute_score_totals(cleaned)
    stamp = to_iso(now or utcnow())

    return CommitteeEvaluationRecord(
        id=evaluation_id or str(uuid.uuid4()),
        round_id=round_record.id,
        committee_id=committee_member_id,
        scores=cleaned,
        total_score=total_score,
        average_score=average_score,
        decision=decision,
        comments=comments,
        is_completed=True,
        review_cycle=round_record.review_cycle,
        submitted_at=stamp,
        created_at=stamp,
        updated_at=stamp,
    )


def aggregate_for_committee_member(
    member_id: str,
    evaluations: Iterable[CommitteeEvaluationRecord],
    rounds: Iterable[RoundRecord],
    assigned_round_ids: Optional[Iterable[str]] = None,
) -> CommitteeMemberStats:
    """Committee dashboard statistics for *member_id*.

    ``pending_evaluations`` counts every round in ``committee_review`` when
    *assigned_round_ids* is ``None``.  With an assignment set it counts only
    the member's assigned rounds in review that they have not evaluated
    in the current review cycle.
    """
    mine = [e for e in evaluations if e.committee_id == member_id]
    completed = [e for e in mine if e.is_completed]

    average = sum(e.average_score for e in mine) / len(mine) if mine else 0.0

    in_review = [r for r in rounds if r.status == ROUND_COMMITTEE_REVIEW]
    if assigned_round_ids is None:
        pending = len(in_review)
    else:
        assigned = set(assigned_round_ids)
        evaluated = {(e.round_id, e.review_cycle) for e in completed}
        pending = sum(
            1
            for r in in_review
            if r.id in assigned and (r.id, r.review_cycle) not in evaluated
        )

    return CommitteeMemberStats(
        total_evaluations=len(mine),
        completed_evaluations=len(completed),
        average_score=average,
        pending_evaluations=pending,
    )


def aggregate_for_round(
    round_id: str,
    evaluations: Iterable[CommitteeEvaluationRecord],
    quorum: int,
    review_cycle: Optional[int] = None,
) -> RoundDecisionSummary:
    """Decision counts and quorum status over a round's completed evaluations.

    With *review_cycle* only evaluations of that submission are counted.
    """
    completed = [
        e
        for e in evaluations
        if e.round_id == round_id
        and e.is_completed
        and (review_cycle is None or e.review_cycle == review_cycle)
    ]

    counts = {DECISION_APPROVE: 0, DECISION_REVISE: 0, DECISION_REJECT: 0}
    for evaluation in completed:
        counts[evaluation.decision] += 1

    average = (
        round_score(sum(e.average_score for e in completed) / len(completed))
        if completed
        else 0.0
    )

    return RoundDecisionSummary(
        round_id=round_id,
        review_cycle=review_cycle,
        approve_count=counts[DECISION_APPROVE],
        revise_count=counts[DECISION_REVISE],
        reject_count=counts[DECISION_REJECT],
        completed_evaluations=len(completed),
        average_score=average,
        quorum=quorum,
        quorum_reached=len(completed) >= quorum,
    )
