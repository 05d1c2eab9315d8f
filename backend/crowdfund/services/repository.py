"""Funding repository — the persistence seam behind the domain services.

``FundingRepository`` lists the queries the round lifecycle and evaluation
services need.  Two backends:

- ``SqlFundingRepository``      — SQLAlchemy session (production)
- ``InMemoryFundingRepository`` — dict-backed fixtures (tests, demos)

Both hand out and accept the plain pydantic records from ``schemas``;
ORM objects never leave this module.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Set

from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.commitment import Commitment
from ..models.evaluation import CommitteeAssignment, CommitteeEvaluation
from ..models.round import Round
from ..models.startup import BusinessPlan, Startup
from ..models.user import User
from ..schemas.commitment_schema import CommitmentRecord
from ..schemas.evaluation_schema import CommitteeEvaluationRecord
from ..schemas.round_schema import BusinessPlanRecord, RoundRecord
from ..schemas.startup_schema import StartupSummary
from ..timeutils import parse_iso, to_iso

logger = logging.getLogger(__name__)


class FundingRepository(ABC):
    """Query/persistence interface consumed by ``FundingService``."""

    # -- rounds --------------------------------------------------------
    @abstractmethod
    def find_round(self, round_id: str) -> Optional[RoundRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_rounds(
        self, status: Optional[str] = None, startup_id: Optional[str] = None
    ) -> List[RoundRecord]:
        raise NotImplementedError

    @abstractmethod
    def save_round(self, record: RoundRecord) -> RoundRecord:
        raise NotImplementedError

    # -- business plans ------------------------------------------------
    @abstractmethod
    def find_business_plan(self, plan_id: str) -> Optional[BusinessPlanRecord]:
        raise NotImplementedError

    @abstractmethod
    def save_business_plan(self, record: BusinessPlanRecord) -> BusinessPlanRecord:
        raise NotImplementedError

    # -- commitments ---------------------------------------------------
    @abstractmethod
    def find_commitment(self, commitment_id: str) -> Optional[CommitmentRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_commitments(self) -> List[CommitmentRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_commitments_by_round(self, round_id: str) -> List[CommitmentRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_commitments_by_investor(self, investor_id: str) -> List[CommitmentRecord]:
        raise NotImplementedError

    @abstractmethod
    def save_commitment(self, record: CommitmentRecord) -> CommitmentRecord:
        raise NotImplementedError

    # -- evaluations ---------------------------------------------------
    @abstractmethod
    def list_evaluations_by_round(self, round_id: str) -> List[CommitteeEvaluationRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_evaluations_by_committee_member(self, member_id: str) -> List[CommitteeEvaluationRecord]:
        raise NotImplementedError

    @abstractmethod
    def save_evaluation(self, record: CommitteeEvaluationRecord) -> CommitteeEvaluationRecord:
        raise NotImplementedError

    # -- committee assignments -----------------------------------------
    @abstractmethod
    def list_assigned_round_ids(self, member_id: str) -> Set[str]:
        raise NotImplementedError

    @abstractmethod
    def assign_committee_member(self, round_id: str, member_id: str) -> None:
        raise NotImplementedError

    # -- users / startups ----------------------------------------------
    @abstractmethod
    def count_users(self, role: Optional[str] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def count_startups(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def find_startups(self, startup_ids: Iterable[str]) -> Dict[str, StartupSummary]:
        """Summaries of the given startups keyed by id; unknown ids are left out."""
        raise NotImplementedError

    # -- transactions --------------------------------------------------
    @abstractmethod
    def round_transaction(self, round_id: str):
        """Context manager serializing writes that depend on one round's state.

        Raises ``NotFoundError`` before locking anything when the round
        does not exist.
        """
        raise NotImplementedError


# ===================================================================== #
#  SQLAlchemy backend                                                     #
# ===================================================================== #

def _round_record(row: Round) -> RoundRecord:
    return RoundRecord(
        id=str(row.id),
        startup_id=str(row.startup_id),
        title=row.title or "",
        description=row.description or "",
        target_amount=row.target_amount,
        min_investment=row.min_investment,
        max_investment=row.max_investment,
        valuation_pre=row.valuation_pre or 0,
        valuation_post=row.valuation_post or 0,
        platform_fee_percentage=row.platform_fee_percentage or 0.0,
        current_amount=row.current_amount or 0,
        investor_count=row.investor_count or 0,
        status=row.status,
        review_cycle=row.review_cycle or 0,
        start_date=to_iso(row.start_date),
        end_date=to_iso(row.end_date),
        business_plan_id=str(row.business_plan_id) if row.business_plan_id else None,
        created_at=to_iso(row.created_at),
        updated_at=to_iso(row.updated_at),
    )


def _commitment_record(row: Commitment) -> CommitmentRecord:
    return CommitmentRecord(
        id=str(row.id),
        round_id=str(row.round_id),
        investor_id=str(row.investor_id),
        amount=row.amount,
        type=row.type,
        status=row.status,
        contract_signed=bool(row.contract_signed),
        receipt_uploaded=bool(row.receipt_uploaded),
        receipt_url=row.receipt_url,
        created_at=to_iso(row.created_at),
        updated_at=to_iso(row.updated_at),
    )


def _evaluation_record(row: CommitteeEvaluation) -> CommitteeEvaluationRecord:
    return CommitteeEvaluationRecord(
        id=str(row.id),
        round_id=str(row.round_id),
        committee_id=str(row.committee_id),
        scores=json.loads(row.scores_json or "{}"),
        total_score=row.total_score,
        average_score=row.average_score,
        decision=row.decision,
        comments=row.comments or "",
        is_completed=bool(row.is_completed),
        review_cycle=row.review_cycle or 0,
        submitted_at=to_iso(row.submitted_at),
        created_at=to_iso(row.created_at),
        updated_at=to_iso(row.updated_at),
    )


def _business_plan_record(row: BusinessPlan) -> BusinessPlanRecord:
    return BusinessPlanRecord(
        id=str(row.id),
        startup_id=str(row.startup_id),
        title=row.title,
        description=row.description or "",
        current_version=row.current_version or 1,
        status=row.status,
        created_at=to_iso(row.created_at),
    )


def _startup_summary(row: Startup) -> StartupSummary:
    return StartupSummary(id=str(row.id), company_name=row.company_name, sector=row.sector or "")


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    """Parse an opaque id; ``None`` for strings that cannot be a stored key."""
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class SqlFundingRepository(FundingRepository):
    """Repository over a SQLAlchemy session.

    Outside ``round_transaction`` every save commits immediately.  Inside
    it, saves are only flushed and the whole block commits (or rolls back)
    together.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._in_transaction = False

    def _persist(self) -> None:
        if self._in_transaction:
            self.db.flush()
        else:
            self.db.commit()

    def _lock_round(self, key: Optional[uuid.UUID]) -> bool:
        """Open the round's write transaction; ``False`` if the round does not exist."""
        if self.db.get_bind().dialect.name == "sqlite":
            # SQLite ignores FOR UPDATE and pysqlite defers BEGIN until the
            # first write, so take the database write lock up front.
            self.db.commit()
            self.db.connection().exec_driver_sql("BEGIN IMMEDIATE")
            query = self.db.query(Round.id)
        else:
            query = self.db.query(Round.id).with_for_update()
        return key is not None and query.filter(Round.id == key).first() is not None

    @contextmanager
    def round_transaction(self, round_id: str) -> Iterator[None]:
        key = _as_uuid(round_id)
        try:
            if not self._lock_round(key):
                raise NotFoundError("Round not found", round_id=round_id)
            self._in_transaction = True
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._in_transaction = False

    # -- rounds --------------------------------------------------------
    def find_round(self, round_id: str) -> Optional[RoundRecord]:
        key = _as_uuid(round_id)
        if key is None:
            return None
        row = self.db.query(Round).filter(Round.id == key).first()
        return _round_record(row) if row else None

    def list_rounds(
        self, status: Optional[str] = None, startup_id: Optional[str] = None
    ) -> List[RoundRecord]:
        query = self.db.query(Round)
        if status is not None:
            query = query.filter(Round.status == status)
        if startup_id is not None:
            key = _as_uuid(startup_id)
            if key is None:
                return []
            query = query.filter(Round.startup_id == key)
        return [_round_record(row) for row in query.order_by(Round.created_at.desc()).all()]

    def save_round(self, record: RoundRecord) -> RoundRecord:
        row = self.db.query(Round).filter(Round.id == _as_uuid(record.id)).first()
        if row is None:
            row = Round(id=_as_uuid(record.id))
            self.db.add(row)
        row.startup_id = _as_uuid(record.startup_id)
        row.title = record.title
        row.description = record.description
        row.target_amount = record.target_amount
        row.min_investment = record.min_investment
        row.max_investment = record.max_investment
        row.valuation_pre = record.valuation_pre
        row.valuation_post = record.valuation_post
        row.platform_fee_percentage = record.platform_fee_percentage
        row.current_amount = record.current_amount
        row.investor_count = record.investor_count
        row.status = record.status
        row.review_cycle = record.review_cycle
        row.start_date = parse_iso(record.start_date)
        row.end_date = parse_iso(record.end_date)
        row.business_plan_id = _as_uuid(record.business_plan_id) if record.business_plan_id else None
        self._persist()
        self.db.refresh(row)
        return _round_record(row)

    # -- business plans ------------------------------------------------
    def find_business_plan(self, plan_id: str) -> Optional[BusinessPlanRecord]:
        key = _as_uuid(plan_id)
        if key is None:
            return None
        row = self.db.query(BusinessPlan).filter(BusinessPlan.id == key).first()
        return _business_plan_record(row) if row else None

    def save_business_plan(self, record: BusinessPlanRecord) -> BusinessPlanRecord:
        row = self.db.query(BusinessPlan).filter(BusinessPlan.id == _as_uuid(record.id)).first()
        if row is None:
            row = BusinessPlan(id=_as_uuid(record.id))
            self.db.add(row)
        row.startup_id = _as_uuid(record.startup_id)
        row.title = record.title
        row.description = record.description
        row.current_version = record.current_version
        row.status = record.status
        self._persist()
        self.db.refresh(row)
        return _business_plan_record(row)

    # -- commitments ---------------------------------------------------
    def find_commitment(self, commitment_id: str) -> Optional[CommitmentRecord]:
        key = _as_uuid(commitment_id)
        if key is None:
            return None
        row = self.db.query(Commitment).filter(Commitment.id == key).first()
        return _commitment_record(row) if row else None

    def list_commitments(self) -> List[CommitmentRecord]:
        rows = self.db.query(Commitment).order_by(Commitment.created_at.desc()).all()
        return [_commitment_record(row) for row in rows]

    def list_commitments_by_round(self, round_id: str) -> List[CommitmentRecord]:
        key = _as_uuid(round_id)
        if key is None:
            return []
        rows = (
            self.db.query(Commitment)
            .filter(Commitment.round_id == key)
            .order_by(Commitment.created_at.desc())
            .all()
        )
        return [_commitment_record(row) for row in rows]

    def list_commitments_by_investor(self, investor_id: str) -> List[CommitmentRecord]:
        key = _as_uuid(investor_id)
        if key is None:
            return []
        rows = (
            self.db.query(Commitment)
            .filter(Commitment.investor_id == key)
            .order_by(Commitment.created_at.desc())
            .all()
        )
        return [_commitment_record(row) for row in rows]

    def save_commitment(self, record: CommitmentRecord) -> CommitmentRecord:
        row = self.db.query(Commitment).filter(Commitment.id == _as_uuid(record.id)).first()
        if row is None:
            row = Commitment(id=_as_uuid(record.id))
            self.db.add(row)
        row.round_id = _as_uuid(record.round_id)
        row.investor_id = _as_uuid(record.investor_id)
        row.amount = record.amount
        row.type = record.type
        row.status = record.status
        row.contract_signed = record.contract_signed
        row.receipt_uploaded = record.receipt_uploaded
        row.receipt_url = record.receipt_url
        self._persist()
        self.db.refresh(row)
        return _commitment_record(row)

    # -- evaluations ---------------------------------------------------
    def list_evaluations_by_round(self, round_id: str) -> List[CommitteeEvaluationRecord]:
        key = _as_uuid(round_id)
        if key is None:
            return []
        rows = (
            self.db.query(CommitteeEvaluation)
            .filter(CommitteeEvaluation.round_id == key)
            .order_by(CommitteeEvaluation.created_at.asc())
            .all()
        )
        return [_evaluation_record(row) for row in rows]

    def list_evaluations_by_committee_member(self, member_id: str) -> List[CommitteeEvaluationRecord]:
        key = _as_uuid(member_id)
        if key is None:
            return []
        rows = (
            self.db.query(CommitteeEvaluation)
            .filter(CommitteeEvaluation.committee_id == key)
            .order_by(CommitteeEvaluation.created_at.desc())
            .all()
        )
        return [_evaluation_record(row) for row in rows]

    def save_evaluation(self, record: CommitteeEvaluationRecord) -> CommitteeEvaluationRecord:
        row = CommitteeEvaluation(
            id=_as_uuid(record.id),
            round_id=_as_uuid(record.round_id),
            committee_id=_as_uuid(record.committee_id),
            scores_json=json.dumps(record.scores),
            total_score=record.total_score,
            average_score=record.average_score,
            decision=record.decision,
            comments=record.comments,
            is_completed=record.is_completed,
            review_cycle=record.review_cycle,
            submitted_at=parse_iso(record.submitted_at),
        )
        self.db.add(row)
        self._persist()
        self.db.refresh(row)
        return _evaluation_record(row)

    # -- committee assignments -----------------------------------------
    def list_assigned_round_ids(self, member_id: str) -> Set[str]:
        key = _as_uuid(member_id)
        if key is None:
            return set()
        rows = self.db.query(CommitteeAssignment).filter(CommitteeAssignment.committee_id == key).all()
        return {str(row.round_id) for row in rows}

    def assign_committee_member(self, round_id: str, member_id: str) -> None:
        round_key, member_key = _as_uuid(round_id), _as_uuid(member_id)
        existing = (
            self.db.query(CommitteeAssignment)
            .filter(
                CommitteeAssignment.round_id == round_key,
                CommitteeAssignment.committee_id == member_key,
            )
            .first()
        )
        if existing is not None:
            return
        self.db.add(CommitteeAssignment(round_id=round_key, committee_id=member_key))
        self._persist()

    # -- users / startups ----------------------------------------------
    def count_users(self, role: Optional[str] = None) -> int:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        return query.count()

    def count_startups(self) -> int:
        return self.db.query(Startup).count()

    def find_startups(self, startup_ids: Iterable[str]) -> Dict[str, StartupSummary]:
        keys = [key for key in map(_as_uuid, set(startup_ids)) if key is not None]
        if not keys:
            return {}
        rows = self.db.query(Startup).filter(Startup.id.in_(keys)).all()
        return {str(row.id): _startup_summary(row) for row in rows}


# ===================================================================== #
#  In-memory backend                                                      #
# ===================================================================== #

class InMemoryFundingRepository(FundingRepository):
    """Dict-backed repository standing in for a real datastore.

    ``round_transaction`` takes a per-round lock so concurrent callers
    cannot both pass a check against the same stale round snapshot.
    """

    def __init__(
        self,
        rounds: Iterable[RoundRecord] = (),
        commitments: Iterable[CommitmentRecord] = (),
        evaluations: Iterable[CommitteeEvaluationRecord] = (),
        business_plans: Iterable[BusinessPlanRecord] = (),
        users: Optional[dict[str, str]] = None,
        startup_ids: Iterable[str] = (),
        startups: Iterable[StartupSummary] = (),
    ) -> None:
        self.rounds: dict[str, RoundRecord] = {r.id: r for r in rounds}
        self.commitments: dict[str, CommitmentRecord] = {c.id: c for c in commitments}
        self.evaluations: dict[str, CommitteeEvaluationRecord] = {e.id: e for e in evaluations}
        self.business_plans: dict[str, BusinessPlanRecord] = {p.id: p for p in business_plans}
        self.assignments: dict[str, Set[str]] = defaultdict(set)
        self.users: dict[str, str] = dict(users or {})  # user id -> role
        self.startups: dict[str, StartupSummary] = {s.id: s for s in startups}
        self.startup_ids: Set[str] = set(startup_ids) | set(self.startups)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def round_transaction(self, round_id: str) -> Iterator[None]:
        with self._locks_guard:
            if round_id not in self.rounds:
                raise NotFoundError("Round not found", round_id=round_id)
            lock = self._locks.setdefault(round_id, threading.Lock())
        with lock:
            yield

    # -- rounds --------------------------------------------------------
    def find_round(self, round_id: str) -> Optional[RoundRecord]:
        record = self.rounds.get(round_id)
        return record.model_copy() if record else None

    def list_rounds(
        self, status: Optional[str] = None, startup_id: Optional[str] = None
    ) -> List[RoundRecord]:
        return [
            r.model_copy()
            for r in self.rounds.values()
            if (status is None or r.status == status)
            and (startup_id is None or r.startup_id == startup_id)
        ]

    def save_round(self, record: RoundRecord) -> RoundRecord:
        self.rounds[record.id] = record.model_copy()
        return record

    # -- business plans ------------------------------------------------
    def find_business_plan(self, plan_id: str) -> Optional[BusinessPlanRecord]:
        record = self.business_plans.get(plan_id)
        return record.model_copy() if record else None

    def save_business_plan(self, record: BusinessPlanRecord) -> BusinessPlanRecord:
        self.business_plans[record.id] = record.model_copy()
        return record

    # -- commitments ---------------------------------------------------
    def find_commitment(self, commitment_id: str) -> Optional[CommitmentRecord]:
        record = self.commitments.get(commitment_id)
        return record.model_copy() if record else None

    def list_commitments(self) -> List[CommitmentRecord]:
        return [c.model_copy() for c in self.commitments.values()]

    def list_commitments_by_round(self, round_id: str) -> List[CommitmentRecord]:
        return [c.model_copy() for c in self.commitments.values() if c.round_id == round_id]

    def list_commitments_by_investor(self, investor_id: str) -> List[CommitmentRecord]:
        return [c.model_copy() for c in self.commitments.values() if c.investor_id == investor_id]

    def save_commitment(self, record: CommitmentRecord) -> CommitmentRecord:
        self.commitments[record.id] = record.model_copy()
        return record

    # -- evaluations ---------------------------------------------------
    def list_evaluations_by_round(self, round_id: str) -> List[CommitteeEvaluationRecord]:
        return [e.model_copy() for e in self.evaluations.values() if e.round_id == round_id]

    def list_evaluations_by_committee_member(self, member_id: str) -> List[CommitteeEvaluationRecord]:
        return [e.model_copy() for e in self.evaluations.values() if e.committee_id == member_id]

    def save_evaluation(self, record: CommitteeEvaluationRecord) -> CommitteeEvaluationRecord:
        self.evaluations[record.id] = record.model_copy()
        return record

    # -- committee assignments -----------------------------------------
    def list_assigned_round_ids(self, member_id: str) -> Set[str]:
        return {round_id for round_id, members in self.assignments.items() if member_id in members}

    def assign_committee_member(self, round_id: str, member_id: str) -> None:
        self.assignments[round_id].add(member_id)

    # -- users / startups ----------------------------------------------
    def count_users(self, role: Optional[str] = None) -> int:
        if role is None:
            return len(self.users)
        return sum(1 for r in self.users.values() if r == role)

    def count_startups(self) -> int:
        return len(self.startup_ids)

    def find_startups(self, startup_ids: Iterable[str]) -> Dict[str, StartupSummary]:
        return {sid: self.startups[sid].model_copy() for sid in startup_ids if sid in self.startups}
