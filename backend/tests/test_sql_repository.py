"""SqlFundingRepository tests: round transactions on SQLite and persisted review cycles."""

import os
import sys
import threading
import time
from datetime import datetime, timezone
from uuid import uuid4

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from crowdfund.constants import EVALUATION_CRITERIA
from crowdfund.database import Base
from crowdfund.errors import EvaluationAlreadySubmitted, InvalidTransition, NotFoundError
from crowdfund.models.evaluation import CommitteeEvaluation
from crowdfund.models.startup import Startup
from crowdfund.models.user import User
from crowdfund.schemas.round_schema import BusinessPlanCreateRequest, RoundCreateRequest
from crowdfund.services.funding_service import FundingService
from crowdfund.services.repository import SqlFundingRepository
from crowdfund.services.round_lifecycle import ApprovalPolicy

# ---------------------------------------------------------------------------
# Test database setup (file-based SQLite so threads share it)
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite:///./test_sql_repository.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


class _PausingSqlRepository(SqlFundingRepository):
    """Sleeps after reading a round's evaluations, between the duplicate
    check and the insert."""

    pause = 0.0

    def list_evaluations_by_round(self, round_id):
        found = super().list_evaluations_by_round(round_id)
        time.sleep(self.pause)
        return found


def _service(repository):
    return FundingService(
        repository,
        policy=ApprovalPolicy(min_approvals=1),
        quorum=1,
        pending_scope="global",
        enforce_round_state=True,
        enforce_score_range=True,
        enforce_single_evaluation=True,
        clock=lambda: NOW,
    )


def _scores(value=8.0):
    return {name: value for name in EVALUATION_CRITERIA}


@pytest.fixture
def seeded():
    """One startup with a round in committee review, and one committee member."""
    db = TestingSessionLocal()
    try:
        founder = User(id=uuid4(), email="founder@example.com", role="startup", hashed_password="x")
        member = User(id=uuid4(), email="committee@example.com", role="committee", hashed_password="x")
        db.add_all([founder, member])
        db.flush()
        startup = Startup(id=uuid4(), user_id=founder.id, company_name="Acme Robotics", sector="robotics")
        db.add(startup)
        db.commit()
        startup_id, member_id = str(startup.id), str(member.id)

        service = _service(SqlFundingRepository(db))
        plan = service.create_business_plan(startup_id, BusinessPlanCreateRequest(title="Plan A"))
        record = service.create_round(startup_id, RoundCreateRequest(
            title="Seed",
            target_amount=100000,
            min_investment=5000,
            max_investment=600000,
            business_plan_id=plan.id,
        ))
        service.submit_round(record.id, startup_id)
    finally:
        db.close()
    return {"startup": startup_id, "member": member_id, "round": record.id}


# ===================================================================== #
#  round_transaction                                                      #
# ===================================================================== #

class TestRoundTransaction:
    def test_duplicate_evaluations_racing(self, seeded):
        start = threading.Barrier(2)
        outcomes = []

        def evaluate():
            db = TestingSessionLocal()
            repository = _PausingSqlRepository(db)
            repository.pause = 0.2
            try:
                start.wait()
                _service(repository).submit_evaluation(
                    seeded["round"], seeded["member"], _scores(), "approve"
                )
                outcomes.append("saved")
            except EvaluationAlreadySubmitted:
                outcomes.append("duplicate")
            finally:
                db.close()

        threads = [threading.Thread(target=evaluate) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["duplicate", "saved"]
        db = TestingSessionLocal()
        try:
            assert db.query(CommitteeEvaluation).count() == 1
        finally:
            db.close()

    def test_unknown_round(self):
        db = TestingSessionLocal()
        repository = SqlFundingRepository(db)
        try:
            for round_id in (str(uuid4()), "not-a-uuid"):
                with pytest.raises(NotFoundError):
                    with repository.round_transaction(round_id):
                        pass
        finally:
            db.close()

    def test_failed_block_rolls_back(self, seeded):
        db = TestingSessionLocal()
        repository = SqlFundingRepository(db)
        try:
            with pytest.raises(RuntimeError):
                with repository.round_transaction(seeded["round"]):
                    record = repository.find_round(seeded["round"])
                    repository.save_round(record.model_copy(update={"status": "cancelled"}))
                    raise RuntimeError("boom")
            assert repository.find_round(seeded["round"]).status == "committee_review"
        finally:
            db.close()


# ===================================================================== #
#  Review cycles                                                          #
# ===================================================================== #

class TestReviewCycles:
    def test_resubmission_persists_new_cycle(self, seeded):
        db = TestingSessionLocal()
        service = _service(SqlFundingRepository(db))
        round_id, member_id = seeded["round"], seeded["member"]
        try:
            assert service.get_round(round_id).review_cycle == 1
            service.submit_evaluation(round_id, member_id, _scores(6.0), "revise")
            service.request_revision(round_id)
            assert service.submit_round(round_id, seeded["startup"]).review_cycle == 2

            with pytest.raises(InvalidTransition):
                service.approve_round(round_id)

            again = service.submit_evaluation(round_id, member_id, _scores(9.0), "approve")
            assert again.review_cycle == 2
            cycles = sorted(e.review_cycle for e in service.list_evaluations_by_round(round_id))
            assert cycles == [1, 2]
            assert service.approve_round(round_id).status == "live"
        finally:
            db.close()
