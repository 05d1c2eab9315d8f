"""FundingService tests over the in-memory repository — end-to-end domain flows without HTTP."""

import os
import sys
import threading
import time
from datetime import datetime, timezone

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from crowdfund.constants import EVALUATION_CRITERIA
from crowdfund.errors import (
    BelowMinimum,
    EvaluationAlreadySubmitted,
    InvalidCommitmentState,
    InvalidRoundState,
    InvalidScore,
    InvalidTransition,
    NotFoundError,
    RoundNotLive,
)
from crowdfund.schemas.round_schema import BusinessPlanCreateRequest, RoundCreateRequest
from crowdfund.schemas.startup_schema import StartupSummary
from crowdfund.services.dashboard_service import build_dashboard_stats
from crowdfund.services.funding_service import FundingService
from crowdfund.services.repository import InMemoryFundingRepository
from crowdfund.services.round_lifecycle import ApprovalPolicy

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
STARTUP = "startup-1"


def _scores(value=8.0):
    return {name: value for name in EVALUATION_CRITERIA}


@pytest.fixture
def repo():
    return InMemoryFundingRepository(
        users={"admin-1": "admin", "inv-1": "investor", "inv-2": "investor", "m-1": "committee"},
        startup_ids={STARTUP},
    )


@pytest.fixture
def service(repo):
    return _make_service(repo)


def _draft_round(service, **overrides):
    plan = service.create_business_plan(STARTUP, BusinessPlanCreateRequest(title="Plan A"))
    fields = dict(
        title="Seed",
        target_amount=100000,
        min_investment=5000,
        max_investment=600000,
        business_plan_id=plan.id,
    )
    fields.update(overrides)
    return service.create_round(STARTUP, RoundCreateRequest(**fields))


class _PausingRepository(InMemoryFundingRepository):
    """Sleeps after reading a round's evaluations so other threads get to run
    between the duplicate check and the insert."""

    pause = 0.0

    def list_evaluations_by_round(self, round_id):
        found = super().list_evaluations_by_round(round_id)
        time.sleep(self.pause)
        return found


class _InterleavingRepository(InMemoryFundingRepository):
    """Runs ``on_next_find`` (once) the next time a round is read."""

    on_next_find = None

    def find_round(self, round_id):
        hook, self.on_next_find = self.on_next_find, None
        if hook is not None:
            hook()
        return super().find_round(round_id)


def _make_service(repo, **overrides):
    options = dict(
        policy=ApprovalPolicy(min_approvals=1),
        quorum=3,
        pending_scope="global",
        enforce_round_state=True,
        enforce_score_range=True,
        enforce_single_evaluation=True,
        clock=lambda: NOW,
    )
    options.update(overrides)
    return FundingService(repo, **options)


def _live_round(service):
    record = _draft_round(service)
    service.submit_round(record.id, STARTUP)
    service.submit_evaluation(record.id, "m-1", _scores(), "approve")
    return service.approve_round(record.id)


class TestRoundFlow:
    def test_create_round_starts_as_draft(self, service):
        record = _draft_round(service)
        assert record.status == "draft"
        assert record.current_amount == 0
        assert record.valuation_post == record.valuation_pre + record.target_amount

    def test_create_round_with_foreign_plan(self, service):
        plan = service.create_business_plan("someone-else", BusinessPlanCreateRequest(title="X"))
        with pytest.raises(NotFoundError):
            _draft_round(service, business_plan_id=plan.id)

    def test_submit_without_plan(self, service):
        record = _draft_round(service, business_plan_id=None)
        with pytest.raises(InvalidTransition):
            service.submit_round(record.id, STARTUP)

    def test_attach_plan_then_submit(self, service):
        record = _draft_round(service, business_plan_id=None)
        plan = service.create_business_plan(STARTUP, BusinessPlanCreateRequest(title="Late plan"))
        service.attach_business_plan(record.id, STARTUP, plan.id)
        assert service.submit_round(record.id, STARTUP).status == "committee_review"

    def test_other_startup_cannot_submit(self, service):
        record = _draft_round(service)
        with pytest.raises(NotFoundError):
            service.submit_round(record.id, "startup-2")

    def test_approve_needs_an_approval(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        with pytest.raises(InvalidTransition):
            service.approve_round(record.id)

    def test_full_lifecycle_to_live(self, service):
        record = _live_round(service)
        assert record.status == "live"
        assert service.list_rounds(status="live")[0].id == record.id

    def test_revision_sends_back_to_draft(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(), "revise")
        assert service.request_revision(record.id).status == "draft"

    def test_each_submission_opens_a_review_cycle(self, service):
        record = _draft_round(service)
        assert record.review_cycle == 0
        assert service.submit_round(record.id, STARTUP).review_cycle == 1
        service.submit_evaluation(record.id, "m-1", _scores(), "revise")
        service.request_revision(record.id)
        assert service.submit_round(record.id, STARTUP).review_cycle == 2

    def test_approval_from_before_revision_does_not_carry_over(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(), "approve")
        service.submit_evaluation(record.id, "m-2", _scores(), "revise")
        service.request_revision(record.id)
        service.submit_round(record.id, STARTUP)

        with pytest.raises(InvalidTransition):
            service.approve_round(record.id)
        assert service.get_round(record.id).status == "committee_review"

        service.submit_evaluation(record.id, "m-1", _scores(), "approve")
        assert service.approve_round(record.id).status == "live"

    def test_revise_from_before_resubmission_does_not_carry_over(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(), "revise")
        service.request_revision(record.id)
        service.submit_round(record.id, STARTUP)
        with pytest.raises(InvalidTransition):
            service.request_revision(record.id)

    def test_rounds_listed_with_their_startup(self):
        repo = InMemoryFundingRepository(
            startups=[StartupSummary(id=STARTUP, company_name="Acme Robotics", sector="robotics")]
        )
        service = _make_service(repo)
        record = _draft_round(service)
        views = service.with_startups([record, record.model_copy(update={"startup_id": "gone"})])
        assert views[0].startup.company_name == "Acme Robotics"
        assert views[1].startup is None
        assert repo.count_startups() == 1

    def test_cancel_and_unknown_round(self, service):
        record = _draft_round(service)
        assert service.cancel_round(record.id).status == "cancelled"
        with pytest.raises(NotFoundError):
            service.cancel_round("missing")


class TestCommitmentFlow:
    def test_scenario_bounds(self, service):
        record = _live_round(service)
        with pytest.raises(BelowMinimum):
            service.accept_commitment(record.id, "inv-1", 4999)
        assert service.accept_commitment(record.id, "inv-1", 5000).status == "pending"
        assert service.accept_commitment(record.id, "inv-1", 600000).status == "pending"

    def test_draft_round_rejects(self, service):
        record = _draft_round(service)
        with pytest.raises(RoundNotLive):
            service.accept_commitment(record.id, "inv-1", 10000)

    def test_accept_leaves_totals_alone(self, service):
        record = _live_round(service)
        service.accept_commitment(record.id, "inv-1", 10000)
        assert service.get_round(record.id).current_amount == 0

    def test_payment_updates_totals(self, service):
        record = _live_round(service)
        first = service.accept_commitment(record.id, "inv-1", 10000)
        second = service.accept_commitment(record.id, "inv-1", 20000)
        third = service.accept_commitment(record.id, "inv-2", 30000)
        for commitment in (first, second, third):
            service.review_commitment(commitment.id, approve=True)
        service.confirm_payment(first.id)
        service.confirm_payment(second.id, receipt_url="https://receipts/2.pdf")

        updated = service.get_round(record.id)
        assert updated.current_amount == 30000
        assert updated.investor_count == 1

        service.confirm_payment(third.id)
        updated = service.get_round(record.id)
        assert updated.current_amount == 60000
        assert updated.investor_count == 2

    def test_payment_requires_approval(self, service):
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 10000)
        with pytest.raises(InvalidCommitmentState):
            service.confirm_payment(commitment.id)

    def test_rejected_commitment_stays_rejected(self, service):
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 10000)
        service.review_commitment(commitment.id, approve=False)
        with pytest.raises(InvalidCommitmentState):
            service.review_commitment(commitment.id, approve=True)

    def test_recompute_is_idempotent(self, service):
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 10000)
        service.review_commitment(commitment.id, approve=True)
        service.confirm_payment(commitment.id)
        assert service.recompute_totals(record.id) == service.recompute_totals(record.id)

    def test_close_after_target_reached(self, service):
        record = _live_round(service)
        with pytest.raises(InvalidTransition):
            service.close_round(record.id)
        commitment = service.accept_commitment(record.id, "inv-1", 100000)
        service.review_commitment(commitment.id, approve=True)
        service.confirm_payment(commitment.id)
        assert service.close_round(record.id).status == "closed"

    def test_concurrent_pledges_none_lost(self, service, repo):
        record = _live_round(service)
        errors = []

        def pledge(i):
            try:
                service.accept_commitment(record.id, f"inv-{i}", 5000 + i)
            except Exception as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=pledge, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(repo.list_commitments_by_round(record.id)) == 20

    def test_cancel_does_not_overwrite_totals_of_a_concurrent_payment(self):
        repo = _InterleavingRepository(startup_ids={STARTUP})
        service = _make_service(repo)
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 50000)
        service.review_commitment(commitment.id, approve=True)

        payer = threading.Thread(target=service.confirm_payment, args=(commitment.id,))

        def pay_while_cancelling():
            payer.start()
            # Give the payment every chance to finish while cancel holds its read.
            payer.join(timeout=0.2)

        repo.on_next_find = pay_while_cancelling
        service.cancel_round(record.id)
        payer.join()

        stored = repo.find_round(record.id)
        paid = sum(c.amount for c in repo.list_commitments_by_round(record.id) if c.status == "paid")
        assert stored.status == "cancelled"
        assert paid == 50000
        assert stored.current_amount == paid
        assert stored.investor_count == 1


class TestEvaluationFlow:
    def test_single_evaluation_per_member(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(), "approve")
        with pytest.raises(EvaluationAlreadySubmitted):
            service.submit_evaluation(record.id, "m-1", _scores(), "reject")

    def test_member_can_evaluate_resubmitted_round(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(6.0), "revise")
        service.request_revision(record.id)
        service.submit_round(record.id, STARTUP)

        second = service.submit_evaluation(record.id, "m-1", _scores(9.0), "approve")
        assert second.review_cycle == 2
        with pytest.raises(EvaluationAlreadySubmitted):
            service.submit_evaluation(record.id, "m-1", _scores(), "reject")

        summary = service.round_summary(record.id)
        assert summary.review_cycle == 2
        assert (summary.approve_count, summary.revise_count) == (1, 0)
        assert summary.average_score == 9.0
        assert len(service.list_evaluations_by_round(record.id)) == 2

    def test_duplicate_evaluations_racing(self):
        repo = _PausingRepository(startup_ids={STARTUP})
        service = _make_service(repo)
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        repo.pause = 0.05

        start = threading.Barrier(5)
        outcomes = []

        def evaluate():
            start.wait()
            try:
                service.submit_evaluation(record.id, "m-1", _scores(), "approve")
                outcomes.append("saved")
            except EvaluationAlreadySubmitted:
                outcomes.append("duplicate")

        threads = [threading.Thread(target=evaluate) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["duplicate"] * 4 + ["saved"]
        assert len(repo.list_evaluations_by_round(record.id)) == 1

    def test_out_of_range_score(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        scores = _scores()
        scores["market_size"] = 10.5
        with pytest.raises(InvalidScore):
            service.submit_evaluation(record.id, "m-1", scores, "approve")

    def test_draft_round_not_evaluable(self, service):
        record = _draft_round(service)
        with pytest.raises(InvalidRoundState):
            service.submit_evaluation(record.id, "m-1", _scores(), "approve")

    def test_unknown_round(self, service):
        with pytest.raises(NotFoundError):
            service.submit_evaluation("missing", "m-1", _scores(), "approve")

    def test_guards_can_be_relaxed(self, repo):
        relaxed = FundingService(
            repo,
            enforce_round_state=False,
            enforce_score_range=False,
            enforce_single_evaluation=False,
            clock=lambda: NOW,
        )
        record = _draft_round(relaxed)
        scores = _scores()
        scores["market_size"] = 42
        relaxed.submit_evaluation(record.id, "m-1", scores, "approve")
        relaxed.submit_evaluation(record.id, "m-1", _scores(), "revise")
        assert len(relaxed.list_evaluations_by_round(record.id)) == 2

    def test_summary_and_member_stats(self, service):
        record = _draft_round(service)
        service.submit_round(record.id, STARTUP)
        service.submit_evaluation(record.id, "m-1", _scores(8.0), "approve")
        service.submit_evaluation(record.id, "m-2", _scores(6.0), "revise")

        summary = service.round_summary(record.id)
        assert summary.approve_count == 1
        assert summary.revise_count == 1
        assert summary.average_score == 7.0
        assert summary.quorum_reached is False

        stats = service.member_stats("m-1")
        assert stats.total_evaluations == 1
        assert stats.average_score == 8.0
        assert stats.pending_evaluations == 1

    def test_pending_scope_assigned(self, repo):
        scoped = FundingService(repo, pending_scope="assigned", clock=lambda: NOW)
        first = _draft_round(scoped)
        second = _draft_round(scoped)
        scoped.submit_round(first.id, STARTUP)
        scoped.submit_round(second.id, STARTUP)
        scoped.assign_committee_member(first.id, "m-1")
        assert scoped.member_stats("m-1").pending_evaluations == 1
        scoped.submit_evaluation(first.id, "m-1", _scores(), "approve")
        assert scoped.member_stats("m-1").pending_evaluations == 0

    def test_pending_scope_counts_resubmitted_round_again(self, repo):
        scoped = FundingService(
            repo, policy=ApprovalPolicy(min_approvals=1), pending_scope="assigned", clock=lambda: NOW
        )
        record = _draft_round(scoped)
        scoped.submit_round(record.id, STARTUP)
        scoped.assign_committee_member(record.id, "m-1")
        scoped.submit_evaluation(record.id, "m-1", _scores(), "revise")
        assert scoped.member_stats("m-1").pending_evaluations == 0
        scoped.request_revision(record.id)
        scoped.submit_round(record.id, STARTUP)
        assert scoped.member_stats("m-1").pending_evaluations == 1


class TestDashboards:
    def test_startup_dashboard(self, service):
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 10000)
        service.accept_commitment(record.id, "inv-2", 10000)
        service.review_commitment(commitment.id, approve=True)
        service.confirm_payment(commitment.id)

        stats = build_dashboard_stats(service, "user-1", "startup", startup_id=STARTUP)
        assert stats.total_rounds == 1
        assert stats.active_rounds == 1
        assert stats.total_raised == 10000
        assert stats.total_investors == 2

    def test_investor_dashboard(self, service):
        record = _live_round(service)
        paid = service.accept_commitment(record.id, "inv-1", 10000)
        service.accept_commitment(record.id, "inv-1", 20000)
        service.review_commitment(paid.id, approve=True)
        service.confirm_payment(paid.id)

        stats = build_dashboard_stats(service, "inv-1", "investor")
        assert stats.total_investments == 1
        assert stats.total_invested == 10000
        assert stats.active_commitments == 1
        assert stats.portfolio_count == 1

    def test_admin_dashboard(self, service):
        record = _live_round(service)
        commitment = service.accept_commitment(record.id, "inv-1", 10000)
        service.review_commitment(commitment.id, approve=True)
        service.confirm_payment(commitment.id)

        stats = build_dashboard_stats(service, "admin-1", "super_admin")
        assert stats.total_users == 4
        assert stats.total_startups == 1
        assert stats.total_investors == 2
        assert stats.total_rounds == 1
        assert stats.total_investment_amount == 10000
        assert stats.average_investment_size == 10000

    def test_committee_dashboard(self, service):
        stats = build_dashboard_stats(service, "m-1", "committee")
        assert stats.total_evaluations == 0
        assert stats.average_score == 0

    def test_startup_without_profile(self, service):
        with pytest.raises(NotFoundError):
            build_dashboard_stats(service, "user-1", "startup")


class TestRoundTransactions:
    def test_unknown_round_takes_no_lock(self, repo):
        with pytest.raises(NotFoundError):
            with repo.round_transaction("missing"):
                pass
        assert repo._locks == {}

    def test_unknown_round_rejected_before_locking(self, service, repo):
        for i in range(10):
            with pytest.raises(NotFoundError):
                service.accept_commitment(f"missing-{i}", "inv-1", 10000)
        assert repo._locks == {}

    def test_lock_reused_per_round(self, service, repo):
        record = _live_round(service)
        service.accept_commitment(record.id, "inv-1", 10000)
        service.accept_commitment(record.id, "inv-2", 10000)
        assert list(repo._locks) == [record.id]
