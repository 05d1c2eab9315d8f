"""Role-based dashboard statistics.

One builder per role, each a pure fold over repository snapshots:

- startup:   rounds owned by the startup and the commitments against them
- investor:  the investor's own commitments
- admin:     platform-wide totals
- committee: delegated to the evaluation engine via ``FundingService``
"""

from __future__ import annotations

from typing import Optional, Union

from ..constants import (
    ACTIVE_COMMITMENT_STATUSES,
    ADMIN_ROLES,
    COMMITMENT_PAID,
    ROLE_COMMITTEE,
    ROLE_INVESTOR,
    ROLE_STARTUP,
    ROUND_LIVE,
)
from ..errors import NotFoundError
from ..schemas.dashboard_schema import (
    AdminDashboardStats,
    InvestorDashboardStats,
    StartupDashboardStats,
)
from ..schemas.evaluation_schema import CommitteeMemberStats
from .funding_service import FundingService

DashboardStats = Union[
    StartupDashboardStats, InvestorDashboardStats, AdminDashboardStats, CommitteeMemberStats
]


def startup_stats(service: FundingService, startup_id: str) -> StartupDashboardStats:
    rounds = service.list_rounds(startup_id=startup_id)
    commitments = [
        c for r in rounds for c in service.repository.list_commitments_by_round(r.id)
    ]
    paid = [c for c in commitments if c.status == COMMITMENT_PAID]
    return StartupDashboardStats(
        total_rounds=len(rounds),
        active_rounds=sum(1 for r in rounds if r.status == ROUND_LIVE),
        total_raised=sum(c.amount for c in paid),
        # Everyone who pledged, paid or not.
        total_investors=len({c.investor_id for c in commitments}),
    )


def investor_stats(service: FundingService, investor_id: str) -> InvestorDashboardStats:
    commitments = service.list_commitments_by_investor(investor_id)
    paid = [c for c in commitments if c.status == COMMITMENT_PAID]
    return InvestorDashboardStats(
        total_investments=len(paid),
        total_invested=sum(c.amount for c in paid),
        active_commitments=sum(1 for c in commitments if c.status in ACTIVE_COMMITMENT_STATUSES),
        portfolio_count=len({c.round_id for c in paid}),
    )


def admin_stats(service: FundingService) -> AdminDashboardStats:
    repo = service.repository
    rounds = repo.list_rounds()
    paid = [c for c in repo.list_commitments() if c.status == COMMITMENT_PAID]
    total_paid = sum(c.amount for c in paid)
    return AdminDashboardStats(
        total_users=repo.count_users(),
        total_startups=repo.count_startups(),
        total_investors=repo.count_users(role=ROLE_INVESTOR),
        total_rounds=len(rounds),
        active_rounds=sum(1 for r in rounds if r.status == ROUND_LIVE),
        total_investment_amount=total_paid,
        average_investment_size=total_paid / len(paid) if paid else 0.0,
        successful_exits=0,
    )


def build_dashboard_stats(
    service: FundingService,
    user_id: str,
    role: str,
    startup_id: Optional[str] = None,
) -> DashboardStats:
    """Dispatch to the statistics builder for *role*."""
    if role == ROLE_STARTUP:
        if startup_id is None:
            raise NotFoundError("Startup profile not found", user_id=user_id)
        return startup_stats(service, startup_id)
    if role == ROLE_INVESTOR:
        return investor_stats(service, user_id)
    if role == ROLE_COMMITTEE:
        return service.member_stats(user_id)
    if role in ADMIN_ROLES:
        return admin_stats(service)
    raise NotFoundError(f"No dashboard for role '{role}'", role=role)
