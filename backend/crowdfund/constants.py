"""Centralized constants shared across the domain services and routes.

This module is the SINGLE SOURCE OF TRUTH for role names, round and
commitment statuses, and the committee evaluation criteria. Reused by:
  - Round lifecycle state machine
  - Evaluation scoring engine
  - Dashboard aggregation
  - Route access checks
"""

from __future__ import annotations

# ── User roles ──────────────────────────────────────────────────────────

ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ROLE_INVESTOR = "investor"
ROLE_STARTUP = "startup"
ROLE_COMMITTEE = "committee"

USER_ROLES: list[str] = [
    ROLE_ADMIN,
    ROLE_INVESTOR,
    ROLE_STARTUP,
    ROLE_COMMITTEE,
    ROLE_SUPER_ADMIN,
]

ADMIN_ROLES: frozenset[str] = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})

# Administrators are provisioned out of band, never through /auth/signup.
SELF_REGISTER_ROLES: frozenset[str] = frozenset(
    {ROLE_INVESTOR, ROLE_STARTUP, ROLE_COMMITTEE}
)

INVESTOR_TYPES: list[str] = ["individual", "corporate"]

# ── Round lifecycle ─────────────────────────────────────────────────────

ROUND_DRAFT = "draft"
ROUND_COMMITTEE_REVIEW = "committee_review"
ROUND_LIVE = "live"
ROUND_CLOSED = "closed"
ROUND_CANCELLED = "cancelled"

ROUND_STATUSES: list[str] = [
    ROUND_DRAFT,
    ROUND_COMMITTEE_REVIEW,
    ROUND_LIVE,
    ROUND_CLOSED,
    ROUND_CANCELLED,
]

# Rounds any signed-in user may browse; the rest are visible to the owner,
# the committee and admins only.
PUBLIC_ROUND_STATUSES: frozenset[str] = frozenset({ROUND_LIVE, ROUND_CLOSED})

# ── Commitments ─────────────────────────────────────────────────────────

COMMITMENT_TYPES: list[str] = ["soft", "hard"]

COMMITMENT_PENDING = "pending"
COMMITMENT_APPROVED = "approved"
COMMITMENT_REJECTED = "rejected"
COMMITMENT_PAID = "paid"

COMMITMENT_STATUSES: list[str] = [
    COMMITMENT_PENDING,
    COMMITMENT_APPROVED,
    COMMITMENT_REJECTED,
    COMMITMENT_PAID,
]

# Statuses that still count as "in flight" on the investor dashboard.
ACTIVE_COMMITMENT_STATUSES: frozenset[str] = frozenset(
    {COMMITMENT_PENDING, COMMITMENT_APPROVED}
)

# ── Business plans ──────────────────────────────────────────────────────

BUSINESS_PLAN_STATUSES: list[str] = ["draft", "submitted", "approved", "rejected"]

# ── Committee evaluation ────────────────────────────────────────────────
# LOCKED: the 17 criteria in canonical order. Adding or removing one
# changes every stored average, so the frontend form must change with it.

EVALUATION_CRITERIA: tuple[str, ...] = (
    "team_experience",
    "market_size",
    "product_innovation",
    "business_model",
    "financial_projections",
    "competitive_advantage",
    "market_traction",
    "scalability",
    "risk_assessment",
    "exit_strategy",
    "legal_structure",
    "intellectual_property",
    "customer_validation",
    "revenue_model",
    "funding_history",
    "governance_structure",
    "sustainability_impact",
)

CRITERIA_COUNT: int = len(EVALUATION_CRITERIA)

SCORE_MIN: float = 0.0
SCORE_MAX: float = 10.0

DECISION_APPROVE = "approve"
DECISION_REVISE = "revise"
DECISION_REJECT = "reject"

EVALUATION_DECISIONS: list[str] = [DECISION_APPROVE, DECISION_REVISE, DECISION_REJECT]

PENDING_SCOPE_GLOBAL = "global"
PENDING_SCOPE_ASSIGNED = "assigned"
