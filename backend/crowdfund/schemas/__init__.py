# Schemas package
from .auth_schema import AuthResponse, LoginRequest, SignupRequest, UserPublic
from .round_schema import BusinessPlanRecord, RoundCreateRequest, RoundRecord, RoundTotals
from .commitment_schema import CommitmentCreateRequest, CommitmentRecord
from .evaluation_schema import (
    CommitteeEvaluationRecord,
    CommitteeMemberStats,
    EvaluationScores,
    EvaluationSubmission,
    RoundDecisionSummary,
)
from .dashboard_schema import AdminDashboardStats, InvestorDashboardStats, StartupDashboardStats

__all__ = [
    "SignupRequest",
    "LoginRequest",
    "AuthResponse",
    "UserPublic",
    "RoundRecord",
    "RoundTotals",
    "RoundCreateRequest",
    "BusinessPlanRecord",
    "CommitmentRecord",
    "CommitmentCreateRequest",
    "EvaluationScores",
    "EvaluationSubmission",
    "CommitteeEvaluationRecord",
    "CommitteeMemberStats",
    "RoundDecisionSummary",
    "StartupDashboardStats",
    "InvestorDashboardStats",
    "AdminDashboardStats",
]
