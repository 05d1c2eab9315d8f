from .evaluation_engine import (
    aggregate_for_committee_member,
    aggregate_for_round,
    compute_score_totals,
    submit_evaluation,
    validate_scores,
)
from .round_lifecycle import (
    ApprovalPolicy,
    accept_commitment,
    recompute_round_totals,
    transition_commitment,
    transition_round,
)

__all__ = [
    "submit_evaluation",
    "validate_scores",
    "compute_score_totals",
    "aggregate_for_committee_member",
    "aggregate_for_round",
    "ApprovalPolicy",
    "accept_commitment",
    "recompute_round_totals",
    "transition_commitment",
    "transition_round",
]
