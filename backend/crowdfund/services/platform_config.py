"""Centralized platform configuration.

Loads environment variables (and ``.env``) at import time.  Exposes the
database URL, evaluation quorum, round-approval policy knobs and the
switches for the stricter evaluation guards.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from ..constants import PENDING_SCOPE_ASSIGNED, PENDING_SCOPE_GLOBAL

load_dotenv()

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./crowdfund.db")

# Minimum completed evaluations before a round decision is considered final.
EVALUATION_QUORUM: int = int(os.getenv("EVALUATION_QUORUM", "3"))

# Round approval policy: how many "approve" decisions move a round to live.
APPROVAL_MIN_APPROVALS: int = int(os.getenv("APPROVAL_MIN_APPROVALS", "1"))
APPROVAL_REQUIRES_QUORUM: bool = _env_flag("APPROVAL_REQUIRES_QUORUM", False)

PENDING_EVALUATION_SCOPE: str = os.getenv(
    "PENDING_EVALUATION_SCOPE", PENDING_SCOPE_GLOBAL
).strip().lower()
if PENDING_EVALUATION_SCOPE not in (PENDING_SCOPE_GLOBAL, PENDING_SCOPE_ASSIGNED):
    logger.warning(
        "[CONFIG] Unknown PENDING_EVALUATION_SCOPE=%r, falling back to %r",
        PENDING_EVALUATION_SCOPE,
        PENDING_SCOPE_GLOBAL,
    )
    PENDING_EVALUATION_SCOPE = PENDING_SCOPE_GLOBAL

# Reject evaluations for rounds that are not in committee_review.
ENFORCE_EVALUATION_ROUND_STATE: bool = _env_flag("ENFORCE_EVALUATION_ROUND_STATE", True)
# Reject criterion scores outside SCORE_MIN..SCORE_MAX.
ENFORCE_SCORE_RANGE: bool = _env_flag("ENFORCE_SCORE_RANGE", True)
# Reject a second evaluation from the same member for the same round.
ENFORCE_SINGLE_EVALUATION: bool = _env_flag("ENFORCE_SINGLE_EVALUATION", True)

DEBUG: bool = _env_flag("DEBUG", False)

FRONTEND_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv(
        "FRONTEND_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001",
    ).split(",")
    if origin.strip()
]


def log_platform_config() -> None:
    """Print the effective platform configuration for startup visibility."""
    print(f"[CONFIG] Database: {DATABASE_URL.split('@')[-1]}")
    print(f"[CONFIG] Evaluation quorum: {EVALUATION_QUORUM}")
    print(
        f"[CONFIG] Approval policy: min_approvals={APPROVAL_MIN_APPROVALS} "
        f"requires_quorum={APPROVAL_REQUIRES_QUORUM}"
    )
    print(f"[CONFIG] Pending evaluation scope: {PENDING_EVALUATION_SCOPE}")
    print(
        f"[CONFIG] Guards: round_state={ENFORCE_EVALUATION_ROUND_STATE} "
        f"score_range={ENFORCE_SCORE_RANGE} single_evaluation={ENFORCE_SINGLE_EVALUATION}"
    )
