from .commitment import Commitment
from .evaluation import CommitteeAssignment, CommitteeEvaluation
from .round import Round
from .startup import BusinessPlan, Startup
from .user import User

__all__ = [
    "BusinessPlan",
    "Commitment",
    "CommitteeAssignment",
    "CommitteeEvaluation",
    "Round",
    "Startup",
    "User",
]
