from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

Decision = Literal["approve", "revise", "reject"]


class EvaluationScores(BaseModel):
    """The 17 criterion scores a committee member gives a round.

    Field order matches ``constants.EVALUATION_CRITERIA``.  Range checks
    (0-10) happen in the scoring engine so they can be toggled by
    configuration; here we only reject non-finite values.
    """

    team_experience: float = Field(..., allow_inf_nan=False, description="Team experience")
    market_size: float = Field(..., allow_inf_nan=False, description="Market size")
    product_innovation: float = Field(..., allow_inf_nan=False, description="Product innovation")
    business_model: float = Field(..., allow_inf_nan=False, description="Business model")
    financial_projections: float = Field(..., allow_inf_nan=False, description="Financial projections")
    competitive_advantage: float = Field(..., allow_inf_nan=False, description="Competitive advantage")
    market_traction: float = Field(..., allow_inf_nan=False, description="Market traction")
    scalability: float = Field(..., allow_inf_nan=False, description="Scalability")
    risk_assessment: float = Field(..., allow_inf_nan=False, description="Risk assessment")
    exit_strategy: float = Field(..., allow_inf_nan=False, description="Exit strategy")
    legal_structure: float = Field(..., allow_inf_nan=False, description="Legal structure")
    intellectual_property: float = Field(..., allow_inf_nan=False, description="Intellectual property")
    customer_validation: float = Field(..., allow_inf_nan=False, description="Customer validation")
    revenue_model: float = Field(..., allow_inf_nan=False, description="Revenue model")
    funding_history: float = Field(..., allow_inf_nan=False, description="Funding history")
    governance_structure: float = Field(..., allow_inf_nan=False, description="Governance structure")
    sustainability_impact: float = Field(..., allow_inf_nan=False, description="Sustainability impact")


class EvaluationSubmission(BaseModel):
    scores: EvaluationScores
    decision: Decision
    comments: str = Field(default="", max_length=10000)


class CommitteeEvaluationRecord(BaseModel):
    """A stored committee evaluation.

    ``total_score`` and ``average_score`` are derived from ``scores`` at
    submission time and never edited on their own.  ``review_cycle`` is the
    round submission the evaluation belongs to.
    """

    id: str
    round_id: str
    committee_id: str
    scores: Dict[str, float]
    total_score: float
    average_score: float
    decision: Decision
    comments: str = ""
    is_completed: bool = True
    review_cycle: int = 0
    submitted_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CommitteeMemberStats(BaseModel):
    total_evaluations: int
    completed_evaluations: int
    average_score: float = Field(..., description="Mean of the member's per-evaluation averages (0 when none)")
    pending_evaluations: int


class RoundDecisionSummary(BaseModel):
    round_id: str
    review_cycle: Optional[int] = Field(default=None, description="Submission the counts cover; None means all")
    approve_count: int = 0
    revise_count: int = 0
    reject_count: int = 0
    completed_evaluations: int = 0
    average_score: float = Field(default=0.0, description="Mean of completed evaluations' averages")
    quorum: int = Field(..., ge=0)
    quorum_reached: bool = False
