from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..timeutils import parse_iso, to_iso
from .startup_schema import StartupSummary

RoundStatus = Literal["draft", "committee_review", "live", "closed", "cancelled"]


class RoundRecord(BaseModel):
    """Plain snapshot of a funding round, as seen by the domain services.

    ``current_amount`` and ``investor_count`` are derived from the paid
    commitments of the round and are only ever replaced wholesale by
    ``recompute_round_totals``.
    """

    id: str
    startup_id: str
    title: str = ""
    description: str = ""
    target_amount: int = Field(..., ge=0)
    min_investment: int = Field(..., ge=0)
    max_investment: int = Field(..., ge=0)
    valuation_pre: int = 0
    valuation_post: int = 0
    platform_fee_percentage: float = 0.0
    current_amount: int = 0
    investor_count: int = 0
    status: RoundStatus = "draft"
    # bumped on every submission for committee review
    review_cycle: int = 0
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    business_plan_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RoundView(RoundRecord):
    """A round as listed to users, with the company raising it."""

    startup: Optional[StartupSummary] = None


class RoundTotals(BaseModel):
    current_amount: int
    investor_count: int


class RoundCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="", max_length=10000)
    target_amount: int = Field(..., gt=0)
    min_investment: int = Field(..., gt=0)
    max_investment: int = Field(..., gt=0)
    valuation_pre: int = Field(default=0, ge=0)
    platform_fee_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    start_date: Optional[str] = Field(default=None, description="ISO-8601 start of the funding window")
    end_date: Optional[str] = Field(default=None, description="ISO-8601 end of the funding window")
    business_plan_id: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            return to_iso(parse_iso(v))
        except ValueError as exc:
            raise ValueError(f"Invalid ISO-8601 date: {v!r}") from exc

    @model_validator(mode="after")
    def check_bounds(self) -> "RoundCreateRequest":
        if self.max_investment < self.min_investment:
            raise ValueError("max_investment must be greater than or equal to min_investment.")
        if self.min_investment > self.target_amount:
            raise ValueError("min_investment cannot exceed target_amount.")
        if self.start_date and self.end_date and parse_iso(self.end_date) <= parse_iso(self.start_date):
            raise ValueError("end_date must be after start_date.")
        return self


class BusinessPlanRecord(BaseModel):
    id: str
    startup_id: str
    title: str
    description: str = ""
    current_version: int = 1
    status: Literal["draft", "submitted", "approved", "rejected"] = "draft"
    created_at: Optional[str] = None


class BusinessPlanCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    description: str = Field(default="", max_length=10000)


class AttachBusinessPlanRequest(BaseModel):
    business_plan_id: str


class AssignmentRequest(BaseModel):
    committee_id: str = Field(..., description="User id of the committee member")
