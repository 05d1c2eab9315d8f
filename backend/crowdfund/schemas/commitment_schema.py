from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

CommitmentType = Literal["soft", "hard"]
CommitmentStatus = Literal["pending", "approved", "rejected", "paid"]


class CommitmentRecord(BaseModel):
    """An investor's pledge against a round — an independent ledger entry."""

    id: str
    round_id: str
    investor_id: str
    amount: int
    type: CommitmentType = "soft"
    status: CommitmentStatus = "pending"
    contract_signed: bool = False
    receipt_uploaded: bool = False
    receipt_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CommitmentCreateRequest(BaseModel):
    round_id: str
    amount: int = Field(..., description="Amount in the platform's base currency unit")
    type: CommitmentType = "soft"


class PaymentConfirmationRequest(BaseModel):
    receipt_url: Optional[str] = Field(default=None, max_length=1024)
