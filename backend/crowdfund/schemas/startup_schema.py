"""Startup profile schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .auth_schema import UserPublic


class StartupSummary(BaseModel):
    """What a round listing shows about the company raising."""

    id: str
    company_name: str
    sector: str = ""


class StartupRecord(StartupSummary):
    user_id: str
    tax_number: Optional[str] = None
    description: str = ""
    website: Optional[str] = None
    founding_date: Optional[str] = None
    created_at: Optional[str] = None


class StartupDetail(StartupRecord):
    owner: Optional[UserPublic] = None
