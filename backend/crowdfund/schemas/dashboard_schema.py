from __future__ import annotations

from pydantic import BaseModel


class StartupDashboardStats(BaseModel):
    total_rounds: int
    active_rounds: int
    total_raised: int
    total_investors: int


class InvestorDashboardStats(BaseModel):
    total_investments: int
    total_invested: int
    active_commitments: int
    portfolio_count: int


class AdminDashboardStats(BaseModel):
    total_users: int
    total_startups: int
    total_investors: int
    total_rounds: int
    active_rounds: int
    total_investment_amount: int
    average_investment_size: float
    successful_exits: int = 0
