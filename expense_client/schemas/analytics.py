from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel


class DateWindow(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class CategoryBreakdown(BaseModel):
    name: str
    amount: float
    percentage: int


class AnalyticsSummary(BaseModel):
    total_expense: float
    total_income: float
    net_balance: float
    categories: list[CategoryBreakdown]


class BudgetLevel(str, enum.Enum):
    GOOD = "Good"
    WARNING = "Warning"
    AT_RISK = "At Risk"


class BudgetStatus(BaseModel):
    percentage_used: int
    status: BudgetLevel


class SpendingSummary(BudgetStatus):
    amount_limit: float
    most_spend_category: str | None


class TrendPeriod(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TrendSeries(BaseModel):
    period: TrendPeriod
    labels: list[str]
    income: list[float]
    expense: list[float]
