"""Spending analytics derived from a flat list of expense records.

Everything here is pure: the same input always yields the same output and
nothing is cached between calls.
"""

from __future__ import annotations

import calendar
import math
from collections.abc import Iterable
from datetime import UTC, datetime

from expense_client.schemas.analytics import (
    AnalyticsSummary,
    BudgetLevel,
    BudgetStatus,
    CategoryBreakdown,
    DateWindow,
    SpendingSummary,
    TrendPeriod,
    TrendSeries,
)
from expense_client.schemas.expense import Expense, TransactionType

DEFAULT_CATEGORY = "Other"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _in_window(expense: Expense, window: DateWindow | None) -> bool:
    # Records without a timestamp are always treated as current. This can hide
    # date-filtering problems upstream, but callers rely on it.
    if window is None or expense.created_at is None:
        return True
    created = _as_utc(expense.created_at)
    if window.start is not None and created < _as_utc(window.start):
        return False
    if window.end is not None and created > _as_utc(window.end):
        return False
    return True


def category_of(expense: Expense) -> str:
    return expense.category or expense.merchant or DEFAULT_CATEGORY


def aggregate(records: Iterable[Expense], window: DateWindow | None = None) -> AnalyticsSummary:
    filtered = [r for r in records if _in_window(r, window)]

    total_expense = sum(
        (r.amount for r in filtered if r.transaction_type == TransactionType.DEBITED), 0.0
    )
    total_income = sum(
        (r.amount for r in filtered if r.transaction_type == TransactionType.CREDITED), 0.0
    )

    groups: dict[str, float] = {}
    for record in filtered:
        if record.transaction_type != TransactionType.DEBITED:
            continue
        name = category_of(record)
        groups[name] = groups.get(name, 0.0) + record.amount

    categories = [
        CategoryBreakdown(
            name=name,
            amount=amount,
            percentage=_round_half_up(100 * amount / total_expense) if total_expense else 0,
        )
        for name, amount in groups.items()
    ]
    # list.sort is stable, so equal amounts keep their grouping order.
    categories.sort(key=lambda c: c.amount, reverse=True)

    return AnalyticsSummary(
        total_expense=total_expense,
        total_income=total_income,
        net_balance=total_income - total_expense,
        categories=categories,
    )


def budget_status(
    spend: float,
    limit: float,
    warning_threshold: int = 75,
    at_risk_threshold: int = 90,
) -> BudgetStatus:
    if limit <= 0:
        raise ValueError("Budget limit must be positive")
    used = min(_round_half_up(100 * spend / limit), 100)
    if used > at_risk_threshold:
        level = BudgetLevel.AT_RISK
    elif used > warning_threshold:
        level = BudgetLevel.WARNING
    else:
        level = BudgetLevel.GOOD
    return BudgetStatus(percentage_used=used, status=level)


def spending_summary(
    records: Iterable[Expense],
    limit: float,
    window: DateWindow | None = None,
    warning_threshold: int = 75,
    at_risk_threshold: int = 90,
) -> SpendingSummary:
    summary = aggregate(records, window)
    status = budget_status(summary.total_expense, limit, warning_threshold, at_risk_threshold)
    return SpendingSummary(
        percentage_used=status.percentage_used,
        status=status.status,
        amount_limit=limit,
        most_spend_category=summary.categories[0].name if summary.categories else None,
    )


def month_window(year: int, month: int) -> DateWindow:
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(
        start=datetime(year, month, 1, tzinfo=UTC),
        end=datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=UTC),
    )


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trend_series(
    records: Iterable[Expense],
    period: TrendPeriod | str,
    year: int,
    month: int,
) -> TrendSeries:
    """Bucket income and expense for charting.

    ``daily`` and ``weekly`` cover the given month; ``monthly`` covers the six
    months ending with it. Records without a timestamp cannot be placed and
    are skipped.
    """
    period = TrendPeriod(period)

    if period == TrendPeriod.DAILY:
        days = calendar.monthrange(year, month)[1]
        labels = [str(day) for day in range(1, days + 1)]
    elif period == TrendPeriod.WEEKLY:
        labels = [f"Week {n}" for n in range(1, 6)]
    else:
        months = [_shift_month(year, month, -offset) for offset in range(5, -1, -1)]
        labels = [calendar.month_abbr[m] for _, m in months]

    income = [0.0] * len(labels)
    expense = [0.0] * len(labels)

    for record in records:
        if record.created_at is None or record.transaction_type is None:
            continue
        created = _as_utc(record.created_at)
        if period == TrendPeriod.MONTHLY:
            key = (created.year, created.month)
            if key not in months:
                continue
            slot = months.index(key)
        else:
            if (created.year, created.month) != (year, month):
                continue
            if period == TrendPeriod.DAILY:
                slot = created.day - 1
            else:
                slot = min((created.day - 1) // 7, 4)

        if record.transaction_type == TransactionType.CREDITED:
            income[slot] += record.amount
        else:
            expense[slot] += record.amount

    return TrendSeries(period=period, labels=labels, income=income, expense=expense)


def format_currency(amount: float, symbol: str = "₹") -> str:
    """Format with Indian digit grouping, e.g. ``₹1,23,456.5``."""
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    head, tail = whole[:-3], whole[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    groups.append(tail)

    text = ",".join(groups)
    if fraction:
        text += f".{fraction}"
    return f"{sign}{symbol}{text}"
