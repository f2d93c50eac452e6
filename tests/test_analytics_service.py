from __future__ import annotations

from datetime import UTC, datetime

import pytest

from expense_client.schemas.analytics import BudgetLevel, DateWindow, TrendPeriod
from expense_client.schemas.expense import Expense
from expense_client.services.analytics_service import (
    aggregate,
    budget_status,
    format_currency,
    month_window,
    spending_summary,
    trend_series,
)


def _expense(amount: float, kind: str | None = "debited", **fields) -> Expense:
    return Expense(
        amount=amount,
        currency="INR",
        merchant=fields.pop("merchant", "Shop"),
        transaction_type=kind,
        **fields,
    )


def test_food_scenario():
    records = [
        _expense(100, category="Food"),
        _expense(50, category="Food"),
        _expense(200, kind="credited"),
    ]

    summary = aggregate(records)

    assert summary.total_expense == 150
    assert summary.total_income == 200
    assert summary.net_balance == 50
    assert [c.model_dump() for c in summary.categories] == [
        {"name": "Food", "amount": 150, "percentage": 100}
    ]


def test_category_falls_back_to_merchant_then_other():
    records = [
        _expense(30, category="Travel"),
        _expense(20, merchant="Swiggy"),
        _expense(10, merchant=""),
    ]

    names = [c.name for c in aggregate(records).categories]

    assert names == ["Travel", "Swiggy", "Other"]


def test_categories_sorted_descending_with_stable_ties():
    records = [
        _expense(10, category="A"),
        _expense(40, category="B"),
        _expense(10, category="C"),
        _expense(25, category="D"),
    ]

    assert [c.name for c in aggregate(records).categories] == ["B", "D", "A", "C"]


def test_percentages_are_rounded_shares_of_total_expense():
    records = [
        _expense(50, category="A"),
        _expense(30, category="B"),
        _expense(20, category="C"),
        _expense(1000, kind="credited", category="Salary"),
    ]

    summary = aggregate(records)

    assert {c.name: c.percentage for c in summary.categories} == {"A": 50, "B": 30, "C": 20}
    assert sum(c.percentage for c in summary.categories) <= 100


def test_percentage_rounds_half_up():
    records = [_expense(1, category="A"), _expense(7, category="B")]

    summary = aggregate(records)

    # 12.5% and 87.5%
    assert {c.name: c.percentage for c in summary.categories} == {"A": 13, "B": 88}


def test_zero_total_expense_has_no_division_error():
    records = [_expense(0, category="Free"), _expense(500, kind="credited")]

    summary = aggregate(records)

    assert summary.total_expense == 0
    assert [c.percentage for c in summary.categories] == [0]


def test_empty_input():
    summary = aggregate([])
    assert summary.total_expense == 0
    assert summary.total_income == 0
    assert summary.net_balance == 0
    assert summary.categories == []


def test_untyped_records_are_not_counted():
    summary = aggregate([_expense(99, kind=None, category="Mystery")])
    assert summary.total_expense == 0
    assert summary.total_income == 0
    assert summary.categories == []


def test_totals_partition_records_in_window():
    records = [
        _expense(10, created_at=datetime(2025, 3, 2, tzinfo=UTC)),
        _expense(15, kind="credited", created_at=datetime(2025, 3, 5, tzinfo=UTC)),
        _expense(20),
        _expense(5, kind="credited"),
    ]

    summary = aggregate(records, month_window(2025, 3))

    assert summary.total_expense == 30
    assert summary.total_income == 20
    assert summary.total_expense + summary.total_income == sum(r.amount for r in records)


def test_window_excludes_records_outside_but_keeps_untimestamped():
    records = [
        _expense(10, category="In", created_at=datetime(2025, 3, 15, tzinfo=UTC)),
        _expense(20, category="Before", created_at=datetime(2025, 2, 28, tzinfo=UTC)),
        _expense(40, category="After", created_at=datetime(2025, 4, 1, tzinfo=UTC)),
        _expense(5, category="Undated"),
    ]

    summary = aggregate(records, month_window(2025, 3))

    assert summary.total_expense == 15
    assert {c.name for c in summary.categories} == {"In", "Undated"}


def test_window_bounds_are_inclusive():
    start = datetime(2025, 1, 1, tzinfo=UTC)
    end = datetime(2025, 1, 31, tzinfo=UTC)
    records = [_expense(1, created_at=start), _expense(2, created_at=end)]

    summary = aggregate(records, DateWindow(start=start, end=end))

    assert summary.total_expense == 3


def test_open_ended_window():
    records = [
        _expense(1, created_at=datetime(2024, 12, 31, tzinfo=UTC)),
        _expense(2, created_at=datetime(2025, 6, 1, tzinfo=UTC)),
    ]

    after = aggregate(records, DateWindow(start=datetime(2025, 1, 1, tzinfo=UTC)))
    before = aggregate(records, DateWindow(end=datetime(2025, 1, 1, tzinfo=UTC)))

    assert after.total_expense == 2
    assert before.total_expense == 1


def test_naive_timestamps_compare_as_utc():
    records = [_expense(10, created_at=datetime(2025, 3, 10, 12, 0))]

    summary = aggregate(records, month_window(2025, 3))

    assert summary.total_expense == 10


def test_aggregate_is_idempotent():
    records = [
        _expense(10, category="A", created_at=datetime(2025, 3, 1, tzinfo=UTC)),
        _expense(20, merchant="B"),
        _expense(30, kind="credited"),
    ]
    window = month_window(2025, 3)

    assert aggregate(records, window) == aggregate(records, window)
    assert len(records) == 3


@pytest.mark.parametrize(
    ("spend", "limit", "used", "level"),
    [
        (0, 10000, 0, BudgetLevel.GOOD),
        (7500, 10000, 75, BudgetLevel.GOOD),
        (7600, 10000, 76, BudgetLevel.WARNING),
        (9000, 10000, 90, BudgetLevel.WARNING),
        (9100, 10000, 91, BudgetLevel.AT_RISK),
        (25000, 10000, 100, BudgetLevel.AT_RISK),
    ],
)
def test_budget_status_thresholds(spend, limit, used, level):
    status = budget_status(spend, limit)
    assert status.percentage_used == used
    assert status.status == level


def test_budget_status_custom_thresholds():
    assert budget_status(60, 100, warning_threshold=50, at_risk_threshold=80).status == (
        BudgetLevel.WARNING
    )


def test_budget_status_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        budget_status(10, 0)


def test_spending_summary():
    records = [
        _expense(6000, category="Shopping"),
        _expense(2500, category="Food"),
        _expense(40000, kind="credited"),
    ]

    summary = spending_summary(records, 10000)

    assert summary.percentage_used == 85
    assert summary.status == BudgetLevel.WARNING
    assert summary.amount_limit == 10000
    assert summary.most_spend_category == "Shopping"


def test_spending_summary_without_expenses():
    summary = spending_summary([], 5000)
    assert summary.percentage_used == 0
    assert summary.status == BudgetLevel.GOOD
    assert summary.most_spend_category is None


def test_month_window_covers_whole_month():
    window = month_window(2024, 2)
    assert window.start == datetime(2024, 2, 1, tzinfo=UTC)
    assert window.end.date().day == 29


def test_weekly_trend():
    records = [
        _expense(10, created_at=datetime(2025, 3, 1, tzinfo=UTC)),
        _expense(20, created_at=datetime(2025, 3, 8, tzinfo=UTC)),
        _expense(5, kind="credited", created_at=datetime(2025, 3, 8, tzinfo=UTC)),
        _expense(40, created_at=datetime(2025, 3, 31, tzinfo=UTC)),
        _expense(99, created_at=datetime(2025, 4, 1, tzinfo=UTC)),
        _expense(77),
    ]

    series = trend_series(records, TrendPeriod.WEEKLY, 2025, 3)

    assert series.labels == ["Week 1", "Week 2", "Week 3", "Week 4", "Week 5"]
    assert series.expense == [10, 20, 0, 0, 40]
    assert series.income == [0, 5, 0, 0, 0]


def test_daily_trend_has_one_bucket_per_day():
    records = [_expense(12, created_at=datetime(2025, 2, 14, tzinfo=UTC))]

    series = trend_series(records, "daily", 2025, 2)

    assert len(series.labels) == 28
    assert series.expense[13] == 12
    assert sum(series.expense) == 12


def test_monthly_trend_spans_six_months_across_year_boundary():
    records = [
        _expense(100, created_at=datetime(2024, 10, 5, tzinfo=UTC)),
        _expense(300, kind="credited", created_at=datetime(2025, 2, 1, tzinfo=UTC)),
        _expense(50, created_at=datetime(2024, 8, 30, tzinfo=UTC)),
    ]

    series = trend_series(records, TrendPeriod.MONTHLY, 2025, 3)

    assert series.labels == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert series.expense == [100, 0, 0, 0, 0, 0]
    assert series.income == [0, 0, 0, 0, 300, 0]


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        (0, "₹0"),
        (999, "₹999"),
        (1000, "₹1,000"),
        (123456, "₹1,23,456"),
        (12345678.5, "₹1,23,45,678.5"),
        (-2500.25, "-₹2,500.25"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected
