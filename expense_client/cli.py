"""Command-line front end for the expense tracker.

Usage:
    python -m expense_client.cli login --username alice --password secret
    python -m expense_client.cli register --first-name Alice --last-name Doe --username alice \
        --email alice@example.com --password secret --phone 9999999999
    python -m expense_client.cli status
    python -m expense_client.cli logout
    python -m expense_client.cli whoami
    python -m expense_client.cli expenses [--merchant Swiggy] [--type debited --start ... --end ...]
    python -m expense_client.cli add-expense --amount 250 --merchant Swiggy --category Food
    python -m expense_client.cli update-expense --id <external_id> --amount 300 --merchant Swiggy
    python -m expense_client.cli analytics [--month 2025-03 | --start ... --end ...]
    python -m expense_client.cli budget [--limit 10000] [--month 2025-03]
    python -m expense_client.cli trend --period weekly [--month 2025-03]
    python -m expense_client.cli parse-sms --message "Rs 250 debited at Swiggy"
    python -m expense_client.cli listen-sms < envelopes.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from expense_client.api.client import ApiClient
from expense_client.api.expenses import ExpenseService
from expense_client.api.messages import MessageService
from expense_client.api.users import UserService
from expense_client.config import settings
from expense_client.exceptions import ClientError
from expense_client.schemas.analytics import AnalyticsSummary, DateWindow
from expense_client.schemas.auth import AuthResult
from expense_client.schemas.expense import Expense, TransactionType
from expense_client.services.analytics_service import (
    aggregate,
    format_currency,
    month_window,
    spending_summary,
    trend_series,
)
from expense_client.services.session_service import SessionManager
from expense_client.sms.listener import SmsListener
from expense_client.sms.sources import LocalSmsSource
from expense_client.storage import build_token_store


@asynccontextmanager
async def _session() -> AsyncGenerator[SessionManager]:
    token_store = build_token_store(settings)
    async with ApiClient(
        settings.API_BASE_URL, token_store, timeout=settings.REQUEST_TIMEOUT_SECONDS
    ) as client:
        yield SessionManager(client, token_store, settle_delay=settings.LOGOUT_SETTLE_SECONDS)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except (ClientError, OSError, ValueError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)


def _report(result: AuthResult, ok: str) -> None:
    if result.success:
        print(ok)
        return
    print(f"Error: {result.msg}")
    sys.exit(1)


def _parse_month(value: str | None) -> tuple[int, int]:
    if not value:
        now = datetime.now(UTC)
        return now.year, now.month
    try:
        year, month = (int(part) for part in value.split("-", 1))
        if not 1 <= month <= 12:
            raise ValueError(value)
    except ValueError:
        print(f"Error: invalid month '{value}', expected YYYY-MM")
        sys.exit(1)
    return year, month


def _window(args: argparse.Namespace) -> DateWindow | None:
    if getattr(args, "month", None):
        return month_window(*_parse_month(args.month))
    if args.start or args.end:
        return DateWindow(start=args.start, end=args.end)
    return None


def _print_expenses(expenses: list[Expense]) -> None:
    if not expenses:
        print("No expenses found.")
        return

    print(f"{'ID':<38} {'Date':<20} {'Merchant':<24} {'Type':<10} {'Amount':>16}")
    print("-" * 112)
    for e in expenses:
        created = e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else "-"
        kind = e.transaction_type.value if e.transaction_type else "-"
        print(
            f"{e.external_id or '-':<38} {created:<20} {e.merchant[:24]:<24} "
            f"{kind:<10} {format_currency(e.amount):>16}"
        )
    print(f"\nTotal: {len(expenses)} expense(s)")


def _print_summary(summary: AnalyticsSummary) -> None:
    print(f"Total income:  {format_currency(summary.total_income)}")
    print(f"Total expense: {format_currency(summary.total_expense)}")
    print(f"Net balance:   {format_currency(summary.net_balance)}")
    if not summary.categories:
        return
    print(f"\n{'Category':<30} {'Amount':>16} {'Share':>6}")
    print("-" * 54)
    for c in summary.categories:
        print(f"{c.name[:30]:<30} {format_currency(c.amount):>16} {c.percentage:>5}%")


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


async def _login(args: argparse.Namespace) -> None:
    async with _session() as session:
        result = await session.login(args.username, args.password)
    _report(result, f"Logged in as {args.username}")


async def _logout(_args: argparse.Namespace) -> None:
    async with _session() as session:
        result = await session.logout()
    _report(result, "Logged out")


async def _register(args: argparse.Namespace) -> None:
    async with _session() as session:
        result = await session.register(
            args.first_name, args.last_name, args.username, args.email, args.password, args.phone
        )
        username = session.state.username
    _report(result, f"Registered and logged in as {username}")


async def _status(_args: argparse.Namespace) -> None:
    async with _session() as session:
        await session.check_session()
        state = session.state
    if state.is_authenticated:
        print(f"Authenticated as {state.username}")
    else:
        print("Not authenticated")


async def _whoami(_args: argparse.Namespace) -> None:
    async with _session() as session:
        user = await UserService(session.client).get_current_user()
    print(f"User ID:  {user.user_id}")
    print(f"Name:     {user.first_name} {user.last_name or ''}".rstrip())
    print(f"Username: {user.username or '-'}")
    print(f"Email:    {user.email or '-'}")
    print(f"Phone:    {user.phone_number or '-'}")


# ---------------------------------------------------------------------------
# Expense commands
# ---------------------------------------------------------------------------


async def _expenses(args: argparse.Namespace) -> None:
    async with _session() as session:
        service = ExpenseService(session.client)
        if args.merchant:
            expenses = await service.get_expenses_by_merchant(args.merchant, args.start, args.end)
        elif args.type:
            expenses = await service.get_expenses_by_type(args.type, args.start, args.end)
        else:
            expenses = await service.get_all_expenses()
    _print_expenses(expenses)


async def _add_expense(args: argparse.Namespace) -> None:
    expense = Expense(
        amount=args.amount,
        merchant=args.merchant,
        currency=args.currency,
        transaction_type=TransactionType(args.type),
        category=args.category,
    )
    async with _session() as session:
        created = await ExpenseService(session.client).add_expense(expense)
    print(f"Created expense {created.external_id or '(pending id)'}")


async def _update_expense(args: argparse.Namespace) -> None:
    expense = Expense(
        external_id=args.id,
        amount=args.amount,
        merchant=args.merchant,
        currency=args.currency,
        transaction_type=TransactionType(args.type),
        category=args.category,
    )
    async with _session() as session:
        updated = await ExpenseService(session.client).update_expense(expense)
    print(f"Updated expense {updated.external_id}")


async def _analytics(args: argparse.Namespace) -> None:
    async with _session() as session:
        records = await ExpenseService(session.client).get_all_expenses()
    _print_summary(aggregate(records, _window(args)))


async def _budget(args: argparse.Namespace) -> None:
    async with _session() as session:
        records = await ExpenseService(session.client).get_all_expenses()
    summary = spending_summary(
        records,
        args.limit,
        month_window(*_parse_month(args.month)),
        settings.BUDGET_WARNING_THRESHOLD,
        settings.BUDGET_AT_RISK_THRESHOLD,
    )
    print(f"Used:          {summary.percentage_used}%")
    print(f"Status:        {summary.status.value}")
    print(f"Amount limit:  {format_currency(summary.amount_limit)}")
    print(f"Top category:  {summary.most_spend_category or '-'}")


async def _trend(args: argparse.Namespace) -> None:
    year, month = _parse_month(args.month)
    async with _session() as session:
        records = await ExpenseService(session.client).get_all_expenses()
    series = trend_series(records, args.period, year, month)
    print(f"{'Period':<10} {'Income':>16} {'Expense':>16}")
    print("-" * 44)
    for label, income, expense in zip(series.labels, series.income, series.expense):
        print(f"{label:<10} {format_currency(income):>16} {format_currency(expense):>16}")


# ---------------------------------------------------------------------------
# SMS commands
# ---------------------------------------------------------------------------


async def _parse_sms(args: argparse.Namespace) -> None:
    async with _session() as session:
        parsed = await MessageService(
            session.client, settings.DEFAULT_CURRENCY
        ).parse_sms_message(args.message)
    if not parsed.success or parsed.expense is None:
        print(f"Error: {parsed.message}")
        sys.exit(1)
    e = parsed.expense
    kind = e.transaction_type.value if e.transaction_type else "-"
    print(f"{kind} {format_currency(e.amount)} {e.currency} at {e.merchant}")


async def _listen_sms(_args: argparse.Namespace) -> None:
    source = LocalSmsSource()
    async with _session() as session:
        listener = SmsListener(
            source,
            MessageService(session.client, settings.DEFAULT_CURRENCY),
            on_message=lambda body: print(f"Forwarded: {body}"),
            enabled=settings.SMS_LISTENER_ENABLED,
        )
        async with await listener.listen():
            while True:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line:
                    break
                if line.strip():
                    source.emit(line.strip())


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="expense_client.cli", description="Expense tracker client"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # login
    p_login = subparsers.add_parser("login", help="Log in and store credentials")
    p_login.add_argument("--username", required=True)
    p_login.add_argument("--password", required=True)
    p_login.set_defaults(func=_login)

    # logout
    p_logout = subparsers.add_parser("logout", help="Log out and clear credentials")
    p_logout.set_defaults(func=_logout)

    # register
    p_register = subparsers.add_parser("register", help="Create an account")
    p_register.add_argument("--first-name", required=True)
    p_register.add_argument("--last-name", required=True)
    p_register.add_argument("--username", required=True)
    p_register.add_argument("--email", required=True)
    p_register.add_argument("--password", required=True)
    p_register.add_argument("--phone", required=True)
    p_register.set_defaults(func=_register)

    # status
    p_status = subparsers.add_parser("status", help="Verify the stored session")
    p_status.set_defaults(func=_status)

    # whoami
    p_whoami = subparsers.add_parser("whoami", help="Show the current user's profile")
    p_whoami.set_defaults(func=_whoami)

    # expenses
    p_list = subparsers.add_parser("expenses", help="List expenses")
    p_list.add_argument("--merchant", default=None)
    p_list.add_argument("--type", choices=[t.value for t in TransactionType], default=None)
    p_list.add_argument("--start", default=None, help="ISO timestamp")
    p_list.add_argument("--end", default=None, help="ISO timestamp")
    p_list.set_defaults(func=_expenses)

    # add-expense / update-expense
    for name, func in (("add-expense", _add_expense), ("update-expense", _update_expense)):
        p = subparsers.add_parser(name, help=f"{name.split('-')[0].title()} an expense")
        if func is _update_expense:
            p.add_argument("--id", required=True, help="external_id of the expense")
        p.add_argument("--amount", type=float, required=True)
        p.add_argument("--merchant", required=True)
        p.add_argument("--currency", default=settings.DEFAULT_CURRENCY)
        p.add_argument(
            "--type", choices=[t.value for t in TransactionType], default=TransactionType.DEBITED.value
        )
        p.add_argument("--category", default=None)
        p.set_defaults(func=func)

    # analytics
    p_analytics = subparsers.add_parser("analytics", help="Spending breakdown by category")
    p_analytics.add_argument("--month", default=None, help="YYYY-MM")
    p_analytics.add_argument("--start", type=datetime.fromisoformat, default=None)
    p_analytics.add_argument("--end", type=datetime.fromisoformat, default=None)
    p_analytics.set_defaults(func=_analytics)

    # budget
    p_budget = subparsers.add_parser("budget", help="Monthly budget utilisation")
    p_budget.add_argument("--limit", type=float, default=settings.MONTHLY_BUDGET_LIMIT)
    p_budget.add_argument("--month", default=None, help="YYYY-MM")
    p_budget.set_defaults(func=_budget)

    # trend
    p_trend = subparsers.add_parser("trend", help="Income and expense over time")
    p_trend.add_argument("--period", choices=["daily", "weekly", "monthly"], default="weekly")
    p_trend.add_argument("--month", default=None, help="YYYY-MM")
    p_trend.set_defaults(func=_trend)

    # parse-sms
    p_parse = subparsers.add_parser("parse-sms", help="Parse one SMS into an expense")
    p_parse.add_argument("--message", required=True)
    p_parse.set_defaults(func=_parse_sms)

    # listen-sms
    p_listen = subparsers.add_parser(
        "listen-sms", help="Forward SMS envelopes read from stdin, one JSON object per line"
    )
    p_listen.set_defaults(func=_listen_sms)

    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    _run(args.func(args))


if __name__ == "__main__":
    main()
