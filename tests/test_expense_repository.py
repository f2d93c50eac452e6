from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from expense_client.api.client import ApiClient
from expense_client.api.expenses import ExpenseService
from expense_client.api.messages import MessageService
from expense_client.exceptions import MalformedServerResponse, RequestFailed
from expense_client.schemas.analytics import DateWindow
from expense_client.schemas.expense import Expense, TransactionType
from expense_client.services.expense_repository import ExpenseRepository
from expense_client.services.session_service import SessionManager
from fake_backend import FakeBackend


@pytest.fixture()
def repository(api_client: ApiClient, session: SessionManager) -> ExpenseRepository:
    return ExpenseRepository(
        ExpenseService(api_client), session.store, MessageService(api_client)
    )


async def test_fetch_is_noop_when_not_authenticated(
    repository: ExpenseRepository, backend: FakeBackend
):
    await repository.fetch_expenses()

    assert repository.expenses == []
    assert backend.calls["expense/v1/getExpense"] == 0


async def test_fetch_replaces_cache(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    backend.add_record(amount=10, merchant="A", transaction_type="debited")
    await session.login("alice", "secret")

    repository.expenses = [Expense(amount=1, currency="INR", merchant="stale")]
    await repository.fetch_expenses()

    assert [e.merchant for e in repository.expenses] == ["A"]
    assert repository.is_loading is False
    assert repository.error is None


async def test_fetch_failure_is_recorded_not_raised(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    await session.login("alice", "secret")
    backend.fail("expense/v1/getExpense", 500, {"message": "down"})

    await repository.refresh_expenses()

    assert repository.error == "down"
    assert repository.is_loading is False


async def test_add_prepends_created_expense(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    backend.add_record(amount=10, merchant="Old", transaction_type="debited")
    await session.login("alice", "secret")
    await repository.fetch_expenses()

    created = await repository.add_expense(
        Expense(amount=99, currency="INR", merchant="New", transaction_type=TransactionType.DEBITED)
    )

    assert created.external_id is not None
    assert created.created_at is not None
    assert [e.merchant for e in repository.expenses] == ["New", "Old"]


async def test_update_replaces_matching_entry(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    first = backend.add_record(amount=10, merchant="A", transaction_type="debited")
    backend.add_record(amount=20, merchant="B", transaction_type="debited")
    await session.login("alice", "secret")
    await repository.fetch_expenses()

    updated = await repository.update_expense(
        Expense(external_id=first["external_id"], amount=15, currency="INR", merchant="A2")
    )

    assert updated.amount == 15
    assert [(e.merchant, e.amount) for e in repository.expenses] == [("A2", 15), ("B", 20)]


async def test_update_without_id_is_rejected(repository: ExpenseRepository, backend: FakeBackend):
    with pytest.raises(ValueError):
        await repository.update_expense(Expense(amount=1, currency="INR", merchant="x"))

    assert repository.error == "Expense ID is required for update"
    assert backend.calls["expense/v1/updateExpense"] == 0


async def test_add_failure_records_error_and_raises(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    await session.login("alice", "secret")
    backend.fail("expense/v1/addExpense", 400, {"error": "amount missing"})

    with pytest.raises(RequestFailed):
        await repository.add_expense(Expense(amount=1, currency="INR", merchant="x"))

    assert repository.error == "amount missing"
    assert repository.expenses == []


async def test_get_expense_analytics_fetches_and_aggregates(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    backend.add_record(
        amount=300, merchant="Uber", category="Travel", transaction_type="debited",
        created_at="2025-03-03T10:00:00+00:00",
    )
    backend.add_record(
        amount=100, merchant="Uber", category="Travel", transaction_type="debited",
        created_at="2025-01-03T10:00:00+00:00",
    )
    backend.add_record(amount=1000, merchant="Employer", transaction_type="credited")
    await session.login("alice", "secret")

    summary = await repository.get_expense_analytics(
        DateWindow(start=datetime(2025, 3, 1, tzinfo=UTC), end=datetime(2025, 3, 31, tzinfo=UTC))
    )

    assert summary.total_expense == 300
    assert summary.total_income == 1000
    assert summary.categories[0].name == "Travel"


async def test_get_expenses_by_merchant(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    backend.add_record(amount=1, merchant="Swiggy", transaction_type="debited")
    backend.add_record(amount=2, merchant="Zomato", transaction_type="debited")
    await session.login("alice", "secret")

    rows = await repository.get_expenses_by_merchant("Swiggy")

    assert [r.amount for r in rows] == [1]


async def test_parse_sms_delegates_to_message_service(session: SessionManager):
    messages = AsyncMock()
    messages.parse_sms_message = AsyncMock(return_value="parsed")
    repository = ExpenseRepository(AsyncMock(), session.store, messages)

    assert await repository.parse_sms_message("Rs 10 debited at X") == "parsed"
    messages.parse_sms_message.assert_awaited_once_with("Rs 10 debited at X")


async def test_fetch_malformed_record_is_recorded_not_raised(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    backend.add_record(merchant="Y", transaction_type="debited")
    await session.login("alice", "secret")
    repository.expenses = [Expense(amount=1, currency="INR", merchant="cached")]

    await repository.fetch_expenses()

    assert repository.error is not None
    assert repository.error.startswith("Invalid expense record from server")
    assert [e.merchant for e in repository.expenses] == ["cached"]
    assert repository.is_loading is False


async def test_add_malformed_reply_records_error(
    repository: ExpenseRepository, session: SessionManager, backend: FakeBackend
):
    await session.login("alice", "secret")
    backend.fail("expense/v1/addExpense", 200, {"merchant": "x"})

    with pytest.raises(MalformedServerResponse):
        await repository.add_expense(Expense(amount=1, currency="INR", merchant="x"))

    assert repository.error.startswith("Invalid expense record from server")
    assert repository.expenses == []
