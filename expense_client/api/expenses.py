from __future__ import annotations

from pydantic import ValidationError

from expense_client.api.client import ApiClient, Method
from expense_client.exceptions import MalformedServerResponse
from expense_client.schemas.expense import Expense, TransactionType


def _to_expense(data: object) -> Expense:
    try:
        return Expense.model_validate(data)
    except ValidationError as exc:
        raise MalformedServerResponse(f"Invalid expense record from server: {exc}") from exc


def _to_expenses(data: object) -> list[Expense]:
    if not isinstance(data, list):
        return []
    return [_to_expense(item) for item in data]


class ExpenseService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def get_all_expenses(self) -> list[Expense]:
        data = await self.client.request(Method.GET, "expense/v1/getExpense")
        return _to_expenses(data)

    async def add_expense(self, expense: Expense) -> Expense:
        data = await self.client.request(
            Method.POST, "expense/v1/addExpense", expense.to_payload()
        )
        return _to_expense(data)

    async def update_expense(self, expense: Expense) -> Expense:
        if not expense.external_id:
            raise ValueError("Expense ID is required for update")
        data = await self.client.request(
            Method.PATCH, "expense/v1/updateExpense", expense.to_payload()
        )
        return _to_expense(data)

    async def get_expenses_by_type(
        self,
        transaction_type: TransactionType | str,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> list[Expense]:
        params = {"transactionType": TransactionType(transaction_type).value}
        if start_time:
            params["startTime"] = start_time
        if end_time:
            params["endTime"] = end_time
        data = await self.client.request(
            Method.GET, "expense/v1/getExpense/by-type", params=params
        )
        return _to_expenses(data)

    async def get_expenses_by_merchant(
        self,
        merchant: str,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> list[Expense]:
        if start_time and end_time:
            data = await self.client.request(
                Method.GET,
                "expense/v1/getExpense/by-merchant-date",
                params={"merchant": merchant, "startTime": start_time, "endTime": end_time},
            )
        else:
            data = await self.client.request(
                Method.GET,
                "expense/v1/getExpense/by-merchant",
                params={"merchant": merchant},
            )
        return _to_expenses(data)
