from __future__ import annotations

import logging

from expense_client.api.expenses import ExpenseService
from expense_client.api.messages import MessageService
from expense_client.exceptions import ClientError
from expense_client.schemas.analytics import AnalyticsSummary, DateWindow
from expense_client.schemas.expense import Expense, ParsedMessage
from expense_client.services.analytics_service import aggregate
from expense_client.services.session_service import SessionStore

logger = logging.getLogger(__name__)


class ExpenseRepository:
    """In-memory cache of the signed-in user's expenses.

    The cache is rebuilt wholesale by ``fetch_expenses`` and patched in place
    after successful adds and updates. It is never persisted.
    """

    def __init__(
        self,
        expense_service: ExpenseService,
        session_store: SessionStore,
        message_service: MessageService | None = None,
    ) -> None:
        self.expense_service = expense_service
        self.session_store = session_store
        self.message_service = message_service
        self.expenses: list[Expense] = []
        self.is_loading = False
        self.error: str | None = None

    async def fetch_expenses(self) -> None:
        if not self.session_store.state.is_authenticated:
            return

        self.is_loading = True
        self.error = None
        try:
            self.expenses = await self.expense_service.get_all_expenses()
        except ClientError as exc:
            logger.exception("Failed to fetch expenses")
            self.error = str(exc) or "Failed to fetch expenses"
        finally:
            self.is_loading = False

    async def refresh_expenses(self) -> None:
        await self.fetch_expenses()

    async def add_expense(self, expense: Expense) -> Expense:
        self.is_loading = True
        self.error = None
        try:
            created = await self.expense_service.add_expense(expense)
        except ClientError as exc:
            self.error = str(exc) or "Failed to add expense"
            raise
        finally:
            self.is_loading = False
        self.expenses = [created, *self.expenses]
        return created

    async def update_expense(self, expense: Expense) -> Expense:
        self.is_loading = True
        self.error = None
        try:
            updated = await self.expense_service.update_expense(expense)
        except (ClientError, ValueError) as exc:
            self.error = str(exc) or "Failed to update expense"
            raise
        finally:
            self.is_loading = False
        self.expenses = [
            updated if item.external_id == expense.external_id else item
            for item in self.expenses
        ]
        return updated

    async def get_expenses_by_merchant(self, merchant: str) -> list[Expense]:
        self.is_loading = True
        self.error = None
        try:
            return await self.expense_service.get_expenses_by_merchant(merchant)
        except ClientError as exc:
            self.error = str(exc) or "Failed to fetch expenses by merchant"
            raise
        finally:
            self.is_loading = False

    async def get_expense_analytics(self, window: DateWindow | None = None) -> AnalyticsSummary:
        self.is_loading = True
        self.error = None
        try:
            records = await self.expense_service.get_all_expenses()
        except ClientError as exc:
            self.error = str(exc) or "Failed to get expense analytics"
            raise
        finally:
            self.is_loading = False
        return aggregate(records, window)

    async def parse_sms_message(self, message: str) -> ParsedMessage:
        if self.message_service is None:
            raise RuntimeError("ExpenseRepository was created without a MessageService")
        return await self.message_service.parse_sms_message(message)
