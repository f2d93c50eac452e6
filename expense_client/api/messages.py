from __future__ import annotations

import logging

from pydantic import ValidationError

from expense_client.api.client import ApiClient, Method
from expense_client.exceptions import ClientError
from expense_client.schemas.expense import Expense, ParsedMessage, TransactionType
from expense_client.schemas.sms import MessageParseRequest

logger = logging.getLogger(__name__)

MESSAGE_ENDPOINT = "v1/ds/message"


class MessageService:
    """Sends raw SMS bodies to the backend parser."""

    def __init__(self, client: ApiClient, default_currency: str = "INR") -> None:
        self.client = client
        self.default_currency = default_currency

    async def submit(self, message: str) -> object:
        return await self.client.request(
            Method.POST, MESSAGE_ENDPOINT, MessageParseRequest(message=message).model_dump()
        )

    async def parse_sms_message(self, message: str) -> ParsedMessage:
        try:
            data = await self.submit(message)
            raw = data if isinstance(data, dict) else {}
            expense = Expense.model_validate(
                {
                    **raw,
                    "merchant": raw.get("merchant") or "Unknown",
                    "amount": raw.get("amount") or 0,
                    "currency": raw.get("currency") or self.default_currency,
                    "transaction_type": raw.get("transaction_type") or TransactionType.DEBITED,
                }
            )
        except (ClientError, ValidationError) as exc:
            logger.error("SMS parsing error: %s", exc)
            return ParsedMessage(success=False, message=str(exc) or "Failed to parse SMS message")
        return ParsedMessage(success=True, expense=expense)
