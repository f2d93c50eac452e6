from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class TransactionType(str, enum.Enum):
    DEBITED = "debited"
    CREDITED = "credited"


class Expense(BaseModel):
    external_id: str | None = None
    amount: float = Field(ge=0)
    currency: str
    merchant: str
    transaction_type: TransactionType | None = None
    category: str | None = None
    created_at: datetime | None = None
    user_id: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ParsedMessage(BaseModel):
    success: bool
    expense: Expense | None = None
    message: str | None = None
