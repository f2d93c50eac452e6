from __future__ import annotations

from pydantic import BaseModel, Field


class SmsEnvelope(BaseModel):
    message_body: str = Field(alias="messageBody")
    sender_phone_number: str | None = Field(default=None, alias="senderPhoneNumber")

    model_config = {"populate_by_name": True}


class MessageParseRequest(BaseModel):
    message: str
