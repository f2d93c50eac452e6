from __future__ import annotations

from expense_client.sms.listener import SmsListener, SmsSubscription
from expense_client.sms.sources import LocalSmsSource, PermissionStatus, SmsEventSource

__all__ = [
    "LocalSmsSource",
    "PermissionStatus",
    "SmsEventSource",
    "SmsListener",
    "SmsSubscription",
]
