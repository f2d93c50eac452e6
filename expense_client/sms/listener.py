from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from expense_client.api.messages import MessageService
from expense_client.exceptions import SmsPermissionDenied
from expense_client.schemas.sms import SmsEnvelope
from expense_client.sms.sources import PermissionStatus, SmsEventSource

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str], Awaitable[None] | None]


class SmsSubscription:
    """Handle on an active SMS subscription.

    ``unsubscribe`` stops delivery of further events. ``aclose`` also waits
    for messages that are still being forwarded.
    """

    def __init__(self, remove: Callable[[], None], tasks: set[asyncio.Task[None]]) -> None:
        self._remove = remove
        self._tasks = tasks
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        logger.info("Cleaning up SMS listener")
        self._remove()
        self._active = False

    async def aclose(self) -> None:
        self.unsubscribe()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __enter__(self) -> SmsSubscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    async def __aenter__(self) -> SmsSubscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class SmsListener:
    """Forwards every received SMS body to the backend parser.

    Each message is handled in its own task: there is no queue, no ordering
    between messages, and a failing message never affects the next one.
    """

    def __init__(
        self,
        source: SmsEventSource,
        message_service: MessageService,
        on_message: MessageCallback | None = None,
        enabled: bool = True,
    ) -> None:
        self.source = source
        self.message_service = message_service
        self.on_message = on_message
        self.enabled = enabled

    async def listen(self) -> SmsSubscription:
        if not self.enabled:
            raise SmsPermissionDenied("SMS listening is disabled")
        permission = await self.source.request_permission()
        logger.info("SMS permission result: %s", permission.value)
        if permission != PermissionStatus.GRANTED:
            raise SmsPermissionDenied(f"SMS permission {permission.value}")

        logger.info("Setting up SMS listener on %s source", self.source.name or "unnamed")
        loop = asyncio.get_running_loop()
        tasks: set[asyncio.Task[None]] = set()

        def handle(raw: str) -> None:
            task = loop.create_task(self._process(raw))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        remove = self.source.add_listener(handle)
        return SmsSubscription(remove, tasks)

    async def _process(self, raw: str) -> None:
        try:
            envelope = SmsEnvelope.model_validate_json(raw)
            logger.info("Processing SMS message")
            await self.message_service.submit(envelope.message_body)
            if self.on_message is not None:
                result = self.on_message(envelope.message_body)
                if inspect.isawaitable(result):
                    await result
        except Exception:
            logger.exception("Error processing SMS")
