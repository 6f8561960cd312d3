from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from core.logs import notify_logger
from core.priorities import normalize_priority, priority_rank
from core.settings import NOTIFY, NotificationSettings
from datetime_utils import ensure_utc
from models.outbound_message import OutboundMessage
from services.errors import LocalStoreFailure, ValidationFailure
from services.gateways import DeliveryGateway, DeliveryResult, normalize_recipient
from services.operation_log import OperationLog
from services.results import Result


def _dispatch_order(message: OutboundMessage):
    return (-priority_rank(message.priority), ensure_utc(message.created_at), message.id or 0)


class NotificationQueue:
    """Priority-ordered outbound queue, one dispatch per tick.

    Message states: ``pending -> sent``, ``pending -> pending`` (requeued while
    attempts < max) and ``pending -> failed`` once attempts reach the maximum.
    ``sent`` and ``failed`` are terminal.
    """

    def __init__(
        self,
        log: OperationLog,
        gateway: DeliveryGateway,
        *,
        settings: NotificationSettings = NOTIFY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.log = log
        self.gateway = gateway
        self.settings = settings
        self.logger = logger or notify_logger()
        self._active: List[OutboundMessage] = []
        self._loop_task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def active(self) -> List[OutboundMessage]:
        return list(self._active)

    def enqueue(
        self,
        recipient: str,
        body: str,
        category: str = "manual",
        priority: str = "normal",
    ) -> Result:
        try:
            phone, text, level = self._validate(recipient, body, priority)
        except ValidationFailure as exc:
            self.logger.warning("Message rejected: %s", exc)
            return Result.fail(exc)
        try:
            message = self.log.append_message(phone, text, category=category, priority=level)
        except LocalStoreFailure as exc:
            self.logger.error("Could not persist message for %s: %s", phone, exc)
            return Result.fail(exc)
        self._active.append(message)
        self.logger.debug("Queued %s message %s (%s)", category, message.id, level)
        return Result.ok(message)

    def load_pending(self) -> int:
        """Put persisted pending messages back into the active queue."""
        known = {m.id for m in self._active}
        loaded = 0
        for message in self.log.list_messages(status="pending"):
            if message.id in known:
                continue
            if message.attempts >= self.settings.max_attempts:
                message.status = "failed"
                self._persist(message)
                continue
            self._active.append(message)
            loaded += 1
        if loaded:
            self.logger.info("Loaded %d pending messages", loaded)
        return loaded

    async def tick(self) -> Optional[OutboundMessage]:
        """Dispatch the highest-priority message; returns it or ``None`` when idle."""
        if not self._active:
            return None
        self._active.sort(key=_dispatch_order)
        message = self._active.pop(0)

        try:
            outcome = await self.gateway.send(message.recipient, message.body)
        except Exception as exc:
            outcome = DeliveryResult.rejected(exc)

        if outcome.success:
            message.status = "sent"
            message.provider_message_id = outcome.message_id
            message.last_error = None
            self.logger.info("Message %s sent via %s", message.id, getattr(self.gateway, "name", "gateway"))
        else:
            message.attempts = min(message.attempts + 1, self.settings.max_attempts)
            message.last_error = outcome.error
            if message.attempts < self.settings.max_attempts:
                message.status = "pending"
                self._active.append(message)
                self.logger.warning(
                    "Message %s failed (attempt %d): %s", message.id, message.attempts, outcome.error
                )
            else:
                message.status = "failed"
                self.logger.error("Message %s failed permanently: %s", message.id, outcome.error)

        self._persist(message)
        return message

    def stats(self) -> Result:
        try:
            return Result.ok(self.log.message_stats())
        except LocalStoreFailure as exc:
            return Result.fail(exc)

    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._loop_task and not self._loop_task.done():
            return

        async def _loop() -> None:
            while True:
                await asyncio.sleep(self.settings.tick_interval_sec)
                # A slow send must not hold back the next tick.
                task = asyncio.create_task(self.tick())
                self._ticks.add(task)
                task.add_done_callback(self._tick_done)

        self._loop_task = asyncio.create_task(_loop())

    async def stop(self) -> None:
        tasks = [t for t in (self._loop_task, *self._ticks) if t is not None]
        self._loop_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._ticks.clear()

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("Dispatch tick crashed: %s", task.exception())

    def _validate(self, recipient: str, body: str, priority: str):
        phone = normalize_recipient(recipient)
        if len(phone) < self.settings.min_recipient_digits:
            raise ValidationFailure("Invalid phone number")
        if not body or not body.strip():
            raise ValidationFailure("Message body is empty")
        level = normalize_priority(priority)
        if level is None:
            raise ValidationFailure(f"Unsupported priority: {priority}")
        return phone, body, level

    def _persist(self, message: OutboundMessage) -> None:
        try:
            self.log.update_message(message)
        except LocalStoreFailure as exc:
            self.logger.error("Could not persist state of message %s: %s", message.id, exc)


__all__ = ["NotificationQueue"]
