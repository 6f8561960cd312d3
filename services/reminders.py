from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Optional

from core.logs import notify_logger
from core.settings import REMINDERS, ReminderSettings
from datetime_utils import days_between, next_wall_clock, parse_day
from services.lending import LendingService
from services.notifications import NotificationService
from services.results import Result


_sleep = asyncio.sleep


class ReminderScheduler:
    """Daily job turning unpaid installments into reminder and overdue messages."""

    def __init__(
        self,
        lending: LendingService,
        notifications: NotificationService,
        *,
        settings: ReminderSettings = REMINDERS,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.lending = lending
        self.notifications = notifications
        self.settings = settings
        self.clock = clock
        self.logger = logger or notify_logger()
        self._task: Optional[asyncio.Task] = None

    def seconds_until_next_run(self, now: Optional[datetime] = None, *, ran_on: Optional[date] = None) -> float:
        """Delay to the next run time; a day that already had its run is skipped."""
        current = now or self.clock()
        target = next_wall_clock(current, self.settings.hour, self.settings.minute)
        if ran_on is not None and target.date() <= ran_on:
            target = next_wall_clock(target, self.settings.hour, self.settings.minute)
        return max((target - current).total_seconds(), 1.0)

    async def run_once(self, today: Optional[date] = None) -> Result:
        day = today or self.clock().date()
        installments = await self.lending.list_installments()
        if not installments.success:
            self.logger.error("Reminder run could not load installments: %s", installments.error)
            return installments

        selected = queued = rejected = 0
        for row in installments.data:
            if row.get("status") == "paid":
                continue
            loan = row.get("loan") or {}
            if loan.get("status") == "closed":
                continue
            due = parse_day(row.get("due_date"))
            if due is None:
                continue
            delta = days_between(day, due)
            if delta > self.settings.lookahead_days:
                continue
            customer = row.get("customer") or {}
            if not customer.get("phone"):
                continue

            selected += 1
            if delta < 0:
                outcome = self.notifications.send_overdue_notice(row, loan, customer, today=day)
            else:
                outcome = self.notifications.send_emi_reminder(row, loan, customer, today=day)
            if outcome.success:
                queued += 1
            else:
                rejected += 1
                self.logger.warning("Reminder for EMI %s not queued: %s", row.get("id"), outcome.error)

        self.logger.info("Reminder run %s: %d selected, %d queued", day.isoformat(), selected, queued)
        return Result.ok({"selected": selected, "queued": queued, "rejected": rejected})

    def start(self) -> None:
        if self._task and not self._task.done():
            return

        async def _loop() -> None:
            ran_on: Optional[date] = None
            while True:
                # Delay comes from the wall clock on every pass.
                await _sleep(self.seconds_until_next_run(ran_on=ran_on))
                ran_on = self.clock().date()
                try:
                    await self.run_once(ran_on)
                except Exception as exc:
                    self.logger.error("Reminder run crashed: %s", exc)

        self._task = asyncio.create_task(_loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


__all__ = ["ReminderScheduler"]
