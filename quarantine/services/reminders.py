"""
Reminder scheduling for quarantine status changes.

Two reminders are driven by the status:
- self-retest: recurring while quarantine is active
- quarantine end: one-shot at the computed quarantine end

Delivery to the user is external; fired reminders are handed to handler
callables (sync or async). All operations are idempotent so the status
pipeline can call `ensure_*` for every forwarded status.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, Field

from quarantine.domain.models import Reminder, ReminderKind

logger = structlog.get_logger(__name__)

ReminderHandler = Callable[[Reminder], Awaitable[Any] | Any]


class ReminderScheduler(Protocol):
    """
    Boundary the status pipeline drives.

    Calling `ensure_*` twice for the same target must not create duplicates.
    """

    async def ensure_self_retest_reminder(self) -> None: ...

    async def cancel_self_retest_reminder(self) -> None: ...

    async def ensure_quarantine_end_reminder(self, at: datetime) -> None: ...

    async def cancel_quarantine_end_reminder(self) -> None: ...


class ReminderSchedulerConfig(BaseModel):
    """Configuration with validation and smart defaults."""

    self_retest_interval_hours: float = Field(
        default=6.0,
        gt=0.0,
        description="Interval of the recurring self-retest reminder in hours.",
    )


def _log_reminder_handler(reminder: Reminder) -> None:
    logger.info("reminder_fired", kind=reminder.kind.value, fire_at=reminder.fire_at.isoformat())


class AsyncioReminderScheduler:
    """
    In-process reminder scheduler backed by asyncio tasks.

    Self-retest keeps an already armed schedule. The quarantine-end reminder is
    replaced only when its target changes, and a target that already fired is
    not fired again.
    """

    def __init__(
        self,
        config: ReminderSchedulerConfig | None = None,
        handlers: Sequence[ReminderHandler] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or ReminderSchedulerConfig()
        self.handlers: list[ReminderHandler] = list(handlers or [_log_reminder_handler])
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="reminder_scheduler")

        self._self_retest_task: asyncio.Task[None] | None = None
        self._quarantine_end_task: asyncio.Task[None] | None = None
        self._quarantine_end_at: datetime | None = None

    @property
    def self_retest_armed(self) -> bool:
        return self._self_retest_task is not None and not self._self_retest_task.done()

    @property
    def quarantine_end_at(self) -> datetime | None:
        """Target of the pending (or already delivered) quarantine-end reminder."""
        return self._quarantine_end_at

    @property
    def quarantine_end_armed(self) -> bool:
        return self._quarantine_end_task is not None and not self._quarantine_end_task.done()

    async def ensure_self_retest_reminder(self) -> None:
        if self.self_retest_armed:
            return
        self._self_retest_task = asyncio.create_task(
            self._run_self_retest(), name="self-retest-reminder"
        )
        self.logger.info(
            "self_retest_reminder_scheduled",
            interval_hours=self.config.self_retest_interval_hours,
        )

    async def cancel_self_retest_reminder(self) -> None:
        task, self._self_retest_task = self._self_retest_task, None
        if await self._cancel(task):
            self.logger.info("self_retest_reminder_cancelled")

    async def ensure_quarantine_end_reminder(self, at: datetime) -> None:
        if at.utcoffset() is None:
            raise ValueError("Quarantine end reminder requires a timezone-aware datetime")
        if self._quarantine_end_at == at and self._quarantine_end_task is not None:
            return
        await self._cancel(self._quarantine_end_task)
        self._quarantine_end_at = at
        self._quarantine_end_task = asyncio.create_task(
            self._run_quarantine_end(at), name="quarantine-end-reminder"
        )
        self.logger.info("quarantine_end_reminder_scheduled", at=at.isoformat())

    async def cancel_quarantine_end_reminder(self) -> None:
        task, self._quarantine_end_task = self._quarantine_end_task, None
        self._quarantine_end_at = None
        if await self._cancel(task):
            self.logger.info("quarantine_end_reminder_cancelled")

    async def close(self) -> None:
        """Cancel every pending reminder."""
        await self.cancel_self_retest_reminder()
        await self.cancel_quarantine_end_reminder()

    async def _cancel(self, task: asyncio.Task[None] | None) -> bool:
        if task is None or task.done():
            return False
        task.cancel()
        # Waits without trapping a cancellation aimed at the caller
        await asyncio.wait([task])
        return True

    async def _run_self_retest(self) -> None:
        interval = timedelta(hours=self.config.self_retest_interval_hours).total_seconds()
        while True:
            await asyncio.sleep(interval)
            await self._dispatch(Reminder(kind=ReminderKind.SELF_RETEST, fire_at=self._clock()))

    async def _run_quarantine_end(self, at: datetime) -> None:
        delay = (at - self._clock()).total_seconds()
        if delay > 0:
            await asyncio.sleep(delay)
        await self._dispatch(Reminder(kind=ReminderKind.QUARANTINE_END, fire_at=at))

    async def _dispatch(self, reminder: Reminder) -> None:
        for handler in self.handlers:
            try:
                result = handler(reminder)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "reminder_dispatch_failed", error=str(e), kind=reminder.kind.value
                )
