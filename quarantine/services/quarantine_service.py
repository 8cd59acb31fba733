"""
Quarantine status service: keeps a live quarantine status in sync with the
event store and the configuration provider.

Pipeline (single consumer task, so side effects never interleave):
1. Combine the latest value of every upstream source
2. Debounce bursts of related writes
3. Derive the status
4. Detect a lapsed limited quarantine and raise the end banner
5. Drop statuses equal to the last forwarded one
6. Update reminders, then publish to subscribers
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from quarantine.config import AppConfig, get_config
from quarantine.domain.models import (
    Free,
    JailedForever,
    JailedLimited,
    QuarantinePrerequisites,
    QuarantineStatus,
    WarningType,
)
from quarantine.observability import DiagnosticSink, StructlogDiagnosticSink, configure_logging
from quarantine.services.configuration import ConfigurationProvider
from quarantine.services.event_store import PreferenceStore, QuarantineEventStore
from quarantine.services.reminders import (
    AsyncioReminderScheduler,
    ReminderHandler,
    ReminderScheduler,
    ReminderSchedulerConfig,
)
from quarantine.services.status import derive_quarantine_status
from quarantine.services.streams import LatestValues, debounce, observe_async

logger = structlog.get_logger(__name__)

CONFIGURATION = "configuration"
FIRST_MEDICAL_CONFIRMATION = "first_medical_confirmation"
FIRST_SELF_DIAGNOSIS = "first_self_diagnosis"
LAST_SELF_DIAGNOSIS = "last_self_diagnosis"
LAST_RED_CONTACT = "last_red_contact"
LAST_YELLOW_CONTACT = "last_yellow_contact"
LAST_SELF_MONITORING_INSTRUCTION = "last_self_monitoring_instruction"

UPSTREAM_SOURCES = (
    CONFIGURATION,
    FIRST_MEDICAL_CONFIRMATION,
    FIRST_SELF_DIAGNOSIS,
    LAST_SELF_DIAGNOSIS,
    LAST_RED_CONTACT,
    LAST_YELLOW_CONTACT,
    LAST_SELF_MONITORING_INSTRUCTION,
)

_END_OF_STREAM: Any = object()


class QuarantineServiceConfig(BaseModel):
    """Pipeline tuning."""

    debounce_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Quiet period after the last upstream change before deriving.",
    )


def _now() -> datetime:
    return datetime.now(UTC)


def is_quarantine_lapse(previous: QuarantineStatus | None, current: QuarantineStatus) -> bool:
    """A time-limited quarantine turned into no quarantine."""
    return isinstance(previous, JailedLimited) and isinstance(current, Free)


class QuarantineService:
    """
    Reactive aggregator over the quarantine event store.

    Mutators are fire-and-forget writes; the resulting status is only
    observable through `observe_quarantine_status()` while a `session()` is
    active.
    """

    def __init__(
        self,
        store: QuarantineEventStore,
        configuration_provider: ConfigurationProvider,
        reminder_scheduler: ReminderScheduler,
        config: QuarantineServiceConfig | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.store = store
        self.configuration_provider = configuration_provider
        self.reminder_scheduler = reminder_scheduler
        self.config = config or QuarantineServiceConfig()
        self.diagnostics = diagnostics or StructlogDiagnosticSink()
        self.logger = logger.bind(component="quarantine_service")

        self._current_status: QuarantineStatus | None = None
        self._subscribers: set[asyncio.Queue[Any]] = set()
        self._unsubscribers: list[Callable[[], None]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._updates: asyncio.Queue[QuarantinePrerequisites] | None = None
        self._latest: LatestValues | None = None
        self._pipeline_task: asyncio.Task[None] | None = None
        self._is_running = False

    @property
    def current_status(self) -> QuarantineStatus | None:
        """Last forwarded status, `None` before the first emission."""
        return self._current_status

    @property
    def is_running(self) -> bool:
        return self._is_running

    @asynccontextmanager
    async def session(self) -> AsyncIterator["QuarantineService"]:
        """
        Run the status pipeline for the lifetime of the context.

        On exit every upstream subscription is dropped, the pipeline task is
        cancelled and status subscribers are released.
        """
        if self._is_running:
            raise RuntimeError("Quarantine service session already active")

        self._loop = asyncio.get_running_loop()
        self._updates = asyncio.Queue()
        self._latest = LatestValues(UPSTREAM_SOURCES)
        self._is_running = True
        self._pipeline_task = asyncio.create_task(
            self._run_pipeline(), name="quarantine-status-pipeline"
        )
        try:
            self._subscribe_upstream()
            self.logger.info("quarantine_session_started")
            yield self
        finally:
            self._is_running = False
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()

            task, self._pipeline_task = self._pipeline_task, None
            if task is not None:
                task.cancel()
                await asyncio.wait([task])

            for queue in list(self._subscribers):
                queue.put_nowait(_END_OF_STREAM)
            self.logger.info("quarantine_session_ended")

    def _subscribe_upstream(self) -> None:
        fields = {
            FIRST_MEDICAL_CONFIRMATION: self.store.first_medical_confirmation,
            FIRST_SELF_DIAGNOSIS: self.store.first_self_diagnosis,
            LAST_SELF_DIAGNOSIS: self.store.last_self_diagnosis,
            LAST_RED_CONTACT: self.store.last_red_contact,
            LAST_YELLOW_CONTACT: self.store.last_yellow_contact,
            LAST_SELF_MONITORING_INSTRUCTION: self.store.last_self_monitoring_instruction,
        }
        self._unsubscribers.append(
            self.configuration_provider.observe(self._listener_for(CONFIGURATION))
        )
        for source, preference in fields.items():
            self._unsubscribers.append(preference.observe(self._listener_for(source)))

    def _listener_for(self, source: str) -> Callable[[Any], None]:
        # Upstream writers may run on any thread
        def listener(value: Any) -> None:
            loop = self._loop
            if loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(self._accept, source, value)

        return listener

    def _accept(self, source: str, value: Any) -> None:
        if not self._is_running or self._latest is None or self._updates is None:
            return
        self._latest.update(source, value)
        if not self._latest.is_complete:
            return

        values = self._latest.snapshot()
        self._updates.put_nowait(
            QuarantinePrerequisites(
                configuration=values[CONFIGURATION],
                first_medical_confirmation=values[FIRST_MEDICAL_CONFIRMATION],
                last_self_diagnosis=values[LAST_SELF_DIAGNOSIS],
                last_red_contact=values[LAST_RED_CONTACT],
                last_yellow_contact=values[LAST_YELLOW_CONTACT],
                last_self_monitoring_instruction=values[LAST_SELF_MONITORING_INSTRUCTION],
            )
        )

    async def _run_pipeline(self) -> None:
        assert self._updates is not None
        async for prerequisites in debounce(self._updates, self.config.debounce_seconds):
            try:
                status = derive_quarantine_status(prerequisites, self.diagnostics)
                await self._handle_status(status)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The status stream must survive a failing step
                self.logger.exception("quarantine_status_update_failed", error=str(e))

    async def _handle_status(self, status: QuarantineStatus) -> None:
        previous = self._current_status

        if is_quarantine_lapse(previous, status):
            self.set_show_quarantine_end()
            self.logger.info("quarantine_end_banner_raised")

        if status == previous:
            return

        self._current_status = status
        self.logger.info("status_forwarded", status=status.kind, **_status_context(status))
        await self._update_reminders(status)

        for queue in list(self._subscribers):
            queue.put_nowait(status)

    async def _update_reminders(self, status: QuarantineStatus) -> None:
        """Schedule, reschedule or cancel reminders for a forwarded status."""
        scheduler = self.reminder_scheduler
        try:
            if isinstance(status, JailedLimited):
                await scheduler.ensure_self_retest_reminder()
                await scheduler.ensure_quarantine_end_reminder(status.end)
            elif isinstance(status, JailedForever):
                await scheduler.ensure_self_retest_reminder()
                await scheduler.cancel_quarantine_end_reminder()
            else:
                if not status.self_monitoring:
                    await scheduler.cancel_self_retest_reminder()
                await scheduler.cancel_quarantine_end_reminder()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception("reminder_update_failed", error=str(e), status=status.kind)

    async def observe_quarantine_status(self) -> AsyncIterator[QuarantineStatus]:
        """
        Stream of distinct quarantine statuses.

        New subscribers first receive the last forwarded status, if any. The
        stream ends when the session ends.
        """
        if not self._is_running:
            raise RuntimeError("Quarantine service not running - use session()")

        queue: asyncio.Queue[Any] = asyncio.Queue()
        if self._current_status is not None:
            queue.put_nowait(self._current_status)
        self._subscribers.add(queue)
        try:
            while True:
                status = await queue.get()
                if status is _END_OF_STREAM:
                    return
                yield status
        finally:
            self._subscribers.discard(queue)

    def observe_show_quarantine_end(self) -> AsyncIterator[bool]:
        return observe_async(self.store.show_quarantine_end.observe)

    def observe_date_of_first_medical_confirmation(self) -> AsyncIterator[datetime | None]:
        return observe_async(self.store.first_medical_confirmation.observe)

    def observe_date_of_first_self_diagnose(self) -> AsyncIterator[datetime | None]:
        return observe_async(self.store.first_self_diagnosis.observe)

    def report_medical_confirmation(self, time_of_report: datetime | None = None) -> None:
        self.store.first_medical_confirmation.set(time_of_report or _now())

    def report_positive_self_diagnose(self, time_of_report: datetime | None = None) -> None:
        time_of_report = time_of_report or _now()
        if self.store.first_self_diagnosis.get() is None:
            self.store.first_self_diagnosis.set(time_of_report)
        self.store.last_self_diagnosis.set(time_of_report)

    def revoke_medical_confirmation(self) -> None:
        self.store.first_medical_confirmation.clear()

    def revoke_positive_self_diagnose(self) -> None:
        self.store.first_self_diagnosis.clear()
        self.store.last_self_diagnosis.clear()

    def received_warning(
        self, warning_type: WarningType, time_of_contact: datetime | None = None
    ) -> None:
        time_of_contact = time_of_contact or _now()
        match WarningType(warning_type):
            case WarningType.RED:
                self.store.last_red_contact.set(time_of_contact)
            case WarningType.YELLOW:
                self.store.last_yellow_contact.set(time_of_contact)

    def report_self_monitoring(self, time_of_report: datetime | None = None) -> None:
        self.store.last_self_monitoring_instruction.set(time_of_report or _now())

    def revoke_self_monitoring(self) -> None:
        self.store.last_self_monitoring_instruction.clear()

    def set_show_quarantine_end(self) -> None:
        self.store.show_quarantine_end.set(True)

    def quarantine_end_seen(self) -> None:
        self.store.show_quarantine_end.set(False)


def _status_context(status: QuarantineStatus) -> dict[str, Any]:
    if isinstance(status, JailedLimited):
        return {"end": status.end.isoformat(), "by_contact": status.by_contact}
    if isinstance(status, Free):
        return {"self_monitoring": status.self_monitoring}
    return {}


def create_quarantine_service(
    app_config: AppConfig | None = None,
    *,
    reminder_handlers: list[ReminderHandler] | None = None,
    diagnostics: DiagnosticSink | None = None,
) -> QuarantineService:
    """Wire a service with the default collaborators described by `app_config`."""
    app_config = app_config or get_config()

    store = QuarantineEventStore(PreferenceStore(app_config.storage.path))
    configuration_provider = ConfigurationProvider(app_config.quarantine)
    scheduler = AsyncioReminderScheduler(
        ReminderSchedulerConfig(
            self_retest_interval_hours=app_config.reminders.self_retest_interval_hours,
        ),
        handlers=reminder_handlers,
    )
    service_config = QuarantineServiceConfig(
        debounce_seconds=app_config.engine.debounce_ms / 1000,
    )

    logger.info(
        "quarantine_service_created",
        environment=app_config.environment,
        storage=app_config.storage.path or "memory",
    )
    return QuarantineService(
        store,
        configuration_provider,
        scheduler,
        config=service_config,
        diagnostics=diagnostics,
    )


async def main() -> None:
    """Demonstrate a quarantine that starts with a self-diagnosis and is revoked."""

    config = get_config()
    configure_logging(config.logging)
    service = create_quarantine_service(config)

    try:
        async with service.session():
            service.report_positive_self_diagnose()

            statuses = service.observe_quarantine_status()
            print("Status:", await anext(statuses))

            service.revoke_positive_self_diagnose()
            print("Status:", await anext(statuses))

            await statuses.aclose()

        print("Show quarantine end:", service.store.show_quarantine_end.get())
    finally:
        if isinstance(service.reminder_scheduler, AsyncioReminderScheduler):
            await service.reminder_scheduler.close()


if __name__ == "__main__":
    asyncio.run(main())
