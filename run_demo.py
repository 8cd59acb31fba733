"""
Scenario walkthrough of the quarantine status pipeline.

This script exercises:
1. Configuration loading
2. Status derivation for contacts, self-diagnosis and medical confirmation
3. Reminder scheduling decisions
4. The quarantine-end banner after a limited quarantine lapses

Run with: uv run python run_demo.py
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from quarantine.config import AppConfig, get_config
from quarantine.domain.models import JailedLimited, QuarantineStatus, WarningType, is_jailed
from quarantine.observability import configure_logging
from quarantine.services.quarantine_service import QuarantineService, create_quarantine_service
from quarantine.services.reminders import AsyncioReminderScheduler

console = Console()


def _describe(status: QuarantineStatus) -> str:
    if isinstance(status, JailedLimited):
        cause = "contact" if status.by_contact else "self-diagnosis"
        return f"quarantined until {status.end:%Y-%m-%d %H:%M} UTC ({cause})"
    return status.kind.replace("_", " ")


async def _step(
    service: QuarantineService,
    statuses: AsyncIterator[QuarantineStatus],
    title: str,
    action: Callable[[], None],
    table: Table,
) -> None:
    action()
    status = await asyncio.wait_for(anext(statuses), timeout=2.0)

    scheduler = service.reminder_scheduler
    assert isinstance(scheduler, AsyncioReminderScheduler)
    end_at = scheduler.quarantine_end_at
    table.add_row(
        title,
        _describe(status),
        "yes" if is_jailed(status) else "no",
        "armed" if scheduler.self_retest_armed else "-",
        f"{end_at:%Y-%m-%d %H:%M}" if end_at else "-",
        "yes" if service.store.show_quarantine_end.get() else "no",
    )


async def run_scenario(config: AppConfig) -> None:
    console.print(Panel("Quarantine Status Engine - Scenario", style="bold blue"))

    service = create_quarantine_service(config)
    t0 = datetime.now(UTC).replace(microsecond=0)

    table = Table(title="Status Transitions")
    table.add_column("Event", style="cyan")
    table.add_column("Status")
    table.add_column("Quarantined")
    table.add_column("Self Retest")
    table.add_column("Quarantine End")
    table.add_column("Banner")

    async with service.session():
        statuses = service.observe_quarantine_status()
        await asyncio.wait_for(anext(statuses), timeout=2.0)

        await _step(
            service,
            statuses,
            "Yellow contact",
            lambda: service.received_warning(WarningType.YELLOW, t0),
            table,
        )
        await _step(
            service,
            statuses,
            "Self-diagnosis +2h",
            lambda: service.report_positive_self_diagnose(t0 + timedelta(hours=2)),
            table,
        )
        await _step(
            service,
            statuses,
            "Red contact +1d",
            lambda: service.received_warning(WarningType.RED, t0 + timedelta(days=1)),
            table,
        )
        await _step(
            service,
            statuses,
            "Medical confirmation",
            lambda: service.report_medical_confirmation(t0 + timedelta(days=2)),
            table,
        )
        await _step(
            service, statuses, "Confirmation revoked", service.revoke_medical_confirmation, table
        )
        await statuses.aclose()

    scheduler = service.reminder_scheduler
    if isinstance(scheduler, AsyncioReminderScheduler):
        await scheduler.close()

    console.print(table)


async def run_banner_scenario(config: AppConfig) -> None:
    console.print(Panel("Quarantine End Banner", style="blue"))

    service = create_quarantine_service(config)

    async with service.session():
        statuses = service.observe_quarantine_status()
        banners = service.observe_show_quarantine_end()

        service.report_positive_self_diagnose()
        status = await asyncio.wait_for(anext(statuses), timeout=2.0)
        while not isinstance(status, JailedLimited):
            status = await asyncio.wait_for(anext(statuses), timeout=2.0)
        console.print(f"Self-diagnosed: {_describe(status)}")

        service.revoke_positive_self_diagnose()
        status = await asyncio.wait_for(anext(statuses), timeout=2.0)
        console.print(f"Revoked: {_describe(status)}")

        shown = await asyncio.wait_for(anext(banners), timeout=2.0)
        while not shown:
            shown = await asyncio.wait_for(anext(banners), timeout=2.0)
        console.print("[green]Quarantine end banner raised[/green]")

        service.quarantine_end_seen()
        await banners.aclose()
        await statuses.aclose()


async def main() -> None:
    config = get_config()
    configure_logging(config.logging)
    console.print(f"Environment: {config.environment}, debounce {config.engine.debounce_ms}ms")

    await run_scenario(config)
    await run_banner_scenario(config)


if __name__ == "__main__":
    asyncio.run(main())
