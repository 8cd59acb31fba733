"""
Core services for the application.

This package contains the event store, status derivation, the reactive
status service and reminder scheduling.
"""

from .configuration import ConfigurationProvider
from .event_store import PreferenceStore, QuarantineEventStore, Result
from .quarantine_service import (
    QuarantineService,
    QuarantineServiceConfig,
    create_quarantine_service,
)
from .reminders import AsyncioReminderScheduler, ReminderScheduler, ReminderSchedulerConfig
from .status import derive_quarantine_status

__all__ = [
    "AsyncioReminderScheduler",
    "ConfigurationProvider",
    "PreferenceStore",
    "QuarantineEventStore",
    "QuarantineService",
    "QuarantineServiceConfig",
    "ReminderScheduler",
    "ReminderSchedulerConfig",
    "Result",
    "create_quarantine_service",
    "derive_quarantine_status",
]
