"""
Domain models for quarantine status derivation.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; all of them are immutable so they can be
compared structurally and passed between tasks without copying.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, PositiveInt


class WarningType(str, Enum):
    """Severity of a received exposure notification."""

    RED = "red"
    YELLOW = "yellow"


class QuarantineConfiguration(BaseModel):
    """
    Remotely configured quarantine durations.

    Any value may be absent; the derivation falls back to documented defaults.
    """

    model_config = ConfigDict(frozen=True)

    red_warning_quarantine_hours: PositiveInt | None = Field(
        default=None, description="Quarantine length after a red contact"
    )
    yellow_warning_quarantine_hours: PositiveInt | None = Field(
        default=None, description="Quarantine length after a yellow contact"
    )
    self_diagnosed_quarantine_hours: PositiveInt | None = Field(
        default=None, description="Quarantine length after a positive self-diagnosis"
    )


class QuarantinePrerequisites(BaseModel):
    """Snapshot of everything the status derivation looks at."""

    model_config = ConfigDict(frozen=True)

    configuration: QuarantineConfiguration = Field(default_factory=QuarantineConfiguration)
    first_medical_confirmation: AwareDatetime | None = None
    last_self_diagnosis: AwareDatetime | None = None
    last_red_contact: AwareDatetime | None = None
    last_yellow_contact: AwareDatetime | None = None
    last_self_monitoring_instruction: AwareDatetime | None = None


class _StatusModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class JailedForever(_StatusModel):
    """User must stay in quarantine; it never ends."""

    kind: Literal["jailed_forever"] = "jailed_forever"


class JailedLimited(_StatusModel):
    """
    User must stay in quarantine until `end`.

    `by_contact` is true when the binding cause is an exposure contact and no
    self-diagnosis is active.
    """

    kind: Literal["jailed_limited"] = "jailed_limited"
    end: AwareDatetime
    by_contact: bool


class Free(_StatusModel):
    """User doesn't have to be in quarantine."""

    kind: Literal["free"] = "free"
    self_monitoring: bool = False


QuarantineStatus = JailedForever | JailedLimited | Free


def is_jailed(status: QuarantineStatus) -> bool:
    return isinstance(status, JailedForever | JailedLimited)


class ReminderKind(str, Enum):
    """Reminders driven by the quarantine status."""

    SELF_RETEST = "self_retest"
    QUARANTINE_END = "quarantine_end"


class Reminder(BaseModel):
    """A reminder that became due and is handed to delivery handlers."""

    model_config = ConfigDict(frozen=True)

    kind: ReminderKind
    fire_at: datetime
