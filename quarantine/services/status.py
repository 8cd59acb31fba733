"""
Quarantine status derivation.

Pure mapping from the current prerequisites (configuration plus recorded event
timestamps) to a quarantine status. Priority follows medical severity:
confirmed > exposed or self-diagnosed > self-monitoring > free.
"""

from datetime import UTC, datetime, timedelta

from quarantine.domain.models import (
    Free,
    JailedForever,
    JailedLimited,
    QuarantinePrerequisites,
    QuarantineStatus,
)
from quarantine.observability import DiagnosticSink, StructlogDiagnosticSink

DEFAULT_RED_WARNING_QUARANTINE_HOURS = 14 * 24
DEFAULT_YELLOW_WARNING_QUARANTINE_HOURS = 7 * 24
DEFAULT_SELF_DIAGNOSED_QUARANTINE_HOURS = 7 * 24


def _hours_or_default(
    value: int | None, default: int, name: str, diagnostics: DiagnosticSink
) -> int:
    if value is None:
        diagnostics.report("configuration", f"{name} is null")
        return default
    return value


def _quarantine_until(moment: datetime | None, hours: int) -> datetime | None:
    if moment is None:
        return None
    # Absolute time; wall-clock arithmetic would drift across DST changes
    return moment.astimezone(UTC) + timedelta(hours=hours)


def derive_quarantine_status(
    prerequisites: QuarantinePrerequisites,
    diagnostics: DiagnosticSink | None = None,
) -> QuarantineStatus:
    """
    Derive the quarantine status from its prerequisites.

    Overlapping triggers resolve to the latest end so a new exposure never
    shortens a running quarantine. Anomalies are reported on the diagnostic
    channel; the function itself never raises for valid prerequisites.
    """
    diagnostics = diagnostics or StructlogDiagnosticSink()
    p = prerequisites

    # Own health state is red: quarantine never ends
    if p.first_medical_confirmation is not None:
        return JailedForever()

    if (
        p.last_red_contact is not None
        or p.last_yellow_contact is not None
        or p.last_self_diagnosis is not None
    ):
        configuration = p.configuration
        red_hours = _hours_or_default(
            configuration.red_warning_quarantine_hours,
            DEFAULT_RED_WARNING_QUARANTINE_HOURS,
            "redWarningQuarantine",
            diagnostics,
        )
        yellow_hours = _hours_or_default(
            configuration.yellow_warning_quarantine_hours,
            DEFAULT_YELLOW_WARNING_QUARANTINE_HOURS,
            "yellowWarningQuarantine",
            diagnostics,
        )
        self_diagnosed_hours = _hours_or_default(
            configuration.self_diagnosed_quarantine_hours,
            DEFAULT_SELF_DIAGNOSED_QUARANTINE_HOURS,
            "selfDiagnosedQuarantine",
            diagnostics,
        )

        candidates = [
            end
            for end in (
                _quarantine_until(p.last_red_contact, red_hours),
                _quarantine_until(p.last_yellow_contact, yellow_hours),
                _quarantine_until(p.last_self_diagnosis, self_diagnosed_hours),
            )
            if end is not None
        ]

        if not candidates:
            diagnostics.report("quarantine_status", "quarantinedUntil is null")
            return Free()

        by_contact = (
            p.last_red_contact is not None or p.last_yellow_contact is not None
        ) and p.last_self_diagnosis is None
        return JailedLimited(end=max(candidates), by_contact=by_contact)

    if p.last_self_monitoring_instruction is not None:
        return Free(self_monitoring=True)

    return Free()
