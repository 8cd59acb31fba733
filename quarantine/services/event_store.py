"""
Event store: persisted, individually observable quarantine event fields.

The store is a small key/value layer. Every key can be read, written, cleared
and observed on its own; observers receive the current value on subscribe and
every change afterwards. Nothing is written atomically across keys, so
consumers must tolerate seeing related fields change one at a time.
"""

import json
import os
import threading
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """Outcome of decoding persisted data: a value, or the error that replaced it."""

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if (value is None) == (error is None):
            raise ValueError("Result needs exactly one of value or error")
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("No error to unwrap")
        return self._error


Listener = Callable[[Any], None]
Unsubscribe = Callable[[], None]


def decode_timestamp(raw: Any) -> Result[datetime, ValueError]:
    """Decode a persisted ISO-8601 timestamp; naive values are rejected."""
    try:
        moment = datetime.fromisoformat(raw)
    except (TypeError, ValueError) as e:
        return Result.err(ValueError(f"Invalid timestamp {raw!r}: {e}"))
    if moment.utcoffset() is None:
        return Result.err(ValueError(f"Timestamp {raw!r} has no timezone"))
    return Result.ok(moment)


class PreferenceStore:
    """
    Thread-safe observable key/value store, optionally backed by a JSON file.

    Writers may call from any thread; last write wins per key. Listeners run
    under the store lock, in write order, and must return quickly.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._values: dict[str, Any] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self.logger = logger.bind(component="preference_store")

        if self._path is not None:
            loaded = self._load(self._path)
            if loaded.is_ok():
                self._values = loaded.unwrap()
            else:
                self.logger.warning(
                    "preference_store_load_failed",
                    path=str(self._path),
                    error=str(loaded.unwrap_err()),
                )

    @staticmethod
    def _load(path: Path) -> Result[dict[str, Any], Exception]:
        if not path.exists():
            return Result.ok({})
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            return Result.err(e)
        if not isinstance(data, dict):
            return Result.err(ValueError(f"Expected a JSON object in {path}"))
        return Result.ok(data)

    def _flush(self) -> None:
        assert self._path is not None
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self._values, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            # In-memory state stays authoritative for this process
            self.logger.exception("preference_store_flush_failed", error=str(e))

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write a value; `None` removes the key."""
        with self._lock:
            if value is None:
                self._values.pop(key, None)
            else:
                self._values[key] = value
            if self._path is not None:
                self._flush()
            for listener in list(self._listeners[key]):
                listener(value)

    def observe(self, key: str, listener: Listener) -> Unsubscribe:
        """Deliver the current value immediately, then every change."""
        with self._lock:
            self._listeners[key].append(listener)
            listener(self._values.get(key))

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners[key]:
                    self._listeners[key].remove(listener)

        return unsubscribe


class TimestampPreference:
    """Optional timezone-aware timestamp stored under one key."""

    def __init__(self, store: PreferenceStore, key: str) -> None:
        self.store = store
        self.key = key

    def _decode(self, raw: Any) -> datetime | None:
        if raw is None:
            return None
        result = decode_timestamp(raw)
        if result.is_err():
            logger.warning("stored_timestamp_invalid", key=self.key, error=str(result.unwrap_err()))
            return None
        return result.unwrap()

    def get(self) -> datetime | None:
        return self._decode(self.store.get(self.key))

    def set(self, value: datetime | None) -> None:
        if value is not None and value.utcoffset() is None:
            raise ValueError(f"{self.key} requires a timezone-aware datetime")
        self.store.set(self.key, value.isoformat() if value is not None else None)

    def clear(self) -> None:
        self.set(None)

    def observe(self, listener: Callable[[datetime | None], None]) -> Unsubscribe:
        return self.store.observe(self.key, lambda raw: listener(self._decode(raw)))


class BooleanPreference:
    """Boolean flag with a default for the unset state."""

    def __init__(self, store: PreferenceStore, key: str, default: bool = False) -> None:
        self.store = store
        self.key = key
        self.default = default

    def _decode(self, raw: Any) -> bool:
        return self.default if raw is None else bool(raw)

    def get(self) -> bool:
        return self._decode(self.store.get(self.key))

    def set(self, value: bool) -> None:
        self.store.set(self.key, bool(value))

    def observe(self, listener: Callable[[bool], None]) -> Unsubscribe:
        return self.store.observe(self.key, lambda raw: listener(self._decode(raw)))


QUARANTINE_PREFIX = "quarantine_repository."
PREF_DATE_OF_FIRST_MEDICAL_CONFIRMATION = QUARANTINE_PREFIX + "date_of_first_medical_confirmation"
PREF_DATE_OF_FIRST_SELF_DIAGNOSE = QUARANTINE_PREFIX + "date_of_first_self_diagnose"
PREF_DATE_OF_LAST_SELF_DIAGNOSE = QUARANTINE_PREFIX + "date_of_last_self_diagnose"
PREF_DATE_OF_LAST_RED_CONTACT = QUARANTINE_PREFIX + "date_of_last_red_contact"
PREF_DATE_OF_LAST_YELLOW_CONTACT = QUARANTINE_PREFIX + "date_of_last_yellow_contact"
PREF_DATE_OF_LAST_SELF_MONITORING = QUARANTINE_PREFIX + "date_of_last_self_monitoring"
PREF_SHOW_QUARANTINE_END = QUARANTINE_PREFIX + "show_quarantine_end"


class QuarantineEventStore:
    """Named quarantine event fields over a shared preference store."""

    def __init__(self, store: PreferenceStore) -> None:
        self.store = store
        self.first_medical_confirmation = TimestampPreference(
            store, PREF_DATE_OF_FIRST_MEDICAL_CONFIRMATION
        )
        self.first_self_diagnosis = TimestampPreference(store, PREF_DATE_OF_FIRST_SELF_DIAGNOSE)
        self.last_self_diagnosis = TimestampPreference(store, PREF_DATE_OF_LAST_SELF_DIAGNOSE)
        self.last_red_contact = TimestampPreference(store, PREF_DATE_OF_LAST_RED_CONTACT)
        self.last_yellow_contact = TimestampPreference(store, PREF_DATE_OF_LAST_YELLOW_CONTACT)
        self.last_self_monitoring_instruction = TimestampPreference(
            store, PREF_DATE_OF_LAST_SELF_MONITORING
        )
        self.show_quarantine_end = BooleanPreference(store, PREF_SHOW_QUARANTINE_END, False)
