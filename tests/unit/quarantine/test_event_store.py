"""
Tests for the event store in `quarantine/services/event_store.py`.

These tests verify the observable key/value semantics, typed accessors,
timestamp validation and the optional JSON file persistence.
"""

import json
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from quarantine.services.event_store import (
    PREF_DATE_OF_LAST_RED_CONTACT,
    PREF_SHOW_QUARANTINE_END,
    BooleanPreference,
    PreferenceStore,
    QuarantineEventStore,
    TimestampPreference,
    decode_timestamp,
)

T0 = datetime(2020, 4, 1, 12, 0, tzinfo=UTC)


class TestDecodeTimestamp:
    def test_decodes_offset_timestamp(self) -> None:
        result = decode_timestamp("2020-04-01T14:00:00+02:00")

        assert result.is_ok()
        assert result.unwrap() == T0

    def test_rejects_naive_timestamp(self) -> None:
        result = decode_timestamp("2020-04-01T12:00:00")

        assert result.is_err()
        assert "no timezone" in str(result.unwrap_err())

    def test_rejects_garbage(self) -> None:
        assert decode_timestamp("yesterday").is_err()
        assert decode_timestamp(42).is_err()

    def test_unwrap_on_failure_raises_decode_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid timestamp"):
            decode_timestamp("x").unwrap()


class TestPreferenceStore:
    """Observable key/value semantics."""

    def test_load_missing_file_is_empty(self, tmp_path: Path) -> None:
        loaded = PreferenceStore._load(tmp_path / "absent.json")

        assert loaded.is_ok()
        assert loaded.unwrap() == {}

    def test_load_corrupt_file_reports_error(self, tmp_path: Path) -> None:
        path = tmp_path / "events.json"
        path.write_text("{not json", encoding="utf-8")

        loaded = PreferenceStore._load(path)

        assert loaded.is_err()
        assert isinstance(loaded.unwrap_err(), ValueError)

    def test_observe_delivers_current_value_then_changes(self) -> None:
        store = PreferenceStore()
        store.set("key", "first")
        seen: list[object] = []

        store.observe("key", seen.append)
        store.set("key", "second")
        store.set("key", None)

        assert seen == ["first", "second", None]
        assert store.get("key") is None

    def test_unsubscribe_stops_delivery(self) -> None:
        store = PreferenceStore()
        seen: list[object] = []

        unsubscribe = store.observe("key", seen.append)
        unsubscribe()
        unsubscribe()  # idempotent
        store.set("key", "value")

        assert seen == [None]

    def test_keys_are_independent(self) -> None:
        store = PreferenceStore()
        seen: list[object] = []
        store.observe("a", seen.append)

        store.set("b", "value")

        assert seen == [None]

    def test_persists_to_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "store" / "events.json"
        store = PreferenceStore(path)
        store.set("key", "value")
        store.set("flag", True)

        reopened = PreferenceStore(path)

        assert reopened.get("key") == "value"
        assert reopened.get("flag") is True
        assert json.loads(path.read_text()) == {"flag": True, "key": "value"}

    def test_corrupt_file_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "events.json"
        path.write_text("{not json")

        store = PreferenceStore(path)

        assert store.get("key") is None

    def test_non_object_file_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "events.json"
        path.write_text("[1, 2, 3]")

        assert PreferenceStore(path).get("key") is None


class TestTypedPreferences:
    def test_timestamp_round_trips_through_store(self) -> None:
        store = PreferenceStore()
        preference = TimestampPreference(store, "moment")

        preference.set(T0)

        assert preference.get() == T0
        assert store.get("moment") == T0.isoformat()

    def test_timestamp_keeps_offset(self) -> None:
        preference = TimestampPreference(PreferenceStore(), "moment")
        vienna_summer = timezone(timedelta(hours=2))

        preference.set(T0.astimezone(vienna_summer))

        stored = preference.get()
        assert stored == T0
        assert stored is not None and stored.utcoffset() == timedelta(hours=2)

    def test_timestamp_rejects_naive_datetime(self) -> None:
        preference = TimestampPreference(PreferenceStore(), "moment")

        with pytest.raises(ValueError, match="timezone-aware"):
            preference.set(datetime(2020, 4, 1, 12, 0))

    def test_corrupt_stored_timestamp_reads_as_absent(self) -> None:
        store = PreferenceStore()
        store.set("moment", "not a timestamp")

        assert TimestampPreference(store, "moment").get() is None

    def test_timestamp_observe_decodes_values(self) -> None:
        preference = TimestampPreference(PreferenceStore(), "moment")
        seen: list[datetime | None] = []

        preference.observe(seen.append)
        preference.set(T0)
        preference.clear()

        assert seen == [None, T0, None]

    def test_boolean_default_and_updates(self) -> None:
        preference = BooleanPreference(PreferenceStore(), "flag", default=False)
        seen: list[bool] = []

        preference.observe(seen.append)
        preference.set(True)
        preference.set(False)

        assert seen == [False, True, False]
        assert preference.get() is False


class TestQuarantineEventStore:
    def test_fields_are_backed_by_prefixed_keys(self) -> None:
        preferences = PreferenceStore()
        events = QuarantineEventStore(preferences)

        events.last_red_contact.set(T0)
        events.show_quarantine_end.set(True)

        assert preferences.get(PREF_DATE_OF_LAST_RED_CONTACT) == T0.isoformat()
        assert preferences.get(PREF_SHOW_QUARANTINE_END) is True

    def test_all_fields_start_empty(self) -> None:
        events = QuarantineEventStore(PreferenceStore())

        assert events.first_medical_confirmation.get() is None
        assert events.first_self_diagnosis.get() is None
        assert events.last_self_diagnosis.get() is None
        assert events.last_red_contact.get() is None
        assert events.last_yellow_contact.get() is None
        assert events.last_self_monitoring_instruction.get() is None
        assert events.show_quarantine_end.get() is False
