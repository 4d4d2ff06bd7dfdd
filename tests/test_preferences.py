"""通知偏好存储测试。"""
import tempfile
from pathlib import Path

import pytest

from pet_care.errors import RepositoryError, ValidationError
from pet_care.health.models import ReminderType
from pet_care.notifications.preferences import PreferencesStore


def test_defaults_when_never_saved() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        prefs = PreferencesStore("u1", base_dir=Path(tmp)).get()
        assert prefs.enabled is True
        assert prefs.quiet_hours.enabled is False
        assert (prefs.quiet_hours.start_hour, prefs.quiet_hours.end_hour) == (22, 8)
        assert prefs.type_preference(ReminderType.MEDICATION).advance_minutes == 5
        assert prefs.type_preference(ReminderType.VET_APPOINTMENT).advance_minutes == 60
        assert prefs.vaccine_advance_days == 7


def test_changes_persist() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = PreferencesStore("u1", base_dir=Path(tmp))
        store.set_sound(False)
        store.set_quiet_hours(enabled=True, start_hour=23)
        store.set_type_preference(ReminderType.WALK, enabled=False)
        store.set_type_preference(ReminderType.MEDICATION, advance_minutes=15)

        prefs = PreferencesStore("u1", base_dir=Path(tmp)).get()
        assert prefs.sound is False
        assert (prefs.quiet_hours.enabled, prefs.quiet_hours.start_hour, prefs.quiet_hours.end_hour) == (True, 23, 8)
        assert not prefs.is_type_enabled(ReminderType.WALK)
        assert prefs.type_preference(ReminderType.MEDICATION).advance_minutes == 15
        assert prefs.type_preference(ReminderType.MEDICATION).enabled is True

        assert store.reset().sound is True
        assert PreferencesStore("u2", base_dir=Path(tmp)).get().sound is True


def test_listeners_and_unsubscribe() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = PreferencesStore("u1", base_dir=Path(tmp))
        seen = []

        def broken(prefs):
            raise RuntimeError("boom")

        store.subscribe(broken)
        unsubscribe = store.subscribe(lambda prefs: seen.append(prefs.enabled))
        store.set_enabled(False)
        unsubscribe()
        store.set_enabled(True)
        assert seen == [False]


def test_invalid_values() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(ValidationError):
            PreferencesStore("", base_dir=Path(tmp))
        store = PreferencesStore("u1", base_dir=Path(tmp))
        (Path(tmp) / "notifications_u1.json").write_text("[]", encoding="utf-8")
        with pytest.raises(RepositoryError):
            store.get()
