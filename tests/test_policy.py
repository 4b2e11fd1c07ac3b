"""Tests for reading the conflict policy from the settings store."""

from __future__ import annotations

from app.domain.models import ConflictPolicy, SchedulingSettingsUpdate
from app.repos.memory import SettingsRepository
from app.services.policy import SAFE_DEFAULT_POLICY, PolicyProvider


class _UnreachableStore:
    def get(self):
        raise TimeoutError("settings backend timed out")


def test_defaults_detect_everything():
    policy = PolicyProvider(SettingsRepository()).current()
    assert policy == ConflictPolicy(auto_conflict_detection=True, allow_overlapping_classes=False)


def test_changes_are_visible_on_next_read():
    store = SettingsRepository()
    provider = PolicyProvider(store)

    store.update_scheduling(SchedulingSettingsUpdate(allow_overlapping_classes=True))
    assert provider.current().allow_overlapping_classes is True

    store.update_scheduling(SchedulingSettingsUpdate(auto_conflict_detection=False))
    policy = provider.current()
    assert policy.auto_conflict_detection is False
    assert policy.allow_overlapping_classes is True


def test_unreachable_store_falls_back_to_safe_defaults(caplog):
    policy = PolicyProvider(_UnreachableStore()).current()

    assert policy == SAFE_DEFAULT_POLICY
    assert "using default conflict policy" in caplog.text


def test_partial_update_keeps_other_scheduling_fields():
    store = SettingsRepository()
    settings = store.update_scheduling(SchedulingSettingsUpdate(working_hours_end="20:00"))

    assert settings.scheduling.working_hours_end == "20:00"
    assert settings.scheduling.working_hours_start == "08:00"
    assert settings.scheduling.auto_conflict_detection is True
