"""Tests for the notification handlers wired to the event bus."""

from __future__ import annotations

import logging

import pytest

from app.domain.bus import EventBus
from app.domain.events import (
    ScheduleConflictDetected,
    ScheduleRequestStatusChanged,
    ScheduleUpdated,
)
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    DayOfWeek,
    NotificationSettingsUpdate,
    RequestStatus,
    ScheduleAssignment,
    ScheduleStatus,
    Semester,
    UserRole,
    new_object_id,
)
from app.repos.memory import NotificationRepository, ScheduleRepository, SettingsRepository


@pytest.fixture()
def env():
    """Fresh bus + repos + registry for each test."""
    bus = EventBus()
    schedule_repo = ScheduleRepository()
    notification_repo = NotificationRepository()
    settings_repo = SettingsRepository()
    registry = HandlerRegistry(
        bus=bus,
        schedule_repo=schedule_repo,
        notification_repo=notification_repo,
        settings_repo=settings_repo,
    )

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.schedule_repo = schedule_repo
    e.notification_repo = notification_repo
    e.settings_repo = settings_repo
    e.registry = registry
    return e


def _stored_schedule(env) -> ScheduleAssignment:
    schedule = ScheduleAssignment(
        course_id=new_object_id(),
        instructor_id=new_object_id(),
        room_id=new_object_id(),
        day_of_week=DayOfWeek.TUESDAY,
        start_time="11:00",
        end_time="12:15",
        semester=Semester.SECOND,
        year=2025,
        course_code="MATH150",
    )
    env.schedule_repo.add(schedule)
    return schedule


def _status_changed(status: RequestStatus, **overrides) -> ScheduleRequestStatusChanged:
    defaults = dict(
        request_id=new_object_id(),
        instructor_id="a" * 24,
        previous_status=RequestStatus.PENDING,
        status=status,
        conflict_flag=False,
    )
    defaults.update(overrides)
    return ScheduleRequestStatusChanged(**defaults)


def test_conflict_alert_goes_to_admins(env):
    schedule = _stored_schedule(env)

    env.bus.publish(
        ScheduleConflictDetected(schedule_id=schedule.id, conflicts=["Room is already booked"])
    )

    [notification] = env.notification_repo.list_for(role=UserRole.ADMIN)
    assert notification.title == "Schedule conflict detected"
    assert notification.message == "MATH150 on Tuesday 11:00-12:15: Room is already booked"
    assert env.notification_repo.list_for(role=UserRole.INSTRUCTOR) == []


def test_conflict_alerts_can_be_switched_off(env):
    env.settings_repo.update_notifications(NotificationSettingsUpdate(conflict_alerts=False))
    schedule = _stored_schedule(env)

    env.bus.publish(ScheduleConflictDetected(schedule_id=schedule.id, conflicts=["x"]))

    assert env.notification_repo.list_for(role=UserRole.ADMIN) == []


def test_approval_notifies_instructor_with_conflict_note(env):
    env.bus.publish(
        _status_changed(RequestStatus.APPROVED, conflict_flag=True, notes="Use the side door")
    )

    [notification] = env.notification_repo.list_for(user_id="a" * 24)
    assert notification.title == "Schedule request approved"
    assert "overlaps another approved booking" in notification.message
    assert notification.message.endswith("Notes: Use the side door")
    # Addressed to one instructor, not broadcast to the role.
    assert env.notification_repo.list_for(role=UserRole.INSTRUCTOR) == []


def test_review_transition_does_not_notify(env):
    env.bus.publish(_status_changed(RequestStatus.UNDER_REVIEW))
    assert env.notification_repo.list_for(user_id="a" * 24) == []


def test_schedule_change_notifications_can_be_switched_off(env):
    env.settings_repo.update_notifications(
        NotificationSettingsUpdate(schedule_change_notifications=False)
    )
    env.bus.publish(_status_changed(RequestStatus.REJECTED))
    assert env.notification_repo.list_for(user_id="a" * 24) == []


def test_mark_read(env):
    env.bus.publish(_status_changed(RequestStatus.REJECTED))
    [notification] = env.notification_repo.list_for(user_id="a" * 24)

    env.notification_repo.mark_read(notification.id)

    assert env.notification_repo.get(notification.id).read is True
    assert env.notification_repo.mark_read(new_object_id()) is None


def test_schedule_updates_are_logged(env, caplog):
    schedule = _stored_schedule(env)

    with caplog.at_level(logging.DEBUG, logger="app.domain.handlers"):
        env.bus.publish(ScheduleUpdated(schedule_id=schedule.id, status=ScheduleStatus.PUBLISHED))

    assert f"Schedule {schedule.id} updated, now published" in caplog.text


def test_failing_handler_does_not_stop_the_others(env, caplog):
    def explode(event):
        raise RuntimeError("boom")

    env.bus.subscribe(ScheduleRequestStatusChanged, explode)
    received = []
    env.bus.subscribe(ScheduleRequestStatusChanged, received.append)

    env.bus.publish(_status_changed(RequestStatus.APPROVED))

    assert len(received) == 1
    assert len(env.notification_repo.list_for(user_id="a" * 24)) == 1
    assert "failed for ScheduleRequestStatusChanged" in caplog.text
