"""Tests for the schedule-request (room booking) approval workflow."""

from __future__ import annotations

from datetime import date

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.bus import EventBus
from app.domain.events import ScheduleRequestStatusChanged
from app.domain.models import (
    Course,
    DayOfWeek,
    Instructor,
    RequestStatus,
    Room,
    ScheduleRequestCreate,
    new_object_id,
)
from app.repos.memory import (
    CourseRepository,
    InstructorRepository,
    RoomRepository,
    ScheduleRepository,
    ScheduleRequestRepository,
)
from app.services.directory import ResourceDirectory
from app.services.requests import ScheduleRequestWorkflow

# 2026-03-02 is a Monday.
_MONDAY = date(2026, 3, 2)


@pytest.fixture()
def env():
    bus = EventBus()
    course_repo = CourseRepository()
    instructor_repo = InstructorRepository()
    room_repo = RoomRepository()
    request_repo = ScheduleRequestRepository()

    class Env:
        pass

    e = Env()
    e.course = Course(code="CS201", name="Data Structures", department="CS")
    e.ada = Instructor(name="Ada Reyes", email="ada@example.edu", department="CS")
    e.marcus = Instructor(name="Marcus Lin", email="marcus@example.edu", department="Math")
    e.lab = Room(name="Lab A", building="Science Wing", type="computer_lab")
    e.hall = Room(name="Auditorium", building="Hall of Arts", type="auditorium")
    course_repo.add(e.course)
    instructor_repo.add(e.ada)
    instructor_repo.add(e.marcus)
    room_repo.add(e.lab)
    room_repo.add(e.hall)

    e.status_events = []
    bus.subscribe(ScheduleRequestStatusChanged, e.status_events.append)

    e.request_repo = request_repo
    e.workflow = ScheduleRequestWorkflow(
        request_repo=request_repo,
        directory=ResourceDirectory(course_repo, instructor_repo, room_repo),
        schedule_repo=ScheduleRepository(),
        bus=bus,
    )
    return e


def _request(env, **overrides) -> ScheduleRequestCreate:
    defaults = dict(
        instructor_id=env.ada.id,
        room_id=env.lab.id,
        booking_date=_MONDAY,
        start_time="13:00",
        end_time="15:00",
        purpose="Make-up lab session",
    )
    defaults.update(overrides)
    return ScheduleRequestCreate(**defaults)


def test_create_resolves_day_and_display_names(env):
    request = env.workflow.create(_request(env, course_id=env.course.id))

    assert request.status == RequestStatus.PENDING
    assert request.day_of_week == DayOfWeek.MONDAY
    assert request.instructor_name == "Ada Reyes"
    assert request.room_name == "Lab A"
    assert request.course_code == "CS201"
    assert request.conflict_flag is False


def test_sunday_booking_date_is_rejected():
    with pytest.raises(ValueError):
        ScheduleRequestCreate(
            instructor_id=new_object_id(),
            room_id=new_object_id(),
            booking_date=date(2026, 3, 1),
            start_time="09:00",
            end_time="10:00",
            purpose="Sunday review",
        )


def test_weekday_contradicting_booking_date_is_rejected():
    fields = dict(
        instructor_id=new_object_id(),
        room_id=new_object_id(),
        booking_date=_MONDAY,
        start_time="09:00",
        end_time="10:00",
        purpose="Tutorial",
    )

    with pytest.raises(ValueError, match="day_of_week does not match booking_date"):
        ScheduleRequestCreate(**fields, day_of_week=DayOfWeek.FRIDAY)

    consistent = ScheduleRequestCreate(**fields, day_of_week=DayOfWeek.MONDAY)
    assert consistent.day_of_week == DayOfWeek.MONDAY


def test_date_or_weekday_is_required():
    with pytest.raises(ValueError):
        ScheduleRequestCreate(
            instructor_id=new_object_id(),
            room_id=new_object_id(),
            start_time="09:00",
            end_time="10:00",
            purpose="Office hours",
        )


def test_unknown_instructor_or_schedule_is_not_found(env):
    with pytest.raises(NotFoundError):
        env.workflow.create(_request(env, instructor_id=new_object_id()))
    with pytest.raises(NotFoundError):
        env.workflow.create(_request(env, schedule_id=new_object_id()))
    assert env.workflow.list_all() == []


def test_pending_requests_do_not_flag_each_other(env):
    env.workflow.create(_request(env))
    second = env.workflow.create(_request(env, instructor_id=env.marcus.id))
    assert second.conflict_flag is False


def test_new_request_flagged_against_approved_booking(env):
    first = env.workflow.create(_request(env))
    env.workflow.approve(first.id)

    overlapping = env.workflow.create(
        _request(env, instructor_id=env.marcus.id, start_time="14:00", end_time="16:00")
    )
    touching = env.workflow.create(
        _request(env, instructor_id=env.marcus.id, start_time="15:00", end_time="16:00")
    )
    other_room = env.workflow.create(_request(env, room_id=env.hall.id))
    other_date = env.workflow.create(_request(env, booking_date=date(2026, 3, 9)))

    assert overlapping.conflict_flag is True
    assert overlapping.conflicts == [
        "Room Lab A is already booked on 2026-03-02 (13:00-15:00) by Ada Reyes"
    ]
    assert touching.conflict_flag is False
    assert other_room.conflict_flag is False
    assert other_date.conflict_flag is False


def test_weekly_request_matches_dated_booking_on_same_weekday(env):
    dated = env.workflow.create(_request(env))
    env.workflow.approve(dated.id)

    weekly = env.workflow.create(
        _request(env, booking_date=None, day_of_week=DayOfWeek.MONDAY, instructor_id=env.marcus.id)
    )
    assert weekly.conflict_flag is True


def test_flag_recomputed_on_approval(env):
    a = env.workflow.create(_request(env))
    b = env.workflow.create(_request(env, instructor_id=env.marcus.id))
    assert b.conflict_flag is False

    env.workflow.approve(a.id)
    # Still pending, so the flag is not refreshed.
    assert env.workflow.get(b.id).conflict_flag is False

    approved_b = env.workflow.approve(b.id)
    assert approved_b.status == RequestStatus.APPROVED
    assert approved_b.conflict_flag is True


def test_approval_does_not_conflict_with_itself(env):
    request = env.workflow.create(_request(env))
    approved = env.workflow.approve(request.id)
    assert approved.conflict_flag is False
    assert approved.conflicts == []


def test_rejection_keeps_flag_and_records_notes(env):
    first = env.workflow.create(_request(env))
    env.workflow.approve(first.id)
    flagged = env.workflow.create(_request(env, instructor_id=env.marcus.id))
    assert flagged.conflict_flag is True

    rejected = env.workflow.reject(flagged.id, notes="Lab already in use")

    assert rejected.status == RequestStatus.REJECTED
    assert rejected.conflict_flag is True
    assert rejected.notes == "Lab already in use"
    assert env.status_events[-1].previous_status == RequestStatus.PENDING
    assert env.status_events[-1].status == RequestStatus.REJECTED


def test_under_review_can_return_to_pending(env):
    request = env.workflow.create(_request(env))
    env.workflow.update_status(request.id, RequestStatus.UNDER_REVIEW)
    back = env.workflow.update_status(request.id, RequestStatus.PENDING)
    assert back.status == RequestStatus.PENDING


@pytest.mark.parametrize("final", [RequestStatus.APPROVED, RequestStatus.REJECTED])
def test_decided_requests_are_terminal(env, final):
    request = env.workflow.create(_request(env))
    env.workflow.update_status(request.id, final)

    with pytest.raises(ValidationError, match=f"already {final}"):
        env.workflow.update_status(request.id, RequestStatus.PENDING)


def test_list_for_instructor_and_delete(env):
    mine = env.workflow.create(_request(env))
    env.workflow.create(_request(env, instructor_id=env.marcus.id))

    assert [r.id for r in env.workflow.list_for_instructor(env.ada.id)] == [mine.id]

    env.workflow.delete(mine.id)
    with pytest.raises(NotFoundError):
        env.workflow.get(mine.id)
    with pytest.raises(NotFoundError):
        env.workflow.delete(mine.id)
