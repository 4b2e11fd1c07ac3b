"""In-memory repositories standing in for the document store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.core.exceptions import StorageError
from app.domain.models import (
    DAY_ORDER,
    Course,
    Instructor,
    Notification,
    NotificationSettingsUpdate,
    Room,
    ScheduleAssignment,
    ScheduleRequest,
    SchedulingSettings,
    SchedulingSettingsUpdate,
    Student,
    SystemSettings,
    UserRole,
)


def _matches(record: Any, filters: dict[str, Any]) -> bool:
    return all(getattr(record, key) == value for key, value in filters.items())


def _by_slot(record: ScheduleAssignment | ScheduleRequest) -> tuple[int, str]:
    return DAY_ORDER[record.day_of_week], record.start_time


class CourseRepository:
    """Dict-backed store for Course instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Course] = {}

    def add(self, course: Course) -> None:
        self._store[course.id] = course

    def get(self, course_id: str) -> Course | None:
        return self._store.get(course_id)

    def list_all(self) -> list[Course]:
        return sorted(self._store.values(), key=lambda c: c.code)


class InstructorRepository:
    """Dict-backed store for Instructor instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Instructor] = {}

    def add(self, instructor: Instructor) -> None:
        self._store[instructor.id] = instructor

    def get(self, instructor_id: str) -> Instructor | None:
        return self._store.get(instructor_id)

    def list_all(self) -> list[Instructor]:
        return sorted(self._store.values(), key=lambda i: i.name)


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def list_all(self) -> list[Room]:
        return sorted(self._store.values(), key=lambda r: (r.building, r.name))


class StudentRepository:
    """Dict-backed store for Student instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Student] = {}

    def add(self, student: Student) -> None:
        self._store[student.id] = student

    def get(self, student_id: str) -> Student | None:
        return self._store.get(student_id)

    def list_all(self) -> list[Student]:
        return sorted(self._store.values(), key=lambda s: s.name)


class ScheduleRepository:
    """Dict-backed store for ScheduleAssignment instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ScheduleAssignment] = {}

    def add(self, schedule: ScheduleAssignment) -> None:
        self._store[schedule.id] = schedule

    def get(self, schedule_id: str) -> ScheduleAssignment | None:
        return self._store.get(schedule_id)

    def find(self, exclude_id: str | None = None, **filters: Any) -> list[ScheduleAssignment]:
        """Return schedules whose attributes equal every keyword filter.

        Results are ordered by day of week, then start time.
        """
        found = [
            s
            for s in self._store.values()
            if s.id != exclude_id and _matches(s, filters)
        ]
        return sorted(found, key=_by_slot)

    def count(self, **filters: Any) -> int:
        return sum(1 for s in self._store.values() if _matches(s, filters))

    def update(self, schedule_id: str, changes: dict[str, Any]) -> ScheduleAssignment:
        current = self._store.get(schedule_id)
        if current is None:
            raise StorageError(f"schedule {schedule_id} vanished during update")
        updated = current.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self._store[schedule_id] = updated
        return updated

    def delete(self, schedule_id: str) -> ScheduleAssignment | None:
        return self._store.pop(schedule_id, None)


class ScheduleRequestRepository:
    """Dict-backed store for ScheduleRequest instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ScheduleRequest] = {}

    def add(self, request: ScheduleRequest) -> None:
        self._store[request.id] = request

    def get(self, request_id: str) -> ScheduleRequest | None:
        return self._store.get(request_id)

    def find(self, exclude_id: str | None = None, **filters: Any) -> list[ScheduleRequest]:
        """Return requests matching every filter, newest first."""
        found = [
            r
            for r in self._store.values()
            if r.id != exclude_id and _matches(r, filters)
        ]
        return sorted(found, key=lambda r: r.created_at, reverse=True)

    def delete(self, request_id: str) -> ScheduleRequest | None:
        return self._store.pop(request_id, None)


class NotificationRepository:
    """List-backed store for Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def get(self, notification_id: str) -> Notification | None:
        for item in self._items:
            if item.id == notification_id:
                return item
        return None

    def list_for(
        self, role: UserRole | None = None, user_id: str | None = None
    ) -> list[Notification]:
        """Notifications addressed to *user_id*, plus role-wide ones for *role*."""
        return sorted(
            [
                n
                for n in self._items
                if (user_id is not None and n.user_id == user_id)
                or (role is not None and n.role == role and n.user_id is None)
            ],
            key=lambda n: n.created_at,
            reverse=True,
        )

    def mark_read(self, notification_id: str) -> Notification | None:
        item = self.get(notification_id)
        if item is not None:
            item.read = True
        return item


class SettingsRepository:
    """Holds the single mutable SystemSettings document."""

    def __init__(self, initial: SystemSettings | None = None) -> None:
        self._settings = initial or SystemSettings()

    def get(self) -> SystemSettings:
        return self._settings.model_copy(deep=True)

    def update_scheduling(self, update: SchedulingSettingsUpdate) -> SystemSettings:
        merged = self._settings.scheduling.model_dump() | update.model_dump(exclude_none=True)
        self._settings = self._settings.model_copy(
            update={"scheduling": SchedulingSettings.model_validate(merged)}
        )
        return self.get()

    def update_notifications(self, update: NotificationSettingsUpdate) -> SystemSettings:
        self._settings = self._settings.model_copy(
            update={
                "notifications": self._settings.notifications.model_copy(
                    update=update.model_dump(exclude_none=True)
                )
            }
        )
        return self.get()

    def reset(self, settings: SystemSettings) -> None:
        self._settings = settings


# ---------------------------------------------------------------------------
# Seed data – a small campus useful for trying out conflict detection
# ---------------------------------------------------------------------------


def seed_directory(
    course_repo: CourseRepository,
    instructor_repo: InstructorRepository,
    room_repo: RoomRepository,
    student_repo: StudentRepository,
) -> None:
    for room in (
        Room(name="Room 101", building="Main Building", capacity=40, floor=1),
        Room(name="Room 205", building="Main Building", capacity=35, floor=2),
        Room(name="Lab A", building="Science Wing", type="computer_lab", capacity=30),
        Room(name="Auditorium", building="Hall of Arts", type="auditorium", capacity=200),
    ):
        room_repo.add(room)

    for course in (
        Course(code="CS101", name="Introduction to Programming", department="Computer Science", credits=3),
        Course(code="CS201", name="Data Structures", department="Computer Science", credits=3),
        Course(code="MATH150", name="Calculus I", department="Mathematics", credits=4),
        Course(code="PHYS110", name="General Physics", department="Physics", credits=4, type="lab"),
    ):
        course_repo.add(course)

    for instructor in (
        Instructor(name="Ada Reyes", email="ada.reyes@university.edu", department="Computer Science"),
        Instructor(name="Marcus Lin", email="marcus.lin@university.edu", department="Mathematics"),
        Instructor(name="Priya Nair", email="priya.nair@university.edu", department="Physics"),
    ):
        instructor_repo.add(instructor)

    cs101, cs201, math150, _ = course_repo.list_all()
    for student in (
        Student(
            name="Jamie Ortiz",
            email="jamie.ortiz@university.edu",
            enrolled_course_ids=[cs101.id, math150.id],
        ),
        Student(
            name="Sam Okafor",
            email="sam.okafor@university.edu",
            enrolled_course_ids=[cs201.id],
        ),
    ):
        student_repo.add(student)
