"""Domain models for the course scheduling system."""

from __future__ import annotations

import secrets
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"
CLOCK_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

ObjectId = Annotated[str, Field(pattern=OBJECT_ID_PATTERN)]
ClockTime = Annotated[str, Field(pattern=CLOCK_TIME_PATTERN, examples=["09:00"])]


class DayOfWeek(StrEnum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


DAY_ORDER: dict[DayOfWeek, int] = {day: index for index, day in enumerate(DayOfWeek)}


class Semester(StrEnum):
    FIRST = "First Term"
    SECOND = "Second Term"
    THIRD = "Third Term"


class ScheduleStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CONFLICT = "conflict"
    CANCELED = "canceled"


class RequestStatus(StrEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestType(StrEnum):
    ROOM_CHANGE = "room_change"
    TIME_CHANGE = "time_change"
    SCHEDULE_CONFLICT = "schedule_conflict"
    ROOM_BOOKING = "room_booking"


class UserRole(StrEnum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    """Return a fresh 24-character hex identifier."""
    return secrets.token_hex(12)


def _check_time_order(start_time: str, end_time: str) -> None:
    # Zero-padded "HH:MM" strings compare the same way as the times they encode.
    if start_time >= end_time:
        raise ValueError("end_time must be after start_time")


# ---------------------------------------------------------------------------
# Time slots
# ---------------------------------------------------------------------------


class TimeRange(BaseModel):
    """A weekly slot: one day plus a half-open ``[start_time, end_time)``."""

    model_config = ConfigDict(frozen=True)

    day_of_week: DayOfWeek
    start_time: ClockTime
    end_time: ClockTime

    @model_validator(mode="after")
    def _end_after_start(self) -> TimeRange:
        _check_time_order(self.start_time, self.end_time)
        return self

    def __str__(self) -> str:
        return f"{self.day_of_week} {self.start_time}-{self.end_time}"


# ---------------------------------------------------------------------------
# Resource directory entities
# ---------------------------------------------------------------------------


class Course(BaseModel):
    id: str = Field(default_factory=new_object_id)
    code: str
    name: str
    department: str
    credits: int = Field(default=3, ge=1)
    type: str = "lecture"
    duration: int = Field(default=90, ge=30)


class Instructor(BaseModel):
    id: str = Field(default_factory=new_object_id)
    name: str
    email: str
    department: str
    max_hours_per_week: int = Field(default=20, ge=1)


class Room(BaseModel):
    id: str = Field(default_factory=new_object_id)
    name: str
    building: str
    type: str = "classroom"
    capacity: int = Field(default=30, ge=1)
    floor: int = 1
    is_available: bool = True


class Student(BaseModel):
    id: str = Field(default_factory=new_object_id)
    name: str
    email: str
    enrolled_course_ids: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Schedule assignments
# ---------------------------------------------------------------------------


class ScheduleCreate(BaseModel):
    course_id: ObjectId
    instructor_id: ObjectId
    room_id: ObjectId
    day_of_week: DayOfWeek
    start_time: ClockTime
    end_time: ClockTime
    semester: Semester
    year: int = Field(ge=1900, le=9999)

    @model_validator(mode="after")
    def _end_after_start(self) -> ScheduleCreate:
        _check_time_order(self.start_time, self.end_time)
        return self

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    def same_assignment(self, other: ScheduleCreate) -> bool:
        """True when *other* has the same course, instructor, room, slot and term."""
        return (
            self.course_id == other.course_id
            and self.instructor_id == other.instructor_id
            and self.room_id == other.room_id
            and self.day_of_week == other.day_of_week
            and self.start_time == other.start_time
            and self.end_time == other.end_time
            and self.semester == other.semester
            and self.year == other.year
        )


class ScheduleUpdate(BaseModel):
    """Partial update; fields left as ``None`` keep their stored value."""

    course_id: ObjectId | None = None
    instructor_id: ObjectId | None = None
    room_id: ObjectId | None = None
    day_of_week: DayOfWeek | None = None
    start_time: ClockTime | None = None
    end_time: ClockTime | None = None
    semester: Semester | None = None
    year: int | None = Field(default=None, ge=1900, le=9999)


class ScheduleAssignment(ScheduleCreate):
    id: str = Field(default_factory=new_object_id)
    status: ScheduleStatus = ScheduleStatus.DRAFT
    conflicts: list[str] = Field(default_factory=list)
    academic_year: str = ""
    course_code: str = ""
    course_name: str = ""
    instructor_name: str = ""
    room_name: str = ""
    building: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CourseLoad(BaseModel):
    """Weekly teaching load of one instructor across all stored assignments."""

    instructor_id: str
    total_courses: int
    total_hours: float
    max_hours_per_week: int
    over_limit: bool


class ConflictPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    auto_conflict_detection: bool = True
    allow_overlapping_classes: bool = False


class ConflictReport(BaseModel):
    conflicts: list[str] = Field(default_factory=list)
    duplicate_of: str | None = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


# ---------------------------------------------------------------------------
# Schedule requests
# ---------------------------------------------------------------------------


class ScheduleRequestCreate(BaseModel):
    instructor_id: ObjectId
    request_type: RequestType = RequestType.ROOM_BOOKING
    course_id: ObjectId | None = None
    schedule_id: ObjectId | None = None
    room_id: ObjectId
    booking_date: date | None = None
    day_of_week: DayOfWeek | None = None
    start_time: ClockTime
    end_time: ClockTime
    semester: Semester | None = None
    year: int | None = Field(default=None, ge=1900, le=9999)
    purpose: str = Field(min_length=1)
    notes: str | None = None

    @model_validator(mode="after")
    def _resolve_day(self) -> ScheduleRequestCreate:
        _check_time_order(self.start_time, self.end_time)
        if self.booking_date is not None:
            weekday = self.booking_date.weekday()
            if weekday >= len(DAY_ORDER):
                raise ValueError("booking_date must not fall on a Sunday")
            derived = list(DayOfWeek)[weekday]
            if self.day_of_week is not None and self.day_of_week != derived:
                raise ValueError("day_of_week does not match booking_date")
            self.day_of_week = derived
        elif self.day_of_week is None:
            raise ValueError("either booking_date or day_of_week is required")
        return self

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class ScheduleRequest(ScheduleRequestCreate):
    id: str = Field(default_factory=new_object_id)
    status: RequestStatus = RequestStatus.PENDING
    conflict_flag: bool = False
    conflicts: list[str] = Field(default_factory=list)
    instructor_name: str = ""
    course_code: str | None = None
    room_name: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class RequestStatusUpdate(BaseModel):
    status: RequestStatus
    notes: str | None = None


class RejectRequest(BaseModel):
    notes: str | None = None


# ---------------------------------------------------------------------------
# Settings and notifications
# ---------------------------------------------------------------------------


class SchedulingSettings(BaseModel):
    auto_conflict_detection: bool = True
    allow_overlapping_classes: bool = False
    max_class_duration: int = 240
    min_break_between_classes: int = 15
    default_class_duration: int = 90
    working_hours_start: ClockTime = "08:00"
    working_hours_end: ClockTime = "18:00"

    def policy(self) -> ConflictPolicy:
        return ConflictPolicy(
            auto_conflict_detection=self.auto_conflict_detection,
            allow_overlapping_classes=self.allow_overlapping_classes,
        )


class SchedulingSettingsUpdate(BaseModel):
    auto_conflict_detection: bool | None = None
    allow_overlapping_classes: bool | None = None
    max_class_duration: int | None = Field(default=None, ge=1)
    min_break_between_classes: int | None = Field(default=None, ge=0)
    default_class_duration: int | None = Field(default=None, ge=1)
    working_hours_start: ClockTime | None = None
    working_hours_end: ClockTime | None = None


class NotificationSettings(BaseModel):
    conflict_alerts: bool = True
    schedule_change_notifications: bool = True


class NotificationSettingsUpdate(BaseModel):
    conflict_alerts: bool | None = None
    schedule_change_notifications: bool | None = None


class SystemSettings(BaseModel):
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class Notification(BaseModel):
    id: str = Field(default_factory=new_object_id)
    title: str
    message: str
    role: UserRole | None = None
    user_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    read: bool = False


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class ScheduleResult(BaseModel):
    success: bool = True
    message: str | None = None
    conflicts: list[str] = Field(default_factory=list)
    has_conflicts: bool = False
    schedule: ScheduleAssignment | None = None


class ConflictCheckResult(BaseModel):
    success: bool = True
    conflicts: list[str] = Field(default_factory=list)
    has_conflicts: bool = False


class MessageResponse(BaseModel):
    success: bool = True
    message: str
