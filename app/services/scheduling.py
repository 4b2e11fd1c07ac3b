"""Create, update and delete schedule assignments with conflict checking."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import (
    DuplicateAssignmentError,
    NotFoundError,
    ValidationError,
    describe_validation_errors,
)
from app.domain.bus import EventBus
from app.domain.events import (
    ScheduleConflictDetected,
    ScheduleCreated,
    ScheduleDeleted,
    ScheduleUpdated,
)
from app.domain.models import (
    ConflictCheckResult,
    Course,
    CourseLoad,
    Instructor,
    MessageResponse,
    Room,
    ScheduleAssignment,
    ScheduleCreate,
    ScheduleResult,
    ScheduleStatus,
    ScheduleUpdate,
    Semester,
)
from app.repos.memory import ScheduleRepository
from app.services.conflicts import check_schedule_conflicts
from app.services.directory import ResourceDirectory, ensure_object_id
from app.services.policy import PolicyProvider

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = set(ScheduleCreate.model_fields)


def academic_year(year: int) -> str:
    return f"{year}-{year + 1}"


def _course_fields(course: Course) -> dict[str, Any]:
    return {"course_code": course.code, "course_name": course.name}


def _instructor_fields(instructor: Instructor) -> dict[str, Any]:
    return {"instructor_name": instructor.name or "Unknown Instructor"}


def _room_fields(room: Room) -> dict[str, Any]:
    return {"room_name": room.name, "building": room.building}


def _build_candidate(data: dict[str, Any]) -> ScheduleCreate:
    try:
        return ScheduleCreate.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_errors(exc.errors())) from exc


def _status_for(has_conflicts: bool) -> ScheduleStatus:
    return ScheduleStatus.CONFLICT if has_conflicts else ScheduleStatus.PUBLISHED


class ScheduleManager:
    """Orchestrates validation, conflict detection and persistence of schedules.

    Exact duplicates are rejected outright. Any other conflict is recorded on
    the assignment, which is then stored with status ``conflict`` so an admin
    can resolve it later.
    """

    def __init__(
        self,
        schedule_repo: ScheduleRepository,
        directory: ResourceDirectory,
        policy_provider: PolicyProvider,
        bus: EventBus,
    ) -> None:
        self.schedule_repo = schedule_repo
        self.directory = directory
        self.policy_provider = policy_provider
        self.bus = bus

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, schedule_id: str) -> ScheduleAssignment:
        schedule = self.schedule_repo.get(ensure_object_id(schedule_id, "schedule id"))
        if schedule is None:
            raise NotFoundError("Schedule", schedule_id)
        return schedule

    def list_all(
        self, semester: Semester | None = None, year: int | None = None
    ) -> list[ScheduleAssignment]:
        return self.schedule_repo.find(**_term_filter(semester, year))

    def list_for_instructor(
        self,
        instructor_id: str,
        semester: Semester | None = None,
        year: int | None = None,
    ) -> list[ScheduleAssignment]:
        ensure_object_id(instructor_id, "instructor_id")
        return self.schedule_repo.find(
            instructor_id=instructor_id, **_term_filter(semester, year)
        )

    def list_for_student(
        self,
        student_id: str,
        semester: Semester | None = None,
        year: int | None = None,
    ) -> list[ScheduleAssignment]:
        """Schedules of every course the student is enrolled in."""
        enrolled = set(self.directory.get_student(student_id).enrolled_course_ids)
        return [
            s
            for s in self.schedule_repo.find(**_term_filter(semester, year))
            if s.course_id in enrolled
        ]

    def course_load(self, instructor_id: str) -> CourseLoad:
        """Sum the instructor's weekly hours from each assigned course's duration.

        Assignments whose course is no longer in the directory count as zero
        hours.
        """
        instructor = self.directory.get_instructor(instructor_id)
        schedules = self.schedule_repo.find(instructor_id=instructor.id)
        minutes = 0
        for schedule in schedules:
            course = self.directory.course_repo.get(schedule.course_id)
            minutes += course.duration if course else 0
        total_hours = minutes / 60
        return CourseLoad(
            instructor_id=instructor.id,
            total_courses=len(schedules),
            total_hours=total_hours,
            max_hours_per_week=instructor.max_hours_per_week,
            over_limit=total_hours > instructor.max_hours_per_week,
        )

    def check(self, payload: ScheduleCreate, exclude_id: str | None = None) -> ConflictCheckResult:
        """Run conflict detection without storing anything."""
        if exclude_id is not None:
            ensure_object_id(exclude_id, "schedule id")
        report = check_schedule_conflicts(
            payload, self.schedule_repo, self.policy_provider.current(), exclude_id
        )
        return ConflictCheckResult(
            conflicts=report.conflicts, has_conflicts=report.has_conflicts
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, payload: ScheduleCreate) -> ScheduleResult:
        course, instructor, room = self.directory.resolve(
            payload.course_id, payload.instructor_id, payload.room_id
        )

        report = check_schedule_conflicts(
            payload, self.schedule_repo, self.policy_provider.current()
        )
        if report.duplicate_of is not None:
            logger.info(
                "Rejected duplicate of schedule %s for course %s",
                report.duplicate_of,
                course.code,
            )
            raise DuplicateAssignmentError(report.conflicts)

        schedule = ScheduleAssignment(
            **payload.model_dump(),
            **_course_fields(course),
            **_instructor_fields(instructor),
            **_room_fields(room),
            academic_year=academic_year(payload.year),
            status=_status_for(report.has_conflicts),
            conflicts=report.conflicts,
        )
        self.schedule_repo.add(schedule)
        logger.info("Created schedule %s (%s) with status %s", schedule.id, course.code, schedule.status)

        self.bus.publish(ScheduleCreated(schedule_id=schedule.id))
        if report.has_conflicts:
            self.bus.publish(
                ScheduleConflictDetected(schedule_id=schedule.id, conflicts=report.conflicts)
            )

        return ScheduleResult(
            message=(
                "Schedule created with conflicts"
                if report.has_conflicts
                else "Schedule created successfully"
            ),
            conflicts=report.conflicts,
            has_conflicts=report.has_conflicts,
            schedule=schedule,
        )

    def update(self, schedule_id: str, payload: ScheduleUpdate) -> ScheduleResult:
        current = self.get(schedule_id)
        changes = payload.model_dump(exclude_none=True)

        if not changes.keys() & SCHEDULE_FIELDS:
            return ScheduleResult(
                message="No changes to apply",
                conflicts=current.conflicts,
                has_conflicts=bool(current.conflicts),
                schedule=current,
            )

        candidate = _build_candidate(current.model_dump(include=SCHEDULE_FIELDS) | changes)

        # Only references that changed are re-resolved; the rest keep their
        # cached display values.
        display: dict[str, Any] = {}
        if "course_id" in changes:
            display |= _course_fields(self.directory.get_course(candidate.course_id))
        if "instructor_id" in changes:
            display |= _instructor_fields(self.directory.get_instructor(candidate.instructor_id))
        if "room_id" in changes:
            display |= _room_fields(self.directory.get_room(candidate.room_id))
        display["academic_year"] = academic_year(candidate.year)

        report = check_schedule_conflicts(
            candidate,
            self.schedule_repo,
            self.policy_provider.current(),
            exclude_id=current.id,
        )
        if report.duplicate_of is not None:
            raise DuplicateAssignmentError(report.conflicts)

        updated = self.schedule_repo.update(
            current.id,
            {
                **candidate.model_dump(),
                **display,
                "status": _status_for(report.has_conflicts),
                "conflicts": report.conflicts,
            },
        )
        logger.info("Updated schedule %s with status %s", updated.id, updated.status)

        self.bus.publish(ScheduleUpdated(schedule_id=updated.id, status=updated.status))
        if report.has_conflicts:
            self.bus.publish(
                ScheduleConflictDetected(schedule_id=updated.id, conflicts=report.conflicts)
            )

        return ScheduleResult(
            message=(
                "Schedule updated with conflicts"
                if report.has_conflicts
                else "Schedule updated successfully"
            ),
            conflicts=report.conflicts,
            has_conflicts=report.has_conflicts,
            schedule=updated,
        )

    def delete(self, schedule_id: str) -> MessageResponse:
        removed = self.schedule_repo.delete(ensure_object_id(schedule_id, "schedule id"))
        if removed is None:
            raise NotFoundError("Schedule", schedule_id)
        logger.info("Deleted schedule %s (%s)", removed.id, removed.course_code)
        self.bus.publish(ScheduleDeleted(schedule_id=removed.id, course_code=removed.course_code))
        return MessageResponse(message="Schedule deleted successfully")


def _term_filter(semester: Semester | None, year: int | None) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    if semester is not None:
        filters["semester"] = semester
    if year is not None:
        filters["year"] = year
    return filters
