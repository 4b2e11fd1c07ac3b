"""Service for detecting scheduling conflicts between class assignments."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from app.domain.models import (
    ConflictPolicy,
    ConflictReport,
    ScheduleAssignment,
    ScheduleCreate,
    TimeRange,
)
from app.repos.memory import ScheduleRepository

logger = logging.getLogger(__name__)


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Return True when two weekly slots share any time on the same day.

    Overlap rule: a.start < b.end AND b.start < a.end.
    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return (
        a.day_of_week == b.day_of_week
        and a.start_time < b.end_time
        and b.start_time < a.end_time
    )


def same_slot(a: TimeRange, b: TimeRange) -> bool:
    return (
        a.day_of_week == b.day_of_week
        and a.start_time == b.start_time
        and a.end_time == b.end_time
    )


def find_overlapping(
    slot: TimeRange, existing: Iterable[ScheduleAssignment]
) -> list[ScheduleAssignment]:
    """Return the assignments in *existing* whose slot overlaps *slot*."""
    return [s for s in existing if overlaps(slot, s.time_range)]


def _describe(schedules: Iterable[ScheduleAssignment]) -> str:
    return ", ".join(
        f"{s.course_code or 'Unknown Course'} ({s.start_time}-{s.end_time})"
        for s in schedules
    )


@contextmanager
def _guard(conflicts: list[str], kind: str) -> Iterator[None]:
    """Record a failed check as a conflict instead of letting it pass silently."""
    try:
        yield
    except Exception as exc:
        logger.exception("Error checking for %s conflicts", kind)
        conflicts.append(f"Error checking for {kind} conflicts: {exc}")


def detect_conflicts(
    candidate: ScheduleCreate,
    existing: Iterable[ScheduleAssignment],
    policy: ConflictPolicy,
    exclude_id: str | None = None,
) -> ConflictReport:
    """Compare *candidate* against *existing* assignments under *policy*.

    Checks run in order: exact duplicate, room, instructor (skipped when the
    policy allows overlapping classes), then course-per-term. Disabling
    automatic detection skips every check, duplicates included.
    """
    if not policy.auto_conflict_detection:
        logger.debug("Automatic conflict detection disabled; skipping checks")
        return ConflictReport()

    slot = candidate.time_range
    in_term = [
        s
        for s in existing
        if s.id != exclude_id
        and s.semester == candidate.semester
        and s.year == candidate.year
    ]
    conflicts: list[str] = []
    duplicate_of: str | None = None

    with _guard(conflicts, "duplicate"):
        duplicate = next((s for s in in_term if candidate.same_assignment(s)), None)
        if duplicate is not None:
            duplicate_of = duplicate.id
            conflicts.append(
                f"Duplicate schedule found: {duplicate.course_code or 'Unknown Course'} "
                f"is already scheduled in {duplicate.room_name or 'Unknown Room'} "
                f"({duplicate.building or 'Unknown Building'}) at the same time slot "
                f"({slot}) in {candidate.semester} {candidate.year}"
            )

    # Rooms are physical resources: always checked, whatever the policy says.
    with _guard(conflicts, "room"):
        room_conflicts = [
            s
            for s in find_overlapping(
                slot, (s for s in in_term if s.room_id == candidate.room_id)
            )
            if not candidate.same_assignment(s)
        ]
        if room_conflicts:
            conflicts.append(
                f"Room is already booked during this time: {_describe(room_conflicts)}"
            )

    if not policy.allow_overlapping_classes:
        with _guard(conflicts, "instructor"):
            instructor_conflicts = [
                s
                for s in find_overlapping(
                    slot,
                    (s for s in in_term if s.instructor_id == candidate.instructor_id),
                )
                if not candidate.same_assignment(s)
            ]
            if instructor_conflicts:
                conflicts.append(
                    "Instructor has another class during this time: "
                    f"{_describe(instructor_conflicts)}"
                )

    with _guard(conflicts, "course"):
        course_conflicts = [
            s
            for s in in_term
            if s.course_id == candidate.course_id and not same_slot(slot, s.time_range)
        ]
        if course_conflicts:
            code = course_conflicts[0].course_code or "Unknown Course"
            details = ", ".join(
                f"{s.day_of_week} ({s.start_time}-{s.end_time})" for s in course_conflicts
            )
            conflicts.append(
                f"Course {code} is already scheduled in "
                f"{candidate.semester} {candidate.year} on: {details}"
            )

    return ConflictReport(conflicts=conflicts, duplicate_of=duplicate_of)


def check_schedule_conflicts(
    candidate: ScheduleCreate,
    schedule_repo: ScheduleRepository,
    policy: ConflictPolicy,
    exclude_id: str | None = None,
) -> ConflictReport:
    """Load the candidate's term from the store and run ``detect_conflicts``."""
    if not policy.auto_conflict_detection:
        return ConflictReport()

    try:
        existing = schedule_repo.find(
            exclude_id=exclude_id, semester=candidate.semester, year=candidate.year
        )
    except Exception as exc:
        logger.exception("Could not load schedules for conflict check")
        return ConflictReport(conflicts=[f"Error checking for conflicts: {exc}"])

    report = detect_conflicts(candidate, existing, policy, exclude_id=exclude_id)
    logger.info(
        "Conflict check for %s %s-%s (%s %s): %d conflict(s)",
        candidate.day_of_week,
        candidate.start_time,
        candidate.end_time,
        candidate.semester,
        candidate.year,
        len(report.conflicts),
    )
    logger.debug("Conflict details: %s", report.conflicts)
    return report
