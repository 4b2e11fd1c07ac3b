"""Instructor schedule requests and their approval workflow.

Requests are checked only against other *approved* requests for the same
room and day. They never consult the published schedule: this is a separate
funnel for ad hoc room bookings. The conflict flag is computed once when a
request is filed and recomputed only when it is approved.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.bus import EventBus
from app.domain.events import ScheduleRequestCreated, ScheduleRequestStatusChanged
from app.domain.models import (
    MessageResponse,
    RequestStatus,
    ScheduleRequest,
    ScheduleRequestCreate,
)
from app.repos.memory import ScheduleRepository, ScheduleRequestRepository
from app.services.conflicts import overlaps
from app.services.directory import ResourceDirectory, ensure_object_id

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.UNDER_REVIEW, RequestStatus.APPROVED, RequestStatus.REJECTED}
    ),
    RequestStatus.UNDER_REVIEW: frozenset(
        {RequestStatus.PENDING, RequestStatus.APPROVED, RequestStatus.REJECTED}
    ),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def same_booking_day(a: ScheduleRequestCreate, b: ScheduleRequestCreate) -> bool:
    """Dated requests match on the date; a weekly request matches its weekday."""
    if a.booking_date is not None and b.booking_date is not None:
        return a.booking_date == b.booking_date
    return a.day_of_week == b.day_of_week


def find_request_conflicts(
    candidate: ScheduleRequestCreate, approved: list[ScheduleRequest]
) -> list[str]:
    conflicts = []
    for other in approved:
        if (
            other.room_id == candidate.room_id
            and same_booking_day(candidate, other)
            and overlaps(candidate.time_range, other.time_range)
        ):
            when = other.booking_date.isoformat() if other.booking_date else other.day_of_week
            conflicts.append(
                f"Room {other.room_name or other.room_id} is already booked on {when} "
                f"({other.start_time}-{other.end_time}) by {other.instructor_name or 'another instructor'}"
            )
    return conflicts


class ScheduleRequestWorkflow:
    def __init__(
        self,
        request_repo: ScheduleRequestRepository,
        directory: ResourceDirectory,
        schedule_repo: ScheduleRepository,
        bus: EventBus,
    ) -> None:
        self.request_repo = request_repo
        self.directory = directory
        self.schedule_repo = schedule_repo
        self.bus = bus

    def get(self, request_id: str) -> ScheduleRequest:
        request = self.request_repo.get(ensure_object_id(request_id, "request id"))
        if request is None:
            raise NotFoundError("Schedule request", request_id)
        return request

    def list_all(self) -> list[ScheduleRequest]:
        return self.request_repo.find()

    def list_for_instructor(self, instructor_id: str) -> list[ScheduleRequest]:
        ensure_object_id(instructor_id, "instructor_id")
        return self.request_repo.find(instructor_id=instructor_id)

    def create(self, payload: ScheduleRequestCreate) -> ScheduleRequest:
        instructor = self.directory.get_instructor(payload.instructor_id)
        room = self.directory.get_room(payload.room_id)
        course = (
            self.directory.get_course(payload.course_id)
            if payload.course_id is not None
            else None
        )
        if payload.schedule_id is not None and self.schedule_repo.get(payload.schedule_id) is None:
            raise NotFoundError("Schedule", payload.schedule_id)

        conflicts = self._approved_conflicts(payload)
        request = ScheduleRequest(
            **payload.model_dump(),
            instructor_name=instructor.name,
            room_name=room.name,
            course_code=course.code if course else None,
            conflict_flag=bool(conflicts),
            conflicts=conflicts,
        )
        self.request_repo.add(request)
        logger.info(
            "Filed schedule request %s for room %s (conflict_flag=%s)",
            request.id,
            room.name,
            request.conflict_flag,
        )
        self.bus.publish(
            ScheduleRequestCreated(request_id=request.id, conflict_flag=request.conflict_flag)
        )
        return request

    def update_status(
        self, request_id: str, status: RequestStatus, notes: str | None = None
    ) -> ScheduleRequest:
        current = self.get(request_id)
        if status not in ALLOWED_TRANSITIONS[current.status]:
            if not ALLOWED_TRANSITIONS[current.status]:
                raise ValidationError(f"Schedule request is already {current.status}")
            raise ValidationError(
                f"Cannot move schedule request from {current.status} to {status}"
            )

        changes: dict = {"status": status, "updated_at": datetime.now(timezone.utc)}
        if notes:
            changes["notes"] = notes
        if status == RequestStatus.APPROVED:
            conflicts = self._approved_conflicts(current, exclude_id=current.id)
            changes["conflicts"] = conflicts
            changes["conflict_flag"] = bool(conflicts)

        updated = current.model_copy(update=changes)
        self.request_repo.add(updated)
        logger.info("Schedule request %s moved %s -> %s", updated.id, current.status, status)

        self.bus.publish(
            ScheduleRequestStatusChanged(
                request_id=updated.id,
                instructor_id=updated.instructor_id,
                previous_status=current.status,
                status=status,
                conflict_flag=updated.conflict_flag,
                notes=updated.notes,
            )
        )
        return updated

    def approve(self, request_id: str, notes: str | None = None) -> ScheduleRequest:
        return self.update_status(request_id, RequestStatus.APPROVED, notes)

    def reject(self, request_id: str, notes: str | None = None) -> ScheduleRequest:
        return self.update_status(request_id, RequestStatus.REJECTED, notes)

    def delete(self, request_id: str) -> MessageResponse:
        removed = self.request_repo.delete(ensure_object_id(request_id, "request id"))
        if removed is None:
            raise NotFoundError("Schedule request", request_id)
        return MessageResponse(message="Schedule request deleted successfully")

    def _approved_conflicts(
        self, candidate: ScheduleRequestCreate, exclude_id: str | None = None
    ) -> list[str]:
        try:
            approved = self.request_repo.find(
                exclude_id=exclude_id,
                status=RequestStatus.APPROVED,
                room_id=candidate.room_id,
            )
            return find_request_conflicts(candidate, approved)
        except Exception as exc:
            logger.exception("Error checking schedule request conflicts")
            return [f"Error checking for room conflicts: {exc}"]
