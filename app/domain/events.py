"""Domain events emitted by the scheduling services."""

from __future__ import annotations

from pydantic import BaseModel

from app.domain.models import RequestStatus, ScheduleStatus


class ScheduleCreated(BaseModel):
    """Fired when a new ScheduleAssignment is persisted."""

    schedule_id: str


class ScheduleUpdated(BaseModel):
    schedule_id: str
    status: ScheduleStatus


class ScheduleDeleted(BaseModel):
    schedule_id: str
    course_code: str


class ScheduleConflictDetected(BaseModel):
    """Fired when an assignment is stored in the ``conflict`` state."""

    schedule_id: str
    conflicts: list[str]


class ScheduleRequestCreated(BaseModel):
    request_id: str
    conflict_flag: bool


class ScheduleRequestStatusChanged(BaseModel):
    """Fired after an admin moves a schedule request to a new status."""

    request_id: str
    instructor_id: str
    previous_status: RequestStatus
    status: RequestStatus
    conflict_flag: bool
    notes: str | None = None
