"""FastAPI application — entry point for the course scheduling service."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.exceptions import (
    AppError,
    NotFoundError,
    StorageError,
    describe_validation_errors,
)
from app.domain.bus import EventBus
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    ConflictCheckResult,
    Course,
    CourseLoad,
    Instructor,
    MessageResponse,
    Notification,
    NotificationSettingsUpdate,
    RejectRequest,
    RequestStatusUpdate,
    Room,
    ScheduleAssignment,
    ScheduleCreate,
    ScheduleRequest,
    ScheduleRequestCreate,
    ScheduleResult,
    ScheduleUpdate,
    SchedulingSettings,
    SchedulingSettingsUpdate,
    Semester,
    Student,
    SystemSettings,
    UserRole,
)
from app.repos.memory import (
    CourseRepository,
    InstructorRepository,
    NotificationRepository,
    RoomRepository,
    ScheduleRepository,
    ScheduleRequestRepository,
    SettingsRepository,
    StudentRepository,
    seed_directory,
)
from app.services.directory import ResourceDirectory, ensure_object_id
from app.services.policy import PolicyProvider
from app.services.requests import ScheduleRequestWorkflow
from app.services.scheduling import ScheduleManager

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.project_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
course_repo = CourseRepository()
instructor_repo = InstructorRepository()
room_repo = RoomRepository()
student_repo = StudentRepository()
schedule_repo = ScheduleRepository()
request_repo = ScheduleRequestRepository()
notification_repo = NotificationRepository()
settings_repo = SettingsRepository(
    SystemSettings(
        scheduling=SchedulingSettings(
            auto_conflict_detection=settings.default_auto_conflict_detection,
            allow_overlapping_classes=settings.default_allow_overlapping_classes,
        )
    )
)

if settings.seed_demo_data:
    seed_directory(course_repo, instructor_repo, room_repo, student_repo)

directory = ResourceDirectory(course_repo, instructor_repo, room_repo, student_repo)
schedule_manager = ScheduleManager(
    schedule_repo=schedule_repo,
    directory=directory,
    policy_provider=PolicyProvider(settings_repo),
    bus=event_bus,
)
request_workflow = ScheduleRequestWorkflow(
    request_repo=request_repo,
    directory=directory,
    schedule_repo=schedule_repo,
    bus=event_bus,
)
handler_registry = HandlerRegistry(
    bus=event_bus,
    schedule_repo=schedule_repo,
    notification_repo=notification_repo,
    settings_repo=settings_repo,
)


# ── Error handlers ────────────────────────────────────────────────────


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "conflicts": exc.conflicts},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": describe_validation_errors(exc.errors()),
            "conflicts": [],
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "conflicts": []},
    )


# ── Routes ────────────────────────────────────────────────────────────

router = APIRouter(prefix=settings.api_prefix)


@router.get("/schedules", response_model=list[ScheduleAssignment])
def list_schedules(
    semester: Semester | None = None, year: int | None = None
) -> list[ScheduleAssignment]:
    """Return schedules, optionally narrowed to one term."""
    return schedule_manager.list_all(semester, year)


@router.get("/schedules/instructor/{instructor_id}", response_model=list[ScheduleAssignment])
def list_instructor_schedules(
    instructor_id: str, semester: Semester | None = None, year: int | None = None
) -> list[ScheduleAssignment]:
    return schedule_manager.list_for_instructor(instructor_id, semester, year)


@router.get("/schedules/student/{student_id}", response_model=list[ScheduleAssignment])
def list_student_schedules(
    student_id: str, semester: Semester | None = None, year: int | None = None
) -> list[ScheduleAssignment]:
    """Return the schedules of the courses a student is enrolled in."""
    return schedule_manager.list_for_student(student_id, semester, year)


@router.get("/schedules/{schedule_id}", response_model=ScheduleAssignment)
def get_schedule(schedule_id: str) -> ScheduleAssignment:
    return schedule_manager.get(schedule_id)


@router.post("/schedules", response_model=ScheduleResult, status_code=201)
def create_schedule(payload: ScheduleCreate) -> ScheduleResult:
    """Create a schedule entry; conflicting entries are stored with status ``conflict``."""
    return schedule_manager.create(payload)


@router.post("/schedules/check-conflicts", response_model=ConflictCheckResult)
def check_schedule_conflicts(
    payload: ScheduleCreate, exclude_id: str | None = None
) -> ConflictCheckResult:
    """Dry-run conflict detection for a proposed entry."""
    return schedule_manager.check(payload, exclude_id)


@router.put("/schedules/{schedule_id}", response_model=ScheduleResult)
def update_schedule(schedule_id: str, payload: ScheduleUpdate) -> ScheduleResult:
    return schedule_manager.update(schedule_id, payload)


@router.delete("/schedules/{schedule_id}", response_model=MessageResponse)
def delete_schedule(schedule_id: str) -> MessageResponse:
    return schedule_manager.delete(schedule_id)


@router.get("/schedule-requests", response_model=list[ScheduleRequest])
def list_schedule_requests() -> list[ScheduleRequest]:
    return request_workflow.list_all()


@router.get("/schedule-requests/instructor/{instructor_id}", response_model=list[ScheduleRequest])
def list_instructor_schedule_requests(instructor_id: str) -> list[ScheduleRequest]:
    return request_workflow.list_for_instructor(instructor_id)


@router.post("/schedule-requests", response_model=ScheduleRequest, status_code=201)
def create_schedule_request(payload: ScheduleRequestCreate) -> ScheduleRequest:
    return request_workflow.create(payload)


@router.put("/schedule-requests/{request_id}", response_model=ScheduleRequest)
def update_schedule_request_status(request_id: str, body: RequestStatusUpdate) -> ScheduleRequest:
    return request_workflow.update_status(request_id, body.status, body.notes)


@router.post("/schedule-requests/{request_id}/approve", response_model=ScheduleRequest)
def approve_schedule_request(request_id: str) -> ScheduleRequest:
    return request_workflow.approve(request_id)


@router.post("/schedule-requests/{request_id}/reject", response_model=ScheduleRequest)
def reject_schedule_request(request_id: str, body: RejectRequest | None = None) -> ScheduleRequest:
    return request_workflow.reject(request_id, body.notes if body else None)


@router.delete("/schedule-requests/{request_id}", response_model=MessageResponse)
def delete_schedule_request(request_id: str) -> MessageResponse:
    return request_workflow.delete(request_id)


@router.get("/courses", response_model=list[Course])
def list_courses() -> list[Course]:
    return course_repo.list_all()


@router.get("/instructors", response_model=list[Instructor])
def list_instructors() -> list[Instructor]:
    return instructor_repo.list_all()


@router.get("/instructors/{instructor_id}/course-load", response_model=CourseLoad)
def get_instructor_course_load(instructor_id: str) -> CourseLoad:
    return schedule_manager.course_load(instructor_id)


@router.get("/students", response_model=list[Student])
def list_students() -> list[Student]:
    return student_repo.list_all()


@router.get("/rooms", response_model=list[Room])
def list_rooms() -> list[Room]:
    return room_repo.list_all()


@router.get("/settings", response_model=SystemSettings)
def get_system_settings() -> SystemSettings:
    return settings_repo.get()


@router.put("/settings/scheduling", response_model=SystemSettings)
def update_scheduling_settings(update: SchedulingSettingsUpdate) -> SystemSettings:
    """Change the conflict policy; takes effect on the next conflict check."""
    updated = settings_repo.update_scheduling(update)
    logger.info("Scheduling settings updated: %s", update.model_dump(exclude_none=True))
    return updated


@router.put("/settings/notifications", response_model=SystemSettings)
def update_notification_settings(update: NotificationSettingsUpdate) -> SystemSettings:
    return settings_repo.update_notifications(update)


@router.get("/notifications", response_model=list[Notification])
def list_notifications(
    role: UserRole | None = None, user_id: str | None = None
) -> list[Notification]:
    return notification_repo.list_for(role=role, user_id=user_id)


@router.patch("/notifications/{notification_id}/read", response_model=Notification)
def mark_notification_read(notification_id: str) -> Notification:
    notification = notification_repo.mark_read(
        ensure_object_id(notification_id, "notification id")
    )
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return notification


app.include_router(router)


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
