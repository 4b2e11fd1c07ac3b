"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

import logging

from app.domain.bus import EventBus
from app.domain.events import (
    ScheduleConflictDetected,
    ScheduleCreated,
    ScheduleDeleted,
    ScheduleRequestCreated,
    ScheduleRequestStatusChanged,
    ScheduleUpdated,
)
from app.domain.models import Notification, RequestStatus, UserRole
from app.repos.memory import NotificationRepository, ScheduleRepository, SettingsRepository

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Turns scheduling events into notifications, honouring notification settings."""

    def __init__(
        self,
        bus: EventBus,
        schedule_repo: ScheduleRepository,
        notification_repo: NotificationRepository,
        settings_repo: SettingsRepository,
    ) -> None:
        self.bus = bus
        self.schedule_repo = schedule_repo
        self.notification_repo = notification_repo
        self.settings_repo = settings_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(ScheduleCreated, self.on_schedule_created)
        self.bus.subscribe(ScheduleUpdated, self.on_schedule_updated)
        self.bus.subscribe(ScheduleDeleted, self.on_schedule_deleted)
        self.bus.subscribe(ScheduleConflictDetected, self.on_conflict_detected)
        self.bus.subscribe(ScheduleRequestCreated, self.on_request_created)
        self.bus.subscribe(ScheduleRequestStatusChanged, self.on_request_status_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_schedule_created(self, event: ScheduleCreated) -> None:
        logger.debug("Schedule %s created", event.schedule_id)

    def on_schedule_updated(self, event: ScheduleUpdated) -> None:
        logger.debug("Schedule %s updated, now %s", event.schedule_id, event.status)

    def on_schedule_deleted(self, event: ScheduleDeleted) -> None:
        logger.debug("Schedule %s (%s) deleted", event.schedule_id, event.course_code)

    def on_conflict_detected(self, event: ScheduleConflictDetected) -> None:
        if not self.settings_repo.get().notifications.conflict_alerts:
            return

        stored = self.schedule_repo.get(event.schedule_id)
        label = (
            f"{stored.course_code} on {stored.day_of_week} {stored.start_time}-{stored.end_time}"
            if stored
            else event.schedule_id
        )
        self.notification_repo.add(
            Notification(
                title="Schedule conflict detected",
                message=f"{label}: {'; '.join(event.conflicts)}",
                role=UserRole.ADMIN,
            )
        )

    def on_request_created(self, event: ScheduleRequestCreated) -> None:
        if event.conflict_flag:
            logger.info("Schedule request %s overlaps an approved booking", event.request_id)

    def on_request_status_changed(self, event: ScheduleRequestStatusChanged) -> None:
        if event.status not in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            return
        if not self.settings_repo.get().notifications.schedule_change_notifications:
            return

        message = f"Your schedule request was {event.status}."
        if event.status == RequestStatus.APPROVED and event.conflict_flag:
            message += " Note: it overlaps another approved booking for the same room."
        if event.notes:
            message += f" Notes: {event.notes}"
        self.notification_repo.add(
            Notification(
                title=f"Schedule request {event.status}",
                message=message,
                role=UserRole.INSTRUCTOR,
                user_id=event.instructor_id,
            )
        )
