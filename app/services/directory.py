"""Read-only lookups for the courses, instructors, rooms and students the services reference."""

from __future__ import annotations

import re

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.models import OBJECT_ID_PATTERN, Course, Instructor, Room, Student
from app.repos.memory import (
    CourseRepository,
    InstructorRepository,
    RoomRepository,
    StudentRepository,
)

_OBJECT_ID_RE = re.compile(OBJECT_ID_PATTERN)


def ensure_object_id(value: str, field: str = "id") -> str:
    """Raise ValidationError unless *value* is a 24-character hex id."""
    if not isinstance(value, str) or not _OBJECT_ID_RE.match(value):
        raise ValidationError(f"Invalid {field}: must be a 24-character hex id")
    return value


class ResourceDirectory:
    def __init__(
        self,
        course_repo: CourseRepository,
        instructor_repo: InstructorRepository,
        room_repo: RoomRepository,
        student_repo: StudentRepository | None = None,
    ) -> None:
        self.course_repo = course_repo
        self.instructor_repo = instructor_repo
        self.room_repo = room_repo
        self.student_repo = student_repo or StudentRepository()

    def get_course(self, course_id: str) -> Course:
        course = self.course_repo.get(ensure_object_id(course_id, "course_id"))
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    def get_instructor(self, instructor_id: str) -> Instructor:
        instructor = self.instructor_repo.get(ensure_object_id(instructor_id, "instructor_id"))
        if instructor is None:
            raise NotFoundError("Instructor", instructor_id)
        return instructor

    def get_room(self, room_id: str) -> Room:
        room = self.room_repo.get(ensure_object_id(room_id, "room_id"))
        if room is None:
            raise NotFoundError("Room", room_id)
        return room

    def get_student(self, student_id: str) -> Student:
        student = self.student_repo.get(ensure_object_id(student_id, "student_id"))
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def resolve(
        self, course_id: str, instructor_id: str, room_id: str
    ) -> tuple[Course, Instructor, Room]:
        return (
            self.get_course(course_id),
            self.get_instructor(instructor_id),
            self.get_room(room_id),
        )
