"""Application error hierarchy, mapped to HTTP responses in ``app.main``."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


class AppError(Exception):
    """Base class for all application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        conflicts: list[str] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.conflicts = conflicts or []
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or malformed input, raised before anything is written."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class NotFoundError(AppError):
    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class DuplicateAssignmentError(AppError):
    """The candidate assignment is identical to one that already exists."""

    def __init__(self, conflicts: list[str]) -> None:
        super().__init__(
            "Duplicate schedule entry", status_code=400, conflicts=conflicts
        )


class StorageError(AppError):
    """Unexpected failure of the backing store. Detail is logged, not returned."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__("Internal storage error", status_code=500)


class PolicyStoreUnavailable(Exception):
    """Settings could not be read; callers substitute safe defaults."""


def describe_validation_errors(errors: Sequence[Mapping[str, Any]]) -> str:
    """Collapse pydantic error dicts into one human-readable message."""
    missing: list[str] = []
    invalid: list[str] = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        if error.get("type") == "missing":
            missing.append(location)
        elif location:
            invalid.append(f"{location}: {error.get('msg')}")
        else:
            invalid.append(str(error.get("msg")))
    parts = []
    if missing:
        parts.append(f"Missing required fields: {', '.join(missing)}")
    parts.extend(invalid)
    return "; ".join(parts) or "Invalid request"
