"""Types for catalog uploads and background tasks."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from services.constructor.normalizers import as_text


class UploadOperation(str, Enum):
    """How an upload changes the catalog."""

    CREATE_OR_REPLACE = "create_or_replace"
    PATCH = "patch"

    @property
    def http_method(self) -> str:
        """Return the HTTP verb for this operation."""
        return "PATCH" if self is UploadOperation.PATCH else "PUT"


class TaskStatus(str, Enum):
    """Status of a background catalog task."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    QUEUED = "QUEUED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @classmethod
    def parse(cls, value: Any) -> TaskStatus:
        """Map an upstream status string; unknown values count as pending."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.PENDING


TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.FAILED})


@dataclass(frozen=True, slots=True)
class CatalogTask:
    """
    Snapshot of a background task.

    Attributes:
        id: Task id.
        status: Task status.
        raw: Upstream payload.
    """

    id: str
    status: TaskStatus
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, task_id: str, payload: Mapping[str, Any]) -> CatalogTask:
        """Build from the task status endpoint."""
        return cls(
            id=as_text(payload.get("id")) or task_id,
            status=TaskStatus.parse(payload.get("status")),
            raw=dict(payload),
        )

    @property
    def completed(self) -> bool:
        """Check if the task reached a terminal status."""
        return self.status in TERMINAL_STATUSES

    @property
    def successful(self) -> bool:
        """Check if the task finished successfully."""
        return self.status is TaskStatus.DONE

    @property
    def error(self) -> str | None:
        """Return the upstream error message of a failed task."""
        error = self.raw.get("error")
        if isinstance(error, Mapping):
            return as_text(error.get("message"))
        return as_text(error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "id": self.id,
            "status": self.status.value,
            "completed": self.completed,
            "successful": self.successful,
            "raw": self.raw,
        }


@dataclass(frozen=True, slots=True)
class CatalogUploadResult:
    """
    Accepted catalog upload.

    Attributes:
        task_id: Id of the background task processing the upload.
        task_status_path: Status path reported upstream, if any.
        raw: Upstream payload.
    """

    task_id: str
    task_status_path: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CatalogUploadResult:
        """Build from the upload response."""
        return cls(
            task_id=as_text(payload.get("task_id")) or "",
            task_status_path=as_text(payload.get("task_status_path")),
            raw=dict(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "task_id": self.task_id,
            "task_status_path": self.task_status_path,
            "raw": self.raw,
        }
