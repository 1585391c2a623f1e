"""Tests for catalog types."""

from __future__ import annotations

import pytest

from services.catalog.types import CatalogTask, CatalogUploadResult, TaskStatus, UploadOperation


class TestUploadOperation:
    """Tests for UploadOperation."""

    def test_http_method(self) -> None:
        """Patch uploads use PATCH, the rest PUT."""
        assert UploadOperation.PATCH.http_method == "PATCH"
        assert UploadOperation.CREATE_OR_REPLACE.http_method == "PUT"


class TestTaskStatus:
    """Tests for TaskStatus parsing."""

    @pytest.mark.parametrize(
        ("value", "status"),
        [
            ("DONE", TaskStatus.DONE),
            ("failed", TaskStatus.FAILED),
            ("In_Progress", TaskStatus.IN_PROGRESS),
            ("WHATEVER", TaskStatus.PENDING),
            (None, TaskStatus.PENDING),
        ],
    )
    def test_parse(self, value: object, status: TaskStatus) -> None:
        """Statuses are case-insensitive and unknown ones count as pending."""
        assert TaskStatus.parse(value) is status


class TestCatalogTask:
    """Tests for CatalogTask."""

    def test_done(self) -> None:
        """DONE is terminal and successful."""
        task = CatalogTask.from_payload("42", {"status": "DONE"})

        assert task.id == "42"
        assert task.completed is True
        assert task.successful is True
        assert task.error is None

    def test_failed(self) -> None:
        """FAILED is terminal and carries the upstream error."""
        task = CatalogTask.from_payload(
            "42", {"id": 42, "status": "FAILED", "error": {"message": "bad csv"}}
        )

        assert task.completed is True
        assert task.successful is False
        assert task.error == "bad csv"
        assert task.to_dict()["status"] == "FAILED"

    @pytest.mark.parametrize(
        "status", ["PENDING", "PROCESSING", "QUEUED", "IN_PROGRESS", "CANCELED"]
    )
    def test_not_terminal(self, status: str) -> None:
        """Only DONE and FAILED end polling."""
        assert CatalogTask.from_payload("1", {"status": status}).completed is False


class TestCatalogUploadResult:
    """Tests for CatalogUploadResult."""

    def test_from_payload(self) -> None:
        """Task ids are coerced to strings."""
        upload = CatalogUploadResult.from_payload(
            {"task_id": 123, "task_status_path": "/v1/tasks/123"}
        )

        assert upload.task_id == "123"
        assert upload.to_dict() == {
            "task_id": "123",
            "task_status_path": "/v1/tasks/123",
            "raw": {"task_id": 123, "task_status_path": "/v1/tasks/123"},
        }
