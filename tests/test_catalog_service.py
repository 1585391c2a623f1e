"""Tests for the Constructor catalog service."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
import respx

from core.config import CatalogSettings, ConstructorSettings
from services.catalog.service import CatalogService
from services.catalog.types import TaskStatus, UploadOperation
from services.constructor.client import ConstructorHttpClient
from services.constructor.errors import (
    AuthenticationError,
    CatalogFileNotFoundError,
    ConfigurationError,
    RateLimitError,
    TaskTimeoutError,
)

BASE_URL = "https://search.test"


@pytest_asyncio.fixture()
async def service() -> AsyncIterator[CatalogService]:
    """Catalog service with a token and fast polling."""
    client = ConstructorHttpClient(
        BASE_URL, "key_test", "tok_secret", retry_times=0, retry_sleep_ms=0
    )
    catalog = CatalogService(client, poll_interval=3, max_attempts=5)
    yield catalog
    await catalog.close()


@pytest.fixture()
def catalog_file(tmp_path: Path) -> Path:
    """A small CSV catalog."""
    path = tmp_path / "catalog.csv"
    path.write_text("id,item_name\n1,Red Shoe\n")
    return path


def _mock_verify(respx_mock: respx.MockRouter) -> respx.Route:
    return respx_mock.get("/v1/verify").mock(
        return_value=httpx.Response(200, json={"message": "Valid key and token"})
    )


class TestConstruction:
    """Tests for service construction."""

    def test_requires_token(self) -> None:
        """A client without a token is rejected."""
        client = ConstructorHttpClient(BASE_URL, "key_test")

        with pytest.raises(ConfigurationError, match="token"):
            CatalogService(client)

    def test_from_settings_requires_credentials(self) -> None:
        """Settings without a token are rejected."""
        with pytest.raises(ConfigurationError):
            CatalogService.from_settings(ConstructorSettings(api_key="key"), CatalogSettings())

    def test_from_settings(self) -> None:
        """Catalog settings become service defaults."""
        service = CatalogService.from_settings(
            ConstructorSettings(api_key="key", api_token="tok"),
            CatalogSettings(default_operation="patch", force=False, max_attempts=3),
        )

        assert service.default_operation is UploadOperation.PATCH
        assert service.force is False
        assert service.max_attempts == 3
        assert service.client.base_url == "https://ac.cnstrc.com"


class TestVerify:
    """Tests for credential verification."""

    @pytest.mark.asyncio
    async def test_verified_once(self, service: CatalogService) -> None:
        """Credentials are verified before the first call only."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            verify_route = _mock_verify(respx_mock)
            respx_mock.get("/v1/tasks/7").mock(
                return_value=httpx.Response(200, json={"id": 7, "status": "QUEUED"})
            )

            await service.get_task_status("7")
            await service.get_task_status("7")

        assert verify_route.call_count == 1
        assert service.credentials_verified is True
        assert verify_route.calls.last.request.headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_failed_verification_is_retried(self, service: CatalogService) -> None:
        """A rejected verification is attempted again on the next call."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            verify_route = respx_mock.get("/v1/verify").mock(
                side_effect=[httpx.Response(401), httpx.Response(200, json={})]
            )
            respx_mock.get("/v1/tasks/7").mock(
                return_value=httpx.Response(200, json={"status": "DONE"})
            )

            with pytest.raises(AuthenticationError):
                await service.get_task_status("7")
            assert service.credentials_verified is False

            task = await service.get_task_status("7")

        assert task.status is TaskStatus.DONE
        assert verify_route.call_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [asyncio.CancelledError(), TypeError("bad body")])
    async def test_interrupted_verification_is_retried(
        self, service: CatalogService, catalog_file: Path, error: BaseException
    ) -> None:
        """Any exception escaping verify leaves the credentials unverified."""
        verify = AsyncMock(side_effect=[error, {"message": "Valid key and token"}])

        async with respx.mock(base_url=BASE_URL) as respx_mock:
            upload_route = respx_mock.put("/v1/catalog").mock(
                return_value=httpx.Response(200, json={"task_id": "5"})
            )

            with patch.object(service, "verify", verify):
                with pytest.raises(type(error)):
                    await service.upload_catalog(str(catalog_file))
                assert service.credentials_verified is False

                await service.upload_catalog(str(catalog_file))

        assert verify.await_count == 2
        assert upload_route.call_count == 1
        assert service.credentials_verified is True


class TestUploadCatalog:
    """Tests for catalog uploads."""

    @pytest.mark.asyncio
    async def test_missing_file(self, service: CatalogService, tmp_path: Path) -> None:
        """A missing file fails before any request."""
        async with respx.mock(base_url=BASE_URL, assert_all_called=False) as respx_mock:
            verify_route = _mock_verify(respx_mock)

            with pytest.raises(CatalogFileNotFoundError) as exc_info:
                await service.upload_catalog(str(tmp_path / "missing.csv"))

        assert exc_info.value.path.endswith("missing.csv")
        assert isinstance(exc_info.value, FileNotFoundError)
        assert verify_route.called is False

    @pytest.mark.asyncio
    async def test_replace_upload(self, service: CatalogService, catalog_file: Path) -> None:
        """The default upload is a forced PUT with a bearer token."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.put("/v1/catalog").mock(
                return_value=httpx.Response(
                    200, json={"task_id": 99, "task_status_path": "/v1/tasks/99"}
                )
            )

            upload = await service.upload_catalog(str(catalog_file))

        assert upload.task_id == "99"
        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer tok_secret"
        assert request.url.params["force"] == "true"
        assert request.url.params["section"] == "Products"
        body = request.read()
        assert b'name="items"; filename="catalog.csv"' in body
        assert b"1,Red Shoe" in body

    @pytest.mark.asyncio
    async def test_patch_upload_with_groups(
        self, service: CatalogService, catalog_file: Path, tmp_path: Path
    ) -> None:
        """Patch uploads use PATCH and may carry an item groups file."""
        groups_file = tmp_path / "groups.csv"
        groups_file.write_text("id,name\nshoes,Shoes\n")

        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.patch("/v1/catalog").mock(
                return_value=httpx.Response(200, json={"task_id": "5"})
            )

            await service.upload_catalog(
                str(catalog_file),
                "patch",
                force=False,
                section="Recipes",
                item_groups_file=str(groups_file),
            )

        request = route.calls.last.request
        assert "force" not in request.url.params
        assert request.url.params["section"] == "Recipes"
        assert b'name="item_groups"; filename="groups.csv"' in request.read()

    @pytest.mark.asyncio
    async def test_unknown_operation_replaces(
        self, service: CatalogService, catalog_file: Path
    ) -> None:
        """Any operation other than patch replaces the catalog."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.put("/v1/catalog").mock(
                return_value=httpx.Response(200, json={"task_id": "5"})
            )

            await service.upload_catalog(str(catalog_file), "merge")

        assert route.called

    @pytest.mark.asyncio
    async def test_rate_limited(self, service: CatalogService, catalog_file: Path) -> None:
        """Upload failures raise typed errors."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            respx_mock.put("/v1/catalog").mock(
                return_value=httpx.Response(429, headers={"Retry-After": "30"})
            )

            with pytest.raises(RateLimitError) as exc_info:
                await service.upload_catalog(str(catalog_file))

        assert exc_info.value.retry_after == 30


class TestTaskPolling:
    """Tests for task polling."""

    @pytest.mark.asyncio
    async def test_polls_until_done(self, service: CatalogService) -> None:
        """Polling stops at the first terminal status."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.get("/v1/tasks/7").mock(
                side_effect=[
                    httpx.Response(200, json={"status": "PENDING"}),
                    httpx.Response(200, json={"status": "IN_PROGRESS"}),
                    httpx.Response(200, json={"status": "DONE"}),
                ]
            )

            with patch(
                "services.catalog.service.asyncio.sleep", new_callable=AsyncMock
            ) as mock_sleep:
                task = await service.wait_for_task_completion("7")

        assert task.successful is True
        assert route.call_count == 3
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(3)

    @pytest.mark.asyncio
    async def test_failed_task_is_returned(self, service: CatalogService) -> None:
        """A failed task ends polling without raising."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            respx_mock.get("/v1/tasks/7").mock(
                return_value=httpx.Response(200, json={"status": "FAILED", "error": "bad"})
            )

            task = await service.wait_for_task_completion("7")

        assert task.status is TaskStatus.FAILED
        assert task.error == "bad"

    @pytest.mark.asyncio
    async def test_timeout(self, service: CatalogService) -> None:
        """A task still running after max_attempts polls raises."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.get("/v1/tasks/7").mock(
                return_value=httpx.Response(200, json={"status": "QUEUED"})
            )

            with patch(
                "services.catalog.service.asyncio.sleep", new_callable=AsyncMock
            ) as mock_sleep:
                with pytest.raises(TaskTimeoutError) as exc_info:
                    await service.wait_for_task_completion("7", max_attempts=2, delay_seconds=0.5)

        assert exc_info.value.attempts == 2
        assert route.call_count == 2
        assert mock_sleep.await_count == 1
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [0, -1])
    async def test_explicit_attempts_below_one_are_rejected(
        self, service: CatalogService, max_attempts: int
    ) -> None:
        """An explicit zero is not replaced by the configured default."""
        async with respx.mock(base_url=BASE_URL, assert_all_called=False) as respx_mock:
            route = respx_mock.get("/v1/tasks/7")

            with pytest.raises(ValueError, match="max_attempts"):
                await service.wait_for_task_completion("7", max_attempts=max_attempts)

        assert route.called is False


class TestItems:
    """Tests for item operations."""

    @pytest.mark.asyncio
    async def test_update_items(self, service: CatalogService) -> None:
        """Items are PUT as JSON."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.put("/v2/items").mock(
                return_value=httpx.Response(200, json={"task_id": "11"})
            )

            upload = await service.update_items(
                [{"id": "1", "name": "Red Shoe"}], notification_email="ops@example.com"
            )

        assert upload.task_id == "11"
        request = route.calls.last.request
        assert json.loads(request.content) == {"items": [{"id": "1", "name": "Red Shoe"}]}
        assert request.url.params["notification_email"] == "ops@example.com"
        assert "force" not in request.url.params

    @pytest.mark.asyncio
    async def test_delete_items(self, service: CatalogService) -> None:
        """Deletions send item ids."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.delete("/v2/items").mock(return_value=httpx.Response(204))

            upload = await service.delete_items(["1", "2"], section="Recipes")

        assert upload.task_id == ""
        request = route.calls.last.request
        assert json.loads(request.content) == {"items": [{"id": "1"}, {"id": "2"}]}
        assert request.headers["authorization"] == "Bearer tok_secret"

    @pytest.mark.asyncio
    async def test_get_item(self, service: CatalogService) -> None:
        """Items are read with Basic auth."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            route = respx_mock.get("/v2/items/sku-1").mock(
                return_value=httpx.Response(200, json={"id": "sku-1"})
            )

            assert await service.get_item("sku-1") == {"id": "sku-1"}

        request = route.calls.last.request
        assert request.headers["authorization"].startswith("Basic ")
        assert request.url.params["section"] == "Products"

    @pytest.mark.asyncio
    async def test_get_item_missing(self, service: CatalogService) -> None:
        """A failed lookup gives None."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            _mock_verify(respx_mock)
            respx_mock.get("/v2/items/nope").mock(return_value=httpx.Response(404))

            assert await service.get_item("nope") is None

    @pytest.mark.asyncio
    async def test_catalog_info_failure(self, service: CatalogService) -> None:
        """Catalog info degrades to an empty dict."""
        async with respx.mock(base_url=BASE_URL) as respx_mock:
            respx_mock.get("/v1/verify").mock(return_value=httpx.Response(403))

            assert await service.get_catalog_info() == {}
