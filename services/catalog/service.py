"""
Catalog upload and item indexing for Constructor.

Writes authenticate with the secret token as a bearer token; elevated reads
(verify, task status, item lookup) use it as the HTTP Basic username. The
credentials are verified once, lazily, before the first authenticated
request of a service instance.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any

from core.logging import get_logger
from core.result import Failure
from services.catalog.types import CatalogTask, CatalogUploadResult, UploadOperation
from services.constructor.client import (
    AuthMode,
    ConstructorHttpClient,
    JsonBody,
    ResponseBody,
    encode_path_segment,
)
from services.constructor.errors import (
    CatalogFileNotFoundError,
    ConfigurationError,
    ConstructorError,
    TaskTimeoutError,
)

if TYPE_CHECKING:
    from core.config import CatalogSettings, ConstructorSettings

logger = get_logger(__name__)

# Upload timeout in seconds; catalog files can be large
DEFAULT_UPLOAD_TIMEOUT = 300.0

DEFAULT_SECTION = "Products"
DEFAULT_POLL_INTERVAL = 10
DEFAULT_MAX_ATTEMPTS = 60


def _is_readable_file(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK)


class CatalogService:
    """
    Catalog management client.

    Attributes:
        client: HTTP client for the search host, holding the secret token.
        credentials_verified: Whether the credentials were verified.
    """

    def __init__(
        self,
        client: ConstructorHttpClient,
        *,
        default_operation: UploadOperation = UploadOperation.CREATE_OR_REPLACE,
        force: bool = True,
        section: str = DEFAULT_SECTION,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: HTTP client; must carry the secret API token.
            default_operation: Upload operation when none is given.
            force: Default value of the upload force flag.
            section: Default catalog section.
            poll_interval: Seconds between task status polls.
            max_attempts: Task status polls before giving up.
            upload_timeout: Upload timeout in seconds.

        Raises:
            ConfigurationError: If the client has no secret token.
        """
        if not client.has_token:
            msg = "Catalog management requires an API token"
            raise ConfigurationError(msg)

        self.client = client
        self.default_operation = default_operation
        self.force = force
        self.section = section
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.upload_timeout = upload_timeout
        self.credentials_verified = False

    @classmethod
    def from_settings(
        cls,
        settings: ConstructorSettings,
        catalog: CatalogSettings,
    ) -> CatalogService:
        """
        Create a service with its own HTTP client.

        Raises:
            ConfigurationError: If the api key or token is missing.
        """
        if not settings.is_configured or not settings.has_admin_token:
            msg = "Constructor api_key and api_token are required for catalog management"
            raise ConfigurationError(msg)

        client = ConstructorHttpClient(
            base_url=settings.search_base_url,
            api_key=settings.api_key,
            api_token=settings.api_token.get_secret_value(),
            timeout=settings.timeout,
            retry_times=settings.retry_times,
            retry_sleep_ms=settings.retry_sleep,
        )
        return cls(
            client,
            default_operation=UploadOperation(catalog.default_operation),
            force=catalog.force,
            section=catalog.section,
            poll_interval=catalog.poll_interval,
            max_attempts=catalog.max_attempts,
            upload_timeout=catalog.upload_timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.close()

    async def verify(self) -> dict[str, Any]:
        """
        Verify the credentials.

        Returns:
            The verification payload.

        Raises:
            ConstructorError: If the credentials are rejected or the call fails.
        """
        result = await self.client.get_json("/v1/verify", auth=AuthMode.BASIC)
        if isinstance(result, Failure):
            logger.error("Credential verification failed", error=str(result.error))
            raise result.error
        logger.info("Credentials verified")
        return result.value

    async def _ensure_verified(self) -> None:
        # Set only once verify returns, so any failure leaves it unverified
        if self.credentials_verified:
            return
        await self.verify()
        self.credentials_verified = True

    async def upload_catalog(
        self,
        file_path: str,
        operation: UploadOperation | str | None = None,
        *,
        force: bool | None = None,
        section: str | None = None,
        item_groups_file: str | None = None,
    ) -> CatalogUploadResult:
        """
        Upload a catalog file.

        Args:
            file_path: Items file (CSV or JSONL).
            operation: ``patch`` updates in place; anything else replaces.
            force: Process even if many items would be removed.
            section: Catalog section.
            item_groups_file: Optional category hierarchy file.

        Returns:
            The accepted upload with its task id.

        Raises:
            CatalogFileNotFoundError: If the file is missing or unreadable.
            RateLimitError: On 429.
            AuthenticationError: On 401/403.
            UpstreamRequestError: On any other failure status.
        """
        if not _is_readable_file(file_path):
            raise CatalogFileNotFoundError(file_path)

        if not operation:
            operation = self.default_operation
        elif operation == UploadOperation.PATCH:
            operation = UploadOperation.PATCH
        else:
            operation = UploadOperation.CREATE_OR_REPLACE
        force = self.force if force is None else force
        section = section or self.section

        await self._ensure_verified()

        params: dict[str, Any] = {"section": section}
        if force:
            params["force"] = True

        logger.info(
            "Uploading catalog",
            file=file_path,
            operation=operation.value,
            force=force,
            section=section,
        )

        with ExitStack() as stack:
            files: dict[str, Any] = {
                "items": (os.path.basename(file_path), stack.enter_context(open(file_path, "rb"))),
            }
            if item_groups_file and _is_readable_file(item_groups_file):
                files["item_groups"] = (
                    os.path.basename(item_groups_file),
                    stack.enter_context(open(item_groups_file, "rb")),
                )

            result = await self.client.request(
                operation.http_method,
                "/v1/catalog",
                params=params,
                files=files,
                auth=AuthMode.BEARER,
                timeout=self.upload_timeout,
            )

        if isinstance(result, Failure):
            logger.error("Catalog upload failed", file=file_path, error=str(result.error))
            raise result.error

        upload = CatalogUploadResult.from_payload(_as_mapping(result.value))
        logger.info("Catalog upload accepted", file=file_path, task_id=upload.task_id)
        return upload

    async def get_task_status(self, task_id: str) -> CatalogTask:
        """
        Fetch the status of a background task.

        Raises:
            ConstructorError: If the request fails.
        """
        await self._ensure_verified()

        result = await self.client.get_json(
            f"/v1/tasks/{encode_path_segment(task_id)}", auth=AuthMode.BASIC
        )
        if isinstance(result, Failure):
            logger.error("Task status failed", task_id=task_id, error=str(result.error))
            raise result.error

        return CatalogTask.from_payload(task_id, result.value)

    async def wait_for_task_completion(
        self,
        task_id: str,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> CatalogTask:
        """
        Poll a task at a fixed interval until it completes.

        Blocks the calling task for up to max_attempts * delay_seconds;
        run it in a background job when that matters.

        Args:
            task_id: Task to wait for.
            max_attempts: Polls before giving up; at least 1.
            delay_seconds: Seconds between polls.

        Returns:
            The terminal task status (DONE or FAILED).

        Raises:
            ValueError: If max_attempts is below 1.
            TaskTimeoutError: If the task is still running after max_attempts polls.
        """
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        if max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        delay = self.poll_interval if delay_seconds is None else delay_seconds

        for attempt in range(1, max_attempts + 1):
            task = await self.get_task_status(task_id)
            if task.completed:
                logger.info(
                    "Task completed",
                    task_id=task_id,
                    status=task.status.value,
                    attempts=attempt,
                )
                return task

            logger.debug("Task pending", task_id=task_id, status=task.status.value, attempt=attempt)
            if attempt < max_attempts:
                await asyncio.sleep(delay)

        logger.warning("Task timed out", task_id=task_id, attempts=max_attempts)
        raise TaskTimeoutError(task_id, max_attempts)

    async def get_catalog_info(self) -> dict[str, Any]:
        """
        Fetch catalog metadata.

        Returns:
            The metadata, or an empty dict if the request fails.
        """
        try:
            await self._ensure_verified()
        except ConstructorError as e:
            logger.warning("Catalog info unavailable", error=str(e))
            return {}

        result = await self.client.get_json("/v1/catalog", auth=AuthMode.BASIC)
        if isinstance(result, Failure):
            logger.warning("Catalog info unavailable", error=str(result.error))
            return {}
        return result.value

    async def update_items(
        self,
        items: Sequence[Mapping[str, Any]],
        section: str | None = None,
        *,
        force: bool | None = None,
        notification_email: str | None = None,
    ) -> CatalogUploadResult:
        """
        Create or replace individual items.

        Raises:
            ConstructorError: If the request fails.
        """
        await self._ensure_verified()

        section = section or self.section
        params: dict[str, Any] = {"section": section, "notification_email": notification_email}
        if force:
            params["force"] = True

        result = await self.client.request(
            "PUT",
            "/v2/items",
            params=params,
            json_body={"items": [dict(item) for item in items]},
            auth=AuthMode.BEARER,
        )
        if isinstance(result, Failure):
            logger.error("Item update failed", count=len(items), error=str(result.error))
            raise result.error

        logger.info("Items updated", count=len(items), section=section)
        return CatalogUploadResult.from_payload(_as_mapping(result.value))

    async def delete_items(
        self, item_ids: Sequence[str], section: str | None = None
    ) -> CatalogUploadResult:
        """
        Remove items by id.

        Raises:
            ConstructorError: If the request fails.
        """
        await self._ensure_verified()

        section = section or self.section
        result = await self.client.request(
            "DELETE",
            "/v2/items",
            params={"section": section},
            json_body={"items": [{"id": item_id} for item_id in item_ids]},
            auth=AuthMode.BEARER,
        )
        if isinstance(result, Failure):
            logger.error("Item deletion failed", count=len(item_ids), error=str(result.error))
            raise result.error

        logger.info("Items deleted", count=len(item_ids), section=section)
        return CatalogUploadResult.from_payload(_as_mapping(result.value))

    async def get_item(self, item_id: str, section: str | None = None) -> dict[str, Any] | None:
        """
        Look up one indexed item.

        Returns:
            The item, or None if it is missing or the request fails.
        """
        try:
            await self._ensure_verified()
        except ConstructorError as e:
            logger.warning("Item lookup failed", item_id=item_id, error=str(e))
            return None

        result = await self.client.get_json(
            f"/v2/items/{encode_path_segment(item_id)}",
            {"section": section or self.section},
            auth=AuthMode.BASIC,
        )
        if isinstance(result, Failure):
            logger.warning("Item lookup failed", item_id=item_id, error=str(result.error))
            return None
        return result.value


def _as_mapping(body: ResponseBody) -> dict[str, Any]:
    return body.as_mapping() if isinstance(body, JsonBody) else {}
