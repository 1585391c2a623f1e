"""HTTP client for the Constructor search, agent and admin APIs."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from core.logging import get_logger
from core.result import Failure, Result, failure, success
from services.constructor.context import BackendContext, timestamp_ms
from services.constructor.errors import (
    AuthenticationError,
    ConfigurationError,
    ConstructorError,
    NetworkError,
    ParseError,
    RateLimitError,
    UpstreamRequestError,
)

if TYPE_CHECKING:
    from tenacity import RetryCallState

logger = get_logger(__name__)

# Default timeout for API requests
DEFAULT_TIMEOUT = 30.0

# Query parameters carrying objects, sent as compact JSON strings
JSON_PARAMS = frozenset({"qs", "filters", "pre_filter_expression"})

SSE_MARKER = "event:"
SSE_HEADERS = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}


class AuthMode(str, Enum):
    """How a request authenticates."""

    PUBLIC = "public"  # api key query parameter only
    BASIC = "basic"  # secret token as username, empty password
    BEARER = "bearer"  # secret token as bearer token


@dataclass(frozen=True, slots=True)
class JsonBody:
    """A response body decoded as JSON."""

    data: Any

    def as_mapping(self) -> dict[str, Any]:
        """Return the payload when it is an object, else an empty dict."""
        return dict(self.data) if isinstance(self.data, Mapping) else {}


@dataclass(frozen=True, slots=True)
class SseBody:
    """A complete Server-Sent-Events body returned without streaming."""

    text: str


type ResponseBody = JsonBody | SseBody


def classify_body(text: str) -> ResponseBody:
    """
    Decide once whether a body is an SSE transcript or JSON.

    Args:
        text: Raw response body.

    Returns:
        SseBody when the body starts with an event line, else JsonBody.

    Raises:
        ValueError: If the body is neither SSE nor valid JSON.
    """
    stripped = text.strip()
    if stripped.startswith(SSE_MARKER):
        return SseBody(text)
    if not stripped:
        return JsonBody({})
    return JsonBody(json.loads(stripped))


def encode_path_segment(value: str) -> str:
    """Percent-encode one path segment, slashes included."""
    return quote(value, safe="")


def encode_query_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """
    Prepare parameters for the query string.

    Object-valued JSON parameters become compact JSON strings, booleans
    become ``true``/``false`` and None values are dropped.
    """
    encoded: dict[str, Any] = {}
    for name, value in params.items():
        if value is None:
            continue
        if name in JSON_PARAMS and isinstance(value, (Mapping, list)):
            encoded[name] = json.dumps(value, separators=(",", ":"))
        elif isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        else:
            encoded[name] = value
    return encoded


def error_for_status(response: httpx.Response) -> ConstructorError | None:
    """
    Map a non-2xx response to a typed error.

    Returns:
        The error, or None for successful responses.
    """
    status = response.status_code
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        return RateLimitError(
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
        )
    if status in (401, 403):
        return AuthenticationError(details=response.text[:500] or None)
    if status >= 400:
        return UpstreamRequestError(status_code=status, body=response.text[:500])
    return None


def _is_server_error(response: httpx.Response) -> bool:
    return response.status_code >= 500


def _last_outcome(retry_state: RetryCallState) -> Any:
    # Hand back the final response, or re-raise the final transport error
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning("Retrying Constructor request", attempt=retry_state.attempt_number)


class ConstructorHttpClient:
    """
    HTTP client for one Constructor API host.

    Adds the public key and the ``_dt`` timestamp to every request, applies
    the attribution context of the call (or the default one) and the
    requested authentication, retries idempotent GETs a fixed number of
    times with a fixed delay, and converts every outcome into a Result.
    The client holds no per-user state, so one instance can serve every
    end user.

    Attributes:
        base_url: API host, without trailing slash.
        api_key: Public API key.
        timeout: Request timeout in seconds.
        retry_times: Retries for GET requests.
        retry_sleep_ms: Delay between retries in milliseconds.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_token: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry_times: int = 2,
        retry_sleep_ms: int = 100,
        context: BackendContext | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API host.
            api_key: Public API key.
            api_token: Secret API token for Basic/Bearer requests.
            timeout: Request timeout in seconds.
            retry_times: Retries for GET requests.
            retry_sleep_ms: Delay between retries in milliseconds.
            context: Default attribution context, used by calls that pass
                none. Its client id and backend token also fill in per-call
                contexts lacking them.

        Raises:
            ConfigurationError: If base_url or api_key is empty.
        """
        if not base_url or not api_key:
            msg = "base_url and api_key are required"
            raise ConfigurationError(msg)

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retry_times = retry_times
        self.retry_sleep_ms = retry_sleep_ms

        self._api_token = api_token or None
        self.default_context = context
        self._client: httpx.AsyncClient | None = None

    @property
    def has_token(self) -> bool:
        """Check if a secret token is configured."""
        return self._api_token is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ConstructorHttpClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    def resolve_context(self, context: BackendContext | None = None) -> BackendContext | None:
        """Return the context for one call: the given one over the default, or the default."""
        if context is None:
            return self.default_context
        return context.with_defaults(self.default_context)

    def build_params(
        self,
        params: Mapping[str, Any] | None = None,
        context: BackendContext | None = None,
    ) -> dict[str, Any]:
        """
        Return query parameters with the api key and attribution context applied.

        ``_dt`` is always set, with or without a context.
        """
        query: dict[str, Any] = {"key": self.api_key, **(params or {})}
        resolved = self.resolve_context(context)
        if resolved is not None:
            query = resolved.apply(query)
        query.setdefault("_dt", timestamp_ms())
        return encode_query_params(query)

    def _build_headers(
        self,
        auth: AuthMode,
        headers: Mapping[str, str] | None,
        context: BackendContext | None = None,
    ) -> dict[str, str]:
        resolved = self.resolve_context(context)
        built = resolved.headers() if resolved is not None else {}
        built.update(headers or {})
        if auth is AuthMode.BEARER and self._api_token is not None:
            built["Authorization"] = f"Bearer {self._api_token}"
        return built

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        files: Any = None,
        auth: AuthMode = AuthMode.PUBLIC,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        context: BackendContext | None = None,
    ) -> Result[ResponseBody, ConstructorError]:
        """
        Make an API request.

        Args:
            method: HTTP method.
            path: API path, already percent-encoded.
            params: Query parameters (the api key is added).
            json_body: JSON request body.
            files: Multipart files.
            auth: Authentication mode.
            headers: Extra headers.
            timeout: Timeout override in seconds.
            context: Attribution context of the end user behind this call.

        Returns:
            Result containing the classified body or a ConstructorError.
        """
        if auth is not AuthMode.PUBLIC and self._api_token is None:
            return failure(ConfigurationError("API token is required for this endpoint"))

        method = method.upper()
        url = f"{self.base_url}{path}"
        query = self.build_params(params, context)
        client = await self._get_client()

        request_kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "params": query,
            "headers": self._build_headers(auth, headers, context),
        }
        if auth is AuthMode.BASIC and self._api_token is not None:
            request_kwargs["auth"] = httpx.BasicAuth(self._api_token, "")
        if json_body is not None:
            request_kwargs["json"] = json_body
        if files is not None:
            request_kwargs["files"] = files
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        logger.debug("Constructor request", method=method, url=url, params=query)

        try:
            if method == "GET":
                retrying = AsyncRetrying(
                    stop=stop_after_attempt(self.retry_times + 1),
                    wait=wait_fixed(self.retry_sleep_ms / 1000),
                    retry=(
                        retry_if_exception_type(httpx.TransportError)
                        | retry_if_result(_is_server_error)
                    ),
                    before_sleep=_log_retry,
                    retry_error_callback=_last_outcome,
                )
                response = await retrying(client.request, **request_kwargs)
            else:
                response = await client.request(**request_kwargs)
        except httpx.TimeoutException:
            logger.error("Constructor request timeout", method=method, url=url)
            return failure(NetworkError("Request timeout"))
        except httpx.RequestError as e:
            logger.error("Constructor request error", method=method, url=url, error=str(e))
            return failure(NetworkError("Request failed", details=str(e)))

        return self._handle_response(response, url)

    def _handle_response(
        self, response: httpx.Response, url: str
    ) -> Result[ResponseBody, ConstructorError]:
        """Handle API response and convert to Result."""
        error = error_for_status(response)
        if error is not None:
            logger.error(
                "Constructor API error",
                url=url,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            return failure(error)

        try:
            return success(classify_body(response.text))
        except ValueError as e:
            logger.error("Failed to parse Constructor response", url=url, error=str(e))
            return failure(ParseError(details=str(e)))

    async def get_json(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        auth: AuthMode = AuthMode.PUBLIC,
        context: BackendContext | None = None,
    ) -> Result[dict[str, Any], ConstructorError]:
        """
        GET an endpoint that answers with a JSON object.

        Returns:
            Result containing the decoded object or a ConstructorError.
        """
        result = await self.request("GET", path, params=params, auth=auth, context=context)
        if isinstance(result, Failure):
            return failure(result.error)
        body = result.value
        if not isinstance(body, JsonBody):
            return failure(ParseError("Expected a JSON response"))
        return success(body.as_mapping())

    @asynccontextmanager
    async def stream(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        context: BackendContext | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a Server-Sent-Events stream.

        Streams are never retried. The response is yielded once its status
        has been checked; the connection closes when the block exits.

        Raises:
            RateLimitError: On 429.
            AuthenticationError: On 401/403.
            UpstreamRequestError: On any other non-2xx status.
            NetworkError: If the connection fails or times out.
        """
        url = f"{self.base_url}{path}"
        query = self.build_params(params, context)
        client = await self._get_client()

        logger.debug("Constructor stream", url=url, params=query)

        try:
            async with client.stream(
                "GET",
                url,
                params=query,
                headers=self._build_headers(AuthMode.PUBLIC, SSE_HEADERS, context),
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    error = error_for_status(response)
                    logger.error(
                        "Constructor stream error",
                        url=url,
                        status_code=response.status_code,
                    )
                    assert error is not None
                    raise error
                yield response
        except httpx.TimeoutException as e:
            logger.error("Constructor stream timeout", url=url)
            raise NetworkError("Stream timeout") from e
        except httpx.RequestError as e:
            logger.error("Constructor stream error", url=url, error=str(e))
            raise NetworkError("Stream failed", details=str(e)) from e
