"""Backend attribution context for server-side Constructor requests."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

# Cookies written by the Constructor browser SDK
CLIENT_ID_COOKIE = "ConstructorioID_client_id"
SESSION_ID_COOKIE = "ConstructorioID_session_id"


def timestamp_ms() -> int:
    """Current time in epoch milliseconds, the unit of ``_dt``."""
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class BackendContext:
    """
    Values attributing a backend request to the end user that caused it.

    Every field is optional: batch jobs and other non-interactive callers
    pass an empty context. Values already present in request parameters are
    never overwritten.

    Attributes:
        client_id: Value of the ``c`` parameter.
        instance_id: Browser instance id (``i``).
        session_id: Browser session id (``s``).
        ip: End-user IP, sent as X-Forwarded-For.
        user_agent: End-user agent string.
        referrer: Page that issued the request (``origin_referrer``).
        token: Backend token, sent as x-cnstrc-token.
    """

    client_id: str | None = None
    instance_id: str | None = None
    session_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    token: str | None = None

    @classmethod
    def from_request(
        cls,
        *,
        client_id: str | None = None,
        cookies: Mapping[str, str] | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
        token: str | None = None,
    ) -> BackendContext:
        """
        Build a context from values the calling layer pulled off an HTTP request.

        Args:
            client_id: Client identifier.
            cookies: Request cookies; the SDK instance and session cookies are read.
            ip: End-user IP.
            user_agent: End-user agent string.
            referrer: Referer header.
            token: Backend token.

        Returns:
            The context.
        """
        cookies = cookies or {}
        return cls(
            client_id=client_id,
            instance_id=cookies.get(CLIENT_ID_COOKIE) or None,
            session_id=cookies.get(SESSION_ID_COOKIE) or None,
            ip=ip or None,
            user_agent=user_agent or None,
            referrer=referrer or None,
            token=token or None,
        )

    def headers(self) -> dict[str, str]:
        """Return the attribution headers for the values that are set."""
        headers: dict[str, str] = {}
        if self.ip:
            headers["X-Forwarded-For"] = self.ip
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        if self.token:
            headers["x-cnstrc-token"] = self.token
        return headers

    def apply(self, params: Mapping[str, Any], *, now_ms: int | None = None) -> dict[str, Any]:
        """
        Return a copy of params enriched with attribution parameters.

        ``_dt`` (epoch milliseconds) is always set; the other parameters are
        added only when absent from params and known to the context.

        Args:
            params: Request parameters; left untouched.
            now_ms: Timestamp override for ``_dt``.

        Returns:
            New parameter mapping.
        """
        enriched = dict(params)
        for name, value in (
            ("c", self.client_id),
            ("i", self.instance_id),
            ("s", self.session_id),
            ("origin_referrer", self.referrer),
        ):
            if value and name not in enriched:
                enriched[name] = value
        enriched["_dt"] = now_ms if now_ms is not None else timestamp_ms()
        return enriched

    def with_defaults(self, default: BackendContext | None) -> BackendContext:
        """
        Fill the integration-level fields from a default context.

        Only the client identifier and backend token describe the
        integration; the end-user fields of default are never borrowed, so a
        shared default cannot leak one user's identity into another's request.
        """
        if default is None:
            return self
        return replace(
            self,
            client_id=self.client_id or default.client_id,
            token=self.token or default.token,
        )
