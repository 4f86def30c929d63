"""Async GraphQL client for the target store's Admin API.

One ``TargetClient`` is built per process and handed to every job run; it owns
an ``httpx.AsyncClient`` connection pool and must be closed on shutdown.

Failure shapes:
- ``TransportError``: network failure, non-2xx status, or a body that is not a
  JSON object.
- ``GraphQLError``: a 2xx response carrying a top-level ``errors`` array.
- Mutation ``userErrors`` are returned to the caller untouched.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class TargetAPIError(Exception):
    """Base class for target API failures."""


class TransportError(TargetAPIError):
    """The request failed or the response body could not be used."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GraphQLError(TargetAPIError):
    """The API answered with a top-level ``errors`` array."""

    def __init__(self, label: str, errors: list[dict[str, Any]]) -> None:
        messages = "; ".join(str(e.get("message", e)) for e in errors) or "unknown"
        super().__init__(f"GraphQL error ({label}): {messages}")
        self.errors = errors


def format_user_errors(user_errors: list[dict[str, Any]] | None) -> str | None:
    """Render mutation ``userErrors`` as ``[CODE] message (field.path)`` joined by `` | ``."""
    if not user_errors:
        return None
    parts = []
    for err in user_errors:
        code = f"[{err['code']}] " if err.get("code") else ""
        field = err.get("field")
        if isinstance(field, list):
            field = ".".join(str(f) for f in field)
        suffix = f" ({field})" if field else ""
        parts.append(f"{code}{err.get('message') or 'Unknown error'}{suffix}")
    return " | ".join(parts)


class TargetClient:
    """Bearer-authenticated GraphQL client bound to one shop endpoint."""

    def __init__(
        self,
        endpoint: str,
        access_token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._http = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
        )

    @classmethod
    def from_settings(cls, settings, transport: httpx.AsyncBaseTransport | None = None) -> "TargetClient":
        """Build a client from the application settings."""
        target = settings.target
        return cls(
            endpoint=target.graphql_url,
            access_token=settings.target_access_token,
            timeout=target.timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "TargetClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        label: str = "",
    ) -> dict[str, Any]:
        """Run one GraphQL operation and return its ``data`` object.

        Raises:
            TransportError: Network failure, non-2xx or malformed body.
            GraphQLError: Top-level ``errors`` in the response.
        """
        try:
            response = await self._http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.HTTPError as e:
            logger.error("Request failed (%s): %s", label, e)
            raise TransportError(f"Request failed ({label}): {e}") from e

        text = response.text
        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON for %s: %s", label, text[:500])
            raise TransportError(f"Invalid JSON ({label})", response.status_code) from e

        if not response.is_success:
            logger.error("HTTP %s on %s: %s", response.status_code, label, text[:500])
            raise TransportError(f"HTTP Error {response.status_code} ({label})", response.status_code)

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected response body ({label})", response.status_code)

        if body.get("errors"):
            logger.error("GraphQL errors (%s): %s", label, body["errors"])
            raise GraphQLError(label, body["errors"])

        return body.get("data") or {}

    async def paginate(
        self,
        query: str,
        connection: str,
        variables: dict[str, Any] | None = None,
        label: str = "",
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every node of a cursor-paginated connection.

        The query must accept ``$cursor`` and select ``nodes`` (or
        ``edges { node }``) plus ``pageInfo { hasNextPage endCursor }`` on
        ``connection``. Pages are requested one after another.
        """
        cursor = None
        while True:
            data = await self.execute(query, {**(variables or {}), "cursor": cursor}, label)
            conn = data.get(connection) or {}
            nodes = conn.get("nodes")
            if nodes is None:
                nodes = [edge["node"] for edge in conn.get("edges") or []]
            for node in nodes:
                yield node

            page_info = conn.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
