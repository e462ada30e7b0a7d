"""Shared JSON-over-HTTP plumbing for the token endpoint and the API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tollgate.client.models.outcomes import (
    NETWORK_ERROR_MESSAGE,
    FailureKind,
    RequestFailed,
    classify_failure,
)

logger = logging.getLogger(__name__)


class JsonEndpointClient:
    """Sends JSON requests and classifies failed responses.

    Every call either returns the decoded JSON body of a 2xx response or a
    RequestFailed record. Network errors never escape as exceptions.
    """

    def __init__(self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None):
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _send(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> dict[str, Any] | RequestFailed:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        kwargs: dict[str, Any] = {"headers": headers}
        if method not in ("GET", "HEAD") and body is not None:
            kwargs["json"] = body

        try:
            response = await self._http_client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during {method} {url}: {e}")
            return RequestFailed(FailureKind.NETWORK, NETWORK_ERROR_MESSAGE)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not 200 <= response.status_code <= 299:
            failure = classify_failure(
                response.status_code, data if isinstance(data, dict) else None
            )
            logger.warning(
                f"{method} {url} failed with {response.status_code}: {failure.message}"
            )
            return failure

        if not isinstance(data, dict):
            logger.error(f"{method} {url} returned a body that is not a JSON object")
            return RequestFailed(
                FailureKind.PROTOCOL, "Invalid response format", response.status_code
            )

        return data

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
