"""Client for the protected application API."""

from __future__ import annotations

import logging

import httpx

from tollgate.client.models.outcomes import (
    ApiData,
    ApiOutcome,
    RequestFailed,
    classify_failure,
)
from tollgate.client.services.http import JsonEndpointClient
from tollgate.config import ClientConfig

logger = logging.getLogger(__name__)


class ProtectedApiClient(JsonEndpointClient):
    """Calls the application API with the stored access token.

    The API echoes the token claims together with ``statusCode`` and
    ``statusText``. A body reporting a non-2xx ``statusCode`` is treated like
    a failed response.
    """

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient | None = None):
        super().__init__(timeout=config.timeout, http_client=http_client)
        self._config = config

    async def fetch(self, access_token: str) -> ApiOutcome:
        logger.debug("Trying to get content from the application API")
        body = await self._send("GET", self._config.api_endpoint, token=access_token)
        if isinstance(body, RequestFailed):
            return body

        status = body.get("statusCode")
        if status is not None:
            try:
                status_code = int(status)
            except (TypeError, ValueError):
                status_code = None
            if status_code is not None and not 200 <= status_code <= 299:
                return classify_failure(status_code, body)

        return ApiData(body=body)
