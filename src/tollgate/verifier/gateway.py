"""Enforcement gateway for the protected API.

Runs the token authorizer in front of ``GET /token-data`` and maps its
outcome onto HTTP: a missing or malformed credential is 401, a Deny is 403
with the coded reason, and an Allow echoes the token claims.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from tollgate.verifier.authorizer import TokenAuthorizer
from tollgate.verifier.models import UnauthorizedError

logger = logging.getLogger(__name__)

TOKEN_DATA_PATH = "/token-data"


def _render(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _stringify(context: dict[str, Any]) -> dict[str, str]:
    # The response templates render every context value as a string.
    return {key: _render(value) for key, value in context.items()}


class ProtectedApiGateway:
    """Starlette application enforcing authorizer decisions."""

    def __init__(self, authorizer: TokenAuthorizer, path: str = TOKEN_DATA_PATH):
        self._authorizer = authorizer
        self.path = path
        self.app = Starlette(routes=[Route(path, self._handle_token_data, methods=["GET"])])

    async def _handle_token_data(self, request: Request) -> Response:
        resource = f"{request.method} {request.url.path}"
        try:
            decision = await self._authorizer.authorize(
                request.headers.get("Authorization"), resource
            )
        except UnauthorizedError:
            return JSONResponse(
                {"statusCode": "401", "statusText": "Unauthorized"}, status_code=401
            )
        except Exception as e:
            logger.error(f"Error authorizing request: {e}")
            return JSONResponse(
                {"statusCode": "500", "statusText": "Internal Server Error"},
                status_code=500,
            )

        context = _stringify(decision.context)
        if not decision.allowed:
            return JSONResponse(
                {
                    "statusCode": context.get("statusCode", "403"),
                    "statusText": context.get("statusText", ""),
                },
                status_code=403,
            )

        body: dict[str, Any] = dict(context)
        body["statusCode"] = 200
        body["statusText"] = "200 OK"
        return JSONResponse(body)


class GatewayServer:
    """Serves a ProtectedApiGateway with uvicorn."""

    def __init__(
        self, gateway: ProtectedApiGateway, host: str = "127.0.0.1", port: int = 8000
    ) -> None:
        self.gateway = gateway
        self.host = host
        self.port = port
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the HTTP server in a background task."""
        config = uvicorn.Config(
            app=self.gateway.app, host=self.host, port=self.port, log_level="info"
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        logger.info(f"Gateway started on {self.host}:{self.port}{self.gateway.path}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._server:
            self._server.should_exit = True
        if self._task:
            await self._task
            self._task = None
