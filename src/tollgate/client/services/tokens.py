"""Token endpoint client: code exchange, refresh rotation and revocation.

The token endpoint takes JSON bodies and distinguishes the operation by
method: POST exchanges an authorization code, PATCH refreshes (and rotates
the refresh token), DELETE revokes the refresh token on logout.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from tollgate.client.models.errors import TokenError
from tollgate.client.models.outcomes import (
    FailureKind,
    RequestFailed,
    TokenGranted,
    TokenOutcome,
)
from tollgate.client.models.tokens import (
    CodeExchangeRequest,
    RefreshTokenRequest,
    RevocationRequest,
    TokenResponse,
)
from tollgate.client.services.http import JsonEndpointClient
from tollgate.config import ClientConfig

logger = logging.getLogger(__name__)


class TokenExchangeClient(JsonEndpointClient):
    """Talks to the token endpoint of the authorization server."""

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient | None = None):
        super().__init__(timeout=config.timeout, http_client=http_client)
        self._config = config

    async def exchange_code(self, code: str, code_verifier: str) -> TokenOutcome:
        """Exchange an authorization code for a new token pair.

        Args:
            code: Authorization code from the redirect
            code_verifier: PKCE verifier whose challenge started the flow

        Returns:
            TokenGranted on success, RequestFailed otherwise
        """
        request = CodeExchangeRequest(
            token_endpoint=self._config.token_endpoint,
            code=code,
            redirect_uri=self._config.redirect_uri,
            client_id=self._config.client_id,
            code_verifier=code_verifier,
        )

        logger.debug(
            f"Exchanging authorization code at {request.token_endpoint}, "
            f"client_id={request.client_id}"
        )
        body = await self._send("POST", request.token_endpoint, request.to_json_body())
        return self._to_outcome(body)

    async def refresh(self, refresh_token: str) -> TokenOutcome:
        """Refresh the access token and rotate the refresh token.

        The response must carry a new refresh token; the old one is spent.
        """
        request = RefreshTokenRequest(
            token_endpoint=self._config.token_endpoint,
            refresh_token=refresh_token,
        )

        logger.debug("Refreshing access token and rotating refresh token")
        body = await self._send("PATCH", request.token_endpoint, request.to_json_body())
        outcome = self._to_outcome(body)

        if (
            isinstance(outcome, TokenGranted)
            and outcome.tokens.refresh_token == refresh_token
        ):
            logger.error("Refresh response did not rotate the refresh token")
            return RequestFailed(
                FailureKind.PROTOCOL, "Refresh token was not rotated", None
            )
        return outcome

    async def revoke(self, refresh_token: str) -> bool:
        """Ask the server to delete the auth record for a refresh token.

        Best effort: failures are logged and reported as False, never raised.
        """
        request = RevocationRequest(
            token_endpoint=self._config.token_endpoint,
            refresh_token=refresh_token,
        )

        logger.debug("Deleting the auth record on the server")
        result = await self._send(
            "DELETE", request.token_endpoint, request.to_json_body()
        )
        if isinstance(result, RequestFailed):
            logger.warning(f"Error while deleting auth record: {result.message}")
            return False
        return True

    def _to_outcome(self, body: dict | RequestFailed) -> TokenOutcome:
        if isinstance(body, RequestFailed):
            return body

        try:
            tokens = TokenResponse.model_validate(body).to_token_pair()
        except (ValidationError, TokenError) as e:
            logger.error(f"Invalid token response format: {e}")
            return RequestFailed(FailureKind.PROTOCOL, "Invalid token response")

        logger.info("Token exchange successful")
        return TokenGranted(tokens=tokens)
