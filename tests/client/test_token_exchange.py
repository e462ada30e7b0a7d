"""Tests for the token endpoint client.

Covers code exchange, refresh rotation, revocation and the classification
of failed responses.
"""

import httpx
import pytest

from tollgate.client.models.outcomes import (
    SERVER_ERROR_MESSAGE,
    FailureKind,
    RequestFailed,
    TokenGranted,
)
from tollgate.client.services.api import ProtectedApiClient
from tollgate.client.services.tokens import TokenExchangeClient

NOW = 1_700_000_000
SUCCESS_BODY = {
    "access_token": "AT1",
    "exp": NOW + 3600,
    "refresh_token": "RT1",
    "rt_exp": NOW + 2592000,
}


@pytest.fixture
def token_client(client_config, http_client):
    return TokenExchangeClient(client_config, http_client=http_client)


class TestCodeExchange:
    async def test_successful_exchange_returns_token_pair(
        self, token_client, http_client, make_response
    ):
        # Arrange
        http_client.request.return_value = make_response(200, SUCCESS_BODY)

        # Act
        outcome = await token_client.exchange_code("C1", "V" * 43)

        # Assert
        assert isinstance(outcome, TokenGranted)
        assert outcome.tokens.access_token == "AT1"
        assert outcome.tokens.access_token_expiry == NOW + 3600
        assert outcome.tokens.refresh_token == "RT1"
        assert outcome.tokens.refresh_token_expiry == NOW + 2592000

    async def test_exchange_posts_json_body(
        self, token_client, http_client, make_response
    ):
        # Arrange
        http_client.request.return_value = make_response(200, SUCCESS_BODY)

        # Act
        await token_client.exchange_code("C1", "V" * 43)

        # Assert
        http_client.request.assert_awaited_once()
        call_args = http_client.request.call_args
        assert call_args[0][0] == "POST"
        assert call_args[0][1] == "https://api.auth.example.com/v1/token"
        assert call_args[1]["json"] == {
            "grant_type": "authorization_code",
            "code": "C1",
            "redirect_uri": "https://myapp.com/callback",
            "client_id": "client-456",
            "code_verifier": "V" * 43,
        }
        assert call_args[1]["headers"]["Content-Type"] == "application/json"
        assert "Authorization" not in call_args[1]["headers"]

    async def test_4xx_surfaces_error_description(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            400,
            {"error": "invalid_grant", "error_description": "Code has expired"},
        )

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert outcome == RequestFailed(FailureKind.USER, "Code has expired", 400)

    async def test_4xx_falls_back_to_status_text(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            403, {"statusCode": 403, "statusText": "BAD_CLIENT"}
        )

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert outcome.kind is FailureKind.USER
        assert outcome.message == "BAD_CLIENT"

    async def test_5xx_uses_generic_message(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            502, json_error=ValueError("Not valid JSON")
        )

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert outcome == RequestFailed(FailureKind.SERVER, SERVER_ERROR_MESSAGE, 502)

    async def test_network_error_is_a_failure_not_an_exception(
        self, token_client, http_client
    ):
        http_client.request.side_effect = httpx.ConnectError("Connection failed")

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert isinstance(outcome, RequestFailed)
        assert outcome.kind is FailureKind.NETWORK

    async def test_success_missing_refresh_token_is_protocol_failure(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            200, {"access_token": "AT1", "exp": NOW + 3600}
        )

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert isinstance(outcome, RequestFailed)
        assert outcome.kind is FailureKind.PROTOCOL

    async def test_success_with_non_object_body_is_protocol_failure(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(200, ["not", "an", "object"])

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert outcome.kind is FailureKind.PROTOCOL

    async def test_success_with_extra_status_fields_is_granted(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            200, {**SUCCESS_BODY, "statusCode": 200, "statusText": 200, "error": None}
        )

        outcome = await token_client.exchange_code("C1", "V" * 43)

        assert isinstance(outcome, TokenGranted)
        assert outcome.tokens.refresh_token == "RT1"


class TestRefresh:
    async def test_refresh_patches_and_rotates(
        self, token_client, http_client, make_response
    ):
        # Arrange
        http_client.request.return_value = make_response(
            200, {**SUCCESS_BODY, "access_token": "AT2", "refresh_token": "RT2"}
        )

        # Act
        outcome = await token_client.refresh("RT1")

        # Assert
        assert isinstance(outcome, TokenGranted)
        assert outcome.tokens.access_token == "AT2"
        assert outcome.tokens.refresh_token == "RT2"

        call_args = http_client.request.call_args
        assert call_args[0][0] == "PATCH"
        assert call_args[1]["json"] == {
            "grant_type": "refresh_token",
            "refresh_token": "RT1",
        }

    async def test_refresh_without_rotation_is_rejected(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            200, {**SUCCESS_BODY, "access_token": "AT2", "refresh_token": "RT1"}
        )

        outcome = await token_client.refresh("RT1")

        assert isinstance(outcome, RequestFailed)
        assert outcome.kind is FailureKind.PROTOCOL

    async def test_spent_refresh_token_is_user_failure(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(
            400, {"error_description": "Refresh token has been used"}
        )

        outcome = await token_client.refresh("RT1")

        assert outcome == RequestFailed(
            FailureKind.USER, "Refresh token has been used", 400
        )


class TestRevoke:
    async def test_revoke_sends_delete_with_refresh_token(
        self, token_client, http_client, make_response
    ):
        http_client.request.return_value = make_response(200, {})

        revoked = await token_client.revoke("RT1")

        assert revoked is True
        call_args = http_client.request.call_args
        assert call_args[0][0] == "DELETE"
        assert call_args[1]["json"] == {"refresh_token": "RT1"}

    async def test_revoke_network_error_is_swallowed(self, token_client, http_client):
        http_client.request.side_effect = httpx.ConnectError("Connection failed")

        assert await token_client.revoke("RT1") is False


class TestProtectedApiClient:
    async def test_get_carries_bearer_token_and_no_body(
        self, client_config, http_client, make_response
    ):
        # Arrange
        api_client = ProtectedApiClient(client_config, http_client=http_client)
        http_client.request.return_value = make_response(
            200, {"sub": "user-123", "statusCode": 200, "statusText": "200 OK"}
        )

        # Act
        outcome = await api_client.fetch("AT1")

        # Assert
        assert outcome.body["sub"] == "user-123"
        call_args = http_client.request.call_args
        assert call_args[0] == ("GET", "https://api.example.com/token-data")
        assert call_args[1]["headers"]["Authorization"] == "Bearer AT1"
        assert "json" not in call_args[1]

    async def test_403_surfaces_coded_status_text(
        self, client_config, http_client, make_response
    ):
        api_client = ProtectedApiClient(client_config, http_client=http_client)
        http_client.request.return_value = make_response(
            403, {"statusCode": "403", "statusText": "EXPIRED_TOKEN"}
        )

        outcome = await api_client.fetch("AT1")

        assert outcome == RequestFailed(FailureKind.USER, "EXPIRED_TOKEN", 403)

    async def test_body_with_error_status_code_is_a_failure(
        self, client_config, http_client, make_response
    ):
        api_client = ProtectedApiClient(client_config, http_client=http_client)
        http_client.request.return_value = make_response(
            200, {"statusCode": 401, "statusText": "Unauthorized"}
        )

        outcome = await api_client.fetch("AT1")

        assert isinstance(outcome, RequestFailed)
        assert outcome.message == "Unauthorized"
