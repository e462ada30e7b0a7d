"""Discriminated results returned by the asynchronous client steps.

Network steps never raise across the client boundary for expected failures;
they return one of these records instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tollgate.client.models.tokens import TokenPair

GENERIC_USER_MESSAGE = "Something went wrong"
SERVER_ERROR_MESSAGE = "Internal Server Error"
NETWORK_ERROR_MESSAGE = "Could not get API data"


class AuthState(str, Enum):
    """States of the client-side token lifecycle."""

    UNAUTHENTICATED = "unauthenticated"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


class FailureKind(str, Enum):
    """Who a failed request is attributable to."""

    USER = "user"  # 4xx
    SERVER = "server"  # 5xx
    NETWORK = "network"  # no response at all
    PROTOCOL = "protocol"  # response we could not interpret


@dataclass(frozen=True)
class RequestFailed:
    """A token endpoint or API call that did not succeed."""

    kind: FailureKind
    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class TokenGranted:
    """A token endpoint call that yielded a full token pair."""

    tokens: TokenPair


@dataclass(frozen=True)
class ApiData:
    """A protected API call that returned a 2xx response."""

    body: dict[str, Any] = field(default_factory=dict)


TokenOutcome = TokenGranted | RequestFailed
ApiOutcome = ApiData | RequestFailed


def classify_failure(status_code: int, body: dict[str, Any] | None) -> RequestFailed:
    """Turn a non-success HTTP status into a user-facing failure.

    4xx responses are attributable to the end user and surface the
    server-provided message. 5xx responses surface a generic message.
    """
    body = body or {}
    if 400 <= status_code <= 499:
        message = (
            body.get("error_description")
            or body.get("statusText")
            or GENERIC_USER_MESSAGE
        )
        return RequestFailed(FailureKind.USER, str(message), status_code)
    if 500 <= status_code <= 599:
        return RequestFailed(FailureKind.SERVER, SERVER_ERROR_MESSAGE, status_code)
    return RequestFailed(FailureKind.PROTOCOL, "API Error", status_code)
