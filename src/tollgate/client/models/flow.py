"""Authorization flow models.

Contains the authorization request and the parsed redirect outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    state: str
    language: str | None = None
    locale: str | None = None

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        if self.language:
            params["language"] = self.language
        if self.locale:
            params["locale"] = self.locale

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters carried by a redirect back from the server."""

    code: str
    state: str
    language: str | None = None
    locale: str | None = None


@dataclass(frozen=True)
class NotRedirected:
    """The current location is not a redirect from the authorization server."""

    pass


@dataclass(frozen=True)
class StateRejected:
    """A redirect arrived with a state that did not match the stored one.

    The secrets have been cleared and a reload requested.
    """

    received_state: str


@dataclass(frozen=True)
class Redirected:
    """A redirect whose state matched; the code is ready for exchange."""

    response: AuthorizationResponse
    code_verifier: str


RedirectOutcome = NotRedirected | StateRejected | Redirected
