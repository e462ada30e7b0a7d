"""Authorization redirect and return handling.

Builds the authorization URL, hands control to the authorization server and
validates the redirect that comes back, including the state check that
protects against forged redirects.
"""

from __future__ import annotations

import logging
import secrets
from urllib.parse import parse_qs, urlsplit

from tollgate.client.models.errors import MalformedRedirectError, StateMismatchError
from tollgate.client.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    NotRedirected,
    RedirectOutcome,
    Redirected,
    StateRejected,
)
from tollgate.client.primitives.pkce import build_pkce_parameters
from tollgate.client.services.navigation import Navigator
from tollgate.client.services.notifications import PendingNotifications
from tollgate.client.services.secrets import SessionSecretStore
from tollgate.config import ClientConfig

logger = logging.getLogger(__name__)

STATE_MISMATCH_MESSAGE = "Wrong State parameter. Please try again."


def validate_state(expected: str, actual: str) -> None:
    """Validate the returned state against the stored one.

    Raises:
        StateMismatchError: If the values differ
    """
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise StateMismatchError("State parameter mismatch - possible CSRF attack")


def parse_redirect_url(url: str) -> AuthorizationResponse | None:
    """Parse the query of a location into an AuthorizationResponse.

    Returns:
        None when ``code`` or ``state`` is missing

    Raises:
        MalformedRedirectError: If the URL cannot be parsed or carries a
            parameter more than once
    """
    try:
        query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    except ValueError as e:
        raise MalformedRedirectError(f"Could not get URL search parameters: {e}") from e

    def get_single_param(key: str) -> str | None:
        values = query.get(key, [])
        if len(values) > 1:
            raise MalformedRedirectError(f"Repeated {key} parameter in redirect")
        return values[0] if values else None

    code = get_single_param("code")
    state = get_single_param("state")
    if code is None or state is None:
        return None

    return AuthorizationResponse(
        code=code,
        state=state,
        language=get_single_param("language"),
        locale=get_single_param("locale"),
    )


class AuthorizationRedirector:
    """Sends the user to the authorization endpoint and checks the way back."""

    def __init__(
        self,
        config: ClientConfig,
        secret_store: SessionSecretStore,
        navigator: Navigator,
        pending: PendingNotifications,
    ):
        self._config = config
        self._secret_store = secret_store
        self._navigator = navigator
        self._pending = pending

    def build_authorization_url(self) -> str:
        """Build the authorization URL, creating secrets if none are pending.

        Raises:
            EnvironmentUnsupportedError: If secrets cannot be generated
        """
        secrets_ = self._secret_store.get_or_create()
        pkce = build_pkce_parameters(secrets_)

        auth_request = AuthorizationRequest(
            authorization_endpoint=self._config.authorization_endpoint,
            client_id=self._config.client_id,
            redirect_uri=self._config.redirect_uri,
            code_challenge=pkce.code_challenge,
            code_challenge_method=pkce.code_challenge_method,
            state=secrets_.state,
            language=self._config.language,
            locale=self._config.locale,
        )
        return auth_request.build_authorization_url()

    def redirect(self) -> str:
        """Navigate to the authorization page. Returns the URL used."""
        url = self.build_authorization_url()
        logger.info(f"Redirecting client {self._config.client_id} to authorization")
        self._navigator.assign(url)
        return url

    def handle_return(self, current_url: str) -> RedirectOutcome:
        """Classify the current location.

        A location without both ``code`` and ``state`` is not a redirect. A
        redirect whose state does not match is rejected: a warning is queued
        for after the reload, the secrets are cleared and the page reloaded.
        """
        response = parse_redirect_url(current_url)
        if response is None:
            return NotRedirected()

        stored = self._secret_store.load()
        try:
            if stored is None:
                raise StateMismatchError("No stored state for this redirect")
            validate_state(stored.state, response.state)
        except StateMismatchError as e:
            logger.warning(f"Rejecting redirect: {e}")
            self._pending.defer(STATE_MISMATCH_MESSAGE)
            self._secret_store.clear()
            self._navigator.reload()
            return StateRejected(received_state=response.state)

        logger.info("Redirected response from the authorization server detected")
        return Redirected(response=response, code_verifier=stored.code_verifier)

    def clean_up(self, clear_secrets: bool = True) -> None:
        """Strip ``code``/``state`` from the location and forget the secrets."""
        self._navigator.replace(self._config.redirect_uri)
        if clear_secrets:
            self._secret_store.clear()
