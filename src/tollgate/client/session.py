"""Client session orchestration.

Ties the redirect handling, token endpoint, token storage and API client
together into the lifecycle::

    UNAUTHENTICATED -> EXCHANGING -> AUTHENTICATED
    AUTHENTICATED -> REFRESHING -> AUTHENTICATED | UNAUTHENTICATED
    AUTHENTICATED -> LOGGED_OUT -> UNAUTHENTICATED

Any failure while authenticated shows a notification and logs the user out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from tollgate.client.models.flow import Redirected, StateRejected
from tollgate.client.models.outcomes import (
    AuthState,
    RequestFailed,
    TokenGranted,
)
from tollgate.client.primitives.storage import KeyValueStore, ScopedStore
from tollgate.client.services.api import ProtectedApiClient
from tollgate.client.services.flow import AuthorizationRedirector
from tollgate.client.services.navigation import BrowserNavigator, Navigator
from tollgate.client.services.notifications import (
    LoggingNotifier,
    Notifier,
    PendingNotifications,
)
from tollgate.client.services.secrets import SessionSecretStore
from tollgate.client.services.token_store import TokenStore
from tollgate.client.services.tokens import TokenExchangeClient
from tollgate.config import ClientConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionView:
    """What the host should present after a session step."""

    state: AuthState
    api_data: dict[str, Any] | None = None
    failure: RequestFailed | None = None

    @property
    def logged_in(self) -> bool:
        return self.state is AuthState.AUTHENTICATED


class AuthSession:
    """Client side of the authorization code flow with PKCE.

    ``flow_backend`` holds the per-attempt secrets and must survive the
    round trip through the authorization server. ``token_backend`` holds the
    token pair until logout.
    """

    def __init__(
        self,
        config: ClientConfig,
        flow_backend: KeyValueStore,
        token_backend: KeyValueStore,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.navigator = navigator or BrowserNavigator()
        self.notifier = notifier or LoggingNotifier()

        flow_store = ScopedStore(flow_backend, config.storage_prefix)
        self.secret_store = SessionSecretStore(flow_store)
        self.pending = PendingNotifications(flow_store)
        self.token_store = TokenStore(
            ScopedStore(token_backend, config.storage_prefix),
            margin=config.expiry_margin,
            clock=clock,
        )

        self.redirector = AuthorizationRedirector(
            config, self.secret_store, self.navigator, self.pending
        )
        self.token_client = TokenExchangeClient(config, http_client)
        self.api_client = ProtectedApiClient(config, http_client)

        self.state = AuthState.UNAUTHENTICATED
        self._refresh_lock = asyncio.Lock()
        self._logout_count = 0

    async def start(self, current_url: str) -> SessionView:
        """Run the start-up sequence for the current location.

        1. Show notifications queued before the last reload
        2. Handle a redirect from the authorization server, if any
        3. Refresh the access token if only a refresh token is held
        4. Call the protected API with the access token

        Raises:
            MalformedRedirectError: If the location cannot be parsed
        """
        self.pending.flush(self.notifier)

        outcome = self.redirector.handle_return(current_url)
        if isinstance(outcome, StateRejected):
            self.state = AuthState.UNAUTHENTICATED
            return SessionView(self.state)

        if isinstance(outcome, Redirected):
            failure = await self._exchange(outcome)
            if failure is not None:
                return SessionView(self.state, failure=failure)

        return await self.fetch_protected()

    def login(self) -> str:
        """Redirect to the authorization page. Returns the URL used.

        Raises:
            EnvironmentUnsupportedError: If secrets cannot be generated
        """
        return self.redirector.redirect()

    async def fetch_protected(self) -> SessionView:
        """Call the protected API, refreshing the access token first if needed."""
        access_token = await self.ensure_access_token()
        if access_token is None:
            if self.state is not AuthState.UNAUTHENTICATED:
                logger.info("LOGGED OUT")
            self.state = AuthState.UNAUTHENTICATED
            return SessionView(self.state)

        result = await self.api_client.fetch(access_token)
        if isinstance(result, RequestFailed):
            await self._fail(result)
            return SessionView(self.state, failure=result)

        self.state = AuthState.AUTHENTICATED
        logger.info("LOGGED IN")
        return SessionView(self.state, api_data=result.body)

    async def ensure_access_token(self) -> str | None:
        """Return a held access token, refreshing it when only a refresh
        token is held.

        Refreshes are single-flight within the process. The store is read
        again under the lock so a pair rotated by another task, or another
        process sharing the store, is adopted instead of spending a refresh
        token that has already been used.
        """
        tokens = self.token_store.load()
        if tokens.has_access_token:
            return tokens.access_token
        if not tokens.has_refresh_token:
            return None

        async with self._refresh_lock:
            tokens = self.token_store.load()
            if tokens.has_access_token:
                return tokens.access_token
            if not tokens.has_refresh_token:
                return None

            self.state = AuthState.REFRESHING
            logout_count = self._logout_count
            result = await self.token_client.refresh(tokens.refresh_token)

            if isinstance(result, RequestFailed):
                await self._fail(result)
                return None

            if logout_count != self._logout_count:
                logger.info("Discarding refreshed tokens: logged out meanwhile")
                await self._revoke(result.tokens.refresh_token)
                return None

            self.token_store.save(result.tokens)
            self.state = AuthState.AUTHENTICATED
            return result.tokens.access_token

    async def logout(self) -> None:
        """Forget the tokens locally, then ask the server to revoke them.

        The local state is cleared before any network call, and a failed
        revocation never restores it.
        """
        refresh_token = self.token_store.raw_refresh_token()
        self.token_store.clear()
        self._logout_count += 1
        self.state = AuthState.LOGGED_OUT
        logger.info("LOGGED OUT")
        self.state = AuthState.UNAUTHENTICATED

        if refresh_token:
            await self._revoke(refresh_token)

    async def close(self) -> None:
        await self.token_client.close()
        await self.api_client.close()

    async def _exchange(self, outcome: Redirected) -> RequestFailed | None:
        self.state = AuthState.EXCHANGING
        result = await self.token_client.exchange_code(
            outcome.response.code, outcome.code_verifier
        )

        if isinstance(result, TokenGranted):
            self.token_store.save(result.tokens)
            self.redirector.clean_up()
            self.state = AuthState.AUTHENTICATED
            return None

        # Secrets stay so a retry reuses them.
        self.redirector.clean_up(clear_secrets=False)
        await self._fail(result)
        return result

    async def _fail(self, failure: RequestFailed) -> None:
        logger.error(f"Request failed ({failure.kind.value}): {failure.message}")
        self.notifier.notify(failure.message)
        await self.logout()

    async def _revoke(self, refresh_token: str) -> None:
        try:
            await self.token_client.revoke(refresh_token)
        except Exception as e:
            logger.error(f"Error while deleting auth record: {e}")


