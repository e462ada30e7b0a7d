"""Session-scoped storage of the access/refresh token pair.

A token counts as held only while ``expiry - now >= margin``. Anything
closer to expiry, or stored without a usable expiry, is deleted on read and
reported as absent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from tollgate.client.models.tokens import StoredTokens, TokenPair
from tollgate.client.primitives.storage import ScopedStore
from tollgate.config import DEFAULT_EXPIRY_MARGIN

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
ACCESS_TOKEN_EXP_KEY = "access_token_exp"
REFRESH_TOKEN_KEY = "refresh_token"
REFRESH_TOKEN_EXP_KEY = "refresh_token_exp"

ALL_KEYS = (
    ACCESS_TOKEN_KEY,
    ACCESS_TOKEN_EXP_KEY,
    REFRESH_TOKEN_KEY,
    REFRESH_TOKEN_EXP_KEY,
)


def _parse_expiry(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return None


class TokenStore:
    """Expiry-aware store for a TokenPair."""

    def __init__(
        self,
        store: ScopedStore,
        margin: int = DEFAULT_EXPIRY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self.margin = margin
        self._clock = clock

    def load(self) -> StoredTokens:
        """Read both tokens, dropping any that are missing or near expiry."""
        now = int(self._clock())
        access_token = self._read_token(
            ACCESS_TOKEN_KEY, ACCESS_TOKEN_EXP_KEY, now, "Access"
        )
        refresh_token = self._read_token(
            REFRESH_TOKEN_KEY, REFRESH_TOKEN_EXP_KEY, now, "Refresh"
        )
        return StoredTokens(access_token=access_token, refresh_token=refresh_token)

    def save(self, tokens: TokenPair) -> None:
        """Overwrite the stored pair. The previous refresh token is gone."""
        self._store.set_many(
            {
                ACCESS_TOKEN_KEY: tokens.access_token,
                ACCESS_TOKEN_EXP_KEY: str(tokens.access_token_expiry),
                REFRESH_TOKEN_KEY: tokens.refresh_token,
                REFRESH_TOKEN_EXP_KEY: str(tokens.refresh_token_expiry),
            }
        )
        logger.info("Tokens saved")

    def raw_refresh_token(self) -> str | None:
        """The stored refresh token regardless of expiry, for revocation."""
        return self._store.get(REFRESH_TOKEN_KEY)

    def clear(self) -> None:
        self._store.delete_many(ALL_KEYS)

    def is_present(self, expiry: int | None, now: int | None = None) -> bool:
        if expiry is None:
            return False
        if now is None:
            now = int(self._clock())
        return expiry - now >= self.margin

    def _read_token(
        self, token_key: str, expiry_key: str, now: int, label: str
    ) -> str | None:
        token = self._store.get(token_key)
        expiry = _parse_expiry(self._store.get(expiry_key))

        if not token or not self.is_present(expiry, now):
            self._store.delete_many([token_key, expiry_key])
            logger.debug(f"No valid {label} token found in storage")
            return None

        return token
