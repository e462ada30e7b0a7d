"""Flow-scoped storage of the PKCE code verifier and state."""

from __future__ import annotations

import logging

from tollgate.client.models.security import AuthorizationRequestSecrets
from tollgate.client.primitives.pkce import generate_secrets
from tollgate.client.primitives.storage import ScopedStore

logger = logging.getLogger(__name__)

CODE_VERIFIER_KEY = "code_verifier"
STATE_KEY = "state"


class SessionSecretStore:
    """Holds ``{code_verifier, state}`` for a single authorization attempt."""

    def __init__(self, store: ScopedStore):
        self._store = store

    def load(self) -> AuthorizationRequestSecrets | None:
        """Return the stored secrets, or None if either half is missing."""
        code_verifier = self._store.get(CODE_VERIFIER_KEY)
        state = self._store.get(STATE_KEY)
        if not code_verifier or not state:
            return None
        try:
            return AuthorizationRequestSecrets(code_verifier=code_verifier, state=state)
        except ValueError as e:
            logger.warning(f"Discarding invalid stored secrets: {e}")
            self.clear()
            return None

    def get_or_create(self) -> AuthorizationRequestSecrets:
        """Reuse the secrets of an unfinished attempt, or persist new ones."""
        existing = self.load()
        if existing is not None:
            logger.debug("Reusing secrets from an unfinished authorization attempt")
            return existing

        secrets_ = generate_secrets()
        self._store.set_many(
            {CODE_VERIFIER_KEY: secrets_.code_verifier, STATE_KEY: secrets_.state}
        )
        logger.debug("Generated new authorization request secrets")
        return secrets_

    def clear(self) -> None:
        self._store.delete_many([CODE_VERIFIER_KEY, STATE_KEY])
