"""User-visible notifications.

Failures are shown as transient messages, never as a crash. Messages that
must survive a reload are queued in the flow-scoped store and shown on the
next start.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from tollgate.client.primitives.storage import ScopedStore

logger = logging.getLogger(__name__)

WAITING_KEY = "waitingToasts"
DEFAULT_DURATION = 60.0
WAITING_DURATION = 6.0


class Notifier(Protocol):
    """Shows a transient message to the user."""

    def notify(self, message: str, duration: float = DEFAULT_DURATION) -> None: ...


class LoggingNotifier:
    """Notifier that logs messages and keeps them for inspection."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str, duration: float = DEFAULT_DURATION) -> None:
        logger.warning(f"Notification: {message}")
        self.messages.append(message)


class PendingNotifications:
    """Queue of messages to show after the next reload."""

    def __init__(self, store: ScopedStore):
        self._store = store

    def defer(self, message: str) -> None:
        pending = self._load()
        pending.append(str(message))
        self._store.set_many({WAITING_KEY: json.dumps(pending)})

    def flush(self, notifier: Notifier) -> int:
        """Show and forget every queued message. Returns how many were shown."""
        pending = self._load()
        for message in pending:
            notifier.notify(message, WAITING_DURATION)
        self._store.delete_many([WAITING_KEY])
        return len(pending)

    def _load(self) -> list[str]:
        raw = self._store.get(WAITING_KEY)
        if not raw:
            return []
        try:
            pending = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Dropping unreadable pending notifications")
            return []
        if not isinstance(pending, list):
            return []
        return [str(message) for message in pending]
