"""Navigation seam between the flow and whatever hosts it."""

from __future__ import annotations

import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    """Controls the visible location of the host.

    ``assign`` is a full navigation that abandons the current page and any
    in-flight work. ``replace`` rewrites the visible location without
    navigating. ``reload`` restarts the current page.
    """

    def assign(self, url: str) -> None: ...

    def replace(self, url: str) -> None: ...

    def reload(self) -> None: ...


class BrowserNavigator:
    """Navigator for command-line hosts: opens URLs in the system browser."""

    def __init__(self, location: str = ""):
        self.location = location
        self.reload_requested = False

    def assign(self, url: str) -> None:
        logger.info("Opening the authorization page in the browser")
        self.location = url
        if not webbrowser.open(url):
            logger.warning(f"Could not open a browser. Please visit {url}")

    def replace(self, url: str) -> None:
        self.location = url

    def reload(self) -> None:
        self.reload_requested = True
