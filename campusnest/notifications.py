"""User-facing message and navigation surfaces."""

from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass, field
from typing import List, Protocol

logger = logging.getLogger(__name__)

LISTINGS_ROUTE = "/listings"
UNLOCKED_PROPERTIES_ROUTE = "/unlocked-properties"


def property_route(property_id: str) -> str:
    return f"/property/{property_id}"


class Notifier(Protocol):
    """Protocol for toast-style messages shown to the viewer."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class Navigator(Protocol):
    """In-app routing plus full navigation away to an external URL."""

    def navigate(self, route: str) -> None:
        ...

    def redirect(self, url: str) -> None:
        ...


class LoggingNotifier:
    """Writes messages to the log."""

    def success(self, message: str) -> None:
        logger.info("%s", message)

    def error(self, message: str) -> None:
        logger.error("%s", message)


@dataclass
class BrowserNavigator:
    """Opens the provider page in the system browser; routes become client URLs."""

    client_url: str
    routes: List[str] = field(default_factory=list)

    def navigate(self, route: str) -> None:
        self.routes.append(route)
        logger.info("Continue at %s%s", self.client_url, route)

    def redirect(self, url: str) -> None:
        logger.info("Opening payment page %s", url)
        if not webbrowser.open(url):
            logger.warning("Could not open a browser; visit %s to complete payment", url)


__all__ = [
    "BrowserNavigator",
    "LISTINGS_ROUTE",
    "LoggingNotifier",
    "Navigator",
    "Notifier",
    "UNLOCKED_PROPERTIES_ROUTE",
    "property_route",
]
