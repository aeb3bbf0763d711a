"""Explicit per-viewer session context."""

from __future__ import annotations

from dataclasses import dataclass

from .db import Database
from .entitlements import EntitlementStore


@dataclass
class SessionContext:
    """Who is viewing, how they authenticate, and where their grants live.

    Created on login and torn down on logout; components receive it in their
    constructors instead of reaching for module-level state.
    """

    viewer_id: str
    token: str
    database: Database
    store: EntitlementStore

    @property
    def is_authenticated(self) -> bool:
        return bool(self.viewer_id and self.token)
