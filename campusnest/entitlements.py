"""Process-wide cache of which (viewer, property) pairs are unlocked."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Set

from .db import Database
from .diff import diff_grants
from .models import DiffResult, EntitlementGrant, utc_now

logger = logging.getLogger(__name__)


@dataclass
class EntitlementStore:
    """Session-scoped grant cache seeded from, and overridable by, the server.

    Only the callback reconciler (``record_grant``) and an authoritative refresh
    of the viewer's unlocked-properties list (``refresh``) write to it.
    """

    database: Database
    clock: Callable[[], str] = field(default=utc_now)

    def has_grant(self, viewer_id: str, property_id: str) -> bool:
        if not viewer_id or not property_id:
            return False
        return self.database.fetch_grant(viewer_id, property_id) is not None

    def get_grant(self, viewer_id: str, property_id: str) -> Optional[EntitlementGrant]:
        if not viewer_id or not property_id:
            return None
        return self.database.fetch_grant(viewer_id, property_id)

    def record_grant(
        self, viewer_id: str, property_id: str, reference: str
    ) -> EntitlementGrant:
        """Record a grant; a repeat call for the same pair returns the existing one."""
        if not viewer_id or not property_id:
            raise ValueError("viewer_id and property_id are required to record a grant")
        existing = self.database.fetch_grant(viewer_id, property_id)
        if existing:
            logger.debug(
                "Grant for viewer %s on property %s already recorded", viewer_id, property_id
            )
            return existing
        grant = self.database.insert_grant(
            EntitlementGrant(
                viewer_id=viewer_id,
                property_id=property_id,
                unlocked_at=self.clock(),
                payment_reference=reference,
            )
        )
        logger.info(
            "Recorded grant for viewer %s on property %s (reference %s)",
            viewer_id,
            property_id,
            grant.payment_reference,
        )
        return grant

    def all_grants(self, viewer_id: str) -> Set[str]:
        if not viewer_id:
            return set()
        return set(self.database.fetch_grants(viewer_id))

    def refresh(
        self, viewer_id: str, server_grants: Iterable[EntitlementGrant]
    ) -> DiffResult[EntitlementGrant, EntitlementGrant]:
        """Make the local grants match the server's unlocked-properties list."""
        local = self.database.fetch_grants(viewer_id)
        diff = diff_grants(
            [grant for grant in server_grants if grant.viewer_id == viewer_id],
            local,
        )
        for grant in diff.added:
            self.database.insert_grant(grant)
        if diff.removed:
            logger.warning(
                "Server no longer lists %d grant(s) for viewer %s; revoking local copies",
                len(diff.removed),
                viewer_id,
            )
            self.database.delete_grants(
                viewer_id, [grant.property_id for grant in diff.removed]
            )
        logger.info(
            "Refreshed grants for viewer %s: +%d / -%d / =%d",
            viewer_id,
            len(diff.added),
            len(diff.removed),
            len(diff.unchanged),
        )
        return diff
