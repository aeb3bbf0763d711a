"""The single place where premium fields are masked or revealed."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from .context import SessionContext
from .models import Caretaker, GpsCoordinates, Premium, PropertyRecord

logger = logging.getLogger(__name__)

REDACTED_ADDRESS = "Address hidden"
REDACTED_CONTACT = "Contact hidden"
REDACTED_PHONE = "+254 XXX XXX XXX"
REDACTED_GPS = GpsCoordinates()

REDACTED_PREMIUM = Premium(
    exact_address=REDACTED_ADDRESS,
    gps_coordinates=REDACTED_GPS,
    caretaker=Caretaker(
        name=REDACTED_CONTACT,
        phone=REDACTED_PHONE,
        alternative_phone=REDACTED_PHONE,
        whatsapp=REDACTED_PHONE,
        available_hours=REDACTED_CONTACT,
    ),
    landmarks=(),
    redacted=True,
)


@dataclass
class UnlockGate:
    """Read-only projection of canonical records through the Entitlement Store.

    The ``unlocked`` flag a server may embed in a property document is never
    consulted here; only grants in the store count.
    """

    context: SessionContext

    def is_unlocked(self, viewer_id: str, property_id: str) -> bool:
        return self.context.store.has_grant(viewer_id, property_id)

    def present(self, record: PropertyRecord, viewer_id: str | None = None) -> PropertyRecord:
        """Return a copy of ``record`` with premium fields revealed or redacted."""
        if viewer_id is None:
            viewer_id = self.context.viewer_id
        if not self.is_unlocked(viewer_id, record.property_id):
            return dataclasses.replace(record, premium=REDACTED_PREMIUM, locked=True)
        if record.premium.redacted:
            # placeholders cannot be turned back into real values; re-fetch instead
            logger.debug(
                "Property %s was presented from a redacted copy; it stays locked until re-fetched",
                record.property_id,
            )
            return dataclasses.replace(record, premium=REDACTED_PREMIUM, locked=True)
        return dataclasses.replace(record, locked=False)
