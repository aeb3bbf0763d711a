"""Spreadsheet export of a viewer's unlocked properties."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable

from openpyxl import Workbook

from .models import EntitlementGrant, PropertyRecord

logger = logging.getLogger(__name__)

HEADERS = [
    "property_id",
    "title",
    "area",
    "exact_address",
    "latitude",
    "longitude",
    "caretaker",
    "caretaker_phone",
    "unlocked_at",
]


def export_unlocked_to_xlsx(
    records: Iterable[PropertyRecord],
    path: Path,
    grants: Dict[str, EntitlementGrant] | None = None,
) -> int:
    """Write unlocked records to ``path``; locked records are skipped. Returns rows written."""
    grants = grants or {}
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "unlocked"
    worksheet.append(HEADERS)

    rows = 0
    for record in records:
        if record.locked or record.premium.redacted:
            logger.debug("Skipping locked property %s in export", record.property_id)
            continue
        grant = grants.get(record.property_id)
        gps = record.premium.gps_coordinates
        worksheet.append([
            record.property_id,
            record.title,
            record.location.area,
            record.premium.exact_address,
            gps.latitude,
            gps.longitude,
            record.premium.caretaker.name,
            record.premium.caretaker.phone,
            grant.unlocked_at if grant else "",
        ])
        rows += 1

    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)
    logger.info("Exported %d unlocked properties to %s", rows, path)
    return rows
