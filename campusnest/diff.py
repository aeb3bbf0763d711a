"""Diff utilities for comparing server entitlements with local grants."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, TypeVar

from .models import DiffResult, EntitlementGrant

TNew = TypeVar("TNew")
TStored = TypeVar("TStored")
KeyFunc = Callable[[TNew], str]


def _diff_items(
    new_items: Iterable[TNew],
    previous_items: Dict[str, TStored],
    key_fn: KeyFunc,
) -> DiffResult[TNew, TStored]:
    new_map = {key_fn(item): item for item in new_items}

    added = []
    unchanged = []
    for item_id, item in new_map.items():
        if item_id not in previous_items:
            added.append(item)
        else:
            unchanged.append(item)

    removed = [
        record for item_id, record in previous_items.items()
        if item_id not in new_map
    ]

    return DiffResult(added=added, removed=removed, unchanged=unchanged)


def diff_grants(
    server_grants: Iterable[EntitlementGrant],
    local_grants: Dict[str, EntitlementGrant],
) -> DiffResult[EntitlementGrant, EntitlementGrant]:
    """Compute grants the server adds, revokes, and confirms."""
    return _diff_items(server_grants,
                       local_grants,
                       key_fn=lambda item: item.property_id)
