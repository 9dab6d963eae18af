"""Conflict detection between independently computed suggestions.

The matching pass never lets two entries claim one record, but suggestions
can also come from separate runs (two bulk selections, a stale screen). These
helpers find and guard against such overlaps.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from uuid import UUID

from ledger_recon.models import BankEntry
from ledger_recon.services.suggestions import ClaimKey, ClaimKind, CreateNew, Suggestion


def _target_keys(suggestion: Suggestion) -> tuple[ClaimKey, ...]:
    return tuple(key for key in suggestion.claim_keys() if key.kind is not ClaimKind.BANK_ENTRY)


def compute_conflicts(
    bank_entries: Iterable[BankEntry],
    suggestions: Mapping[UUID, Suggestion],
) -> dict[UUID, set[UUID]]:
    """Map each conflicting bank entry id to the ids of its rivals.

    Two entries conflict when their suggestions point at the same ledger
    record. Create suggestions never conflict.
    """
    claimants: dict[ClaimKey, list[UUID]] = {}
    for entry in bank_entries:
        suggestion = suggestions.get(entry.id)
        if suggestion is None or isinstance(suggestion, CreateNew):
            continue
        for key in _target_keys(suggestion):
            claimants.setdefault(key, []).append(entry.id)

    conflicts: dict[UUID, set[UUID]] = {}
    for entry_ids in claimants.values():
        if len(entry_ids) < 2:
            continue
        for entry_id in entry_ids:
            conflicts.setdefault(entry_id, set()).update(
                other for other in entry_ids if other != entry_id
            )
    return conflicts


def selection_keys(entry_id: UUID, suggestion: Suggestion) -> set[ClaimKey]:
    """Every identity committing ``suggestion`` would consume, bank entries included."""
    keys = set(suggestion.claim_keys())
    keys.update(
        ClaimKey(ClaimKind.BANK_ENTRY, bank_id) for bank_id in suggestion.bank_entry_ids(entry_id)
    )
    return keys


def select_high_confidence(
    suggestions: Mapping[UUID, Suggestion],
    min_confidence: float,
) -> list[UUID]:
    """Entry ids of existing-record suggestions at or above ``min_confidence``.

    Picks greedily by descending confidence (ties by id) and never selects two
    suggestions that share a target.
    """
    ranked = sorted(
        (
            (entry_id, suggestion)
            for entry_id, suggestion in suggestions.items()
            if not isinstance(suggestion, CreateNew) and suggestion.confidence >= min_confidence
        ),
        key=lambda item: (-item[1].confidence, str(item[0])),
    )
    used: set[ClaimKey] = set()
    selected: list[UUID] = []
    for entry_id, suggestion in ranked:
        keys = selection_keys(entry_id, suggestion)
        if keys & used:
            continue
        used |= keys
        selected.append(entry_id)
    return selected


def toggle_selection(
    selected: Iterable[UUID],
    entry_id: UUID,
    conflicts: Mapping[UUID, set[UUID]],
) -> set[UUID]:
    """Toggle ``entry_id``; selecting it deselects its rivals."""
    result = set(selected)
    if entry_id in result:
        result.discard(entry_id)
        return result
    result.add(entry_id)
    result -= conflicts.get(entry_id, set())
    return result
