"""Reconciliation matching pass.

One deterministic sweep over the unreconciled bank entries of a snapshot,
oldest first. Every accepted suggestion claims its ledger records (and any
bank entries it groups) so later entries cannot propose them again.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from uuid import UUID

from ledger_recon.logger import get_logger, log_timing
from ledger_recon.models import BankEntry
from ledger_recon.services.policy import (
    DEFAULT_CONFIG,
    ReconciliationConfig,
    load_reconciliation_config,
)
from ledger_recon.services.snapshot import ClaimSet, LedgerSnapshot
from ledger_recon.services.strategies import DEFAULT_STRATEGIES, MatchState, MatchStrategy
from ledger_recon.services.suggestions import ClaimKey, ClaimKind, Suggestion

__all__ = [
    "DEFAULT_CONFIG",
    "MatchPassResult",
    "ReconciliationConfig",
    "compute_suggestions",
    "evaluate_entry",
    "load_reconciliation_config",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchPassResult:
    """Suggestions keyed by bank entry id, plus every claim the pass made."""

    suggestions: Mapping[UUID, Suggestion]
    claims: ClaimSet


def evaluate_entry(
    entry: BankEntry,
    snapshot: LedgerSnapshot,
    claims: ClaimSet,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
    config: ReconciliationConfig = DEFAULT_CONFIG,
) -> Suggestion | None:
    """Best suggestion for one entry, or None below the acceptance threshold."""
    best: Suggestion | None = None
    best_score = 0.0
    for strategy in strategies:
        state = MatchState(
            snapshot=snapshot,
            claims=claims,
            best_score=best_score,
            tolerance_percent=config.group_tolerance_percent,
        )
        if not strategy.applies(entry, state):
            continue
        candidate = strategy.evaluate(entry, state)
        if candidate is not None and candidate.confidence > best_score:
            best = candidate
            best_score = candidate.confidence

    if best is None or best_score < config.acceptance_threshold:
        return None
    return best


def _claims_for(entry: BankEntry, suggestion: Suggestion) -> list[ClaimKey]:
    keys = list(suggestion.claim_keys())
    keys.extend(
        ClaimKey(ClaimKind.BANK_ENTRY, entry_id) for entry_id in suggestion.bank_entry_ids(entry.id)
    )
    return keys


def compute_suggestions(
    snapshot: LedgerSnapshot,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
    config: ReconciliationConfig | None = None,
) -> MatchPassResult:
    """Run the claiming pass over ``snapshot``.

    Pure: the same snapshot always yields the same result, and nothing
    outlives the call except the returned value.
    """
    config = config or load_reconciliation_config()
    entries = snapshot.unreconciled_entries
    suggestions: dict[UUID, Suggestion] = {}
    claims = ClaimSet()

    with log_timing(
        "compute_suggestions",
        logger=logger,
        entries=len(entries),
        strategies=len(strategies),
    ) as timing:
        for entry in entries:
            if ClaimKey(ClaimKind.BANK_ENTRY, entry.id) in claims:
                continue
            suggestion = evaluate_entry(entry, snapshot, claims, strategies, config)
            if suggestion is None:
                continue
            suggestions[entry.id] = suggestion
            claims = claims.with_keys(_claims_for(entry, suggestion))
        timing["suggestions"] = len(suggestions)
        timing["claims"] = len(claims)

    return MatchPassResult(suggestions=MappingProxyType(suggestions), claims=claims)
