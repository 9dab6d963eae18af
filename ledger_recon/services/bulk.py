"""Bulk commit driver and auto-reconciliation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from uuid import UUID

from ledger_recon.logger import async_log_timing, get_logger, log_exception
from ledger_recon.models import BankEntry
from ledger_recon.services.commit import apply_suggestion
from ledger_recon.services.conflicts import select_high_confidence, selection_keys
from ledger_recon.services.policy import ReconciliationConfig, load_reconciliation_config
from ledger_recon.services.reconciliation import compute_suggestions
from ledger_recon.services.store import ReconciliationStore, load_snapshot
from ledger_recon.services.suggestions import ClaimKey, Suggestion

logger = get_logger(__name__)


@dataclass
class SkippedEntry:
    bank_entry_id: UUID
    reason: str
    details: str | None = None


@dataclass
class BulkMatchSummary:
    """Per-batch tally. Every processed entry lands in exactly one bucket."""

    succeeded: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)
    errors: dict[UUID, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.skipped)


async def bulk_apply(
    store: ReconciliationStore,
    items: Iterable[tuple[BankEntry, Suggestion]],
    *,
    invalidate: Callable[[], Awaitable[None]] | None = None,
    config: ReconciliationConfig | None = None,
) -> BulkMatchSummary:
    """Apply suggestions one after another.

    Entries are committed serially so ``used`` can refuse a second suggestion
    for a record (or bank entry) an earlier item of the same batch consumed.
    """
    config = config or load_reconciliation_config()
    summary = BulkMatchSummary()
    used: set[ClaimKey] = set()
    items = list(items)

    async with async_log_timing("bulk_apply", logger=logger, items=len(items)) as timing:
        for entry, suggestion in items:
            # Read once: after a failed item the ORM instance may be expired
            entry_id = entry.id
            current = await store.get(BankEntry, entry_id)
            if current is None:
                summary.failed.append(entry_id)
                summary.errors[entry_id] = f"BankEntry {entry_id} no longer exists"
                continue
            if current.is_reconciled:
                summary.skipped.append(SkippedEntry(entry_id, "already reconciled"))
                continue

            keys = selection_keys(entry_id, suggestion)
            overlap = keys & used
            if overlap:
                summary.skipped.append(
                    SkippedEntry(
                        entry_id,
                        "target already used in this batch",
                        ", ".join(sorted(str(key) for key in overlap)),
                    )
                )
                continue

            try:
                result = await apply_suggestion(store, current, suggestion, config=config)
            except Exception as exc:
                log_exception(
                    logger,
                    exc,
                    "Bulk item failed",
                    level="warning",
                    bank_entry_id=str(entry_id),
                )
                summary.failed.append(entry_id)
                summary.errors[entry_id] = str(exc)
                continue

            if result.success:
                used |= keys
                summary.succeeded.append(entry_id)
            else:
                summary.failed.append(entry_id)
                summary.errors[entry_id] = result.error or "unknown error"

        timing["succeeded"] = len(summary.succeeded)
        timing["failed"] = len(summary.failed)
        timing["skipped"] = len(summary.skipped)

    if invalidate is not None:
        await invalidate()

    logger.info(
        "Bulk match finished",
        succeeded=len(summary.succeeded),
        failed=len(summary.failed),
        skipped=len(summary.skipped),
    )
    return summary


async def auto_reconcile(
    store: ReconciliationStore,
    *,
    min_confidence: float | None = None,
    invalidate: Callable[[], Awaitable[None]] | None = None,
    config: ReconciliationConfig | None = None,
) -> BulkMatchSummary:
    """Commit every conflict-free existing-record suggestion above the auto-accept bar."""
    config = config or load_reconciliation_config()
    threshold = config.auto_accept_threshold if min_confidence is None else min_confidence

    snapshot = await load_snapshot(store)
    result = compute_suggestions(snapshot, config=config)
    selected = select_high_confidence(result.suggestions, threshold)
    entries = {entry.id: entry for entry in snapshot.bank_entries}

    logger.info(
        "Auto-reconcile selected suggestions",
        suggestions=len(result.suggestions),
        selected=len(selected),
        threshold=threshold,
    )
    return await bulk_apply(
        store,
        [(entries[entry_id], result.suggestions[entry_id]) for entry_id in selected],
        invalidate=invalidate,
        config=config,
    )
