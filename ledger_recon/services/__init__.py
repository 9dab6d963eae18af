"""Services package."""

from ledger_recon.services.bulk import BulkMatchSummary, auto_reconcile, bulk_apply
from ledger_recon.services.commit import (
    CommitResult,
    MatchRelationship,
    apply_suggestion,
    execute_manual_match,
    unreconcile,
)
from ledger_recon.services.conflicts import (
    compute_conflicts,
    select_high_confidence,
    toggle_selection,
)
from ledger_recon.services.deduplication import (
    BankEntryDeduplicator,
    ImportSummary,
    import_bank_entries,
    purge_unreconciled,
)
from ledger_recon.services.errors import (
    ImbalanceError,
    PartialCommitFailure,
    ReconciliationError,
    StaleReferenceError,
    UnsupportedSuggestionError,
)
from ledger_recon.services.policy import ReconciliationConfig, load_reconciliation_config
from ledger_recon.services.reconciliation import MatchPassResult, compute_suggestions
from ledger_recon.services.snapshot import ClaimSet, LedgerSnapshot
from ledger_recon.services.store import ReconciliationStore, SqlAlchemyStore, load_snapshot

__all__ = [
    "BankEntryDeduplicator",
    "BulkMatchSummary",
    "ClaimSet",
    "CommitResult",
    "ImbalanceError",
    "ImportSummary",
    "LedgerSnapshot",
    "MatchPassResult",
    "MatchRelationship",
    "PartialCommitFailure",
    "ReconciliationConfig",
    "ReconciliationError",
    "ReconciliationStore",
    "SqlAlchemyStore",
    "StaleReferenceError",
    "UnsupportedSuggestionError",
    "apply_suggestion",
    "auto_reconcile",
    "bulk_apply",
    "compute_conflicts",
    "compute_suggestions",
    "execute_manual_match",
    "import_bank_entries",
    "load_reconciliation_config",
    "load_snapshot",
    "purge_unreconciled",
    "select_high_confidence",
    "toggle_selection",
    "unreconcile",
]
