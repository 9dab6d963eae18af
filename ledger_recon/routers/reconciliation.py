"""Reconciliation API router."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_recon.database import get_db
from ledger_recon.logger import get_logger
from ledger_recon.models import (
    BankEntry,
    Expense,
    InvestorInterestEntry,
    InvestorTransaction,
    LedgerRecord,
    LoanTransaction,
    ReconciliationPattern,
    ReconciliationType,
)
from ledger_recon.schemas.reconciliation import (
    ApplySuggestionRequest,
    AutoReconcileRequest,
    BankEntryImportRequest,
    BankEntryImportResponse,
    BulkMatchRequest,
    BulkMatchResponse,
    CommitResponse,
    ConflictResponse,
    LedgerRecordKindEnum,
    LedgerRecordSummary,
    ManualMatchRequest,
    PatternListResponse,
    PatternResponse,
    PurgeResponse,
    SkippedEntryResponse,
    SplitRatiosSchema,
    SuggestionListResponse,
    SuggestionResponse,
    UnreconcileResponse,
)
from ledger_recon.services.bulk import BulkMatchSummary, SkippedEntry, auto_reconcile, bulk_apply
from ledger_recon.services.commit import (
    CommitResult,
    MatchRelationship,
    apply_suggestion,
    execute_manual_match,
    unreconcile,
)
from ledger_recon.services.conflicts import compute_conflicts
from ledger_recon.services.deduplication import import_bank_entries, purge_unreconciled
from ledger_recon.services.errors import PartialCommitFailure, StaleReferenceError
from ledger_recon.services.reconciliation import MatchPassResult, compute_suggestions
from ledger_recon.services.snapshot import LedgerSnapshot
from ledger_recon.services.store import ReconciliationStore, SqlAlchemyStore, load_snapshot
from ledger_recon.services.suggestions import CreateNew, SplitRatios, Suggestion
from ledger_recon.utils import (
    raise_bad_request,
    raise_conflict,
    raise_for_reconciliation_error,
    raise_not_found,
)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])
logger = get_logger(__name__)

_RECORD_KINDS: dict[type, LedgerRecordKindEnum] = {
    LoanTransaction: LedgerRecordKindEnum.LOAN_TRANSACTION,
    InvestorTransaction: LedgerRecordKindEnum.INVESTOR_TRANSACTION,
    InvestorInterestEntry: LedgerRecordKindEnum.INTEREST,
    Expense: LedgerRecordKindEnum.EXPENSE,
}
_KIND_MODELS = {kind: model for model, kind in _RECORD_KINDS.items()}


async def get_store(db: AsyncSession = Depends(get_db)) -> ReconciliationStore:
    return SqlAlchemyStore(db)


def _build_record_summary(record: LedgerRecord) -> LedgerRecordSummary:
    return LedgerRecordSummary(
        id=record.id,
        kind=_RECORD_KINDS[type(record)],
        amount=record.amount,
        txn_date=record.txn_date,
    )


def _build_suggestion_response(entry_id: UUID, suggestion: Suggestion) -> SuggestionResponse:
    response = SuggestionResponse(
        bank_entry_id=entry_id,
        match_mode=suggestion.match_mode.value,
        target_type=ReconciliationType(suggestion.target_type).value,
        confidence=round(suggestion.confidence, 4),
        reason=suggestion.reason,
        records=[_build_record_summary(record) for record in suggestion.ledger_records()],
        bank_entry_ids=list(suggestion.bank_entry_ids(entry_id)),
    )
    if isinstance(suggestion, CreateNew):
        response.loan_id = suggestion.loan_id
        response.investor_id = suggestion.investor_id
        response.expense_type_id = suggestion.expense_type_id
        response.pattern_id = suggestion.pattern_id
        if suggestion.split is not None:
            response.split = SplitRatiosSchema(
                capital=suggestion.split.capital,
                interest=suggestion.split.interest,
                fees=suggestion.split.fees,
            )
    return response


def _build_bulk_response(summary: BulkMatchSummary) -> BulkMatchResponse:
    return BulkMatchResponse(
        succeeded=summary.succeeded,
        failed=summary.failed,
        skipped=[
            SkippedEntryResponse(
                bank_entry_id=item.bank_entry_id, reason=item.reason, details=item.details
            )
            for item in summary.skipped
        ],
        errors=summary.errors,
    )


async def _run_pass(store: ReconciliationStore) -> tuple[LedgerSnapshot, MatchPassResult]:
    snapshot = await load_snapshot(store)
    return snapshot, compute_suggestions(snapshot)


def _raise_for_failed_commit(result: CommitResult) -> None:
    if result.failure is not None:
        raise_for_reconciliation_error(result.failure)
    raise_bad_request(result.error or "Commit rejected")


@router.get("/suggestions", response_model=SuggestionListResponse)
async def list_suggestions(
    min_confidence: float = Query(default=0.0, ge=0, le=1),
    store: ReconciliationStore = Depends(get_store),
) -> SuggestionListResponse:
    snapshot, result = await _run_pass(store)
    items = [
        _build_suggestion_response(entry.id, result.suggestions[entry.id])
        for entry in snapshot.unreconciled_entries
        if entry.id in result.suggestions
        and result.suggestions[entry.id].confidence >= min_confidence
    ]
    return SuggestionListResponse(items=items, total=len(items))


@router.get("/conflicts", response_model=ConflictResponse)
async def list_conflicts(store: ReconciliationStore = Depends(get_store)) -> ConflictResponse:
    snapshot, result = await _run_pass(store)
    conflicts = compute_conflicts(snapshot.unreconciled_entries, result.suggestions)
    return ConflictResponse(
        conflicts={
            entry_id: sorted(rivals, key=str) for entry_id, rivals in conflicts.items()
        }
    )


@router.post("/entries/{entry_id}/apply", response_model=CommitResponse)
async def apply_entry_suggestion(
    entry_id: UUID,
    payload: ApplySuggestionRequest | None = None,
    store: ReconciliationStore = Depends(get_store),
) -> CommitResponse:
    entry = await store.get(BankEntry, entry_id)
    if entry is None:
        raise_not_found("Bank entry")
    if entry.is_reconciled:
        raise_conflict("Bank entry is already reconciled")

    _, result = await _run_pass(store)
    suggestion = result.suggestions.get(entry_id)
    if suggestion is None:
        raise_not_found("Suggestion")

    split = None
    if payload is not None and payload.split is not None:
        split = SplitRatios(
            capital=payload.split.capital,
            interest=payload.split.interest,
            fees=payload.split.fees,
        )

    try:
        commit = await apply_suggestion(store, entry, suggestion, split=split)
    except PartialCommitFailure as exc:
        raise_for_reconciliation_error(exc)
    if not commit.success:
        _raise_for_failed_commit(commit)

    await store.commit()
    return CommitResponse(
        success=True,
        links_created=len(commit.links),
        records_created=len(commit.created),
    )


@router.post("/bulk-match", response_model=BulkMatchResponse)
async def bulk_match(
    payload: BulkMatchRequest,
    store: ReconciliationStore = Depends(get_store),
) -> BulkMatchResponse:
    snapshot, result = await _run_pass(store)
    entries = {entry.id: entry for entry in snapshot.bank_entries}

    items = []
    missing = []
    for entry_id in dict.fromkeys(payload.bank_entry_ids):
        suggestion = result.suggestions.get(entry_id)
        if entry_id in entries and suggestion is not None:
            items.append((entries[entry_id], suggestion))
        else:
            missing.append(SkippedEntry(entry_id, "no suggestion"))

    summary = await bulk_apply(store, items)
    summary.skipped.extend(missing)
    await store.commit()
    return _build_bulk_response(summary)


@router.post("/auto-reconcile", response_model=BulkMatchResponse)
async def run_auto_reconcile(
    payload: AutoReconcileRequest | None = None,
    store: ReconciliationStore = Depends(get_store),
) -> BulkMatchResponse:
    min_confidence = payload.min_confidence if payload is not None else None
    summary = await auto_reconcile(store, min_confidence=min_confidence)
    await store.commit()
    return _build_bulk_response(summary)


@router.post("/entries/{entry_id}/unreconcile", response_model=UnreconcileResponse)
async def unreconcile_entry(
    entry_id: UUID,
    delete_created: bool = Query(default=True),
    store: ReconciliationStore = Depends(get_store),
) -> UnreconcileResponse:
    try:
        removed = await unreconcile(store, entry_id, delete_created=delete_created)
    except StaleReferenceError as exc:
        raise_not_found("Bank entry", cause=exc)
    await store.commit()
    return UnreconcileResponse(bank_entry_id=entry_id, links_removed=removed)


@router.post("/manual-match", response_model=CommitResponse)
async def manual_match(
    payload: ManualMatchRequest,
    store: ReconciliationStore = Depends(get_store),
) -> CommitResponse:
    entries = []
    for entry_id in payload.bank_entry_ids:
        entry = await store.get(BankEntry, entry_id)
        if entry is None:
            raise_not_found("Bank entry")
        entries.append(entry)

    targets = []
    for ref in payload.targets:
        record = await store.get(_KIND_MODELS[ref.kind], ref.id)
        if record is None:
            raise_not_found("Ledger record")
        targets.append(record)

    try:
        commit = await execute_manual_match(
            store,
            entries,
            targets,
            ReconciliationType(payload.match_type.value),
            MatchRelationship(payload.relationship.value),
        )
    except PartialCommitFailure as exc:
        raise_for_reconciliation_error(exc)
    if not commit.success:
        _raise_for_failed_commit(commit)

    await store.commit()
    return CommitResponse(success=True, links_created=len(commit.links), records_created=0)


@router.post("/import", response_model=BankEntryImportResponse)
async def import_entries(
    payload: BankEntryImportRequest,
    store: ReconciliationStore = Depends(get_store),
) -> BankEntryImportResponse:
    summary = await import_bank_entries(store, [row.model_dump() for row in payload.rows])
    await store.commit()
    return BankEntryImportResponse(created=summary.created, duplicates=summary.duplicates)


@router.delete("/entries/unreconciled", response_model=PurgeResponse)
async def purge_entries(store: ReconciliationStore = Depends(get_store)) -> PurgeResponse:
    deleted = await purge_unreconciled(store)
    await store.commit()
    return PurgeResponse(deleted=deleted)


@router.get("/patterns", response_model=PatternListResponse)
async def list_patterns(store: ReconciliationStore = Depends(get_store)) -> PatternListResponse:
    patterns = await store.list(ReconciliationPattern)
    patterns.sort(key=lambda pattern: (-(pattern.confidence_score or 0), str(pattern.id)))
    items = [PatternResponse.model_validate(pattern) for pattern in patterns]
    return PatternListResponse(items=items, total=len(items))
