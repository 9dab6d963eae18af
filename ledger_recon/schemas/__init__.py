from ledger_recon.schemas.base import BaseResponse, ListResponse
from ledger_recon.schemas.reconciliation import (
    ApplySuggestionRequest,
    AutoReconcileRequest,
    BankEntryImportRequest,
    BankEntryImportResponse,
    BankEntryImportRow,
    BulkMatchRequest,
    BulkMatchResponse,
    CommitResponse,
    ConflictResponse,
    LedgerRecordKindEnum,
    LedgerRecordRef,
    LedgerRecordSummary,
    ManualMatchRequest,
    MatchModeEnum,
    MatchRelationshipEnum,
    PatternDirectionEnum,
    PatternListResponse,
    PatternResponse,
    PurgeResponse,
    ReconciliationTypeEnum,
    SkippedEntryResponse,
    SplitRatiosSchema,
    SuggestionListResponse,
    SuggestionResponse,
    UnreconcileResponse,
)

__all__ = [
    "ApplySuggestionRequest",
    "AutoReconcileRequest",
    "BankEntryImportRequest",
    "BankEntryImportResponse",
    "BankEntryImportRow",
    "BaseResponse",
    "BulkMatchRequest",
    "BulkMatchResponse",
    "CommitResponse",
    "ConflictResponse",
    "LedgerRecordKindEnum",
    "LedgerRecordRef",
    "LedgerRecordSummary",
    "ListResponse",
    "ManualMatchRequest",
    "MatchModeEnum",
    "MatchRelationshipEnum",
    "PatternDirectionEnum",
    "PatternListResponse",
    "PatternResponse",
    "PurgeResponse",
    "ReconciliationTypeEnum",
    "SkippedEntryResponse",
    "SplitRatiosSchema",
    "SuggestionListResponse",
    "SuggestionResponse",
    "UnreconcileResponse",
]
