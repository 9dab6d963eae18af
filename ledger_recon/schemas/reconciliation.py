"""Pydantic schemas for reconciliation API."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from ledger_recon.schemas.base import BaseResponse, Fraction, ListResponse


class MatchModeEnum(str, Enum):
    """How a suggestion reconciles."""

    MATCH = "match"
    MATCH_GROUP = "match_group"
    GROUPED_DISBURSEMENT = "grouped_disbursement"
    GROUPED_INVESTOR = "grouped_investor"
    CREATE = "create"


class ReconciliationTypeEnum(str, Enum):
    """Reconciliation classification."""

    LOAN_REPAYMENT = "loan_repayment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    INVESTOR_CREDIT = "investor_credit"
    INVESTOR_WITHDRAWAL = "investor_withdrawal"
    INTEREST_WITHDRAWAL = "interest_withdrawal"
    EXPENSE = "expense"


class LedgerRecordKindEnum(str, Enum):
    """Ledger table a record lives in."""

    LOAN_TRANSACTION = "loan_transaction"
    INVESTOR_TRANSACTION = "investor_transaction"
    INTEREST = "interest"
    EXPENSE = "expense"


class PatternDirectionEnum(str, Enum):
    CREDIT = "CRDT"
    DEBIT = "DBIT"


class MatchRelationshipEnum(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    NET_RECEIPT = "net-receipt"


class SplitRatiosSchema(BaseModel):
    """Shares of the bank amount; each between 0 and 1."""

    capital: Fraction = 1.0
    interest: Fraction = 0.0
    fees: Fraction = 0.0


class LedgerRecordSummary(BaseModel):
    """Summary of a ledger record referenced by a suggestion."""

    id: UUID
    kind: LedgerRecordKindEnum
    amount: Decimal | None
    txn_date: date | None


class SuggestionResponse(BaseModel):
    """One suggestion for one bank entry."""

    bank_entry_id: UUID
    match_mode: MatchModeEnum
    target_type: ReconciliationTypeEnum
    confidence: Fraction
    reason: str
    records: list[LedgerRecordSummary] = Field(default_factory=list)
    bank_entry_ids: list[UUID] = Field(default_factory=list)
    loan_id: UUID | None = None
    investor_id: UUID | None = None
    expense_type_id: UUID | None = None
    pattern_id: UUID | None = None
    split: SplitRatiosSchema | None = None


SuggestionListResponse = ListResponse[SuggestionResponse]


class ConflictResponse(BaseModel):
    """Bank entry id -> ids of entries whose suggestions share a target."""

    conflicts: dict[UUID, list[UUID]]


class ApplySuggestionRequest(BaseModel):
    """Optional split override for create suggestions."""

    split: SplitRatiosSchema | None = None


class CommitResponse(BaseModel):
    success: bool
    links_created: int
    records_created: int


class BulkMatchRequest(BaseModel):
    bank_entry_ids: list[UUID] = Field(min_length=1, max_length=1000)


class SkippedEntryResponse(BaseModel):
    bank_entry_id: UUID
    reason: str
    details: str | None = None


class BulkMatchResponse(BaseModel):
    """Per-batch summary of a bulk commit."""

    succeeded: list[UUID]
    failed: list[UUID]
    skipped: list[SkippedEntryResponse]
    errors: dict[UUID, str]


class AutoReconcileRequest(BaseModel):
    min_confidence: Fraction | None = None


class UnreconcileResponse(BaseModel):
    bank_entry_id: UUID
    links_removed: int


class LedgerRecordRef(BaseModel):
    kind: LedgerRecordKindEnum
    id: UUID


class ManualMatchRequest(BaseModel):
    """User-selected bank entries and ledger records to link."""

    bank_entry_ids: list[UUID] = Field(min_length=1)
    targets: list[LedgerRecordRef] = Field(min_length=1)
    match_type: ReconciliationTypeEnum
    relationship: MatchRelationshipEnum = MatchRelationshipEnum.ONE_TO_ONE


class BankEntryImportRow(BaseModel):
    statement_date: date | None = None
    amount: Decimal | None = None
    description: str | None = None
    external_reference: str | None = None
    bank_source: str | None = None


class BankEntryImportRequest(BaseModel):
    rows: list[BankEntryImportRow] = Field(max_length=10000)


class BankEntryImportResponse(BaseModel):
    created: list[UUID]
    duplicates: int


class PurgeResponse(BaseModel):
    deleted: int


class PatternResponse(BaseResponse):
    """Learned description pattern."""

    id: UUID
    description_pattern: str
    match_type: ReconciliationTypeEnum
    transaction_type: PatternDirectionEnum | None
    bank_source: str | None
    amount_min: Decimal | None
    amount_max: Decimal | None
    loan_id: UUID | None
    investor_id: UUID | None
    expense_type_id: UUID | None
    default_capital_ratio: float
    default_interest_ratio: float
    default_fees_ratio: float
    confidence_score: float | None
    match_count: int | None
    last_used_at: datetime | None


PatternListResponse = ListResponse[PatternResponse]
