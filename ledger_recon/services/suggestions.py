"""Suggestion variants produced by the matching pass.

One frozen dataclass per match mode, each carrying only the fields that mode
needs. Suggestions are recomputed whenever inputs change and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, NamedTuple
from uuid import UUID

from ledger_recon.models import (
    BankEntry,
    Expense,
    InvestorInterestEntry,
    InvestorTransaction,
    LedgerRecord,
    LoanTransaction,
    ReconciliationType,
)


class MatchMode(str, Enum):
    """How a suggestion reconciles."""

    MATCH = "match"
    MATCH_GROUP = "match_group"
    GROUPED_DISBURSEMENT = "grouped_disbursement"
    GROUPED_INVESTOR = "grouped_investor"
    CREATE = "create"


class ClaimKind(str, Enum):
    """Namespace of a claimed identity."""

    TRANSACTION = "tx"
    EXPENSE = "exp"
    INTEREST = "int"
    BANK_ENTRY = "bank"


class ClaimKey(NamedTuple):
    kind: ClaimKind
    id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


def claim_key_for(record: LedgerRecord) -> ClaimKey:
    """Tagged identity of a ledger record."""
    if isinstance(record, Expense):
        return ClaimKey(ClaimKind.EXPENSE, record.id)
    if isinstance(record, InvestorInterestEntry):
        return ClaimKey(ClaimKind.INTEREST, record.id)
    if isinstance(record, LoanTransaction | InvestorTransaction):
        return ClaimKey(ClaimKind.TRANSACTION, record.id)
    raise TypeError(f"Not a ledger record: {type(record).__name__}")


@dataclass(frozen=True)
class SplitRatios:
    """Shares of the bank amount (capital/principal, interest, fees)."""

    capital: float = 1.0
    interest: float = 0.0
    fees: float = 0.0


@dataclass(frozen=True)
class SingleMatch:
    """One bank entry to one existing ledger record."""

    match_mode: ClassVar[MatchMode] = MatchMode.MATCH

    target_type: ReconciliationType
    confidence: float
    reason: str
    record: LedgerRecord

    def ledger_records(self) -> tuple[LedgerRecord, ...]:
        return (self.record,)

    def claim_keys(self) -> tuple[ClaimKey, ...]:
        return (claim_key_for(self.record),)

    def bank_entry_ids(self, primary_id: UUID) -> tuple[UUID, ...]:
        return (primary_id,)


@dataclass(frozen=True)
class GroupMatch:
    """One bank entry to several existing ledger records."""

    match_mode: ClassVar[MatchMode] = MatchMode.MATCH_GROUP

    target_type: ReconciliationType
    confidence: float
    reason: str
    records: tuple[LedgerRecord, ...]

    def ledger_records(self) -> tuple[LedgerRecord, ...]:
        return self.records

    def claim_keys(self) -> tuple[ClaimKey, ...]:
        return tuple(claim_key_for(record) for record in self.records)

    def bank_entry_ids(self, primary_id: UUID) -> tuple[UUID, ...]:
        return (primary_id,)


@dataclass(frozen=True)
class _GroupedEntries:
    target_type: ReconciliationType
    confidence: float
    reason: str
    record: LedgerRecord
    entries: tuple[BankEntry, ...]

    def ledger_records(self) -> tuple[LedgerRecord, ...]:
        return (self.record,)

    def claim_keys(self) -> tuple[ClaimKey, ...]:
        return (claim_key_for(self.record),) + tuple(
            ClaimKey(ClaimKind.BANK_ENTRY, entry.id) for entry in self.entries
        )

    def bank_entry_ids(self, primary_id: UUID) -> tuple[UUID, ...]:
        return tuple(entry.id for entry in self.entries)


@dataclass(frozen=True)
class GroupedDisbursement(_GroupedEntries):
    """Several bank debits to one loan disbursement."""

    match_mode: ClassVar[MatchMode] = MatchMode.GROUPED_DISBURSEMENT


@dataclass(frozen=True)
class GroupedInvestor(_GroupedEntries):
    """Several bank entries to one investor capital transaction."""

    match_mode: ClassVar[MatchMode] = MatchMode.GROUPED_INVESTOR


@dataclass(frozen=True)
class CreateNew:
    """No existing record; create one of ``target_type`` on confirmation."""

    match_mode: ClassVar[MatchMode] = MatchMode.CREATE

    target_type: ReconciliationType
    confidence: float
    reason: str
    loan_id: UUID | None = None
    investor_id: UUID | None = None
    expense_type_id: UUID | None = None
    pattern_id: UUID | None = None
    split: SplitRatios | None = None

    def ledger_records(self) -> tuple[LedgerRecord, ...]:
        return ()

    def claim_keys(self) -> tuple[ClaimKey, ...]:
        return ()

    def bank_entry_ids(self, primary_id: UUID) -> tuple[UUID, ...]:
        return (primary_id,)


Suggestion = SingleMatch | GroupMatch | GroupedDisbursement | GroupedInvestor | CreateNew
