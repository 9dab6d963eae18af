"""Immutable inputs and claim state for one matching pass."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from functools import cached_property
from typing import Any
from uuid import UUID

from ledger_recon.models import (
    BankEntry,
    Borrower,
    Expense,
    Investor,
    InvestorInterestEntry,
    InvestorTransaction,
    Loan,
    LoanTransaction,
    ReconciliationPattern,
)
from ledger_recon.services.suggestions import ClaimKey, ClaimKind


def _dated_key(value: date | None, record_id: Any) -> tuple[bool, date, str]:
    # Missing dates sort last; id breaks ties so order never depends on input order.
    return (value is None, value or date.min, str(record_id))


def _sorted_by(records: Iterable[Any], date_attr: str) -> tuple[Any, ...]:
    return tuple(sorted(records, key=lambda r: _dated_key(getattr(r, date_attr, None), r.id)))


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything the matching pass reads.

    Collections are stored as tuples in a stable order: bank entries by
    (statement_date, id) and ledger records by (txn_date, id), missing dates
    last. ``reconciled_ids`` holds ledger ids already referenced by a link.
    """

    bank_entries: tuple[BankEntry, ...] = ()
    loan_transactions: tuple[LoanTransaction, ...] = ()
    investor_transactions: tuple[InvestorTransaction, ...] = ()
    interest_entries: tuple[InvestorInterestEntry, ...] = ()
    expenses: tuple[Expense, ...] = ()
    loans: tuple[Loan, ...] = ()
    borrowers: tuple[Borrower, ...] = ()
    investors: tuple[Investor, ...] = ()
    patterns: tuple[ReconciliationPattern, ...] = ()
    reconciled_ids: frozenset[UUID] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bank_entries", _sorted_by(self.bank_entries, "statement_date"))
        for name in ("loan_transactions", "investor_transactions", "interest_entries", "expenses"):
            object.__setattr__(self, name, _sorted_by(getattr(self, name), "txn_date"))
        for name in ("loans", "borrowers", "investors", "patterns"):
            ordered = sorted(getattr(self, name), key=lambda r: str(r.id))
            object.__setattr__(self, name, tuple(ordered))
        object.__setattr__(self, "reconciled_ids", frozenset(self.reconciled_ids))

    @cached_property
    def unreconciled_entries(self) -> tuple[BankEntry, ...]:
        return tuple(entry for entry in self.bank_entries if not entry.is_reconciled)

    @cached_property
    def loans_by_id(self) -> dict[UUID, Loan]:
        return {loan.id: loan for loan in self.loans}

    @cached_property
    def borrowers_by_id(self) -> dict[UUID, Borrower]:
        return {borrower.id: borrower for borrower in self.borrowers}

    @cached_property
    def investors_by_id(self) -> dict[UUID, Investor]:
        return {investor.id: investor for investor in self.investors}

    def loan_for(self, transaction: LoanTransaction) -> Loan | None:
        return self.loans_by_id.get(transaction.loan_id) if transaction.loan_id else None

    def borrower_id_for(self, transaction: LoanTransaction) -> UUID | None:
        loan = self.loan_for(transaction)
        if loan is not None and loan.borrower_id is not None:
            return loan.borrower_id
        return transaction.borrower_id

    def borrower_for_loan(self, loan: Loan | None) -> Borrower | None:
        if loan is None or loan.borrower_id is None:
            return None
        return self.borrowers_by_id.get(loan.borrower_id)

    def borrower_name(self, loan: Loan | None) -> str:
        """Display name for a loan's counterparty."""
        borrower = self.borrower_for_loan(loan)
        if borrower is not None and borrower.display_name:
            return borrower.display_name
        if loan is not None and loan.borrower_name:
            return loan.borrower_name
        return ""

    def is_available(self, record: Any) -> bool:
        """Not deleted and not already linked by an earlier reconciliation."""
        if getattr(record, "is_deleted", False):
            return False
        return record.id not in self.reconciled_ids


@dataclass(frozen=True)
class ClaimSet:
    """Identities reserved during one pass, tagged by kind."""

    keys: frozenset[ClaimKey] = field(default_factory=frozenset)

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    def with_keys(self, keys: Iterable[ClaimKey]) -> ClaimSet:
        return ClaimSet(self.keys | frozenset(keys))

    def ids(self, kind: ClaimKind) -> frozenset[UUID]:
        return frozenset(key.id for key in self.keys if key.kind is kind)

    @property
    def transactions(self) -> frozenset[UUID]:
        return self.ids(ClaimKind.TRANSACTION)

    @property
    def expenses(self) -> frozenset[UUID]:
        return self.ids(ClaimKind.EXPENSE)

    @property
    def interest(self) -> frozenset[UUID]:
        return self.ids(ClaimKind.INTEREST)

    @property
    def bank_entries(self) -> frozenset[UUID]:
        return self.ids(ClaimKind.BANK_ENTRY)
