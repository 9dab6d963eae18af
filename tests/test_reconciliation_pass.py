"""End-to-end behaviour of the claiming pass over a snapshot."""

import random
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from ledger_recon.models import LoanTransactionType, ReconciliationType
from ledger_recon.services.conflicts import compute_conflicts
from ledger_recon.services.policy import DEFAULT_CONFIG
from ledger_recon.services.reconciliation import compute_suggestions, evaluate_entry
from ledger_recon.services.snapshot import ClaimSet
from ledger_recon.services.strategies import MatchStrategy
from ledger_recon.services.suggestions import (
    CreateNew,
    GroupedDisbursement,
    SingleMatch,
)
from tests.factories import (
    BankEntryFactory,
    BorrowerFactory,
    ExpenseFactory,
    InvestorFactory,
    InvestorTransactionFactory,
    LoanFactory,
    LoanTransactionFactory,
    PatternFactory,
    build_snapshot,
)

BASE = date(2024, 3, 10)


class FixedScore(MatchStrategy):
    name = "fixed"

    def __init__(self, confidence: float) -> None:
        self.confidence = confidence

    def evaluate(self, entry, state):
        return CreateNew(
            target_type=ReconciliationType.EXPENSE, confidence=self.confidence, reason="fixed"
        )


def test_single_repayment_with_borrower_name() -> None:
    """
    GIVEN a credit of 500 naming John Smith and his repayment of 500 that day
    WHEN the pass runs
    THEN the credit matches the repayment near certainty
    """
    borrower = BorrowerFactory.build(full_name="John Smith")
    loan = LoanFactory.build(borrower_id=borrower.id)
    tx = LoanTransactionFactory.build(loan_id=loan.id, amount=Decimal("500.00"), txn_date=BASE)
    entry = BankEntryFactory.build(
        amount=Decimal("500.00"), statement_date=BASE, description="JOHN SMITH LOAN REPAY"
    )
    snapshot = build_snapshot(
        bank_entries=[entry], loan_transactions=[tx], loans=[loan], borrowers=[borrower]
    )

    result = compute_suggestions(snapshot, config=DEFAULT_CONFIG)

    suggestion = result.suggestions[entry.id]
    assert isinstance(suggestion, SingleMatch)
    assert suggestion.record is tx
    assert suggestion.confidence == 0.99


def test_split_disbursement_claims_both_entries() -> None:
    borrower = BorrowerFactory.build(full_name="Jane Doe")
    loan = LoanFactory.build(borrower_id=borrower.id)
    tx = LoanTransactionFactory.build(
        loan_id=loan.id,
        type=LoanTransactionType.DISBURSEMENT,
        amount=Decimal("150.00"),
        txn_date=BASE,
    )
    first = BankEntryFactory.build(
        amount=Decimal("-120.00"),
        statement_date=date(2024, 3, 7),
        description="JANE DOE LOAN PART1",
    )
    second = BankEntryFactory.build(
        amount=Decimal("-30.00"),
        statement_date=date(2024, 3, 7),
        description="JANE DOE LOAN PART2",
    )
    snapshot = build_snapshot(
        bank_entries=[first, second],
        loan_transactions=[tx],
        loans=[loan],
        borrowers=[borrower],
    )

    result = compute_suggestions(snapshot, config=DEFAULT_CONFIG)

    assert len(result.suggestions) == 1
    ((entry_id, suggestion),) = result.suggestions.items()
    assert entry_id in {first.id, second.id}
    assert isinstance(suggestion, GroupedDisbursement)
    assert suggestion.confidence == 0.92
    assert {entry.id for entry in suggestion.entries} == {first.id, second.id}
    assert result.claims.bank_entries == {first.id, second.id}
    assert result.claims.transactions == {tx.id}


def test_learned_pattern_proposes_expense() -> None:
    pattern = PatternFactory.build()
    entry = BankEntryFactory.build(
        amount=Decimal("-45.00"), statement_date=BASE, description="EDF ENERGY DIRECT DEBIT"
    )

    result = compute_suggestions(
        build_snapshot(bank_entries=[entry], patterns=[pattern]), config=DEFAULT_CONFIG
    )

    suggestion = result.suggestions[entry.id]
    assert isinstance(suggestion, CreateNew)
    assert suggestion.target_type == ReconciliationType.EXPENSE
    assert suggestion.confidence == pytest.approx(0.76)
    assert len(result.claims) == 1


class TestCompetingEntries:
    def _setup(self):
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"), txn_date=BASE)
        entries = [
            BankEntryFactory.build(
                id=UUID(int=2), amount=Decimal("500.00"), statement_date=BASE,
                description="BANK CREDIT",
            ),
            BankEntryFactory.build(
                id=UUID(int=1), amount=Decimal("500.00"), statement_date=BASE,
                description="BANK CREDIT",
            ),
        ]
        return tx, entries

    def test_lower_id_wins_the_record(self) -> None:
        tx, entries = self._setup()
        snapshot = build_snapshot(bank_entries=entries, loan_transactions=[tx])

        result = compute_suggestions(snapshot, config=DEFAULT_CONFIG)

        assert list(result.suggestions) == [UUID(int=1)]
        assert result.suggestions[UUID(int=1)].confidence == 0.95

    def test_independent_evaluations_conflict(self) -> None:
        tx, entries = self._setup()
        snapshot = build_snapshot(bank_entries=entries, loan_transactions=[tx])
        suggestions = {
            entry.id: evaluate_entry(entry, snapshot, ClaimSet()) for entry in entries
        }

        conflicts = compute_conflicts(entries, suggestions)

        assert conflicts == {UUID(int=1): {UUID(int=2)}, UUID(int=2): {UUID(int=1)}}


def _busy_ledger():
    investor = InvestorFactory.build(name="Alice Jones")
    loan_txs = [
        LoanTransactionFactory.build(amount=Decimal(amount), txn_date=BASE)
        for amount in ("100.00", "100.00", "250.00")
    ]
    capital = InvestorTransactionFactory.build(investor_id=investor.id, txn_date=BASE)
    expenses = [ExpenseFactory.build(txn_date=BASE), ExpenseFactory.build(txn_date=BASE)]
    entries = [
        BankEntryFactory.build(amount=Decimal("100.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("100.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("100.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("250.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("1000.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("-45.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("-45.00"), statement_date=BASE),
        BankEntryFactory.build(amount=Decimal("-45.00"), statement_date=BASE),
    ]
    return {
        "bank_entries": entries,
        "loan_transactions": loan_txs,
        "investor_transactions": [capital],
        "expenses": expenses,
        "investors": [investor],
    }


def test_no_record_is_claimed_twice() -> None:
    result = compute_suggestions(build_snapshot(**_busy_ledger()), config=DEFAULT_CONFIG)

    seen = set()
    for entry_id, suggestion in result.suggestions.items():
        keys = set(suggestion.claim_keys())
        assert not keys & seen
        seen |= keys
    # Three 100.00 credits compete for two repayments, three debits for two expenses
    assert len(result.suggestions) == 6


def test_result_independent_of_input_order() -> None:
    collections = _busy_ledger()
    expected = compute_suggestions(build_snapshot(**collections), config=DEFAULT_CONFIG)

    rng = random.Random(7)
    for _ in range(5):
        shuffled = {name: rng.sample(items, len(items)) for name, items in collections.items()}
        result = compute_suggestions(build_snapshot(**shuffled), config=DEFAULT_CONFIG)
        assert dict(result.suggestions) == dict(expected.suggestions)
        assert result.claims == expected.claims


def test_equal_scores_go_to_the_first_record_in_date_then_id_order() -> None:
    entry = BankEntryFactory.build(amount=Decimal("100.00"), statement_date=BASE)
    low = LoanTransactionFactory.build(
        id=UUID("00000000-0000-0000-0000-000000000001"), amount=Decimal("100.00"), txn_date=BASE
    )
    high = LoanTransactionFactory.build(
        id=UUID("ffffffff-0000-0000-0000-000000000000"), amount=Decimal("100.00"), txn_date=BASE
    )
    undated = LoanTransactionFactory.build(
        id=UUID("00000000-0000-0000-0000-000000000000"), amount=Decimal("100.00"), txn_date=None
    )

    result = compute_suggestions(
        build_snapshot(bank_entries=[entry], loan_transactions=[undated, high, low]),
        config=DEFAULT_CONFIG,
    )

    assert result.suggestions[entry.id].record is low


def test_reconciled_entries_are_ignored() -> None:
    tx = LoanTransactionFactory.build(amount=Decimal("100.00"), txn_date=BASE)
    entry = BankEntryFactory.build(amount=Decimal("100.00"), is_reconciled=True)
    result = compute_suggestions(
        build_snapshot(bank_entries=[entry], loan_transactions=[tx]), config=DEFAULT_CONFIG
    )
    assert not result.suggestions


@pytest.mark.parametrize("confidence,accepted", [(0.35, True), (0.349999, False), (0.9, True)])
def test_acceptance_threshold_is_inclusive(confidence, accepted) -> None:
    entry = BankEntryFactory.build()
    suggestion = evaluate_entry(
        entry, build_snapshot(bank_entries=[entry]), ClaimSet(), strategies=[FixedScore(confidence)]
    )
    assert (suggestion is not None) is accepted


def test_later_strategy_must_strictly_improve() -> None:
    entry = BankEntryFactory.build()
    first, second = FixedScore(0.5), FixedScore(0.5)
    suggestion = evaluate_entry(
        entry, build_snapshot(bank_entries=[entry]), ClaimSet(), strategies=[first, second]
    )
    assert suggestion.confidence == 0.5
