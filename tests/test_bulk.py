"""Tests for bulk commits and auto-reconciliation."""

from datetime import date
from decimal import Decimal

from ledger_recon.models import Expense, ReconciliationLink, ReconciliationType
from ledger_recon.services.bulk import auto_reconcile, bulk_apply
from ledger_recon.services.policy import DEFAULT_CONFIG
from ledger_recon.services.suggestions import CreateNew, SingleMatch
from tests.factories import BankEntryFactory, ExpenseFactory, LoanTransactionFactory

BASE = date(2024, 3, 10)


def _single(record, confidence=0.95):
    return SingleMatch(
        target_type=ReconciliationType.LOAN_REPAYMENT,
        confidence=confidence,
        reason="test",
        record=record,
    )


class InvalidationSpy:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


class TestBulkApply:
    async def test_second_use_of_a_target_is_skipped(self, store) -> None:
        tx = LoanTransactionFactory.build(amount=Decimal("100.00"))
        first = BankEntryFactory.build(amount=Decimal("100.00"))
        second = BankEntryFactory.build(amount=Decimal("100.00"))
        store.seed(tx, first, second)
        invalidate = InvalidationSpy()

        summary = await bulk_apply(
            store,
            [(first, _single(tx)), (second, _single(tx))],
            invalidate=invalidate,
            config=DEFAULT_CONFIG,
        )

        assert summary.succeeded == [first.id]
        (skipped,) = summary.skipped
        assert skipped.bank_entry_id == second.id
        assert skipped.reason == "target already used in this batch"
        assert skipped.details == f"tx:{tx.id}"
        assert len(store.all(ReconciliationLink)) == 1
        assert invalidate.calls == 1
        assert summary.total == 2

    async def test_reconciled_missing_and_failing_entries(self, store) -> None:
        reconciled = BankEntryFactory.build(is_reconciled=True)
        missing = BankEntryFactory.build()
        stale = BankEntryFactory.build(amount=Decimal("100.00"))
        store.seed(reconciled, stale)
        gone = LoanTransactionFactory.build(amount=Decimal("100.00"))

        summary = await bulk_apply(
            store,
            [
                (reconciled, _single(LoanTransactionFactory.build())),
                (missing, _single(LoanTransactionFactory.build())),
                (stale, _single(gone)),
            ],
            config=DEFAULT_CONFIG,
        )

        assert [item.reason for item in summary.skipped] == ["already reconciled"]
        assert summary.failed == [missing.id, stale.id]
        assert "no longer exists" in summary.errors[stale.id]
        assert summary.total == 3

    async def test_raised_failure_is_counted_and_batch_continues(self, store) -> None:
        broken = BankEntryFactory.build(amount=Decimal("-45.00"))
        fine = BankEntryFactory.build(amount=Decimal("100.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("100.00"))
        store.seed(broken, fine, tx)
        store.fail_on = lambda op, record: op == "add" and isinstance(record, Expense)
        create = CreateNew(target_type=ReconciliationType.EXPENSE, confidence=0.7, reason="test")

        summary = await bulk_apply(
            store, [(broken, create), (fine, _single(tx))], config=DEFAULT_CONFIG
        )

        assert summary.failed == [broken.id]
        assert "Commit failed" in summary.errors[broken.id]
        assert summary.succeeded == [fine.id]

    async def test_invalidate_runs_for_empty_batch(self, store) -> None:
        invalidate = InvalidationSpy()
        summary = await bulk_apply(store, [], invalidate=invalidate, config=DEFAULT_CONFIG)
        assert summary.total == 0
        assert invalidate.calls == 1


class TestAutoReconcile:
    async def test_commits_only_confident_existing_matches(self, store) -> None:
        exact = BankEntryFactory.build(amount=Decimal("250.00"), statement_date=BASE)
        tx = LoanTransactionFactory.build(amount=Decimal("250.00"), txn_date=BASE)
        # Seven days apart scores 0.75, below the auto-accept bar
        late = BankEntryFactory.build(amount=Decimal("-45.00"), statement_date=BASE)
        expense = ExpenseFactory.build(amount=Decimal("45.00"), txn_date=date(2024, 3, 17))
        store.seed(exact, tx, late, expense)

        summary = await auto_reconcile(store, config=DEFAULT_CONFIG)

        assert summary.succeeded == [exact.id]
        assert exact.is_reconciled
        assert not late.is_reconciled

    async def test_explicit_threshold(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("-45.00"), statement_date=BASE)
        expense = ExpenseFactory.build(amount=Decimal("45.00"), txn_date=date(2024, 3, 17))
        store.seed(entry, expense)

        summary = await auto_reconcile(store, min_confidence=0.7, config=DEFAULT_CONFIG)

        assert summary.succeeded == [entry.id]
        (link,) = store.all(ReconciliationLink)
        assert link.expense_id == expense.id
