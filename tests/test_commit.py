"""Tests for committing suggestions and manual matches."""

from decimal import Decimal

import pytest

from ledger_recon.models import (
    BankEntry,
    Expense,
    InterestEntryType,
    InvestorInterestEntry,
    InvestorTransaction,
    InvestorTransactionType,
    LoanTransaction,
    LoanTransactionType,
    ReconciliationLink,
    ReconciliationPattern,
    ReconciliationType,
)
from ledger_recon.services.commit import (
    MatchRelationship,
    apply_suggestion,
    execute_manual_match,
    split_amount,
    unreconcile,
    validate_balance,
)
from ledger_recon.services.errors import (
    ImbalanceError,
    PartialCommitFailure,
    StaleReferenceError,
    UnsupportedSuggestionError,
)
from ledger_recon.services.policy import DEFAULT_CONFIG
from ledger_recon.services.suggestions import (
    CreateNew,
    GroupedDisbursement,
    GroupMatch,
    SingleMatch,
    SplitRatios,
)
from tests.factories import (
    BankEntryFactory,
    ExpenseTypeFactory,
    InterestEntryFactory,
    InvestorFactory,
    InvestorTransactionFactory,
    LoanFactory,
    LoanTransactionFactory,
)


def _single(record, target_type=ReconciliationType.LOAN_REPAYMENT):
    return SingleMatch(target_type=target_type, confidence=0.95, reason="test", record=record)


def _create(target_type, **kwargs):
    return CreateNew(target_type=target_type, confidence=0.8, reason="test", **kwargs)


class TestSplitAmount:
    def test_largest_part_absorbs_rounding(self) -> None:
        parts = split_amount(Decimal("100.00"), SplitRatios(1 / 3, 1 / 3, 1 / 3))
        assert parts == (Decimal("33.34"), Decimal("33.33"), Decimal("33.33"))
        assert sum(parts) == Decimal("100.00")

    def test_partial_ratios_are_not_topped_up(self) -> None:
        parts = split_amount(Decimal("100.00"), SplitRatios(0.5, 0.3, 0.0))
        assert sum(parts) == Decimal("80.00")


def test_validate_balance_uses_absolute_totals() -> None:
    validate_balance(Decimal("-100.00"), Decimal("100.01"), "test", Decimal("0.01"))
    with pytest.raises(ImbalanceError) as exc_info:
        validate_balance(Decimal("100.00"), Decimal("99.98"), "test", Decimal("0.01"))
    assert exc_info.value.difference == Decimal("0.02")


class TestApplyExistingRecords:
    async def test_single_match(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(entry, tx)

        result = await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert result.success
        (link,) = store.all(ReconciliationLink)
        assert link.loan_transaction_id == tx.id
        assert link.amount == Decimal("500.00")
        assert link.was_created is False
        assert entry.is_reconciled
        assert entry.reconciled_at is not None
        assert result.created == []

    async def test_stale_record_writes_nothing(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(entry)

        result = await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert not result.success
        assert isinstance(result.failure, StaleReferenceError)
        assert store.operations == []
        assert not entry.is_reconciled

    async def test_soft_deleted_record_is_stale(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"), is_deleted=True)
        store.seed(entry, tx)

        result = await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert isinstance(result.failure, StaleReferenceError)

    async def test_already_reconciled_entry(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"), is_reconciled=True)
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(entry, tx)

        result = await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert isinstance(result.failure, UnsupportedSuggestionError)

    async def test_imbalance_writes_nothing(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("495.00"))
        store.seed(entry, tx)

        result = await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert isinstance(result.failure, ImbalanceError)
        assert store.all(ReconciliationLink) == []

    async def test_group_links_each_record(self, store) -> None:
        investor = InvestorFactory.build()
        capital = InvestorTransactionFactory.build(
            investor_id=investor.id,
            type=InvestorTransactionType.CAPITAL_OUT,
            amount=Decimal("1000.00"),
        )
        interest = InterestEntryFactory.build(investor_id=investor.id, amount=Decimal("100.00"))
        entry = BankEntryFactory.build(amount=Decimal("-1100.00"))
        store.seed(entry, capital, interest)
        suggestion = GroupMatch(
            target_type=ReconciliationType.INVESTOR_WITHDRAWAL,
            confidence=0.92,
            reason="test",
            records=(capital, interest),
        )

        result = await apply_suggestion(store, entry, suggestion, config=DEFAULT_CONFIG)

        assert result.success
        by_type = {link.reconciliation_type: link for link in result.links}
        assert by_type[ReconciliationType.INVESTOR_WITHDRAWAL].investor_transaction_id == (
            capital.id
        )
        assert by_type[ReconciliationType.INTEREST_WITHDRAWAL].interest_id == interest.id
        assert by_type[ReconciliationType.INTEREST_WITHDRAWAL].amount == Decimal("100.00")

    async def test_grouped_entries_share_a_group_id(self, store) -> None:
        tx = LoanTransactionFactory.build(
            type=LoanTransactionType.DISBURSEMENT, amount=Decimal("150.00")
        )
        first = BankEntryFactory.build(amount=Decimal("-120.00"))
        second = BankEntryFactory.build(amount=Decimal("-30.00"))
        store.seed(tx, first, second)
        suggestion = GroupedDisbursement(
            target_type=ReconciliationType.LOAN_DISBURSEMENT,
            confidence=0.92,
            reason="test",
            record=tx,
            entries=(first, second),
        )

        result = await apply_suggestion(store, first, suggestion, config=DEFAULT_CONFIG)

        assert result.success
        assert [link.amount for link in result.links] == [Decimal("120.00"), Decimal("30.00")]
        assert first.is_reconciled and second.is_reconciled
        assert first.reconciliation_group_id is not None
        assert first.reconciliation_group_id == second.reconciliation_group_id


class TestApplyCreate:
    async def test_expense_with_type_learns_pattern(self, store) -> None:
        expense_type = ExpenseTypeFactory.build(name="Utilities")
        entry = BankEntryFactory.build(amount=Decimal("-45.00"), description="EDF ENERGY DD")
        store.seed(entry, expense_type)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.EXPENSE, expense_type_id=expense_type.id),
            config=DEFAULT_CONFIG,
        )

        assert result.success
        (expense,) = store.all(Expense)
        assert expense.amount == Decimal("45.00")
        assert expense.type_name == "Utilities"
        assert result.links[0].expense_id == expense.id
        assert result.links[0].was_created is True
        (pattern,) = store.all(ReconciliationPattern)
        assert pattern.description_pattern == "edf energy"
        assert pattern.expense_type_id == expense_type.id

    async def test_loan_repayment_split(self, store) -> None:
        loan = LoanFactory.build()
        entry = BankEntryFactory.build(amount=Decimal("100.00"), description="LOAN REPAY")
        store.seed(entry, loan)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.LOAN_REPAYMENT, loan_id=loan.id),
            split=SplitRatios(0.7, 0.2, 0.1),
            config=DEFAULT_CONFIG,
        )

        assert result.success
        (tx,) = store.all(LoanTransaction)
        assert tx.type == LoanTransactionType.REPAYMENT
        assert (tx.principal_applied, tx.interest_applied, tx.fees_applied) == (
            Decimal("70.00"),
            Decimal("20.00"),
            Decimal("10.00"),
        )
        (pattern,) = store.all(ReconciliationPattern)
        assert pattern.default_interest_ratio == 0.2

    async def test_unbalanced_split_rejected(self, store) -> None:
        loan = LoanFactory.build()
        entry = BankEntryFactory.build(amount=Decimal("100.00"))
        store.seed(entry, loan)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.LOAN_REPAYMENT, loan_id=loan.id),
            split=SplitRatios(0.5, 0.3, 0.0),
            config=DEFAULT_CONFIG,
        )

        assert isinstance(result.failure, ImbalanceError)
        assert store.all(LoanTransaction) == []

    async def test_loan_type_needs_a_loan(self, store) -> None:
        entry = BankEntryFactory.build()
        store.seed(entry)

        result = await apply_suggestion(
            store, entry, _create(ReconciliationType.LOAN_REPAYMENT), config=DEFAULT_CONFIG
        )

        assert isinstance(result.failure, UnsupportedSuggestionError)

    async def test_investor_credit_updates_balances(self, store) -> None:
        investor = InvestorFactory.build(
            current_capital_balance=Decimal("1000"), total_capital_contributed=Decimal("1000")
        )
        entry = BankEntryFactory.build(amount=Decimal("250.00"))
        store.seed(entry, investor)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.INVESTOR_CREDIT, investor_id=investor.id),
            config=DEFAULT_CONFIG,
        )

        assert result.success
        (tx,) = store.all(InvestorTransaction)
        assert tx.type == InvestorTransactionType.CAPITAL_IN
        assert investor.current_capital_balance == Decimal("1250.00")
        assert investor.total_capital_contributed == Decimal("1250.00")

    async def test_withdrawal_books_manual_interest_first(self, store) -> None:
        investor = InvestorFactory.build(
            current_capital_balance=Decimal("5000"), manual_interest=True
        )
        entry = BankEntryFactory.build(amount=Decimal("-1000.00"), description="ALICE PAYOUT")
        store.seed(entry, investor)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.INVESTOR_WITHDRAWAL, investor_id=investor.id),
            split=SplitRatios(0.8, 0.2, 0.0),
            config=DEFAULT_CONFIG,
        )

        assert result.success
        (capital,) = store.all(InvestorTransaction)
        assert capital.amount == Decimal("800.00")
        interest_entries = {item.type: item for item in store.all(InvestorInterestEntry)}
        assert interest_entries[InterestEntryType.CREDIT].amount == Decimal("200.00")
        assert interest_entries[InterestEntryType.CREDIT].description.startswith(
            "Interest accrued (auto-created)"
        )
        (link,) = result.links
        assert link.investor_transaction_id == capital.id
        assert link.interest_id == interest_entries[InterestEntryType.DEBIT].id
        assert investor.current_capital_balance == Decimal("4200.00")

    async def test_interest_withdrawal_defaults_to_all_interest(self, store) -> None:
        investor = InvestorFactory.build()
        entry = BankEntryFactory.build(amount=Decimal("-60.00"))
        store.seed(entry, investor)

        result = await apply_suggestion(
            store,
            entry,
            _create(ReconciliationType.INTEREST_WITHDRAWAL, investor_id=investor.id),
            config=DEFAULT_CONFIG,
        )

        assert result.success
        assert store.all(InvestorTransaction) == []
        (interest,) = store.all(InvestorInterestEntry)
        assert interest.type == InterestEntryType.DEBIT
        assert interest.amount == Decimal("60.00")


class TestRollback:
    async def test_failed_link_removes_created_record(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("-45.00"))
        store.seed(entry)
        store.fail_on = lambda op, record: op == "add" and isinstance(record, ReconciliationLink)

        with pytest.raises(PartialCommitFailure) as exc_info:
            await apply_suggestion(
                store, entry, _create(ReconciliationType.EXPENSE), config=DEFAULT_CONFIG
            )

        assert exc_info.value.rolled_back
        assert store.all(Expense) == []
        assert not entry.is_reconciled

    async def test_failed_mark_restores_entry(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(entry, tx)
        store.fail_on = lambda op, record: op == "update" and isinstance(record, BankEntry)

        with pytest.raises(PartialCommitFailure):
            await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert store.all(ReconciliationLink) == []
        assert not entry.is_reconciled

    async def test_incomplete_rollback_is_reported(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("500.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(entry, tx)
        store.fail_on = lambda op, record: op in ("update", "delete")

        with pytest.raises(PartialCommitFailure) as exc_info:
            await apply_suggestion(store, entry, _single(tx), config=DEFAULT_CONFIG)

        assert not exc_info.value.rolled_back


class TestUnreconcile:
    async def _committed_expense(self, store):
        entry = BankEntryFactory.build(amount=Decimal("-45.00"))
        store.seed(entry)
        await apply_suggestion(
            store, entry, _create(ReconciliationType.EXPENSE), config=DEFAULT_CONFIG
        )
        return entry

    async def test_deletes_created_records(self, store) -> None:
        entry = await self._committed_expense(store)

        removed = await unreconcile(store, entry.id)

        assert removed == 1
        assert store.all(ReconciliationLink) == []
        assert store.all(Expense) == []
        assert not entry.is_reconciled
        assert entry.reconciled_at is None

    async def test_keeps_created_records_on_request(self, store) -> None:
        entry = await self._committed_expense(store)

        await unreconcile(store, entry.id, delete_created=False)

        assert len(store.all(Expense)) == 1
        assert store.all(ReconciliationLink) == []

    async def test_unknown_entry(self, store) -> None:
        with pytest.raises(StaleReferenceError):
            await unreconcile(store, BankEntryFactory.build().id)


class TestManualMatch:
    async def test_one_to_many(self, store) -> None:
        entry = BankEntryFactory.build(amount=Decimal("300.00"))
        first = LoanTransactionFactory.build(amount=Decimal("100.00"))
        second = LoanTransactionFactory.build(amount=Decimal("200.00"))
        store.seed(entry, first, second)

        result = await execute_manual_match(
            store,
            [entry],
            [first, second],
            ReconciliationType.LOAN_REPAYMENT,
            MatchRelationship.ONE_TO_MANY,
            config=DEFAULT_CONFIG,
        )

        assert result.success
        assert [link.amount for link in result.links] == [Decimal("100.00"), Decimal("200.00")]
        assert entry.is_reconciled

    async def test_many_to_one_groups_entries(self, store) -> None:
        entries = [
            BankEntryFactory.build(amount=Decimal("600.00")),
            BankEntryFactory.build(amount=Decimal("400.00")),
        ]
        capital = InvestorTransactionFactory.build(amount=Decimal("1000.00"))
        store.seed(*entries, capital)

        result = await execute_manual_match(
            store,
            entries,
            [capital],
            ReconciliationType.INVESTOR_CREDIT,
            MatchRelationship.MANY_TO_ONE,
            config=DEFAULT_CONFIG,
        )

        assert result.success
        assert {entry.reconciliation_group_id for entry in entries} != {None}
        assert len({entry.reconciliation_group_id for entry in entries}) == 1

    async def test_net_receipt_keeps_signed_amounts(self, store) -> None:
        receipt = BankEntryFactory.build(amount=Decimal("600.00"))
        fee = BankEntryFactory.build(amount=Decimal("-100.00"))
        tx = LoanTransactionFactory.build(amount=Decimal("500.00"))
        store.seed(receipt, fee, tx)

        result = await execute_manual_match(
            store,
            [receipt, fee],
            [tx],
            ReconciliationType.LOAN_REPAYMENT,
            MatchRelationship.NET_RECEIPT,
            config=DEFAULT_CONFIG,
        )

        assert result.success
        assert [link.amount for link in result.links] == [Decimal("600.00"), Decimal("-100.00")]

    @pytest.mark.parametrize(
        "relationship,entry_count,target_count",
        [
            (MatchRelationship.ONE_TO_ONE, 2, 1),
            (MatchRelationship.ONE_TO_MANY, 2, 2),
            (MatchRelationship.MANY_TO_ONE, 2, 2),
        ],
    )
    async def test_shape_is_checked(self, store, relationship, entry_count, target_count) -> None:
        entries = [BankEntryFactory.build() for _ in range(entry_count)]
        targets = [LoanTransactionFactory.build() for _ in range(target_count)]
        store.seed(*entries, *targets)

        result = await execute_manual_match(
            store,
            entries,
            targets,
            ReconciliationType.LOAN_REPAYMENT,
            relationship,
            config=DEFAULT_CONFIG,
        )

        assert isinstance(result.failure, UnsupportedSuggestionError)
        assert store.operations == []
