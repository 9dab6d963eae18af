"""Commit operations: turn a suggestion (or a manual selection) into writes.

The writes of one commit run inside the store's savepoint, so on a database
a failure part-way rolls back that commit alone and the session stays usable
for the rest of a batch. Every write also goes through an undo log, which
compensates when the store has no savepoint of its own.

Order of work for every commit:
1. Re-fetch everything the suggestion references (stale -> no writes).
2. Check that bank and ledger totals balance (imbalance -> no writes).
3. Write: create records, link them, mark bank entries reconciled.
4. For created records, reinforce the learned pattern (best effort).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from functools import partial
from typing import Any
from uuid import UUID, uuid4

from ledger_recon.logger import get_logger, log_exception
from ledger_recon.models import (
    BankEntry,
    Expense,
    ExpenseType,
    InterestEntryType,
    Investor,
    InvestorInterestEntry,
    InvestorTransaction,
    InvestorTransactionType,
    LedgerRecord,
    Loan,
    LoanTransaction,
    LoanTransactionType,
    ReconciliationLink,
    ReconciliationType,
)
from ledger_recon.services.errors import (
    ImbalanceError,
    PartialCommitFailure,
    ReconciliationError,
    StaleReferenceError,
    UnsupportedSuggestionError,
)
from ledger_recon.services.patterns import learn_from_match
from ledger_recon.services.policy import ReconciliationConfig, load_reconciliation_config
from ledger_recon.services.scoring import to_amount
from ledger_recon.services.store import ReconciliationStore, Savepoint
from ledger_recon.services.suggestions import (
    CreateNew,
    GroupedDisbursement,
    GroupedInvestor,
    GroupMatch,
    SingleMatch,
    SplitRatios,
    Suggestion,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")

_LINK_FIELDS: dict[type, str] = {
    LoanTransaction: "loan_transaction_id",
    InvestorTransaction: "investor_transaction_id",
    Expense: "expense_id",
    InvestorInterestEntry: "interest_id",
}


class MatchRelationship(str, Enum):
    """Shape of a manual match between bank entries and ledger records."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    NET_RECEIPT = "net-receipt"


@dataclass
class CommitResult:
    """Outcome of one commit. ``failure`` is set when nothing was written."""

    success: bool
    error: str | None = None
    failure: ReconciliationError | None = None
    links: list[ReconciliationLink] = field(default_factory=list)
    created: list[Any] = field(default_factory=list)


class UndoLog:
    """Records compensating actions for every write, newest first on rollback."""

    def __init__(self, store: ReconciliationStore) -> None:
        self.store = store
        self.created: list[Any] = []
        self._undo: list[Callable[[], Awaitable[Any]]] = []

    @property
    def wrote(self) -> bool:
        return bool(self._undo)

    async def add(self, record: Any) -> Any:
        await self.store.add(record)
        self.created.append(record)
        self._undo.append(partial(self.store.delete, record))
        return record

    async def update(self, record: Any, **changes: Any) -> Any:
        previous = {name: getattr(record, name) for name in changes}
        await self.store.update(record, **changes)
        self._undo.append(partial(self.store.update, record, **previous))
        return record

    async def rollback(self) -> bool:
        """Run compensations; True only if every one succeeded."""
        clean = True
        while self._undo:
            action = self._undo.pop()
            try:
                await action()
            except Exception as exc:
                clean = False
                log_exception(logger, exc, "Compensating write failed")
        return clean


def _now() -> datetime:
    return datetime.now(UTC)


def _share(amount: Decimal, ratio: float) -> Decimal:
    return (amount * Decimal(str(ratio or 0))).quantize(CENT, rounding=ROUND_HALF_UP)


def split_amount(amount: Decimal, split: SplitRatios) -> tuple[Decimal, Decimal, Decimal]:
    """Money parts (capital, interest, fees) of ``amount``.

    When the ratios add up to one the largest part absorbs rounding, so the
    parts always sum to ``amount`` exactly.
    """
    parts = [_share(amount, ratio) for ratio in (split.capital, split.interest, split.fees)]
    ratio_total = (split.capital or 0) + (split.interest or 0) + (split.fees or 0)
    if abs(ratio_total - 1) < 1e-9:
        largest = max(range(3), key=lambda index: parts[index])
        parts[largest] += amount - sum(parts)
    return parts[0], parts[1], parts[2]


def validate_balance(
    bank_total: Decimal,
    ledger_total: Decimal,
    context: str,
    tolerance: Decimal,
) -> None:
    """Raise ImbalanceError when the absolute totals differ by more than ``tolerance``."""
    if abs(abs(bank_total) - abs(ledger_total)) > tolerance:
        raise ImbalanceError(abs(bank_total), abs(ledger_total), context)


def _link(
    bank_entry_id: UUID,
    record: LedgerRecord | None,
    amount: Decimal,
    reconciliation_type: ReconciliationType,
    notes: str,
    *,
    was_created: bool = False,
    **extra_ids: UUID | None,
) -> ReconciliationLink:
    ids: dict[str, UUID | None] = dict(extra_ids)
    if record is not None:
        ids[_LINK_FIELDS[type(record)]] = record.id
    return ReconciliationLink(
        id=uuid4(),
        bank_entry_id=bank_entry_id,
        amount=amount,
        reconciliation_type=reconciliation_type,
        notes=notes,
        was_created=was_created,
        **ids,
    )


async def _mark_reconciled(undo: UndoLog, entry: BankEntry, group_id: UUID | None = None) -> None:
    changes: dict[str, Any] = {"is_reconciled": True, "reconciled_at": _now()}
    if group_id is not None:
        changes["reconciliation_group_id"] = group_id
    await undo.update(entry, **changes)


# =============================================================================
# Re-fetch
# =============================================================================


async def _fresh_record(store: ReconciliationStore, record: Any) -> Any:
    model = type(record)
    fresh = await store.get(model, record.id)
    if fresh is None or getattr(fresh, "is_deleted", False):
        raise StaleReferenceError(model.__name__, record.id)
    return fresh


async def _fresh_entry(store: ReconciliationStore, entry_id: UUID) -> BankEntry:
    fresh = await store.get(BankEntry, entry_id)
    if fresh is None:
        raise StaleReferenceError(BankEntry.__name__, entry_id)
    if fresh.is_reconciled:
        raise UnsupportedSuggestionError(f"Bank entry {entry_id} is already reconciled")
    return fresh


async def _require(
    store: ReconciliationStore, model: type, record_id: UUID | None, what: str
) -> Any:
    if record_id is None:
        raise UnsupportedSuggestionError(f"Create {what} needs a {model.__name__.lower()}")
    record = await store.get(model, record_id)
    if record is None:
        raise UnsupportedSuggestionError(f"{model.__name__} {record_id} no longer exists")
    return record


# =============================================================================
# Writers per match mode
# =============================================================================


async def _write_single(
    undo: UndoLog, entry: BankEntry, suggestion: SingleMatch, record: LedgerRecord
) -> list[ReconciliationLink]:
    link = await undo.add(
        _link(
            entry.id,
            record,
            to_amount(entry.amount),
            suggestion.target_type,
            "Matched to existing transaction",
        )
    )
    await _mark_reconciled(undo, entry)
    return [link]


async def _write_group(
    undo: UndoLog, entry: BankEntry, suggestion: GroupMatch, records: list[LedgerRecord]
) -> list[ReconciliationLink]:
    links = []
    for record in records:
        reconciliation_type = (
            ReconciliationType.INTEREST_WITHDRAWAL
            if isinstance(record, InvestorInterestEntry)
            else suggestion.target_type
        )
        links.append(
            await undo.add(
                _link(
                    entry.id,
                    record,
                    to_amount(record.amount),
                    reconciliation_type,
                    f"Grouped match: {len(records)} records",
                )
            )
        )
    await _mark_reconciled(undo, entry)
    return links


async def _write_grouped_entries(
    undo: UndoLog,
    suggestion: GroupedDisbursement | GroupedInvestor,
    record: LedgerRecord,
    entries: list[BankEntry],
) -> list[ReconciliationLink]:
    group_id = uuid4()
    links = []
    for member in entries:
        links.append(
            await undo.add(
                _link(
                    member.id,
                    record,
                    to_amount(member.amount),
                    suggestion.target_type,
                    f"Grouped {suggestion.match_mode.value}: {len(entries)} payments",
                )
            )
        )
        await _mark_reconciled(undo, member, group_id)
    return links


@dataclass
class _CreatePlan:
    """Everything a create needs, resolved before the first write."""

    target_type: ReconciliationType
    amount: Decimal
    split: SplitRatios
    explicit_split: bool
    loan: Loan | None = None
    investor: Investor | None = None
    expense_type: ExpenseType | None = None


def _default_split(target_type: ReconciliationType) -> SplitRatios:
    if target_type == ReconciliationType.INTEREST_WITHDRAWAL:
        return SplitRatios(capital=0.0, interest=1.0, fees=0.0)
    return SplitRatios()


async def _plan_create(
    store: ReconciliationStore,
    entry: BankEntry,
    suggestion: CreateNew,
    split: SplitRatios | None,
    config: ReconciliationConfig,
) -> _CreatePlan:
    target_type = ReconciliationType(suggestion.target_type)
    effective = split or suggestion.split
    plan = _CreatePlan(
        target_type=target_type,
        amount=to_amount(entry.amount),
        split=effective or _default_split(target_type),
        explicit_split=effective is not None,
    )
    if target_type.is_loan:
        plan.loan = await _require(store, Loan, suggestion.loan_id, target_type.value)
    elif target_type.is_investor:
        plan.investor = await _require(store, Investor, suggestion.investor_id, target_type.value)
    elif suggestion.expense_type_id is not None:
        plan.expense_type = await _require(
            store, ExpenseType, suggestion.expense_type_id, target_type.value
        )

    if target_type in (
        ReconciliationType.LOAN_REPAYMENT,
        ReconciliationType.INVESTOR_WITHDRAWAL,
        ReconciliationType.INTEREST_WITHDRAWAL,
    ):
        validate_balance(
            plan.amount,
            sum(split_amount(plan.amount, plan.split), Decimal("0")),
            f"create_{target_type.value}_split",
            config.balance_tolerance,
        )
    return plan


async def _create_loan_transaction(
    undo: UndoLog, entry: BankEntry, plan: _CreatePlan
) -> list[ReconciliationLink]:
    loan = plan.loan
    if plan.target_type == ReconciliationType.LOAN_REPAYMENT:
        principal, interest, fees = split_amount(plan.amount, plan.split)
        tx_type = LoanTransactionType.REPAYMENT
    else:
        principal, interest, fees = plan.amount, Decimal("0"), Decimal("0")
        tx_type = LoanTransactionType.DISBURSEMENT
    tx = await undo.add(
        LoanTransaction(
            id=uuid4(),
            loan_id=loan.id,
            borrower_id=loan.borrower_id,
            type=tx_type,
            amount=plan.amount,
            txn_date=entry.statement_date,
            principal_applied=principal,
            interest_applied=interest,
            fees_applied=fees,
            reference=entry.external_reference,
            notes=f"Bank reconciliation: {entry.description or ''}".strip(),
            is_deleted=False,
        )
    )
    link = await undo.add(
        _link(
            entry.id, tx, plan.amount, plan.target_type, "Created new transaction", was_created=True
        )
    )
    return [link]


async def _create_investor_credit(
    undo: UndoLog, entry: BankEntry, plan: _CreatePlan
) -> list[ReconciliationLink]:
    investor = plan.investor
    tx = await undo.add(
        InvestorTransaction(
            id=uuid4(),
            investor_id=investor.id,
            type=InvestorTransactionType.CAPITAL_IN,
            amount=plan.amount,
            txn_date=entry.statement_date,
            description=entry.description,
            reference=entry.external_reference,
        )
    )
    await undo.update(
        investor,
        current_capital_balance=(investor.current_capital_balance or Decimal("0")) + plan.amount,
        total_capital_contributed=(investor.total_capital_contributed or Decimal("0"))
        + plan.amount,
    )
    link = await undo.add(
        _link(
            entry.id,
            tx,
            plan.amount,
            ReconciliationType.INVESTOR_CREDIT,
            "Created new transaction",
            was_created=True,
        )
    )
    return [link]


async def _create_investor_withdrawal(
    undo: UndoLog, entry: BankEntry, plan: _CreatePlan
) -> list[ReconciliationLink]:
    investor = plan.investor
    capital, interest, _ = split_amount(plan.amount, plan.split)
    capital_tx: InvestorTransaction | None = None
    interest_entry: InvestorInterestEntry | None = None

    if capital > 0:
        capital_tx = await undo.add(
            InvestorTransaction(
                id=uuid4(),
                investor_id=investor.id,
                type=InvestorTransactionType.CAPITAL_OUT,
                amount=capital,
                txn_date=entry.statement_date,
                description=entry.description,
                reference=entry.external_reference,
            )
        )
        await undo.update(
            investor,
            current_capital_balance=(investor.current_capital_balance or Decimal("0")) - capital,
        )

    if interest > 0:
        if investor.manual_interest:
            # Manually-booked interest has no accrual yet; book it before paying it out
            await undo.add(
                InvestorInterestEntry(
                    id=uuid4(),
                    investor_id=investor.id,
                    type=InterestEntryType.CREDIT,
                    amount=interest,
                    txn_date=entry.statement_date,
                    description=f"Interest accrued (auto-created): {entry.description or ''}",
                    reference=entry.external_reference,
                )
            )
        interest_entry = await undo.add(
            InvestorInterestEntry(
                id=uuid4(),
                investor_id=investor.id,
                type=InterestEntryType.DEBIT,
                amount=interest,
                txn_date=entry.statement_date,
                description=entry.description,
                reference=entry.external_reference,
            )
        )

    link = await undo.add(
        _link(
            entry.id,
            None,
            plan.amount,
            plan.target_type,
            "Created new transaction",
            was_created=True,
            investor_transaction_id=capital_tx.id if capital_tx else None,
            interest_id=interest_entry.id if interest_entry else None,
        )
    )
    return [link]


async def _create_expense(
    undo: UndoLog, entry: BankEntry, plan: _CreatePlan
) -> list[ReconciliationLink]:
    expense = await undo.add(
        Expense(
            id=uuid4(),
            type_id=plan.expense_type.id if plan.expense_type else None,
            type_name=plan.expense_type.name if plan.expense_type else None,
            amount=plan.amount,
            txn_date=entry.statement_date,
            description=entry.description,
        )
    )
    link = await undo.add(
        _link(
            entry.id,
            expense,
            plan.amount,
            ReconciliationType.EXPENSE,
            "Created new expense",
            was_created=True,
        )
    )
    return [link]


_CREATORS = {
    ReconciliationType.LOAN_REPAYMENT: _create_loan_transaction,
    ReconciliationType.LOAN_DISBURSEMENT: _create_loan_transaction,
    ReconciliationType.INVESTOR_CREDIT: _create_investor_credit,
    ReconciliationType.INVESTOR_WITHDRAWAL: _create_investor_withdrawal,
    ReconciliationType.INTEREST_WITHDRAWAL: _create_investor_withdrawal,
    ReconciliationType.EXPENSE: _create_expense,
}

# Split ratios worth remembering on the learned pattern
_LEARNED_SPLIT_TYPES = (
    ReconciliationType.LOAN_REPAYMENT,
    ReconciliationType.INVESTOR_WITHDRAWAL,
    ReconciliationType.INTEREST_WITHDRAWAL,
)


async def _learn(
    store: ReconciliationStore,
    entry: BankEntry,
    suggestion: CreateNew,
    plan: _CreatePlan,
    config: ReconciliationConfig,
) -> None:
    entry_id = str(entry.id)
    try:
        async with store.savepoint():
            await learn_from_match(
                store,
                entry,
                plan.target_type,
                loan_id=plan.loan.id if plan.loan else None,
                investor_id=plan.investor.id if plan.investor else None,
                expense_type_id=plan.expense_type.id if plan.expense_type else None,
                split=plan.split
                if plan.explicit_split and plan.target_type in _LEARNED_SPLIT_TYPES
                else None,
                config=config,
            )
    except Exception as exc:
        log_exception(
            logger,
            exc,
            "Pattern learning failed",
            level="warning",
            bank_entry_id=entry_id,
            pattern_id=str(suggestion.pattern_id) if suggestion.pattern_id else None,
        )


# =============================================================================
# Public operations
# =============================================================================


async def _run_writes(
    undo: UndoLog,
    writer: Callable[[], Awaitable[list[ReconciliationLink]]],
    **context: Any,
) -> list[ReconciliationLink]:
    savepoint = Savepoint()
    try:
        async with undo.store.savepoint() as savepoint:
            return await writer()
    except Exception as exc:
        # A rolled-back savepoint already removed every write of this commit
        rolled_back = savepoint.rolled_back or await undo.rollback()
        log_exception(logger, exc, "Commit failed", rolled_back=rolled_back, **context)
        raise PartialCommitFailure(exc, rolled_back) from exc


def _rejected(exc: ReconciliationError, **context: Any) -> CommitResult:
    log_exception(
        logger,
        exc,
        "Commit rejected before any write",
        level="warning",
        include_traceback=False,
        **context,
    )
    return CommitResult(success=False, error=str(exc), failure=exc)


async def apply_suggestion(
    store: ReconciliationStore,
    entry: BankEntry,
    suggestion: Suggestion,
    *,
    split: SplitRatios | None = None,
    config: ReconciliationConfig | None = None,
) -> CommitResult:
    """Commit one suggestion.

    Stale references, imbalances and unusable suggestions return
    ``success=False`` without writing. A failure during the writes is
    compensated and raised as PartialCommitFailure.
    """
    config = config or load_reconciliation_config()
    context = {
        "bank_entry_id": str(entry.id),
        "match_mode": suggestion.match_mode.value,
        "target_type": ReconciliationType(suggestion.target_type).value,
    }
    undo = UndoLog(store)
    tolerance = config.balance_tolerance

    try:
        if isinstance(suggestion, GroupedDisbursement | GroupedInvestor):
            record = await _fresh_record(store, suggestion.record)
            members = [await _fresh_entry(store, member.id) for member in suggestion.entries]
            validate_balance(
                sum((to_amount(member.amount) for member in members), Decimal("0")),
                to_amount(record.amount),
                suggestion.match_mode.value,
                tolerance,
            )
            writer = partial(_write_grouped_entries, undo, suggestion, record, members)
        else:
            fresh_entry = await _fresh_entry(store, entry.id)
            if isinstance(suggestion, SingleMatch):
                record = await _fresh_record(store, suggestion.record)
                validate_balance(
                    to_amount(fresh_entry.amount),
                    to_amount(record.amount),
                    "single_match",
                    tolerance,
                )
                writer = partial(_write_single, undo, fresh_entry, suggestion, record)
            elif isinstance(suggestion, GroupMatch):
                records = [await _fresh_record(store, item) for item in suggestion.records]
                validate_balance(
                    to_amount(fresh_entry.amount),
                    sum((to_amount(item.amount) for item in records), Decimal("0")),
                    "match_group",
                    tolerance,
                )
                writer = partial(_write_group, undo, fresh_entry, suggestion, records)
            elif isinstance(suggestion, CreateNew):
                plan = await _plan_create(store, fresh_entry, suggestion, split, config)
                creator = _CREATORS[plan.target_type]

                async def writer() -> list[ReconciliationLink]:
                    links = await creator(undo, fresh_entry, plan)
                    await _mark_reconciled(undo, fresh_entry)
                    return links

            else:
                raise UnsupportedSuggestionError(f"Unknown suggestion {type(suggestion).__name__}")
    except ReconciliationError as exc:
        return _rejected(exc, **context)

    links = await _run_writes(undo, writer, **context)
    logger.info(
        "Suggestion applied",
        links=len(links),
        created=len([item for item in undo.created if not isinstance(item, ReconciliationLink)]),
        confidence=suggestion.confidence,
        **context,
    )

    if isinstance(suggestion, CreateNew):
        await _learn(store, fresh_entry, suggestion, plan, config)

    return CommitResult(
        success=True,
        links=links,
        created=[item for item in undo.created if not isinstance(item, ReconciliationLink)],
    )


async def unreconcile(
    store: ReconciliationStore,
    bank_entry_id: UUID,
    *,
    delete_created: bool = True,
) -> int:
    """Undo a reconciliation; returns the number of links removed."""
    entry = await store.get(BankEntry, bank_entry_id)
    if entry is None:
        raise StaleReferenceError(BankEntry.__name__, bank_entry_id)

    links = await store.list(ReconciliationLink, bank_entry_id=bank_entry_id)
    for link in links:
        if delete_created and link.was_created:
            for model, record_id in (
                (LoanTransaction, link.loan_transaction_id),
                (InvestorTransaction, link.investor_transaction_id),
                (Expense, link.expense_id),
                (InvestorInterestEntry, link.interest_id),
            ):
                if record_id is None:
                    continue
                record = await store.get(model, record_id)
                if record is not None:
                    await store.delete(record)
        await store.delete(link)

    await store.update(entry, is_reconciled=False, reconciled_at=None, reconciliation_group_id=None)
    logger.info(
        "Bank entry unreconciled",
        bank_entry_id=str(bank_entry_id),
        links=len(links),
        delete_created=delete_created,
    )
    return len(links)


async def execute_manual_match(
    store: ReconciliationStore,
    entries: Sequence[BankEntry],
    targets: Sequence[LedgerRecord],
    match_type: ReconciliationType,
    relationship: MatchRelationship,
    *,
    config: ReconciliationConfig | None = None,
) -> CommitResult:
    """Link user-selected bank entries and ledger records.

    Net-receipt compares the absolute signed sum of the bank entries (credits
    minus debits) and keeps signed amounts on the links.
    """
    config = config or load_reconciliation_config()
    relationship = MatchRelationship(relationship)
    match_type = ReconciliationType(match_type)
    context = {"relationship": relationship.value, "match_type": match_type.value}
    undo = UndoLog(store)

    try:
        if not entries or not targets:
            raise UnsupportedSuggestionError("Manual match needs bank entries and targets")
        if relationship in (MatchRelationship.ONE_TO_ONE, MatchRelationship.ONE_TO_MANY):
            if len(entries) != 1:
                raise UnsupportedSuggestionError(f"{relationship.value} takes one bank entry")
        if relationship != MatchRelationship.ONE_TO_MANY and len(targets) != 1:
            raise UnsupportedSuggestionError(f"{relationship.value} takes one target")

        fresh_entries = [await _fresh_entry(store, entry.id) for entry in entries]
        fresh_targets = [await _fresh_record(store, target) for target in targets]

        if relationship == MatchRelationship.NET_RECEIPT:
            signed = (entry.amount or Decimal("0") for entry in fresh_entries)
            bank_total = abs(sum(signed, Decimal("0")))
        else:
            bank_total = sum((to_amount(entry.amount) for entry in fresh_entries), Decimal("0"))
        validate_balance(
            bank_total,
            sum((to_amount(target.amount) for target in fresh_targets), Decimal("0")),
            f"manual_match_{relationship.value}",
            config.balance_tolerance,
        )
    except ReconciliationError as exc:
        return _rejected(exc, **context)

    async def writer() -> list[ReconciliationLink]:
        links = []
        if relationship == MatchRelationship.ONE_TO_MANY:
            entry = fresh_entries[0]
            for target in fresh_targets:
                links.append(
                    await undo.add(
                        _link(
                            entry.id,
                            target,
                            to_amount(target.amount),
                            match_type,
                            f"Manual split match: {len(fresh_targets)} transactions",
                        )
                    )
                )
            await _mark_reconciled(undo, entry)
            return links

        target = fresh_targets[0]
        group_id = uuid4() if len(fresh_entries) > 1 else None
        for entry in fresh_entries:
            if relationship == MatchRelationship.NET_RECEIPT:
                amount = entry.amount or Decimal("0")
                notes = f"Net receipt match: {len(fresh_entries)} entries (net {bank_total:.2f})"
            elif relationship == MatchRelationship.MANY_TO_ONE:
                amount = to_amount(entry.amount)
                notes = f"Manual grouped match: {len(fresh_entries)} bank entries"
            else:
                amount = to_amount(target.amount)
                notes = "Manual match"
            links.append(await undo.add(_link(entry.id, target, amount, match_type, notes)))
            await _mark_reconciled(undo, entry, group_id)
        return links

    links = await _run_writes(undo, writer, **context)
    logger.info(
        "Manual match applied",
        bank_entries=len(fresh_entries),
        targets=len(fresh_targets),
        links=len(links),
        **context,
    )
    return CommitResult(success=True, links=links)
