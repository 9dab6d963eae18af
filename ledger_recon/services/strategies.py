"""Match strategies, evaluated in priority order by the matching pass.

Each strategy answers one question about a bank entry ("is there a single
repayment for it?", "do several debits add up to one disbursement?") and
returns its best candidate, or None. A strategy only runs while the best
score so far is below its gate, and a candidate only replaces the current
best when its confidence is strictly higher.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, ClassVar

from ledger_recon.models import (
    OPEN_LOAN_STATUSES,
    BankEntry,
    Expense,
    InterestEntryType,
    Investor,
    InvestorInterestEntry,
    InvestorStatus,
    InvestorTransaction,
    InvestorTransactionType,
    LedgerRecord,
    LoanTransaction,
    LoanTransactionType,
    ReconciliationType,
)
from ledger_recon.services.grouping import (
    GROUP_MAX_DAYS_FROM_RECORD,
    GROUP_POOL_DAYS,
    find_subset_sum,
    group_is_related,
    group_total,
)
from ledger_recon.services.name_matching import apply_name_boost, description_contains_name
from ledger_recon.services.patterns import score_pattern
from ledger_recon.services.scoring import (
    DEFAULT_TOLERANCE_PERCENT,
    amounts_match,
    calculate_match_score,
    date_proximity_score,
    dates_within_days,
    to_amount,
)
from ledger_recon.services.snapshot import ClaimSet, LedgerSnapshot
from ledger_recon.services.suggestions import (
    ClaimKey,
    ClaimKind,
    CreateNew,
    GroupedDisbursement,
    GroupedInvestor,
    GroupMatch,
    SingleMatch,
    SplitRatios,
    Suggestion,
    claim_key_for,
)
from ledger_recon.services.text_matching import calculate_similarity

# Split-payment scores: (all bank entries same day, all within 3 days of the record)
SPLIT_PAYMENT_SCORES = {
    (True, True): 0.92,
    (True, False): 0.75,
    (False, True): 0.80,
    (False, False): 0.60,
}
SPLIT_NEAR_RECORD_DAYS = 3
# Largest allowed excess of a single bank entry over the record it is split from
SPLIT_ENTRY_EXCESS = Decimal("1.01")

INVESTOR_SPLIT_NAME_WEIGHT = 0.05
INVESTOR_SPLIT_CAP = 0.95

# Ledger records within this proximity score (about three days) form investor groups
GROUP_PROXIMITY_MIN = 0.85

EXPENSE_VOCABULARY = (
    "expense",
    "expenses",
    "bill",
    "bills",
    "fee",
    "fees",
    "charge",
    "charges",
    "utilities",
    "rent",
    "insurance",
    "subscription",
    "office",
    "supplies",
    "maintenance",
    "professional",
    "legal",
    "accounting",
    "tax",
    "vat",
    "hmrc",
    "council",
    "electric",
    "gas",
    "water",
    "phone",
    "internet",
    "broadband",
    "software",
    "license",
    "licence",
)
EXPENSE_KEYWORD_CONFIDENCE = 0.65

# Presence of any of these blocks counterparty-name suggestions.
NAME_SKIP_VOCABULARY = ("expense", "expenses", "bill", "bills", "fee", "fees")

BORROWER_NAME_MIN_SIMILARITY = 0.5
INVESTOR_NAME_MIN_SIMILARITY = 0.4


@dataclass(frozen=True)
class MatchState:
    """Read-only view a strategy evaluates against."""

    snapshot: LedgerSnapshot
    claims: ClaimSet
    best_score: float = 0.0
    tolerance_percent: Decimal | float = DEFAULT_TOLERANCE_PERCENT

    def is_open(self, record: LedgerRecord) -> bool:
        """Unlinked, not deleted and not claimed earlier in this pass."""
        return self.snapshot.is_available(record) and claim_key_for(record) not in self.claims

    def bank_entry_claimed(self, entry: BankEntry) -> bool:
        return ClaimKey(ClaimKind.BANK_ENTRY, entry.id) in self.claims


def format_money(value: Any) -> str:
    return f"{to_amount(value):,.2f}"


def format_day(value: date | None) -> str:
    return value.strftime("%d/%m") if value else "?"


def description_has_any(description: str | None, vocabulary: Iterable[str]) -> bool:
    """Substring test, so "fees" also hits "coffees"."""
    text = (description or "").lower()
    return any(word in text for word in vocabulary)


def investor_display_name(investor: Investor | None) -> str:
    if investor is None:
        return "Unknown"
    return investor.display_name or "Unknown"


class MatchStrategy:
    """Base for one step of the cascade.

    ``gate``: run only while the best score is below it (None = always run).
    ``credits``: True for credits only, False for debits only, None for both.
    """

    name: ClassVar[str] = "strategy"
    gate: ClassVar[float | None] = None
    credits: ClassVar[bool | None] = None

    def applies(self, entry: BankEntry, state: MatchState) -> bool:
        if self.credits is not None and entry.is_credit != self.credits:
            return False
        return self.gate is None or state.best_score < self.gate

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _best_single(
    entry: BankEntry,
    state: MatchState,
    records: Iterable[LedgerRecord],
    build: Callable[[Any], tuple[float, ReconciliationType, str]],
) -> SingleMatch | None:
    """Highest strictly-improving single match among ``records``.

    ``build(record)`` returns ``(score, target_type, reason)``.
    """
    best: SingleMatch | None = None
    best_score = state.best_score
    for record in records:
        if not state.is_open(record):
            continue
        score, target_type, reason = build(record)
        if score > best_score:
            best_score = score
            best = SingleMatch(
                target_type=target_type, confidence=score, reason=reason, record=record
            )
    return best


# =============================================================================
# Loans
# =============================================================================


class LoanSingleMatch(MatchStrategy):
    """Credits against repayments, debits against disbursements."""

    name = "loan_single"

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        if entry.is_credit:
            wanted = LoanTransactionType.REPAYMENT
            target_type = ReconciliationType.LOAN_REPAYMENT
            label = "Repayment match"
        else:
            wanted = LoanTransactionType.DISBURSEMENT
            target_type = ReconciliationType.LOAN_DISBURSEMENT
            label = "Disbursement match"

        def build(tx: LoanTransaction) -> tuple[float, ReconciliationType, str]:
            score = calculate_match_score(entry, tx)
            loan = snapshot.loan_for(tx)
            if loan is not None and score > 0:
                borrower = snapshot.borrower_for_loan(loan)
                score = apply_name_boost(
                    score,
                    description_contains_name(
                        entry.description,
                        (borrower.full_name if borrower else None) or loan.borrower_name,
                        borrower.business_name if borrower else None,
                    ),
                )
            name = snapshot.borrower_name(loan) or "Unknown"
            reason = f"{label}: {name} - {format_money(tx.amount)} on {format_day(tx.txn_date)}"
            return score, target_type, reason

        candidates = (tx for tx in snapshot.loan_transactions if tx.type == wanted)
        return _best_single(entry, state, candidates, build)


def _nearby_bank_entries(entry: BankEntry, state: MatchState) -> list[BankEntry]:
    """Same-direction unreconciled entries within the pool window, entry included."""
    pool = []
    for other in state.snapshot.unreconciled_entries:
        amount = other.amount or Decimal("0")
        if entry.is_credit and amount <= 0:
            continue
        if not entry.is_credit and amount >= 0:
            continue
        if other.id != entry.id and state.bank_entry_claimed(other):
            continue
        if dates_within_days(entry.statement_date, other.statement_date, GROUP_POOL_DAYS):
            pool.append(other)
    return pool


def find_split_payment(
    entry: BankEntry,
    state: MatchState,
    record: LedgerRecord,
    pool: Sequence[BankEntry],
    counterparty_name: str | None,
) -> tuple[list[BankEntry], float] | None:
    """Bank entries (this one included) that together make up ``record``.

    Returns the subset and its base score, or None when the entry alone
    already matches, is larger than the record, or no related subset of two
    or more entries near the record date exists.
    """
    entry_amount = to_amount(entry.amount)
    record_amount = to_amount(record.amount)
    if amounts_match(entry_amount, record_amount, state.tolerance_percent):
        return None
    if entry_amount > record_amount * SPLIT_ENTRY_EXCESS:
        return None

    subset = find_subset_sum(pool, record_amount, entry.id, state.tolerance_percent)
    if not subset or len(subset) < 2:
        return None
    if not all(
        dates_within_days(member.statement_date, record.txn_date, GROUP_MAX_DAYS_FROM_RECORD)
        for member in subset
    ):
        return None
    if not group_is_related(subset, counterparty_name):
        return None

    same_day = all(
        dates_within_days(member.statement_date, entry.statement_date, 0) for member in subset
    )
    near_record = all(
        dates_within_days(member.statement_date, record.txn_date, SPLIT_NEAR_RECORD_DAYS)
        for member in subset
    )
    return subset, SPLIT_PAYMENT_SCORES[(same_day, near_record)]


class GroupedDisbursementMatch(MatchStrategy):
    """Several bank debits paying out one disbursement in tranches."""

    name = "grouped_disbursement"
    gate = 0.9
    credits = False

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        pool = _nearby_bank_entries(entry, state)
        for tx in snapshot.loan_transactions:
            if tx.type != LoanTransactionType.DISBURSEMENT or not state.is_open(tx):
                continue
            loan = snapshot.loan_for(tx)
            name = snapshot.borrower_name(loan)
            found = find_split_payment(entry, state, tx, pool, name)
            if found is None:
                continue
            subset, score = found
            if score > state.best_score:
                loan_number = (loan.loan_number if loan else None) or "Unknown"
                return GroupedDisbursement(
                    target_type=ReconciliationType.LOAN_DISBURSEMENT,
                    confidence=score,
                    reason=(
                        f"Split disbursement: {len(subset)} payments -> {loan_number} "
                        f"({name or 'Unknown'})"
                    ),
                    record=tx,
                    entries=tuple(subset),
                )
        return None


class GroupedRepaymentMatch(MatchStrategy):
    """One bank credit covering several repayments of one borrower (or one shared email)."""

    name = "grouped_repayment"
    gate = 0.9
    credits = True

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        by_borrower: dict[Any, list[LoanTransaction]] = {}
        for tx in snapshot.loan_transactions:
            if tx.type != LoanTransactionType.REPAYMENT or not state.is_open(tx):
                continue
            if not dates_within_days(entry.statement_date, tx.txn_date, GROUP_POOL_DAYS):
                continue
            borrower_id = snapshot.borrower_id_for(tx)
            if borrower_id is None:
                continue
            by_borrower.setdefault(borrower_id, []).append(tx)

        best: GroupMatch | None = None
        best_score = state.best_score

        for borrower_id, group in by_borrower.items():
            if len(group) < 2:
                continue
            score = self._score(entry, state, group, same_day=0.92, otherwise=0.85)
            if score is not None and score > best_score:
                best_score = score
                name = snapshot.borrower_name(snapshot.loan_for(group[0])) or "Unknown"
                best = self._suggestion(
                    state, group, score, f"Grouped repayments: {name} - {len(group)} payments"
                )

        if best_score >= self.gate:
            return best

        for email, borrower_ids in self._shared_emails(snapshot).items():
            group = [tx for borrower_id in borrower_ids for tx in by_borrower.get(borrower_id, [])]
            if len(group) < 2:
                continue
            score = self._score(entry, state, group, same_day=0.90, otherwise=0.82)
            if score is not None and score > best_score:
                best_score = score
                names = " / ".join(
                    snapshot.borrowers_by_id[borrower_id].display_name or "Unknown"
                    for borrower_id in borrower_ids
                )
                best = self._suggestion(
                    state,
                    group,
                    score,
                    f"Grouped by email ({email}): {names} - {len(group)} payments",
                )
        return best

    @staticmethod
    def _shared_emails(snapshot: LedgerSnapshot) -> dict[str, list[Any]]:
        by_email: dict[str, list[Any]] = {}
        for borrower in snapshot.borrowers:
            email = (borrower.email or "").strip().lower()
            if email:
                by_email.setdefault(email, []).append(borrower.id)
        return {email: ids for email, ids in by_email.items() if len(ids) >= 2}

    @staticmethod
    def _score(
        entry: BankEntry,
        state: MatchState,
        group: list[LoanTransaction],
        *,
        same_day: float,
        otherwise: float,
    ) -> float | None:
        if not amounts_match(entry.amount, group_total(group), state.tolerance_percent):
            return None
        if all(dates_within_days(tx.txn_date, entry.statement_date, 1) for tx in group):
            return same_day
        return otherwise

    @staticmethod
    def _suggestion(
        state: MatchState, group: list[LoanTransaction], score: float, prefix: str
    ) -> GroupMatch:
        loan_numbers = []
        for tx in group:
            loan = state.snapshot.loan_for(tx)
            number = (loan.loan_number if loan else None) or "?"
            if number not in loan_numbers:
                loan_numbers.append(number)
        return GroupMatch(
            target_type=ReconciliationType.LOAN_REPAYMENT,
            confidence=score,
            reason=f"{prefix} ({', '.join(loan_numbers)}) = {format_money(group_total(group))}",
            records=tuple(group),
        )


# =============================================================================
# Investors
# =============================================================================


def _capital_type_for(entry: BankEntry) -> tuple[InvestorTransactionType, ReconciliationType]:
    if entry.is_credit:
        return InvestorTransactionType.CAPITAL_IN, ReconciliationType.INVESTOR_CREDIT
    return InvestorTransactionType.CAPITAL_OUT, ReconciliationType.INVESTOR_WITHDRAWAL


def _investor_name_score(entry: BankEntry, investor: Investor | None) -> float:
    if investor is None:
        return 0.0
    return description_contains_name(entry.description, investor.name, investor.business_name)


class InvestorSingleMatch(MatchStrategy):
    """Credits against capital_in, debits against capital_out."""

    name = "investor_single"

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        wanted, target_type = _capital_type_for(entry)

        def build(tx: InvestorTransaction) -> tuple[float, ReconciliationType, str]:
            investor = snapshot.investors_by_id.get(tx.investor_id)
            score = calculate_match_score(entry, tx)
            if score > 0:
                score = apply_name_boost(score, _investor_name_score(entry, investor))
            reason = (
                f"Investor match: {investor_display_name(investor)} - "
                f"{format_money(tx.amount)} on {format_day(tx.txn_date)}"
            )
            return score, target_type, reason

        candidates = (tx for tx in snapshot.investor_transactions if tx.type == wanted)
        return _best_single(entry, state, candidates, build)


class InterestSingleMatch(MatchStrategy):
    """Debits against interest payouts."""

    name = "interest_single"
    credits = False

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot

        def build(interest: InvestorInterestEntry) -> tuple[float, ReconciliationType, str]:
            investor = snapshot.investors_by_id.get(interest.investor_id)
            score = calculate_match_score(entry, interest)
            if score > 0:
                score = apply_name_boost(score, _investor_name_score(entry, investor))
            reason = (
                f"Interest withdrawal: {investor_display_name(investor)} - "
                f"{format_money(interest.amount)} on {format_day(interest.txn_date)}"
            )
            return score, ReconciliationType.INTEREST_WITHDRAWAL, reason

        candidates = (
            item for item in snapshot.interest_entries if item.type == InterestEntryType.DEBIT
        )
        return _best_single(entry, state, candidates, build)


def _group_by_investor(
    entry: BankEntry, state: MatchState, records: Iterable[Any]
) -> dict[Any, list[Any]]:
    grouped: dict[Any, list[Any]] = {}
    for record in records:
        if not state.is_open(record):
            continue
        if date_proximity_score(entry.statement_date, record.txn_date) < GROUP_PROXIMITY_MIN:
            continue
        grouped.setdefault(record.investor_id, []).append(record)
    return grouped


def _interest_debits(snapshot: LedgerSnapshot) -> Iterable[InvestorInterestEntry]:
    return (item for item in snapshot.interest_entries if item.type == InterestEntryType.DEBIT)


class InvestorGroupMatch(MatchStrategy):
    """One bank entry covering several same-investor capital or interest records."""

    name = "investor_group"
    gate = 0.9
    group_score: ClassVar[float] = 0.90

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        wanted, target_type = _capital_type_for(entry)
        best = self._first_matching_group(
            entry,
            state,
            _group_by_investor(
                entry, state, (tx for tx in snapshot.investor_transactions if tx.type == wanted)
            ),
            target_type,
            "Grouped",
            "transactions",
        )
        if best is not None or entry.is_credit:
            return best
        return self._first_matching_group(
            entry,
            state,
            _group_by_investor(entry, state, _interest_debits(snapshot)),
            ReconciliationType.INTEREST_WITHDRAWAL,
            "Grouped interest",
            "entries",
        )

    def _first_matching_group(
        self,
        entry: BankEntry,
        state: MatchState,
        groups: dict[Any, list[Any]],
        target_type: ReconciliationType,
        label: str,
        noun: str,
    ) -> GroupMatch | None:
        if self.group_score <= state.best_score:
            return None
        for investor_id, group in groups.items():
            if len(group) < 2:
                continue
            total = group_total(group)
            if not amounts_match(entry.amount, total, state.tolerance_percent):
                continue
            investor = state.snapshot.investors_by_id.get(investor_id)
            return GroupMatch(
                target_type=target_type,
                confidence=self.group_score,
                reason=(
                    f"{label}: {investor_display_name(investor)} - {len(group)} {noun} "
                    f"totalling {format_money(total)}"
                ),
                records=tuple(group),
            )
        return None


class InvestorCrossTableMatch(MatchStrategy):
    """One bank debit paying out capital and interest together."""

    name = "investor_cross_table"
    gate = 0.9
    credits = False
    group_score: ClassVar[float] = 0.92

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        if self.group_score <= state.best_score:
            return None
        snapshot = state.snapshot
        capital = _group_by_investor(
            entry,
            state,
            (
                tx
                for tx in snapshot.investor_transactions
                if tx.type == InvestorTransactionType.CAPITAL_OUT
            ),
        )
        interest = _group_by_investor(entry, state, _interest_debits(snapshot))

        for investor_id, capital_records in capital.items():
            interest_records = interest.get(investor_id)
            if not interest_records:
                continue
            total = group_total(capital_records) + group_total(interest_records)
            if not amounts_match(entry.amount, total, state.tolerance_percent):
                continue
            investor = snapshot.investors_by_id.get(investor_id)
            return GroupMatch(
                target_type=ReconciliationType.INVESTOR_WITHDRAWAL,
                confidence=self.group_score,
                reason=(
                    f"Combined: {investor_display_name(investor)} - {len(capital_records)} capital "
                    f"+ {len(interest_records)} interest = {format_money(total)}"
                ),
                records=tuple(capital_records) + tuple(interest_records),
            )
        return None


class GroupedInvestorMatch(MatchStrategy):
    """Several bank entries making up one investor capital transaction."""

    name = "grouped_investor"
    gate = 0.9

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        snapshot = state.snapshot
        wanted, target_type = _capital_type_for(entry)
        pool = _nearby_bank_entries(entry, state)
        for tx in snapshot.investor_transactions:
            if tx.type != wanted or not state.is_open(tx):
                continue
            investor = snapshot.investors_by_id.get(tx.investor_id)
            name = investor.display_name if investor else None
            found = find_split_payment(entry, state, tx, pool, name)
            if found is None:
                continue
            subset, score = found
            name_score = _investor_name_score(entry, investor)
            if name_score > 0:
                score = min(score + name_score * INVESTOR_SPLIT_NAME_WEIGHT, INVESTOR_SPLIT_CAP)
            if score > state.best_score:
                return GroupedInvestor(
                    target_type=target_type,
                    confidence=score,
                    reason=(
                        f"Split deposit: {len(subset)} payments -> "
                        f"{investor_display_name(investor)} ({format_money(tx.amount)})"
                    ),
                    record=tx,
                    entries=tuple(subset),
                )
        return None


# =============================================================================
# Expenses, patterns and names
# =============================================================================


class ExpenseSingleMatch(MatchStrategy):
    """Debits against recorded expenses."""

    name = "expense_single"
    credits = False

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        def build(expense: Expense) -> tuple[float, ReconciliationType, str]:
            reason = (
                f"Expense match: {expense.type_name or 'Expense'} - "
                f"{format_money(expense.amount)} on {format_day(expense.txn_date)}"
            )
            return calculate_match_score(entry, expense), ReconciliationType.EXPENSE, reason

        return _best_single(entry, state, state.snapshot.expenses, build)


class PatternMatch(MatchStrategy):
    """Learned description patterns; proposes creating a new record."""

    name = "pattern"
    gate = 0.7

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        best: CreateNew | None = None
        best_score = state.best_score
        for pattern in state.snapshot.patterns:
            score = score_pattern(entry, pattern)
            if score is None or score <= best_score:
                continue
            best_score = score
            best = CreateNew(
                target_type=ReconciliationType(pattern.match_type),
                confidence=score,
                reason=(
                    f'Pattern: "{pattern.description_pattern}" '
                    f"(used {pattern.match_count or 1}x)"
                ),
                loan_id=pattern.loan_id,
                investor_id=pattern.investor_id,
                expense_type_id=pattern.expense_type_id,
                pattern_id=pattern.id,
                split=SplitRatios(
                    capital=pattern.default_capital_ratio,
                    interest=pattern.default_interest_ratio,
                    fees=pattern.default_fees_ratio,
                ),
            )
        return best


class ExpenseKeywordMatch(MatchStrategy):
    """Debits whose description reads like an overhead cost."""

    name = "expense_keyword"
    gate = 0.6
    credits = False

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        if not description_has_any(entry.description, EXPENSE_VOCABULARY):
            return None
        return CreateNew(
            target_type=ReconciliationType.EXPENSE,
            confidence=EXPENSE_KEYWORD_CONFIDENCE,
            reason="Description contains expense keyword",
        )


class BorrowerNameMatch(MatchStrategy):
    """Description resembles the borrower of an open loan."""

    name = "borrower_name"
    gate = 0.5

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        if description_has_any(entry.description, NAME_SKIP_VOCABULARY):
            return None
        snapshot = state.snapshot
        target_type = (
            ReconciliationType.LOAN_REPAYMENT
            if entry.is_credit
            else ReconciliationType.LOAN_DISBURSEMENT
        )
        best: CreateNew | None = None
        best_score = state.best_score
        for loan in snapshot.loans:
            if loan.status not in OPEN_LOAN_STATUSES:
                continue
            name = snapshot.borrower_name(loan)
            similarity = calculate_similarity(entry.description, name)
            if similarity > BORROWER_NAME_MIN_SIMILARITY and similarity > best_score:
                best_score = similarity
                best = CreateNew(
                    target_type=target_type,
                    confidence=similarity,
                    reason=f"Borrower name: {name} ({round(similarity * 100)}%)",
                    loan_id=loan.id,
                )
        return best


class InvestorNameMatch(MatchStrategy):
    """Description resembles an active investor."""

    name = "investor_name"
    gate = 0.45

    def evaluate(self, entry: BankEntry, state: MatchState) -> Suggestion | None:
        if description_has_any(entry.description, NAME_SKIP_VOCABULARY):
            return None
        target_type = (
            ReconciliationType.INVESTOR_CREDIT
            if entry.is_credit
            else ReconciliationType.INVESTOR_WITHDRAWAL
        )
        best: CreateNew | None = None
        best_score = state.best_score
        for investor in state.snapshot.investors:
            if investor.status != InvestorStatus.ACTIVE:
                continue
            similarity = max(
                calculate_similarity(entry.description, investor.name or ""),
                calculate_similarity(entry.description, investor.business_name or ""),
            )
            if similarity > INVESTOR_NAME_MIN_SIMILARITY and similarity > best_score:
                best_score = similarity
                best = CreateNew(
                    target_type=target_type,
                    confidence=similarity,
                    reason=(
                        f"Investor name: {investor_display_name(investor)} "
                        f"({round(similarity * 100)}%)"
                    ),
                    investor_id=investor.id,
                )
        return best


DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (
    LoanSingleMatch(),
    GroupedDisbursementMatch(),
    GroupedRepaymentMatch(),
    InvestorSingleMatch(),
    InterestSingleMatch(),
    InvestorGroupMatch(),
    InvestorCrossTableMatch(),
    GroupedInvestorMatch(),
    ExpenseSingleMatch(),
    PatternMatch(),
    ExpenseKeywordMatch(),
    BorrowerNameMatch(),
    InvestorNameMatch(),
)
