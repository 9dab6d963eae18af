"""Reconciliation errors."""

from decimal import Decimal
from uuid import UUID


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class StaleReferenceError(ReconciliationError):
    """A suggestion points at a record that no longer exists."""

    def __init__(self, kind: str, record_id: UUID) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} no longer exists")


class ImbalanceError(ReconciliationError):
    """Bank and ledger totals differ by more than the balance tolerance."""

    def __init__(self, bank_total: Decimal, ledger_total: Decimal, context: str) -> None:
        self.bank_total = bank_total
        self.ledger_total = ledger_total
        self.difference = abs(bank_total - ledger_total)
        self.context = context
        super().__init__(
            f"{context}: bank total {bank_total} does not match ledger total {ledger_total} "
            f"(difference {self.difference})"
        )


class PartialCommitFailure(ReconciliationError):
    """A write failed after earlier writes of the same commit succeeded."""

    def __init__(self, cause: BaseException, rolled_back: bool) -> None:
        self.cause = cause
        self.rolled_back = rolled_back
        state = "rolled back" if rolled_back else "rollback incomplete"
        super().__init__(f"Commit failed ({state}): {cause}")


class UnsupportedSuggestionError(ReconciliationError):
    """A suggestion cannot be committed as given."""

    pass
