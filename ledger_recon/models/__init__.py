"""SQLAlchemy models package."""

from ledger_recon.models.bank import BankEntry
from ledger_recon.models.ledger import (
    Expense,
    InterestEntryType,
    InvestorInterestEntry,
    InvestorTransaction,
    InvestorTransactionType,
    LedgerRecord,
    LoanTransaction,
    LoanTransactionType,
)
from ledger_recon.models.parties import (
    OPEN_LOAN_STATUSES,
    Borrower,
    ExpenseType,
    Investor,
    InvestorStatus,
    Loan,
    LoanStatus,
)
from ledger_recon.models.reconciliation import (
    PatternDirection,
    ReconciliationLink,
    ReconciliationPattern,
    ReconciliationType,
)

__all__ = [
    "OPEN_LOAN_STATUSES",
    "BankEntry",
    "Borrower",
    "Expense",
    "ExpenseType",
    "InterestEntryType",
    "Investor",
    "InvestorInterestEntry",
    "InvestorStatus",
    "InvestorTransaction",
    "InvestorTransactionType",
    "LedgerRecord",
    "Loan",
    "LoanStatus",
    "LoanTransaction",
    "LoanTransactionType",
    "PatternDirection",
    "ReconciliationLink",
    "ReconciliationPattern",
    "ReconciliationType",
]
