"""Counterparties that own ledger records: borrowers, loans, investors."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_recon.database import Base
from ledger_recon.models.base import Money, TimestampMixin, UUIDMixin


class LoanStatus(str, Enum):
    """Loan lifecycle state."""

    LIVE = "Live"
    ACTIVE = "Active"
    SETTLED = "Settled"
    CLOSED = "Closed"
    DEFAULTED = "Defaulted"


class InvestorStatus(str, Enum):
    """Investor account state."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


# Loans that can still receive money
OPEN_LOAN_STATUSES = (LoanStatus.LIVE, LoanStatus.ACTIVE)


class Borrower(Base, UUIDMixin, TimestampMixin):
    """Loan counterparty."""

    __tablename__ = "borrowers"

    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name or ""


class Loan(Base, UUIDMixin, TimestampMixin):
    """Loan facility. Repayments and disbursements hang off it."""

    __tablename__ = "loans"

    loan_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    borrower_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("borrowers.id"), nullable=True
    )
    # Denormalised name kept for loans imported without a borrower record
    borrower_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[LoanStatus] = mapped_column(SQLEnum(LoanStatus), default=LoanStatus.LIVE)


class Investor(Base, UUIDMixin, TimestampMixin):
    """Capital provider."""

    __tablename__ = "investors"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[InvestorStatus] = mapped_column(
        SQLEnum(InvestorStatus), default=InvestorStatus.ACTIVE
    )
    current_capital_balance: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )
    total_capital_contributed: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )
    # Interest is booked by hand, so withdrawals need an accrual credit first
    manual_interest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def display_name(self) -> str:
        return self.business_name or self.name or ""


class ExpenseType(Base, UUIDMixin):
    """Expense category."""

    __tablename__ = "expense_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
