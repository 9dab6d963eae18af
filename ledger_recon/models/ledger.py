"""Internal ledger records that bank entries are reconciled against."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_recon.database import Base
from ledger_recon.models.base import LedgerAmountMixin, Money, TimestampMixin, UUIDMixin


class LoanTransactionType(str, Enum):
    """Direction of money on a loan."""

    DISBURSEMENT = "Disbursement"
    REPAYMENT = "Repayment"


class InvestorTransactionType(str, Enum):
    """Capital movement on an investor account."""

    CAPITAL_IN = "capital_in"
    CAPITAL_OUT = "capital_out"


class InterestEntryType(str, Enum):
    """Interest ledger side: accrual (credit) or payout (debit)."""

    CREDIT = "credit"
    DEBIT = "debit"


class LoanTransaction(Base, UUIDMixin, LedgerAmountMixin, TimestampMixin):
    """Disbursement or repayment booked against a loan."""

    __tablename__ = "loan_transactions"

    loan_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("loans.id"), nullable=True, index=True
    )
    borrower_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("borrowers.id"), nullable=True
    )
    type: Mapped[LoanTransactionType] = mapped_column(SQLEnum(LoanTransactionType), nullable=False)
    principal_applied: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    interest_applied: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    fees_applied: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class InvestorTransaction(Base, UUIDMixin, LedgerAmountMixin, TimestampMixin):
    """Capital contribution or withdrawal."""

    __tablename__ = "investor_transactions"

    investor_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("investors.id"), nullable=True, index=True
    )
    type: Mapped[InvestorTransactionType] = mapped_column(
        SQLEnum(InvestorTransactionType), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)


class InvestorInterestEntry(Base, UUIDMixin, LedgerAmountMixin, TimestampMixin):
    """Interest accrual or payout for an investor."""

    __tablename__ = "investor_interest_entries"

    investor_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("investors.id"), nullable=True, index=True
    )
    type: Mapped[InterestEntryType] = mapped_column(SQLEnum(InterestEntryType), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)


class Expense(Base, UUIDMixin, LedgerAmountMixin, TimestampMixin):
    """Business expense."""

    __tablename__ = "expenses"

    type_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("expense_types.id"), nullable=True
    )
    type_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


LedgerRecord = LoanTransaction | InvestorTransaction | InvestorInterestEntry | Expense
