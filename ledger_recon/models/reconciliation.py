"""Reconciliation links and learned description patterns."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_recon.database import Base
from ledger_recon.models.base import Money, TimestampMixin, UUIDMixin


class ReconciliationType(str, Enum):
    """Classification attached to a reconciliation link or suggestion."""

    LOAN_REPAYMENT = "loan_repayment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    INVESTOR_CREDIT = "investor_credit"
    INVESTOR_WITHDRAWAL = "investor_withdrawal"
    INTEREST_WITHDRAWAL = "interest_withdrawal"
    EXPENSE = "expense"

    @property
    def is_loan(self) -> bool:
        return self in (ReconciliationType.LOAN_REPAYMENT, ReconciliationType.LOAN_DISBURSEMENT)

    @property
    def is_investor(self) -> bool:
        return self in (
            ReconciliationType.INVESTOR_CREDIT,
            ReconciliationType.INVESTOR_WITHDRAWAL,
            ReconciliationType.INTEREST_WITHDRAWAL,
        )


class PatternDirection(str, Enum):
    """Bank-side direction a pattern applies to."""

    CREDIT = "CRDT"
    DEBIT = "DBIT"


class ReconciliationLink(Base, UUIDMixin, TimestampMixin):
    """Join between one bank entry and one ledger record."""

    __tablename__ = "reconciliation_links"

    bank_entry_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("bank_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    loan_transaction_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    investor_transaction_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), nullable=True
    )
    expense_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    interest_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reconciliation_type: Mapped[ReconciliationType] = mapped_column(
        SQLEnum(ReconciliationType), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # True when the ledger record was generated to satisfy this match
    was_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def linked_ids(self) -> list[UUID]:
        return [
            record_id
            for record_id in (
                self.loan_transaction_id,
                self.investor_transaction_id,
                self.expense_id,
                self.interest_id,
            )
            if record_id is not None
        ]


class ReconciliationPattern(Base, UUIDMixin, TimestampMixin):
    """Learned description-to-classification rule."""

    __tablename__ = "reconciliation_patterns"

    description_pattern: Mapped[str] = mapped_column(String(500), nullable=False)
    match_type: Mapped[ReconciliationType] = mapped_column(
        SQLEnum(ReconciliationType), nullable=False
    )
    transaction_type: Mapped[PatternDirection | None] = mapped_column(
        SQLEnum(PatternDirection), nullable=True
    )
    bank_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount_min: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    amount_max: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    loan_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    investor_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    expense_type_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    # Ratios are shares of the bank amount, not money; floats are fine here.
    default_capital_ratio: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    default_interest_ratio: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    default_fees_ratio: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True, default=0.6)
    match_count: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
