"""Imported bank statement lines."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_recon.database import Base
from ledger_recon.models.base import Money, TimestampMixin, UUIDMixin


class BankEntry(Base, UUIDMixin, TimestampMixin):
    """One statement line. Positive amounts are credits (money in)."""

    __tablename__ = "bank_entries"

    amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    statement_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_reference: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    bank_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Shared by every entry of a many-bank-to-one-record reconciliation
    reconciliation_group_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), nullable=True
    )

    @property
    def is_credit(self) -> bool:
        return (self.amount or Decimal("0")) > 0
