"""Column mixins shared by bank entries and ledger records."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Numeric
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

# Money is stored to the cent; matching works on Decimal throughout.
Money = Numeric(18, 2)


class UUIDMixin:
    """UUID primary key, generated client-side so records have ids before flush."""

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class LedgerAmountMixin:
    """Amount and booking date every reconcilable ledger record carries.

    Both may be missing on legacy rows; scoring treats a missing amount as
    zero and a missing date as "amount only".
    """

    amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    txn_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
