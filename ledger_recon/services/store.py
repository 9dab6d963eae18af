"""Persistence collaborator used by commits, bulk runs and snapshot loading."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_recon.logger import get_logger
from ledger_recon.models import (
    BankEntry,
    Borrower,
    Expense,
    Investor,
    InvestorInterestEntry,
    InvestorTransaction,
    Loan,
    LoanTransaction,
    ReconciliationLink,
    ReconciliationPattern,
)
from ledger_recon.services.snapshot import LedgerSnapshot

logger = get_logger(__name__)

M = TypeVar("M")


@dataclass
class Savepoint:
    """Set when the store undid the block's writes itself."""

    rolled_back: bool = False


class ReconciliationStore(Protocol):
    """Async CRUD over the ORM entities.

    Deletes are hard: callers re-fetch before acting on a cached reference.
    ``savepoint()`` scopes one commit. A store that cannot undo the block's
    writes itself yields a Savepoint that never reports ``rolled_back``, and
    the commit's undo log compensates instead.
    """

    async def get(self, model: type[M], record_id: UUID) -> M | None: ...

    async def list(self, model: type[M], **filters: Any) -> list[M]: ...

    async def add(self, record: M) -> M: ...

    async def update(self, record: M, **changes: Any) -> M: ...

    async def delete(self, record: Any) -> None: ...

    async def commit(self) -> None: ...

    def savepoint(self) -> AbstractAsyncContextManager[Savepoint]: ...


class SqlAlchemyStore:
    """ReconciliationStore over an AsyncSession; writes flush but do not commit."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        # Rows updated inside each open savepoint, innermost last
        self._touched: list[list[Any]] = []

    async def get(self, model: type[M], record_id: UUID) -> M | None:
        return await self.session.get(model, record_id)

    async def list(self, model: type[M], **filters: Any) -> list[M]:
        result = await self.session.execute(select(model).filter_by(**filters))
        return list(result.scalars().all())

    async def add(self, record: M) -> M:
        self.session.add(record)
        await self.session.flush()
        return record

    async def update(self, record: M, **changes: Any) -> M:
        if self._touched:
            self._touched[-1].append(record)
        for field, value in changes.items():
            setattr(record, field, value)
        await self.session.flush()
        return record

    async def delete(self, record: Any) -> None:
        await self.session.delete(record)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[Savepoint]:
        """Run the block in a SAVEPOINT.

        A failed flush inside the block rolls back only the block's writes and
        leaves the session usable for the next commit of a batch.
        """
        state = Savepoint()
        touched: list[Any] = []
        self._touched.append(touched)
        try:
            async with self.session.begin_nested():
                yield state
        except Exception:
            state.rolled_back = True
            # Rows changed in the savepoint come back expired; reload them so
            # callers can keep reading attributes without lazy IO.
            for record in touched:
                if record in self.session:
                    await self.session.refresh(record)
            raise
        else:
            if len(self._touched) > 1:
                self._touched[-2].extend(touched)
        finally:
            self._touched.pop()


async def load_snapshot(store: ReconciliationStore) -> LedgerSnapshot:
    """Load everything the matching pass reads.

    Ledger records already referenced by a reconciliation link, and deleted
    loan transactions, are left out.
    """
    links = await store.list(ReconciliationLink)
    reconciled_ids = frozenset(record_id for link in links for record_id in link.linked_ids())

    def unlinked(records: list[Any]) -> list[Any]:
        return [record for record in records if record.id not in reconciled_ids]

    snapshot = LedgerSnapshot(
        bank_entries=tuple(await store.list(BankEntry, is_reconciled=False)),
        loan_transactions=tuple(unlinked(await store.list(LoanTransaction, is_deleted=False))),
        investor_transactions=tuple(unlinked(await store.list(InvestorTransaction))),
        interest_entries=tuple(unlinked(await store.list(InvestorInterestEntry))),
        expenses=tuple(unlinked(await store.list(Expense))),
        loans=tuple(await store.list(Loan)),
        borrowers=tuple(await store.list(Borrower)),
        investors=tuple(await store.list(Investor)),
        patterns=tuple(await store.list(ReconciliationPattern)),
        reconciled_ids=reconciled_ids,
    )
    logger.debug(
        "Snapshot loaded",
        bank_entries=len(snapshot.bank_entries),
        loan_transactions=len(snapshot.loan_transactions),
        investor_transactions=len(snapshot.investor_transactions),
        interest_entries=len(snapshot.interest_entries),
        expenses=len(snapshot.expenses),
        patterns=len(snapshot.patterns),
    )
    return snapshot
