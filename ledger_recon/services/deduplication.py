"""Bank entry import with duplicate detection."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from ledger_recon.logger import get_logger
from ledger_recon.models import BankEntry
from ledger_recon.services.scoring import to_date
from ledger_recon.services.store import ReconciliationStore

logger = get_logger(__name__)


@dataclass
class ImportSummary:
    created: list[UUID] = field(default_factory=list)
    duplicates: int = 0


class BankEntryDeduplicator:
    """Recognises bank rows that were already imported.

    A row is a duplicate when its external reference is already known, or,
    failing that, when its fingerprint is.
    """

    def __init__(self, existing: Iterable[BankEntry] = ()) -> None:
        self.references: set[str] = set()
        self.fingerprints: set[str] = set()
        for entry in existing:
            self.remember(
                entry.statement_date, entry.amount, entry.description, entry.external_reference
            )

    @staticmethod
    def fingerprint(
        statement_date: date | None, amount: Decimal | None, description: str | None
    ) -> str:
        """SHA256(date|amount|normalized description)."""
        components = [
            statement_date.isoformat() if statement_date else "",
            str(Decimal(str(amount)).quantize(Decimal("0.01"))) if amount is not None else "",
            " ".join((description or "").lower().split()),
        ]
        return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()

    def is_duplicate(
        self,
        statement_date: date | None,
        amount: Decimal | None,
        description: str | None,
        reference: str | None,
    ) -> bool:
        if reference and reference.strip() in self.references:
            return True
        return self.fingerprint(statement_date, amount, description) in self.fingerprints

    def remember(
        self,
        statement_date: date | None,
        amount: Decimal | None,
        description: str | None,
        reference: str | None,
    ) -> None:
        if reference and reference.strip():
            self.references.add(reference.strip())
        self.fingerprints.add(self.fingerprint(statement_date, amount, description))


def _amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


async def import_bank_entries(
    store: ReconciliationStore,
    rows: Iterable[Mapping[str, Any]],
) -> ImportSummary:
    """Create bank entries for rows not seen before.

    Rows carry ``statement_date``, ``amount``, ``description`` and optionally
    ``external_reference`` and ``bank_source``.
    """
    dedup = BankEntryDeduplicator(await store.list(BankEntry))
    summary = ImportSummary()

    for row in rows:
        statement_date = to_date(row.get("statement_date"))
        amount = _amount(row.get("amount"))
        description = row.get("description")
        reference = row.get("external_reference")

        if dedup.is_duplicate(statement_date, amount, description, reference):
            summary.duplicates += 1
            continue

        entry = await store.add(
            BankEntry(
                id=uuid4(),
                statement_date=statement_date,
                amount=amount,
                description=description,
                external_reference=reference,
                bank_source=row.get("bank_source"),
                is_reconciled=False,
            )
        )
        dedup.remember(statement_date, amount, description, reference)
        summary.created.append(entry.id)

    logger.info(
        "Bank entries imported",
        created=len(summary.created),
        duplicates=summary.duplicates,
    )
    return summary


async def purge_unreconciled(store: ReconciliationStore) -> int:
    """Hard-delete every unreconciled bank entry; returns how many were removed."""
    entries = await store.list(BankEntry, is_reconciled=False)
    for entry in entries:
        await store.delete(entry)
    logger.warning("Unreconciled bank entries purged", count=len(entries))
    return len(entries)
