"""HTTP error helpers for the reconciliation routers."""

from typing import NoReturn

from fastapi import HTTPException, status

from ledger_recon.services.errors import (
    PartialCommitFailure,
    ReconciliationError,
    StaleReferenceError,
)


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource_name} not found",
    ) from cause


def raise_bad_request(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    ) from cause


def raise_conflict(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    ) from cause


def reconciliation_error_status(exc: ReconciliationError) -> int:
    """HTTP status for a domain error.

    Stale references are 409 (the caller's view is out of date), a failed
    write is 500, and any other rejection (imbalance, unusable suggestion) is 400.
    """
    if isinstance(exc, StaleReferenceError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, PartialCommitFailure):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def raise_for_reconciliation_error(exc: ReconciliationError) -> NoReturn:
    raise HTTPException(
        status_code=reconciliation_error_status(exc),
        detail=str(exc) or "Commit rejected",
    ) from exc
