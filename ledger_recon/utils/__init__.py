"""Utility functions and helpers."""

from .exceptions import (
    raise_bad_request,
    raise_conflict,
    raise_for_reconciliation_error,
    raise_not_found,
    reconciliation_error_status,
)

__all__ = [
    "raise_bad_request",
    "raise_conflict",
    "raise_for_reconciliation_error",
    "raise_not_found",
    "reconciliation_error_status",
]
