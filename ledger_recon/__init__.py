"""Bank reconciliation matching engine for a lender back office."""
