"""Reconciliation policy: thresholds and tolerances shared by matching and commits."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path

import yaml

from ledger_recon.config import settings
from ledger_recon.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationConfig:
    """Runtime policy for the matching pass, commits and pattern learning."""

    acceptance_threshold: float
    auto_accept_threshold: float
    group_tolerance_percent: Decimal
    # Absolute money tolerance when checking that both sides of a commit balance
    balance_tolerance: Decimal
    pattern_similarity_threshold: float
    pattern_confidence_step: float
    pattern_initial_confidence: float
    # Learned amount range is amount * (1 - window) .. amount * (1 + window)
    pattern_amount_window: Decimal


DEFAULT_CONFIG = ReconciliationConfig(
    acceptance_threshold=0.35,
    auto_accept_threshold=0.90,
    group_tolerance_percent=Decimal("1"),
    balance_tolerance=Decimal("0.01"),
    pattern_similarity_threshold=0.7,
    pattern_confidence_step=0.1,
    pattern_initial_confidence=0.6,
    pattern_amount_window=Decimal("0.2"),
)

_config_cache: ReconciliationConfig | None = None


def _config_path() -> Path:
    if settings.reconciliation_config_path:
        return Path(settings.reconciliation_config_path)
    return Path(__file__).resolve().parents[2] / "config" / "reconciliation.yaml"


def load_reconciliation_config(force_reload: bool = False) -> ReconciliationConfig:
    """Load reconciliation policy from YAML if available.

    Caches the result to avoid repeated disk I/O. Environment variables
    RECONCILIATION_ACCEPTANCE_THRESHOLD and RECONCILIATION_AUTO_ACCEPT_THRESHOLD
    override the file.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    config = DEFAULT_CONFIG
    config_path = _config_path()

    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
            thresholds = raw.get("thresholds", {}) or {}
            tolerances = raw.get("tolerances", {}) or {}
            patterns = raw.get("patterns", {}) or {}

            config = ReconciliationConfig(
                acceptance_threshold=float(
                    thresholds.get("acceptance", config.acceptance_threshold)
                ),
                auto_accept_threshold=float(
                    thresholds.get("auto_accept", config.auto_accept_threshold)
                ),
                group_tolerance_percent=Decimal(
                    str(tolerances.get("group_percent", config.group_tolerance_percent))
                ),
                balance_tolerance=Decimal(
                    str(tolerances.get("balance_absolute", config.balance_tolerance))
                ),
                pattern_similarity_threshold=float(
                    patterns.get("similarity_threshold", config.pattern_similarity_threshold)
                ),
                pattern_confidence_step=float(
                    patterns.get("confidence_step", config.pattern_confidence_step)
                ),
                pattern_initial_confidence=float(
                    patterns.get("initial_confidence", config.pattern_initial_confidence)
                ),
                pattern_amount_window=Decimal(
                    str(patterns.get("amount_window", config.pattern_amount_window))
                ),
            )
        except Exception as e:
            logger.warning(
                "Failed to load reconciliation config - using defaults",
                config_path=str(config_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            config = DEFAULT_CONFIG

    acceptance_env = os.getenv("RECONCILIATION_ACCEPTANCE_THRESHOLD")
    auto_accept_env = os.getenv("RECONCILIATION_AUTO_ACCEPT_THRESHOLD")
    if acceptance_env:
        config = replace(config, acceptance_threshold=float(acceptance_env))
    if auto_accept_env:
        config = replace(config, auto_accept_threshold=float(auto_accept_env))

    _config_cache = config
    return config
