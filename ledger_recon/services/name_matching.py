"""Counterparty-name detection in bank descriptions."""

from __future__ import annotations

import re

NAME_BOOST_WEIGHT = 0.15
NAME_BOOST_CAP = 0.99

_LEGAL_SUFFIX = re.compile(r"\b(ltd|limited|plc|inc|llc|llp|co|company)\b")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Lowercase, drop legal suffixes and punctuation, collapse whitespace."""
    if not name:
        return ""
    cleaned = _LEGAL_SUFFIX.sub("", name.lower())
    cleaned = _NON_ALNUM.sub(" ", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def description_contains_name(
    description: str | None,
    personal_name: str | None,
    business_name: str | None = None,
) -> float:
    """How strongly a description names the counterparty.

    Business name contained -> 1.0, personal name contained -> 0.9, any
    business-name word of four or more characters contained -> 0.7, else 0.
    """
    description_norm = normalize_name(description)
    if not description_norm:
        return 0.0

    business_norm = normalize_name(business_name)
    personal_norm = normalize_name(personal_name)

    if len(business_norm) >= 3 and business_norm in description_norm:
        return 1.0
    if len(personal_norm) >= 3 and personal_norm in description_norm:
        return 0.9
    if any(len(word) >= 4 and word in description_norm for word in business_norm.split()):
        return 0.7
    return 0.0


def apply_name_boost(base_score: float, name_score: float) -> float:
    """Add up to +0.15 for a name hit; the result never exceeds 0.99."""
    if base_score <= 0 or name_score <= 0:
        return base_score
    boost = min(NAME_BOOST_WEIGHT, name_score * NAME_BOOST_WEIGHT)
    return min(NAME_BOOST_CAP, base_score + boost)
