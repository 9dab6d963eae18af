"""Keyword extraction and string similarity for bank descriptions.

Two keyword extractors are provided:

* ``extract_keywords`` - light clean-up, used for general similarity.
* ``extract_vendor_keywords`` - aggressive clean-up of messy card and
  payment-rail descriptions (URLs, phone numbers, reference codes), used for
  learned-pattern signatures.

All functions accept ``None`` and return an empty/zero result for it.
"""

from __future__ import annotations

import re

KEYWORD_STOP_WORDS = frozenset(
    {
        "from", "to", "the", "and", "for", "with",
        "payment", "transfer", "in", "out", "ltd", "limited",
    }
)

VENDOR_STOP_WORDS = KEYWORD_STOP_WORDS | frozenset(
    {
        "plc",
        "inc",
        "corp",
        "llc",
        "card",
        "visa",
        "mastercard",
        "debit",
        "credit",
        "pos",
        "atm",
        "ref",
        "reference",
        "direct",
        "faster",
        "bacs",
        "chaps",
        "fps",
        "gbp",
        "usd",
        "eur",
        "aud",
        "purchase",
        "sale",
        "fee",
        "charge",
    }
)

COUNTRY_CODES = frozenset({"gb", "uk", "au", "us", "de", "fr", "es", "it", "nl", "ie", "ca", "nz"})

MAX_VENDOR_KEYWORDS = 5

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WWW = re.compile(r"www\.")
_URL = re.compile(r"https?://\S+")
_DOMAIN_SUFFIX = re.compile(r"\.(com|co\.uk|org|net|io|app|co|uk|au|de|fr|es|it|nl|ie|ca|nz)")
_INTL_PHONE = re.compile(r"\+?\d{1,4}[\s-]?\d{6,14}")
_LOCAL_PHONE = re.compile(r"\d{3}[\s-]?\d{3}[\s-]?\d{4}")
_TWO_LETTER_WORD = re.compile(r"\b([a-z]{2})\b")
_NUMERIC_REFERENCE = re.compile(r"\b\d{5,}\b")
_ALNUM_REFERENCE = re.compile(r"\b[a-z]{1,2}\d{5,}\b")


def _split_words(cleaned: str, stop_words: frozenset[str]) -> list[str]:
    return [word for word in cleaned.split() if len(word) > 2 and word not in stop_words]


def extract_keywords(text: str | None) -> list[str]:
    """Return significant lowercase words (longer than two characters)."""
    if not text:
        return []
    return _split_words(_NON_ALNUM.sub(" ", text.lower()), KEYWORD_STOP_WORDS)


def extract_vendor_keywords(text: str | None) -> list[str]:
    """Return up to five vendor keywords from a raw bank description.

    >>> extract_vendor_keywords("CARD PAYMENT TO EDF ENERGY www.edfenergy.com 0800 123 4567")
    ['edf', 'energy', 'edfenergy']
    """
    if not text:
        return []

    cleaned = text.lower()
    cleaned = _WWW.sub(" ", cleaned)
    cleaned = _URL.sub(" ", cleaned)
    cleaned = _DOMAIN_SUFFIX.sub(" ", cleaned)
    cleaned = _INTL_PHONE.sub(" ", cleaned)
    cleaned = _LOCAL_PHONE.sub(" ", cleaned)
    cleaned = _TWO_LETTER_WORD.sub(
        lambda match: " " if match.group(1) in COUNTRY_CODES else match.group(0), cleaned
    )
    cleaned = _NUMERIC_REFERENCE.sub(" ", cleaned)
    cleaned = _ALNUM_REFERENCE.sub(" ", cleaned)
    cleaned = _NON_ALNUM.sub(" ", cleaned)

    return _split_words(cleaned, VENDOR_STOP_WORDS)[:MAX_VENDOR_KEYWORDS]


def calculate_similarity(first: str | None, second: str | None) -> float:
    """Token-overlap similarity in [0, 1].

    Identical strings score 1 and containment either way scores 0.8. Otherwise
    the share of keywords on the first side that overlap (exactly or as a
    substring) with some keyword on the second side, over the larger set size.
    """
    if not first or not second:
        return 0.0
    left = first.lower()
    right = second.lower()
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.8

    words_left = extract_keywords(left)
    words_right = extract_keywords(right)
    if not words_left or not words_right:
        return 0.0

    matches = sum(
        1 for word in words_left if any(word in other or other in word for other in words_right)
    )
    return matches / max(len(words_left), len(words_right))


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def levenshtein_similarity(first: str | None, second: str | None) -> float:
    """Edit-distance similarity in [0, 1].

    Strings whose lengths differ by more than half of the longer one score 0
    without computing the distance.
    """
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0
    max_len = max(len(first), len(second))
    if abs(len(first) - len(second)) / max_len > 0.5:
        return 0.0
    return 1 - levenshtein_distance(first, second) / max_len


def significant_words(text: str | None) -> list[str]:
    """Words of three or more characters, used for description relatedness."""
    if not text:
        return []
    return [word for word in _NON_ALNUM.sub(" ", text.lower()).split() if len(word) >= 3]


def descriptions_are_related(first: str | None, second: str | None) -> bool:
    """True when two descriptions share at least half of their significant words.

    e.g. "TOBIE HOLBROOK LOAN PART1" and "TOBIE HOLBROOK LOAN PART2".
    """
    words_first = significant_words(first)
    words_second = significant_words(second)
    if not words_first or not words_second:
        return False
    overlap = sum(1 for word in words_first if word in words_second)
    return overlap / min(len(words_first), len(words_second)) >= 0.5
