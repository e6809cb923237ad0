"""
Shared utilities.
"""
import hashlib
import string
import unicodedata
from datetime import date, datetime
from typing import Union


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]. NaN collapses to low."""
    if value != value:  # NaN
        return low
    return max(low, min(high, float(value)))


def normalize_name(name: str) -> str:
    """
    Normalize a debtor/company name for matching and id generation.
    - Lowercase
    - Remove accents
    - Remove punctuation
    - Remove a trailing legal suffix
    """
    if not name:
        return ""

    s = name.lower().strip()
    s = unicodedata.normalize('NFKD', s).encode('ASCII', 'ignore').decode('utf-8')
    s = s.translate(str.maketrans('', '', string.punctuation))

    suffixes = [
        "llc", "inc", "incorporated", "corporation", "corp", "co", "company",
        "ltd", "limited", "lp", "llp", "pllc", "pc",
    ]

    words = s.split()
    if len(words) > 1 and words[-1] in suffixes:
        words.pop()

    return " ".join(words)


def stable_id(prefix: str, *parts: str) -> str:
    """Deterministic short id from the given parts (same inputs, same id)."""
    digest = hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:16]
    return f"{prefix}-{digest}"


def days_between(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """Whole days from start to end (negative if start is after end)."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return (end - start).days


def seeded_unit(*parts: str) -> float:
    """Deterministic pseudo-random value in [0, 1) derived from the given parts."""
    digest = hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:8]
    return int(digest, 16) / 0x100000000


def seeded_between(low: float, high: float, *parts: str) -> float:
    return low + (high - low) * seeded_unit(*parts)
