"""Text normalisation and similarity primitives used by the duplicate matcher."""

import re
from functools import lru_cache
from typing import Optional

from rapidfuzz import fuzz

from eventmerge.config import DedupConfig

_DEFAULT_CONFIG = DedupConfig()

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def normalise(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    text = _PUNCT_RE.sub(" ", (text or "").lower())
    return _SPACE_RE.sub(" ", text).strip()


def normalise_title(title: str, config: Optional[DedupConfig] = None) -> str:
    """Normalise a title and drop stop words and single-character tokens."""
    return _normalise_title(title or "", (config or _DEFAULT_CONFIG).stop_words)


def normalise_venue(name: str, config: Optional[DedupConfig] = None) -> str:
    """Normalise a venue name and strip trailing venue-type/geographic suffixes."""
    return _normalise_venue(name or "", (config or _DEFAULT_CONFIG).venue_suffixes)


@lru_cache(maxsize=10_000)
def _normalise_title(title: str, stop_words: frozenset[str]) -> str:
    words = normalise(title).split(" ")
    return " ".join(w for w in words if len(w) > 1 and w not in stop_words)


@lru_cache(maxsize=10_000)
def _normalise_venue(name: str, suffixes: tuple[str, ...]) -> str:
    base = normalise(name)
    if not suffixes:
        return base
    pattern = _suffix_pattern(suffixes)

    result, prev = base, None
    while result != prev and result:
        prev = result
        result = pattern.sub("", result).strip()

    # Never strip a name down to nothing, e.g. "Arena" alone
    if len(result) < 2:
        return base
    return result


@lru_cache(maxsize=32)
def _suffix_pattern(suffixes: tuple[str, ...]) -> re.Pattern:
    alternatives = "|".join(re.escape(s) for s in suffixes)
    return re.compile(rf"(?:^|\s)(?:{alternatives})$")


def string_similarity(a: str, b: str) -> float:
    """Dice-style similarity in [0, 1]: 2 * matched chars / total length."""
    return fuzz.ratio(a, b) / 100.0


def _tiered_similarity(n1: str, n2: str) -> float:
    if n1 == n2:
        return 1.0
    if n1 in n2 or n2 in n1:
        return 0.95
    return string_similarity(n1, n2)


def title_similarity(t1: str, t2: str, config: Optional[DedupConfig] = None) -> float:
    return _tiered_similarity(normalise_title(t1, config), normalise_title(t2, config))


def venue_similarity(v1: str, v2: str, config: Optional[DedupConfig] = None) -> float:
    return _tiered_similarity(normalise_venue(v1, config), normalise_venue(v2, config))


def bucket_key(title: str, config: Optional[DedupConfig] = None) -> str:
    """First three significant title words; empty when nothing survives normalisation."""
    return " ".join(normalise_title(title, config).split()[:3])
