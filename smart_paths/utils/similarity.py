"""
String Similarity
=================

Normalized Levenshtein similarity used for near-exact alias matching and
relevance ranking.
"""

import re
import unicodedata

_COMPACT_STRIP = re.compile(r"[\s\W_]+", re.UNICODE)


def normalize_text(text: str) -> str:
    """Lowercase, NFC-normalize and collapse whitespace."""
    if not text:
        return ""
    text = unicodedata.normalize("NFC", text)
    return " ".join(text.strip().lower().split())


def compact_text(text: str) -> str:
    """Normalize and drop whitespace and punctuation.

    "카카오톡 받은 파일" and "카카오톡받은파일" compact to the same key.
    """
    return _COMPACT_STRIP.sub("", normalize_text(text))


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string as the row for O(min(n, m)) memory
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0.0, 1.0].

    1.0 means identical; computed as (longer - distance) / longer.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer = max(len(a), len(b))
    return (longer - levenshtein_distance(a, b)) / longer


def relevance(candidate: str, keyword: str) -> float:
    """Score how well a candidate string answers a keyword (0-100).

    Exact match scores 100, prefix 90, substring 70, otherwise similarity
    scaled to 50.
    """
    candidate = normalize_text(candidate)
    keyword = normalize_text(keyword)
    if not keyword:
        return 0.0
    if candidate == keyword:
        return 100.0
    if candidate.startswith(keyword):
        return 90.0
    if keyword in candidate:
        return 70.0
    return similarity(candidate, keyword) * 50.0
