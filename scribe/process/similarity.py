"""Lexical helpers shared by topic batching and duplicate detection."""

from __future__ import annotations

import re

STOP_WORDS = frozenset({
    "the", "is", "at", "which", "on", "and", "a", "an", "as", "are",
    "was", "were", "been", "be", "have", "has", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "must",
    "can", "this", "that", "these", "those", "i", "you", "he", "she",
    "it", "we", "they", "what", "which", "who", "when", "where", "why",
    "how", "all", "each", "every", "both", "few", "more", "most", "other",
    "some", "such", "no", "nor", "not", "only", "own", "same", "so",
    "than", "too", "very", "just", "but", "for", "with", "about",
    "from", "into", "over", "after", "before", "their", "there", "them",
    "then", "your", "yours", "also", "being", "here", "like",
    "make", "made", "many", "much", "said", "says", "show", "shows",
    "using", "while", "within", "without", "https", "http", "www",
})

MAX_TERMS = 20
RELATED_THRESHOLD = 0.3

_NON_WORD = re.compile(r"\W+")
_NON_ALNUM = re.compile(r"[\W_]+")


def key_terms(text: str, limit: int = MAX_TERMS) -> list[str]:
    """Distinct salient terms in order of first appearance."""
    terms: list[str] = []
    seen: set[str] = set()
    for word in _NON_WORD.split(text.lower()):
        if len(word) <= 3 or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        terms.append(word)
        if len(terms) >= limit:
            break
    return terms


def term_overlap(a: list[str] | set[str], b: list[str] | set[str]) -> float:
    """|A ∩ B| / max(|A|, |B|); 0.0 when either side has no terms."""
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / max(len(set_a), len(set_b))


def normalize(text: str) -> str:
    """Lower-case and drop everything that is not a letter or digit."""
    return _NON_ALNUM.sub("", text.lower())


def levenshtein(a: str, b: str) -> int:
    """Edit distance using a two-row dynamic programme."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]; 1.0 for equal normalized strings."""
    na, nb = normalize(a), normalize(b)
    longest = max(len(na), len(nb))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(na, nb) / longest
