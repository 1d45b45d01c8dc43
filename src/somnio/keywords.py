"""Keyword extraction from dream titles and descriptions.

Philosophy:
- Surface-form matching only (no stemming, no external tokenizer)
- Stop words and tokens of two characters or fewer are dropped
- Keywords ranked by frequency, first occurrence breaks ties

Public API:
    STOP_WORDS: Words never returned as keywords
    MAX_KEYWORDS: Upper bound on the number of keywords returned
    extract_keywords(text) -> list[str]
"""

from __future__ import annotations

import re
from collections import Counter

MAX_KEYWORDS = 20

# Pronouns, articles, conjunctions, prepositions and auxiliaries
STOP_WORDS = frozenset(
    {
        "i",
        "me",
        "my",
        "myself",
        "we",
        "our",
        "ours",
        "ourselves",
        "you",
        "your",
        "yours",
        "yourself",
        "yourselves",
        "he",
        "him",
        "his",
        "himself",
        "she",
        "her",
        "hers",
        "herself",
        "it",
        "its",
        "itself",
        "they",
        "them",
        "their",
        "theirs",
        "themselves",
        "what",
        "which",
        "who",
        "whom",
        "this",
        "that",
        "these",
        "those",
        "am",
        "is",
        "are",
        "was",
        "were",
        "be",
        "been",
        "being",
        "have",
        "has",
        "had",
        "having",
        "do",
        "does",
        "did",
        "doing",
        "a",
        "an",
        "the",
        "and",
        "but",
        "if",
        "or",
        "because",
        "as",
        "until",
        "while",
        "of",
        "at",
        "by",
        "for",
        "with",
        "about",
        "against",
        "between",
        "into",
        "through",
        "during",
        "before",
        "after",
        "above",
        "below",
        "to",
        "from",
        "up",
        "down",
        "in",
        "out",
        "on",
        "off",
        "over",
        "under",
        "again",
        "further",
        "then",
        "once",
    }
)

# Anything that is not a letter, digit or whitespace becomes a separator.
_NON_WORD = re.compile(r"[^\w\s]|_")


def extract_keywords(text: str | None) -> list[str]:
    """Extract up to 20 significant lowercase keywords from text.

    Args:
        text: Free text, typically ``title + " " + description``

    Returns:
        Distinct keywords sorted by descending frequency. Equal counts keep
        the order in which the words first appeared.
    """
    if not text:
        return []

    words = _NON_WORD.sub(" ", text.lower()).split()
    counts = Counter(w for w in words if len(w) > 2 and w not in STOP_WORDS)

    # Counter preserves first-seen order and sorted() is stable.
    ranked = sorted(counts, key=lambda w: counts[w], reverse=True)
    return ranked[:MAX_KEYWORDS]


__all__ = ["STOP_WORDS", "MAX_KEYWORDS", "extract_keywords"]
