"""Dream similarity scoring.

Philosophy:
- Simple, deterministic similarity (no ML embeddings needed)
- Jaccard coefficient on tags and on extracted keywords
- Coarse emotion grouping for partial emotional matches
- Fixed weighted composite score for SIMILAR_TO edge creation

Public API:
    jaccard_similarity(items_a, items_b) -> float
    emotion_similarity(emotion_a, emotion_b) -> float
    calculate_similarity(dream_a, dream_b) -> float
    find_similar_dreams(target, candidates, threshold) -> list[SimilarityResult]
    explain_similarity(dream_a, dream_b) -> SimilarityExplanation
    validate_threshold(threshold, default) -> float
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from numbers import Real

from .dream import EMOTION_GROUPS, Dream, SimilarityExplanation, SimilarityResult
from .exceptions import InvalidInputError
from .keywords import extract_keywords

# Tags are the most explicit signal, emotion the coarsest.
TAG_WEIGHT = 0.50
KEYWORD_WEIGHT = 0.35
EMOTION_WEIGHT = 0.15

DEFAULT_THRESHOLD = 0.2


def validate_threshold(threshold: float | None, default: float) -> float:
    """Return *threshold*, or *default* when it is None.

    Raises:
        InvalidInputError: If the threshold is not a number in [0, 1]
    """
    if threshold is None:
        return default
    if isinstance(threshold, bool) or not isinstance(threshold, Real):
        raise InvalidInputError(f"threshold must be a number, got {threshold!r}")
    if math.isnan(threshold) or not (0.0 <= threshold <= 1.0):
        raise InvalidInputError(f"threshold must be between 0.0 and 1.0, got {threshold}")
    return float(threshold)


def jaccard_similarity(items_a: Iterable[str], items_b: Iterable[str]) -> float:
    """Compute |A & B| / |A | B| treating both inputs as sets.

    Returns:
        Similarity between 0.0 and 1.0; 0.0 when both are empty
    """
    set_a = set(items_a)
    set_b = set(items_b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def emotion_similarity(emotion_a: str | None, emotion_b: str | None) -> float:
    """Score two emotion labels.

    Identical labels score 1.0, labels in the same group 0.5, anything
    else (including labels outside the vocabulary) 0.0.
    """
    if emotion_a == emotion_b:
        return 1.0

    group_a = EMOTION_GROUPS.get(emotion_a)
    group_b = EMOTION_GROUPS.get(emotion_b)
    if group_a is not None and group_a == group_b:
        return 0.5
    return 0.0


def _dream_text(dream: Dream) -> str:
    return f"{dream.title or ''} {dream.description or ''}"


def _dream_tags(dream: Dream) -> list[str]:
    if not dream.tags or isinstance(dream.tags, str):
        return []
    return list(dream.tags)


def calculate_similarity(dream_a: Dream, dream_b: Dream) -> float:
    """Compute the weighted similarity between two dreams.

    Weights: 0.50 * tag_similarity + 0.35 * keyword_similarity
    + 0.15 * emotion_similarity

    Args:
        dream_a: First dream
        dream_b: Second dream

    Returns:
        Score between 0.0 and 1.0; 0 when both dreams share an id
    """
    if dream_a.id == dream_b.id:
        return 0

    tag_sim = jaccard_similarity(_dream_tags(dream_a), _dream_tags(dream_b))
    keyword_sim = jaccard_similarity(
        extract_keywords(_dream_text(dream_a)),
        extract_keywords(_dream_text(dream_b)),
    )
    emotion_sim = emotion_similarity(dream_a.emotion, dream_b.emotion)

    return tag_sim * TAG_WEIGHT + keyword_sim * KEYWORD_WEIGHT + emotion_sim * EMOTION_WEIGHT


def _round_score(score: float) -> float:
    # Half-up rounding to 3 decimals, not banker's rounding.
    return math.floor(score * 1000 + 0.5) / 1000


def find_similar_dreams(
    target: Dream,
    candidates: Iterable[Dream],
    threshold: float | None = None,
) -> list[SimilarityResult]:
    """Score every candidate against *target* and keep the close ones.

    Args:
        target: Dream to find neighbours for
        candidates: Pool of dreams to compare against (target itself is skipped)
        threshold: Inclusive minimum score, 0.2 when omitted

    Returns:
        Results sorted by similarity descending. Equal scores keep
        candidate order.

    Raises:
        InvalidInputError: If the threshold is outside [0, 1]
    """
    min_score = validate_threshold(threshold, DEFAULT_THRESHOLD)
    target_tags = _dream_tags(target)
    results: list[SimilarityResult] = []

    for candidate in candidates:
        if candidate.id == target.id:
            continue

        score = calculate_similarity(target, candidate)
        if score < min_score:
            continue

        candidate_tags = _dream_tags(candidate)
        shared = [tag for tag in target_tags if tag in candidate_tags]
        results.append(
            SimilarityResult(
                dream_id=candidate.id,
                similarity=_round_score(score),
                shared_themes=shared,
            )
        )

    results.sort(key=lambda r: r.similarity, reverse=True)
    return results


def explain_similarity(dream_a: Dream, dream_b: Dream) -> SimilarityExplanation:
    """Describe what two dreams have in common.

    Args:
        dream_a: First dream (its tag and keyword order is used)
        dream_b: Second dream

    Returns:
        SimilarityExplanation with shared tags, up to five shared
        keywords and the emotion comparison.
    """
    tags_b = _dream_tags(dream_b)
    keywords_b = extract_keywords(_dream_text(dream_b))

    shared_tags = [tag for tag in _dream_tags(dream_a) if tag in tags_b]
    shared_keywords = [kw for kw in extract_keywords(_dream_text(dream_a)) if kw in keywords_b]

    return SimilarityExplanation(
        shared_tags=shared_tags,
        shared_keywords=shared_keywords[:5],
        same_emotion=dream_a.emotion == dream_b.emotion,
        emotion_match=emotion_similarity(dream_a.emotion, dream_b.emotion),
    )


__all__ = [
    "TAG_WEIGHT",
    "KEYWORD_WEIGHT",
    "EMOTION_WEIGHT",
    "DEFAULT_THRESHOLD",
    "validate_threshold",
    "jaccard_similarity",
    "emotion_similarity",
    "calculate_similarity",
    "find_similar_dreams",
    "explain_similarity",
]
