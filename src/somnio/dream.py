"""Dream data model and the records produced by similarity scoring.

Public API:
    Emotion: Closed vocabulary of emotion labels.
    EMOTION_GROUPS: Emotion label -> coarse group (positive/negative/neutral).
    Dream: A journal entry as consumed by the similarity engine.
    DreamUpdate: Optional-field update payload.
    SimilarityResult: One scored candidate from find_similar_dreams.
    SimilarityEdge: A SIMILAR_TO edge ready to be persisted.
    SimilarDream: Read-path result pairing a dream with its edge score.
    RecalculationSummary: Counts returned by a full recalculation.
    SimilarityExplanation: Why two dreams scored the way they did.
    DreamNetwork: Public dreams and the edges connecting them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class Emotion(str, Enum):
    """Emotion labels a dream can carry."""

    HAPPY = "happy"
    ANXIOUS = "anxious"
    PEACEFUL = "peaceful"
    CONFUSED = "confused"
    EXCITED = "excited"
    SAD = "sad"
    CURIOUS = "curious"
    FEARFUL = "fearful"
    NEUTRAL = "neutral"


EMOTION_GROUPS: dict[str, str] = {
    Emotion.HAPPY.value: "positive",
    Emotion.EXCITED.value: "positive",
    Emotion.PEACEFUL.value: "positive",
    Emotion.CURIOUS.value: "positive",
    Emotion.ANXIOUS.value: "negative",
    Emotion.SAD.value: "negative",
    Emotion.FEARFUL.value: "negative",
    Emotion.CONFUSED.value: "negative",
    Emotion.NEUTRAL.value: "neutral",
}


@dataclass
class Dream:
    """A dream journal entry.

    Only ``title``, ``description``, ``tags``, ``emotion`` and ``is_public``
    influence similarity. The remaining attributes are carried through the
    stores unchanged.

    Attributes:
        id: Unique identifier (uuid4 hex when not supplied)
        title: Short title
        description: Free-text body, the main keyword source
        tags: Theme tags, case-sensitive, order preserved
        emotion: Emotion label, ``"neutral"`` by default
        is_public: Whether the dream takes part in similarity
        user_id: Owner reference
        date: Date the dream occurred (ISO string)
        lucid_dream: Whether the dreamer was lucid
        recurring: Whether the dream recurs
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    title: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    emotion: str = Emotion.NEUTRAL.value
    is_public: bool = True
    user_id: str = ""
    id: str = ""
    date: str = ""
    lucid_dream: bool = False
    recurring: bool = False
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = uuid.uuid4().hex
        if isinstance(self.emotion, Emotion):
            self.emotion = self.emotion.value
        if not self.emotion:
            self.emotion = Emotion.NEUTRAL.value
        if self.tags is None:
            self.tags = []
        elif isinstance(self.tags, str):
            self.tags = [self.tags]
        elif not isinstance(self.tags, list):
            self.tags = list(self.tags)
        if not self.created_at:
            self.created_at = datetime.now().isoformat()


@dataclass
class DreamUpdate:
    """Partial update for a dream. ``None`` means the field was not sent."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    emotion: str | None = None
    is_public: bool | None = None
    date: str | None = None
    lucid_dream: bool | None = None
    recurring: bool | None = None

    # Fields whose change invalidates a dream's SIMILAR_TO edges.
    SIMILARITY_FIELDS = ("title", "description", "tags", "emotion")

    @property
    def touches_similarity(self) -> bool:
        return any(getattr(self, name) is not None for name in self.SIMILARITY_FIELDS)

    def changes(self) -> dict[str, object]:
        """Return only the fields present in the payload."""
        return {
            name: value
            for name, value in vars(self).items()
            if value is not None
        }

    def apply(self, dream: Dream) -> Dream:
        """Return a copy of *dream* with the present fields replaced."""
        changes = self.changes()
        if isinstance(changes.get("emotion"), Emotion):
            changes["emotion"] = changes["emotion"].value
        return replace(dream, updated_at=datetime.now().isoformat(), **changes)


@dataclass(frozen=True)
class SimilarityResult:
    """A candidate dream that cleared the similarity threshold.

    Attributes:
        dream_id: ID of the candidate (the other dream)
        similarity: Score in [0, 1], rounded to 3 decimals
        shared_themes: Source dream tags also present on the candidate
    """

    dream_id: str
    similarity: float
    shared_themes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SimilarityEdge:
    """A SIMILAR_TO relationship between two dreams.

    The edge is stored directed (``dream1_id`` -> ``dream2_id``) but its
    identity is the unordered pair.
    """

    dream1_id: str
    dream2_id: str
    similarity: float
    shared_themes: list[str] = field(default_factory=list)
    calculated_at: str = ""

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.dream1_id, self.dream2_id))

    def touches(self, dream_id: str) -> bool:
        return dream_id in (self.dream1_id, self.dream2_id)

    @classmethod
    def from_result(cls, source_id: str, result: SimilarityResult) -> SimilarityEdge:
        return cls(
            dream1_id=source_id,
            dream2_id=result.dream_id,
            similarity=result.similarity,
            shared_themes=list(result.shared_themes),
            calculated_at=datetime.now().isoformat(),
        )


@dataclass(frozen=True)
class SimilarDream:
    dream: Dream
    similarity: float


@dataclass(frozen=True)
class RecalculationSummary:
    """Outcome of a full corpus recalculation.

    Attributes:
        processed_count: Number of public dreams fetched
        relationships_created: Number of edges written
        pairs_compared: Number of unordered pairs scored
    """

    processed_count: int
    relationships_created: int
    pairs_compared: int = 0


@dataclass(frozen=True)
class SimilarityExplanation:
    shared_tags: list[str]
    shared_keywords: list[str]
    same_emotion: bool
    emotion_match: float


@dataclass
class DreamNetwork:
    """Public dreams linked by SIMILAR_TO edges.

    Attributes:
        nodes: Dreams that appear on at least one edge, first-seen order
        links: The qualifying edges
    """

    nodes: list[Dream] = field(default_factory=list)
    links: list[SimilarityEdge] = field(default_factory=list)


__all__ = [
    "Emotion",
    "EMOTION_GROUPS",
    "Dream",
    "DreamUpdate",
    "SimilarityResult",
    "SimilarityEdge",
    "SimilarDream",
    "RecalculationSummary",
    "SimilarityExplanation",
    "DreamNetwork",
]
