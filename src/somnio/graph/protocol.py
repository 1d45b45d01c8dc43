"""DreamStore protocol -- the persistence interface the similarity engine consumes.

Public API:
    DreamStore: Runtime-checkable protocol defining the dream store contract.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..dream import Dream, DreamUpdate, SimilarDream, SimilarityEdge


@runtime_checkable
class DreamStore(Protocol):
    """Common interface for dream persistence backends.

    Every concrete implementation (Kuzu, in-memory, etc.) must satisfy
    this protocol so the synchronizer can swap backends without changes.
    SIMILAR_TO edges are keyed by the unordered pair of dream IDs.
    """

    # ── dream operations ──────────────────────────────────────

    def add_dream(self, dream: Dream) -> Dream:
        """Persist a new dream and return it."""
        ...

    def fetch_dream_by_id(self, dream_id: str) -> Dream | None:
        """Fetch a single dream by ID, or None if not found."""
        ...

    def fetch_public_dreams(self) -> list[Dream]:
        """Return every public dream, in no particular order."""
        ...

    def update_dream(self, dream_id: str, update: DreamUpdate) -> Dream | None:
        """Apply *update* and return the resulting dream, or None if absent."""
        ...

    def delete_dream(self, dream_id: str) -> bool:
        """Delete a dream and every edge touching it. True if it existed."""
        ...

    # ── similarity edge operations ────────────────────────────

    def upsert_similarity_edges(self, edges: Sequence[SimilarityEdge]) -> None:
        """Write edges, replacing any existing edge for the same pair.

        Edges whose endpoints do not exist are skipped.
        """
        ...

    def delete_similarity_edges(self, dream_id: str) -> None:
        """Remove every edge touching *dream_id*, either direction."""
        ...

    def delete_all_similarity_edges(self) -> None:
        """Remove every SIMILAR_TO edge in the store."""
        ...

    def get_similar_dreams(self, dream_id: str, min_similarity: float) -> list[SimilarDream]:
        """Public neighbours of *dream_id* at or above *min_similarity*, best first."""
        ...

    def get_similarity_edges(self, min_similarity: float = 0.0) -> list[SimilarityEdge]:
        """Edges between two public dreams at or above *min_similarity*."""
        ...

    # ── lifecycle ─────────────────────────────────────────────

    def close(self) -> None:
        """Release resources held by the store."""
        ...


__all__ = ["DreamStore"]
