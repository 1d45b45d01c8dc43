"""InMemoryDreamStore -- dict-based DreamStore for tests and local use.

Public API:
    InMemoryDreamStore: DreamStore implementation backed by plain dicts.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import replace

from ..dream import Dream, DreamUpdate, SimilarDream, SimilarityEdge


class InMemoryDreamStore:
    """Dict-based DreamStore.

    Implements the same interface as KuzuDreamStore using plain dicts so
    tests run without any database. Thread-safe via a reentrant lock.
    Edges are keyed by the unordered pair of dream IDs.

    Args:
        store_id: Human-readable identifier for this store instance.
    """

    def __init__(self, store_id: str = "memory") -> None:
        self._store_id = store_id
        self._dreams: dict[str, Dream] = {}
        self._edges: dict[frozenset[str], SimilarityEdge] = {}
        self._lock = threading.RLock()

    @property
    def store_id(self) -> str:
        return self._store_id

    # ── dream operations ─────────────────────────────────────

    def add_dream(self, dream: Dream) -> Dream:
        with self._lock:
            self._dreams[dream.id] = replace(dream, tags=list(dream.tags))
        return dream

    def fetch_dream_by_id(self, dream_id: str) -> Dream | None:
        with self._lock:
            dream = self._dreams.get(dream_id)
        return replace(dream, tags=list(dream.tags)) if dream else None

    def fetch_public_dreams(self) -> list[Dream]:
        with self._lock:
            return [
                replace(d, tags=list(d.tags))
                for d in self._dreams.values()
                if d.is_public
            ]

    def update_dream(self, dream_id: str, update: DreamUpdate) -> Dream | None:
        with self._lock:
            dream = self._dreams.get(dream_id)
            if dream is None:
                return None
            updated = update.apply(dream)
            self._dreams[dream_id] = updated
        return replace(updated, tags=list(updated.tags))

    def delete_dream(self, dream_id: str) -> bool:
        with self._lock:
            if self._dreams.pop(dream_id, None) is None:
                return False
            self._drop_edges_touching(dream_id)
        return True

    # ── similarity edge operations ───────────────────────────

    def upsert_similarity_edges(self, edges: Sequence[SimilarityEdge]) -> None:
        with self._lock:
            for edge in edges:
                if edge.dream1_id not in self._dreams or edge.dream2_id not in self._dreams:
                    continue
                self._edges[edge.pair] = edge

    def delete_similarity_edges(self, dream_id: str) -> None:
        with self._lock:
            self._drop_edges_touching(dream_id)

    def delete_all_similarity_edges(self) -> None:
        with self._lock:
            self._edges.clear()

    def get_similar_dreams(self, dream_id: str, min_similarity: float) -> list[SimilarDream]:
        results: list[SimilarDream] = []
        with self._lock:
            for edge in self._edges.values():
                if not edge.touches(dream_id) or edge.similarity < min_similarity:
                    continue
                other_id = edge.dream2_id if edge.dream1_id == dream_id else edge.dream1_id
                other = self._dreams.get(other_id)
                if other is None or not other.is_public:
                    continue
                results.append(SimilarDream(dream=replace(other), similarity=edge.similarity))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    def get_similarity_edges(self, min_similarity: float = 0.0) -> list[SimilarityEdge]:
        with self._lock:
            return [
                edge
                for edge in self._edges.values()
                if edge.similarity >= min_similarity
                and self._is_public(edge.dream1_id)
                and self._is_public(edge.dream2_id)
            ]

    # ── inspection helpers ───────────────────────────────────

    def edge_count(self) -> int:
        with self._lock:
            return len(self._edges)

    def get_edge(self, dream_a: str, dream_b: str) -> SimilarityEdge | None:
        with self._lock:
            return self._edges.get(frozenset((dream_a, dream_b)))

    def close(self) -> None:
        with self._lock:
            self._dreams.clear()
            self._edges.clear()

    # ── private helpers ──────────────────────────────────────

    def _drop_edges_touching(self, dream_id: str) -> None:
        for pair in [p for p in self._edges if dream_id in p]:
            del self._edges[pair]

    def _is_public(self, dream_id: str) -> bool:
        dream = self._dreams.get(dream_id)
        return dream is not None and dream.is_public


__all__ = ["InMemoryDreamStore"]
