"""Persistence layer for dreams and SIMILAR_TO edges.

Public API:
    DreamStore: Protocol all backends implement.
    KuzuDreamStore: Kuzu-backed concrete implementation.
    InMemoryDreamStore: Dict-based implementation for testing.
    create_dream_store: Factory for creating dream stores.
"""

from __future__ import annotations

from typing import Any

from .kuzu_store import KuzuDreamStore
from .memory_store import InMemoryDreamStore
from .protocol import DreamStore


def create_dream_store(backend: str = "kuzu", **kwargs: Any) -> DreamStore:
    """Create a dream store.

    Args:
        backend: ``"kuzu"`` (embedded graph database) or ``"memory"`` (testing).
        **kwargs: Backend-specific configuration (``db_path`` for Kuzu).

    Returns:
        A DreamStore implementation.

    Raises:
        ValueError: If *backend* is unrecognised.
        KeyError: If a required backend option is missing.
    """
    if backend == "kuzu":
        return KuzuDreamStore(
            db_path=kwargs["db_path"],
            store_id=kwargs.get("store_id"),
        )
    elif backend == "memory":
        return InMemoryDreamStore(store_id=kwargs.get("store_id", "memory"))
    else:
        raise ValueError(f"Unknown backend: {backend!r}.  Choose from: 'kuzu', 'memory'")


__all__ = [
    "DreamStore",
    "KuzuDreamStore",
    "InMemoryDreamStore",
    "create_dream_store",
]
