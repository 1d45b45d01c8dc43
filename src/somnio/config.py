"""Tunable settings for the similarity synchronizer."""

from __future__ import annotations

from dataclasses import dataclass

from .similarity import validate_threshold


@dataclass(frozen=True)
class SimilarityConfig:
    """Thresholds and sizing for similarity maintenance.

    Attributes:
        create_threshold: Minimum score for edges written when a dream is created
        update_threshold: Minimum score for edges written when a dream is updated
        recalculate_threshold: Default minimum score for full recalculation
        read_threshold: Default minimum score returned by find_similar
        network_threshold: Default minimum score for the network view; 0.0
            returns every public edge
        batch_size: Edges per upsert call during full recalculation
        max_workers: Background threads for create/update triggers
        progress_every: Log recalculation progress every N dreams
    """

    create_threshold: float = 0.2
    update_threshold: float = 0.2
    recalculate_threshold: float = 0.3
    read_threshold: float = 0.7
    network_threshold: float = 0.7
    batch_size: int = 100
    max_workers: int = 4
    progress_every: int = 10

    def __post_init__(self):
        """Validate thresholds and sizes."""
        for name in (
            "create_threshold",
            "update_threshold",
            "recalculate_threshold",
            "read_threshold",
            "network_threshold",
        ):
            validate_threshold(getattr(self, name), 0.0)

        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if self.progress_every <= 0:
            raise ValueError("progress_every must be positive")


__all__ = ["SimilarityConfig"]
