"""Keeps SIMILAR_TO edges consistent with dream content.

Philosophy:
- Scoring is pure; every side effect goes through the injected DreamStore
- Create/update triggers are fire-and-forget background tasks whose
  failures are logged and reported, never raised to the caller
- Full recalculation is a synchronous maintenance call that supersedes
  all per-dream results

Consistency model:
    Per-dream sync replaces only the edges touching that dream (clear mine,
    write mine). Full recalculation clears every edge and rewrites the whole
    corpus; it is the authoritative resync. Edges are written in batches and
    a failure part-way through leaves the earlier batches in place: nothing
    is rolled back, rerun the recalculation to repair.

Public API:
    ErrorSink: Callback type receiving (dream_id, exception)
    SimilaritySynchronizer: Trigger entry points and read paths
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from .config import SimilarityConfig
from .dream import (
    Dream,
    DreamNetwork,
    DreamUpdate,
    RecalculationSummary,
    SimilarDream,
    SimilarityEdge,
    SimilarityExplanation,
)
from .exceptions import DreamNotFoundError, RecalculationInProgressError
from .graph.protocol import DreamStore
from .similarity import explain_similarity, find_similar_dreams, validate_threshold

logger = logging.getLogger(__name__)

ErrorSink = Callable[[str, Exception], None]


class SimilaritySynchronizer:
    """Maintains SIMILAR_TO edges for a DreamStore.

    Args:
        store: Persistence backend for dreams and edges
        config: Thresholds and sizing (defaults to SimilarityConfig())
        executor: Executor for background triggers; one is created (and
            owned) when omitted
        error_sink: Called with (dream_id, exception) when a background
            sync fails, after the failure is logged

    Example:
        >>> store = InMemoryDreamStore()
        >>> with SimilaritySynchronizer(store) as sync:
        ...     dream = store.add_dream(Dream(title="Flying", tags=["flying"]))
        ...     sync.on_dream_created(dream)
    """

    def __init__(
        self,
        store: DreamStore,
        config: SimilarityConfig | None = None,
        executor: ThreadPoolExecutor | None = None,
        error_sink: ErrorSink | None = None,
    ):
        self.store = store
        self.config = config or SimilarityConfig()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="somnio-similarity",
        )
        self._error_sink = error_sink
        self._recalculation_lock = threading.Lock()

    # ── triggers ──────────────────────────────────────────────

    def on_dream_created(self, dream: Dream) -> Future | None:
        """Schedule edge creation for a newly created dream.

        Private dreams are ignored.

        Returns:
            Future resolving to the number of edges written (None on
            failure), or None when nothing was scheduled or the executor
            has been shut down.
        """
        if not dream.is_public:
            return None

        return self._submit(
            dream.id,
            lambda: self.sync_dream(dream, self.config.create_threshold),
        )

    def on_dream_updated(
        self,
        dream_id: str,
        update: DreamUpdate,
        dream: Dream | None,
    ) -> Future | None:
        """Schedule edge recomputation after a dream update.

        Only runs when the resulting dream is public and the update touched
        title, description, tags or emotion. Making a dream private does not
        remove its existing edges.

        Raises:
            DreamNotFoundError: If the resulting dream is missing
        """
        if dream is None:
            raise DreamNotFoundError(f"Dream not found: {dream_id}")
        if not (dream.is_public and update.touches_similarity):
            return None

        return self._submit(
            dream_id,
            lambda: self.sync_dream(
                dream,
                self.config.update_threshold,
                clear_existing=True,
            ),
        )

    def on_dream_deleted(self, dream_id: str) -> None:
        """Remove every edge touching a deleted dream."""
        self.store.delete_similarity_edges(dream_id)
        logger.debug("Cleared similarity edges for deleted dream %s", dream_id)

    def sync_dream(
        self,
        dream: Dream,
        threshold: float | None = None,
        clear_existing: bool = False,
    ) -> int:
        """Recompute and persist the edges of one dream, synchronously.

        Args:
            dream: Source dream (its current content is scored)
            threshold: Minimum score, create_threshold when omitted
            clear_existing: Delete the dream's current edges first

        Returns:
            Number of edges written
        """
        min_score = validate_threshold(threshold, self.config.create_threshold)

        if clear_existing:
            self.store.delete_similarity_edges(dream.id)

        candidates = self.store.fetch_public_dreams()
        results = find_similar_dreams(dream, candidates, min_score)
        logger.debug("Found %d similar dreams for dream %s", len(results), dream.id)

        if results:
            edges = [SimilarityEdge.from_result(dream.id, r) for r in results]
            self.store.upsert_similarity_edges(edges)
        return len(results)

    # ── maintenance ───────────────────────────────────────────

    def recalculate_all(self, threshold: float | None = None) -> RecalculationSummary:
        """Rebuild every SIMILAR_TO edge from the public corpus.

        Each unordered pair is scored once (dream i against dreams i+1..n).
        All existing edges are deleted only after scoring finishes, then the
        new edges are written in batches of ``config.batch_size``.

        Args:
            threshold: Minimum score, recalculate_threshold when omitted

        Returns:
            RecalculationSummary with processed and created counts

        Raises:
            InvalidInputError: If the threshold is outside [0, 1]
            RecalculationInProgressError: If another recalculation is running
            CollaboratorError: Store failures propagate unchanged
        """
        min_score = validate_threshold(threshold, self.config.recalculate_threshold)

        if not self._recalculation_lock.acquire(blocking=False):
            raise RecalculationInProgressError("A similarity recalculation is already running")
        try:
            return self._recalculate(min_score)
        finally:
            self._recalculation_lock.release()

    def _recalculate(self, min_score: float) -> RecalculationSummary:
        logger.info("Starting full similarity recalculation (threshold %.3f)", min_score)
        dreams = self.store.fetch_public_dreams()
        total = len(dreams)

        edges: list[SimilarityEdge] = []
        pairs_compared = 0
        for i, dream in enumerate(dreams):
            remaining = dreams[i + 1:]
            pairs_compared += len(remaining)
            for result in find_similar_dreams(dream, remaining, min_score):
                edges.append(SimilarityEdge.from_result(dream.id, result))

            if (i + 1) % self.config.progress_every == 0:
                logger.debug("Processed %d/%d dreams", i + 1, total)

        self.store.delete_all_similarity_edges()

        batch_size = self.config.batch_size
        batch_count = (len(edges) + batch_size - 1) // batch_size
        for n, start in enumerate(range(0, len(edges), batch_size), start=1):
            self.store.upsert_similarity_edges(edges[start:start + batch_size])
            logger.debug("Batch %d/%d written", n, batch_count)

        logger.info(
            "Similarity recalculation complete: %d dreams, %d relationships",
            total,
            len(edges),
        )
        return RecalculationSummary(
            processed_count=total,
            relationships_created=len(edges),
            pairs_compared=pairs_compared,
        )

    # ── read paths ────────────────────────────────────────────

    def find_similar(
        self,
        dream_id: str,
        min_similarity: float | None = None,
    ) -> list[SimilarDream]:
        """Return public dreams linked to *dream_id* at or above the threshold.

        Raises:
            InvalidInputError: If min_similarity is outside [0, 1]
            DreamNotFoundError: If the dream does not exist
        """
        min_score = validate_threshold(min_similarity, self.config.read_threshold)
        if self.store.fetch_dream_by_id(dream_id) is None:
            raise DreamNotFoundError(f"Dream not found: {dream_id}")
        return self.store.get_similar_dreams(dream_id, min_score)

    def get_network(self, min_similarity: float | None = None) -> DreamNetwork:
        """Return public dreams and the edges between them above the threshold.

        Edges at or above ``min_similarity`` are kept, and the nodes are the
        public dreams those edges touch. When the threshold is omitted,
        ``config.network_threshold`` (0.7 by default) applies, the cut-off used
        for the network visualisation. Pass 0.0, or configure
        ``network_threshold=0.0``, for the unfiltered view of every public
        SIMILAR_TO edge.
        """
        min_score = validate_threshold(min_similarity, self.config.network_threshold)
        edges = self.store.get_similarity_edges(min_score)
        by_id = {dream.id: dream for dream in self.store.fetch_public_dreams()}

        nodes: dict[str, Dream] = {}
        for edge in edges:
            for dream_id in (edge.dream1_id, edge.dream2_id):
                if dream_id not in nodes and dream_id in by_id:
                    nodes[dream_id] = by_id[dream_id]
        return DreamNetwork(nodes=list(nodes.values()), links=edges)

    def explain(self, dream_id_a: str, dream_id_b: str) -> SimilarityExplanation:
        """Explain the similarity between two stored dreams.

        Raises:
            DreamNotFoundError: If either dream does not exist
        """
        dreams = []
        for dream_id in (dream_id_a, dream_id_b):
            dream = self.store.fetch_dream_by_id(dream_id)
            if dream is None:
                raise DreamNotFoundError(f"Dream not found: {dream_id}")
            dreams.append(dream)
        return explain_similarity(dreams[0], dreams[1])

    # ── lifecycle ─────────────────────────────────────────────

    def close(self, wait: bool = True) -> None:
        """Shut down the executor if this synchronizer created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> SimilaritySynchronizer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── private helpers ───────────────────────────────────────

    def _submit(self, dream_id: str, task: Callable[[], int]) -> Future | None:
        def guarded() -> int | None:
            try:
                return task()
            except Exception as e:
                logger.error("Similarity sync failed for dream %s: %s", dream_id, e)
                self._report(dream_id, e)
                return None

        try:
            return self._executor.submit(guarded)
        except RuntimeError as e:
            # executor already shut down
            logger.error("Could not schedule similarity sync for dream %s: %s", dream_id, e)
            self._report(dream_id, e)
            return None

    def _report(self, dream_id: str, error: Exception) -> None:
        if self._error_sink is None:
            return
        try:
            self._error_sink(dream_id, error)
        except Exception as e:
            logger.error("Error sink raised while reporting dream %s: %s", dream_id, e)


__all__ = ["ErrorSink", "SimilaritySynchronizer"]
