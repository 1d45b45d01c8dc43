"""Tests for SimilaritySynchronizer.

Uses InMemoryDreamStore plus small wrappers that record or fail
collaborator calls.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from somnio import (
    CollaboratorError,
    Dream,
    DreamNotFoundError,
    DreamUpdate,
    InMemoryDreamStore,
    InvalidInputError,
    RecalculationInProgressError,
    SimilarityConfig,
    SimilarityEdge,
    SimilaritySynchronizer,
)


class RecordingStore(InMemoryDreamStore):
    """InMemoryDreamStore that records edge writes and deletes."""

    def __init__(self):
        super().__init__(store_id="recording")
        self.upsert_batches: list[list[SimilarityEdge]] = []
        self.calls: list[str] = []

    def fetch_public_dreams(self):
        self.calls.append("fetch")
        return super().fetch_public_dreams()

    def upsert_similarity_edges(self, edges):
        self.calls.append("upsert")
        self.upsert_batches.append(list(edges))
        super().upsert_similarity_edges(edges)

    def delete_similarity_edges(self, dream_id):
        self.calls.append("delete")
        super().delete_similarity_edges(dream_id)

    def delete_all_similarity_edges(self):
        self.calls.append("delete_all")
        super().delete_all_similarity_edges()


class FailingStore(InMemoryDreamStore):
    """InMemoryDreamStore whose selected operations raise CollaboratorError."""

    def __init__(self, fail_on: set[str], fail_after_batches: int = 0):
        super().__init__(store_id="failing")
        self.fail_on = fail_on
        self.fail_after_batches = fail_after_batches
        self.batches_written = 0

    def fetch_public_dreams(self):
        if "fetch" in self.fail_on:
            raise CollaboratorError("fetch failed")
        return super().fetch_public_dreams()

    def upsert_similarity_edges(self, edges):
        if "upsert" in self.fail_on and self.batches_written >= self.fail_after_batches:
            raise CollaboratorError("upsert failed")
        self.batches_written += 1
        super().upsert_similarity_edges(edges)

    def delete_all_similarity_edges(self):
        if "delete_all" in self.fail_on:
            raise CollaboratorError("delete failed")
        super().delete_all_similarity_edges()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def sync(store):
    s = SimilaritySynchronizer(store)
    yield s
    s.close()


def themed(dream_id: str, *tags: str, emotion: str = "neutral", public: bool = True) -> Dream:
    return Dream(id=dream_id, tags=list(tags), emotion=emotion, is_public=public)


def pair_set(store: InMemoryDreamStore) -> set[frozenset[str]]:
    return {e.pair for e in store.get_similarity_edges()}


# ── creation trigger ──────────────────────────────────────────


class TestOnDreamCreated:
    """Edges written after a dream is created."""

    def test_writes_edges_for_similar_dreams(self, store, sync):
        store.add_dream(themed("old", "flying", "water"))
        store.add_dream(themed("other", "exam", emotion="sad"))
        new = store.add_dream(themed("new", "flying", "water"))

        future = sync.on_dream_created(new)
        assert future.result(timeout=5) == 1

        edge = store.get_edge("new", "old")
        assert edge.dream1_id == "new"
        assert edge.dream2_id == "old"
        assert edge.similarity == 0.65
        assert edge.shared_themes == ["flying", "water"]
        assert store.get_edge("new", "other") is None

    def test_single_batched_upsert(self, store, sync):
        for i in range(5):
            store.add_dream(themed(f"d{i}", "forest"))
        new = store.add_dream(themed("new", "forest"))

        assert sync.on_dream_created(new).result(timeout=5) == 5
        assert len(store.upsert_batches) == 1
        assert len(store.upsert_batches[0]) == 5

    def test_private_dream_not_scheduled(self, store, sync):
        store.add_dream(themed("old", "flying"))
        private = store.add_dream(themed("new", "flying", public=False))
        assert sync.on_dream_created(private) is None
        assert store.calls == []

    def test_private_candidates_ignored(self, store, sync):
        store.add_dream(themed("hidden", "flying", public=False))
        new = store.add_dream(themed("new", "flying"))
        assert sync.on_dream_created(new).result(timeout=5) == 0
        assert store.edge_count() == 0

    def test_no_matches_skips_upsert(self, store, sync):
        store.add_dream(themed("other", "exam", emotion="sad"))
        new = store.add_dream(themed("new", "flying", emotion="happy"))
        assert sync.on_dream_created(new).result(timeout=5) == 0
        assert "upsert" not in store.calls

    def test_uses_create_threshold(self, store):
        store.add_dream(themed("old", "a", "b", "c"))
        new = store.add_dream(themed("new", "a"))
        # 0.5 / 3 + 0.15 = 0.317
        with SimilaritySynchronizer(store, SimilarityConfig(create_threshold=0.5)) as strict:
            assert strict.on_dream_created(new).result(timeout=5) == 0
        with SimilaritySynchronizer(store) as default:
            assert default.on_dream_created(new).result(timeout=5) == 1


# ── update trigger ────────────────────────────────────────────


class TestOnDreamUpdated:
    """Edges refreshed after a dream is updated."""

    def test_clears_then_rewrites(self, store, sync):
        store.add_dream(themed("a", "flying"))
        store.add_dream(themed("b", "ocean"))
        store.add_dream(themed("target", "flying"))
        store.upsert_similarity_edges([SimilarityEdge("target", "a", 0.65)])
        store.calls.clear()

        update = DreamUpdate(tags=["ocean"])
        updated = store.update_dream("target", update)
        assert sync.on_dream_updated("target", update, updated).result(timeout=5) == 1

        assert store.calls == ["delete", "fetch", "upsert"]
        assert pair_set(store) == {frozenset(("target", "b"))}

    def test_other_dreams_edges_untouched(self, store, sync):
        store.add_dream(themed("a", "forest"))
        store.add_dream(themed("b", "forest"))
        store.add_dream(themed("target", "forest"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.65)])

        update = DreamUpdate(tags=["desert"])
        updated = store.update_dream("target", update)
        sync.on_dream_updated("target", update, updated).result(timeout=5)

        assert pair_set(store) == {frozenset(("a", "b"))}

    def test_visibility_only_change_not_scheduled(self, store, sync):
        store.add_dream(themed("a", "flying"))
        store.add_dream(themed("target", "flying"))
        store.upsert_similarity_edges([SimilarityEdge("target", "a", 0.65)])

        update = DreamUpdate(is_public=False)
        updated = store.update_dream("target", update)
        assert sync.on_dream_updated("target", update, updated) is None
        # Existing edge is left in place
        assert store.get_edge("target", "a") is not None

    def test_private_result_not_scheduled(self, store, sync):
        store.add_dream(themed("target", "flying", public=False))
        update = DreamUpdate(title="New title")
        updated = store.update_dream("target", update)
        assert sync.on_dream_updated("target", update, updated) is None

    def test_non_similarity_fields_not_scheduled(self, store, sync):
        store.add_dream(themed("target", "flying"))
        update = DreamUpdate(lucid_dream=True, recurring=True)
        updated = store.update_dream("target", update)
        assert sync.on_dream_updated("target", update, updated) is None

    def test_missing_dream_raises(self, sync):
        with pytest.raises(DreamNotFoundError):
            sync.on_dream_updated("ghost", DreamUpdate(title="x"), None)


# ── failure isolation ─────────────────────────────────────────


class TestBackgroundFailures:
    """Background failures are logged and reported, never raised."""

    def test_error_sink_receives_failure(self):
        store = FailingStore({"fetch"})
        errors: list[tuple[str, Exception]] = []
        new = store.add_dream(themed("new", "flying"))

        with SimilaritySynchronizer(store, error_sink=lambda d, e: errors.append((d, e))) as sync:
            future = sync.on_dream_created(new)
            assert future.result(timeout=5) is None

        assert len(errors) == 1
        assert errors[0][0] == "new"
        assert isinstance(errors[0][1], CollaboratorError)

    def test_failure_is_logged(self, caplog):
        store = FailingStore({"upsert"})
        store.add_dream(themed("old", "flying"))
        new = store.add_dream(themed("new", "flying"))

        with caplog.at_level("ERROR", logger="somnio.synchronizer"):
            with SimilaritySynchronizer(store) as sync:
                assert sync.on_dream_created(new).result(timeout=5) is None

        assert "Similarity sync failed for dream new" in caplog.text

    def test_update_failure_reported(self):
        store = FailingStore({"fetch"})
        errors: list[str] = []
        target = store.add_dream(themed("target", "flying"))

        with SimilaritySynchronizer(store, error_sink=lambda d, e: errors.append(d)) as sync:
            future = sync.on_dream_updated("target", DreamUpdate(title="x"), target)
            assert future.result(timeout=5) is None

        assert errors == ["target"]

    def test_failing_error_sink_is_contained(self):
        store = FailingStore({"fetch"})
        new = store.add_dream(themed("new", "flying"))

        def broken_sink(dream_id, error):
            raise RuntimeError("sink down")

        with SimilaritySynchronizer(store, error_sink=broken_sink) as sync:
            assert sync.on_dream_created(new).result(timeout=5) is None


# ── full recalculation ────────────────────────────────────────


class TestRecalculateAll:
    """Full corpus recomputation."""

    def test_counts_and_edges(self, store, sync):
        store.add_dream(themed("a", "flying", "water"))
        store.add_dream(themed("b", "flying", "water"))
        store.add_dream(themed("c", "flying"))
        store.add_dream(themed("d", "exam", emotion="sad"))

        summary = sync.recalculate_all()

        assert summary.processed_count == 4
        assert summary.pairs_compared == 6
        # a-b: 0.65, a-c and b-c: 0.4, everything with d: 0
        assert summary.relationships_created == 3
        assert pair_set(store) == {
            frozenset(("a", "b")),
            frozenset(("a", "c")),
            frozenset(("b", "c")),
        }

    def test_each_pair_scored_once(self, store, sync):
        n = 7
        for i in range(n):
            store.add_dream(themed(f"d{i}", "same"))

        summary = sync.recalculate_all(0.0)

        assert summary.pairs_compared == n * (n - 1) // 2
        assert summary.relationships_created == n * (n - 1) // 2
        written = [e.pair for batch in store.upsert_batches for e in batch]
        assert len(written) == len(set(written))

    def test_default_threshold_is_stricter(self, store, sync):
        store.add_dream(themed("a", "a", "b", "c", "d"))
        b = store.add_dream(themed("b", "a"))
        # 0.5 / 4 + 0.15 = 0.275: enough on create, not for recalculation
        assert sync.on_dream_created(b).result(timeout=5) == 1
        assert sync.recalculate_all().relationships_created == 0
        assert sync.recalculate_all(0.25).relationships_created == 1

    def test_clears_existing_edges(self, store, sync):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "y"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.9)])

        summary = sync.recalculate_all()

        assert summary.relationships_created == 0
        assert store.edge_count() == 0
        assert "delete_all" in store.calls

    def test_delete_all_happens_after_scoring(self, store, sync):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        sync.recalculate_all()
        assert store.calls == ["fetch", "delete_all", "upsert"]

    def test_batches_of_configured_size(self, store):
        for i in range(6):
            store.add_dream(themed(f"d{i}", "same"))
        with SimilaritySynchronizer(store, SimilarityConfig(batch_size=4)) as sync:
            summary = sync.recalculate_all()

        assert summary.relationships_created == 15
        assert [len(b) for b in store.upsert_batches] == [4, 4, 4, 3]

    def test_default_batch_size(self, store, sync):
        for i in range(16):
            store.add_dream(themed(f"d{i}", "same"))
        summary = sync.recalculate_all()
        assert summary.relationships_created == 120
        assert [len(b) for b in store.upsert_batches] == [100, 20]

    def test_empty_corpus(self, store, sync):
        summary = sync.recalculate_all()
        assert summary.processed_count == 0
        assert summary.relationships_created == 0
        assert store.upsert_batches == []

    def test_invalid_threshold(self, sync):
        with pytest.raises(InvalidInputError):
            sync.recalculate_all(1.2)

    def test_fetch_failure_propagates(self):
        store = FailingStore({"fetch"})
        with SimilaritySynchronizer(store) as sync:
            with pytest.raises(CollaboratorError, match="fetch failed"):
                sync.recalculate_all()

    def test_delete_failure_propagates(self):
        store = FailingStore({"delete_all"})
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        with SimilaritySynchronizer(store) as sync:
            with pytest.raises(CollaboratorError, match="delete failed"):
                sync.recalculate_all()

    def test_partial_batch_failure_is_not_rolled_back(self):
        store = FailingStore({"upsert"}, fail_after_batches=1)
        for i in range(4):
            store.add_dream(themed(f"d{i}", "same"))

        with SimilaritySynchronizer(store, SimilarityConfig(batch_size=2)) as sync:
            with pytest.raises(CollaboratorError):
                sync.recalculate_all()

        assert store.edge_count() == 2

    def test_concurrent_recalculation_rejected(self):
        started = threading.Event()
        release = threading.Event()

        class SlowStore(RecordingStore):
            def fetch_public_dreams(self):
                started.set()
                release.wait(timeout=5)
                return super().fetch_public_dreams()

        with SimilaritySynchronizer(SlowStore()) as sync:
            with ThreadPoolExecutor(max_workers=1) as pool:
                first = pool.submit(sync.recalculate_all)
                assert started.wait(timeout=5)
                with pytest.raises(RecalculationInProgressError):
                    sync.recalculate_all()
                release.set()
                assert first.result(timeout=5).processed_count == 0

            # The guard is released once the first run finishes
            assert sync.recalculate_all().processed_count == 0


# ── read paths ────────────────────────────────────────────────


class TestReadPaths:
    """find_similar, get_network and explain."""

    def test_find_similar_default_threshold(self, store, sync):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        store.add_dream(themed("c", "x"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.8), SimilarityEdge("a", "c", 0.5)])

        results = sync.find_similar("a")
        assert [(r.dream.id, r.similarity) for r in results] == [("b", 0.8)]
        assert [r.dream.id for r in sync.find_similar("a", 0.4)] == ["b", "c"]

    def test_find_similar_missing_dream(self, sync):
        with pytest.raises(DreamNotFoundError):
            sync.find_similar("ghost")

    def test_find_similar_invalid_threshold(self, store, sync):
        store.add_dream(themed("a", "x"))
        with pytest.raises(InvalidInputError):
            sync.find_similar("a", -1)

    def test_get_network(self, store, sync):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        store.add_dream(themed("c", "x"))
        store.add_dream(themed("lonely", "y"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.8), SimilarityEdge("b", "c", 0.3)])

        network = sync.get_network()
        assert [d.id for d in network.nodes] == ["a", "b"]
        assert [(e.dream1_id, e.dream2_id) for e in network.links] == [("a", "b")]

        wide = sync.get_network(0.0)
        assert {d.id for d in wide.nodes} == {"a", "b", "c"}

    def test_get_network_threshold_from_config(self, store):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.3)])

        with SimilaritySynchronizer(store, config=SimilarityConfig(network_threshold=0.0)) as sync:
            assert [(e.dream1_id, e.dream2_id) for e in sync.get_network().links] == [("a", "b")]

    def test_explain(self, store, sync):
        store.add_dream(Dream(id="a", description="castle dragon", tags=["castle"], emotion="happy"))
        store.add_dream(Dream(id="b", description="castle knight", tags=["castle"], emotion="excited"))
        explanation = sync.explain("a", "b")
        assert explanation.shared_tags == ["castle"]
        assert explanation.shared_keywords == ["castle"]
        assert explanation.emotion_match == 0.5

    def test_explain_missing(self, store, sync):
        store.add_dream(themed("a", "x"))
        with pytest.raises(DreamNotFoundError):
            sync.explain("a", "ghost")

    def test_on_dream_deleted_clears_edges(self, store, sync):
        store.add_dream(themed("a", "x"))
        store.add_dream(themed("b", "x"))
        store.upsert_similarity_edges([SimilarityEdge("a", "b", 0.8)])
        sync.on_dream_deleted("a")
        assert store.edge_count() == 0


# ── lifecycle ─────────────────────────────────────────────────


class TestLifecycle:
    """Executor ownership."""

    def test_injected_executor_not_shut_down(self, store):
        executor = ThreadPoolExecutor(max_workers=1)
        sync = SimilaritySynchronizer(store, executor=executor)
        sync.close()
        # Still usable by its owner
        assert executor.submit(lambda: 42).result(timeout=5) == 42
        executor.shutdown()

    def test_end_to_end_with_injected_executor(self, store):
        store.add_dream(themed("old", "flying"))
        new = store.add_dream(themed("new", "flying"))
        with ThreadPoolExecutor(max_workers=2) as executor:
            sync = SimilaritySynchronizer(store, executor=executor)
            assert sync.on_dream_created(new).result(timeout=5) == 1
        assert store.get_edge("old", "new") is not None

    def test_trigger_after_close_is_reported_not_raised(self, store):
        errors: list[tuple[str, Exception]] = []
        sync = SimilaritySynchronizer(store, error_sink=lambda d, e: errors.append((d, e)))
        sync.close()

        new = store.add_dream(themed("new", "flying"))
        assert sync.on_dream_created(new) is None

        assert len(errors) == 1
        assert errors[0][0] == "new"
        assert isinstance(errors[0][1], RuntimeError)
        assert store.edge_count() == 0

    def test_update_with_shut_down_executor_is_logged(self, store, caplog):
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        sync = SimilaritySynchronizer(store, executor=executor)
        target = store.add_dream(themed("target", "flying"))
        update = DreamUpdate(tags=["water"])
        updated = store.update_dream("target", update)

        with caplog.at_level("ERROR", logger="somnio.synchronizer"):
            assert sync.on_dream_updated(target.id, update, updated) is None

        assert "Could not schedule similarity sync for dream target" in caplog.text
