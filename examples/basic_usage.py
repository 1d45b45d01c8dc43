"""Basic usage example for somnio."""

import logging
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


from somnio import (
    Dream,
    DreamUpdate,
    SimilaritySynchronizer,
    create_dream_store,
)


def main():
    logging.basicConfig(level=logging.INFO)

    print("=" * 60)
    print("somnio - Basic Usage Example")
    print("=" * 60)

    # 1. Open a Kuzu-backed dream store
    print("\n1. Creating KuzuDreamStore...")
    db_path = Path(tempfile.mkdtemp()) / "somnio_db"
    store = create_dream_store("kuzu", db_path=db_path)
    print(f"   Database: {db_path}")

    with SimilaritySynchronizer(store) as sync:
        # 2. Record a few dreams; each public one triggers background scoring
        print("\n2. Recording dreams...")
        dreams = [
            Dream(
                title="Flying over the harbour",
                description="Gliding above boats and cold water at dawn",
                tags=["flying", "water"],
                emotion="happy",
            ),
            Dream(
                title="Swimming with whales",
                description="Deep water, slow whales singing below the boats",
                tags=["water", "animals"],
                emotion="peaceful",
            ),
            Dream(
                title="Late for the exam",
                description="Running through endless school corridors",
                tags=["school", "late"],
                emotion="anxious",
            ),
        ]
        for dream in dreams:
            store.add_dream(dream)
            future = sync.on_dream_created(dream)
            written = future.result() if future else 0
            print(f"   Stored: {dream.title!r} ({written} similarity edges)")

        # 3. Query similar dreams
        print("\n3. Dreams similar to the first one (>= 0.3)...")
        for match in sync.find_similar(dreams[0].id, 0.3):
            print(f"   {match.similarity:.3f}  {match.dream.title}")

        # 4. Update a dream and refresh its edges
        print("\n4. Updating the exam dream...")
        update = DreamUpdate(tags=["water", "school"])
        updated = store.update_dream(dreams[2].id, update)
        future = sync.on_dream_updated(dreams[2].id, update, updated)
        print(f"   Rewrote {future.result()} edges")

        # 5. Explain a pairing
        explanation = sync.explain(dreams[0].id, dreams[1].id)
        print(f"\n5. Shared tags: {explanation.shared_tags}")
        print(f"   Shared keywords: {explanation.shared_keywords}")

        # 6. Full maintenance recalculation
        print("\n6. Recalculating all similarities...")
        summary = sync.recalculate_all()
        print(f"   Processed {summary.processed_count} dreams")
        print(f"   Created {summary.relationships_created} relationships")

    store.close()
    print("\nDone.")


if __name__ == "__main__":
    main()
