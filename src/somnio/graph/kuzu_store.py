"""KuzuDreamStore -- Kuzu-backed implementation of the DreamStore protocol.

Schema:
    Dream node table keyed by ``dream_id``.
    SIMILAR_TO rel table (Dream -> Dream) with similarity, shared_themes
    and calculated_at columns.

List-valued fields (tags, shared_themes) are stored as JSON strings.

Public API:
    KuzuDreamStore: Concrete DreamStore implementation backed by Kuzu.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import kuzu

from ..dream import Dream, DreamUpdate, Emotion, SimilarDream, SimilarityEdge
from ..exceptions import CollaboratorError

logger = logging.getLogger(__name__)

# Dream dataclass field -> Dream table column
_DREAM_COLUMNS = {
    "id": "dream_id",
    "title": "title",
    "description": "description",
    "tags": "tags",
    "emotion": "emotion",
    "is_public": "is_public",
    "user_id": "user_id",
    "date": "dream_date",
    "lucid_dream": "lucid_dream",
    "recurring": "recurring",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


class KuzuDreamStore:
    """Kuzu graph database implementation of the DreamStore protocol.

    All Cypher queries use parameterised bindings. Kuzu errors are
    re-raised as CollaboratorError so callers see one failure type.

    Args:
        db_path: Filesystem path for the Kuzu database.
        store_id: Optional human-readable identifier; auto-generated if None.
    """

    # ── construction / lifecycle ──────────────────────────────

    def __init__(self, db_path: Path | str, store_id: str | None = None) -> None:
        self._db_path = Path(db_path)
        self._store_id = store_id or f"kuzu-{uuid.uuid4().hex[:8]}"
        self._lock = threading.RLock()
        try:
            self._db = kuzu.Database(str(self._db_path))
            self._conn = kuzu.Connection(self._db)
        except RuntimeError as e:
            raise CollaboratorError(f"Cannot open Kuzu database at {self._db_path}: {e}") from e
        self._initialize_schema()

    @property
    def store_id(self) -> str:
        return self._store_id

    def close(self) -> None:
        """Release Kuzu resources."""
        with self._lock:
            self._conn = None  # type: ignore[assignment]
            self._db = None  # type: ignore[assignment]

    def _initialize_schema(self) -> None:
        try:
            self._execute("""
                CREATE NODE TABLE IF NOT EXISTS Dream(
                    dream_id STRING,
                    title STRING,
                    description STRING,
                    tags STRING,
                    emotion STRING,
                    is_public BOOLEAN,
                    user_id STRING,
                    dream_date STRING,
                    lucid_dream BOOLEAN,
                    recurring BOOLEAN,
                    created_at STRING,
                    updated_at STRING,
                    PRIMARY KEY (dream_id)
                )
            """)

            self._execute("""
                CREATE REL TABLE IF NOT EXISTS SIMILAR_TO(
                    FROM Dream TO Dream,
                    similarity DOUBLE,
                    shared_themes STRING,
                    calculated_at STRING
                )
            """)

            logger.debug("KuzuDreamStore schema initialized at %s", self._db_path)

        except CollaboratorError as e:
            logger.error("Failed to initialize KuzuDreamStore schema: %s", e)
            raise

    # ── dream operations ──────────────────────────────────────

    def add_dream(self, dream: Dream) -> Dream:
        params = self._dream_params(dream)
        set_clause = ", ".join(f"{col}: ${col}" for col in params)
        self._execute(f"CREATE (:Dream {{{set_clause}}})", params)
        return dream

    def fetch_dream_by_id(self, dream_id: str) -> Dream | None:
        rows = self._fetch_rows(
            "MATCH (d:Dream) WHERE d.dream_id = $did RETURN d",
            {"did": dream_id},
        )
        return self._row_to_dream(rows[0][0]) if rows else None

    def fetch_public_dreams(self) -> list[Dream]:
        rows = self._fetch_rows("MATCH (d:Dream) WHERE d.is_public = true RETURN d")
        return [self._row_to_dream(row[0]) for row in rows]

    def update_dream(self, dream_id: str, update: DreamUpdate) -> Dream | None:
        with self._lock:
            current = self.fetch_dream_by_id(dream_id)
            if current is None:
                return None
            updated = update.apply(current)

            params = self._dream_params(updated)
            set_clause = ", ".join(f"d.{col} = ${col}" for col in params if col != "dream_id")
            self._execute(
                f"MATCH (d:Dream) WHERE d.dream_id = $dream_id SET {set_clause}",
                params,
            )
        return updated

    def delete_dream(self, dream_id: str) -> bool:
        with self._lock:
            if self.fetch_dream_by_id(dream_id) is None:
                return False
            self._execute(
                "MATCH (d:Dream) WHERE d.dream_id = $did DETACH DELETE d",
                {"did": dream_id},
            )
        return True

    # ── similarity edge operations ────────────────────────────

    def upsert_similarity_edges(self, edges: Sequence[SimilarityEdge]) -> None:
        """Write edges, replacing any existing edge for the same unordered pair."""
        if not edges:
            return

        with self._lock:
            for edge in edges:
                pair = {"aid": edge.dream1_id, "bid": edge.dream2_id}
                for src, dst in (("aid", "bid"), ("bid", "aid")):
                    self._execute(
                        "MATCH (a:Dream)-[s:SIMILAR_TO]->(b:Dream) "
                        f"WHERE a.dream_id = ${src} AND b.dream_id = ${dst} DELETE s",
                        pair,
                    )
                self._execute(
                    """
                    MATCH (a:Dream {dream_id: $aid})
                    MATCH (b:Dream {dream_id: $bid})
                    CREATE (a)-[:SIMILAR_TO {
                        similarity: $similarity,
                        shared_themes: $shared_themes,
                        calculated_at: $calculated_at
                    }]->(b)
                    """,
                    {
                        **pair,
                        "similarity": float(edge.similarity),
                        "shared_themes": json.dumps(list(edge.shared_themes)),
                        "calculated_at": edge.calculated_at,
                    },
                )
        logger.debug("Upserted %d SIMILAR_TO edges", len(edges))

    def delete_similarity_edges(self, dream_id: str) -> None:
        self._execute(
            "MATCH (d:Dream)-[s:SIMILAR_TO]->(:Dream) WHERE d.dream_id = $did DELETE s",
            {"did": dream_id},
        )
        self._execute(
            "MATCH (:Dream)-[s:SIMILAR_TO]->(d:Dream) WHERE d.dream_id = $did DELETE s",
            {"did": dream_id},
        )

    def delete_all_similarity_edges(self) -> None:
        self._execute("MATCH (:Dream)-[s:SIMILAR_TO]->(:Dream) DELETE s")

    def get_similar_dreams(self, dream_id: str, min_similarity: float) -> list[SimilarDream]:
        rows = self._fetch_rows(
            """
            MATCH (d:Dream)-[s:SIMILAR_TO]-(o:Dream)
            WHERE d.dream_id = $did AND s.similarity >= $min_similarity AND o.is_public = true
            RETURN o, s.similarity
            ORDER BY s.similarity DESC
            """,
            {"did": dream_id, "min_similarity": float(min_similarity)},
        )
        return [
            SimilarDream(dream=self._row_to_dream(row[0]), similarity=float(row[1]))
            for row in rows
        ]

    def get_similarity_edges(self, min_similarity: float = 0.0) -> list[SimilarityEdge]:
        rows = self._fetch_rows(
            """
            MATCH (a:Dream)-[s:SIMILAR_TO]->(b:Dream)
            WHERE a.is_public = true AND b.is_public = true AND s.similarity >= $min_similarity
            RETURN a.dream_id, b.dream_id, s.similarity, s.shared_themes, s.calculated_at
            """,
            {"min_similarity": float(min_similarity)},
        )
        return [
            SimilarityEdge(
                dream1_id=row[0],
                dream2_id=row[1],
                similarity=float(row[2]),
                shared_themes=json.loads(row[3]) if row[3] else [],
                calculated_at=row[4] or "",
            )
            for row in rows
        ]

    # ── private helpers ───────────────────────────────────────

    def _execute(self, cypher: str, params: dict[str, Any] | None = None):
        with self._lock:
            if self._conn is None:
                raise CollaboratorError("KuzuDreamStore is closed")
            try:
                return self._conn.execute(cypher, params or {})
            except RuntimeError as e:
                raise CollaboratorError(f"Kuzu query failed: {e}") from e

    def _fetch_rows(self, cypher: str, params: dict[str, Any] | None = None) -> list[list[Any]]:
        with self._lock:
            result = self._execute(cypher, params)
            rows: list[list[Any]] = []
            while result.has_next():
                rows.append(result.get_next())
        return rows

    @staticmethod
    def _dream_params(dream: Dream) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for attr, col in _DREAM_COLUMNS.items():
            value = getattr(dream, attr)
            if attr == "tags":
                value = json.dumps(list(value or []))
            elif attr in ("is_public", "lucid_dream", "recurring"):
                value = bool(value)
            else:
                value = "" if value is None else str(value)
            params[col] = value
        return params

    @staticmethod
    def _row_to_dream(row_data: dict[str, Any]) -> Dream:
        """Convert a Kuzu node dict to a Dream."""
        values = {attr: row_data.get(col) for attr, col in _DREAM_COLUMNS.items()}
        values["tags"] = json.loads(values["tags"]) if values["tags"] else []
        for attr in ("is_public", "lucid_dream", "recurring"):
            values[attr] = bool(values[attr])
        for attr in ("title", "description", "user_id", "date", "created_at", "updated_at"):
            values[attr] = values[attr] or ""
        values["emotion"] = values["emotion"] or Emotion.NEUTRAL.value
        return Dream(**values)


__all__ = ["KuzuDreamStore"]
