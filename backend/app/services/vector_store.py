"""VectorStoreService: single point of Qdrant access for content embeddings.

One point per CMS document. The point id is derived from
``content_type:content_id`` so re-indexing a document overwrites it.

Payload layout:
    content_type  project | skill | knowledge | work_history
    content_id    CMS document _id
    content       the text that was embedded
    metadata      small dict of display fields (title, slug, ...)
    updated_at    ISO timestamp
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchAny,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("project", "skill", "knowledge", "work_history")


def stable_int64_hash(text: str) -> int:
    """Non-negative int64 point id that is the same in every process.

    ``hash()`` is salted per interpreter, so re-indexing would create
    duplicates instead of overwriting.
    """
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") >> 1


def point_id_for(content_type: str, content_id: str) -> int:
    """One point per CMS document."""
    return stable_int64_hash(f"{content_type}:{content_id}")


def get_qdrant_client() -> QdrantClient:
    return QdrantClient(
        host=settings.qdrant_host,
        port=settings.qdrant_port,
        timeout=settings.qdrant_timeout,
    )


class VectorStoreService:
    """Shared service for content embedding storage and similarity search."""

    def __init__(
        self,
        qdrant: QdrantClient | None = None,
        collection_name: str | None = None,
    ):
        self.qdrant = qdrant or get_qdrant_client()
        self.collection_name = collection_name or settings.qdrant_collection_name

    # ---------------------------------------------------------------------
    # Collection setup
    # ---------------------------------------------------------------------

    def ensure_collection(self, vector_size: int | None = None) -> bool:
        """Create the collection and payload indexes if missing.

        Returns:
            True when the collection was created, False when it already existed.
        """
        existing = {c.name for c in self.qdrant.get_collections().collections}
        if self.collection_name in existing:
            return False

        self.qdrant.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(
                size=vector_size or settings.embedding_dimensions,
                distance=Distance.COSINE,
            ),
        )
        for key in ("content_type", "content_id"):
            self.qdrant.create_payload_index(
                collection_name=self.collection_name,
                field_name=key,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.info(f"Created Qdrant collection {self.collection_name}")
        return True

    # ---------------------------------------------------------------------
    # Filters
    # ---------------------------------------------------------------------

    @staticmethod
    def build_filter(content_types: Iterable[str] | None = None) -> Filter | None:
        must: list[FieldCondition] = []
        types = list(content_types or [])
        if types:
            if len(types) == 1:
                must.append(FieldCondition(key="content_type", match=MatchValue(value=types[0])))
            else:
                must.append(FieldCondition(key="content_type", match=MatchAny(any=types)))
        return Filter(must=must) if must else None

    # ---------------------------------------------------------------------
    # Vector operations (with telemetry)
    # ---------------------------------------------------------------------

    def upsert_content(
        self,
        *,
        content_type: str,
        content_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        point_id = point_id_for(content_type, content_id)
        self.qdrant.upsert(
            collection_name=self.collection_name,
            points=[
                PointStruct(
                    id=point_id,
                    vector=vector,
                    payload={
                        "content_type": content_type,
                        "content_id": content_id,
                        "content": content,
                        "metadata": metadata or {},
                        "updated_at": datetime.now(UTC).isoformat(),
                    },
                )
            ],
        )
        logger.debug(
            "vector_upsert",
            extra={
                "telemetry": True,
                "operation": "upsert_content",
                "content_type": content_type,
                "content_id": content_id,
            },
        )
        return point_id

    def query_similar(
        self,
        *,
        query_vector: list[float],
        content_types: Iterable[str] | None = None,
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        types = list(content_types or [])
        points = self.qdrant.query_points(
            collection_name=self.collection_name,
            query=query_vector,
            query_filter=self.build_filter(types),
            limit=limit,
            score_threshold=score_threshold,
            with_payload=True,
        ).points

        avg_score = sum(p.score for p in points) / len(points) if points else 0.0
        logger.info(
            "vector_query",
            extra={
                "telemetry": True,
                "operation": "query_similar",
                "content_types": types or "all",
                "limit": limit,
                "threshold": score_threshold,
                "hits": len(points),
                "avg_score": round(avg_score, 4),
            },
        )

        return [
            {
                "content_type": (p.payload or {}).get("content_type"),
                "content_id": (p.payload or {}).get("content_id"),
                "content": (p.payload or {}).get("content"),
                "metadata": (p.payload or {}).get("metadata") or {},
                "similarity": p.score,
            }
            for p in points
        ]

    def count_vectors(self, content_types: Iterable[str] | None = None) -> int:
        result = self.qdrant.count(
            collection_name=self.collection_name,
            count_filter=self.build_filter(content_types),
        )
        return int(result.count or 0)

