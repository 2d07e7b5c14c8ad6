"""Content embeddings: text preparation, indexing and semantic search.

Each CMS document of an indexed type is flattened to a short text block,
embedded through the LLM gateway and stored in the vector store, keyed by
``(content_type, content_id)``.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from app.services.llm_gateway import LLMError, get_llm_gateway
from app.services.sanity import SanityClient, get_sanity_client
from app.services.vector_store import CONTENT_TYPES, VectorStoreService

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 10


class EmbeddingError(Exception):
    """Embedding generation or storage failed."""
    pass


def _join(lines: Iterable[str]) -> str:
    return "\n".join(line for line in lines if line)


def _titled(items: list[dict[str, Any]] | None, label: str) -> str:
    return "\n".join(
        f"{label}: {item.get('title') or 'Untitled'} - {item.get('description') or ''}"
        for item in items or []
        if isinstance(item, dict)
    )


def prepare_project_text(project: dict[str, Any]) -> str:
    technologies = [
        t.get("name", "") if isinstance(t, dict) else str(t)
        for t in project.get("technologies") or []
    ]
    return _join(
        [
            f"Project: {project.get('title', '')}",
            f"Description: {project.get('description') or ''}",
            f"Problem: {project.get('problem') or ''}",
            f"Solution: {project.get('solution') or ''}",
            _titled(project.get("challenges"), "Challenge"),
            _titled(project.get("approach"), "Approach"),
            _titled(project.get("technicalInsights"), "Technical Insight"),
            f"Achievements: {', '.join(project.get('achievements') or [])}",
            f"Technologies: {', '.join(t for t in technologies if t)}",
        ]
    )


def prepare_skill_text(skill: dict[str, Any]) -> str:
    return _join(
        [
            f"Skill: {skill.get('name', '')}",
            f"Category: {skill.get('category') or ''}",
            f"Description: {skill.get('description') or ''}",
            f"Proficiency: {skill.get('proficiency') or ''}",
            f"Years of Experience: {skill.get('yearsExperience') or ''}",
            "\n".join(
                f"Example: {e.get('title') or 'Unnamed Example'} - {e.get('description') or ''}"
                for e in skill.get("examples") or []
                if isinstance(e, dict)
            ),
        ]
    )


def prepare_work_history_text(work: dict[str, Any]) -> str:
    return _join(
        [
            f"Position: {work.get('position', '')}",
            f"Company: {work.get('company', '')}",
            f"Duration: {work.get('startDate', '')} to {work.get('endDate') or 'Present'}",
            f"Description: {work.get('description') or ''}",
            f"Responsibilities: {', '.join(work.get('responsibilities') or [])}",
            f"Achievements: {', '.join(work.get('achievements') or [])}",
        ]
    )


def prepare_knowledge_text(item: dict[str, Any]) -> str:
    return _join(
        [
            f"Title: {item.get('title', '')}",
            f"Category: {item.get('category') or ''}",
            f"Question: {item['question']}" if item.get("question") else "",
            f"Content: {item.get('content') or ''}",
            f"Keywords: {', '.join(item.get('keywords') or [])}",
        ]
    )


# content_type -> (CMS _type, text builder, metadata builder)
INDEXED_TYPES: dict[str, tuple[str, Callable[[dict], str], Callable[[dict], dict]]] = {
    "project": (
        "project",
        prepare_project_text,
        lambda d: {
            "title": d.get("title"),
            "slug": (d.get("slug") or {}).get("current"),
            "isFeatured": d.get("isFeatured"),
        },
    ),
    "skill": (
        "skill",
        prepare_skill_text,
        lambda d: {
            "name": d.get("name"),
            "category": d.get("category"),
            "proficiency": d.get("proficiency"),
        },
    ),
    "work_history": (
        "workHistory",
        prepare_work_history_text,
        lambda d: {"position": d.get("position"), "company": d.get("company")},
    ),
    "knowledge": (
        "knowledgeBase",
        prepare_knowledge_text,
        lambda d: {
            "title": d.get("title"),
            "category": d.get("category"),
            "priority": d.get("priority"),
        },
    ),
}


class EmbeddingService:
    """Index CMS content and run similarity search over it."""

    def __init__(
        self,
        vector_store: VectorStoreService | None = None,
        sanity: SanityClient | None = None,
    ):
        self._vector_store = vector_store
        self.sanity = sanity or get_sanity_client()
        self.llm = get_llm_gateway()

    @property
    def vector_store(self) -> VectorStoreService:
        # Connect lazily so constructing the service never touches Qdrant
        if self._vector_store is None:
            self._vector_store = VectorStoreService()
        return self._vector_store

    async def generate_embedding(self, text: str) -> list[float]:
        try:
            vectors = await self.llm.embed(text)
        except LLMError as e:
            raise EmbeddingError(str(e)) from e
        if not vectors:
            raise EmbeddingError("Embedding provider returned no vectors")
        return vectors[0]

    async def store_embedding(
        self,
        content_type: str,
        content_id: str,
        content: str,
        embedding: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        # Qdrant client is sync; keep it off the event loop
        return await asyncio.to_thread(
            self.vector_store.upsert_content,
            content_type=content_type,
            content_id=content_id,
            content=content,
            vector=embedding,
            metadata=metadata,
        )

    async def generate_embeddings_for(self, content_type: str) -> int:
        """Index every CMS document of one content type. Returns the count indexed."""
        if content_type not in INDEXED_TYPES:
            raise ValueError(f"Unknown content type: {content_type}")
        cms_type, prepare, meta = INDEXED_TYPES[content_type]

        documents = await self.sanity.fetch("*[_type == $type]", {"type": cms_type}) or []
        indexed = 0
        for document in documents:
            content = prepare(document)
            embedding = await self.generate_embedding(content)
            await self.store_embedding(content_type, document["_id"], content, embedding, meta(document))
            indexed += 1
            logger.info(f"Generated embedding for {content_type}: {document['_id']}")

        logger.info(f"All {content_type} embeddings generated ({indexed} documents)")
        return indexed

    async def generate_project_embeddings(self) -> int:
        return await self.generate_embeddings_for("project")

    async def generate_skill_embeddings(self) -> int:
        return await self.generate_embeddings_for("skill")

    async def generate_work_history_embeddings(self) -> int:
        return await self.generate_embeddings_for("work_history")

    async def generate_knowledge_embeddings(self) -> int:
        return await self.generate_embeddings_for("knowledge")

    async def generate_all_embeddings(self) -> dict[str, int]:
        await asyncio.to_thread(self.vector_store.ensure_collection)
        return {content_type: await self.generate_embeddings_for(content_type) for content_type in INDEXED_TYPES}

    async def semantic_search(
        self,
        query: str,
        content_types: list[str] | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        """Return hits above ``threshold``, most similar first.

        An empty or complete ``content_types`` list searches everything.
        """
        types = list(content_types or CONTENT_TYPES)
        if set(types) >= set(CONTENT_TYPES):
            types = []
        embedding = await self.generate_embedding(query)
        return await asyncio.to_thread(
            self.vector_store.query_similar,
            query_vector=embedding,
            content_types=types,
            limit=limit,
            score_threshold=threshold,
        )


_embedding_service: EmbeddingService | None = None


def get_embedding_service() -> EmbeddingService:
    """Get or create the EmbeddingService singleton."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
