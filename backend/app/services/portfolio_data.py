"""Read-side adapter between the public Dave assistant and the CMS.

Results are shaped for the model (``name`` rather than ``title`` for
projects, etc.) and cached per process. CMS failures degrade to empty
results so a visitor's chat never errors on a lookup.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from app.core.config import settings
from app.services.embeddings import EmbeddingService, get_embedding_service
from app.services.sanity import SanityClient, get_sanity_client

logger = logging.getLogger(__name__)

FEATURED_PROJECTS_QUERY = """*[_type == "project" && isFeatured == true] | order(timeline.startDate desc) {
  _id, title, id, description, problem, solution, technologies, github, demoUrl
}"""

PROJECT_QUERY = """*[_type == "project" && (id == $id || lower(title) match $titleMatch)] {
  _id, title, id, description, problem, solution, challenges, technologies,
  github, demoUrl, achievements, timeline
}"""

SKILL_QUERY = """*[_type == "skill" && lower(name) match $nameMatch] {
  _id, name, category, description, proficiency, yearsExperience, examples,
  projects[]->{ title, id, description }
}"""

KNOWLEDGE_QUERY = """*[_type == "knowledgeBase" && (
  lower(title) match $queryParam ||
  lower(content) match $queryParam ||
  $queryParam in keywords[] ||
  lower(question) match $queryParam
)] | order(priority desc) { title, category, content, question, keywords, priority }"""

PROJECT_SEARCH_QUERY = """*[_type == "project" && (
  lower(title) match $queryParam ||
  lower(description) match $queryParam ||
  count(technologies[lower(name) match $queryParam]) > 0
)] { _id, title, id, description }"""

SKILL_SEARCH_QUERY = """*[_type == "skill" && (
  lower(name) match $queryParam ||
  lower(description) match $queryParam ||
  lower(category) match $queryParam
)] { name, category, proficiency, description }"""


class TTLCache:
    """Small per-process TTL cache.

    Eviction is naive (oldest inserted first), which is fine for a few
    hundred lookup results.
    """

    def __init__(self, ttl_seconds: int = 600, max_size: int = 100):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_size = max(1, max_size)
        self._data: dict[str, tuple[Any, datetime]] = {}

    def get(self, key: str) -> Any | None:
        hit = self._data.get(key)
        if not hit:
            return None
        value, expires_at = hit
        if datetime.now(UTC) >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._data.pop(key, None)
        while len(self._data) >= self._max_size:
            self._data.pop(next(iter(self._data)))
        self._data[key] = (value, datetime.now(UTC) + self._ttl)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def _match(term: str) -> str:
    return f"*{term.lower()}*"


def _project_summary(project: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": project.get("id") or project.get("_id"),
        "name": project.get("title"),
        "description": project.get("description"),
        "problem": project.get("problem"),
        "solution": project.get("solution"),
        "technologies": project.get("technologies"),
        "github": project.get("github"),
        "demoUrl": project.get("demoUrl"),
    }


class PortfolioData:
    """Cached portfolio lookups used by the public Dave tools."""

    def __init__(
        self,
        sanity: SanityClient | None = None,
        embeddings: EmbeddingService | None = None,
        cache: TTLCache | None = None,
        semantic_enabled: bool | None = None,
    ):
        self.sanity = sanity or get_sanity_client()
        self._embeddings = embeddings
        self.cache = cache or TTLCache(ttl_seconds=600, max_size=100)
        self.semantic_enabled = (
            settings.embeddings_enabled if semantic_enabled is None else semantic_enabled
        )

    @property
    def embeddings(self) -> EmbeddingService:
        if self._embeddings is None:
            self._embeddings = get_embedding_service()
        return self._embeddings

    async def get_featured_projects(self) -> list[dict[str, Any]]:
        cache_key = "featured-projects"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            projects = await self.sanity.fetch(FEATURED_PROJECTS_QUERY) or []
        except Exception as e:
            logger.error(f"Error fetching featured projects: {e}")
            return []

        result = [_project_summary(p) for p in projects]
        if result:
            self.cache.set(cache_key, result)
        return result

    async def get_project_data(self, project_name: str) -> dict[str, Any] | None:
        cache_key = f"project-{project_name.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            projects = await self.sanity.fetch(
                PROJECT_QUERY,
                {"id": project_name, "titleMatch": _match(project_name)},
            ) or []
        except Exception as e:
            logger.error(f"Error fetching project data for {project_name}: {e}")
            return None

        if not projects:
            return None

        project = projects[0]
        result = {
            **_project_summary(project),
            "challenges": project.get("challenges"),
            "achievements": project.get("achievements"),
            "status": (project.get("timeline") or {}).get("status"),
        }
        self.cache.set(cache_key, result)
        return result

    async def get_skill_data(self, skill_name: str) -> dict[str, Any] | None:
        cache_key = f"skill-{skill_name.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            skills = await self.sanity.fetch(SKILL_QUERY, {"nameMatch": _match(skill_name)}) or []
        except Exception as e:
            logger.error(f"Error fetching skill data for {skill_name}: {e}")
            return None

        if not skills:
            return None

        skill = skills[0]
        result = {
            "name": skill.get("name"),
            "category": skill.get("category"),
            "proficiency": skill.get("proficiency"),
            "description": skill.get("description"),
            "yearsExperience": skill.get("yearsExperience"),
            "examples": skill.get("examples"),
            "relatedProjects": [
                {"id": p.get("id"), "name": p.get("title"), "description": p.get("description")}
                for p in skill.get("projects") or []
                if p
            ],
        }
        self.cache.set(cache_key, result)
        return result

    async def get_knowledge_items(self, query: str) -> list[dict[str, Any]]:
        cache_key = f"knowledge-{query.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            items = await self.sanity.fetch(KNOWLEDGE_QUERY, {"queryParam": _match(query)}) or []
        except Exception as e:
            logger.error(f"Error fetching knowledge items for {query}: {e}")
            return []

        if items:
            self.cache.set(cache_key, items)
        return items

    async def _semantic_search(self, query: str) -> dict[str, list[dict[str, Any]]]:
        hits = await self.embeddings.semantic_search(query)
        projects, skills, knowledge_items = [], [], []
        for hit in hits:
            meta = hit.get("metadata") or {}
            content = hit.get("content") or ""
            if hit["content_type"] == "project":
                lines = content.split("\n")
                description = lines[1].replace("Description: ", "", 1) if len(lines) > 1 else ""
                projects.append(
                    {
                        "id": meta.get("id") or hit.get("content_id"),
                        "name": meta.get("title") or "Unknown Project",
                        "description": description,
                    }
                )
            elif hit["content_type"] == "skill":
                skills.append(
                    {
                        "name": meta.get("name") or "Unknown Skill",
                        "category": meta.get("category") or "",
                        "proficiency": meta.get("proficiency") or "",
                    }
                )
            elif hit["content_type"] == "knowledge":
                knowledge_items.append(
                    {
                        "title": meta.get("title") or "Unknown Item",
                        "category": meta.get("category") or "",
                        "content": content,
                        "keywords": meta.get("keywords") or [],
                        "priority": meta.get("priority") or 5,
                    }
                )
        return {"projects": projects, "skills": skills, "knowledgeItems": knowledge_items}

    async def _keyword_search(self, query: str) -> dict[str, list[dict[str, Any]]]:
        params = {"queryParam": _match(query)}
        project_results, skill_results, knowledge_results = await asyncio.gather(
            self.sanity.fetch(PROJECT_SEARCH_QUERY, params),
            self.sanity.fetch(SKILL_SEARCH_QUERY, params),
            self.sanity.fetch(KNOWLEDGE_QUERY, params),
        )
        return {
            "projects": [
                {"id": p.get("id") or p.get("_id"), "name": p.get("title"), "description": p.get("description")}
                for p in project_results or []
            ],
            "skills": skill_results or [],
            "knowledgeItems": knowledge_results or [],
        }

    async def search_portfolio(self, query: str) -> dict[str, list[dict[str, Any]]]:
        """Search projects, skills and knowledge; semantic first, keyword fallback."""
        cache_key = f"search-{query.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        result: dict[str, list[dict[str, Any]]] | None = None
        if self.semantic_enabled:
            try:
                result = await self._semantic_search(query)
            except Exception as e:
                logger.warning(f"Semantic search failed, falling back to keyword search: {e}")

        if result is None:
            try:
                result = await self._keyword_search(query)
            except Exception as e:
                logger.error(f"Error searching portfolio for {query}: {e}")
                return {"projects": [], "skills": [], "knowledgeItems": []}

        self.cache.set(cache_key, result)
        return result


_portfolio_data: PortfolioData | None = None


def get_portfolio_data() -> PortfolioData:
    """Get or create the PortfolioData singleton."""
    global _portfolio_data
    if _portfolio_data is None:
        _portfolio_data = PortfolioData()
    return _portfolio_data
