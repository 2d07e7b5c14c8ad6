"""Tests for portfolio lookups, caching and search fallback."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.portfolio_data import PortfolioData, TTLCache
from app.services.tools import build_portfolio_tools
from app.services.tools.portfolio import merge_knowledge_items


def make_data(fetch_result=None, semantic_enabled=False, hits=None):
    sanity = MagicMock()
    sanity.fetch = AsyncMock(return_value=fetch_result)
    embeddings = MagicMock()
    embeddings.semantic_search = AsyncMock(return_value=hits or [])
    return PortfolioData(sanity=sanity, embeddings=embeddings, semantic_enabled=semantic_enabled)


class TestTTLCache:
    def test_set_and_get(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        assert cache.get("a") == 1

    def test_expired_entry(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        future = datetime.now(UTC) + timedelta(seconds=61)
        with patch("app.services.portfolio_data.datetime") as mock_dt:
            mock_dt.now.return_value = future
            assert cache.get("a") is None
        assert len(cache) == 0

    def test_evicts_oldest(self):
        cache = TTLCache(ttl_seconds=60, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3


class TestLookups:
    @pytest.mark.asyncio
    async def test_featured_projects_are_cached(self):
        data = make_data([{"_id": "p1", "title": "Dave", "description": "Bot"}])
        first = await data.get_featured_projects()
        second = await data.get_featured_projects()
        assert first == second
        assert first[0]["name"] == "Dave"
        assert first[0]["id"] == "p1"
        data.sanity.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_project_lookup_params(self):
        data = make_data([{"_id": "p1", "id": "dave", "title": "Dave", "timeline": {"status": "active"}}])
        project = await data.get_project_data("Dave")
        assert project["status"] == "active"
        assert data.sanity.fetch.call_args.args[1] == {"id": "Dave", "titleMatch": "*dave*"}

    @pytest.mark.asyncio
    async def test_project_not_found(self):
        assert await make_data([]).get_project_data("nothing") is None

    @pytest.mark.asyncio
    async def test_skill_related_projects(self):
        data = make_data(
            [{"name": "Python", "projects": [{"id": "dave", "title": "Dave", "description": "Bot"}, None]}]
        )
        skill = await data.get_skill_data("python")
        assert skill["relatedProjects"] == [{"id": "dave", "name": "Dave", "description": "Bot"}]

    @pytest.mark.asyncio
    async def test_cms_errors_degrade_to_empty(self):
        data = make_data()
        data.sanity.fetch.side_effect = RuntimeError("cms down")
        assert await data.get_featured_projects() == []
        assert await data.get_project_data("x") is None
        assert await data.get_skill_data("x") is None
        assert await data.get_knowledge_items("x") == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_semantic_hits_grouped_by_type(self):
        hits = [
            {
                "content_type": "project",
                "content_id": "p1",
                "content": "Project: Dave\nDescription: Chatbot",
                "metadata": {"title": "Dave"},
            },
            {"content_type": "skill", "content_id": "s1", "content": "", "metadata": {"name": "Python"}},
            {"content_type": "knowledge", "content_id": "k1", "content": "Likes tea", "metadata": {"title": "Tea"}},
        ]
        data = make_data(semantic_enabled=True, hits=hits)
        result = await data.search_portfolio("dave")
        assert result["projects"] == [{"id": "p1", "name": "Dave", "description": "Chatbot"}]
        assert result["skills"][0]["name"] == "Python"
        assert result["knowledgeItems"][0]["priority"] == 5
        data.sanity.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_keyword_search(self):
        data = make_data(semantic_enabled=True)
        data.embeddings.semantic_search.side_effect = RuntimeError("qdrant down")
        data.sanity.fetch.side_effect = [
            [{"_id": "p1", "title": "Dave", "description": "Bot"}],
            [{"name": "Python"}],
            [],
        ]
        result = await data.search_portfolio("python")
        assert result["projects"] == [{"id": "p1", "name": "Dave", "description": "Bot"}]
        assert result["skills"] == [{"name": "Python"}]
        assert data.sanity.fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_keyword_only_when_semantic_disabled(self):
        data = make_data([], semantic_enabled=False)
        await data.search_portfolio("x")
        data.embeddings.semantic_search.assert_not_awaited()


class TestPortfolioTools:
    def test_merge_knowledge_items(self):
        merged = merge_knowledge_items(
            [{"title": "A", "priority": 1}],
            [{"title": "A", "priority": 9}, {"title": "B", "priority": 5}],
        )
        assert [item["title"] for item in merged] == ["B", "A"]
        assert merged[1]["priority"] == 1

    def test_tool_names(self):
        registry = build_portfolio_tools(make_data())
        assert registry.names() == [
            "getProjectDetails",
            "getSkillExpertise",
            "searchPortfolio",
            "getFeaturedProjects",
            "getKnowledgeItems",
        ]

    @pytest.mark.asyncio
    async def test_project_not_found_message(self):
        registry = build_portfolio_tools(make_data([]))
        tool = registry.get("getProjectDetails")
        args = tool.parameters.model_validate({"projectName": "ghost"})
        result = await tool.handler(args, MagicMock())
        assert result == {"found": False, "message": "No project found with name: ghost"}

    @pytest.mark.asyncio
    async def test_search_counts(self):
        data = make_data()
        data.search_portfolio = AsyncMock(
            return_value={"projects": [{"id": "p", "name": "P"}], "skills": [], "knowledgeItems": []}
        )
        data.get_knowledge_items = AsyncMock(return_value=[{"title": "K", "priority": 3}])
        tool = build_portfolio_tools(data).get("searchPortfolio")
        result = await tool.handler(tool.parameters.model_validate({"query": "p"}), MagicMock())
        assert result["projectCount"] == 1
        assert result["knowledgeCount"] == 1
        assert result["knowledgeItems"][0]["title"] == "K"
