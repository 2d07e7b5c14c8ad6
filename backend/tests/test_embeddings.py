"""Tests for content embedding generation and semantic search."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.embeddings import (
    EmbeddingError,
    EmbeddingService,
    prepare_knowledge_text,
    prepare_project_text,
    prepare_skill_text,
    prepare_work_history_text,
)
from app.services.llm_gateway import LLMError


@pytest.fixture
def llm():
    gateway = MagicMock()
    gateway.embed = AsyncMock(return_value=[[0.1, 0.2, 0.3]])
    with patch("app.services.embeddings.get_llm_gateway", return_value=gateway):
        yield gateway


@pytest.fixture
def service(llm, sanity_client):
    store = MagicMock()
    store.upsert_content.return_value = 42
    store.query_similar.return_value = []
    return EmbeddingService(vector_store=store, sanity=sanity_client)


class TestTextPreparation:
    def test_project_text(self):
        text = prepare_project_text(
            {
                "title": "Dave",
                "description": "Chatbot",
                "challenges": [{"title": "Latency", "description": "Slow tools"}],
                "achievements": ["Shipped"],
                "technologies": [{"name": "Python"}, "Qdrant"],
            }
        )
        lines = text.split("\n")
        assert lines[0] == "Project: Dave"
        assert lines[1] == "Description: Chatbot"
        assert "Challenge: Latency - Slow tools" in lines
        assert "Technologies: Python, Qdrant" in lines

    def test_skill_text_examples(self):
        text = prepare_skill_text({"name": "Python", "examples": [{"title": "ETL"}]})
        assert "Skill: Python" in text
        assert "Example: ETL - " in text

    def test_work_history_present(self):
        text = prepare_work_history_text({"position": "Engineer", "company": "Acme", "startDate": "2020"})
        assert "Duration: 2020 to Present" in text

    def test_knowledge_question_optional(self):
        assert "Question" not in prepare_knowledge_text({"title": "Tea"})
        assert "Question: Why?" in prepare_knowledge_text({"title": "Tea", "question": "Why?"})


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generate_embedding(self, service):
        assert await service.generate_embedding("hello") == [0.1, 0.2, 0.3]

    @pytest.mark.asyncio
    async def test_provider_failure(self, service, llm):
        llm.embed.side_effect = LLMError("no key")
        with pytest.raises(EmbeddingError):
            await service.generate_embedding("hello")

    @pytest.mark.asyncio
    async def test_empty_provider_response(self, service, llm):
        llm.embed.return_value = []
        with pytest.raises(EmbeddingError):
            await service.generate_embedding("hello")

    @pytest.mark.asyncio
    async def test_index_projects(self, service, sanity_client):
        sanity_client.fetch.return_value = [
            {"_id": "p1", "title": "Dave", "slug": {"current": "dave"}},
            {"_id": "p2", "title": "Site"},
        ]
        assert await service.generate_project_embeddings() == 2
        assert sanity_client.fetch.call_args.args[1] == {"type": "project"}
        first = service.vector_store.upsert_content.call_args_list[0].kwargs
        assert first["content_type"] == "project"
        assert first["content_id"] == "p1"
        assert first["metadata"]["slug"] == "dave"

    @pytest.mark.asyncio
    async def test_knowledge_uses_cms_type(self, service, sanity_client):
        sanity_client.fetch.return_value = []
        assert await service.generate_knowledge_embeddings() == 0
        assert sanity_client.fetch.call_args.args[1] == {"type": "knowledgeBase"}

    @pytest.mark.asyncio
    async def test_unknown_type(self, service):
        with pytest.raises(ValueError):
            await service.generate_embeddings_for("recipe")

    @pytest.mark.asyncio
    async def test_generate_all(self, service, sanity_client):
        sanity_client.fetch.return_value = []
        totals = await service.generate_all_embeddings()
        assert set(totals) == {"project", "skill", "work_history", "knowledge"}
        service.vector_store.ensure_collection.assert_called_once()


class TestSemanticSearch:
    @pytest.mark.asyncio
    async def test_defaults(self, service):
        await service.semantic_search("python")
        kwargs = service.vector_store.query_similar.call_args.kwargs
        assert kwargs["score_threshold"] == 0.7
        assert kwargs["limit"] == 10
        assert kwargs["content_types"] == []

    @pytest.mark.asyncio
    async def test_type_filter(self, service):
        await service.semantic_search("python", content_types=["skill"], threshold=0.5, limit=3)
        kwargs = service.vector_store.query_similar.call_args.kwargs
        assert kwargs["content_types"] == ["skill"]
        assert kwargs["score_threshold"] == 0.5

    @pytest.mark.asyncio
    async def test_all_types_means_no_filter(self, service):
        await service.semantic_search("x", content_types=["project", "skill", "knowledge", "work_history"])
        assert service.vector_store.query_similar.call_args.kwargs["content_types"] == []
