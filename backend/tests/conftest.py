"""Shared fixtures."""

from unittest.mock import AsyncMock

import pytest

from app.core.rate_limit import reset_rate_limits
from app.services.sanity import SanityClient, SanityConfig


@pytest.fixture
def sanity_client() -> SanityClient:
    """Real client with the network methods replaced by mocks.

    ``mutate`` echoes back an empty document so ``SanityPatch.commit`` works;
    tests inspect ``mutate.call_args`` to see the mutation that was sent.
    """
    client = SanityClient(
        SanityConfig(project_id="test", dataset="production", api_version="2024-03-19", token="t")
    )
    client.fetch = AsyncMock(return_value=None)
    client.get_document = AsyncMock(return_value=None)
    client.mutate = AsyncMock(return_value={"results": [{"id": "doc1", "document": {"_id": "doc1"}}]})
    return client


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
