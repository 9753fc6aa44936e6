"""CLI test fixtures: isolated config and a service built from in-memory doubles."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fakes import FakeChunker, FakeCollector, FakeEmbedder, InMemoryVectorStore

from kindex.rag.conversation import ConversationManager
from kindex.rag.rate_limit import RateLimiter
from kindex.service import KnowledgeService


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every command in an empty project dir with no global config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("kindex.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for name in ("KINDEX_EMBEDDING_MODEL", "KINDEX_GENERATION_MODEL", "KINDEX_COLLECTION", "KINDEX_DB"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_store():
    return InMemoryVectorStore()


@pytest.fixture
def fake_service(fake_store):
    """Patch the CLI's service factory to return a KnowledgeService over doubles."""
    service = KnowledgeService(
        store=fake_store,
        collector=FakeCollector({"https://a.com": "alpha one\nalpha two"}),
        chunker=FakeChunker(),
        embedder=FakeEmbedder(),
        conversations=ConversationManager(model="gemini/gemini-2.5-flash"),
        rate_limiter=RateLimiter(daily_limit=1),
        generation_model="gemini/gemini-2.5-flash",
    )
    with patch("kindex.cli.common.build_service", return_value=service):
        yield service
