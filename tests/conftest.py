"""
Pytest configuration and shared fixtures for AgentDesk tests

Provides:
- In-memory SQLite database sessions
- Test tenants, agents and knowledge chunks
- Fake embedding and completion providers (no network)
"""

import os

# Must be set before agentdesk.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

import json
import pytest
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

import agentdesk.models  # noqa: F401
from agentdesk.core.exceptions import ProviderError
from agentdesk.database import Base
from agentdesk.models.agent import Agent
from agentdesk.models.tenant import Tenant
from agentdesk.search.embedding_store import ChunkRecord, EmbeddingStore


KEYWORDS = ["log", "password", "refund", "billing", "shipping", "urgent"]


def keyword_vector(text: str) -> List[float]:
    """Deterministic embedding: one dimension per keyword plus a bias term"""
    lowered = (text or "").lower()
    return [float(lowered.count(word)) for word in KEYWORDS] + [0.1]


class FakeEmbedder:
    """Stands in for OpenAIEmbedder"""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return keyword_vector(text)

    async def embed_for_ingestion(self, text: str):
        try:
            return await self.embed(text), None
        except ProviderError as e:
            return None, str(e)


class FakeCompletionClient:
    """
    Stands in for CompletionClient

    ``replies`` feed ``complete`` (raw strings or dicts, dicts are sent as
    JSON); ``json_replies`` feed ``complete_json``.
    """

    def __init__(self, replies: Optional[List[Any]] = None, json_replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.json_replies = list(json_replies or [])
        self.calls: List[Dict[str, Any]] = []
        self.json_calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt, turns, temperature=0.4, max_tokens=500) -> str:
        self.calls.append({"system_prompt": system_prompt, "turns": turns})
        reply = self.replies.pop(0) if self.replies else {"reply": "Happy to help."}
        if isinstance(reply, Exception):
            raise reply
        return json.dumps(reply) if isinstance(reply, dict) else reply

    async def complete_json(self, prompt, temperature, max_tokens=500) -> Dict[str, Any]:
        self.json_calls.append({"prompt": prompt, "temperature": temperature})
        reply = self.json_replies.pop(0) if self.json_replies else {}
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def word_token_counter():
    """Token counts without loading tiktoken encodings"""
    with patch(
        "agentdesk.services.prompt_orchestrator.count_tokens",
        side_effect=lambda text, model="gpt-4o-mini": len(text.split()),
    ):
        yield


@pytest.fixture
def test_db_engine_sqlite():
    """Create in-memory SQLite database (fast, isolated per test)"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(test_db_engine_sqlite) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine_sqlite
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_tenant(db_session) -> Tenant:
    tenant = Tenant(id="tenant-1", name="Acme", plan="free", messages_used=0, message_limit=100)
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def test_agent(db_session, test_tenant) -> Agent:
    agent = Agent(
        tenant_id=test_tenant.id,
        name="Acme Helper",
        allowed_domains=["acme.com", "*.acme.io"],
        website_url="https://acme.com",
        platform_info="Acme sells project management software.",
    )
    db_session.add(agent)
    db_session.commit()
    db_session.refresh(agent)
    return agent


@pytest.fixture
def knowledge_chunks(db_session, test_agent):
    """Four embedded chunks from two sources"""
    texts = [
        ("Account Guide", "To reset your password, open the login page and click 'Forgot password'."),
        ("Account Guide", "Login problems are usually fixed by clearing cookies and trying the login again."),
        ("Billing FAQ", "Refund requests are accepted within 30 days of the billing date."),
        ("Shipping FAQ", "Shipping takes 3-5 business days."),
    ]
    records = [
        ChunkRecord(
            content=content,
            embedding=keyword_vector(content),
            source_name=source,
            chunk_index=i,
            total_chunks=len(texts),
        )
        for i, (source, content) in enumerate(texts)
    ]
    return EmbeddingStore(db_session).bulk_write(test_agent.id, records)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_llm() -> FakeCompletionClient:
    return FakeCompletionClient()


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for API endpoints"
    )
