"""
Unit tests for ChatService

Tests:
- Canned reply without a knowledge base
- Grounded replies, sources and persisted turns
- Quota and security rejections
- Provider failure fallback
- Knowledge gap dispatch and conversation analysis
"""

import asyncio
import threading
import time

import pytest
from unittest.mock import AsyncMock, MagicMock

from agentdesk.config import settings
from agentdesk.core.exceptions import (
    DomainRejected,
    LimitReached,
    NotFoundError,
    ProviderError,
    SignatureInvalid,
    ValidationError,
)
from agentdesk.core.security import SecurityGate, compute_signature
from agentdesk.models.conversation import Conversation
from agentdesk.models.events import ErrorEvent, SecurityAlert
from agentdesk.models.message import Message
from agentdesk.models.tenant import Tenant
from agentdesk.models.visitor_session import VisitorSession
from agentdesk.schemas.chat import ChatRequest
from agentdesk.services.chat_service import ChatService
from agentdesk.services.prompt_orchestrator import PromptOrchestrator
from conftest import FakeCompletionClient, FakeEmbedder

NOW_MS = 1_718_000_000_000
ORIGIN = "https://acme.com"


@pytest.fixture
def analyzer():
    mock = MagicMock()
    mock.analyze = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def dispatcher():
    return MagicMock()


def make_service(db_session, llm, analyzer, dispatcher, embedder=None):
    return ChatService(
        db_session,
        embedder=embedder or FakeEmbedder(),
        orchestrator=PromptOrchestrator(llm_client=llm),
        security_gate=SecurityGate(clock=lambda: NOW_MS),
        analyzer=analyzer,
        gap_dispatcher=dispatcher,
    )


def chat_request(agent_id, message, **kwargs):
    kwargs.setdefault("session_id", "session-1")
    return ChatRequest(agent_id=agent_id, message=message, **kwargs)


def messages_for(db_session):
    return db_session.query(Message).order_by(Message.sequence).all()


def usage(db_session, tenant_id):
    return db_session.query(Tenant).filter(Tenant.id == tenant_id).one().messages_used


@pytest.mark.unit
@pytest.mark.asyncio
class TestChatReplies:
    """Happy-path chat turns"""

    async def test_no_knowledge_base_canned_reply(self, db_session, test_agent, analyzer, dispatcher):
        llm = FakeCompletionClient()
        embedder = FakeEmbedder()
        service = make_service(db_session, llm, analyzer, dispatcher, embedder=embedder)

        response = await service.chat(chat_request(test_agent.id, "hello", session_id=None), origin=ORIGIN)

        assert response.response == settings.NO_KNOWLEDGE_BASE_REPLY
        assert response.session_id
        assert response.relevant_sources == []
        assert llm.calls == []
        assert embedder.calls == []
        assert usage(db_session, test_agent.tenant_id) == 0
        assert [m.role for m in messages_for(db_session)] == ["user", "assistant"]

    async def test_greeting_not_analyzed(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[{"reply": "Hi! How can I help?", "shouldAnalyze": "false"}])
        service = make_service(db_session, llm, analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "hello"), origin=ORIGIN)

        assert response.response == "Hi! How can I help?"
        assert response.session_id == "session-1"
        dispatcher.assert_not_called()
        analyzer.analyze.assert_not_awaited()
        assert usage(db_session, test_agent.tenant_id) == 1
        assert db_session.query(Conversation).one().should_analyze == "false"

    async def test_grounded_reply_with_sources(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[{
            "reply": "Let's get you back in. Could you share your email?",
            "shouldAnalyze": "pending",
            "analysisReason": "login issue, details missing",
            "requestEmail": True,
        }])
        service = make_service(db_session, llm, analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "I can't log in, this is urgent"), origin=ORIGIN)

        assert response.relevant_sources[0] == "Account Guide"
        assert "Login problems are usually fixed" in llm.calls[0]["system_prompt"]
        assert llm.calls[0]["turns"][-1] == {"role": "user", "content": "I can't log in, this is urgent"}

        user_message, assistant_message = messages_for(db_session)
        assert (user_message.sequence, assistant_message.sequence) == (1, 2)
        assert user_message.content == "I can't log in, this is urgent"
        assert len(assistant_message.relevance) == 3
        assert assistant_message.metadata_["shouldAnalyze"] == "pending"
        assert assistant_message.metadata_["requestEmail"] is True

        assert db_session.query(Conversation).one().should_analyze == "pending"
        analyzer.analyze.assert_not_awaited()

    async def test_email_request_suppressed_when_known(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[{"reply": "Thanks!", "requestEmail": True}])
        service = make_service(db_session, llm, analyzer, dispatcher)

        await service.chat(
            chat_request(
                test_agent.id,
                "Still can't log in",
                conversation_history=[{"role": "user", "content": "I'm jane@example.com"}],
            ),
            origin=ORIGIN,
        )

        assistant_message = messages_for(db_session)[-1]
        assert assistant_message.metadata_["requestEmail"] is False

    async def test_email_in_message_saved_on_session(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)

        await service.chat(
            chat_request(test_agent.id, "Reach me at jane@example.com", anonymous_user_id="anon-7"),
            origin=ORIGIN,
        )

        session = db_session.query(VisitorSession).one()
        assert session.user_key == "anon-7"
        assert session.email == "jane@example.com"

    async def test_turns_append_to_same_conversation(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)

        await service.chat(chat_request(test_agent.id, "first question about billing"), origin=ORIGIN)
        await service.chat(chat_request(test_agent.id, "second question about billing"), origin=ORIGIN)

        assert [m.sequence for m in messages_for(db_session)] == [1, 2, 3, 4]
        assert db_session.query(Conversation).one().message_count == 4
        assert usage(db_session, test_agent.tenant_id) == 2

    async def test_unparseable_reply_used_as_text(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        service = make_service(db_session, FakeCompletionClient(replies=["Plain text answer"]), analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "refund?"), origin=ORIGIN)

        assert response.response == "Plain text answer"
        assert messages_for(db_session)[-1].metadata_["parseFailed"] is True


def gap_reply(reply="I'm not sure about that."):
    return FakeCompletionClient(replies=[{
        "reply": reply,
        "knowledgeGapDetected": True,
        "unansweredQuestion": "Do you ship to Mars?",
    }])


async def settle_dispatches(service):
    return await asyncio.gather(*list(service.pending_dispatches), return_exceptions=True)


@pytest.mark.unit
@pytest.mark.asyncio
class TestChatFollowUps:
    """Knowledge gap dispatch and conversation analysis"""

    async def test_gap_dispatched(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        service = make_service(db_session, gap_reply(), analyzer, dispatcher)

        await service.chat(chat_request(test_agent.id, "can you ship to mars??"), origin=ORIGIN)
        await settle_dispatches(service)

        dispatcher.assert_called_once_with(test_agent.id, "Do you ship to Mars?", "can you ship to mars??")

    async def test_slow_dispatch_does_not_delay_reply(self, db_session, test_agent, knowledge_chunks, analyzer):
        release = threading.Event()
        finished = threading.Event()

        def slow_dispatcher(agent_id, question, original_message):
            release.wait(timeout=5)
            finished.set()

        service = make_service(db_session, gap_reply(), analyzer, slow_dispatcher)

        started = time.monotonic()
        response = await service.chat(chat_request(test_agent.id, "mars shipping?"), origin=ORIGIN)
        elapsed = time.monotonic() - started

        assert response.response == "I'm not sure about that."
        assert elapsed < 2
        assert not finished.is_set()
        assert len(service.pending_dispatches) == 1

        release.set()
        await settle_dispatches(service)
        assert finished.is_set()

    async def test_dispatch_failure_does_not_fail_turn(self, db_session, test_agent, knowledge_chunks, analyzer, caplog):
        dispatcher = MagicMock(side_effect=RuntimeError("broker down"))
        service = make_service(db_session, gap_reply("I'm not sure."), analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "mars shipping?"), origin=ORIGIN)
        await settle_dispatches(service)
        await asyncio.sleep(0)

        assert response.response == "I'm not sure."
        dispatcher.assert_called_once()
        assert "Failed to dispatch knowledge gap" in caplog.text
        assert service.pending_dispatches == set()
        assert usage(db_session, test_agent.tenant_id) == 1

    async def test_gap_without_question_not_dispatched(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[{"reply": "Hmm.", "knowledgeGapDetected": True}])
        service = make_service(db_session, llm, analyzer, dispatcher)

        await service.chat(chat_request(test_agent.id, "something"), origin=ORIGIN)

        dispatcher.assert_not_called()

    async def test_ready_conversation_analyzed(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[{"reply": "Done, anything else?", "shouldAnalyze": "true"}])
        service = make_service(db_session, llm, analyzer, dispatcher)

        await service.chat(chat_request(test_agent.id, "password reset worked, thanks"), origin=ORIGIN)

        conversation = db_session.query(Conversation).one()
        analyzer.analyze.assert_awaited_once_with(
            test_agent.id, conversation.visitor_session_id, conversation.id
        )

    async def test_analysis_failure_does_not_fail_turn(self, db_session, test_agent, knowledge_chunks, dispatcher):
        analyzer = MagicMock()
        analyzer.analyze = AsyncMock(side_effect=ProviderError("down"))
        llm = FakeCompletionClient(replies=[{"reply": "Glad it worked!", "shouldAnalyze": "true"}])
        service = make_service(db_session, llm, analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "all good now"), origin=ORIGIN)

        assert response.response == "Glad it worked!"


@pytest.mark.unit
@pytest.mark.asyncio
class TestChatRejections:
    """Validation, security, quota and provider failures"""

    @pytest.mark.parametrize("agent_id,message", [(None, "hi"), ("agent", ""), ("agent", "   ")])
    async def test_missing_fields(self, db_session, analyzer, dispatcher, agent_id, message):
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)

        with pytest.raises(ValidationError):
            await service.chat(ChatRequest(agent_id=agent_id, message=message), origin=ORIGIN)

    async def test_unknown_agent(self, db_session, analyzer, dispatcher):
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)

        with pytest.raises(NotFoundError):
            await service.chat(chat_request("missing", "hi"), origin=ORIGIN)

    async def test_domain_rejected_records_alert(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient()
        service = make_service(db_session, llm, analyzer, dispatcher)

        with pytest.raises(DomainRejected):
            await service.chat(chat_request(test_agent.id, "let me in"), origin="https://evil.example")

        alert = db_session.query(SecurityAlert).one()
        assert alert.alert_type == "unauthorized_domain"
        assert alert.origin == "https://evil.example"
        assert alert.message_preview == "let me in"
        assert llm.calls == []
        assert db_session.query(Message).count() == 0

    async def test_subdomain_wildcard_allowed(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "hi"), origin="https://help.acme.io")

        assert response.response == "Happy to help."

    async def test_valid_signature(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        test_agent.hmac_secret = "s3cret"
        db_session.commit()
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)
        signature = compute_signature("s3cret", test_agent.id, "hi", NOW_MS)

        response = await service.chat(
            chat_request(test_agent.id, "hi", hmac=signature, timestamp=NOW_MS),
            origin=ORIGIN,
        )

        assert response.response == "Happy to help."

    async def test_invalid_signature(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        test_agent.hmac_secret = "s3cret"
        db_session.commit()
        service = make_service(db_session, FakeCompletionClient(), analyzer, dispatcher)
        signature = compute_signature("wrong", test_agent.id, "hi", NOW_MS)

        with pytest.raises(SignatureInvalid):
            await service.chat(
                chat_request(test_agent.id, "hi", hmac=signature, timestamp=NOW_MS),
                origin=ORIGIN,
            )

    async def test_quota_exhausted(self, db_session, test_tenant, test_agent, knowledge_chunks, analyzer, dispatcher):
        test_tenant.messages_used = test_tenant.message_limit
        db_session.commit()
        llm = FakeCompletionClient()
        embedder = FakeEmbedder()
        service = make_service(db_session, llm, analyzer, dispatcher, embedder=embedder)

        with pytest.raises(LimitReached) as exc_info:
            await service.chat(chat_request(test_agent.id, "hi"), origin=ORIGIN)

        assert exc_info.value.plan == "free"
        assert llm.calls == []
        assert embedder.calls == []

    async def test_completion_failure_falls_back(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient(replies=[ProviderError("provider down")])
        service = make_service(db_session, llm, analyzer, dispatcher)

        response = await service.chat(chat_request(test_agent.id, "refund please"), origin=ORIGIN)

        assert response.response == settings.FALLBACK_REPLY
        assert response.relevant_sources == []
        event = db_session.query(ErrorEvent).one()
        assert event.stage == "generate"
        assert event.error_type == "ProviderError"
        assert event.conversation_key == "session-1"
        assert db_session.query(Message).count() == 0
        assert usage(db_session, test_agent.tenant_id) == 0

    async def test_embedding_failure_falls_back(self, db_session, test_agent, knowledge_chunks, analyzer, dispatcher):
        llm = FakeCompletionClient()
        service = make_service(
            db_session, llm, analyzer, dispatcher,
            embedder=FakeEmbedder(fail_with=ProviderError("embeddings down")),
        )

        response = await service.chat(chat_request(test_agent.id, "refund please"), origin=ORIGIN)

        assert response.response == settings.FALLBACK_REPLY
        assert llm.calls == []
        assert db_session.query(ErrorEvent).count() == 1
