"""
Unit tests for ConversationAnalyzer and automatic tickets
"""

import pytest

from agentdesk.core.exceptions import NotFoundError
from agentdesk.models.conversation import Conversation
from agentdesk.models.message import Message
from agentdesk.models.ticket import Ticket
from agentdesk.models.visitor_session import VisitorSession
from agentdesk.services.conversation_analyzer import ConversationAnalyzer, TOO_SHORT_REASON
from conftest import FakeCompletionClient


def make_conversation(db_session, agent_id, turns, email=None):
    session = VisitorSession(agent_id=agent_id, user_key="visitor-1", email=email)
    db_session.add(session)
    db_session.commit()

    conversation = Conversation(
        agent_id=agent_id,
        visitor_session_id=session.id,
        conversation_key="conv-1",
        message_count=len(turns),
    )
    db_session.add(conversation)
    db_session.commit()

    for sequence, (role, content) in enumerate(turns, start=1):
        db_session.add(Message(
            conversation_id=conversation.id,
            sequence=sequence,
            role=role,
            content=content,
        ))
    db_session.commit()
    return conversation


LOGIN_TURNS = [
    ("user", "I can't log in to my account, this is urgent"),
    ("assistant", "Sorry to hear that. Have you tried resetting your password?"),
    ("user", "Yes, the reset email never arrives"),
]

SUPPORT_ANALYSIS = {
    "summary": "Password reset email never arrives.",
    "mainCategory": "Support Request",
    "subCategory": "Login",
    "sentimentScore": 3,
    "intent": "regain access",
    "urgency": "high",
    "keyTopics": ["login", "password reset"],
    "resolved": False,
}


@pytest.mark.unit
@pytest.mark.asyncio
class TestConversationAnalyzer:
    """Test suite for ConversationAnalyzer"""

    async def test_short_conversation_skipped(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, [("user", "hello"), ("assistant", "Hi there!")])
        llm = FakeCompletionClient()

        result = await ConversationAnalyzer(db_session, llm_client=llm).analyze(
            test_agent.id, conversation.visitor_session_id, conversation.id
        )

        assert result is None
        assert llm.json_calls == []
        db_session.refresh(conversation)
        assert conversation.analyzed is True
        assert conversation.analysis_skipped is True
        assert conversation.analysis_skip_reason == TOO_SHORT_REASON

    async def test_analysis_stored(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, LOGIN_TURNS)
        llm = FakeCompletionClient(json_replies=[SUPPORT_ANALYSIS])

        result = await ConversationAnalyzer(db_session, llm_client=llm).analyze(
            test_agent.id, conversation.visitor_session_id, conversation.id
        )

        assert result.sentiment_score == 3
        db_session.refresh(conversation)
        assert conversation.analyzed is True
        assert conversation.analysis_skipped is False
        assert conversation.analysis["mainCategory"] == "Support Request"
        assert conversation.analysis["keyTopics"] == ["login", "password reset"]
        assert "Customer: I can't log in" in llm.json_calls[0]["prompt"]

    async def test_unresolved_support_request_opens_ticket(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, LOGIN_TURNS, email="jane@example.com")
        llm = FakeCompletionClient(json_replies=[SUPPORT_ANALYSIS])

        await ConversationAnalyzer(db_session, llm_client=llm).analyze(
            test_agent.id, conversation.visitor_session_id, conversation.id
        )

        ticket = db_session.query(Ticket).one()
        assert ticket.source == "analysis"
        assert ticket.category == "technical"
        assert ticket.priority == "high"
        assert ticket.title == "Login"
        assert ticket.visitor_email == "jane@example.com"
        assert ticket.conversation_id == conversation.id

    async def test_bug_report_ticket_category(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, LOGIN_TURNS)
        analysis = dict(SUPPORT_ANALYSIS, mainCategory="Bug Report", urgency="low")

        await ConversationAnalyzer(db_session, llm_client=FakeCompletionClient(json_replies=[analysis])).analyze(
            test_agent.id, conversation.visitor_session_id, conversation.id
        )

        ticket = db_session.query(Ticket).one()
        assert ticket.category == "bug"
        assert ticket.priority == "low"

    async def test_resolved_or_other_categories_no_ticket(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, LOGIN_TURNS)
        llm = FakeCompletionClient(json_replies=[
            dict(SUPPORT_ANALYSIS, resolved=True),
            dict(SUPPORT_ANALYSIS, mainCategory="Sales Inquiry"),
        ])
        analyzer = ConversationAnalyzer(db_session, llm_client=llm)

        await analyzer.analyze(test_agent.id, conversation.visitor_session_id, conversation.id)
        await analyzer.analyze(test_agent.id, conversation.visitor_session_id, conversation.id)

        assert db_session.query(Ticket).count() == 0

    async def test_one_analysis_ticket_per_conversation(self, db_session, test_agent):
        conversation = make_conversation(db_session, test_agent.id, LOGIN_TURNS)
        llm = FakeCompletionClient(json_replies=[SUPPORT_ANALYSIS, SUPPORT_ANALYSIS])
        analyzer = ConversationAnalyzer(db_session, llm_client=llm)

        await analyzer.analyze(test_agent.id, conversation.visitor_session_id, conversation.id)
        await analyzer.analyze(test_agent.id, conversation.visitor_session_id, conversation.id)

        assert db_session.query(Ticket).count() == 1

    async def test_unknown_conversation(self, db_session, test_agent):
        with pytest.raises(NotFoundError):
            await ConversationAnalyzer(db_session, llm_client=FakeCompletionClient()).analyze(
                test_agent.id, "no-session", "no-conversation"
            )
