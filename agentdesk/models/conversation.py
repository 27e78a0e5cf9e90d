"""
Conversation Model - one bounded exchange within a visitor session
"""

from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, JSON, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from agentdesk.database import Base, utcnow


class Conversation(Base):
    """
    Conversation model

    Attributes:
        conversation_key: Conversation id supplied by the widget (its sessionId)
        should_analyze: false | pending | true, from the latest assistant turn
        analyzed: Analysis has been written (or skipped)
        analysis: ConversationAnalysis result as JSON
        message_count: Messages written so far; assigns Message.sequence
    """

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    visitor_session_id = Column(String(36), ForeignKey("visitor_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_key = Column(String(255), nullable=False)

    started_at = Column(DateTime, default=utcnow)
    last_message_at = Column(DateTime, default=utcnow, index=True)
    message_count = Column(Integer, nullable=False, default=0)

    should_analyze = Column(String(10), nullable=False, default="false")
    analysis_reason = Column(Text, nullable=True)
    analyzed = Column(Boolean, nullable=False, default=False)
    analysis_skipped = Column(Boolean, nullable=False, default=False)
    analysis_skip_reason = Column(String(255), nullable=True)
    analysis = Column(JSON, nullable=True)
    analyzed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("visitor_session_id", "conversation_key", name="uq_conversation_session_key"),
    )

    visitor_session = relationship("VisitorSession", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )

    def __repr__(self):
        return f"<Conversation(id={self.id}, key={self.conversation_key}, analyzed={self.analyzed})>"
