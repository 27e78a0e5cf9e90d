"""
VisitorSession Model - one widget visitor's identity scope for an agent
"""

from sqlalchemy import Column, String, Integer, ForeignKey, JSON, DateTime, UniqueConstraint
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import relationship
import uuid

from agentdesk.database import Base, utcnow


class VisitorSession(Base):
    """
    Visitor session model

    Attributes:
        user_key: anonymousUserId, or the widget sessionId when anonymous id is absent
        email: Email captured from the conversation, if any
        conversation_count: Conversations started by this visitor
        metadata_: Latest device/location/page data reported by the widget
    """

    __tablename__ = "visitor_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_key = Column(String(255), nullable=False)

    email = Column(String(320), nullable=True)
    conversation_count = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", MutableDict.as_mutable(JSON), default=dict)

    first_seen_at = Column(DateTime, default=utcnow)
    last_seen_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("agent_id", "user_key", name="uq_visitor_session_agent_user"),
    )

    conversations = relationship(
        "Conversation",
        back_populates="visitor_session",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<VisitorSession(agent_id={self.agent_id}, user_key={self.user_key})>"
