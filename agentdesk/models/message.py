"""
Message Model - one turn of a conversation
Immutable once written; ordered by sequence within its conversation
"""

from sqlalchemy import Column, String, Integer, ForeignKey, JSON, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from agentdesk.database import Base, utcnow


class Message(Base):
    """
    Message model

    Attributes:
        role: user | assistant
        sequence: Arrival order within the conversation (1-based)
        relevance: For assistant turns, the chunks and similarities used
        metadata_: Classification flags and token usage for assistant turns
    """

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    relevance = Column(JSON, nullable=True)
    metadata_ = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_message_conversation_sequence"),
    )

    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<Message(id={self.id}, role={self.role}, sequence={self.sequence})>"
