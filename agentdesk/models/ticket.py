"""
Ticket Model - support ticket raised from a conversation
"""

from sqlalchemy import Column, String, ForeignKey, JSON, DateTime, Text
import uuid

from agentdesk.database import Base, utcnow


TICKET_CATEGORIES = ("technical", "feature_request", "content_issue", "performance", "bug", "other")
TICKET_PRIORITIES = ("low", "medium", "high", "critical")
TICKET_STATUSES = ("new", "in_progress", "resolved", "closed")


class Ticket(Base):
    """
    Ticket model

    Attributes:
        conversation_id: Conversation the ticket was raised from (optional)
        source: manual | analysis
        resolved_at: Set when status moves to resolved or closed
    """

    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(30), nullable=False, default="other")
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="new", index=True)
    source = Column(String(20), nullable=False, default="manual")

    visitor_email = Column(String(320), nullable=True)
    tags = Column(JSON, default=list)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    resolved_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Ticket(id={self.id}, status={self.status}, priority={self.priority})>"
