"""
Observability records written by the chat path

SecurityAlert: a request blocked by the origin allow-list
ErrorEvent: a provider failure answered with the fallback reply
"""

from sqlalchemy import Column, String, ForeignKey, DateTime, Text
import uuid

from agentdesk.database import Base, utcnow


class SecurityAlert(Base):
    __tablename__ = "security_alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(String(50), nullable=False)
    origin = Column(String(1000), nullable=True)
    message_preview = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class ErrorEvent(Base):
    __tablename__ = "error_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(String(36), nullable=True, index=True)
    user_key = Column(String(255), nullable=True)
    conversation_key = Column(String(255), nullable=True)
    stage = Column(String(50), nullable=False)
    error_type = Column(String(100), nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
