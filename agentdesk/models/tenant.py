"""
Tenant Model - account that owns agents and carries the message quota
"""

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
import uuid

from agentdesk.database import Base, utcnow


class Tenant(Base):
    """
    Tenant model - billing scope for one or more agents

    Attributes:
        id: Tenant identifier
        name: Display name
        plan: Plan name (free, starter, pro, enterprise)
        messages_used: Billable chat turns in the current period
        message_limit: Allowed chat turns per period (0 = unlimited)
        period_started_at: Start of the current billing period

    Usage counters are reset externally at period rollover.
    """

    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=True)
    plan = Column(String(50), nullable=False, default="free")
    messages_used = Column(Integer, nullable=False, default=0)
    message_limit = Column(Integer, nullable=False, default=0)
    period_started_at = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)

    agents = relationship("Agent", back_populates="tenant")

    def __repr__(self):
        return f"<Tenant(id={self.id}, plan={self.plan}, used={self.messages_used}/{self.message_limit})>"
