"""
Agent Model - a configured support assistant
"""

from sqlalchemy import Column, String, Integer, ForeignKey, JSON, DateTime, Text
from sqlalchemy.orm import relationship
import uuid

from agentdesk.database import Base, utcnow


TRAINING_STATUSES = ("untrained", "training", "trained", "error")


class Agent(Base):
    """
    Agent model

    Attributes:
        id: Agent identifier (used by the embeddable widget)
        tenant_id: Owning tenant
        name: Display name used in the system prompt
        allowed_domains: Origin allow-list (empty = any origin)
        hmac_secret: Shared secret for widget request signing (optional)
        website_url: Site the agent is embedded on
        platform_info: Free-text description of the product/platform
        training_status: untrained | training | trained | error
        total_chunks: Number of knowledge chunks ingested
    """

    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    allowed_domains = Column(JSON, default=list)
    hmac_secret = Column(String(255), nullable=True)
    website_url = Column(String(500), nullable=True)
    platform_info = Column(Text, nullable=True)

    training_status = Column(String(20), nullable=False, default="untrained")
    total_chunks = Column(Integer, nullable=False, default=0)
    training_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    tenant = relationship("Tenant", back_populates="agents")

    def __repr__(self):
        return f"<Agent(id={self.id}, name={self.name}, status={self.training_status})>"
