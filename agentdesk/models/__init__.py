"""
SQLAlchemy Database Models

Every agent-owned record carries agent_id as a lookup key.

Models:
    - Tenant: Plan and message quota
    - Agent: Configured assistant
    - Document: Uploaded knowledge source
    - DocumentChunk: Text chunk with its embedding
    - VisitorSession: Widget visitor identity per agent
    - Conversation: Exchange within a visitor session
    - Message: Single turn
    - KnowledgeGap: Unanswered question cluster
    - Ticket: Support ticket
    - SecurityAlert, ErrorEvent: Observability records

Relationships:
    Tenant 1:N Agent
    VisitorSession 1:N Conversation
    Conversation 1:N Message
"""

from agentdesk.models.tenant import Tenant
from agentdesk.models.agent import Agent
from agentdesk.models.document import Document
from agentdesk.models.chunk import DocumentChunk
from agentdesk.models.visitor_session import VisitorSession
from agentdesk.models.conversation import Conversation
from agentdesk.models.message import Message
from agentdesk.models.knowledge_gap import KnowledgeGap
from agentdesk.models.ticket import Ticket
from agentdesk.models.events import SecurityAlert, ErrorEvent

__all__ = [
    "Tenant",
    "Agent",
    "Document",
    "DocumentChunk",
    "VisitorSession",
    "Conversation",
    "Message",
    "KnowledgeGap",
    "Ticket",
    "SecurityAlert",
    "ErrorEvent",
]
