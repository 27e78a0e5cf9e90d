"""
Pydantic Schemas for operator endpoints
Documents, knowledge gaps, tickets and analytics
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from datetime import datetime


class DocumentCreate(BaseModel):
    """Inline text document"""
    name: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)


class DocumentResponse(BaseModel):
    id: str
    agent_id: str
    name: str
    content_type: str
    size_bytes: int
    status: str
    chunk_count: int
    failed_embeddings: int
    created_at: datetime

    class Config:
        from_attributes = True


class KnowledgeGapResponse(BaseModel):
    id: str
    agent_id: str
    category: str
    representative_question: str
    count: int
    recent_questions: List[str]
    first_asked_at: datetime
    last_asked_at: datetime
    filled: bool
    skipped: bool
    chunk_id: Optional[str] = None

    class Config:
        from_attributes = True


class KnowledgeGapFill(BaseModel):
    """Operator answer for a knowledge gap"""
    answer: str = Field(..., min_length=1)


TicketCategory = Literal["technical", "feature_request", "content_issue", "performance", "bug", "other"]
TicketPriority = Literal["low", "medium", "high", "critical"]
TicketStatus = Literal["new", "in_progress", "resolved", "closed"]


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    category: TicketCategory = "other"
    priority: TicketPriority = "medium"
    conversation_id: Optional[str] = None
    visitor_email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class TicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    resolution_notes: Optional[str] = None


class TicketResponse(BaseModel):
    id: str
    agent_id: str
    conversation_id: Optional[str] = None
    title: str
    description: str
    category: str
    priority: str
    status: str
    source: str
    visitor_email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    resolution_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TopicCount(BaseModel):
    topic: str
    count: int


class CategoryShare(BaseModel):
    count: int
    percentage: float


class AnalyticsSummary(BaseModel):
    """Conversation analytics over a time range"""
    range: str
    total_conversations: int
    analyzed_conversations: int
    resolved: int
    unresolved: int
    resolution_rate: float
    average_sentiment: float
    categories: Dict[str, CategoryShare]
    sentiment_distribution: Dict[int, int]
    urgency: Dict[str, int]
    top_topics: List[TopicCount]


class AgentCreate(BaseModel):
    """Operator request to register an agent"""
    tenant_id: str = Field(..., min_length=1, max_length=36)
    name: str = Field(..., min_length=1, max_length=255)
    plan: Optional[str] = None
    allowed_domains: List[str] = Field(default_factory=list)
    hmac_secret: Optional[str] = None
    website_url: Optional[str] = None
    platform_info: Optional[str] = None


class AgentResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    allowed_domains: List[str] = Field(default_factory=list)
    website_url: Optional[str] = None
    training_status: str
    total_chunks: int
    created_at: datetime

    class Config:
        from_attributes = True
