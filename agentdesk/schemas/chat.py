"""
Pydantic Schemas for the widget chat endpoint
Field names on the wire are camelCase to match the embeddable widget
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from enum import Enum


class MessageRole(str, Enum):
    """Message roles"""
    USER = "user"
    ASSISTANT = "assistant"


class HistoryTurn(BaseModel):
    """Prior turn supplied by the widget"""
    role: MessageRole = Field(..., description="Message role")
    content: str = Field(..., description="Message content")


class ChatRequest(BaseModel):
    """
    Chat request from the embeddable widget

    agentId and message are validated by the chat service so a missing
    value surfaces as a typed ValidationError rather than a schema error.
    """
    agent_id: Optional[str] = Field(None, alias="agentId")
    message: Optional[str] = Field(None, description="New user message")
    session_id: Optional[str] = Field(None, alias="sessionId")
    anonymous_user_id: Optional[str] = Field(None, alias="anonymousUserId")
    conversation_history: List[HistoryTurn] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns, oldest first, already truncated by the caller"
    )
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds, signed with the message")
    session_data: Dict[str, Any] = Field(
        default_factory=dict,
        alias="sessionData",
        description="Session, behavior and page context reported by the widget"
    )
    hmac: Optional[str] = Field(None, description="Hex HMAC-SHA256 signature")

    class Config:
        populate_by_name = True


class ChatResponse(BaseModel):
    """Successful chat reply"""
    response: str
    session_id: str = Field(..., alias="sessionId")
    relevant_sources: List[str] = Field(default_factory=list, alias="relevantSources")

    class Config:
        populate_by_name = True

