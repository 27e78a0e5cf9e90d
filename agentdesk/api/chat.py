"""
Chat API endpoint
Public widget entry point for grounded support replies
"""

import logging
from fastapi import APIRouter, Depends, Request

from agentdesk.api.deps import get_chat_service
from agentdesk.middleware.rate_limiter import chat_rate_limit
from agentdesk.schemas.chat import ChatRequest, ChatResponse
from agentdesk.services.chat_service import ChatService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
@chat_rate_limit()
async def chat(
    request: Request,
    payload: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """
    Answer one visitor message for an embedded agent

    Request:
        ```json
        {
          "agentId": "agent-uuid",
          "message": "How do I reset my password?",
          "sessionId": "widget-session-id",
          "anonymousUserId": "visitor-id",
          "conversationHistory": [{"role": "user", "content": "..."}],
          "sessionData": {"currentPath": "/pricing"},
          "timestamp": 1718000000000,
          "hmac": "hex signature"
        }
        ```

    Returns:
        ChatResponse: reply text, session id and de-duplicated source names

    Raises:
        400 ValidationError, 404 unknown agent, 403 origin not allowed,
        401 bad signature or expired timestamp, 429 plan limit reached
    """
    origin = request.headers.get("origin") or request.headers.get("referer")
    return await service.chat(payload, origin=origin)
