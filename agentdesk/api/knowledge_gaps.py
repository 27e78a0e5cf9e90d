"""
Knowledge gap API endpoints
Review, fill and skip unanswered visitor questions
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agentdesk.api.agents import load_agent
from agentdesk.api.deps import get_embedder
from agentdesk.database import get_db
from agentdesk.embeddings import OpenAIEmbedder
from agentdesk.schemas.operator import KnowledgeGapFill, KnowledgeGapResponse
from agentdesk.services.knowledge_gap_service import KnowledgeGapService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/agents/{agent_id}/knowledge-gaps", tags=["knowledge-gaps"])


@router.get("", response_model=List[KnowledgeGapResponse])
async def list_knowledge_gaps(
    agent_id: str,
    db: Session = Depends(get_db),
):
    """Open gaps, most asked first"""
    load_agent(agent_id, db)
    return KnowledgeGapService(db).list_gaps(agent_id)


@router.post("/{gap_id}/fill", response_model=KnowledgeGapResponse)
async def fill_knowledge_gap(
    agent_id: str,
    gap_id: str,
    payload: KnowledgeGapFill,
    db: Session = Depends(get_db),
    embedder: OpenAIEmbedder = Depends(get_embedder),
):
    """
    Answer a gap: the question and answer become a new knowledge chunk
    """
    load_agent(agent_id, db)
    service = KnowledgeGapService(db)
    return await service.fill_gap(agent_id, gap_id, payload.answer, embedder)


@router.post("/{gap_id}/skip", response_model=KnowledgeGapResponse)
async def skip_knowledge_gap(
    agent_id: str,
    gap_id: str,
    db: Session = Depends(get_db),
):
    load_agent(agent_id, db)
    return KnowledgeGapService(db).skip_gap(agent_id, gap_id)
