"""
Ticket API endpoints
Support tickets raised by operators or by conversation analysis
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from agentdesk.api.agents import load_agent
from agentdesk.database import get_db
from agentdesk.schemas.operator import TicketCreate, TicketResponse, TicketUpdate
from agentdesk.services.ticket_service import TicketService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["tickets"])


@router.get("/agents/{agent_id}/tickets", response_model=List[TicketResponse])
async def list_tickets(
    agent_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Agent's tickets, newest first"""
    load_agent(agent_id, db)
    return TicketService(db).list_tickets(
        agent_id,
        status=status_filter,
        category=category,
        priority=priority,
    )


@router.post(
    "/agents/{agent_id}/tickets",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_ticket(
    agent_id: str,
    payload: TicketCreate,
    db: Session = Depends(get_db),
):
    load_agent(agent_id, db)
    return TicketService(db).create_ticket(agent_id, **payload.model_dump())


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
):
    """Change status, priority or resolution notes"""
    return TicketService(db).update_ticket(
        ticket_id,
        status=payload.status,
        priority=payload.priority,
        resolution_notes=payload.resolution_notes,
    )
