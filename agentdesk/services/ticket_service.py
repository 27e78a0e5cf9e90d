"""
Ticket Service

Manual ticket management plus automatic tickets for unresolved support
requests and bug reports found by conversation analysis.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from agentdesk.core.exceptions import NotFoundError, ValidationError
from agentdesk.database import utcnow
from agentdesk.models.conversation import Conversation
from agentdesk.models.ticket import Ticket, TICKET_CATEGORIES, TICKET_PRIORITIES, TICKET_STATUSES
from agentdesk.models.visitor_session import VisitorSession
from agentdesk.schemas.classification import ConversationAnalysis, MainCategory, Urgency

logger = logging.getLogger(__name__)

AUTO_TICKET_CATEGORIES = {
    MainCategory.SUPPORT_REQUEST: "technical",
    MainCategory.BUG_REPORT: "bug",
}

URGENCY_PRIORITY = {
    Urgency.HIGH: "high",
    Urgency.MEDIUM: "medium",
    Urgency.LOW: "low",
}

CLOSED_STATUSES = ("resolved", "closed")


class TicketService:
    def __init__(self, db: Session):
        self.db = db

    def create_ticket(
        self,
        agent_id: str,
        title: str,
        description: str = "",
        category: str = "other",
        priority: str = "medium",
        conversation_id: Optional[str] = None,
        visitor_email: Optional[str] = None,
        tags: Optional[List[str]] = None,
        source: str = "manual",
    ) -> Ticket:
        if not (title or "").strip():
            raise ValidationError("Ticket title is required")
        if category not in TICKET_CATEGORIES:
            raise ValidationError(f"Unknown ticket category: {category}")
        if priority not in TICKET_PRIORITIES:
            raise ValidationError(f"Unknown ticket priority: {priority}")

        ticket = Ticket(
            agent_id=agent_id,
            conversation_id=conversation_id,
            title=title.strip(),
            description=description or "",
            category=category,
            priority=priority,
            status="new",
            source=source,
            visitor_email=visitor_email,
            tags=list(tags or []),
        )
        self.db.add(ticket)
        self.db.commit()
        self.db.refresh(ticket)

        logger.info(f"Created {source} ticket {ticket.id} ({category}/{priority}) for agent {agent_id}")
        return ticket

    def create_from_analysis(
        self,
        conversation: Conversation,
        analysis: ConversationAnalysis,
    ) -> Optional[Ticket]:
        """
        Open a ticket for an unresolved support request or bug report

        Best-effort: failures are logged and None is returned.
        """
        category = AUTO_TICKET_CATEGORIES.get(analysis.main_category)
        if category is None or analysis.resolved:
            return None

        existing = self.db.query(Ticket).filter(
            Ticket.conversation_id == conversation.id,
            Ticket.source == "analysis",
        ).first()
        if existing is not None:
            return existing

        try:
            session = self.db.query(VisitorSession).filter(
                VisitorSession.id == conversation.visitor_session_id
            ).first()
            title = analysis.sub_category or analysis.intent or analysis.main_category.value
            return self.create_ticket(
                agent_id=conversation.agent_id,
                title=title[:500],
                description=analysis.summary,
                category=category,
                priority=URGENCY_PRIORITY.get(analysis.urgency, "medium"),
                conversation_id=conversation.id,
                visitor_email=session.email if session else None,
                tags=analysis.key_topics[:5],
                source="analysis",
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create ticket for conversation {conversation.id}: {e}", exc_info=True)
            return None

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self.db.query(Ticket).filter(Ticket.id == ticket_id).first()
        if ticket is None:
            raise NotFoundError("ticket", ticket_id)
        return ticket

    def list_tickets(
        self,
        agent_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[Ticket]:
        """Agent's tickets, newest first"""
        query = self.db.query(Ticket).filter(Ticket.agent_id == agent_id)
        if status:
            query = query.filter(Ticket.status == status)
        if category:
            query = query.filter(Ticket.category == category)
        if priority:
            query = query.filter(Ticket.priority == priority)
        return query.order_by(Ticket.created_at.desc()).all()

    def update_ticket(
        self,
        ticket_id: str,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        resolution_notes: Optional[str] = None,
    ) -> Ticket:
        ticket = self.get_ticket(ticket_id)

        if priority is not None:
            if priority not in TICKET_PRIORITIES:
                raise ValidationError(f"Unknown ticket priority: {priority}")
            ticket.priority = priority

        if status is not None:
            if status not in TICKET_STATUSES:
                raise ValidationError(f"Unknown ticket status: {status}")
            ticket.status = status
            if status in CLOSED_STATUSES:
                ticket.resolved_at = ticket.resolved_at or utcnow()
            else:
                ticket.resolved_at = None

        if resolution_notes is not None:
            ticket.resolution_notes = resolution_notes

        ticket.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(ticket)

        logger.info(f"Updated ticket {ticket.id}: status={ticket.status}, priority={ticket.priority}")
        return ticket
