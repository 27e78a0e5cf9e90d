"""
Conversation Analyzer

Scores a conversation once the assistant flags it as ready
(summary, category, sentiment, urgency, topics, resolution) and stores
the result on the conversation. Very short conversations are marked as
skipped without calling the LLM.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from agentdesk.config import settings
from agentdesk.core.exceptions import NotFoundError
from agentdesk.database import utcnow
from agentdesk.models.conversation import Conversation
from agentdesk.models.message import Message
from agentdesk.prompts import PromptBuilder
from agentdesk.schemas.classification import ConversationAnalysis
from agentdesk.services.llm_client import CompletionClient
from agentdesk.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

TOO_SHORT_REASON = "Too short"


class ConversationAnalyzer:
    def __init__(
        self,
        db: Session,
        llm_client: Optional[CompletionClient] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        ticket_service: Optional[TicketService] = None,
    ):
        self.db = db
        self._llm_client = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.ticket_service = ticket_service or TicketService(db)

    @property
    def llm_client(self) -> CompletionClient:
        if self._llm_client is None:
            self._llm_client = CompletionClient()
        return self._llm_client

    async def analyze(
        self,
        agent_id: str,
        visitor_session_id: str,
        conversation_id: str,
    ) -> Optional[ConversationAnalysis]:
        """
        Analyze one conversation and persist the result

        Returns:
            The analysis, or None when the conversation was too short

        Raises:
            NotFoundError: Conversation does not belong to the agent/session
            ProviderError, ParseError: LLM call failed; nothing is written
        """
        conversation = self.db.query(Conversation).filter(
            Conversation.id == conversation_id,
            Conversation.agent_id == agent_id,
            Conversation.visitor_session_id == visitor_session_id,
        ).first()
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)

        messages = (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.sequence)
            .all()
        )

        word_count = sum(len(message.content.split()) for message in messages)
        if word_count < settings.ANALYSIS_MIN_WORDS:
            conversation.analyzed = True
            conversation.analysis_skipped = True
            conversation.analysis_skip_reason = TOO_SHORT_REASON
            conversation.analyzed_at = utcnow()
            self.db.commit()
            logger.info(f"Skipped analysis of conversation {conversation.id}: {word_count} words")
            return None

        prompt = self.prompt_builder.build_analysis_prompt(messages)
        data = await self.llm_client.complete_json(
            prompt,
            temperature=settings.ANALYSIS_TEMPERATURE,
            max_tokens=600,
        )
        analysis = ConversationAnalysis.from_llm(data)

        conversation.analysis = analysis.to_record()
        conversation.analyzed = True
        conversation.analysis_skipped = False
        conversation.analysis_skip_reason = None
        conversation.analyzed_at = utcnow()
        self.db.commit()

        logger.info(
            f"Stored analysis for conversation {conversation.id}: "
            f"{analysis.main_category.value}, sentiment {analysis.sentiment_score}, "
            f"urgency {analysis.urgency.value}"
        )

        self.ticket_service.create_from_analysis(conversation, analysis)
        return analysis
