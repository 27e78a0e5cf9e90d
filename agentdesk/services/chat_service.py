"""
Chat Service - the widget chat use case

Runs one chat turn as a fixed pipeline:

    validate → load agent → security gate → quota check
    → knowledge base check → embed + retrieve → grounded completion
    → persist turn → increment usage
    → dispatch knowledge gap (detached) → analyze conversation (awaited)

Stages up to the quota check raise typed rejections. A missing knowledge
base short-circuits with a canned reply. Provider failures produce the
uniform fallback reply and an error event, with no usage increment.
Knowledge-gap dispatch and conversation analysis are best-effort.
"""

import asyncio
import logging
import uuid
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agentdesk.config import settings
from agentdesk.core.exceptions import NotFoundError, ProviderError, ValidationError
from agentdesk.core.security import SecurityGate
from agentdesk.database import utcnow
from agentdesk.embeddings import OpenAIEmbedder
from agentdesk.models.agent import Agent
from agentdesk.models.conversation import Conversation
from agentdesk.models.events import ErrorEvent, SecurityAlert
from agentdesk.models.message import Message
from agentdesk.models.visitor_session import VisitorSession
from agentdesk.schemas.chat import ChatRequest, ChatResponse
from agentdesk.schemas.classification import AnalysisTrigger
from agentdesk.search.embedding_store import EmbeddingStore
from agentdesk.search.similarity import RetrievalResult, SimilarityRetriever
from agentdesk.services.conversation_analyzer import ConversationAnalyzer
from agentdesk.services.prompt_orchestrator import OrchestratedReply, PromptOrchestrator, find_email
from agentdesk.services.quota_service import QuotaService
from agentdesk.utils.sanitize import preview, sanitize_dict, sanitize_string

logger = logging.getLogger(__name__)

GapDispatcher = Callable[[str, str, str], Any]


def celery_gap_dispatcher(agent_id: str, question: str, original_message: str) -> None:
    """Queue knowledge gap classification on the Celery worker"""
    from agentdesk.tasks.classify_knowledge_gap import classify_knowledge_gap_task

    classify_knowledge_gap_task.apply_async(args=(agent_id, question, original_message), retry=False)


class ChatService:
    """
    Coordinates one chat turn

    Collaborators are injectable so the API can share process-wide
    clients and tests can substitute fakes.
    """

    def __init__(
        self,
        db: Session,
        embedder: Optional[OpenAIEmbedder] = None,
        orchestrator: Optional[PromptOrchestrator] = None,
        security_gate: Optional[SecurityGate] = None,
        analyzer: Optional[ConversationAnalyzer] = None,
        gap_dispatcher: Optional[GapDispatcher] = None,
    ):
        self.db = db
        self.embedder = embedder or OpenAIEmbedder()
        self.orchestrator = orchestrator or PromptOrchestrator()
        self.security_gate = security_gate or SecurityGate()
        self.analyzer = analyzer or ConversationAnalyzer(db, llm_client=self.orchestrator.llm_client)
        self.gap_dispatcher = gap_dispatcher or celery_gap_dispatcher
        self.pending_dispatches: Set[asyncio.Future] = set()
        self.quota = QuotaService(db)
        self.retriever = SimilarityRetriever(EmbeddingStore(db))

    async def chat(self, request: ChatRequest, origin: Optional[str] = None) -> ChatResponse:
        """
        Answer one visitor message

        Raises:
            ValidationError: agentId or message missing
            NotFoundError: Agent does not exist
            DomainRejected, SignatureInvalid, TimestampExpired: Security gate
            LimitReached: Tenant quota exhausted
        """
        message = (request.message or "").strip()
        if not request.agent_id:
            raise ValidationError("agentId is required")
        if not message:
            raise ValidationError("message is required")

        agent = self.db.query(Agent).filter(Agent.id == request.agent_id).first()
        if agent is None:
            raise NotFoundError("agent", request.agent_id)

        session_id = request.session_id or str(uuid.uuid4())
        user_key = request.anonymous_user_id or session_id

        # The widget signs the message exactly as sent
        self.security_gate.authorize(
            agent_id=agent.id,
            message=request.message,
            origin=origin,
            allowed_domains=agent.allowed_domains or [],
            signature=request.hmac,
            timestamp=request.timestamp,
            secret=agent.hmac_secret,
            alert_sink=self._alert_recorder(agent.id),
        )

        self.quota.check_quota(agent.tenant_id)

        logger.info(f"Chat turn for agent {agent.id} from {user_key}: \"{preview(message)}\"")

        if not self.retriever.has_knowledge_base(agent.id):
            logger.info(f"Agent {agent.id} has no knowledge base; sending canned reply")
            self._persist_turn(
                agent, user_key, session_id, request, message,
                reply_text=settings.NO_KNOWLEDGE_BASE_REPLY,
                reply=None,
                retrieval=None,
            )
            return ChatResponse(
                response=settings.NO_KNOWLEDGE_BASE_REPLY,
                session_id=session_id,
                relevant_sources=[],
            )

        history = [
            {"role": turn.role.value, "content": turn.content}
            for turn in request.conversation_history
        ]

        try:
            query_vector = await self.embedder.embed(message)
            retrieval = self.retriever.search(agent.id, query_vector, k=settings.RETRIEVAL_TOP_K)
            reply = await self.orchestrator.generate(
                agent_name=agent.name,
                context_texts=retrieval.context_texts,
                message=message,
                history=history,
                session_data=request.session_data,
                platform_info=agent.platform_info,
                website_url=agent.website_url,
            )
        except ProviderError as e:
            logger.error(f"Provider failure answering agent {agent.id}: {e}", exc_info=True)
            self._record_error(agent, user_key, session_id, "generate", e)
            return ChatResponse(
                response=settings.FALLBACK_REPLY,
                session_id=session_id,
                relevant_sources=[],
            )

        conversation = self._persist_turn(
            agent, user_key, session_id, request, message,
            reply_text=reply.turn.reply,
            reply=reply,
            retrieval=retrieval,
        )

        self.quota.increment_usage(agent.tenant_id)

        turn = reply.turn
        if turn.knowledge_gap_detected and turn.unanswered_question:
            self._dispatch_gap(agent.id, turn.unanswered_question, message)

        if turn.should_analyze == AnalysisTrigger.TRUE and not conversation.analyzed:
            await self._analyze(agent.id, conversation)

        return ChatResponse(
            response=turn.reply,
            session_id=session_id,
            relevant_sources=retrieval.sources,
        )

    def _alert_recorder(self, agent_id: str):
        def record(alert_type: str, origin: Optional[str], message_preview: str) -> None:
            self.db.add(SecurityAlert(
                agent_id=agent_id,
                alert_type=alert_type,
                origin=origin,
                message_preview=message_preview,
            ))
            self.db.commit()
        return record

    def _record_error(self, agent: Agent, user_key: str, session_id: str, stage: str, error: Exception) -> None:
        try:
            self.db.add(ErrorEvent(
                agent_id=agent.id,
                tenant_id=agent.tenant_id,
                user_key=user_key,
                conversation_key=session_id,
                stage=stage,
                error_type=type(error).__name__,
                message=sanitize_string(str(error))[:1000],
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record error event: {e}", exc_info=True)

    def _get_or_create_session(self, agent_id: str, user_key: str) -> VisitorSession:
        session = self.db.query(VisitorSession).filter(
            VisitorSession.agent_id == agent_id,
            VisitorSession.user_key == user_key,
        ).first()
        if session is not None:
            return session

        session = VisitorSession(agent_id=agent_id, user_key=user_key)
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created it first
            self.db.rollback()
            session = self.db.query(VisitorSession).filter(
                VisitorSession.agent_id == agent_id,
                VisitorSession.user_key == user_key,
            ).one()
        return session

    def _get_or_create_conversation(self, session: VisitorSession, conversation_key: str) -> Conversation:
        conversation = self.db.query(Conversation).filter(
            Conversation.visitor_session_id == session.id,
            Conversation.conversation_key == conversation_key,
        ).first()
        if conversation is not None:
            return conversation

        conversation = Conversation(
            agent_id=session.agent_id,
            visitor_session_id=session.id,
            conversation_key=conversation_key,
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self.db.query(Conversation).filter(
                Conversation.visitor_session_id == session.id,
                Conversation.conversation_key == conversation_key,
            ).one()

        self.db.query(VisitorSession).filter(VisitorSession.id == session.id).update(
            {VisitorSession.conversation_count: VisitorSession.conversation_count + 1},
            synchronize_session=False,
        )
        self.db.commit()
        return conversation

    def _persist_turn(
        self,
        agent: Agent,
        user_key: str,
        session_id: str,
        request: ChatRequest,
        message: str,
        reply_text: str,
        reply: Optional[OrchestratedReply],
        retrieval: Optional[RetrievalResult],
    ) -> Conversation:
        """Write the user message and the assistant reply in arrival order"""
        session = self._get_or_create_session(agent.id, user_key)
        conversation = self._get_or_create_conversation(session, session_id)

        # Reserve two sequence numbers atomically
        self.db.query(Conversation).filter(Conversation.id == conversation.id).update(
            {Conversation.message_count: Conversation.message_count + 2},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(conversation)
        base_sequence = conversation.message_count - 2

        now = utcnow()
        if conversation.last_message_at and conversation.last_message_at > now:
            now = conversation.last_message_at

        assistant_metadata: Dict[str, Any] = {}
        relevance: Optional[List[Dict[str, Any]]] = None
        if reply is not None:
            turn = reply.turn
            assistant_metadata = {
                "shouldAnalyze": turn.should_analyze.value,
                "analysisReason": turn.analysis_reason,
                "knowledgeGapDetected": turn.knowledge_gap_detected,
                "unansweredQuestion": turn.unanswered_question,
                "requestEmail": turn.request_email,
                "parseFailed": turn.parse_failed,
                "usage": {
                    "promptTokens": reply.prompt_tokens,
                    "completionTokens": reply.completion_tokens,
                },
            }
            conversation.should_analyze = turn.should_analyze.value
            conversation.analysis_reason = turn.analysis_reason
        if retrieval is not None:
            relevance = [
                {
                    "chunkId": chunk["chunk_id"],
                    "similarity": chunk["score"],
                    "source": chunk["source"],
                }
                for chunk in retrieval.chunks
            ]

        self.db.add_all([
            Message(
                conversation_id=conversation.id,
                sequence=base_sequence + 1,
                role="user",
                content=message,
                created_at=now,
            ),
            Message(
                conversation_id=conversation.id,
                sequence=base_sequence + 2,
                role="assistant",
                content=reply_text,
                relevance=relevance,
                metadata_=assistant_metadata,
                created_at=now,
            ),
        ])

        conversation.last_message_at = now
        session.last_seen_at = now
        if request.session_data:
            session.metadata_ = sanitize_dict({
                key: value
                for key, value in request.session_data.items()
                if key in ("device", "location", "pageContext", "currentPath", "referrer", "behavior")
            })

        email = find_email([message])
        if email:
            session.email = email

        self.db.commit()
        return conversation

    def _dispatch_gap(self, agent_id: str, question: str, original_message: str) -> None:
        """Hand the question to the dispatcher on a worker thread without waiting"""
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, partial(self.gap_dispatcher, agent_id, question, original_message))
        self.pending_dispatches.add(future)
        future.add_done_callback(partial(self._dispatch_finished, agent_id))

    def _dispatch_finished(self, agent_id: str, future: asyncio.Future) -> None:
        self.pending_dispatches.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Failed to dispatch knowledge gap for agent {agent_id}: {error}", exc_info=error)

    async def _analyze(self, agent_id: str, conversation: Conversation) -> None:
        try:
            await self.analyzer.analyze(agent_id, conversation.visitor_session_id, conversation.id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Conversation analysis failed for {conversation.id}: {e}", exc_info=True)
