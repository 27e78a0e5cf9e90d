"""
Knowledge Gap Service

Groups unanswered visitor questions into knowledge gaps. The LLM decides
whether a new question restates an existing gap; a match increments the
gap's count with an atomic UPDATE, anything else creates a new gap.
Operators later fill a gap (its answer becomes a retrievable chunk) or
skip it.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from agentdesk.config import settings
from agentdesk.core.exceptions import NotFoundError, ParseError, ProviderError, ValidationError
from agentdesk.database import utcnow
from agentdesk.models.agent import Agent
from agentdesk.models.knowledge_gap import KnowledgeGap
from agentdesk.prompts import PromptBuilder
from agentdesk.schemas.classification import GapClassification
from agentdesk.search.embedding_store import ChunkRecord, EmbeddingStore
from agentdesk.services.llm_client import CompletionClient

logger = logging.getLogger(__name__)


def normalize_question(text: str) -> str:
    return " ".join((text or "").lower().split()).rstrip("?!. ")


@dataclass
class GapOutcome:
    """Result of classifying one unanswered question"""
    matched: bool
    gap_id: str
    category: str
    representative_question: str
    confidence: float

    def to_dict(self) -> dict:
        return {
            "matched": self.matched,
            "gapId": self.gap_id,
            "category": self.category,
            "representativeQuestion": self.representative_question,
            "confidence": self.confidence,
        }


class KnowledgeGapService:
    """Classify, list, fill and skip knowledge gaps for an agent"""

    def __init__(
        self,
        db: Session,
        llm_client: Optional[CompletionClient] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.db = db
        self._llm_client = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()

    @property
    def llm_client(self) -> CompletionClient:
        if self._llm_client is None:
            self._llm_client = CompletionClient()
        return self._llm_client

    def _open_gaps_query(self, agent_id: str):
        return self.db.query(KnowledgeGap).filter(
            KnowledgeGap.agent_id == agent_id,
            KnowledgeGap.filled.is_(False),
            KnowledgeGap.skipped.is_(False),
        )

    def list_gaps(self, agent_id: str) -> List[KnowledgeGap]:
        """Open gaps, most asked first"""
        return (
            self._open_gaps_query(agent_id)
            .order_by(KnowledgeGap.count.desc(), KnowledgeGap.last_asked_at.desc())
            .all()
        )

    def get_gap(self, agent_id: str, gap_id: str) -> KnowledgeGap:
        gap = self.db.query(KnowledgeGap).filter(
            KnowledgeGap.id == gap_id,
            KnowledgeGap.agent_id == agent_id,
        ).first()
        if gap is None:
            raise NotFoundError("knowledge gap", gap_id)
        return gap

    async def classify(
        self,
        agent_id: str,
        unanswered_question: str,
        original_message: Optional[str] = None,
    ) -> GapOutcome:
        """
        Merge the question into a matching gap or create a new one

        Args:
            agent_id: Agent the question was asked to
            unanswered_question: Question the agent could not answer
            original_message: Visitor's raw message, for extra context

        Returns:
            GapOutcome describing the merged or created gap
        """
        question = (unanswered_question or "").strip()
        if not question:
            raise ValidationError("Unanswered question is empty")

        existing = self._open_gaps_query(agent_id).order_by(KnowledgeGap.first_asked_at).all()

        if not existing:
            classification = GapClassification.fallback(question)
            gap = self._create_gap(agent_id, classification, question)
            return self._outcome(gap, classification, matched=False)

        classification = await self._ask_classifier(existing, question, original_message)

        if classification is not None:
            by_id = {gap.id: gap for gap in existing}
            target = by_id.get(classification.existing_gap_id) if classification.matches_existing else None
            if classification.matches_existing and target is None:
                logger.warning(
                    f"Classifier matched unknown gap {classification.existing_gap_id}; creating new gap"
                )
        else:
            # Classifier unavailable: only an exact restatement is merged
            classification = GapClassification.fallback(question)
            wanted = normalize_question(question)
            target = next(
                (gap for gap in existing if normalize_question(gap.representative_question) == wanted),
                None,
            )

        if target is not None:
            self._merge_into(target, question)
            return self._outcome(target, classification, matched=True)

        gap = self._create_gap(agent_id, classification, question)
        return self._outcome(gap, classification, matched=False)

    async def _ask_classifier(
        self,
        gaps: List[KnowledgeGap],
        question: str,
        original_message: Optional[str],
    ) -> Optional[GapClassification]:
        prompt = self.prompt_builder.build_gap_classification_prompt(gaps, question, original_message)
        try:
            data = await self.llm_client.complete_json(
                prompt,
                temperature=settings.CLASSIFIER_TEMPERATURE,
                max_tokens=300,
            )
        except (ProviderError, ParseError) as e:
            logger.warning(f"Knowledge gap classifier failed, using exact match: {e}")
            return None
        return GapClassification.from_llm(data, question)

    def _merge_into(self, gap: KnowledgeGap, question: str) -> None:
        # count and recent_questions change under one row lock
        gap = (
            self.db.query(KnowledgeGap)
            .filter(KnowledgeGap.id == gap.id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        recent = list(gap.recent_questions or [])
        recent.append(question)
        gap.recent_questions = recent[-settings.GAP_RECENT_QUESTIONS_LIMIT:]
        gap.count = KnowledgeGap.count + 1
        gap.last_asked_at = utcnow()
        self.db.commit()
        self.db.refresh(gap)

        logger.info(f"Merged question into knowledge gap {gap.id} (count={gap.count})")

    def _create_gap(self, agent_id: str, classification: GapClassification, question: str) -> KnowledgeGap:
        now = utcnow()
        gap = KnowledgeGap(
            agent_id=agent_id,
            category=classification.category,
            representative_question=classification.representative_question,
            count=1,
            recent_questions=[question],
            first_asked_at=now,
            last_asked_at=now,
        )
        self.db.add(gap)
        self.db.commit()
        self.db.refresh(gap)

        logger.info(f"Created knowledge gap {gap.id} ({gap.category}) for agent {agent_id}")
        return gap

    @staticmethod
    def _outcome(gap: KnowledgeGap, classification: GapClassification, matched: bool) -> GapOutcome:
        return GapOutcome(
            matched=matched,
            gap_id=gap.id,
            category=gap.category,
            representative_question=gap.representative_question,
            confidence=classification.confidence,
        )

    async def fill_gap(self, agent_id: str, gap_id: str, answer: str, embedder) -> KnowledgeGap:
        """
        Turn an operator answer into a knowledge chunk and close the gap

        Args:
            embedder: OpenAIEmbedder used for the new chunk

        Raises:
            NotFoundError: Unknown gap
            ValidationError: Empty answer or gap already filled
            ProviderError: Answer could not be embedded; the gap stays open
        """
        answer = (answer or "").strip()
        if not answer:
            raise ValidationError("Answer is required")

        gap = self.get_gap(agent_id, gap_id)
        if gap.filled:
            raise ValidationError("Knowledge gap is already filled")

        content = f"Q: {gap.representative_question}\nA: {answer}"
        embedding, error = await embedder.embed_for_ingestion(content)
        if embedding is None:
            logger.error(f"Could not embed answer for knowledge gap {gap.id}: {error}")
            raise ProviderError(f"Embedding failed for knowledge gap answer: {error}")

        store = EmbeddingStore(self.db)
        chunk = store.bulk_write(
            agent_id,
            [
                ChunkRecord(
                    content=content,
                    embedding=embedding,
                    source_name=f"Knowledge gap: {gap.category}",
                    metadata={"knowledge_gap_id": gap.id},
                )
            ],
        )[0]

        gap.filled = True
        gap.filled_at = utcnow()
        gap.answer = answer
        gap.chunk_id = chunk.id

        self.db.query(Agent).filter(Agent.id == agent_id).update(
            {Agent.total_chunks: Agent.total_chunks + 1},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(gap)

        logger.info(f"Filled knowledge gap {gap.id} with chunk {chunk.id}")
        return gap

    def skip_gap(self, agent_id: str, gap_id: str) -> KnowledgeGap:
        gap = self.get_gap(agent_id, gap_id)
        gap.skipped = True
        gap.skipped_at = utcnow()
        self.db.commit()
        self.db.refresh(gap)
        logger.info(f"Skipped knowledge gap {gap.id}")
        return gap
