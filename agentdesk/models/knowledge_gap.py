"""
KnowledgeGap Model - cluster of questions the agent could not answer
"""

from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, JSON, DateTime, Text
from sqlalchemy.ext.mutable import MutableList
import uuid

from agentdesk.database import Base, utcnow


class KnowledgeGap(Base):
    """
    Knowledge gap model

    Attributes:
        category: Short 2-4 word topic label
        representative_question: Normalized question for the cluster
        count: Occurrences; only ever incremented
        recent_questions: Bounded list of raw question variants, newest last
        filled: An operator answered it and a chunk was created
        chunk_id: Chunk created from the operator's answer
        skipped: Operator dismissed the gap without answering
    """

    __tablename__ = "knowledge_gaps"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)

    category = Column(String(255), nullable=False)
    representative_question = Column(Text, nullable=False)
    count = Column(Integer, nullable=False, default=1)
    recent_questions = Column(MutableList.as_mutable(JSON), default=list)

    first_asked_at = Column(DateTime, default=utcnow)
    last_asked_at = Column(DateTime, default=utcnow)

    filled = Column(Boolean, nullable=False, default=False)
    filled_at = Column(DateTime, nullable=True)
    answer = Column(Text, nullable=True)
    chunk_id = Column(String(36), ForeignKey("document_chunks.id", ondelete="SET NULL"), nullable=True)

    skipped = Column(Boolean, nullable=False, default=False)
    skipped_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<KnowledgeGap(id={self.id}, category={self.category}, count={self.count})>"
