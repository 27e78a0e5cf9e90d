"""
DocumentChunk Model - retrievable knowledge with its embedding

The embedding is a pgvector column on PostgreSQL and JSON elsewhere.
It is either a full-length vector or NULL; NULL rows are kept for
re-embedding and skipped by retrieval.
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, JSON, DateTime, Index
from sqlalchemy.ext.mutable import MutableDict
from pgvector.sqlalchemy import Vector
import uuid

from agentdesk.config import settings
from agentdesk.database import Base, utcnow


EmbeddingType = JSON(none_as_null=True).with_variant(Vector(settings.EMBEDDING_DIMENSIONS), "postgresql")


class DocumentChunk(Base):
    """
    Document chunk model

    Attributes:
        agent_id: Owning agent (lookup key)
        document_id: Source document, if the chunk came from an upload
        source_name: Source name reported in relevantSources
        content: Chunk text
        chunk_index: Ordinal within the source (0-based)
        total_chunks: Chunk count of the source
        embedding: Vector or NULL when embedding failed
        embedding_error: Reason the embedding is NULL
    """

    __tablename__ = "document_chunks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=True, index=True)

    source_name = Column(String(500), nullable=True)
    content = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False, default=0)
    total_chunks = Column(Integer, nullable=False, default=1)

    embedding = Column(EmbeddingType, nullable=True)
    embedding_error = Column(Text, nullable=True)

    metadata_ = Column("metadata", MutableDict.as_mutable(JSON), default=dict)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_chunk_agent_created", "agent_id", "created_at"),
    )

    def __repr__(self):
        return f"<DocumentChunk(id={self.id}, agent_id={self.agent_id}, chunk_index={self.chunk_index})>"
