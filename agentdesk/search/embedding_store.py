"""
Embedding Store
Persists chunk content, vectors and source metadata per agent
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from sqlalchemy.orm import Session

from agentdesk.database import utcnow
from agentdesk.models.chunk import DocumentChunk

logger = logging.getLogger(__name__)


@dataclass
class ChunkRecord:
    """Chunk ready to be written"""
    content: str
    embedding: Optional[List[float]]
    source_name: Optional[str] = None
    document_id: Optional[str] = None
    chunk_index: int = 0
    total_chunks: int = 1
    embedding_error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredChunk:
    """Chunk read back for similarity scoring"""
    id: str
    content: str
    source_name: Optional[str]
    chunk_index: int
    embedding: np.ndarray


class EmbeddingStore:
    """Per-agent chunk storage on top of the SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def bulk_write(self, agent_id: str, records: List[ChunkRecord]) -> List[DocumentChunk]:
        """
        Write chunks in a single transaction

        Chunks written together share one creation timestamp and keep
        their list order through chunk_index.
        """
        created_at = utcnow()
        chunks = [
            DocumentChunk(
                agent_id=agent_id,
                document_id=record.document_id,
                source_name=record.source_name,
                content=record.content,
                chunk_index=record.chunk_index,
                total_chunks=record.total_chunks,
                embedding=record.embedding,
                embedding_error=record.embedding_error,
                metadata_=dict(record.metadata),
                created_at=created_at,
            )
            for record in records
        ]
        self.db.add_all(chunks)
        self.db.commit()

        failed = sum(1 for record in records if record.embedding is None)
        logger.info(
            f"Stored {len(chunks)} chunks for agent {agent_id} "
            f"({failed} without embedding)"
        )
        return chunks

    def count(self, agent_id: str) -> int:
        """Total chunks for the agent, embedded or not"""
        return self.db.query(DocumentChunk).filter(
            DocumentChunk.agent_id == agent_id
        ).count()

    def load_embedded(self, agent_id: str) -> List[StoredChunk]:
        """
        Full scan of the agent's chunks that have an embedding

        Rows come back in storage order, which similarity ranking
        relies on to break ties.
        """
        rows = (
            self.db.query(
                DocumentChunk.id,
                DocumentChunk.content,
                DocumentChunk.source_name,
                DocumentChunk.chunk_index,
                DocumentChunk.embedding,
            )
            .filter(
                DocumentChunk.agent_id == agent_id,
                DocumentChunk.embedding.isnot(None),
            )
            .order_by(
                DocumentChunk.created_at,
                DocumentChunk.document_id,
                DocumentChunk.chunk_index,
                DocumentChunk.id,
            )
            .all()
        )

        return [
            StoredChunk(
                id=row.id,
                content=row.content,
                source_name=row.source_name,
                chunk_index=row.chunk_index,
                embedding=np.asarray(row.embedding, dtype=float),
            )
            for row in rows
            if row.embedding is not None
        ]
