"""
Ingestion Service - read → chunk → embed → store for one uploaded document

Chunks are embedded by a bounded pool of coroutines; each embedding
still waits its turn on the shared provider rate limiter. A chunk whose
embedding fails is stored with a NULL embedding and never aborts its
siblings.
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from agentdesk.chunking import TextChunker
from agentdesk.config import settings
from agentdesk.database import utcnow
from agentdesk.embeddings import OpenAIEmbedder
from agentdesk.models.agent import Agent
from agentdesk.models.document import Document
from agentdesk.search.embedding_store import ChunkRecord, EmbeddingStore
from agentdesk.storage import StorageBackend, get_storage_backend

logger = logging.getLogger(__name__)


class IngestionService:
    def __init__(
        self,
        db: Session,
        embedder: Optional[OpenAIEmbedder] = None,
        chunker: Optional[TextChunker] = None,
        storage: Optional[StorageBackend] = None,
        max_concurrent: int = settings.EMBEDDING_MAX_CONCURRENT,
    ):
        self.db = db
        self.embedder = embedder or OpenAIEmbedder()
        self.chunker = chunker or TextChunker()
        self.storage = storage or get_storage_backend()
        self.max_concurrent = max(1, max_concurrent)

    async def embed_chunks(self, source_name: str, document_id: Optional[str], chunks: List[str]) -> List[ChunkRecord]:
        """Embed every chunk with at most ``max_concurrent`` calls in flight"""
        semaphore = asyncio.Semaphore(self.max_concurrent)
        total = len(chunks)

        async def embed_one(index: int, content: str) -> ChunkRecord:
            async with semaphore:
                embedding, error = await self.embedder.embed_for_ingestion(content)
            return ChunkRecord(
                content=content,
                embedding=embedding,
                embedding_error=error,
                source_name=source_name,
                document_id=document_id,
                chunk_index=index,
                total_chunks=total,
            )

        return list(await asyncio.gather(*(embed_one(i, c) for i, c in enumerate(chunks))))

    async def ingest_document(self, document_id: str) -> Optional[Document]:
        """
        Ingest a pending document

        Returns:
            The document in its final state, or None if it does not exist
        """
        document = self.db.query(Document).filter(
            Document.id == document_id
        ).with_for_update().first()

        if document is None:
            logger.error(f"Document {document_id} not found")
            return None

        if document.status != "pending":
            logger.warning(
                f"Document {document_id} already has status '{document.status}', skipping"
            )
            return document

        agent_id = document.agent_id
        document.status = "processing"
        self.db.query(Agent).filter(Agent.id == agent_id).update(
            {Agent.training_status: "training", Agent.training_error: None},
            synchronize_session=False,
        )
        self.db.commit()
        logger.info(f"Training agent {agent_id} on document {document.name}")

        try:
            raw = self.storage.read(document.file_path, agent_id)
            text = raw.decode("utf-8", errors="replace")

            chunks = self.chunker.chunk_list(text)
            records = await self.embed_chunks(document.name, document.id, chunks)
            EmbeddingStore(self.db).bulk_write(agent_id, records)

            failed = sum(1 for record in records if record.embedding is None)
            document.status = "completed"
            document.chunk_count = len(records)
            document.failed_embeddings = failed
            document.processed_at = utcnow()

            self.db.query(Agent).filter(Agent.id == agent_id).update(
                {
                    Agent.total_chunks: Agent.total_chunks + len(records),
                    Agent.training_status: "trained",
                },
                synchronize_session=False,
            )
            self.db.commit()

            logger.info(
                f"Document {document.id} ingested: {len(records)} chunks, "
                f"{failed} without embedding"
            )

        except Exception as e:
            logger.error(f"Failed to ingest document {document_id}: {e}", exc_info=True)
            self.db.rollback()

            document = self.db.query(Document).filter(Document.id == document_id).first()
            document.status = "failed"
            document.error_message = str(e)[:1000]
            document.processed_at = utcnow()
            self.db.query(Agent).filter(Agent.id == agent_id).update(
                {Agent.training_status: "error", Agent.training_error: str(e)[:1000]},
                synchronize_session=False,
            )
            self.db.commit()

        self.db.refresh(document)
        return document
