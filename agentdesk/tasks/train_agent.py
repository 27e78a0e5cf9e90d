"""
Agent Training Task
Celery task that ingests one uploaded document into an agent's knowledge base
"""

import asyncio
import logging
from celery import Task

from agentdesk.worker import celery_app
from agentdesk.database import SessionLocal
from agentdesk.embeddings import OpenAIEmbedder
from agentdesk.services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)


class TrainAgentTask(Task):
    """Celery task for document ingestion"""

    async def process(self, document_id: str):
        """
        Ingest a document: read → chunk → embed → store

        Args:
            document_id: Document to ingest
        """
        db = SessionLocal()
        try:
            # Fresh embedder per run: each asyncio.run gets its own event loop
            service = IngestionService(db, embedder=OpenAIEmbedder())
            document = await service.ingest_document(document_id)
            if document is None:
                return {"document_id": document_id, "status": "missing"}
            return {
                "document_id": document.id,
                "status": document.status,
                "chunks": document.chunk_count,
                "failed_embeddings": document.failed_embeddings,
            }
        finally:
            db.close()


@celery_app.task(
    bind=True,
    base=TrainAgentTask,
    name="train_agent"
)
def train_agent_task(self, document_id: str):
    """
    Celery task wrapper for document ingestion

    Args:
        document_id: Document to ingest
    """
    return asyncio.run(self.process(document_id))
