"""
Knowledge Gap Task
Classifies one unanswered question off the chat request path
"""

import asyncio
import logging
from celery import Task

from agentdesk.worker import celery_app
from agentdesk.database import SessionLocal
from agentdesk.services.knowledge_gap_service import KnowledgeGapService

logger = logging.getLogger(__name__)


class ClassifyKnowledgeGapTask(Task):
    """Celery task for knowledge gap classification"""

    async def process(self, agent_id: str, question: str, original_message: str):
        """
        Merge the question into a matching gap or create a new one

        Every failure is logged and absorbed; the visitor already has a reply.
        """
        db = SessionLocal()
        try:
            outcome = await KnowledgeGapService(db).classify(agent_id, question, original_message)
            return outcome.to_dict()
        except Exception as e:
            db.rollback()
            logger.error(f"Knowledge gap classification failed for agent {agent_id}: {e}", exc_info=True)
            return None
        finally:
            db.close()


@celery_app.task(
    bind=True,
    base=ClassifyKnowledgeGapTask,
    name="classify_knowledge_gap",
    ignore_result=True,
)
def classify_knowledge_gap_task(self, agent_id: str, question: str, original_message: str):
    """
    Celery task wrapper for knowledge gap classification

    Args:
        agent_id: Agent the question was asked to
        question: Unanswered question from the assistant turn
        original_message: Visitor's raw message
    """
    return asyncio.run(self.process(agent_id, question, original_message))
