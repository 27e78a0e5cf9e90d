"""
FastAPI dependencies
Shared provider clients, services and background dispatchers
"""

from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from agentdesk.core.security import SecurityGate
from agentdesk.database import get_db
from agentdesk.embeddings import OpenAIEmbedder
from agentdesk.services.chat_service import ChatService, celery_gap_dispatcher
from agentdesk.services.llm_client import CompletionClient
from agentdesk.services.prompt_orchestrator import PromptOrchestrator
from agentdesk.storage import StorageBackend, get_storage_backend


@lru_cache()
def get_embedder() -> OpenAIEmbedder:
    """Process-wide embedder sharing the provider rate limiter"""
    return OpenAIEmbedder()


@lru_cache()
def get_completion_client() -> CompletionClient:
    return CompletionClient()


@lru_cache()
def get_prompt_orchestrator() -> PromptOrchestrator:
    return PromptOrchestrator(llm_client=get_completion_client())


@lru_cache()
def get_security_gate() -> SecurityGate:
    return SecurityGate()


def get_gap_dispatcher() -> Callable[[str, str, str], None]:
    return celery_gap_dispatcher


def get_train_dispatcher() -> Callable[[str], None]:
    """Callable that queues ingestion of a stored document"""
    from agentdesk.tasks.train_agent import train_agent_task

    return train_agent_task.delay


def get_storage() -> StorageBackend:
    return get_storage_backend()


def get_chat_service(
    db: Session = Depends(get_db),
    embedder: OpenAIEmbedder = Depends(get_embedder),
    orchestrator: PromptOrchestrator = Depends(get_prompt_orchestrator),
    security_gate: SecurityGate = Depends(get_security_gate),
    gap_dispatcher: Callable[[str, str, str], None] = Depends(get_gap_dispatcher),
) -> ChatService:
    """Chat service bound to the request's database session"""
    return ChatService(
        db,
        embedder=embedder,
        orchestrator=orchestrator,
        security_gate=security_gate,
        gap_dispatcher=gap_dispatcher,
    )
