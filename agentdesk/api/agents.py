"""
Agent API endpoints
Agent registration and knowledge base uploads
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from agentdesk.api.deps import get_storage, get_train_dispatcher
from agentdesk.config import settings
from agentdesk.core.exceptions import NotFoundError, ValidationError
from agentdesk.database import get_db
from agentdesk.middleware.rate_limiter import upload_rate_limit
from agentdesk.models.agent import Agent
from agentdesk.models.document import Document
from agentdesk.schemas.operator import AgentCreate, AgentResponse, DocumentCreate, DocumentResponse
from agentdesk.services.quota_service import QuotaService
from agentdesk.storage import StorageBackend

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/agents", tags=["agents"])


def load_agent(agent_id: str, db: Session) -> Agent:
    agent = db.query(Agent).filter(Agent.id == agent_id).first()
    if agent is None:
        raise NotFoundError("agent", agent_id)
    return agent


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create_agent(
    payload: AgentCreate,
    db: Session = Depends(get_db),
):
    """
    Register an agent, creating its tenant on first use
    """
    QuotaService(db).ensure_tenant(payload.tenant_id, plan=payload.plan)

    agent = Agent(
        tenant_id=payload.tenant_id,
        name=payload.name,
        allowed_domains=payload.allowed_domains,
        hmac_secret=payload.hmac_secret,
        website_url=payload.website_url,
        platform_info=payload.platform_info,
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)

    logger.info(f"Created agent {agent.id} for tenant {agent.tenant_id}")
    return agent


@router.post(
    "/{agent_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@upload_rate_limit()
async def upload_document(
    agent_id: str,
    request: Request,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    dispatch_training: Callable[[str], None] = Depends(get_train_dispatcher),
):
    """
    Upload a text document and queue training

    Accepts either multipart form data with a ``file`` field or a JSON
    body ``{"name": ..., "content": ...}``.

    Returns:
        DocumentResponse: Created document with status="pending"

    Raises:
        404 unknown agent, 400 empty or oversized document
    """
    agent = load_agent(agent_id, db)

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or isinstance(upload, str):
            raise ValidationError("Multipart upload requires a 'file' field")
        name = upload.filename or "document.txt"
        mime_type = upload.content_type or "text/plain"
        content = await upload.read()
    else:
        try:
            body = DocumentCreate(**(await request.json()))
        except Exception as e:
            raise ValidationError(f"Invalid document body: {e}")
        name = body.name
        mime_type = "text/plain"
        content = body.content.encode("utf-8")

    if not content.strip():
        raise ValidationError("Document is empty")

    if len(content) > settings.MAX_UPLOAD_SIZE:
        max_size_mb = settings.MAX_UPLOAD_SIZE / (1024 * 1024)
        raise ValidationError(f"File too large. Maximum size is {max_size_mb:.0f}MB")

    document = Document(
        agent_id=agent.id,
        name=name,
        content_type=mime_type,
        size_bytes=len(content),
        status="pending",
    )
    db.add(document)
    db.flush()

    document.file_path = storage.save(content, agent.id, document.id, name)
    db.commit()
    db.refresh(document)

    logger.info(f"Stored document {document.id} ({len(content)} bytes) for agent {agent.id}")

    try:
        dispatch_training(document.id)
    except Exception as e:
        logger.error(f"Failed to queue training for document {document.id}: {e}", exc_info=True)

    return document
