"""
Document Model - uploaded source file for an agent's knowledge base
"""

from sqlalchemy import Column, String, Integer, BigInteger, ForeignKey, DateTime, Text
import uuid

from agentdesk.database import Base, utcnow


class Document(Base):
    """
    Document model

    Attributes:
        agent_id: Owning agent
        name: Original filename or title (reported as a source)
        content_type: MIME type
        file_path: Blob store key
        status: pending | processing | completed | failed
        chunk_count: Chunks written for this document
        failed_embeddings: Chunks stored with a null embedding
    """

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(500), nullable=False)
    content_type = Column(String(100), nullable=False, default="text/plain")
    file_path = Column(String(1000), nullable=True)
    size_bytes = Column(BigInteger, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="pending", index=True)
    chunk_count = Column(Integer, nullable=False, default=0)
    failed_embeddings = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    processed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Document(id={self.id}, name={self.name}, status={self.status})>"
