"""
Storage backend factory
Creates the storage backend named by configuration
"""

import logging
from functools import lru_cache
from agentdesk.config import settings
from agentdesk.storage.base import StorageBackend
from agentdesk.storage.local import LocalStorage

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_storage_backend() -> StorageBackend:
    """
    Create the configured storage backend once per process

    Raises:
        ValueError: If STORAGE_BACKEND is not supported
    """
    backend_type = settings.STORAGE_BACKEND.lower()

    if backend_type == "local":
        logger.info(f"Using local file storage: {settings.UPLOAD_DIR}")
        return LocalStorage(base_path=settings.UPLOAD_DIR)

    raise ValueError(f"Invalid STORAGE_BACKEND: {backend_type}. Must be 'local'")
