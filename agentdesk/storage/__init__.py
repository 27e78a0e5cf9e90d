"""
File storage system
Blob store for uploaded knowledge documents
"""

from agentdesk.storage.base import StorageBackend
from agentdesk.storage.local import LocalStorage
from agentdesk.storage.factory import get_storage_backend

__all__ = ["StorageBackend", "LocalStorage", "get_storage_backend"]
