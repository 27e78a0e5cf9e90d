"""
Abstract base class for storage backends
Defines the interface for the blob store holding uploaded documents
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Union


class StorageBackend(ABC):
    """Abstract base class for agent-scoped file storage"""

    @abstractmethod
    def save(
        self,
        file: Union[BinaryIO, bytes],
        agent_id: str,
        document_id: str,
        filename: str,
    ) -> str:
        """
        Save file under the agent's prefix

        Returns:
            str: Storage key for the saved file
        """
        pass

    @abstractmethod
    def read(self, storage_path: str, agent_id: str) -> bytes:
        """Read file content, verifying it belongs to the agent"""
        pass

    @abstractmethod
    def exists(self, storage_path: str, agent_id: str) -> bool:
        pass

    @abstractmethod
    def delete(self, storage_path: str, agent_id: str) -> None:
        pass
