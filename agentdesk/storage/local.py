"""
Local file storage with agent-scoped paths
Implements StorageBackend interface for local filesystem
"""

from pathlib import Path
from typing import BinaryIO, Union
from agentdesk.config import settings
from agentdesk.storage.base import StorageBackend


class LocalStorage(StorageBackend):
    """Local file storage under ``{base}/agents/{agent_id}/documents/{document_id}/``"""

    def __init__(self, base_path: str = settings.UPLOAD_DIR):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _agent_root(self, agent_id: str) -> Path:
        return self.base_path / "agents" / str(agent_id)

    def _resolve(self, storage_path: str, agent_id: str) -> Path:
        """Absolute path for a key, refusing keys outside the agent's directory"""
        absolute_path = (self.base_path / storage_path).resolve()
        try:
            absolute_path.relative_to(self._agent_root(agent_id).resolve())
        except ValueError:
            raise PermissionError(f"Access denied: file does not belong to agent {agent_id}")
        return absolute_path

    def save(
        self,
        file: Union[BinaryIO, bytes],
        agent_id: str,
        document_id: str,
        filename: str,
    ) -> str:
        safe_name = Path(filename).name or "document.txt"
        file_path = self._agent_root(agent_id) / "documents" / str(document_id) / safe_name
        file_path.parent.mkdir(parents=True, exist_ok=True)

        content = file if isinstance(file, bytes) else file.read()
        with open(file_path, "wb") as f:
            f.write(content)

        return str(file_path.relative_to(self.base_path))

    def read(self, storage_path: str, agent_id: str) -> bytes:
        with open(self._resolve(storage_path, agent_id), "rb") as f:
            return f.read()

    def exists(self, storage_path: str, agent_id: str) -> bool:
        try:
            return self._resolve(storage_path, agent_id).exists()
        except PermissionError:
            return False

    def delete(self, storage_path: str, agent_id: str) -> None:
        absolute_path = self._resolve(storage_path, agent_id)
        if absolute_path.exists():
            absolute_path.unlink()
