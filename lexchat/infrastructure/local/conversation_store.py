"""
Local file system conversation store.
"""

import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from lexchat.core.exceptions import InfrastructureError
from lexchat.interfaces.conversation_store import IConversationStore
from lexchat.models.chat import Conversation

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class LocalConversationStore(IConversationStore):
    """
    JSON snapshot per view, one file each.

    Stores files as ``<base_path>/<view_id>.json``.
    """

    def __init__(self, base_path: Optional[str] = None):
        """
        Initialize local conversation store.

        Args:
            base_path: Directory for snapshots (default: ./storage/conversations)
        """
        self.base_path = Path(base_path or "./storage/conversations")
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(self, view_id: str, conversation: Conversation) -> None:
        """Write the snapshot, replacing any earlier one."""
        file_path = self._resolve_path(view_id)
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(conversation.model_dump_json())
            tmp_path.replace(file_path)
        except OSError as e:
            raise InfrastructureError(f"Failed to save conversation snapshot: {e}")

    async def load(self, view_id: str) -> Optional[Conversation]:
        """Read the snapshot saved for view_id."""
        file_path = self._resolve_path(view_id)
        if not file_path.exists():
            return None
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return Conversation.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            raise InfrastructureError(f"Failed to load conversation snapshot: {e}")

    async def delete(self, view_id: str) -> bool:
        """Delete the snapshot saved for view_id."""
        file_path = self._resolve_path(view_id)
        try:
            if not file_path.exists():
                return False
            file_path.unlink()
            return True
        except OSError as e:
            raise InfrastructureError(f"Failed to delete conversation snapshot: {e}")

    def _resolve_path(self, view_id: str) -> Path:
        if not _SAFE_ID.match(view_id):
            raise InfrastructureError(f"Invalid view id: {view_id!r}")
        return self.base_path / f"{view_id}.json"
