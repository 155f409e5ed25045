"""
Conversation store interface.

Defines the explicit persistence boundary for chat views. Snapshots are
written and read only at view open/close and application shutdown.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from lexchat.models.chat import Conversation


class IConversationStore(ABC):
    """Abstract interface for conversation snapshot persistence."""

    @abstractmethod
    async def save(self, view_id: str, conversation: Conversation) -> None:
        """
        Persist a conversation snapshot.

        Raises:
            InfrastructureError: If the snapshot cannot be written
        """
        pass

    @abstractmethod
    async def load(self, view_id: str) -> Optional[Conversation]:
        """
        Load a previously saved snapshot.

        Returns:
            The snapshot, or None if nothing was saved for view_id
        """
        pass

    @abstractmethod
    async def delete(self, view_id: str) -> bool:
        """
        Delete a saved snapshot.

        Returns:
            True if a snapshot was deleted
        """
        pass
