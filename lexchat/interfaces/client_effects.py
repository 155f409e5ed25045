"""
Client effects interface.

Defines the contract for effects that only the UI can carry out on behalf
of an action: picking a local file, starting a browser download, navigating
to another page and showing a generated document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from lexchat.models.chat import LegalDocument, LocalFile


class IClientEffects(ABC):
    """Abstract interface for UI-side effects."""

    @abstractmethod
    async def pick_file(self, view_id: str, message_id: str, accept: str) -> Optional[LocalFile]:
        """
        Ask the user to choose a local file.

        Returns:
            The chosen file, or None if no file is available right now
            (the UI may deliver it later through a separate upload call)
        """
        pass

    @abstractmethod
    async def trigger_download(self, view_id: str, url: str, file_name: str) -> None:
        """Start a browser download of url saved as file_name."""
        pass

    @abstractmethod
    async def navigate(self, view_id: str, route: str) -> None:
        """Navigate the UI to route."""
        pass

    @abstractmethod
    async def show_document(self, view_id: str, document: LegalDocument) -> None:
        """Present a generated legal document."""
        pass
