"""
Lawyer AI backend interface.

Defines the contract for the remote services the chat core talks to:
streaming completions, action outcome reporting, file upload, legal
document generation and conversation history.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncGenerator

from lexchat.models.chat import (
    ActionReport,
    ChatStreamRequest,
    ConversationDetail,
    LegalDocument,
    LocalFile,
    UploadedFile,
)


class IChatBackend(ABC):
    """Abstract interface for the lawyer AI backend."""

    @abstractmethod
    async def open_stream(self, request: ChatStreamRequest) -> AsyncGenerator[bytes, None]:
        """
        Open a streaming chat completion.

        Awaiting this call opens the connection; iterating the returned
        generator yields raw body chunks in arrival order. Closing the
        generator aborts the underlying request.

        Args:
            request: Message and optional conversation ID

        Returns:
            Async generator of body chunks

        Raises:
            StreamOpenError: If the stream cannot be opened
            StreamReadError: (from iteration) if reading the body fails
        """
        pass

    @abstractmethod
    async def report_action_outcome(self, report: ActionReport) -> None:
        """
        Report the user's decision on an action directive.

        Raises:
            ApiResponseError: If the backend rejects the report
            TransportError: If the backend is unreachable
        """
        pass

    @abstractmethod
    async def upload_file(self, file: LocalFile) -> UploadedFile:
        """
        Upload a user file.

        Returns:
            Uploaded file with its public URL

        Raises:
            UploadError: If the upload fails or no URL is returned
        """
        pass

    @abstractmethod
    async def generate_document(self, conversation_id: str, prompt: str) -> LegalDocument:
        """
        Generate a legal document from the conversation context.

        Raises:
            DocumentGenerationError: If generation fails or returns nothing
        """
        pass

    @abstractmethod
    async def get_conversation_detail(self, conversation_id: str) -> ConversationDetail:
        """
        Fetch a stored conversation with its messages.

        Raises:
            NotFoundError: If the conversation does not exist
        """
        pass
