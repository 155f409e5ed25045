"""Pydantic models (schemas) for the application."""

from lexchat.models.enums import (
    ActionDecision,
    ActionStatus,
    ActionType,
    MessageRole,
    SessionState,
)
from lexchat.models.chat import (
    ActionDirective,
    ActionEvent,
    ActionReport,
    ChatEvent,
    ChatMessage,
    ChatStreamRequest,
    ChatViewSnapshot,
    Completion,
    Conversation,
    ConversationDetail,
    ConversationInfo,
    HistoryMessage,
    LegalDocument,
    LocalFile,
    MetadataUpdate,
    Notice,
    TextDelta,
    Unparseable,
    UploadedFile,
)

__all__ = [
    # Enums
    "ActionDecision",
    "ActionStatus",
    "ActionType",
    "MessageRole",
    "SessionState",
    # Conversation state
    "ActionDirective",
    "ChatMessage",
    "Conversation",
    "ChatViewSnapshot",
    "Notice",
    # Stream events
    "ActionEvent",
    "ChatEvent",
    "Completion",
    "MetadataUpdate",
    "TextDelta",
    "Unparseable",
    # Backend payloads
    "ActionReport",
    "ChatStreamRequest",
    "ConversationDetail",
    "ConversationInfo",
    "HistoryMessage",
    "LegalDocument",
    "LocalFile",
    "UploadedFile",
]
