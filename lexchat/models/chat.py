"""
Chat model definitions.

Conversation state as observed by the UI, the classified stream events that
drive it, and the payloads exchanged with the lawyer AI backend.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lexchat.models.enums import ActionStatus, ActionType, MessageRole, SessionState


# ===========================================
# Conversation state
# ===========================================


class ActionDirective(BaseModel):
    """Structured instruction asking the client to show an interactive card."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Directive type (upload, download, confirm, ...)")
    title: str = Field("", description="Card title")
    message: str = Field("", description="Card body")
    data: Any = Field(None, description="Opaque payload echoed back when reporting the outcome")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("action type must be a non-empty string")
        return value.strip()

    @field_validator("title", "message", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @property
    def action_type(self) -> Optional[ActionType]:
        """Known directive type, or None for types this client does not act on."""
        return ActionType.parse(self.type)


class ChatMessage(BaseModel):
    """One message of a conversation. Instances are immutable snapshots."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex, description="Client-side message ID")
    role: MessageRole
    content: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    is_streaming: bool = False
    server_message_id: Optional[str] = None
    action_data: Optional[ActionDirective] = None
    action_status: Optional[ActionStatus] = None
    action_response: Optional[str] = None
    action_metadata: dict[str, Any] = Field(default_factory=dict)

    def matches(self, message_id: str) -> bool:
        """True if message_id is either the client ID or the server-assigned ID."""
        return self.id == message_id or (
            self.server_message_id is not None and self.server_message_id == message_id
        )

    @property
    def reference_id(self) -> str:
        """ID used when talking to the backend about this message."""
        return self.server_message_id or self.id


class Conversation(BaseModel):
    """Ordered, immutable snapshot of a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    title: str = ""
    messages: tuple[ChatMessage, ...] = ()

    def find(self, message_id: str) -> Optional[ChatMessage]:
        for message in self.messages:
            if message.matches(message_id):
                return message
        return None


# ===========================================
# Classified stream events
# ===========================================


@dataclass(frozen=True, kw_only=True)
class StreamEvent:
    """Base for classified events; IDs ride along when the frame carried them."""

    server_message_id: Optional[str] = None
    conversation_id: Optional[str] = None


@dataclass(frozen=True)
class TextDelta(StreamEvent):
    text: str


@dataclass(frozen=True)
class ActionEvent(StreamEvent):
    directive: ActionDirective


@dataclass(frozen=True)
class Completion(StreamEvent):
    """Backend finished producing the message (finish reason "stop")."""


@dataclass(frozen=True)
class MetadataUpdate(StreamEvent):
    """Well-formed control frame with no content (e.g. role-only delta)."""


@dataclass(frozen=True)
class Unparseable(StreamEvent):
    frame: str
    reason: str = ""


ChatEvent = Union[TextDelta, ActionEvent, Completion, MetadataUpdate, Unparseable]


# ===========================================
# Backend payloads
# ===========================================


class ChatStreamRequest(BaseModel):
    """Body of the streaming chat call."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="User message")
    conversation_id: Optional[str] = Field(None, alias="conversationId", description="Conversation ID")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ActionReport(BaseModel):
    """Outcome of an action directive, reported back to the backend."""

    model_config = ConfigDict(populate_by_name=True)

    action_id: str = Field(..., alias="actionId", description="Directive data, JSON-encoded")
    response: str = Field(..., description="JSON-encoded decision envelope")
    message_id: Optional[str] = Field(None, alias="messageId")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class LocalFile(BaseModel):
    """File picked by the user for an upload action."""

    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


class UploadedFile(BaseModel):
    """Result of a successful upload."""

    url: str
    name: str
    size: int


class LegalDocument(BaseModel):
    """Generated legal document ready for display."""

    content: str
    title: str = "法律文书"
    file_name: str = "法律文书.docx"
    document_type: Optional[str] = None
    explanation: Optional[str] = None


class ConversationInfo(BaseModel):
    """Conversation header as stored by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    user_id: Optional[str] = Field(None, alias="userId")
    created_time: Optional[str] = Field(None, alias="createdTime")
    last_message_time: Optional[str] = Field(None, alias="lastMessageTime")
    status: Optional[int] = None


class HistoryMessage(BaseModel):
    """Stored message of a past conversation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    role: MessageRole
    content: str = ""
    timestamp: int = 0  # epoch milliseconds
    message_id: Optional[str] = Field(None, alias="messageId")


class ConversationDetail(BaseModel):
    """Conversation header plus its stored messages."""

    model_config = ConfigDict(extra="ignore")

    conversation: Optional[ConversationInfo] = None
    messages: list[HistoryMessage] = Field(default_factory=list)


# ===========================================
# UI-facing view state
# ===========================================


class Notice(BaseModel):
    """Transient warning shown to the user."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    message: str
    created_at: datetime = Field(default_factory=datetime.now)


class ChatViewSnapshot(BaseModel):
    """Everything a chat view renders, captured at one instant."""

    view_id: str
    conversation: Conversation
    session_state: SessionState
    error: Optional[str] = None
    notices: list[str] = Field(default_factory=list)
    generating_document: bool = False
