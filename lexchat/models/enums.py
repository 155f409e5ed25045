"""
Enum definitions for the application.

These enums are used across models and provide type-safe status values.
"""

from enum import Enum
from typing import Optional


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class ActionType(str, Enum):
    """
    Known action directive types.

    Directives with any other type are still attached to their message,
    they just have no side effect.
    """

    DIALOG = "dialog"
    PERSONAL_INFO = "personal_info"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    CONFIRM = "confirm"
    WARNING = "warning"
    INFO = "info"
    PROGRESS = "progress"
    LAWSUIT = "lawsuit"
    FIND_LAWYER = "find_lawyer"

    @classmethod
    def parse(cls, value: str) -> Optional["ActionType"]:
        try:
            return cls(value)
        except ValueError:
            return None


class ActionStatus(str, Enum):
    """Status of the action attached to a message."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"


class ActionDecision(str, Enum):
    """User (or automatic) decision on an action directive."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ACKNOWLEDGED = "acknowledged"  # warning / info cards
    VIEW_DETAILS = "view_details"  # progress cards
    COMPLETED = "completed"  # auto-dispatch on completion
    UPLOADED = "uploaded"
    DOWNLOADED = "downloaded"

    def to_status(self) -> ActionStatus:
        """Status recorded on the message once this decision is applied."""
        if self in (ActionDecision.ACKNOWLEDGED, ActionDecision.VIEW_DETAILS):
            return ActionStatus.CONFIRMED
        return ActionStatus(self.value)


class SessionState(str, Enum):
    """Lifecycle of one request/response streaming session."""

    IDLE = "idle"
    OPENING = "opening"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_active(self) -> bool:
        return self in (SessionState.OPENING, SessionState.STREAMING)
