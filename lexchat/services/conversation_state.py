"""
Conversation state machine.

Owns the ordered message list of one conversation and applies classified
stream events to the single open assistant message. Every mutation replaces
the whole Conversation snapshot, so listeners never observe a torn list.
"""

from typing import Any, Callable, Iterable, Optional

from lexchat.core.logger import setup_logger
from lexchat.models.chat import (
    ActionEvent,
    ChatEvent,
    ChatMessage,
    Completion,
    Conversation,
    TextDelta,
)
from lexchat.models.enums import ActionStatus, MessageRole

logger = setup_logger(__name__)

NO_RESPONSE_NOTICE = "抱歉，未收到AI响应数据，请检查网络连接或稍后再试。"
READ_ERROR_NOTICE = "抱歉，流式读取出现错误，请稍后再试。"
SEND_ERROR_NOTICE = "抱歉，发送消息时出现错误，请稍后再试。"

Listener = Callable[[Conversation], None]


class ConversationStateMachine:
    """
    Message list plus the open/sealed lifecycle of assistant messages.

    At most one message is open at a time. Events addressed to a message
    that is not open are dropped.
    """

    def __init__(
        self,
        conversation_id: str = "",
        title: str = "",
        messages: Iterable[ChatMessage] = (),
        default_title: str = "",
    ):
        self._conversation = Conversation(
            id=conversation_id or "",
            title=title,
            messages=tuple(messages),
        )
        self._default_title = default_title
        self._open_message_id: Optional[str] = None
        self._open_received_data = False
        self._listeners: list[Listener] = []

    # ===========================================
    # Observation
    # ===========================================

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def conversation_id(self) -> str:
        return self._conversation.id

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._conversation.messages

    @property
    def open_message_id(self) -> Optional[str]:
        return self._open_message_id

    def find(self, message_id: str) -> Optional[ChatMessage]:
        return self._conversation.find(message_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ===========================================
    # Conversation-level transitions
    # ===========================================

    def assign_conversation_id(self, conversation_id: Optional[str]) -> bool:
        """Set the conversation ID once; later assignments are ignored."""
        if not conversation_id or self._conversation.id:
            return False
        updates: dict[str, Any] = {"id": conversation_id}
        if not self._conversation.title and self._default_title:
            updates["title"] = self._default_title
        self._commit(self._conversation.model_copy(update=updates))
        logger.info(f"Conversation assigned id {conversation_id}")
        return True

    def set_title(self, title: str) -> None:
        self._commit(self._conversation.model_copy(update={"title": title}))

    def reset(self, conversation: Conversation) -> None:
        """Replace the whole conversation (history load / restore)."""
        if self._open_message_id is not None:
            raise RuntimeError("Cannot reset a conversation while a message is streaming")
        self._commit(conversation)

    def append_user_message(self, text: str) -> ChatMessage:
        message = ChatMessage(role=MessageRole.USER, content=text)
        self._append(message)
        return message

    def open_assistant_message(self) -> ChatMessage:
        """Append an empty streaming assistant message and make it the open one."""
        if self._open_message_id is not None:
            logger.warning(f"Sealing message {self._open_message_id} left open by a previous session")
            self.cancel_stream(self._open_message_id)

        message = ChatMessage(role=MessageRole.ASSISTANT, content="", is_streaming=True)
        self._append(message)
        self._open_message_id = message.id
        self._open_received_data = False
        return message

    def truncate_after_last_user(self) -> Optional[ChatMessage]:
        """
        Drop every message after the last user message.

        Returns:
            The last user message, or None if there is none
        """
        messages = self._conversation.messages
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].role == MessageRole.USER:
                kept = messages[: index + 1]
                if self._open_message_id and not any(m.id == self._open_message_id for m in kept):
                    self._open_message_id = None
                self._commit(self._conversation.model_copy(update={"messages": kept}))
                return messages[index]
        return None

    # ===========================================
    # Stream events
    # ===========================================

    def apply(self, message_id: str, event: ChatEvent) -> bool:
        """
        Apply one classified event to the open message.

        Returns:
            True if the event produced content or a directive
        """
        message = self._get_open(message_id)
        if message is None:
            logger.debug(f"Dropping {type(event).__name__} for sealed message {message_id}")
            return False

        self.assign_conversation_id(event.conversation_id)

        updates: dict[str, Any] = {}
        if event.server_message_id:
            updates["server_message_id"] = event.server_message_id

        useful = False
        if isinstance(event, TextDelta):
            updates["content"] = message.content + event.text
            useful = True
        elif isinstance(event, ActionEvent):
            useful = True
            if message.action_data is None:
                updates["action_data"] = event.directive
            else:
                logger.warning(
                    f"Message {message_id} already carries a '{message.action_data.type}' directive; "
                    f"ignoring '{event.directive.type}'"
                )
        elif isinstance(event, Completion):
            updates["is_streaming"] = False

        if updates:
            self._replace(message_id, **updates)
        if useful:
            self._open_received_data = True
        if isinstance(event, Completion):
            self._open_message_id = None
        return useful

    def end_stream(self, message_id: str) -> None:
        """Stream ended without a completion marker."""
        message = self._get_open(message_id)
        if message is None:
            return
        updates: dict[str, Any] = {"is_streaming": False}
        if not self._open_received_data:
            updates["content"] = NO_RESPONSE_NOTICE
        self._seal(message_id, **updates)

    def fail_stream(self, message_id: str, notice: str = READ_ERROR_NOTICE) -> None:
        """Stream failed; partial content survives, empty content gets the notice."""
        message = self._get_open(message_id)
        if message is None:
            return
        updates: dict[str, Any] = {"is_streaming": False}
        if not message.content:
            updates["content"] = notice
        self._seal(message_id, **updates)

    def cancel_stream(self, message_id: str) -> None:
        """User cancelled; seal with whatever content has arrived."""
        if self._get_open(message_id) is None:
            return
        self._seal(message_id, is_streaming=False)

    # ===========================================
    # Actions
    # ===========================================

    def update_action(
        self,
        message_id: str,
        status: ActionStatus,
        response: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[ChatMessage]:
        """Record an action status on the message matching message_id (client or server ID)."""
        message = self.find(message_id)
        if message is None:
            logger.warning(f"Action update for unknown message {message_id}")
            return None
        updates: dict[str, Any] = {"action_status": status, "action_response": response}
        if metadata is not None:
            updates["action_metadata"] = metadata
        return self._replace(message.id, **updates)

    # ===========================================
    # Internals
    # ===========================================

    def _get_open(self, message_id: str) -> Optional[ChatMessage]:
        if message_id != self._open_message_id:
            return None
        return self.find(message_id)

    def _seal(self, message_id: str, **updates: Any) -> None:
        self._replace(message_id, **updates)
        self._open_message_id = None

    def _append(self, message: ChatMessage) -> None:
        messages = self._conversation.messages + (message,)
        self._commit(self._conversation.model_copy(update={"messages": messages}))

    def _replace(self, message_id: str, **updates: Any) -> Optional[ChatMessage]:
        replaced: Optional[ChatMessage] = None
        messages = []
        for message in self._conversation.messages:
            if replaced is None and message.id == message_id:
                message = message.model_copy(update=updates)
                replaced = message
            messages.append(message)
        if replaced is not None:
            self._commit(self._conversation.model_copy(update={"messages": tuple(messages)}))
        return replaced

    def _commit(self, conversation: Conversation) -> None:
        self._conversation = conversation
        for listener in list(self._listeners):
            try:
                listener(conversation)
            except Exception as e:
                logger.error(f"Conversation listener failed: {e}")
