"""
Chat views.

A ChatView wires together the state machine, session controller, action
manager and notice board of one conversation view and is the object the
UI talks to. ChatViewRegistry owns the open views and is the only place
where conversations cross the persistence boundary.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import uuid4

from lexchat.core.config import Settings, get_settings
from lexchat.core.exceptions import NotFoundError, SessionBusyError
from lexchat.core.logger import setup_logger
from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.interfaces.client_effects import IClientEffects
from lexchat.interfaces.conversation_store import IConversationStore
from lexchat.models.chat import (
    ChatMessage,
    ChatViewSnapshot,
    Conversation,
    ConversationDetail,
    LocalFile,
)
from lexchat.models.enums import ActionDecision, ActionStatus, MessageRole
from lexchat.services.action_manager import ActionLifecycleManager
from lexchat.services.conversation_state import ConversationStateMachine
from lexchat.services.event_classifier import parse_directive_json, split_action_markers
from lexchat.services.notice_board import NoticeBoard
from lexchat.services.realtime_service import RealtimeManager
from lexchat.services.stream_session import StreamSessionController

logger = setup_logger(__name__)


def conversation_from_detail(detail: ConversationDetail, conversation_id: str, default_title: str = "") -> Conversation:
    """
    Rebuild a sealed conversation from stored history.

    Assistant messages that carry a directive (bare JSON or a legacy marker)
    get it attached with status completed.
    """
    messages: list[ChatMessage] = []
    for index, stored in enumerate(detail.messages):
        content = stored.content
        directive = None
        if stored.role == MessageRole.ASSISTANT:
            directive = parse_directive_json(content)
            if directive is not None:
                content = ""
            else:
                content, directive = split_action_markers(content)

        messages.append(
            ChatMessage(
                id=f"{stored.role.value}_{index}_{stored.timestamp}",
                role=stored.role,
                content=content,
                timestamp=datetime.fromtimestamp(stored.timestamp / 1000) if stored.timestamp else datetime.now(),
                server_message_id=stored.message_id,
                action_data=directive,
                action_status=ActionStatus.COMPLETED if directive is not None else None,
            )
        )

    title = ""
    if detail.conversation is not None:
        title = detail.conversation.title
    return Conversation(
        id=conversation_id,
        title=title or default_title,
        messages=tuple(messages),
    )


def _sealed(conversation: Conversation) -> Conversation:
    # a snapshot taken mid-stream must not come back as an open message
    if not any(message.is_streaming for message in conversation.messages):
        return conversation
    messages = tuple(
        message.model_copy(update={"is_streaming": False}) if message.is_streaming else message
        for message in conversation.messages
    )
    return conversation.model_copy(update={"messages": messages})


class ChatView:
    """One conversation as seen by one UI view."""

    def __init__(
        self,
        view_id: str,
        backend: IChatBackend,
        effects: IClientEffects,
        settings: Optional[Settings] = None,
        realtime: Optional[RealtimeManager] = None,
        conversation: Optional[Conversation] = None,
    ):
        self.view_id = view_id
        self._backend = backend
        self._settings = settings or get_settings()
        self._realtime = realtime

        conversation = _sealed(conversation or Conversation())
        self.state = ConversationStateMachine(
            conversation_id=conversation.id,
            title=conversation.title,
            messages=conversation.messages,
            default_title=self._settings.DEFAULT_CONVERSATION_TITLE,
        )
        self.notices = NoticeBoard(ttl_seconds=self._settings.WARNING_TTL_SECONDS)
        self.actions = ActionLifecycleManager(
            view_id=view_id,
            state=self.state,
            backend=backend,
            effects=effects,
            notices=self.notices,
            settings=self._settings,
        )
        self.session = StreamSessionController(
            state=self.state,
            backend=backend,
            actions=self.actions,
        )

        self._unsubscribers: list[Callable[[], None]] = [
            self.state.subscribe(lambda _conversation: self._publish_snapshot()),
            self.notices.subscribe(lambda _messages: self._publish_snapshot()),
            self.session.subscribe(lambda _state: self._publish_snapshot()),
        ]

    def snapshot(self) -> ChatViewSnapshot:
        return ChatViewSnapshot(
            view_id=self.view_id,
            conversation=self.state.conversation,
            session_state=self.session.state,
            error=self.session.error,
            notices=self.notices.messages,
            generating_document=self.actions.generating_document,
        )

    def send(self, text: str) -> asyncio.Task:
        """
        Send a user message and start streaming the reply.

        Raises:
            SessionBusyError: If a reply is still streaming
            ValueError: If text is blank
        """
        if self.session.is_active:
            raise SessionBusyError("A reply is still streaming", details={"view_id": self.view_id})
        task = self.session.send(text)
        if task is None:
            raise ValueError("Message text must not be blank")
        return task

    def cancel(self) -> bool:
        return self.session.cancel()

    def regenerate_last(self) -> Optional[asyncio.Task]:
        return self.session.regenerate_last()

    async def resolve_action(
        self,
        message_id: str,
        decision: ActionDecision,
        extra: Optional[dict[str, Any]] = None,
    ) -> ChatMessage:
        """
        Resolve the action directive on message_id.

        Raises:
            NotFoundError: If the message does not exist or carries no directive
        """
        message = await self.actions.resolve_action(message_id, decision, extra)
        if message is None:
            raise NotFoundError(f"No action on message {message_id}", details={"view_id": self.view_id})
        return message

    async def upload_file(self, message_id: str, file: LocalFile) -> ChatMessage:
        """Deliver a file selected for a pending upload action."""
        return await self.resolve_action(message_id, ActionDecision.CONFIRMED, {"file": file})

    async def load_history(self, conversation_id: str) -> Conversation:
        """
        Replace the view's messages with the stored conversation.

        Raises:
            SessionBusyError: If a reply is still streaming
            NotFoundError: If the backend has no such conversation
        """
        if self.session.is_active:
            raise SessionBusyError("Cannot load history while a reply is streaming")
        detail = await self._backend.get_conversation_detail(conversation_id)
        conversation = conversation_from_detail(
            detail,
            conversation_id,
            default_title=self._settings.DEFAULT_CONVERSATION_TITLE,
        )
        self.state.reset(conversation)
        logger.info(f"Loaded {len(conversation.messages)} messages for conversation {conversation_id}")
        return conversation

    async def wait_idle(self) -> None:
        """Wait for the current session and all background action work."""
        await self.session.wait()
        await self.actions.drain()

    def close(self) -> None:
        self.session.cancel()
        self.actions.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.notices.clear()

    def _publish_snapshot(self) -> None:
        if self._realtime is None:
            return
        self._realtime.publish_nowait(
            self.view_id,
            {"type": "snapshot", "data": self.snapshot().model_dump(mode="json")},
        )


class ChatViewRegistry:
    """Open chat views keyed by view ID."""

    def __init__(
        self,
        backend: IChatBackend,
        effects: IClientEffects,
        store: IConversationStore,
        settings: Optional[Settings] = None,
        realtime: Optional[RealtimeManager] = None,
    ):
        self._backend = backend
        self._effects = effects
        self._store = store
        self._settings = settings or get_settings()
        self._realtime = realtime
        self._views: dict[str, ChatView] = {}

    def __len__(self) -> int:
        return len(self._views)

    def view_ids(self) -> list[str]:
        return list(self._views)

    async def open_view(
        self,
        view_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        restore: bool = False,
    ) -> ChatView:
        """
        Open (or return the already open) view.

        Args:
            view_id: View ID; generated if omitted
            conversation_id: Stored conversation to load into a new view
            restore: Start from the snapshot saved for view_id, if any

        Returns:
            The open view
        """
        view_id = view_id or uuid4().hex
        existing = self._views.get(view_id)
        if existing is not None:
            return existing

        conversation = None
        if restore:
            conversation = await self._store.load(view_id)
            if conversation is not None:
                logger.info(f"Restored view {view_id} with {len(conversation.messages)} messages")

        view = ChatView(
            view_id=view_id,
            backend=self._backend,
            effects=self._effects,
            settings=self._settings,
            realtime=self._realtime,
            conversation=conversation,
        )
        if conversation_id and conversation is None:
            await view.load_history(conversation_id)

        self._views[view_id] = view
        return view

    def get(self, view_id: str) -> ChatView:
        view = self._views.get(view_id)
        if view is None:
            raise NotFoundError(f"Chat view {view_id} not found")
        return view

    async def persist(self, view_id: str) -> None:
        view = self.get(view_id)
        await self._store.save(view_id, view.state.conversation)

    async def persist_all(self) -> None:
        for view_id, view in list(self._views.items()):
            await self._store.save(view_id, view.state.conversation)
        logger.info(f"Persisted {len(self._views)} chat views")

    async def close_view(self, view_id: str, discard: bool = False) -> None:
        """
        Close a view.

        Args:
            view_id: View to close
            discard: Delete its saved snapshot instead of saving it
        """
        view = self.get(view_id)
        view.close()
        del self._views[view_id]
        if discard:
            await self._store.delete(view_id)
        else:
            await self._store.save(view_id, view.state.conversation)

    async def shutdown(self) -> None:
        """Save and close every view."""
        await self.persist_all()
        for view in self._views.values():
            view.close()
        self._views.clear()
