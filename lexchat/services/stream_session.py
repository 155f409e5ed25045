"""
Stream session controller.

Runs one streaming session at a time for a conversation view:
open the stream, feed frames through the decoder and classifier into the
state machine, and turn transport failures and cancellation into session
states instead of exceptions.
"""

import asyncio
from contextlib import aclosing
from typing import AsyncGenerator, Callable, Optional

from lexchat.core.exceptions import LexChatError, TransportError
from lexchat.core.logger import setup_logger
from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.models.chat import ChatStreamRequest, Completion, Unparseable
from lexchat.models.enums import SessionState
from lexchat.services.action_manager import ActionLifecycleManager
from lexchat.services.conversation_state import (
    READ_ERROR_NOTICE,
    SEND_ERROR_NOTICE,
    ConversationStateMachine,
)
from lexchat.services.event_classifier import classify
from lexchat.services.frame_decoder import iter_frames

logger = setup_logger(__name__)

SessionListener = Callable[[SessionState], None]


class StreamSessionController:
    """
    Idle -> Opening -> Streaming -> Completed | Cancelled | Errored.

    At most one session is in flight. ``send`` is ignored while a session
    is active; ``regenerate_last`` cancels the active session first.
    """

    def __init__(
        self,
        state: ConversationStateMachine,
        backend: IChatBackend,
        actions: ActionLifecycleManager,
    ):
        self._state = state
        self._backend = backend
        self._actions = actions
        self._session_state = SessionState.IDLE
        self._error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._message_id: Optional[str] = None
        self._cancel_requested: set[asyncio.Task] = set()
        self._listeners: list[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._session_state

    @property
    def error(self) -> Optional[str]:
        """Last transport error, cleared when a new session starts."""
        return self._error

    @property
    def is_active(self) -> bool:
        return self._session_state.is_active

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def send(self, text: str) -> Optional[asyncio.Task]:
        """
        Append the user message and start streaming the reply.

        Returns:
            The session task, or None if the text is blank or a session is active
        """
        text = text.strip()
        if not text:
            return None
        if self.is_active:
            logger.info("Send ignored: a session is already in flight")
            return None

        self._state.append_user_message(text)
        return self._start(text)

    def regenerate_last(self) -> Optional[asyncio.Task]:
        """Drop everything after the last user message and stream a new reply to it."""
        if self.is_active:
            self.cancel()

        user_message = self._state.truncate_after_last_user()
        if user_message is None:
            logger.info("Regenerate ignored: no user message in conversation")
            return None
        return self._start(user_message.content)

    def cancel(self) -> bool:
        """Abort the active session at its next suspension point."""
        task = self._task
        if task is None or task.done() or not self.is_active:
            return False
        self._cancel_requested.add(task)
        task.cancel()
        if self._message_id is not None:
            self._state.cancel_stream(self._message_id)
        self._set_state(SessionState.CANCELLED)
        return True

    async def wait(self) -> None:
        """Wait until the current session task has finished."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # ===========================================
    # Session task
    # ===========================================

    def _start(self, text: str) -> asyncio.Task:
        message = self._state.open_assistant_message()
        request = ChatStreamRequest(
            message=text,
            conversation_id=self._state.conversation_id or None,
        )
        self._error = None
        self._set_state(SessionState.OPENING)
        task = asyncio.create_task(self._run(request, message.id))
        task.add_done_callback(self._cancel_requested.discard)
        self._task = task
        self._message_id = message.id
        return task

    async def _run(self, request: ChatStreamRequest, message_id: str) -> None:
        task = asyncio.current_task()
        stream: Optional[AsyncGenerator[bytes, None]] = None
        try:
            try:
                stream = await self._backend.open_stream(request)
            except LexChatError as e:
                logger.error(f"Failed to open chat stream: {e}")
                self._state.fail_stream(message_id, SEND_ERROR_NOTICE)
                self._finish(task, SessionState.ERRORED, str(e))
                return

            self._transition(task, SessionState.STREAMING)
            completed = await self._consume(stream, message_id)
            if not completed:
                self._state.end_stream(message_id)
            self._finish(task, SessionState.COMPLETED)

        except TransportError as e:
            logger.error(f"Chat stream read failed: {e}")
            self._state.fail_stream(message_id, READ_ERROR_NOTICE)
            self._finish(task, SessionState.ERRORED, str(e))
        except asyncio.CancelledError:
            self._state.cancel_stream(message_id)
            if task not in self._cancel_requested:
                raise
            logger.info(f"Chat stream for message {message_id} cancelled by user")
        except Exception as e:
            logger.exception(f"Unexpected error while streaming message {message_id}: {e}")
            self._state.fail_stream(message_id, READ_ERROR_NOTICE)
            self._finish(task, SessionState.ERRORED, str(e))
        finally:
            if stream is not None:
                await self._close_stream(stream)

    async def _consume(self, stream: AsyncGenerator[bytes, None], message_id: str) -> bool:
        """Apply frames in arrival order; True if a completion marker was seen."""
        async with aclosing(iter_frames(stream)) as frames:
            async for frame in frames:
                for event in classify(frame):
                    if isinstance(event, Unparseable):
                        logger.debug(f"Dropping unparseable frame ({event.reason}): {event.frame[:80]}")
                        continue
                    self._state.apply(message_id, event)
                    if isinstance(event, Completion):
                        self._on_completed(message_id)
                        return True
        return False

    def _on_completed(self, message_id: str) -> None:
        message = self._state.find(message_id)
        if message is not None and message.action_data is not None:
            self._actions.schedule_auto_dispatch(message_id)

    @staticmethod
    async def _close_stream(stream: AsyncGenerator[bytes, None]) -> None:
        try:
            await stream.aclose()
        except Exception as e:
            logger.warning(f"Error closing chat stream: {e}")

    # ===========================================
    # State bookkeeping
    # ===========================================

    def _transition(self, task: Optional[asyncio.Task], new_state: SessionState) -> None:
        # a superseded session must not overwrite the state of its successor
        if task is self._task:
            self._set_state(new_state)

    def _finish(self, task: Optional[asyncio.Task], new_state: SessionState, error: Optional[str] = None) -> None:
        if task is not self._task:
            return
        self._error = error
        self._set_state(new_state)

    def _set_state(self, new_state: SessionState) -> None:
        if new_state == self._session_state:
            return
        self._session_state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")
