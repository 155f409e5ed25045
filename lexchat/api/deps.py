"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that wire the chat view registry
to the configured infrastructure implementations.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status

from lexchat.core.config import get_settings
from lexchat.core.exceptions import NotFoundError
from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.interfaces.client_effects import IClientEffects
from lexchat.interfaces.conversation_store import IConversationStore
from lexchat.services.chat_view import ChatView, ChatViewRegistry
from lexchat.services.realtime_service import realtime_manager


# ===========================================
# Infrastructure Dependencies
# ===========================================


@lru_cache()
def get_chat_backend() -> IChatBackend:
    """Get lawyer AI backend client instance."""
    from lexchat.infrastructure.http.lawyer_ai_client import LawyerAIClient
    return LawyerAIClient(get_settings())


@lru_cache()
def get_conversation_store() -> IConversationStore:
    """Get conversation snapshot store instance."""
    from lexchat.infrastructure.local.conversation_store import LocalConversationStore
    return LocalConversationStore(get_settings().STATE_STORE_PATH)


@lru_cache()
def get_client_effects() -> IClientEffects:
    """Get client effects instance (published over the realtime channel)."""
    from lexchat.infrastructure.local.client_effects import RealtimeClientEffects
    return RealtimeClientEffects(realtime_manager)


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_view_registry() -> ChatViewRegistry:
    """Get the process-wide chat view registry."""
    return ChatViewRegistry(
        backend=get_chat_backend(),
        effects=get_client_effects(),
        store=get_conversation_store(),
        settings=get_settings(),
        realtime=realtime_manager,
    )


ViewRegistry = Annotated[ChatViewRegistry, Depends(get_view_registry)]


def get_chat_view(view_id: str, registry: ViewRegistry) -> ChatView:
    """Resolve the view named in the path."""
    try:
        return registry.get(view_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


CurrentView = Annotated[ChatView, Depends(get_chat_view)]
