"""Abstract interfaces for infrastructure abstraction."""

from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.interfaces.client_effects import IClientEffects
from lexchat.interfaces.conversation_store import IConversationStore

__all__ = [
    "IChatBackend",
    "IClientEffects",
    "IConversationStore",
]
