"""
Client effects published to the UI over the realtime channel.
"""

from typing import Optional

from lexchat.core.logger import setup_logger
from lexchat.interfaces.client_effects import IClientEffects
from lexchat.models.chat import LegalDocument, LocalFile
from lexchat.services.realtime_service import RealtimeManager

logger = setup_logger(__name__)


class RealtimeClientEffects(IClientEffects):
    """
    Forwards effects to the view's SSE subscribers.

    The browser owns file selection, so ``pick_file`` only asks the UI for a
    file and returns None; the chosen file arrives later through the upload
    endpoint.
    """

    def __init__(self, realtime: RealtimeManager):
        self._realtime = realtime

    async def pick_file(self, view_id: str, message_id: str, accept: str) -> Optional[LocalFile]:
        await self._realtime.publish(
            view_id,
            {"type": "file_request", "data": {"messageId": message_id, "accept": accept}},
        )
        return None

    async def trigger_download(self, view_id: str, url: str, file_name: str) -> None:
        await self._realtime.publish(
            view_id,
            {"type": "download", "data": {"url": url, "fileName": file_name}},
        )

    async def navigate(self, view_id: str, route: str) -> None:
        logger.info(f"Navigating view {view_id} to {route}")
        await self._realtime.publish(view_id, {"type": "navigate", "data": {"route": route}})

    async def show_document(self, view_id: str, document: LegalDocument) -> None:
        await self._realtime.publish(
            view_id,
            {"type": "document", "data": document.model_dump(mode="json")},
        )
