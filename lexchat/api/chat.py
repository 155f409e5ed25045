"""
Chat view API endpoints.

UI-facing surface of the streaming chat core: open a view, send messages,
cancel or regenerate the reply, resolve action cards and follow the view
over Server-Sent Events.
"""

import asyncio
from typing import Any, AsyncGenerator, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from lexchat.api.deps import CurrentView, ViewRegistry
from lexchat.core.exceptions import (
    InfrastructureError,
    LexChatError,
    NotFoundError,
    SessionBusyError,
)
from lexchat.core.logger import setup_logger
from lexchat.models.chat import ChatMessage, ChatViewSnapshot, LocalFile
from lexchat.models.enums import ActionDecision
from lexchat.services.realtime_service import realtime_manager

logger = setup_logger(__name__)

router = APIRouter()

KEEP_ALIVE_SECONDS = 15


# ===========================================
# Request / response models
# ===========================================


class CreateViewRequest(BaseModel):
    """Open a chat view, optionally loading a stored conversation."""

    view_id: Optional[str] = Field(None, pattern=r"^[A-Za-z0-9_-]+$", description="Reuse a view ID")
    conversation_id: Optional[str] = Field(None, description="Stored conversation to load")
    restore: bool = Field(False, description="Start from the snapshot saved for view_id")


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message")


class ResolveActionRequest(BaseModel):
    decision: ActionDecision
    extra: Optional[dict[str, Any]] = Field(None, description="Forwarded to the backend as extraData")


class CancelResponse(BaseModel):
    cancelled: bool
    snapshot: ChatViewSnapshot


# ===========================================
# Views
# ===========================================


@router.post("/views", response_model=ChatViewSnapshot, status_code=status.HTTP_201_CREATED)
async def create_view(request: CreateViewRequest, registry: ViewRegistry):
    """Open a chat view (or return the already open one)."""
    try:
        view = await registry.open_view(
            view_id=request.view_id,
            conversation_id=request.conversation_id,
            restore=request.restore,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InfrastructureError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    except LexChatError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return view.snapshot()


@router.get("/views/{view_id}", response_model=ChatViewSnapshot)
async def get_view(view: CurrentView):
    return view.snapshot()


@router.delete("/views/{view_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_view(
    view: CurrentView,
    registry: ViewRegistry,
    discard: bool = Query(False, description="Delete the saved snapshot instead of saving it"),
):
    try:
        await registry.close_view(view.view_id, discard=discard)
        logger.info(f"Closed chat view {view.view_id} (discard={discard})")
    except InfrastructureError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)


# ===========================================
# Streaming session
# ===========================================


@router.post("/views/{view_id}/messages", response_model=ChatViewSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def send_message(request: SendMessageRequest, view: CurrentView):
    """
    Send a user message.

    The reply streams in the background; follow it through the events
    endpoint or by polling the view.
    """
    try:
        view.send(request.message)
    except SessionBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return view.snapshot()


@router.post("/views/{view_id}/cancel", response_model=CancelResponse)
async def cancel_reply(view: CurrentView):
    cancelled = view.cancel()
    return CancelResponse(cancelled=cancelled, snapshot=view.snapshot())


@router.post("/views/{view_id}/regenerate", response_model=ChatViewSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def regenerate_reply(view: CurrentView):
    """Discard the last reply and stream a new one for the last user message."""
    if view.regenerate_last() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to regenerate")
    return view.snapshot()


# ===========================================
# Actions
# ===========================================


@router.post("/views/{view_id}/messages/{message_id}/action", response_model=ChatMessage)
async def resolve_action(message_id: str, request: ResolveActionRequest, view: CurrentView):
    try:
        return await view.resolve_action(message_id, request.decision, request.extra)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/views/{view_id}/messages/{message_id}/upload", response_model=ChatMessage)
async def upload_action_file(message_id: str, view: CurrentView, file: UploadFile = File(...)):
    """Deliver the file chosen for a pending upload action."""
    data = await file.read()
    local_file = LocalFile(
        name=file.filename or "upload",
        data=data,
        content_type=file.content_type,
    )
    try:
        return await view.upload_file(message_id, local_file)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


# ===========================================
# Events
# ===========================================


@router.get("/views/{view_id}/events")
async def stream_view_events(view: CurrentView, request: Request) -> StreamingResponse:
    """Push snapshots, notices and client effects for one view."""
    queue = await realtime_manager.connect(view.view_id)
    initial = view.snapshot().model_dump_json()

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            yield 'data: {"type":"connected"}\n\n'
            yield f'data: {{"type":"snapshot","data":{initial}}}\n\n'
            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {data}\n\n"
        finally:
            await realtime_manager.disconnect(view.view_id, queue)

    return StreamingResponse(event_generator(), media_type="text/event-stream")
