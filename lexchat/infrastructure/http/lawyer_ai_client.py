"""
HTTP client for the lawyer AI backend.

Ordinary calls return the ``{code, msg, data}`` envelope; ``code`` 1 (or
absent) means success. The chat stream is a plain SSE body read chunk by
chunk with no read timeout.
"""

from __future__ import annotations

from typing import Any, AsyncGenerator, Optional

import httpx

from lexchat.core.config import Settings, get_settings
from lexchat.core.exceptions import (
    ApiResponseError,
    AuthenticationError,
    DocumentGenerationError,
    NotFoundError,
    StreamOpenError,
    StreamReadError,
    TransportError,
    UploadError,
)
from lexchat.core.logger import setup_logger
from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.models.chat import (
    ActionReport,
    ChatStreamRequest,
    ConversationDetail,
    LegalDocument,
    LocalFile,
    UploadedFile,
)
from lexchat.services.document_parser import parse_document_response

logger = setup_logger(__name__)

SUCCESS_CODE = 1
AUTH_FAILURE_CODES = (30007, 30008)

STREAM_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
}


class LawyerAIClient(IChatBackend):
    """httpx implementation of the lawyer AI backend."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings()
        headers = {}
        if self._settings.API_TOKEN:
            headers["Authorization"] = f"Bearer {self._settings.API_TOKEN}"
        self._timeout = self._settings.HTTP_TIMEOUT_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self._settings.API_BASE_URL,
            headers=headers,
            timeout=self._timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ===========================================
    # Streaming chat
    # ===========================================

    async def open_stream(self, request: ChatStreamRequest) -> AsyncGenerator[bytes, None]:
        http_request = self._client.build_request(
            "POST",
            self._settings.CHAT_STREAM_PATH,
            json=request.to_payload(),
            headers=STREAM_HEADERS,
            timeout=httpx.Timeout(self._timeout, read=None),
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise StreamOpenError(f"Failed to open chat stream: {e}")

        if not response.is_success:
            await response.aclose()
            raise StreamOpenError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        return self._iter_body(response)

    @staticmethod
    async def _iter_body(response: httpx.Response) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise StreamReadError(f"Failed to read chat stream: {e}")
        finally:
            await response.aclose()

    # ===========================================
    # Request/response calls
    # ===========================================

    async def report_action_outcome(self, report: ActionReport) -> None:
        await self._request("POST", self._settings.ACTION_RESPONSE_PATH, json=report.to_payload())
        logger.debug(f"Reported action outcome for message {report.message_id}")

    async def upload_file(self, file: LocalFile) -> UploadedFile:
        files = {"file": (file.name, file.data, file.content_type or "application/octet-stream")}
        try:
            data = await self._request("POST", self._settings.FILE_UPLOAD_PATH, files=files)
        except (TransportError, ApiResponseError) as e:
            raise UploadError(f"Failed to upload {file.name}: {e.message}", details=e.details)

        if not isinstance(data, dict) or not data.get("url"):
            raise UploadError(f"Upload of {file.name} returned no URL", details=data)
        return UploadedFile(url=data["url"], name=data.get("name") or file.name, size=file.size)

    async def generate_document(self, conversation_id: str, prompt: str) -> LegalDocument:
        payload = {"conversationId": conversation_id, "message": prompt}
        try:
            data = await self._request("POST", self._settings.DOCUMENT_GENERATE_PATH, json=payload)
        except (TransportError, ApiResponseError) as e:
            raise DocumentGenerationError(f"Failed to generate legal document: {e.message}", details=e.details)

        if not data:
            raise DocumentGenerationError("Legal document generation returned no content")
        document = parse_document_response(data)
        if not document.content:
            raise DocumentGenerationError("Legal document generation returned no content")
        return document

    async def get_conversation_detail(self, conversation_id: str) -> ConversationDetail:
        path = f"{self._settings.CONVERSATIONS_PATH}/{conversation_id}"
        try:
            data = await self._request("GET", path)
        except ApiResponseError as e:
            if e.code == 404:
                raise NotFoundError(f"Conversation {conversation_id} not found")
            raise

        if not isinstance(data, dict):
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return ConversationDetail.model_validate(data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send one request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` field, the JSON body if it is not an
            envelope, or the text body for non-JSON responses

        Raises:
            TransportError: If the backend is unreachable
            AuthenticationError: On HTTP 401 or an auth failure code
            ApiResponseError: On any other HTTP error or failure code
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"Request to {path} failed: {e}")

        if response.status_code == 401:
            raise AuthenticationError("Authentication failed", code=401)
        if response.is_error:
            raise ApiResponseError(
                f"HTTP error! status: {response.status_code}",
                code=response.status_code,
                details=response.text,
            )

        if "application/json" not in response.headers.get("content-type", ""):
            return response.text

        try:
            body = response.json()
        except ValueError as e:
            raise ApiResponseError(f"Invalid JSON from {path}: {e}")

        if not isinstance(body, dict) or "code" not in body:
            return body

        code = body.get("code")
        if code and code != SUCCESS_CODE:
            message = body.get("msg") or f"API error {code}"
            if code in AUTH_FAILURE_CODES:
                raise AuthenticationError(message, code=code)
            logger.error(f"API Error: {message}")
            raise ApiResponseError(message, code=code, details=body.get("data"))
        return body.get("data")
