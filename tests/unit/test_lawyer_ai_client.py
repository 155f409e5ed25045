"""
Unit tests for the httpx lawyer AI client, using httpx.MockTransport.
"""

import json

import httpx
import pytest

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
from lexchat.infrastructure.http.lawyer_ai_client import LawyerAIClient
from lexchat.models.chat import ActionReport, ChatStreamRequest, LocalFile


def envelope(data, code: int = 1, msg: str = "success") -> httpx.Response:
    return httpx.Response(200, json={"code": code, "msg": msg, "data": data})


def make_client(settings, handler) -> LawyerAIClient:
    return LawyerAIClient(settings, transport=httpx.MockTransport(handler))


class TestOpenStream:
    @pytest.mark.asyncio
    async def test_streams_body_chunks(self, settings):
        seen = {}

        async def body():
            yield b'data: {"choices":[{"delta":{"content":"\xe4\xbd'
            yield b'\xa0"}}]}\n'
            yield b"data: [DONE]\n"

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

        client = make_client(settings, handler)
        stream = await client.open_stream(ChatStreamRequest(message="你好", conversation_id="c1"))
        data = b"".join([chunk async for chunk in stream])
        await client.aclose()

        request = seen["request"]
        assert request.url.path == "/admin-api/lawyer-ai/chat/stream"
        assert request.headers["Accept"] == "text/event-stream"
        assert request.headers["Cache-Control"] == "no-cache"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"message": "你好", "conversationId": "c1"}
        assert data.decode("utf-8").startswith('data: {"choices":[{"delta":{"content":"你"}}]}')

    @pytest.mark.asyncio
    async def test_http_error_on_open(self, settings):
        client = make_client(settings, lambda request: httpx.Response(503))

        with pytest.raises(StreamOpenError) as exc_info:
            await client.open_stream(ChatStreamRequest(message="你好"))
        assert exc_info.value.status_code == 503
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connect_error_on_open(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(settings, handler)
        with pytest.raises(StreamOpenError):
            await client.open_stream(ChatStreamRequest(message="你好"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_read_error_mid_stream(self, settings):
        async def body():
            yield b"data: partial\n"
            raise httpx.ReadError("connection reset")

        client = make_client(settings, lambda request: httpx.Response(200, content=body()))
        stream = await client.open_stream(ChatStreamRequest(message="你好"))

        chunks = []
        with pytest.raises(StreamReadError):
            async for chunk in stream:
                chunks.append(chunk)
        assert chunks == [b"data: partial\n"]
        await client.aclose()


class TestRequests:
    @pytest.mark.asyncio
    async def test_report_action_outcome(self, settings):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return envelope("ok")

        client = make_client(settings, handler)
        await client.report_action_outcome(
            ActionReport(action_id='{"a":1}', response='{"status":"confirmed"}', message_id="m1")
        )
        await client.aclose()

        assert seen["path"] == "/admin-api/lawyer-ai/action-response"
        assert seen["body"] == {"actionId": '{"a":1}', "response": '{"status":"confirmed"}', "messageId": "m1"}

    @pytest.mark.asyncio
    async def test_failure_code_raises(self, settings):
        client = make_client(settings, lambda request: envelope(None, code=500, msg="服务器繁忙"))
        with pytest.raises(ApiResponseError) as exc_info:
            await client.report_action_outcome(ActionReport(action_id="{}", response="{}"))
        assert exc_info.value.code == 500
        assert exc_info.value.message == "服务器繁忙"
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [30007, 30008])
    async def test_auth_failure_codes(self, settings, code):
        client = make_client(settings, lambda request: envelope(None, code=code, msg="未登录"))
        with pytest.raises(AuthenticationError):
            await client.get_conversation_detail("c1")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_401(self, settings):
        client = make_client(settings, lambda request: httpx.Response(401))
        with pytest.raises(AuthenticationError):
            await client.report_action_outcome(ActionReport(action_id="{}", response="{}"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(settings, handler)
        with pytest.raises(TransportError):
            await client.report_action_outcome(ActionReport(action_id="{}", response="{}"))
        await client.aclose()


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_returns_url(self, settings):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return envelope({"url": "https://files.test/a.pdf"})

        client = make_client(settings, handler)
        uploaded = await client.upload_file(LocalFile(name="a.pdf", data=b"%PDF-1.4", content_type="application/pdf"))
        await client.aclose()

        assert uploaded.url == "https://files.test/a.pdf"
        assert uploaded.name == "a.pdf"
        assert uploaded.size == 8
        assert seen["path"] == "/support/file/upload"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="file"; filename="a.pdf"' in seen["body"]

    @pytest.mark.asyncio
    async def test_upload_without_url(self, settings):
        client = make_client(settings, lambda request: envelope({}))
        with pytest.raises(UploadError):
            await client.upload_file(LocalFile(name="a.pdf", data=b"x"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_upload_http_error(self, settings):
        client = make_client(settings, lambda request: httpx.Response(413))
        with pytest.raises(UploadError):
            await client.upload_file(LocalFile(name="a.pdf", data=b"x"))
        await client.aclose()


class TestDocumentGeneration:
    @pytest.mark.asyncio
    async def test_generate_document(self, settings):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return envelope({"content": "起诉状正文", "fileName": "起诉状.docx"})

        client = make_client(settings, handler)
        document = await client.generate_document("c1", "帮我根据上下文生成文书")
        await client.aclose()

        assert seen["body"] == {"conversationId": "c1", "message": "帮我根据上下文生成文书"}
        assert document.content == "起诉状正文"
        assert document.file_name == "起诉状.docx"

    @pytest.mark.asyncio
    async def test_empty_result(self, settings):
        client = make_client(settings, lambda request: envelope(None))
        with pytest.raises(DocumentGenerationError):
            await client.generate_document("c1", "生成")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_backend_failure(self, settings):
        client = make_client(settings, lambda request: envelope(None, code=500, msg="失败"))
        with pytest.raises(DocumentGenerationError):
            await client.generate_document("c1", "生成")
        await client.aclose()


class TestConversationDetail:
    @pytest.mark.asyncio
    async def test_parses_detail(self, settings):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return envelope({
                "conversation": {"id": "c1", "title": "劳动纠纷", "userId": "u1"},
                "messages": [
                    {"role": "user", "content": "被辞退了", "timestamp": 1700000000000},
                    {"role": "assistant", "content": "请保留证据", "timestamp": 1700000001000, "messageId": "m1"},
                ],
            })

        client = make_client(settings, handler)
        detail = await client.get_conversation_detail("c1")
        await client.aclose()

        assert seen["path"] == "/admin-api/lawyer-ai/conversations/c1"
        assert detail.conversation.title == "劳动纠纷"
        assert detail.conversation.user_id == "u1"
        assert [m.message_id for m in detail.messages] == [None, "m1"]

    @pytest.mark.asyncio
    async def test_missing_conversation(self, settings):
        client = make_client(settings, lambda request: httpx.Response(404))
        with pytest.raises(NotFoundError):
            await client.get_conversation_detail("nope")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_data(self, settings):
        client = make_client(settings, lambda request: envelope(None))
        with pytest.raises(NotFoundError):
            await client.get_conversation_detail("nope")
        await client.aclose()
