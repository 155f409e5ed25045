"""
Unit tests for ChatView, ChatViewRegistry and history conversion.
"""

import asyncio
import json

import pytest

from lexchat.core.exceptions import NotFoundError, SessionBusyError
from lexchat.infrastructure.local.conversation_store import LocalConversationStore
from lexchat.models.chat import ChatMessage, Conversation, ConversationDetail
from lexchat.models.enums import ActionDecision, ActionStatus, MessageRole, SessionState
from lexchat.services.chat_view import ChatView, ChatViewRegistry, conversation_from_detail
from lexchat.services.realtime_service import RealtimeManager
from tests.streams import action, byte_stream, delta, stop


@pytest.fixture
def store(settings):
    return LocalConversationStore(settings.STATE_STORE_PATH)


@pytest.fixture
def registry(backend, effects, store, settings):
    return ChatViewRegistry(backend=backend, effects=effects, store=store, settings=settings)


def history_detail() -> ConversationDetail:
    return ConversationDetail.model_validate({
        "conversation": {"id": "conv-1", "title": "租房押金纠纷"},
        "messages": [
            {"role": "user", "content": "房东不退押金", "timestamp": 1700000000000},
            {
                "role": "assistant",
                "content": '{"type": "upload", "title": "上传租赁合同", "message": "请上传合同"}',
                "timestamp": 1700000001000,
                "messageId": "srv-1",
            },
            {
                "role": "assistant",
                "content": "建议先协商。[ACTION:WARNING:诉讼时效:注意三年时效]",
                "timestamp": 1700000002000,
            },
            {"role": "assistant", "content": "普通回复", "timestamp": 1700000003000},
        ],
    })


class TestConversationFromDetail:
    def test_converts_history(self):
        conversation = conversation_from_detail(history_detail(), "conv-1", default_title="AI法律助手")
        user, upload, warning, plain = conversation.messages

        assert conversation.id == "conv-1"
        assert conversation.title == "租房押金纠纷"
        assert user.id == "user_0_1700000000000"
        assert user.content == "房东不退押金"

        assert upload.content == ""
        assert upload.action_data.type == "upload"
        assert upload.action_status == ActionStatus.COMPLETED
        assert upload.server_message_id == "srv-1"

        assert warning.content == "建议先协商。"
        assert warning.action_data.type == "warning"
        assert warning.action_data.title == "诉讼时效"
        assert warning.action_status == ActionStatus.COMPLETED

        assert plain.action_data is None
        assert plain.action_status is None
        assert all(not m.is_streaming for m in conversation.messages)

    def test_default_title(self):
        detail = ConversationDetail.model_validate({"messages": []})
        conversation = conversation_from_detail(detail, "conv-2", default_title="AI法律助手")
        assert conversation.title == "AI法律助手"
        assert conversation.messages == ()


class TestChatView:
    @pytest.mark.asyncio
    async def test_send_while_streaming_is_rejected(self, backend, effects, settings):
        view = ChatView("view-1", backend, effects, settings=settings)
        gate = asyncio.Event()
        backend.open_stream.return_value = byte_stream(delta("a"), gate=gate)

        view.send("第一条")
        with pytest.raises(SessionBusyError):
            view.send("第二条")

        gate.set()
        await view.wait_idle()
        view.close()

    @pytest.mark.asyncio
    async def test_blank_message_is_rejected(self, backend, effects, settings):
        view = ChatView("view-1", backend, effects, settings=settings)
        with pytest.raises(ValueError):
            view.send("  ")

    @pytest.mark.asyncio
    async def test_resolve_unknown_action(self, backend, effects, settings):
        view = ChatView("view-1", backend, effects, settings=settings)
        with pytest.raises(NotFoundError):
            await view.resolve_action("missing", ActionDecision.CONFIRMED)

    @pytest.mark.asyncio
    async def test_snapshot_reflects_session(self, backend, effects, settings):
        view = ChatView("view-1", backend, effects, settings=settings)
        backend.open_stream.return_value = byte_stream(
            delta("请提供合同"),
            action({"type": "confirm", "title": "确认", "message": "是否继续"}),
            stop(messageId="srv-5"),
        )

        view.send("帮我看合同")
        await view.wait_idle()

        snapshot = view.snapshot()
        assert snapshot.session_state == SessionState.COMPLETED
        assistant = snapshot.conversation.messages[-1]
        assert assistant.content == "请提供合同"
        assert assistant.action_status == ActionStatus.COMPLETED
        view.close()

    @pytest.mark.asyncio
    async def test_publishes_snapshots(self, backend, effects, settings):
        realtime = RealtimeManager()
        queue = await realtime.connect("view-1")
        view = ChatView("view-1", backend, effects, settings=settings, realtime=realtime)

        view.send("你好")
        await view.wait_idle()

        events = []
        while not queue.empty():
            events.append(json.loads(queue.get_nowait()))
        assert events
        assert all(event["type"] == "snapshot" for event in events)
        assert events[-1]["data"]["session_state"] == "completed"
        view.close()

    @pytest.mark.asyncio
    async def test_restored_streaming_message_is_sealed(self, backend, effects, settings):
        conversation = Conversation(
            id="conv-1",
            messages=(ChatMessage(role=MessageRole.ASSISTANT, content="半截", is_streaming=True),),
        )
        view = ChatView("view-1", backend, effects, settings=settings, conversation=conversation)

        assert view.state.messages[0].is_streaming is False
        assert view.state.open_message_id is None

    @pytest.mark.asyncio
    async def test_load_history(self, backend, effects, settings):
        backend.get_conversation_detail.return_value = history_detail()
        view = ChatView("view-1", backend, effects, settings=settings)

        conversation = await view.load_history("conv-1")

        backend.get_conversation_detail.assert_awaited_once_with("conv-1")
        assert view.state.conversation_id == "conv-1"
        assert len(conversation.messages) == 4


class TestChatViewRegistry:
    @pytest.mark.asyncio
    async def test_open_returns_existing_view(self, registry):
        first = await registry.open_view("view-1")
        second = await registry.open_view("view-1")

        assert first is second
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_generated_view_id(self, registry):
        view = await registry.open_view()
        assert registry.view_ids() == [view.view_id]

    @pytest.mark.asyncio
    async def test_get_unknown_view(self, registry):
        with pytest.raises(NotFoundError):
            registry.get("nope")

    @pytest.mark.asyncio
    async def test_close_then_restore(self, registry, backend):
        backend.open_stream.return_value = byte_stream(delta("可以起诉"), stop())
        view = await registry.open_view("view-1")
        view.send("能起诉吗")
        await view.wait_idle()

        await registry.close_view("view-1")
        assert len(registry) == 0

        restored = await registry.open_view("view-1", restore=True)
        assert [m.content for m in restored.state.messages] == ["能起诉吗", "可以起诉"]

    @pytest.mark.asyncio
    async def test_discard_deletes_snapshot(self, registry, store):
        await registry.open_view("view-1")
        await registry.persist("view-1")
        assert await store.load("view-1") is not None

        await registry.close_view("view-1", discard=True)
        assert await store.load("view-1") is None

    @pytest.mark.asyncio
    async def test_open_with_conversation_id_loads_history(self, registry, backend):
        backend.get_conversation_detail.return_value = history_detail()

        view = await registry.open_view("view-2", conversation_id="conv-1")

        assert view.state.conversation.title == "租房押金纠纷"
        backend.get_conversation_detail.assert_awaited_once_with("conv-1")

    @pytest.mark.asyncio
    async def test_restore_wins_over_history(self, registry, store, backend):
        await store.save("view-3", Conversation(id="conv-9", title="已保存"))

        view = await registry.open_view("view-3", conversation_id="conv-1", restore=True)

        assert view.state.conversation.title == "已保存"
        backend.get_conversation_detail.assert_not_called()

    @pytest.mark.asyncio
    async def test_shutdown_persists_everything(self, registry, store):
        await registry.open_view("view-a")
        await registry.open_view("view-b")

        await registry.shutdown()

        assert len(registry) == 0
        assert await store.load("view-a") is not None
        assert await store.load("view-b") is not None
