"""
Shared fixtures.

Backends are AsyncMocks whose ``open_stream`` returns small scripted async
generators of body chunks.
"""

from unittest.mock import AsyncMock

import pytest

from lexchat.core.config import Settings
from lexchat.models.chat import LegalDocument, UploadedFile
from lexchat.services.action_manager import ActionLifecycleManager
from lexchat.services.conversation_state import ConversationStateMachine
from lexchat.services.notice_board import NoticeBoard
from lexchat.services.stream_session import StreamSessionController
from tests.streams import DONE, byte_stream


@pytest.fixture
def settings(tmp_path):
    """Test settings with no artificial delays."""
    return Settings(
        ENVIRONMENT="test",
        API_BASE_URL="http://lawyer-ai.test",
        API_TOKEN="test-token",
        AUTO_ACTION_DELAY_SECONDS=0,
        FIND_LAWYER_REDIRECT_DELAY_SECONDS=0,
        WARNING_TTL_SECONDS=0,
        STATE_STORE_PATH=str(tmp_path / "conversations"),
    )


@pytest.fixture
def backend():
    """Mock lawyer AI backend."""
    mock = AsyncMock()
    mock.open_stream = AsyncMock(return_value=byte_stream(DONE))
    mock.report_action_outcome = AsyncMock(return_value=None)
    mock.upload_file = AsyncMock(
        return_value=UploadedFile(url="https://files.test/contract.pdf", name="contract.pdf", size=4)
    )
    mock.generate_document = AsyncMock(
        return_value=LegalDocument(content="民事起诉状\\n\\n\\n\\n原告：张三", title="民事起诉状")
    )
    return mock


@pytest.fixture
def effects():
    """Mock client effects; no file is available by default."""
    mock = AsyncMock()
    mock.pick_file = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def state():
    return ConversationStateMachine(default_title="AI法律助手")


@pytest.fixture
def notices():
    return NoticeBoard(ttl_seconds=0)


@pytest.fixture
def actions(state, backend, effects, notices, settings):
    return ActionLifecycleManager(
        view_id="view-1",
        state=state,
        backend=backend,
        effects=effects,
        notices=notices,
        settings=settings,
    )


@pytest.fixture
def controller(state, backend, actions):
    return StreamSessionController(state=state, backend=backend, actions=actions)
