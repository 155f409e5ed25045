"""
Action lifecycle manager.

Resolves the action directive attached to a message: records the decision
on the message immediately, runs the type-specific side effect (upload,
download, document generation, navigation) and reports the outcome to the
backend in the background. Report failures never roll back local state.
"""

import asyncio
import json
from typing import Any, Awaitable, Optional

from lexchat.core.config import Settings, get_settings
from lexchat.core.exceptions import LexChatError
from lexchat.core.logger import setup_logger
from lexchat.interfaces.chat_backend import IChatBackend
from lexchat.interfaces.client_effects import IClientEffects
from lexchat.models.chat import ActionDirective, ActionReport, ChatMessage, LocalFile
from lexchat.models.enums import ActionDecision, ActionStatus, ActionType
from lexchat.services.conversation_state import ConversationStateMachine
from lexchat.services.document_parser import format_document_for_display
from lexchat.services.notice_board import NoticeBoard

logger = setup_logger(__name__)

UPLOADING_NOTICE = "正在上传文件..."
UPLOAD_RETRY_NOTICE = "文件上传失败，请重试"
DOCUMENT_RETRY_NOTICE = "文书生成失败，请重试"

_OUTCOMES: dict[tuple[str, str], str] = {
    ("upload", "cancelled"): "用户拒绝上传文件",
    ("download", "confirmed"): "用户已确认下载文件",
    ("download", "downloaded"): "用户已确认下载文件",
    ("download", "cancelled"): "用户拒绝下载文件",
    ("dialog", "confirmed"): "用户已同意提供个人信息",
    ("dialog", "cancelled"): "用户拒绝提供个人信息",
    ("personal_info", "confirmed"): "用户已同意提供个人信息",
    ("personal_info", "cancelled"): "用户拒绝提供个人信息",
    ("confirm", "confirmed"): "用户已确认执行操作",
    ("confirm", "cancelled"): "用户已取消操作",
    ("warning", "acknowledged"): "用户已知悉法律风险提醒",
    ("info", "acknowledged"): "用户已查看法律建议",
    ("progress", "view_details"): "用户已查看案件进度详情",
    ("lawsuit", "confirmed"): "用户已确认发起诉讼，正在生成诉讼文书",
    ("lawsuit", "cancelled"): "用户取消发起诉讼",
    ("find_lawyer", "confirmed"): "用户已确认寻找律师，正在匹配合适的律师",
    ("find_lawyer", "cancelled"): "用户取消寻找律师",
}


def describe_action_outcome(action_type: str, decision: str, extra: Optional[dict[str, Any]] = None) -> str:
    """Human-readable outcome for a (directive type, decision) pair."""
    if action_type == ActionType.UPLOAD.value and decision in ("confirmed", "uploaded"):
        extra = extra or {}
        file_name = extra.get("fileName") or "文件"
        file_size = extra.get("fileSize")
        size_text = ""
        # extra comes from the caller; only real numbers get a size suffix
        if isinstance(file_size, (int, float)) and not isinstance(file_size, bool) and file_size > 0:
            size_text = f"({file_size / 1024 / 1024:.2f}MB)"
        return f"用户已确认上传文件：{file_name}{size_text}"
    return _OUTCOMES.get((action_type, decision)) or f"用户操作：{decision}"


def build_action_report(
    directive: ActionDirective,
    decision: ActionDecision,
    message_id: str,
    extra: Optional[dict[str, Any]] = None,
) -> ActionReport:
    """Wire payload for the action-response endpoint."""
    envelope = {
        "action": directive.model_dump(),
        "status": decision.value,
        "extraData": extra,
    }
    return ActionReport(
        action_id=json.dumps(directive.data, ensure_ascii=False, default=str),
        response=json.dumps(envelope, ensure_ascii=False, default=str),
        message_id=message_id,
    )


class ActionLifecycleManager:
    """Per-view resolver for action directives."""

    def __init__(
        self,
        view_id: str,
        state: ConversationStateMachine,
        backend: IChatBackend,
        effects: IClientEffects,
        notices: NoticeBoard,
        settings: Optional[Settings] = None,
    ):
        self._view_id = view_id
        self._state = state
        self._backend = backend
        self._effects = effects
        self._notices = notices
        self._settings = settings or get_settings()
        self._background: set[asyncio.Task] = set()
        self._uploading: set[str] = set()
        self._generating_document = False

    @property
    def generating_document(self) -> bool:
        return self._generating_document

    async def resolve_action(
        self,
        message_id: str,
        decision: ActionDecision,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[ChatMessage]:
        """
        Apply a decision to the directive attached to message_id.

        Args:
            message_id: Client or server message ID
            decision: User decision
            extra: Optional data; ``file`` (LocalFile) for upload confirmations,
                anything else is forwarded to the backend as extraData

        Returns:
            The updated message, or None if there is no directive to resolve
        """
        message = self._state.find(message_id)
        if message is None or message.action_data is None:
            logger.warning(f"No action directive to resolve on message {message_id}")
            return None

        decision = ActionDecision(decision)
        extra = dict(extra or {})
        file = extra.pop("file", None)
        directive = message.action_data
        action_type = directive.action_type

        if decision == ActionDecision.CONFIRMED:
            if action_type == ActionType.UPLOAD:
                return await self._confirm_upload(message, directive, file)
            if action_type == ActionType.DOWNLOAD:
                return await self._confirm_download(message, directive)
            if action_type == ActionType.LAWSUIT:
                return await self._confirm_lawsuit(message, directive)
            if action_type == ActionType.FIND_LAWYER:
                return self._confirm_find_lawyer(message, directive)

        return self._settle(message, directive, decision, extra or None)

    def schedule_auto_dispatch(self, message_id: str) -> None:
        """Resolve the directive on a completed message with decision "completed"."""
        self._spawn(self._auto_dispatch(message_id))

    async def drain(self) -> None:
        """Wait for background reports, navigation and auto-dispatch tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._background):
            task.cancel()

    # ===========================================
    # Side effects
    # ===========================================

    async def _confirm_upload(
        self,
        message: ChatMessage,
        directive: ActionDirective,
        file: Optional[LocalFile],
    ) -> ChatMessage:
        if message.action_status == ActionStatus.UPLOADED:
            logger.warning(f"File already uploaded for message {message.id}; ignoring upload")
            return message
        if not isinstance(file, LocalFile):
            file = await self._effects.pick_file(self._view_id, message.reference_id, self._settings.UPLOAD_ACCEPT)
        if file is None:
            # selection delivered later through a separate upload call
            return message
        if message.id in self._uploading:
            logger.warning(f"Upload already in progress for message {message.id}")
            return message

        self._uploading.add(message.id)
        self._state.update_action(message.id, ActionStatus.UPLOADING, UPLOADING_NOTICE)
        try:
            uploaded = await self._backend.upload_file(file)
        except LexChatError as e:
            logger.error(f"File upload failed for {file.name}: {e}")
            self._notices.add(f"文件 {file.name} 上传失败")
            return self._state.update_action(message.id, ActionStatus.PENDING, UPLOAD_RETRY_NOTICE) or message
        finally:
            self._uploading.discard(message.id)

        metadata = {"fileName": file.name, "fileSize": file.size, "fileUrl": uploaded.url}
        self._notices.add(f"文件 {file.name} 上传成功")
        current = self._state.find(message.id) or message
        return self._settle(current, directive, ActionDecision.UPLOADED, metadata)

    async def _confirm_download(self, message: ChatMessage, directive: ActionDirective) -> ChatMessage:
        await self._effects.trigger_download(
            self._view_id,
            self._settings.DOWNLOAD_URL,
            self._settings.DOWNLOAD_FILE_NAME,
        )
        updated = self._settle(message, directive, ActionDecision.DOWNLOADED)
        self._notices.add("文件下载已开始")
        return updated

    async def _confirm_lawsuit(self, message: ChatMessage, directive: ActionDirective) -> ChatMessage:
        if self._generating_document:
            logger.info("Document generation already in flight; ignoring duplicate confirm")
            return message

        self._generating_document = True
        try:
            updated = self._settle(message, directive, ActionDecision.CONFIRMED)
            self._notices.add("正在生成诉讼文书...")
            try:
                document = await self._backend.generate_document(
                    self._state.conversation_id,
                    self._settings.DOCUMENT_PROMPT,
                )
            except LexChatError as e:
                logger.error(f"Legal document generation failed: {e}")
                self._notices.add("文书生成失败，请稍后重试")
                return self._state.update_action(message.id, ActionStatus.PENDING, DOCUMENT_RETRY_NOTICE) or updated

            document = document.model_copy(update={"content": format_document_for_display(document.content)})
            await self._effects.show_document(self._view_id, document)
            self._notices.add("文书生成完成")
            if document.explanation:
                self._notices.add(f"建议：{document.explanation}")
            return self._state.find(message.id) or updated
        finally:
            self._generating_document = False

    def _confirm_find_lawyer(self, message: ChatMessage, directive: ActionDirective) -> ChatMessage:
        updated = self._settle(message, directive, ActionDecision.CONFIRMED)
        self._notices.add("正在为您匹配合适的律师...")
        self._spawn(self._navigate_later(self._settings.FIND_LAWYER_ROUTE))
        return updated

    # ===========================================
    # Internals
    # ===========================================

    def _settle(
        self,
        message: ChatMessage,
        directive: ActionDirective,
        decision: ActionDecision,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ChatMessage:
        """Commit the decision locally, then report it without waiting."""
        response = describe_action_outcome(directive.type, decision.value, metadata)
        updated = self._state.update_action(message.id, decision.to_status(), response, metadata) or message
        self._spawn(self._report(build_action_report(directive, decision, updated.reference_id, metadata)))
        return updated

    async def _report(self, report: ActionReport) -> None:
        try:
            await self._backend.report_action_outcome(report)
        except Exception as e:
            logger.warning(f"Failed to report action outcome for message {report.message_id}: {e}")

    async def _navigate_later(self, route: str) -> None:
        await asyncio.sleep(self._settings.FIND_LAWYER_REDIRECT_DELAY_SECONDS)
        await self._effects.navigate(self._view_id, route)

    async def _auto_dispatch(self, message_id: str) -> None:
        await asyncio.sleep(self._settings.AUTO_ACTION_DELAY_SECONDS)
        message = self._state.find(message_id)
        if message is None or message.action_data is None or message.action_status is not None:
            return
        logger.info(f"Auto-completing '{message.action_data.type}' action on message {message.reference_id}")
        self._settle(message, message.action_data, ActionDecision.COMPLETED)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
