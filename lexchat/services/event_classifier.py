"""
Event classifier for decoded stream frames.

Each frame is classified by the first matching encoding, newest first:

1. structured chunk with ``choices[0]`` (``delta.action`` / ``delta.content``
   / finish reason ``stop``)
2. bare directive object ``{"type": ..., "title": ..., "message": ...}``
3. plain text with inline ``[ACTION:<TYPE>:<payload>]`` markers

Anything else is Unparseable. Parse failures at any step simply mean the
step did not match; nothing here raises.
"""

import json
import re
from typing import Any, Optional

from pydantic import ValidationError

from lexchat.core.logger import setup_logger
from lexchat.models.chat import (
    ActionDirective,
    ActionEvent,
    ChatEvent,
    Completion,
    MetadataUpdate,
    TextDelta,
    Unparseable,
)
from lexchat.models.enums import ActionType

logger = setup_logger(__name__)

# JSON payloads end where the JSON value ends; anything else runs to the next "]"
ACTION_MARKER_HEAD = re.compile(r"\[ACTION:(?P<type>[A-Z_]+):")

_JSON_DECODER = json.JSONDecoder()

FINISH_STOP = "stop"

_LEGACY_DEFAULTS: dict[str, tuple[str, str]] = {
    ActionType.PERSONAL_INFO.value: ("个人信息确认", "我希望获取您的个人信息，您是否同意？"),
}


def classify(frame: str) -> list[ChatEvent]:
    """
    Classify one frame.

    Returns a single event, except for legacy marker frames that also carry
    plain text: those yield the TextDelta first, then the ActionEvent.
    """
    payload = _load_json(frame)

    if isinstance(payload, dict):
        structured = _classify_structured(payload)
        if structured is not None:
            return [structured]

        directive = _embedded_directive(payload)
        if directive is not None:
            return [ActionEvent(directive)]

        return [Unparseable(frame, reason="json object without choices or type")]

    text, directive = split_action_markers(frame)
    if directive is not None:
        events: list[ChatEvent] = []
        if text:
            events.append(TextDelta(text))
        events.append(ActionEvent(directive))
        return events

    reason = "plain text without action marker" if payload is None else "unsupported json value"
    return [Unparseable(frame, reason=reason)]


def split_action_markers(text: str) -> tuple[str, Optional[ActionDirective]]:
    """
    Remove inline action markers from text.

    Returns:
        (text without markers, directive built from the first marker or None)
    """
    markers = _find_markers(text)
    if not markers:
        return text, None

    _, _, action_type, payload = markers[0]
    directive = _directive_from_marker(action_type, payload)

    pieces: list[str] = []
    position = 0
    for start, end, _, _ in markers:
        pieces.append(text[position:start])
        position = end
    pieces.append(text[position:])
    return "".join(pieces).strip(), directive


def parse_directive_json(text: str) -> Optional[ActionDirective]:
    """Directive from text that is itself a bare JSON directive object."""
    payload = _load_json(text.strip())
    if isinstance(payload, dict):
        return _embedded_directive(payload)
    return None


def _find_markers(text: str) -> list[tuple[int, int, str, str]]:
    """(start, end, type token, raw payload) for every complete marker in text."""
    markers: list[tuple[int, int, str, str]] = []
    position = 0
    while True:
        head = ACTION_MARKER_HEAD.search(text, position)
        if head is None:
            break
        body_start = head.end()
        body_end = _json_payload_end(text, body_start)
        if body_end is None:
            body_end = text.find("]", body_start)
            if body_end == -1:
                break
        markers.append((head.start(), body_end + 1, head.group("type"), text[body_start:body_end]))
        position = body_end + 1
    return markers


def _json_payload_end(text: str, start: int) -> Optional[int]:
    # index of the "]" closing a marker whose payload is a JSON object
    if not text.startswith("{", start):
        return None
    try:
        _, end = _JSON_DECODER.raw_decode(text, start)
    except ValueError:
        return None
    if not text.startswith("]", end):
        return None
    return end


def _load_json(frame: str) -> Any:
    try:
        return json.loads(frame)
    except ValueError:
        return None


def _stream_ids(payload: dict[str, Any]) -> dict[str, Optional[str]]:
    return {
        "server_message_id": _as_id(payload.get("messageId")),
        "conversation_id": _as_id(payload.get("conversationId")) or _as_id(payload.get("conversation_id")),
    }


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def _classify_structured(payload: dict[str, Any]) -> Optional[ChatEvent]:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None

    choice = choices[0]
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        delta = {}
    ids = _stream_ids(payload)

    action = delta.get("action")
    if isinstance(action, dict) and "type" in action:
        try:
            return ActionEvent(ActionDirective.model_validate(action), **ids)
        except ValidationError as e:
            logger.debug(f"Ignoring invalid delta.action: {e}")

    content = delta.get("content")
    if isinstance(content, str) and content:
        return TextDelta(content, **ids)

    finish_reason = choice.get("finishReason") or choice.get("finish_reason")
    if finish_reason == FINISH_STOP:
        return Completion(**ids)

    # role-only deltas, null content, usage trailers
    return MetadataUpdate(**ids)


def _embedded_directive(payload: dict[str, Any]) -> Optional[ActionDirective]:
    if not isinstance(payload.get("type"), str):
        return None
    try:
        return ActionDirective.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Ignoring invalid bare directive: {e}")
        return None


def _directive_from_marker(type_token: str, raw_payload: str) -> ActionDirective:
    action_type = type_token.lower()
    default_title, default_message = _LEGACY_DEFAULTS.get(action_type, ("", ""))

    parsed = _load_json(raw_payload)
    if isinstance(parsed, dict):
        title = parsed.get("title") or default_title
        message = parsed.get("message") or parsed.get("content") or default_message
        return ActionDirective(type=action_type, title=title, message=message, data=parsed)

    title, _, message = raw_payload.partition(":")
    title = title.strip() or default_title
    message = message.strip() or default_message
    return ActionDirective(
        type=action_type,
        title=title,
        message=message,
        data={"title": title, "content": message},
    )
