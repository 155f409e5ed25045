"""
Legal document response parsing.

The document generation endpoint has returned several shapes over time:
plain text, a JSON object (optionally wrapped in a ```json fence), an
object with a ``content`` field, or any of those nested under ``data``.
"""

import json
import re
from typing import Any, Optional

from lexchat.core.logger import setup_logger
from lexchat.models.chat import LegalDocument

logger = setup_logger(__name__)

DEFAULT_TITLE = "法律文书"
DEFAULT_FILE_NAME = "法律文书.docx"

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_TITLE_PATTERNS = [
    re.compile(r"^(.*?起诉状)", re.MULTILINE),
    re.compile(r"^(.*?申请书)", re.MULTILINE),
    re.compile(r"^(.*?协议书)", re.MULTILINE),
    re.compile(r"^(.*?合同)", re.MULTILINE),
    re.compile(r"^(.*?判决书)", re.MULTILINE),
    re.compile(r"^(.*?裁定书)", re.MULTILINE),
    re.compile(r"^(.*?调解书)", re.MULTILINE),
]
_ILLEGAL_FILE_CHARS = re.compile(r'[<>:"/\\|?*]')


def parse_document_response(data: Any) -> LegalDocument:
    """Normalize any supported response shape into a LegalDocument."""
    if isinstance(data, str):
        return _parse_text(data)

    if isinstance(data, dict):
        if data.get("content"):
            title = data.get("title") or DEFAULT_TITLE
            return LegalDocument(
                content=str(data["content"]),
                title=title,
                file_name=data.get("fileName") or generate_file_name(data.get("documentType") or data.get("title")),
                document_type=data.get("documentType"),
                explanation=data.get("explanation"),
            )
        if data.get("data"):
            return parse_document_response(data["data"])

    if data is None:
        return _plain_document("")
    if isinstance(data, (dict, list)):
        return _plain_document(json.dumps(data, ensure_ascii=False))
    return _plain_document(str(data))


def format_document_for_display(content: str) -> str:
    """Expand escaped newlines and collapse runs of blank lines."""
    content = content.replace("\\n", "\n")
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


def generate_file_name(document_type: Optional[str]) -> str:
    if not document_type:
        return DEFAULT_FILE_NAME
    clean = _ILLEGAL_FILE_CHARS.sub("", document_type)
    clean = re.sub(r"\s+", "_", clean).strip()
    return f"{clean}.docx" if clean else DEFAULT_FILE_NAME


def extract_title(content: str) -> str:
    lines = [line.strip() for line in content.split("\n") if line.strip()]
    if lines:
        first = lines[0]
        # short first lines without sentence punctuation read as titles
        if len(first) < 50 and "：" not in first and "。" not in first:
            return first

    for pattern in _TITLE_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(1).strip()

    return DEFAULT_TITLE


def _parse_text(content: str) -> LegalDocument:
    content = content.strip()

    fenced = _FENCED_JSON.search(content)
    if fenced:
        try:
            return parse_document_response(json.loads(fenced.group(1)))
        except ValueError as e:
            logger.warning(f"Fenced JSON document could not be parsed: {e}")

    if content.startswith("{") and content.endswith("}"):
        try:
            return parse_document_response(json.loads(content))
        except ValueError as e:
            logger.warning(f"JSON document could not be parsed, treating as text: {e}")

    return _plain_document(content)


def _plain_document(content: str) -> LegalDocument:
    title = extract_title(content)
    return LegalDocument(content=content, title=title, file_name=generate_file_name(title))
