"""
Unit tests for legal document response parsing.
"""

from lexchat.services.document_parser import (
    extract_title,
    format_document_for_display,
    generate_file_name,
    parse_document_response,
)


class TestParseDocumentResponse:
    def test_object_with_content(self):
        document = parse_document_response({
            "content": "起诉状正文",
            "title": "民事起诉状",
            "documentType": "民事起诉状",
            "explanation": "请核对原被告信息",
        })
        assert document.content == "起诉状正文"
        assert document.title == "民事起诉状"
        assert document.file_name == "民事起诉状.docx"
        assert document.explanation == "请核对原被告信息"

    def test_explicit_file_name_wins(self):
        document = parse_document_response({"content": "正文", "fileName": "起诉状-final.docx"})
        assert document.file_name == "起诉状-final.docx"
        assert document.title == "法律文书"

    def test_nested_under_data(self):
        document = parse_document_response({"data": {"content": "正文", "title": "答辩状"}})
        assert document.content == "正文"
        assert document.title == "答辩状"

    def test_fenced_json_string(self):
        text = '以下是文书：\n```json\n{"content": "协议正文", "title": "和解协议书"}\n```'
        document = parse_document_response(text)
        assert document.content == "协议正文"
        assert document.title == "和解协议书"

    def test_bare_json_string(self):
        document = parse_document_response('{"content": "正文", "documentType": "申请书"}')
        assert document.file_name == "申请书.docx"

    def test_plain_text(self):
        document = parse_document_response("民事起诉状\n原告：张三\n被告：李四")
        assert document.title == "民事起诉状"
        assert document.file_name == "民事起诉状.docx"
        assert document.content.startswith("民事起诉状")

    def test_broken_json_is_plain_text(self):
        document = parse_document_response("{not json}")
        assert document.content == "{not json}"

    def test_object_without_content(self):
        document = parse_document_response({"status": "ok"})
        assert document.content == '{"status": "ok"}'

    def test_none(self):
        document = parse_document_response(None)
        assert document.content == ""
        assert document.title == "法律文书"


class TestHelpers:
    def test_format_for_display(self):
        assert format_document_for_display("  标题\\n\\n\\n\\n正文\n\n\n结尾  ") == "标题\n\n正文\n\n结尾"

    def test_file_name_strips_illegal_characters(self):
        assert generate_file_name('合同/纠纷: "起诉状"') == "合同纠纷_起诉状.docx"

    def test_file_name_default(self):
        assert generate_file_name(None) == "法律文书.docx"
        assert generate_file_name("///") == "法律文书.docx"

    def test_title_from_pattern(self):
        content = "根据您提供的信息，现拟定如下文书。\n房屋租赁合同\n甲方：王五"
        assert extract_title(content) == "房屋租赁合同"

    def test_title_default(self):
        assert extract_title("") == "法律文书"
