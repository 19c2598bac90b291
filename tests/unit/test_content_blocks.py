"""内容块转换测试"""

from compat_router.core.converters.content_blocks import (
    block_to_chat_part,
    block_to_responses_part,
    chat_tool_call_to_tool_use,
    content_has_images,
    content_has_tool_use,
    extract_text,
    function_call_to_tool_use,
    image_source_to_url,
    normalize_content,
    parse_tool_arguments,
    serialize_tool_input,
    serialize_tool_result,
    tool_result_to_function_call_output,
    tool_use_to_chat_tool_call,
    tool_use_to_function_call,
)
from compat_router.models.anthropic import (
    AnthropicMessage,
    Base64ImageSource,
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UnknownBlock,
    URLImageSource,
)


class TestImageSources:
    def test_base64_source_becomes_data_uri(self):
        source = Base64ImageSource(media_type="image/jpeg", data="AAAA")
        assert image_source_to_url(source) == "data:image/jpeg;base64,AAAA"

    def test_missing_media_type_defaults_to_png(self):
        source = Base64ImageSource(data="AAAA")
        assert image_source_to_url(source) == "data:image/png;base64,AAAA"

    def test_url_source_passes_through(self):
        source = URLImageSource(url="https://example.com/cat.png")
        assert image_source_to_url(source) == "https://example.com/cat.png"


class TestToolPayloads:
    def test_serialize_tool_input(self):
        assert serialize_tool_input({"path": "/tmp"}) == '{"path": "/tmp"}'
        assert serialize_tool_input(None) == "{}"

    def test_parse_valid_arguments(self):
        assert parse_tool_arguments('{"a": 1}') == {"a": 1}

    def test_parse_empty_arguments(self):
        assert parse_tool_arguments("") == {}
        assert parse_tool_arguments(None) == {}

    def test_parse_invalid_arguments_keeps_raw_text(self):
        assert parse_tool_arguments("{not json") == {"text": "{not json"}

    def test_parse_non_object_arguments(self):
        assert parse_tool_arguments("[1, 2]") == {"text": "[1, 2]"}

    def test_parse_already_parsed_arguments(self):
        assert parse_tool_arguments({"x": True}) == {"x": True}

    def test_serialize_tool_result(self):
        assert serialize_tool_result(None) == ""
        assert serialize_tool_result("done") == "done"
        assert serialize_tool_result([{"type": "text", "text": "ok"}]) == (
            '[{"type": "text", "text": "ok"}]'
        )


class TestAnthropicToChat:
    def test_text_block(self):
        part = block_to_chat_part(TextBlock(text="hi", cache_control={"type": "ephemeral"}))
        assert part.model_dump() == {
            "type": "text",
            "text": "hi",
            "cache_control": {"type": "ephemeral"},
        }

    def test_image_block(self):
        block = ImageBlock(source=Base64ImageSource(media_type="image/png", data="QUJD"))
        part = block_to_chat_part(block)
        assert part.model_dump() == {
            "type": "image_url",
            "image_url": {"url": "data:image/png;base64,QUJD"},
        }

    def test_unmappable_blocks_return_none(self):
        assert block_to_chat_part(ThinkingBlock(thinking="hmm")) is None
        assert block_to_chat_part(UnknownBlock(type="document")) is None

    def test_tool_use_to_tool_call(self):
        tool_call = tool_use_to_chat_tool_call(
            ToolUseBlock(id="toolu_1", name="read", input={"path": "a.txt"})
        )
        assert tool_call.model_dump() == {
            "id": "toolu_1",
            "type": "function",
            "function": {"name": "read", "arguments": '{"path": "a.txt"}'},
        }


class TestAnthropicToResponses:
    def test_text_role_dependent(self):
        block = TextBlock(text="hello")
        assert block_to_responses_part(block, "user").type == "input_text"
        assert block_to_responses_part(block, "assistant").type == "output_text"

    def test_image_part_is_flat_string(self):
        block = ImageBlock(source=URLImageSource(url="https://example.com/a.png"))
        part = block_to_responses_part(block, "user")
        assert part.model_dump() == {
            "type": "input_image",
            "image_url": "https://example.com/a.png",
        }

    def test_thinking_only_kept_for_assistant(self):
        block = ThinkingBlock(thinking="plan")
        assert block_to_responses_part(block, "user") is None
        assert block_to_responses_part(block, "assistant").model_dump() == {
            "type": "output_text",
            "text": "plan",
        }
        assert block_to_responses_part(ThinkingBlock(thinking=""), "assistant") is None

    def test_tool_use_and_result_items(self):
        call = tool_use_to_function_call(ToolUseBlock(id="toolu_9", name="ls", input=None))
        assert call.model_dump() == {
            "type": "function_call",
            "call_id": "toolu_9",
            "name": "ls",
            "arguments": "{}",
        }
        output = tool_result_to_function_call_output(
            ToolResultBlock(tool_use_id="toolu_9", content=None)
        )
        assert output.model_dump() == {
            "type": "function_call_output",
            "call_id": "toolu_9",
            "output": "",
        }


class TestOpenAIToAnthropic:
    def test_chat_tool_call(self):
        block = chat_tool_call_to_tool_use(
            {"id": "call_1", "function": {"name": "grep", "arguments": '{"q": "x"}'}}
        )
        assert block.id == "call_1"
        assert block.name == "grep"
        assert block.input == {"q": "x"}

    def test_chat_tool_call_without_id_gets_one(self):
        block = chat_tool_call_to_tool_use({"function": {"name": "grep", "arguments": ""}})
        assert block.id.startswith("toolu_")
        assert block.input == {}

    def test_function_call_id_precedence(self):
        assert function_call_to_tool_use({"id": "fc_1", "call_id": "call_1", "name": "a"}).id == "fc_1"
        assert function_call_to_tool_use({"call_id": "call_1", "name": "a"}).id == "call_1"
        assert function_call_to_tool_use({"name": "a"}).id.startswith("toolu_")


class TestContentHelpers:
    def test_normalize_string_content(self):
        blocks = normalize_content("hi")
        assert len(blocks) == 1
        assert isinstance(blocks[0], TextBlock)

    def test_extract_text_joins_with_newline(self):
        blocks = [TextBlock(text="a"), ToolUseBlock(id="t", name="n"), TextBlock(text="b")]
        assert extract_text(blocks) == "a\nb"
        assert extract_text([ToolUseBlock(id="t", name="n")]) is None

    def test_unknown_block_types_validate(self):
        message = AnthropicMessage.model_validate(
            {
                "role": "user",
                "content": [
                    {"type": "redacted_thinking", "data": "xxx"},
                    {"type": "text", "text": "ok"},
                ],
            }
        )
        assert isinstance(message.content[0], UnknownBlock)
        assert isinstance(message.content[1], TextBlock)

    def test_content_flags(self):
        image = ImageBlock(source=URLImageSource(url="https://example.com/a.png"))
        tool_result = ToolResultBlock(tool_use_id="t", content="ok")
        assert content_has_images([TextBlock(text="a"), image]) is True
        assert content_has_images([TextBlock(text="a")]) is False
        assert content_has_tool_use([tool_result]) is True
        assert content_has_tool_use([ToolUseBlock(id="t", name="n")]) is True
        assert content_has_tool_use([image]) is False
