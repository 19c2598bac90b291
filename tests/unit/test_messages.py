"""消息数组转换测试"""

from compat_router.core.converters.messages import (
    convert_messages_to_chat,
    convert_messages_to_responses,
    system_text,
)
from compat_router.models.anthropic import AnthropicMessage, AnthropicSystemBlock


def messages(*raw):
    return [AnthropicMessage.model_validate(m) for m in raw]


TOOL_ROUND_TRIP = messages(
    {"role": "user", "content": "List files"},
    {
        "role": "assistant",
        "content": [
            {"type": "text", "text": "Let me check."},
            {"type": "tool_use", "id": "toolu_1", "name": "ls", "input": {"path": "."}},
        ],
    },
    {
        "role": "user",
        "content": [
            {"type": "tool_result", "tool_use_id": "toolu_1", "content": "a.txt"},
            {"type": "text", "text": "Now read it"},
        ],
    },
)


class TestSystemText:
    def test_string_and_blocks(self):
        assert system_text("be brief") == "be brief"
        assert system_text([AnthropicSystemBlock(text="a"), AnthropicSystemBlock(text="b")]) == "a\nb"
        assert system_text(None) == ""


class TestChatMessages:
    def test_system_string_first(self):
        result = convert_messages_to_chat(messages({"role": "user", "content": "hi"}), "sys")
        dumped = [m.model_dump() for m in result.messages]
        assert dumped == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]

    def test_system_blocks_keep_cache_control(self):
        system = [AnthropicSystemBlock(text="cached", cache_control={"type": "ephemeral"})]
        result = convert_messages_to_chat([], system)
        assert result.messages[0].model_dump() == {
            "role": "system",
            "content": [{"type": "text", "text": "cached", "cache_control": {"type": "ephemeral"}}],
        }

    def test_tool_round_trip(self):
        dumped = [m.model_dump() for m in convert_messages_to_chat(TOOL_ROUND_TRIP, None).messages]
        assert dumped == [
            {"role": "user", "content": "List files"},
            {
                "role": "assistant",
                "content": "Let me check.",
                "tool_calls": [
                    {
                        "id": "toolu_1",
                        "type": "function",
                        "function": {"name": "ls", "arguments": '{"path": "."}'},
                    }
                ],
            },
            # tool消息先于同一条用户消息的其他内容
            {"role": "tool", "content": "a.txt", "tool_call_id": "toolu_1"},
            {"role": "user", "content": [{"type": "text", "text": "Now read it"}]},
        ]

    def test_assistant_with_only_tool_calls_has_null_content(self):
        result = convert_messages_to_chat(
            messages(
                {
                    "role": "assistant",
                    "content": [{"type": "tool_use", "id": "t1", "name": "ls", "input": {}}],
                }
            ),
            None,
        )
        dumped = result.messages[0].model_dump()
        assert "content" in dumped
        assert dumped["content"] is None

    def test_images_are_flagged(self):
        result = convert_messages_to_chat(
            messages(
                {
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "QUJD"}},
                        {"type": "text", "text": ""},
                    ],
                }
            ),
            None,
        )
        assert result.has_images is True
        # 空文本块被丢弃
        assert len(result.messages[0].content) == 1

    def test_user_message_with_only_tool_results(self):
        result = convert_messages_to_chat(
            messages(
                {
                    "role": "user",
                    "content": [{"type": "tool_result", "tool_use_id": "t1", "content": [{"type": "text", "text": "x"}]}],
                }
            ),
            None,
        )
        assert [m.role for m in result.messages] == ["tool"]
        assert result.messages[0].content == '[{"type": "text", "text": "x"}]'

    def test_input_is_not_mutated(self):
        original = messages({"role": "user", "content": [{"type": "text", "text": "hi"}]})
        before = original[0].model_dump()
        convert_messages_to_chat(original, "sys")
        assert original[0].model_dump() == before


class TestResponsesItems:
    def test_tool_round_trip(self):
        items = [i.model_dump() for i in convert_messages_to_responses(TOOL_ROUND_TRIP, "sys")]
        assert items == [
            {"role": "system", "content": [{"type": "input_text", "text": "sys"}]},
            {"role": "user", "content": [{"type": "input_text", "text": "List files"}]},
            {"role": "assistant", "content": [{"type": "output_text", "text": "Let me check."}]},
            {"type": "function_call", "call_id": "toolu_1", "name": "ls", "arguments": '{"path": "."}'},
            {"type": "function_call_output", "call_id": "toolu_1", "output": "a.txt"},
            {"role": "user", "content": [{"type": "input_text", "text": "Now read it"}]},
        ]

    def test_assistant_string_content_is_output_text(self):
        items = convert_messages_to_responses(
            messages({"role": "assistant", "content": "done"}), None
        )
        assert items[0].model_dump() == {
            "role": "assistant",
            "content": [{"type": "output_text", "text": "done"}],
        }

    def test_system_blocks_are_joined(self):
        items = convert_messages_to_responses(
            [], [AnthropicSystemBlock(text="one"), AnthropicSystemBlock(text="two")]
        )
        assert items[0].content[0].text == "one\ntwo"
