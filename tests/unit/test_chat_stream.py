"""Chat流式响应转换测试"""

import json

import pytest

from compat_router.core.converters import ChatStreamConverter
from tests.fixtures import collect, event_types, iter_chunks, parse_frames, sse


def chat_chunk(delta=None, finish_reason=None, **extra):
    chunk = {"model": "gpt-4o", "choices": [{"index": 0, "delta": delta or {}, "finish_reason": finish_reason}]}
    chunk.update(extra)
    return sse(chunk)


async def convert(*lines, model="claude-sonnet-4"):
    converter = ChatStreamConverter(model)
    frames = await collect(converter.convert(iter_chunks(list(lines))))
    return converter, parse_frames(frames)


class TestChatStreamConverter:
    @pytest.mark.asyncio
    async def test_text_stream(self):
        converter, frames = await convert(
            chat_chunk({"role": "assistant", "content": ""}),
            chat_chunk({"content": "Hel"}),
            chat_chunk({"content": "lo"}),
            chat_chunk({}, "stop"),
            sse({"choices": [], "usage": {"prompt_tokens": 9, "completion_tokens": 2}}),
            sse("[DONE]"),
        )
        assert [event for event, _ in frames] == [
            "message_start",
            "content_block_start",
            "content_block_delta",
            "content_block_delta",
            "content_block_stop",
            "message_delta",
            "message_stop",
        ]
        assert frames[0][1]["message"]["model"] == "gpt-4o"
        assert frames[0][1]["message"]["stop_reason"] is None
        assert frames[1][1] == {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}
        assert frames[2][1]["delta"] == {"type": "text_delta", "text": "Hel"}
        message_delta = frames[5][1]
        assert message_delta["delta"] == {"stop_reason": "end_turn", "stop_sequence": None}
        # finish_reason之后的usage块仍然被读取
        assert message_delta["usage"] == {"output_tokens": 2, "input_tokens": 9}

    @pytest.mark.asyncio
    async def test_chunks_split_across_lines(self):
        payload = chat_chunk({"content": "split"})
        converter = ChatStreamConverter("m")
        frames = await collect(converter.convert(iter_chunks([payload[:10], payload[10:]])))
        deltas = [data for event, data in parse_frames(frames) if event == "content_block_delta"]
        assert deltas[0]["delta"]["text"] == "split"

    @pytest.mark.asyncio
    async def test_tool_call_stream(self):
        _, frames = await convert(
            chat_chunk({"tool_calls": [{"index": 0, "id": "call_abc", "type": "function", "function": {"name": "ls", "arguments": ""}}]}),
            chat_chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"path"'}}]}),
            chat_chunk({"tool_calls": [{"index": 0, "function": {"arguments": ': "."}'}}]}),
            chat_chunk({}, "tool_calls"),
        )
        start = frames[1][1]
        assert start["content_block"] == {"type": "tool_use", "id": "call_abc", "name": "ls", "input": {}}
        partial = [d["delta"]["partial_json"] for e, d in frames if e == "content_block_delta"]
        assert "".join(partial) == '{"path": "."}'
        assert json.loads("".join(partial)) == {"path": "."}
        message_delta = [d for e, d in frames if e == "message_delta"][0]
        assert message_delta["delta"]["stop_reason"] == "tool_use"

    @pytest.mark.asyncio
    async def test_text_then_tool_uses_distinct_indexes(self):
        _, frames = await convert(
            chat_chunk({"content": "Checking"}),
            chat_chunk({"tool_calls": [{"index": 0, "id": "call_1", "function": {"name": "ls", "arguments": "{}"}}]}),
            chat_chunk({"tool_calls": [{"index": 1, "id": "call_2", "function": {"name": "pwd", "arguments": "{}"}}]}),
            chat_chunk({}, "tool_calls"),
        )
        starts = [d["index"] for e, d in frames if e == "content_block_start"]
        stops = [d["index"] for e, d in frames if e == "content_block_stop"]
        assert starts == [0, 1, 2]
        assert stops == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_missing_tool_id_gets_placeholder(self):
        _, frames = await convert(
            chat_chunk({"tool_calls": [{"index": 0, "function": {"arguments": "{}"}}]}),
            chat_chunk({}, "tool_calls"),
        )
        block = frames[1][1]["content_block"]
        assert block["id"].startswith("call_")
        assert block["name"] == "tool_0"

    @pytest.mark.asyncio
    async def test_reasoning_then_text(self):
        _, frames = await convert(
            chat_chunk({"reasoning_content": "let me think"}),
            chat_chunk({"content": "answer"}),
            chat_chunk({}, "stop"),
        )
        starts = [d["content_block"]["type"] for e, d in frames if e == "content_block_start"]
        assert starts == ["thinking", "text"]
        thinking_delta = frames[2][1]["delta"]
        assert thinking_delta == {"type": "thinking_delta", "thinking": "let me think"}

    @pytest.mark.asyncio
    async def test_think_tags_in_content(self):
        _, frames = await convert(
            chat_chunk({"content": "<think>hmm"}),
            chat_chunk({"content": " ok</think>\nDone"}),
            chat_chunk({}, "stop"),
        )
        deltas = [d["delta"] for e, d in frames if e == "content_block_delta"]
        assert deltas == [
            {"type": "thinking_delta", "thinking": "hmm"},
            {"type": "thinking_delta", "thinking": " ok"},
            {"type": "text_delta", "text": "Done"},
        ]

    @pytest.mark.asyncio
    async def test_signature_closes_thinking(self):
        _, frames = await convert(
            chat_chunk({"thinking": {"content": "idea"}}),
            chat_chunk({"thinking": {"signature": "sig123"}}),
            chat_chunk({"content": "result"}),
            chat_chunk({}, "stop"),
        )
        assert [e for e, _ in frames][:5] == [
            "message_start",
            "content_block_start",
            "content_block_delta",
            "content_block_delta",
            "content_block_stop",
        ]
        assert frames[3][1]["delta"] == {"type": "signature_delta", "signature": "sig123"}

    @pytest.mark.asyncio
    async def test_upstream_error_chunk(self):
        _, frames = await convert(sse({"error": {"message": "quota exceeded", "type": "insufficient_quota"}}))
        assert [e for e, _ in frames] == ["message_start", "error", "message_delta", "message_stop"]
        assert frames[1][1] == {"type": "error", "error": {"type": "api_error", "message": "quota exceeded"}}

    @pytest.mark.asyncio
    async def test_malformed_json_is_skipped(self):
        _, frames = await convert("data: {not json}\n\n", chat_chunk({"content": "ok"}), chat_chunk({}, "stop"))
        assert "content_block_delta" in [e for e, _ in frames]

    @pytest.mark.asyncio
    async def test_empty_stream_still_terminates(self):
        _, frames = await convert()
        assert [e for e, _ in frames] == ["message_start", "message_delta", "message_stop"]
        assert frames[0][1]["message"]["model"] == "claude-sonnet-4"

    @pytest.mark.asyncio
    async def test_upstream_exception_emits_error_then_terminal_frames(self):
        async def broken():
            yield chat_chunk({"content": "partial"})
            raise RuntimeError("connection reset")

        converter = ChatStreamConverter("m")
        frames = await collect(converter.convert(broken()))
        # 打开的text块在message_delta之前被关闭
        assert event_types(frames) == [
            "message_start",
            "content_block_start",
            "content_block_delta",
            "error",
            "content_block_stop",
            "message_delta",
            "message_stop",
        ]
        assert parse_frames(frames)[3][1]["error"]["message"] == "connection reset"

    @pytest.mark.asyncio
    async def test_annotations_emit_web_search_block(self):
        _, frames = await convert(
            chat_chunk({"annotations": [{"type": "url_citation", "url_citation": {"url": "https://x.example", "title": "X"}}]}),
            chat_chunk({}, "stop"),
        )
        block = frames[1][1]["content_block"]
        assert block["type"] == "web_search_tool_result"
        assert block["content"] == [{"type": "web_search_result", "title": "X", "url": "https://x.example"}]

    @pytest.mark.asyncio
    async def test_non_object_annotations_are_skipped(self):
        _, frames = await convert(
            chat_chunk({"annotations": ["bad", {"type": "url_citation", "url_citation": {"url": "https://x.example"}}]}),
            chat_chunk({}, "stop"),
        )
        assert "error" not in [event for event, _ in frames]
        block = frames[1][1]["content_block"]
        assert block["content"] == [{"type": "web_search_result", "url": "https://x.example"}]

    @pytest.mark.asyncio
    async def test_only_malformed_annotations_emit_nothing(self):
        _, frames = await convert(
            chat_chunk({"annotations": ["bad", 3]}),
            chat_chunk({"content": "ok"}),
            chat_chunk({}, "stop"),
        )
        events = [event for event, _ in frames]
        assert "error" not in events
        starts = [data["content_block"]["type"] for event, data in frames if event == "content_block_start"]
        assert starts == ["text"]
