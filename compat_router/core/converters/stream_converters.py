"""
流式转换公共部分

- Anthropic流式事件帧构造函数
- StreamState: 单次流转换的状态
- BaseStreamConverter: 内容块生命周期管理（message_start只发送一次、
  text/thinking/tool_use块的开始与结束、索引分配、message_delta与message_stop）

所有process方法返回SSE帧字符串列表，由 `convert` 异步生成器依次产出。
"""

import json
from collections.abc import AsyncIterator
from typing import Any

from ...common.ids import generate_message_id
from ...common.logging import get_logger_with_request_id
from ...models.anthropic import (
    AnthropicContentTypes,
    AnthropicStreamEventTypes,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    Delta,
    MessageDelta,
    MessageDeltaEvent,
    MessageDeltaUsage,
    MessageStartEvent,
    MessageStopEvent,
    StreamErrorDetail,
    StreamErrorEvent,
    StreamMessageStart,
)
from ..sse import format_event, iter_sse_data

# ---------------------------------------------------------------------------
# 事件帧构造
# ---------------------------------------------------------------------------


def message_start_event(message_id: str, model: str) -> str:
    event = MessageStartEvent(message=StreamMessageStart(id=message_id, model=model))
    return format_event(AnthropicStreamEventTypes.MESSAGE_START, event)


def content_block_start_event(index: int, content_block: dict[str, Any]) -> str:
    event = ContentBlockStartEvent(index=index, content_block=content_block)
    return format_event(AnthropicStreamEventTypes.CONTENT_BLOCK_START, event)


def content_block_delta_event(index: int, delta: Delta) -> str:
    event = ContentBlockDeltaEvent(index=index, delta=delta)
    return format_event(AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA, event)


def text_delta_event(index: int, text: str) -> str:
    return content_block_delta_event(
        index, Delta(type=AnthropicContentTypes.TEXT_DELTA, text=text)
    )


def content_block_stop_event(index: int) -> str:
    return format_event(
        AnthropicStreamEventTypes.CONTENT_BLOCK_STOP, ContentBlockStopEvent(index=index)
    )


def message_delta_event(
    stop_reason: str,
    output_tokens: int = 0,
    input_tokens: int | None = None,
    cache_read_input_tokens: int | None = None,
) -> str:
    event = MessageDeltaEvent(
        delta=MessageDelta(stop_reason=stop_reason),
        usage=MessageDeltaUsage(
            output_tokens=output_tokens,
            input_tokens=input_tokens,
            cache_read_input_tokens=cache_read_input_tokens,
        ),
    )
    return format_event(AnthropicStreamEventTypes.MESSAGE_DELTA, event)


def message_stop_event() -> str:
    return format_event(AnthropicStreamEventTypes.MESSAGE_STOP, MessageStopEvent())


def describe_error(error: Any) -> str:
    """上游错误对象转换为错误消息文本"""
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return json.dumps(error, ensure_ascii=False)


def error_event(message: str, error_type: str = "api_error") -> str:
    event = StreamErrorEvent(error=StreamErrorDetail(type=error_type, message=message))
    return format_event(AnthropicStreamEventTypes.ERROR, event)


# ---------------------------------------------------------------------------
# 状态与块生命周期
# ---------------------------------------------------------------------------


class StreamState:
    """流状态管理类"""

    def __init__(self, model: str = "unknown"):
        self.message_id = generate_message_id()
        self.model = model
        # message_start已发送
        self.has_started = False
        # 上游已给出结束信号
        self.has_finished = False
        # message_stop已发送
        self.closed = False

        # 下一个内容块索引
        self.next_block_index = 0
        # 当前打开的内容块
        self.current_block_index: int | None = None
        self.current_block_type: str | None = None
        # 文本开始后不再接收思考内容
        self.thinking_closed = False

        # 工具调用：上游索引 -> {id, name, arguments, block_index}
        self.tool_calls: dict[Any, dict[str, Any]] = {}

        self.input_tokens: int | None = None
        self.output_tokens = 0
        self.cache_read_tokens: int | None = None
        self.stop_reason: str | None = None

        # 计数器
        self.total_chunks = 0


class BaseStreamConverter:
    """上游SSE流到Anthropic SSE流的转换基类

    子类实现 `process_chunk`，把单个上游JSON载荷转换为事件帧列表。
    """

    # 上游结束信号之后是否立即停止读取
    stop_on_finish = False
    source_name = "upstream"

    def __init__(self, model: str = "unknown", request_id: str | None = None):
        self.state = StreamState(model)
        self.request_id = request_id
        self.logger = get_logger_with_request_id(request_id)

    def process_chunk(self, chunk: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    async def convert(self, chunks: AsyncIterator[str]) -> AsyncIterator[str]:
        """将上游文本流转换为Anthropic事件帧

        上游流异常中断时先发送error事件；无论如何最后都会发送结束帧。

        Args:
            chunks: 上游响应的文本块

        Yields:
            str: Anthropic格式的SSE帧
        """
        try:
            async for payload in iter_sse_data(chunks):
                try:
                    chunk = json.loads(payload)
                except json.JSONDecodeError as parse_error:
                    self.logger.warning(
                        f"Parse error - Error: {parse_error.msg}, Data: {payload[:100]}"
                    )
                    continue
                if not isinstance(chunk, dict):
                    continue

                self.state.total_chunks += 1
                for frame in self.process_chunk(chunk):
                    yield frame

                if self.state.has_finished and self.stop_on_finish:
                    break
        except Exception as error:
            self.logger.opt(exception=error).error(
                f"Stream conversion error - Error: {error}"
            )
            for frame in self.ensure_started():
                yield frame
            yield error_event(str(error))

        for frame in self.finish_message():
            yield frame

        self.logger.info(
            f"流式转换完成 - 来源: {self.source_name}, 上游块: {self.state.total_chunks}, "
            f"内容块: {self.state.next_block_index}, stop_reason: {self.state.stop_reason}, "
            f"工具调用: {len(self.state.tool_calls)}"
        )

    # -- 消息生命周期 -------------------------------------------------------

    def update_model(self, model: str | None) -> None:
        if model and not self.state.has_started:
            self.state.model = model

    def update_usage(
        self,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        cache_read_tokens: int | None = None,
    ) -> None:
        if input_tokens is not None:
            self.state.input_tokens = input_tokens
        if output_tokens is not None:
            self.state.output_tokens = output_tokens
        if cache_read_tokens is not None:
            self.state.cache_read_tokens = cache_read_tokens

    def ensure_started(self) -> list[str]:
        if self.state.has_started or self.state.closed:
            return []
        self.state.has_started = True
        return [message_start_event(self.state.message_id, self.state.model)]

    def finish_message(self) -> list[str]:
        """关闭打开的块并发送message_delta与message_stop，只执行一次"""
        if self.state.closed:
            return []

        events = self.ensure_started()
        events.extend(self.close_current_block())

        stop_reason = self.state.stop_reason
        if stop_reason is None:
            stop_reason = "tool_use" if self.state.tool_calls else "end_turn"
        self.state.stop_reason = stop_reason

        events.append(
            message_delta_event(
                stop_reason,
                output_tokens=self.state.output_tokens,
                input_tokens=self.state.input_tokens,
                cache_read_input_tokens=self.state.cache_read_tokens,
            )
        )
        events.append(message_stop_event())
        self.state.closed = True
        self.state.has_finished = True
        return events

    # -- 块生命周期 ---------------------------------------------------------

    def close_current_block(self) -> list[str]:
        if self.state.current_block_index is None:
            return []
        index = self.state.current_block_index
        self.state.current_block_index = None
        self.state.current_block_type = None
        return [content_block_stop_event(index)]

    def _open_block(self, block_type: str, content_block: dict[str, Any]) -> list[str]:
        events = self.close_current_block()
        index = self.state.next_block_index
        self.state.next_block_index += 1
        self.state.current_block_index = index
        self.state.current_block_type = block_type
        events.append(content_block_start_event(index, content_block))
        return events

    def text_delta(self, text: str) -> list[str]:
        if self.state.closed or not text:
            return []
        self.state.thinking_closed = True
        events = []
        if self.state.current_block_type != AnthropicContentTypes.TEXT:
            events.extend(
                self._open_block(
                    AnthropicContentTypes.TEXT,
                    {"type": AnthropicContentTypes.TEXT, "text": ""},
                )
            )
        events.append(text_delta_event(self.state.current_block_index, text))
        return events

    def thinking_delta(self, thinking: str) -> list[str]:
        if self.state.closed or not thinking or self.state.thinking_closed:
            return []
        events = []
        if self.state.current_block_type != AnthropicContentTypes.THINKING:
            events.extend(
                self._open_block(
                    AnthropicContentTypes.THINKING,
                    {"type": AnthropicContentTypes.THINKING, "thinking": ""},
                )
            )
        events.append(
            content_block_delta_event(
                self.state.current_block_index,
                Delta(type=AnthropicContentTypes.THINKING_DELTA, thinking=thinking),
            )
        )
        return events

    def signature_delta(self, signature: str) -> list[str]:
        """签名结束当前thinking块"""
        if (
            self.state.closed
            or not signature
            or self.state.current_block_type != AnthropicContentTypes.THINKING
        ):
            return []
        events = [
            content_block_delta_event(
                self.state.current_block_index,
                Delta(type=AnthropicContentTypes.SIGNATURE_DELTA, signature=signature),
            )
        ]
        events.extend(self.close_current_block())
        return events

    def start_tool_block(self, tool_key: Any, tool_id: str, name: str) -> list[str]:
        if self.state.closed or tool_key in self.state.tool_calls:
            return []
        self.state.thinking_closed = True
        events = self._open_block(
            AnthropicContentTypes.TOOL_USE,
            {"type": AnthropicContentTypes.TOOL_USE, "id": tool_id, "name": name, "input": {}},
        )
        self.state.tool_calls[tool_key] = {
            "id": tool_id,
            "name": name,
            "arguments": "",
            "block_index": self.state.current_block_index,
        }
        return events

    def tool_input_delta(self, tool_key: Any, partial_json: str) -> list[str]:
        tool_call = self.state.tool_calls.get(tool_key)
        if self.state.closed or tool_call is None or not partial_json:
            return []
        tool_call["arguments"] += partial_json
        return [
            content_block_delta_event(
                tool_call["block_index"],
                Delta(
                    type=AnthropicContentTypes.INPUT_JSON_DELTA, partial_json=partial_json
                ),
            )
        ]

    def close_tool_block(self, tool_key: Any) -> list[str]:
        tool_call = self.state.tool_calls.get(tool_key)
        if tool_call is None or tool_call["block_index"] != self.state.current_block_index:
            return []
        return self.close_current_block()

    def web_search_result(
        self, tool_use_id: str, results: list[dict[str, Any]]
    ) -> list[str]:
        """web search结果作为一个完整的块发送（start后立即stop）"""
        if self.state.closed:
            return []
        events = self._open_block(
            AnthropicContentTypes.WEB_SEARCH_TOOL_RESULT,
            {
                "type": AnthropicContentTypes.WEB_SEARCH_TOOL_RESULT,
                "tool_use_id": tool_use_id,
                "content": results,
            },
        )
        events.extend(self.close_current_block())
        return events

    def error(self, message: str, error_type: str = "api_error") -> list[str]:
        return [error_event(message, error_type)]
