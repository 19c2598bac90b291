"""OpenAI Responses API 流式事件 -> Anthropic 流式事件"""

from typing import Any

from ...common.ids import now_ms
from ...models.openai_responses import ResponsesStreamEventTypes as Events
from .response_converter import map_response_status
from .stream_converters import BaseStreamConverter, describe_error

# 只有生命周期意义、内容由delta事件承载的事件
_LIFECYCLE_EVENTS = frozenset(
    {
        Events.CREATED,
        Events.IN_PROGRESS,
        Events.FUNCTION_CALL_ARGUMENTS_DONE,
        "response.reasoning_summary_text.done",
        "response.reasoning_summary_part.added",
        "response.reasoning_summary_part.done",
    }
)

_COMPLETION_EVENTS = frozenset({Events.COMPLETED, "response.done", "done"})


class ResponsesStreamConverter(BaseStreamConverter):
    """Responses流转换器

    函数调用以output_index作为工具块的键；结束类事件（completed、incomplete、
    failed、error）之后停止读取上游。
    """

    stop_on_finish = True
    source_name = "responses"

    def process_chunk(self, chunk: dict[str, Any]) -> list[str]:
        event_type = chunk.get("type") or chunk.get("event") or ""
        response = chunk.get("response") or chunk

        if not isinstance(response, dict):
            response = chunk
        self.update_model(response.get("model"))
        self._update_usage(response.get("usage"))

        events = self.ensure_started()

        upstream_error = event_type != Events.FAILED and response.get("error")
        if event_type in (Events.ERROR, "response.error") or upstream_error:
            error = response.get("error") or chunk.get("error") or chunk
            self.logger.warning(f"上游返回错误事件: {error}")
            events.extend(self.error(describe_error(error)))
            self.state.has_finished = True
            return events

        if event_type == Events.OUTPUT_TEXT_DELTA:
            delta = chunk.get("delta")
            if isinstance(delta, str) and delta:
                events.extend(self.text_delta(delta))
        elif event_type == Events.OUTPUT_TEXT_DONE:
            if self.state.current_block_type == "text":
                events.extend(self.close_current_block())
        elif event_type == Events.OUTPUT_ITEM_ADDED:
            events.extend(self._output_item_added(chunk))
        elif event_type == Events.OUTPUT_ITEM_DONE:
            events.extend(self._output_item_done(chunk))
        elif event_type == Events.FUNCTION_CALL_ARGUMENTS_DELTA:
            delta = chunk.get("delta")
            if isinstance(delta, str):
                events.extend(self.tool_input_delta(chunk.get("output_index", 0), delta))
        elif event_type == Events.REASONING_SUMMARY_TEXT_DELTA:
            delta = chunk.get("delta")
            if isinstance(delta, str) and delta:
                events.extend(self.thinking_delta(delta))
        elif event_type in _COMPLETION_EVENTS:
            self._complete(response)
        elif event_type == Events.INCOMPLETE:
            reason = (response.get("incomplete_details") or {}).get("reason")
            self.state.stop_reason = (
                "max_tokens" if reason == "max_output_tokens" else "end_turn"
            )
            self.state.has_finished = True
        elif event_type == Events.FAILED:
            if response.get("error"):
                self.logger.warning(f"上游响应失败: {response['error']}")
                events.extend(self.error(describe_error(response["error"])))
            self.state.stop_reason = "end_turn"
            self.state.has_finished = True
        elif event_type in _LIFECYCLE_EVENTS:
            pass
        elif response.get("status") == "completed":
            self._complete(response)

        return events

    def _update_usage(self, usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        self.update_usage(
            input_tokens=usage.get("input_tokens") or usage.get("prompt_tokens"),
            output_tokens=usage.get("output_tokens") or usage.get("completion_tokens"),
            cache_read_tokens=usage.get("cache_read_input_tokens"),
        )

    def _complete(self, response: dict[str, Any]) -> None:
        stop_reason = map_response_status(
            response.get("stop_reason") or response.get("status")
        )
        # completed状态不区分工具调用
        if stop_reason == "end_turn" and self.state.tool_calls:
            stop_reason = "tool_use"
        self.state.stop_reason = stop_reason
        self.state.has_finished = True

    def _output_item_added(self, chunk: dict[str, Any]) -> list[str]:
        item = chunk.get("item")
        if not isinstance(item, dict) or item.get("type") != "function_call":
            # reasoning项在第一个summary增量时才开始thinking块
            return []
        tool_id = item.get("call_id") or item.get("id") or f"call_{now_ms()}"
        tool_name = item.get("name") or "unknown_function"
        events = self.start_tool_block(chunk.get("output_index", 0), tool_id, tool_name)
        # 部分服务商在added事件中直接给出完整参数
        arguments = item.get("arguments")
        if isinstance(arguments, str) and arguments:
            events.extend(self.tool_input_delta(chunk.get("output_index", 0), arguments))
        return events

    def _output_item_done(self, chunk: dict[str, Any]) -> list[str]:
        item = chunk.get("item")
        if not isinstance(item, dict):
            return []
        if item.get("type") == "function_call":
            return self.close_tool_block(chunk.get("output_index", 0))
        if item.get("type") == "reasoning":
            events = []
            if self.state.current_block_type != "thinking":
                # 没有收到summary增量时，使用done事件中的完整summary
                for part in item.get("summary") or []:
                    if isinstance(part, dict) and part.get("type") == "summary_text":
                        events.extend(self.thinking_delta(part.get("text") or ""))
            return events
        return []

