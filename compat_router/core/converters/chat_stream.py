"""OpenAI Chat Completions 流式响应 -> Anthropic 流式事件"""

from typing import Any

from ...common.ids import generate_server_tool_use_id, now_ms
from .response_converter import map_finish_reason
from .stream_converters import BaseStreamConverter, describe_error

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


class ChatStreamConverter(BaseStreamConverter):
    """Chat流转换器

    处理文本中的 `<think>` 标签、`reasoning`/`reasoning_content`、结构化
    `thinking`（content/signature）、工具调用增量、web search注释以及上游错误块。
    finish_reason之后继续读取，以获取尾部的usage块。
    """

    source_name = "chat"

    def __init__(self, model: str = "unknown", request_id: str | None = None):
        super().__init__(model, request_id)
        self.in_think_tag = False

    def process_chunk(self, chunk: dict[str, Any]) -> list[str]:
        if chunk.get("error"):
            self.logger.warning(f"上游返回错误块: {chunk['error']}")
            return self.ensure_started() + self.error(describe_error(chunk["error"]))

        self.update_model(chunk.get("model"))
        events = self.ensure_started()

        usage = chunk.get("usage")
        if isinstance(usage, dict):
            self.update_usage(
                input_tokens=usage.get("prompt_tokens"),
                output_tokens=usage.get("completion_tokens"),
                cache_read_tokens=usage.get("cache_read_input_tokens"),
            )

        if self.state.has_finished:
            return events

        choices = chunk.get("choices") or []
        if not choices:
            return events
        choice = choices[0] or {}
        delta = choice.get("delta") or {}

        reasoning = delta.get("reasoning")
        if not isinstance(reasoning, str) or not reasoning:
            reasoning = delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            events.extend(self.thinking_delta(reasoning))

        thinking = delta.get("thinking")
        if isinstance(thinking, dict):
            if thinking.get("signature"):
                events.extend(self.signature_delta(thinking["signature"]))
            elif thinking.get("content"):
                events.extend(self.thinking_delta(thinking["content"]))

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.extend(self.process_text(content))

        annotations = delta.get("annotations")
        if isinstance(annotations, list) and annotations:
            events.extend(self.process_annotations(annotations))

        tool_calls = delta.get("tool_calls")
        if tool_calls:
            events.extend(self.process_tool_calls(tool_calls))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self.state.stop_reason = map_finish_reason(finish_reason)
            self.state.has_finished = True

        return events

    def process_text(self, text: str) -> list[str]:
        """处理文本，`<think>...</think>` 之间的内容作为思考内容输出"""
        events = []
        remaining = text
        while remaining:
            if self.in_think_tag:
                close_index = remaining.find(THINK_CLOSE)
                if close_index == -1:
                    events.extend(self.thinking_delta(remaining))
                    break
                events.extend(self.thinking_delta(remaining[:close_index]))
                self.in_think_tag = False
                remaining = remaining[close_index + len(THINK_CLOSE):].lstrip("\r\n")
            else:
                open_index = remaining.find(THINK_OPEN)
                if open_index == -1:
                    events.extend(self.text_delta(remaining))
                    break
                events.extend(self.text_delta(remaining[:open_index]))
                self.in_think_tag = True
                remaining = remaining[open_index + len(THINK_OPEN):]
        return events

    def process_annotations(self, annotations: list[Any]) -> list[str]:
        results = []
        for annotation in annotations:
            if not isinstance(annotation, dict):
                continue
            citation = annotation.get("url_citation")
            if not isinstance(citation, dict):
                citation = {}
            result = {"type": "web_search_result"}
            if citation.get("title") is not None:
                result["title"] = citation["title"]
            if citation.get("url") is not None:
                result["url"] = citation["url"]
            results.append(result)
        if not results:
            return []
        return self.web_search_result(generate_server_tool_use_id(), results)

    def process_tool_calls(self, tool_calls: list[Any]) -> list[str]:
        """处理工具调用增量

        首个增量缺少id或name时使用临时值 `call_<ms>_<i>` / `tool_<i>`；
        同一块中重复的索引只处理第一个。
        """
        events = []
        processed_indices: set[int] = set()

        for tool_call in tool_calls:
            if not isinstance(tool_call, dict):
                continue
            tool_index = tool_call.get("index", 0)
            if tool_index in processed_indices:
                continue
            processed_indices.add(tool_index)

            function = tool_call.get("function") or {}
            if tool_index not in self.state.tool_calls:
                tool_id = tool_call.get("id") or f"call_{now_ms()}_{tool_index}"
                tool_name = function.get("name") or f"tool_{tool_index}"
                events.extend(self.start_tool_block(tool_index, tool_id, tool_name))
            elif tool_call.get("id") and function.get("name"):
                state = self.state.tool_calls[tool_index]
                if state["id"].startswith("call_") and state["name"].startswith("tool_"):
                    state["id"] = tool_call["id"]
                    state["name"] = function["name"]

            arguments = function.get("arguments")
            if isinstance(arguments, str) and arguments:
                events.extend(self.tool_input_delta(tool_index, arguments))

        return events
