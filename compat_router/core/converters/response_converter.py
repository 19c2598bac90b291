"""
OpenAI-to-Anthropic 响应转换器

实现将OpenAI Chat Completions和Responses的非流式响应转换为Anthropic格式。
上游响应按原始dict宽松读取，缺失或异常的响应转换为带错误文本的消息，
不会抛出异常。
"""

import re
from typing import Any

from ...common.ids import generate_message_id, generate_server_tool_use_id
from ...common.logging import get_logger_with_request_id
from ...models.anthropic import (
    AnthropicContentBlock,
    AnthropicMessageResponse,
    AnthropicStopReason,
    AnthropicUsage,
    ServerToolUseBlock,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    WebSearchResult,
    WebSearchToolResultBlock,
)
from .content_blocks import (
    chat_text_to_text_block,
    chat_tool_call_to_tool_use,
    function_call_to_tool_use,
    output_text_to_text_block,
)

THINK_TAG_PATTERN = re.compile(r"<think>(.*?)</think>", re.DOTALL)

CHAT_STOP_REASON_MAP: dict[str, AnthropicStopReason] = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    # 近似映射
    "content_filter": "stop_sequence",
}

RESPONSES_STOP_REASON_MAP: dict[str, AnthropicStopReason] = {
    "stop": "end_turn",
    "completed": "end_turn",
    "complete": "end_turn",
    "length": "max_tokens",
    "max_tokens": "max_tokens",
    "tool_calls": "tool_use",
    "tool_call": "tool_use",
    "tool_use": "tool_use",
}


def map_finish_reason(finish_reason: str | None) -> AnthropicStopReason:
    """Chat finish_reason 映射为 Anthropic stop_reason，默认end_turn"""
    if not finish_reason:
        return "end_turn"
    return CHAT_STOP_REASON_MAP.get(finish_reason, "end_turn")


def map_response_status(status: str | None) -> AnthropicStopReason:
    """Responses status/stop_reason 映射为 Anthropic stop_reason，忽略大小写"""
    if not status:
        return "end_turn"
    return RESPONSES_STOP_REASON_MAP.get(str(status).lower(), "end_turn")


def extract_chat_text(content: Any) -> str | None:
    """从字符串或内容部分数组中提取文本"""
    if content is None or content == "":
        return None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and part.get("type") in ("text", "output_text"):
                text = part.get("text")
                if isinstance(text, str):
                    texts.append(text)
        joined = "".join(texts)
        return joined or None
    return str(content)


def web_search_blocks(annotations: Any) -> list[AnthropicContentBlock]:
    """将url_citation注释转换为server_tool_use + web_search_tool_result块"""
    if not isinstance(annotations, list) or not annotations:
        return []

    results = []
    for annotation in annotations:
        if not isinstance(annotation, dict):
            continue
        citation = annotation.get("url_citation")
        if not isinstance(citation, dict):
            citation = {}
        results.append(
            WebSearchResult(url=citation.get("url"), title=citation.get("title"))
        )
    if not results:
        return []

    tool_use_id = generate_server_tool_use_id()
    return [
        ServerToolUseBlock(id=tool_use_id, name="web_search", input={"query": ""}),
        WebSearchToolResultBlock(tool_use_id=tool_use_id, content=results),
    ]


def _split_think_tags(text: str) -> tuple[str | None, str]:
    """拆分<think>标签中的思考内容与普通文本"""
    matches = THINK_TAG_PATTERN.findall(text)
    if not matches:
        return None, text
    thinking = "\n".join(m.strip() for m in matches if m.strip()) or None
    return thinking, THINK_TAG_PATTERN.sub("", text).strip()


def _chat_thinking_block(message: dict[str, Any]) -> ThinkingBlock | None:
    thinking = message.get("thinking")
    if isinstance(thinking, dict) and thinking.get("content"):
        return ThinkingBlock(
            thinking=thinking["content"], signature=thinking.get("signature")
        )

    for key in ("reasoning", "reasoning_content"):
        reasoning = message.get(key)
        if isinstance(reasoning, str) and reasoning:
            return ThinkingBlock(thinking=reasoning)
    return None


class OpenAIToAnthropicConverter:
    """OpenAI响应到Anthropic格式的转换器"""

    @staticmethod
    def create_error_response(
        message: str, model: str = "unknown"
    ) -> AnthropicMessageResponse:
        """构造文本为 `Error: <message>` 的Anthropic消息"""
        return AnthropicMessageResponse(
            id=generate_message_id(),
            content=[TextBlock(text=f"Error: {message}")],
            model=model,
            stop_reason="end_turn",
            usage=AnthropicUsage(),
        )

    @staticmethod
    def from_chat(
        chat_response: dict[str, Any] | None,
        request_model: str | None = None,
        request_id: str | None = None,
    ) -> AnthropicMessageResponse:
        """
        将OpenAI Chat非流式响应转换为Anthropic格式

        Args:
            chat_response: OpenAI Chat响应字典
            request_model: 原始请求的模型，响应中缺少model时使用
            request_id: 请求ID用于日志追踪

        Returns:
            AnthropicMessageResponse: 转换后的Anthropic格式响应
        """
        bound_logger = get_logger_with_request_id(request_id)

        if not chat_response or not isinstance(chat_response, dict):
            bound_logger.warning("上游返回空响应")
            return OpenAIToAnthropicConverter.create_error_response(
                "Empty response from provider"
            )

        choices = chat_response.get("choices")
        if not choices:
            bound_logger.warning("上游响应没有有效的choices")
            return OpenAIToAnthropicConverter.create_error_response(
                "No choices in response"
            )

        choice = choices[0] or {}
        message = choice.get("message")
        if not message:
            return OpenAIToAnthropicConverter.create_error_response(
                "No message in response choice"
            )

        content: list[AnthropicContentBlock] = []

        thinking_block = _chat_thinking_block(message)
        text = extract_chat_text(message.get("content"))
        if text:
            tag_thinking, text = _split_think_tags(text)
            if tag_thinking and thinking_block is None:
                thinking_block = ThinkingBlock(thinking=tag_thinking)

        # thinking块总是位于最前
        if thinking_block is not None:
            content.append(thinking_block)

        content.extend(web_search_blocks(message.get("annotations")))

        if text:
            content.append(chat_text_to_text_block(text))

        for tool_call in message.get("tool_calls") or []:
            if not tool_call or not tool_call.get("function"):
                continue
            content.append(chat_tool_call_to_tool_use(tool_call))

        usage = chat_response.get("usage") or {}
        stop_reason = map_finish_reason(choice.get("finish_reason"))

        bound_logger.debug(
            f"Chat -> Anthropic 响应转换完成 - 内容块: {len(content)}, stop_reason: {stop_reason}"
        )
        return AnthropicMessageResponse(
            id=chat_response.get("id") or generate_message_id(),
            content=content,
            model=chat_response.get("model") or request_model or "unknown",
            stop_reason=stop_reason,
            usage=AnthropicUsage(
                input_tokens=usage.get("prompt_tokens") or 0,
                output_tokens=usage.get("completion_tokens") or 0,
                cache_read_input_tokens=usage.get("cache_read_input_tokens"),
            ),
        )

    @staticmethod
    def from_responses(
        responses_response: dict[str, Any] | None,
        request_model: str | None = None,
        request_id: str | None = None,
    ) -> AnthropicMessageResponse:
        """
        将OpenAI Responses非流式响应转换为Anthropic格式

        兼容 `{"response": {...}}` 包装格式；output可以是字符串、对象或输出项列表。

        Args:
            responses_response: OpenAI Responses响应字典
            request_model: 原始请求的模型
            request_id: 请求ID用于日志追踪

        Returns:
            AnthropicMessageResponse: 转换后的Anthropic格式响应，content不会为空
        """
        bound_logger = get_logger_with_request_id(request_id)

        if not responses_response or not isinstance(responses_response, dict):
            bound_logger.warning("上游返回空响应")
            return OpenAIToAnthropicConverter.create_error_response(
                "Empty response from provider"
            )

        resp = responses_response.get("response") or responses_response
        model = (
            resp.get("model")
            or responses_response.get("model")
            or request_model
            or "unknown"
        )

        output = resp.get("output")
        for key in ("outputs", "output_text", "output_texts"):
            if output is not None:
                break
            output = resp.get(key)

        content: list[AnthropicContentBlock] = []
        if isinstance(output, str):
            if output:
                content.append(TextBlock(text=output))
        elif isinstance(output, list):
            for item in output:
                if item:
                    content.extend(_convert_output_item(item))
        elif isinstance(output, dict):
            text = _output_text(output)
            if text:
                content.append(TextBlock(text=text))

        for key in ("reasoning", "reasoning_content"):
            reasoning = resp.get(key)
            if isinstance(reasoning, str) and reasoning:
                content.append(ThinkingBlock(thinking=reasoning))
                break

        if not content:
            content.append(TextBlock(text=""))

        usage = resp.get("usage") or {}
        stop_reason = map_response_status(
            resp.get("stop_reason") or resp.get("status") or "end_turn"
        )
        # status为completed但包含函数调用时，调用方需要tool_use才会执行工具
        if stop_reason == "end_turn" and any(
            isinstance(block, ToolUseBlock) for block in content
        ):
            stop_reason = "tool_use"

        bound_logger.debug(
            f"Responses -> Anthropic 响应转换完成 - 内容块: {len(content)}, stop_reason: {stop_reason}"
        )
        return AnthropicMessageResponse(
            id=resp.get("id") or generate_message_id(),
            content=content,
            model=model,
            stop_reason=stop_reason,
            usage=AnthropicUsage(
                input_tokens=usage.get("input_tokens") or usage.get("prompt_tokens") or 0,
                output_tokens=usage.get("output_tokens")
                or usage.get("completion_tokens")
                or 0,
            ),
        )


def _output_text(output: Any) -> str | None:
    if isinstance(output, str):
        return output
    if isinstance(output, dict) and isinstance(output.get("output_text"), str):
        return output["output_text"]
    return None


def _message_item_blocks(item: dict[str, Any]) -> list[AnthropicContentBlock]:
    blocks: list[AnthropicContentBlock] = []
    for part in item.get("content") or []:
        if not isinstance(part, dict):
            continue
        if part.get("type") == "output_text" and part.get("text"):
            blocks.append(output_text_to_text_block(part))
        elif part.get("type") == "refusal" and part.get("refusal"):
            blocks.append(TextBlock(text=f"[Refusal] {part['refusal']}"))
    return blocks


def _reasoning_item_block(item: dict[str, Any]) -> ThinkingBlock | None:
    summary = item.get("summary")
    if not isinstance(summary, list):
        return None
    text = "\n".join(
        s["text"]
        for s in summary
        if isinstance(s, dict)
        and s.get("type") in ("output_text", "summary_text")
        and s.get("text")
    )
    return ThinkingBlock(thinking=text) if text else None


def _generic_item_blocks(item: dict[str, Any]) -> list[AnthropicContentBlock]:
    """未知输出项的兜底处理：output_text、output_tool_call与嵌套content"""
    blocks: list[AnthropicContentBlock] = []

    text = _output_text(item.get("output_text"))
    if text:
        blocks.append(TextBlock(text=text))

    tool_call = item.get("output_tool_call")
    if isinstance(tool_call, dict):
        function = tool_call.get("function") or {}
        blocks.append(
            function_call_to_tool_use(
                {
                    "id": tool_call.get("id"),
                    "call_id": tool_call.get("call_id"),
                    "name": tool_call.get("name") or function.get("name") or "tool",
                    "arguments": tool_call.get("arguments")
                    or tool_call.get("function_arguments")
                    or "{}",
                }
            )
        )

    nested = item.get("content")
    if isinstance(nested, list):
        texts = []
        for part in nested:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict):
                value = part.get("text") or part.get("content")
                if value:
                    texts.append(str(value))
        if texts:
            blocks.append(TextBlock(text="".join(texts)))

    return blocks


def _convert_output_item(item: Any) -> list[AnthropicContentBlock]:
    if not isinstance(item, dict):
        return []

    item_type = str(item.get("type") or "").lower()
    if "message" in item_type:
        return _message_item_blocks(item)
    if "function_call" in item_type or "tool" in item_type:
        return [function_call_to_tool_use(item)]
    if "reasoning" in item_type:
        block = _reasoning_item_block(item)
        return [block] if block else []
    if "text" in item_type:
        text = item.get("text") or item.get("content") or ""
        return [TextBlock(text=str(text))] if text else []
    return _generic_item_blocks(item)
