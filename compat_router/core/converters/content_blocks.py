"""
内容块转换器

在三种协议的内容块之间逐块转换：
- Anthropic: text, image, tool_use, tool_result, thinking
- OpenAI Chat: text, image_url, tool_calls
- OpenAI Responses: input_text, input_image, output_text, function_call, function_call_output

无法映射的块返回None，由调用方丢弃，单个块不会导致整个请求失败。
"""

import json
from collections.abc import Sequence
from typing import Any, Literal

from ...common.ids import generate_tool_use_id
from ...models.anthropic import (
    AnthropicContentBlock,
    Base64ImageSource,
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    URLImageSource,
)
from ...models.openai_chat import (
    ChatImagePart,
    ChatImageUrl,
    ChatTextPart,
    ChatToolCall,
    ChatToolCallFunction,
)
from ...models.openai_responses import (
    FunctionCallItem,
    FunctionCallOutputItem,
    InputImagePart,
    InputTextPart,
    OutputTextPart,
)

DEFAULT_IMAGE_MEDIA_TYPE = "image/png"


def image_source_to_url(source: Base64ImageSource | URLImageSource) -> str:
    """将图片源转换为data URI或直接URL"""
    if isinstance(source, Base64ImageSource):
        media_type = source.media_type or DEFAULT_IMAGE_MEDIA_TYPE
        return f"data:{media_type};base64,{source.data}"
    return source.url


def serialize_tool_input(tool_input: dict[str, Any] | None) -> str:
    """工具输入序列化为JSON字符串，空输入为 {}"""
    return json.dumps(tool_input or {}, ensure_ascii=False)


def parse_tool_arguments(arguments: Any) -> dict[str, Any]:
    """解析函数调用参数

    Args:
        arguments: JSON字符串，或上游已解析好的对象

    Returns:
        dict[str, Any]: 参数字典；解析失败时返回 {"text": 原始字符串}
    """
    if isinstance(arguments, dict):
        return arguments
    raw = arguments or ""
    try:
        parsed = json.loads(raw or "{}")
    except (TypeError, ValueError):
        return {"text": raw if isinstance(raw, str) else str(raw)}
    if isinstance(parsed, dict):
        return parsed
    return {"text": raw}


def serialize_tool_result(content: Any) -> str:
    """工具结果序列化：字符串原样，结构化内容转JSON，缺失为空字符串"""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Anthropic -> OpenAI Chat
# ---------------------------------------------------------------------------


def text_to_chat_part(block: TextBlock) -> ChatTextPart:
    return ChatTextPart(text=block.text, cache_control=block.cache_control)


def image_to_chat_part(block: ImageBlock) -> ChatImagePart:
    return ChatImagePart(image_url=ChatImageUrl(url=image_source_to_url(block.source)))


def tool_use_to_chat_tool_call(block: ToolUseBlock) -> ChatToolCall:
    return ChatToolCall(
        id=block.id,
        type="function",
        function=ChatToolCallFunction(
            name=block.name, arguments=serialize_tool_input(block.input)
        ),
    )


def block_to_chat_part(
    block: AnthropicContentBlock,
) -> ChatTextPart | ChatImagePart | None:
    """转换为Chat内容部分，tool_use/tool_result等块单独处理，这里返回None"""
    if isinstance(block, TextBlock):
        return text_to_chat_part(block)
    if isinstance(block, ImageBlock):
        return image_to_chat_part(block)
    return None


# ---------------------------------------------------------------------------
# Anthropic -> OpenAI Responses
# ---------------------------------------------------------------------------


def tool_use_to_function_call(block: ToolUseBlock) -> FunctionCallItem:
    return FunctionCallItem(
        call_id=block.id,
        name=block.name,
        arguments=serialize_tool_input(block.input),
    )


def tool_result_to_function_call_output(block: ToolResultBlock) -> FunctionCallOutputItem:
    return FunctionCallOutputItem(
        call_id=block.tool_use_id, output=serialize_tool_result(block.content)
    )


def block_to_responses_part(
    block: AnthropicContentBlock, role: Literal["user", "assistant"]
) -> InputTextPart | OutputTextPart | InputImagePart | None:
    """按角色转换为Responses内容部分

    user文本为input_text，assistant文本为output_text；
    thinking只在assistant且文本非空时转为output_text，否则丢弃。
    """
    if isinstance(block, TextBlock):
        if role == "user":
            return InputTextPart(text=block.text)
        return OutputTextPart(text=block.text)
    if isinstance(block, ImageBlock):
        return InputImagePart(image_url=image_source_to_url(block.source))
    if isinstance(block, ThinkingBlock):
        if role == "assistant" and block.thinking:
            return OutputTextPart(text=block.thinking)
        return None
    return None


# ---------------------------------------------------------------------------
# OpenAI -> Anthropic
# ---------------------------------------------------------------------------


def chat_tool_call_to_tool_use(tool_call: dict[str, Any]) -> ToolUseBlock:
    """Chat工具调用转换为tool_use块"""
    function = tool_call.get("function") or {}
    return ToolUseBlock(
        id=tool_call.get("id") or generate_tool_use_id(),
        name=function.get("name") or "",
        input=parse_tool_arguments(function.get("arguments")),
    )


def chat_text_to_text_block(text: str) -> TextBlock:
    return TextBlock(text=text)


def output_text_to_text_block(part: dict[str, Any]) -> TextBlock:
    return TextBlock(text=part.get("text") or "")


def function_call_to_tool_use(function_call: dict[str, Any]) -> ToolUseBlock:
    """Responses function_call转换为tool_use块，ID依次取id、call_id，缺失时生成"""
    return ToolUseBlock(
        id=function_call.get("id")
        or function_call.get("call_id")
        or generate_tool_use_id(),
        name=function_call.get("name") or "",
        input=parse_tool_arguments(function_call.get("arguments")),
    )


# ---------------------------------------------------------------------------
# 内容数组辅助函数
# ---------------------------------------------------------------------------


def normalize_content(
    content: str | Sequence[AnthropicContentBlock] | None,
) -> list[AnthropicContentBlock]:
    """字符串内容规范化为单个text块"""
    if content is None:
        return []
    if isinstance(content, str):
        return [TextBlock(text=content)]
    return list(content)


def extract_text(blocks: Sequence[AnthropicContentBlock]) -> str | None:
    """拼接非空text块，以换行分隔；没有文本时返回None"""
    texts = [b.text for b in blocks if isinstance(b, TextBlock) and b.text]
    if not texts:
        return None
    return "\n".join(texts)


def extract_tool_use_blocks(blocks: Sequence[AnthropicContentBlock]) -> list[ToolUseBlock]:
    return [b for b in blocks if isinstance(b, ToolUseBlock) and b.id]


def extract_tool_result_blocks(
    blocks: Sequence[AnthropicContentBlock],
) -> list[ToolResultBlock]:
    return [b for b in blocks if isinstance(b, ToolResultBlock) and b.tool_use_id]


def content_has_images(blocks: Sequence[AnthropicContentBlock]) -> bool:
    return any(isinstance(b, ImageBlock) for b in blocks)


def content_has_tool_use(blocks: Sequence[AnthropicContentBlock]) -> bool:
    return any(isinstance(b, (ToolUseBlock, ToolResultBlock)) for b in blocks)
