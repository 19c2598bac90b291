"""
消息数组转换器

将Anthropic的system + messages转换为Chat消息列表或Responses输入项序列。
输入模型不会被修改，所有输出都是新构造的对象。
"""

from dataclasses import dataclass, field

from ...models.anthropic import (
    AnthropicMessage,
    AnthropicSystemBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from ...models.openai_chat import ChatMessage, ChatTextPart
from ...models.openai_responses import (
    InputTextPart,
    OutputTextPart,
    ResponsesInputItem,
    ResponsesInputMessage,
)
from .content_blocks import (
    block_to_chat_part,
    block_to_responses_part,
    content_has_images,
    extract_text,
    extract_tool_result_blocks,
    extract_tool_use_blocks,
    serialize_tool_result,
    tool_result_to_function_call_output,
    tool_use_to_chat_tool_call,
    tool_use_to_function_call,
)

SystemPrompt = str | list[AnthropicSystemBlock] | None


@dataclass
class ConvertedChatMessages:
    """Chat消息转换结果"""

    messages: list[ChatMessage] = field(default_factory=list)
    has_images: bool = False


def system_text(system: SystemPrompt) -> str:
    """system提示的纯文本，块列表以换行拼接"""
    if not system:
        return ""
    if isinstance(system, str):
        return system
    return "\n".join(block.text for block in system if block.text)


# ---------------------------------------------------------------------------
# Anthropic -> OpenAI Chat
# ---------------------------------------------------------------------------


def convert_system_to_chat(system: SystemPrompt) -> ChatMessage | None:
    """system提示转换为一条system消息，块列表保留为text部分"""
    if not system:
        return None
    if isinstance(system, str):
        return ChatMessage(role="system", content=system)

    parts = [
        ChatTextPart(text=block.text, cache_control=block.cache_control)
        for block in system
        if block.text
    ]
    if not parts:
        return None
    return ChatMessage(role="system", content=parts)


def _convert_user_message_to_chat(
    message: AnthropicMessage, result: ConvertedChatMessages
) -> None:
    blocks = message.content

    # tool_result先于用户内容输出，每个结果一条tool消息
    for tool_result in extract_tool_result_blocks(blocks):
        result.messages.append(
            ChatMessage(
                role="tool",
                content=serialize_tool_result(tool_result.content),
                tool_call_id=tool_result.tool_use_id,
                cache_control=tool_result.cache_control,
            )
        )

    parts = []
    converted_blocks = []
    for block in blocks:
        if isinstance(block, TextBlock) and not block.text:
            continue
        part = block_to_chat_part(block)
        if part is None:
            continue
        converted_blocks.append(block)
        parts.append(part)

    # 只统计实际输出的图片
    if content_has_images(converted_blocks):
        result.has_images = True

    if parts:
        result.messages.append(ChatMessage(role="user", content=parts))


def _convert_assistant_message_to_chat(
    message: AnthropicMessage, result: ConvertedChatMessages
) -> None:
    blocks = message.content
    tool_calls = [tool_use_to_chat_tool_call(b) for b in extract_tool_use_blocks(blocks)]
    result.messages.append(
        ChatMessage(
            role="assistant",
            # 只有tool_calls时OpenAI要求content为null
            content=extract_text(blocks),
            tool_calls=tool_calls or None,
        )
    )


def convert_messages_to_chat(
    messages: list[AnthropicMessage] | None, system: SystemPrompt
) -> ConvertedChatMessages:
    """转换为Chat消息列表

    Args:
        messages: Anthropic消息列表
        system: system提示

    Returns:
        ConvertedChatMessages: 消息列表以及是否包含图片
    """
    result = ConvertedChatMessages()

    system_message = convert_system_to_chat(system)
    if system_message is not None:
        result.messages.append(system_message)

    for message in messages or []:
        if isinstance(message.content, str):
            result.messages.append(ChatMessage(role=message.role, content=message.content))
        elif message.role == "user":
            _convert_user_message_to_chat(message, result)
        elif message.role == "assistant":
            _convert_assistant_message_to_chat(message, result)
        else:
            converted = convert_system_to_chat(
                [
                    AnthropicSystemBlock(text=b.text)
                    for b in message.content
                    if isinstance(b, TextBlock)
                ]
            )
            if converted is not None:
                result.messages.append(converted)

    return result


# ---------------------------------------------------------------------------
# Anthropic -> OpenAI Responses
# ---------------------------------------------------------------------------


def convert_system_to_responses(system: SystemPrompt) -> ResponsesInputMessage | None:
    """system提示转换为单个input_text部分的system消息

    部分服务商不支持developer角色，这里统一使用system。
    """
    text = system_text(system)
    if not text:
        return None
    return ResponsesInputMessage(role="system", content=[InputTextPart(text=text)])


def _convert_user_message_to_responses(
    message: AnthropicMessage, items: list[ResponsesInputItem]
) -> None:
    blocks = message.content
    for tool_result in extract_tool_result_blocks(blocks):
        items.append(tool_result_to_function_call_output(tool_result))

    parts = [
        part
        for part in (
            block_to_responses_part(block, "user")
            for block in blocks
            if not isinstance(block, ToolResultBlock)
        )
        if part is not None
    ]
    if parts:
        items.append(ResponsesInputMessage(role="user", content=parts))


def _convert_assistant_message_to_responses(
    message: AnthropicMessage, items: list[ResponsesInputItem]
) -> None:
    blocks = message.content
    parts = [
        part
        for part in (
            block_to_responses_part(block, "assistant")
            for block in blocks
            if not isinstance(block, ToolUseBlock)
        )
        if part is not None
    ]
    if parts:
        items.append(ResponsesInputMessage(role="assistant", content=parts))

    for tool_use in extract_tool_use_blocks(blocks):
        items.append(tool_use_to_function_call(tool_use))


def convert_messages_to_responses(
    messages: list[AnthropicMessage] | None, system: SystemPrompt
) -> list[ResponsesInputItem]:
    """转换为Responses输入项序列"""
    items: list[ResponsesInputItem] = []

    system_message = convert_system_to_responses(system)
    if system_message is not None:
        items.append(system_message)

    for message in messages or []:
        if isinstance(message.content, str):
            if message.role == "assistant":
                part = OutputTextPart(text=message.content)
            else:
                part = InputTextPart(text=message.content)
            items.append(ResponsesInputMessage(role=message.role, content=[part]))
        elif message.role == "user":
            _convert_user_message_to_responses(message, items)
        elif message.role == "assistant":
            _convert_assistant_message_to_responses(message, items)
        else:
            converted = convert_system_to_responses(
                [
                    AnthropicSystemBlock(text=b.text)
                    for b in message.content
                    if isinstance(b, TextBlock)
                ]
            )
            if converted is not None:
                items.append(converted)

    return items
