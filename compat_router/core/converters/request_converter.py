"""
Anthropic请求转换器

该模块提供将Anthropic格式请求转换为OpenAI Chat Completions或
OpenAI Responses格式的功能。转换不会抛出异常，也不会修改输入请求。
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from ...common.logging import get_logger_with_request_id
from ...models.anthropic import AnthropicMessage, AnthropicRequest
from ...models.openai_chat import ChatRequest
from ...models.openai_responses import InputImagePart, ResponsesRequest
from .content_blocks import content_has_tool_use
from .messages import convert_messages_to_chat, convert_messages_to_responses
from .tools import (
    convert_thinking_to_reasoning,
    convert_tool_choice_to_chat,
    convert_tool_choice_to_responses,
    convert_tools_to_chat,
    convert_tools_to_responses,
)

RequestT = TypeVar("RequestT", ChatRequest, ResponsesRequest)


@dataclass
class ConversionResult(Generic[RequestT]):
    """请求转换结果"""

    request: RequestT
    has_images: bool
    has_tools: bool


def has_tool_history(messages: list[AnthropicMessage] | None) -> bool:
    """消息中是否包含工具调用历史"""
    return any(
        not isinstance(message.content, str) and content_has_tool_use(message.content)
        for message in messages or []
    )


def input_has_images(input_items: list) -> bool:
    """转换后的Responses输入中是否包含input_image部分"""
    return any(
        isinstance(part, InputImagePart)
        for item in input_items
        for part in getattr(item, "content", None) or []
    )


class AnthropicToOpenAIConverter:
    """将Anthropic请求转换为OpenAI格式

    两种目标格式都不携带最大输出token字段，许多后端会拒绝或错误处理它。
    没有工具时tools与tool_choice整体省略，而不是发送空数组。
    """

    @staticmethod
    def to_chat(
        anthropic_request: AnthropicRequest, request_id: str | None = None
    ) -> ConversionResult[ChatRequest]:
        """
        转换为OpenAI Chat Completions请求

        Args:
            anthropic_request: Anthropic格式的请求
            request_id: 请求ID用于日志追踪

        Returns:
            ConversionResult: Chat请求以及是否包含图片、工具
        """
        bound_logger = get_logger_with_request_id(request_id)

        converted = convert_messages_to_chat(
            anthropic_request.messages, anthropic_request.system
        )
        tool_history = has_tool_history(anthropic_request.messages)
        tools = convert_tools_to_chat(anthropic_request.tools)

        chat_request = ChatRequest(
            model=anthropic_request.model,
            messages=converted.messages,
            stream=anthropic_request.stream,
            tools=tools,
            tool_choice=(
                convert_tool_choice_to_chat(anthropic_request.tool_choice)
                if tools
                else None
            ),
            reasoning=convert_thinking_to_reasoning(anthropic_request.thinking),
        )

        bound_logger.debug(
            f"Anthropic -> Chat 转换完成 - 消息数: {len(chat_request.messages)}, "
            f"工具数: {len(tools or [])}, 图片: {converted.has_images}, "
            f"工具历史: {tool_history}"
        )
        return ConversionResult(
            request=chat_request, has_images=converted.has_images, has_tools=bool(tools)
        )

    @staticmethod
    def to_responses(
        anthropic_request: AnthropicRequest, request_id: str | None = None
    ) -> ConversionResult[ResponsesRequest]:
        """
        转换为OpenAI Responses请求

        Args:
            anthropic_request: Anthropic格式的请求
            request_id: 请求ID用于日志追踪

        Returns:
            ConversionResult: Responses请求以及是否包含图片、工具
        """
        bound_logger = get_logger_with_request_id(request_id)

        input_items = convert_messages_to_responses(
            anthropic_request.messages, anthropic_request.system
        )
        has_images = input_has_images(input_items)
        tool_history = has_tool_history(anthropic_request.messages)
        tools = convert_tools_to_responses(anthropic_request.tools)

        responses_request = ResponsesRequest(
            model=anthropic_request.model,
            input=input_items,
            stream=anthropic_request.stream,
            tools=tools,
            tool_choice=(
                convert_tool_choice_to_responses(anthropic_request.tool_choice)
                if tools
                else None
            ),
            reasoning=convert_thinking_to_reasoning(anthropic_request.thinking),
        )

        bound_logger.debug(
            f"Anthropic -> Responses 转换完成 - 输入项: {len(input_items)}, "
            f"工具数: {len(tools or [])}, 图片: {has_images}, 工具历史: {tool_history}"
        )
        return ConversionResult(
            request=responses_request, has_images=has_images, has_tools=bool(tools)
        )
