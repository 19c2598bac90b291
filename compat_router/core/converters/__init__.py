"""
转换器模块

提供Anthropic与OpenAI Chat Completions / Responses 格式之间的数据转换功能。
"""

from .chat_stream import ChatStreamConverter
from .request_converter import AnthropicToOpenAIConverter, ConversionResult
from .response_converter import OpenAIToAnthropicConverter
from .responses_stream import ResponsesStreamConverter

__all__ = [
    "AnthropicToOpenAIConverter",
    "ChatStreamConverter",
    "ConversionResult",
    "OpenAIToAnthropicConverter",
    "ResponsesStreamConverter",
]
