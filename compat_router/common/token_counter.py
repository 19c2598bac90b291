"""基于tiktoken的输入token估算，用于count_tokens端点"""

import json
from typing import Any

import tiktoken

from ..models.anthropic import (
    AnthropicMessage,
    AnthropicSystemBlock,
    AnthropicToolDefinition,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)

ENCODING_NAME = "o200k_base"


class TokenCounter:
    """Token计数器

    编码器在第一次计数时才加载，tiktoken首次加载需要下载编码文件。
    """

    def __init__(self, encoding_name: str = ENCODING_NAME):
        self.encoding_name = encoding_name
        self._encoder = None

    @property
    def encoder(self):
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.encoding_name)
        return self._encoder

    def _block_texts(self, block: Any) -> list[str]:
        if isinstance(block, TextBlock):
            return [block.text] if block.text else []
        if isinstance(block, ThinkingBlock):
            return [block.thinking] if block.thinking else []
        if isinstance(block, ToolUseBlock):
            texts = [block.name]
            if block.input:
                texts.append(json.dumps(block.input, ensure_ascii=False))
            return texts
        if isinstance(block, ToolResultBlock):
            if isinstance(block.content, str):
                return [block.content]
            if block.content:
                return [json.dumps(block.content, ensure_ascii=False)]
        return []

    def collect_text(
        self,
        messages: list[AnthropicMessage] | None = None,
        system: str | list[AnthropicSystemBlock] | None = None,
        tools: list[AnthropicToolDefinition] | None = None,
    ) -> str:
        """收集请求中参与计数的全部文本"""
        text_parts: list[str] = []

        for message in messages or []:
            if isinstance(message.content, str):
                text_parts.append(message.content)
            else:
                for block in message.content:
                    text_parts.extend(self._block_texts(block))

        if isinstance(system, str):
            text_parts.append(system)
        elif system:
            text_parts.extend(block.text for block in system if block.text)

        for tool in tools or []:
            if tool.name:
                text_parts.append(tool.name)
            if tool.description:
                text_parts.append(tool.description)
            if tool.input_schema:
                text_parts.append(json.dumps(tool.input_schema, ensure_ascii=False))

        return "".join(text_parts)

    def count_tokens(
        self,
        messages: list[AnthropicMessage] | None = None,
        system: str | list[AnthropicSystemBlock] | None = None,
        tools: list[AnthropicToolDefinition] | None = None,
    ) -> int:
        """计算完整请求的token总数

        Args:
            messages: 消息列表
            system: 系统提示
            tools: 工具定义

        Returns:
            int: 总计token数量
        """
        combined_text = self.collect_text(messages, system, tools)
        if not combined_text:
            return 0
        return len(self.encoder.encode(combined_text))


# 全局实例
token_counter = TokenCounter()
