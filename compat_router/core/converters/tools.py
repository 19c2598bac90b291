"""
工具定义、工具选择与推理配置转换器

- Anthropic: { name, description, input_schema }
- OpenAI Chat: { type: "function", function: { name, description, parameters } }
- OpenAI Responses: { type: "function", name, description, parameters }
"""

from typing import Literal

from ...models.anthropic import (
    AnthropicThinkingConfig,
    AnthropicToolChoice,
    AnthropicToolDefinition,
)
from ...models.openai_chat import (
    ChatFunctionDefinition,
    ChatFunctionParameters,
    ChatNamedFunction,
    ChatNamedToolChoice,
    ChatTool,
    ChatToolChoice,
    ReasoningConfig,
)
from ...models.openai_responses import (
    ResponsesFunctionParameters,
    ResponsesFunctionTool,
    ResponsesNamedToolChoice,
    ResponsesToolChoice,
)

ReasoningEffort = Literal["low", "medium", "high"]

_SIMPLE_TOOL_CHOICES = {"auto": "auto", "any": "required", "none": "none"}


def _has_name(tool: AnthropicToolDefinition | None) -> bool:
    return tool is not None and isinstance(tool.name, str) and tool.name.strip() != ""


def _schema_parts(tool: AnthropicToolDefinition) -> tuple[dict, list[str] | None]:
    schema = tool.input_schema or {}
    return schema.get("properties") or {}, schema.get("required")


def tool_to_chat_tool(tool: AnthropicToolDefinition) -> ChatTool:
    properties, required = _schema_parts(tool)
    return ChatTool(
        function=ChatFunctionDefinition(
            name=tool.name,
            description=tool.description or "",
            parameters=ChatFunctionParameters(properties=properties, required=required),
            strict=tool.strict,
        )
    )


def tool_to_responses_tool(tool: AnthropicToolDefinition) -> ResponsesFunctionTool:
    properties, required = _schema_parts(tool)
    return ResponsesFunctionTool(
        name=tool.name,
        description=tool.description or "",
        parameters=ResponsesFunctionParameters(properties=properties, required=required),
        strict=tool.strict,
    )


def convert_tools_to_chat(
    tools: list[AnthropicToolDefinition] | None,
) -> list[ChatTool] | None:
    """转换工具列表，跳过没有名称的工具；结果为空时返回None"""
    if not tools:
        return None
    converted = [tool_to_chat_tool(tool) for tool in tools if _has_name(tool)]
    return converted or None


def convert_tools_to_responses(
    tools: list[AnthropicToolDefinition] | None,
) -> list[ResponsesFunctionTool] | None:
    if not tools:
        return None
    converted = [tool_to_responses_tool(tool) for tool in tools if _has_name(tool)]
    return converted or None


def _choice_parts(
    tool_choice: str | AnthropicToolChoice | None,
) -> tuple[str | None, str | None]:
    if tool_choice is None:
        return None, None
    # 裸字符串按type处理
    if isinstance(tool_choice, str):
        return tool_choice, None
    return tool_choice.type, tool_choice.name


def convert_tool_choice_to_chat(
    tool_choice: str | AnthropicToolChoice | None,
) -> ChatToolChoice | None:
    """auto->auto, any->required, none->none, tool+name->指定函数，其余为auto"""
    choice_type, name = _choice_parts(tool_choice)
    if choice_type is None:
        return None
    if choice_type in _SIMPLE_TOOL_CHOICES:
        return _SIMPLE_TOOL_CHOICES[choice_type]
    if choice_type == "tool" and name:
        return ChatNamedToolChoice(function=ChatNamedFunction(name=name))
    return "auto"


def convert_tool_choice_to_responses(
    tool_choice: str | AnthropicToolChoice | None,
) -> ResponsesToolChoice | None:
    choice_type, name = _choice_parts(tool_choice)
    if choice_type is None:
        return None
    if choice_type in _SIMPLE_TOOL_CHOICES:
        return _SIMPLE_TOOL_CHOICES[choice_type]
    if choice_type == "tool" and name:
        return ResponsesNamedToolChoice(name=name)
    return "auto"


def budget_tokens_to_effort(budget_tokens: int | None) -> ReasoningEffort:
    """思考预算映射为推理强度"""
    if not budget_tokens:
        return "medium"
    if budget_tokens > 10000:
        return "high"
    if budget_tokens > 5000:
        return "medium"
    return "low"


def convert_thinking_to_reasoning(
    thinking: AnthropicThinkingConfig | None,
) -> ReasoningConfig | None:
    """thinking配置转换为reasoning配置，Chat与Responses共用"""
    if thinking is None:
        return None
    return ReasoningConfig(
        enabled=thinking.type == "enabled",
        effort=budget_tokens_to_effort(thinking.budget_tokens),
    )
