"""OpenAI Chat Completions API 数据模型定义"""

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import ConfigDict, Field

from .base import WireModel


class ChatTextPart(WireModel):
    """文本内容部分"""

    type: Literal["text"] = "text"
    text: str = Field(description="文本内容")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class ChatImageUrl(WireModel):
    """图像URL配置"""

    url: str = Field(description="图像URL或data URI")
    detail: Literal["auto", "low", "high"] | None = Field(None, description="图像细节级别")


class ChatImagePart(WireModel):
    """图像内容部分"""

    type: Literal["image_url"] = "image_url"
    image_url: ChatImageUrl = Field(description="图像URL配置")


ChatContentPart = Annotated[
    Union[ChatTextPart, ChatImagePart], Field(discriminator="type")
]


class ChatToolCallFunction(WireModel):
    """工具调用函数"""

    name: str | None = Field(None, description="函数名称")
    arguments: str | None = Field(None, description="JSON格式的函数参数")


class ChatToolCall(WireModel):
    """工具调用"""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(None, description="工具调用ID")
    type: Literal["function"] = Field("function", description="调用类型")
    function: ChatToolCallFunction = Field(description="函数详情")


class ChatMessage(WireModel):
    """OpenAI Chat消息格式

    assistant消息在只有tool_calls时content为null，因此content总是显式输出。
    """

    wire_nulls: ClassVar[frozenset[str]] = frozenset({"content"})

    role: Literal["system", "user", "assistant", "tool"] = Field(description="消息角色")
    content: str | list[ChatContentPart] | None = Field(None, description="消息内容")
    tool_calls: list[ChatToolCall] | None = Field(
        None, description="工具调用信息（当role为assistant时）"
    )
    tool_call_id: str | None = Field(None, description="工具调用ID（当role为tool时）")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class ChatFunctionParameters(WireModel):
    """函数参数JSON Schema"""

    type: Literal["object"] = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] | None = None


class ChatFunctionDefinition(WireModel):
    """OpenAI工具函数定义"""

    name: str = Field(description="函数名称")
    description: str = Field("", description="函数描述")
    parameters: ChatFunctionParameters = Field(default_factory=ChatFunctionParameters)
    strict: bool | None = Field(None, description="是否严格模式")


class ChatTool(WireModel):
    """OpenAI工具定义"""

    type: Literal["function"] = Field("function", description="工具类型")
    function: ChatFunctionDefinition = Field(description="函数定义")


class ChatNamedFunction(WireModel):
    name: str


class ChatNamedToolChoice(WireModel):
    """指定函数的工具选择"""

    type: Literal["function"] = "function"
    function: ChatNamedFunction


ChatToolChoice = Union[Literal["auto", "required", "none"], ChatNamedToolChoice]


class ReasoningConfig(WireModel):
    """推理配置（由Anthropic thinking转换而来）"""

    enabled: bool | None = Field(None, description="是否启用推理")
    effort: Literal["low", "medium", "high"] | None = Field(None, description="推理强度")


class ChatRequest(WireModel):
    """OpenAI Chat Completions请求模型

    不包含max_tokens：许多后端拒绝或错误处理该字段。
    """

    model: str = Field(description="模型ID")
    messages: list[ChatMessage] = Field(description="对话消息列表")
    stream: bool | None = Field(None, description="是否使用流式响应")
    tools: list[ChatTool] | None = Field(None, description="可用工具定义")
    tool_choice: ChatToolChoice | None = Field(None, description="工具选择配置")
    reasoning: ReasoningConfig | None = Field(None, description="推理配置")
