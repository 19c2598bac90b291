"""Anthropic Messages API 数据模型定义

内容块是以 `type` 为判别字段的封闭联合类型；无法识别的块类型落入
UnknownBlock，转换器对其返回"无映射"，而不会让整个请求校验失败。
"""

from typing import Annotated, Any, ClassVar, Literal, Union

from loguru import logger
from pydantic import (
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from .base import WireModel


class AnthropicStreamEventTypes:
    """Anthropic流式响应事件类型常量"""

    # 消息相关事件
    MESSAGE_START = "message_start"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"

    # 内容块相关事件
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"

    # 其他事件
    PING = "ping"
    ERROR = "error"


class AnthropicContentTypes:
    """Anthropic内容类型常量"""

    # 基础内容类型
    TEXT = "text"
    IMAGE = "image"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    THINKING = "thinking"
    SERVER_TOOL_USE = "server_tool_use"
    WEB_SEARCH_TOOL_RESULT = "web_search_tool_result"

    # 增量类型
    TEXT_DELTA = "text_delta"
    INPUT_JSON_DELTA = "input_json_delta"
    THINKING_DELTA = "thinking_delta"
    SIGNATURE_DELTA = "signature_delta"


class AnthropicRoles:
    """Anthropic角色常量"""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


AnthropicStopReason = Literal[
    "end_turn", "max_tokens", "stop_sequence", "tool_use", "pause_turn", "refusal"
]


# ---------------------------------------------------------------------------
# 内容块
# ---------------------------------------------------------------------------


class Base64ImageSource(WireModel):
    """内联base64图片源"""

    type: Literal["base64"] = "base64"
    media_type: str | None = Field(None, description="图片MIME类型，缺省按image/png处理")
    data: str = Field(description="base64编码的图片数据")


class URLImageSource(WireModel):
    """远程URL图片源"""

    type: Literal["url"] = "url"
    url: str = Field(description="图片URL")


AnthropicImageSource = Annotated[
    Union[Base64ImageSource, URLImageSource], Field(discriminator="type")
]


class TextBlock(WireModel):
    """文本内容块"""

    type: Literal["text"] = AnthropicContentTypes.TEXT
    text: str = Field(description="文本内容")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class ImageBlock(WireModel):
    """图片内容块"""

    type: Literal["image"] = AnthropicContentTypes.IMAGE
    source: AnthropicImageSource = Field(description="图片源")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class ToolUseBlock(WireModel):
    """工具调用内容块"""

    type: Literal["tool_use"] = AnthropicContentTypes.TOOL_USE
    id: str = Field(description="工具调用ID")
    name: str = Field(description="工具名称")
    input: dict[str, Any] | None = Field(None, description="工具输入参数")


class ToolResultBlock(WireModel):
    """工具结果内容块，通过tool_use_id与调用关联"""

    type: Literal["tool_result"] = AnthropicContentTypes.TOOL_RESULT
    tool_use_id: str = Field(description="对应的工具调用ID")
    content: str | list[Any] | dict[str, Any] | None = Field(
        None, description="工具结果，字符串或结构化内容"
    )
    is_error: bool | None = Field(None, description="是否为错误结果")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class ThinkingBlock(WireModel):
    """思考内容块"""

    type: Literal["thinking"] = AnthropicContentTypes.THINKING
    thinking: str = Field("", description="思考内容")
    signature: str | None = Field(None, description="思考内容签名")


class ServerToolUseBlock(WireModel):
    """服务端工具调用（web search）"""

    type: Literal["server_tool_use"] = AnthropicContentTypes.SERVER_TOOL_USE
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class WebSearchResult(WireModel):
    type: Literal["web_search_result"] = "web_search_result"
    url: str | None = None
    title: str | None = None


class WebSearchToolResultBlock(WireModel):
    """服务端web search结果"""

    type: Literal["web_search_tool_result"] = AnthropicContentTypes.WEB_SEARCH_TOOL_RESULT
    tool_use_id: str
    content: list[WebSearchResult] = Field(default_factory=list)


class UnknownBlock(WireModel):
    """未识别的内容块（redacted_thinking、document等），原样保留字段"""

    model_config = ConfigDict(extra="allow")

    type: str


_KNOWN_BLOCK_TYPES = frozenset(
    {
        AnthropicContentTypes.TEXT,
        AnthropicContentTypes.IMAGE,
        AnthropicContentTypes.TOOL_USE,
        AnthropicContentTypes.TOOL_RESULT,
        AnthropicContentTypes.THINKING,
        AnthropicContentTypes.SERVER_TOOL_USE,
        AnthropicContentTypes.WEB_SEARCH_TOOL_RESULT,
    }
)


def _content_block_tag(value: Any) -> str:
    if isinstance(value, dict):
        block_type = value.get("type")
    else:
        block_type = getattr(value, "type", None)
    return block_type if block_type in _KNOWN_BLOCK_TYPES else "unknown"


AnthropicContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag(AnthropicContentTypes.TEXT)],
        Annotated[ImageBlock, Tag(AnthropicContentTypes.IMAGE)],
        Annotated[ToolUseBlock, Tag(AnthropicContentTypes.TOOL_USE)],
        Annotated[ToolResultBlock, Tag(AnthropicContentTypes.TOOL_RESULT)],
        Annotated[ThinkingBlock, Tag(AnthropicContentTypes.THINKING)],
        Annotated[ServerToolUseBlock, Tag(AnthropicContentTypes.SERVER_TOOL_USE)],
        Annotated[
            WebSearchToolResultBlock, Tag(AnthropicContentTypes.WEB_SEARCH_TOOL_RESULT)
        ],
        Annotated[UnknownBlock, Tag("unknown")],
    ],
    Discriminator(_content_block_tag),
]


# ---------------------------------------------------------------------------
# 请求
# ---------------------------------------------------------------------------


class AnthropicMessage(WireModel):
    """Anthropic消息格式，字符串内容等价于单个text块"""

    role: Literal["user", "assistant", "system"] = Field(description="消息角色")
    content: str | list[AnthropicContentBlock] = Field(description="消息内容")


class AnthropicSystemBlock(WireModel):
    """Anthropic系统消息块"""

    type: Literal["text"] = Field(
        default=AnthropicContentTypes.TEXT, description="系统消息类型，固定为text"
    )
    text: str = Field(description="系统消息文本内容")
    cache_control: dict[str, Any] | None = Field(None, description="缓存控制")


class AnthropicToolDefinition(WireModel):
    """Anthropic工具定义"""

    model_config = ConfigDict(extra="allow")

    name: str | None = Field(None, description="工具名称")
    description: str | None = Field(None, description="工具描述")
    input_schema: dict[str, Any] | None = Field(
        None, description="JSON Schema格式的输入参数定义"
    )
    strict: bool | None = Field(None, description="是否严格校验参数")
    type: str | None = Field(None, description="服务端工具类型")


class AnthropicToolChoice(WireModel):
    """Anthropic工具选择配置"""

    type: str = Field(description="auto / any / none / tool")
    name: str | None = Field(None, description="type为tool时指定的工具名称")
    disable_parallel_tool_use: bool | None = None


class AnthropicThinkingConfig(WireModel):
    """扩展思考配置"""

    type: str = Field(description="enabled / disabled")
    budget_tokens: int | None = Field(None, description="思考token预算")


class AnthropicRequest(WireModel):
    """Anthropic API请求模型"""

    model_config = ConfigDict(extra="allow")

    model: str = Field(description="使用的模型ID，如claude-sonnet-4-20250514")
    messages: list[AnthropicMessage] = Field(description="对话消息列表")
    max_tokens: int | None = Field(None, description="最大输出token数量（不会转发）")
    system: str | list[AnthropicSystemBlock] | None = Field(
        None, description="系统提示信息"
    )
    tools: list[AnthropicToolDefinition] | None = Field(
        None, description="可用工具定义"
    )
    tool_choice: str | AnthropicToolChoice | None = Field(
        None, description="工具选择配置"
    )
    thinking: AnthropicThinkingConfig | None = Field(
        None, description="扩展思考配置"
    )
    stream: bool | None = Field(None, description="是否使用流式响应")
    metadata: dict[str, Any] | None = Field(None, description="可选元数据")
    stop_sequences: list[str] | None = Field(None, description="停止序列")
    temperature: float | None = Field(None, description="采样温度")
    top_p: float | None = Field(None, description="top-p采样参数")
    top_k: int | None = Field(None, description="top-k采样参数")

    # 可选字段格式错误时按未提供处理，不让整个请求校验失败

    @field_validator("system", "tool_choice", "thinking", mode="wrap")
    @classmethod
    def drop_malformed_optional(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo):
        try:
            return handler(value)
        except ValidationError as e:
            logger.warning(f"忽略格式错误的{info.field_name}字段: {e.error_count()}个错误")
            return None

    @field_validator("tools", mode="wrap")
    @classmethod
    def drop_malformed_tools(cls, value: Any, handler: ValidatorFunctionWrapHandler):
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning(f"忽略格式错误的tools字段: {type(value).__name__}")
            return None

        tools = []
        for index, tool in enumerate(value):
            if isinstance(tool, AnthropicToolDefinition):
                tools.append(tool)
                continue
            if not isinstance(tool, dict):
                logger.warning(f"忽略格式错误的工具定义 #{index}: {type(tool).__name__}")
                continue
            try:
                tools.append(AnthropicToolDefinition.model_validate(tool))
            except ValidationError:
                logger.warning(f"忽略格式错误的工具定义 #{index}")
        return handler(tools)


# ---------------------------------------------------------------------------
# 响应
# ---------------------------------------------------------------------------


class AnthropicUsage(WireModel):
    """Anthropic使用统计"""

    input_tokens: int = Field(0, description="输入token数量")
    output_tokens: int = Field(0, description="输出token数量")
    cache_creation_input_tokens: int | None = Field(
        None, description="缓存创建输入token数量"
    )
    cache_read_input_tokens: int | None = Field(None, description="缓存读取输入token数量")


class AnthropicMessageResponse(WireModel):
    """Anthropic消息响应"""

    wire_nulls: ClassVar[frozenset[str]] = frozenset({"stop_sequence"})

    id: str = Field(description="响应唯一ID")
    type: Literal["message"] = "message"
    role: Literal["assistant"] = AnthropicRoles.ASSISTANT
    content: list[AnthropicContentBlock] = Field(description="消息内容块")
    model: str = Field(description="模型ID")
    stop_reason: AnthropicStopReason = Field("end_turn", description="停止原因")
    stop_sequence: str | None = Field(None, description="停止序列")
    usage: AnthropicUsage = Field(default_factory=AnthropicUsage, description="使用统计")


# ---------------------------------------------------------------------------
# 流式事件
# ---------------------------------------------------------------------------


class StreamStartUsage(WireModel):
    input_tokens: int = 0
    output_tokens: int = 0


class StreamMessageStart(WireModel):
    """message_start事件中的消息详情"""

    wire_nulls: ClassVar[frozenset[str]] = frozenset({"stop_reason", "stop_sequence"})

    id: str
    type: Literal["message"] = "message"
    role: Literal["assistant"] = AnthropicRoles.ASSISTANT
    content: list[Any] = Field(default_factory=list)
    model: str
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: StreamStartUsage = Field(default_factory=StreamStartUsage)


class MessageStartEvent(WireModel):
    type: Literal["message_start"] = AnthropicStreamEventTypes.MESSAGE_START
    message: StreamMessageStart


class ContentBlockStartEvent(WireModel):
    type: Literal["content_block_start"] = AnthropicStreamEventTypes.CONTENT_BLOCK_START
    index: int = 0
    content_block: dict[str, Any]


class Delta(WireModel):
    """内容块增量：text_delta / input_json_delta / thinking_delta / signature_delta"""

    type: str = AnthropicContentTypes.TEXT_DELTA
    text: str | None = None
    partial_json: str | None = None
    thinking: str | None = None
    signature: str | None = None


class ContentBlockDeltaEvent(WireModel):
    type: Literal["content_block_delta"] = AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA
    index: int = 0
    delta: Delta


class ContentBlockStopEvent(WireModel):
    type: Literal["content_block_stop"] = AnthropicStreamEventTypes.CONTENT_BLOCK_STOP
    index: int = 0


class MessageDelta(WireModel):
    """消息增量"""

    wire_nulls: ClassVar[frozenset[str]] = frozenset({"stop_sequence"})

    stop_reason: str = "end_turn"
    stop_sequence: str | None = None


class MessageDeltaUsage(WireModel):
    output_tokens: int = 0
    input_tokens: int | None = None
    cache_read_input_tokens: int | None = None


class MessageDeltaEvent(WireModel):
    type: Literal["message_delta"] = AnthropicStreamEventTypes.MESSAGE_DELTA
    delta: MessageDelta = Field(default_factory=MessageDelta)
    usage: MessageDeltaUsage = Field(default_factory=MessageDeltaUsage)


class MessageStopEvent(WireModel):
    type: Literal["message_stop"] = AnthropicStreamEventTypes.MESSAGE_STOP


class StreamErrorDetail(WireModel):
    type: str = "api_error"
    message: str


class StreamErrorEvent(WireModel):
    type: Literal["error"] = AnthropicStreamEventTypes.ERROR
    error: StreamErrorDetail
