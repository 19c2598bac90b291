"""OpenAI Responses API 数据模型定义"""

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from .base import WireModel
from .openai_chat import ReasoningConfig


class InputTextPart(WireModel):
    """用户侧文本部分"""

    type: Literal["input_text"] = "input_text"
    text: str


class OutputTextPart(WireModel):
    """助手侧文本部分"""

    type: Literal["output_text"] = "output_text"
    text: str


class InputImagePart(WireModel):
    """图片部分，image_url为URL字符串或data URI"""

    type: Literal["input_image"] = "input_image"
    image_url: str


ResponsesContentPart = Annotated[
    Union[InputTextPart, OutputTextPart, InputImagePart], Field(discriminator="type")
]


class ResponsesInputMessage(WireModel):
    """Responses输入消息"""

    type: Literal["message"] | None = None
    role: Literal["system", "user", "assistant"]
    content: list[ResponsesContentPart]


class FunctionCallItem(WireModel):
    """函数调用项"""

    type: Literal["function_call"] = "function_call"
    call_id: str
    name: str
    arguments: str = "{}"


class FunctionCallOutputItem(WireModel):
    """函数调用结果项"""

    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str = ""


ResponsesInputItem = Union[ResponsesInputMessage, FunctionCallItem, FunctionCallOutputItem]


class ResponsesFunctionParameters(WireModel):
    type: Literal["object"] = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] | None = None


class ResponsesFunctionTool(WireModel):
    """Responses扁平函数工具定义"""

    type: Literal["function"] = "function"
    name: str
    description: str = ""
    parameters: ResponsesFunctionParameters = Field(
        default_factory=ResponsesFunctionParameters
    )
    strict: bool | None = None


class ResponsesNamedToolChoice(WireModel):
    """指定函数的工具选择（扁平结构）"""

    type: Literal["function"] = "function"
    name: str


ResponsesToolChoice = Union[
    Literal["auto", "required", "none"], ResponsesNamedToolChoice
]


class ResponsesRequest(WireModel):
    """OpenAI Responses请求模型，不包含max_output_tokens"""

    model: str
    input: list[ResponsesInputItem]
    stream: bool | None = None
    tools: list[ResponsesFunctionTool] | None = None
    tool_choice: ResponsesToolChoice | None = None
    reasoning: ReasoningConfig | None = None


class ResponsesStreamEventTypes:
    """Responses流式事件类型常量"""

    CREATED = "response.created"
    IN_PROGRESS = "response.in_progress"
    OUTPUT_TEXT_DELTA = "response.output_text.delta"
    OUTPUT_TEXT_DONE = "response.output_text.done"
    OUTPUT_ITEM_ADDED = "response.output_item.added"
    OUTPUT_ITEM_DONE = "response.output_item.done"
    FUNCTION_CALL_ARGUMENTS_DELTA = "response.function_call_arguments.delta"
    FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"
    REASONING_SUMMARY_TEXT_DELTA = "response.reasoning_summary_text.delta"
    COMPLETED = "response.completed"
    INCOMPLETE = "response.incomplete"
    FAILED = "response.failed"
    ERROR = "error"
