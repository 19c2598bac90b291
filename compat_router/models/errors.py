"""Anthropic格式的错误响应模型"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """错误详细信息"""

    type: str = Field(description="错误类型，如invalid_request_error")
    message: str = Field(description="错误消息")
    details: dict[str, Any] | None = Field(None, description="额外错误详情")
    request_id: str | None = Field(None, description="请求ID用于追踪")


class AnthropicErrorResponse(BaseModel):
    """Anthropic错误响应信封 {"type": "error", "error": {...}}"""

    type: str = Field("error", description="响应类型")
    error: ErrorDetail = Field(description="错误详情")


# 状态码 -> (错误类型, 默认消息)
ERROR_TYPE_MAPPING: dict[int, tuple[str, str]] = {
    400: ("invalid_request_error", "请求格式错误或参数无效"),
    401: ("authentication_error", "无效的API密钥或未经授权的访问"),
    403: ("permission_error", "没有访问该资源的权限"),
    404: ("not_found_error", "请求的资源不存在"),
    413: ("request_too_large", "请求体过大"),
    422: ("invalid_request_error", "请求参数验证失败"),
    429: ("rate_limit_error", "请求频率超出限制，请稍后重试"),
    500: ("api_error", "服务器内部错误，请稍后重试"),
    502: ("api_error", "上游服务错误，请稍后重试"),
    503: ("overloaded_error", "服务暂时不可用，请稍后重试"),
    504: ("timeout_error", "请求超时，请稍后重试"),
}


def get_error_response(
    status_code: int,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    error_type: str | None = None,
    request_id: str | None = None,
) -> AnthropicErrorResponse:
    """根据HTTP状态码构造错误响应

    Args:
        status_code: HTTP状态码
        message: 错误消息，缺省时使用状态码对应的默认消息
        details: 额外错误详情（如校验错误列表）
        error_type: 显式指定的错误类型，覆盖状态码映射
        request_id: 请求ID

    Returns:
        AnthropicErrorResponse: 错误响应模型实例
    """
    mapped_type, default_message = ERROR_TYPE_MAPPING.get(
        status_code, ERROR_TYPE_MAPPING[500]
    )
    return AnthropicErrorResponse(
        error=ErrorDetail(
            type=error_type or mapped_type,
            message=message or default_message,
            details=details,
            request_id=request_id,
        )
    )
