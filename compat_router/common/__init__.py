"""
通用工具模块

主要功能:
- 日志配置和管理、请求ID生成和追踪
- 后端配置编码与解析
- 消息与工具调用ID生成
- Token计数
"""

from .logging import (
    RequestLogger,
    configure_logging,
    generate_request_id,
    get_logger_with_request_id,
    get_request_id_from_request,
    request_logger,
)

__all__ = [
    "configure_logging",
    "RequestLogger",
    "request_logger",
    "generate_request_id",
    "get_request_id_from_request",
    "get_logger_with_request_id",
]
