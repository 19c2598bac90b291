"""Loguru日志配置"""

import sys
import uuid
from pathlib import Path

from loguru import logger

REQUEST_ID_HEADER = "X-Request-ID"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | "
    "{name}:{line} | {message}"
)


def _ensure_request_id(record) -> bool:
    record["extra"].setdefault("request_id", "---")
    return True


def configure_logging(log_config) -> None:
    """配置Loguru日志系统

    Args:
        log_config: 日志配置对象，需提供level与file_path属性；
            file_path为空时只输出到控制台
    """
    # 移除默认的handler
    logger.remove()

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=log_config.level,
        colorize=True,
        filter=_ensure_request_id,
    )

    file_path = getattr(log_config, "file_path", None)
    if file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            format=FILE_FORMAT,
            level=log_config.level,
            rotation="10 MB",
            retention="1 day",
            encoding="utf-8",
            backtrace=True,
            diagnose=False,
            filter=_ensure_request_id,
        )

    def exception_handler(exc_type, exc_value, exc_traceback):
        """全局异常处理器"""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.opt(exception=(exc_type, exc_value, exc_traceback)).critical(
            "未捕获的异常"
        )

    sys.excepthook = exception_handler


class RequestLogger:
    """请求日志处理器"""

    async def log_response(
        self, status_code: int, response_time: float, request_id: str | None = None
    ):
        """记录响应结束"""
        bound_logger = get_logger_with_request_id(request_id)

        response_time_ms = round(response_time * 1000, 2)
        bound_logger.info(
            f"请求完成 - Status: {status_code}, Time: {response_time_ms}ms"
        )

    async def log_error(
        self, error: Exception, context: dict | None = None, request_id: str | None = None
    ):
        """记录错误情况，附带完整堆栈"""
        bound_logger = get_logger_with_request_id(request_id)

        context_str = f", Context: {context}" if context else ""
        bound_logger.opt(exception=error).error(
            f"请求处理错误 - Type: {type(error).__name__}, Message: {error}{context_str}"
        )


# 全局logger实例
request_logger = RequestLogger()


def generate_request_id() -> str:
    """生成唯一的请求ID

    Returns:
        str: 格式为 req_xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx 的请求ID
    """
    return f"req_{uuid.uuid4()}"


def get_request_id_from_request(request) -> str | None:
    """从FastAPI请求对象中安全地获取请求ID"""
    return getattr(getattr(request, "state", None), "request_id", None)


def get_logger_with_request_id(request_id: str | None = None):
    """获取绑定了请求ID的日志器实例

    Args:
        request_id: 请求ID，如果为None则使用默认值

    Returns:
        绑定了请求ID的logger实例
    """
    return logger.bind(request_id=request_id or "---")
