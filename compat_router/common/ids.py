"""消息与工具调用ID生成"""

import time
import uuid


def now_ms() -> int:
    """当前毫秒时间戳"""
    return int(time.time() * 1000)


def generate_message_id(prefix: str = "msg") -> str:
    """生成消息ID，如 msg_1718000000000"""
    return f"{prefix}_{now_ms()}"


def generate_tool_use_id() -> str:
    """为缺少ID的工具调用生成Anthropic风格的ID"""
    return f"toolu_{uuid.uuid4().hex[:24]}"


def generate_server_tool_use_id() -> str:
    """web search等服务端工具调用ID"""
    return f"srvtoolu_{uuid.uuid4().hex[:24]}"
