"""模拟Anthropic流式响应

被拦截的请求不经过上游，直接返回固定的六个事件：
message_start -> content_block_start -> content_block_delta ->
content_block_stop -> message_delta -> message_stop
"""

from ..common.ids import generate_message_id
from .converters.stream_converters import (
    content_block_start_event,
    content_block_stop_event,
    message_delta_event,
    message_start_event,
    message_stop_event,
    text_delta_event,
)
from .sse import SSE_HEADERS, EventStream


def build_mock_events(model: str, text: str, message_id: str | None = None) -> list[str]:
    """构造单个文本块消息的完整事件序列"""
    message_id = message_id or generate_message_id("msg_preflight")
    return [
        message_start_event(message_id, model),
        content_block_start_event(0, {"type": "text", "text": ""}),
        text_delta_event(0, text),
        content_block_stop_event(0),
        message_delta_event("end_turn", output_tokens=1),
        message_stop_event(),
    ]


async def emit_mock_stream(stream: EventStream, model: str, text: str) -> None:
    """向输出流写入模拟响应并关闭

    Args:
        stream: SSE输出目标
        model: 响应中声明的模型名
        text: 作为唯一文本块返回的内容
    """
    stream.headers.update(SSE_HEADERS)
    for event in build_mock_events(model, text):
        await stream.write(event)
    await stream.close()
