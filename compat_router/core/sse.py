"""
Server-Sent Events 工具

- format_event: 生成 `event: <name>\\ndata: <json>\\n\\n` 帧
- iter_sse_data: 从上游文本流中逐条解析 `data:` 载荷
- EventStream / MemoryEventStream: SSE输出目标句柄
"""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

DONE_MARKER = "[DONE]"


def format_event(event_type: str, data: dict[str, Any] | BaseModel) -> str:
    """格式化单个SSE事件帧"""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def _data_payload(line: str) -> str | None:
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


async def iter_sse_data(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """从上游文本块中解析SSE data载荷

    文本块可以在任意位置断开，这里按行缓冲；`event:`、注释等非data行被忽略，
    遇到 `[DONE]` 时结束。

    Args:
        chunks: 上游响应的文本块

    Yields:
        str: 每个data行的载荷（未解析的JSON文本）
    """
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            payload = _data_payload(line)
            if payload is None or payload == "":
                continue
            if payload == DONE_MARKER:
                return
            yield payload

    payload = _data_payload(buffer)
    if payload and payload != DONE_MARKER:
        yield payload


@runtime_checkable
class EventStream(Protocol):
    """SSE输出目标

    headers在第一次write之前设置；close之后的write被忽略。
    """

    headers: dict[str, str]

    @property
    def closed(self) -> bool: ...

    async def write(self, chunk: str) -> None: ...

    async def close(self) -> None: ...


class MemoryEventStream:
    """进程内的EventStream实现

    写入的帧进入队列，HTTP层通过 `iter_chunks` 将其作为StreamingResponse输出；
    `chunks` 保留全部已写入的帧。
    """

    def __init__(self):
        self.headers: dict[str, str] = {}
        self.chunks: list[str] = []
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, chunk: str) -> None:
        if self._closed:
            return
        self.chunks.append(chunk)
        await self._queue.put(chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    async def iter_chunks(self) -> AsyncIterator[str]:
        """按写入顺序产出帧，流关闭后结束"""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    def text(self) -> str:
        return "".join(self.chunks)
