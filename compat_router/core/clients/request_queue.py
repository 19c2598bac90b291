"""
按上游后端串行化请求

同一个后端（URL + 密钥前缀）同一时刻只允许一个请求在途，后到的请求排队等待，
避免客户端并行发出的请求触发上游的429限流。不同后端之间互不影响。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

KEY_PREFIX_LENGTH = 16


def queue_key(url: str, api_key: str) -> str:
    """由后端URL和密钥前16个字符组成队列键，完整密钥不会留在内存中的键里"""
    return f"{url}:{api_key[:KEY_PREFIX_LENGTH]}"


class _QueueEntry:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class RequestQueue:
    """每个队列键对应一把锁，没有请求持有或等待时删除该键"""

    def __init__(self):
        self._entries: dict[str, _QueueEntry] = {}

    @asynccontextmanager
    async def slot(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _QueueEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @property
    def pending_count(self) -> int:
        """有请求在途或排队的后端数量"""
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


# 全局请求队列，配置热重载重建处理器时保持不变
request_queue = RequestQueue()
