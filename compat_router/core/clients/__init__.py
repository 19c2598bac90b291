"""上游HTTP客户端"""

from .request_queue import RequestQueue, queue_key, request_queue
from .upstream import (
    HttpxUpstreamClient,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamTransport,
)

__all__ = [
    "HttpxUpstreamClient",
    "RequestQueue",
    "UpstreamError",
    "UpstreamTimeoutError",
    "UpstreamTransport",
    "queue_key",
    "request_queue",
]
