"""
中间件模块

使用示例:
    from compat_router.api.middleware import setup_middlewares

    setup_middlewares(app)
"""

from .timing import RequestTimingMiddleware, setup_middlewares

__all__ = [
    "RequestTimingMiddleware",
    "setup_middlewares",
]
