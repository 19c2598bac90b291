"""
API模块

子模块:
- handlers: /v1/messages 与 /v1/messages/count_tokens
- routes: 健康检查
- middleware: 请求ID与计时中间件
"""

from .handlers import MessagesHandler, messages_endpoint
from .handlers import router as handlers_router
from .middleware import RequestTimingMiddleware, setup_middlewares
from .routes import health_check
from .routes import router as routes_router

__all__ = [
    # 路由
    "routes_router",
    "handlers_router",
    "health_check",
    # 处理器
    "MessagesHandler",
    "messages_endpoint",
    # 中间件
    "RequestTimingMiddleware",
    "setup_middlewares",
]
