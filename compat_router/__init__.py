"""
OpenAI Compat Router

在OpenAI兼容后端（Chat Completions或Responses）之上提供Anthropic Messages API。

主要功能:
- Anthropic请求到OpenAI Chat / Responses格式的转换
- 非流式与流式响应转换回Anthropic格式
- 请求拦截器链，短路agent运行时的内部preflight调用
- 配置文件热重载与请求ID日志追踪

使用示例:
    from compat_router.main import create_app

    app = create_app()
"""

__version__ = "0.1.0"
__description__ = "Anthropic Messages API on top of OpenAI-compatible backends"

__all__ = ["__version__", "__description__"]
