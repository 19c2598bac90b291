"""
请求拦截器链

拦截器按固定顺序评估，第一个处理请求的拦截器生效：
- 返回responded：已直接向调用方写出响应，后续阶段不再执行
- 返回modified：改写后的请求立即交给下游，链条停止
- 都不匹配：原请求原样继续
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass

from ...common.logging import get_logger_with_request_id
from ...models.anthropic import AnthropicRequest
from ..sse import EventStream


@dataclass
class InterceptorContext:
    """拦截器共享上下文"""

    stream: EventStream
    original_model: str
    request_id: str | None = None


@dataclass(frozen=True)
class InterceptorResult:
    """单个拦截器的处理结果"""

    handled: bool = False
    responded: bool = False
    modified: AnthropicRequest | None = None

    @classmethod
    def not_handled(cls) -> "InterceptorResult":
        return cls()

    @classmethod
    def respond(cls) -> "InterceptorResult":
        return cls(handled=True, responded=True)

    @classmethod
    def rewrite(cls, request: AnthropicRequest) -> "InterceptorResult":
        return cls(handled=True, modified=request)


@dataclass(frozen=True)
class ChainOutcome:
    """拦截器链的最终结果

    responded为True时request为None；否则request是下游应使用的请求。
    """

    intercepted: bool
    responded: bool = False
    request: AnthropicRequest | None = None


class RequestInterceptor(ABC):
    """请求拦截器

    should_intercept必须是廉价的同步判断；intercept可以是同步或异步的，
    在写完模拟响应之前不应返回。
    """

    name: str = "interceptor"

    @abstractmethod
    def should_intercept(
        self, request: AnthropicRequest, context: InterceptorContext
    ) -> bool: ...

    @abstractmethod
    def intercept(
        self, request: AnthropicRequest, context: InterceptorContext
    ) -> InterceptorResult | Awaitable[InterceptorResult]: ...


async def run_interceptors(
    request: AnthropicRequest,
    context: InterceptorContext,
    interceptors: Sequence[RequestInterceptor] | None = None,
) -> ChainOutcome:
    """
    依次运行拦截器

    Args:
        request: 入站Anthropic请求
        context: 拦截器上下文
        interceptors: 拦截器序列，默认使用DEFAULT_INTERCEPTORS

    Returns:
        ChainOutcome: 是否被拦截、是否已响应，以及下游应使用的请求
    """
    if interceptors is None:
        from . import DEFAULT_INTERCEPTORS

        interceptors = DEFAULT_INTERCEPTORS

    bound_logger = get_logger_with_request_id(context.request_id)

    for interceptor in interceptors:
        if not interceptor.should_intercept(request, context):
            continue

        result = interceptor.intercept(request, context)
        if inspect.isawaitable(result):
            result = await result

        if not result.handled:
            continue

        if result.responded:
            bound_logger.debug(f"拦截器 {interceptor.name} 已直接响应")
            return ChainOutcome(intercepted=True, responded=True)

        if result.modified is not None:
            bound_logger.debug(f"拦截器 {interceptor.name} 改写了请求")
            return ChainOutcome(intercepted=True, request=result.modified)

    return ChainOutcome(intercepted=False, request=request)
