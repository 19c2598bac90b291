"""
Preflight拦截器

识别agent运行时的内部安全分析调用并立即返回模拟流式响应，
避免这些调用被路由到较慢的模型上（每次bash命令都会触发一次）。

判断顺序从廉价到昂贵：
1. 携带任何工具即拒绝（主循环请求总是带有大量工具）
2. 取system提示文本，依次匹配登记的指纹子串
"""

from ...common.logging import get_logger_with_request_id
from ...models.anthropic import AnthropicRequest, TextBlock
from ..converters.messages import system_text
from ..mock_stream import emit_mock_stream
from .base import InterceptorContext, InterceptorResult, RequestInterceptor
from .fingerprints import FINGERPRINTS, PreflightFingerprint, match_fingerprint


def request_system_text(request: AnthropicRequest) -> str:
    """system字段的文本；没有时取第一条system角色消息的文本"""
    text = system_text(request.system)
    if text:
        return text

    for message in request.messages:
        if message.role != "system":
            continue
        if isinstance(message.content, str):
            return message.content
        return "\n".join(
            block.text
            for block in message.content
            if isinstance(block, TextBlock) and block.text
        )
    return ""


class PreflightInterceptor(RequestInterceptor):
    """短路内部安全分析调用的拦截器"""

    name = "preflight"

    def __init__(self, fingerprints: tuple[PreflightFingerprint, ...] = FINGERPRINTS):
        self.fingerprints = fingerprints

    def match(self, request: AnthropicRequest) -> PreflightFingerprint | None:
        if request.tools:
            return None
        return match_fingerprint(request_system_text(request), self.fingerprints)

    def should_intercept(
        self, request: AnthropicRequest, context: InterceptorContext
    ) -> bool:
        return self.match(request) is not None

    async def intercept(
        self, request: AnthropicRequest, context: InterceptorContext
    ) -> InterceptorResult:
        fingerprint = self.match(request)
        if fingerprint is None:
            return InterceptorResult.not_handled()

        get_logger_with_request_id(context.request_id).info(
            f"[Interceptor:preflight] 拦截 {fingerprint.name}，返回模拟响应"
        )
        await emit_mock_stream(
            context.stream, context.original_model, fingerprint.mock_response_text
        )
        return InterceptorResult.respond()


preflight_interceptor = PreflightInterceptor()
