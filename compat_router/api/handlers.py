"""
Anthropic Messages API 处理器

处理流程：
1. 解析本次请求使用的后端（x-api-key中的编码配置优先，其次是配置文件）
2. 运行请求拦截器链，被拦截的请求直接返回模拟流
3. 按后端URL决定的线格式转换请求并发送到上游
4. 把上游响应（JSON或SSE）转换回Anthropic格式
"""

from typing import Any

import httpx
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response

from ..common.backend import ApiType, BackendConfig, decode_backend_config, endpoint_url_error
from ..common.logging import get_logger_with_request_id, get_request_id_from_request
from ..common.token_counter import token_counter
from ..config.settings import Config, force_stream_from_env
from ..core.clients import (
    HttpxUpstreamClient,
    RequestQueue,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamTransport,
    queue_key,
    request_queue,
)
from ..core.converters import (
    AnthropicToOpenAIConverter,
    ChatStreamConverter,
    OpenAIToAnthropicConverter,
    ResponsesStreamConverter,
)
from ..core.interceptors import (
    DEFAULT_INTERCEPTORS,
    InterceptorContext,
    RequestInterceptor,
    run_interceptors,
)
from ..core.sse import SSE_HEADERS, MemoryEventStream
from ..models.anthropic import AnthropicRequest
from ..models.errors import get_error_response

router = APIRouter(prefix="/v1", tags=["messages"])

INVALID_KEY_MESSAGE = (
    "Invalid x-api-key format. "
    "Expect base64(JSON.stringify({ url, key, model?, apiType? }))"
)


def error_response(
    status_code: int,
    message: str,
    error_type: str | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """构造Anthropic格式的错误响应"""
    body = get_error_response(
        status_code, message=message, error_type=error_type, request_id=request_id
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


class BackendResolutionError(Exception):
    """无法为请求确定上游后端"""

    def __init__(self, status_code: int, error_type: str, message: str):
        self.status_code = status_code
        self.error_type = error_type
        self.message = message
        super().__init__(message)


class MessagesHandler:
    """消息处理器"""

    def __init__(
        self,
        config: Config,
        transport: UpstreamTransport,
        interceptors: tuple[RequestInterceptor, ...] = DEFAULT_INTERCEPTORS,
        queue: RequestQueue | None = None,
    ):
        self.config = config
        self.transport = transport
        self.interceptors = interceptors if config.interceptors.enabled else ()
        self.queue = queue or request_queue

    @classmethod
    async def create(
        cls,
        config: Config,
        transport: UpstreamTransport | None = None,
        interceptors: tuple[RequestInterceptor, ...] = DEFAULT_INTERCEPTORS,
    ) -> "MessagesHandler":
        """按配置创建处理器，未提供传输时使用httpx客户端"""
        if transport is None:
            transport = HttpxUpstreamClient(timeout=config.backend.timeout)
        return cls(config, transport, interceptors)

    def resolve_backend(self, raw_key: str | None) -> BackendConfig:
        """
        确定本次请求的上游后端

        Raises:
            BackendResolutionError: 既没有可解码的x-api-key也没有配置后端
        """
        decoded = decode_backend_config(raw_key)
        if decoded is not None:
            return decoded

        configured = self.config.backend.to_backend_config()
        if configured is not None:
            return configured

        if not raw_key:
            raise BackendResolutionError(401, "authentication_error", "x-api-key is required")
        raise BackendResolutionError(400, "invalid_request_error", INVALID_KEY_MESSAGE)

    def want_stream(self, request: AnthropicRequest, backend: BackendConfig, api_type: ApiType) -> bool:
        """
        决定是否向上游请求流式响应

        Responses后端在调用方未指定stream时优先使用流式。
        """
        if force_stream_from_env() or backend.force_stream:
            return True
        if api_type == "responses" and request.stream is None:
            return True
        return bool(request.stream)

    @staticmethod
    def build_upstream_body(
        request: AnthropicRequest, api_type: ApiType, stream: bool, request_id: str | None
    ) -> dict[str, Any]:
        to_send = request.model_copy(update={"stream": stream})
        if api_type == "responses":
            result = AnthropicToOpenAIConverter.to_responses(to_send, request_id)
        else:
            result = AnthropicToOpenAIConverter.to_chat(to_send, request_id)
        return result.request.model_dump(mode="json")

    async def _send(
        self,
        backend: BackendConfig,
        body: dict[str, Any],
        stream: bool,
        request_id: str | None,
    ):
        send = self.transport.post_stream if stream else self.transport.post_json
        return await send(
            backend.url,
            backend.key,
            body,
            headers=backend.headers,
            request_id=request_id,
            timeout=self.config.backend.timeout,
        )

    async def process_message(
        self,
        request: AnthropicRequest,
        backend: BackendConfig,
        request_id: str | None = None,
    ) -> Response:
        """
        处理一次 /v1/messages 请求

        Args:
            request: Anthropic格式的请求
            backend: 上游后端
            request_id: 请求ID用于日志追踪

        Returns:
            Response: JSON响应或SSE流式响应
        """
        bound_logger = get_logger_with_request_id(request_id)

        if self.interceptors:
            event_stream = MemoryEventStream()
            outcome = await run_interceptors(
                request,
                InterceptorContext(event_stream, request.model, request_id),
                self.interceptors,
            )
            if outcome.responded:
                return StreamingResponse(
                    event_stream.iter_chunks(),
                    media_type="text/event-stream",
                    headers=event_stream.headers,
                )
            request = outcome.request or request

        api_type = backend.resolve_api_type()
        if api_type is None:
            return error_response(
                400, endpoint_url_error(backend.url), "invalid_request_error", request_id
            )

        if backend.model:
            request = request.model_copy(update={"model": backend.model})

        stream = self.want_stream(request, backend, api_type)
        body = self.build_upstream_body(request, api_type, stream, request_id)
        bound_logger.info(
            f"wire={api_type} tools={len(body.get('tools') or [])} "
            f"model={request.model} stream={stream}"
        )

        # 同一后端串行发送；流式响应在上游接受请求后即释放
        async with self.queue.slot(queue_key(backend.url, backend.key)):
            return await self._exchange(request, backend, api_type, stream, body, request_id)

    async def _exchange(
        self,
        request: AnthropicRequest,
        backend: BackendConfig,
        api_type: ApiType,
        stream: bool,
        body: dict[str, Any],
        request_id: str | None,
    ) -> Response:
        """发送到上游（必要时以流式重试一次）并转换响应"""
        bound_logger = get_logger_with_request_id(request_id)

        try:
            try:
                upstream = await self._send(backend, body, stream, request_id)
            except UpstreamError as e:
                if not e.requires_stream or stream:
                    raise
                bound_logger.warning("上游要求stream=true，以流式方式重新发送")
                stream = True
                body = self.build_upstream_body(request, api_type, stream, request_id)
                upstream = await self._send(backend, body, stream, request_id)
        except UpstreamError as e:
            bound_logger.error(f"Provider error {e.status_code}: {e.body[:200]}")
            message = f"Provider error: {e.body or f'HTTP {e.status_code}'}"
            if e.status_code == 429:
                return error_response(429, message, "rate_limit_error", request_id)
            return error_response(e.status_code, message, "api_error", request_id)
        except UpstreamTimeoutError:
            bound_logger.error("上游请求超时")
            return error_response(504, "Request timed out", "timeout_error", request_id)
        except httpx.RequestError as e:
            bound_logger.error(f"上游连接失败: {e}")
            return error_response(502, f"Upstream connection failed: {e}", "api_error", request_id)

        if stream:
            converter_cls = (
                ResponsesStreamConverter if api_type == "responses" else ChatStreamConverter
            )
            converter = converter_cls(request.model, request_id)
            return StreamingResponse(
                converter.convert(upstream),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )

        if api_type == "responses":
            anthropic_response = OpenAIToAnthropicConverter.from_responses(
                upstream, request.model, request_id
            )
        else:
            anthropic_response = OpenAIToAnthropicConverter.from_chat(
                upstream, request.model, request_id
            )
        return JSONResponse(content=anthropic_response.model_dump(mode="json"))


def get_messages_handler(request: Request) -> MessagesHandler:
    return request.app.state.messages_handler


def _raw_api_key(x_api_key: str | None, authorization: str | None) -> str | None:
    if x_api_key:
        return x_api_key
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


@router.post("/messages")
async def messages_endpoint(
    request: AnthropicRequest,
    http_request: Request,
    x_api_key: str | None = Header(None),
    authorization: str | None = Header(None),
) -> Response:
    """Anthropic Messages API 端点"""
    request_id = get_request_id_from_request(http_request)
    handler = get_messages_handler(http_request)

    try:
        backend = handler.resolve_backend(_raw_api_key(x_api_key, authorization))
    except BackendResolutionError as e:
        return error_response(e.status_code, e.message, e.error_type, request_id)

    return await handler.process_message(request, backend, request_id)


@router.post("/messages/count_tokens")
async def count_tokens_endpoint(request: AnthropicRequest) -> dict[str, int]:
    """估算请求的输入token数量"""
    return {
        "input_tokens": token_counter.count_tokens(
            request.messages, request.system, request.tools
        )
    }
