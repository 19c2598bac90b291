"""
上游OpenAI兼容后端的HTTP传输

传输层只负责发送请求并交回结果：不做重试，也不解释OpenAI响应的内容。
非2xx状态统一抛出UpstreamError，超时抛出UpstreamTimeoutError。
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

import httpx

from ...common.logging import get_logger_with_request_id

DEFAULT_TIMEOUT = 600.0
CONNECT_TIMEOUT = 10.0


class UpstreamError(Exception):
    """上游返回了非成功状态码"""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Upstream HTTP {status_code}: {body[:200]}")

    @property
    def requires_stream(self) -> bool:
        """上游是否要求以流式方式请求"""
        return "stream must be set to true" in self.body.lower()


class UpstreamTimeoutError(Exception):
    """上游请求超时"""


@runtime_checkable
class UpstreamTransport(Protocol):
    """向上游发送OpenAI格式请求的传输接口"""

    async def post_json(
        self,
        url: str,
        api_key: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]: ...

    async def post_stream(
        self,
        url: str,
        api_key: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[str]: ...

    async def aclose(self) -> None: ...


def build_headers(
    api_key: str, headers: dict[str, str] | None = None, accept: str = "application/json"
) -> dict[str, str]:
    """构造请求头；附加头中已有Authorization时不再覆盖"""
    merged = {"Content-Type": "application/json", "Accept": accept}
    merged.update(headers or {})
    if "Authorization" not in merged:
        merged["Authorization"] = f"Bearer {api_key}"
    return merged


class HttpxUpstreamClient:
    """基于httpx.AsyncClient的上游传输"""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT),
            transport=transport,
        )

    async def post_json(
        self,
        url: str,
        api_key: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        发送非流式请求

        Returns:
            dict: 上游响应JSON

        Raises:
            UpstreamError: 上游返回非2xx状态，或响应体不是JSON对象
            UpstreamTimeoutError: 请求超时
        """
        bound_logger = get_logger_with_request_id(request_id)
        try:
            response = await self._client.post(
                url,
                json=body,
                headers=build_headers(api_key, headers),
                timeout=self._timeout(timeout),
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(str(e) or "Request timed out") from e

        bound_logger.info(f"上游响应: {response.status_code}")
        if response.is_error:
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(502, f"Invalid JSON from upstream: {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise UpstreamError(502, f"Unexpected upstream payload: {response.text[:200]}")
        return data

    async def post_stream(
        self,
        url: str,
        api_key: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[str]:
        """
        发送流式请求

        在返回之前已经拿到响应状态，因此错误状态在这里就以UpstreamError抛出，
        调用方可以在开始输出SSE之前处理它。

        Returns:
            AsyncIterator[str]: 上游响应的文本块，迭代结束时关闭响应
        """
        bound_logger = get_logger_with_request_id(request_id)
        request = self._client.build_request(
            "POST",
            url,
            json=body,
            headers=build_headers(api_key, headers, accept="text/event-stream"),
            timeout=self._timeout(timeout),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(str(e) or "Request timed out") from e

        bound_logger.info(f"上游响应: {response.status_code} (stream)")
        if response.is_error:
            error_body = await response.aread()
            await response.aclose()
            raise UpstreamError(
                response.status_code, error_body.decode("utf-8", errors="replace")
            )

        return self._iter_text(response)

    def _timeout(self, timeout: float | None) -> httpx.Timeout:
        return httpx.Timeout(timeout or self.timeout, connect=CONNECT_TIMEOUT)

    @staticmethod
    async def _iter_text(response: httpx.Response) -> AsyncIterator[str]:
        try:
            async for chunk in response.aiter_text():
                yield chunk
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()
