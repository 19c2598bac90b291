"""请求ID与计时中间件"""

import time
from collections.abc import Callable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from ...common.logging import (
    REQUEST_ID_HEADER,
    generate_request_id,
    get_logger_with_request_id,
    request_logger,
)
from ...models.errors import get_error_response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """为每个请求分配请求ID并记录处理时间

    流式响应的处理时间只统计到响应头发出为止。
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        # 调用方已经携带请求ID时沿用
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id

        get_logger_with_request_id(request_id).debug(
            f"收到请求 - {request.method} {request.url.path}"
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            await request_logger.log_error(
                exc,
                {"method": request.method, "url": str(request.url)},
                request_id,
            )
            body = get_error_response(500, request_id=request_id)
            response = JSONResponse(
                status_code=500, content=body.model_dump(exclude_none=True)
            )

        response_time = time.time() - start_time
        await request_logger.log_response(response.status_code, response_time, request_id)
        response.headers["X-Process-Time"] = f"{response_time:.3f}s"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_middlewares(app: FastAPI) -> None:
    """设置所有中间件"""
    app.add_middleware(RequestTimingMiddleware)
