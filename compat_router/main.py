from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.handlers import MessagesHandler
from .api.handlers import router as messages_router
from .api.middleware.timing import setup_middlewares
from .api.routes import router as health_router
from .common.logging import (
    configure_logging,
    get_logger_with_request_id,
    get_request_id_from_request,
)
from .config.settings import Config, get_config_file_path, reload_config
from .config.watcher import ConfigWatcher
from .core.clients import HttpxUpstreamClient, UpstreamTransport
from .models.errors import get_error_response


def _error_json(status_code: int, request: Request, **kwargs) -> JSONResponse:
    body = get_error_response(
        status_code, request_id=get_request_id_from_request(request), **kwargs
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(
    config: Config | None = None,
    transport: UpstreamTransport | None = None,
    watch_config: bool = True,
) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        config: 使用的配置；为None时在启动阶段从配置文件加载
        transport: 上游传输；为None时在启动阶段创建httpx客户端
        watch_config: 是否监听配置文件并热重载
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        current = config or await Config.from_file()
        configure_logging(current.logging)

        upstream = transport or HttpxUpstreamClient(timeout=current.backend.timeout)
        app.state.messages_handler = await MessagesHandler.create(current, upstream)

        async def on_config_reload():
            """配置重载时重建日志与消息处理器，上游客户端保持不变"""
            try:
                new_config = await reload_config()
                configure_logging(new_config.logging)
                app.state.messages_handler = await MessagesHandler.create(
                    new_config, upstream
                )
                logger.info("配置热重载完成，服务已更新")
            except Exception as e:
                logger.error(f"配置热重载失败: {e}")

        config_watcher = None
        if watch_config:
            config_watcher = ConfigWatcher(get_config_file_path())
            config_watcher.add_reload_callback(on_config_reload)
            await config_watcher.start_watching()

        host, port = await current.get_server_config()
        logger.info(
            f"启动 OpenAI Compat Router - Host: {host}, Port: {port}, "
            f"Backend: {current.backend.url or '(per-request)'}, "
            f"LogLevel: {current.logging.level}"
        )

        yield

        if config_watcher is not None:
            config_watcher.stop_watching()
        if transport is None:
            await upstream.aclose()
        logger.info("服务器已停止")

    app = FastAPI(
        title="OpenAI Compat Router",
        version="0.1.0",
        description="Serve the Anthropic Messages API on top of OpenAI-compatible backends.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_middlewares(app)

    app.include_router(health_router)
    app.include_router(messages_router)

    @app.get("/")
    async def root():
        return {"message": "Welcome to the OpenAI Compat Router"}

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """请求体不符合Anthropic Messages格式"""
        get_logger_with_request_id(get_request_id_from_request(request)).warning(
            f"请求验证失败: {len(exc.errors())} 个错误"
        )
        errors = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return _error_json(422, request, details={"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else None
        return _error_json(exc.status_code, request, message=message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """全局异常处理，防止Internal Server Error直接返回给客户端"""
        get_logger_with_request_id(get_request_id_from_request(request)).opt(
            exception=exc
        ).error(f"捕获未处理的服务器异常 - Type: {type(exc).__name__}, URL: {request.url}")
        return _error_json(500, request, message="服务器内部错误，请稍后重试")

    return app


app = create_app()
