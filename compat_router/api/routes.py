"""健康检查路由"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

SERVICE_NAME = "openai-compat-router"


@router.get("/health")
async def health_check(request: Request) -> dict:
    """健康检查

    不会探测上游，只报告本地配置状态。
    """
    handler = getattr(request.app.state, "messages_handler", None)
    checks = {"backend_configured": False, "interceptors": []}
    if handler is not None:
        checks["backend_configured"] = handler.config.backend.to_backend_config() is not None
        checks["interceptors"] = [interceptor.name for interceptor in handler.interceptors]

    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
