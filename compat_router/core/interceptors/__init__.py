"""请求拦截器"""

from .base import (
    ChainOutcome,
    InterceptorContext,
    InterceptorResult,
    RequestInterceptor,
    run_interceptors,
)
from .fingerprints import FINGERPRINTS, PreflightFingerprint, match_fingerprint
from .preflight import PreflightInterceptor, preflight_interceptor

# 顺序有意义：第一个匹配的拦截器生效
DEFAULT_INTERCEPTORS: tuple[RequestInterceptor, ...] = (preflight_interceptor,)

__all__ = [
    "ChainOutcome",
    "DEFAULT_INTERCEPTORS",
    "FINGERPRINTS",
    "InterceptorContext",
    "InterceptorResult",
    "PreflightFingerprint",
    "PreflightInterceptor",
    "RequestInterceptor",
    "match_fingerprint",
    "preflight_interceptor",
    "run_interceptors",
]
