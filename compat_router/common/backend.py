"""
后端配置

后端可以来自配置文件，也可以由调用方在 x-api-key 头中携带：
base64(JSON({url, key, model?, apiType?}))。URL必须是完整的端点地址，
以 /chat/completions 或 /responses 结尾，它决定了使用哪种OpenAI线格式。
"""

import base64
import binascii
import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

ApiType = Literal["chat_completions", "responses"]

ENDPOINT_SUFFIXES: dict[str, ApiType] = {
    "/chat/completions": "chat_completions",
    "/responses": "responses",
}


class BackendConfig(BaseModel):
    """单次请求使用的上游后端"""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(description="完整的上游端点URL")
    key: str = Field(description="上游API密钥")
    model: str | None = Field(None, description="覆盖请求中的模型")
    api_type: ApiType | None = Field(
        None, alias="apiType", description="显式指定的线格式，缺省时由URL后缀决定"
    )
    headers: dict[str, str] | None = Field(None, description="附加请求头")
    force_stream: bool = Field(
        False, alias="forceStream", description="总是向上游请求流式响应"
    )

    def resolve_api_type(self) -> ApiType | None:
        return self.api_type or api_type_from_url(self.url)


def api_type_from_url(url: str) -> ApiType | None:
    """根据URL后缀判断线格式，后缀无效时返回None"""
    for suffix, api_type in ENDPOINT_SUFFIXES.items():
        if url.endswith(suffix):
            return api_type
    return None


def endpoint_url_error(url: str) -> str:
    return (
        f"Invalid endpoint URL: {url}\n\n"
        "Please provide a complete endpoint URL ending with:\n"
        "  - /chat/completions  (e.g., https://api.openai.com/v1/chat/completions)\n"
        "  - /responses         (e.g., https://api.openai.com/v1/responses)"
    )


def encode_backend_config(config: BackendConfig) -> str:
    """将后端配置编码为可放入 x-api-key 头的base64字符串"""
    payload = config.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
    # url与key是必需字段，即使与默认值相同也要保留
    payload["url"] = config.url
    payload["key"] = config.key
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_backend_config(encoded: str | None) -> BackendConfig | None:
    """解析 x-api-key 头中的后端配置

    Returns:
        BackendConfig | None: 解码失败或缺少url、key时返回None
    """
    if not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        parsed = json.loads(decoded)
    except (binascii.Error, ValueError):
        return None

    if not isinstance(parsed, dict) or not parsed.get("url") or not parsed.get("key"):
        return None
    try:
        return BackendConfig.model_validate(parsed)
    except ValidationError:
        return None
