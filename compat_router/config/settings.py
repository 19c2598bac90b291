"""应用配置模型与加载

配置从JSON文件读取，路径优先级：
1. 显式传入的路径（命令行 --config）
2. 环境变量 CONFIG_PATH
3. config/settings.json
4. config/example.json（模板，前三者都不存在时使用）

环境变量 BACKEND_URL / BACKEND_API_KEY 覆盖文件中的后端设置。
"""

import json
import os
from pathlib import Path

import aiofiles
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..common.backend import ApiType, BackendConfig, api_type_from_url

DEFAULT_CONFIG_PATH = "config/settings.json"
EXAMPLE_CONFIG_PATH = "config/example.json"

FORCE_STREAM_ENV = "FORCE_STREAM"
_TRUTHY = {"1", "true", "yes"}


class ServerConfig(BaseModel):
    """服务器配置"""

    host: str = Field("0.0.0.0", description="监听地址")
    port: int = Field(8000, ge=1, le=65535, description="监听端口")


class LoggingConfig(BaseModel):
    """日志配置"""

    level: str = Field("INFO", description="日志级别")
    file_path: str | None = Field("logs/app.log", description="日志文件路径，为空时只输出到控制台")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"无效的日志级别: {v}")
        return level


class BackendSettings(BaseModel):
    """默认上游后端

    请求的 x-api-key 头中携带了编码后的后端配置时，以请求中的为准。
    """

    url: str | None = Field(
        None, description="完整端点URL，以 /chat/completions 或 /responses 结尾"
    )
    api_key: str | None = Field(None, description="上游API密钥")
    model: str | None = Field(None, description="覆盖请求中的模型")
    api_type: ApiType | None = Field(None, description="显式指定线格式")
    timeout: float = Field(600.0, gt=0, description="上游请求超时（秒）")
    force_stream: bool = Field(False, description="总是向上游请求流式响应")
    headers: dict[str, str] | None = Field(None, description="附加请求头")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v and api_type_from_url(v) is None:
            raise ValueError(
                f"后端URL必须以 /chat/completions 或 /responses 结尾: {v}"
            )
        return v

    def to_backend_config(self) -> BackendConfig | None:
        """url与api_key都配置时返回可直接使用的后端配置"""
        if not self.url or not self.api_key:
            return None
        return BackendConfig(
            url=self.url,
            key=self.api_key,
            model=self.model,
            api_type=self.api_type,
            headers=self.headers,
            force_stream=self.force_stream,
        )


class InterceptorsConfig(BaseModel):
    """请求拦截器配置"""

    enabled: bool = Field(True, description="是否运行拦截器链")


class Config(BaseModel):
    """应用配置"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    interceptors: InterceptorsConfig = Field(default_factory=InterceptorsConfig)

    @classmethod
    def _from_data(cls, data: dict, source: Path) -> "Config":
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            logger.error(f"配置文件校验失败: {source}\n{e}")
            raise
        config.apply_env_overrides()
        return config

    @classmethod
    async def from_file(cls, config_path: str | None = None) -> "Config":
        """异步从JSON文件加载配置"""
        path = resolve_config_path(config_path)
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
        return cls._from_data(json.loads(content), path)

    @classmethod
    def from_file_sync(cls, config_path: str | None = None) -> "Config":
        """同步从JSON文件加载配置，用于模块级初始化"""
        path = resolve_config_path(config_path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_data(data, path)

    def apply_env_overrides(self) -> None:
        overrides = {}
        if os.getenv("BACKEND_URL"):
            overrides["url"] = os.environ["BACKEND_URL"]
        if os.getenv("BACKEND_API_KEY"):
            overrides["api_key"] = os.environ["BACKEND_API_KEY"]
        if overrides:
            # 重新校验，使环境变量中的URL同样受后缀检查
            self.backend = BackendSettings.model_validate(
                {**self.backend.model_dump(), **overrides}
            )

    async def get_server_config(self) -> tuple[str, int]:
        return self.server.host, self.server.port


def force_stream_from_env() -> bool:
    """环境变量 FORCE_STREAM 为 1/true/yes 时强制上游流式"""
    return os.getenv(FORCE_STREAM_ENV, "").strip().lower() in _TRUTHY


def resolve_config_path(config_path: str | None = None) -> Path:
    """按优先级确定实际使用的配置文件路径"""
    candidate = Path(config_path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH))
    if candidate.exists():
        return candidate

    example = Path(EXAMPLE_CONFIG_PATH)
    if example.exists():
        logger.warning(f"配置文件不存在: {candidate}，使用模板配置 {example}")
        return example

    raise FileNotFoundError(f"配置文件不存在: {candidate}")


_config: Config | None = None


def get_config_file_path() -> str:
    return str(resolve_config_path().resolve())


async def get_config() -> Config:
    """获取全局配置实例，首次调用时加载"""
    global _config
    if _config is None:
        _config = await Config.from_file()
    return _config


async def reload_config(config_path: str | None = None) -> Config:
    """重新加载配置文件并替换全局实例"""
    global _config
    _config = await Config.from_file(config_path)
    logger.info("配置已重新加载")
    return _config
