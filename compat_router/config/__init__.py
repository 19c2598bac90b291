"""
配置管理模块

提供应用程序配置的加载、验证和热重载功能。

使用示例:
    from compat_router.config import get_config

    config = await get_config()
    print(config.backend.url)
"""

from .settings import (
    BackendSettings,
    Config,
    InterceptorsConfig,
    LoggingConfig,
    ServerConfig,
    force_stream_from_env,
    get_config,
    get_config_file_path,
    reload_config,
    resolve_config_path,
)
from .watcher import ConfigFileHandler, ConfigWatcher

__all__ = [
    # 配置管理函数
    "get_config",
    "reload_config",
    "get_config_file_path",
    "resolve_config_path",
    "force_stream_from_env",
    # 配置模型
    "Config",
    "ServerConfig",
    "LoggingConfig",
    "BackendSettings",
    "InterceptorsConfig",
    # 配置监听器
    "ConfigWatcher",
    "ConfigFileHandler",
]
