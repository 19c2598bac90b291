#!/usr/bin/env python3
"""
OpenAI Compat Router 启动脚本

使用 JSON 配置文件中的 host 和 port 启动服务器。
配置优先级：
1. 命令行指定的 --config 参数
2. 环境变量 CONFIG_PATH 指定的路径
3. ./config/settings.json (默认)
4. ./config/example.json (模板)
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

import uvicorn

from compat_router.config.settings import Config, resolve_config_path

UVICORN_LOG_LEVELS = {"critical", "error", "warning", "info", "debug", "trace"}


async def main():
    """主启动函数"""
    parser = argparse.ArgumentParser(description="启动 OpenAI Compat Router")
    parser.add_argument(
        "--config", type=str, help="JSON 配置文件路径 (默认为 config/settings.json)"
    )
    parser.add_argument("--workers", type=int, default=1, help="uvicorn worker 数量")
    args = parser.parse_args()

    # 确保从项目根目录启动
    os.chdir(Path(__file__).parent)

    try:
        config_path = resolve_config_path(args.config)
        # worker进程通过环境变量找到同一份配置
        os.environ["CONFIG_PATH"] = str(config_path.resolve())
        config = await Config.from_file(str(config_path))
        host, port = await config.get_server_config()
    except Exception as e:
        print(f"❌ 启动失败: {e}")
        sys.exit(1)

    print("🚀 启动 OpenAI Compat Router...")
    print(f"   配置文件: {config_path}")
    print(f"   监听地址: {host}:{port}")
    print(f"   上游后端: {config.backend.url or '(由 x-api-key 指定)'}")
    print()
    print("📋 重要端点:")
    print(f"   健康检查: http://{host}:{port}/health")
    print(f"   Messages: http://{host}:{port}/v1/messages")
    print()

    log_level = config.logging.level.lower()
    if log_level not in UVICORN_LOG_LEVELS:
        log_level = "info"
    return host, port, log_level, args.workers


if __name__ == "__main__":
    host, port, log_level, workers = asyncio.run(main())
    # uvicorn.run 自己管理事件循环，必须在 asyncio.run 之外调用
    uvicorn.run(
        "compat_router.main:app",
        host=host,
        port=port,
        workers=workers,
        timeout_keep_alive=60,
        log_level=log_level,
    )
