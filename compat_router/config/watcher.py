"""配置文件监听和热重载

watchdog在自己的线程中派发文件事件；配置变化时，校验与重载回调被调度回
启动监听时所在的事件循环中执行，回调因此可以安全地修改 app.state。
"""

import asyncio
import inspect
import json
import threading
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles
from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .settings import get_config_file_path

ReloadCallback = Callable[[], Awaitable[None] | None]

# 编辑器保存文件时常会连续触发多次事件
DEBOUNCE_SECONDS = 0.1


class ConfigFileHandler(FileSystemEventHandler):
    """只关注目标配置文件的事件处理器"""

    def __init__(self, config_path: Path, callback: Callable[[], None]):
        self.config_path = config_path.resolve()
        self.callback = callback
        self._last_modified = 0.0
        self._timer: threading.Timer | None = None

    def _is_target(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and Path(p).resolve() == self.config_path for p in paths)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not self._is_target(event):
            return
        try:
            current_modified = self.config_path.stat().st_mtime
        except OSError:
            return
        if current_modified == self._last_modified:
            return
        self._last_modified = current_modified

        logger.info(f"配置文件已修改: {self.config_path}")
        self._schedule()

    # 原子写入（写临时文件再改名）表现为moved事件
    on_moved = on_modified
    on_created = on_modified

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(DEBOUNCE_SECONDS, self.callback)
        self._timer.daemon = True
        self._timer.start()


class ConfigWatcher:
    """配置文件监听器"""

    def __init__(self, config_path: str | None = None):
        self.config_path = Path(config_path or get_config_file_path()).resolve()
        self.observer: Observer | None = None
        self.handler: ConfigFileHandler | None = None
        self._reload_callbacks: list[ReloadCallback] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def add_reload_callback(self, callback: ReloadCallback) -> None:
        """添加配置重载回调，同步或异步函数均可"""
        self._reload_callbacks.append(callback)

    @property
    def is_watching(self) -> bool:
        return self.observer is not None

    async def start_watching(self) -> None:
        """开始监听配置文件变化"""
        if self.observer is not None:
            logger.warning("配置监听器已在运行")
            return

        if not self.config_path.exists():
            logger.warning(f"配置文件不存在，跳过监听: {self.config_path}")
            return

        self._loop = asyncio.get_running_loop()
        self.handler = ConfigFileHandler(self.config_path, self._on_config_changed)

        self.observer = Observer()
        self.observer.schedule(self.handler, str(self.config_path.parent), recursive=False)
        self.observer.daemon = True
        self.observer.start()

        logger.info(f"开始监听配置文件: {self.config_path}")

    def stop_watching(self) -> None:
        """停止监听配置文件变化"""
        if self.observer is None:
            return

        logger.info("停止配置文件监听")
        self.observer.stop()
        self.observer.join()
        self.observer = None
        self.handler = None
        self._loop = None

    def _on_config_changed(self) -> None:
        """在watchdog线程中调用，把处理逻辑交回事件循环"""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.error("事件循环不可用，跳过配置重载")
            return
        asyncio.run_coroutine_threadsafe(self.process_config_change(), loop)

    async def process_config_change(self) -> None:
        """校验配置文件并依次执行重载回调"""
        logger.info("检测到配置文件变化，开始重新加载...")
        if not await self._validate_config_file():
            logger.error("配置文件格式无效，跳过重载")
            return

        for callback in self._reload_callbacks:
            name = getattr(callback, "__name__", repr(callback))
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
                logger.debug(f"配置重载回调执行成功: {name}")
            except Exception as e:
                logger.error(f"配置重载回调执行失败 {name}: {e}")

        logger.info("配置重载完成")

    async def _validate_config_file(self) -> bool:
        try:
            async with aiofiles.open(self.config_path, encoding="utf-8") as f:
                json.loads(await f.read())
            return True
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"配置文件验证失败: {e}")
            return False

    async def __aenter__(self) -> "ConfigWatcher":
        await self.start_watching()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop_watching()
