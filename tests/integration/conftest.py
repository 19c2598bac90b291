"""集成测试共用夹具"""

import pytest
from fastapi.testclient import TestClient

from compat_router.main import create_app
from tests.fixtures import make_config, mock_upstream_client, reset_mock_upstream


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("FORCE_STREAM", "BACKEND_URL", "BACKEND_API_KEY", "CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    reset_mock_upstream()


@pytest.fixture
def make_client():
    """按配置与传输创建TestClient，退出时执行lifespan关闭"""
    clients = []

    def factory(config=None, transport=None):
        app = create_app(
            config=config or make_config(),
            transport=transport or mock_upstream_client(),
            watch_config=False,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)
