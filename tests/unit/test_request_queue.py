"""按后端串行化请求的测试"""

import asyncio

import pytest

from compat_router.api.handlers import MessagesHandler
from compat_router.common.backend import BackendConfig
from compat_router.core.clients import RequestQueue, UpstreamError, queue_key
from compat_router.models.anthropic import AnthropicRequest
from tests.fixtures import CHAT_URL, FakeTransport, make_config, sample_request

CHAT_REPLY = {
    "id": "chatcmpl-1",
    "model": "gpt-4o",
    "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
}


class SlowTransport(FakeTransport):
    """记录同时在途的上游请求数"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.in_flight = 0
        self.max_in_flight = 0

    async def post_json(self, url, api_key, body, headers=None, request_id=None, timeout=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().post_json(url, api_key, body, headers, request_id, timeout)
        finally:
            self.in_flight -= 1


def test_queue_key_uses_key_prefix():
    assert queue_key("https://api.example.com", "sk-1234567890abcdefXYZ") == (
        "https://api.example.com:sk-1234567890abc"
    )
    assert queue_key(CHAT_URL, "short") == f"{CHAT_URL}:short"


class TestRequestQueue:
    @pytest.mark.asyncio
    async def test_same_key_runs_sequentially(self):
        queue = RequestQueue()
        order = []

        async def worker(name):
            async with queue.slot("backend"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-start", "a-end", "b-start", "b-end"]
        assert queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        queue = RequestQueue()
        running = []
        peak = []

        async def worker(key):
            async with queue.slot(key):
                running.append(key)
                peak.append(len(running))
                await asyncio.sleep(0.01)
                running.remove(key)

        await asyncio.gather(worker("one"), worker("two"))
        assert max(peak) == 2

    @pytest.mark.asyncio
    async def test_failure_releases_slot(self):
        queue = RequestQueue()
        with pytest.raises(RuntimeError):
            async with queue.slot("backend"):
                raise RuntimeError("boom")
        assert queue.pending_count == 0

        async with queue.slot("backend"):
            assert queue.pending_count == 1
        assert queue.pending_count == 0


class TestHandlerSerialization:
    @pytest.mark.asyncio
    async def test_same_backend_reaches_upstream_sequentially(self):
        transport = SlowTransport(json_response=CHAT_REPLY)
        queue = RequestQueue()
        handler = MessagesHandler(make_config(), transport, queue=queue)
        backend = BackendConfig(url=CHAT_URL, key="mock-key")
        request = AnthropicRequest.model_validate(sample_request())

        responses = await asyncio.gather(
            handler.process_message(request, backend),
            handler.process_message(request, backend),
        )

        assert [response.status_code for response in responses] == [200, 200]
        assert len(transport.calls) == 2
        assert transport.max_in_flight == 1
        assert queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_different_backends_are_not_serialized(self):
        transport = SlowTransport(json_response=CHAT_REPLY)
        handler = MessagesHandler(make_config(), transport, queue=RequestQueue())
        request = AnthropicRequest.model_validate(sample_request())

        await asyncio.gather(
            handler.process_message(request, BackendConfig(url=CHAT_URL, key="key-one")),
            handler.process_message(request, BackendConfig(url=CHAT_URL, key="key-two")),
        )

        assert transport.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_upstream_error_releases_backend(self):
        transport = SlowTransport(json_response=CHAT_REPLY, errors=[UpstreamError(500, "boom")])
        queue = RequestQueue()
        handler = MessagesHandler(make_config(), transport, queue=queue)
        backend = BackendConfig(url=CHAT_URL, key="mock-key")
        request = AnthropicRequest.model_validate(sample_request())

        first = await handler.process_message(request, backend)
        second = await handler.process_message(request, backend)

        assert first.status_code == 500
        assert second.status_code == 200
        assert queue.pending_count == 0
