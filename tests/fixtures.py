"""测试共用的模拟上游与样例数据

mock_upstream 是一个模拟OpenAI兼容后端的FastAPI应用，同时提供
/v1/chat/completions 与 /v1/responses，通过 httpx.ASGITransport 挂到
HttpxUpstreamClient 上，不需要真实网络。
"""

import json
import time
from typing import Any

import httpx
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse

from compat_router.config.settings import BackendSettings, Config, LoggingConfig
from compat_router.core.clients import HttpxUpstreamClient

CHAT_URL = "http://upstream.test/v1/chat/completions"
RESPONSES_URL = "http://upstream.test/v1/responses"
MOCK_KEY = "mock-key"

# 模拟后端行为：error_trigger 取 rate_limit / server_error / requires_stream
mock_state: dict[str, Any] = {"error_trigger": "", "requests": []}


def reset_mock_upstream() -> None:
    mock_state["error_trigger"] = ""
    mock_state["requests"] = []


def sse(data: dict[str, Any] | str, event: str | None = None) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {payload}\n\n"


def _last_user_text(messages: list[dict[str, Any]]) -> str:
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str):
            return content
        return "".join(
            part.get("text", "")
            for part in content or []
            if part.get("type") in ("text", "input_text")
        )
    return ""


def _error_for(body: dict[str, Any]) -> JSONResponse | None:
    trigger = mock_state["error_trigger"]
    if trigger == "rate_limit":
        return JSONResponse(status_code=429, content={"error": {"message": "Rate limit exceeded"}})
    if trigger == "server_error":
        return JSONResponse(status_code=500, content={"error": {"message": "boom"}})
    if trigger == "requires_stream" and not body.get("stream"):
        return JSONResponse(
            status_code=400,
            content={"error": {"message": "Stream must be set to true"}},
        )
    return None


mock_upstream = FastAPI()


@mock_upstream.post("/v1/chat/completions")
async def mock_chat_completions(request: Request, authorization: str = Header("")):
    body = await request.json()
    mock_state["requests"].append({"path": "chat", "body": body, "authorization": authorization})

    error = _error_for(body)
    if error is not None:
        return error

    text = f"Mock response for: {_last_user_text(body['messages'])}"
    if body.get("stream"):
        return StreamingResponse(chat_stream_lines(body["model"], text), media_type="text/event-stream")

    return {
        "id": "chatcmpl-mock",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": body["model"],
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 10, "total_tokens": 15},
    }


async def chat_stream_lines(model: str, text: str):
    words = text.split(" ")
    yield sse({"model": model, "choices": [{"index": 0, "delta": {"role": "assistant", "content": ""}}]})
    for i, word in enumerate(words):
        piece = word if i == 0 else f" {word}"
        yield sse({"model": model, "choices": [{"index": 0, "delta": {"content": piece}}]})
    yield sse({"model": model, "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]})
    yield sse({"model": model, "choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 10}})
    yield sse("[DONE]")


@mock_upstream.post("/v1/responses")
async def mock_responses(request: Request, authorization: str = Header("")):
    body = await request.json()
    mock_state["requests"].append({"path": "responses", "body": body, "authorization": authorization})

    error = _error_for(body)
    if error is not None:
        return error

    text = f"Mock response for: {_last_user_text(body['input'])}"
    if body.get("stream"):
        return StreamingResponse(responses_stream_lines(body["model"], text), media_type="text/event-stream")

    return {
        "id": "resp_mock",
        "object": "response",
        "model": body["model"],
        "status": "completed",
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
        "usage": {"input_tokens": 5, "output_tokens": 10},
    }


async def responses_stream_lines(model: str, text: str):
    yield sse({"type": "response.created", "response": {"model": model, "status": "in_progress"}}, "response.created")
    yield sse({"type": "response.output_text.delta", "output_index": 0, "delta": text}, "response.output_text.delta")
    yield sse({"type": "response.output_text.done", "output_index": 0, "text": text}, "response.output_text.done")
    yield sse(
        {
            "type": "response.completed",
            "response": {
                "model": model,
                "status": "completed",
                "usage": {"input_tokens": 5, "output_tokens": 10},
            },
        },
        "response.completed",
    )


def mock_upstream_client() -> HttpxUpstreamClient:
    """挂载模拟后端的上游客户端"""
    return HttpxUpstreamClient(timeout=5.0, transport=httpx.ASGITransport(app=mock_upstream))


def make_config(url: str | None = CHAT_URL, api_key: str | None = MOCK_KEY, **backend: Any) -> Config:
    return Config(
        logging=LoggingConfig(level="DEBUG", file_path=None),
        backend=BackendSettings(url=url, api_key=api_key, **backend),
    )


class FakeTransport:
    """记录调用并返回预设结果的上游传输"""

    def __init__(self, json_response: dict[str, Any] | None = None, stream_chunks: list[str] | None = None, errors: list[Exception] | None = None):
        self.json_response = json_response or {}
        self.stream_chunks = stream_chunks or []
        self.errors = list(errors or [])
        self.calls: list[dict[str, Any]] = []

    def _record(self, kind: str, url: str, api_key: str, body: dict[str, Any], headers: dict[str, str] | None) -> None:
        self.calls.append({"kind": kind, "url": url, "api_key": api_key, "body": body, "headers": headers})
        if self.errors:
            raise self.errors.pop(0)

    async def post_json(self, url, api_key, body, headers=None, request_id=None, timeout=None):
        self._record("json", url, api_key, body, headers)
        return self.json_response

    async def post_stream(self, url, api_key, body, headers=None, request_id=None, timeout=None):
        self._record("stream", url, api_key, body, headers)
        return iter_chunks(self.stream_chunks)

    async def aclose(self) -> None:
        pass


async def iter_chunks(chunks: list[str]):
    for chunk in chunks:
        yield chunk


async def collect(frames) -> list[str]:
    return [frame async for frame in frames]


def parse_frames(text: str | list[str]) -> list[tuple[str, dict[str, Any]]]:
    """将Anthropic SSE文本解析为 (event, data) 列表"""
    if isinstance(text, list):
        text = "".join(text)
    events = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        event_type, data = None, None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event_type = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        events.append((event_type, data))
    return events


def event_types(text: str | list[str]) -> list[str]:
    return [event for event, _ in parse_frames(text)]


BASH_PREFIX_SYSTEM = (
    "Your task is to process Bash commands that an AI coding agent wants to run.\n"
    "Return the command prefix."
)


def sample_request(**overrides: Any) -> dict[str, Any]:
    request = {
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 1024,
        "messages": [{"role": "user", "content": "Hello"}],
    }
    request.update(overrides)
    return request
