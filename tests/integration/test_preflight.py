"""Preflight short-circuit tests for the /v1/messages endpoint."""

from tests.fixtures import (
    BASH_PREFIX_SYSTEM,
    FakeTransport,
    make_config,
    parse_frames,
    sample_request,
)

BASH_TOOL = {"name": "Bash", "input_schema": {"type": "object", "properties": {}}}

CHAT_REPLY = {
    "id": "chatcmpl-1",
    "model": "gpt-4o",
    "choices": [{"message": {"role": "assistant", "content": "git"}, "finish_reason": "stop"}],
}


class TestPreflightInterception:
    def test_bash_prefix_call_is_answered_locally(self, make_client):
        transport = FakeTransport(json_response=CHAT_REPLY)
        response = make_client(transport=transport).post(
            "/v1/messages",
            json=sample_request(model="claude-haiku-4", system=BASH_PREFIX_SYSTEM),
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = parse_frames(response.text)
        assert [event for event, _ in frames] == [
            "message_start",
            "content_block_start",
            "content_block_delta",
            "content_block_stop",
            "message_delta",
            "message_stop",
        ]
        assert frames[0][1]["message"]["model"] == "claude-haiku-4"
        assert frames[0][1]["message"]["id"].startswith("msg_preflight")
        assert frames[2][1]["delta"]["text"] == "none"
        assert transport.calls == []

    def test_request_with_tools_is_forwarded(self, make_client):
        transport = FakeTransport(json_response=CHAT_REPLY)
        response = make_client(transport=transport).post(
            "/v1/messages",
            json=sample_request(system=BASH_PREFIX_SYSTEM, tools=[BASH_TOOL]),
        )

        assert response.status_code == 200
        assert response.json()["content"][0]["text"] == "git"
        assert len(transport.calls) == 1
        assert transport.calls[0]["body"]["tools"][0]["function"]["name"] == "Bash"

    def test_disabled_interceptors_forward_everything(self, make_client):
        config = make_config()
        config.interceptors.enabled = False
        transport = FakeTransport(json_response=CHAT_REPLY)
        response = make_client(config, transport).post(
            "/v1/messages", json=sample_request(system=BASH_PREFIX_SYSTEM)
        )

        assert response.headers["content-type"].startswith("application/json")
        assert len(transport.calls) == 1

    def test_ordinary_request_is_forwarded(self, make_client):
        transport = FakeTransport(json_response=CHAT_REPLY)
        make_client(transport=transport).post("/v1/messages", json=sample_request(system="You are helpful."))
        assert transport.calls[0]["kind"] == "json"
        assert transport.calls[0]["url"] == "http://upstream.test/v1/chat/completions"
        assert transport.calls[0]["api_key"] == "mock-key"
