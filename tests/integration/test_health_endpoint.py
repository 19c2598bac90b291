"""
Health check endpoint integration tests.
"""

from tests.fixtures import make_config


class TestHealthEndpoint:
    """Test cases for the health check endpoint."""

    def test_health_check_configured_backend(self, make_client):
        client = make_client()
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "openai-compat-router"
        assert "timestamp" in data
        assert data["checks"] == {"backend_configured": True, "interceptors": ["preflight"]}

    def test_health_check_without_backend(self, make_client):
        config = make_config(url=None, api_key=None)
        config.interceptors.enabled = False
        data = make_client(config).get("/health").json()

        assert data["checks"] == {"backend_configured": False, "interceptors": []}

    def test_root_endpoint(self, make_client):
        response = make_client().get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Welcome to the OpenAI Compat Router"}

    def test_request_id_headers(self, make_client):
        response = make_client().get("/health", headers={"X-Request-ID": "req_given"})
        assert response.headers["X-Request-ID"] == "req_given"
        assert response.headers["X-Process-Time"].endswith("s")

    def test_generated_request_id(self, make_client):
        response = make_client().get("/health")
        assert response.headers["X-Request-ID"].startswith("req_")

    def test_unknown_route_uses_error_envelope(self, make_client):
        response = make_client().get("/v1/unknown")
        assert response.status_code == 404
        body = response.json()
        assert body["type"] == "error"
        assert body["error"]["type"] == "not_found_error"
