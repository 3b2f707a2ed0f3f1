"""
Tests for the Dash0 HTTP client.

Uses httpx.MockTransport to simulate the upstream API, covering request
headers, response decoding, and error detail extraction.
"""

import json

import httpx
import pytest

from telemetry_query import Dash0Client, Settings, TelemetryQueryEngine, UpstreamError, extract_error_detail


def make_client(handler, dataset=None):
    """Create a client whose requests go to the given handler."""
    return Dash0Client(
        base_url="https://api.example.test",
        auth_token="test-token",
        dataset=dataset,
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Tests for successful requests."""

    def test_post_sends_json_with_auth(self):
        """Test POST carries the body, bearer token and JSON headers."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["content_type"] = request.headers["Content-Type"]
            seen["accept"] = request.headers["Accept"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        with make_client(handler) as client:
            result = client.post("/api/logs", {"pagination": {"limit": 10}})

        assert result == {"ok": True}
        assert seen == {
            "method": "POST",
            "path": "/api/logs",
            "auth": "Bearer test-token",
            "content_type": "application/json",
            "accept": "application/json",
            "body": {"pagination": {"limit": 10}},
        }

    def test_dataset_query_param(self):
        """Test a configured dataset is sent on every request."""
        seen = {}

        def handler(request):
            seen["dataset"] = request.url.params.get("dataset")
            return httpx.Response(200, json={})

        with make_client(handler, dataset="staging") as client:
            client.get("/api/dashboards")

        assert seen["dataset"] == "staging"

    def test_no_dataset_param_by_default(self):
        """Test no dataset param is sent without configuration."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={})

        with make_client(handler) as client:
            client.delete("/api/views/1")

        assert seen["params"] == {}

    def test_put_and_get(self):
        """Test PUT and GET reach the right paths."""
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "1"})

        with make_client(handler) as client:
            client.put("/api/views/1", {"name": "v"})
            client.get("/api/views/1")

        assert calls == [("PUT", "/api/views/1"), ("GET", "/api/views/1")]

    def test_non_json_response(self):
        """Test a non-JSON body is returned as raw text."""
        with make_client(lambda request: httpx.Response(200, text="plain text")) as client:
            assert client.get("/api/test") == "plain text"

    def test_empty_response(self):
        """Test an empty body decodes to None."""
        with make_client(lambda request: httpx.Response(204)) as client:
            assert client.delete("/api/test") is None

    def test_from_settings(self):
        """Test building a client from settings."""
        settings = Settings(auth_token="abc", region="us-east-1", dataset="prod")

        client = Dash0Client.from_settings(settings)
        try:
            assert client.base_url == "https://api.us-east-1.aws.dash0.com"
            assert client.dataset == "prod"
        finally:
            client.close()


class TestErrorResponses:
    """Tests for upstream error normalization."""

    @pytest.mark.parametrize("status,body,expected", [
        (400, {"error": "invalid request body"}, "invalid request body"),
        (404, {"message": "resource not found"}, "resource not found"),
        (500, {"detail": "internal error occurred"}, "internal error occurred"),
        (401, {"error": {"message": "invalid token"}}, "invalid token"),
        (422, {"errors": [{"detail": "field is required"}]}, "field is required"),
        (422, {"errors": ["first problem", "second problem"]}, "first problem"),
        (503, {"unrelated": "value"}, ""),
    ])
    def test_error_detail(self, status, body, expected):
        """Test error details are extracted and status codes preserved."""
        with make_client(lambda request: httpx.Response(status, json=body)) as client:
            with pytest.raises(UpstreamError) as excinfo:
                client.get("/api/test")

        error = excinfo.value
        assert error.status_code == status
        assert error.detail == expected
        assert error.payload == body

    def test_error_title_is_status_line(self):
        """Test the title carries the status code and reason."""
        handler = lambda request: httpx.Response(404, json={"detail": "no such view"})

        with make_client(handler) as client:
            with pytest.raises(UpstreamError) as excinfo:
                client.post("/api/spans", {})

        assert excinfo.value.title == "404 Not Found"
        assert excinfo.value.to_dict() == {
            "status_code": 404,
            "title": "404 Not Found",
            "detail": "no such view",
        }

    def test_non_json_error_body(self):
        """Test a non-JSON error body still surfaces the status code."""
        with make_client(lambda request: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(UpstreamError) as excinfo:
                client.get("/api/test")

        assert excinfo.value.status_code == 502
        assert excinfo.value.detail == ""
        assert excinfo.value.payload == "Bad Gateway"

    def test_transport_failure(self):
        """Test network errors become a 500 UpstreamError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with pytest.raises(UpstreamError) as excinfo:
                client.get("/api/test")

        assert excinfo.value.status_code == 500
        assert excinfo.value.detail.startswith("request failed:")
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    def test_engine_surfaces_upstream_error(self):
        """Test a failing query reaches the engine's caller unchanged."""
        handler = lambda request: httpx.Response(422, json={"errors": [{"detail": "field is required"}]})

        with make_client(handler) as client:
            with pytest.raises(UpstreamError) as excinfo:
                TelemetryQueryEngine(client).query_spans({"service_name": "cart"})

        assert excinfo.value.status_code == 422
        assert excinfo.value.detail == "field is required"


class TestExtractErrorDetail:
    """Tests for the error detail search order."""

    def test_detail_before_message(self):
        """Test detail wins over message and error."""
        payload = {"error": "e", "message": "m", "detail": "d"}

        assert extract_error_detail(payload) == "d"

    def test_message_before_error(self):
        """Test message wins over error."""
        assert extract_error_detail({"error": "e", "message": "m"}) == "m"

    def test_nested_error_detail_before_message(self):
        """Test a nested error object is checked for detail first."""
        payload = {"error": {"message": "m", "detail": "d"}}

        assert extract_error_detail(payload) == "d"

    def test_non_string_fields_skipped(self):
        """Test wrongly typed fields don't stop the search."""
        payload = {"detail": 42, "message": None, "error": {"code": 7}, "errors": [{"message": "found"}]}

        assert extract_error_detail(payload) == "found"

    @pytest.mark.parametrize("payload", [None, "text", [], {}, {"errors": []}, {"errors": [3]}])
    def test_no_detail(self, payload):
        """Test payloads without a usable detail give an empty string."""
        assert extract_error_detail(payload) == ""
