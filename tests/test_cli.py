from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config


READING = {
    "id": 7,
    "temperature": 23.5,
    "humidity": 61.0,
    "created_at": "2024-06-01T10:00:00Z",
    "source": "thingspeak",
}


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.pushed: List[tuple[float, float, Optional[str]]] = []
        self.recent_limits: List[Optional[int]] = []
        self.stats_calls: List[tuple[Optional[str], Optional[str]]] = []
        self.latest_payload: Dict[str, Any] = {"success": True, "data": READING}
        self.closed = False

    def push_reading(self, temperature: float, humidity: float, created_at: Optional[str] = None):
        self.pushed.append((temperature, humidity, created_at))
        return {"success": True, "data": READING}

    def get_recent(self, limit: Optional[int] = None) -> Dict[str, Any]:
        self.recent_limits.append(limit)
        return {"success": True, "count": 1, "data": [READING]}

    def get_latest(self) -> Dict[str, Any]:
        return self.latest_payload

    def get_stats(self, start: Optional[str] = None, end: Optional[str] = None) -> Dict[str, Any]:
        self.stats_calls.append((start, end))
        return {
            "success": True,
            "data": {
                "count": 3,
                "temperature": {"min": 20.0, "max": 30.0, "avg": 25.0},
                "humidity": {"min": 40.0, "max": 60.0, "avg": 50.0},
                "window_start": "2024-06-01T00:00:00Z",
                "window_end": "2024-06-01T15:00:00Z",
            },
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    instance = StubClient(config=None)

    def factory(config):
        instance.config = config
        return instance

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return instance


def test_push_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(
        app,
        ["--secret", "abc", "push", "23.5", "61", "--created-at", "2024-06-01T10:00:00Z"],
    )

    assert result.exit_code == 0
    assert "Reading stored." in result.stdout
    assert "temperature: 23.5" in result.stdout
    assert stub.pushed == [(23.5, 61.0, "2024-06-01T10:00:00Z")]
    assert stub.config.webhook_secret == "abc"
    assert stub.closed is True


def test_recent_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["recent", "--limit", "5"])

    assert result.exit_code == 0
    assert "Recent Readings (1)" in result.stdout
    assert "#7" in result.stdout
    assert stub.recent_limits == [5]


def test_latest_command_without_data(runner: CliRunner, stub: StubClient) -> None:
    stub.latest_payload = {"success": True, "data": None}

    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 0
    assert "No data available." in result.stdout


def test_stats_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0
    assert "count: 3" in result.stdout
    assert "temperature: min=20.0 max=30.0 avg=25.0" in result.stdout
    assert stub.stats_calls == [(None, None)]


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://sensors.local:8080/")
    monkeypatch.setenv("WEBHOOK_SECRET", " shh ")
    monkeypatch.setenv("CLI_HTTP_TIMEOUT", "not-a-number")

    config = load_config()

    assert config == CLIConfig(base_url="http://sensors.local:8080", webhook_secret="shh", timeout=30.0)


def _client_with(handler) -> ApiClient:
    client = ApiClient(CLIConfig(base_url="http://testserver", webhook_secret="abc"))
    client.close()
    client._client = httpx.Client(  # type: ignore[attr-defined]
        base_url="http://testserver", transport=httpx.MockTransport(handler)
    )
    return client


def test_api_client_sends_secret_header() -> None:
    seen: Dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["secret"] = request.headers.get("X-Webhook-Secret")
        return httpx.Response(201, json={"success": True, "data": READING})

    client = _client_with(handler)
    try:
        payload = client.push_reading(23.5, 61.0)
    finally:
        client.close()

    assert payload["data"]["id"] == 7
    assert seen == {"path": "/webhook/thingspeak", "secret": "abc"}


def test_api_client_reports_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "humidity must be between 0 and 100"})

    client = _client_with(handler)
    try:
        with pytest.raises(typer.Exit) as excinfo:
            client.push_reading(20.0, 120.0)
    finally:
        client.close()

    assert excinfo.value.exit_code == 1
