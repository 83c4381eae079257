from __future__ import annotations

from typing import Any, Dict, NoReturn, Optional

import httpx
import typer

from cli.config import CLIConfig
from services.guard import SECRET_HEADER


class ApiClient:
    """Minimal HTTP client for the readings service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def push_reading(
        self,
        temperature: float,
        humidity: float,
        created_at: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self._config.webhook_secret:
            raise typer.BadParameter("A webhook secret is required to push readings.")

        body: Dict[str, Any] = {"temperature": temperature, "humidity": humidity}
        if created_at:
            body["created_at"] = created_at
        return self._request(
            "POST",
            "/webhook/thingspeak",
            json=body,
            headers={SECRET_HEADER: self._config.webhook_secret},
        )

    def get_recent(self, limit: Optional[int] = None) -> Dict[str, Any]:
        params = {"limit": limit} if limit is not None else None
        return self._request("GET", "/api/readings", params=params)

    def get_latest(self) -> Dict[str, Any]:
        return self._request("GET", "/api/readings/latest")

    def get_stats(self, start: Optional[str] = None, end: Optional[str] = None) -> Dict[str, Any]:
        if start is None and end is None:
            return self._request("GET", "/api/stats/today")
        params = {key: value for key, value in (("start", start), ("end", end)) if value}
        return self._request("GET", "/api/stats", params=params)

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("error") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
