from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the relay service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/data", json=reading)

    def get_readings(self, since: Optional[str] = None) -> Dict[str, Any]:
        if since is None:
            return self._request("GET", "/api/getData")
        return self._request("POST", "/api/getData", json={"lastUpdate": since})

    def get_fields(self, fields: Iterable[str]) -> Dict[str, Any]:
        return self._request("POST", "/api/getSpecificData", json={"fields": list(fields)})

    def get_thresholds(self) -> Dict[str, Any]:
        return self._request("GET", "/api/thresholds")

    def set_thresholds(self, thresholds: Dict[str, float]) -> Dict[str, Any]:
        return self._request("POST", "/api/thresholds", json=thresholds)

    def set_command(self, commands: Dict[str, bool]) -> Dict[str, Any]:
        return self._request("POST", "/api/deviceCommand", json=commands)

    def wait_command(self, timeout_ms: int, immediate: bool = False) -> Dict[str, Any]:
        params: Dict[str, Any] = {"timeout": timeout_ms}
        if immediate:
            params["immediate"] = "true"
        # The server holds the request open for up to ``timeout_ms``.
        read_timeout = timeout_ms / 1000 + self._config.request_timeout
        return self._request(
            "GET",
            "/api/getDeviceCommand",
            params=params,
            timeout=httpx.Timeout(self._config.request_timeout, read=read_timeout),
        )

    def poll_command(self) -> Dict[str, Any]:
        return self._request("GET", "/api/pollDeviceCommand")

    def clear_pending(self) -> Dict[str, Any]:
        return self._request("POST", "/api/clearPendingCommands")

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        if response.status_code == httpx.codes.NO_CONTENT:
            return {}
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail", data)
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        if isinstance(detail, dict):
            parts = [str(detail.get("message") or "")]
            parts.extend(str(error) for error in detail.get("errors") or [])
            if detail.get("validFields"):
                parts.append(f"valid fields: {', '.join(detail['validFields'])}")
            detail = "; ".join(part for part in parts if part)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
