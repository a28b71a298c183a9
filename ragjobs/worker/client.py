"""HTTP request primitive used by execution workers."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import httpx


class NetworkError(RuntimeError):
    """Raised on a non-success response or a transport failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiClient:
    """Thin JSON client for the document-retrieval and completion endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("base_url must include scheme and host")

        self._base_url = base_url.rstrip("/")
        # timeout=None disables every httpx deadline.
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._owns_client = http_client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def request(self, method: str, path: str, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        send_body = json_body is not None and method.upper() in {"POST", "PUT", "PATCH"}
        try:
            response = self._client.request(
                method.upper(),
                url,
                json=json_body if send_body else None,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        if not response.is_success:
            raise NetworkError(f"Error {response.status_code}: {response.text}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON response from {url}", status_code=response.status_code) from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()
