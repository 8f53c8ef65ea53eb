"""Async HTTP client for the storefront REST API.

Wraps ``httpx.AsyncClient`` with the collaborator's conventions:

- Bearer token authentication once a user has signed in.
- Responses are enveloped as ``{"success": bool, "data": ..., "message": str}``;
  ``request()`` returns the unwrapped ``data``.
- Transport failures, timeouts and 5xx answers become ``ServiceUnavailable``;
  other error answers become ``ApiError`` carrying the server's message.
"""

from typing import Any

import httpx
import structlog

from shared.exceptions import ApiError, ServiceUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


def extract_error_message(response: httpx.Response) -> str:
    """Extract a human-readable error message from an API error response.

    Handles ``{"message": "..."}`` (storefront API), ``{"error": ...}`` and
    Pydantic-style ``{"detail": [{"loc": [...], "msg": "..."}]}`` bodies.
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text or ""
        return text[:300] or f"HTTP {response.status_code}"

    if not isinstance(body, dict):
        return str(body)[:300]

    if body.get("message"):
        return str(body["message"])

    if "detail" in body and isinstance(body["detail"], list):
        parts = []
        for err in body["detail"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            return " | ".join(f"{k}: {v}" for k, v in error.items())
        return str(error)

    return str(body)[:300]


def build_client(
    base_url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        headers={"Content-Type": "application/json"},
    )


class ApiClient:
    """Thin envelope-aware wrapper around an ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    def token(self) -> str | None:
        header = self._client.headers.get("Authorization")
        return header.removeprefix("Bearer ") if header else None

    def set_token(self, token: str | None) -> None:
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TransportError as e:
            logger.warning("API request failed in transport", method=method, path=path, error=str(e))
            raise ServiceUnavailable() from e

        if response.status_code >= 500:
            logger.warning(
                "API request failed on server",
                method=method,
                path=path,
                status_code=response.status_code,
                detail=extract_error_message(response),
            )
            raise ServiceUnavailable(status_code=response.status_code)

        if response.is_error:
            message = extract_error_message(response)
            logger.info("API request rejected", method=method, path=path, status_code=response.status_code)
            raise ApiError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise ServiceUnavailable("Malformed response from server") from e

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: dict[str, Any] | None = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str, *, json: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, json=json)

    async def aclose(self) -> None:
        await self._client.aclose()
