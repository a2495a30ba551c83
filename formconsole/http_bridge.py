from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger("form_console.http")

JSON_MIME = "application/json"
SCHEMA_MIME = "application/schema+json"


class HttpBridgeError(RuntimeError):
    """Base error for requests issued through the HTTP bridge."""

    def __init__(self, *, method: str, url: str, message: str) -> None:
        self.method = method.upper()
        self.url = url
        super().__init__(message)


class HttpStatusError(HttpBridgeError):
    """Raised when the resource answers with a status outside 200-299."""

    def __init__(self, *, method: str, url: str, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            method=method,
            url=url,
            message=f"Request failed [{status_code}] {method.upper()} {url}: {body.strip() or 'empty response body'}",
        )


class HttpDecodeError(HttpStatusError):
    """Raised when a successful response does not carry a JSON body."""


class HttpNetworkError(HttpBridgeError):
    """Raised when no usable response was received."""

    def __init__(self, *, method: str, url: str, reason: str) -> None:
        self.reason = reason
        super().__init__(method=method, url=url, message=f"Request failed {method.upper()} {url}: {reason}")


class HttpBridge:
    """
    Issues one request against a REST resource and interprets the outcome.

    Paths are resolved against `base_url`. An empty path, or one that is only
    a query string, targets `resource_path` itself.
    """

    def __init__(
        self,
        *,
        base_url: str,
        resource_path: str = "/",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_base_url = base_url.strip()
        if not resolved_base_url:
            raise ValueError("HTTP bridge base URL cannot be empty")
        if not resolved_base_url.endswith("/"):
            resolved_base_url = f"{resolved_base_url}/"

        self.resource_path = resource_path.strip() or "/"
        self._client = httpx.AsyncClient(base_url=resolved_base_url, timeout=timeout, transport=transport)

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpBridge":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.close()

    def target(self, path: str) -> str:
        value = path.strip()
        if not value:
            return self.resource_path
        if value.startswith("?"):
            return f"{self.resource_path}{value}"
        return value

    async def request(self, method: str, accept: str, path: str, payload: Any = None) -> Any:
        verb = method.upper()
        target = self.target(path)
        headers = {"Accept": accept}
        content: bytes | None = None
        if payload is not None:
            headers["Content-Type"] = JSON_MIME
            text = payload if isinstance(payload, str) else json.dumps(payload)
            content = text.encode("utf-8")

        logger.debug("http_request method=%s target=%s accept=%s", verb, target, accept)
        try:
            response = await self._client.request(verb, target, headers=headers, content=content)
        except httpx.RequestError as exc:
            # Includes bodies whose Content-Encoding cannot be decoded, not only transport failures.
            url = _failed_request_url(exc, self._client.base_url, target)
            logger.warning("http_network_error method=%s url=%s error=%s", verb, url, exc)
            raise HttpNetworkError(method=verb, url=url, reason=str(exc) or type(exc).__name__) from exc

        url = str(response.request.url)
        if response.status_code == 204:
            return None

        if not response.is_success:
            logger.warning("http_status_error method=%s url=%s status=%s", verb, url, response.status_code)
            raise HttpStatusError(method=verb, url=url, status_code=response.status_code, body=response.text)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise HttpDecodeError(method=verb, url=url, status_code=response.status_code, body=response.text) from exc


def _failed_request_url(exc: httpx.RequestError, base_url: httpx.URL, target: str) -> str:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return f"{str(base_url).rstrip('/')}/{target.lstrip('/')}"
