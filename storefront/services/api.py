from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class ApiError(Exception):
    """A request to the remote API failed: transport, HTTP status or body."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.status = status


@dataclass
class ApiEnvelope:
    success: bool
    message: str = ""
    data: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, body: Any) -> "ApiEnvelope":
        if not isinstance(body, dict):
            raise ApiError("Invalid response from server")
        extra = {k: v for k, v in body.items() if k not in ("success", "message", "data")}
        return cls(
            success=bool(body.get("success")),
            message=str(body.get("message") or ""),
            data=body.get("data"),
            extra=extra,
        )

    def lookup(self, *keys: str) -> Any:
        """First non-empty value for any key, top level first, then under data."""
        scopes = [self.extra]
        if isinstance(self.data, dict):
            scopes.append(self.data)
        for scope in scopes:
            for k in keys:
                v = scope.get(k)
                if v not in (None, ""):
                    return v
        return None


def server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


def parse_envelope(response: httpx.Response) -> ApiEnvelope:
    if not response.is_success:
        message = server_message(response) or f"HTTP error! status: {response.status_code}"
        raise ApiError(message, status=response.status_code)
    try:
        body = response.json()
    except ValueError as e:
        logger.debug("BODY PREVIEW: %r", response.text[:200])
        raise ApiError("Invalid response from server", cause=e, status=response.status_code)
    return ApiEnvelope.from_json(body)


class ApiClient:
    """JSON requests against the fixed remote base URL."""

    def __init__(self, client: httpx.Client, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        path: str,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ApiEnvelope:
        url = self.url_for(path)
        merged = {**DEFAULT_HEADERS, **(headers or {})}
        try:
            r = self.client.request(method, url, params=params, json=body, headers=merged)
        except httpx.HTTPError as e:
            logger.error("API request error: %s %s: %s", method, url, e)
            raise ApiError("Network error reaching the API", cause=e)

        try:
            return parse_envelope(r)
        except ApiError as e:
            logger.error("API request error: %s %s: %s", method, url, e)
            raise

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ApiEnvelope:
        return self.request(path, params=params)

    def post(self, path: str, data: Any, params: Optional[Mapping[str, Any]] = None) -> ApiEnvelope:
        return self.request(path, method="POST", params=params, body=data)

    def put(self, path: str, data: Any, params: Optional[Mapping[str, Any]] = None) -> ApiEnvelope:
        return self.request(path, method="PUT", params=params, body=data)

    def delete(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ApiEnvelope:
        return self.request(path, method="DELETE", params=params)


def open_client(timeout: float, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    return httpx.Client(timeout=timeout, follow_redirects=True, transport=transport)
