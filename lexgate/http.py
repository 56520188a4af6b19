from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

import httpx

from .constants import LOGGER
from .errors import ApiError


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    path: str
    query: Mapping[str, Any] | None = None
    body: Any = None
    headers: Mapping[str, str] | None = None


@dataclass(frozen=True)
class Ok:
    body: Any

    def unwrap(self) -> Any:
        return self.body


@dataclass(frozen=True)
class Err:
    message: str
    status_code: int

    def unwrap(self) -> Any:
        raise ApiError(self.message, self.status_code)


ApiResult = Union[Ok, Err]


def _query_value_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(query: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    if not query:
        return []
    return [
        (str(key), _query_value_to_str(value))
        for key, value in query.items()
        if value is not None
    ]


def build_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_request(
    base_url: str,
    descriptor: RequestDescriptor,
    access_token: str | None,
) -> httpx.Request:
    """Turn a descriptor into a wire request.

    The body is JSON-encoded when present and the bearer header is only added
    for a non-empty token. No I/O happens here.
    """
    headers = {"Content-Type": "application/json"}
    if descriptor.headers:
        headers.update(descriptor.headers)
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    content = None
    if descriptor.body is not None:
        content = json.dumps(descriptor.body).encode("utf-8")

    params = encode_query(descriptor.query)
    return httpx.Request(
        descriptor.method.upper(),
        build_url(base_url, descriptor.path),
        params=params or None,
        headers=headers,
        content=content,
    )


def error_message(response: httpx.Response) -> str:
    fallback = f"HTTP {response.status_code}"
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if not isinstance(payload, dict):
        return fallback

    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message
    # Validation failures come back as a list of messages.
    if isinstance(message, list):
        parts = [item for item in message if isinstance(item, str) and item]
        if parts:
            return "; ".join(parts)
    return fallback


def parse_response(response: httpx.Response) -> ApiResult:
    if not response.is_success:
        return Err(error_message(response), response.status_code)

    if not response.content:
        return Ok(None)
    try:
        return Ok(response.json())
    except ValueError:
        return Err("Response body is not valid JSON.", response.status_code)


async def log_request(request: httpx.Request) -> None:
    LOGGER.info("API request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.info(
        "API response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )
    if response.status_code >= 400:
        body = await response.aread()
        text = body.decode("utf-8", errors="replace")
        if len(text) > 1000:
            text = text[:1000] + "...<truncated>"
        LOGGER.warning("API error body: %s", text)
