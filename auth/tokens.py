from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from lexgate.constants import REFRESH_PATH
from lexgate.errors import ApiError, TokenRefreshError
from lexgate.http import RequestDescriptor, build_request, error_message


def _expires_in(payload: dict, error_cls: type[ApiError]) -> int | float:
    expires_in = payload.get("expires_in")
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
        raise error_cls("Token response missing expires_in.")
    return expires_in


@dataclass
class RefreshTokenResponse:
    access_token: str
    expires_in: int | float
    expires_at: float

    @classmethod
    def from_payload(cls, payload: Any) -> "RefreshTokenResponse":
        if not isinstance(payload, dict):
            raise TokenRefreshError("Token response must be a JSON object.")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenRefreshError("Token response missing access_token.")
        expires_in = _expires_in(payload, TokenRefreshError)

        return cls(
            access_token=access_token,
            expires_in=expires_in,
            expires_at=time.time() + expires_in,
        )


@dataclass
class AuthResponse:
    access_token: str
    refresh_token: str
    expires_in: int | float
    expires_at: float
    user: dict

    @classmethod
    def from_payload(cls, payload: Any) -> "AuthResponse":
        if not isinstance(payload, dict):
            raise ApiError("Login response must be a JSON object.")
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        user = payload.get("user")

        if not isinstance(access_token, str) or not access_token:
            raise ApiError("Login response missing access_token.")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ApiError("Login response missing refresh_token.")
        if not isinstance(user, dict):
            raise ApiError("Login response missing user.")
        expires_in = _expires_in(payload, ApiError)

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            expires_at=time.time() + expires_in,
            user=user,
        )


async def request_token_refresh(
    client: httpx.AsyncClient,
    base_url: str,
    refresh_token: str,
) -> RefreshTokenResponse:
    """Exchange a refresh token for a new access token.

    Sent without an Authorization header; the refresh token itself is the
    credential. Any non-success status is a refresh failure.
    """
    request = build_request(
        base_url,
        RequestDescriptor("POST", REFRESH_PATH, body={"refresh_token": refresh_token}),
        None,
    )
    response = await client.send(request)

    if not response.is_success:
        raise TokenRefreshError(
            f"Token refresh failed with status {response.status_code}: "
            f"{error_message(response)}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as error:
        raise TokenRefreshError(
            "Token refresh response is not valid JSON.",
            status_code=response.status_code,
        ) from error
    return RefreshTokenResponse.from_payload(payload)


TokenRefreshFn = Callable[[httpx.AsyncClient, str, str], Awaitable[RefreshTokenResponse]]
