from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

from auth.session_store import PERSISTENCE_ERRORS, KeyValueStore
from auth.tokens import AuthResponse
from lexgate.client import GatewayClient
from lexgate.constants import LOGGER, USER_DATA_KEY
from lexgate.errors import NoRefreshTokenError


class AuthApi:
    """Authentication endpoints plus the cached user profile.

    The profile is kept under ``user_data`` next to the tokens. Failing to
    read or write it is logged and otherwise ignored.
    """

    def __init__(
        self,
        client: GatewayClient,
        store: KeyValueStore,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._logger = logger or LOGGER

    async def login(self, credentials: dict[str, Any]) -> AuthResponse:
        payload = await self._client.post("/auth/login", credentials)
        response = AuthResponse.from_payload(payload)
        await self._client.set_tokens(response.access_token, response.refresh_token)
        await self._save_user(response.user)
        return response

    async def register(self, user_data: dict[str, Any]) -> dict:
        return await self._client.post("/auth/register", user_data)

    async def verify_email(self, payload: dict[str, Any]) -> dict:
        return await self._client.post("/auth/verify-email", payload)

    async def resend_verification(self, payload: dict[str, Any]) -> dict:
        return await self._client.post("/auth/resend-verification", payload)

    async def forgot_password(self, payload: dict[str, Any]) -> dict:
        return await self._client.post("/auth/forgot-password", payload)

    async def reset_password(self, payload: dict[str, Any]) -> dict:
        return await self._client.post("/auth/reset-password", payload)

    async def validate_token(self, token: str) -> dict:
        return await self._client.post("/auth/validate-token", {"token": token})

    async def get_profile(self) -> dict:
        profile = await self._client.get("/auth/profile")
        await self._save_user(profile)
        return profile

    async def logout(self, refresh_token: str | None = None) -> dict:
        token = refresh_token or self._client.refresh_token
        try:
            body = {"refresh_token": token} if token else {}
            return await self._client.post("/auth/logout", body)
        finally:
            await self._end_session()

    async def refresh(self) -> str:
        if not self._client.refresh_token:
            raise NoRefreshTokenError()
        return await self._client.refresh_access_token()

    async def revoke_refresh_token(self, token: str) -> dict:
        return await self._client.delete(f"/auth/revoke-token/{quote(token, safe='')}")

    async def revoke_all_tokens(self) -> dict:
        response = await self._client.delete("/auth/revoke-all-tokens")
        await self._end_session()
        return response

    async def get_current_user(self) -> dict | None:
        try:
            raw = await self._store.get_item(USER_DATA_KEY)
            if raw:
                return json.loads(raw)
        except PERSISTENCE_ERRORS as error:
            self._logger.error("Failed to get current user: %s", error)
        return None

    def is_authenticated(self) -> bool:
        return self._client.is_authenticated()

    async def is_email_verified(self) -> bool:
        user = await self.get_current_user()
        if not isinstance(user, dict):
            return False
        return bool(user.get("isEmailVerified", False))

    async def _save_user(self, user: Any) -> None:
        try:
            await self._store.set_items({USER_DATA_KEY: json.dumps(user)})
        except (TypeError, *PERSISTENCE_ERRORS) as error:
            self._logger.error("Failed to save user data: %s", error)

    async def _end_session(self) -> None:
        await self._client.clear_tokens()
        try:
            await self._store.remove_items([USER_DATA_KEY])
        except PERSISTENCE_ERRORS as error:
            self._logger.error("Failed to clear user data: %s", error)
