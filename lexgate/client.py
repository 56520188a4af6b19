from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from auth.refresh import RefreshCoordinator
from auth.session_store import Session, SessionStore
from auth.tokens import TokenRefreshFn, request_token_refresh

from .constants import DEFAULT_TIMEOUT_SECONDS, LOGGER
from .errors import ApiError
from .http import RequestDescriptor, build_request, log_request, log_response, parse_response


@dataclass(frozen=True)
class RetryPolicy:
    """When a rejected request may be retried after a token refresh.

    By default: at most one retry per original call, only on 401, only when
    a refresh token is available. The retried response is final.
    """

    max_refresh_retries: int = 1
    refresh_statuses: frozenset[int] = field(default_factory=lambda: frozenset({401}))

    def should_refresh(self, status_code: int, attempt: int, has_refresh_token: bool) -> bool:
        return (
            status_code in self.refresh_statuses
            and has_refresh_token
            and attempt < self.max_refresh_retries
        )


class GatewayClient:
    def __init__(
        self,
        base_url: str,
        *,
        session_store: SessionStore,
        session: Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        refresh_timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        refresh_token_fn: TokenRefreshFn = request_token_refresh,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else Session()
        self.session_store = session_store
        self.retry_policy = retry_policy or RetryPolicy()
        self._logger = logger or LOGGER
        self._refresh_token_fn = refresh_token_fn
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [log_request], "response": [log_response]},
        )
        self.refresh_coordinator = RefreshCoordinator(
            self.session,
            session_store,
            self._exchange_refresh_token,
            timeout=refresh_timeout,
            logger=self._logger,
        )

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- session -----------------------------------------------------------------

    async def load_session(self) -> Session:
        loaded = await self.session_store.load()
        self.session.access_token = loaded.access_token
        self.session.refresh_token = loaded.refresh_token
        return self.session

    async def set_tokens(self, access_token: str, refresh_token: str) -> None:
        self.session.set(access_token, refresh_token)
        await self.session_store.save(access_token, refresh_token)

    async def clear_tokens(self) -> None:
        self.session.clear()
        await self.session_store.clear()

    @property
    def refresh_token(self) -> str | None:
        return self.session.refresh_token

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    async def refresh_access_token(self) -> str:
        return await self.refresh_coordinator.get_access_token()

    # -- requests ----------------------------------------------------------------

    async def request(self, descriptor: RequestDescriptor) -> Any:
        try:
            access_token = self.session.access_token
            response = await self._send(descriptor, access_token)

            attempt = 0
            while self.retry_policy.should_refresh(
                response.status_code, attempt, bool(self.session.refresh_token)
            ):
                attempt += 1
                self._logger.info(
                    "Got %s for %s %s; refreshing access token.",
                    response.status_code,
                    descriptor.method,
                    descriptor.path,
                )
                access_token = await self.refresh_coordinator.get_access_token(
                    stale_token=access_token
                )
                response = await self._send(descriptor, access_token)

            return parse_response(response).unwrap()
        except (ApiError, httpx.HTTPError) as error:
            self._logger.error(
                "API request failed: %s %s: %s", descriptor.method, descriptor.path, error
            )
            raise

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request(RequestDescriptor("GET", path, query=params))

    async def post(self, path: str, data: Any = None) -> Any:
        return await self.request(RequestDescriptor("POST", path, body=data))

    async def patch(self, path: str, data: Any = None) -> Any:
        return await self.request(RequestDescriptor("PATCH", path, body=data))

    async def delete(self, path: str) -> Any:
        return await self.request(RequestDescriptor("DELETE", path))

    async def _send(self, descriptor: RequestDescriptor, access_token: str | None) -> httpx.Response:
        request = build_request(self.base_url, descriptor, access_token)
        return await self._client.send(request)

    async def _exchange_refresh_token(self, refresh_token: str) -> str:
        refreshed = await self._refresh_token_fn(self._client, self.base_url, refresh_token)
        return refreshed.access_token
