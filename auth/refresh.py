from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from auth.session_store import Session, SessionStore
from lexgate.constants import LOGGER
from lexgate.errors import NoRefreshTokenError, RefreshTimeoutError, TokenRefreshError

RefreshFn = Callable[[str], Awaitable[str]]


class RefreshPhase(enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class RefreshState:
    phase: RefreshPhase
    waiters: int = 0


IDLE = RefreshState(RefreshPhase.IDLE)


class RefreshCoordinator:
    """Single-flight access token refresh.

    The first caller to need a refresh becomes the leader and runs the one
    exchange against the auth server. Callers arriving while it is in flight
    await the leader's outcome future instead, so every waiter sees the same
    token or the same error. The check and the transition into REFRESHING
    happen without a suspension point in between.
    """

    def __init__(
        self,
        session: Session,
        session_store: SessionStore,
        refresh_fn: RefreshFn,
        *,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._store = session_store
        self._refresh_fn = refresh_fn
        self._timeout = timeout
        self._logger = logger or LOGGER
        self._outcome: asyncio.Future[str] | None = None
        self._waiters = 0

    @property
    def state(self) -> RefreshState:
        if self._outcome is None:
            return IDLE
        return RefreshState(RefreshPhase.REFRESHING, self._waiters)

    async def get_access_token(self, stale_token: str | None = None) -> str:
        """Return a fresh access token, running or joining a refresh.

        ``stale_token`` is the token the caller's rejected request carried.
        When the session already holds a different one, a refresh finished
        after that request was sent and its token is returned as-is.
        """
        outcome = self._outcome
        if outcome is not None:
            self._waiters += 1
            self._logger.debug("Token refresh in flight; waiting (%s waiters).", self._waiters)
            return await asyncio.shield(outcome)

        current = self._session.access_token
        if stale_token is not None and current and current != stale_token:
            self._logger.debug("Access token already refreshed; reusing it.")
            return current

        refresh_token = self._session.refresh_token
        if not refresh_token:
            raise NoRefreshTokenError()

        outcome = asyncio.get_running_loop().create_future()
        self._outcome = outcome
        self._waiters = 0
        self._logger.info("Refreshing access token.")

        try:
            access_token = await self._exchange(refresh_token)
            if self._session.refresh_token != refresh_token:
                access_token = self._superseding_token()
            else:
                self._session.access_token = access_token
                await self._store.save(access_token, refresh_token)
            outcome.set_result(access_token)
            self._logger.info("Access token refreshed (%s waiters).", self._waiters)
            return access_token
        except Exception as error:
            if self._session.refresh_token == refresh_token:
                self._logger.warning("Token refresh failed; clearing session: %s", error)
                self._session.clear()
                await self._store.clear()
            else:
                # Replaced or ended while the exchange ran; not ours to clear.
                self._logger.warning("Token refresh failed; session already replaced: %s", error)
            self._reject(outcome, error)
            raise
        finally:
            if not outcome.done():
                self._reject(outcome, TokenRefreshError("Token refresh was cancelled."))
            self._outcome = None
            self._waiters = 0

    async def _exchange(self, refresh_token: str) -> str:
        if self._timeout is None:
            return await self._refresh_fn(refresh_token)
        try:
            return await asyncio.wait_for(self._refresh_fn(refresh_token), self._timeout)
        except asyncio.TimeoutError as error:
            raise RefreshTimeoutError(self._timeout) from error

    def _superseding_token(self) -> str:
        # The session was replaced (login) or ended (logout) mid-flight.
        if self._session.access_token:
            return self._session.access_token
        raise TokenRefreshError("Session ended during token refresh.")

    @staticmethod
    def _reject(outcome: asyncio.Future[str], error: BaseException) -> None:
        outcome.set_exception(error)
        # Mark retrieved so an outcome nobody waited on is not reported.
        outcome.exception()
