from __future__ import annotations


class ApiError(RuntimeError):
    """Error raised to callers for any non-success API outcome."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TokenRefreshError(ApiError):
    def __init__(
        self, message: str = "Token refresh failed.", status_code: int | None = None
    ) -> None:
        super().__init__(message, status_code)


class NoRefreshTokenError(TokenRefreshError):
    def __init__(self, message: str = "No refresh token available.") -> None:
        super().__init__(message)


class RefreshTimeoutError(TokenRefreshError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Token refresh timed out after {timeout}s.")
        self.timeout = timeout
