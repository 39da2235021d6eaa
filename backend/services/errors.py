"""Errors raised by the platform API clients and resolvers."""

from typing import Optional


class ApiError(Exception):
    """A platform API call failed.

    Carries the platform name and, when the failure came from an HTTP
    response, its status code.
    """

    def __init__(
        self,
        platform: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.platform = platform
        self.message = message
        self.status_code = status_code
        super().__init__(self._format())

    def _format(self) -> str:
        if self.status_code is not None:
            return f"{self.platform} API error {self.status_code}: {self.message}"
        return f"{self.platform} API error: {self.message}"


class TransientApiError(ApiError):
    """Network failure, 5xx or malformed response. Safe to retry."""


class QuotaExceededError(ApiError):
    """Quota exhausted or credentials rejected. Retrying will not help."""

    def _format(self) -> str:
        return f"{self.platform} API quota exceeded or key rejected: {self.message}"


class NotFoundError(ApiError):
    """The handle or internal id does not exist on the platform."""

    def _format(self) -> str:
        return f"{self.platform} channel not found: {self.message}"


class NotConfiguredError(ApiError):
    """The platform's API key is missing. Retrying will not help."""

    def _format(self) -> str:
        return f"{self.platform} API key not configured"
