"""Exceptions raised by the ChainSensor synchronization layer and its adapters."""

from __future__ import annotations

from typing import Any, Optional


class ChainSensorError(Exception):
    """Base exception for the ChainSensor backend."""

    pass


class ConfigError(ChainSensorError):
    """Required configuration is missing or invalid."""

    pass


class NotAuthenticatedError(ChainSensorError):
    """An operation that needs an identity was called without one."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class AuthenticationError(ChainSensorError):
    """The identity provider rejected a sign-in, sign-up or sign-out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(ChainSensorError):
    """A command was rejected before reaching the remote store."""

    pass


class RemoteStoreError(ChainSensorError):
    """A remote store call failed.

    Carries the PostgREST error payload when the store returned one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
        }
