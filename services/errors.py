from __future__ import annotations

from enum import Enum
from typing import Optional


class MailboxError(Exception):
    """Base class for every error raised by the mailbox services."""


class ValidationError(MailboxError):
    """Input rejected before any network call was made."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class AuthErrorKind(Enum):
    INVALID_GRANT = "invalid_grant"
    INVALID_CLIENT = "invalid_client"
    PROVIDER_REJECTED = "provider_rejected"
    NETWORK_TIMEOUT = "network_timeout"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


class AuthError(MailboxError):
    """Credential problem. Fatal for the current monitor run."""

    def __init__(self, kind: AuthErrorKind, description: Optional[str] = None):
        super().__init__(description or kind.value)
        self.kind = kind
        # Provider text is kept for logs only.
        self.description = description


class FetchErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NETWORK = "network"
    PROVIDER_ERROR = "provider_error"


class FetchError(MailboxError):
    """A mailbox folder could not be read."""

    def __init__(self, kind: FetchErrorKind, status: Optional[int] = None, message: str = ""):
        super().__init__(message or f"{kind.value} (status={status})")
        self.kind = kind
        self.status = status

    @property
    def is_fatal(self) -> bool:
        return self.kind in (FetchErrorKind.UNAUTHORIZED, FetchErrorKind.FORBIDDEN)

    def to_auth_error(self) -> AuthError:
        if self.kind is FetchErrorKind.UNAUTHORIZED:
            return AuthError(AuthErrorKind.UNAUTHORIZED, str(self))
        if self.kind is FetchErrorKind.FORBIDDEN:
            return AuthError(AuthErrorKind.FORBIDDEN, str(self))
        raise ValueError(f"{self.kind.value} is not an authorization failure")

    @classmethod
    def from_status(cls, status: int, message: str = "") -> "FetchError":
        if status == 401:
            kind = FetchErrorKind.UNAUTHORIZED
        elif status == 403:
            kind = FetchErrorKind.FORBIDDEN
        else:
            kind = FetchErrorKind.PROVIDER_ERROR
        return cls(kind, status=status, message=message)
