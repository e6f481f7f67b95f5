"""Error taxonomy for secret store access."""

from __future__ import annotations

from typing import Optional


class VaultError(RuntimeError):
    """Base class for secret store client errors."""


class AuthenticationError(VaultError):
    """Login rejected or auth endpoint unreachable. Terminal for the session."""


class PreconditionError(VaultError):
    """Operation attempted before login, or called with malformed input."""


class NotFoundError(VaultError):
    """Requested bundle, version or key does not exist."""


class RemoteError(VaultError):
    """Non-2xx API response or connection failure (status 0)."""

    def __init__(self, status: int, message: str, errors: Optional[list[str]] = None) -> None:
        self.status = status
        self.message = message
        self.errors = list(errors or [])
        super().__init__(f"vault HTTP {status}: {message}" if status else f"vault connection error: {message}")


class CheckAndSetError(RemoteError):
    """Write rejected because the bundle version did not match the expected one."""
