"""Local secret store abstractions.

Holds the login secret (AppRole secret-id or password) on the automation
host. Vault tokens are never written to these stores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretStoreError(RuntimeError):
    """Raised when a local secret cannot be loaded."""


class SecretStore(ABC):
    """Local credential store interface."""

    @abstractmethod
    def get_secret(self, account: str) -> str:
        """Return the stored value for an account or raise SecretStoreError."""


def require_secret(store: SecretStore, account: str) -> str:
    value = store.get_secret(account)
    if not value or not value.strip():
        raise SecretStoreError(f"secret is empty: {account}")
    return value
