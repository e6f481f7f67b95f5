"""Secret store factory based on configured store kind."""

from __future__ import annotations

from vaultops.secrets.base import SecretStore, SecretStoreError
from vaultops.secrets.env_store import EnvSecretStore
from vaultops.secrets.keyring_store import KeyringSecretStore


def create_secret_store(kind: str = "keyring", service_name: str = "vaultops") -> SecretStore:
    normalized = (kind or "").strip().lower()
    if normalized == "keyring":
        return KeyringSecretStore(service_name=service_name)
    if normalized == "env":
        return EnvSecretStore()
    raise SecretStoreError(f"unsupported secret store: {kind} (supported: keyring, env)")
