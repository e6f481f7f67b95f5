"""OS credential store adapter (Keychain, Credential Manager, Secret Service)."""

from __future__ import annotations

import importlib

from vaultops.secrets.base import SecretStore, SecretStoreError


class KeyringSecretStore(SecretStore):
    def __init__(self, service_name: str) -> None:
        self._service_name = service_name
        try:
            self._keyring = importlib.import_module("keyring")
        except ImportError as exc:  # pragma: no cover - import guarded at runtime
            raise SecretStoreError("keyring package is required for OS credential store access") from exc

    @property
    def service_name(self) -> str:
        return self._service_name

    def get_secret(self, account: str) -> str:
        try:
            value = self._keyring.get_password(self._service_name, account)
        except Exception as exc:
            raise SecretStoreError(
                f"failed to read secret '{account}' from OS credential store (service={self._service_name})"
            ) from exc
        if not value:
            raise SecretStoreError(f"missing secret '{account}' in OS credential store (service={self._service_name})")
        return value

    def set_secret(self, account: str, value: str) -> None:
        if not value:
            raise SecretStoreError(f"refusing to store empty secret '{account}'")
        try:
            self._keyring.set_password(self._service_name, account, value)
        except Exception as exc:
            raise SecretStoreError(
                f"failed to store secret '{account}' in OS credential store (service={self._service_name})"
            ) from exc
