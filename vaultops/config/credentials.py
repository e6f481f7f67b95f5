"""Login credential loading.

Accounts in the local secret store:
- vault_secret_id (approle)
- vault_password (userpass / ldap)
"""

from __future__ import annotations

from typing import Optional

from vaultops.config.settings import AuthSettings
from vaultops.models.secret import AppRoleCredential, Credential
from vaultops.secrets.base import SecretStore, SecretStoreError, require_secret
from vaultops.secrets.factory import create_secret_store
from vaultops.vault.auth import AuthMethod, LoginCredential


def load_login_credential(auth: AuthSettings, store: Optional[SecretStore] = None) -> LoginCredential:
    if store is None:
        store = create_secret_store(kind=auth.secret_store, service_name=auth.service_name)
    secret = require_secret(store, auth.secret_account)

    if auth.method is AuthMethod.APPROLE:
        if not auth.role_id:
            raise SecretStoreError("approle login requires auth.role_id")
        return AppRoleCredential(role_id=auth.role_id, secret_id=secret)

    if not auth.username:
        raise SecretStoreError(f"{auth.method.value} login requires auth.username")
    return Credential(username=auth.username, password=secret)


__all__ = ["load_login_credential", "SecretStoreError"]
