"""Environment variable secret adapter for unattended workers."""

from __future__ import annotations

import os
import re
from typing import Mapping, Optional

from vaultops.secrets.base import SecretStore, SecretStoreError

_NON_WORD = re.compile(r"[^A-Za-z0-9]+")


class EnvSecretStore(SecretStore):
    def __init__(self, prefix: str = "VAULTOPS_", environ: Optional[Mapping[str, str]] = None) -> None:
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def variable_for(self, account: str) -> str:
        return self._prefix + _NON_WORD.sub("_", account).strip("_").upper()

    def get_secret(self, account: str) -> str:
        name = self.variable_for(account)
        value = self._environ.get(name, "")
        if not value:
            raise SecretStoreError(f"missing environment secret '{account}' (variable {name})")
        return value
