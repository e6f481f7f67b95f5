"""Secret reference parsing.

Reference form (as written in automation playbooks):
  team/kv/data/gitlab:DeployToken   -> engine team/kv, path gitlab, key DeployToken
  gitlab/deploy:DeployToken         -> path under the default engine
  team/kv/data/gitlab               -> whole bundle
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from vaultops.models.secret import SecretPath
from vaultops.vault.client import VaultClient
from vaultops.vault.errors import PreconditionError

_DATA_MARKER = "/data/"


@dataclass(frozen=True)
class SecretRef:
    engine: str
    path: str
    key: Optional[str] = None

    def __str__(self) -> str:
        base = f"{self.engine}/data/{self.path}"
        return f"{base}:{self.key}" if self.key else base


def parse_secret_ref(ref: str, default_engine: Optional[str] = None) -> SecretRef:
    raw = (ref or "").strip()
    if not raw:
        raise PreconditionError("secret reference must not be empty")

    location, sep, key = raw.partition(":")
    if sep and not key.strip():
        raise PreconditionError(f"secret reference has an empty key: {ref}")

    location = location.strip().strip("/")
    marker = location.find(_DATA_MARKER)
    if marker >= 0:
        engine = location[:marker]
        path = location[marker + len(_DATA_MARKER):]
    elif default_engine:
        engine = default_engine
        path = location
    else:
        raise PreconditionError(f"secret reference has no engine and no default engine is set: {ref}")

    try:
        sp = SecretPath(engine=engine, path=path)
    except ValidationError as exc:
        raise PreconditionError(f"invalid secret reference '{ref}': {exc.errors()[0]['msg']}") from exc
    if not sp.path:
        raise PreconditionError(f"secret reference has no secret path: {ref}")
    return SecretRef(engine=sp.engine, path=sp.path, key=key.strip() or None)


def lookup_secret(client: VaultClient, ref: str, default_engine: Optional[str] = None) -> Any:
    """Return the referenced key's value, or the whole mapping when no key is given."""
    parsed = parse_secret_ref(ref, default_engine=default_engine)
    result = client.read_mapping(parsed.engine, parsed.path, key_name=parsed.key)
    if parsed.key is None:
        return dict(result.data)
    return result.data[parsed.key]
