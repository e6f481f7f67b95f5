"""Login request building per auth method."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import quote

from vaultops.models.secret import AppRoleCredential, Credential
from vaultops.vault.errors import PreconditionError

LoginCredential = Union[AppRoleCredential, Credential]


class AuthMethod(str, Enum):
    APPROLE = "approle"
    USERPASS = "userpass"
    LDAP = "ldap"


@dataclass(frozen=True)
class LoginRequest:
    path: str
    body: dict[str, Any]


def resolve_auth_method(raw: Union[str, AuthMethod]) -> AuthMethod:
    if isinstance(raw, AuthMethod):
        return raw
    try:
        return AuthMethod(str(raw).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in AuthMethod)
        raise PreconditionError(f"unsupported auth method: {raw} (supported: {allowed})") from exc


def build_login_request(
    method: Union[str, AuthMethod],
    credential: LoginCredential,
    mount: Optional[str] = None,
) -> LoginRequest:
    method = resolve_auth_method(method)
    mount_path = (mount or method.value).strip("/")
    if not mount_path:
        raise PreconditionError("auth mount must not be empty")

    if method is AuthMethod.APPROLE:
        if not isinstance(credential, AppRoleCredential):
            raise PreconditionError("approle login requires a role_id/secret_id credential")
        return LoginRequest(
            path=f"auth/{mount_path}/login",
            body={
                "role_id": credential.role_id,
                "secret_id": credential.secret_id.get_secret_value(),
            },
        )

    if not isinstance(credential, Credential):
        raise PreconditionError(f"{method.value} login requires a username/password credential")
    # Username travels in the path for userpass and ldap.
    return LoginRequest(
        path=f"auth/{mount_path}/login/{quote(credential.username, safe='')}",
        body={"password": credential.get_secret_value()},
    )
