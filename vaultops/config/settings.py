"""Settings loader for vaultops."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
import re
from typing import Any, Optional

import yaml

from vaultops.models.secret import normalize_path
from vaultops.vault.auth import AuthMethod

DEFAULT_CONFIG_PATH = Path("config/vaultops.yaml")
_ACCOUNT_PATTERN = re.compile(r"[A-Za-z0-9_.-]{1,64}")


@dataclass(frozen=True)
class ServerSettings:
    address: str
    namespace: Optional[str]
    timeout_seconds: float
    verify_tls: bool
    ca_cert: Optional[str]


@dataclass(frozen=True)
class AuthSettings:
    method: AuthMethod
    mount: Optional[str]
    role_id: Optional[str]
    username: Optional[str]
    secret_store: str
    secret_account: str
    service_name: str


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int
    initial_delay_seconds: float


@dataclass(frozen=True)
class Settings:
    version: str
    server: ServerSettings
    auth: AuthSettings
    default_engine: Optional[str]
    retry: RetrySettings


class SettingsLoadError(RuntimeError):
    """Raised when settings cannot be loaded."""


def _require(data: dict[str, Any], key: str, section: str) -> Any:
    if key not in data or data[key] in (None, ""):
        raise SettingsLoadError(f"missing required setting: {section}.{key}")
    return data[key]


def _section(raw: dict[str, Any], name: str, required: bool = False) -> dict[str, Any]:
    if name not in raw and required:
        raise SettingsLoadError(f"missing required section: {name}")
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"{name} must be an object")
    return value


def _optional_str(data: dict[str, Any], key: str) -> Optional[str]:
    value = str(data.get(key) or "").strip()
    return value or None


def resolve_config_path(explicit: Optional[str] = None) -> Path:
    raw = (explicit or os.getenv("VAULTOPS_CONFIG", "")).strip()
    return Path(raw) if raw else DEFAULT_CONFIG_PATH


def load_settings(path: Path) -> Settings:
    if not path.exists():
        raise SettingsLoadError(f"settings file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SettingsLoadError(f"settings file is not valid YAML: {path}") from exc
    if not isinstance(raw, dict):
        raise SettingsLoadError("settings root must be an object")

    server_raw = _section(raw, "server", required=True)
    auth_raw = _section(raw, "auth", required=True)
    defaults_raw = _section(raw, "defaults")
    retry_raw = _section(raw, "retry")

    address = os.getenv("VAULT_ADDR", "").strip() or str(_require(server_raw, "address", "server")).strip()

    try:
        timeout_seconds = float(server_raw.get("timeout_seconds", 30))
    except (TypeError, ValueError) as exc:
        raise SettingsLoadError("server.timeout_seconds must be a number") from exc
    if timeout_seconds <= 0:
        raise SettingsLoadError("server.timeout_seconds must be > 0")

    ca_cert = _optional_str(server_raw, "ca_cert")
    if ca_cert and not Path(ca_cert).exists():
        raise SettingsLoadError(f"server.ca_cert not found: {ca_cert}")

    method_raw = str(auth_raw.get("method", "approle")).strip().lower()
    try:
        method = AuthMethod(method_raw)
    except ValueError as exc:
        raise SettingsLoadError(f"invalid auth.method: {method_raw}") from exc

    role_id = _optional_str(auth_raw, "role_id")
    username = _optional_str(auth_raw, "username")
    if method is AuthMethod.APPROLE and not role_id:
        raise SettingsLoadError("auth.role_id is required for approle login")
    if method is not AuthMethod.APPROLE and not username:
        raise SettingsLoadError(f"auth.username is required for {method.value} login")

    secret_store = str(auth_raw.get("secret_store", "keyring")).strip().lower()
    if secret_store not in {"keyring", "env"}:
        raise SettingsLoadError(f"invalid auth.secret_store: {secret_store}")

    default_account = "vault_secret_id" if method is AuthMethod.APPROLE else "vault_password"
    secret_account = str(auth_raw.get("secret_account", default_account)).strip()
    if not _ACCOUNT_PATTERN.fullmatch(secret_account):
        raise SettingsLoadError(f"invalid auth.secret_account: {secret_account}")

    service_name = str(auth_raw.get("service_name", "vaultops")).strip()
    if not service_name:
        raise SettingsLoadError("auth.service_name must not be empty")

    default_engine = _optional_str(defaults_raw, "engine")
    if default_engine:
        try:
            default_engine = normalize_path(default_engine)
        except ValueError as exc:
            raise SettingsLoadError(f"invalid defaults.engine: {exc}") from exc

    try:
        max_attempts = int(retry_raw.get("max_attempts", 3))
        initial_delay = float(retry_raw.get("initial_delay_seconds", 1.0))
    except (TypeError, ValueError) as exc:
        raise SettingsLoadError("retry settings must be numbers") from exc
    if max_attempts < 1:
        raise SettingsLoadError("retry.max_attempts must be >= 1")
    if initial_delay < 0:
        raise SettingsLoadError("retry.initial_delay_seconds must be >= 0")

    return Settings(
        version=str(raw.get("version", "1")),
        server=ServerSettings(
            address=address,
            namespace=_optional_str(server_raw, "namespace"),
            timeout_seconds=timeout_seconds,
            verify_tls=bool(server_raw.get("verify_tls", True)),
            ca_cert=ca_cert,
        ),
        auth=AuthSettings(
            method=method,
            mount=_optional_str(auth_raw, "mount"),
            role_id=role_id,
            username=username,
            secret_store=secret_store,
            secret_account=secret_account,
            service_name=service_name,
        ),
        default_engine=default_engine,
        retry=RetrySettings(max_attempts=max_attempts, initial_delay_seconds=initial_delay),
    )
