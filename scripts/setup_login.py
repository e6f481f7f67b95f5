#!/usr/bin/env python3
"""First-run login setup for vaultops.

Purpose:
- Select auth method and identity (role_id or username) in config/vaultops.yaml
- Store the login secret (secret_id or password) in the OS credential store
- Optionally verify the login against the server
"""

from __future__ import annotations

import argparse
import getpass
import pathlib
import shutil
import sys
from datetime import datetime, timezone
from typing import Any, Optional

import yaml

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vaultops.config.credentials import load_login_credential  # noqa: E402
from vaultops.config.settings import SettingsLoadError, load_settings  # noqa: E402
from vaultops.main import _create_client  # noqa: E402
from vaultops.secrets.base import SecretStoreError  # noqa: E402
from vaultops.secrets.keyring_store import KeyringSecretStore  # noqa: E402
from vaultops.vault.auth import AuthMethod  # noqa: E402
from vaultops.vault.errors import AuthenticationError  # noqa: E402

CONFIG_PATH = ROOT / "config" / "vaultops.yaml"


def load_raw(path: pathlib.Path) -> dict[str, Any]:
    if not path.exists():
        raise RuntimeError(f"settings file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise RuntimeError("settings file must be a YAML object")
    return data


def save_raw(path: pathlib.Path, data: dict[str, Any]) -> pathlib.Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup = path.with_suffix(path.suffix + f".bak.{ts}")
    shutil.copy2(path, backup)
    path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=False), encoding="utf-8")
    return backup


def apply_auth_settings(
    data: dict[str, Any],
    method: AuthMethod,
    identity: str,
    address: Optional[str] = None,
) -> dict[str, Any]:
    auth = data.setdefault("auth", {})
    auth["method"] = method.value
    auth.setdefault("mount", method.value)
    if method is AuthMethod.APPROLE:
        auth["role_id"] = identity
        auth["username"] = ""
        auth["secret_account"] = "vault_secret_id"
    else:
        auth["username"] = identity
        auth["role_id"] = ""
        auth["secret_account"] = "vault_password"
    auth["secret_store"] = "keyring"
    if address:
        data.setdefault("server", {})["address"] = address
    return data


def ask_yes_no(question: str, default_yes: bool = True) -> bool:
    suffix = " [Y/n]: " if default_yes else " [y/N]: "
    while True:
        raw = input(question + suffix).strip().lower()
        if not raw:
            return default_yes
        if raw in {"y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer y or n.")


def store_login_secret(store: KeyringSecretStore, account: str, label: str) -> None:
    try:
        existing = store.get_secret(account)
    except SecretStoreError:
        existing = ""
    if existing and not ask_yes_no(f"{account} is already stored. Replace it?", default_yes=False):
        print(f"- keeping stored {account}")
        return

    while True:
        value = getpass.getpass(f"Enter {label}: ").strip()
        if value:
            store.set_secret(account, value)
            print(f"- stored {account} in OS credential store (service={store.service_name})")
            return
        print(f"{account} is required.")


def main() -> int:
    parser = argparse.ArgumentParser(description="vaultops login setup")
    parser.add_argument("--config", default=str(CONFIG_PATH), help="Settings file to update")
    parser.add_argument("--method", choices=[m.value for m in AuthMethod], default=AuthMethod.APPROLE.value)
    parser.add_argument("--identity", required=True, help="role_id (approle) or username (userpass/ldap)")
    parser.add_argument("--address", help="Vault server address")
    parser.add_argument("--skip-secret", action="store_true", help="Do not prompt for the login secret")
    parser.add_argument("--verify", action="store_true", help="Log in once to verify the stored secret")
    args = parser.parse_args()

    path = pathlib.Path(args.config)
    method = AuthMethod(args.method)
    data = apply_auth_settings(load_raw(path), method, args.identity.strip(), args.address)
    backup = save_raw(path, data)
    print(f"Settings updated: {path}")
    print(f"- method: {method.value}")
    print(f"- backup: {backup}")

    try:
        settings = load_settings(path)
    except SettingsLoadError as exc:
        print(f"Settings are invalid after update: {exc}")
        return 2

    if not args.skip_secret:
        label = "AppRole secret_id" if method is AuthMethod.APPROLE else f"password for {args.identity}"
        store = KeyringSecretStore(service_name=settings.auth.service_name)
        store_login_secret(store, settings.auth.secret_account, label)

    if args.verify:
        try:
            credential = load_login_credential(settings.auth)
            _create_client(settings).authenticate(credential, settings.auth.method, mount=settings.auth.mount)
        except (SecretStoreError, AuthenticationError) as exc:
            print(f"Login check failed: {exc}")
            return 2
        print("Login check: OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
