"""vaultops command line entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from vaultops.config.credentials import load_login_credential
from vaultops.config.settings import Settings, SettingsLoadError, load_settings, resolve_config_path
from vaultops.core.retry import invoke_with_retry
from vaultops.models.secret import CredentialResult
from vaultops.secrets.base import SecretStoreError
from vaultops.vault.client import VaultClient
from vaultops.vault.errors import AuthenticationError, PreconditionError, VaultError
from vaultops.vault.http import UrllibTransport, build_ssl_context
from vaultops.vault.reference import lookup_secret

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

LOGGER = logging.getLogger("vaultops")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vaultops", description="Vault KV secret operations for automation jobs")
    parser.add_argument("--config", help="Settings file (default: $VAULTOPS_CONFIG or config/vaultops.yaml)")
    parser.add_argument("-e", "--engine", help="Secret engine mount (default: defaults.engine from settings)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List bundles in a folder, or key names of a bundle")
    p_list.add_argument("path", nargs="?", default=None)
    p_list.add_argument("--subkeys", action="store_true", help="List key names inside the bundle")

    p_read = sub.add_parser("read", help="Read a bundle or a single key")
    p_read.add_argument("path")
    p_read.add_argument("--key", help="Key name to read")
    p_read.add_argument("--version", type=int, help="Bundle version (default: latest)")
    p_read.add_argument("--credential", action="store_true", help="Return key as username/password pair")
    p_read.add_argument("--reveal", action="store_true", help="Print credential secret in clear text")

    p_write = sub.add_parser("write", help="Write KEY=VALUE pairs (merged into existing keys by default)")
    p_write.add_argument("path")
    p_write.add_argument("pairs", nargs="+", metavar="KEY=VALUE")
    p_write.add_argument("--overwrite", action="store_true", help="Replace the bundle instead of merging")
    p_write.add_argument("--cas", type=int, help="Expected current version (0: bundle must not exist)")

    p_delete = sub.add_parser("delete", help="Delete a key or a whole bundle")
    p_delete.add_argument("path")
    p_delete.add_argument("--key", help="Remove only this key")
    p_delete.add_argument("--permanent", action="store_true", help="Remove all versions and metadata")

    p_meta = sub.add_parser("metadata", help="Show version history of a bundle")
    p_meta.add_argument("path")

    p_lookup = sub.add_parser("lookup", help="Resolve a reference such as team/kv/data/app:key")
    p_lookup.add_argument("ref")
    return parser


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    data: dict[str, str] = {}
    for item in pairs:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise PreconditionError(f"expected KEY=VALUE, got: {item}")
        data[key.strip()] = value
    return data


def _create_client(settings: Settings) -> VaultClient:
    context = build_ssl_context(verify_tls=settings.server.verify_tls, ca_cert=settings.server.ca_cert)
    return VaultClient(
        settings.server.address,
        transport=UrllibTransport(ssl_context=context),
        timeout_seconds=settings.server.timeout_seconds,
        namespace=settings.server.namespace,
    )


def _credential_view(result: CredentialResult, reveal: bool) -> dict[str, Any]:
    view = result.model_dump(mode="json")
    if reveal:
        view["credential"]["password"] = result.credential.get_secret_value()
    return view


def _run_command(args: argparse.Namespace, client: VaultClient, settings: Settings) -> Any:
    if args.command == "lookup":
        return lookup_secret(client, args.ref, default_engine=args.engine or settings.default_engine)

    engine = args.engine or settings.default_engine
    if not engine:
        raise PreconditionError("no engine given: pass --engine or set defaults.engine")

    if args.command == "list":
        names = client.list_secrets(engine, args.path, list_subkeys=args.subkeys)
        return {"engine": engine, "path": args.path or "", "names": names}

    if args.command == "read":
        if args.credential:
            result = client.read_credential(engine, args.path, args.key, version=args.version)
            return _credential_view(result, reveal=args.reveal)
        return client.read_mapping(engine, args.path, key_name=args.key, version=args.version).model_dump(mode="json")

    if args.command == "write":
        data = _parse_pairs(args.pairs)
        written = client.write_secret(engine, args.path, data, append=not args.overwrite, cas=args.cas)
        return {"path": written.path, "version": written.version, "keys": sorted(written.data)}

    if args.command == "delete":
        remaining = client.delete_secret(engine, args.path, key_name=args.key, permanent=args.permanent)
        if remaining is None:
            return {"path": f"{engine}/{args.path}", "deleted": "bundle", "permanent": args.permanent}
        return {"path": remaining.path, "deleted": args.key, "version": remaining.version, "keys": sorted(remaining.data)}

    if args.command == "metadata":
        return client.get_secret_metadata(engine, args.path).model_dump(mode="json")

    raise PreconditionError(f"unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config_path = resolve_config_path(args.config)
    try:
        settings = load_settings(config_path)
        credential = load_login_credential(settings.auth)
        client = _create_client(settings)
        client.authenticate(credential, settings.auth.method, mount=settings.auth.mount)
    except SettingsLoadError as exc:
        LOGGER.error("startup blocked by invalid settings: %s", exc)
        print(f"Settings error ({config_path}): {exc}", file=sys.stderr)
        return 2
    except SecretStoreError as exc:
        LOGGER.error("startup blocked by missing login secret: %s", exc)
        print(f"Login secret unavailable: {exc}", file=sys.stderr)
        return 2
    except (AuthenticationError, PreconditionError) as exc:
        LOGGER.error("login failed: %s", exc)
        print(f"Login failed: {exc}", file=sys.stderr)
        return 2

    try:
        output = invoke_with_retry(
            lambda: _run_command(args, client, settings),
            max_attempts=settings.retry.max_attempts,
            initial_delay_seconds=settings.retry.initial_delay_seconds,
        )
    except PreconditionError as exc:
        print(f"Invalid request: {exc}", file=sys.stderr)
        return 2
    except VaultError as exc:
        LOGGER.error("command failed command=%s error=%s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
