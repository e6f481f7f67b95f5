from typing import Any, Optional
from urllib.parse import parse_qs, unquote, urlsplit

import pytest

from vaultops.models.secret import AppRoleCredential
from vaultops.vault.client import VaultClient
from vaultops.vault.http import VaultResponse

TOKEN = "hvs.test-token"


class FakeVault:
    """In-memory KV v2 store speaking the Vault HTTP shapes the client uses."""

    def __init__(self, engines: tuple[str, ...] = ("team/kv", "kv")) -> None:
        self.engines = sorted(engines, key=len, reverse=True)
        self.approles = {"role-1": "secret-1"}
        self.users = {"userpass": {"alice": "pw-alice"}, "ldap": {"svc_ldap": "pw-ldap"}}
        self.bundles: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self._clock = 0

    # -- helpers for tests -------------------------------------------------

    def seed(self, engine: str, path: str, data: dict[str, Any]) -> None:
        self._write(engine, path, dict(data))

    def live_data(self, engine: str, path: str) -> Optional[dict[str, Any]]:
        bundle = self.bundles.get((engine, path))
        if not bundle:
            return None
        latest = bundle["versions"][bundle["current"]]
        if latest["deletion_time"] or latest["destroyed"]:
            return None
        return dict(latest["data"])

    # -- transport ---------------------------------------------------------

    def __call__(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[dict[str, Any]],
        timeout_seconds: float,
    ) -> VaultResponse:
        self.calls.append({"method": method, "url": url, "headers": dict(headers), "body": body})
        parts = urlsplit(url)
        assert parts.scheme == "https"
        assert parts.path.startswith("/v1/")
        api_path = unquote(parts.path[len("/v1/"):])
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}

        if api_path.startswith("auth/"):
            return self._login(api_path, body or {})
        if headers.get("X-Vault-Token") != TOKEN:
            return VaultResponse(403, {"errors": ["permission denied"]})

        for engine in self.engines:
            if api_path.startswith(engine + "/"):
                rest = api_path[len(engine) + 1:]
                break
        else:
            return VaultResponse(404, {"errors": ["no handler for route"]})

        kind, _, path = rest.partition("/")
        if kind == "metadata" and method == "GET" and query.get("list") == "true":
            return self._list(engine, path.strip("/"))
        path = path.strip("/")
        if kind == "data" and method == "GET":
            return self._read(engine, path, query.get("version"))
        if kind == "data" and method == "POST":
            return self._post(engine, path, body or {})
        if kind == "data" and method == "DELETE":
            return self._soft_delete(engine, path)
        if kind == "metadata" and method == "GET":
            return self._metadata(engine, path)
        if kind == "metadata" and method == "DELETE":
            self.bundles.pop((engine, path), None)
            return VaultResponse(204, {})
        if kind == "subkeys" and method == "GET":
            return self._subkeys(engine, path)
        return VaultResponse(405, {"errors": ["unsupported operation"]})

    # -- routes ------------------------------------------------------------

    def _now(self) -> str:
        self._clock += 1
        return f"2026-01-01T00:{self._clock // 60:02d}:{self._clock % 60:02d}Z"

    def _login(self, api_path: str, body: dict[str, Any]) -> VaultResponse:
        segments = api_path.split("/")
        mount = segments[1]
        if mount == "approle" and segments[2:] == ["login"]:
            ok = self.approles.get(body.get("role_id")) == body.get("secret_id")
        elif mount in self.users and len(segments) == 4 and segments[2] == "login":
            ok = self.users[mount].get(segments[3]) == body.get("password")
        else:
            return VaultResponse(404, {"errors": ["no handler for route"]})
        if not ok:
            return VaultResponse(400, {"errors": ["invalid credentials"]})
        return VaultResponse(200, {"auth": {"client_token": TOKEN, "lease_duration": 3600}})

    def _write(self, engine: str, path: str, data: dict[str, Any]) -> dict[str, Any]:
        bundle = self.bundles.setdefault(
            (engine, path),
            {"current": 0, "oldest": 1, "created_time": self._now(), "versions": {}},
        )
        number = bundle["current"] + 1
        entry = {"data": data, "created_time": self._now(), "deletion_time": "", "destroyed": False}
        bundle["versions"][number] = entry
        bundle["current"] = number
        bundle["updated_time"] = entry["created_time"]
        return {"version": number, "created_time": entry["created_time"], "deletion_time": "", "destroyed": False}

    def _post(self, engine: str, path: str, body: dict[str, Any]) -> VaultResponse:
        options = body.get("options") or {}
        if "cas" in options:
            current = self.bundles.get((engine, path), {}).get("current", 0)
            if options["cas"] != current:
                return VaultResponse(
                    400,
                    {"errors": ["check-and-set parameter did not match the current version"]},
                )
        return VaultResponse(200, {"data": self._write(engine, path, dict(body.get("data") or {}))})

    def _read(self, engine: str, path: str, version: Optional[str]) -> VaultResponse:
        bundle = self.bundles.get((engine, path))
        if not bundle:
            return VaultResponse(404, {"errors": []})
        number = int(version) if version else bundle["current"]
        entry = bundle["versions"].get(number)
        if entry is None:
            return VaultResponse(404, {"errors": []})
        metadata = {
            "version": number,
            "created_time": entry["created_time"],
            "deletion_time": entry["deletion_time"],
            "destroyed": entry["destroyed"],
        }
        if entry["deletion_time"] or entry["destroyed"]:
            return VaultResponse(404, {"data": {"data": None, "metadata": metadata}})
        return VaultResponse(200, {"data": {"data": dict(entry["data"]), "metadata": metadata}})

    def _soft_delete(self, engine: str, path: str) -> VaultResponse:
        bundle = self.bundles.get((engine, path))
        if bundle:
            bundle["versions"][bundle["current"]]["deletion_time"] = self._now()
        return VaultResponse(204, {})

    def _list(self, engine: str, folder: str) -> VaultResponse:
        prefix = folder + "/" if folder else ""
        names: set[str] = set()
        for bundle_engine, path in self.bundles:
            if bundle_engine != engine or not path.startswith(prefix):
                continue
            head, sep, _ = path[len(prefix):].partition("/")
            names.add(head + "/" if sep else head)
        if not names:
            return VaultResponse(404, {"errors": []})
        return VaultResponse(200, {"data": {"keys": sorted(names)}})

    def _metadata(self, engine: str, path: str) -> VaultResponse:
        bundle = self.bundles.get((engine, path))
        if not bundle:
            return VaultResponse(404, {"errors": []})
        versions = {
            str(number): {
                "created_time": entry["created_time"],
                "deletion_time": entry["deletion_time"],
                "destroyed": entry["destroyed"],
            }
            for number, entry in bundle["versions"].items()
        }
        return VaultResponse(
            200,
            {
                "data": {
                    "current_version": bundle["current"],
                    "oldest_version": bundle["oldest"],
                    "max_versions": 0,
                    "created_time": bundle["created_time"],
                    "updated_time": bundle["updated_time"],
                    "cas_required": False,
                    "versions": versions,
                }
            },
        )

    def _subkeys(self, engine: str, path: str) -> VaultResponse:
        data = self.live_data(engine, path)
        if data is None:
            return VaultResponse(404, {"errors": []})
        return VaultResponse(200, {"data": {"subkeys": {k: None for k in data}, "metadata": {}}})


@pytest.fixture
def fake_vault() -> FakeVault:
    return FakeVault()


@pytest.fixture
def client(fake_vault: FakeVault) -> VaultClient:
    vault = VaultClient("vault.test:8200", transport=fake_vault)
    vault.authenticate(AppRoleCredential(role_id="role-1", secret_id="secret-1"))
    fake_vault.calls.clear()
    return vault
