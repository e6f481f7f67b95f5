"""Vault KV v2 secret client.

Lifecycle:
UNAUTHENTICATED -> AUTHENTICATED
A repeated login overwrites the token; a failed login clears it.
Every operation other than login checks the session before any request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from vaultops.models.secret import (
    Credential,
    CredentialResult,
    MappingResult,
    OutputType,
    SecretMetadata,
    SecretPath,
    SecretResult,
    SecretVersion,
)
from vaultops.vault.auth import AuthMethod, LoginCredential, build_login_request, resolve_auth_method
from vaultops.vault.errors import (
    AuthenticationError,
    CheckAndSetError,
    NotFoundError,
    PreconditionError,
    RemoteError,
)
from vaultops.vault.http import Transport, UrllibTransport, VaultResponse

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
SecretData = Union[Mapping[str, Any], Credential]


def normalize_server_address(raw: str) -> str:
    value = (raw or "").strip()
    lowered = value.lower()
    if lowered.startswith("https://"):
        value = value[len("https://"):]
    elif lowered.startswith("http://"):
        value = value[len("http://"):]
    elif "://" in value:
        raise PreconditionError(f"unsupported scheme in server address: {raw}")
    value = value.rstrip("/")
    if not value:
        raise PreconditionError("server address must not be empty")
    return f"https://{value}"


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class VaultClient:
    def __init__(
        self,
        server_address: str,
        *,
        transport: Optional[Transport] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        namespace: Optional[str] = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise PreconditionError("timeout_seconds must be > 0")
        self._server_address = normalize_server_address(server_address)
        self._transport: Transport = transport or UrllibTransport()
        self._timeout_seconds = timeout_seconds
        self._namespace = (namespace or "").strip("/") or None
        self._token: Optional[str] = None

    @property
    def server_address(self) -> str:
        return self._server_address

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated else "unauthenticated"
        return f"VaultClient(server_address={self._server_address!r}, state={state})"

    # -- session -----------------------------------------------------------

    def authenticate(
        self,
        credential: LoginCredential,
        method: Union[str, AuthMethod] = AuthMethod.APPROLE,
        mount: Optional[str] = None,
    ) -> "VaultClient":
        method = resolve_auth_method(method)
        login = build_login_request(method, credential, mount=mount)
        self._token = None

        try:
            response = self._send("POST", login.path, body=login.body, authenticated=False)
        except RemoteError as exc:
            raise AuthenticationError(f"{method.value} login failed: {exc.message}") from exc

        if not response.ok:
            detail = "; ".join(response.errors) or "login rejected"
            raise AuthenticationError(f"{method.value} login failed (HTTP {response.status}): {detail}")

        token = _as_dict(response.payload.get("auth")).get("client_token")
        if not isinstance(token, str) or not token:
            raise AuthenticationError(f"{method.value} login response did not include a client token")

        self._token = token
        LOGGER.info("authenticated server=%s method=%s", self._server_address, method.value)
        return self

    def _require_session(self) -> str:
        if self._token is None:
            raise PreconditionError("not authenticated: call authenticate() first")
        return self._token

    # -- operations --------------------------------------------------------

    def list_secrets(
        self,
        engine: str,
        secret_path: Optional[str] = None,
        list_subkeys: bool = False,
    ) -> list[str]:
        """List names one level below a folder, or the key names of one bundle.

        A path containing "/" addresses a bundle, so its parent folder is
        listed. A single-segment path, or any path ending in "/", is listed
        as a folder. Sub-folder names keep their trailing "/".
        """
        self._require_session()
        names_folder = (secret_path or "").strip().endswith("/")
        sp = self._secret_path(engine, secret_path or "")

        if list_subkeys:
            if not sp.path:
                raise PreconditionError("list_subkeys requires a secret path")
            payload = self._check(self._send("GET", f"{sp.engine}/subkeys/{sp.path}"), sp)
            subkeys = _as_dict(_as_dict(payload.get("data")).get("subkeys"))
            return list(subkeys)

        folder = sp.parent if "/" in sp.path and not names_folder else sp.path
        return self._list_folder(sp.engine, folder)

    def read_secret(
        self,
        engine: str,
        secret_path: str,
        key_name: Optional[str] = None,
        version: Optional[int] = None,
        output_type: Union[str, OutputType] = OutputType.MAPPING,
    ) -> SecretResult:
        try:
            output_type = OutputType(output_type)
        except ValueError as exc:
            raise PreconditionError(f"unsupported output type: {output_type}") from exc
        if output_type is OutputType.CREDENTIAL:
            return self.read_credential(engine, secret_path, key_name, version=version)
        return self.read_mapping(engine, secret_path, key_name, version=version)

    def read_mapping(
        self,
        engine: str,
        secret_path: str,
        key_name: Optional[str] = None,
        version: Optional[int] = None,
    ) -> MappingResult:
        self._require_session()
        sp = self._bundle_path(engine, secret_path)
        bundle = self._read_bundle(sp, version)
        if key_name is None:
            return bundle
        value = self._pick_key(bundle, key_name, version)
        return bundle.model_copy(update={"data": {key_name: value}})

    def read_credential(
        self,
        engine: str,
        secret_path: str,
        key_name: Optional[str],
        version: Optional[int] = None,
    ) -> CredentialResult:
        self._require_session()
        if not key_name:
            raise PreconditionError("credential output requires key_name")
        sp = self._bundle_path(engine, secret_path)
        bundle = self._read_bundle(sp, version)
        value = self._pick_key(bundle, key_name, version)
        return CredentialResult(
            path=bundle.path,
            version=bundle.version,
            credential=Credential(username=key_name, password=str(value)),
        )

    def write_secret(
        self,
        engine: str,
        secret_path: str,
        data: SecretData,
        append: bool = True,
        cas: Optional[int] = None,
    ) -> MappingResult:
        """Write a bundle.

        With append, keys already stored and absent from ``data`` are carried
        over; keys present in both take the new value. Without append the
        bundle becomes exactly ``data``. ``cas`` is the version the bundle is
        expected to have (0 means "must not exist yet").
        """
        self._require_session()
        sp = self._bundle_path(engine, secret_path)
        payload = self._coerce_payload(data)
        if cas is not None and cas < 0:
            raise PreconditionError("cas must be >= 0")

        carried: list[str] = []
        if append and self._bundle_exists(sp):
            try:
                current = self._read_bundle(sp, None)
            except NotFoundError:
                # Listed but latest version soft-deleted.
                LOGGER.info("merge base missing, writing as new path=%s", sp)
            else:
                for key, value in current.data.items():
                    if key not in payload:
                        payload[key] = value
                        carried.append(key)

        body: dict[str, Any] = {"data": payload}
        if cas is not None:
            body["options"] = {"cas": int(cas)}
        response = self._check(self._send("POST", f"{sp.engine}/data/{sp.path}", body=body), sp)
        meta = _as_dict(response.get("data"))

        LOGGER.info(
            "secret written path=%s keys=%s carried=%s append=%s version=%s",
            sp,
            sorted(payload),
            sorted(carried),
            append,
            meta.get("version"),
        )
        return MappingResult(
            path=str(sp),
            version=meta.get("version"),
            created_time=meta.get("created_time") or None,
            data=payload,
        )

    def delete_secret(
        self,
        engine: str,
        secret_path: str,
        key_name: Optional[str] = None,
        permanent: bool = False,
    ) -> Optional[MappingResult]:
        """Remove one key (by rewriting the bundle) or the whole bundle.

        Without ``permanent`` the latest version is deleted and the store's
        version history is kept. ``permanent`` removes the metadata and every
        version, so the name also disappears from folder listings.
        """
        self._require_session()
        sp = self._bundle_path(engine, secret_path)

        if key_name is not None:
            if permanent:
                raise PreconditionError("permanent delete applies to whole bundles only")
            current = self._read_bundle(sp, None)
            if key_name not in current.data:
                raise NotFoundError(f"key '{key_name}' not found in {sp}")
            remaining = {k: v for k, v in current.data.items() if k != key_name}
            LOGGER.info("secret key removed path=%s key=%s", sp, key_name)
            return self.write_secret(sp.engine, sp.path, remaining, append=False)

        endpoint = "metadata" if permanent else "data"
        self._check(self._send("DELETE", f"{sp.engine}/{endpoint}/{sp.path}"), sp)
        LOGGER.info("secret deleted path=%s permanent=%s", sp, permanent)
        return None

    def get_secret_metadata(self, engine: str, secret_path: str) -> SecretMetadata:
        self._require_session()
        sp = self._bundle_path(engine, secret_path)
        payload = self._check(self._send("GET", f"{sp.engine}/metadata/{sp.path}"), sp)
        data = _as_dict(payload.get("data"))
        versions = [
            SecretVersion(version=int(number), **_as_dict(info))
            for number, info in _as_dict(data.get("versions")).items()
        ]
        return SecretMetadata(
            path=str(sp),
            current_version=int(data.get("current_version") or 0),
            oldest_version=int(data.get("oldest_version") or 0),
            max_versions=int(data.get("max_versions") or 0),
            created_time=data.get("created_time") or None,
            updated_time=data.get("updated_time") or None,
            versions=versions,
        )

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _secret_path(engine: str, secret_path: str) -> SecretPath:
        try:
            return SecretPath(engine=engine, path=secret_path)
        except ValidationError as exc:
            raise PreconditionError(f"invalid secret path '{engine}/{secret_path}': {exc.errors()[0]['msg']}") from exc

    def _bundle_path(self, engine: str, secret_path: str) -> SecretPath:
        sp = self._secret_path(engine, secret_path)
        if not sp.path:
            raise PreconditionError("secret path must not be empty")
        return sp

    @staticmethod
    def _coerce_payload(data: SecretData) -> dict[str, Any]:
        if isinstance(data, Credential):
            return {data.username: data.get_secret_value()}
        if not isinstance(data, Mapping):
            raise PreconditionError("secret data must be a mapping or a Credential")
        payload: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str) or not key:
                raise PreconditionError("secret keys must be non-empty strings")
            payload[key] = value
        return payload

    @staticmethod
    def _pick_key(bundle: MappingResult, key_name: str, version: Optional[int]) -> Any:
        if key_name not in bundle.data:
            at = f" at version {version}" if version is not None else ""
            raise NotFoundError(f"key '{key_name}' not found in {bundle.path}{at}")
        return bundle.data[key_name]

    def _list_folder(self, engine: str, folder: str) -> list[str]:
        response = self._send("GET", f"{engine}/metadata/{folder}", params={"list": "true"})
        if response.status == 404:
            return []
        payload = self._check(response, f"{engine}/{folder}")
        keys = _as_dict(payload.get("data")).get("keys") or []
        return [str(k) for k in keys]

    def _bundle_exists(self, sp: SecretPath) -> bool:
        return sp.name in self._list_folder(sp.engine, sp.parent)

    def _read_bundle(self, sp: SecretPath, version: Optional[int]) -> MappingResult:
        params = None
        if version is not None:
            if version < 1:
                raise PreconditionError("version must be >= 1")
            params = {"version": str(version)}
        payload = self._check(self._send("GET", f"{sp.engine}/data/{sp.path}", params=params), sp)
        block = _as_dict(payload.get("data"))
        data = block.get("data")
        if not isinstance(data, dict):
            raise NotFoundError(f"secret has no live data: {sp}")
        meta = _as_dict(block.get("metadata"))
        return MappingResult(
            path=str(sp),
            version=meta.get("version"),
            created_time=meta.get("created_time") or None,
            data=dict(data),
        )

    def _send(
        self,
        method: str,
        api_path: str,
        *,
        params: Optional[dict[str, str]] = None,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> VaultResponse:
        url = f"{self._server_address}/v1/{quote(api_path, safe='/')}"
        if params:
            url = f"{url}?{urlencode(params)}"
        headers: dict[str, str] = {}
        if authenticated:
            headers["X-Vault-Token"] = self._require_session()
        if self._namespace:
            headers["X-Vault-Namespace"] = self._namespace
        LOGGER.debug("vault request method=%s path=%s", method, api_path)
        return self._transport(
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=self._timeout_seconds,
        )

    @staticmethod
    def _check(response: VaultResponse, target: object) -> dict[str, Any]:
        if response.ok:
            return response.payload
        if response.status == 404:
            raise NotFoundError(f"secret not found: {target}")
        errors = response.errors
        message = "; ".join(errors) or f"request failed for {target}"
        if response.status == 400 and any("check-and-set" in e for e in errors):
            raise CheckAndSetError(response.status, message, errors)
        raise RemoteError(response.status, message, errors)


def authenticate(
    credential: LoginCredential,
    server_address: str,
    auth_method: Union[str, AuthMethod] = AuthMethod.APPROLE,
    *,
    mount: Optional[str] = None,
    transport: Optional[Transport] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    namespace: Optional[str] = None,
) -> VaultClient:
    client = VaultClient(
        server_address,
        transport=transport,
        timeout_seconds=timeout_seconds,
        namespace=namespace,
    )
    return client.authenticate(credential, auth_method, mount=mount)
