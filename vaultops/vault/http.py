"""Minimal Vault HTTP helper (no external SDK dependency)."""

from __future__ import annotations

import json
import ssl
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from vaultops.vault.errors import RemoteError


@dataclass(frozen=True)
class VaultResponse:
    status: int
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def errors(self) -> list[str]:
        raw = self.payload.get("errors")
        if not isinstance(raw, list):
            return []
        return [str(item) for item in raw]


class Transport(Protocol):
    def __call__(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[dict[str, Any]],
        timeout_seconds: float,
    ) -> VaultResponse: ...


def build_ssl_context(verify_tls: bool = True, ca_cert: Optional[str] = None) -> ssl.SSLContext:
    context = ssl.create_default_context(cafile=ca_cert or None)
    if not verify_tls:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _decode(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return {"errors": [raw.strip()]}
    if not isinstance(payload, dict):
        return {"errors": ["vault response must be an object"]}
    return payload


class UrllibTransport:
    """Single JSON round trip per call. HTTP error statuses are returned, not raised."""

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None) -> None:
        self._ssl_context = ssl_context

    def __call__(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[dict[str, Any]],
        timeout_seconds: float,
    ) -> VaultResponse:
        data = None
        all_headers = {"accept": "application/json", **headers}
        if body is not None:
            data = json.dumps(body, ensure_ascii=True).encode("utf-8")
            all_headers["content-type"] = "application/json"
        req = Request(url=url, data=data, method=method, headers=all_headers)

        try:
            with urlopen(req, timeout=timeout_seconds, context=self._ssl_context) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
                return VaultResponse(status=resp.status, payload=_decode(raw))
        except HTTPError as exc:
            detail = ""
            try:
                detail = exc.read().decode("utf-8", errors="replace")
            except OSError:
                detail = ""
            return VaultResponse(status=exc.code, payload=_decode(detail))
        except URLError as exc:
            reason = exc.reason if getattr(exc, "reason", None) else str(exc)
            raise RemoteError(0, str(reason)) from exc
        except (OSError, ValueError) as exc:
            raise RemoteError(0, f"request failed: {exc}") from exc
