from __future__ import annotations

import json
import urllib.parse
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import httpx


class IpfsError(RuntimeError):
    pass


@dataclass(frozen=True)
class IpfsAddResult:
    cid: str
    size: int


_MULTIADDR_HOST_PROTOS = {"ip4", "ip6", "dns", "dns4", "dns6"}


def _multiaddr_to_url(addr: str) -> str:
    """/ip4/127.0.0.1/tcp/5001[/http|/https] -> http://127.0.0.1:5001"""
    parts = [p for p in addr.split("/") if p]
    if len(parts) < 4 or parts[0] not in _MULTIADDR_HOST_PROTOS or parts[2] != "tcp":
        raise ValueError(f"unsupported multiaddr: {addr!r}")

    host = parts[1]
    try:
        port = int(parts[3])
    except ValueError:
        raise ValueError(f"bad multiaddr port: {addr!r}") from None
    if port <= 0 or port > 65535:
        raise ValueError(f"bad multiaddr port: {addr!r}")

    scheme = "http"
    rest = parts[4:]
    if rest:
        if rest[0] not in {"http", "https"} or len(rest) > 1:
            raise ValueError(f"unsupported multiaddr suffix: {addr!r}")
        scheme = rest[0]

    if parts[0] == "ip6":
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}"


def normalize_api_url(gateway: str) -> str:
    """Turn a gateway (http(s) URL or multiaddr) into a Kubo API base URL.

    Raises ValueError for anything that cannot address an IPFS node.
    """
    g = str(gateway or "").strip()
    if not g:
        raise ValueError("empty ipfs gateway")

    if g.startswith("/"):
        return _multiaddr_to_url(g)

    u = urllib.parse.urlparse(g)
    if u.scheme not in {"http", "https"} or not u.hostname:
        raise ValueError(f"bad ipfs gateway url: {g!r}")
    if u.query or u.fragment:
        raise ValueError("ipfs gateway url must not include query or fragment")
    return g.rstrip("/")


_BASE58BTC = frozenset("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")
_BASE32_LOWER = frozenset("abcdefghijklmnopqrstuvwxyz234567")


def _checked_cid(cid: Any, op: str) -> str:
    """Accept the CID forms Kubo prints: v0 ("Qm" + 44 base58btc) or v1 ("b" + base32)."""
    c = str(cid or "").strip()
    if len(c) == 46 and c.startswith("Qm") and set(c) <= _BASE58BTC:
        return c
    if 10 < len(c) <= 128 and c[0] == "b" and set(c[1:]) <= _BASE32_LOWER:
        return c
    raise IpfsError(f"{op}:invalid_cid:{c[:80]}")


def _parse_add_response(raw: str) -> Tuple[str, int]:
    """
    /api/v0/add returns NDJSON (one JSON per line).
    Take the last valid JSON object and extract Hash + Size.
    """
    txt = (raw or "").strip()
    if not txt:
        raise IpfsError("ipfs_add_failed:empty_response")

    last_obj: Optional[dict] = None
    for line in txt.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if isinstance(obj, dict):
            last_obj = obj

    if not isinstance(last_obj, dict):
        raise IpfsError(f"ipfs_add_failed:bad_response:{txt[:200]}")

    cid = str(last_obj.get("Hash") or "").strip()
    try:
        size = int(str(last_obj.get("Size") or "0").strip())
    except ValueError:
        size = 0

    if not cid:
        raise IpfsError(f"ipfs_add_failed:missing_hash:{last_obj!r}")
    return cid, size


class IpfsClient:
    """Minimal async client for the Kubo HTTP API (add + pin/add)."""

    def __init__(self, api_url: str, *, timeout_s: float = 30.0) -> None:
        self.api_url = api_url
        self.timeout_s = float(timeout_s)

    async def _post(self, path: str, *, params: dict, files: Optional[dict] = None) -> str:
        url = f"{self.api_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)) as client:
                resp = await client.post(url, params=params, files=files)
        except httpx.RequestError as e:
            raise IpfsError(f"ipfs_unreachable:{type(e).__name__}:{e}") from e

        if not resp.is_success:
            msg = resp.text.strip()
            raise IpfsError(f"ipfs_http_{resp.status_code}:{path}:{msg[:300]}")
        return resp.text

    async def add(self, content: bytes | str, *, name: str = "payload.json") -> IpfsAddResult:
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        raw = await self._post(
            "/api/v0/add",
            params={"pin": "false", "wrap-with-directory": "false", "progress": "false"},
            files={"file": (name, data, "application/json")},
        )
        cid, size = _parse_add_response(raw)
        return IpfsAddResult(cid=_checked_cid(cid, "ipfs_add_failed"), size=size)

    async def pin_add(self, cid: str) -> str:
        raw = await self._post("/api/v0/pin/add", params={"arg": cid, "recursive": "true"})
        try:
            obj = json.loads(raw)
        except ValueError:
            raise IpfsError(f"ipfs_pin_failed:bad_response:{raw[:200]}") from None
        pins = obj.get("Pins") if isinstance(obj, dict) else None
        if not isinstance(pins, list) or not pins:
            raise IpfsError(f"ipfs_pin_failed:no_pins:{raw[:200]}")
        pinned = _checked_cid(pins[0], "ipfs_pin_failed")
        if pinned != cid:
            raise IpfsError(f"ipfs_pin_failed:cid_mismatch:{pinned}!={cid}")
        return pinned


def create_ipfs_client(gateway: str, *, timeout_s: float = 30.0) -> IpfsClient:
    return IpfsClient(normalize_api_url(gateway), timeout_s=timeout_s)
