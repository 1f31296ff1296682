# src/epns_dispatch/config.py
from __future__ import annotations

import json
import math
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from epns_dispatch.errors import ValidationError

Json = Dict[str, Any]

IPFS_LOCAL_GATEWAY = "/ip4/0.0.0.0/tcp/5001"
IPFS_PUBLIC_GATEWAY = "https://ipfs.infura.io:5001"


def _unset(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _bad_number(name: str, v: Any) -> ValidationError:
    return ValidationError("bad_config", f"{name} must be a number; got: {v!r}", {"field": name})


def _as_int(v: Any, default: int, name: str) -> int:
    if _unset(v):
        return int(default)
    if isinstance(v, bool):
        raise _bad_number(name, v)
    try:
        return v if isinstance(v, int) else int(str(v).strip())
    except ValueError:
        raise _bad_number(name, v) from None


def _as_float(v: Any, default: float, name: str) -> float:
    if _unset(v):
        return float(default)
    if isinstance(v, bool):
        raise _bad_number(name, v)
    try:
        f = float(v) if isinstance(v, (int, float)) else float(str(v).strip())
    except ValueError:
        raise _bad_number(name, v) from None
    if not math.isfinite(f):
        raise _bad_number(name, v)
    return f


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


@dataclass(frozen=True)
class DispatchConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # Off-chain backend (payload ingestion API)
    backend_base_url: str
    http_timeout_s: float

    # Typed-data signing domain + routing metadata
    network_id: int
    verifying_contract: str
    channel_address: str
    chain_tag: str

    # IPFS gateways, tried in this order after any caller-supplied one
    ipfs_local_gateway: str
    ipfs_public_gateway: str
    ipfs_timeout_s: float

    log_level: str

    # EPNS core contract for on-chain sends
    core_contract: Optional[str] = None

    # Chain provider credentials
    rpc_url: Optional[str] = None
    infura_project_id: Optional[str] = None
    infura_project_secret: Optional[str] = None
    alchemy_api_key: Optional[str] = None

    # Never read from config files; env only.
    channel_private_key: Optional[str] = None

    def __repr__(self) -> str:
        key = "***" if self.channel_private_key else None
        return (
            f"DispatchConfig(mode={self.mode!r}, backend_base_url={self.backend_base_url!r}, "
            f"network_id={self.network_id!r}, verifying_contract={self.verifying_contract!r}, "
            f"channel_address={self.channel_address!r}, channel_private_key={key!r})"
        )


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_dispatch_config(cfg: DispatchConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValidationError("bad_config", f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if not cfg.backend_base_url.startswith(("http://", "https://")):
        raise ValidationError("bad_config", f"backend_base_url must be http(s); got: {cfg.backend_base_url!r}")

    if mode == "prod" and not cfg.backend_base_url.startswith("https://"):
        raise ValidationError("bad_config", "backend_base_url must be https in prod mode")

    if int(cfg.network_id) <= 0:
        raise ValidationError("bad_config", f"network_id must be > 0; got: {cfg.network_id}")

    if float(cfg.http_timeout_s) <= 0 or float(cfg.ipfs_timeout_s) <= 0:
        raise ValidationError("bad_config", "timeouts must be > 0")

    if cfg.core_contract is not None and not _ADDRESS_RE.match(cfg.core_contract):
        raise ValidationError("bad_config", f"core_contract must be a 0x-prefixed address; got: {cfg.core_contract!r}")

    for name, gw in (("ipfs_local_gateway", cfg.ipfs_local_gateway), ("ipfs_public_gateway", cfg.ipfs_public_gateway)):
        if not isinstance(gw, str) or not gw.strip():
            raise ValidationError("bad_config", f"{name} must be a non-empty string")


def default_dispatch_config() -> DispatchConfig:
    return DispatchConfig(
        mode="prod",
        backend_base_url="https://backend-kovan.epns.io/apis",
        http_timeout_s=30.0,
        network_id=42,
        verifying_contract="0x87da9Af1899ad477C67FeA31ce89c1d2435c77DC",
        channel_address="",
        chain_tag="ETH_TEST_KOVAN",
        ipfs_local_gateway=IPFS_LOCAL_GATEWAY,
        ipfs_public_gateway=IPFS_PUBLIC_GATEWAY,
        ipfs_timeout_s=30.0,
        log_level="INFO",
    )


def _read_config_mapping(path: str) -> Json:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("bad_config", "dispatch config must be a mapping", {"path": str(p)})
    return raw


def _merge(base: DispatchConfig, raw: Json) -> DispatchConfig:
    return DispatchConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        backend_base_url=_as_str(raw.get("backend_base_url"), base.backend_base_url).rstrip("/"),
        http_timeout_s=_as_float(raw.get("http_timeout_s"), base.http_timeout_s, "http_timeout_s"),
        network_id=_as_int(raw.get("network_id"), base.network_id, "network_id"),
        verifying_contract=_as_str(raw.get("verifying_contract"), base.verifying_contract),
        channel_address=_as_str(raw.get("channel_address"), base.channel_address),
        chain_tag=_as_str(raw.get("chain_tag"), base.chain_tag),
        ipfs_local_gateway=_as_str(raw.get("ipfs_local_gateway"), base.ipfs_local_gateway),
        ipfs_public_gateway=_as_str(raw.get("ipfs_public_gateway"), base.ipfs_public_gateway),
        ipfs_timeout_s=_as_float(raw.get("ipfs_timeout_s"), base.ipfs_timeout_s, "ipfs_timeout_s"),
        log_level=_as_str(raw.get("log_level"), base.log_level).upper(),
        core_contract=_as_opt_str(raw.get("core_contract")) or base.core_contract,
        rpc_url=_as_opt_str(raw.get("rpc_url")) or base.rpc_url,
        infura_project_id=_as_opt_str(raw.get("infura_project_id")) or base.infura_project_id,
        infura_project_secret=_as_opt_str(raw.get("infura_project_secret")) or base.infura_project_secret,
        alchemy_api_key=_as_opt_str(raw.get("alchemy_api_key")) or base.alchemy_api_key,
        channel_private_key=base.channel_private_key,
    )


_ENV_FIELDS = {
    "EPNS_MODE": "mode",
    "EPNS_BACKEND_BASE_URL": "backend_base_url",
    "EPNS_HTTP_TIMEOUT_S": "http_timeout_s",
    "EPNS_NETWORK_ID": "network_id",
    "EPNS_VERIFYING_CONTRACT": "verifying_contract",
    "EPNS_CHANNEL_ADDRESS": "channel_address",
    "EPNS_CHAIN_TAG": "chain_tag",
    "EPNS_IPFS_LOCAL_GATEWAY": "ipfs_local_gateway",
    "EPNS_IPFS_PUBLIC_GATEWAY": "ipfs_public_gateway",
    "EPNS_IPFS_TIMEOUT_S": "ipfs_timeout_s",
    "EPNS_LOG_LEVEL": "log_level",
    "EPNS_CORE_CONTRACT": "core_contract",
    "EPNS_RPC_URL": "rpc_url",
    "EPNS_INFURA_PROJECT_ID": "infura_project_id",
    "EPNS_INFURA_PROJECT_SECRET": "infura_project_secret",
    "EPNS_ALCHEMY_API_KEY": "alchemy_api_key",
}


def _env_overrides() -> Json:
    out: Json = {}
    for env_name, field_name in _ENV_FIELDS.items():
        v = os.environ.get(env_name)
        if v is not None and v.strip():
            out[field_name] = v.strip()
    return out


def read_dispatch_config_file(path: str) -> DispatchConfig:
    cfg = _merge(default_dispatch_config(), _read_config_mapping(path))
    validate_dispatch_config(cfg)
    return cfg


def load_dispatch_config(*, config_path: Optional[str] = None) -> DispatchConfig:
    """defaults -> config file (EPNS_CONFIG_PATH) -> EPNS_* env -> validate."""
    cfg = default_dispatch_config()

    p = config_path or os.environ.get("EPNS_CONFIG_PATH")
    if p:
        cfg = _merge(cfg, _read_config_mapping(p))

    cfg = _merge(cfg, _env_overrides())

    key = (os.environ.get("EPNS_CHANNEL_PRIVATE_KEY") or "").strip()
    if key:
        cfg = replace(cfg, channel_private_key=key)

    validate_dispatch_config(cfg)
    return cfg
