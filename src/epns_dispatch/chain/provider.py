from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3

from epns_dispatch.errors import ChainError

# chain id -> (infura subdomain, alchemy subdomain)
_NETWORK_HOSTS: Dict[int, Tuple[str, Optional[str]]] = {
    1: ("mainnet", "eth-mainnet"),
    5: ("goerli", "eth-goerli"),
    42: ("kovan", None),
    137: ("polygon-mainnet", "polygon-mainnet"),
    80001: ("polygon-mumbai", "polygon-mumbai"),
    11155111: ("sepolia", "eth-sepolia"),
}

_NETWORK_NAMES: Dict[str, int] = {
    "mainnet": 1,
    "homestead": 1,
    "goerli": 5,
    "kovan": 42,
    "polygon": 137,
    "matic": 137,
    "mumbai": 80001,
    "maticmum": 80001,
    "sepolia": 11155111,
}


@dataclass(frozen=True)
class ApiKeys:
    """Provider credentials; any subset may be empty."""

    rpc_url: Optional[str] = None
    infura_project_id: Optional[str] = None
    infura_project_secret: Optional[str] = None
    alchemy_api_key: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ApiKeys(rpc_url={self.rpc_url!r}, infura={'set' if self.infura_project_id else None}, "
            f"alchemy={'set' if self.alchemy_api_key else None})"
        )


def resolve_network(network: Any) -> int:
    """Chain id (int or numeric string) or symbolic name -> chain id."""
    if isinstance(network, bool):
        raise ChainError("bad_network", f"unsupported network: {network!r}")
    if isinstance(network, int):
        return network
    s = str(network or "").strip().lower()
    if s.isdigit():
        return int(s)
    if s in _NETWORK_NAMES:
        return _NETWORK_NAMES[s]
    raise ChainError("bad_network", f"unsupported network: {network!r}")


def resolve_provider_url(chain_id: int, api_keys: ApiKeys) -> Tuple[str, Dict[str, str]]:
    """Pick an RPC endpoint: explicit rpc_url, then Infura, then Alchemy.

    Returns (url, headers).
    """
    if api_keys.rpc_url:
        return api_keys.rpc_url, {}

    hosts = _NETWORK_HOSTS.get(int(chain_id))
    if hosts is not None:
        infura_host, alchemy_host = hosts
        if api_keys.infura_project_id:
            headers: Dict[str, str] = {}
            if api_keys.infura_project_secret:
                token = f"{api_keys.infura_project_id}:{api_keys.infura_project_secret}".encode("utf-8")
                headers["Authorization"] = "Basic " + base64.b64encode(token).decode("ascii")
            return f"https://{infura_host}.infura.io/v3/{api_keys.infura_project_id}", headers
        if api_keys.alchemy_api_key and alchemy_host:
            return f"https://{alchemy_host}.g.alchemy.com/v2/{api_keys.alchemy_api_key}", {}

    raise ChainError("no_provider", f"no provider configured for chain {chain_id}", {"chain_id": chain_id})


def build_provider(network: Any, api_keys: ApiKeys) -> AsyncWeb3:
    chain_id = resolve_network(network)
    url, headers = resolve_provider_url(chain_id, api_keys)
    request_kwargs: Dict[str, Any] = {"headers": headers} if headers else {}
    return AsyncWeb3(AsyncHTTPProvider(url, request_kwargs=request_kwargs))
