# src/epns_dispatch/crypto/typed_data.py
"""EIP-712 typed-data signing.

The EPNS communicator verifies notifications against one fixed domain and one
struct type. Both are module constants: the `Data` field order is part of the
signed struct hash, so reordering it breaks every deployed verifier.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol

from eth_account import Account
from eth_account.messages import encode_typed_data

from epns_dispatch.errors import SigningError

Json = Dict[str, Any]

DOMAIN_NAME = "EPNS COMM V1"

EIP712_DOMAIN_FIELDS: List[Json] = [
    {"name": "name", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

DATA_FIELDS: List[Json] = [
    {"name": "acta", "type": "string"},
    {"name": "aimg", "type": "string"},
    {"name": "amsg", "type": "string"},
    {"name": "asub", "type": "string"},
    {"name": "type", "type": "string"},
    {"name": "secret", "type": "string"},
]


class TypedDataSigner(Protocol):
    @property
    def address(self) -> str: ...

    def sign_typed_data(self, full_message: Json) -> str: ...


def build_domain(*, network_id: Any, verifying_contract: str) -> Json:
    try:
        chain_id = int(network_id)
    except (TypeError, ValueError):
        raise SigningError("bad_network_id", f"network id must be an integer; got: {network_id!r}") from None
    return {"name": DOMAIN_NAME, "chainId": chain_id, "verifyingContract": verifying_contract}


def build_typed_message(*, domain: Json, message: Json) -> Json:
    return {
        "types": {
            "EIP712Domain": [dict(f) for f in EIP712_DOMAIN_FIELDS],
            "Data": [dict(f) for f in DATA_FIELDS],
        },
        "primaryType": "Data",
        "domain": dict(domain),
        "message": dict(message),
    }


def _signable(full_message: Json):
    try:
        return encode_typed_data(full_message=full_message)
    except Exception as e:  # eth_abi/eth_utils raise their own types
        raise SigningError("bad_typed_data", str(e), {"domain": full_message.get("domain")}) from e


class LocalAccountSigner:
    """TypedDataSigner backed by an in-memory secp256k1 key."""

    def __init__(self, private_key: str) -> None:
        key = (private_key or "").strip()
        if not key:
            raise SigningError("missing_key", "channel private key is empty")
        try:
            self._account = Account.from_key(key)
        except Exception as e:
            raise SigningError("bad_key", "channel private key is malformed") from e

    @property
    def address(self) -> str:
        return str(self._account.address)

    def sign_typed_data(self, full_message: Json) -> str:
        signable = _signable(full_message)
        try:
            signed = self._account.sign_message(signable)
        except Exception as e:
            raise SigningError("sign_failed", str(e)) from e
        return "0x" + bytes(signed.signature).hex()


def recover_typed_data_signer(full_message: Json, signature: str) -> str:
    signable = _signable(full_message)
    try:
        return str(Account.recover_message(signable, signature=signature))
    except Exception as e:
        raise SigningError("bad_signature", str(e)) from e
