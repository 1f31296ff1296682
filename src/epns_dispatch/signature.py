from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from epns_dispatch.crypto.typed_data import (
    TypedDataSigner,
    build_domain,
    build_typed_message,
    recover_typed_data_signer,
)
from epns_dispatch.payload import Payload
from epns_dispatch.records import DeliveryRecordV1, DeliveryRecordV2
from epns_dispatch.util.canon_json import canon_sha256_hex


@dataclass(frozen=True)
class SigningContext:
    """Per-call signing inputs. Never persisted."""

    network_id: int
    verifying_contract: str
    signer: TypedDataSigner

    def __repr__(self) -> str:
        return f"SigningContext(network_id={self.network_id!r}, verifying_contract={self.verifying_contract!r})"


def _sign_payload_data(ctx: SigningContext, payload: Payload) -> str:
    domain = build_domain(network_id=ctx.network_id, verifying_contract=ctx.verifying_contract)
    return ctx.signer.sign_typed_data(build_typed_message(domain=domain, message=payload.data.to_json()))


def payload_identity(payload: Payload) -> bytes:
    """UTF-8 bytes of "<type>+<sha256 hex of canonical payload JSON>".

    Canonical JSON sorts keys, so the identity is reproducible by any
    implementation that hashes the same canonical form.
    """
    digest = canon_sha256_hex(payload.to_json())
    return f"{payload.data.type}+{digest}".encode("utf-8")


def sign_v1(ctx: SigningContext, payload: Payload, *, channel: str, recipient: Any) -> DeliveryRecordV1:
    signature = _sign_payload_data(ctx, payload)
    return DeliveryRecordV1(
        channel=channel,
        recipient=recipient,
        signature=signature,
        type=payload.data.type,
        deployed_contract=ctx.verifying_contract,
        chain_id=str(ctx.network_id),
        payload=payload,
    )


def sign_v2(
    ctx: SigningContext,
    payload: Payload,
    *,
    channel: str,
    recipient: Any,
    chain_tag: str = "ETH_TEST_KOVAN",
) -> DeliveryRecordV2:
    signature = _sign_payload_data(ctx, payload)
    return DeliveryRecordV2(
        transaction_hash=signature,
        identity=payload_identity(payload),
        channel=channel,
        recipient=recipient,
        blockchain=chain_tag,
        payload=payload,
    )


def recover_v1_signer(*, network_id: int, verifying_contract: str, payload: Payload, signature: str) -> str:
    """Address that produced `signature` over payload.data in the EPNS domain."""
    domain = build_domain(network_id=network_id, verifying_contract=verifying_contract)
    return recover_typed_data_signer(build_typed_message(domain=domain, message=payload.data.to_json()), signature)
