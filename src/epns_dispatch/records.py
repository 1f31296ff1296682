"""Delivery records and per-transport results.

Every record is created by one call and owned by it; `to_json()` always
returns a fresh dict so no downstream stage can mutate a caller's structure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from epns_dispatch.errors import TransportError, ValidationError
from epns_dispatch.payload import Payload

Json = Dict[str, Any]

SIMULATED_IPFS_HASH = "[SimulatedIPFSHash]"
SIMULATED_TX_HASH = "SimulatedTransaction!!!"


@dataclass(frozen=True)
class DeliveryRecordV1:
    channel: str
    recipient: Any
    signature: str
    type: str
    deployed_contract: str
    chain_id: str
    payload: Payload
    op: str = "write"

    def to_json(self) -> Json:
        return {
            "channel": self.channel,
            "recipient": self.recipient,
            "signature": self.signature,
            "type": self.type,
            "deployedContract": self.deployed_contract,
            "chainId": self.chain_id,
            "payload": self.payload.to_json(),
            "op": self.op,
        }


@dataclass(frozen=True)
class DeliveryRecordV2:
    # EIP-712 signature reused as a content-binding token; not a chain tx hash.
    transaction_hash: str
    identity: bytes
    channel: str
    recipient: Any
    blockchain: str
    payload: Payload

    @property
    def identity_hex(self) -> str:
        return "0x" + self.identity.hex()

    def to_json(self) -> Json:
        return {
            "transaction_hash": self.transaction_hash,
            "identity": self.identity_hex,
            "channel": self.channel,
            "recipient": self.recipient,
            "blockchain": self.blockchain,
            "payload": self.payload.to_json(),
        }

    @staticmethod
    def from_json(j: Any) -> "DeliveryRecordV2":
        if not isinstance(j, dict):
            raise ValidationError("bad_record", "record must be an object")
        ident = str(j.get("identity") or "")
        try:
            identity = bytes.fromhex(ident[2:] if ident.startswith("0x") else ident)
        except ValueError:
            raise ValidationError("bad_record", "identity must be hex", {"identity": ident}) from None
        return DeliveryRecordV2(
            transaction_hash=str(j.get("transaction_hash") or ""),
            identity=identity,
            channel=str(j.get("channel") or ""),
            recipient=j.get("recipient"),
            blockchain=str(j.get("blockchain") or ""),
            payload=Payload.from_json(j.get("payload")),
        )


DeliveryRecord = DeliveryRecordV1 | DeliveryRecordV2


@dataclass(frozen=True)
class DispatchOutcome:
    success: bool
    retryable: bool
    status_code: Optional[int] = None
    body: Any = None
    message: Optional[str] = None

    @staticmethod
    def ok(status_code: int, body: Any) -> "DispatchOutcome":
        return DispatchOutcome(success=True, retryable=False, status_code=status_code, body=body)

    @staticmethod
    def failed(status_code: Optional[int], *, body: Any = None, message: Optional[str] = None) -> "DispatchOutcome":
        return DispatchOutcome(
            success=False,
            retryable=is_retryable_status(status_code),
            status_code=status_code,
            body=body,
            message=message,
        )

    def raise_for_failure(self) -> "DispatchOutcome":
        if self.success:
            return self
        raise TransportError(
            "backend_submit_failed",
            self.message or f"http_{self.status_code}",
            {"status_code": self.status_code, "body": self.body},
            retryable=self.retryable,
        )

    def to_json(self) -> Json:
        out: Json = {"success": self.success, "retryable": self.retryable, "statusCode": self.status_code}
        if self.body is not None:
            out["body"] = self.body
        if self.message is not None:
            out["message"] = self.message
        return out


def is_retryable_status(status_code: Optional[int]) -> bool:
    """No status (network-level failure) or a 5xx server error."""
    if not status_code:
        return True
    return 500 <= int(status_code) <= 599


@dataclass(frozen=True)
class UploadResult:
    cid: str
    pinned: bool
    gateway: Optional[str] = None
    simulated: bool = False

    @staticmethod
    def simulated_result() -> "UploadResult":
        return UploadResult(cid=SIMULATED_IPFS_HASH, pinned=False, gateway=None, simulated=True)

    def to_json(self) -> Json:
        return {"cid": self.cid, "pinned": self.pinned, "gateway": self.gateway, "simulated": self.simulated}


@dataclass(frozen=True)
class ChainReceipt:
    block_number: int
    status: int
    gas_used: int = 0
    confirmations: int = 1

    def to_json(self) -> Json:
        return {
            "blockNumber": self.block_number,
            "status": self.status,
            "gasUsed": self.gas_used,
            "confirmations": self.confirmations,
        }


@dataclass(frozen=True)
class ChainTxResult:
    hash: str
    recipient: Any
    notification_type: Any
    notification_storage_type: Any
    storage_pointer: str
    identity: bytes
    receipt: Optional[ChainReceipt] = None
    simulated: bool = False

    def to_json(self) -> Json:
        if self.simulated:
            return {
                "recipientAddr": self.recipient,
                "notificationType": self.notification_type,
                "notificationStoragePointer": self.storage_pointer,
                "pushType": 1,
                "hash": self.hash,
            }
        out: Json = {
            "hash": self.hash,
            "recipientAddr": self.recipient,
            "notificationType": self.notification_type,
            "notificationStorageType": self.notification_storage_type,
            "notificationStoragePointer": self.storage_pointer,
            "identity": "0x" + self.identity.hex(),
        }
        if self.receipt is not None:
            out["receipt"] = self.receipt.to_json()
        return out
