from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from eth_account import Account
from web3 import AsyncWeb3

from epns_dispatch.chain.abi import EPNS_CORE_ABI
from epns_dispatch.chain.provider import ApiKeys, build_provider
from epns_dispatch.errors import ChainError
from epns_dispatch.records import ChainReceipt


class TxHandle(Protocol):
    @property
    def hash(self) -> str: ...

    async def wait(self, confirmations: int = 1) -> ChainReceipt: ...


class SigningContract(Protocol):
    async def send_notification(self, channel: str, recipient: str, identity: bytes) -> TxHandle: ...


class Web3TxHandle:
    """Submitted transaction; `wait` resolves once mined with enough confirmations."""

    def __init__(self, w3: AsyncWeb3, tx_hash: str, *, timeout_s: float = 300.0, poll_s: float = 2.0) -> None:
        self._w3 = w3
        self._hash = tx_hash
        self.timeout_s = float(timeout_s)
        self.poll_s = float(poll_s)

    @property
    def hash(self) -> str:
        return self._hash

    async def wait(self, confirmations: int = 1) -> ChainReceipt:
        receipt = await self._w3.eth.wait_for_transaction_receipt(
            self._hash, timeout=self.timeout_s, poll_latency=self.poll_s
        )
        block_number = int(receipt["blockNumber"])
        status = int(receipt.get("status", 1))
        if status != 1:
            raise ChainError("tx_reverted", f"transaction {self._hash} reverted", {"block_number": block_number})

        target = block_number + max(1, int(confirmations)) - 1
        while int(await self._w3.eth.block_number) < target:
            await asyncio.sleep(self.poll_s)

        return ChainReceipt(
            block_number=block_number,
            status=status,
            gas_used=int(receipt.get("gasUsed", 0)),
            confirmations=max(1, int(confirmations)),
        )


class Web3SigningContract:
    """EPNS core contract bound to a local signer."""

    def __init__(self, w3: AsyncWeb3, contract: Any, private_key: str) -> None:
        self._w3 = w3
        self._contract = contract
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return str(self._account.address)

    async def send_notification(self, channel: str, recipient: str, identity: bytes) -> Web3TxHandle:
        fn = self._contract.functions.sendNotification(
            AsyncWeb3.to_checksum_address(channel),
            AsyncWeb3.to_checksum_address(recipient),
            bytes(identity),
        )
        nonce = await self._w3.eth.get_transaction_count(self._account.address, "pending")
        tx = await fn.build_transaction(
            {"from": self._account.address, "nonce": nonce, "chainId": await self._w3.eth.chain_id}
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3TxHandle(self._w3, AsyncWeb3.to_hex(tx_hash))


@dataclass(frozen=True)
class InteractableContracts:
    provider: AsyncWeb3
    contract: Any
    signing_contract: Optional[Web3SigningContract]


def get_interactable_contracts(
    network: Any,
    api_keys: ApiKeys,
    wallet_pk: Optional[str],
    deployed_contract: str,
    deployed_contract_abi: Optional[List[dict]] = None,
) -> InteractableContracts:
    """Read interface to the deployed contract, plus a signer-bound one when a key is given."""
    provider = build_provider(network, api_keys)
    try:
        contract = provider.eth.contract(
            address=AsyncWeb3.to_checksum_address(deployed_contract),
            abi=deployed_contract_abi or EPNS_CORE_ABI,
        )
    except Exception as e:
        raise ChainError("bad_contract", str(e), {"contract": deployed_contract}) from e

    signing_contract: Optional[Web3SigningContract] = None
    if wallet_pk:
        try:
            signing_contract = Web3SigningContract(provider, contract, wallet_pk)
        except Exception as e:  # eth_keys raises its own ValidationError
            raise ChainError("bad_signer", "wallet private key is malformed") from e

    return InteractableContracts(provider=provider, contract=contract, signing_contract=signing_contract)
