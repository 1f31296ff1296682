from __future__ import annotations

from types import SimpleNamespace
from typing import List

import pytest

from epns_dispatch.chain.contract import Web3TxHandle
from epns_dispatch.chain.notifier import SUBSET_NOTIFICATION_TYPE, ChainNotifier, onchain_identity
from epns_dispatch.errors import ChainError
from epns_dispatch.mode import DispatchMode, TxOverride
from epns_dispatch.records import SIMULATED_TX_HASH, ChainReceipt

CHANNEL = "0x" + "c" * 40
RECIPIENT = "0x" + "d" * 40
CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


class _FakeTx:
    def __init__(self, tx_hash: str = "0xfeed", *, fail: Exception | None = None) -> None:
        self._hash = tx_hash
        self.fail = fail
        self.waited: List[int] = []

    @property
    def hash(self) -> str:
        return self._hash

    async def wait(self, confirmations: int = 1) -> ChainReceipt:
        self.waited.append(confirmations)
        if self.fail is not None:
            raise self.fail
        return ChainReceipt(block_number=100, status=1, gas_used=21000, confirmations=confirmations)


class _FakeContract:
    def __init__(self, tx: _FakeTx | None = None, *, fail: Exception | None = None) -> None:
        self.tx = tx or _FakeTx()
        self.fail = fail
        self.calls: List[tuple] = []

    async def send_notification(self, channel, recipient, identity):
        self.calls.append((channel, recipient, identity))
        if self.fail is not None:
            raise self.fail
        return self.tx


def test_onchain_identity() -> None:
    assert onchain_identity(3, CID) == f"3+{CID}".encode("utf-8")


@pytest.mark.asyncio
async def test_live_send_writes_identity() -> None:
    c = _FakeContract()
    res = await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID)

    assert c.calls == [(CHANNEL, RECIPIENT, f"3+{CID}".encode("utf-8"))]
    assert res.hash == "0xfeed"
    assert res.receipt is None
    assert res.simulated is False
    assert c.tx.waited == []


@pytest.mark.asyncio
@pytest.mark.parametrize("ntype", [SUBSET_NOTIFICATION_TYPE, "4"])
async def test_subset_type_is_sent_to_channel(ntype) -> None:
    c = _FakeContract()
    res = await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, ntype, 1, CID)

    assert c.calls[0][1] == CHANNEL
    assert res.recipient == CHANNEL


@pytest.mark.asyncio
async def test_wait_for_tx_returns_receipt() -> None:
    c = _FakeContract()
    res = await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID, wait_for_tx=2)

    assert c.tx.waited == [2]
    assert res.receipt is not None
    assert res.receipt.block_number == 100
    assert res.to_json()["hash"] == "0xfeed"


@pytest.mark.asyncio
async def test_simulated_tx_never_touches_contract() -> None:
    c = _FakeContract()
    res = await ChainNotifier().send_notification(
        c, CHANNEL, RECIPIENT, 3, 1, CID, mode=DispatchMode.simulated(payload=False)
    )

    assert c.calls == []
    assert res.simulated is True
    assert res.to_json() == {
        "recipientAddr": RECIPIENT,
        "notificationType": 3,
        "notificationStoragePointer": CID,
        "pushType": 1,
        "hash": SIMULATED_TX_HASH,
    }


@pytest.mark.asyncio
async def test_simulated_without_contract_is_fine() -> None:
    res = await ChainNotifier().send_notification(None, CHANNEL, RECIPIENT, 3, 1, CID, mode=DispatchMode.simulated())
    assert res.hash == SIMULATED_TX_HASH


@pytest.mark.asyncio
async def test_override_applies_before_submission() -> None:
    other = "0x" + "e" * 40
    mode = DispatchMode.simulated(
        payload=False,
        tx=False,
        tx_override=TxOverride(recipient=other, notification_type=1, notification_storage_type=2),
    )
    c = _FakeContract()
    res = await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID, mode=mode)

    assert c.calls == [(CHANNEL, other, f"1+{CID}".encode("utf-8"))]
    assert res.notification_type == 1
    assert res.notification_storage_type == 2


@pytest.mark.asyncio
async def test_override_to_subset_still_forces_channel() -> None:
    mode = DispatchMode.simulated(payload=False, tx=False, tx_override=TxOverride(notification_type=4))
    c = _FakeContract()
    await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID, mode=mode)
    assert c.calls[0][1] == CHANNEL


@pytest.mark.asyncio
async def test_missing_signer_raises() -> None:
    with pytest.raises(ChainError) as ei:
        await ChainNotifier().send_notification(None, CHANNEL, RECIPIENT, 3, 1, CID)
    assert ei.value.code == "no_signer"


@pytest.mark.asyncio
async def test_submission_failure_raises_chain_error() -> None:
    c = _FakeContract(fail=RuntimeError("insufficient funds"))
    with pytest.raises(ChainError) as ei:
        await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID)
    assert ei.value.code == "tx_submit_failed"
    assert "insufficient funds" in ei.value.reason


@pytest.mark.asyncio
async def test_wait_failures() -> None:
    c = _FakeContract(_FakeTx(fail=TimeoutError("not mined")))
    with pytest.raises(ChainError) as ei:
        await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID, wait_for_tx=1)
    assert ei.value.code == "tx_wait_failed"

    c = _FakeContract(_FakeTx(fail=ChainError("tx_reverted", "reverted")))
    with pytest.raises(ChainError) as ei:
        await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, 3, 1, CID, wait_for_tx=1)
    assert ei.value.code == "tx_reverted"


class _FakeEth:
    def __init__(self, receipt: dict, heads: List[int]) -> None:
        self.receipt = receipt
        self.heads = list(heads)

    async def wait_for_transaction_receipt(self, tx_hash, timeout=None, poll_latency=None):
        return self.receipt

    async def _head(self) -> int:
        return self.heads.pop(0) if len(self.heads) > 1 else self.heads[0]

    @property
    def block_number(self):
        return self._head()


@pytest.mark.asyncio
async def test_web3_tx_handle_waits_for_confirmations() -> None:
    eth = _FakeEth({"blockNumber": 10, "status": 1, "gasUsed": 50000}, heads=[10, 11, 12])
    handle = Web3TxHandle(SimpleNamespace(eth=eth), "0xabc", poll_s=0)

    receipt = await handle.wait(3)

    assert receipt == ChainReceipt(block_number=10, status=1, gas_used=50000, confirmations=3)
    assert eth.heads == [12]


@pytest.mark.asyncio
async def test_web3_tx_handle_reverted() -> None:
    eth = _FakeEth({"blockNumber": 10, "status": 0}, heads=[10])
    handle = Web3TxHandle(SimpleNamespace(eth=eth), "0xabc", poll_s=0)

    with pytest.raises(ChainError) as ei:
        await handle.wait(1)
    assert ei.value.code == "tx_reverted"


@pytest.mark.asyncio
@pytest.mark.parametrize("ntype", [4.0, "4.0", " 4 "])
async def test_integral_subset_forms_are_sent_to_channel(ntype) -> None:
    c = _FakeContract()
    await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, ntype, 1, CID)
    assert c.calls[0][1] == CHANNEL


@pytest.mark.asyncio
@pytest.mark.parametrize("ntype", [4.9, "4.5", "four", True, None])
async def test_non_subset_types_keep_recipient(ntype) -> None:
    c = _FakeContract()
    await ChainNotifier().send_notification(c, CHANNEL, RECIPIENT, ntype, 1, CID)
    assert c.calls[0][1] == RECIPIENT
