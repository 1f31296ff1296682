from __future__ import annotations

import logging
from typing import Any, Optional

from epns_dispatch.chain.contract import SigningContract
from epns_dispatch.errors import ChainError
from epns_dispatch.mode import DispatchMode
from epns_dispatch.records import SIMULATED_TX_HASH, ChainReceipt, ChainTxResult
from epns_dispatch.util.event_log import log_event

# Subset notifications are always addressed to the channel itself.
SUBSET_NOTIFICATION_TYPE = 4


def _is_subset_type(v: Any) -> bool:
    # Numeric equality: 4, "4" and 4.0 match; 4.9 and True do not.
    if isinstance(v, bool):
        return False
    try:
        return float(str(v).strip()) == SUBSET_NOTIFICATION_TYPE
    except ValueError:
        return False


def onchain_identity(notification_type: Any, storage_pointer: Any) -> bytes:
    return f"{notification_type}+{storage_pointer}".encode("utf-8")


class ChainNotifier:
    """Writes the compact `<type>+<pointer>` identity to the EPNS core contract.

    Built -> Simulated | Submitted -> Confirmed | Failed. A failed submission
    is terminal for the call; resubmission (and nonce policy) is the caller's.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("epns_dispatch.chain")

    async def send_notification(
        self,
        signing_contract: Optional[SigningContract],
        channel: str,
        recipient: Any,
        notification_type: Any,
        notification_storage_type: Any,
        storage_pointer: str,
        *,
        wait_for_tx: int = 0,
        mode: Optional[DispatchMode] = None,
    ) -> ChainTxResult:
        mode = mode or DispatchMode.live()

        override = mode.tx_override
        if override is not None:
            if override.recipient is not None:
                recipient = override.recipient
            if override.notification_type is not None:
                notification_type = override.notification_type
            if override.notification_storage_type is not None:
                notification_storage_type = override.notification_storage_type

        if _is_subset_type(notification_type):
            recipient = channel

        identity = onchain_identity(notification_type, storage_pointer)

        if mode.simulates_tx:
            result = ChainTxResult(
                hash=SIMULATED_TX_HASH,
                recipient=recipient,
                notification_type=notification_type,
                notification_storage_type=notification_storage_type,
                storage_pointer=storage_pointer,
                identity=identity,
                simulated=True,
            )
            log_event(self._logger, "tx_simulated", level=logging.DEBUG, tx=result.to_json())
            return result

        if signing_contract is None:
            raise ChainError("no_signer", "no signer bound to the contract; pass a wallet key")

        try:
            tx = await signing_contract.send_notification(channel, recipient, identity)
        except Exception as e:
            log_event(self._logger, "tx_failed", level=logging.ERROR, channel=channel, error=f"{type(e).__name__}: {e}")
            raise ChainError("tx_submit_failed", f"Unable to complete transaction, error: {e}") from e

        log_event(self._logger, "tx_sent", hash=tx.hash, channel=channel, recipient=str(recipient))

        receipt: Optional[ChainReceipt] = None
        if wait_for_tx:
            try:
                receipt = await tx.wait(int(wait_for_tx))
            except ChainError:
                log_event(self._logger, "tx_failed", level=logging.ERROR, hash=tx.hash, error="reverted")
                raise
            except Exception as e:
                log_event(self._logger, "tx_failed", level=logging.ERROR, hash=tx.hash, error=f"{type(e).__name__}: {e}")
                raise ChainError("tx_wait_failed", f"Unable to complete transaction, error: {e}", {"hash": tx.hash}) from e
            log_event(self._logger, "tx_mined", hash=tx.hash, block_number=receipt.block_number)

        return ChainTxResult(
            hash=tx.hash,
            recipient=recipient,
            notification_type=notification_type,
            notification_storage_type=notification_storage_type,
            storage_pointer=storage_pointer,
            identity=identity,
            receipt=receipt,
        )
