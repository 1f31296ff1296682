"""
On-chain notification log (EPNS core contract).

  - provider: network name/id -> JSON-RPC endpoint (rpc_url, Infura, Alchemy)
  - contract: web3 contract wrappers and the SigningContract / TxHandle capabilities
  - notifier: ChainNotifier.send_notification
"""

from __future__ import annotations

__all__ = ["abi", "provider", "contract", "notifier"]
