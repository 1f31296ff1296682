# src/epns_dispatch/__init__.py
"""
EPNS notification dispatch.

  - payload: caller input -> canonical Payload
  - signature: EIP-712 V1 signature, V2 content identity
  - dispatcher: backend submission with retry classification
  - storage: IPFS upload + pin with gateway fallback
  - chain: on-chain identity write through the EPNS core contract
  - service: the pipelines above wired from one DispatchConfig
"""

from __future__ import annotations

from epns_dispatch.errors import (
    ChainError,
    DispatchError,
    SigningError,
    StorageError,
    TransportError,
    ValidationError,
)
from epns_dispatch.mode import DispatchMode, TxOverride
from epns_dispatch.payload import Payload, build_payload

__version__ = "0.1.0"

__all__ = [
    "ChainError",
    "DispatchError",
    "DispatchMode",
    "Payload",
    "SigningError",
    "StorageError",
    "TransportError",
    "TxOverride",
    "ValidationError",
    "build_payload",
]
