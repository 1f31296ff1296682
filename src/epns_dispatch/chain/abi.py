from __future__ import annotations

from typing import Any, Dict, List

# Fragment of the EPNS core contract used by notification dispatch.
EPNS_CORE_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "sendNotification",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_channel", "type": "address"},
            {"name": "_recipient", "type": "address"},
            {"name": "_identity", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "SendNotification",
        "anonymous": False,
        "inputs": [
            {"name": "channel", "type": "address", "indexed": True},
            {"name": "recipient", "type": "address", "indexed": True},
            {"name": "identity", "type": "bytes", "indexed": False},
        ],
    },
]
