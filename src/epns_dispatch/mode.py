from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

LIVE = "live"
SIMULATED = "simulated"

# Legacy descriptor value for a simulated payload/tx mode.
_SIMULATED_TAG = "Simulated"


@dataclass(frozen=True)
class TxOverride:
    """Rewrites applied to an on-chain send before it is built.

    None means "not overridden".
    """

    recipient: Optional[str] = None
    notification_type: Optional[Any] = None
    notification_storage_type: Optional[Any] = None


@dataclass(frozen=True)
class SimulationOptions:
    payload: bool = True
    tx: bool = True
    tx_override: Optional[TxOverride] = None


@dataclass(frozen=True)
class DispatchMode:
    """Live or Simulated(options), threaded explicitly through every component."""

    kind: str = LIVE
    options: SimulationOptions = field(default_factory=lambda: SimulationOptions(payload=False, tx=False))

    @staticmethod
    def live() -> "DispatchMode":
        return DispatchMode()

    @staticmethod
    def simulated(
        *, payload: bool = True, tx: bool = True, tx_override: Optional[TxOverride] = None
    ) -> "DispatchMode":
        return DispatchMode(SIMULATED, SimulationOptions(payload=payload, tx=tx, tx_override=tx_override))

    @property
    def is_live(self) -> bool:
        return self.kind != SIMULATED

    @property
    def simulates_payload(self) -> bool:
        return self.kind == SIMULATED and bool(self.options.payload)

    @property
    def simulates_tx(self) -> bool:
        return self.kind == SIMULATED and bool(self.options.tx)

    @property
    def tx_override(self) -> Optional[TxOverride]:
        if self.kind != SIMULATED:
            return None
        return self.options.tx_override

    @staticmethod
    def from_simulate(value: Any) -> "DispatchMode":
        """Parse the legacy `simulate` flag.

        Accepted shapes:
          - True -> everything simulated
          - {"payloadMode": "Simulated", "txMode": "Simulated",
             "txOverride": {"mode": true, "recipientAddr": ..., "notificationType": ...,
                            "notificationStorageType": ...}}
          - anything falsy or unrecognized -> live
        """
        if isinstance(value, DispatchMode):
            return value
        if value is True:
            return DispatchMode.simulated()
        if not value or not isinstance(value, Mapping):
            return DispatchMode.live()

        payload = value.get("payloadMode") == _SIMULATED_TAG
        tx = value.get("txMode") == _SIMULATED_TAG
        override = _parse_tx_override(value.get("txOverride"))

        if not (payload or tx or override):
            return DispatchMode.live()
        return DispatchMode.simulated(payload=payload, tx=tx, tx_override=override)


def _parse_tx_override(raw: Any) -> Optional[TxOverride]:
    if not isinstance(raw, Mapping) or not raw.get("mode"):
        return None
    return TxOverride(
        recipient=raw.get("recipientAddr"),
        notification_type=raw.get("notificationType"),
        notification_storage_type=raw.get("notificationStorageType"),
    )
