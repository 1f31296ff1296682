from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class DispatchError(Exception):
    """Canonical error type for signing, delivery, storage and chain failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class SigningError(DispatchError):
    """Invalid key material, network id or verifying contract. Never retried."""


@dataclass
class TransportError(DispatchError):
    """Backend submission failure.

    retryable is True iff no HTTP status was obtained or the status is 5xx.
    """

    retryable: bool = False


@dataclass
class StorageError(DispatchError):
    """Both gateways exhausted, or pin failed after a successful add."""


@dataclass
class ChainError(DispatchError):
    """Submission rejected, reverted or not confirmed. Caller owns resubmission."""


@dataclass
class ValidationError(DispatchError):
    """Malformed input at a parsing boundary (records, config).

    The payload builder coerces instead of raising this.
    """
