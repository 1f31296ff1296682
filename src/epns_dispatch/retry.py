from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from epns_dispatch.dispatcher import DeliveryDispatcher
from epns_dispatch.records import DeliveryRecord, DispatchOutcome
from epns_dispatch.util.event_log import log_event

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base_ms: int = 750
    backoff_cap_ms: int = 60_000

    def compute_backoff_ms(self, attempts: int) -> int:
        # attempts starts at 1 for the first failure; base * 2^(a-1), capped.
        a = max(1, int(attempts))
        base = max(0, int(self.backoff_base_ms))
        cap = max(base, int(self.backoff_cap_ms))
        return int(min(base * (2 ** (a - 1)), cap))


async def deliver_with_retry(
    dispatcher: DeliveryDispatcher,
    record: DeliveryRecord,
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    logger: Optional[logging.Logger] = None,
) -> DispatchOutcome:
    """Submit `record`, resubmitting only while the outcome is retryable.

    Terminal outcomes (4xx, application errors) return immediately. The last
    outcome is returned when attempts run out.
    """
    policy = policy or RetryPolicy()
    log = logger or logging.getLogger("epns_dispatch.retry")
    max_attempts = max(1, int(policy.max_attempts))

    attempt = 0
    while True:
        attempt += 1
        outcome = await dispatcher.submit(record)
        if outcome.success or not outcome.retryable or attempt >= max_attempts:
            return outcome

        delay_ms = policy.compute_backoff_ms(attempt)
        log_event(
            log,
            "offchain_retry_scheduled",
            attempt=attempt,
            max_attempts=max_attempts,
            delay_ms=delay_ms,
            status=outcome.status_code,
        )
        await sleep(delay_ms / 1000.0)
