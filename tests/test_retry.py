from __future__ import annotations

from typing import List

import pytest

from epns_dispatch.payload import build_payload
from epns_dispatch.records import DeliveryRecordV1, DispatchOutcome
from epns_dispatch.retry import RetryPolicy, deliver_with_retry


class _ScriptedDispatcher:
    def __init__(self, outcomes: List[DispatchOutcome]) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def submit(self, record):
        self.calls += 1
        return self._outcomes.pop(0)


class _Sleeps:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, s: float) -> None:
        self.delays.append(s)


def _record() -> DeliveryRecordV1:
    return DeliveryRecordV1(
        channel="0xchannel",
        recipient="0xABC",
        signature="0xsig",
        type="3",
        deployed_contract="0x" + "1" * 40,
        chain_id="42",
        payload=build_payload("0xABC", 3, "Hi", "Hello"),
    )


def test_backoff_doubles_and_caps() -> None:
    p = RetryPolicy(backoff_base_ms=100, backoff_cap_ms=350)
    assert [p.compute_backoff_ms(a) for a in (1, 2, 3, 4)] == [100, 200, 350, 350]
    assert p.compute_backoff_ms(0) == 100


@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    d = _ScriptedDispatcher([DispatchOutcome.failed(503), DispatchOutcome.failed(None), DispatchOutcome.ok(200, {})])
    sleeps = _Sleeps()

    out = await deliver_with_retry(d, _record(), RetryPolicy(max_attempts=5, backoff_base_ms=10), sleep=sleeps)

    assert out.success is True
    assert d.calls == 3
    assert sleeps.delays == [0.01, 0.02]


@pytest.mark.asyncio
async def test_terminal_failure_is_not_retried() -> None:
    d = _ScriptedDispatcher([DispatchOutcome.failed(400)])
    sleeps = _Sleeps()

    out = await deliver_with_retry(d, _record(), RetryPolicy(max_attempts=5), sleep=sleeps)

    assert out.status_code == 400
    assert d.calls == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts() -> None:
    d = _ScriptedDispatcher([DispatchOutcome.failed(503)] * 3)
    sleeps = _Sleeps()

    out = await deliver_with_retry(d, _record(), RetryPolicy(max_attempts=3, backoff_base_ms=1), sleep=sleeps)

    assert out.success is False
    assert out.retryable is True
    assert d.calls == 3
    assert len(sleeps.delays) == 2
