from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from epns_dispatch.records import DeliveryRecord, DispatchOutcome
from epns_dispatch.util.event_log import log_event

ADD_MANUAL_PAYLOAD_PATH = "/payloads/add_manual_payload"


def _response_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error")
        if msg:
            return str(msg)
    if isinstance(body, str) and body.strip():
        return body.strip()[:300]
    return None


class DeliveryDispatcher:
    """Posts delivery records to the backend payload-ingestion endpoint.

    Stateless: one HTTP client per submission, no retry loop. The outcome's
    `retryable` flag tells the caller whether resubmitting can help.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout_s = float(timeout_s)
        self._logger = logger or logging.getLogger("epns_dispatch.dispatcher")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{ADD_MANUAL_PAYLOAD_PATH}"

    async def submit(self, record: DeliveryRecord) -> DispatchOutcome:
        body = record.to_json()
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)) as client:
                resp = await client.post(self.endpoint, json=body)
        except httpx.RequestError as e:
            # No status: connection refused, timeout, DNS failure.
            log_event(
                self._logger,
                "offchain_submit_failed",
                level=logging.ERROR,
                endpoint=self.endpoint,
                error=f"{type(e).__name__}: {e}",
                retryable=True,
            )
            return DispatchOutcome.failed(None, message=str(e) or type(e).__name__)

        resp_body = _response_body(resp)
        if resp.is_success:
            log_event(self._logger, "offchain_submitted", endpoint=self.endpoint, status=resp.status_code)
            return DispatchOutcome.ok(resp.status_code, resp_body)

        outcome = DispatchOutcome.failed(resp.status_code, body=resp_body, message=_error_message(resp_body))
        log_event(
            self._logger,
            "offchain_submit_failed",
            level=logging.ERROR,
            endpoint=self.endpoint,
            status=resp.status_code,
            error=outcome.message,
            retryable=outcome.retryable,
        )
        return outcome
