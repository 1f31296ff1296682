from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from epns_dispatch.config import IPFS_LOCAL_GATEWAY, IPFS_PUBLIC_GATEWAY
from epns_dispatch.errors import StorageError
from epns_dispatch.mode import DispatchMode
from epns_dispatch.payload import Payload
from epns_dispatch.records import UploadResult
from epns_dispatch.storage.ipfs_client import IpfsAddResult, IpfsError, create_ipfs_client
from epns_dispatch.util.canon_json import canon_json
from epns_dispatch.util.event_log import VERBOSE, log_event


class StorageClient(Protocol):
    async def add(self, content: bytes | str) -> IpfsAddResult: ...

    async def pin_add(self, cid: str) -> str: ...


ClientFactory = Callable[[str], StorageClient]


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    NEXT_GATEWAY = "next_gateway"
    EXHAUSTED = "exhausted"


class StorageUploader:
    """Upload + pin a payload, falling back from the primary gateway to the public one.

    Gateway plan: [caller gateway or local default, public fallback], at most
    two entries, tried strictly one after another. A failed add on a
    non-public gateway earns one full re-attempt on the public gateway; a pin
    failure after a successful add is terminal.
    """

    def __init__(
        self,
        *,
        local_gateway: str = IPFS_LOCAL_GATEWAY,
        public_gateway: str = IPFS_PUBLIC_GATEWAY,
        timeout_s: float = 30.0,
        logger: Optional[logging.Logger] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.local_gateway = local_gateway
        self.public_gateway = public_gateway
        self.timeout_s = float(timeout_s)
        self._logger = logger or logging.getLogger("epns_dispatch.storage")
        self._client_factory = client_factory or (lambda gw: create_ipfs_client(gw, timeout_s=self.timeout_s))

    def gateway_plan(self, gateway: Optional[str] = None) -> List[str]:
        primary = (gateway or "").strip() or self.local_gateway
        plan = [primary]
        if self.public_gateway not in plan:
            plan.append(self.public_gateway)
        return plan

    async def upload(
        self,
        payload: Payload,
        *,
        gateway: Optional[str] = None,
        mode: Optional[DispatchMode] = None,
    ) -> UploadResult:
        mode = mode or DispatchMode.live()
        if mode.simulates_payload:
            log_event(self._logger, "ipfs_upload_simulated", level=VERBOSE, payload=payload.to_json())
            return UploadResult.simulated_result()

        content = canon_json(payload.to_json())
        plan = self.gateway_plan(gateway)

        last_error: Optional[Exception] = None
        for gw in plan:
            state, result, err = await self._attempt(gw, content)
            if state is AttemptState.SUCCESS and result is not None:
                return result
            last_error = err
            if state is AttemptState.EXHAUSTED:
                break
            if state is AttemptState.NEXT_GATEWAY:
                log_event(self._logger, "ipfs_gateway_switch", gateway=self.public_gateway)

        log_event(self._logger, "ipfs_upload_exhausted", level=logging.ERROR, gateways=plan, error=str(last_error))
        raise StorageError("ipfs_add_failed", str(last_error), {"gateways": plan}) from last_error

    async def _attempt(
        self, gw: str, content: str
    ) -> Tuple[AttemptState, Optional[UploadResult], Optional[Exception]]:
        failed = AttemptState.EXHAUSTED if gw == self.public_gateway else AttemptState.NEXT_GATEWAY
        log_event(self._logger, "ipfs_upload_attempt", level=VERBOSE, gateway=gw, state=AttemptState.ATTEMPTING.value)
        try:
            client = self._client_factory(gw)
        except ValueError as e:
            # e.g. gateway = "abcd"
            log_event(self._logger, "ipfs_client_failed", gateway=gw, error=str(e))
            return failed, None, e

        try:
            added = await client.add(content)
        except IpfsError as e:
            # e.g. local node not running
            log_event(self._logger, "ipfs_add_failed", gateway=gw, error=str(e))
            return failed, None, e

        log_event(self._logger, "ipfs_added", gateway=gw, cid=added.cid, size=added.size)

        try:
            pinned = await client.pin_add(added.cid)
        except IpfsError as e:
            log_event(self._logger, "ipfs_pin_failed", level=logging.ERROR, gateway=gw, cid=added.cid, error=str(e))
            raise StorageError("ipfs_pin_failed", str(e), {"gateway": gw, "cid": added.cid}) from e

        log_event(self._logger, "ipfs_pinned", gateway=gw, cid=pinned)
        return AttemptState.SUCCESS, UploadResult(cid=pinned, pinned=True, gateway=gw), None
