from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from epns_dispatch.api.errors import ApiError
from epns_dispatch.api.schemas import IdentityRequest, OffchainSendRequest, PreparePayloadRequest, UploadRequest
from epns_dispatch.mode import DispatchMode
from epns_dispatch.payload import Payload
from epns_dispatch.service import DispatchService
from epns_dispatch.signature import payload_identity

router = APIRouter()

Json = Dict[str, Any]


def _service(request: Request) -> DispatchService:
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        raise ApiError.internal("service_unavailable", "dispatch service is not configured")
    return svc


def _prepare(svc: DispatchService, req: PreparePayloadRequest) -> Payload:
    return svc.prepare(req.recipient, req.type, req.title, req.body, sub=req.sub, msg=req.msg, cta=req.cta, img=req.img)


@router.get("/health")
def health(request: Request) -> Json:
    svc = getattr(request.app.state, "service", None)
    return {
        "ok": True,
        "network_id": svc.cfg.network_id if svc is not None else None,
        "signing_key": bool(svc is not None and svc.cfg.channel_private_key),
    }


@router.post("/payloads/prepare")
def prepare_payload(req: PreparePayloadRequest, request: Request) -> Json:
    return {"ok": True, "payload": _prepare(_service(request), req).to_json()}


@router.post("/payloads/identity")
def identity(req: IdentityRequest) -> Json:
    ident = payload_identity(Payload.from_json(req.payload))
    return {"ok": True, "identity": ident.decode("utf-8"), "identity_hex": "0x" + ident.hex()}


@router.post("/notifications/offchain")
async def send_offchain(req: OffchainSendRequest, request: Request) -> Json:
    """Sign a payload with the configured channel key and post it to the backend.

    Returns the record and the backend outcome; 502 when the backend rejects
    or is unreachable (error.details.retryable tells the client whether to retry).
    """
    svc = _service(request)
    payload = _prepare(svc, req)
    record, outcome = await svc.send_offchain(payload, req.recipient, version=req.version, channel=req.channel)
    outcome.raise_for_failure()
    return {"ok": True, "record": record.to_json(), "outcome": outcome.to_json()}


@router.post("/notifications/upload")
async def upload(req: UploadRequest, request: Request) -> Json:
    svc = _service(request)
    res = await svc.upload(
        Payload.from_json(req.payload), gateway=req.gateway, mode=DispatchMode.from_simulate(req.simulate)
    )
    return {"ok": True, "upload": res.to_json()}
