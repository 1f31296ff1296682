"""Pydantic request schemas for the dispatch API.

Fields are loosely typed: the payload builder coerces every value
to a string, so the API only checks that the body is an object.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class PreparePayloadRequest(BaseModel):
    recipient: Any = Field(default=None, description="Recipient address; omitted when empty")
    type: Any = Field(..., description="Payload type (1..4)")
    title: Any = Field(default="", description="Notification title")
    body: Any = Field(default="", description="Notification body")

    # Rich content
    sub: Any = Field(default=None, description="Payload sub-title (asub)")
    msg: Any = Field(default=None, description="Payload message (amsg)")
    cta: Any = Field(default=None, description="Call-to-action URL (acta)")
    img: Any = Field(default=None, description="Image URL (aimg)")

    model_config = {"extra": "allow"}


class IdentityRequest(BaseModel):
    payload: Dict[str, Any] = Field(..., description="Prepared payload")


class OffchainSendRequest(PreparePayloadRequest):
    version: int = Field(default=1, description="Delivery record version (1 or 2)")
    channel: Optional[str] = Field(default=None, description="Channel address; defaults to config")


class UploadRequest(BaseModel):
    payload: Dict[str, Any] = Field(..., description="Prepared payload")
    gateway: Optional[str] = Field(default=None, description="IPFS gateway URL or multiaddr")
    # Legacy simulate flag: bool or {"payloadMode": "Simulated", ...}
    simulate: Any = Field(default=None, description="Simulation descriptor")
