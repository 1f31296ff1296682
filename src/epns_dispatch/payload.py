from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from epns_dispatch.errors import ValidationError

Json = Dict[str, Any]


@dataclass(frozen=True)
class Notification:
    title: str = ""
    body: str = ""

    def to_json(self) -> Json:
        return {"title": self.title, "body": self.body}


@dataclass(frozen=True)
class PayloadData:
    type: str
    secret: str = ""
    asub: str = ""
    amsg: str = ""
    acta: str = ""
    aimg: str = ""

    def to_json(self) -> Json:
        return {
            "type": self.type,
            "secret": self.secret,
            "asub": self.asub,
            "amsg": self.amsg,
            "acta": self.acta,
            "aimg": self.aimg,
        }


@dataclass(frozen=True)
class Payload:
    notification: Notification
    data: PayloadData
    recipient: Optional[str] = None

    @property
    def type(self) -> str:
        return self.data.type

    def to_json(self) -> Json:
        """Fresh dict every call; `recipient` is omitted, never null, when absent."""
        out: Json = {
            "notification": self.notification.to_json(),
            "data": self.data.to_json(),
        }
        if self.recipient:
            out["recipient"] = self.recipient
        return out

    @staticmethod
    def from_json(j: Any) -> "Payload":
        """Boundary parser for payloads received as JSON (API, CLI, records)."""
        if isinstance(j, Payload):
            return j
        if not isinstance(j, dict):
            raise ValidationError("bad_payload", "payload must be an object")

        notification = j.get("notification") or {}
        data = j.get("data")
        if not isinstance(notification, dict):
            raise ValidationError("bad_payload", "payload.notification must be an object")
        if not isinstance(data, dict):
            raise ValidationError("bad_payload", "payload.data must be an object")

        ptype = _str(data.get("type"))
        try:
            int(ptype)
        except ValueError:
            raise ValidationError("bad_payload", "payload.data.type must be numeric", {"type": ptype}) from None

        return Payload(
            notification=Notification(title=_str(notification.get("title")), body=_str(notification.get("body"))),
            data=PayloadData(
                type=ptype,
                secret=_str(data.get("secret")),
                asub=_str(data.get("asub")),
                amsg=_str(data.get("amsg")),
                acta=_str(data.get("acta")),
                aimg=_str(data.get("aimg")),
            ),
            recipient=j.get("recipient") or None,
        )


def _text(v: Any) -> str:
    # Matches how the EPNS clients stringify values: true/false, and 3.0 -> "3".
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _str(v: Any) -> str:
    return "" if v is None else _text(v)


def _opt(v: Any) -> str:
    return _text(v) if v else ""


def build_payload(
    recipient: Any,
    payload_type: Any,
    title: Any,
    body: Any,
    sub: Any = None,
    msg: Any = None,
    cta: Any = None,
    img: Any = None,
) -> Payload:
    """Format caller input into a Payload.

    Pure formatter: every non-address input is coerced to a string and
    nothing is rejected. `secret` starts empty; encryption stages fill it
    later. A falsy recipient leaves the key out entirely.
    """
    return Payload(
        notification=Notification(title=_str(title), body=_str(body)),
        data=PayloadData(
            type=_str(payload_type),
            secret="",
            asub=_opt(sub),
            amsg=_opt(msg),
            acta=_opt(cta),
            aimg=_opt(img),
        ),
        recipient=recipient if recipient else None,
    )
