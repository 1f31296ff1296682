from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List

from epns_dispatch.env import load_dotenv_if_present
from epns_dispatch.errors import DispatchError, ValidationError


def _add_payload_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--recipient", default="")
    ap.add_argument("--type", dest="payload_type", required=True)
    ap.add_argument("--title", default="")
    ap.add_argument("--body", default="")
    ap.add_argument("--sub", default="")
    ap.add_argument("--msg", default="")
    ap.add_argument("--cta", default="")
    ap.add_argument("--img", default="")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="epns_dispatch", description="EPNS notification dispatch")
    ap.add_argument("--config", dest="config_path", default=None, help="JSON/YAML config (or EPNS_CONFIG_PATH)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    _add_payload_args(sub.add_parser("prepare", help="print the canonical payload"))

    p_ident = sub.add_parser("identity", help="print the V2 identity of a payload file")
    p_ident.add_argument("payload_file")

    p_send = sub.add_parser("send-offchain", help="sign and post to the backend")
    _add_payload_args(p_send)
    p_send.add_argument("--version", type=int, choices=[1, 2], default=1)
    p_send.add_argument("--retries", type=int, default=1, help="max attempts for retryable failures")

    p_up = sub.add_parser("upload", help="upload + pin a payload file to IPFS")
    p_up.add_argument("payload_file")
    p_up.add_argument("--gateway", default=None)
    p_up.add_argument("--simulate", action="store_true")

    return ap.parse_args(argv)


def _read_payload(path: str):
    from epns_dispatch.payload import Payload

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ValidationError("bad_payload_file", str(e), {"path": path}) from e
    return Payload.from_json(raw)


def _prepare(svc: Any, args: argparse.Namespace):
    return svc.prepare(
        args.recipient, args.payload_type, args.title, args.body, sub=args.sub, msg=args.msg, cta=args.cta, img=args.img
    )


async def _run(args: argparse.Namespace) -> int:
    from epns_dispatch.api.structured_logging import configure_structured_logging
    from epns_dispatch.config import load_dispatch_config
    from epns_dispatch.mode import DispatchMode
    from epns_dispatch.retry import RetryPolicy
    from epns_dispatch.service import DispatchService
    from epns_dispatch.signature import payload_identity

    cfg = load_dispatch_config(config_path=args.config_path)
    configure_structured_logging(cfg.log_level)
    svc = DispatchService(cfg)

    if args.cmd == "prepare":
        print(json.dumps(_prepare(svc, args).to_json(), indent=2))
        return 0

    if args.cmd == "identity":
        ident = payload_identity(_read_payload(args.payload_file))
        print(json.dumps({"identity": ident.decode("utf-8"), "identity_hex": "0x" + ident.hex()}, indent=2))
        return 0

    if args.cmd == "send-offchain":
        payload = _prepare(svc, args)
        retry = RetryPolicy(max_attempts=args.retries) if args.retries > 1 else None
        record, outcome = await svc.send_offchain(payload, args.recipient or None, version=args.version, retry=retry)
        print(json.dumps({"record": record.to_json(), "outcome": outcome.to_json()}, indent=2))
        return 0 if outcome.success else 1

    if args.cmd == "upload":
        mode = DispatchMode.simulated(tx=False) if args.simulate else DispatchMode.live()
        res = await svc.upload(_read_payload(args.payload_file), gateway=args.gateway, mode=mode)
        print(json.dumps(res.to_json(), indent=2))
        return 0

    return 2


def main(argv: List[str]) -> int:
    load_dotenv_if_present()
    args = _parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except DispatchError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def _entry() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
