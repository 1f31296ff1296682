from __future__ import annotations

import hashlib
import json
from typing import Any


def canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Sorted keys, compact separators, UTF-8 kept as-is. Content-derived
    identities hash this string, so it must stay stable across releases.
    """
    # Do not coerce unknown types (no default=str): a non-JSON value leaking
    # into a hashed structure must fail instead of producing an unstable digest.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canon_sha256_hex(obj: Any) -> str:
    return hashlib.sha256(canon_json(obj).encode("utf-8")).hexdigest()
