from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "epns_dispatch" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Drop every EPNS_* variable so config tests see defaults only."""
    import os

    for k in list(os.environ):
        if k.startswith("EPNS_"):
            monkeypatch.delenv(k, raising=False)
    return monkeypatch
