from __future__ import annotations

import json
from pathlib import Path

import pytest

from epns_dispatch import __main__ as cli
from epns_dispatch.api import structured_logging
from epns_dispatch.records import SIMULATED_IPFS_HASH


@pytest.fixture
def cli_env(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    clean_env.chdir(tmp_path)
    clean_env.setattr(structured_logging, "configure_structured_logging", lambda *a, **k: None)
    return clean_env


def _payload_file(tmp_path: Path) -> str:
    p = tmp_path / "payload.json"
    p.write_text(json.dumps({"notification": {"title": "Hi", "body": "Hello"}, "data": {"type": "3"}}))
    return str(p)


def test_prepare_prints_payload(cli_env: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    rc = cli.main(["prepare", "--recipient", "0xABC", "--type", "3", "--title", "Hi", "--body", "Hello"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["recipient"] == "0xABC"
    assert out["data"]["type"] == "3"


def test_identity_and_upload_simulated(
    cli_env: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = _payload_file(tmp_path)

    assert cli.main(["identity", path]) == 0
    ident = json.loads(capsys.readouterr().out)
    assert ident["identity"].startswith("3+")

    assert cli.main(["upload", path, "--simulate"]) == 0
    up = json.loads(capsys.readouterr().out)
    assert up["cid"] == SIMULATED_IPFS_HASH


def test_bad_payload_file_exits_2(
    cli_env: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    p = tmp_path / "broken.json"
    p.write_text("{not json")
    assert cli.main(["identity", str(p)]) == 2
    err = capsys.readouterr().err
    assert err.startswith("ERROR: bad_payload_file:")
    assert str(p) in err


def test_send_offchain_without_key_exits_1(
    cli_env: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["send-offchain", "--recipient", "0xABC", "--type", "3"]) == 1
    assert capsys.readouterr().err.strip() == "ERROR: missing_channel_key:EPNS_CHANNEL_PRIVATE_KEY is not set"
