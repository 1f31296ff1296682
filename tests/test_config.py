from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path

import pytest

from epns_dispatch.config import (
    IPFS_LOCAL_GATEWAY,
    IPFS_PUBLIC_GATEWAY,
    default_dispatch_config,
    load_dispatch_config,
    read_dispatch_config_file,
    validate_dispatch_config,
)
from epns_dispatch.env import load_dotenv_if_present, reset_dotenv_state
from epns_dispatch.errors import ValidationError


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    cfg = load_dispatch_config()
    assert cfg.mode == "prod"
    assert cfg.network_id == 42
    assert cfg.chain_tag == "ETH_TEST_KOVAN"
    assert cfg.ipfs_local_gateway == IPFS_LOCAL_GATEWAY
    assert cfg.ipfs_public_gateway == IPFS_PUBLIC_GATEWAY
    assert cfg.channel_private_key is None


def test_json_file(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "dispatch.json"
    p.write_text(json.dumps({"mode": "dev", "backend_base_url": "http://localhost:4000/apis/", "network_id": 5}))

    cfg = load_dispatch_config(config_path=str(p))
    assert cfg.mode == "dev"
    assert cfg.backend_base_url == "http://localhost:4000/apis"
    assert cfg.network_id == 5


def test_yaml_file_via_env_path(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "dispatch.yaml"
    p.write_text("mode: testnet\nchain_tag: ETH_TEST_GOERLI\nipfs_timeout_s: 5\n")
    clean_env.setenv("EPNS_CONFIG_PATH", str(p))

    cfg = load_dispatch_config()
    assert cfg.mode == "testnet"
    assert cfg.chain_tag == "ETH_TEST_GOERLI"
    assert cfg.ipfs_timeout_s == 5.0


def test_env_overrides_file(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "dispatch.json"
    p.write_text(json.dumps({"network_id": 5, "channel_private_key": "0xfromfile"}))
    clean_env.setenv("EPNS_NETWORK_ID", "1")
    clean_env.setenv("EPNS_LOG_LEVEL", "verbose")

    cfg = load_dispatch_config(config_path=str(p))
    assert cfg.network_id == 1
    assert cfg.log_level == "VERBOSE"
    # Keys are env-only.
    assert cfg.channel_private_key is None


def test_private_key_from_env_is_masked(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("EPNS_CHANNEL_PRIVATE_KEY", "0xsecretkey")
    cfg = load_dispatch_config()
    assert cfg.channel_private_key == "0xsecretkey"
    assert "0xsecretkey" not in repr(cfg)


def test_read_config_file_rejects_non_mapping(tmp_path: Path) -> None:
    p = tmp_path / "dispatch.yaml"
    p.write_text("- a\n- b\n")
    with pytest.raises(ValidationError):
        read_dispatch_config_file(str(p))


@pytest.mark.parametrize(
    "changes",
    [
        {"mode": "staging"},
        {"backend_base_url": "ftp://backend"},
        {"backend_base_url": "http://backend.test"},  # prod requires https
        {"network_id": 0},
        {"http_timeout_s": 0},
        {"ipfs_public_gateway": " "},
    ],
)
def test_validation_rejects(changes: dict) -> None:
    with pytest.raises(ValidationError) as ei:
        validate_dispatch_config(replace(default_dispatch_config(), **changes))
    assert ei.value.code == "bad_config"


def test_dev_mode_allows_http_backend() -> None:
    validate_dispatch_config(replace(default_dispatch_config(), mode="dev", backend_base_url="http://backend.test"))


def test_dotenv_loads_once_without_overriding(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / ".env"
    p.write_text("EPNS_NETWORK_ID=5\nEPNS_CHAIN_TAG=FROM_FILE\n")
    clean_env.setenv("EPNS_CHAIN_TAG", "FROM_ENV")

    reset_dotenv_state()
    try:
        assert load_dotenv_if_present(str(p)) is True
        assert load_dotenv_if_present(str(p)) is False
        cfg = load_dispatch_config()
    finally:
        reset_dotenv_state()
        os.environ.pop("EPNS_NETWORK_ID", None)

    assert cfg.network_id == 5
    assert cfg.chain_tag == "FROM_ENV"


@pytest.mark.parametrize(
    "env_name,value",
    [
        ("EPNS_NETWORK_ID", "sepolia"),
        ("EPNS_NETWORK_ID", "4.5"),
        ("EPNS_HTTP_TIMEOUT_S", "thirty"),
        ("EPNS_IPFS_TIMEOUT_S", "nan"),
    ],
)
def test_unparseable_env_values_are_rejected(clean_env: pytest.MonkeyPatch, env_name: str, value: str) -> None:
    clean_env.setenv(env_name, value)
    with pytest.raises(ValidationError) as ei:
        load_dispatch_config()
    assert ei.value.code == "bad_config"
    assert ei.value.details["field"] == env_name[len("EPNS_"):].lower()


def test_unparseable_file_values_are_rejected(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "dispatch.yaml"
    p.write_text("network_id: true\n")
    with pytest.raises(ValidationError):
        load_dispatch_config(config_path=str(p))


def test_core_contract(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("EPNS_CORE_CONTRACT", "0x" + "2" * 40)
    assert load_dispatch_config().core_contract == "0x" + "2" * 40

    clean_env.setenv("EPNS_CORE_CONTRACT", "0x1234")
    with pytest.raises(ValidationError):
        load_dispatch_config()
