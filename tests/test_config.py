import json
from decimal import Decimal

import pytest

from feastflow_mcp.config import StorefrontConfig, load_config

pytestmark = pytest.mark.unit


def test_defaults():
    config = StorefrontConfig()

    assert config.api.prefix == "/api"
    assert config.push.event == "orderStatusUpdated"
    assert config.checkout.gst_rate == Decimal("0.05")
    assert config.push_url == config.api.base_url


def test_load_config_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "api": {"base_url": "https://food.example.com"},
                "push": {"url": "https://push.example.com"},
                "checkout": {"currency_symbol": "₹"},
            }
        )
    )

    config = load_config(str(path))

    assert config.api.base_url == "https://food.example.com"
    assert config.push_url == "https://push.example.com"
    assert config.checkout.currency_symbol == "₹"
    assert config.storage.state_path == "/tmp/feastflow_state.json"


def test_load_config_reads_env_path(tmp_path, monkeypatch):
    path = tmp_path / "other.json"
    path.write_text("{}")
    monkeypatch.setenv("CONFIG_PATH", str(path))

    assert load_config().api.timeout_seconds == 15.0


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.json.example"):
        load_config(str(tmp_path / "absent.json"))
