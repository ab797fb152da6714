from __future__ import annotations

from typing import Iterator

import pytest

from cli.config import load_config
from settings import get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch) -> None:
    for name in (
        "METER_I2C_DEVICE",
        "METER_I2C_ADDRESS",
        "METER_BIND_HOST",
        "METER_PORT",
        "METER_ACQUIRE_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.i2c_device == "/dev/i2c-1"
    assert settings.i2c_address == 0x76
    assert settings.bind_host == "0.0.0.0"
    assert settings.port == 3002
    assert settings.acquire_timeout is None
    assert settings.log_level == "INFO"


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("METER_I2C_DEVICE", "/dev/i2c-3")
    monkeypatch.setenv("METER_I2C_ADDRESS", "0x77")
    monkeypatch.setenv("METER_BIND_HOST", "127.0.0.1")
    monkeypatch.setenv("METER_PORT", "9105")
    monkeypatch.setenv("METER_ACQUIRE_TIMEOUT", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.i2c_device == "/dev/i2c-3"
    assert settings.i2c_address == 0x77
    assert settings.bind_host == "127.0.0.1"
    assert settings.port == 9105
    assert settings.acquire_timeout == 2.5
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("METER_I2C_ADDRESS", "0x200")
    monkeypatch.setenv("METER_PORT", "not-a-port")
    monkeypatch.setenv("METER_ACQUIRE_TIMEOUT", "-1")
    monkeypatch.setenv("METER_BIND_HOST", "   ")

    settings = get_settings()

    assert settings.i2c_address == 0x76
    assert settings.port == 3002
    assert settings.acquire_timeout is None
    assert settings.bind_host == "0.0.0.0"


def test_decimal_address_is_accepted(monkeypatch) -> None:
    monkeypatch.setenv("METER_I2C_ADDRESS", "119")

    assert get_settings().i2c_address == 0x77


def test_cli_config_overrides(monkeypatch) -> None:
    monkeypatch.setenv("METER_BASE_URL", "http://pi.local:3002/")
    monkeypatch.setenv("METER_CLIENT_TIMEOUT", "0")

    config = load_config()

    assert config.base_url == "http://pi.local:3002"
    assert config.timeout == 10.0
    assert load_config(base_url="http://other:1", timeout=2.0).timeout == 2.0
