from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_I2C_DEVICE_ENV = "METER_I2C_DEVICE"
_I2C_ADDRESS_ENV = "METER_I2C_ADDRESS"
_BIND_HOST_ENV = "METER_BIND_HOST"
_PORT_ENV = "METER_PORT"
_ACQUIRE_TIMEOUT_ENV = "METER_ACQUIRE_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    i2c_device: str
    i2c_address: int
    bind_host: str
    port: int
    acquire_timeout: Optional[float]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_address(default: int) -> int:
    value = os.getenv(_I2C_ADDRESS_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        # base 0 accepts both "0x77" and "119"
        parsed = int(candidate, 0)
    except ValueError:
        return default
    return parsed if 0x03 <= parsed <= 0x77 else default


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


def _read_timeout(default: Optional[float]) -> Optional[float]:
    value = os.getenv(_ACQUIRE_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        i2c_device=_read_str_env(_I2C_DEVICE_ENV, "/dev/i2c-1"),
        i2c_address=_read_address(0x76),
        bind_host=_read_str_env(_BIND_HOST_ENV, "0.0.0.0"),
        port=_read_port(3002),
        acquire_timeout=_read_timeout(None),
        log_level=_read_log_level("INFO"),
    )
