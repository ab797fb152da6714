# sensors/bme280.py
from __future__ import annotations

import logging
import struct
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Final, Iterator, Optional

from smbus2 import SMBus

from errors import SensorError
from models.measurement import Measurement

logger = logging.getLogger(__name__)

PRIMARY_ADDRESS: Final[int] = 0x76
SECONDARY_ADDRESS: Final[int] = 0x77

REG_CHIP_ID: Final[int] = 0xD0
REG_RESET: Final[int] = 0xE0
REG_CALIB_TP: Final[int] = 0x88
REG_CALIB_H: Final[int] = 0xE1
REG_CTRL_HUM: Final[int] = 0xF2
REG_STATUS: Final[int] = 0xF3
REG_CTRL_MEAS: Final[int] = 0xF4
REG_CONFIG: Final[int] = 0xF5
REG_DATA: Final[int] = 0xF7

CHIP_ID: Final[int] = 0x60
CMD_SOFT_RESET: Final[int] = 0xB6

CALIB_TP_LENGTH: Final[int] = 26
CALIB_H_LENGTH: Final[int] = 7
DATA_LENGTH: Final[int] = 8

STATUS_MEASURING: Final[int] = 0x08
STATUS_IM_UPDATE: Final[int] = 0x01

# x1 oversampling on every channel, forced mode, IIR filter off
CTRL_HUM_OSRS_X1: Final[int] = 0b001
CTRL_MEAS_FORCED_X1: Final[int] = (0b001 << 5) | (0b001 << 2) | 0b01
CONFIG_FILTER_OFF: Final[int] = 0x00

T_STARTUP: Final[float] = 0.002
T_MEASURE: Final[float] = 0.010  # datasheet max is 9.3ms at x1
T_POLL: Final[float] = 0.002
MAX_STATUS_POLLS: Final[int] = 50

# value reported by the chip when a channel was skipped
SKIPPED_20BIT: Final[int] = 0x80000
SKIPPED_16BIT: Final[int] = 0x8000


@dataclass(frozen=True)
class Calibration:
    """Factory trimming parameters read from the sensor NVM."""

    t1: int
    t2: int
    t3: int
    p1: int
    p2: int
    p3: int
    p4: int
    p5: int
    p6: int
    p7: int
    p8: int
    p9: int
    h1: int
    h2: int
    h3: int
    h4: int
    h5: int
    h6: int

    @classmethod
    def from_registers(cls, tp_block: bytes, h_block: bytes) -> "Calibration":
        """Decode the 0x88..0xA1 and 0xE1..0xE7 register blocks."""
        if len(tp_block) != CALIB_TP_LENGTH or len(h_block) != CALIB_H_LENGTH:
            raise SensorError("Calibration block has unexpected length.")
        t1, t2, t3, p1, p2, p3, p4, p5, p6, p7, p8, p9, h1 = struct.unpack(
            "<HhhHhhhhhhhhxB", tp_block
        )
        h2, h3, e4, e5, e6, h6 = struct.unpack("<hBbBbb", h_block)
        # H4 and H5 are 12-bit signed values sharing the nibbles of 0xE5
        h4 = (e4 * 16) | (e5 & 0x0F)
        h5 = (e6 * 16) | (e5 >> 4)
        return cls(
            t1=t1, t2=t2, t3=t3,
            p1=p1, p2=p2, p3=p3, p4=p4, p5=p5, p6=p6, p7=p7, p8=p8, p9=p9,
            h1=h1, h2=h2, h3=h3, h4=h4, h5=h5, h6=h6,
        )


def compensate(
    calibration: Calibration, adc_t: int, adc_p: int, adc_h: int
) -> Measurement:
    """Apply the datasheet floating point compensation to raw ADC values."""
    c = calibration

    var1 = (adc_t / 16384.0 - c.t1 / 1024.0) * c.t2
    var2 = ((adc_t / 131072.0 - c.t1 / 8192.0) ** 2) * c.t3
    t_fine = var1 + var2
    temperature = t_fine / 5120.0

    var1 = t_fine / 2.0 - 64000.0
    var2 = var1 * var1 * c.p6 / 32768.0
    var2 = var2 + var1 * c.p5 * 2.0
    var2 = var2 / 4.0 + c.p4 * 65536.0
    var1 = (c.p3 * var1 * var1 / 524288.0 + c.p2 * var1) / 524288.0
    var1 = (1.0 + var1 / 32768.0) * c.p1
    if var1 == 0:
        raise SensorError("Pressure compensation divisor is zero.")
    pressure = 1048576.0 - adc_p
    pressure = (pressure - var2 / 4096.0) * 6250.0 / var1
    var1 = c.p9 * pressure * pressure / 2147483648.0
    var2 = pressure * c.p8 / 32768.0
    pressure = pressure + (var1 + var2 + c.p7) / 16.0

    humidity = t_fine - 76800.0
    humidity = (adc_h - (c.h4 * 64.0 + c.h5 / 16384.0 * humidity)) * (
        c.h2 / 65536.0 * (1.0 + c.h6 / 67108864.0 * humidity * (1.0 + c.h3 / 67108864.0 * humidity))
    )
    humidity = humidity * (1.0 - c.h1 * humidity / 524288.0)
    humidity = min(max(humidity, 0.0), 100.0)

    return Measurement(temperature=temperature, pressure=pressure, humidity=humidity)


class BME280:
    """
    Driver for a Bosch BME280 on an I2C bus.

    Every measurement is a forced-mode conversion with x1 oversampling, so the
    chip sleeps between scrapes. The driver is not thread-safe; callers share
    one instance through the measurement gate.
    """

    def __init__(
        self,
        bus: SMBus,
        address: int = PRIMARY_ADDRESS,
        delay: Callable[[float], None] = time.sleep,
    ) -> None:
        self.bus = bus
        self.address = address
        self._delay = delay
        self.calibration: Optional[Calibration] = None

    def __repr__(self) -> str:
        return f"BME280(address=0x{self.address:02X})"

    @contextmanager
    def _transaction(self, action: str) -> Iterator[None]:
        try:
            yield
        except OSError as exc:
            raise SensorError(f"I2C {action} failed at 0x{self.address:02X}: {exc}", cause=exc) from exc

    def init(self) -> None:
        """Verify the chip, reset it and load its calibration."""
        with self._transaction("init"):
            chip_id = self.bus.read_byte_data(self.address, REG_CHIP_ID)
            if chip_id != CHIP_ID:
                raise SensorError(f"Unexpected chip id 0x{chip_id:02X}, expected 0x{CHIP_ID:02X}.")

            self.bus.write_byte_data(self.address, REG_RESET, CMD_SOFT_RESET)
            self._delay(T_STARTUP)
            self._wait_for_clear(STATUS_IM_UPDATE)

            tp_block = bytes(self.bus.read_i2c_block_data(self.address, REG_CALIB_TP, CALIB_TP_LENGTH))
            h_block = bytes(self.bus.read_i2c_block_data(self.address, REG_CALIB_H, CALIB_H_LENGTH))
            self.calibration = Calibration.from_registers(tp_block, h_block)

            self.bus.write_byte_data(self.address, REG_CONFIG, CONFIG_FILTER_OFF)
        logger.info("BME280 initialized", extra={"address": f"0x{self.address:02X}"})

    def measure(self) -> Measurement:
        """Trigger one forced conversion and return the compensated reading."""
        if self.calibration is None:
            raise SensorError("Sensor has not been initialized.")

        with self._transaction("measure"):
            # ctrl_hum only takes effect after a write to ctrl_meas
            self.bus.write_byte_data(self.address, REG_CTRL_HUM, CTRL_HUM_OSRS_X1)
            self.bus.write_byte_data(self.address, REG_CTRL_MEAS, CTRL_MEAS_FORCED_X1)
            self._delay(T_MEASURE)
            self._wait_for_clear(STATUS_MEASURING)
            data = self.bus.read_i2c_block_data(self.address, REG_DATA, DATA_LENGTH)

        if len(data) != DATA_LENGTH:
            raise SensorError(f"Short data read: expected {DATA_LENGTH} bytes, got {len(data)}.")

        adc_p = (data[0] << 12) | (data[1] << 4) | (data[2] >> 4)
        adc_t = (data[3] << 12) | (data[4] << 4) | (data[5] >> 4)
        adc_h = (data[6] << 8) | data[7]
        if adc_t == SKIPPED_20BIT or adc_p == SKIPPED_20BIT or adc_h == SKIPPED_16BIT:
            raise SensorError("Sensor returned a skipped sample.")

        return compensate(self.calibration, adc_t=adc_t, adc_p=adc_p, adc_h=adc_h)

    def close(self) -> None:
        logger.info("Closing I2C bus", extra={"address": f"0x{self.address:02X}"})
        self.bus.close()

    def _wait_for_clear(self, mask: int) -> None:
        for _ in range(MAX_STATUS_POLLS):
            if not self.bus.read_byte_data(self.address, REG_STATUS) & mask:
                return
            self._delay(T_POLL)
        raise SensorError(f"Timed out waiting for status bit 0x{mask:02X} to clear.")
