"""Register-level access to a MAX30102 pulse oximetry sensor over I2C."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Protocol

DEFAULT_ADDRESS = 0x57
"""Seven-bit I2C address of the sensor."""
SAMPLE_MASK = 0x03FFFF
"""Mask keeping the 18 significant bits of a FIFO sample."""
RESET_DELAY = 1.0
"""Seconds to wait after a reset before configuring the sensor."""
TEMPERATURE_DELAY = 1e-6
"""Seconds to wait after starting a temperature conversion."""


class Register(IntEnum):
    """Register addresses of the MAX30102."""

    INTR_STATUS_1 = 0x00
    INTR_STATUS_2 = 0x01
    INTR_ENABLE_1 = 0x02
    INTR_ENABLE_2 = 0x03
    FIFO_WR_PTR = 0x04
    OVF_COUNTER = 0x05
    FIFO_RD_PTR = 0x06
    FIFO_DATA = 0x07
    FIFO_CONFIG = 0x08
    MODE_CONFIG = 0x09
    SPO2_CONFIG = 0x0A
    LED1_PA = 0x0C
    LED2_PA = 0x0D
    PILOT_PA = 0x10
    MULTI_LED_CTRL1 = 0x11
    MULTI_LED_CTRL2 = 0x12
    TEMP_INTR = 0x1F
    TEMP_FRAC = 0x20
    TEMP_CONFIG = 0x21
    PROX_INT_THRESH = 0x30
    REV_ID = 0xFE
    PART_ID = 0xFF


# Register values written by MAX30102.initialize, in order.
INIT_SEQUENCE: tuple[tuple[Register, int], ...] = (
    (Register.INTR_ENABLE_1, 0xC0),
    (Register.INTR_ENABLE_2, 0x00),
    (Register.FIFO_WR_PTR, 0x00),
    (Register.OVF_COUNTER, 0x00),
    (Register.FIFO_RD_PTR, 0x00),
    # Sample average 4, no rollover, almost-full at 17 samples.
    (Register.FIFO_CONFIG, 0x4F),
    # SpO2 mode.
    (Register.MODE_CONFIG, 0x03),
    # ADC range 4096 nA, 100 samples/s, 411 us pulse width.
    (Register.SPO2_CONFIG, 0x27),
    (Register.LED1_PA, 0x24),
    (Register.LED2_PA, 0x24),
    (Register.PILOT_PA, 0x7F),
)

_RESET_VALUE = 0x40
_TEMP_ENABLE = 0x01


class I2CBus(Protocol):
    """An I2C bus able to write and read raw bytes at a device address."""

    def write(self, address: int, data: bytes) -> None:
        """Send ``data`` to the device at ``address``."""

    def read(self, address: int, count: int) -> bytes:
        """Receive ``count`` bytes from the device at ``address``."""


@dataclass(frozen=True)
class Temperature:
    """Die temperature: signed whole degrees plus sixteenths of a degree."""

    integer: int
    fraction: int

    @property
    def celsius(self) -> float:
        """The temperature in degrees Celsius."""
        return self.integer + self.fraction / 16


class MAX30102:
    """A MAX30102 sensor reached through an I2C bus."""

    def __init__(
        self,
        bus: I2CBus,
        address: int = DEFAULT_ADDRESS,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self.bus = bus
        self.address = address
        self._sleep = sleep

    def _read_bytes(self, register: int, count: int) -> bytes:
        self.bus.write(self.address, bytes([register]))
        data = bytes(self.bus.read(self.address, count))
        if len(data) != count:
            raise OSError(
                f"short read from register 0x{register:02X}: "
                f"expected {count} bytes, got {len(data)}"
            )
        return data

    def write_reg(self, register: int, value: int) -> None:
        """Write one byte to a register."""
        if not 0 <= register <= 0xFF:
            raise ValueError(f"register address out of range: {register}")
        if not 0 <= value <= 0xFF:
            raise ValueError(f"register value out of range: {value}")
        self.bus.write(self.address, bytes([register, value]))

    def read_reg(self, register: int) -> int:
        """Read one byte from a register."""
        if not 0 <= register <= 0xFF:
            raise ValueError(f"register address out of range: {register}")
        return self._read_bytes(register, 1)[0]

    def reset(self) -> None:
        """Reset the sensor to its power-on state."""
        self.write_reg(Register.MODE_CONFIG, _RESET_VALUE)

    def initialize(self) -> None:
        """Reset the sensor and configure it for SpO2 measurement."""
        self.reset()
        self._sleep(RESET_DELAY)
        # Reading the status register clears pending interrupts.
        self.read_reg(Register.INTR_STATUS_1)
        for register, value in INIT_SEQUENCE:
            self.write_reg(register, value)

    def read_fifo(self) -> tuple[int, int]:
        """Read one sample from the FIFO and return ``(red, ir)``."""
        self.read_reg(Register.INTR_STATUS_1)
        self.read_reg(Register.INTR_STATUS_2)
        data = self._read_bytes(Register.FIFO_DATA, 6)
        red = int.from_bytes(data[:3], "big") & SAMPLE_MASK
        ir = int.from_bytes(data[3:], "big") & SAMPLE_MASK
        return red, ir

    def read_temperature(self) -> Temperature:
        """Start a die temperature conversion and read the result."""
        self.write_reg(Register.TEMP_CONFIG, _TEMP_ENABLE)
        self._sleep(TEMPERATURE_DELAY)
        raw = self.read_reg(Register.TEMP_INTR)
        integer = raw - 0x100 if raw & 0x80 else raw
        fraction = self.read_reg(Register.TEMP_FRAC)
        return Temperature(integer, fraction)