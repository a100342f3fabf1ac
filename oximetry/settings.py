"""Field-level configuration of a MAX30102 sensor.

Each setting reads the register that holds it, changes only its own bit or
bit field, and writes the register back. Values that do not fit their field
are rejected before anything is written.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Protocol

from .driver import Register

# Interrupt enable 1
_INTR_A_FULL_BIT = 7
_INTR_PPG_RDY_BIT = 6
_INTR_ALC_OVF_BIT = 5
# Interrupt enable 2
_INTR_DIE_TEMP_RDY_BIT = 1
# FIFO pointers and data
_FIFO_WR_PTR_MASK = 0x1F
_FIFO_OVF_COUNTER_MASK = 0x1F
_FIFO_RD_PTR_MASK = 0x1F
_FIFO_DATA_MASK = 0xFF
# FIFO configuration
_FIFO_SAMPLE_AVERAGE_MASK = 0xE0
_FIFO_ROLLOVER_EN_BIT = 4
_FIFO_A_FULL_MASK = 0x0F
# Mode configuration
_MODE_SHUTDOWN_BIT = 7
_MODE_RESET_BIT = 6
_MODE_MASK = 0x07
# SpO2 configuration
_SPO2_ADC_RANGE_MASK = 0x60
_SPO2_SAMPLE_RATE_MASK = 0x1C
_SPO2_PULSE_WIDTH_MASK = 0x03
# LED pulse amplitude
_LED_PA_MASK = 0xFF
# Temperature configuration
_TEMP_EN_BIT = 0


class SampleAveraging(IntEnum):
    """Number of samples averaged into each FIFO entry (bits 7:5)."""

    NO_AVERAGING = 0x00
    AVG_2 = 0x20
    AVG_4 = 0x40
    AVG_8 = 0x60
    AVG_16 = 0x80
    AVG_32 = 0xA0


class ModeControl(IntEnum):
    """Operating mode (bits 2:0 of the mode configuration)."""

    HEART_RATE = 0x02
    SPO2 = 0x03
    MULTI_LED = 0x07


class ADCRange(IntEnum):
    """Full-scale range of the SpO2 ADC, in nA (bits 6:5)."""

    RANGE_2048 = 0x00
    RANGE_4096 = 0x20
    RANGE_8192 = 0x40
    RANGE_16384 = 0x60


class SampleRate(IntEnum):
    """SpO2 sample rate in Hz (bits 4:2)."""

    RATE_50 = 0x00
    RATE_100 = 0x04
    RATE_200 = 0x08
    RATE_400 = 0x0C
    RATE_800 = 0x10
    RATE_1000 = 0x14
    RATE_1600 = 0x18
    RATE_3200 = 0x1C


class PulseWidth(IntEnum):
    """LED pulse width in microseconds, setting ADC resolution (bits 1:0)."""

    PW_69 = 0x00
    PW_118 = 0x01
    PW_215 = 0x02
    PW_411 = 0x03


class _RegisterDevice(Protocol):
    def read_reg(self, register: int) -> int: ...

    def write_reg(self, register: int, value: int) -> None: ...


def alter_bit_value(reg: int, bit: int, value: bool) -> int:
    """Return the byte ``reg`` with ``bit`` set or cleared."""
    if not 0 <= bit <= 7:
        raise ValueError(f"bit position out of range: {bit}")
    if value:
        return (reg | (1 << bit)) & 0xFF
    return reg & ~(1 << bit) & 0xFF


def set_bits_in_field(reg: int, value: int, mask: int) -> int:
    """Return ``reg`` with the bits under ``mask`` replaced by those of ``value``."""
    return ((reg & ~mask) | (value & mask)) & 0xFF


def value_fits_mask(value: int, mask: int) -> bool:
    """Whether ``value`` has no bits set outside ``mask``."""
    return value & ~mask == 0


class Settings:
    """Bit-field setters for the configuration registers of a sensor."""

    def __init__(self, device: _RegisterDevice) -> None:
        self.device = device

    def _change_bit(self, register: Register, bit: int, value: bool) -> None:
        current = self.device.read_reg(register)
        self.device.write_reg(register, alter_bit_value(current, bit, value))

    def _change_field(self, register: Register, mask: int, value: int) -> None:
        value = int(value)
        if not value_fits_mask(value, mask):
            raise ValueError(
                f"value 0x{value & 0xFFFFFFFF:X} does not fit mask 0x{mask:02X} "
                f"of register {register.name}"
            )
        current = self.device.read_reg(register)
        self.device.write_reg(register, set_bits_in_field(current, value, mask))

    # Interrupt enables

    def interrupt_a_full(self, enable: bool) -> None:
        """Enable or disable the FIFO almost-full interrupt."""
        self._change_bit(Register.INTR_ENABLE_1, _INTR_A_FULL_BIT, enable)

    def interrupt_ppg_ready(self, enable: bool) -> None:
        """Enable or disable the new-FIFO-data-ready interrupt."""
        self._change_bit(Register.INTR_ENABLE_1, _INTR_PPG_RDY_BIT, enable)

    def interrupt_alc_overflow(self, enable: bool) -> None:
        """Enable or disable the ambient light cancellation overflow interrupt."""
        self._change_bit(Register.INTR_ENABLE_1, _INTR_ALC_OVF_BIT, enable)

    def interrupt_die_temp_ready(self, enable: bool) -> None:
        """Enable or disable the die temperature ready interrupt."""
        self._change_bit(Register.INTR_ENABLE_2, _INTR_DIE_TEMP_RDY_BIT, enable)

    # FIFO

    def set_fifo_write_pointer(self, value: int) -> None:
        """Set the FIFO write pointer (0..31)."""
        self._change_field(Register.FIFO_WR_PTR, _FIFO_WR_PTR_MASK, value)

    def set_fifo_overflow_counter(self, value: int) -> None:
        """Set the FIFO overflow counter (0..31)."""
        self._change_field(Register.OVF_COUNTER, _FIFO_OVF_COUNTER_MASK, value)

    def set_fifo_read_pointer(self, value: int) -> None:
        """Set the FIFO read pointer (0..31)."""
        self._change_field(Register.FIFO_RD_PTR, _FIFO_RD_PTR_MASK, value)

    def set_fifo_data_register(self, value: int) -> None:
        """Write the FIFO data register (0..255)."""
        self._change_field(Register.FIFO_DATA, _FIFO_DATA_MASK, value)

    # FIFO configuration

    def set_sample_averaging(self, averaging: SampleAveraging | int) -> None:
        """Set how many samples are averaged into each FIFO entry."""
        self._change_field(Register.FIFO_CONFIG, _FIFO_SAMPLE_AVERAGE_MASK, averaging)

    def set_fifo_rollover_on_full(self, enable: bool) -> None:
        """Enable or disable FIFO rollover when it is full."""
        self._change_bit(Register.FIFO_CONFIG, _FIFO_ROLLOVER_EN_BIT, enable)

    def set_fifo_almost_full_threshold(self, threshold: int) -> None:
        """Set the FIFO almost-full threshold (0..15)."""
        self._change_field(Register.FIFO_CONFIG, _FIFO_A_FULL_MASK, threshold)

    # Mode configuration

    def set_shutdown(self, enable: bool) -> None:
        """Enter or leave power-save shutdown."""
        self._change_bit(Register.MODE_CONFIG, _MODE_SHUTDOWN_BIT, enable)

    def set_reset(self, enable: bool) -> None:
        """Set or clear the reset control bit."""
        self._change_bit(Register.MODE_CONFIG, _MODE_RESET_BIT, enable)

    def set_mode(self, mode: ModeControl | int) -> None:
        """Select the operating mode."""
        self._change_field(Register.MODE_CONFIG, _MODE_MASK, mode)

    # SpO2 configuration

    def set_adc_range(self, adc_range: ADCRange | int) -> None:
        """Set the full-scale range of the SpO2 ADC."""
        self._change_field(Register.SPO2_CONFIG, _SPO2_ADC_RANGE_MASK, adc_range)

    def set_sample_rate(self, rate: SampleRate | int) -> None:
        """Set the SpO2 sample rate."""
        self._change_field(Register.SPO2_CONFIG, _SPO2_SAMPLE_RATE_MASK, rate)

    def set_pulse_width(self, width: PulseWidth | int) -> None:
        """Set the LED pulse width."""
        self._change_field(Register.SPO2_CONFIG, _SPO2_PULSE_WIDTH_MASK, width)

    # LED pulse amplitude

    def set_led1_pulse_amplitude(self, amplitude: int) -> None:
        """Set the LED1 drive current (0..255)."""
        self._change_field(Register.LED1_PA, _LED_PA_MASK, amplitude)

    def set_led2_pulse_amplitude(self, amplitude: int) -> None:
        """Set the LED2 drive current (0..255)."""
        self._change_field(Register.LED2_PA, _LED_PA_MASK, amplitude)

    # Temperature

    def set_temperature_enabled(self, enable: bool) -> None:
        """Start or stop a die temperature conversion."""
        self._change_bit(Register.TEMP_CONFIG, _TEMP_EN_BIT, enable)