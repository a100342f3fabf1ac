"""Self-test of the field setters against a live or simulated sensor.

Each check applies one setting, reads the register back and compares it with
the value the datasheet prescribes. Some checks pass values that do not fit
their field: the setter must refuse them and leave the register unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .driver import Register
from .settings import (
    ADCRange,
    ModeControl,
    PulseWidth,
    SampleAveraging,
    SampleRate,
    Settings,
)


class _RegisterDevice(Protocol):
    def read_reg(self, register: int) -> int: ...

    def write_reg(self, register: int, value: int) -> None: ...


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one setting check.

    ``actual`` is None when the setter failed and the register was not read.
    ``message`` is empty for a passed check.
    """

    name: str
    expected: int
    actual: int | None
    passed: bool
    message: str = ""


@dataclass
class SelfTestReport:
    """All check results of one self-test run, in the order they ran."""

    results: list[CheckResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of checks run."""
        return len(self.results)

    def passed(self) -> int:
        """Number of checks that passed."""
        return sum(1 for result in self.results if result.passed)

    def failed(self) -> int:
        """Number of checks that failed."""
        return sum(1 for result in self.results if not result.passed)

    def summary(self) -> str:
        """Totals of the run, one per line."""
        return (
            f"Total tests: {self.total}\n"
            f"Passed: {self.passed()}\n"
            f"Failed: {self.failed()}"
        )


def _run_check(
    device: _RegisterDevice,
    name: str,
    setter: Callable[[Any], None],
    value: Any,
    register: Register,
    expected: int,
    expect_success: bool,
) -> CheckResult:
    try:
        setter(value)
    except ValueError:
        if expect_success:
            return CheckResult(
                name,
                expected,
                None,
                False,
                f"Setting {name} failed. Function call failed.",
            )
    actual = device.read_reg(register)
    if actual != expected:
        return CheckResult(
            name,
            expected,
            actual,
            False,
            f"Setting {name} failed. Expected: {expected:x}, got: {actual:x}",
        )
    return CheckResult(name, expected, actual, True)


def run_self_test(device: _RegisterDevice) -> SelfTestReport:
    """Exercise every field setter on ``device`` and report the results."""
    settings = Settings(device)
    report = SelfTestReport()

    def check(
        name: str,
        setter: Callable[[Any], None],
        value: Any,
        register: Register,
        expected: int,
        expect_success: bool = True,
    ) -> None:
        report.results.append(
            _run_check(device, name, setter, value, register, expected, expect_success)
        )

    # Interrupt enable 1
    device.write_reg(Register.INTR_ENABLE_1, 0x00)
    check("interruptAFull True", settings.interrupt_a_full, True, Register.INTR_ENABLE_1, 0x80)
    check("interruptAFull True", settings.interrupt_a_full, True, Register.INTR_ENABLE_1, 0x80)
    check("interruptAFull False", settings.interrupt_a_full, False, Register.INTR_ENABLE_1, 0x00)
    check("interruptPPGReady True", settings.interrupt_ppg_ready, True, Register.INTR_ENABLE_1, 0x40)
    check("interruptPPGReady False", settings.interrupt_ppg_ready, False, Register.INTR_ENABLE_1, 0x00)
    check("interruptALCOverflow True", settings.interrupt_alc_overflow, True, Register.INTR_ENABLE_1, 0x20)
    check("interruptALCOverflow False", settings.interrupt_alc_overflow, False, Register.INTR_ENABLE_1, 0x00)

    settings.interrupt_a_full(True)
    settings.interrupt_ppg_ready(True)
    check("multipleInter True", settings.interrupt_alc_overflow, True, Register.INTR_ENABLE_1, 0xE0)
    check("removingInterruptAFull", settings.interrupt_a_full, False, Register.INTR_ENABLE_1, 0x60)

    # Interrupt enable 2
    device.write_reg(Register.INTR_ENABLE_2, 0x00)
    check("interruptDIETempReady True", settings.interrupt_die_temp_ready, True, Register.INTR_ENABLE_2, 0x02)
    check("interruptDIETempReady False", settings.interrupt_die_temp_ready, False, Register.INTR_ENABLE_2, 0x00)

    # Mode configuration
    check("setModeControl MULTI_LED", settings.set_mode, ModeControl.MULTI_LED, Register.MODE_CONFIG, 0x07)
    check("setModeControl SPO2", settings.set_mode, ModeControl.SPO2, Register.MODE_CONFIG, 0x03)
    check("setModeControl HEART_RATE", settings.set_mode, ModeControl.HEART_RATE, Register.MODE_CONFIG, 0x02)

    # FIFO write pointer
    device.write_reg(Register.FIFO_WR_PTR, 0x00)
    check("setFifoWritePointer 0x00", settings.set_fifo_write_pointer, 0x00, Register.FIFO_WR_PTR, 0x00)
    check("setFifoWritePointer 0x1F", settings.set_fifo_write_pointer, 0x1F, Register.FIFO_WR_PTR, 0x1F)
    check(
        "setFifoWritePointer 0x20 (saturates to 0x1F. Function call should fail!)",
        settings.set_fifo_write_pointer,
        0x20,
        Register.FIFO_WR_PTR,
        0x1F,
        expect_success=False,
    )
    check("setFifoWritePointer 0x00 again", settings.set_fifo_write_pointer, 0x00, Register.FIFO_WR_PTR, 0x00)

    # FIFO overflow counter
    device.write_reg(Register.OVF_COUNTER, 0x00)
    check("setFifoOverflowCounter 0x00", settings.set_fifo_overflow_counter, 0x00, Register.OVF_COUNTER, 0x00)

    # FIFO read pointer
    device.write_reg(Register.FIFO_RD_PTR, 0x00)
    check("setFifoReadPointer 0x00", settings.set_fifo_read_pointer, 0x00, Register.FIFO_RD_PTR, 0x00)
    check("setFifoReadPointer 0x1F", settings.set_fifo_read_pointer, 0x1F, Register.FIFO_RD_PTR, 0x1F)
    check(
        "setFifoReadPointer 0x20 (saturates to 0x1F. Function call should fail!)",
        settings.set_fifo_read_pointer,
        0x20,
        Register.FIFO_RD_PTR,
        0x1F,
        expect_success=False,
    )

    # FIFO configuration
    device.write_reg(Register.FIFO_CONFIG, 0x00)
    check("SampleAveraging NO_AVERAGING", settings.set_sample_averaging, SampleAveraging.NO_AVERAGING, Register.FIFO_CONFIG, 0x00)
    check("SampleAveraging AVG_2", settings.set_sample_averaging, SampleAveraging.AVG_2, Register.FIFO_CONFIG, 0x20)
    check("SampleAveraging AVG_4", settings.set_sample_averaging, SampleAveraging.AVG_4, Register.FIFO_CONFIG, 0x40)
    check("FIFO RollOver Enabled", settings.set_fifo_rollover_on_full, True, Register.FIFO_CONFIG, 0x50)
    check("FIFO RollOver Disabled", settings.set_fifo_rollover_on_full, False, Register.FIFO_CONFIG, 0x40)
    check("FIFO Almost Full Threshold 0x00", settings.set_fifo_almost_full_threshold, 0x00, Register.FIFO_CONFIG, 0x40)
    check("FIFO Almost Full Threshold 0x0F", settings.set_fifo_almost_full_threshold, 0x0F, Register.FIFO_CONFIG, 0x4F)

    # SpO2 configuration
    device.write_reg(Register.SPO2_CONFIG, 0x00)
    check("SPO2 ADC_RANGE_2048", settings.set_adc_range, ADCRange.RANGE_2048, Register.SPO2_CONFIG, 0x00)
    check("SPO2 ADC_RANGE_4096", settings.set_adc_range, ADCRange.RANGE_4096, Register.SPO2_CONFIG, 0x20)
    check("SPO2 ADC_RANGE_8192", settings.set_adc_range, ADCRange.RANGE_8192, Register.SPO2_CONFIG, 0x40)
    check("SPO2 ADC_RANGE_16384", settings.set_adc_range, ADCRange.RANGE_16384, Register.SPO2_CONFIG, 0x60)

    device.write_reg(Register.SPO2_CONFIG, 0x00)
    for hertz, rate, expected in (
        (50, SampleRate.RATE_50, 0x00),
        (100, SampleRate.RATE_100, 0x04),
        (200, SampleRate.RATE_200, 0x08),
        (400, SampleRate.RATE_400, 0x0C),
        (800, SampleRate.RATE_800, 0x10),
        (1000, SampleRate.RATE_1000, 0x14),
        (1600, SampleRate.RATE_1600, 0x18),
        (3200, SampleRate.RATE_3200, 0x1C),
    ):
        check(f"SPO2 SampleRate {hertz}Hz", settings.set_sample_rate, rate, Register.SPO2_CONFIG, expected)

    device.write_reg(Register.SPO2_CONFIG, 0x00)
    for micros, width, expected in (
        (69, PulseWidth.PW_69, 0x00),
        (118, PulseWidth.PW_118, 0x01),
        (215, PulseWidth.PW_215, 0x02),
        (411, PulseWidth.PW_411, 0x03),
    ):
        check(f"SPO2 PulseWidth {micros}us", settings.set_pulse_width, width, Register.SPO2_CONFIG, expected)

    # LED configuration
    check("LED1 Pulse Amplitude 0x00", settings.set_led1_pulse_amplitude, 0x00, Register.LED1_PA, 0x00)
    check("LED1 Pulse Amplitude 0xFF", settings.set_led1_pulse_amplitude, 0xFF, Register.LED1_PA, 0xFF)
    check("LED2 Pulse Amplitude 0x00", settings.set_led2_pulse_amplitude, 0x00, Register.LED2_PA, 0x00)
    check("LED2 Pulse Amplitude 0xFF", settings.set_led2_pulse_amplitude, 0xFF, Register.LED2_PA, 0xFF)

    return report