import pytest

from oximetry.driver import MAX30102, Register
from oximetry.settings import (
    ADCRange,
    ModeControl,
    PulseWidth,
    SampleAveraging,
    SampleRate,
    Settings,
    alter_bit_value,
    set_bits_in_field,
    value_fits_mask,
)


class FakeBus:
    """Register memory behind a single I2C address."""

    def __init__(self):
        self.registers = {}
        self.pointer = 0
        self.writes = []

    def write(self, address, data):
        self.pointer = data[0]
        if len(data) > 1:
            self.registers[data[0]] = data[1]
            self.writes.append((data[0], data[1]))

    def read(self, address, count):
        return bytes(self.registers.get(self.pointer + i, 0) for i in range(count))


@pytest.fixture
def bus():
    return FakeBus()


@pytest.fixture
def device(bus):
    return MAX30102(bus, sleep=lambda seconds: None)


@pytest.fixture
def settings(device):
    return Settings(device)


def test_alter_bit_value_sets_and_clears():
    assert alter_bit_value(0x60, 7, True) == 0xE0
    assert alter_bit_value(0xE0, 7, False) == 0x60
    assert alter_bit_value(0x80, 7, True) == 0x80


def test_alter_bit_value_rejects_bad_bit():
    with pytest.raises(ValueError):
        alter_bit_value(0x00, 8, True)


def test_set_bits_in_field():
    assert set_bits_in_field(0x40, 0x0F, 0x0F) == 0x4F
    assert set_bits_in_field(0x4F, 0x00, 0x0F) == 0x40
    assert set_bits_in_field(0x4F, 0xFF, 0x00) == 0x4F


def test_value_fits_mask():
    assert value_fits_mask(0x1F, 0x1F)
    assert value_fits_mask(0x00, 0x1F)
    assert not value_fits_mask(0x20, 0x1F)


def test_interrupt_enable_1(settings, device):
    device.write_reg(Register.INTR_ENABLE_1, 0x00)
    settings.interrupt_a_full(True)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x80
    settings.interrupt_a_full(True)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x80
    settings.interrupt_a_full(False)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x00
    settings.interrupt_ppg_ready(True)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x40
    settings.interrupt_ppg_ready(False)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x00
    settings.interrupt_alc_overflow(True)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x20
    settings.interrupt_alc_overflow(False)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x00


def test_multiple_interrupts(settings, device):
    device.write_reg(Register.INTR_ENABLE_1, 0x00)
    settings.interrupt_a_full(True)
    settings.interrupt_ppg_ready(True)
    settings.interrupt_alc_overflow(True)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0xE0
    settings.interrupt_a_full(False)
    assert device.read_reg(Register.INTR_ENABLE_1) == 0x60


def test_interrupt_enable_2(settings, device):
    device.write_reg(Register.INTR_ENABLE_2, 0x00)
    settings.interrupt_die_temp_ready(True)
    assert device.read_reg(Register.INTR_ENABLE_2) == 0x02
    settings.interrupt_die_temp_ready(False)
    assert device.read_reg(Register.INTR_ENABLE_2) == 0x00


@pytest.mark.parametrize(
    "mode, expected",
    [
        (ModeControl.MULTI_LED, 0x07),
        (ModeControl.SPO2, 0x03),
        (ModeControl.HEART_RATE, 0x02),
    ],
)
def test_set_mode(settings, device, mode, expected):
    settings.set_mode(mode)
    assert device.read_reg(Register.MODE_CONFIG) == expected


def test_mode_sequence(settings, device):
    settings.set_mode(ModeControl.MULTI_LED)
    settings.set_mode(ModeControl.SPO2)
    settings.set_mode(ModeControl.HEART_RATE)
    assert device.read_reg(Register.MODE_CONFIG) == 0x02


def test_set_mode_rejects_value_outside_field(settings, bus):
    with pytest.raises(ValueError):
        settings.set_mode(0x40)
    assert bus.writes == []


def test_shutdown_keeps_mode_bits(settings, device):
    settings.set_mode(ModeControl.SPO2)
    settings.set_shutdown(True)
    value = device.read_reg(Register.MODE_CONFIG)
    assert value & 0x80
    assert value & 0x07 == ModeControl.SPO2
    settings.set_shutdown(False)
    assert device.read_reg(Register.MODE_CONFIG) == ModeControl.SPO2


def test_reset_bit(settings, device):
    device.write_reg(Register.MODE_CONFIG, 0x00)
    settings.set_reset(True)
    assert device.read_reg(Register.MODE_CONFIG) == 0x40
    settings.set_reset(False)
    assert device.read_reg(Register.MODE_CONFIG) == 0x00


def test_fifo_write_pointer(settings, device, bus):
    device.write_reg(Register.FIFO_WR_PTR, 0x00)
    settings.set_fifo_write_pointer(0x00)
    assert device.read_reg(Register.FIFO_WR_PTR) == 0x00
    settings.set_fifo_write_pointer(0x1F)
    assert device.read_reg(Register.FIFO_WR_PTR) == 0x1F
    writes_before = len(bus.writes)
    with pytest.raises(ValueError):
        settings.set_fifo_write_pointer(0x20)
    assert device.read_reg(Register.FIFO_WR_PTR) == 0x1F
    assert len(bus.writes) == writes_before
    settings.set_fifo_write_pointer(0x00)
    assert device.read_reg(Register.FIFO_WR_PTR) == 0x00


def test_fifo_overflow_counter(settings, device):
    device.write_reg(Register.OVF_COUNTER, 0x1F)
    settings.set_fifo_overflow_counter(0x00)
    assert device.read_reg(Register.OVF_COUNTER) == 0x00


def test_fifo_read_pointer(settings, device):
    device.write_reg(Register.FIFO_RD_PTR, 0x00)
    settings.set_fifo_read_pointer(0x00)
    assert device.read_reg(Register.FIFO_RD_PTR) == 0x00
    settings.set_fifo_read_pointer(0x1F)
    assert device.read_reg(Register.FIFO_RD_PTR) == 0x1F
    with pytest.raises(ValueError):
        settings.set_fifo_read_pointer(0x20)
    assert device.read_reg(Register.FIFO_RD_PTR) == 0x1F


def test_fifo_data_register(settings, device):
    settings.set_fifo_data_register(0xFF)
    assert device.read_reg(Register.FIFO_DATA) == 0xFF
    with pytest.raises(ValueError):
        settings.set_fifo_data_register(0x100)


def test_fifo_configuration(settings, device):
    device.write_reg(Register.FIFO_CONFIG, 0x00)
    settings.set_sample_averaging(SampleAveraging.NO_AVERAGING)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x00
    settings.set_sample_averaging(SampleAveraging.AVG_2)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x20
    settings.set_sample_averaging(SampleAveraging.AVG_4)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x40
    settings.set_fifo_rollover_on_full(True)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x50
    settings.set_fifo_rollover_on_full(False)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x40
    settings.set_fifo_almost_full_threshold(0x00)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x40
    settings.set_fifo_almost_full_threshold(0x0F)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x4F


def test_almost_full_threshold_out_of_range(settings, device):
    device.write_reg(Register.FIFO_CONFIG, 0x40)
    with pytest.raises(ValueError):
        settings.set_fifo_almost_full_threshold(0x10)
    assert device.read_reg(Register.FIFO_CONFIG) == 0x40


def test_sample_averaging_rejects_low_bits(settings):
    with pytest.raises(ValueError):
        settings.set_sample_averaging(0x01)


@pytest.mark.parametrize(
    "adc_range, expected",
    [
        (ADCRange.RANGE_2048, 0x00),
        (ADCRange.RANGE_4096, 0x20),
        (ADCRange.RANGE_8192, 0x40),
        (ADCRange.RANGE_16384, 0x60),
    ],
)
def test_adc_range(settings, device, adc_range, expected):
    device.write_reg(Register.SPO2_CONFIG, 0x00)
    settings.set_adc_range(adc_range)
    assert device.read_reg(Register.SPO2_CONFIG) == expected


@pytest.mark.parametrize(
    "rate, expected",
    [
        (SampleRate.RATE_50, 0x00),
        (SampleRate.RATE_100, 0x04),
        (SampleRate.RATE_200, 0x08),
        (SampleRate.RATE_400, 0x0C),
        (SampleRate.RATE_800, 0x10),
        (SampleRate.RATE_1000, 0x14),
        (SampleRate.RATE_1600, 0x18),
        (SampleRate.RATE_3200, 0x1C),
    ],
)
def test_sample_rate(settings, device, rate, expected):
    device.write_reg(Register.SPO2_CONFIG, 0x00)
    settings.set_sample_rate(rate)
    assert device.read_reg(Register.SPO2_CONFIG) == expected


@pytest.mark.parametrize(
    "width, expected",
    [
        (PulseWidth.PW_69, 0x00),
        (PulseWidth.PW_118, 0x01),
        (PulseWidth.PW_215, 0x02),
        (PulseWidth.PW_411, 0x03),
    ],
)
def test_pulse_width(settings, device, width, expected):
    device.write_reg(Register.SPO2_CONFIG, 0x00)
    settings.set_pulse_width(width)
    assert device.read_reg(Register.SPO2_CONFIG) == expected


def test_spo2_fields_combine(settings, device):
    device.write_reg(Register.SPO2_CONFIG, 0x00)
    settings.set_adc_range(ADCRange.RANGE_4096)
    settings.set_sample_rate(SampleRate.RATE_100)
    settings.set_pulse_width(PulseWidth.PW_411)
    assert device.read_reg(Register.SPO2_CONFIG) == 0x27


def test_led_pulse_amplitudes(settings, device):
    settings.set_led1_pulse_amplitude(0x00)
    assert device.read_reg(Register.LED1_PA) == 0x00
    settings.set_led1_pulse_amplitude(0xFF)
    assert device.read_reg(Register.LED1_PA) == 0xFF
    settings.set_led2_pulse_amplitude(0x00)
    assert device.read_reg(Register.LED2_PA) == 0x00
    settings.set_led2_pulse_amplitude(0xFF)
    assert device.read_reg(Register.LED2_PA) == 0xFF


def test_led_amplitude_out_of_range(settings, bus):
    with pytest.raises(ValueError):
        settings.set_led1_pulse_amplitude(0x100)
    with pytest.raises(ValueError):
        settings.set_led2_pulse_amplitude(-1)
    assert bus.writes == []


def test_temperature_enabled(settings, device):
    device.write_reg(Register.TEMP_CONFIG, 0x00)
    settings.set_temperature_enabled(True)
    assert device.read_reg(Register.TEMP_CONFIG) == 1
    settings.set_temperature_enabled(False)
    assert device.read_reg(Register.TEMP_CONFIG) == 0x00