# oximetry

Heart rate and blood-oxygen saturation (SpO2) estimation from the red and
infrared photoplethysmography (PPG) signals of a pulse oximeter, plus a
register-level driver and field-level settings for the MAX30102 sensor.

Both estimators work on batches of 100 samples (4 seconds at 25 Hz) and
raise `ValueError` if either signal has a different length.

- `oximetry.maxim` is an integer valley-detection estimator. It inverts and
  smooths the IR signal, finds its valleys, derives the heart rate from
  their spacing and reads SpO2 from a calibration table (`SPO2_TABLE`)
  indexed by the median red/IR AC-to-DC ratio.
- `oximetry.rf` is an autocorrelation estimator. It removes mean and linear
  trend from both signals, requires a red/IR Pearson correlation of at least
  0.8, finds the beat period from the IR autocorrelation and computes SpO2
  from the RMS ratio of the two signals.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Estimating heart rate and SpO2

```python
from oximetry.maxim import heart_rate_and_oxygen_saturation

result = heart_rate_and_oxygen_saturation(ir_samples, red_samples)
result.heart_rate, result.hr_valid, result.spo2, result.spo2_valid
```

`heart_rate_and_oxygen_saturation` returns a frozen `MaximResult`.

The autocorrelation estimator remembers the last detected period between
batches, so it is an object:

```python
from oximetry.rf import RFEstimator

estimator = RFEstimator()
for ir_batch, red_batch in batches:
    result = estimator.estimate(ir_batch, red_batch)
    ...
estimator.reset()  # search for the period from scratch next time
```

`estimate` returns a frozen `RFResult` with `heart_rate`, `hr_valid`,
`spo2`, `spo2_valid`, and two quality figures: `ratio` (autocorrelation at
the detected period relative to lag 0, NaN when no search was made) and
`correl` (the red/IR Pearson correlation).

A value that cannot be computed is reported as `-999` (`INVALID`) with its
`*_valid` flag set to `False`: when too few valleys are found, when the
signal is aperiodic, when red and IR are too weakly correlated, or when the
ratio falls outside the calibrated range.

The building blocks are public too:

- in `oximetry.maxim`: `find_peaks`, `peaks_above_min_height`,
  `remove_close_peaks` and `sort_indices_descend`;
- in `oximetry.rf`: `linear_regression_beta`, `autocorrelation`, `rms`,
  `pearson_product`, `initialize_periodicity_search` and
  `signal_periodicity`.

## Talking to a MAX30102

The driver needs an I2C bus object with two methods, as described by the
`oximetry.driver.I2CBus` protocol:

- `write(address, data)` sends bytes to the device;
- `read(address, count)` returns `count` bytes from the device.

```python
import time
from oximetry.driver import MAX30102, Register

sensor = MAX30102(bus)          # address 0x57, time.sleep by default
sensor.initialize()             # reset, wait 1 s, configure for SpO2 mode
red, ir = sensor.read_fifo()    # two 18-bit samples
temperature = sensor.read_temperature()
print(temperature.celsius)
part_id = sensor.read_reg(Register.PART_ID)
```

`write_reg` and `read_reg` raise `ValueError` for a register or value
outside 0..255; a read that returns fewer bytes than asked raises `OSError`.

`oximetry.settings.Settings` changes single bits or bit fields of the
configuration registers, reading the register first and leaving its other
bits as they were. A value that does not fit its field raises `ValueError`
and nothing is written. The field values are enumerations:
`SampleAveraging`, `ModeControl`, `ADCRange`, `SampleRate` and `PulseWidth`.

```python
from oximetry.settings import Settings, SampleRate, PulseWidth

settings = Settings(sensor)
settings.set_sample_rate(SampleRate.RATE_100)
settings.set_pulse_width(PulseWidth.PW_411)
settings.interrupt_ppg_ready(True)
```

The helpers `alter_bit_value`, `set_bits_in_field` and `value_fits_mask`
do the bit arithmetic on plain integers.

## Device self-test

`oximetry.selftest.run_self_test(device)` works through the settings on a
connected sensor (or any object with `read_reg` and `write_reg`). After
each change it reads the register back and compares it with the expected
value; a few checks pass out-of-range values that must be refused. It
returns a `SelfTestReport` whose `results` is a list of `CheckResult`:

```python
from oximetry.selftest import run_self_test

report = run_self_test(sensor)
print(report.summary())
for check in report.results:
    if not check.passed:
        print(check.message)
```

## What this package does not do

It has no command-line program and no acquisition loop: collecting batches
of samples from the sensor and feeding them to an estimator is left to the
caller. It also ships no I2C bus implementation; one must be supplied.