"""Autocorrelation-based estimator of heart rate and SpO2.

Both signals have their mean and linear trend removed. The heart rate comes
from the first strong peak of the infrared autocorrelation. SpO2 comes from
the ratio of the RMS variations of red and infrared, each normalised by its
DC level. The estimate is only trusted when red and infrared are strongly
correlated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

ST = 4
"""Sampling time of one batch, in seconds."""
FS = 25
"""Sampling frequency in Hz."""
BUFFER_SIZE = FS * ST
"""Number of samples in one batch."""
SUM_X2 = 83325.0
"""Sum of squares of the mean-centred sample indices of one batch."""
MAX_HR = 180
"""Highest heart rate accepted, in beats per minute."""
MIN_HR = 40
"""Lowest heart rate accepted, in beats per minute."""
MIN_AUTOCORRELATION_RATIO = 0.5
"""Least autocorrelation, relative to lag 0, of a periodic signal."""
MIN_PEARSON_CORRELATION = 0.8
"""Least correlation between red and infrared of a usable batch."""
FS60 = FS * 60
"""Conversion factor from samples per beat to beats per minute."""
LOWEST_PERIOD = FS60 // MAX_HR
"""Shortest beat period searched, in samples."""
HIGHEST_PERIOD = FS60 // MIN_HR
"""Longest beat period searched, in samples."""
MEAN_X = (BUFFER_SIZE - 1) / 2.0
"""Mean of the sample indices 0 .. BUFFER_SIZE-1."""
INVALID = -999
"""Value reported for a measurement that could not be made."""


@dataclass(frozen=True)
class RFResult:
    """Heart rate and SpO2 estimated from one batch of samples.

    ``ratio`` is the autocorrelation at the detected period relative to lag 0,
    or NaN when no periodicity search was made. ``correl`` is the Pearson
    correlation between the detrended red and infrared signals.
    """

    heart_rate: int
    hr_valid: bool
    spo2: float
    spo2_valid: bool
    ratio: float
    correl: float


def linear_regression_beta(x: Sequence[float], xmean: float, sum_x2: float) -> float:
    """Slope of ``x`` regressed on the mean-centred indices ``-xmean .. xmean``.

    ``sum_x2`` is the sum of squares of those centred indices.
    """
    count = int(2 * xmean) + 1
    if len(x) < count:
        raise ValueError(f"need at least {count} samples, got {len(x)}")
    return sum((k - xmean) * value for k, value in zip(range(count), x)) / sum_x2


def autocorrelation(x: Sequence[float], lag: int) -> float:
    """Mean product of ``x`` with itself shifted by ``lag`` samples.

    Returns 0.0 when ``lag`` is not shorter than ``x``.
    """
    if lag < 0:
        raise ValueError(f"lag must not be negative, got {lag}")
    overlap = len(x) - lag
    if overlap <= 0:
        return 0.0
    return sum(a * b for a, b in zip(x[:overlap], x[lag:])) / overlap


def initialize_periodicity_search(
    x: Sequence[float],
    last_periodicity: int,
    max_distance: int,
    min_aut_ratio: float,
    aut_lag0: float,
) -> int:
    """Locate the neighbourhood of the first autocorrelation peak.

    Walks right from ``last_periodicity`` two lags at a time, first past any
    initial downward slope, then until the autocorrelation reaches
    ``min_aut_ratio`` of ``aut_lag0``. Returns the lag found, or 0 if
    ``max_distance`` is passed first.
    """
    lag = last_periodicity
    aut = aut_right = autocorrelation(x, lag)
    if aut / aut_lag0 >= min_aut_ratio:
        # Still on the lag-zero hump: continue down to a local minimum.
        while True:
            aut = aut_right
            lag += 2
            aut_right = autocorrelation(x, lag)
            if not (
                aut_right / aut_lag0 >= min_aut_ratio
                and aut_right < aut
                and lag <= max_distance
            ):
                break
        if lag > max_distance:
            return 0
    while True:
        lag += 2
        aut_right = autocorrelation(x, lag)
        if not (aut_right / aut_lag0 < min_aut_ratio and lag <= max_distance):
            break
    return 0 if lag > max_distance else lag


def signal_periodicity(
    x: Sequence[float],
    last_periodicity: int,
    min_distance: int,
    max_distance: int,
    min_aut_ratio: float,
    aut_lag0: float,
) -> tuple[int, float]:
    """Refine the period of ``x`` by hill-climbing its autocorrelation.

    Starts at ``last_periodicity`` and moves left, or else right, while the
    autocorrelation grows, staying within ``min_distance .. max_distance``.
    Returns ``(period, ratio)`` where ``ratio`` is the autocorrelation at the
    peak relative to ``aut_lag0``; the period is 0 when the signal is not
    periodic enough.
    """
    lag = last_periodicity
    aut = aut_save = autocorrelation(x, lag)
    left_limit_reached = False

    aut_left = aut
    while True:
        aut = aut_left
        lag -= 1
        aut_left = autocorrelation(x, lag)
        if not (aut_left > aut and lag >= min_distance):
            break
    if lag < min_distance:
        left_limit_reached = True
        lag = last_periodicity
        aut = aut_save
    else:
        lag += 1

    if lag == last_periodicity:
        # No progress to the left: walk right instead.
        aut_right = aut
        while True:
            aut = aut_right
            lag += 1
            aut_right = autocorrelation(x, lag)
            if not (aut_right > aut and lag <= max_distance):
                break
        lag = 0 if lag > max_distance else lag - 1
        if lag == last_periodicity and left_limit_reached:
            lag = 0

    ratio = aut / aut_lag0
    if ratio < min_aut_ratio:
        lag = 0
    return lag, ratio


def rms(x: Sequence[float]) -> tuple[float, float]:
    """Return ``(root_mean_square, mean_square)`` of ``x``.

    The mean square equals the autocorrelation at lag 0.
    """
    if not x:
        raise ValueError("rms of an empty sequence")
    mean_square = sum(value * value for value in x) / len(x)
    return math.sqrt(mean_square), mean_square


def pearson_product(x: Sequence[float], y: Sequence[float]) -> float:
    """Mean of the element-wise products of ``x`` and ``y``."""
    if len(x) != len(y):
        raise ValueError(f"length mismatch: {len(x)} and {len(y)}")
    if not x:
        raise ValueError("product of empty sequences")
    return sum(a * b for a, b in zip(x, y)) / len(x)


def _detrend(samples: list[float]) -> tuple[float, list[float]]:
    mean = sum(samples) / len(samples)
    centred = [value - mean for value in samples]
    beta = linear_regression_beta(centred, MEAN_X, SUM_X2)
    return mean, [value - beta * (k - MEAN_X) for k, value in enumerate(centred)]


class RFEstimator:
    """Stateful estimator that remembers the last detected beat period."""

    def __init__(self) -> None:
        self.last_peak_interval = LOWEST_PERIOD

    def reset(self) -> None:
        """Forget the last detected period and search from scratch next time."""
        self.last_peak_interval = LOWEST_PERIOD

    def _invalid(self, ratio: float, correl: float) -> RFResult:
        self.last_peak_interval = LOWEST_PERIOD
        return RFResult(INVALID, False, float(INVALID), False, ratio, correl)

    def estimate(self, ir: Iterable[float], red: Iterable[float]) -> RFResult:
        """Estimate heart rate and SpO2 from ``BUFFER_SIZE`` IR and red samples."""
        ir_samples = [float(v) for v in ir]
        red_samples = [float(v) for v in red]
        if len(ir_samples) != BUFFER_SIZE or len(red_samples) != BUFFER_SIZE:
            raise ValueError(
                f"expected {BUFFER_SIZE} IR and red samples, got "
                f"{len(ir_samples)} and {len(red_samples)}"
            )

        ir_mean, x = _detrend(ir_samples)
        red_mean, y = _detrend(red_samples)

        y_ac, red_sumsq = rms(y)
        x_ac, ir_sumsq = rms(x)
        scale = math.sqrt(red_sumsq * ir_sumsq)
        correl = pearson_product(x, y) / scale if scale else math.nan

        ratio = math.nan
        if correl >= MIN_PEARSON_CORRELATION:
            if self.last_peak_interval == LOWEST_PERIOD:
                self.last_peak_interval = initialize_periodicity_search(
                    x,
                    self.last_peak_interval,
                    HIGHEST_PERIOD,
                    MIN_AUTOCORRELATION_RATIO,
                    ir_sumsq,
                )
            if self.last_peak_interval != 0:
                self.last_peak_interval, ratio = signal_periodicity(
                    x,
                    self.last_peak_interval,
                    LOWEST_PERIOD,
                    HIGHEST_PERIOD,
                    MIN_AUTOCORRELATION_RATIO,
                    ir_sumsq,
                )
        else:
            self.last_peak_interval = 0

        if self.last_peak_interval == 0:
            return self._invalid(ratio, correl)

        heart_rate = int(FS60 / self.last_peak_interval)

        denominator = x_ac * red_mean
        xy_ratio = (y_ac * ir_mean) / denominator if denominator else math.inf
        if 0.02 < xy_ratio < 1.84:
            spo2 = (-45.060 * xy_ratio + 30.354) * xy_ratio + 94.845
            return RFResult(heart_rate, True, spo2, True, ratio, correl)
        return RFResult(heart_rate, True, float(INVALID), False, ratio, correl)