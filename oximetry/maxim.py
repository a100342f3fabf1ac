"""Integer peak-detection estimator of heart rate and SpO2.

The infrared signal is inverted so that its valleys become peaks. The
distance between those peaks gives the heart rate, and the AC/DC ratio of
red against infrared between consecutive valleys selects an SpO2 value
from a precomputed calibration table.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import pairwise
from typing import Iterable, Sequence

FS = 25
"""Sampling frequency in Hz."""
BUFFER_SIZE = FS * 4
"""Number of samples in one batch."""
MA4_SIZE = 4
"""Width of the moving-average window."""
BUFFER_SIZE_MA4 = BUFFER_SIZE - MA4_SIZE
"""Number of samples left after the moving average."""
MAX_PEAKS = 15
"""Most peaks the detector records in one pass."""
INVALID = -999
"""Value reported for a measurement that could not be made."""

# SpO2 as -45.060*r*r + 30.354*r + 94.845, indexed by 100*r.
SPO2_TABLE: tuple[float, ...] = (
    94.845, 95.144034, 95.434056, 95.715066, 95.987064, 96.25005, 96.504024,
    96.748986, 96.984936, 97.211874, 97.4298, 97.638714, 97.838616, 98.029506,
    98.211384, 98.38425, 98.548104, 98.702946, 98.848776, 98.985594, 99.1134,
    99.232194, 99.341976, 99.442746, 99.534504, 99.61725, 99.690984, 99.755706,
    99.811416, 99.858114, 99.8958, 99.924474, 99.944136, 99.954786, 99.956424,
    99.94905, 99.932664, 99.907266, 99.872856, 99.829434, 99.777, 99.715554,
    99.645096, 99.565626, 99.477144, 99.37965, 99.273144, 99.157626, 99.033096,
    98.899554, 98.757, 98.605434, 98.444856, 98.275266, 98.096664, 97.90905,
    97.712424, 97.506786, 97.292136, 97.068474, 96.8358, 96.594114, 96.343416,
    96.083706, 95.814984, 95.53725, 95.250504, 94.954746, 94.649976, 94.336194,
    94.0134, 93.681594, 93.340776, 92.990946, 92.632104, 92.26425, 91.887384,
    91.501506, 91.106616, 90.702714, 90.2898, 89.867874, 89.436936, 88.996986,
    88.548024, 88.09005, 87.623064, 87.147066, 86.662056, 86.168034, 85.665,
    85.152954, 84.631896, 84.101826, 83.562744, 83.01465, 82.457544, 81.891426,
    81.316296, 80.732154, 80.139, 79.536834, 78.925656, 78.305466, 77.676264,
    77.03805, 76.390824, 75.734586, 75.069336, 74.395074, 73.7118, 73.019514,
    72.318216, 71.607906, 70.888584, 70.16025, 69.422904, 68.676546, 67.921176,
    67.156794, 66.3834, 65.600994, 64.809576, 64.009146, 63.199704, 62.38125,
    61.553784, 60.717306, 59.871816, 59.017314, 58.1538, 57.281274, 56.399736,
    55.509186, 54.609624, 53.70105, 52.783464, 51.856866, 50.921256, 49.976634,
    49.023, 48.060354, 47.088696, 46.108026, 45.118344, 44.11965, 43.111944,
    42.095226, 41.069496, 40.034754, 38.991, 37.938234, 36.876456, 35.805666,
    34.725864, 33.63705, 32.539224, 31.432386, 30.316536, 29.191674, 28.0578,
    26.914914, 25.763016, 24.602106, 23.432184, 22.25325, 21.065304, 19.868346,
    18.662376, 17.447394, 16.2234, 14.990394, 13.748376, 12.497346, 11.237304,
    9.96825, 8.690184, 7.403106, 6.107016, 4.801914, 3.4878, 2.164674, 0.832536,
    0.0,
)

_MIN_THRESHOLD = 30
_MAX_THRESHOLD = 60
_PEAK_DISTANCE = 4
_MAX_RATIOS = 5
_DC_FLOOR = -16777216


@dataclass(frozen=True)
class MaximResult:
    """Heart rate and SpO2 estimated from one batch of samples."""

    heart_rate: int
    hr_valid: bool
    spo2: float
    spo2_valid: bool


def _i32(value: int) -> int:
    """Wrap an integer to the signed 32-bit range."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _peaks_above(x: Sequence[int], size: int, min_height: int) -> list[int]:
    locs: list[int] = []
    i = 1
    while i < size - 1:
        if x[i] > min_height and x[i] > x[i - 1]:
            width = 1
            while i + width < size and x[i] == x[i + width]:
                width += 1
            right = i + width
            # For flat peaks the location is the left edge.
            if right < len(x) and x[i] > x[right] and len(locs) < MAX_PEAKS:
                locs.append(i)
                i += width + 1
            else:
                i += width
        else:
            i += 1
    return locs


def _find_peaks(
    x: Sequence[int], size: int, min_height: int, min_distance: int, max_num: int
) -> list[int]:
    locs = _peaks_above(x, size, min_height)
    locs = remove_close_peaks(locs, x, min_distance)
    return locs[:max_num]


def sort_indices_descend(x: Sequence[float], indices: Iterable[int]) -> list[int]:
    """Return ``indices`` ordered by decreasing ``x[index]``, ties kept in order."""
    return sorted(indices, key=lambda index: -x[index])


def peaks_above_min_height(x: Sequence[int], min_height: int) -> list[int]:
    """Return locations of peaks higher than ``min_height``.

    A flat peak is reported at its left edge; at most ``MAX_PEAKS`` are found.
    """
    values = list(x)
    return _peaks_above(values, len(values), min_height)


def remove_close_peaks(
    locs: Iterable[int], x: Sequence[int], min_distance: int
) -> list[int]:
    """Drop peaks lying within ``min_distance`` of a higher one.

    Peaks within ``min_distance`` of location -1 (the lag-zero point) are
    dropped too. The survivors are returned in ascending order.
    """
    ordered = sort_indices_descend(x, locs)
    i = -1
    while i < len(ordered):
        reference = -1 if i == -1 else ordered[i]
        ordered = ordered[: i + 1] + [
            loc for loc in ordered[i + 1 :] if abs(loc - reference) > min_distance
        ]
        i += 1
    return sorted(ordered)


def find_peaks(
    x: Sequence[int], min_height: int, min_distance: int, max_num: int
) -> list[int]:
    """Find at most ``max_num`` peaks above ``min_height``, ``min_distance`` apart."""
    values = list(x)
    return _find_peaks(values, len(values), min_height, min_distance, max_num)


def _spo2_ratios(x: list[int], y: list[int], valleys: list[int]) -> list[int]:
    ratios: list[int] = []
    for left, right in pairwise(valleys):
        span = right - left
        if span <= 3:
            continue
        window = range(left, right)
        x_idx = max(window, key=x.__getitem__)
        y_idx = max(window, key=y.__getitem__)
        x_dc_max = max(_DC_FLOOR, x[x_idx])
        y_dc_max = max(_DC_FLOOR, y[y_idx])

        y_ac = _i32((y[right] - y[left]) * (y_idx - left))
        y_ac = y[left] + _cdiv(y_ac, span)
        y_ac = _i32(y[y_idx] - y_ac)
        x_ac = _i32((x[right] - x[left]) * (x_idx - left))
        x_ac = x[left] + _cdiv(x_ac, span)
        x_ac = _i32(x[y_idx] - x_ac)

        numerator = _i32(y_ac * x_dc_max) >> 7
        denominator = _i32(x_ac * y_dc_max) >> 7
        if denominator > 0 and len(ratios) < _MAX_RATIOS and numerator != 0:
            ratios.append(_cdiv(_i32(numerator * 100), denominator))
    return ratios


def heart_rate_and_oxygen_saturation(
    ir: Iterable[int], red: Iterable[int]
) -> MaximResult:
    """Estimate heart rate and SpO2 from ``BUFFER_SIZE`` IR and red samples."""
    ir_samples = [int(v) for v in ir]
    red_samples = [int(v) for v in red]
    if len(ir_samples) != BUFFER_SIZE or len(red_samples) != BUFFER_SIZE:
        raise ValueError(
            f"expected {BUFFER_SIZE} IR and red samples, got "
            f"{len(ir_samples)} and {len(red_samples)}"
        )

    ir_mean = (sum(ir_samples) & 0xFFFFFFFF) // len(ir_samples)
    # Remove DC and invert, so the peak detector finds valleys.
    inverted = [_i32(ir_mean - v) for v in ir_samples]
    averaged = [
        _cdiv(a + b + c + d, MA4_SIZE)
        for a, b, c, d in zip(inverted, inverted[1:], inverted[2:], inverted[3:])
    ][:BUFFER_SIZE_MA4]
    smoothed = averaged + inverted[BUFFER_SIZE_MA4:]

    threshold = _cdiv(sum(smoothed[:BUFFER_SIZE_MA4]), BUFFER_SIZE_MA4)
    threshold = min(max(threshold, _MIN_THRESHOLD), _MAX_THRESHOLD)

    valleys = _find_peaks(
        smoothed, BUFFER_SIZE_MA4, threshold, _PEAK_DISTANCE, MAX_PEAKS
    )
    if len(valleys) >= 2:
        interval = _cdiv(valleys[-1] - valleys[0], len(valleys) - 1)
        heart_rate = _cdiv(FS * 60, interval)
        hr_valid = True
    else:
        heart_rate = INVALID
        hr_valid = False

    if any(loc > BUFFER_SIZE for loc in valleys):
        return MaximResult(heart_rate, hr_valid, float(INVALID), False)

    ratios = sorted(_spo2_ratios(ir_samples, red_samples, valleys))
    padded = ratios + [0] * (_MAX_RATIOS - len(ratios))
    middle = len(ratios) // 2
    if middle > 1:
        ratio_average = _cdiv(padded[middle - 1] + padded[middle], 2)
    else:
        ratio_average = padded[middle]

    if 2 < ratio_average < len(SPO2_TABLE):
        return MaximResult(heart_rate, hr_valid, SPO2_TABLE[ratio_average], True)
    return MaximResult(heart_rate, hr_valid, float(INVALID), False)