"""Heart rate and SpO2 estimation from PPG signals, with a MAX30102 driver, settings and self-test."""

__version__ = "0.1.0"
__all__ = ["driver", "maxim", "rf", "selftest", "settings"]