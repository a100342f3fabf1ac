[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "oximetry"
version = "0.1.0"
description = "Heart rate and SpO2 estimation from PPG signals, with a register-level MAX30102 driver"
requires-python = ">=3.10"
dependencies = []
keywords = ["spo2", "heart rate", "ppg", "pulse oximetry", "max30102", "i2c"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["oximetry"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
