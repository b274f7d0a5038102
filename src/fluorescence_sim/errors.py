"""
errors.py — exception types raised by the simulator core.

All validation happens at the API boundary (configure / apply / the stage
functions) and is reported synchronously. An all-zero input image is not an
error: normalization is simply skipped.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for every error raised by fluorescence_sim."""


class InvalidDimensionsError(SimulationError, ValueError):
    """Buffer is not 2-D, or its shape does not match the session noise field."""


class ParameterOutOfRangeError(SimulationError, ValueError):
    """An acquisition parameter lies outside its physical (or slider) range."""


class NumericOverflowError(SimulationError, ArithmeticError):
    """A Poisson mean is not finite, so no photon count can be drawn."""


class SessionReleasedError(SimulationError, RuntimeError):
    """The session handle was released or never attached to this simulator."""
