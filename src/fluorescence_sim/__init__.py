"""
fluorescence_sim
================================================
Simulates how a fluorescence microscope degrades an ideal specimen image:
    normalize → optics (Gaussian PSF) → sensor (shot noise, gain, offset,
    read noise) → bit-depth clipping
Subpackages follow the physical stages: optics, sensor, scenes, utils.
The pipeline module ties them together behind FluorescenceSimulator.
"""

import logging

from fluorescence_sim.errors import (
    InvalidDimensionsError,
    NumericOverflowError,
    ParameterOutOfRangeError,
    SessionReleasedError,
    SimulationError,
)
from fluorescence_sim.pipeline import (
    FluorescenceSimulator,
    PipelineResult,
    SessionHandle,
    run_once,
)
from fluorescence_sim.sensor.random_variates import RandomVariates
from fluorescence_sim.sensor.sensor_model import (
    AcquisitionParameters,
    gain_factor_from_slider,
    parameters_from_dict,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AcquisitionParameters",
    "FluorescenceSimulator",
    "InvalidDimensionsError",
    "NumericOverflowError",
    "ParameterOutOfRangeError",
    "PipelineResult",
    "RandomVariates",
    "SessionHandle",
    "SessionReleasedError",
    "SimulationError",
    "gain_factor_from_slider",
    "parameters_from_dict",
    "run_once",
]
