"""
sensor_model.py — photon detection, gain, offset, read noise and clipping.

WHAT THIS MODULE DOES
---------------------
Turns a blurred, max-normalized specimen image into detector output:
  1) Exposure: multiply by exposure time (photon count ∝ integration time)
  2) Shot noise: replace every mean by a Poisson photon count
  3) Gain: multiply by the (noise-free) gain factor
  4) Offset: add a constant pedestal
  5) Read noise: add a fixed unit-Gaussian field scaled by the read-noise σ
  6) Clip to the range a detector of the given bit depth can hold

ORDER MATTERS
-------------
• Poisson statistics depend on the true photon count, so shot noise comes
  after exposure scaling and before gain.
• Read noise is signal-independent and produced at readout, so it is added
  after gain and offset.
• Clipping does not round: values stay real-valued inside
  [0, 2**bit_depth - 1]; discretization belongs to the display/output side.

LEARNING NOTES
--------------
• Shot noise ⇒ var ≈ mean, so SNR ≈ √(photons): raising exposure 4× doubles
  SNR in the photon-limited regime.
• Gain amplifies signal and shot noise alike, but not read noise; high gain
  is how dim samples climb above the read-noise floor.
• Low bit depth or large offset saturates bright structures at the ceiling.

REFERENCES (short list)
-----------------------
• Janesick, J. R. (2007). Photon Transfer: DN → λ. SPIE Press.
• Waters, J. C. (2009). Accuracy and precision in quantitative fluorescence
  microscopy. J. Cell Biol. 185(7).
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, replace
from typing import Any, Mapping

import numpy as np

from fluorescence_sim.errors import InvalidDimensionsError, ParameterOutOfRangeError

MIN_BIT_DEPTH = 1
MAX_BIT_DEPTH = 16

# (low, high) of each control a UI collaborator exposes; "gain" is the slider
# value, mapped to a factor by gain_factor_from_slider.
SLIDER_RANGES = {
    "blur_sigma": (0.0, 4.99),
    "exposure_time": (1.0, 1000.0),
    "gain": (-0.99, 4.0),
    "read_noise_std": (0.0, 25.0),
    "offset": (-500.0, 500.0),
    "bit_depth": (1, 16),
}


def gain_factor_from_slider(slider: float) -> float:
    """Map the gain slider to a multiplicative factor: exp(2·slider)."""
    return float(math.exp(2.0 * slider))


# -----------------------------------------------------------------------------
# Parameters
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class AcquisitionParameters:
    """
    One complete set of acquisition settings (immutable).

    Optics
    ------
    blur_sigma : Gaussian PSF sigma in pixels (>= 0; 0 disables blur)

    Detection
    ---------
    exposure_time : photon-count scale applied to the normalized image (> 0)
    gain_factor : multiplicative gain after detection (> 0)

    Readout
    -------
    read_noise_std : standard deviation of additive read noise (>= 0)
    offset : constant added to every pixel (any finite value)
    bit_depth : detector bit depth, 1..16; clip ceiling is 2**bit_depth - 1
    """
    blur_sigma: float = 2.0
    exposure_time: float = 50.0
    gain_factor: float = 1.0
    read_noise_std: float = 10.0
    offset: float = 0.0
    bit_depth: int = 8

    @property
    def max_value(self) -> float:
        """Largest value representable at this bit depth."""
        return float(2 ** int(self.bit_depth) - 1)

    def validate(self) -> "AcquisitionParameters":
        """Raise ParameterOutOfRangeError if any field is physically invalid."""
        values = (self.blur_sigma, self.exposure_time, self.gain_factor,
                  self.read_noise_std, self.offset)
        if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in values):
            raise ParameterOutOfRangeError(f"Parameters must be real numbers: {self}")
        if not all(math.isfinite(v) for v in values):
            raise ParameterOutOfRangeError(f"Parameters must be finite: {self}")
        if self.blur_sigma < 0.0:
            raise ParameterOutOfRangeError(f"blur_sigma must be >= 0, got {self.blur_sigma}")
        if self.exposure_time <= 0.0:
            raise ParameterOutOfRangeError(f"exposure_time must be > 0, got {self.exposure_time}")
        if self.gain_factor <= 0.0:
            raise ParameterOutOfRangeError(f"gain_factor must be > 0, got {self.gain_factor}")
        if self.read_noise_std < 0.0:
            raise ParameterOutOfRangeError(f"read_noise_std must be >= 0, got {self.read_noise_std}")
        _check_bit_depth(self.bit_depth)
        return self

    def with_changes(self, **changes: Any) -> "AcquisitionParameters":
        """Return a new, validated parameter set with some fields replaced."""
        return replace(self, **changes).validate()

    @classmethod
    def from_sliders(
        cls,
        blur_sigma: float = 2.0,
        exposure_time: float = 50.0,
        gain: float = 0.0,
        read_noise_std: float = 10.0,
        offset: float = 0.0,
        bit_depth: int = 8,
    ) -> "AcquisitionParameters":
        """
        Build parameters from UI slider values.

        Every value must lie within SLIDER_RANGES; `gain` is the slider
        position and becomes gain_factor = exp(2·gain).
        """
        given = {
            "blur_sigma": blur_sigma,
            "exposure_time": exposure_time,
            "gain": gain,
            "read_noise_std": read_noise_std,
            "offset": offset,
            "bit_depth": bit_depth,
        }
        for name, value in given.items():
            lo, hi = SLIDER_RANGES[name]
            if not lo <= value <= hi:
                raise ParameterOutOfRangeError(f"{name}={value} outside slider range [{lo}, {hi}]")
        return cls(
            blur_sigma=float(blur_sigma),
            exposure_time=float(exposure_time),
            gain_factor=gain_factor_from_slider(gain),
            read_noise_std=float(read_noise_std),
            offset=float(offset),
            bit_depth=int(bit_depth),
        ).validate()


def parameters_from_dict(values: Mapping[str, Any] | None) -> AcquisitionParameters:
    """
    Adapter from loose keyword settings (CLI, JSON, notebooks) to parameters.

    Accepted keys:
      - blur_sigma or sigma
      - exposure_time or exposure
      - gain_factor, or gain (slider value, mapped via exp(2·gain))
      - read_noise_std or read_noise
      - offset
      - bit_depth
    Missing keys keep their defaults; unknown keys are ignored.
    """
    k = dict(values) if values else {}
    defaults = AcquisitionParameters()

    if "gain_factor" in k:
        gain_factor = float(k["gain_factor"])
    elif "gain" in k:
        gain_factor = gain_factor_from_slider(float(k["gain"]))
    else:
        gain_factor = defaults.gain_factor

    return AcquisitionParameters(
        blur_sigma=float(k.get("blur_sigma", k.get("sigma", defaults.blur_sigma))),
        exposure_time=float(k.get("exposure_time", k.get("exposure", defaults.exposure_time))),
        gain_factor=gain_factor,
        read_noise_std=float(k.get("read_noise_std", k.get("read_noise", defaults.read_noise_std))),
        offset=float(k.get("offset", defaults.offset)),
        bit_depth=int(k.get("bit_depth", defaults.bit_depth)),
    ).validate()


def _check_bit_depth(bit_depth: Any) -> None:
    if isinstance(bit_depth, bool) or not isinstance(bit_depth, numbers.Real):
        raise ParameterOutOfRangeError(f"bit_depth must be a number, got {bit_depth!r}")
    if not float(bit_depth).is_integer():
        raise ParameterOutOfRangeError(f"bit_depth must be an integer, got {bit_depth!r}")
    if not MIN_BIT_DEPTH <= bit_depth <= MAX_BIT_DEPTH:
        raise ParameterOutOfRangeError(
            f"bit_depth must lie in [{MIN_BIT_DEPTH}, {MAX_BIT_DEPTH}], got {bit_depth}"
        )


# -----------------------------------------------------------------------------
# Noise compositor
# -----------------------------------------------------------------------------
def composite(
    buffer: np.ndarray,
    params: AcquisitionParameters,
    noise_field: np.ndarray | None,
    variates,
) -> np.ndarray:
    """
    Apply exposure, shot noise, gain, offset and read noise in place.

    Parameters
    ----------
    buffer : (H, W) float ndarray
        Blurred image, normalized so its maximum is ~1.
    params : AcquisitionParameters
    noise_field : (H, W) float ndarray | None
        Unit-variance Gaussian field. Only read when read_noise_std != 0.
    variates : object with poisson_image(values) -> counts
        Usually a RandomVariates instance.

    Returns
    -------
    buffer : the same array object.
    """
    # 1) Exposure
    buffer *= params.exposure_time

    # 2) Shot noise: photon counts are whole numbers
    buffer[...] = variates.poisson_image(buffer)

    # 3) Gain, 4) Offset
    buffer *= params.gain_factor
    buffer += params.offset

    # 5) Read noise (same field every call, rescaled)
    if params.read_noise_std != 0:
        if noise_field is None or noise_field.shape != buffer.shape:
            got = None if noise_field is None else noise_field.shape
            raise InvalidDimensionsError(
                f"Noise field shape {got} does not match image shape {buffer.shape}"
            )
        buffer += noise_field * params.read_noise_std

    return buffer


# -----------------------------------------------------------------------------
# Range clamp
# -----------------------------------------------------------------------------
def clamp_to_bit_depth(buffer: np.ndarray, bit_depth: int) -> np.ndarray:
    """Clip in place to [0, 2**bit_depth - 1]. Values are not rounded."""
    _check_bit_depth(bit_depth)
    np.clip(buffer, 0.0, float(2 ** int(bit_depth) - 1), out=buffer)
    return buffer
