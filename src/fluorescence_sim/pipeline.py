"""
pipeline.py — end-to-end fluorescence acquisition simulator

    source image → normalize (max = 1) → PSF blur → exposure → shot noise
                 → gain → offset → read noise → bit-depth clip → source image

Module contracts
----------------
- run_once(source, params, session, variates) -> PipelineResult
    One pass of the pipeline, writing the result back into `source`.
- FluorescenceSimulator
    Host-facing facade: attach_session / configure / apply / release_session.

SESSIONS
--------
A session belongs to one image being simulated. It owns a fixed field of
unit-variance Gaussian noise, drawn once when the session is attached. Every
apply() reuses that field scaled by the current read-noise σ, so repeated
previews while parameters change differ only by the parameter change (and
the fresh Poisson draws), not by a new read-noise pattern. The session also
remembers the image's min/max from before the first transform, so a host can
restore its display range after a cancelled preview.

The simulator holds no reference to caller buffers after apply() returns.
Calls against the same session must be serialized by the caller.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from fluorescence_sim.errors import (
    InvalidDimensionsError,
    ParameterOutOfRangeError,
    SessionReleasedError,
)
from fluorescence_sim.optics.optics_model import DEFAULT_ACCURACY, blur_gaussian
from fluorescence_sim.sensor.random_variates import RandomVariates
from fluorescence_sim.sensor.sensor_model import (
    AcquisitionParameters,
    clamp_to_bit_depth,
    composite,
)

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


# -----------------------------------------------------------------------------
# Data carriers
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class SessionHandle:
    """Per-image state: the persistent noise field and the initial range."""
    width: int
    height: int
    noise_field: Optional[np.ndarray]
    session_id: int = field(default_factory=lambda: next(_session_ids))
    original_min: Optional[float] = None
    original_max: Optional[float] = None

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def released(self) -> bool:
        return self.noise_field is None


@dataclass
class PipelineResult:
    """
    Output of one pipeline pass.

    image : the caller's buffer, now holding the simulated acquisition
    original_min, original_max : source range captured before the first pass
    display_min, display_max : full range of the configured bit depth,
        suitable for pinning histograms and line profiles
    """
    image: np.ndarray
    original_min: float
    original_max: float
    display_min: float
    display_max: float


# -----------------------------------------------------------------------------
# Stages owned by the orchestrator
# -----------------------------------------------------------------------------
def normalize_to_max(buffer: np.ndarray) -> np.ndarray:
    """Scale in place so the maximum becomes 1; skipped when the max is <= 0."""
    peak = float(buffer.max())
    if peak <= 0.0:
        logger.info("Image maximum is %g; skipping normalization", peak)
        return buffer
    buffer /= peak
    return buffer


def _check_buffer(buffer: np.ndarray, session: SessionHandle) -> None:
    if not isinstance(buffer, np.ndarray):
        raise TypeError(f"Expected a numpy array, got {type(buffer).__name__}")
    if buffer.ndim != 2:
        raise InvalidDimensionsError(f"Expected a 2-D image, got shape {buffer.shape}")
    if not np.issubdtype(buffer.dtype, np.floating):
        raise TypeError(
            f"Expected a floating-point image, got {buffer.dtype}; convert it first "
            "(see fluorescence_sim.utils.metrics_module.as_float_image)"
        )
    if session.released:
        raise SessionReleasedError(f"Session {session.session_id} has been released")
    if buffer.shape != session.shape:
        raise InvalidDimensionsError(
            f"Image shape {buffer.shape} does not match session shape {session.shape}"
        )


def run_once(
    source: np.ndarray,
    params: AcquisitionParameters,
    session: SessionHandle,
    variates: RandomVariates,
    accuracy: float = DEFAULT_ACCURACY,
) -> PipelineResult:
    """
    Run the full acquisition model once and write the result into `source`.

    Parameters
    ----------
    source : (H, W) floating ndarray
        Image to degrade; overwritten in place.
    params : AcquisitionParameters
    session : SessionHandle
        Supplies the persistent noise field; its shape must match `source`.
    variates : RandomVariates (or any object with poisson_image)
    accuracy : float
        Gaussian kernel truncation level.

    Returns
    -------
    PipelineResult
    """
    _check_buffer(source, session)
    params.validate()

    # 1) Range before the first transform of this image
    if session.original_min is None:
        original_min, original_max = float(source.min()), float(source.max())
    else:
        original_min, original_max = session.original_min, session.original_max

    # 2) Working copy in double precision
    work = source.astype(np.float64, copy=True)

    # 3) Normalize
    normalize_to_max(work)

    # 4) Blur → detector → clip
    if params.blur_sigma > 0.0:
        blur_gaussian(work, params.blur_sigma, params.blur_sigma, accuracy)
    composite(work, params, session.noise_field, variates)
    clamp_to_bit_depth(work, params.bit_depth)

    # 5) Write back; the range is kept only once a pass has succeeded
    source[...] = work
    session.original_min, session.original_max = original_min, original_max

    return PipelineResult(
        image=source,
        original_min=original_min,
        original_max=original_max,
        display_min=0.0,
        display_max=params.max_value,
    )


# -----------------------------------------------------------------------------
# Host-facing facade
# -----------------------------------------------------------------------------
class FluorescenceSimulator:
    """
    Stateful front end used by an interactive host (or the CLI).

    Parameters
    ----------
    params : AcquisitionParameters | None
        Initial settings; defaults to AcquisitionParameters().
    seed : int | None
        Seed for the shared RandomVariates source.
    variates : RandomVariates | None
        Explicit random source (overrides `seed`).
    """

    def __init__(
        self,
        params: AcquisitionParameters | None = None,
        seed: int | None = None,
        variates: RandomVariates | None = None,
    ):
        self._params = (params or AcquisitionParameters()).validate()
        self.variates = variates if variates is not None else RandomVariates(seed)
        self._sessions: Dict[int, SessionHandle] = {}

    @property
    def parameters(self) -> AcquisitionParameters:
        return self._params

    @property
    def session_count(self) -> int:
        """Number of live sessions."""
        return len(self._sessions)

    def attach_session(self, width: int, height: int) -> SessionHandle:
        """Start simulating a new (width × height) image; draws its noise field."""
        if int(width) <= 0 or int(height) <= 0:
            raise InvalidDimensionsError(f"Session needs positive dimensions, got {width}x{height}")
        noise = self.variates.gaussian_field(int(width), int(height), 1.0)
        session = SessionHandle(width=int(width), height=int(height), noise_field=noise)
        self._sessions[session.session_id] = session
        logger.debug("Attached session %d (%dx%d)", session.session_id, width, height)
        return session

    def configure(self, params: AcquisitionParameters) -> None:
        """Replace all parameters at once. Invalid sets leave the old ones active."""
        if not isinstance(params, AcquisitionParameters):
            raise ParameterOutOfRangeError(
                f"Expected AcquisitionParameters, got {type(params).__name__}"
            )
        params.validate()
        self._params = params
        logger.debug("Configured %s", params)

    def apply(self, buffer: np.ndarray, session: SessionHandle) -> PipelineResult:
        """Run the pipeline once on `buffer`, in place, with the current parameters."""
        if self._sessions.get(session.session_id) is not session:
            raise SessionReleasedError(
                f"Session {session.session_id} is not attached to this simulator"
            )
        return run_once(buffer, self._params, session, self.variates)

    def release_session(self, session: SessionHandle) -> None:
        """Drop the session's noise field. Unknown or already released sessions are left alone."""
        if self._sessions.get(session.session_id) is not session:
            return
        del self._sessions[session.session_id]
        session.noise_field = None
        logger.debug("Released session %d", session.session_id)
