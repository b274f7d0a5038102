"""
random_variates.py — Poisson photon counts and Gaussian read-noise fields.

WHAT THIS MODULE DOES
---------------------
Supplies the two random ingredients of the acquisition model from a single
seedable numpy Generator:
  • poisson(λ) / poisson_image(λ)  — photon counts (shot noise)
  • gaussian_field(w, h, σ)        — i.i.d. N(0, σ²) samples, one per pixel

POISSON SAMPLING
----------------
Photon counts use the direct multiplicative method (Knuth): multiply
uniform(0, 1) draws until the running product falls to or below exp(-λ);
the number of draws minus one is Poisson(λ) distributed. The expected number
of draws is λ + 1, so it is cheap for the dim signals typical of fluorescence.

For large λ, exp(-λ) underflows (λ ≳ 745 gives exactly 0.0) and the loop no
longer measures anything meaningful. Above POISSON_DIRECT_LIMIT we therefore
switch to the normal approximation round(N(λ, √λ)), clipped at zero. At
λ = 30 the skewness of Poisson(λ) is 1/√30 ≈ 0.18, small enough for imaging.

Edge rules (per element):
  • λ == 0   → 0 without consuming any random draws
  • λ < 0    → 0 (exp(-λ) > 1, the first product is already below it)
  • λ non-finite → NumericOverflowError

REFERENCES (short list)
-----------------------
• Knuth, D. E. (1997). The Art of Computer Programming, Vol. 2 (3e), §3.4.1.
• Janesick, J. R. (2007). Photon Transfer: DN → λ. SPIE Press.
"""

from __future__ import annotations

import logging

import numpy as np

from fluorescence_sim.errors import NumericOverflowError, ParameterOutOfRangeError

logger = logging.getLogger(__name__)

# Above this mean the normal approximation replaces the multiplicative method.
POISSON_DIRECT_LIMIT = 30.0


class RandomVariates:
    """
    Poisson and Gaussian sample source built on numpy.random.Generator.

    Parameters
    ----------
    seed : int | None
        Seed for numpy.random.default_rng. Ignored when `rng` is given.
    rng : numpy.random.Generator | None
        Pre-built generator to draw from (shared with the caller).
    """

    def __init__(self, seed: int | None = None, rng: np.random.Generator | None = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    # -------------------------------------------------------------------------
    # Poisson
    # -------------------------------------------------------------------------
    def poisson(self, lam: float) -> int:
        """Draw a single Poisson(λ) photon count."""
        return int(self.poisson_image(np.asarray([lam], dtype=np.float64))[0])

    def poisson_image(self, values: np.ndarray) -> np.ndarray:
        """
        Replace every mean in `values` by a Poisson draw.

        Parameters
        ----------
        values : ndarray
            Per-pixel expected photon counts (any shape).

        Returns
        -------
        counts : int64 ndarray, same shape as `values`
        """
        lam = np.asarray(values, dtype=np.float64)
        if not np.all(np.isfinite(lam)):
            raise NumericOverflowError("Poisson mean must be finite (got NaN or inf).")

        counts = np.zeros(lam.shape, dtype=np.int64)

        direct = (lam > 0.0) & (lam <= POISSON_DIRECT_LIMIT)
        if direct.any():
            counts[direct] = self._multiplicative(lam[direct])

        large = lam > POISSON_DIRECT_LIMIT
        if large.any():
            logger.debug("Normal approximation for %d pixels with λ > %g",
                         int(large.sum()), POISSON_DIRECT_LIMIT)
            counts[large] = self._normal_approximation(lam[large])

        return counts

    def _multiplicative(self, lam: np.ndarray) -> np.ndarray:
        # Vectorized Knuth loop: pixels drop out once their product <= exp(-λ).
        threshold = np.exp(-lam)
        product = np.ones_like(lam)
        k = np.zeros(lam.shape, dtype=np.int64)
        active = np.arange(lam.size)
        while active.size:
            k[active] += 1
            product[active] *= self.rng.random(active.size)
            active = active[product[active] > threshold[active]]
        return k - 1

    def _normal_approximation(self, lam: np.ndarray) -> np.ndarray:
        draws = self.rng.normal(lam, np.sqrt(lam))
        return np.clip(np.rint(draws), 0, None).astype(np.int64)

    # -------------------------------------------------------------------------
    # Gaussian
    # -------------------------------------------------------------------------
    def gaussian_field(self, width: int, height: int, stddev: float = 1.0) -> np.ndarray:
        """
        Independent zero-mean Gaussian samples on a (height, width) grid.

        No spatial correlation; each pixel is drawn on its own.
        """
        if stddev < 0.0:
            raise ParameterOutOfRangeError(f"stddev must be >= 0, got {stddev}")
        if int(width) <= 0 or int(height) <= 0:
            raise ParameterOutOfRangeError(
                f"Noise field needs positive dimensions, got {width}x{height}"
            )
        field = self.rng.standard_normal((int(height), int(width)))
        if stddev != 1.0:
            field *= stddev
        return field
