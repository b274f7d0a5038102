"""
metrics_module.py — diagnostics and plots for simulated acquisitions

WHAT THIS MODULE PROVIDES
-------------------------
• as_float_image(img)
    Host-side conversion of 8/16-bit or float input into a float32 buffer
    the simulator can modify in place.

• compute_snr(img_noisy, img_ref)
    Frame-level SNR in dB against a noise-free reference.

• estimate_snr_patch(img, patch_slice)
    Mean / std / SNR on a uniform patch. With shot noise only, SNR ≈ √mean.

• clipped_fraction(img, bit_depth)
    Fraction of pixels sitting at 0 or at the bit-depth ceiling.

• plot_histogram(img, bit_depth) / plot_profile(img, row, bit_depth)
    Histogram and horizontal line profile with the axis pinned to the full
    bit-depth range, so successive previews can be compared by eye.

LEARNING NOTES
--------------
• A pile-up in the top histogram bin means saturation: lower the exposure,
  gain or offset, or raise the bit depth.
• A pile-up at zero with a negative offset means real signal was discarded.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import matplotlib.pyplot as plt

from fluorescence_sim.sensor.sensor_model import clamp_to_bit_depth


# -----------------------------------------------------------------------------
# Conversion
# -----------------------------------------------------------------------------
def as_float_image(img: np.ndarray) -> np.ndarray:
    """Return a float32 copy of a 2-D image (RGB is reduced to its mean)."""
    arr = np.asarray(img)
    if arr.ndim == 3:
        arr = arr.mean(axis=-1)
    return arr.astype(np.float32, copy=True)


# -----------------------------------------------------------------------------
# SNR
# -----------------------------------------------------------------------------
def compute_snr(img_noisy: np.ndarray, img_ref: np.ndarray) -> float:
    """
    Frame-level SNR in dB:  20 * log10( ||ref||_2 / ||ref - noisy||_2 ).

    Both images must be on the same scale (e.g. both divided by their
    expected peak).
    """
    ref = img_ref.astype(np.float64, copy=False)
    y = img_noisy.astype(np.float64, copy=False)

    num = np.linalg.norm(ref.ravel())
    den = np.linalg.norm((ref - y).ravel()) + 1e-12  # avoid divide-by-zero

    return float(20.0 * np.log10(num / den))


def estimate_snr_patch(img: np.ndarray, patch_slice) -> Tuple[float, float, float]:
    """
    Estimate (mean, std, SNR) on a uniform patch.

    Returns
    -------
    mean, std, snr
    """
    patch = img[patch_slice].astype(np.float64)
    mu = float(np.mean(patch))
    sigma = float(np.std(patch, ddof=1))
    snr = mu / sigma if sigma > 0 else np.inf
    return mu, sigma, snr


def clipped_fraction(img: np.ndarray, bit_depth: int) -> Tuple[float, float]:
    """Fractions of pixels at the floor (0) and at the ceiling (2**bit_depth - 1)."""
    top = float(2 ** int(bit_depth) - 1)
    n = float(img.size) or 1.0
    return float(np.count_nonzero(img <= 0.0)) / n, float(np.count_nonzero(img >= top)) / n


# -----------------------------------------------------------------------------
# Plots
# -----------------------------------------------------------------------------
def plot_histogram(img: np.ndarray, bit_depth: int, title: str = "Histogram", bins: int = 64):
    """Histogram over the full [0, 2**bit_depth - 1] range. Returns the Axes."""
    top = float(2 ** int(bit_depth) - 1)
    values = clamp_to_bit_depth(img.astype(np.float64, copy=True), bit_depth)
    fig, ax = plt.subplots()
    ax.hist(values.ravel(), bins=int(bins), range=(0.0, top))
    ax.set_title(title)
    ax.set_xlabel("Value")
    ax.set_ylabel("Count")
    fig.tight_layout()
    return ax


def plot_profile(img: np.ndarray, row: int, bit_depth: int, ax=None, title: str = "Line profile"):
    """Plot one image row with the y-axis fixed to [0, 2**bit_depth - 1]."""
    if ax is None:
        _, ax = plt.subplots()
    ax.plot(np.arange(img.shape[1]), img[int(row)])
    ax.set_ylim(0.0, float(2 ** int(bit_depth) - 1))
    ax.set_xlabel("x (pixels)")
    ax.set_ylabel("Value")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return ax
