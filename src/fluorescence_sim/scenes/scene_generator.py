"""
scene_generator.py — synthetic fluorescence specimens (float32 [0..1])

WHAT THIS MODULE PROVIDES
-------------------------
Ground-truth emitter distributions to feed the acquisition simulator:
  • Beads        — sparse sub-resolution point sources; the blurred image of
                   a single bead *is* the PSF
  • Filaments    — thin curved lines, like labelled microtubules or actin
  • Cells        — elliptical cytoplasm with brighter nuclei and dim background
  • Siemens star — radial frequency sweep; quick visual resolution probe
  • Gradient     — linear ramp for clipping / bit-depth demos
  • Custom       — any image file, converted to grayscale

RETURNS
-------
All generators return a 2-D NumPy array, dtype float32, normalized to [0, 1],
dark background (fluorescence is emission on black).
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
from matplotlib import image as mpimg


# -----------------------------------------------------------------------------
# Utilities
# -----------------------------------------------------------------------------
def _normalize(img: np.ndarray) -> np.ndarray:
    """Convert to float32 and scale the maximum to 1 (all-zero stays zero)."""
    img = np.clip(img.astype(np.float32, copy=False), 0.0, None)
    peak = float(img.max()) if img.size else 0.0
    return img / peak if peak > 0 else img


# -----------------------------------------------------------------------------
# Scene generators
# -----------------------------------------------------------------------------
def generate_beads(
    size: int = 256,
    count: int = 40,
    brightness_spread: float = 0.3,
    seed: int | None = 0,
) -> np.ndarray:
    """
    Point-like fluorescent beads at random pixel positions.

    Parameters
    ----------
    size : int
        Square canvas size (pixels).
    count : int
        Number of beads.
    brightness_spread : float
        Relative STDEV of bead brightness (labelling variability).
    seed : int | None
        Placement RNG seed.

    Returns
    -------
    beads_img : (size, size) float32 array in [0, 1]
    """
    rng = np.random.default_rng(seed)
    img = np.zeros((int(size), int(size)), dtype=np.float32)
    ys = rng.integers(0, int(size), int(count))
    xs = rng.integers(0, int(size), int(count))
    amp = np.clip(1.0 + brightness_spread * rng.standard_normal(int(count)), 0.1, None)
    np.add.at(img, (ys, xs), amp.astype(np.float32))
    return _normalize(img)


def generate_filaments(
    size: int = 256,
    count: int = 12,
    points_per_filament: int = 400,
    seed: int | None = 0,
) -> np.ndarray:
    """
    Thin, gently curving filaments (random walks with persistent direction).

    Each filament is rasterized one pixel wide; optical blur gives it width.
    """
    rng = np.random.default_rng(seed)
    n = int(size)
    img = np.zeros((n, n), dtype=np.float32)
    for _ in range(int(count)):
        y, x = rng.uniform(0, n, 2)
        theta = rng.uniform(0, 2 * np.pi)
        curvature = rng.normal(0.0, 0.02)
        for _ in range(int(points_per_filament)):
            theta += curvature + rng.normal(0.0, 0.05)
            y += np.sin(theta)
            x += np.cos(theta)
            if not (0 <= y < n and 0 <= x < n):
                break
            img[int(y), int(x)] = 1.0
    return _normalize(img)


def generate_cells(
    size: int = 256,
    count: int = 6,
    background: float = 0.05,
    seed: int | None = 0,
) -> np.ndarray:
    """
    Elliptical cells with a dim cytoplasm and a brighter nucleus.

    Parameters
    ----------
    background : float
        Uniform autofluorescence level, relative to the brightest nucleus.
    """
    rng = np.random.default_rng(seed)
    n = int(size)
    y, x = np.indices((n, n), dtype=np.float32)
    img = np.full((n, n), float(background), dtype=np.float32)
    for _ in range(int(count)):
        cy, cx = rng.uniform(0.15 * n, 0.85 * n, 2)
        ry, rx = rng.uniform(0.06 * n, 0.14 * n, 2)
        angle = rng.uniform(0, np.pi)
        c, s = np.cos(angle), np.sin(angle)
        u = ((x - cx) * c + (y - cy) * s) / rx
        v = (-(x - cx) * s + (y - cy) * c) / ry
        r2 = u ** 2 + v ** 2
        img[r2 <= 1.0] += 0.35
        img[r2 <= 0.25] += 0.6
    return _normalize(img)


def generate_siemens_star(size: int = 256, spokes: int = 36) -> np.ndarray:
    """
    Siemens star: bright/dark wedges around the center, inside a circle.

    Where neighbouring wedges merge after blurring, the optics no longer
    resolve that spatial frequency.
    """
    n = int(size)
    y, x = np.indices((n, n)) - (n - 1) / 2.0
    theta = np.arctan2(y, x)
    star = (np.sin(float(spokes) * theta) > 0).astype(np.float32)
    star[np.hypot(x, y) > n / 2.0] = 0.0
    return _normalize(star)


def generate_gradient(width: int = 256, height: int = 256) -> np.ndarray:
    """Horizontal ramp from 0 to 1."""
    ramp = np.linspace(0.0, 1.0, int(width), dtype=np.float32)
    return _normalize(np.tile(ramp, (int(height), 1)))


def load_custom(path: str | Path) -> np.ndarray:
    """
    Load an image file as a grayscale float32 specimen in [0, 1].

    RGB(A) images are reduced to luminance; alpha is dropped.
    """
    img = np.asarray(mpimg.imread(str(path)), dtype=np.float32)
    if img.ndim == 3:
        img = img[..., :3] @ np.array([0.299, 0.587, 0.114], dtype=np.float32)
    return _normalize(img)


# -----------------------------------------------------------------------------
# Dispatcher (public API)
# -----------------------------------------------------------------------------
SCENE_KINDS = ("beads", "filaments", "cells", "siemens_star", "gradient", "custom")


def generate_scene(kind: str, size: int = 256, **kwargs) -> np.ndarray:
    """
    Dispatch scene generation by name.

    Parameters
    ----------
    kind : str
        One of SCENE_KINDS. Aliases: 'siemens', 'ramp'.
    size : int
        Canvas size (pixels).
    kwargs :
        Forwarded to the generator ('custom' requires path=...).

    Returns
    -------
    img : float32 array in [0, 1]
    """
    k = (kind or "").lower().strip()

    if k == "beads":
        return generate_beads(size=size, **kwargs)
    if k == "filaments":
        return generate_filaments(size=size, **kwargs)
    if k == "cells":
        return generate_cells(size=size, **kwargs)
    if k in ("siemens_star", "siemens"):
        return generate_siemens_star(size=size, **kwargs)
    if k in ("gradient", "ramp"):
        return generate_gradient(width=size, height=size)
    if k == "custom":
        if "path" not in kwargs:
            raise ValueError("Scene 'custom' needs path=...")
        return load_custom(kwargs["path"])

    raise ValueError(f"Unknown scene kind {kind!r}; choose from {', '.join(SCENE_KINDS)}")
