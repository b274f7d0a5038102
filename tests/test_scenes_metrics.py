import matplotlib.pyplot as plt
import numpy as np
import pytest

from fluorescence_sim.scenes.scene_generator import SCENE_KINDS, generate_scene
from fluorescence_sim.utils.metrics_module import (
    as_float_image,
    clipped_fraction,
    compute_snr,
    estimate_snr_patch,
    plot_histogram,
    plot_profile,
)


@pytest.mark.parametrize("kind", [k for k in SCENE_KINDS if k != "custom"])
def test_scenes_are_normalized(kind):
    img = generate_scene(kind, 64)
    assert img.shape == (64, 64)
    assert img.dtype == np.float32
    assert img.min() >= 0.0
    assert img.max() == pytest.approx(1.0)


def test_beads_are_reproducible_per_seed():
    a = generate_scene("beads", 48, seed=3)
    b = generate_scene("beads", 48, seed=3)
    np.testing.assert_array_equal(a, b)


def test_custom_scene_loads_grayscale(tmp_path):
    path = tmp_path / "specimen.png"
    data = np.zeros((20, 30))
    data[5:15, 10:20] = 1.0
    plt.imsave(path, data, cmap="gray")
    img = generate_scene("custom", 0, path=path)
    assert img.shape == (20, 30)
    assert img.max() == pytest.approx(1.0)
    assert img[0, 0] == pytest.approx(0.0, abs=1e-3)


def test_unknown_scene_raises():
    with pytest.raises(ValueError):
        generate_scene("nebula", 32)
    with pytest.raises(ValueError):
        generate_scene("custom", 32)


def test_as_float_image_converts_integer_input():
    raw = np.array([[0, 1000], [65535, 7]], dtype=np.uint16)
    img = as_float_image(raw)
    assert img.dtype == np.float32
    assert img[1, 0] == 65535.0
    assert as_float_image(np.ones((4, 5, 3), dtype=np.uint8)).shape == (4, 5)


def test_snr_helpers():
    ref = np.full((32, 32), 10.0)
    noisy = ref + np.random.default_rng(0).normal(0.0, 1.0, ref.shape)
    assert 15.0 < compute_snr(noisy, ref) < 25.0
    mu, sigma, snr = estimate_snr_patch(noisy, np.s_[4:28, 4:28])
    assert abs(mu - 10.0) < 0.2
    assert abs(sigma - 1.0) < 0.15
    assert snr == pytest.approx(mu / sigma)


def test_clipped_fraction():
    img = np.array([[0.0, 0.0, 100.0, 255.0]])
    low, high = clipped_fraction(img, 8)
    assert low == 0.5
    assert high == 0.25


def test_plots_use_bit_depth_range():
    img = np.linspace(0.0, 4095.0, 64 * 64).reshape(64, 64)
    ax = plot_histogram(img, 12)
    assert ax.get_xlim()[1] >= 4095.0
    ax2 = plot_profile(img, 10, 12)
    assert ax2.get_ylim() == (0.0, 4095.0)
    plt.close("all")
