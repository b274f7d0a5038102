import numpy as np
import pytest

from fluorescence_sim.errors import InvalidDimensionsError
from fluorescence_sim.optics.optics_model import (
    blur_gaussian,
    gaussian_kernel_1d,
    kernel_radius,
)


def test_kernel_is_normalized_and_symmetric():
    k = gaussian_kernel_1d(1.7, 0.0002)
    assert abs(k.sum() - 1.0) < 1e-12
    np.testing.assert_allclose(k, k[::-1])
    assert k.argmax() == len(k) // 2


def test_kernel_radius_follows_accuracy():
    # sqrt(-2 ln 0.0002) ≈ 4.13
    assert kernel_radius(2.0, 0.0002) == int(np.ceil(2.0 * 4.1273)) + 1
    assert kernel_radius(2.0, 0.01) < kernel_radius(2.0, 0.0002)


def test_zero_sigma_skips_blur():
    img = np.random.default_rng(0).random((12, 9))
    before = img.copy()
    out = blur_gaussian(img, 0.0, 0.0)
    assert out is img
    np.testing.assert_array_equal(img, before)


def test_blur_is_in_place():
    img = np.zeros((21, 21))
    img[10, 10] = 1.0
    out = blur_gaussian(img, 1.5, 1.5)
    assert out is img
    assert img[10, 10] < 1.0


def test_flat_image_keeps_value_at_borders():
    img = np.full((15, 20), 5.0)
    blur_gaussian(img, 3.0, 3.0)
    np.testing.assert_allclose(img, 5.0, rtol=1e-12)


def test_impulse_response_conserves_energy_and_matches_sigma():
    sigma = 2.0
    img = np.zeros((41, 41))
    img[20, 20] = 1.0
    blur_gaussian(img, sigma, sigma)
    assert abs(img.sum() - 1.0) < 1e-9
    x = np.arange(41) - 20
    var_x = (img.sum(axis=0) * x ** 2).sum()
    var_y = (img.sum(axis=1) * x ** 2).sum()
    assert abs(var_x - sigma ** 2) / sigma ** 2 < 0.05
    assert abs(var_y - sigma ** 2) / sigma ** 2 < 0.05


def test_single_axis_blur():
    img = np.zeros((11, 11))
    img[5, 5] = 1.0
    blur_gaussian(img, 1.0, 0.0)
    # only the center row receives intensity
    assert img[5].sum() == pytest.approx(1.0)
    assert np.count_nonzero(np.delete(img, 5, axis=0)) == 0


def test_blur_rejects_bad_input():
    with pytest.raises(InvalidDimensionsError):
        blur_gaussian(np.zeros((3, 3, 3)), 1.0, 1.0)
    with pytest.raises(ValueError):
        blur_gaussian(np.zeros((5, 5)), 1.0, 1.0, accuracy=0.0)
