import math

import numpy as np
import pytest

from fluorescence_sim import FluorescenceSimulator
from fluorescence_sim.errors import InvalidDimensionsError, ParameterOutOfRangeError
from fluorescence_sim.sensor.random_variates import RandomVariates
from fluorescence_sim.sensor.sensor_model import (
    AcquisitionParameters,
    clamp_to_bit_depth,
    composite,
    gain_factor_from_slider,
    parameters_from_dict,
)


# -----------------------------------------------------------------------------
# Parameters
# -----------------------------------------------------------------------------
def test_defaults_are_valid():
    p = AcquisitionParameters().validate()
    assert p.blur_sigma == 2.0
    assert p.exposure_time == 50.0
    assert p.gain_factor == 1.0
    assert p.read_noise_std == 10.0
    assert p.bit_depth == 8
    assert p.max_value == 255.0


@pytest.mark.parametrize("changes", [
    {"bit_depth": 0},
    {"bit_depth": 17},
    {"bit_depth": 8.5},
    {"read_noise_std": -0.1},
    {"exposure_time": 0.0},
    {"exposure_time": -5.0},
    {"gain_factor": 0.0},
    {"blur_sigma": -1.0},
    {"offset": float("nan")},
    {"offset": None},
    {"exposure_time": "50"},
    {"bit_depth": "8"},
    {"bit_depth": None},
    {"bit_depth": True},
])
def test_invalid_parameters_rejected(changes):
    with pytest.raises(ParameterOutOfRangeError):
        AcquisitionParameters(**changes).validate()


def test_parameters_are_immutable():
    p = AcquisitionParameters()
    with pytest.raises(AttributeError):
        p.exposure_time = 10.0


def test_with_changes_returns_new_validated_set():
    p = AcquisitionParameters()
    q = p.with_changes(exposure_time=200.0)
    assert q.exposure_time == 200.0 and p.exposure_time == 50.0
    with pytest.raises(ParameterOutOfRangeError):
        p.with_changes(bit_depth=20)


def test_gain_slider_mapping():
    assert gain_factor_from_slider(0.0) == 1.0
    assert gain_factor_from_slider(1.0) == pytest.approx(math.exp(2.0))
    assert gain_factor_from_slider(-0.99) > 0.0


def test_from_sliders():
    p = AcquisitionParameters.from_sliders(blur_sigma=1.0, exposure_time=100, gain=0.5,
                                           read_noise_std=5, offset=-20, bit_depth=12)
    assert p.gain_factor == pytest.approx(math.e)
    assert p.max_value == 4095.0
    with pytest.raises(ParameterOutOfRangeError):
        AcquisitionParameters.from_sliders(exposure_time=2000)
    with pytest.raises(ParameterOutOfRangeError):
        AcquisitionParameters.from_sliders(gain=-1.5)


def test_parameters_from_dict_aliases():
    p = parameters_from_dict({"sigma": 0.5, "exposure": 10, "gain": 1.0,
                              "read_noise": 2, "bit_depth": 10, "unused": "x"})
    assert p.blur_sigma == 0.5
    assert p.exposure_time == 10.0
    assert p.gain_factor == pytest.approx(math.exp(2.0))
    assert p.read_noise_std == 2.0
    assert p.bit_depth == 10

    q = parameters_from_dict({"gain_factor": 3.0, "gain": 1.0})
    assert q.gain_factor == 3.0
    assert parameters_from_dict(None) == AcquisitionParameters()


# -----------------------------------------------------------------------------
# Compositor
# -----------------------------------------------------------------------------
def test_composite_order(identity_poisson):
    buf = np.full((3, 4), 0.5)
    p = AcquisitionParameters(exposure_time=10.0, gain_factor=2.0, offset=3.0, read_noise_std=0.0)
    out = composite(buf, p, None, identity_poisson)
    assert out is buf
    np.testing.assert_allclose(buf, 0.5 * 10.0 * 2.0 + 3.0)


def test_composite_zero_read_noise_ignores_field(identity_poisson):
    buf = np.ones((4, 4))
    poisoned = np.full((4, 4), np.nan)
    p = AcquisitionParameters(exposure_time=1.0, read_noise_std=0.0)
    composite(buf, p, poisoned, identity_poisson)
    assert np.isfinite(buf).all()
    np.testing.assert_allclose(buf, 1.0)


def test_composite_adds_scaled_noise_field(identity_poisson):
    buf = np.ones((2, 3))
    field = np.arange(6, dtype=float).reshape(2, 3)
    p = AcquisitionParameters(exposure_time=1.0, gain_factor=1.0, offset=0.0, read_noise_std=2.0)
    composite(buf, p, field, identity_poisson)
    np.testing.assert_allclose(buf, 1.0 + 2.0 * field)


def test_composite_rejects_mismatched_noise_field(identity_poisson):
    p = AcquisitionParameters(read_noise_std=1.0)
    with pytest.raises(InvalidDimensionsError):
        composite(np.ones((4, 4)), p, np.zeros((4, 5)), identity_poisson)
    with pytest.raises(InvalidDimensionsError):
        composite(np.ones((4, 4)), p, None, identity_poisson)


def test_composite_shot_noise_yields_whole_photon_counts():
    buf = np.full((32, 32), 0.37)
    p = AcquisitionParameters(exposure_time=7.0, gain_factor=1.0, offset=0.0, read_noise_std=0.0)
    composite(buf, p, None, RandomVariates(seed=4))
    np.testing.assert_array_equal(buf, np.round(buf))
    assert abs(buf.mean() - 0.37 * 7.0) < 0.3


def test_gain_applies_after_shot_noise():
    # Gain multiplies counts, so every value is a multiple of the gain factor.
    buf = np.full((32, 32), 1.0)
    p = AcquisitionParameters(exposure_time=5.0, gain_factor=3.0, offset=0.0, read_noise_std=0.0)
    composite(buf, p, None, RandomVariates(seed=8))
    np.testing.assert_allclose(buf % 3.0, 0.0)


# -----------------------------------------------------------------------------
# Clamp
# -----------------------------------------------------------------------------
@pytest.mark.parametrize("bit_depth", [1, 8, 12, 16])
def test_clamp_bounds(bit_depth):
    buf = np.random.default_rng(bit_depth).uniform(-1000.0, 70000.0, size=(50, 50))
    out = clamp_to_bit_depth(buf, bit_depth)
    assert out is buf
    assert buf.min() >= 0.0
    assert buf.max() <= 2 ** bit_depth - 1


def test_clamp_does_not_round():
    buf = np.array([[3.7, -2.0, 300.25]])
    clamp_to_bit_depth(buf, 8)
    np.testing.assert_allclose(buf, [[3.7, 0.0, 255.0]])


def test_clamp_rejects_bad_bit_depth():
    with pytest.raises(ParameterOutOfRangeError):
        clamp_to_bit_depth(np.zeros((2, 2)), 0)
    with pytest.raises(ParameterOutOfRangeError):
        clamp_to_bit_depth(np.zeros((2, 2)), 17)


def test_clamp_rejects_non_numeric_bit_depth():
    for bad in ("8", None, 8.5):
        with pytest.raises(ParameterOutOfRangeError):
            clamp_to_bit_depth(np.zeros((2, 2)), bad)


def test_configure_rejects_non_numeric_fields_and_keeps_old():
    sim = FluorescenceSimulator(seed=0)
    before = sim.parameters
    with pytest.raises(ParameterOutOfRangeError):
        sim.configure(AcquisitionParameters(offset=None))
    with pytest.raises(ParameterOutOfRangeError):
        sim.configure(AcquisitionParameters(bit_depth="8"))
    assert sim.parameters is before
