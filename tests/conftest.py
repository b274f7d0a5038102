import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pytest  # noqa: E402


class IdentityPoisson:
    """Stub photon source: returns each mean unchanged."""

    def poisson_image(self, values):
        return np.asarray(values, dtype=np.float64).copy()


@pytest.fixture
def identity_poisson():
    return IdentityPoisson()
