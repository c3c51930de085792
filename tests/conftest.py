"""
conftest.py — Shared pytest fixtures for the sem_geometry test suite
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sem_geometry.config import GeometryConfig
from sem_geometry.loader import ExternalElement
from sem_geometry.store import GeometryStore


@pytest.fixture(params=[True, False], ids=['consthv', 'varying'])
def consthv(request):
    """Both viscosity modes."""
    return request.param


@pytest.fixture
def config():
    """Default NP=4, float64."""
    return GeometryConfig()


@pytest.fixture
def store(config):
    """Uninitialised store with the default config."""
    return GeometryStore(config)


@pytest.fixture
def external_element():
    """
    Factory for one element of external flat arrays.

    Values are distinct per field and per offset so any index mix-up
    between fields or within a field shows up as a mismatch.
    """
    def _make(np_=4, consthv=False, seed=0):
        rng = np.random.default_rng(seed)
        n2 = np_ * np_

        def flat(size):
            return rng.uniform(-10.0, 10.0, size)

        return ExternalElement(
            D=flat(4 * n2), Dinv=flat(4 * n2),
            fcor=flat(n2), spheremp=flat(n2), rspheremp=flat(n2),
            metdet=flat(n2), metinv=flat(4 * n2), phis=flat(n2),
            tensorvisc=None if consthv else flat(4 * n2),
            vec_sph2cart=None if consthv else flat(6 * n2),
        )
    return _make
