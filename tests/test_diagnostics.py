"""
test_diagnostics.py — Geometry Diagnostics Tests
==================================================

Verifies:
  - determinant / inverse_residual on hand-built tensors
  - total_area sums spheremp
  - export_element is the inverse of load_element
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sem_geometry.diagnostics import (
    determinant, export_element, inverse_residual, min_determinant,
    out_of_range, tensor_matmul, total_area,
)
from sem_geometry.loader import load_element
from sem_geometry.store import GeometryStore
from sem_geometry.synthetic import random_geometry


def _rotation_tensor(theta, np_=4):
    """Rotation by theta at every grid point, store layout (2, 2, NP, NP)."""
    c, s = np.cos(theta), np.sin(theta)
    t = np.empty((2, 2, np_, np_))
    t[0, 0], t[0, 1], t[1, 0], t[1, 1] = c, -s, s, c
    return t


class TestTensorAlgebra:
    """Pointwise 2x2 algebra in store layout."""

    def test_rotation_determinant(self):
        det = determinant(jnp.asarray(_rotation_tensor(0.3)))
        assert float(jnp.max(jnp.abs(det - 1.0))) < 1e-15

    def test_rotation_inverse_is_transpose(self):
        r = jnp.asarray(_rotation_tensor(0.7))
        rt = jnp.transpose(r, (1, 0, 2, 3))
        assert inverse_residual(r, rt) < 1e-15

    def test_matmul_pointwise(self):
        """Each grid point multiplies independently."""
        a = np.zeros((2, 2, 4, 4))
        a[0, 0] = a[1, 1] = np.arange(16).reshape(4, 4)
        b = np.zeros((2, 2, 4, 4))
        b[0, 0] = b[1, 1] = 2.0
        p = np.asarray(tensor_matmul(jnp.asarray(a), jnp.asarray(b)))
        assert np.array_equal(p[0, 0], 2.0 * np.arange(16).reshape(4, 4))
        assert not p[0, 1].any()

    def test_inconsistent_inverse_detected(self):
        r = jnp.asarray(_rotation_tensor(0.2))
        assert inverse_residual(r, r) > 0.1


class TestStoreDiagnostics:
    """Reductions over a loaded store."""

    def test_total_area(self, store, external_element):
        store.init(2, consthv=True)
        for ie in range(2):
            ext = external_element(consthv=True, seed=ie)
            ext = ext._replace(spheremp=np.full(16, np.pi / 8.0))
            load_element(store, ie, ext)
        # 2 elements * 16 points * pi/8 = 4 pi
        assert abs(total_area(store) - 4.0 * np.pi) < 1e-13

    def test_min_determinant_identity(self, store, external_element):
        store.init(1, consthv=True)
        eye = np.zeros((2, 2, 4, 4))
        eye[0, 0] = eye[1, 1] = 1.0
        load_element(store, 0, external_element(consthv=True)._replace(D=eye))
        assert min_determinant(store) == 1.0

    def test_out_of_range_counts(self, store, external_element):
        store.init(1, consthv=True)
        ext = external_element(consthv=True)
        phis = np.ones(16)
        phis[:3] = 100.0
        load_element(store, 0, ext._replace(phis=phis))
        counts = out_of_range(store, 0.0, 10.0, names=['phis'])
        assert counts == {'phis': 3}


class TestExport:
    """Store → external order → store."""

    def test_export_reload(self, consthv, external_element):
        src = GeometryStore().init(2, consthv)
        ext = external_element(consthv=consthv, seed=21)
        load_element(src, 1, ext)

        exported = export_element(src, 1)
        for key in ('D', 'Dinv', 'fcor', 'metinv', 'phis'):
            assert np.array_equal(getattr(exported, key), getattr(ext, key)), key
        if consthv:
            assert exported.tensorvisc is None and exported.vec_sph2cart is None

        dst = GeometryStore().init(1, consthv)
        load_element(dst, 0, exported)
        for name in src.field_names():
            assert np.array_equal(np.asarray(dst.field(name).device[0]),
                                  np.asarray(src.field(name).device[1])), name

    def test_export_generated(self):
        g = random_geometry(3, seed=4)
        exported = export_element(g, 2)
        assert exported.vec_sph2cart.shape == (6 * 16,)
        assert exported.D.shape == (64,)
