"""
diagnostics.py — Geometry Consistency Checks
==============================================

Reductions over a GeometryStore used by tests and by drivers that want to
sanity-check a freshly loaded mesh:

    determinant       det(D) per grid point
    inverse_residual  max |D·Dinv - I|
    min_determinant   smallest det(D) over the mesh
    out_of_range      per-field count of entries outside [lo, hi]
    total_area        Σ spheremp (discrete surface area; 4π on the unit sphere)
    export_element    store → external flat order (inverse of the loader)

Tensors are in store layout (..., 2, 2, NP, NP).
"""

import jax.numpy as jnp
import numpy as np

from .layout import as_flat
from .loader import ExternalElement


def determinant(t):
    """det of 2x2 tensors laid out as (..., 2, 2, NP, NP)."""
    return (t[..., 0, 0, :, :] * t[..., 1, 1, :, :]
            - t[..., 0, 1, :, :] * t[..., 1, 0, :, :])


def tensor_matmul(a, b):
    """Pointwise (a·b) over (..., i, j, NP, NP) x (..., j, k, NP, NP)."""
    return jnp.einsum('...ijab,...jkab->...ikab', a, b)


def inverse_residual(d, dinv, relative=False):
    """
    Max abs entry of D·Dinv - I over every grid point.

    With relative=True each entry is scaled by Σ_j |D_ij||Dinv_jk|, the
    magnitude the rounding error of that entry is proportional to.  This
    is the meaningful measure when det(D) is small and Dinv large.

    Returns:
        float (0.0 for an empty mesh)
    """
    if d.size == 0:
        return 0.0
    eye = jnp.eye(2, dtype=d.dtype)[:, :, None, None]
    err = jnp.abs(tensor_matmul(d, dinv) - eye)
    if relative:
        err = err / tensor_matmul(jnp.abs(d), jnp.abs(dinv))
    return float(jnp.max(err))


def min_determinant(store):
    """Smallest det(D) over the mesh; +inf for an empty mesh."""
    det = determinant(store.d)
    if det.size == 0:
        return float('inf')
    return float(jnp.min(det))


def out_of_range(store, lo=None, hi=None, names=None):
    """
    Count entries outside [lo, hi] per field.

    Args:
        store: GeometryStore
        lo, hi: bounds; default to the generator range of store.config
        names: fields to check; default every allocated field except D, Dinv

    Returns:
        dict name → int count
    """
    lo = store.config.min_value if lo is None else lo
    hi = store.config.max_value if hi is None else hi
    if names is None:
        names = [n for n in store.field_names() if n not in ('d', 'dinv')]
    counts = {}
    for name in names:
        values = store.field(name).device
        counts[name] = int(jnp.sum((values < lo) | (values > hi)))
    return counts


def total_area(store):
    """Σ spheremp over every element and grid point."""
    return float(jnp.sum(store.spheremp))


def export_element(store, ie):
    """
    Element ie of the compute view, flattened back to external order.

    Feeding the result to load_element on a store with the same NP and
    viscosity mode reproduces the element exactly.

    Returns:
        ExternalElement of 1-D numpy arrays (optional members None in
        constant mode)
    """
    geo = store.element(ie)

    def flat(view):
        return None if view is None else as_flat(np.asarray(view))

    return ExternalElement(
        D=flat(geo.d), Dinv=flat(geo.dinv),
        fcor=flat(geo.fcor), spheremp=flat(geo.spheremp),
        rspheremp=flat(geo.rspheremp), metdet=flat(geo.metdet),
        metinv=flat(geo.metinv), phis=flat(geo.phis),
        tensorvisc=flat(geo.tensorvisc), vec_sph2cart=flat(geo.vec_sph2cart),
    )
