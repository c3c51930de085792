"""
synthetic.py — Random but Valid Geometry for Tests
====================================================

random_init() allocates the store in varying-viscosity mode and fills every
field from U[min_value, 1/min_value] (min_value = 1/64), except D and Dinv.

D must be invertible with positive orientation at every grid point.
Drawing every D at once and rejecting the whole batch would almost never
succeed, so each grid point is validated on its own:

    repeat for the points still rejected:
        draw m ~ U[min, 1/min]^(2x2)
    until det(m) = m00*m11 - m01*m10 > 0 everywhere

and Dinv is the exact adjugate inverse:

    Dinv00 =  m11/det    Dinv01 = -m01/det
    Dinv10 = -m10/det    Dinv11 =  m00/det

With all four entries i.i.d. positive, swapping the columns of m negates
det without changing the distribution, so P(det > 0) = 1/2 per draw and
the expected number of redraw rounds grows like log2(#points).  The round
count is still capped by config.max_redraw_rounds.

Randomness comes from jax.random keys split per field and per round; no
generator state is shared between draws.  seed=None selects the
non-deterministic mode and logs the seed it picked.
"""

import logging

import numpy as np
import jax
import jax.numpy as jnp

from .errors import RedrawLimitExceeded
from .layout import FIELDS
from .store import GeometryStore

logger = logging.getLogger(__name__)


# ============================================================
# Seeding
# ============================================================

def resolve_seed(seed=None, config=None):
    """
    Pick the seed for a generator run.

    Explicit seed wins, then config.seed; otherwise fresh OS entropy is
    drawn (non-deterministic mode) and logged so the run can be replayed.
    """
    if seed is None and config is not None:
        seed = config.seed
    if seed is None:
        seed = int(np.random.SeedSequence().entropy % (2**63))
        logger.info("random geometry: non-deterministic mode, seed=%d", seed)
    return int(seed)


# ============================================================
# 2x2 matrix helpers, matrices in the trailing two axes
# ============================================================

def compute_det(m):
    """det of (..., 2, 2) matrices."""
    return m[..., 0, 0] * m[..., 1, 1] - m[..., 0, 1] * m[..., 1, 0]


def invert_2x2(m):
    """Adjugate inverse of (..., 2, 2) matrices."""
    det = compute_det(m)
    row0 = jnp.stack([m[..., 1, 1] / det, -m[..., 0, 1] / det], axis=-1)
    row1 = jnp.stack([-m[..., 1, 0] / det, m[..., 0, 0] / det], axis=-1)
    return jnp.stack([row0, row1], axis=-2)


def draw_positive_det(key, n, lo, hi, dtype='float64', max_rounds=1000):
    """
    Draw n 2x2 matrices with entries in [lo, hi) and det > 0.

    Accepted matrices are kept; only rejected ones are redrawn, each round
    with a fresh subkey.

    Returns:
        m: (n, 2, 2) matrices
        rounds: number of redraw rounds needed

    Raises:
        RedrawLimitExceeded: points still rejected after max_rounds rounds
    """
    key, sub = jax.random.split(key)
    m = jax.random.uniform(sub, (n, 2, 2), dtype=dtype, minval=lo, maxval=hi)
    rejected = compute_det(m) <= 0.0

    rounds = 0
    while bool(jnp.any(rejected)):
        if rounds >= max_rounds:
            raise RedrawLimitExceeded(rounds, int(jnp.sum(rejected)))
        key, sub = jax.random.split(key)
        candidate = jax.random.uniform(sub, (n, 2, 2), dtype=dtype,
                                       minval=lo, maxval=hi)
        m = jnp.where(rejected[:, None, None], candidate, m)
        rejected = compute_det(m) <= 0.0
        rounds += 1

    return m, rounds


# ============================================================
# Store generation
# ============================================================

def random_init(store, num_elems, seed=None):
    """
    Allocate store (varying viscosity) and fill it with random geometry.

    Args:
        store: GeometryStore (re-initialised here)
        num_elems: element count
        seed: int for reproducible output; None for the config seed or,
            failing that, a non-deterministic one

    Returns:
        store, synced to compute
    """
    cfg = store.config
    store.init(num_elems, consthv=False)
    seed = resolve_seed(seed, cfg)
    lo, hi = cfg.min_value, cfg.max_value
    np_ = cfg.np

    plain = [name for name in FIELDS if name not in ('d', 'dinv')]
    key = jax.random.PRNGKey(seed)
    key, *subkeys = jax.random.split(key, len(plain) + 1)

    for name, sub in zip(plain, subkeys):
        h = store.host(name)
        h[...] = np.asarray(jax.random.uniform(sub, h.shape, dtype=cfg.dtype,
                                               minval=lo, maxval=hi))

    # One matrix per (element, igp, jgp), moved to [ie, idim, jdim, igp, jgp]
    npts = num_elems * np_ * np_
    m, rounds = draw_positive_det(key, npts, lo, hi, dtype=cfg.dtype,
                                  max_rounds=cfg.max_redraw_rounds)
    minv = invert_2x2(m)

    def to_store(a):
        return jnp.transpose(a.reshape(num_elems, np_, np_, 2, 2), (0, 3, 4, 1, 2))

    store.host('d')[...] = np.asarray(to_store(m))
    store.host('dinv')[...] = np.asarray(to_store(minv))

    store.sync()
    logger.info("random geometry: %d elements, seed=%d, %d redraw rounds for D",
                num_elems, seed, rounds)
    return store


def random_geometry(num_elems, seed=None, config=None):
    """New GeometryStore filled by random_init."""
    return random_init(GeometryStore(config), num_elems, seed=seed)
