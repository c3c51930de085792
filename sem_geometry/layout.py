"""
layout.py — External ↔ Internal Index Mapping
===============================================

The mesh generator hands over one flat array per geometric quantity per
element.  The flat order is row-major over the structured index:

    scalar      [igp][jgp]                     size NP*NP
    tensor22    [idim][jdim][igp][jgp]         size 2*2*NP*NP
    tensor23    [idim][jdim][igp][jgp]         size 2*3*NP*NP, jdim in {0,1,2}

so the offset of (idim, jdim, igp, jgp) is

    ((idim * ncols + jdim) * NP + igp) * NP + jgp

The internal per-element layout uses exactly the same index order, which
makes the load a pure reshape: no reordering, no arithmetic.

FIELDS is the single table of every per-element field the store knows:
name → (allocation tag, kind, optional?).  Optional fields only exist in
varying-viscosity mode.
"""

from collections import OrderedDict

import numpy as np

from .errors import ContractViolation


SCALAR = 'scalar'
TENSOR22 = 'tensor22'
TENSOR23 = 'tensor23'

# (rows, cols) of the tensor part; scalars have none
_TENSOR_DIMS = {
    SCALAR: (),
    TENSOR22: (2, 2),
    TENSOR23: (2, 3),
}


# ============================================================
# Field table (allocation order)
# ============================================================

FIELDS = OrderedDict([
    ('fcor',         ('FCOR',         SCALAR,   False)),
    ('spheremp',     ('SPHEREMP',     SCALAR,   False)),
    ('rspheremp',    ('RSPHEREMP',    SCALAR,   False)),
    ('metinv',       ('METINV',       TENSOR22, False)),
    ('metdet',       ('METDET',       SCALAR,   False)),
    ('tensorvisc',   ('TENSORVISC',   TENSOR22, True)),
    ('vec_sph2cart', ('VEC_SPH2CART', TENSOR23, True)),
    ('phis',         ('PHIS',         SCALAR,   False)),
    ('d',            ('D',            TENSOR22, False)),
    ('dinv',         ('DINV',         TENSOR22, False)),
])

MANDATORY_FIELDS = tuple(n for n, (_, _, opt) in FIELDS.items() if not opt)
OPTIONAL_FIELDS = tuple(n for n, (_, _, opt) in FIELDS.items() if opt)


def field_kind(name):
    """Kind ('scalar', 'tensor22', 'tensor23') of a named field."""
    try:
        return FIELDS[name][1]
    except KeyError:
        raise ContractViolation(f"unknown geometry field: {name!r}") from None


# ============================================================
# Shapes
# ============================================================

def element_shape(kind, np_):
    """Shape of one element's worth of a field of this kind."""
    try:
        dims = _TENSOR_DIMS[kind]
    except KeyError:
        raise ContractViolation(f"unknown field kind: {kind!r}") from None
    return dims + (np_, np_)


def element_size(kind, np_):
    """Number of values in one element's worth of a field of this kind."""
    return int(np.prod(element_shape(kind, np_)))


def store_shape(kind, np_, num_elems):
    """Shape of the whole-mesh array: element axis first."""
    return (num_elems,) + element_shape(kind, np_)


# ============================================================
# Offset mapping
# ============================================================

def _check_index(label, value, extent):
    if not 0 <= value < extent:
        raise ContractViolation(f"{label}={value} out of range [0, {extent})")


def flat_offset(kind, np_, idim=0, jdim=0, igp=0, jgp=0):
    """
    Linear offset into an external flat array of one element.

    For scalars idim/jdim must be 0.  Every index is bounds-checked.

    Returns:
        int offset in [0, element_size(kind, np_))
    """
    dims = element_shape(kind, np_)[:-2]
    if dims:
        rows, cols = dims
        _check_index("idim", idim, rows)
        _check_index("jdim", jdim, cols)
    else:
        cols = 1
        _check_index("idim", idim, 1)
        _check_index("jdim", jdim, 1)
    _check_index("igp", igp, np_)
    _check_index("jgp", jgp, np_)
    return ((idim * cols + jdim) * np_ + igp) * np_ + jgp


def unravel_offset(kind, np_, offset):
    """
    Inverse of flat_offset: offset → (idim, jdim, igp, jgp).

    Scalars return idim = jdim = 0.
    """
    _check_index("offset", offset, element_size(kind, np_))
    dims = element_shape(kind, np_)[:-2]
    cols = dims[1] if dims else 1
    rest, jgp = divmod(offset, np_)
    rest, igp = divmod(rest, np_)
    idim, jdim = divmod(rest, cols)
    return idim, jdim, igp, jgp


# ============================================================
# Flat ↔ structured views
# ============================================================

def as_element(values, kind, np_, name="array"):
    """
    View an external per-element array in the structured internal order.

    Accepts a flat sequence or an array of any shape whose total size
    matches; the values are reinterpreted row-major without copying where
    numpy allows.  Only the size is validated.

    Raises:
        ContractViolation: values is None or has the wrong number of entries
    """
    if values is None:
        raise ContractViolation(f"{name}: external array is missing")
    arr = np.asarray(values)
    expected = element_size(kind, np_)
    if arr.size != expected:
        raise ContractViolation(
            f"{name}: expected {expected} values for a {kind} element "
            f"with NP={np_}, got {arr.size}")
    return arr.reshape(element_shape(kind, np_))


def as_flat(values):
    """Flatten a structured per-element array back to external order."""
    return np.ascontiguousarray(values).reshape(-1)
