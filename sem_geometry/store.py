"""
store.py — Per-Element Geometry Store
=======================================

GeometryStore owns every per-element geometric field of the mesh:

    fcor, spheremp, rspheremp, metdet, phis     (num_elems, NP, NP)
    metinv, d, dinv                             (num_elems, 2, 2, NP, NP)
    tensorvisc                                  (num_elems, 2, 2, NP, NP)  varying only
    vec_sph2cart                                (num_elems, 2, 3, NP, NP)  varying only

The viscosity mode is fixed at init().  In CONSTANT mode the two optional
fields are never allocated and reading them raises AbsentFieldError; in
VARYING mode both exist and are carried together in VaryingViscosityFields.

Field properties return the compute view (jax.Array).  Host mirrors are
reached through host(name) and are what the loader and generator write.
"""

import enum
import logging
import numbers
from collections import OrderedDict
from typing import NamedTuple, Optional

import jax

from .config import GeometryConfig
from .device import DeviceField, allocate
from .errors import AbsentFieldError, ContractViolation
from .layout import FIELDS, OPTIONAL_FIELDS, field_kind, store_shape

logger = logging.getLogger(__name__)


class ViscosityMode(enum.Enum):
    CONSTANT = 'constant'
    VARYING = 'varying'

    @classmethod
    def from_consthv(cls, consthv):
        return cls.CONSTANT if consthv else cls.VARYING

    @property
    def consthv(self):
        return self is ViscosityMode.CONSTANT


class VaryingViscosityFields(NamedTuple):
    """The two fields that only exist with non-constant hyperviscosity."""
    tensorvisc: DeviceField
    vec_sph2cart: DeviceField


class ElementGeometry(NamedTuple):
    """Compute views of one element, as read by downstream operators."""
    fcor: jax.Array          # [NP, NP]
    spheremp: jax.Array      # [NP, NP]
    rspheremp: jax.Array     # [NP, NP]
    metinv: jax.Array        # [2, 2, NP, NP]
    metdet: jax.Array        # [NP, NP]
    phis: jax.Array          # [NP, NP]
    d: jax.Array             # [2, 2, NP, NP]
    dinv: jax.Array          # [2, 2, NP, NP]
    tensorvisc: Optional[jax.Array] = None    # [2, 2, NP, NP]
    vec_sph2cart: Optional[jax.Array] = None  # [2, 3, NP, NP]


def _compute_view(name):
    def getter(self):
        return self.field(name).device
    getter.__name__ = name
    getter.__doc__ = f"Compute view of {FIELDS[name][0]}."
    return property(getter)


class GeometryStore:
    """
    Allocation and access for all per-element geometry of one run.

    Usage:
        store = GeometryStore().init(num_elems, consthv=False)
        load_element(store, ie, ...)      # or random_init(store, num_elems)
        store.d[ie, 0, 1]                 # compute view, [NP, NP]
    """

    def __init__(self, config=None):
        self.config = (config or GeometryConfig()).validate()
        self._num_elems = None
        self._mode = None
        self._fields = OrderedDict()
        self._varying = None

    # ============================================================
    # Allocation
    # ============================================================

    def init(self, num_elems, consthv):
        """
        Allocate every field for num_elems elements.

        Calling init again drops the previous buffers and allocates new
        ones; nothing is shared with the old allocation.

        Args:
            num_elems: element count, >= 0
            consthv: True for constant viscosity (no optional fields)

        Returns:
            self
        """
        if isinstance(num_elems, bool) or not isinstance(num_elems, numbers.Integral):
            raise ContractViolation(
                f"num_elems must be an integer, got {num_elems!r}")
        if num_elems < 0:
            raise ContractViolation(f"num_elems must be >= 0, got {num_elems}")
        num_elems = int(num_elems)
        mode = ViscosityMode.from_consthv(consthv)
        np_, dtype = self.config.np, self.config.dtype

        fields = OrderedDict()
        for name, (tag, kind, optional) in FIELDS.items():
            if optional and mode is ViscosityMode.CONSTANT:
                continue
            fields[name] = allocate(tag, store_shape(kind, np_, num_elems), dtype)

        self._fields = fields
        self._num_elems = num_elems
        self._mode = mode
        if mode is ViscosityMode.VARYING:
            self._varying = VaryingViscosityFields(
                fields['tensorvisc'], fields['vec_sph2cart'])
        else:
            self._varying = None

        logger.info("GeometryStore: %d elements, NP=%d, %s viscosity, %d fields, %.1f KiB",
                    num_elems, np_, mode.value, len(fields), self.nbytes / 1024.0)
        return self

    # ============================================================
    # State
    # ============================================================

    def _require_init(self):
        if self._mode is None:
            raise ContractViolation("GeometryStore used before init()")

    @property
    def initialized(self):
        return self._mode is not None

    @property
    def np(self):
        return self.config.np

    @property
    def num_elems(self):
        self._require_init()
        return self._num_elems

    @property
    def mode(self):
        self._require_init()
        return self._mode

    @property
    def consthv(self):
        return self.mode.consthv

    @property
    def nbytes(self):
        """Host bytes held; the compute side holds the same amount again."""
        return sum(f.nbytes for f in self._fields.values())

    def check_element(self, ie):
        """Raise ContractViolation unless 0 <= ie < num_elems."""
        n = self.num_elems
        if not 0 <= ie < n:
            raise ContractViolation(f"element index {ie} out of range [0, {n})")

    # ============================================================
    # Field access
    # ============================================================

    def field(self, name):
        """DeviceField handle for a named field."""
        self._require_init()
        field_kind(name)
        if name in OPTIONAL_FIELDS and self._varying is None:
            raise AbsentFieldError(name)
        return self._fields[name]

    def host(self, name):
        """Writable host mirror of a named field."""
        return self.field(name).host

    def has_field(self, name):
        return name in self._fields

    def field_names(self):
        """Allocated field names, in allocation order."""
        return list(self._fields)

    @property
    def varying(self):
        """VaryingViscosityFields; absent in constant mode."""
        self._require_init()
        if self._varying is None:
            raise AbsentFieldError('tensorvisc')
        return self._varying

    fcor = _compute_view('fcor')
    spheremp = _compute_view('spheremp')
    rspheremp = _compute_view('rspheremp')
    metinv = _compute_view('metinv')
    metdet = _compute_view('metdet')
    phis = _compute_view('phis')
    d = _compute_view('d')
    dinv = _compute_view('dinv')
    tensorvisc = _compute_view('tensorvisc')
    vec_sph2cart = _compute_view('vec_sph2cart')

    def element(self, ie):
        """ElementGeometry of compute slices for element ie."""
        self.check_element(ie)
        views = {name: f.device[ie] for name, f in self._fields.items()}
        return ElementGeometry(**views)

    # ============================================================
    # Synchronisation
    # ============================================================

    def sync(self):
        """Push every host mirror to compute."""
        self._require_init()
        for f in self._fields.values():
            f.sync()
        return self

    def __repr__(self):
        if self._mode is None:
            return f"GeometryStore(np={self.np}, uninitialized)"
        return (f"GeometryStore(num_elems={self._num_elems}, np={self.np}, "
                f"mode={self._mode.value}, fields={self.field_names()})")
