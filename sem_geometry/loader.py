"""
loader.py — External Mesh Data → GeometryStore
================================================

Copies one element's externally ordered flat arrays into the store,
index for index:

    scalars     h(igp, jgp)             = ext(igp, jgp)
    2x2 tensors h(idim, jdim, igp, jgp) = ext(idim, jdim, igp, jgp)
    2x3 tensor  h(idim, jdim, igp, jgp) = ext(idim, jdim, igp, jgp),  jdim < 3

No interpolation, scaling or derived quantity is computed: Dinv is stored
as given even if it is not the inverse of the given D.  After the copy each
field of the element is synced (DeviceField.sync) before returning, so the
next compute read observes it.
"""

import logging
from typing import NamedTuple, Optional

import numpy as np

from .errors import ContractViolation
from .layout import FIELDS, MANDATORY_FIELDS, OPTIONAL_FIELDS, as_element

logger = logging.getLogger(__name__)


class ExternalElement(NamedTuple):
    """One element's worth of externally ordered flat arrays."""
    D: np.ndarray
    Dinv: np.ndarray
    fcor: np.ndarray
    spheremp: np.ndarray
    rspheremp: np.ndarray
    metdet: np.ndarray
    metinv: np.ndarray
    phis: np.ndarray
    tensorvisc: Optional[np.ndarray] = None
    vec_sph2cart: Optional[np.ndarray] = None

    def as_fields(self):
        """Map store field names to the external arrays."""
        return {
            'd': self.D, 'dinv': self.Dinv,
            'fcor': self.fcor, 'spheremp': self.spheremp,
            'rspheremp': self.rspheremp, 'metdet': self.metdet,
            'metinv': self.metinv, 'phis': self.phis,
            'tensorvisc': self.tensorvisc, 'vec_sph2cart': self.vec_sph2cart,
        }


def _resolve_mode(store, consthv):
    if consthv is None:
        return store.consthv
    if bool(consthv) != store.consthv:
        raise ContractViolation(
            f"load requested consthv={bool(consthv)} but store was "
            f"initialised with consthv={store.consthv}")
    return store.consthv


def load_element(store, ie, D, Dinv=None, fcor=None, spheremp=None,
                 rspheremp=None, metdet=None, metinv=None, phis=None,
                 tensorvisc=None, vec_sph2cart=None, consthv=None):
    """
    Load element ie from external flat arrays.

    Args:
        store: initialised GeometryStore
        ie: element index in [0, store.num_elems)
        D, Dinv, metinv: 2x2 tensors, 4*NP*NP values each
        fcor, spheremp, rspheremp, metdet, phis: scalars, NP*NP values each
        tensorvisc: 2x2 tensor, only read when not consthv
        vec_sph2cart: 2x3 tensor, 6*NP*NP values, only read when not consthv
        consthv: must match the store's mode if given; None uses the store's

    D may also be an ExternalElement, in which case every other array
    argument must be left as None.

    Values are never converted: an array whose dtype cannot be cast to the
    store dtype without loss (float64 into a float32 store) is rejected.

    Raises:
        ContractViolation: bad index, missing/mis-sized array, lossy dtype,
            mode mismatch, ExternalElement mixed with separate arrays
    """
    if isinstance(D, ExternalElement):
        separate = dict(Dinv=Dinv, fcor=fcor, spheremp=spheremp, rspheremp=rspheremp,
                        metdet=metdet, metinv=metinv, phis=phis,
                        tensorvisc=tensorvisc, vec_sph2cart=vec_sph2cart)
        extra = [k for k, v in separate.items() if v is not None]
        if extra:
            raise ContractViolation(
                f"ExternalElement given together with separate arrays {extra}")
        external = D.as_fields()
    else:
        external = {
            'd': D, 'dinv': Dinv, 'fcor': fcor, 'spheremp': spheremp,
            'rspheremp': rspheremp, 'metdet': metdet, 'metinv': metinv,
            'phis': phis, 'tensorvisc': tensorvisc, 'vec_sph2cart': vec_sph2cart,
        }

    store.check_element(ie)
    const_mode = _resolve_mode(store, consthv)
    names = MANDATORY_FIELDS if const_mode else MANDATORY_FIELDS + OPTIONAL_FIELDS
    np_ = store.np

    # Validate every input before touching the store
    staged = {}
    for name in names:
        kind = FIELDS[name][1]
        arr = as_element(external[name], kind, np_, name=name)
        host_dtype = store.field(name).dtype
        if not np.can_cast(arr.dtype, host_dtype, 'safe'):
            raise ContractViolation(
                f"{name}: {arr.dtype} values would lose precision in a "
                f"{host_dtype} store")
        staged[name] = arr

    for name in names:
        store.host(name)[ie] = staged[name]

    for name in names:
        store.field(name).sync(ie)

    logger.debug("loaded element %d (%d fields)", ie, len(names))


def load_elements(store, arrays, consthv=None):
    """
    Load every element of the mesh, one load_element call per element.

    Args:
        store: initialised GeometryStore
        arrays: mapping of ExternalElement field names ('D', 'Dinv', 'fcor',
            ...) to either a sequence of per-element arrays or an array
            whose leading axis is the element index; or a sequence of
            ExternalElement
        consthv: as for load_element

    Returns:
        number of elements loaded
    """
    n = store.num_elems
    if isinstance(arrays, (list, tuple)):
        if len(arrays) != n:
            raise ContractViolation(f"got {len(arrays)} elements, store holds {n}")
        for ie, element in enumerate(arrays):
            load_element(store, ie, element, consthv=consthv)
    else:
        required = [k for k in ExternalElement._fields
                    if k not in ExternalElement._field_defaults]
        missing = [k for k in required if k not in arrays]
        if missing:
            raise ContractViolation(f"missing external arrays: {missing}")
        for key, values in arrays.items():
            if key not in ExternalElement._fields:
                raise ContractViolation(f"unknown external array {key!r}")
            if values is not None and len(values) != n:
                raise ContractViolation(
                    f"{key}: got {len(values)} elements, store holds {n}")
        for ie in range(n):
            per_elem = {key: (None if values is None else values[ie])
                        for key, values in arrays.items()}
            load_element(store, ie, ExternalElement(**per_elem), consthv=consthv)

    logger.info("loaded %d elements", n)
    return n
