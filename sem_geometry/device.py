"""
device.py — Host/Compute Dual Storage
=======================================

Every geometry field lives twice:

    host    writable numpy mirror, filled by the loader / generator
    device  jax.Array on the compute device, read by numerical operators

The two are never aliased.  sync() with no element pushes the whole host
mirror and blocks until the transfer is complete.

sync(ie) snapshots element ie (O(element)) into a pending set.  Pending
elements are published in one scatter, blocking, the next time the
compute view is read, so loading a mesh element by element costs one
whole-field update rather than one per element.  Every compute read goes
through DeviceField.device, so a read always observes the host values as
of the last sync of each element.  jax arrays are immutable: the compute
view is replaced in one step and a half-written element is never
observable.
"""

import logging

import numpy as np
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp

from .errors import ContractViolation

logger = logging.getLogger(__name__)


class DeviceField:
    """One tagged field: host mirror plus compute copy."""

    def __init__(self, tag, host, device, placement=None):
        self.tag = tag
        self.host = host
        self._device = device
        self._placement = placement
        self._pending = {}

    @property
    def shape(self):
        return self.host.shape

    @property
    def dtype(self):
        return self.host.dtype

    @property
    def nbytes(self):
        return self.host.nbytes

    @property
    def device(self):
        """Compute view, with every synced element published."""
        if self._pending:
            self._publish()
        return self._device

    @property
    def pending_elements(self):
        """Elements synced but not yet published to the compute view."""
        return sorted(self._pending)

    def _check_element(self, ie):
        n = self.host.shape[0]
        if not 0 <= ie < n:
            raise ContractViolation(
                f"{self.tag}: element index {ie} out of range [0, {n})")

    def _publish(self):
        rows = sorted(self._pending)
        idx = jnp.asarray(np.asarray(rows, dtype=np.int64))
        vals = jnp.asarray(np.stack([self._pending[ie] for ie in rows]))
        self._device = self._device.at[idx].set(vals).block_until_ready()
        self._pending.clear()
        logger.debug("publish %s -> compute (%d element(s))", self.tag, len(rows))

    def sync(self, ie=None):
        """
        Copy host values to compute.

        Args:
            ie: element index to sync, or None for the whole field

        With ie=None the transfer completes before returning.  With an
        element index the element is snapshotted now and published before
        the next compute read; later host writes to it are not seen until
        it is synced again.

        Returns:
            self
        """
        if ie is None:
            self._pending.clear()
            fresh = jax.device_put(jnp.array(self.host, copy=True), self._placement)
            self._device = fresh.block_until_ready()
        else:
            self._check_element(ie)
            self._pending[int(ie)] = np.array(self.host[ie], copy=True)
        logger.debug("sync %s -> compute (element %s)", self.tag,
                     "all" if ie is None else ie)
        return self

    def sync_to_host(self, ie=None):
        """Copy compute values back into the host mirror."""
        if ie is None:
            self.host[...] = np.asarray(self.device)
        else:
            self._check_element(ie)
            self.host[ie] = np.asarray(self.device[ie])
        logger.debug("sync %s -> host (element %s)", self.tag,
                     "all" if ie is None else ie)
        return self

    def __repr__(self):
        return f"DeviceField({self.tag!r}, shape={self.shape}, dtype={self.dtype})"


def allocate(tag, shape, dtype='float64', placement=None):
    """
    Allocate a zero-initialised tagged field on host and compute.

    Args:
        tag: label for logging and error messages (e.g. 'METINV')
        shape: full array shape, element axis first
        dtype: numpy/jax dtype name
        placement: jax device or sharding; None means the default device

    Returns:
        DeviceField

    MemoryError from either side propagates to the caller.
    """
    host = np.zeros(shape, dtype=dtype)
    device = jax.device_put(jnp.zeros(shape, dtype=dtype), placement)
    logger.debug("allocate %s shape=%s dtype=%s", tag, shape, dtype)
    return DeviceField(tag, host, device, placement)
