"""
config.py — Run Parameters
============================

Central registry for the constants that fix the geometry layout and the
synthetic generator.  NP is the number of GLL points per direction on the
reference square (the grid on every element is NP x NP).

Environment overrides (all optional):
    SEM_GEOMETRY_NP                  int
    SEM_GEOMETRY_DTYPE               'float64' or 'float32'
    SEM_GEOMETRY_MAX_REDRAW_ROUNDS   int
    SEM_GEOMETRY_SEED                int
"""

import os
from typing import NamedTuple, Optional

from .errors import ContractViolation


NP = 4

# Generator range is [MIN_VALUE, 1/MIN_VALUE]
MIN_VALUE = 0.015625

SUPPORTED_DTYPES = ('float64', 'float32')


class GeometryConfig(NamedTuple):
    """Layout and generator parameters for one GeometryStore."""
    np: int = NP
    dtype: str = 'float64'
    min_value: float = MIN_VALUE
    max_redraw_rounds: int = 1000
    seed: Optional[int] = None

    @property
    def max_value(self):
        return 1.0 / self.min_value

    def validate(self):
        """Raise ContractViolation if any parameter is unusable; return self."""
        if self.np < 1:
            raise ContractViolation(f"np must be >= 1, got {self.np}")
        if self.dtype not in SUPPORTED_DTYPES:
            raise ContractViolation(
                f"dtype must be one of {SUPPORTED_DTYPES}, got {self.dtype!r}")
        if not 0.0 < self.min_value < 1.0:
            raise ContractViolation(
                f"min_value must lie in (0, 1), got {self.min_value}")
        if self.max_redraw_rounds < 1:
            raise ContractViolation(
                f"max_redraw_rounds must be >= 1, got {self.max_redraw_rounds}")
        return self

    @classmethod
    def from_env(cls, prefix="SEM_GEOMETRY_", environ=None):
        """Build a config from defaults overridden by environment variables."""
        env = os.environ if environ is None else environ
        kwargs = {}
        try:
            if prefix + "NP" in env:
                kwargs['np'] = int(env[prefix + "NP"])
            if prefix + "DTYPE" in env:
                kwargs['dtype'] = env[prefix + "DTYPE"]
            if prefix + "MAX_REDRAW_ROUNDS" in env:
                kwargs['max_redraw_rounds'] = int(env[prefix + "MAX_REDRAW_ROUNDS"])
            if prefix + "SEED" in env:
                kwargs['seed'] = int(env[prefix + "SEED"])
        except ValueError as exc:
            raise ContractViolation(f"bad {prefix}* environment value: {exc}") from exc
        return cls(**kwargs).validate()
