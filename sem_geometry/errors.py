"""
errors.py — Exception Taxonomy
================================

Every failure in sem_geometry is either a caller error (a broken contract
between the store and its collaborators) or an unrecoverable resource
failure.  Degenerate random draws in the generator are handled locally by
redrawing and never surface here unless the redraw cap is exhausted.

    GeometryError
    ├── ContractViolation        (also a ValueError)
    │   └── AbsentFieldError     (also an AttributeError)
    └── RedrawLimitExceeded      (also a RuntimeError)

MemoryError from allocation is not wrapped.
"""


class GeometryError(Exception):
    """Base class for all sem_geometry errors."""


class ContractViolation(GeometryError, ValueError):
    """Caller broke an interface contract (bad index, size, mode or state)."""


class AbsentFieldError(ContractViolation, AttributeError):
    """Optional viscosity field read while the store is in constant mode."""

    def __init__(self, name):
        super().__init__(
            f"field '{name}' is only allocated in varying-viscosity mode "
            f"(store was initialised with consthv=True)")
        self.name = name


class RedrawLimitExceeded(GeometryError, RuntimeError):
    """Rejection sampling of D ran out of redraw rounds."""

    def __init__(self, rounds, remaining):
        super().__init__(
            f"{remaining} grid point(s) still had det(D) <= 0 "
            f"after {rounds} redraw rounds")
        self.rounds = rounds
        self.remaining = remaining
