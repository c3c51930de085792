"""
sem_geometry — Per-Element Geometry Store for Spectral-Element Meshes
======================================================================

Holds the geometric metadata every numerical operator on the mesh reads:
covariant basis D and its inverse, metric determinant and inverse metric,
mass-matrix weights, Coriolis factor, surface geopotential and, with
non-constant hyperviscosity, the viscosity tensor and the
spherical-to-Cartesian vector transform.

Modules:
    config         — GeometryConfig (NP, dtype, generator range, seed)
    errors         — ContractViolation, AbsentFieldError, RedrawLimitExceeded
    layout         — Flat external order ↔ (idim, jdim, igp, jgp), field table
    device         — Host mirror + jax compute copy, explicit sync()
    store          — GeometryStore allocation and viscosity-mode gating
    loader         — One element of external mesh data → store
    synthetic      — Random geometry with det(D) > 0 for tests
    diagnostics    — det, D·Dinv residual, range checks, area, export
    logging_config — setup_logging() for the 'sem_geometry' logger
"""
