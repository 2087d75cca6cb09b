"""Internal shared helpers.

This module exists to avoid duplicating small pieces of domain logic across
`api`, `engine`, and `diagnostics`.
"""

from __future__ import annotations

import numpy as np

from .domains import Box


def domain_length_scale(domain: Box) -> float:
    """Return a characteristic length scale of the domain.

    The value is used for heuristic tolerances. It is **not** guaranteed to
    be a rigorous bound on any geometric quantity.
    """

    (xmin, xmax), (ymin, ymax), (zmin, zmax) = domain.bounds
    return float(max(xmax - xmin, ymax - ymin, zmax - zmin))


def default_tolerance(L: float, *, rel: float = 1e-9) -> float:
    """Return a scale-relative geometric tolerance.

    The returned value scales with ``L`` and has **no** hard absolute floor.
    A machine-epsilon-based lower bound keeps it from becoming numerically
    ineffective for typical floating-point ranges.
    """

    Lf = float(L)
    if not np.isfinite(Lf) or Lf <= 0.0:
        return 0.0
    epsf = float(np.finfo(float).eps)
    return float(max(rel * Lf, 64.0 * epsf * Lf))


def as_points(points) -> np.ndarray:
    """Return points as a float64 (n, 3) array, validating shape and values."""
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError('points must have shape (n, 3)')
    if not np.all(np.isfinite(pts)):
        raise ValueError('points must contain only finite values')
    return pts
