"""Domain specification for range Voronoi computations.

vorocells supports a single domain type:
- Box: orthogonal bounding box, non-periodic on every axis. Its six faces
  act as walls and appear in neighbor lists as ids -1..-6.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


# Neighbor ids reported for faces lying on the box boundary, in the order
# xmin, xmax, ymin, ymax, zmin, zmax.
BOX_FACE_IDS: tuple[int, int, int, int, int, int] = (-1, -2, -3, -4, -5, -6)


@dataclass(frozen=True, slots=True)
class Box:
    """Orthogonal bounding box domain.

    Args:
        bounds: Three (min, max) pairs for x, y, z.

    Raises:
        ValueError: If bounds are malformed or degenerate.
    """

    bounds: tuple[tuple[float, float], tuple[float, float], tuple[float, float]]

    def __post_init__(self) -> None:
        if len(self.bounds) != 3:
            raise ValueError('bounds must have length 3')
        for pair in self.bounds:
            if len(pair) != 2:
                raise ValueError('each bound must be a (min, max) pair')
            lo, hi = pair
            if not np.isfinite(lo) or not np.isfinite(hi):
                raise ValueError('bounds must be finite')
            if not hi > lo:
                raise ValueError('each bound must satisfy hi > lo')
        # Normalize to plain floats
        object.__setattr__(
            self,
            'bounds',
            tuple((float(lo), float(hi)) for lo, hi in self.bounds),
        )

    @classmethod
    def from_extents(
        cls,
        xmin: float,
        xmax: float,
        ymin: float,
        ymax: float,
        zmin: float,
        zmax: float,
    ) -> 'Box':
        """Create a box from the flat (xmin, xmax, ymin, ymax, zmin, zmax) form."""
        return cls(bounds=((xmin, xmax), (ymin, ymax), (zmin, zmax)))

    @property
    def lower(self) -> np.ndarray:
        return np.array([lo for lo, _ in self.bounds], dtype=np.float64)

    @property
    def upper(self) -> np.ndarray:
        return np.array([hi for _, hi in self.bounds], dtype=np.float64)

    @property
    def lengths(self) -> np.ndarray:
        """Edge lengths (Lx, Ly, Lz)."""
        return self.upper - self.lower

    @property
    def volume(self) -> float:
        (xmin, xmax), (ymin, ymax), (zmin, zmax) = self.bounds
        return float((xmax - xmin) * (ymax - ymin) * (zmax - zmin))

    @property
    def extents(self) -> tuple[float, float, float, float, float, float]:
        """Flat (xmin, xmax, ymin, ymax, zmin, zmax) form."""
        (xmin, xmax), (ymin, ymax), (zmin, zmax) = self.bounds
        return xmin, xmax, ymin, ymax, zmin, zmax

    def contains(self, points: np.ndarray, eps: float = 0.0) -> np.ndarray:
        """Return a boolean mask of points lying inside the closed box.

        Args:
            points: Array of shape (n, 3).
            eps: Absolute slack added on every side.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        lo = self.lower - float(eps)
        hi = self.upper + float(eps)
        return np.all((pts >= lo) & (pts <= hi), axis=1)


def as_box(domain: Box | Sequence[float]) -> Box:
    """Coerce a :class:`Box` or six flat extents into a :class:`Box`.

    Raises:
        ValueError: If the value cannot describe a box.
    """
    if isinstance(domain, Box):
        return domain
    ext = np.asarray(domain, dtype=np.float64).reshape(-1)
    if ext.shape != (6,):
        raise ValueError(
            'domain must be a Box or six extents '
            '(xmin, xmax, ymin, ymax, zmin, zmax)'
        )
    return Box.from_extents(*(float(v) for v in ext))
