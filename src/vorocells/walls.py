"""Bounding walls that clip Voronoi cells.

A wall contributes one clipping plane to the cell of each particle. For
curved walls the plane is tangent to the surface at the point nearest to the
particle, so a cell is bounded by a polyhedral approximation of the surface
that becomes finer as particles get denser.

Walls are plain immutable values: they are created per call by
:func:`make_wall` and owned by the container they are added to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence, Union

import math
import warnings

import numpy as np


# Neighbor id reported for faces generated by a wall. Distinct from the box
# face ids (-1..-6) and from the packing sentinel (-10).
DEFAULT_WALL_ID = -99

Plane = tuple[np.ndarray, float]


class WallError(ValueError):
    """Raised when a wall specification is invalid."""


def _vec3(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).reshape(3)


def _unit(v: np.ndarray) -> tuple[np.ndarray, float]:
    n = float(np.linalg.norm(v))
    return (v / n if n > 0.0 else v), n


@dataclass(frozen=True, slots=True)
class SphereWall:
    """Spherical wall; particles are kept inside the sphere."""

    center: tuple[float, float, float]
    radius: float
    wall_id: int = DEFAULT_WALL_ID

    kind = 'sphere'

    def cut(self, site: np.ndarray, tol: float = 0.0) -> Plane | None:
        c = _vec3(self.center)
        n, dist = _unit(np.asarray(site, dtype=np.float64) - c)
        # The tangent plane is undefined for a particle at the center.
        if dist <= tol:
            return None
        return n, float(n @ c) + float(self.radius)

    def contains(self, points: np.ndarray) -> np.ndarray:
        d = np.asarray(points, dtype=np.float64).reshape(-1, 3) - _vec3(self.center)
        return np.einsum('ij,ij->i', d, d) < float(self.radius) ** 2


@dataclass(frozen=True, slots=True)
class CylinderWall:
    """Infinite cylindrical wall around an axis; particles are kept inside."""

    axis_point: tuple[float, float, float]
    axis_direction: tuple[float, float, float]
    radius: float
    wall_id: int = DEFAULT_WALL_ID

    kind = 'cylinder'

    def _perpendicular(self, points: np.ndarray) -> np.ndarray:
        a, _ = _unit(_vec3(self.axis_direction))
        d = np.asarray(points, dtype=np.float64).reshape(-1, 3) - _vec3(
            self.axis_point
        )
        return d - np.outer(d @ a, a)

    def cut(self, site: np.ndarray, tol: float = 0.0) -> Plane | None:
        n, dist = _unit(self._perpendicular(site)[0])
        if dist <= tol:
            return None
        return n, float(n @ _vec3(self.axis_point)) + float(self.radius)

    def contains(self, points: np.ndarray) -> np.ndarray:
        perp = self._perpendicular(points)
        return np.einsum('ij,ij->i', perp, perp) < float(self.radius) ** 2


@dataclass(frozen=True, slots=True)
class PlaneWall:
    """Planar wall keeping the half-space ``normal . x <= displacement``."""

    normal: tuple[float, float, float]
    displacement: float
    wall_id: int = DEFAULT_WALL_ID

    kind = 'plane'

    def cut(self, site: np.ndarray, tol: float = 0.0) -> Plane | None:
        n, norm = _unit(_vec3(self.normal))
        return n, float(self.displacement) / norm

    def contains(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        return pts @ _vec3(self.normal) < float(self.displacement)


@dataclass(frozen=True, slots=True)
class ConeWall:
    """Conical wall opening from ``apex`` along ``axis_direction``.

    ``half_angle`` is the angle between the axis and the cone surface, in
    radians.
    """

    apex: tuple[float, float, float]
    axis_direction: tuple[float, float, float]
    half_angle: float
    wall_id: int = DEFAULT_WALL_ID

    kind = 'cone'

    def cut(self, site: np.ndarray, tol: float = 0.0) -> Plane | None:
        apex = _vec3(self.apex)
        a, _ = _unit(_vec3(self.axis_direction))
        d = np.asarray(site, dtype=np.float64) - apex
        e, dist = _unit(d - (d @ a) * a)
        if dist <= tol:
            return None
        ang = float(self.half_angle)
        n = math.cos(ang) * e - math.sin(ang) * a
        return n, float(n @ apex)

    def contains(self, points: np.ndarray) -> np.ndarray:
        a, _ = _unit(_vec3(self.axis_direction))
        d = np.asarray(points, dtype=np.float64).reshape(-1, 3) - _vec3(self.apex)
        along = d @ a
        perp = d - np.outer(along, a)
        limit = along * math.tan(float(self.half_angle))
        return (along > 0.0) & (np.einsum('ij,ij->i', perp, perp) < limit * limit)


Wall = Union[SphereWall, CylinderWall, PlaneWall, ConeWall]

# Wall name -> exact number of parameters.
WALL_ARITY: dict[str, int] = {'sphere': 4, 'cylinder': 7, 'plane': 4, 'cone': 7}

_NO_WALL_NAMES = ('', 'none')


def make_wall(
    name: str | None,
    args: Sequence[float] = (),
    *,
    unknown: Literal['raise', 'warn', 'ignore'] = 'raise',
    wall_id: int = DEFAULT_WALL_ID,
) -> Wall | None:
    """Validate a wall specification and build the wall.

    Args:
        name: Wall type: ``'sphere'``, ``'cylinder'``, ``'plane'`` or
            ``'cone'``. ``None``, ``''`` and ``'none'`` mean "no wall".
        args: Flat parameter list:

            - sphere: ``(cx, cy, cz, radius)``
            - cylinder: ``(px, py, pz, ax, ay, az, radius)`` where ``p`` is a
              point on the axis and ``a`` the axis direction
            - plane: ``(nx, ny, nz, displacement)``
            - cone: ``(px, py, pz, ax, ay, az, half_angle)`` where ``p`` is
              the apex

        unknown: Behavior for unrecognized names:
            - 'raise' (default): raise :class:`WallError`
            - 'warn': emit a RuntimeWarning and add no wall
            - 'ignore': add no wall
        wall_id: Negative neighbor id reported for faces on the wall.

    Returns:
        The wall, or None if no wall is requested.

    Raises:
        WallError: If the specification is invalid.
    """
    if unknown not in ('raise', 'warn', 'ignore'):
        raise ValueError('unknown must be one of: \'raise\', \'warn\', \'ignore\'')
    if name is None or name.strip().lower() in _NO_WALL_NAMES:
        return None

    arity = WALL_ARITY.get(name)
    if arity is None:
        msg = (
            f'unsupported wall type {name!r}; '
            f'expected one of: {", ".join(sorted(WALL_ARITY))}'
        )
        if unknown == 'raise':
            raise WallError(msg)
        if unknown == 'warn':
            warnings.warn(msg + '. No wall is added.', RuntimeWarning, stacklevel=2)
        return None

    vals = np.asarray(args, dtype=np.float64).reshape(-1)
    if vals.size != arity:
        raise WallError(
            f'invalid number of arguments for a {name!r} wall, '
            f'exactly {arity} are needed (got {vals.size})'
        )
    if not np.all(np.isfinite(vals)):
        raise WallError(f'the arguments of a {name!r} wall must be finite')
    wid = int(wall_id)
    if wid >= 0:
        raise WallError('wall_id must be negative')

    if name == 'sphere':
        if vals[3] <= 0.0:
            raise WallError('the radius of a \'sphere\' wall must be strictly positive')
        return SphereWall(
            center=tuple(float(v) for v in vals[:3]), radius=float(vals[3]), wall_id=wid
        )

    if name == 'plane':
        if not np.any(vals[:3] != 0.0):
            raise WallError('the normal of a \'plane\' wall must be non-zero')
        return PlaneWall(
            normal=tuple(float(v) for v in vals[:3]),
            displacement=float(vals[3]),
            wall_id=wid,
        )

    if not np.any(vals[3:6] != 0.0):
        raise WallError(f'the axis direction of a {name!r} wall must be non-zero')
    point = tuple(float(v) for v in vals[:3])
    direction = tuple(float(v) for v in vals[3:6])

    if name == 'cylinder':
        if vals[6] <= 0.0:
            raise WallError(
                'the radius of a \'cylinder\' wall must be strictly positive'
            )
        return CylinderWall(
            axis_point=point, axis_direction=direction, radius=float(vals[6]),
            wall_id=wid,
        )

    if not 0.0 < vals[6] < 0.5 * math.pi:
        raise WallError(
            'the half angle of a \'cone\' wall must lie strictly between 0 and pi/2'
        )
    return ConeWall(
        apex=point, axis_direction=direction, half_angle=float(vals[6]), wall_id=wid
    )
