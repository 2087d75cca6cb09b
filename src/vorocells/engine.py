"""In-process cell geometry engine.

The range computation consumes a cell geometry engine through four
operations, captured by the :class:`CellEngine` protocol:

  - construct a container over a domain with a block grid,
  - insert a point, optionally tagging it for later retrieval,
  - add a bounding wall,
  - compute the cell of a tagged point.

:class:`Container` is the default implementation. A cell is the domain box
clipped by the wall plane (if any) and by the bisector half-spaces of the
particles around it; the clipped polyhedron is built with
:class:`scipy.spatial.HalfspaceIntersection`.

Nearby particles are gathered from growing shells of grid blocks. A shell
is large enough once its inner radius exceeds twice the distance from the
particle to its farthest cell vertex: no particle beyond that radius can
contribute a bisector that touches the cell, so the result is exact.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Protocol, Sequence

import logging

import numpy as np
from scipy.optimize import linprog
from scipy.spatial import ConvexHull, HalfspaceIntersection, QhullError

from .domains import BOX_FACE_IDS, Box
from .walls import Wall
from ._util import default_tolerance, domain_length_scale


logger = logging.getLogger(__name__)


class CellComputationError(RuntimeError):
    """Raised when the geometry engine fails to compute a cell."""


@dataclass(frozen=True, slots=True)
class VoronoiCell:
    """Geometry of one computed cell.

    Attributes:
        pid: Particle id.
        site: Particle position, shape (3,).
        volume: Cell volume.
        vertices: Vertex coordinates, shape (k, 3). Empty if the particle was
            clipped away entirely.
        neighbors: One id per face. Non-negative ids are particles; negative
            ids are box faces (-1..-6) or walls.
    """

    pid: int
    site: np.ndarray
    volume: float
    vertices: np.ndarray
    neighbors: tuple[int, ...]

    @property
    def empty(self) -> bool:
        return int(self.vertices.shape[0]) == 0

    def vertices_flat(self) -> np.ndarray:
        """Vertex coordinates as flat (x, y, z) triplets."""
        return self.vertices.reshape(-1)


class CellEngine(Protocol):
    """Capability required from a cell geometry engine."""

    def put(self, pid: int, xyz: Sequence[float], *, tagged: bool = False) -> bool:
        ...

    def add_wall(self, wall: Wall) -> None:
        ...

    def tagged(self) -> Iterator[tuple[int, np.ndarray]]:
        ...

    def compute_cell(self, pid: int) -> VoronoiCell:
        ...


def _empty_cell(pid: int, site: np.ndarray) -> VoronoiCell:
    return VoronoiCell(
        pid=pid,
        site=site,
        volume=0.0,
        vertices=np.zeros((0, 3), dtype=np.float64),
        neighbors=(),
    )


def _unique_rows(v: np.ndarray, tol: float) -> np.ndarray:
    """Drop vertices closer than ``tol`` to an earlier one, keeping order."""
    kept: list[np.ndarray] = []
    for p in v:
        if kept:
            d = np.linalg.norm(np.asarray(kept) - p, axis=1)
            if float(np.min(d)) <= tol:
                continue
        kept.append(p)
    if not kept:
        return np.zeros((0, 3), dtype=np.float64)
    return np.asarray(kept, dtype=np.float64)


def _chebyshev_center(
    normals: np.ndarray, offsets: np.ndarray, tol: float
) -> np.ndarray | None:
    """Return a point strictly inside ``normals @ x <= offsets``, or None.

    Solves for the center of the largest inscribed ball. Rows of ``normals``
    are unit vectors.
    """
    m = normals.shape[0]
    c = np.zeros(4, dtype=np.float64)
    c[-1] = -1.0
    A_ub = np.hstack([normals, np.ones((m, 1), dtype=np.float64)])
    res = linprog(
        c,
        A_ub=A_ub,
        b_ub=offsets,
        bounds=[(None, None)] * 3 + [(0.0, None)],
        method='highs',
    )
    if not res.success or float(res.x[-1]) <= tol:
        return None
    return np.asarray(res.x[:3], dtype=np.float64)


def _polygon_inradius_bound(points: np.ndarray, normal: np.ndarray) -> float:
    """Lower bound (area / perimeter) on the inradius of a planar polygon.

    Returns 0.0 when the points do not span a polygon.
    """
    if points.shape[0] < 3:
        return 0.0
    u = np.cross(normal, np.eye(3)[int(np.argmin(np.abs(normal)))])
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    uv = np.column_stack([points @ u, points @ v])
    try:
        hull = ConvexHull(uv)
    except (QhullError, ValueError):
        return 0.0
    if hull.area <= 0.0:
        return 0.0
    return float(hull.volume / hull.area)


def _face_inradius(
    pa: np.ndarray,
    pb: np.ndarray,
    rest: np.ndarray,
    static_normals: np.ndarray,
    static_offsets: np.ndarray,
) -> float | None:
    """Inradius of the face shared by the cells of ``pa`` and ``pb``.

    The face lies on the bisector of the pair and is bounded by the static
    planes and by the bisectors between ``pa`` and every particle in
    ``rest``. Only the pair enters the construction, never which of the two
    cells is being computed. Returns None if the face is empty.
    """
    # Coordinates relative to the pair midpoint keep the LP well scaled.
    mid = 0.5 * (pa + pb)
    fn = pb - pa
    fn = fn / np.linalg.norm(fn)

    m = rest - pa
    m = m / np.linalg.norm(m, axis=1)[:, None]
    c = np.einsum('ij,ij->i', m, 0.5 * (rest + pa))
    M = np.vstack([static_normals, m])
    C = np.concatenate([static_offsets, c]) - M @ mid
    # In-plane distance to each bounding line scales with the in-plane
    # component of its normal.
    w = np.linalg.norm(M - (M @ fn)[:, None] * fn, axis=1)

    obj = np.zeros(4, dtype=np.float64)
    obj[-1] = -1.0
    res = linprog(
        obj,
        A_ub=np.hstack([M, w[:, None]]),
        b_ub=C,
        A_eq=np.append(fn, 0.0)[None, :],
        b_eq=[0.0],
        bounds=[(None, None)] * 4,
        method='highs',
        options={
            'primal_feasibility_tolerance': 1e-10,
            'dual_feasibility_tolerance': 1e-10,
        },
    )
    if not res.success:
        return None
    return float(res.x[-1])


class Container:
    """Spatial container of particles over a non-periodic box.

    Args:
        domain: Container domain. Its faces bound every cell.
        blocks: Block grid (nx, ny, nz) used to bucket particles.
        tolerance: Absolute geometric tolerance. Defaults to a small
            multiple of the domain length scale.
    """

    def __init__(
        self,
        domain: Box,
        blocks: tuple[int, int, int],
        *,
        tolerance: float | None = None,
    ) -> None:
        nb = np.asarray(blocks, dtype=np.int64).reshape(-1)
        if nb.shape != (3,) or np.any(nb < 1):
            raise ValueError('blocks must be three positive integers')
        self.domain = domain
        self.blocks: tuple[int, int, int] = (int(nb[0]), int(nb[1]), int(nb[2]))
        self._nblocks = nb
        self._lo = domain.lower
        self._block_size = domain.lengths / nb
        if tolerance is None:
            tolerance = default_tolerance(domain_length_scale(domain))
        self.tolerance = float(tolerance)

        self._ids: list[int] = []
        self._coords: list[np.ndarray] = []
        self._slot: dict[int, int] = {}
        self._buckets: dict[tuple[int, int, int], list[int]] = {}
        self._order: list[int] = []
        self._positions: np.ndarray | None = None
        self.wall: Wall | None = None

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, pid: object) -> bool:
        return pid in self._slot

    def _block_of(self, xyz: np.ndarray) -> np.ndarray:
        idx = np.floor((xyz - self._lo) / self._block_size).astype(np.int64)
        # Points on the upper faces belong to the last block.
        return np.clip(idx, 0, self._nblocks - 1)

    def put(self, pid: int, xyz: Sequence[float], *, tagged: bool = False) -> bool:
        """Insert a particle.

        Args:
            pid: Particle id, unique within the container.
            xyz: Position.
            tagged: If True, the particle is remembered for :meth:`tagged`.

        Returns:
            False if the point lies outside the domain and was not stored.
        """
        p = np.asarray(xyz, dtype=np.float64).reshape(3)
        pid = int(pid)
        if pid in self._slot:
            raise ValueError(f'particle id {pid} inserted twice')
        if not bool(self.domain.contains(p)[0]):
            return False

        slot = len(self._ids)
        self._ids.append(pid)
        self._coords.append(p)
        self._slot[pid] = slot
        b = self._block_of(p)
        self._buckets.setdefault((int(b[0]), int(b[1]), int(b[2])), []).append(slot)
        if tagged:
            self._order.append(pid)
        self._positions = None
        return True

    def add_wall(self, wall: Wall) -> None:
        """Attach a wall. A container holds at most one wall."""
        if self.wall is not None:
            logger.debug('replacing %s wall with %s wall', self.wall.kind, wall.kind)
        self.wall = wall

    def tagged(self) -> Iterator[tuple[int, np.ndarray]]:
        """Yield (pid, position) for tagged particles in insertion order."""
        for pid in self._order:
            yield pid, self._coords[self._slot[pid]].copy()

    def _position_array(self) -> np.ndarray:
        if self._positions is None:
            if self._coords:
                self._positions = np.vstack(self._coords)
            else:
                self._positions = np.zeros((0, 3), dtype=np.float64)
        return self._positions

    def _gather(self, lo_b: np.ndarray, hi_b: np.ndarray) -> list[int]:
        out: list[int] = []
        for i in range(int(lo_b[0]), int(hi_b[0]) + 1):
            for j in range(int(lo_b[1]), int(hi_b[1]) + 1):
                for k in range(int(lo_b[2]), int(hi_b[2]) + 1):
                    out.extend(self._buckets.get((i, j, k), ()))
        return out

    def _static_planes(self, site: np.ndarray) -> tuple[list[np.ndarray], list[float], list[int]]:
        """Box faces and wall plane as (normals, offsets, ids)."""
        normals: list[np.ndarray] = []
        offsets: list[float] = []
        ids: list[int] = []
        for axis, (lo, hi) in enumerate(self.domain.bounds):
            e = np.zeros(3, dtype=np.float64)
            e[axis] = 1.0
            normals.extend((-e, e))
            offsets.extend((-lo, hi))
            ids.extend(BOX_FACE_IDS[2 * axis: 2 * axis + 2])
        if self.wall is not None:
            plane = self.wall.cut(site, self.tolerance)
            if plane is not None:
                normals.append(plane[0])
                offsets.append(plane[1])
                ids.append(int(self.wall.wall_id))
        return normals, offsets, ids

    def compute_cell(self, pid: int) -> VoronoiCell:
        """Compute the cell of particle ``pid``.

        Raises:
            CellComputationError: If the particle is unknown, coincides with
                another particle, or the geometry cannot be built.
        """
        slot = self._slot.get(int(pid))
        if slot is None:
            raise CellComputationError(f'particle {pid} is not in the container')
        pid = int(pid)
        site = self._coords[slot]
        pos = self._position_array()
        normals, offsets, ids = self._static_planes(site)

        home = self._block_of(site)
        top = self._nblocks - 1
        layer = 1
        while True:
            lo_b = np.maximum(home - layer, 0)
            hi_b = np.minimum(home + layer, top)
            cand = [s for s in self._gather(lo_b, hi_b) if s != slot]
            others = pos[cand]
            A, b, row_ids = self._halfspaces(
                pid, site, normals, offsets, ids, others, cand
            )
            clipped = self._clip(pid, site, A, b)
            if clipped is None:
                return _empty_cell(pid, site.copy())
            verts, volume = clipped

            done = bool(np.all(lo_b == 0) and np.all(hi_b == top))
            if not done:
                # Distance from the site to the nearest unsearched block.
                region_lo = self._lo + lo_b * self._block_size
                region_hi = self._lo + (hi_b + 1) * self._block_size
                reach = np.inf
                for axis in range(3):
                    if lo_b[axis] > 0:
                        reach = min(reach, float(site[axis] - region_lo[axis]))
                    if hi_b[axis] < top[axis]:
                        reach = min(reach, float(region_hi[axis] - site[axis]))
                radius = float(np.max(np.linalg.norm(verts - site, axis=1)))
                done = 2.0 * radius < reach
            if done:
                neighbors = self._faces(
                    pid, site, A, b, row_ids, len(normals), others, verts
                )
                return VoronoiCell(
                    pid=pid,
                    site=site.copy(),
                    volume=volume,
                    vertices=verts,
                    neighbors=neighbors,
                )
            layer += 1
            logger.debug('particle %d: widening neighbor search to %d layers', pid, layer)

    def _halfspaces(
        self,
        pid: int,
        site: np.ndarray,
        normals: list[np.ndarray],
        offsets: list[float],
        ids: list[int],
        others: np.ndarray,
        other_slots: list[int],
    ) -> tuple[np.ndarray, np.ndarray, list[int]]:
        """Static planes followed by one bisector per nearby particle."""
        A = np.vstack(normals)
        b = np.asarray(offsets, dtype=np.float64)
        row_ids = list(ids)
        if not len(other_slots):
            return A, b, row_ids

        n = others - site
        dist = np.linalg.norm(n, axis=1)
        close = np.flatnonzero(dist <= self.tolerance)
        if close.size:
            other = self._ids[other_slots[int(close[0])]]
            raise CellComputationError(
                f'particles {pid} and {other} are coincident '
                f'(distance {float(dist[close[0]]):.3g})'
            )
        n = n / dist[:, None]
        mid = 0.5 * (others + site)
        A = np.vstack([A, n])
        b = np.concatenate([b, np.einsum('ij,ij->i', n, mid)])
        row_ids.extend(self._ids[s] for s in other_slots)
        return A, b, row_ids

    def _clip(
        self, pid: int, site: np.ndarray, A: np.ndarray, b: np.ndarray
    ) -> tuple[np.ndarray, float] | None:
        """Vertices and volume of ``A @ x <= b``, or None if it is empty."""
        tol = self.tolerance
        # HalfspaceIntersection needs a strictly interior point; the site
        # itself is one unless it sits on the box or outside the wall.
        if float(np.min(b - A @ site)) > tol:
            interior = site
        else:
            interior = _chebyshev_center(A, b, tol)
            if interior is None:
                return None

        halfspaces = np.hstack([A, -b[:, None]])
        try:
            hsi = HalfspaceIntersection(halfspaces, interior)
        except (QhullError, ValueError):
            try:
                hsi = HalfspaceIntersection(halfspaces, interior, qhull_options='QJ')
            except (QhullError, ValueError) as e:
                raise CellComputationError(
                    f'half-space intersection failed for particle {pid}: {e}'
                ) from e

        verts = _unique_rows(np.asarray(hsi.intersections, dtype=np.float64), tol)
        if verts.shape[0] < 4:
            return None
        try:
            volume = float(ConvexHull(verts).volume)
        except QhullError as e:
            raise CellComputationError(
                f'cell of particle {pid} is flat or ill-conditioned: {e}'
            ) from e
        return verts, volume

    def _faces(
        self,
        pid: int,
        site: np.ndarray,
        A: np.ndarray,
        b: np.ndarray,
        row_ids: list[int],
        nstatic: int,
        others: np.ndarray,
        verts: np.ndarray,
    ) -> tuple[int, ...]:
        """Ids of the planes that carry a face of the cell, in row order.

        Box and wall planes need three vertices on them. A bisector is a face
        when its polygon is clearly large; otherwise the decision is made by
        :func:`_face_inradius` from the particle pair alone, so both cells
        sharing a face agree on it.
        """
        tol = self.tolerance
        gap = np.abs(verts @ A.T - b[None, :])
        on_plane = gap <= 8.0 * tol
        faces: list[int] = []
        for j in range(A.shape[0]):
            touching = on_plane[:, j]
            if j < nstatic:
                if np.count_nonzero(touching) >= 3:
                    faces.append(int(row_ids[j]))
                continue
            if not touching.any():
                continue
            if _polygon_inradius_bound(verts[touching], A[j]) > 1000.0 * tol:
                faces.append(int(row_ids[j]))
                continue

            q = j - nstatic
            oid = int(row_ids[j])
            pa, pb = (site, others[q]) if pid < oid else (others[q], site)
            rest = np.delete(others, q, axis=0)
            r = _face_inradius(pa, pb, rest, A[:nstatic], b[:nstatic])
            if r is not None and r > tol:
                faces.append(oid)
        return tuple(faces)
