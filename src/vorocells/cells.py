"""Per-cell computation over the tagged particles of a container."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .engine import CellComputationError, CellEngine


class DegenerateCellError(CellComputationError):
    """Raised when a selected particle yields a cell without vertices."""


@dataclass(frozen=True, slots=True)
class CellResult:
    """Geometry extracted from the cell of one selected particle.

    Attributes:
        index: Global particle index.
        volume: Cell volume.
        bbox_min: Componentwise minimum over the cell vertices, shape (3,).
        bbox_max: Componentwise maximum over the cell vertices, shape (3,).
        neighbors: Neighbor ids in engine order (negative for box faces and
            walls).
        vertices: Flat vertex coordinates, empty unless vertices were
            requested.
    """

    index: int
    volume: float
    bbox_min: np.ndarray
    bbox_max: np.ndarray
    neighbors: np.ndarray
    vertices: np.ndarray


def compute_cells(
    engine: CellEngine,
    *,
    start: int,
    end: int,
    return_vertices: bool = False,
) -> list[CellResult]:
    """Compute the cells of every tagged particle.

    Args:
        engine: Populated engine whose tagged particles are exactly the range
            ``[start, end)``.
        start: First selected particle (inclusive).
        end: Last selected particle (exclusive).
        return_vertices: Keep the vertex coordinates in the results.

    Returns:
        One result per selected particle, ordered by local index
        ``index - start``.

    Raises:
        DegenerateCellError: If a cell has no vertices.
        CellComputationError: If the tagged particles do not match the range.
    """
    ncells = int(end) - int(start)
    results: list[CellResult | None] = [None] * ncells

    for pid, _site in engine.tagged():
        idx = int(pid) - int(start)
        if not 0 <= idx < ncells:
            raise CellComputationError(
                f'tagged particle {pid} is outside the range [{start}, {end})'
            )
        if results[idx] is not None:
            raise CellComputationError(f'particle {pid} was visited twice')

        cell = engine.compute_cell(pid)
        verts = np.asarray(cell.vertices, dtype=np.float64).reshape(-1, 3)
        if verts.shape[0] == 0:
            raise DegenerateCellError(
                f'the cell of particle {pid} has no vertices; check for '
                'coincident points, points outside the wall or a malformed domain'
            )

        results[idx] = CellResult(
            index=int(pid),
            volume=float(cell.volume),
            bbox_min=verts.min(axis=0),
            bbox_max=verts.max(axis=0),
            neighbors=np.asarray(cell.neighbors, dtype=np.int64),
            vertices=(
                verts.reshape(-1).copy()
                if return_vertices
                else np.zeros(0, dtype=np.float64)
            ),
        )

    missing = [start + i for i, r in enumerate(results) if r is None]
    if missing:
        raise CellComputationError(
            f'{len(missing)} selected particle(s) were not computed '
            f'(first: {missing[0]})'
        )
    return results  # type: ignore[return-value]
