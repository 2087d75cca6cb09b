"""Fixed-stride packing of per-cell results.

Cells are irregular polyhedra, so neighbor counts and vertex counts differ
from cell to cell. The packed form stores each channel in a row-major
``(ncells, width)`` array whose width is the longest row of that channel:

  - neighbor rows are padded with :data:`NO_NEIGHBOR`,
  - vertex rows are padded with NaN.

The true row lengths are carried alongside the padded arrays, so callers do
not have to rely on the sentinels to recover the ragged rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .cells import CellResult


# Padding value for unused neighbor slots. Distinct from particle ids (>= 0),
# box face ids (-1..-6) and wall ids.
NO_NEIGHBOR = -10


@dataclass(frozen=True, slots=True)
class PackedOutput:
    """Packed results of one range computation.

    All arrays are freshly allocated and owned by the caller; nothing in
    vorocells keeps a reference to them.

    Attributes:
        neighbors: Neighbor ids, shape (ncells, max_nn), int32.
        max_nn: Width of the neighbor rows.
        volumes: Cell volumes, shape (ncells,).
        bb_min: Bounding box minima, shape (ncells, 3).
        bb_max: Bounding box maxima, shape (ncells, 3).
        vertices: Flat vertex coordinates, shape (ncells, max_nv).
        max_nv: Width of the vertex rows (number of doubles, 3 per vertex);
            0 if vertices were not requested.
        n_neighbors: True neighbor count of every row, shape (ncells,).
        n_vertex_coords: True vertex coordinate count of every row,
            shape (ncells,).
    """

    neighbors: np.ndarray
    max_nn: int
    volumes: np.ndarray
    bb_min: np.ndarray
    bb_max: np.ndarray
    vertices: np.ndarray
    max_nv: int
    n_neighbors: np.ndarray
    n_vertex_coords: np.ndarray

    @property
    def ncells(self) -> int:
        return int(self.volumes.shape[0])

    def neighbor_lists(self) -> list[np.ndarray]:
        """Unpadded neighbor ids of every cell."""
        return [
            self.neighbors[i, : int(k)].copy() for i, k in enumerate(self.n_neighbors)
        ]

    def vertex_lists(self) -> list[np.ndarray]:
        """Unpadded vertices of every cell, each of shape (k, 3)."""
        return [
            self.vertices[i, : int(k)].reshape(-1, 3).copy()
            for i, k in enumerate(self.n_vertex_coords)
        ]


def pack_results(
    results: Sequence[CellResult], *, return_vertices: bool = False
) -> PackedOutput:
    """Pack per-cell results into fixed-stride arrays.

    Args:
        results: Cell results ordered by local index.
        return_vertices: Whether the vertex channel is populated.

    Returns:
        PackedOutput.

    Raises:
        ValueError: If ``results`` is empty.
    """
    ncells = len(results)
    if ncells == 0:
        raise ValueError('at least one cell result is required')

    n_nb = np.array([r.neighbors.size for r in results], dtype=np.int64)
    max_nn = int(n_nb.max())
    neighbors = np.full((ncells, max_nn), NO_NEIGHBOR, dtype=np.int32)
    for i, r in enumerate(results):
        neighbors[i, : n_nb[i]] = r.neighbors

    if return_vertices:
        n_vc = np.array([r.vertices.size for r in results], dtype=np.int64)
        max_nv = int(n_vc.max())
    else:
        n_vc = np.zeros(ncells, dtype=np.int64)
        max_nv = 0
    vertices = np.full((ncells, max_nv), np.nan, dtype=np.float64)
    if return_vertices:
        for i, r in enumerate(results):
            vertices[i, : n_vc[i]] = r.vertices

    return PackedOutput(
        neighbors=neighbors,
        max_nn=max_nn,
        volumes=np.array([r.volume for r in results], dtype=np.float64),
        bb_min=np.vstack([r.bbox_min for r in results]).astype(np.float64),
        bb_max=np.vstack([r.bbox_max for r in results]).astype(np.float64),
        vertices=vertices,
        max_nv=max_nv,
        n_neighbors=n_nb,
        n_vertex_coords=n_vc,
    )
