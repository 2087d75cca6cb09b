"""Near-duplicate point detection.

Two coincident (or nearly coincident) particles leave the bisector between
them undefined, which makes the geometry engine fail on one of the two
cells, possibly after most of a range has already been computed. This
module provides a cheap pre-check that reports such pairs up front.

Points are hashed on an integer grid with cell size == threshold; each point
is compared only against points of its own grid cell and the 26 cells
around it. Expected complexity is O(n) for typical inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Any, Literal

import warnings

import numpy as np

from ._util import as_points


@dataclass(frozen=True, slots=True)
class DuplicatePair:
    i: int
    j: int
    distance: float


class DuplicateError(ValueError):
    """Raised when near-duplicate points are detected."""

    def __init__(
        self, message: str, pairs: tuple[DuplicatePair, ...], threshold: float
    ):
        super().__init__(message)
        self.pairs = pairs
        self.threshold = float(threshold)


_OFFSETS = tuple(product((-1, 0, 1), repeat=3))


def duplicate_check(
    points: Any,
    *,
    threshold: float = 1e-5,
    mode: Literal['raise', 'warn', 'return'] = 'raise',
    max_pairs: int = 10,
) -> tuple[DuplicatePair, ...]:
    """Detect point pairs closer than an absolute threshold.

    Args:
        points: Array-like of shape (n, 3).
        threshold: Absolute distance threshold.
        mode: Behavior when duplicates are found:
            - 'raise' (default): raise :class:`DuplicateError`
            - 'warn': emit a RuntimeWarning and return the pairs
            - 'return': return the pairs without warnings
        max_pairs: Maximum number of pairs to include in the report.

    Returns:
        Tuple of DuplicatePair records (possibly empty), with ``i < j``.
    """

    if mode not in ('raise', 'warn', 'return'):
        raise ValueError('mode must be one of: \'raise\', \'warn\', \'return\'')

    thr = float(threshold)
    if not np.isfinite(thr) or thr <= 0:
        raise ValueError('threshold must be a positive finite number')
    limit = int(max_pairs)
    if limit <= 0:
        raise ValueError('max_pairs must be > 0')

    pts = as_points(points)
    n = int(pts.shape[0])
    if n <= 1:
        return tuple()

    keys = np.floor(pts / thr).astype(np.int64)
    buckets: dict[tuple[int, int, int], list[int]] = {}
    for i, k in enumerate(map(tuple, keys.tolist())):
        buckets.setdefault(k, []).append(i)

    found: list[DuplicatePair] = []
    for key, members in buckets.items():
        near = [
            j
            for dx, dy, dz in _OFFSETS
            for j in buckets.get((key[0] + dx, key[1] + dy, key[2] + dz), ())
        ]
        cand = np.asarray(near, dtype=np.int64)
        for i in members:
            # Each pair is reported once, from its lower index.
            others = cand[cand > i]
            if not others.size:
                continue
            dist = np.linalg.norm(pts[others] - pts[i], axis=1)
            for j, d in zip(others[dist < thr], dist[dist < thr]):
                found.append(DuplicatePair(i=int(i), j=int(j), distance=float(d)))
        if len(found) >= limit:
            break

    pairs = tuple(sorted(found, key=lambda p: (p.i, p.j))[:limit])
    if not pairs:
        return pairs

    msg = (
        f'Found {len(pairs)} point pair(s) closer than threshold={thr:g}. '
        'Such near-duplicates make the cells of those points degenerate.'
    )

    if mode == 'raise':
        raise DuplicateError(msg, pairs, thr)
    if mode == 'warn':
        warnings.warn(msg, RuntimeWarning, stacklevel=2)
    return pairs
