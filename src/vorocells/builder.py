"""Container construction and population.

Every particle goes into the container so that cells near the edge of the
selected range see their true neighbors. Only particles of the selected
range are tagged; the others contribute geometry but are never computed.
"""

from __future__ import annotations

from typing import Callable

import logging
import warnings

import numpy as np

from .domains import Box
from .engine import CellEngine, Container
from .grid import grid_resolution
from .walls import Wall


logger = logging.getLogger(__name__)

EngineFactory = Callable[[Box, tuple[int, int, int]], CellEngine]


def build_container(
    points: np.ndarray,
    domain: Box,
    *,
    start: int,
    end: int,
    blocks: tuple[int, int, int] | None = None,
    wall: Wall | None = None,
    engine_factory: EngineFactory = Container,
) -> CellEngine:
    """Build and populate the container for one range computation.

    Args:
        points: All particle positions, shape (nsites, 3).
        domain: Container domain.
        start: First selected particle (inclusive).
        end: Last selected particle (exclusive).
        blocks: Explicit block grid. Derived from the particle count if None.
        wall: Optional wall, owned by the container from here on.
        engine_factory: Callable ``(domain, blocks) -> engine``.

    Returns:
        The populated engine with the selected particles tagged.

    Raises:
        ValueError: If a particle lies outside the domain.
    """
    pts = np.asarray(points, dtype=np.float64)
    nsites = int(pts.shape[0])
    if blocks is None:
        blocks = grid_resolution(nsites, domain)

    engine = engine_factory(domain, blocks)
    for i in range(nsites):
        if not engine.put(i, pts[i], tagged=start <= i < end):
            raise ValueError(
                f'particle {i} at {pts[i].tolist()} lies outside the domain '
                f'{list(domain.bounds)}'
            )

    if wall is not None:
        outside = np.flatnonzero(~wall.contains(pts[start:end]))
        if outside.size:
            warnings.warn(
                f'{outside.size} selected particle(s) lie outside the '
                f'{wall.kind!r} wall (first: {int(outside[0]) + start}); '
                'their cells may be empty or not contain the particle.',
                RuntimeWarning,
                stacklevel=2,
            )
        engine.add_wall(wall)

    logger.debug(
        'container populated: %d sites, %d tagged, blocks=%s',
        nsites,
        end - start,
        blocks,
    )
    return engine
