"""Block grid sizing for the spatial container.

The container partitions the domain into a coarse grid of blocks so that
the neighbor search for a cell only visits nearby blocks. The number of
blocks along each axis is proportional to the extent of the domain along
that axis, so non-cubic domains still get roughly
:data:`PARTICLES_PER_BLOCK` particles per block.
"""

from __future__ import annotations

import numpy as np

from .domains import Box


# Average number of particles per block, determined experimentally.
PARTICLES_PER_BLOCK = 5.0


def grid_resolution(nsites: int, domain: Box) -> tuple[int, int, int]:
    """Return the (nx, ny, nz) block grid for ``nsites`` particles.

    Args:
        nsites: Total number of particles inserted into the container.
        domain: Container domain.

    Returns:
        Number of blocks along x, y and z, each >= 1.

    Raises:
        ValueError: If ``nsites`` is negative.
    """
    n = int(nsites)
    if n < 0:
        raise ValueError('nsites must be >= 0')

    # Total number of blocks we want, and the edge of a cube holding them.
    nblocks = n / PARTICLES_PER_BLOCK
    block_edge = float(np.cbrt(nblocks))

    # Average edge length of the domain.
    vol_edge = float(np.cbrt(domain.volume))

    # The +1 accounts for truncation and guarantees at least one block.
    nx, ny, nz = (
        int(extent / vol_edge * block_edge) + 1 for extent in domain.lengths
    )
    return nx, ny, nz
