"""vorocells package.

This package computes the Voronoi cells of a contiguous range of particles
embedded in a larger 3D point set: cell volumes, bounding boxes, neighbor
lists and, optionally, vertices, packed into fixed-stride arrays.

Public API:
    - Box
    - compute_range, run_range
    - make_wall and the wall types
    - analyze_range
    - duplicate_check
"""

from __future__ import annotations

from .__about__ import __version__

from .domains import Box
from .api import RangeComputationError, RangeOutcome, compute_range, run_range
from .grid import PARTICLES_PER_BLOCK, grid_resolution
from .walls import (
    ConeWall,
    CylinderWall,
    PlaneWall,
    SphereWall,
    WallError,
    make_wall,
)
from .engine import CellComputationError, CellEngine, Container, VoronoiCell
from .builder import build_container
from .cells import CellResult, DegenerateCellError, compute_cells
from .packing import NO_NEIGHBOR, PackedOutput, pack_results
from .diagnostics import (
    RangeCheckError,
    RangeDiagnostics,
    RangeIssue,
    analyze_range,
)
from .duplicates import (
    DuplicatePair,
    DuplicateError,
    duplicate_check,
)
from .logging_config import setup_logging

__all__ = [
    'Box',
    'compute_range',
    'run_range',
    'RangeOutcome',
    'RangeComputationError',
    'PARTICLES_PER_BLOCK',
    'grid_resolution',
    'SphereWall',
    'CylinderWall',
    'PlaneWall',
    'ConeWall',
    'WallError',
    'make_wall',
    'CellEngine',
    'Container',
    'VoronoiCell',
    'CellComputationError',
    'build_container',
    'CellResult',
    'DegenerateCellError',
    'compute_cells',
    'NO_NEIGHBOR',
    'PackedOutput',
    'pack_results',
    'RangeIssue',
    'RangeDiagnostics',
    'RangeCheckError',
    'analyze_range',
    'DuplicatePair',
    'DuplicateError',
    'duplicate_check',
    'setup_logging',
    '__version__',
]
