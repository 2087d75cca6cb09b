"""High-level API for computing the Voronoi cells of a particle range.

A call computes the cells of particles ``start..end-1`` only, while every
particle takes part in the geometry. A host can therefore split a large
particle set into disjoint ranges and run the calls in separate processes
or machines; each call builds its own private container and wall, and
shares no state with any other call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

import logging
import warnings

import numpy as np

from .builder import build_container
from .cells import compute_cells
from .diagnostics import RangeCheckError, analyze_range
from .domains import Box, as_box
from .duplicates import duplicate_check as _duplicate_check
from .grid import grid_resolution
from .packing import PackedOutput, pack_results
from .walls import make_wall
from ._util import as_points, domain_length_scale


logger = logging.getLogger(__name__)


class RangeComputationError(RuntimeError):
    """Raised by :meth:`RangeOutcome.unwrap` for a failed call."""


@dataclass(frozen=True, slots=True)
class RangeOutcome:
    """Result of :func:`run_range`: either packed output or an error message."""

    output: PackedOutput | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> PackedOutput:
        """Return the output, or raise :class:`RangeComputationError`."""
        if self.error is not None or self.output is None:
            raise RangeComputationError(self.error or 'no output was produced')
        return self.output


def _warn_if_scale_suspicious(*, domain: Box) -> None:
    """Warn if the coordinate scale is likely to be numerically problematic.

    Geometric tolerances are relative to the domain size, but extreme unit
    systems still lose accuracy in the half-space intersection. vorocells
    does **not** rescale inputs automatically.
    """

    L = float(domain_length_scale(domain))
    if L < 1e-3:
        warnings.warn(
            'The domain length scale appears very small (L≈{:.3g}). '
            'Consider rescaling your coordinates (e.g. multiply by a constant) '
            'before calling vorocells.'.format(L),
            RuntimeWarning,
            stacklevel=3,
        )
    elif L > 1e9:
        warnings.warn(
            'The domain length scale appears very large (L≈{:.3g}). '
            'Floating-point precision may be poor at this scale; consider '
            'rescaling your coordinates.'.format(L),
            RuntimeWarning,
            stacklevel=3,
        )


def _as_blocks(blocks: Sequence[int]) -> tuple[int, int, int]:
    b = tuple(int(v) for v in blocks)
    if len(b) != 3 or any(v < 1 for v in b):
        raise ValueError('blocks must be three positive integers')
    return b[0], b[1], b[2]


def compute_range(
    points: Sequence[Sequence[float]] | np.ndarray,
    *,
    domain: Box | Sequence[float],
    start: int = 0,
    end: int | None = None,
    return_vertices: bool = False,
    wall: str | None = None,
    wall_args: Sequence[float] = (),
    unknown_wall: Literal['raise', 'warn', 'ignore'] = 'raise',
    blocks: Sequence[int] | None = None,
    duplicate_check: Literal['off', 'warn', 'raise'] = 'off',
    duplicate_threshold: float = 1e-5,
    range_check: Literal['none', 'warn', 'raise'] = 'none',
    verbose: bool = False,
) -> PackedOutput:
    """Compute the Voronoi cells of the particles ``start..end-1``.

    Args:
        points: Coordinates of all particles, shape (nsites, 3). Every
            particle must lie inside the domain.
        domain: :class:`~vorocells.domains.Box`, or the six extents
            ``(xmin, xmax, ymin, ymax, zmin, zmax)``.
        start: First selected particle (inclusive).
        end: Last selected particle (exclusive). Defaults to ``nsites``.
        return_vertices: Fill the vertex channel of the output.
        wall: Optional wall type (``'sphere'``, ``'cylinder'``, ``'plane'``,
            ``'cone'``); see :func:`vorocells.walls.make_wall`.
        wall_args: Flat wall parameters.
        unknown_wall: Behavior for an unrecognized wall name: 'raise',
            'warn' or 'ignore'.
        blocks: Explicit (nx, ny, nz) block grid. Derived from the particle
            count and the domain shape by default.
        duplicate_check: Optional near-duplicate pre-check. ``'raise'`` fails
            before any cell is computed; ``'warn'`` only warns, and the call
            then fails on the first degenerate cell.
        duplicate_threshold: Absolute distance threshold of the pre-check.
        range_check: Run :func:`vorocells.diagnostics.analyze_range` on the
            output and 'warn' or 'raise' if it reports problems.
        verbose: Log a summary of the call at INFO level (DEBUG otherwise).
            The records go to the ``vorocells`` logger; call
            :func:`vorocells.setup_logging` or attach a handler in the host
            application to see them.

    Returns:
        PackedOutput, owned by the caller.

    Raises:
        ValueError: If inputs are inconsistent (including
            :class:`~vorocells.walls.WallError` and
            :class:`~vorocells.duplicates.DuplicateError`).
        CellComputationError: If a cell cannot be computed.
    """
    pts = as_points(points)
    box = as_box(domain)
    nsites = int(pts.shape[0])
    begin = int(start)
    stop = nsites if end is None else int(end)
    if not 0 <= begin < stop <= nsites:
        raise ValueError(
            f'invalid range [{begin}, {stop}) for {nsites} sites; '
            'need 0 <= start < end <= nsites'
        )
    if duplicate_check not in ('off', 'warn', 'raise'):
        raise ValueError('duplicate_check must be one of: \'off\', \'warn\', \'raise\'')
    if range_check not in ('none', 'warn', 'raise'):
        raise ValueError('range_check must be one of: none, warn, raise')
    _warn_if_scale_suspicious(domain=box)

    if duplicate_check != 'off' and nsites > 1:
        _duplicate_check(
            pts,
            threshold=float(duplicate_threshold),
            mode='warn' if duplicate_check == 'warn' else 'raise',
        )

    grid = grid_resolution(nsites, box) if blocks is None else _as_blocks(blocks)

    say = logger.info if verbose else logger.debug
    say('Total number of sites: %d', nsites)
    say('Number of cells to be computed: %d', stop - begin)
    say('Range: [%d, %d)', begin, stop)
    say('Domain: %s', list(box.bounds))
    say('Block grid: %d, %d, %d', *grid)
    say('Vertices: %s', bool(return_vertices))

    wall_obj = make_wall(wall, wall_args, unknown=unknown_wall)
    wall_params = [float(v) for v in np.asarray(wall_args, dtype=np.float64).reshape(-1)]
    say('Wall type: %s', wall if wall else 'none')
    say('Wall number of args: %d', len(wall_params))
    say('Wall params: %s', wall_params)
    if wall_params and (wall is None or wall.strip().lower() in ('', 'none')):
        warnings.warn(
            f'wall_args were given without a wall type; ignoring {len(wall_params)} '
            'wall parameter(s)',
            RuntimeWarning,
            stacklevel=2,
        )

    engine = build_container(
        pts, box, start=begin, end=stop, blocks=grid, wall=wall_obj
    )
    results = compute_cells(
        engine, start=begin, end=stop, return_vertices=bool(return_vertices)
    )
    out = pack_results(results, return_vertices=bool(return_vertices))

    say('Max number of neighbours: %d', out.max_nn)
    if return_vertices:
        say('Max number of vertex coordinates: %d', out.max_nv)

    if range_check != 'none':
        # Walls remove volume from the domain, so the partition check only
        # applies without one.
        diag = analyze_range(
            out, nsites=nsites, domain=box if wall_obj is None else None
        )
        if not diag.ok:
            msg = (
                f'range_check failed for [{begin}, {stop}): '
                f'bad_padding={diag.n_bad_padding}, bad_ids={diag.n_bad_ids}, '
                f'bad_bbox={diag.n_bad_bbox}, '
                f'nonpositive_volume={diag.n_nonpositive_volume}, '
                f'volume_ratio={diag.volume_ratio}'
            )
            if range_check == 'raise':
                raise RangeCheckError(msg, diag)
            warnings.warn(msg, RuntimeWarning, stacklevel=2)

    return out


def run_range(
    points: Sequence[Sequence[float]] | np.ndarray, **kwargs: Any
) -> RangeOutcome:
    """Call :func:`compute_range` and report failures as a message.

    This is the entry point for hosts that distribute ranges across process
    or language boundaries: a failed call never raises. Instead the outcome
    carries no output and a human-readable description of the failure. It
    accepts the same arguments as :func:`compute_range`.

    Returns:
        RangeOutcome with either ``output`` or ``error`` set.
    """
    try:
        out = compute_range(points, **kwargs)
    except Exception as e:
        start = kwargs.get('start', 0)
        end = kwargs.get('end')
        logger.debug('range [%s, %s) failed', start, end, exc_info=True)
        return RangeOutcome(
            output=None,
            error=(
                'An exception was raised while computing the Voronoi cells of '
                f'particles [{start}, {"end" if end is None else end}). '
                f'The full error message is: "{type(e).__name__}: {e}".'
            ),
        )
    return RangeOutcome(output=out)
