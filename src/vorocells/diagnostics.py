"""Sanity checks for packed range results.

These utilities help detect when a packed result violates the conventions
of the output format (padding, bounding boxes, volumes), for example after
the arrays crossed a process boundary or were assembled by a host from
several ranges.

Key ideas:
  - Every real neighbor id is a particle index in ``[0, nsites)`` or a
    negative boundary id; the padding sentinel never appears inside a row.
  - Bounding boxes are ordered and contain every vertex of their cell.
  - When a range covers all particles, cell volumes partition the domain.

The public entry point is :func:`analyze_range`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from .domains import Box
from .packing import NO_NEIGHBOR, PackedOutput
from ._util import default_tolerance, domain_length_scale


@dataclass(frozen=True, slots=True)
class RangeIssue:
    code: str
    severity: Literal['info', 'warning', 'error']
    message: str
    examples: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class RangeDiagnostics:
    ncells: int
    nsites: int
    n_bad_padding: int
    n_bad_ids: int
    n_bad_bbox: int
    n_nonpositive_volume: int
    sum_cell_volume: float
    domain_volume: float | None
    volume_ratio: float | None
    issues: tuple[RangeIssue, ...]
    ok_padding: bool
    ok_bbox: bool
    ok_volume: bool
    ok: bool


class RangeCheckError(ValueError):
    """Raised when range sanity checks fail under strict settings."""

    def __init__(self, message: str, diagnostics: RangeDiagnostics):
        super().__init__(message)
        self.diagnostics = diagnostics


def _examples(idx: np.ndarray, limit: int = 5) -> tuple[int, ...]:
    return tuple(int(i) for i in idx[:limit])


def analyze_range(
    output: PackedOutput,
    *,
    nsites: int,
    domain: Box | None = None,
    volume_tol_rel: float = 1e-8,
) -> RangeDiagnostics:
    """Analyze a packed range result.

    Args:
        output: Packed result.
        nsites: Total number of particles of the call that produced it.
        domain: Optional domain. If given and the result holds one cell per
            particle, the summed cell volume is compared with the domain
            volume.
        volume_tol_rel: Relative tolerance of the volume comparison.

    Returns:
        RangeDiagnostics.
    """
    issues: list[RangeIssue] = []
    ncells = output.ncells
    nsites = int(nsites)

    # Padding and ids.
    cols = np.arange(output.max_nn)[None, :]
    real = cols < output.n_neighbors[:, None]
    nb = output.neighbors
    bad_pad_rows = np.flatnonzero(np.any(~real & (nb != NO_NEIGHBOR), axis=1))
    bad_id_rows = np.flatnonzero(
        np.any(real & ((nb >= nsites) | (nb == NO_NEIGHBOR)), axis=1)
    )
    if bad_pad_rows.size:
        issues.append(
            RangeIssue(
                code='BAD_PADDING',
                severity='error',
                message=(
                    f'{bad_pad_rows.size} neighbor row(s) have padded slots '
                    f'not equal to {NO_NEIGHBOR}'
                ),
                examples=_examples(bad_pad_rows),
            )
        )
    if bad_id_rows.size:
        issues.append(
            RangeIssue(
                code='BAD_NEIGHBOR_ID',
                severity='error',
                message=(
                    f'{bad_id_rows.size} neighbor row(s) contain ids outside '
                    f'[0, {nsites}) that are not boundary ids'
                ),
                examples=_examples(bad_id_rows),
            )
        )

    # Bounding boxes.
    L = float(np.max(output.bb_max - output.bb_min)) if ncells else 0.0
    tol = default_tolerance(L) if domain is None else default_tolerance(
        domain_length_scale(domain)
    )
    bad_bbox = np.any(output.bb_min > output.bb_max + tol, axis=1)
    if output.max_nv > 0:
        for i, v in enumerate(output.vertex_lists()):
            if v.size and (
                np.any(v < output.bb_min[i] - tol) or np.any(v > output.bb_max[i] + tol)
            ):
                bad_bbox[i] = True
    bad_bbox_rows = np.flatnonzero(bad_bbox)
    if bad_bbox_rows.size:
        issues.append(
            RangeIssue(
                code='BAD_BBOX',
                severity='error',
                message=(
                    f'{bad_bbox_rows.size} cell(s) have an unordered bounding '
                    'box or vertices outside it'
                ),
                examples=_examples(bad_bbox_rows),
            )
        )

    # Volumes.
    nonpos = np.flatnonzero(~(output.volumes > 0.0))
    if nonpos.size:
        issues.append(
            RangeIssue(
                code='NONPOSITIVE_VOLUME',
                severity='error',
                message=f'{nonpos.size} cell(s) have a non-positive volume',
                examples=_examples(nonpos),
            )
        )

    sum_vol = float(np.sum(output.volumes))
    dom_vol: float | None = None
    ratio: float | None = None
    ok_ratio = True
    if domain is not None and ncells == nsites:
        dom_vol = domain.volume
        ratio = sum_vol / dom_vol if dom_vol > 0 else float('nan')
        ok_ratio = bool(np.isfinite(ratio)) and abs(ratio - 1.0) <= float(
            volume_tol_rel
        )
        if not ok_ratio:
            issues.append(
                RangeIssue(
                    code='VOLUME_MISMATCH',
                    severity='warning',
                    message=(
                        f'sum of cell volumes ({sum_vol:g}) differs from the '
                        f'domain volume ({dom_vol:g}); ratio={ratio:g}. A wall '
                        'or points outside it can explain this.'
                    ),
                )
            )

    ok_padding = not (bad_pad_rows.size or bad_id_rows.size)
    ok_bbox = not bad_bbox_rows.size
    ok_volume = not nonpos.size and ok_ratio
    return RangeDiagnostics(
        ncells=ncells,
        nsites=nsites,
        n_bad_padding=int(bad_pad_rows.size),
        n_bad_ids=int(bad_id_rows.size),
        n_bad_bbox=int(bad_bbox_rows.size),
        n_nonpositive_volume=int(nonpos.size),
        sum_cell_volume=sum_vol,
        domain_volume=dom_vol,
        volume_ratio=ratio,
        issues=tuple(issues),
        ok_padding=ok_padding,
        ok_bbox=ok_bbox,
        ok_volume=ok_volume,
        ok=ok_padding and ok_bbox and ok_volume,
    )
