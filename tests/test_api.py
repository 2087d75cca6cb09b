from __future__ import annotations

import logging

import numpy as np
import pytest

import vorocells as vc


def test_unit_cube_corners_are_octants(unit_cube_corners) -> None:
    out = vc.compute_range(
        unit_cube_corners,
        domain=(0.0, 1.0, 0.0, 1.0, 0.0, 1.0),
        start=0,
        end=8,
        return_vertices=True,
    )
    assert out.ncells == 8
    np.testing.assert_allclose(out.volumes, np.full(8, 0.125), rtol=1e-9)

    # Three particle neighbors and three box faces per octant.
    assert out.n_neighbors.tolist() == [6] * 8
    assert out.max_nn == 6
    for i, row in enumerate(out.neighbor_lists()):
        particles = sorted(int(n) for n in row if n >= 0)
        expected = sorted(i ^ bit for bit in (1, 2, 4))
        assert particles == expected
        assert sum(1 for n in row if -6 <= n <= -1) == 3

    # Every octant is a cube with 8 vertices.
    assert out.max_nv == 24
    for i, v in enumerate(out.vertex_lists()):
        assert v.shape == (8, 3)
        np.testing.assert_allclose(out.bb_max[i] - out.bb_min[i], [0.5, 0.5, 0.5])


def test_range_selects_local_rows(line_of_ten) -> None:
    box = vc.Box.from_extents(0, 1, 0, 1, 0, 1)
    out = vc.compute_range(line_of_ten, domain=box, start=2, end=5)
    assert out.ncells == 3
    np.testing.assert_allclose(out.bb_min[:, 0], [0.2, 0.3, 0.4], atol=1e-12)
    np.testing.assert_allclose(out.volumes, [0.1, 0.1, 0.1])


def test_points_outside_range_shape_the_cells(line_of_ten) -> None:
    box = vc.Box.from_extents(0, 1, 0, 1, 0, 1)
    full = vc.compute_range(line_of_ten, domain=box, start=2, end=5)
    # Dropping particle 5 (outside the range, next to particle 4).
    fewer = np.delete(line_of_ten, 5, axis=0)
    out = vc.compute_range(fewer, domain=box, start=2, end=5)
    assert out.volumes[2] == pytest.approx(0.15)
    assert out.volumes[2] != pytest.approx(full.volumes[2])
    np.testing.assert_allclose(out.volumes[:2], full.volumes[:2])


def test_padding_never_collides_with_ids() -> None:
    rng = np.random.default_rng(3)
    pts = rng.uniform(0.0, 1.0, size=(40, 3))
    out = vc.compute_range(pts, domain=(0, 1, 0, 1, 0, 1), start=5, end=30)
    cols = np.arange(out.max_nn)[None, :]
    real = cols < out.n_neighbors[:, None]
    assert np.all(out.neighbors[~real] == vc.NO_NEIGHBOR)
    assert np.all(out.neighbors[real] != vc.NO_NEIGHBOR)
    assert np.all(out.neighbors[real] < 40)
    assert np.all(out.bb_min <= out.bb_max)
    assert np.all(out.volumes > 0.0)


def test_sphere_wall_clips_every_cell_at_its_tangent_plane() -> None:
    rng = np.random.default_rng(11)
    # Points inside a sphere of radius 1 centred in the box.
    d = rng.normal(size=(30, 3))
    d /= np.linalg.norm(d, axis=1)[:, None]
    pts = d * rng.uniform(0.1, 0.9, size=(30, 1))
    out = vc.compute_range(
        pts,
        domain=(-2, 2, -2, 2, -2, 2),
        wall='sphere',
        wall_args=[0.0, 0.0, 0.0, 1.0],
        return_vertices=True,
    )
    for i, v in enumerate(out.vertex_lists()):
        assert np.all(v @ d[i] <= 1.0 + 1e-9)
    assert np.any(out.neighbors == -99)
    assert float(np.sum(out.volumes)) < 64.0


def test_invalid_wall_aborts_before_geometry(monkeypatch, unit_cube_corners) -> None:
    def fail(*args, **kwargs):
        raise AssertionError('container must not be built')

    monkeypatch.setattr('vorocells.api.build_container', fail)
    with pytest.raises(vc.WallError):
        vc.compute_range(
            unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), wall='sphere',
            wall_args=[0, 0, 0, -1],
        )


def test_unknown_wall_can_be_ignored(unit_cube_corners) -> None:
    with pytest.raises(vc.WallError, match='unsupported'):
        vc.compute_range(unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), wall='box')
    out = vc.compute_range(
        unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), wall='box', unknown_wall='ignore'
    )
    np.testing.assert_allclose(out.volumes, 0.125)


def test_compute_range_validates_inputs(unit_cube_corners) -> None:
    dom = (0, 1, 0, 1, 0, 1)
    with pytest.raises(ValueError, match='invalid range'):
        vc.compute_range(unit_cube_corners, domain=dom, start=4, end=4)
    with pytest.raises(ValueError, match='invalid range'):
        vc.compute_range(unit_cube_corners, domain=dom, start=0, end=9)
    with pytest.raises(ValueError, match='finite'):
        bad = unit_cube_corners.copy()
        bad[3, 1] = np.nan
        vc.compute_range(bad, domain=dom)
    with pytest.raises(ValueError, match='shape'):
        vc.compute_range(unit_cube_corners[:, :2], domain=dom)
    with pytest.raises(ValueError, match='blocks'):
        vc.compute_range(unit_cube_corners, domain=dom, blocks=(1, 0, 1))
    with pytest.raises(ValueError, match='duplicate_check'):
        vc.compute_range(unit_cube_corners, domain=dom, duplicate_check='on')
    with pytest.raises(ValueError, match='range_check'):
        vc.compute_range(unit_cube_corners, domain=dom, range_check='all')


def test_duplicate_check_raises_before_geometry() -> None:
    pts = np.array([[0.1, 0.2, 0.3], [0.1, 0.2, 0.3], [0.5, 0.5, 0.5]])
    with pytest.raises(vc.DuplicateError):
        vc.compute_range(pts, domain=(0, 1, 0, 1, 0, 1), duplicate_check='raise')


def test_coincident_points_fail_the_call() -> None:
    pts = np.array([[0.1, 0.2, 0.3], [0.1, 0.2, 0.3], [0.5, 0.5, 0.5]])
    with pytest.raises(vc.CellComputationError, match='coincident'):
        vc.compute_range(pts, domain=(0, 1, 0, 1, 0, 1))


def test_range_check_passes_for_valid_output(line_of_ten) -> None:
    out = vc.compute_range(
        line_of_ten, domain=(0, 1, 0, 1, 0, 1), return_vertices=True, range_check='raise'
    )
    assert out.ncells == 10


def test_verbose_logs_summary(caplog, unit_cube_corners) -> None:
    with caplog.at_level(logging.INFO, logger='vorocells'):
        vc.compute_range(
            unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), return_vertices=True,
            verbose=True,
        )
    text = caplog.text
    assert 'Total number of sites: 8' in text
    assert 'Block grid: 2, 2, 2' in text
    assert 'Max number of neighbours: 6' in text
    assert 'Max number of vertex coordinates: 24' in text


def test_verbose_logs_wall_summary(caplog, unit_cube_corners) -> None:
    with caplog.at_level(logging.INFO, logger='vorocells'):
        vc.compute_range(
            unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), wall='plane',
            wall_args=[1, 0, 0, 2], verbose=True,
        )
    text = caplog.text
    assert 'Wall type: plane' in text
    assert 'Wall number of args: 4' in text
    assert 'Wall params: [1.0, 0.0, 0.0, 2.0]' in text


def test_wall_args_without_wall_type_warn(unit_cube_corners) -> None:
    with pytest.warns(RuntimeWarning, match='without a wall type'):
        out = vc.compute_range(
            unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), wall_args=[0, 0, 0, 0.5]
        )
    np.testing.assert_allclose(out.volumes, 0.125)


def test_quiet_call_logs_nothing_at_info(caplog, unit_cube_corners) -> None:
    with caplog.at_level(logging.INFO, logger='vorocells'):
        vc.compute_range(unit_cube_corners, domain=(0, 1, 0, 1, 0, 1))
    assert caplog.records == []


def test_run_range_success(unit_cube_corners) -> None:
    outcome = vc.run_range(unit_cube_corners, domain=(0, 1, 0, 1, 0, 1), end=4)
    assert outcome.ok
    assert outcome.error is None
    assert outcome.unwrap().ncells == 4


def test_run_range_reports_errors_as_message(unit_cube_corners) -> None:
    outcome = vc.run_range(
        unit_cube_corners,
        domain=(0, 1, 0, 1, 0, 1),
        start=1,
        end=3,
        wall='sphere',
        wall_args=[0, 0, 0, 1, 1],
    )
    assert not outcome.ok
    assert outcome.output is None
    assert outcome.error.startswith('An exception was raised')
    assert '[1, 3)' in outcome.error
    assert 'WallError' in outcome.error
    assert 'exactly 4' in outcome.error
    with pytest.raises(vc.RangeComputationError, match='WallError'):
        outcome.unwrap()


def test_run_range_reports_degenerate_cells(unit_cube_corners) -> None:
    with pytest.warns(RuntimeWarning):
        outcome = vc.run_range(
            unit_cube_corners,
            domain=(0, 1, 0, 1, 0, 1),
            wall='plane',
            wall_args=[1, 0, 0, -3],
        )
    assert outcome.error is not None
    assert 'DegenerateCellError' in outcome.error
    assert 'end' in outcome.error


def test_concurrent_calls_do_not_share_walls(unit_cube_corners) -> None:
    from concurrent.futures import ThreadPoolExecutor

    dom = (0, 1, 0, 1, 0, 1)
    kwargs = [
        {'wall': 'plane', 'wall_args': [1, 0, 0, 0.25]},
        {},
    ]
    with ThreadPoolExecutor(max_workers=2) as pool:
        outs = list(
            pool.map(lambda kw: vc.run_range(unit_cube_corners, domain=dom, **kw), kwargs)
        )
    assert not outs[0].ok
    assert outs[1].ok
    np.testing.assert_allclose(outs[1].unwrap().volumes, 0.125)
