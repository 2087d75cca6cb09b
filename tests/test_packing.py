from __future__ import annotations

import numpy as np
import pytest

import vorocells as vc


def _result(index: int, neighbors: list[int], n_vertices: int) -> vc.CellResult:
    verts = np.arange(3 * n_vertices, dtype=float)
    v = verts.reshape(-1, 3) if n_vertices else np.zeros((1, 3))
    return vc.CellResult(
        index=index,
        volume=float(index + 1),
        bbox_min=v.min(axis=0),
        bbox_max=v.max(axis=0),
        neighbors=np.asarray(neighbors, dtype=np.int64),
        vertices=verts,
    )


def test_pack_neighbors_pads_with_sentinel() -> None:
    results = [_result(0, [1, 2, -1], 4), _result(1, [0, -3], 5)]
    out = vc.pack_results(results)

    assert out.ncells == 2
    assert out.max_nn == 3
    assert out.neighbors.shape == (2, 3)
    assert out.neighbors.dtype == np.int32
    assert out.neighbors[0].tolist() == [1, 2, -1]
    assert out.neighbors[1].tolist() == [0, -3, vc.NO_NEIGHBOR]
    assert out.n_neighbors.tolist() == [3, 2]
    assert [row.tolist() for row in out.neighbor_lists()] == [[1, 2, -1], [0, -3]]


def test_pack_without_vertices_has_empty_vertex_channel() -> None:
    out = vc.pack_results([_result(0, [1], 4), _result(1, [0], 6)])
    assert out.max_nv == 0
    assert out.vertices.shape == (2, 0)
    assert out.n_vertex_coords.tolist() == [0, 0]
    assert [v.shape for v in out.vertex_lists()] == [(0, 3), (0, 3)]


def test_pack_vertices_pads_with_nan() -> None:
    out = vc.pack_results(
        [_result(0, [1], 4), _result(1, [0], 6)], return_vertices=True
    )
    assert out.max_nv == 18
    assert out.vertices.shape == (2, 18)
    assert np.all(np.isnan(out.vertices[0, 12:]))
    assert not np.any(np.isnan(out.vertices[1]))
    np.testing.assert_array_equal(out.vertices[0, :12], np.arange(12.0))
    lists = out.vertex_lists()
    assert lists[0].shape == (4, 3)
    assert lists[1].shape == (6, 3)


def test_pack_fixed_width_channels() -> None:
    out = vc.pack_results([_result(0, [1], 4), _result(1, [0], 4)])
    np.testing.assert_array_equal(out.volumes, [1.0, 2.0])
    assert out.bb_min.shape == (2, 3)
    assert out.bb_max.shape == (2, 3)
    np.testing.assert_array_equal(out.bb_max[0], [9.0, 10.0, 11.0])


def test_pack_rejects_empty_results() -> None:
    with pytest.raises(ValueError, match='at least one'):
        vc.pack_results([])


def test_packed_arrays_are_not_shared() -> None:
    r = _result(0, [4, 5], 4)
    out = vc.pack_results([r], return_vertices=True)
    out.neighbors[0, 0] = 99
    out.vertices[0, 0] = -1.0
    assert r.neighbors[0] == 4
    assert r.vertices[0] == 0.0
