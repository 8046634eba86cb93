"""Tests for spatial_grid.py."""

import numpy as np
import pytest

from spatial_grid import build_grid, query_neighbors


class TestBuildGrid:
    """Tests for the counting-sort grid build."""

    def test_every_particle_placed_once(self, rng):
        positions = rng.random((200, 2)) * (800, 600)
        grid = build_grid(positions, 50.0)

        assert grid.offsets[-1] == 200
        assert sorted(grid.indices.tolist()) == list(range(200))

    def test_cells_follow_floor_of_position(self):
        positions = np.array([[5.0, 5.0], [15.0, 5.0], [5.0, 25.0]])
        grid = build_grid(positions, 10.0)

        assert (grid.origin_x, grid.origin_y) == (0, 0)
        assert (grid.width, grid.height) == (2, 3)
        # Cell (1, 0) holds only particle 1.
        cell = 0 * grid.width + 1
        assert grid.indices[grid.offsets[cell]:grid.offsets[cell + 1]].tolist() == [1]

    def test_order_within_cell_is_stable(self):
        positions = np.array([[1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        grid = build_grid(positions, 10.0)
        assert grid.indices.tolist() == [0, 1, 2]

    def test_negative_coordinates_supported(self):
        positions = np.array([[-25.0, -5.0], [-15.0, -5.0], [30.0, 30.0]])
        grid = build_grid(positions, 10.0)

        assert grid.origin_x == -3
        assert grid.origin_y == -1
        assert 0 in query_neighbors(grid, positions, 1)

    def test_empty_positions(self):
        grid = build_grid(np.empty((0, 2)), 10.0)
        assert grid.width == 0
        assert len(grid.indices) == 0

    @pytest.mark.parametrize("cell_size", [0.0, -1.0])
    def test_non_positive_cell_size_rejected(self, cell_size):
        with pytest.raises(ValueError):
            build_grid(np.zeros((3, 2)), cell_size)


class TestQueryNeighbors:
    """Tests for the 3x3 neighbourhood query."""

    def test_adjacent_cell_included_far_cell_excluded(self):
        positions = np.array([[5.0, 5.0], [15.0, 5.0], [35.0, 5.0]])
        grid = build_grid(positions, 10.0)

        candidates = set(query_neighbors(grid, positions, 0).tolist())
        assert candidates == {0, 1}

    def test_candidates_cover_every_true_neighbor(self, rng):
        positions = rng.random((300, 2)) * (500, 500)
        cell_size = 40.0
        grid = build_grid(positions, cell_size)

        for i in range(0, 300, 7):
            candidates = set(query_neighbors(grid, positions, i).tolist())
            dists = np.sqrt(np.sum((positions - positions[i])**2, axis=1))
            true_neighbors = set(np.nonzero(dists < cell_size)[0].tolist())
            assert true_neighbors <= candidates


class TestSparseGrid:
    """Tests for grids whose occupied extent dwarfs the particle count."""

    def test_far_apart_particles_use_occupied_cells_only(self):
        positions = np.array([[0.0, 0.0], [1e6, 1e6]])
        grid = build_grid(positions, 1.0)

        assert grid.cell_keys.tolist() == [0, 1_000_000 * grid.width + 1_000_000]
        assert len(grid.offsets) == 3
        assert query_neighbors(grid, positions, 0).tolist() == [0]
        assert query_neighbors(grid, positions, 1).tolist() == [1]

    def test_dense_grid_has_no_cell_keys(self):
        positions = np.array([[5.0, 5.0], [15.0, 5.0], [5.0, 25.0]])
        assert len(build_grid(positions, 10.0).cell_keys) == 0

    def test_sparse_queries_match_dense(self, rng):
        # Two clusters far apart force the sparse layout.
        near = rng.random((100, 2)) * 200
        positions = np.vstack([near, near + 5e5])
        cell_size = 30.0
        grid = build_grid(positions, cell_size)
        assert len(grid.cell_keys) > 0

        for i in range(0, 200, 9):
            candidates = set(query_neighbors(grid, positions, i).tolist())
            dists = np.sqrt(np.sum((positions - positions[i])**2, axis=1))
            true_neighbors = set(np.nonzero(dists < cell_size)[0].tolist())
            assert true_neighbors <= candidates
            assert all(abs(positions[j] - positions[i]).max() < 2 * cell_size for j in candidates)
