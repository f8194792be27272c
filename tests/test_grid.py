"""Tests for gridepi.grid: index ↔ coordinate mapping and bounds."""

import numpy as np
import pytest

from gridepi.config import GridSection
from gridepi.grid import GridTopology


@pytest.fixture
def grid():
    return GridTopology(nx=7, ny=4)


class TestIndexCoordinateMapping:
    def test_row_major_layout(self, grid):
        assert grid.to_index(0, 0) == 0
        assert grid.to_index(6, 0) == 6
        assert grid.to_index(0, 1) == 7
        assert grid.to_index(6, 3) == grid.n_cells - 1

    def test_mutual_inverses_over_whole_grid(self, grid):
        for y in range(grid.ny):
            for x in range(grid.nx):
                index = grid.to_index(x, y)
                assert grid.to_coord(index) == (x, y)
        for index in range(grid.n_cells):
            assert grid.to_index(*grid.to_coord(index)) == index

    def test_every_valid_index_maps_in_grid(self, grid):
        for index in range(grid.n_cells):
            assert grid.in_grid(*grid.to_coord(index))

    def test_mapping_is_a_bijection(self, grid):
        coords = {grid.to_coord(i) for i in range(grid.n_cells)}
        assert len(coords) == grid.n_cells

    def test_no_bounds_check_in_to_index(self, grid):
        """Out-of-grid coordinates are mapped blindly; callers use in_grid."""
        assert grid.to_index(-1, 0) == -1
        assert grid.to_index(7, 0) == 7   # aliases (0, 1)
        assert not grid.in_grid(7, 0)

    def test_single_cell_grid(self):
        g = GridTopology(nx=1, ny=1)
        assert g.n_cells == 1
        assert g.to_coord(0) == (0, 0)
        assert g.to_index(0, 0) == 0


class TestInGrid:
    @pytest.mark.parametrize("x, y, expected", [
        (0, 0, True),
        (6, 3, True),
        (-1, 0, False),
        (0, -1, False),
        (7, 0, False),
        (0, 4, False),
    ])
    def test_bounds(self, grid, x, y, expected):
        assert grid.in_grid(x, y) is expected

    def test_valid_index(self, grid):
        assert grid.valid_index(0)
        assert grid.valid_index(27)
        assert not grid.valid_index(28)
        assert not grid.valid_index(-1)


class TestVectorized:
    def test_vec_matches_scalar(self, grid):
        idx = np.arange(grid.n_cells)
        x, y = grid.to_coord_vec(idx)
        for i in idx:
            assert (x[i], y[i]) == grid.to_coord(int(i))
        np.testing.assert_array_equal(grid.to_index_vec(x, y), idx)

    def test_in_grid_vec(self, grid):
        mask = grid.in_grid_vec(np.array([-1, 0, 6, 7]), np.array([0, 0, 3, 3]))
        np.testing.assert_array_equal(mask, [False, True, True, False])


class TestGeometry:
    def test_from_config(self):
        g = GridTopology.from_config(GridSection(nx=80, ny=50))
        assert g.n_cells == 4000
        assert g.shape == (50, 80)

    def test_center(self, grid):
        assert grid.center == (3, 2)

    def test_diagonal_is_rounded_euclidean(self):
        assert GridTopology(nx=3, ny=4).diagonal == 5
        assert GridTopology(nx=1, ny=1).diagonal == 1
        assert GridTopology(nx=80, ny=50).diagonal == 94
