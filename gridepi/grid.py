"""Grid topology: linear cell index ↔ (x, y) coordinates.

Row-major layout:
    index = y * nx + x
    x = index mod nx,  y = (index - x) / nx

to_index / to_coord do no bounds checking; they sit on the hot path of
neighbour enumeration. Callers check in_grid() before trusting a derived
coordinate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from gridepi.config import GridSection, grid_diagonal


@dataclass(frozen=True)
class GridTopology:
    """An nx × ny grid of cells, one individual per cell."""
    nx: int
    ny: int

    @classmethod
    def from_config(cls, section: GridSection) -> 'GridTopology':
        return cls(nx=section.nx, ny=section.ny)

    @property
    def n_cells(self) -> int:
        return self.nx * self.ny

    @property
    def shape(self) -> Tuple[int, int]:
        """Array shape (rows, cols) = (ny, nx) for reshaping a population."""
        return (self.ny, self.nx)

    @property
    def center(self) -> Tuple[int, int]:
        return (self.nx // 2, self.ny // 2)

    @property
    def diagonal(self) -> int:
        """Rounded Euclidean diagonal, the largest admissible travel radius."""
        return grid_diagonal(self.nx, self.ny)

    def to_index(self, x: int, y: int) -> int:
        return y * self.nx + x

    def to_coord(self, index: int) -> Tuple[int, int]:
        x = index % self.nx
        return (x, (index - x) // self.nx)

    def in_grid(self, x: int, y: int) -> bool:
        return 0 <= x < self.nx and 0 <= y < self.ny

    def valid_index(self, index: int) -> bool:
        return 0 <= index < self.n_cells

    # ── vectorized forms (renderers, seeding) ────────────────────────

    def to_index_vec(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Vectorized to_index for integer arrays."""
        return np.asarray(y, dtype=np.int64) * self.nx + np.asarray(x, dtype=np.int64)

    def to_coord_vec(self, index: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorized to_coord; returns (x, y) int64 arrays."""
        index = np.asarray(index, dtype=np.int64)
        x = index % self.nx
        return x, (index - x) // self.nx

    def in_grid_vec(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Vectorized in_grid; returns a bool mask."""
        x = np.asarray(x)
        y = np.asarray(y)
        return (x >= 0) & (x < self.nx) & (y >= 0) & (y < self.ny)
