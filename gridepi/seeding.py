"""Step-0 placement of infectious individuals.

Two policies:
  - uniform: distinct cells drawn uniformly over the whole grid
  - cluster: distinct cells drawn from a square window around the grid
    centre, half-width floor(sqrt(n)), grown until it holds n cells

Seeded cells are always distinct, so the initial counts are exact.
"""

from __future__ import annotations

import math

import numpy as np

from gridepi.config import SeedingSection
from gridepi.grid import GridTopology


def n_initial_infected(percent: float, n_cells: int) -> int:
    """Number of cells to seed: percent * N rounded half up, within [1, N]."""
    n = int(math.floor(percent * n_cells + 0.5))
    return min(max(n, 1), n_cells)


def cluster_window(topology: GridTopology, half_width: int) -> np.ndarray:
    """Sorted indices of the centre window [c - w, c + w - 1]², clipped to the grid."""
    cx, cy = topology.center
    x0 = max(cx - half_width, 0)
    x1 = min(cx + half_width - 1, topology.nx - 1)
    y0 = max(cy - half_width, 0)
    y1 = min(cy + half_width - 1, topology.ny - 1)
    xs, ys = np.meshgrid(np.arange(x0, x1 + 1), np.arange(y0, y1 + 1))
    return np.sort(topology.to_index_vec(xs.ravel(), ys.ravel()))


def seed_uniform(topology: GridTopology, n: int,
                 rng: np.random.Generator) -> np.ndarray:
    """n distinct cells drawn uniformly from the whole grid."""
    return rng.choice(topology.n_cells, size=n, replace=False).astype(np.int64)


def seed_cluster(topology: GridTopology, n: int,
                 rng: np.random.Generator) -> np.ndarray:
    """n distinct cells drawn from the smallest centre window holding n cells."""
    half_width = max(int(math.isqrt(n)), 1)
    window = cluster_window(topology, half_width)
    while window.size < n:
        half_width += 1
        window = cluster_window(topology, half_width)
    return rng.choice(window, size=n, replace=False).astype(np.int64)


def seed_initial_infections(
    topology: GridTopology,
    section: SeedingSection,
    rng: np.random.Generator,
) -> np.ndarray:
    """Indices of the cells that start Infectious, in draw order."""
    n = n_initial_infected(section.percent_start_infected, topology.n_cells)
    if section.cluster_mode:
        return seed_cluster(topology, n, rng)
    return seed_uniform(topology, n, rng)
