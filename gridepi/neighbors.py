"""Neighbour sampling within a Manhattan travel radius.

Candidates for a source cell (x, y) are enumerated ring by ring:

    for d in 1..travel_radius:
        for i in -d..d:
            c = d - |i|
            (x+i, y+c)          if in grid
            (x+i, y-c)          if c != 0 and in grid

which covers the L1 ball of radius travel_radius (centre excluded)
exactly once. If there are at most n_meeting candidates they are all
returned; otherwise n_meeting are drawn uniformly without replacement,
each draw removing its pick from the pool.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

from gridepi.config import ContactSection
from gridepi.grid import GridTopology


def diamond_offsets(radius: int) -> Tuple[np.ndarray, np.ndarray]:
    """(dx, dy) offsets of the L1 ball of `radius`, in ring enumeration order."""
    dx: List[int] = []
    dy: List[int] = []
    for d in range(1, radius + 1):
        for i in range(-d, d + 1):
            c = d - abs(i)
            dx.append(i)
            dy.append(c)
            if c != 0:
                dx.append(i)
                dy.append(-c)
    return np.array(dx, dtype=np.int64), np.array(dy, dtype=np.int64)


def draw_without_replacement(
    pool: List[int],
    k: int,
    rng: np.random.Generator,
) -> List[int]:
    """Draw k items from pool, removing each pick before the next draw.

    pool is consumed. Requires k <= len(pool).
    """
    selected = []
    for _ in range(k):
        j = int(rng.integers(len(pool)))
        selected.append(pool.pop(j))
    return selected


class NeighborSampler:
    """Bounded random contacts of a cell within its Manhattan ball."""

    def __init__(self, topology: GridTopology, travel_radius: int, n_meeting: int):
        self.topology = topology
        self.travel_radius = travel_radius
        self.n_meeting = n_meeting
        self._dx, self._dy = diamond_offsets(travel_radius)

    @classmethod
    def from_config(cls, topology: GridTopology,
                    section: ContactSection) -> 'NeighborSampler':
        return cls(topology, section.travel_radius, section.n_meeting)

    def candidates(self, index: int) -> List[int]:
        """All in-grid cells within travel_radius of index, ring order."""
        x, y = self.topology.to_coord(index)
        xs = x + self._dx
        ys = y + self._dy
        keep = self.topology.in_grid_vec(xs, ys)
        return self.topology.to_index_vec(xs[keep], ys[keep]).tolist()

    def sample(self, index: int, rng: np.random.Generator) -> List[int]:
        """Up to n_meeting distinct contacts of index.

        Draws nothing from rng when every candidate is met.
        """
        pool = self.candidates(index)
        if len(pool) <= self.n_meeting:
            return pool
        return draw_without_replacement(pool, self.n_meeting, rng)
