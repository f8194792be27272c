"""Core data types for gridepi.

This module is the single source of truth for:
  - HealthState enumeration and the per-cell state dtype
  - StateCounts: the five aggregate counts published after every step
  - StepResult: what step() hands to renderers and charts

The population itself is a flat int8 array of HealthState values addressed
by cell index (see grid.py for the index ↔ (x, y) mapping).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class HealthState(IntEnum):
    """Health state of one individual.

    I → R  (recover, r_rate)
    I → D  (die, d_rate; checked after recover)
    * → V  (vaccinate, v_rate; any state but D, checked last)
    S → I  (infect, i_rate; only when met by an infectious cell)
    R → I, V → I  (reinfection, reinfection-enabled variant only)

    D is absorbing.
    """
    S = 0   # Susceptible
    I = 1   # Infectious
    R = 2   # Recovered
    D = 3   # Dead
    V = 4   # Vaccinated


N_STATES = len(HealthState)

STATE_DTYPE = np.dtype(np.int8)

STATE_NAMES = {
    HealthState.S: 'susceptible',
    HealthState.I: 'infectious',
    HealthState.R: 'recovered',
    HealthState.D: 'dead',
    HealthState.V: 'vaccinated',
}


def allocate_states(n_cells: int) -> np.ndarray:
    """Allocate a population array with every individual Susceptible."""
    return np.full(n_cells, HealthState.S, dtype=STATE_DTYPE)


def read_only(arr: np.ndarray) -> np.ndarray:
    """Return a non-writeable view of arr (the caller's array is untouched)."""
    view = arr.view()
    view.flags.writeable = False
    return view


# ═══════════════════════════════════════════════════════════════════════
# AGGREGATE COUNTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StateCounts:
    """Number of individuals in each health state at one observable point."""
    susceptible: int = 0
    infectious: int = 0
    recovered: int = 0
    dead: int = 0
    vaccinated: int = 0

    @classmethod
    def from_array(cls, arr) -> 'StateCounts':
        """Build from a length-5 sequence ordered by HealthState value."""
        return cls(*(int(v) for v in arr))

    @classmethod
    def from_states(cls, states: np.ndarray) -> 'StateCounts':
        """Recount a population array."""
        return cls.from_array(np.bincount(states, minlength=N_STATES)[:N_STATES])

    @property
    def total(self) -> int:
        return (self.susceptible + self.infectious + self.recovered
                + self.dead + self.vaccinated)

    def __getitem__(self, state: HealthState) -> int:
        return getattr(self, STATE_NAMES[HealthState(state)])

    def as_array(self) -> np.ndarray:
        """Counts as an int64 array ordered by HealthState value."""
        return np.array(
            [self.susceptible, self.infectious, self.recovered,
             self.dead, self.vaccinated],
            dtype=np.int64,
        )

    def as_dict(self) -> Dict[str, int]:
        return {name: self[state] for state, name in STATE_NAMES.items()}

    def fractions(self) -> Dict[str, float]:
        """Share of the population in each state (0 for an empty total)."""
        total = self.total
        if total == 0:
            return {name: 0.0 for name in STATE_NAMES.values()}
        return {name: self[state] / total for state, name in STATE_NAMES.items()}


# ═══════════════════════════════════════════════════════════════════════
# ENGINE OUTPUT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StepResult:
    """Delta published by one call to SimulationEngine.step().

    changed_indices is a read-only int64 array: every cell whose state
    changed during the step, in order of first change, each listed once.
    """
    step: int
    changed_indices: np.ndarray
    counts: StateCounts

    @property
    def n_changed(self) -> int:
        return int(self.changed_indices.size)
