"""Statistics tracker: per-step count time series and last changed-set.

Row t of the time series holds the five aggregate counts after step t
(row 0 is the seeded configuration). The series is append-only; the
changed-set is overwritten every step. Everything handed out is a copy or
a read-only view, so renderers cannot write back into engine state.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import numpy as np

from gridepi.types import N_STATES, STATE_NAMES, HealthState, StateCounts, read_only


class StatisticsTracker:
    """Append-only history of StateCounts plus the most recent changed-set."""

    def __init__(self, n_cells: int):
        self.n_cells = n_cells
        self._rows: List[np.ndarray] = []
        self._changed = read_only(np.empty(0, dtype=np.int64))

    def reset(self) -> None:
        """Discard all history."""
        self._rows = []
        self._changed = read_only(np.empty(0, dtype=np.int64))

    def copy(self) -> 'StatisticsTracker':
        """Independent tracker with the same history."""
        other = StatisticsTracker(self.n_cells)
        other._rows = [row.copy() for row in self._rows]
        other._changed = self._changed
        return other

    def record(self, counts: StateCounts, changed_indices: np.ndarray) -> None:
        """Append one step's counts and replace the changed-set."""
        self._rows.append(counts.as_array())
        changed = np.array(changed_indices, dtype=np.int64)
        self._changed = read_only(changed)

    # ── accessors ────────────────────────────────────────────────────

    @property
    def n_steps(self) -> int:
        """Steps elapsed since step 0 (0 when only the seed is recorded)."""
        return max(len(self._rows) - 1, 0)

    @property
    def changed_indices(self) -> np.ndarray:
        """Read-only indices changed in the most recent recorded step."""
        return self._changed

    @property
    def latest(self) -> StateCounts:
        if not self._rows:
            raise IndexError("no counts recorded yet")
        return StateCounts.from_array(self._rows[-1])

    def counts_at(self, step: int) -> StateCounts:
        return StateCounts.from_array(self._rows[step])

    def time_series(self) -> np.ndarray:
        """Read-only (n_steps + 1, 5) int64 array, columns ordered by HealthState."""
        if not self._rows:
            return read_only(np.empty((0, N_STATES), dtype=np.int64))
        return read_only(np.vstack(self._rows))

    def series(self, state: HealthState) -> np.ndarray:
        """Read-only count series of one state."""
        return read_only(self.time_series()[:, int(state)].copy())

    def fractions(self) -> np.ndarray:
        """Time series as percent of the population (what the chart plots)."""
        return self.time_series() * (100.0 / self.n_cells)

    def peak_infectious(self) -> Tuple[int, int]:
        """(step, count) of the first maximum of the infectious series."""
        infectious = self.series(HealthState.I)
        if infectious.size == 0:
            return (0, 0)
        step = int(np.argmax(infectious))
        return (step, int(infectious[step]))

    def summary(self) -> Dict[str, Any]:
        """Scalar run summary (JSON-serializable)."""
        final = self.latest
        peak_step, peak_count = self.peak_infectious()
        return {
            'n_cells': self.n_cells,
            'steps': self.n_steps,
            'final_counts': final.as_dict(),
            'peak_infectious': peak_count,
            'peak_step': peak_step,
            'attack_rate': 1.0 - final.susceptible / self.n_cells,
            'total_deaths': final.dead,
        }

    def as_dict(self) -> Dict[str, np.ndarray]:
        """Series keyed by state name, e.g. for np.savez."""
        ts = self.time_series()
        return {name: ts[:, int(state)].copy() for state, name in STATE_NAMES.items()}
