"""Optional per-step grid snapshots for renderers.

A GridSnapshot is a frozen copy of the population laid out as an
ny × nx array, plus the counts at that step. SnapshotRecorder keeps them
in memory at a fixed step interval; nothing is written to disk.

Usage:
    recorder = SnapshotRecorder(enabled=True, interval=10)
    recorder.capture(engine)          # after setup and after each step
    frames = recorder.frames()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from gridepi.types import StateCounts


@dataclass(frozen=True)
class GridSnapshot:
    """States of every cell at one step. states[y, x] is a HealthState value."""
    step: int
    states: np.ndarray
    counts: StateCounts

    def memory_bytes(self) -> int:
        return int(self.states.nbytes)


class SnapshotRecorder:
    """Records GridSnapshots every `interval` steps.

    When enabled=False, capture() is a no-op.
    """

    def __init__(self, enabled: bool = False, interval: int = 1,
                 start_step: int = 0, end_step: Optional[int] = None):
        """
        Args:
            enabled: Master switch.
            interval: Capture every N steps (1 = every step).
            start_step: First step to record.
            end_step: Last step to record (None = no limit).
        """
        if interval < 1:
            raise ValueError(f"interval must be >= 1, got {interval}")
        self.enabled = enabled
        self.interval = interval
        self.start_step = start_step
        self.end_step = end_step
        self.snapshots: Dict[int, GridSnapshot] = {}

    def should_capture(self, step: int) -> bool:
        if not self.enabled:
            return False
        if step < self.start_step:
            return False
        if self.end_step is not None and step > self.end_step:
            return False
        return (step - self.start_step) % self.interval == 0

    def capture(self, engine) -> None:
        """Store engine.snapshot() if the engine's current step is due."""
        if self.should_capture(engine.step_count):
            snap = engine.snapshot()
            self.snapshots[snap.step] = snap

    def get_steps(self) -> List[int]:
        return sorted(self.snapshots)

    def get_snapshot(self, step: int) -> Optional[GridSnapshot]:
        return self.snapshots.get(step)

    def frames(self) -> np.ndarray:
        """Stacked (n_frames, ny, nx) array of recorded states, in step order."""
        steps = self.get_steps()
        if not steps:
            return np.empty((0, 0, 0), dtype=np.int8)
        return np.stack([self.snapshots[s].states for s in steps])

    def clear(self) -> None:
        self.snapshots.clear()

    def memory_estimate_mb(self) -> float:
        total = sum(s.memory_bytes() for s in self.snapshots.values())
        return total / (1024 * 1024)
