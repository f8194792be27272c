"""Tests for gridepi.snapshots: in-memory grid snapshots."""

import numpy as np
import pytest

from gridepi.config import (
    ContactSection,
    GridSection,
    RatesSection,
    SimulationConfig,
    SimulationSection,
)
from gridepi.engine import SimulationEngine
from gridepi.snapshots import SnapshotRecorder


def small_engine():
    config = SimulationConfig(
        grid=GridSection(nx=6, ny=4),
        rates=RatesSection(i_rate=0.5, r_rate=0.0, d_rate=0.0, v_rate=0.0),
        contact=ContactSection(travel_radius=1, n_meeting=4),
        simulation=SimulationSection(max_steps=20, seed=3),
    )
    return SimulationEngine(config)


class TestSnapshotRecorder:
    def test_disabled_is_noop(self):
        engine = small_engine()
        recorder = SnapshotRecorder(enabled=False)
        recorder.capture(engine)
        assert recorder.get_steps() == []
        assert recorder.frames().shape == (0, 0, 0)

    def test_interval(self):
        recorder = SnapshotRecorder(enabled=True, interval=3)
        assert [s for s in range(10) if recorder.should_capture(s)] == [0, 3, 6, 9]

    def test_window(self):
        recorder = SnapshotRecorder(enabled=True, interval=2, start_step=3, end_step=8)
        assert [s for s in range(12) if recorder.should_capture(s)] == [3, 5, 7]

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            SnapshotRecorder(enabled=True, interval=0)

    def test_capture_during_run(self):
        engine = small_engine()
        recorder = SnapshotRecorder(enabled=True, interval=2)
        recorder.capture(engine)
        for _ in range(5):
            engine.step()
            recorder.capture(engine)
        assert recorder.get_steps() == [0, 2, 4]
        frames = recorder.frames()
        assert frames.shape == (3, 4, 6)
        np.testing.assert_array_equal(frames[-1], recorder.get_snapshot(4).states)

    def test_snapshot_counts_match_states(self):
        engine = small_engine()
        recorder = SnapshotRecorder(enabled=True)
        recorder.capture(engine)
        engine.step()
        recorder.capture(engine)
        for step in recorder.get_steps():
            snap = recorder.get_snapshot(step)
            assert snap.counts.infectious == int(np.sum(snap.states == 1))
            assert snap.counts.total == 24

    def test_snapshot_not_affected_by_later_steps(self):
        engine = small_engine()
        recorder = SnapshotRecorder(enabled=True)
        recorder.capture(engine)
        first = recorder.get_snapshot(0).states.copy()
        for _ in range(5):
            engine.step()
        np.testing.assert_array_equal(recorder.get_snapshot(0).states, first)

    def test_memory_and_clear(self):
        engine = small_engine()
        recorder = SnapshotRecorder(enabled=True)
        recorder.capture(engine)
        assert recorder.get_snapshot(0).memory_bytes() == 24
        assert recorder.memory_estimate_mb() > 0
        recorder.clear()
        assert recorder.get_steps() == []
        assert recorder.get_snapshot(0) is None
