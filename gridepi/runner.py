"""Drivers that schedule SimulationEngine.step().

run_simulation stands in for a UI timer: it calls step()
until the engine reports is_finished(), forwarding every StepResult to an
optional callback (a renderer, a progress bar). run_replicates repeats a
run on independent random streams and stacks the count series.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from gridepi.config import SimulationConfig, default_config, validate_config
from gridepi.engine import SimulationEngine
from gridepi.rng import spawn_rngs
from gridepi.snapshots import SnapshotRecorder
from gridepi.types import StepResult

logger = logging.getLogger(__name__)

STOP_EXTINCT = 'extinct'
STOP_MAX_STEPS = 'max_steps'


@dataclass
class SimulationResult:
    """Outcome of one run."""
    steps: int = 0
    stop_reason: str = ''
    timeseries: Optional[np.ndarray] = None     # (steps + 1, 5) counts
    summary: Dict[str, Any] = field(default_factory=dict)
    count_repairs: int = 0
    snapshots: Optional[SnapshotRecorder] = None


@dataclass
class ReplicateResult:
    """Outcome of n independent runs of one configuration.

    Runs end at different steps; shorter series are padded with their
    final row (the state is frozen once no one is infectious).
    """
    n_replicates: int = 0
    results: List[SimulationResult] = field(default_factory=list)
    stacked: Optional[np.ndarray] = None        # (n, T, 5)
    mean: Optional[np.ndarray] = None           # (T, 5)
    lower: Optional[np.ndarray] = None          # (T, 5) per-step minimum
    upper: Optional[np.ndarray] = None          # (T, 5) per-step maximum


def run_simulation(
    config: Optional[SimulationConfig] = None,
    rng: Optional[np.random.Generator] = None,
    on_step: Optional[Callable[[StepResult], None]] = None,
    recorder: Optional[SnapshotRecorder] = None,
) -> SimulationResult:
    """Run one simulation to completion.

    Args:
        config: Simulation configuration (defaults to default_config()).
        rng: Injected random source; defaults to one built from the
            configured seed.
        on_step: Called with each StepResult, after the step.
        recorder: Optional snapshot recorder; captures step 0 and every
            due step afterwards.

    Returns:
        SimulationResult with the count time series and run summary.
    """
    if config is None:
        config = default_config()
    engine = SimulationEngine(config, rng=rng)
    if recorder is not None:
        recorder.capture(engine)

    while not engine.is_finished():
        result = engine.step()
        if recorder is not None:
            recorder.capture(engine)
        if on_step is not None:
            on_step(result)

    stop_reason = STOP_EXTINCT if not engine.infectious_indices else STOP_MAX_STEPS
    summary = engine.stats.summary()
    summary['stop_reason'] = stop_reason
    logger.info(
        "run complete: %d steps (%s), attack rate %.3f",
        engine.step_count, stop_reason, summary['attack_rate'],
    )
    return SimulationResult(
        steps=engine.step_count,
        stop_reason=stop_reason,
        timeseries=np.array(engine.stats.time_series()),
        summary=summary,
        count_repairs=engine.count_repairs,
        snapshots=recorder,
    )


def _pad_to(series: np.ndarray, length: int) -> np.ndarray:
    if series.shape[0] >= length:
        return series
    pad = np.repeat(series[-1:], length - series.shape[0], axis=0)
    return np.vstack([series, pad])


def run_replicates(
    config: Optional[SimulationConfig] = None,
    n_replicates: int = 10,
    master_seed: Optional[int] = None,
) -> ReplicateResult:
    """Run n_replicates independent simulations of one configuration.

    Args:
        config: Simulation configuration (defaults to default_config()).
        n_replicates: Number of runs (>= 1).
        master_seed: Seed for the replicate streams; defaults to
            config.simulation.seed.

    Returns:
        ReplicateResult with per-run results and mean / min / max envelopes.
    """
    if config is None:
        config = default_config()
    validate_config(config)
    if n_replicates < 1:
        raise ValueError(f"n_replicates must be >= 1, got {n_replicates}")
    if master_seed is None:
        master_seed = config.simulation.seed

    results = []
    for i, rng in enumerate(spawn_rngs(master_seed, n_replicates)):
        logger.debug("replicate %d/%d", i + 1, n_replicates)
        results.append(run_simulation(config, rng=rng))

    length = max(r.timeseries.shape[0] for r in results)
    stacked = np.stack([_pad_to(r.timeseries, length) for r in results])
    return ReplicateResult(
        n_replicates=n_replicates,
        results=results,
        stacked=stacked,
        mean=stacked.mean(axis=0),
        lower=stacked.min(axis=0),
        upper=stacked.max(axis=0),
    )
