"""Simulation engine: one discrete step of the grid epidemic.

step() sequence:
  1. Snapshot the infectious set as this step's cohort
  2. For each cohort member, in cohort order:
       recover → die → vaccinate (individual.resolve_infectious)
       if it left I: update counts, record it as changed
       else: sample contacts and run infection / reinfection trials
  3. Merge newly infected cells into the infectious set (they join the
     cohort of the next step, not this one)
  4. Publish counts: S = N − I − R − D − V, clamp at zero
  5. Recount the population and check bookkeeping (check_invariants)

The engine owns the population, the infectious set and the counts.
Everything it hands out is a copy or a read-only view. It never schedules
itself; a driver calls step() until is_finished().
"""

from __future__ import annotations

import copy
import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from gridepi.config import (
    SimulationConfig,
    config_from_dict,
    config_to_dict,
    deep_merge,
    default_config,
    validate_config,
)
from gridepi.errors import CountRepairWarning, InvariantViolation
from gridepi.grid import GridTopology
from gridepi.individual import contact_rate, infect, resolve_infectious
from gridepi.neighbors import NeighborSampler
from gridepi.rng import create_rng, restore_rng_state, rng_state_snapshot
from gridepi.seeding import seed_initial_infections
from gridepi.snapshots import GridSnapshot
from gridepi.stats import StatisticsTracker
from gridepi.types import (
    N_STATES,
    HealthState,
    StateCounts,
    StepResult,
    allocate_states,
    read_only,
)

logger = logging.getLogger(__name__)

_S = int(HealthState.S)
_I = int(HealthState.I)

# Changing these sections invalidates the current population.
_RESEED_SECTIONS = ('grid', 'seeding')


@dataclass(frozen=True)
class EngineCheckpoint:
    """In-memory copy of everything step() reads or writes."""
    step: int
    states: np.ndarray
    infectious: Tuple[int, ...]
    counts: np.ndarray
    stats: StatisticsTracker
    rng_state: Dict[str, Any]
    count_repairs: int
    config: SimulationConfig


class SimulationEngine:
    """Owns one run of the grid epidemic.

    Args:
        config: Simulation configuration (defaults to default_config()).
        rng: Injected random source. When None, one is created from
            config.simulation.seed and re-created whenever setup() gets a
            new config.
    """

    def __init__(self, config: Optional[SimulationConfig] = None,
                 rng: Optional[np.random.Generator] = None):
        self._rng_injected = rng is not None
        self._rng = rng
        self._config: Optional[SimulationConfig] = None
        self.count_repairs = 0
        self.setup(config if config is not None else default_config())

    # ═══════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    def setup(self, config: Optional[SimulationConfig] = None) -> None:
        """Validate config, build a fresh population and record step 0.

        Raises:
            ConfigurationError: If config is out of range.
        """
        if config is not None:
            validate_config(config)
            self._config = copy.deepcopy(config)
            if not self._rng_injected:
                self._rng = create_rng(self._config.simulation.seed)
        self._build()
        self._seed_population()

    def reset(self, seed: Optional[int] = None) -> None:
        """Discard the population and history, then re-seed step 0.

        Args:
            seed: If given, the random source is replaced by create_rng(seed),
                making the new run reproducible on its own. Otherwise the
                current stream continues.
        """
        if seed is not None:
            self._rng = create_rng(seed)
        self._seed_population()

    def apply_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> bool:
        """Change configuration between steps.

        Rates, contact and run-control changes take effect from the next
        step. Grid or seeding changes reset the run. A new simulation.seed
        rebuilds the random source and resets the run, unless the source
        was injected at construction.

        Returns:
            True if the run was reset.

        Raises:
            ConfigurationError: If the merged config is invalid; the engine
                keeps its previous config in that case.
        """
        merged = deep_merge(config_to_dict(self._config), copy.deepcopy(overrides))
        new_config = config_from_dict(merged)
        validate_config(new_config)
        needs_reset = any(
            getattr(new_config, name) != getattr(self._config, name)
            for name in _RESEED_SECTIONS
        )
        reseed = (not self._rng_injected
                  and new_config.simulation.seed != self._config.simulation.seed)
        self._config = new_config
        self._build()
        if reseed:
            logger.info("seed changed to %d; rebuilding random source",
                        new_config.simulation.seed)
            self._rng = create_rng(new_config.simulation.seed)
        if needs_reset or reseed:
            logger.info("grid, seeding or seed changed; resetting run")
            self._seed_population()
        return needs_reset or reseed

    def _build(self) -> None:
        self.topology = GridTopology.from_config(self._config.grid)
        self.sampler = NeighborSampler.from_config(self.topology, self._config.contact)
        if getattr(self, 'stats', None) is None or self.stats.n_cells != self.topology.n_cells:
            self.stats = StatisticsTracker(self.topology.n_cells)

    def _seed_population(self) -> None:
        n = self.topology.n_cells
        seeded = seed_initial_infections(self.topology, self._config.seeding, self._rng)

        self._states = allocate_states(n)
        self._states[seeded] = HealthState.I
        self._infectious: Dict[int, None] = dict.fromkeys(seeded.tolist())
        self._counts = np.zeros(N_STATES, dtype=np.int64)
        self._counts[_S] = n - seeded.size
        self._counts[_I] = seeded.size
        self._step = 0
        self.count_repairs = 0

        self.stats.reset()
        self.stats.record(StateCounts.from_array(self._counts), seeded)
        if self._config.simulation.check_invariants:
            self._check_invariants(seeded)

        logger.info(
            "setup: %dx%d grid, %d seeded infectious (%s), %s propagation",
            self.topology.nx, self.topology.ny, seeded.size,
            'cluster' if self._config.seeding.cluster_mode else 'uniform',
            self._config.simulation.propagation,
        )

    # ═══════════════════════════════════════════════════════════════════
    # STEP
    # ═══════════════════════════════════════════════════════════════════

    def step(self) -> StepResult:
        """Advance one step and return the changed cells and new counts.

        With no infectious individual left this is a no-op: nothing is
        drawn, nothing is recorded, and the current counts are returned.
        """
        if not self._infectious:
            return StepResult(self._step, read_only(np.empty(0, dtype=np.int64)),
                              self.counts)

        rates = self._config.rates
        reinfection = self._config.reinfection_enabled
        states = self._states
        counts = self._counts
        rng = self._rng

        changed: Dict[int, None] = {}
        newly_infected: Dict[int, None] = {}

        for index in list(self._infectious):
            final = int(resolve_infectious(states, index, rates, rng))
            if final != _I:
                del self._infectious[index]
                counts[_I] -= 1
                counts[final] += 1
                changed[index] = None
                continue

            for neighbor in self.sampler.sample(index, rng):
                state = int(states[neighbor])
                rate = contact_rate(state, rates, reinfection)
                if rate is None:
                    continue
                if infect(states, neighbor, rate, rng):
                    counts[state] -= 1
                    counts[_I] += 1
                    changed[neighbor] = None
                    newly_infected[neighbor] = None

        for index in newly_infected:
            if index not in self._infectious:
                self._infectious[index] = None

        self._step += 1
        published = self._publish_counts()
        changed_indices = read_only(
            np.fromiter(changed, dtype=np.int64, count=len(changed))
        )
        self.stats.record(published, changed_indices)
        if self._config.simulation.check_invariants:
            self._check_invariants(changed_indices)

        logger.debug(
            "step %d: %d changed, %d newly infectious, counts %s",
            self._step, len(changed), len(newly_infected), published.as_dict(),
        )
        if self.is_finished():
            logger.info(
                "run finished at step %d (%s)", self._step,
                'no infectious left' if not self._infectious else 'max_steps reached',
            )
        return StepResult(self._step, changed_indices, published)

    def _publish_counts(self) -> StateCounts:
        """Recompute S by subtraction, clamp at zero, and flag any repair."""
        n = self.topology.n_cells
        counts = self._counts
        repaired = counts.copy()
        repaired[_S] = n - counts[1:].sum()
        repaired = np.maximum(repaired, 0)

        if not np.array_equal(repaired, counts):
            self.count_repairs += 1
            msg = (
                f"step {self._step}: count repair changed "
                f"{counts.tolist()} to {repaired.tolist()}"
            )
            logger.warning(msg)
            warnings.warn(msg, CountRepairWarning, stacklevel=3)
            self._counts = repaired

        if int(repaired.sum()) != n:
            raise InvariantViolation(
                f"step {self._step}: counts {repaired.tolist()} sum to "
                f"{int(repaired.sum())}, expected {n}"
            )
        return StateCounts.from_array(repaired)

    def _check_invariants(self, changed_indices: np.ndarray) -> None:
        n = self.topology.n_cells
        recount = np.bincount(self._states, minlength=N_STATES)[:N_STATES]
        if not np.array_equal(recount, self._counts):
            raise InvariantViolation(
                f"step {self._step}: tracked counts {self._counts.tolist()} "
                f"!= population recount {recount.tolist()}"
            )

        infectious = np.fromiter(self._infectious, dtype=np.int64,
                                 count=len(self._infectious))
        if (infectious.size != recount[_I]
                or np.any(self._states[infectious] != HealthState.I)):
            raise InvariantViolation(
                f"step {self._step}: infectious set ({infectious.size}) does "
                f"not match the {int(recount[_I])} infectious individuals"
            )

        if changed_indices.size and (
            changed_indices.min() < 0 or changed_indices.max() >= n
        ):
            raise InvariantViolation(
                f"step {self._step}: changed index outside [0, {n})"
            )

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def is_finished(self) -> bool:
        """True when no one is infectious or max_steps steps have elapsed."""
        return (not self._infectious
                or self._step >= self._config.simulation.max_steps)

    @property
    def config(self) -> SimulationConfig:
        """Copy of the active configuration; change it with apply_overrides()."""
        return copy.deepcopy(self._config)

    @property
    def step_count(self) -> int:
        return self._step

    @property
    def n_cells(self) -> int:
        return self.topology.n_cells

    @property
    def counts(self) -> StateCounts:
        return StateCounts.from_array(self._counts)

    @property
    def states(self) -> np.ndarray:
        """Read-only view of the population, indexed by cell."""
        return read_only(self._states)

    @property
    def infectious_indices(self) -> Tuple[int, ...]:
        """Current infectious set, in next-cohort order."""
        return tuple(self._infectious)

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def state_grid(self) -> np.ndarray:
        """Copy of the population as an (ny, nx) array; [y, x] is cell (x, y)."""
        return self._states.reshape(self.topology.shape).copy()

    def snapshot(self) -> GridSnapshot:
        return GridSnapshot(
            step=self._step,
            states=read_only(self.state_grid()),
            counts=self.counts,
        )

    # ═══════════════════════════════════════════════════════════════════
    # CHECKPOINTING (in memory)
    # ═══════════════════════════════════════════════════════════════════

    def checkpoint(self) -> EngineCheckpoint:
        """Capture the full engine state, random stream included."""
        return EngineCheckpoint(
            step=self._step,
            states=self._states.copy(),
            infectious=tuple(self._infectious),
            counts=self._counts.copy(),
            stats=self.stats.copy(),
            rng_state=rng_state_snapshot(self._rng),
            count_repairs=self.count_repairs,
            config=copy.deepcopy(self._config),
        )

    def restore(self, checkpoint: EngineCheckpoint) -> None:
        """Rewind to a checkpoint; subsequent steps replay bit-exactly."""
        self._config = copy.deepcopy(checkpoint.config)
        self._build()
        self._step = checkpoint.step
        self._states = checkpoint.states.copy()
        self._infectious = dict.fromkeys(checkpoint.infectious)
        self._counts = checkpoint.counts.copy()
        self.stats = checkpoint.stats.copy()
        self.count_repairs = checkpoint.count_repairs
        restore_rng_state(self._rng, checkpoint.rng_state)
