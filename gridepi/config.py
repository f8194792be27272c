"""Configuration system for gridepi.

Layered YAML configuration with deep-merge support:
  base.yaml → scenario override → command-line overrides

Sections map 1:1 to YAML top-level keys. Unknown keys are ignored.
Validation is strict: out-of-range values raise ConfigurationError at
setup time instead of being clamped.

Propagation variants:
  "basic"       infection spreads to Susceptible neighbours only
  "reinfection" Recovered / Vaccinated neighbours can be
                reinfected at their own (lower) rates
"""

from __future__ import annotations

import copy
import dataclasses
import math
import numbers
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from gridepi.errors import ConfigurationError


PROPAGATION_BASIC = 'basic'
PROPAGATION_REINFECTION = 'reinfection'
VALID_PROPAGATION = (PROPAGATION_BASIC, PROPAGATION_REINFECTION)


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class GridSection:
    """Grid dimensions. One individual per cell, N = nx * ny."""
    nx: int = 80
    ny: int = 50


@dataclass
class RatesSection:
    """Per-step Bernoulli probabilities, all in [0, 1]."""
    i_rate: float = 0.1                         # S → I on contact
    r_rate: float = 0.1                         # I → R
    d_rate: float = 0.0                         # I → D (after recover)
    v_rate: float = 0.1                         # * → V (after die; not D)
    reinfection_rate_recovered: float = 0.05    # R → I on contact
    reinfection_rate_vaccinated: float = 0.02   # V → I on contact


@dataclass
class ContactSection:
    """Local-contact parameters for the neighbour sampler."""
    travel_radius: int = 3      # Max Manhattan distance of a contact
    n_meeting: int = 4          # Max contacts per infectious cell per step


@dataclass
class SeedingSection:
    """Step-0 placement of infectious individuals."""
    percent_start_infected: float = 0.01   # Fraction of N, in (0, 1)
    cluster_mode: bool = False             # Cluster around grid centre vs uniform


@dataclass
class SimulationSection:
    """Run control."""
    max_steps: int = 500
    propagation: str = PROPAGATION_REINFECTION
    seed: int = 42
    check_invariants: bool = True   # Recount the population after every step


@dataclass
class OutputSection:
    """Output control for the command-line driver."""
    directory: str = "results/"
    snapshot_interval: int = 0      # Record a grid snapshot every k steps (0 = off)


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    grid: GridSection = field(default_factory=GridSection)
    rates: RatesSection = field(default_factory=RatesSection)
    contact: ContactSection = field(default_factory=ContactSection)
    seeding: SeedingSection = field(default_factory=SeedingSection)
    simulation: SimulationSection = field(default_factory=SimulationSection)
    output: OutputSection = field(default_factory=OutputSection)

    @property
    def n_cells(self) -> int:
        return self.grid.nx * self.grid.ny

    @property
    def reinfection_enabled(self) -> bool:
        return self.simulation.propagation == PROPAGATION_REINFECTION


_SECTION_MAP = {
    'grid': GridSection,
    'rates': RatesSection,
    'contact': ContactSection,
    'seeding': SeedingSection,
    'simulation': SimulationSection,
    'output': OutputSection,
}


# ═══════════════════════════════════════════════════════════════════════
# DICT / YAML CONVERSION
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def config_from_dict(data: Dict) -> SimulationConfig:
    """Convert a (merged) YAML dict to a SimulationConfig.

    Field values are not validated, but a section that is present must be
    a mapping. A missing section takes the defaults; an empty one (YAML
    `rates:` with nothing under it) is rejected, since merging it would
    discard the layer below.

    Raises:
        ConfigurationError: If a section is present but not a mapping.
    """
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key not in data:
            sections[key] = cls()
            continue
        value = data[key]
        if not isinstance(value, dict):
            raise ConfigurationError(f"{key} must be a mapping, got {value!r}")
        sections[key] = _dict_to_section(cls, value)
    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict[str, Dict[str, Any]]:
    """Plain nested dict of a config (YAML / JSON friendly)."""
    return dataclasses.asdict(config)


def parse_override(text: str) -> Dict:
    """Turn 'section.key=value' into {'section': {'key': value}}.

    The value is parsed with yaml.safe_load, so '0.3' becomes a float,
    'true' a bool and '12' an int.

    Raises:
        ConfigurationError: If text has no '=' or an empty key path.
    """
    if '=' not in text:
        raise ConfigurationError(
            f"override must look like 'section.key=value', got '{text}'"
        )
    path, raw = text.split('=', 1)
    keys = [k.strip() for k in path.split('.')]
    if not all(keys):
        raise ConfigurationError(f"empty key in override '{text}'")
    value = yaml.safe_load(raw)
    nested: Dict = {keys[-1]: value}
    for key in reversed(keys[:-1]):
        nested = {key: nested}
    return nested


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def diamond_size(radius: int) -> int:
    """Cells in an unbounded L1 ball of the given radius, centre excluded."""
    return 2 * radius * (radius + 1)


def grid_diagonal(nx: int, ny: int) -> int:
    """Largest admissible travel radius for an nx × ny grid."""
    return int(round(math.hypot(nx, ny)))


def _is_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _check_probability(name: str, value) -> None:
    if not _is_real(value) or math.isnan(value) or not (0.0 <= value <= 1.0):
        raise ConfigurationError(f"{name} must be a probability in [0, 1], got {value!r}")


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ConfigurationError on failure.

    Checks:
      - Grid dimensions are positive integers
      - Every rate is a probability
      - 1 <= travel_radius <= grid diagonal, n_meeting >= 1
      - percent_start_infected in the open interval (0, 1)
      - max_steps >= 1, known propagation variant, non-negative seed
    """
    g = config.grid
    for name, value in (('grid.nx', g.nx), ('grid.ny', g.ny)):
        if not _is_int(value) or value < 1:
            raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

    for f in dataclasses.fields(RatesSection):
        _check_probability(f"rates.{f.name}", getattr(config.rates, f.name))

    c = config.contact
    if not _is_int(c.travel_radius) or c.travel_radius < 1:
        raise ConfigurationError(
            f"contact.travel_radius must be an integer >= 1, got {c.travel_radius!r}"
        )
    max_radius = grid_diagonal(g.nx, g.ny)
    if c.travel_radius > max_radius:
        raise ConfigurationError(
            f"contact.travel_radius ({c.travel_radius}) exceeds the grid "
            f"diagonal ({max_radius}) for a {g.nx}x{g.ny} grid"
        )
    if not _is_int(c.n_meeting) or c.n_meeting < 1:
        raise ConfigurationError(
            f"contact.n_meeting must be an integer >= 1, got {c.n_meeting!r}"
        )
    if c.n_meeting > diamond_size(c.travel_radius):
        warnings.warn(
            f"contact.n_meeting ({c.n_meeting}) exceeds the contact "
            f"diamond ({diamond_size(c.travel_radius)} cells); every "
            f"reachable neighbour is met each step",
            UserWarning,
            stacklevel=2,
        )

    p = config.seeding.percent_start_infected
    if not _is_real(p) or math.isnan(p) or not (0.0 < p < 1.0):
        raise ConfigurationError(
            f"seeding.percent_start_infected must be in (0, 1), got {p!r}"
        )
    if not isinstance(config.seeding.cluster_mode, bool):
        raise ConfigurationError(
            f"seeding.cluster_mode must be a boolean, got "
            f"{config.seeding.cluster_mode!r}"
        )

    s = config.simulation
    if not _is_int(s.max_steps) or s.max_steps < 1:
        raise ConfigurationError(
            f"simulation.max_steps must be a positive integer, got {s.max_steps!r}"
        )
    if s.propagation not in VALID_PROPAGATION:
        raise ConfigurationError(
            f"simulation.propagation must be one of {VALID_PROPAGATION}, "
            f"got '{s.propagation}'"
        )
    if not _is_int(s.seed) or s.seed < 0:
        raise ConfigurationError(f"simulation.seed must be non-negative, got {s.seed!r}")

    if not _is_int(config.output.snapshot_interval) or config.output.snapshot_interval < 0:
        raise ConfigurationError(
            f"output.snapshot_interval must be >= 0, got "
            f"{config.output.snapshot_interval!r}"
        )


# ═══════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════

def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def load_config(
    base_path: Optional[Union[str, Path]] = None,
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge layered YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML. None starts from the
            built-in defaults.
        scenario_path: Optional scenario override YAML.
        overrides: Optional nested dict of extra overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path or scenario_path doesn't exist.
        ConfigurationError: If validation fails.
    """
    if base_path is None:
        config_dict = config_to_dict(SimulationConfig())
    else:
        base_path = Path(base_path)
        if not base_path.exists():
            raise FileNotFoundError(f"Config file not found: {base_path}")
        config_dict = _read_yaml(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        deep_merge(config_dict, _read_yaml(scenario_path))

    if overrides is not None:
        deep_merge(config_dict, copy.deepcopy(overrides))

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
