"""Per-individual state machine.

Each transition is one Bernoulli trial with its own probability, drawn
only when the state precondition holds:

    recover    I → R          r_rate
    die        I → D          d_rate
    vaccinate  {S,I,R,V} → V  v_rate
    infect     {S,R,V} → I    i_rate / reinfection rates (on contact)

For an infectious individual the engine resolves recover → die →
vaccinate in that fixed order within one step. die is a no-op once
recover has fired; vaccinate still applies to a cell recover has just
moved to R, so I → R → V can happen inside one step.

All functions mutate the population array in place and return True when
the individual's state changed.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from gridepi.config import RatesSection
from gridepi.types import HealthState


_S = HealthState.S
_I = HealthState.I
_R = HealthState.R
_D = HealthState.D
_V = HealthState.V


def bernoulli(rate: float, rng: np.random.Generator) -> bool:
    """One trial; rate 0 never succeeds, rate 1 always does."""
    return rng.random() < rate


def recover(states: np.ndarray, index: int, rate: float,
            rng: np.random.Generator) -> bool:
    if states[index] != _I or not bernoulli(rate, rng):
        return False
    states[index] = _R
    return True


def die(states: np.ndarray, index: int, rate: float,
        rng: np.random.Generator) -> bool:
    if states[index] != _I or not bernoulli(rate, rng):
        return False
    states[index] = _D
    return True


def vaccinate(states: np.ndarray, index: int, rate: float,
              rng: np.random.Generator) -> bool:
    if states[index] == _D or not bernoulli(rate, rng):
        return False
    changed = states[index] != _V
    states[index] = _V
    return bool(changed)


def infect(states: np.ndarray, index: int, rate: float,
           rng: np.random.Generator) -> bool:
    if states[index] not in (_S, _R, _V) or not bernoulli(rate, rng):
        return False
    states[index] = _I
    return True


def contact_rate(
    state: int,
    rates: RatesSection,
    reinfection: bool,
) -> Optional[float]:
    """Infection probability for a contacted individual in `state`.

    Returns None when the individual cannot be infected: it is Infectious
    or Dead, or it is Recovered / Vaccinated under basic propagation.
    """
    if state == _S:
        return rates.i_rate
    if reinfection:
        if state == _R:
            return rates.reinfection_rate_recovered
        if state == _V:
            return rates.reinfection_rate_vaccinated
    return None


def resolve_infectious(
    states: np.ndarray,
    index: int,
    rates: RatesSection,
    rng: np.random.Generator,
) -> HealthState:
    """Apply recover → die → vaccinate to one infectious individual.

    Returns:
        The individual's state after all three trials.
    """
    recover(states, index, rates.r_rate, rng)
    die(states, index, rates.d_rate, rng)
    vaccinate(states, index, rates.v_rate, rng)
    return HealthState(int(states[index]))
