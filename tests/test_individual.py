"""Tests for gridepi.individual: ordered per-individual transitions."""

import numpy as np
import pytest

from gridepi.config import RatesSection
from gridepi.individual import (
    bernoulli,
    contact_rate,
    die,
    infect,
    recover,
    resolve_infectious,
    vaccinate,
)
from gridepi.types import HealthState


class CountingRng:
    """Wraps a Generator and counts random() draws."""

    def __init__(self, seed=0):
        self._rng = np.random.default_rng(seed)
        self.draws = 0

    def random(self):
        self.draws += 1
        return self._rng.random()


def states_of(*values):
    return np.array([int(v) for v in values], dtype=np.int8)


def rates(**kw):
    base = dict(i_rate=0.0, r_rate=0.0, d_rate=0.0, v_rate=0.0,
                reinfection_rate_recovered=0.0, reinfection_rate_vaccinated=0.0)
    base.update(kw)
    return RatesSection(**base)


# ═══════════════════════════════════════════════════════════════════════
# SINGLE TRANSITIONS
# ═══════════════════════════════════════════════════════════════════════

class TestBernoulli:
    def test_zero_never_fires(self):
        rng = np.random.default_rng(1)
        assert not any(bernoulli(0.0, rng) for _ in range(1000))

    def test_one_always_fires(self):
        rng = np.random.default_rng(1)
        assert all(bernoulli(1.0, rng) for _ in range(1000))

    def test_frequency(self):
        rng = np.random.default_rng(1)
        hits = sum(bernoulli(0.3, rng) for _ in range(20_000))
        assert abs(hits / 20_000 - 0.3) < 0.02


class TestRecoverAndDie:
    def test_recover_infectious(self):
        s = states_of(HealthState.I)
        assert recover(s, 0, 1.0, np.random.default_rng(0))
        assert s[0] == HealthState.R

    def test_recover_fails_leaves_state(self):
        s = states_of(HealthState.I)
        assert not recover(s, 0, 0.0, np.random.default_rng(0))
        assert s[0] == HealthState.I

    @pytest.mark.parametrize("state", [HealthState.S, HealthState.R,
                                       HealthState.D, HealthState.V])
    def test_only_infectious_recover_or_die(self, state):
        rng = CountingRng()
        s = states_of(state)
        assert not recover(s, 0, 1.0, rng)
        assert not die(s, 0, 1.0, rng)
        assert s[0] == state
        assert rng.draws == 0

    def test_die(self):
        s = states_of(HealthState.I)
        assert die(s, 0, 1.0, np.random.default_rng(0))
        assert s[0] == HealthState.D


class TestVaccinate:
    @pytest.mark.parametrize("state", [HealthState.S, HealthState.I, HealthState.R])
    def test_any_living_state(self, state):
        s = states_of(state)
        assert vaccinate(s, 0, 1.0, np.random.default_rng(0))
        assert s[0] == HealthState.V

    def test_dead_cannot_be_vaccinated(self):
        rng = CountingRng()
        s = states_of(HealthState.D)
        assert not vaccinate(s, 0, 1.0, rng)
        assert s[0] == HealthState.D
        assert rng.draws == 0

    def test_already_vaccinated_is_not_a_change(self):
        s = states_of(HealthState.V)
        assert not vaccinate(s, 0, 1.0, np.random.default_rng(0))
        assert s[0] == HealthState.V


class TestInfect:
    @pytest.mark.parametrize("state", [HealthState.S, HealthState.R, HealthState.V])
    def test_infectable_states(self, state):
        s = states_of(state)
        assert infect(s, 0, 1.0, np.random.default_rng(0))
        assert s[0] == HealthState.I

    @pytest.mark.parametrize("state", [HealthState.I, HealthState.D])
    def test_not_infectable(self, state):
        rng = CountingRng()
        s = states_of(state)
        assert not infect(s, 0, 1.0, rng)
        assert s[0] == state
        assert rng.draws == 0

    def test_only_touches_target(self):
        s = states_of(HealthState.S, HealthState.S, HealthState.S)
        infect(s, 1, 1.0, np.random.default_rng(0))
        np.testing.assert_array_equal(s, [0, int(HealthState.I), 0])


class TestContactRate:
    def test_susceptible_uses_i_rate(self):
        r = rates(i_rate=0.4)
        assert contact_rate(HealthState.S, r, reinfection=False) == 0.4
        assert contact_rate(HealthState.S, r, reinfection=True) == 0.4

    def test_basic_variant_recovered_and_vaccinated_immune(self):
        r = rates(reinfection_rate_recovered=0.5, reinfection_rate_vaccinated=0.5)
        assert contact_rate(HealthState.R, r, reinfection=False) is None
        assert contact_rate(HealthState.V, r, reinfection=False) is None

    def test_reinfection_variant_rates(self):
        r = rates(reinfection_rate_recovered=0.05, reinfection_rate_vaccinated=0.02)
        assert contact_rate(HealthState.R, r, reinfection=True) == 0.05
        assert contact_rate(HealthState.V, r, reinfection=True) == 0.02

    @pytest.mark.parametrize("reinfection", [False, True])
    def test_infectious_and_dead_never_contacted(self, reinfection):
        r = rates(i_rate=1.0, reinfection_rate_recovered=1.0,
                  reinfection_rate_vaccinated=1.0)
        assert contact_rate(HealthState.I, r, reinfection) is None
        assert contact_rate(HealthState.D, r, reinfection) is None


# ═══════════════════════════════════════════════════════════════════════
# ORDERED RESOLUTION
# ═══════════════════════════════════════════════════════════════════════

class TestResolveInfectious:
    def test_recover_wins_over_die(self):
        """die is checked after recover and is a no-op once recovered."""
        s = states_of(HealthState.I)
        final = resolve_infectious(s, 0, rates(r_rate=1.0, d_rate=1.0),
                                   np.random.default_rng(0))
        assert final == HealthState.R

    def test_recovered_then_vaccinated_in_same_step(self):
        """I → R → V inside one step: vaccinate overwrites the recovery."""
        s = states_of(HealthState.I)
        final = resolve_infectious(s, 0, rates(r_rate=1.0, v_rate=1.0),
                                   np.random.default_rng(0))
        assert final == HealthState.V

    def test_dead_is_not_vaccinated(self):
        s = states_of(HealthState.I)
        final = resolve_infectious(s, 0, rates(d_rate=1.0, v_rate=1.0),
                                   np.random.default_rng(0))
        assert final == HealthState.D

    def test_stays_infectious_with_zero_rates(self):
        rng = CountingRng()
        s = states_of(HealthState.I)
        assert resolve_infectious(s, 0, rates(), rng) == HealthState.I
        assert rng.draws == 3   # recover, die, vaccinate each drew once

    def test_draw_count_after_recovery(self):
        """Recovered individual: die draws nothing, vaccinate still draws."""
        rng = CountingRng()
        s = states_of(HealthState.I)
        resolve_infectious(s, 0, rates(r_rate=1.0), rng)
        assert rng.draws == 2

    def test_draw_count_after_death(self):
        rng = CountingRng()
        s = states_of(HealthState.I)
        resolve_infectious(s, 0, rates(d_rate=1.0, v_rate=1.0), rng)
        assert rng.draws == 2


class TestDeadIsAbsorbing:
    def test_no_transition_leaves_dead(self):
        rng = np.random.default_rng(0)
        s = states_of(HealthState.D)
        for _ in range(100):
            recover(s, 0, 1.0, rng)
            die(s, 0, 1.0, rng)
            vaccinate(s, 0, 1.0, rng)
            infect(s, 0, 1.0, rng)
            assert s[0] == HealthState.D
