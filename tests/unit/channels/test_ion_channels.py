"""
Tests for the ion channel library.

Covers gating bounds under forward Euler, steady states, temperature
scaling, the NMDA magnesium block and calcium-activated kinetics.
"""

import math

import numpy as np
import pytest

from neurocable.channels.kinetics import boltzmann, hill, q10_factor, safe_exp, vtrap
from neurocable.channels.models import ChannelKind, IonChannel, mg_block
from neurocable.channels.state import ChannelState, ChannelStateBank
from neurocable.errors import ConfigurationError
from neurocable.units import conductance_to_current

VOLTAGES = np.arange(-100.0, 60.0 + 1e-9, 2.5)
GATE_GRID = (0.0, 0.25, 0.5, 0.75, 1.0)
CALCIUM_KINDS = (ChannelKind.SK, ChannelKind.BK)


def _start_states(kind):
    calcium_levels = (0.05, 1.0, 10.0) if kind in CALCIUM_KINDS else (0.05,)
    for m in GATE_GRID:
        for h in GATE_GRID:
            for ca in calcium_levels:
                yield ChannelState(m, h, ca)


@pytest.mark.unit
class TestGatingBounds:
    """Forward Euler must keep every gate in [0, 1] for physiological dt."""

    @pytest.mark.parametrize("kind", list(ChannelKind))
    def test_single_update_stays_in_unit_interval(self, kind):
        channel = IonChannel(kind, g_max=1.0)
        ligands = (0.0, 1.0) if kind is ChannelKind.NMDA else (0.0,)
        for v in VOLTAGES:
            for state in _start_states(kind):
                for ligand in ligands:
                    new = channel.update_state(float(v), state, dt=0.01, ligand=ligand, temperature=37.0)
                    assert 0.0 <= new.m <= 1.0, f"{kind.value}.m={new.m} at {v} mV from {state}"
                    assert 0.0 <= new.h <= 1.0, f"{kind.value}.h={new.h} at {v} mV from {state}"

    @pytest.mark.parametrize("kind", list(ChannelKind))
    def test_steady_state_in_unit_interval(self, kind):
        channel = IonChannel(kind, g_max=1.0)
        for v in VOLTAGES:
            state = channel.steady_state(float(v), ligand=0.5)
            assert 0.0 <= state.m <= 1.0
            assert 0.0 <= state.h <= 1.0

    @pytest.mark.parametrize("kind", [ChannelKind.HH_NA, ChannelKind.HH_K, ChannelKind.KV3_1, ChannelKind.CA_L])
    def test_steady_state_is_fixed_point(self, kind):
        """Updating from steady state at the same voltage should not move the gates."""
        channel = IonChannel(kind, g_max=1.0)
        state = channel.steady_state(-65.0)
        new = channel.update_state(-65.0, state, dt=0.01)
        assert new.m == pytest.approx(state.m, abs=1e-12)
        assert new.h == pytest.approx(state.h, abs=1e-12)


@pytest.mark.unit
class TestChannelContract:
    """Conductance, reversal and construction rules."""

    @pytest.mark.parametrize(
        "kind,reversal",
        [
            (ChannelKind.HH_NA, 50.0),
            (ChannelKind.HH_K, -90.0),
            (ChannelKind.CA_L, 120.0),
            (ChannelKind.NMDA, 0.0),
            (ChannelKind.HCN, -30.0),
            (ChannelKind.SK, -90.0),
        ],
    )
    def test_default_reversal_potentials(self, kind, reversal):
        assert IonChannel(kind, g_max=1.0).reversal_potential() == reversal

    def test_hh_sodium_conductance_is_m3h(self):
        channel = IonChannel(ChannelKind.HH_NA, g_max=120.0)
        state = ChannelState(m=0.5, h=0.6)
        assert channel.conductance(-20.0, state) == pytest.approx(120.0 * 0.5 ** 3 * 0.6)

    def test_potassium_ignores_h(self):
        channel = IonChannel(ChannelKind.HH_K, g_max=36.0)
        assert channel.conductance(0.0, ChannelState(0.5, 0.0)) == pytest.approx(36.0 * 0.5 ** 4)

    def test_conductance_does_not_mutate_state(self):
        channel = IonChannel(ChannelKind.KV4_2, g_max=2.0)
        state = channel.steady_state(-60.0)
        before = tuple(state)
        channel.conductance(-60.0, state)
        channel.update_state(-60.0, state, 0.01)
        assert tuple(state) == before

    def test_current_sign_is_outward_positive(self):
        k = IonChannel(ChannelKind.HH_K, g_max=36.0)
        assert k.current(0.0, ChannelState(0.5)) > 0.0
        na = IonChannel(ChannelKind.HH_NA, g_max=120.0)
        assert na.current(0.0, ChannelState(0.5, 0.5)) < 0.0

    def test_current_is_conductance_times_driving_force(self):
        channel = IonChannel(ChannelKind.HH_K, g_max=36.0)
        state = ChannelState(0.4)
        g = channel.conductance(-50.0, state)
        assert g == pytest.approx(36.0 * 0.4 ** 4)
        assert channel.current(-50.0, state) == conductance_to_current(g, -50.0, -90.0)

    def test_parse_accepts_names_and_members(self):
        assert ChannelKind.parse("HH_NA") is ChannelKind.HH_NA
        assert ChannelKind.parse("kv7_m") is ChannelKind.KV7_M
        assert ChannelKind.parse(ChannelKind.BK) is ChannelKind.BK

    @pytest.mark.parametrize("key", ["nav9_9", "", 42, None])
    def test_unknown_kind_rejected(self, key):
        with pytest.raises(ConfigurationError):
            ChannelKind.parse(key)

    def test_negative_g_max_rejected(self):
        with pytest.raises(ConfigurationError):
            IonChannel(ChannelKind.HH_NA, g_max=-1.0)

    def test_string_kind_is_normalized(self):
        assert IonChannel("hcn", g_max=1.0).kind is ChannelKind.HCN


@pytest.mark.unit
class TestTemperatureScaling:
    """Q10 correction applies uniformly to every rate of a channel."""

    def test_q10_factor_values(self):
        assert q10_factor(3.0, 32.0, 22.0) == pytest.approx(3.0)
        assert q10_factor(3.0, 22.0, 22.0) == pytest.approx(1.0)
        assert q10_factor(1.0, 37.0, 22.0) == 1.0
        assert q10_factor(2.0, 12.0, 22.0) == pytest.approx(0.5)

    def test_tau_form_step_scales_with_q10(self):
        channel = IonChannel(ChannelKind.KV3_1, g_max=1.0)
        state = ChannelState(m=0.1)
        warm = channel.update_state(0.0, state, 0.01, temperature=37.0).m - state.m
        reference = channel.update_state(0.0, state, 0.01, temperature=22.0).m - state.m
        assert warm / reference == pytest.approx(3.0 ** 1.5, rel=1e-9)

    def test_rate_form_step_scales_with_q10(self):
        channel = IonChannel(ChannelKind.NAV1_1, g_max=1.0)
        state = ChannelState(m=0.2, h=0.8)
        warm = channel.update_state(-30.0, state, 0.001, temperature=32.0).m - state.m
        reference = channel.update_state(-30.0, state, 0.001, temperature=22.0).m - state.m
        assert warm / reference == pytest.approx(2.3, rel=1e-9)

    def test_fastest_rate_scales_with_q10(self):
        channel = IonChannel(ChannelKind.KV1_1, g_max=1.0)
        state = channel.steady_state(-40.0)
        ratio = channel.fastest_rate(-40.0, state, 42.0) / channel.fastest_rate(-40.0, state, 22.0)
        assert ratio == pytest.approx(9.0)

    def test_classic_kinds_are_temperature_independent(self):
        channel = IonChannel(ChannelKind.HH_NA, g_max=1.0)
        state = ChannelState(0.1, 0.5)
        assert channel.update_state(-50.0, state, 0.01, temperature=6.3) == \
            channel.update_state(-50.0, state, 0.01, temperature=37.0)


@pytest.mark.unit
class TestMagnesiumBlock:
    """NMDA Mg²⁺ block shape and ligand gating."""

    def test_block_is_monotonic_in_voltage(self):
        values = np.array([mg_block(v, 1.0) for v in np.linspace(-100.0, 60.0, 321)])
        assert np.all(np.diff(values) > 0.0)

    def test_block_bounds_at_physiological_mg(self):
        assert mg_block(-70.0, 1.0) < 0.1
        assert mg_block(0.0, 1.0) > 0.5

    def test_no_magnesium_means_no_block(self):
        assert mg_block(-80.0, 0.0) == 1.0

    def test_nmda_closed_without_ligand(self):
        nmda = IonChannel(ChannelKind.NMDA, g_max=10.0)
        state = nmda.steady_state(-40.0, ligand=0.0)
        assert nmda.conductance(-40.0, state) == 0.0

    def test_nmda_conductance_includes_block(self):
        nmda = IonChannel(ChannelKind.NMDA, g_max=10.0)
        state = nmda.steady_state(0.0, ligand=1.0)
        assert state.m == pytest.approx(1.0 / 1.01)
        assert nmda.conductance(0.0, state) > nmda.conductance(-70.0, state)
        assert nmda.conductance(-70.0, state) == pytest.approx(10.0 * state.m * mg_block(-70.0))

    def test_binding_relaxes_toward_ligand_fraction(self):
        nmda = IonChannel(ChannelKind.NMDA, g_max=1.0)
        state = ChannelState(0.0)
        for _ in range(100):
            state = nmda.update_state(-70.0, state, 0.1, ligand=1.0)
        assert 0.0 < state.m < 1.0 / 1.01


@pytest.mark.unit
class TestCalciumActivated:
    """SK and BK track the intracellular calcium carried in their state."""

    def test_depolarization_raises_calcium(self):
        bk = IonChannel(ChannelKind.BK, g_max=1.0)
        state = ChannelState(0.0, 1.0, 0.05)
        assert bk.update_state(0.0, state, 0.01).ca_i > 0.05
        assert bk.update_state(-70.0, state, 0.01).ca_i == pytest.approx(0.05)

    def test_calcium_decays_toward_rest(self):
        sk = IonChannel(ChannelKind.SK, g_max=1.0)
        state = ChannelState(0.0, 1.0, 2.0)
        assert sk.update_state(-70.0, state, 1.0).ca_i < 2.0

    def test_sk_activation_increases_with_calcium(self):
        sk = IonChannel(ChannelKind.SK, g_max=1.0)
        low = sk.update_state(-70.0, ChannelState(0.0, 1.0, 0.05), 0.01).m
        high = sk.update_state(-70.0, ChannelState(0.0, 1.0, 1.0), 0.01).m
        assert high > low

    def test_bk_calcium_shifts_activation_to_lower_voltage(self):
        bk = IonChannel(ChannelKind.BK, g_max=1.0)
        low = bk.update_state(0.0, ChannelState(0.0, 1.0, 0.05), 0.01).m
        high = bk.update_state(0.0, ChannelState(0.0, 1.0, 10.0), 0.01).m
        assert high > 10.0 * low

    def test_hcn_activates_with_hyperpolarization(self):
        hcn = IonChannel(ChannelKind.HCN, g_max=1.0)
        assert hcn.steady_state(-100.0).m > hcn.steady_state(-50.0).m


@pytest.mark.unit
class TestKineticsHelpers:
    """Rate-function primitives."""

    def test_vtrap_is_continuous_at_singularity(self):
        assert vtrap(0.1, 0.0, 10.0) == pytest.approx(1.0)
        assert vtrap(0.1, 1e-9, 10.0) == pytest.approx(1.0)
        assert vtrap(0.1, 1e-3, 10.0) == pytest.approx(1.00005, rel=1e-6)

    def test_boltzmann_half_point(self):
        assert boltzmann(-20.0, -20.0, 6.0) == pytest.approx(0.5)
        assert boltzmann(-80.0, -50.0, -5.0) > 0.99

    def test_hill_half_point(self):
        assert hill(0.3, 0.3, 4.0) == pytest.approx(0.5)
        assert hill(0.0, 0.3, 4.0) == 0.0

    def test_safe_exp_does_not_overflow(self):
        assert math.isfinite(safe_exp(1e6))


@pytest.mark.unit
class TestChannelStateBank:
    """Snapshot and commit semantics of per-compartment gating storage."""

    def test_copy_is_independent(self):
        bank = ChannelStateBank({ChannelKind.HH_K: ChannelState(0.3)})
        snapshot = bank.copy()
        bank.commit({ChannelKind.HH_K: ChannelState(0.4)})
        assert snapshot[ChannelKind.HH_K].m == 0.3
        assert bank[ChannelKind.HH_K].m == 0.4

    def test_commit_rejects_different_kinds(self):
        bank = ChannelStateBank({ChannelKind.HH_K: ChannelState(0.3)})
        with pytest.raises(KeyError):
            bank.commit({ChannelKind.HH_NA: ChannelState(0.3)})
        assert bank[ChannelKind.HH_K].m == 0.3
