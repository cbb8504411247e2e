"""
Tests for the two-phase cable integrator.

Covers resting stability, threshold-driven spiking, order independence of
the two-phase update, atomic commits and charge conservation along the cable.
"""

import copy

import numpy as np
import pytest

from neurocable.channels.models import ChannelKind
from neurocable.errors import ConfigurationError, NumericalDivergenceError
from neurocable.integration.cable import CableIntegrator, IntegratorConfig
from neurocable.morphology import builders
from neurocable.morphology.builders import TopologyBuilder
from neurocable.morphology.compartment import CompartmentKind, CompartmentParams


@pytest.mark.unit
class TestIntegratorConfig:
    """Configuration validation."""

    @pytest.mark.parametrize("dt", [0.0, -0.01, float("nan")])
    def test_invalid_dt(self, dt):
        with pytest.raises(ConfigurationError):
            IntegratorConfig(dt=dt)

    def test_defaults(self):
        config = IntegratorConfig()
        assert config.dt == 0.01
        assert config.temperature == 37.0
        assert config.spike_reset is None


@pytest.mark.unit
class TestPointNeuronDynamics:
    """Rest and threshold behaviour of a single-compartment HH neuron."""

    def test_resting_stability(self, integrator, point_neuron):
        trace = integrator.run(point_neuron, n_steps=10_000, record=True)
        assert np.all(np.isfinite(trace))
        assert np.all(np.abs(trace[:, 0] - (-70.0)) <= 5.0)
        assert not point_neuron.spiking

    def test_depolarizing_current_drives_spike(self, integrator):
        stimulated = builders.single_compartment()
        stimulated.set_external_current([100.0])
        quiet = builders.single_compartment()

        stimulated_trace = integrator.run(stimulated, n_steps=5_000, record=True)
        quiet_trace = integrator.run(quiet, n_steps=5_000, record=True)

        assert stimulated_trace[:, 0].max() > -60.0
        assert quiet_trace[:, 0].max() < -60.0

    def test_spike_flag_follows_root_threshold(self, integrator):
        cell = builders.single_compartment()
        cell.set_external_current([100.0])
        flags = [integrator.step(cell) for _ in range(5_000)]
        assert any(flags)
        assert cell.spiking == (cell.root.voltage >= cell.spike_threshold)

    def test_synaptic_current_sums_with_external(self, integrator):
        a = builders.single_compartment()
        a.set_external_current([60.0])
        a.set_synaptic_current([40.0])
        b = builders.single_compartment()
        b.set_external_current([100.0])
        integrator.step(a)
        integrator.step(b)
        assert a.root.voltage == pytest.approx(b.root.voltage)

    def test_nmda_ligand_depolarizes(self, integrator):
        densities = {"hh_na": 1.2, "hh_k": 0.36, "nmda": 0.05}
        bound = builders.single_compartment(channel_densities=densities)
        bound.set_ligand([1.0])
        unbound = builders.single_compartment(channel_densities=densities)
        integrator.run(bound, 500)
        integrator.run(unbound, 500)
        assert bound.states[0][ChannelKind.NMDA].m > 0.05
        assert unbound.states[0][ChannelKind.NMDA].m == 0.0
        assert bound.root.voltage > unbound.root.voltage

    def test_spike_reset_clamps_root(self):
        integrator = CableIntegrator(IntegratorConfig(spike_reset=-65.0))
        cell = builders.single_compartment()
        cell.set_external_current([100.0])
        for _ in range(5_000):
            if integrator.step(cell):
                assert cell.spiking
                assert cell.root.voltage == -65.0
                break
        else:
            pytest.fail("neuron never reached threshold")

    def test_run_without_record(self, integrator, point_neuron):
        assert integrator.run(point_neuron, n_steps=10) is None
        with pytest.raises(ConfigurationError):
            integrator.run(point_neuron, n_steps=-1)


@pytest.mark.unit
class TestTwoPhaseUpdate:
    """Every compartment sees the same pre-step voltage snapshot."""

    def _perturbed_chain(self, integrator, chain):
        chain.set_external_current([0.0, 0.0, 50.0])
        for _ in range(200):
            integrator.step(chain)
        return chain

    def test_visit_order_does_not_change_step(self, integrator, three_compartment_chain):
        chain = self._perturbed_chain(integrator, three_compartment_chain)
        voltages = chain.voltages()
        assert len(set(voltages.tolist())) == 3

        forward = copy.deepcopy(chain)
        backward = copy.deepcopy(chain)
        shuffled = copy.deepcopy(chain)
        integrator.step(forward, order=[0, 1, 2])
        integrator.step(backward, order=[2, 1, 0])
        integrator.step(shuffled, order=[1, 2, 0])

        assert np.array_equal(forward.voltages(), backward.voltages())
        assert np.array_equal(forward.voltages(), shuffled.voltages())
        assert forward.gating_snapshot() == backward.gating_snapshot()

    def test_derivatives_do_not_modify_topology(self, integrator, three_compartment_chain):
        chain = self._perturbed_chain(integrator, three_compartment_chain)
        before = chain.voltages()
        a = integrator.compute_derivatives(chain, order=[2, 0, 1])
        b = integrator.compute_derivatives(chain)
        assert np.array_equal(a, b)
        assert np.array_equal(chain.voltages(), before)

    def test_invalid_order_rejected(self, integrator, three_compartment_chain):
        with pytest.raises(ConfigurationError):
            integrator.compute_derivatives(three_compartment_chain, order=[0, 0, 1])

    def test_axial_current_conserves_charge(self, integrator):
        builder = TopologyBuilder(params=CompartmentParams(leak_density=0.0))
        soma = builder.add_compartment(CompartmentKind.SOMA, 20.0, 20.0)
        d1 = builder.add_compartment(CompartmentKind.DENDRITE, 50.0, 2.0, parent=soma)
        builder.add_compartment(CompartmentKind.DENDRITE, 30.0, 1.0, parent=d1)
        builder.add_compartment(CompartmentKind.DENDRITE, 40.0, 1.5, parent=soma)
        cell = builder.build()
        for compartment, v in zip(cell.compartments, (-70.0, -50.0, -20.0, -80.0)):
            compartment.voltage = v

        currents = integrator.membrane_currents(cell)
        assert currents.axial.sum() == pytest.approx(0.0, abs=1e-9)
        assert currents.axial[2] < 0.0  # tip is above its parent, so charge leaves it

        dvdt = integrator.compute_derivatives(cell)
        capacitance = np.array([c.capacitance for c in cell.compartments])
        assert (capacitance * dvdt).sum() == pytest.approx(0.0, abs=1e-9)

    def test_current_on_dendrite_depolarizes_soma(self, integrator):
        cell = builders.soma_with_dendrites(3)
        currents = np.zeros(len(cell))
        currents[-1] = 50.0
        cell.set_external_current(currents)
        rest = builders.soma_with_dendrites(3)
        integrator.run(cell, 500)
        integrator.run(rest, 500)
        assert cell.root.voltage > rest.root.voltage


@pytest.mark.unit
class TestValidationAndAtomicity:
    """Optional dt and state validation, and all-or-nothing commits."""

    def test_divergent_step_is_not_committed(self):
        integrator = CableIntegrator(IntegratorConfig(dt=1.0, validate_state=True))
        cell = builders.single_compartment()
        cell.compartments[0].voltage = -30.0
        voltages_before = cell.voltages()
        states_before = cell.gating_snapshot()
        spiking_before = cell.spiking

        with pytest.raises(NumericalDivergenceError):
            integrator.step(cell)

        assert np.array_equal(cell.voltages(), voltages_before)
        assert cell.gating_snapshot() == states_before
        assert cell.spiking == spiking_before

    def test_same_step_without_validation_commits_diverged_state(self):
        integrator = CableIntegrator(IntegratorConfig(dt=1.0))
        cell = builders.single_compartment()
        cell.compartments[0].voltage = -30.0
        integrator.step(cell)
        assert cell.states[0][ChannelKind.HH_NA].m > 1.0

    def test_dt_validation(self):
        strict = CableIntegrator(IntegratorConfig(dt=0.05, validate_dt=True))
        with pytest.raises(ConfigurationError):
            strict.step(builders.single_compartment())

        ok = CableIntegrator(IntegratorConfig(dt=0.01, validate_dt=True))
        ok.step(builders.single_compartment())

    def test_conductance_scale_applies_before_step(self, integrator, point_neuron):
        point_neuron.compartments[0].voltage = -40.0
        unscaled = integrator.ionic_current(point_neuron, 0, -40.0)
        point_neuron.set_conductance_scale(ChannelKind.HH_NA, 0.0)
        point_neuron.set_conductance_scale(ChannelKind.HH_K, 0.0)
        assert unscaled != 0.0
        assert integrator.ionic_current(point_neuron, 0, -40.0) == 0.0

    def test_membrane_currents_match_derivatives(self, integrator, three_compartment_chain):
        currents = integrator.membrane_currents(three_compartment_chain)
        capacitance = np.array([c.capacitance for c in three_compartment_chain.compartments])
        np.testing.assert_allclose(
            currents.net_inward() / capacitance,
            integrator.compute_derivatives(three_compartment_chain),
        )
