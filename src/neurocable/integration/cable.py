"""
Cable Integrator - two-phase explicit Euler stepping of a compartment tree.

Membrane Equation (per compartment i):
======================================
    C_i · dV_i/dt = -I_leak - I_ion + I_axial + I_ext + I_syn

    I_leak  = g_leak · (V_i - E_leak)
    I_ion   = Σ_k s_k · g_k(V_i, state) · (V_i - E_k)
    I_axial = (V_parent - V_i) / R_i + Σ_c (V_c - V_i) / R_c

with s_k the pharmacological conductance scale of channel kind k, R_i the
axial resistance between i and its parent, and currents in pA (axial
ΔV/R in nA converted by ×1000).

Two-Phase Step:
===============
1. Snapshot every voltage, then compute every compartment's currents and
   dV/dt from that snapshot only. Visiting order cannot change the result.
2. Compute new voltages and new gating states (gates use the pre-step
   voltage), optionally validate them, then commit everything at once.

If validation fails nothing is written, so a step is atomic from the
caller's point of view.

Spike Policy:
=============
``topology.spiking`` reflects whether the root voltage is at/above the
topology's threshold after the step. No reset is applied unless
``IntegratorConfig.spike_reset`` is set, in which case the root voltage is
clamped to that value on every step that reaches threshold (point-neuron
integrate-and-reset variant). Multi-compartment cells should leave it unset
and let their Na⁺/K⁺ channels repolarize the membrane.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from neurocable.channels.models import ChannelKind
from neurocable.channels.state import ChannelState
from neurocable.errors import ConfigurationError, validate_finite, validate_positive
from neurocable.global_config import GlobalConfig
from neurocable.integration import stability
from neurocable.morphology.topology import NeuronTopology
from neurocable.units import PA_PER_NA, Current, Voltage

logger = logging.getLogger(__name__)


@dataclass
class IntegratorConfig:
    """Configuration for ``CableIntegrator``.

    Attributes:
        dt: Time step (ms)
        temperature: Simulation temperature for Q10 correction (°C)
        spike_reset: Root voltage (mV) to clamp to on reaching threshold;
            None disables the reset
        validate_dt: Check dt against the explicit Euler stability bound the
            first time each topology is stepped
        validate_state: Check voltages and gates before every commit
    """

    dt: float = GlobalConfig.DEFAULT_DT_MS
    temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C
    spike_reset: Optional[float] = None
    validate_dt: bool = False
    validate_state: bool = False

    def __post_init__(self) -> None:
        validate_positive(self.dt, "dt")
        validate_finite(self.temperature, "temperature")
        if self.spike_reset is not None:
            validate_finite(self.spike_reset, "spike_reset")


class MembraneCurrents(NamedTuple):
    """Per-compartment current breakdown (pA), indexed by compartment slot.

    ``leak`` and ``ionic`` are outward positive; ``axial`` and ``injected``
    (external + synaptic) are inward positive.
    """

    leak: np.ndarray
    ionic: np.ndarray
    axial: np.ndarray
    injected: np.ndarray

    def net_inward(self) -> np.ndarray:
        return -self.leak - self.ionic + self.axial + self.injected


class CableIntegrator:
    """Advances ``NeuronTopology`` instances by fixed explicit Euler steps.

    The integrator holds no per-neuron state apart from the record of which
    topologies already passed the dt check, so one instance may step many
    neurons, including from several threads.

    Example:
        >>> integrator = CableIntegrator(IntegratorConfig(dt=0.01))
        >>> cell = single_compartment()
        >>> cell.set_external_current([100.0])
        >>> trace = integrator.run(cell, n_steps=5000, record=True)
    """

    def __init__(self, config: Optional[IntegratorConfig] = None):
        self.config = config if config is not None else IntegratorConfig()
        self._dt_checked: "weakref.WeakSet[NeuronTopology]" = weakref.WeakSet()

    @property
    def dt(self) -> float:
        return self.config.dt

    # =========================================================================
    # PHASE 1: CURRENTS FROM A FROZEN SNAPSHOT
    # =========================================================================

    def ionic_current(self, topology: NeuronTopology, index: int, voltage: Voltage) -> Current:
        """Total scaled channel current (pA, outward positive) of one compartment."""
        compartment = topology.compartments[index]
        bank = topology.states[index]
        ligand = topology.ligand[index]
        total = 0.0
        for kind, channel in compartment.channels.items():
            total += topology.scale_for(kind) * channel.current(voltage, bank[kind], ligand)
        return Current(total)

    def _currents(
        self,
        topology: NeuronTopology,
        voltages: np.ndarray,
        order: Optional[Sequence[int]] = None,
    ) -> MembraneCurrents:
        n = len(topology)
        indices = _visit_order(n, order)
        compartments = topology.compartments

        leak = np.zeros(n)
        ionic = np.zeros(n)
        axial = np.zeros(n)
        for i in indices:
            compartment = compartments[i]
            v = voltages[i]
            leak[i] = compartment.leak_conductance * (v - compartment.leak_reversal)
            ionic[i] = self.ionic_current(topology, i, v)

            i_axial = 0.0
            if compartment.parent is not None:
                i_axial += (voltages[compartment.parent] - v) / compartment.axial_resistance
            for child in compartment.children:
                i_axial += (voltages[child] - v) / compartments[child].axial_resistance
            axial[i] = PA_PER_NA * i_axial

        injected = topology.external_current + topology.synaptic_current
        return MembraneCurrents(leak, ionic, axial, injected.copy())

    def membrane_currents(self, topology: NeuronTopology) -> MembraneCurrents:
        """Current breakdown at the topology's present state (read-only)."""
        return self._currents(topology, topology.voltages())

    def compute_derivatives(
        self,
        topology: NeuronTopology,
        order: Optional[Sequence[int]] = None,
    ) -> np.ndarray:
        """dV/dt (mV/ms) of every compartment from a single voltage snapshot.

        Args:
            topology: Neuron to evaluate; not modified
            order: Optional permutation of compartment indices to visit in

        Raises:
            ConfigurationError: If ``order`` is not a permutation of all indices
        """
        return self._derivatives(topology, topology.voltages(), order)

    def _derivatives(self, topology, voltages, order=None) -> np.ndarray:
        currents = self._currents(topology, voltages, order)
        capacitance = np.array([c.capacitance for c in topology.compartments])
        return currents.net_inward() / capacitance

    # =========================================================================
    # PHASE 2: COMMIT
    # =========================================================================

    def step(self, topology: NeuronTopology, order: Optional[Sequence[int]] = None) -> bool:
        """Advance ``topology`` by one time step and return its spike flag.

        Raises:
            ConfigurationError: If dt validation is enabled and fails
            NumericalDivergenceError: If state validation is enabled and the
                new state diverged; the topology is left unchanged
        """
        config = self.config
        dt = config.dt
        if config.validate_dt and topology not in self._dt_checked:
            stability.validate_dt(topology, dt, config.temperature)
            self._dt_checked.add(topology)

        v_old = topology.voltages()
        v_new = v_old + dt * self._derivatives(topology, v_old, order)

        new_states: List[Dict[ChannelKind, ChannelState]] = []
        for i, compartment in enumerate(topology.compartments):
            bank = topology.states[i]
            ligand = topology.ligand[i]
            v = v_old[i]
            new_states.append({
                kind: channel.update_state(v, bank[kind], dt, ligand, config.temperature)
                for kind, channel in compartment.channels.items()
            })

        root = topology.root_index
        spiking = bool(v_new[root] >= topology.spike_threshold)
        if spiking and config.spike_reset is not None:
            v_new[root] = config.spike_reset

        if config.validate_state:
            stability.check_finite_voltages(v_new)
            stability.check_gating_bounds(new_states)

        topology.commit(v_new, new_states, spiking)
        return spiking

    def run(self, topology: NeuronTopology, n_steps: int, record: bool = False) -> Optional[np.ndarray]:
        """Step ``n_steps`` times.

        Returns:
            Voltage trace of shape [n_steps, n_compartments] (after each
            step) if ``record`` is True, else None
        """
        if n_steps < 0:
            raise ConfigurationError(f"n_steps must be non-negative, got {n_steps}")
        trace = np.empty((n_steps, len(topology))) if record else None
        n_spiking_steps = 0
        for t in range(n_steps):
            n_spiking_steps += self.step(topology)
            if trace is not None:
                trace[t] = topology.voltages()
        logger.debug(
            "Ran %d steps (dt=%.4g ms), root at/above threshold on %d steps",
            n_steps, self.config.dt, n_spiking_steps,
        )
        return trace


def _visit_order(n: int, order: Optional[Sequence[int]]) -> Sequence[int]:
    if order is None:
        return range(n)
    order = list(order)
    if sorted(order) != list(range(n)):
        raise ConfigurationError(f"order must be a permutation of range({n}), got {order}")
    return order
