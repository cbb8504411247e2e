"""
Neuron Topology - the compartment arena of one neuron.

A ``NeuronTopology`` exclusively owns its compartments, their channel state
banks and the per-compartment input slots written by collaborators before
each step. All cross-references are integer indices into ``compartments``.

Tree Invariants:
================
- exactly one compartment has ``parent is None`` (the root, normally the soma)
- every parent index is a valid slot, and ``children`` lists mirror parents
- the parent graph is acyclic and every compartment is reachable from root

Input Slots:
============
- ``external_current`` (pA): injected current, e.g. electrode
- ``synaptic_current`` (pA): summed synaptic input
- ``ligand`` (mM): transmitter concentration seen by NMDA channels
- ``conductance_scale``: per-kind multipliers written by pharmacology models
"""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from neurocable.channels.models import ChannelKind
from neurocable.channels.state import ChannelState, ChannelStateBank
from neurocable.errors import (
    ConfigurationError,
    MorphologyError,
    validate_array_length,
    validate_finite,
    validate_positive,
    validate_probability,
)
from neurocable.global_config import GlobalConfig
from neurocable.morphology.compartment import Compartment


class NeuronTopology:
    """Compartment tree of one neuron plus its gating state and inputs.

    Args:
        compartments: Compartments with consistent parent/children indices
        spike_threshold: Root voltage (mV) at/above which ``spiking`` is set

    Raises:
        MorphologyError: If the compartments do not form a single rooted tree
    """

    def __init__(
        self,
        compartments: Sequence[Compartment],
        spike_threshold: float = GlobalConfig.SPIKE_THRESHOLD_MV,
    ):
        validate_finite(spike_threshold, "spike_threshold")
        self.compartments: List[Compartment] = list(compartments)
        self.spike_threshold = spike_threshold
        self.root_index = self.validate()
        self._claim_compartments()

        self.states: List[ChannelStateBank] = [
            ChannelStateBank({
                kind: channel.steady_state(compartment.voltage)
                for kind, channel in compartment.channels.items()
            })
            for compartment in self.compartments
        ]

        n = len(self.compartments)
        self.external_current = np.zeros(n, dtype=np.float64)
        self.synaptic_current = np.zeros(n, dtype=np.float64)
        self.ligand = np.zeros(n, dtype=np.float64)
        self.conductance_scale: Dict[ChannelKind, float] = {}
        self.spiking = self.root.voltage >= spike_threshold

    def __len__(self) -> int:
        return len(self.compartments)

    def __repr__(self) -> str:
        return (
            f"NeuronTopology(n_compartments={len(self)}, "
            f"root_voltage={self.root.voltage:.2f}, spiking={self.spiking})"
        )

    @property
    def root(self) -> Compartment:
        return self.compartments[self.root_index]

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self) -> int:
        """Check the tree invariants and return the root index.

        Raises:
            MorphologyError: On zero or several roots, dangling or inconsistent
                links, cycles, or compartments unreachable from the root
        """
        n = len(self.compartments)
        if n == 0:
            raise MorphologyError("Topology must contain at least one compartment")

        roots = [i for i, c in enumerate(self.compartments) if c.is_root]
        if len(roots) != 1:
            raise MorphologyError(f"Topology has {len(roots)} roots, expected exactly one")

        for i, compartment in enumerate(self.compartments):
            parent = compartment.parent
            if parent is not None:
                if not 0 <= parent < n or parent == i:
                    raise MorphologyError(f"Compartment {i} has invalid parent index {parent}")
                if i not in self.compartments[parent].children:
                    raise MorphologyError(
                        f"Compartment {i} names parent {parent}, which does not list it as a child"
                    )
            if len(set(compartment.children)) != len(compartment.children):
                raise MorphologyError(f"Compartment {i} lists a child more than once")
            for child in compartment.children:
                if not 0 <= child < n or self.compartments[child].parent != i:
                    raise MorphologyError(
                        f"Compartment {i} lists child {child} whose parent is not {i}"
                    )

        # Consistent links plus full reachability from the single root rule out cycles
        seen = set()
        queue = deque([roots[0]])
        while queue:
            index = queue.popleft()
            if index in seen:
                raise MorphologyError(f"Compartment {index} is reached twice; links contain a cycle")
            seen.add(index)
            queue.extend(self.compartments[index].children)
        if len(seen) != n:
            unreachable = sorted(set(range(n)) - seen)
            raise MorphologyError(f"Compartments {unreachable[:10]} are not reachable from the root")
        return roots[0]

    def _claim_compartments(self) -> None:
        """Mark every compartment as owned by this topology.

        Raises:
            MorphologyError: If a compartment appears twice or already belongs
                to another topology
        """
        if len({id(c) for c in self.compartments}) != len(self.compartments):
            raise MorphologyError("The same Compartment object appears more than once")
        for i, compartment in enumerate(self.compartments):
            if compartment.owner is not None and compartment.owner is not self:
                raise MorphologyError(
                    f"Compartment {i} already belongs to another NeuronTopology; "
                    f"build a separate compartment list for each neuron"
                )
        for compartment in self.compartments:
            compartment.owner = self

    def iter_breadth_first(self) -> Iterable[int]:
        """Compartment indices in breadth-first order from the root."""
        queue = deque([self.root_index])
        while queue:
            index = queue.popleft()
            yield index
            queue.extend(self.compartments[index].children)

    # =========================================================================
    # INPUTS (written by collaborators before a step)
    # =========================================================================

    def set_external_current(self, values: Sequence[float]) -> None:
        """Overwrite the per-compartment injected current (pA)."""
        validate_array_length(values, len(self), "external_current")
        self.external_current[:] = values

    def set_synaptic_current(self, values: Sequence[float]) -> None:
        """Overwrite the per-compartment synaptic current (pA)."""
        validate_array_length(values, len(self), "synaptic_current")
        self.synaptic_current[:] = values

    def set_ligand(self, values: Sequence[float]) -> None:
        validate_array_length(values, len(self), "ligand")
        self.ligand[:] = values

    def set_conductance_scale(self, kind: Union[ChannelKind, str], factor: float) -> None:
        """Scale every channel of ``kind`` by ``factor`` from the next step on."""
        validate_positive(factor, "conductance scale", allow_zero=True)
        self.conductance_scale[ChannelKind.parse(kind)] = float(factor)

    def scale_for(self, kind: ChannelKind) -> float:
        return self.conductance_scale.get(kind, 1.0)

    def set_channel_state(
        self, index: int, kind: Union[ChannelKind, str], state: ChannelState
    ) -> None:
        """Replace one channel's gating state, e.g. when restoring a snapshot.

        Raises:
            ConfigurationError: If the compartment has no channel of ``kind``,
                a gate lies outside [0, 1] or the calcium level is negative
        """
        kind = ChannelKind.parse(kind)
        if not 0 <= index < len(self):
            raise ConfigurationError(
                f"Compartment index {index} out of range for {len(self)} compartments"
            )
        bank = self.states[index]
        if kind not in bank:
            raise ConfigurationError(f"Compartment {index} has no {kind.value} channel")
        validate_probability(state.m, f"{kind.value}.m")
        validate_probability(state.h, f"{kind.value}.h")
        validate_positive(state.ca_i, f"{kind.value}.ca_i", allow_zero=True)

        new_states = bank.as_dict()
        new_states[kind] = ChannelState(float(state.m), float(state.h), float(state.ca_i))
        bank.commit(new_states)

    # =========================================================================
    # READ-ONLY SNAPSHOTS
    # =========================================================================

    def voltages(self) -> np.ndarray:
        """Copy of all compartment voltages (mV), indexed by compartment slot."""
        return np.array([c.voltage for c in self.compartments], dtype=np.float64)

    def gating_snapshot(self) -> List[Dict[ChannelKind, ChannelState]]:
        """Copy of every compartment's gating states."""
        return [bank.as_dict() for bank in self.states]

    # =========================================================================
    # COMMIT
    # =========================================================================

    def commit(
        self,
        voltages: Sequence[float],
        states: Sequence[Mapping[ChannelKind, ChannelState]],
        spiking: Optional[bool] = None,
    ) -> None:
        """Install a fully computed step: voltages, gating states and spike flag.

        Lengths are checked before anything is written, so a rejected commit
        leaves the topology untouched.
        """
        validate_array_length(voltages, len(self), "voltages")
        validate_array_length(states, len(self), "states")
        for bank, new_states in zip(self.states, states):
            if set(bank) != set(new_states):
                raise MorphologyError("State commit does not match the compartment channel kinds")

        for compartment, voltage in zip(self.compartments, voltages):
            compartment.voltage = float(voltage)
        for bank, new_states in zip(self.states, states):
            bank.commit(new_states)
        if spiking is None:
            spiking = self.root.voltage >= self.spike_threshold
        self.spiking = bool(spiking)
