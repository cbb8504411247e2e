"""
Population stepper interface shared by the CPU and GPU back-ends.

The two back-ends deliberately share nothing beyond this narrow surface: the
CPU back-end steps multi-compartment topologies with the cable integrator,
the GPU back-end steps flattened Hodgkin-Huxley point neurons in a kernel.
Code driving a population (stimulus protocols, recorders) should depend on
this protocol only.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

import numpy as np


@runtime_checkable
class PopulationStepper(Protocol):
    """Minimal interface of a population back-end.

    Lifecycle:
        create (classmethod) → [set_external_currents → step → read_voltages]* → close

    All three per-tick operations act on the same handle in issue order.
    """

    @property
    def population_size(self) -> int:
        """Number of neurons driven by this back-end."""
        ...

    def set_external_currents(self, values: Sequence[float]) -> None:
        """Set one injected somatic current (pA) per neuron.

        Raises:
            PopulationSizeError: If ``len(values) != population_size``
        """
        ...

    def step(self) -> None:
        """Advance every neuron by one time step."""
        ...

    def read_voltages(self) -> np.ndarray:
        """Blocking copy of each neuron's root/soma voltage (mV)."""
        ...

    def read_spikes(self) -> np.ndarray:
        """Blocking copy of each neuron's spike flag."""
        ...

    def close(self) -> None:
        """Release worker threads or device buffers."""
        ...
