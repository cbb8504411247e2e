"""
CPU Execution Back-end - one thread-pool task per neuron per tick.

Architecture:
=============

    ┌──────────────────────────────────────────────────────────┐
    │                  CALLER (host thread)                     │
    │  • validates every per-neuron current array up front      │
    │  • submits one task per neuron, waits for all             │
    │  • re-raises the first failure                            │
    └──────────────────────────────────────────────────────────┘
                               │
          ┌────────────────────┼────────────────────┐
          ▼                    ▼                    ▼
    ┌────────────┐       ┌────────────┐       ┌────────────┐
    │  NEURON 0  │       │  NEURON 1  │  ...  │  NEURON N  │
    │ cable step │       │ cable step │       │ cable step │
    └────────────┘       └────────────┘       └────────────┘

Neurons share nothing, so tasks need no locks. Within a neuron the
compartments are stepped sequentially by ``CableIntegrator``. A tick
returns only after every task finished; there is no cancellation.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Sequence

import numpy as np

from neurocable.errors import ConfigurationError, PopulationSizeError, validate_array_length
from neurocable.integration.cable import CableIntegrator
from neurocable.morphology.topology import NeuronTopology

logger = logging.getLogger(__name__)


def default_worker_count() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class CpuExecutionBackend:
    """Steps a population of independent multi-compartment neurons in parallel.

    Args:
        integrator: Integrator applied to every neuron
        population: Neurons owned by this back-end (may be empty when only
            ``step(population, ...)`` with explicit populations is used)
        max_workers: Thread pool bound; defaults to ``default_worker_count()``

    Example:
        >>> with CpuExecutionBackend.create([pyramidal() for _ in range(64)]) as backend:
        ...     backend.set_external_currents(np.full(64, 200.0))
        ...     for _ in range(1000):
        ...         backend.step()
        ...     soma_voltages = backend.read_voltages()
    """

    def __init__(
        self,
        integrator: Optional[CableIntegrator] = None,
        population: Optional[Sequence[NeuronTopology]] = None,
        max_workers: Optional[int] = None,
    ):
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")
        self.integrator = integrator if integrator is not None else CableIntegrator()
        self.population: List[NeuronTopology] = list(population or [])
        self.max_workers = max_workers if max_workers is not None else default_worker_count()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="neurocable-cpu"
        )
        self._closed = False

    @classmethod
    def create(
        cls,
        population: Sequence[NeuronTopology],
        integrator: Optional[CableIntegrator] = None,
        max_workers: Optional[int] = None,
    ) -> "CpuExecutionBackend":
        backend = cls(integrator=integrator, population=population, max_workers=max_workers)
        logger.info(
            "Created CPU back-end: %d neurons, %d workers, dt=%.4g ms",
            backend.population_size, backend.max_workers, backend.integrator.dt,
        )
        return backend

    @property
    def population_size(self) -> int:
        return len(self.population)

    # =========================================================================
    # STEPPING
    # =========================================================================

    def step(
        self,
        population: Optional[Sequence[NeuronTopology]] = None,
        per_neuron_external_currents: Optional[Sequence[Sequence[float]]] = None,
    ) -> List[bool]:
        """Advance every neuron of ``population`` by one tick.

        Args:
            population: Neurons to step; defaults to the owned population
            per_neuron_external_currents: Optional per-compartment external
                current array (pA) for each neuron, applied before stepping

        Returns:
            Spike flag of each neuron after the tick

        Raises:
            PopulationSizeError: If the outer length differs from the
                population size or an inner length from a neuron's
                compartment count; no neuron is touched in that case
            ConfigurationError: If the same topology appears more than once
            RuntimeError: If the back-end was closed
        """
        if self._closed:
            raise RuntimeError("CpuExecutionBackend is closed")
        population = self.population if population is None else list(population)
        if len({id(topology) for topology in population}) != len(population):
            raise ConfigurationError("Population lists the same NeuronTopology more than once")

        if per_neuron_external_currents is not None:
            validate_array_length(per_neuron_external_currents, len(population), "per-neuron currents")
            for i, (topology, currents) in enumerate(zip(population, per_neuron_external_currents)):
                validate_array_length(currents, len(topology), f"external currents of neuron {i}")

        futures = []
        for i, topology in enumerate(population):
            currents = None if per_neuron_external_currents is None else per_neuron_external_currents[i]
            futures.append(self._executor.submit(self._step_neuron, topology, currents))
        wait(futures)

        logger.debug("CPU tick: stepped %d neurons", len(futures))
        return [future.result() for future in futures]

    def _step_neuron(self, topology: NeuronTopology, currents: Optional[Sequence[float]]) -> bool:
        if currents is not None:
            topology.set_external_current(currents)
        return self.integrator.step(topology)

    # =========================================================================
    # POPULATION STEPPER INTERFACE
    # =========================================================================

    def set_external_currents(self, values: Sequence[float]) -> None:
        """Inject ``values[i]`` (pA) into the root of neuron ``i``; other compartments get 0."""
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 1:
            raise PopulationSizeError(
                f"external currents: expected a flat array of {self.population_size} values, "
                f"got shape {values.shape}"
            )
        validate_array_length(values, self.population_size, "external currents")
        for topology, value in zip(self.population, values):
            currents = np.zeros(len(topology))
            currents[topology.root_index] = value
            topology.set_external_current(currents)

    def read_voltages(self) -> np.ndarray:
        return np.array([topology.root.voltage for topology in self.population], dtype=np.float64)

    def read_spikes(self) -> np.ndarray:
        return np.array([topology.spiking for topology in self.population], dtype=bool)

    def read_compartment_voltages(self) -> List[np.ndarray]:
        """Full voltage snapshot of every neuron."""
        return [topology.voltages() for topology in self.population]

    def close(self) -> None:
        if not self._closed:
            self._executor.shutdown(wait=True)
            self._closed = True

    def __enter__(self) -> "CpuExecutionBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
