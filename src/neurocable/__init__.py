"""
NeuroCable - compartmental cable-equation neuron simulation.

Biophysically detailed neurons as trees of coupled membrane compartments,
integrated with a two-phase explicit Euler scheme, on a CPU thread pool or as
data-parallel Hodgkin-Huxley point neurons on a GPU.

Quick Start (External Users):
=============================

    from neurocable import CableIntegrator, IntegratorConfig, pyramidal

    cell = pyramidal()
    cell.set_external_current([200.0] + [0.0] * (len(cell) - 1))
    integrator = CableIntegrator(IntegratorConfig(dt=0.01))
    trace = integrator.run(cell, n_steps=10_000, record=True)

    from neurocable import GpuExecutionBackend

    population = GpuExecutionBackend.create(population_size=100_000, dt=0.01)
    population.set_external_currents(currents)
    population.step()
    voltages = population.read_voltages()

Internal Development:
====================

Internal code should use explicit module imports:

    from neurocable.channels.models import ChannelKind, IonChannel
    from neurocable.morphology.topology import NeuronTopology
    from neurocable.integration.cable import CableIntegrator
"""

__version__ = "0.1.0"

# ============================================================================
# PUBLIC API
# ============================================================================

from neurocable.global_config import GlobalConfig

from neurocable.errors import (
    ConfigurationError,
    DeviceError,
    LayoutError,
    MorphologyError,
    NeuroCableError,
    NumericalDivergenceError,
    PopulationSizeError,
)

# Channels
from neurocable.channels import ChannelKind, ChannelState, ChannelStateBank, IonChannel, mg_block

# Morphology
from neurocable.morphology import (
    Compartment,
    CompartmentKind,
    CompartmentParams,
    NeuronTopology,
    SWCMorphology,
    TopologyBuilder,
    interneuron,
    pyramidal,
    single_compartment,
    soma_with_dendrites,
)

# Integration
from neurocable.integration import CableIntegrator, IntegratorConfig

# Back-ends
from neurocable.backends import (
    CpuExecutionBackend,
    GpuExecutionBackend,
    HHConstants,
    PopulationStepper,
)

__all__ = [
    "__version__",
    "GlobalConfig",
    "NeuroCableError",
    "ConfigurationError",
    "MorphologyError",
    "DeviceError",
    "PopulationSizeError",
    "LayoutError",
    "NumericalDivergenceError",
    "ChannelKind",
    "ChannelState",
    "ChannelStateBank",
    "IonChannel",
    "mg_block",
    "Compartment",
    "CompartmentKind",
    "CompartmentParams",
    "NeuronTopology",
    "TopologyBuilder",
    "single_compartment",
    "soma_with_dendrites",
    "pyramidal",
    "interneuron",
    "SWCMorphology",
    "CableIntegrator",
    "IntegratorConfig",
    "CpuExecutionBackend",
    "GpuExecutionBackend",
    "HHConstants",
    "PopulationStepper",
]
