"""Shared test fixtures and configuration."""

import pytest
import torch
import numpy as np

from neurocable.integration.cable import CableIntegrator, IntegratorConfig
from neurocable.morphology.builders import TopologyBuilder, single_compartment
from neurocable.morphology.compartment import CompartmentKind


@pytest.fixture(autouse=True)
def set_random_seed():
    """Ensure reproducible tests by setting all random seeds."""
    torch.manual_seed(42)
    np.random.seed(42)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(42)


@pytest.fixture
def device():
    """Get available device (prefer GPU if available)."""
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


@pytest.fixture
def integrator():
    """Integrator with default settings (dt=0.01 ms, 37 °C)."""
    return CableIntegrator(IntegratorConfig())


@pytest.fixture
def point_neuron():
    """Single-compartment HH neuron at -70 mV."""
    return single_compartment()


@pytest.fixture
def three_compartment_chain():
    """Soma - dendrite - dendrite chain with active soma and dendrites."""
    builder = TopologyBuilder()
    soma = builder.add_compartment(
        CompartmentKind.SOMA, 20.0, 20.0, channel_densities={"hh_na": 1.2, "hh_k": 0.36},
    )
    d1 = builder.add_compartment(
        CompartmentKind.DENDRITE, 50.0, 2.0, parent=soma,
        channel_densities={"hh_na": 0.1, "hh_k": 0.05},
    )
    builder.add_compartment(
        CompartmentKind.DENDRITE, 50.0, 2.0, parent=d1, channel_densities={"hcn": 0.002},
    )
    return builder.build()
