"""
Neuron morphology: compartments, the compartment tree and its builders.
"""

from neurocable.morphology.builders import (
    TopologyBuilder,
    interneuron,
    pyramidal,
    single_compartment,
    soma_with_dendrites,
)
from neurocable.morphology.compartment import Compartment, CompartmentKind, CompartmentParams
from neurocable.morphology.swc import SWCMorphology, SWCPoint
from neurocable.morphology.topology import NeuronTopology

__all__ = [
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
    "SWCPoint",
]
