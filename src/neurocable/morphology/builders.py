"""
Factory functions for building standard neuron morphologies.

This module turns morphology descriptions into compartment arenas, reducing
boilerplate index bookkeeping and centralizing default channel complements.

Usage:
======
    from neurocable.morphology import builders

    # Point neuron with classic HH channels
    cell = builders.single_compartment()

    # Soma + passive-ish dendritic cable
    cell = builders.soma_with_dendrites(n_dendrites=5)

    # 152-compartment pyramidal cell with custom soma channels
    cell = builders.pyramidal(soma_densities={"nav1_1": 1.0, "kv3_1": 0.5})

    # Arbitrary trees
    builder = TopologyBuilder()
    soma = builder.add_compartment(CompartmentKind.SOMA, 20.0, 20.0,
                                   channel_densities={"hh_na": 1.2, "hh_k": 0.36})
    builder.add_compartment(CompartmentKind.DENDRITE, 50.0, 2.0, parent=soma)
    cell = builder.build()
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Union

from neurocable.channels.constants import (
    AIS_KV11_DENSITY,
    AIS_NAV16_DENSITY,
    DENDRITIC_K_DENSITY,
    DENDRITIC_NA_DENSITY,
    HCN_DENSITY,
    HH_K_DENSITY,
    HH_NA_DENSITY,
    INTERNEURON_KV31_DENSITY,
    INTERNEURON_NAV11_DENSITY,
)
from neurocable.channels.models import ChannelKind
from neurocable.errors import ConfigurationError, MorphologyError
from neurocable.global_config import GlobalConfig
from neurocable.morphology.compartment import Compartment, CompartmentKind, CompartmentParams
from neurocable.morphology.topology import NeuronTopology

logger = logging.getLogger(__name__)

Densities = Mapping[Union[ChannelKind, str], float]

HH_SOMA_DENSITIES = {ChannelKind.HH_NA: HH_NA_DENSITY, ChannelKind.HH_K: HH_K_DENSITY}
DENDRITE_DENSITIES = {ChannelKind.HH_NA: DENDRITIC_NA_DENSITY, ChannelKind.HH_K: DENDRITIC_K_DENSITY}
AIS_DENSITIES = {ChannelKind.NAV1_6: AIS_NAV16_DENSITY, ChannelKind.KV1_1: AIS_KV11_DENSITY}
INTERNEURON_SOMA_DENSITIES = {
    ChannelKind.NAV1_1: INTERNEURON_NAV11_DENSITY,
    ChannelKind.KV3_1: INTERNEURON_KV31_DENSITY,
}

# Pyramidal geometry
APICAL_SEGMENTS = 100
BASAL_DENDRITES = 50
APICAL_TAPER_PER_SEGMENT = 0.015


class TopologyBuilder:
    """Incremental construction of a compartment tree.

    Compartments are validated as they are added; tree links are filled in
    from the ``parent`` argument so callers never edit ``children`` lists.
    """

    def __init__(
        self,
        params: Optional[CompartmentParams] = None,
        spike_threshold: float = GlobalConfig.SPIKE_THRESHOLD_MV,
    ):
        self.params = params if params is not None else CompartmentParams()
        self.spike_threshold = spike_threshold
        self._compartments: List[Compartment] = []
        self._built = False

    def __len__(self) -> int:
        return len(self._compartments)

    def add_compartment(
        self,
        kind: Union[CompartmentKind, str],
        length: float,
        diameter: float,
        parent: Optional[int] = None,
        channel_densities: Optional[Densities] = None,
    ) -> int:
        """Append a compartment and return its index.

        Raises:
            ConfigurationError: On invalid geometry or channel densities
            MorphologyError: If ``parent`` is not an existing index, or the
                builder was already consumed by ``build``
        """
        if self._built:
            raise MorphologyError("TopologyBuilder already built; create a new builder")
        index = len(self._compartments)
        if parent is not None and not 0 <= parent < index:
            raise MorphologyError(f"Parent index {parent} does not exist (have {index} compartments)")

        compartment = Compartment(
            kind=kind,
            length=length,
            diameter=diameter,
            voltage=self.params.initial_voltage,
            parent=parent,
            channel_densities=dict(channel_densities or {}),
            params=self.params,
        )
        self._compartments.append(compartment)
        if parent is not None:
            self._compartments[parent].children.append(index)
        return index

    def build(self) -> NeuronTopology:
        """Validate the tree and hand the compartments to a new topology."""
        if self._built:
            raise MorphologyError("TopologyBuilder already built; create a new builder")
        topology = NeuronTopology(self._compartments, spike_threshold=self.spike_threshold)
        self._built = True
        logger.debug("Built topology with %d compartments", len(topology))
        return topology


def single_compartment(
    length: float = 10.0,
    diameter: float = 10.0,
    channel_densities: Optional[Densities] = None,
    params: Optional[CompartmentParams] = None,
    **overrides,
) -> NeuronTopology:
    """Create a point neuron: one soma compartment.

    Defaults to a 10 µm × 10 µm soma (314 µm², 3.14 pF) with classic
    Hodgkin-Huxley Na⁺/K⁺ densities, which rests near -72 mV and fires
    repetitively under +100 pA.

    Args:
        length: Soma length (µm)
        diameter: Soma diameter (µm)
        channel_densities: Channel kind → density (nS/µm²)
        params: Passive membrane parameters
        **overrides: Forwarded to ``TopologyBuilder`` (e.g. spike_threshold)
    """
    builder = TopologyBuilder(params=params, **overrides)
    densities = HH_SOMA_DENSITIES if channel_densities is None else channel_densities
    builder.add_compartment(CompartmentKind.SOMA, length, diameter, channel_densities=densities)
    return builder.build()


def soma_with_dendrites(
    n_dendrites: int,
    soma_length: float = 20.0,
    soma_diameter: float = 20.0,
    dendrite_length: float = 50.0,
    dendrite_diameter: float = 2.0,
    soma_densities: Optional[Densities] = None,
    dendrite_densities: Optional[Densities] = None,
    params: Optional[CompartmentParams] = None,
    **overrides,
) -> NeuronTopology:
    """Create a soma with an unbranched dendritic cable of ``n_dendrites`` segments.

    Segment ``i`` (index ``i + 1``) is the child of segment ``i - 1``; the
    first segment hangs off the soma.
    """
    if n_dendrites < 0:
        raise ConfigurationError(f"n_dendrites must be non-negative, got {n_dendrites}")
    builder = TopologyBuilder(params=params, **overrides)
    parent = builder.add_compartment(
        CompartmentKind.SOMA, soma_length, soma_diameter,
        channel_densities=HH_SOMA_DENSITIES if soma_densities is None else soma_densities,
    )
    dendrite_densities = DENDRITE_DENSITIES if dendrite_densities is None else dendrite_densities
    for _ in range(n_dendrites):
        parent = builder.add_compartment(
            CompartmentKind.DENDRITE, dendrite_length, dendrite_diameter,
            parent=parent, channel_densities=dendrite_densities,
        )
    return builder.build()


def pyramidal(
    soma_length: float = 20.0,
    soma_diameter: float = 20.0,
    soma_densities: Optional[Densities] = None,
    params: Optional[CompartmentParams] = None,
    **overrides,
) -> NeuronTopology:
    """Create a pyramidal-cell-like tree of 152 compartments.

    Layout (by index):
    - 0: soma
    - 1-100: apical trunk, a chain off the soma, 10 µm segments tapering
      from 2.0 µm by 0.015 µm per segment; HCN density grows distally
    - 101-150: basal dendrites, each a direct child of the soma (8 µm × 1.5 µm)
    - 151: axon initial segment off the soma (30 µm × 1 µm, Nav1.6 + Kv1.1)
    """
    builder = TopologyBuilder(params=params, **overrides)
    soma = builder.add_compartment(
        CompartmentKind.SOMA, soma_length, soma_diameter,
        channel_densities=HH_SOMA_DENSITIES if soma_densities is None else soma_densities,
    )

    parent = soma
    for i in range(APICAL_SEGMENTS):
        densities = dict(DENDRITE_DENSITIES)
        densities[ChannelKind.HCN] = HCN_DENSITY * (1.0 + i / APICAL_SEGMENTS)
        parent = builder.add_compartment(
            CompartmentKind.APICAL_DENDRITE,
            length=10.0,
            diameter=2.0 - APICAL_TAPER_PER_SEGMENT * i,
            parent=parent,
            channel_densities=densities,
        )

    for _ in range(BASAL_DENDRITES):
        builder.add_compartment(
            CompartmentKind.BASAL_DENDRITE, 8.0, 1.5,
            parent=soma, channel_densities=DENDRITE_DENSITIES,
        )

    builder.add_compartment(
        CompartmentKind.AXON_INITIAL_SEGMENT, 30.0, 1.0,
        parent=soma, channel_densities=AIS_DENSITIES,
    )
    return builder.build()


def interneuron(
    n_branches: int = 8,
    segments_per_branch: int = 8,
    soma_diameter: float = 15.0,
    soma_densities: Optional[Densities] = None,
    params: Optional[CompartmentParams] = None,
    **overrides,
) -> NeuronTopology:
    """Create a fast-spiking interneuron with radial unbranched dendrites.

    The soma carries Nav1.1 + Kv3.1; each of ``n_branches`` dendrites is a
    chain of ``segments_per_branch`` 15 µm × 1 µm segments.
    """
    if n_branches < 0 or segments_per_branch < 0:
        raise ConfigurationError("n_branches and segments_per_branch must be non-negative")
    builder = TopologyBuilder(params=params, **overrides)
    soma = builder.add_compartment(
        CompartmentKind.SOMA, soma_diameter, soma_diameter,
        channel_densities=INTERNEURON_SOMA_DENSITIES if soma_densities is None else soma_densities,
    )
    for _ in range(n_branches):
        parent = soma
        for _ in range(segments_per_branch):
            parent = builder.add_compartment(
                CompartmentKind.DENDRITE, 15.0, 1.0,
                parent=parent, channel_densities=DENDRITE_DENSITIES,
            )
    return builder.build()
