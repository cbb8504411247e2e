"""
Compartment - one cylindrical piece of neuronal membrane.

Geometry-derived electrical parameters are computed once at construction:

    surface_area     = π · d · L                       (µm²)
    capacitance      = C_m · surface_area / 100        (pF, C_m in µF/cm²)
    axial_resistance = ρ · L / (π · (d / 2)²)          (MΩ, ρ in MΩ·µm)
    leak_conductance = g_leak_density · surface_area   (nS)
    g_max(kind)      = density(kind) · surface_area    (nS)

Links to parent and children are integer slots into the owning topology's
compartment list; a compartment never holds a reference to another one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from neurocable.channels.constants import (
    AXIAL_RESISTIVITY,
    E_LEAK,
    LEAK_DENSITY,
    SPECIFIC_CAPACITANCE,
)
from neurocable.channels.models import ChannelKind, IonChannel
from neurocable.errors import ConfigurationError, validate_finite, validate_positive
from neurocable.global_config import GlobalConfig
from neurocable.units import (
    PF_PER_UF_CM2_UM2,
    Capacitance,
    Conductance,
    ConductanceDensity,
    Micrometers,
    Resistance,
    Voltage,
)


class CompartmentKind(Enum):
    """Anatomical role of a compartment."""

    SOMA = "soma"
    DENDRITE = "dendrite"
    APICAL_DENDRITE = "apical_dendrite"
    BASAL_DENDRITE = "basal_dendrite"
    AXON = "axon"
    AXON_INITIAL_SEGMENT = "axon_initial_segment"


@dataclass
class CompartmentParams:
    """Passive membrane parameters shared by the compartments of a neuron.

    Attributes:
        specific_capacitance: Membrane capacitance (µF/cm²)
        axial_resistivity: Intracellular resistivity (MΩ·µm)
        leak_density: Leak conductance density (nS/µm²)
        leak_reversal: Leak reversal potential (mV)
        initial_voltage: Starting membrane potential (mV)
    """

    specific_capacitance: float = SPECIFIC_CAPACITANCE
    axial_resistivity: float = AXIAL_RESISTIVITY
    leak_density: float = LEAK_DENSITY
    leak_reversal: float = E_LEAK
    initial_voltage: float = GlobalConfig.RESTING_POTENTIAL_MV

    def __post_init__(self) -> None:
        validate_positive(self.specific_capacitance, "specific_capacitance")
        validate_positive(self.axial_resistivity, "axial_resistivity")
        validate_positive(self.leak_density, "leak_density", allow_zero=True)
        validate_finite(self.leak_reversal, "leak_reversal")
        validate_finite(self.initial_voltage, "initial_voltage")


DensityTable = Mapping[Union[ChannelKind, str], float]


@dataclass
class Compartment:
    """A cylindrical membrane segment with its own voltage and channel complement.

    Raises:
        ConfigurationError: On non-positive or non-finite geometry, a negative
            channel density, or a density keyed by an unknown channel kind
    """

    kind: CompartmentKind
    length: Micrometers
    diameter: Micrometers
    voltage: Voltage = GlobalConfig.RESTING_POTENTIAL_MV
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    channel_densities: Dict[ChannelKind, ConductanceDensity] = field(default_factory=dict)
    params: CompartmentParams = field(default_factory=CompartmentParams)

    # Derived once in __post_init__
    surface_area: float = field(init=False)
    capacitance: Capacitance = field(init=False)
    axial_resistance: Resistance = field(init=False)
    leak_conductance: Conductance = field(init=False)
    leak_reversal: Voltage = field(init=False)
    channels: Dict[ChannelKind, IonChannel] = field(init=False, repr=False)
    # Set by the NeuronTopology that takes ownership
    owner: Optional[object] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, CompartmentKind):
            try:
                self.kind = CompartmentKind(self.kind)
            except ValueError as exc:
                raise ConfigurationError(f"Unknown compartment kind {self.kind!r}") from exc
        validate_positive(self.length, "length")
        validate_positive(self.diameter, "diameter")
        validate_finite(self.voltage, "voltage")

        self.channel_densities = _normalize_densities(self.channel_densities)

        radius = self.diameter / 2.0
        self.surface_area = math.pi * self.diameter * self.length
        self.capacitance = self.params.specific_capacitance * self.surface_area * PF_PER_UF_CM2_UM2
        self.axial_resistance = self.params.axial_resistivity * self.length / (math.pi * radius * radius)
        self.leak_conductance = self.params.leak_density * self.surface_area
        self.leak_reversal = self.params.leak_reversal
        self.channels = {
            kind: IonChannel(kind, g_max=density * self.surface_area)
            for kind, density in self.channel_densities.items()
        }

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def channel_conductance(self, kind: Union[ChannelKind, str]) -> float:
        """Total maximal conductance (nS) of ``kind``; 0 if not present."""
        kind = ChannelKind.parse(kind)
        return self.channel_densities.get(kind, 0.0) * self.surface_area


def _normalize_densities(densities: DensityTable) -> Dict[ChannelKind, float]:
    """Key densities by ChannelKind, rejecting unknown kinds and duplicates."""
    normalized: Dict[ChannelKind, float] = {}
    for key, density in densities.items():
        kind = ChannelKind.parse(key)
        if kind in normalized:
            raise ConfigurationError(f"Duplicate density entry for channel kind {kind.value}")
        validate_positive(density, f"{kind.value} density", allow_zero=True)
        normalized[kind] = float(density)
    return normalized
