"""Unit types for dimensional analysis in cable-equation computations.

Prevents mixing incompatible quantities (currents vs conductances vs voltages).
Uses Python's NewType for zero-runtime-cost type checking with mypy/pyright.

Unit system used throughout NeuroCable:
- voltage: mV
- time: ms
- length, diameter: µm
- capacitance: pF
- conductance: nS
- current: pA
- axial resistance: MΩ
- intracellular Ca²⁺: µM; Mg²⁺ and ligand: mM

Example usage:
    from neurocable.units import Conductance, Current, Voltage

    def channel_current(g: Conductance, v: Voltage, e_rev: Voltage) -> Current:
        return Current(g * (v - e_rev))
"""

from typing import NewType

# =============================================================================
# ELECTRICAL UNITS
# =============================================================================

Voltage = NewType("Voltage", float)
"""Membrane or reversal potential (mV)."""

Conductance = NewType("Conductance", float)
"""Membrane, channel or leak conductance (nS)."""

ConductanceDensity = NewType("ConductanceDensity", float)
"""Channel conductance per unit membrane area (nS/µm²)."""

Current = NewType("Current", float)
"""Membrane current (pA). Positive = outward for ionic terms."""

Capacitance = NewType("Capacitance", float)
"""Compartment capacitance (pF)."""

Resistance = NewType("Resistance", float)
"""Axial resistance between adjacent compartments (MΩ)."""

# =============================================================================
# GEOMETRY AND TIME
# =============================================================================

Micrometers = NewType("Micrometers", float)
"""Length or diameter (µm)."""

TimeMS = NewType("TimeMS", float)
"""Time in milliseconds."""

# =============================================================================
# CONVERSION CONSTANTS
# =============================================================================

PA_PER_NA = 1000.0
"""Axial current ΔV/R comes out in nA (mV / MΩ); multiply to get pA."""

PF_PER_UF_CM2_UM2 = 0.01
"""Specific capacitance (µF/cm²) × area (µm²) × this factor gives pF."""


def conductance_to_current(g: Conductance, v: Voltage, e_reversal: Voltage) -> Current:
    """Convert a conductance to its membrane current.

    I = g × (V - E), outward positive.
    """
    return Current(g * (v - e_reversal))


__all__ = [
    "Voltage",
    "Conductance",
    "ConductanceDensity",
    "Current",
    "Capacitance",
    "Resistance",
    "Micrometers",
    "TimeMS",
    "PA_PER_NA",
    "PF_PER_UF_CM2_UM2",
    "conductance_to_current",
]
