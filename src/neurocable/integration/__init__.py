"""
Time integration of compartment trees.
"""

from neurocable.integration.cable import CableIntegrator, IntegratorConfig, MembraneCurrents
from neurocable.integration.stability import (
    check_finite_voltages,
    check_gating_bounds,
    check_topology,
    max_stable_dt,
    validate_dt,
)

__all__ = [
    "CableIntegrator",
    "IntegratorConfig",
    "MembraneCurrents",
    "max_stable_dt",
    "validate_dt",
    "check_gating_bounds",
    "check_finite_voltages",
    "check_topology",
]
