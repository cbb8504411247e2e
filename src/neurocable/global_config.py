"""Global configuration constants for NeuroCable."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GlobalConfig:
    """Global configuration constants for NeuroCable.

    Centralizes defaults shared by the integrator and both execution
    back-ends, such as the time step, simulation temperature and the device
    dispatch geometry.
    """

    DEFAULT_DT_MS = 0.01
    """Default integration timestep in milliseconds (0.01 ms)."""

    DEFAULT_TEMPERATURE_C = 37.0
    """Simulation temperature used for Q10 rate correction (°C)."""

    RESTING_POTENTIAL_MV = -70.0
    """Initial membrane potential of newly built compartments (mV)."""

    SPIKE_THRESHOLD_MV = -40.0
    """Root-compartment voltage at/above which a neuron is flagged as spiking (mV)."""

    WORKGROUP_SIZE = 256
    """Lanes per workgroup for the population kernel (one lane per neuron)."""

    MIN_ALIGNMENT_BYTES = 16
    """Minimum alignment required of device record layouts (bytes)."""

    STABILITY_VOLTAGE_RANGE = (-100.0, 60.0)
    """Voltage range (mV) scanned when estimating the fastest channel rate."""
