"""
Custom exception classes and validation utilities for NeuroCable.

This module provides:
1. Hierarchical exception classes for the failure categories of the engine
2. Validation utilities that reject bad configuration at construction time
3. Consistent error message formatting

Exception Hierarchy:
====================
NeuroCableError (base)
├── ConfigurationError - Invalid parameters (geometry, channel kinds, dt)
│   └── MorphologyError - Invalid compartment tree or morphology file
├── DeviceError - No compute device, or device allocation failure
├── PopulationSizeError - Input array length disagrees with population size
├── LayoutError - Device record layout violates the alignment contract
└── NumericalDivergenceError - Post-step validation found NaN/Inf or bad gates

Propagation Policy:
===================
- Configuration and device errors are raised immediately and never retried
- Size mismatches fail loudly; arrays are never truncated or padded
- Numerical divergence is only raised when post-step validation is enabled
"""

from __future__ import annotations

import math
from typing import Sized


# =============================================================================
# Exception Hierarchy
# =============================================================================


class NeuroCableError(Exception):
    """Base exception for all NeuroCable-specific errors.

    Code driving a simulation can catch engine errors specifically:

        try:
            backend.step()
        except NeuroCableError as e:
            logger.error(f"Simulation error: {e}")
    """


class ConfigurationError(NeuroCableError):
    """Invalid configuration parameters.

    Raised at construction time when geometry, channel densities, time steps
    or other parameters are out of their valid range.

    Example:
        raise ConfigurationError("length must be positive, got 0.0")
    """


class MorphologyError(ConfigurationError):
    """Invalid compartment tree or morphology description.

    Raised when parent/children links do not form a single rooted tree, or
    when a morphology file cannot be parsed.

    Example:
        raise MorphologyError("Topology has 2 roots, expected exactly one")
    """


class DeviceError(NeuroCableError):
    """Compute device unavailable or device allocation failed.

    Fatal to population creation: no partially initialised handle is ever
    returned to the caller.
    """


class PopulationSizeError(NeuroCableError, ValueError):
    """Input array length disagrees with the population it is applied to.

    Example:
        raise PopulationSizeError("external currents: expected 1000 values, got 999")
    """


class LayoutError(NeuroCableError):
    """Fixed device record layout violates the kernel contract.

    The per-neuron record and the constants record must have a size that is a
    multiple of the device's minimum alignment.
    """


class NumericalDivergenceError(NeuroCableError):
    """Post-step validation detected a diverged state.

    Only raised when explicit validation is requested; the explicit Euler
    integrator itself never checks for divergence inline.
    """


# =============================================================================
# Validation Utilities
# =============================================================================


def validate_positive(
    value: float,
    name: str,
    allow_zero: bool = False,
) -> None:
    """Validate that a value is finite and positive.

    Args:
        value: Value to check
        name: Parameter name for error messages
        allow_zero: Whether zero is acceptable (default: False)

    Raises:
        ConfigurationError: If value is not finite or not positive

    Example:
        >>> validate_positive(diameter, "diameter")
        >>> validate_positive(density, "density", allow_zero=True)
    """
    validate_finite(value, name)
    if allow_zero:
        if value < 0:
            raise ConfigurationError(f"{name} must be non-negative, got {value}")
    else:
        if value <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")


def validate_finite(value: float, name: str) -> None:
    """Validate that a numerical parameter is neither NaN nor Inf.

    Raises:
        ConfigurationError: If value is NaN or Inf
    """
    try:
        finite = math.isfinite(value)
    except TypeError as exc:
        raise ConfigurationError(f"{name} must be a real number, got {value!r}") from exc
    if not finite:
        raise ConfigurationError(f"{name} must be finite, got {value}")


def validate_probability(value: float, name: str) -> None:
    """Validate that a fraction lies in the [0, 1] range.

    Used for gating variables, which are fractions of open gates.

    Raises:
        ConfigurationError: If value is not finite or outside [0, 1]
    """
    validate_finite(value, name)
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be in [0, 1] range, got {value}")

def validate_array_length(values: Sized, expected: int, name: str) -> None:
    """Validate that a per-neuron or per-compartment array has the right length.

    Args:
        values: Array-like input
        expected: Required number of entries
        name: Name for error messages

    Raises:
        PopulationSizeError: If the length differs from ``expected``
    """
    actual = len(values)
    if actual != expected:
        raise PopulationSizeError(
            f"{name}: expected {expected} values, got {actual}. "
            f"Arrays are never truncated or padded to fit."
        )
