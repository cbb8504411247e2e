"""
Population execution back-ends.

- ``CpuExecutionBackend``: multi-compartment neurons, one thread-pool task each
- ``GpuExecutionBackend``: Hodgkin-Huxley point neurons, one kernel lane each
"""

from neurocable.backends.base import PopulationStepper
from neurocable.backends.cpu import CpuExecutionBackend
from neurocable.backends.gpu import GpuExecutionBackend, HHConstants, resolve_device
from neurocable.backends.layout import CONSTANTS_DTYPE, NEURON_RECORD_DTYPE, validate_layout

__all__ = [
    "PopulationStepper",
    "CpuExecutionBackend",
    "GpuExecutionBackend",
    "HHConstants",
    "resolve_device",
    "NEURON_RECORD_DTYPE",
    "CONSTANTS_DTYPE",
    "validate_layout",
]
