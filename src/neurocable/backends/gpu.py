"""
GPU Execution Back-end - data-parallel Hodgkin-Huxley point neurons.

The population lives in two device buffers owned by the back-end handle:

- state buffer: ``[num_workgroups · 256, 8]`` float32, one
  ``layout.NEURON_RECORD_DTYPE`` record per lane
- constants buffer: twelve 4-byte words, one ``layout.CONSTANTS_DTYPE`` record

Neurons are electrically independent; each tick dispatches
``kernel.update_neurons`` over every lane, masking the padding lanes of the
last workgroup.

Blocking:
=========
``create`` (device acquisition, allocation) and the ``read_*`` methods are
the only calls that wait on the device. ``step`` and
``set_external_currents`` are issued on the device's in-order stream, so a
read always observes every previously issued step.

Usage:
======
    backend = GpuExecutionBackend.create(population_size=100_000, dt=0.01)
    backend.set_external_currents(np.full(100_000, 10.0))
    for _ in range(1000):
        backend.step()
    voltages = backend.read_voltages()
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import torch

from neurocable.backends import kernel, layout
from neurocable.channels.constants import E_CA, E_K, E_LEAK, E_NA
from neurocable.channels.models import ChannelKind, IonChannel
from neurocable.errors import (
    ConfigurationError,
    DeviceError,
    PopulationSizeError,
    validate_array_length,
    validate_finite,
    validate_positive,
)
from neurocable.global_config import GlobalConfig

logger = logging.getLogger(__name__)

DeviceLike = Union[str, torch.device]


@dataclass
class HHConstants:
    """Shared parameters of the point-neuron population.

    Conductances in nS, capacitance in pF, potentials in mV. The defaults
    describe the classic Hodgkin-Huxley membrane (120/36 mS/cm² on 1 µF/cm²)
    for a 100 µm² patch, plus a small L-type calcium conductance.
    """

    g_na: float = 120.0
    g_k: float = 36.0
    g_ca: float = 5.0
    g_leak: float = 0.3
    e_na: float = E_NA
    e_k: float = E_K
    e_ca: float = E_CA
    e_leak: float = E_LEAK
    capacitance: float = 1.0
    spike_threshold: float = GlobalConfig.SPIKE_THRESHOLD_MV
    initial_voltage: float = GlobalConfig.RESTING_POTENTIAL_MV

    def __post_init__(self) -> None:
        for name in ("g_na", "g_k", "g_ca", "g_leak"):
            validate_positive(getattr(self, name), name, allow_zero=True)
        for name in ("e_na", "e_k", "e_ca", "e_leak", "spike_threshold", "initial_voltage"):
            validate_finite(getattr(self, name), name)
        validate_positive(self.capacitance, "capacitance")

    def to_record(self, dt: float, num_neurons: int) -> np.ndarray:
        """Pack into a one-element ``CONSTANTS_DTYPE`` array."""
        record = np.zeros(1, dtype=layout.CONSTANTS_DTYPE)
        record["dt"] = dt
        record["num_neurons"] = num_neurons
        for name in ("g_na", "g_k", "g_ca", "g_leak", "e_na", "e_k", "e_ca", "e_leak",
                     "capacitance", "spike_threshold"):
            record[name] = getattr(self, name)
        return record

    def initial_record(self) -> np.ndarray:
        """One neuron record at ``initial_voltage`` with gates in steady state."""
        v = self.initial_voltage
        na = IonChannel(ChannelKind.HH_NA, self.g_na).steady_state(v)
        k = IonChannel(ChannelKind.HH_K, self.g_k).steady_state(v)
        ca = IonChannel(ChannelKind.CA_L, self.g_ca).steady_state(v)

        record = np.zeros(1, dtype=layout.NEURON_RECORD_DTYPE)
        record["voltage"] = v
        record["na_m"], record["na_h"] = na.m, na.h
        record["k_n"] = k.m
        record["ca_m"], record["ca_h"] = ca.m, ca.h
        return record


def resolve_device(device: Optional[DeviceLike] = None) -> torch.device:
    """Pick the compute device for a population.

    An explicitly requested device is used as given (including ``"cpu"``);
    otherwise CUDA is required.

    Raises:
        DeviceError: If the requested or default device is unavailable
    """
    if device is not None:
        try:
            resolved = torch.device(device)
        except (RuntimeError, TypeError) as exc:
            raise DeviceError(f"Invalid device {device!r}: {exc}") from exc
        if resolved.type == "cuda" and not torch.cuda.is_available():
            raise DeviceError(f"Requested device {resolved} but CUDA is not available")
        return resolved
    if torch.cuda.is_available():
        return torch.device("cuda")
    raise DeviceError(
        "No compute-capable GPU found. Pass device='cpu' to run the population kernel on the host."
    )


class GpuExecutionBackend:
    """Handle to a device-resident point-neuron population.

    Obtain instances through ``create``; a handle is never returned in a
    partially allocated state.
    """

    def __init__(
        self,
        states: torch.Tensor,
        constants: torch.Tensor,
        lane_ids: torch.Tensor,
        population_size: int,
        dt: float,
        hh_constants: HHConstants,
    ):
        self._states = states
        self._constants = constants
        self._lane_ids = lane_ids
        self._population_size = population_size
        self.dt = dt
        self.hh_constants = hh_constants
        self.steps_taken = 0
        self._closed = False

    @classmethod
    def create(
        cls,
        population_size: int,
        dt: float = GlobalConfig.DEFAULT_DT_MS,
        device: Optional[DeviceLike] = None,
        constants: Optional[HHConstants] = None,
    ) -> "GpuExecutionBackend":
        """Allocate device buffers for ``population_size`` neurons at rest.

        Raises:
            ConfigurationError: On a non-positive population size or dt
            LayoutError: If a record layout violates device alignment
            DeviceError: If no device is available or allocation fails
        """
        if population_size < 1:
            raise ConfigurationError(f"population_size must be at least 1, got {population_size}")
        validate_positive(dt, "dt")
        constants = constants if constants is not None else HHConstants()
        layout.validate_layout(layout.NEURON_RECORD_DTYPE)
        layout.validate_layout(layout.CONSTANTS_DTYPE)

        resolved = resolve_device(device)
        workgroup = GlobalConfig.WORKGROUP_SIZE
        num_workgroups = math.ceil(population_size / workgroup)
        n_lanes = num_workgroups * workgroup

        host_states = np.repeat(constants.initial_record(), n_lanes)
        host_constants = constants.to_record(dt, population_size)
        try:
            states = torch.from_numpy(layout.unpack_records(host_states).copy()).to(resolved)
            constants_buffer = torch.from_numpy(host_constants.view(np.float32).copy()).to(resolved)
            lane_ids = torch.arange(n_lanes, dtype=torch.int32, device=resolved)
        except RuntimeError as exc:
            raise DeviceError(f"Failed to allocate population buffers on {resolved}: {exc}") from exc

        logger.info(
            "Created population of %d point neurons on %s (%d workgroups of %d lanes, dt=%.4g ms)",
            population_size, resolved, num_workgroups, workgroup, dt,
        )
        return cls(states, constants_buffer, lane_ids, population_size, dt, constants)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def population_size(self) -> int:
        return self._population_size

    @property
    def device(self) -> torch.device:
        return self._states.device

    @property
    def num_lanes(self) -> int:
        return self._states.shape[0]

    @property
    def num_workgroups(self) -> int:
        return self.num_lanes // GlobalConfig.WORKGROUP_SIZE

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("GpuExecutionBackend is closed")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def set_external_currents(self, values: Sequence[float]) -> None:
        """Overwrite each neuron's external current (pA).

        The state buffer is copied to the host, the current field of every
        record is replaced, and the buffer is written back.

        Raises:
            PopulationSizeError: If ``values`` is not one-dimensional or
                ``len(values) != population_size``
        """
        self._check_open()
        values = np.asarray(values, dtype=np.float32)
        if values.ndim != 1:
            raise PopulationSizeError(
                f"external currents: expected a flat array of {self._population_size} values, "
                f"got shape {values.shape}"
            )
        validate_array_length(values, self._population_size, "external currents")

        host = self._states.detach().cpu().numpy().copy()
        records = layout.pack_records(host)
        records["external_current"][: self._population_size] = values
        self._states.copy_(torch.from_numpy(layout.unpack_records(records)).to(self.device))

    def step(self) -> None:
        """Dispatch one kernel invocation over all lanes."""
        self._check_open()
        kernel.update_neurons(self._states, self._constants, self._lane_ids)
        self.steps_taken += 1
        logger.debug(
            "Dispatched update_neurons: %d workgroups, step %d", self.num_workgroups, self.steps_taken
        )

    def read_voltages(self) -> np.ndarray:
        """Blocking device-to-host copy of all voltages (mV)."""
        self._check_open()
        return self._states[: self._population_size, layout.VOLTAGE].detach().cpu().numpy().copy()

    def read_spikes(self) -> np.ndarray:
        self._check_open()
        spikes = self._states[: self._population_size, layout.SPIKE] > 0.5
        return spikes.cpu().numpy()

    def read_states(self) -> np.ndarray:
        """Blocking copy of every neuron's full record as a structured array."""
        self._check_open()
        host = self._states[: self._population_size].detach().cpu().numpy().copy()
        return layout.pack_records(host)

    def close(self) -> None:
        """Release the device buffers; the handle is unusable afterwards."""
        if self._closed:
            return
        device = self.device
        self._states = self._constants = self._lane_ids = None
        self._closed = True
        if device.type == "cuda":
            torch.cuda.empty_cache()

    def __enter__(self) -> "GpuExecutionBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
