"""
Stability checks for fixed-step explicit Euler integration.

Forward Euler keeps a first-order variable bounded only while
``dt · rate ≤ 1`` for its fastest relaxation rate. For a compartment this is
the larger of

- the fastest gating rate of any attached channel over the physiological
  voltage range (after Q10 scaling), and
- the passive membrane rate (g_leak + Σ g_axial) / C.

Nothing here runs unless asked for: the integrator only calls these checks
when ``IntegratorConfig.validate_dt`` / ``validate_state`` are enabled, and
callers may run them explicitly after any step.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Mapping, Sequence, Tuple

import numpy as np

from neurocable.channels.models import ChannelKind, IonChannel
from neurocable.channels.state import ChannelState
from neurocable.errors import ConfigurationError, NumericalDivergenceError
from neurocable.global_config import GlobalConfig
from neurocable.morphology.topology import NeuronTopology
from neurocable.units import PA_PER_NA

logger = logging.getLogger(__name__)

VOLTAGE_SCAN_STEP_MV = 1.0
MARGINAL_DT_FRACTION = 0.5


@lru_cache(maxsize=256)
def _fastest_rate_for(
    kind: ChannelKind,
    q10: float,
    reference_temperature: float,
    temperature: float,
    v_min: float,
    v_max: float,
) -> float:
    channel = IonChannel(kind, g_max=0.0, q10=q10, reference_temperature=reference_temperature)
    n_points = int(round((v_max - v_min) / VOLTAGE_SCAN_STEP_MV)) + 1
    fastest = 0.0
    for v in np.linspace(v_min, v_max, n_points):
        v = float(v)
        fastest = max(fastest, channel.fastest_rate(v, channel.steady_state(v), temperature))
    return fastest


def fastest_channel_rate(
    channel: IonChannel,
    temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C,
    voltage_range: Tuple[float, float] = GlobalConfig.STABILITY_VOLTAGE_RANGE,
) -> float:
    """Fastest gating rate (1/ms) of ``channel`` anywhere in ``voltage_range``."""
    v_min, v_max = voltage_range
    return _fastest_rate_for(
        channel.kind, channel.q10, channel.reference_temperature, temperature, v_min, v_max
    )


def passive_rate(topology: NeuronTopology, index: int) -> float:
    """Passive relaxation rate (1/ms) of compartment ``index``."""
    compartment = topology.compartments[index]
    g_total = compartment.leak_conductance
    if compartment.parent is not None:
        g_total += PA_PER_NA / compartment.axial_resistance
    for child in compartment.children:
        g_total += PA_PER_NA / topology.compartments[child].axial_resistance
    return g_total / compartment.capacitance


def max_stable_dt(
    topology: NeuronTopology,
    temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C,
    voltage_range: Tuple[float, float] = GlobalConfig.STABILITY_VOLTAGE_RANGE,
) -> float:
    """Largest dt (ms) for which every state variable of ``topology`` stays bounded."""
    fastest = 0.0
    for index, compartment in enumerate(topology.compartments):
        fastest = max(fastest, passive_rate(topology, index))
        for channel in compartment.channels.values():
            fastest = max(fastest, fastest_channel_rate(channel, temperature, voltage_range))
    return math.inf if fastest == 0.0 else 1.0 / fastest


def validate_dt(
    topology: NeuronTopology,
    dt: float,
    temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C,
) -> float:
    """Check ``dt`` against the explicit Euler bound; return the bound.

    Logs a warning when ``dt`` exceeds half the bound.

    Raises:
        ConfigurationError: If ``dt`` exceeds the stability bound
    """
    bound = max_stable_dt(topology, temperature)
    if dt > bound:
        raise ConfigurationError(
            f"dt={dt} ms exceeds the explicit Euler stability bound {bound:.4g} ms "
            f"at {temperature} °C. Reduce dt."
        )
    if dt > MARGINAL_DT_FRACTION * bound:
        logger.warning(
            "dt=%.4g ms is within a factor of 2 of the stability bound %.4g ms", dt, bound
        )
    return bound


def check_gating_bounds(states: Sequence[Mapping[ChannelKind, ChannelState]]) -> None:
    """Raise if any gating variable is NaN or outside [0, 1].

    Args:
        states: Per-compartment gating states, e.g. ``topology.gating_snapshot()``

    Raises:
        NumericalDivergenceError: Naming the first offending compartment and channel
    """
    for index, bank in enumerate(states):
        for kind, state in bank.items():
            for gate_name, value in zip(("m", "h"), state.gates()):
                if not 0.0 <= value <= 1.0:
                    raise NumericalDivergenceError(
                        f"Gating variable {kind.value}.{gate_name} of compartment {index} "
                        f"left [0, 1]: {value}. The time step is too large for this channel."
                    )
            if not math.isfinite(state.ca_i):
                raise NumericalDivergenceError(
                    f"Calcium concentration of {kind.value} in compartment {index} is {state.ca_i}"
                )


def check_finite_voltages(voltages: np.ndarray) -> None:
    """Raise if any voltage is NaN or Inf.

    Raises:
        NumericalDivergenceError: Listing the offending compartments
    """
    voltages = np.asarray(voltages)
    bad = np.flatnonzero(~np.isfinite(voltages))
    if bad.size:
        raise NumericalDivergenceError(
            f"Non-finite voltage in compartments {bad[:10].tolist()} "
            f"(values {voltages[bad[:10]].tolist()})"
        )


def check_topology(topology: NeuronTopology) -> None:
    """Run both post-step checks on the current state of ``topology``."""
    check_finite_voltages(topology.voltages())
    check_gating_bounds(topology.gating_snapshot())
