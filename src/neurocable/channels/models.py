"""
Ion Channel Library - closed set of gating models dispatched by kind.

Every channel is an ``IonChannel`` value: a frozen record holding the kind,
maximal conductance and temperature parameters. All kinetics live in plain
functions looked up from ``_CHANNEL_TABLE`` by ``ChannelKind``; channels hold
no mutable state, so the same instance can be evaluated for any number of
compartments or neurons concurrently.

Conductance Model:
==================
    g = g_max · m^p · h^q            (voltage-gated kinds)
    g = g_max · m · B(V, [Mg²⁺])     (NMDA, m = ligand-binding fraction)

where B is the Jahr-Stevens magnesium block.

Gate Integration:
=================
Each gate is described at a given voltage either by rates (α, β) or by a
steady state and time constant (x∞, τ). ``update_state`` advances every gate
with one forward Euler step after applying the Q10 factor (rates multiplied,
time constants divided). Results are not clamped; choose dt with
``neurocable.integration.stability.max_stable_dt``.

Channel Kinds:
==============
- HH_NA, HH_K: classic squid-axon Hodgkin-Huxley sodium and delayed rectifier
- CA_L: high-threshold L-type calcium (HH-era fit)
- NMDA: glutamate-gated, Mg²⁺ blocked
- KA: transient A-type potassium
- NAV1_1, NAV1_6: somatic and axon-initial-segment sodium subtypes
- KV1_1, KV3_1, KV4_2, KV7_M: potassium subtypes (D-type, fast, A-type, M)
- CAV1_2, CAV2_1, CAV2_2, CAV3_1: L, P/Q, N and T-type calcium
- SK, BK: calcium-activated potassium
- HCN: hyperpolarization-activated cation (h-current)

References:
-----------
- Hodgkin & Huxley (1952): J Physiol 117:500-544
- Connor & Stevens (1971): A-current kinetics
- Jahr & Stevens (1990): J Neurosci 10:3178-3182
- Hille (2001): Ion Channels of Excitable Membranes
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union

from neurocable.channels.constants import (
    BK_CA_HALF_UM,
    CA_DECAY_TAU_MS,
    CA_INFLUX_RATE,
    CA_INFLUX_THRESHOLD_MV,
    CA_REST_UM,
    E_CA,
    E_HCN,
    E_K,
    E_NA,
    E_NMDA,
    MG_BLOCK_HALF_MM,
    MG_BLOCK_SLOPE,
    MG_CONCENTRATION_MM,
    NMDA_KD_MM,
    NMDA_TAU_MS,
    Q10_CAV,
    Q10_KV,
    Q10_NAV,
    Q10_SLOW,
    Q10_UNITY,
    SK_HILL,
    SK_KD_UM,
    SK_TAU_MS,
    T_REFERENCE,
)
from neurocable.channels.kinetics import (
    boltzmann,
    hill,
    q10_factor,
    rate_step,
    relax_step,
    safe_exp,
    vtrap,
)
from neurocable.channels.state import ChannelState
from neurocable.errors import ConfigurationError, validate_finite, validate_positive
from neurocable.global_config import GlobalConfig
from neurocable.units import Conductance, Current, TimeMS, Voltage, conductance_to_current


class ChannelKind(Enum):
    """Closed set of supported ion channel kinds."""

    HH_NA = "hh_na"
    HH_K = "hh_k"
    CA_L = "ca_l"
    NMDA = "nmda"
    KA = "ka"
    NAV1_1 = "nav1_1"
    NAV1_6 = "nav1_6"
    KV1_1 = "kv1_1"
    KV3_1 = "kv3_1"
    KV4_2 = "kv4_2"
    KV7_M = "kv7_m"
    CAV1_2 = "cav1_2"
    CAV2_1 = "cav2_1"
    CAV2_2 = "cav2_2"
    CAV3_1 = "cav3_1"
    SK = "sk"
    BK = "bk"
    HCN = "hcn"

    @classmethod
    def parse(cls, key: Union["ChannelKind", str]) -> "ChannelKind":
        """Resolve a kind from an enum member or its (case-insensitive) name.

        Raises:
            ConfigurationError: If ``key`` names no known channel kind
        """
        if isinstance(key, cls):
            return key
        if isinstance(key, str):
            try:
                return cls(key.lower())
            except ValueError:
                pass
        valid = ", ".join(kind.value for kind in cls)
        raise ConfigurationError(f"Unknown channel kind {key!r}. Valid kinds: {valid}")


def mg_block(voltage: Voltage, mg_concentration: float = MG_CONCENTRATION_MM) -> float:
    """Fraction of NMDA receptors not blocked by extracellular Mg²⁺.

    B(V) = 1 / (1 + ([Mg²⁺] / 3.57) · exp(-0.062 · V))

    Monotonically increasing in V; about 0.04 at -70 mV and 0.78 at 0 mV for
    1 mM Mg²⁺.
    """
    return 1.0 / (1.0 + (mg_concentration / MG_BLOCK_HALF_MM) * safe_exp(-MG_BLOCK_SLOPE * voltage))


# =============================================================================
# GATE DESCRIPTIONS
# =============================================================================


class _Gate(NamedTuple):
    """One gate at a fixed voltage: (α, β) if ``rate_form`` else (x∞, τ)."""

    first: float
    second: float
    rate_form: bool

    def advance(self, x: float, dt: float, phi: float) -> float:
        if self.rate_form:
            return rate_step(x, phi * self.first, phi * self.second, dt)
        return relax_step(x, self.first, self.second / phi, dt)

    def steady(self) -> float:
        if self.rate_form:
            total = self.first + self.second
            return self.first / total if total > 0.0 else 0.0
        return self.first

    def speed(self, phi: float) -> float:
        """Relaxation rate (1/ms) of this gate after temperature scaling."""
        if self.rate_form:
            return phi * (self.first + self.second)
        return phi / self.second


def _rate(alpha: float, beta: float) -> _Gate:
    return _Gate(alpha, beta, True)


def _relax(x_inf: float, tau: float) -> _Gate:
    return _Gate(x_inf, tau, False)


GateFn = Callable[[float, ChannelState, float], Tuple[_Gate, Optional[_Gate]]]


class _ChannelSpec(NamedTuple):
    gates: GateFn
    m_power: int
    inactivating: bool
    reversal: float
    q10: float
    calcium: bool = False
    mg_blocked: bool = False


# =============================================================================
# PER-KIND KINETICS
# =============================================================================


def _hh_na_gates(v, state, ligand):
    m = _rate(vtrap(0.1, v + 40.0, 10.0), 4.0 * safe_exp(-(v + 65.0) / 18.0))
    h = _rate(0.07 * safe_exp(-(v + 65.0) / 20.0), 1.0 / (1.0 + safe_exp(-(v + 35.0) / 10.0)))
    return m, h


def _hh_k_gates(v, state, ligand):
    n = _rate(vtrap(0.01, v + 55.0, 10.0), 0.125 * safe_exp(-(v + 65.0) / 80.0))
    return n, None


def _ca_l_gates(v, state, ligand):
    return (
        _relax(boltzmann(v, -20.0, 6.667), 0.5),
        _relax(boltzmann(v, -50.0, -5.0), 20.0),
    )


def _nmda_gates(v, state, ligand):
    bound = max(ligand, 0.0)
    return _relax(bound / (bound + NMDA_KD_MM), NMDA_TAU_MS), None


def _ka_gates(v, state, ligand):
    tau_m = 0.34 + 0.92 * safe_exp(-0.091 * (v + 66.0))
    tau_h = 8.0 + 49.0 / (1.0 + safe_exp(0.1 * (v + 70.0)))
    return (
        _relax(boltzmann(v, -50.0, 7.0), tau_m),
        _relax(boltzmann(v, -80.0, -9.0), tau_h),
    )


def _nav1_1_gates(v, state, ligand):
    m = _rate(vtrap(0.182, v + 38.0, 6.0), vtrap(0.124, -(v + 38.0), 6.0))
    tau_h = 1.0 / (vtrap(0.024, v + 50.0, 5.0) + vtrap(0.0091, -(v + 75.0), 5.0))
    return m, _relax(boltzmann(v, -50.0, -4.0), tau_h)


def _nav1_6_gates(v, state, ligand):
    tau_m = 0.1 + 0.4 / (1.0 + abs(v + 35.0) / 10.0)
    tau_h = 1.5 + 1.0 / (1.0 + safe_exp((v + 60.0) / 15.0))
    return (
        _relax(boltzmann(v, -30.0, 6.0), tau_m),
        _relax(boltzmann(v, -60.0, -6.5), tau_h),
    )


def _kv1_1_gates(v, state, ligand):
    tau = 1.0 + 4.0 / (1.0 + safe_exp((v + 30.0) / 20.0))
    return _relax(boltzmann(v, -15.0, 8.0), tau), None


def _kv3_1_gates(v, state, ligand):
    # Fast delayed rectifier of fast-spiking interneurons
    tau = 0.5 + 2.0 / (1.0 + safe_exp((v + 40.0) / 15.0))
    return _relax(boltzmann(v, -10.0, 16.0), tau), None


def _kv4_2_gates(v, state, ligand):
    tau_m = 1.0 + 10.0 / (1.0 + safe_exp((v + 60.0) / 20.0))
    tau_h = 15.0 + 40.0 / (1.0 + safe_exp((v + 70.0) / 15.0))
    return (
        _relax(boltzmann(v, -60.0, 8.5), tau_m),
        _relax(boltzmann(v, -78.0, -6.0), tau_h),
    )


def _kv7_m_gates(v, state, ligand):
    return _relax(boltzmann(v, -35.0, 10.0), 100.0), None


def _high_voltage_cav(m_half: float, m_slope: float, h_half: float, h_slope: float,
                      tau_m: float, tau_h: float) -> GateFn:
    """Gate function for a high-voltage-activated calcium subtype with fixed taus."""

    def gates(v, state, ligand):
        return (
            _relax(boltzmann(v, m_half, m_slope), tau_m),
            _relax(boltzmann(v, h_half, h_slope), tau_h),
        )

    return gates


def _cav3_1_gates(v, state, ligand):
    # T-type: low threshold, transient
    tau_m = 1.0 + 10.0 / (1.0 + safe_exp((v + 60.0) / 15.0))
    tau_h = 20.0 + 50.0 / (1.0 + safe_exp((v + 70.0) / 10.0))
    return (
        _relax(boltzmann(v, -52.0, 7.4), tau_m),
        _relax(boltzmann(v, -80.0, -5.0), tau_h),
    )


def _sk_gates(v, state, ligand):
    return _relax(hill(state.ca_i, SK_KD_UM, SK_HILL), SK_TAU_MS), None


def _bk_gates(v, state, ligand):
    # Calcium shifts the activation curve toward hyperpolarized voltages
    ca_ratio = state.ca_i / BK_CA_HALF_UM
    v_half = -20.0 + 80.0 / (1.0 + ca_ratio * ca_ratio)
    return _relax(boltzmann(v, v_half, 15.0), 1.0), None


def _hcn_gates(v, state, ligand):
    tau = 100.0 + 500.0 / (1.0 + safe_exp((v + 70.0) / 10.0))
    return _relax(boltzmann(v, -75.0, -5.5), tau), None


_CHANNEL_TABLE: Dict[ChannelKind, _ChannelSpec] = {
    ChannelKind.HH_NA: _ChannelSpec(_hh_na_gates, 3, True, E_NA, Q10_UNITY),
    ChannelKind.HH_K: _ChannelSpec(_hh_k_gates, 4, False, E_K, Q10_UNITY),
    ChannelKind.CA_L: _ChannelSpec(_ca_l_gates, 2, True, E_CA, Q10_UNITY),
    ChannelKind.NMDA: _ChannelSpec(_nmda_gates, 1, False, E_NMDA, Q10_UNITY, mg_blocked=True),
    ChannelKind.KA: _ChannelSpec(_ka_gates, 3, True, E_K, Q10_UNITY),
    ChannelKind.NAV1_1: _ChannelSpec(_nav1_1_gates, 3, True, E_NA, Q10_NAV),
    ChannelKind.NAV1_6: _ChannelSpec(_nav1_6_gates, 3, True, E_NA, Q10_NAV),
    ChannelKind.KV1_1: _ChannelSpec(_kv1_1_gates, 4, False, E_K, Q10_KV),
    ChannelKind.KV3_1: _ChannelSpec(_kv3_1_gates, 4, False, E_K, Q10_KV),
    ChannelKind.KV4_2: _ChannelSpec(_kv4_2_gates, 4, True, E_K, Q10_KV),
    ChannelKind.KV7_M: _ChannelSpec(_kv7_m_gates, 1, False, E_K, Q10_SLOW),
    ChannelKind.CAV1_2: _ChannelSpec(
        _high_voltage_cav(-10.0, 6.0, -30.0, -12.0, 5.0, 50.0), 2, True, E_CA, Q10_CAV,
    ),
    ChannelKind.CAV2_1: _ChannelSpec(
        _high_voltage_cav(-5.0, 7.0, -25.0, -8.0, 3.0, 25.0), 2, True, E_CA, Q10_CAV,
    ),
    ChannelKind.CAV2_2: _ChannelSpec(
        _high_voltage_cav(-5.0, 8.0, -30.0, -10.0, 2.5, 30.0), 2, True, E_CA, Q10_CAV,
    ),
    ChannelKind.CAV3_1: _ChannelSpec(_cav3_1_gates, 2, True, E_CA, Q10_CAV),
    ChannelKind.SK: _ChannelSpec(_sk_gates, 1, False, E_K, Q10_UNITY, calcium=True),
    ChannelKind.BK: _ChannelSpec(_bk_gates, 2, False, E_K, Q10_KV, calcium=True),
    ChannelKind.HCN: _ChannelSpec(_hcn_gates, 1, False, E_HCN, Q10_SLOW),
}


# =============================================================================
# INTRACELLULAR CALCIUM
# =============================================================================


def _calcium_influx(voltage: float) -> float:
    return CA_INFLUX_RATE if voltage > CA_INFLUX_THRESHOLD_MV else 0.0


def _advance_calcium(voltage: float, ca_i: float, dt: float) -> float:
    """First-order decay toward the resting level plus depolarization-driven influx."""
    return ca_i + dt * (_calcium_influx(voltage) - (ca_i - CA_REST_UM) / CA_DECAY_TAU_MS)


def _steady_calcium(voltage: float) -> float:
    return CA_REST_UM + _calcium_influx(voltage) * CA_DECAY_TAU_MS


# =============================================================================
# CHANNEL VALUE TYPE
# =============================================================================


@dataclass(frozen=True)
class IonChannel:
    """One ion channel population of a compartment.

    Attributes:
        kind: Channel kind (``ChannelKind`` or its name)
        g_max: Maximal conductance (nS), i.e. density × surface area
        reversal: Reversal potential (mV); defaults per kind
        q10: Temperature coefficient; defaults per kind
        reference_temperature: Temperature the kinetics were fitted at (°C)
        mg_concentration: Extracellular Mg²⁺ (mM), used by NMDA only

    Example:
        >>> na = IonChannel(ChannelKind.HH_NA, g_max=120.0)
        >>> state = na.steady_state(-65.0)
        >>> state = na.update_state(-65.0, state, dt=0.01)
        >>> na.conductance(-65.0, state)
    """

    kind: ChannelKind
    g_max: Conductance
    reversal: Optional[Voltage] = None
    q10: Optional[float] = None
    reference_temperature: float = T_REFERENCE
    mg_concentration: float = MG_CONCENTRATION_MM

    def __post_init__(self) -> None:
        kind = ChannelKind.parse(self.kind)
        object.__setattr__(self, "kind", kind)
        spec = _CHANNEL_TABLE[kind]

        validate_positive(self.g_max, "g_max", allow_zero=True)
        if self.reversal is None:
            object.__setattr__(self, "reversal", spec.reversal)
        validate_finite(self.reversal, "reversal")
        if self.q10 is None:
            object.__setattr__(self, "q10", spec.q10)
        validate_positive(self.q10, "q10")
        validate_finite(self.reference_temperature, "reference_temperature")
        validate_positive(self.mg_concentration, "mg_concentration", allow_zero=True)

    @property
    def _spec(self) -> _ChannelSpec:
        return _CHANNEL_TABLE[self.kind]

    def open_fraction(self, voltage: Voltage, state: ChannelState) -> float:
        spec = self._spec
        fraction = state.m ** spec.m_power
        if spec.inactivating:
            fraction *= state.h
        if spec.mg_blocked:
            fraction *= mg_block(voltage, self.mg_concentration)
        return fraction

    def conductance(self, voltage: Voltage, state: ChannelState, ligand: float = 0.0) -> Conductance:
        """Instantaneous conductance (nS). Pure; never mutates ``state``.

        ``ligand`` is accepted for interface uniformity; the NMDA binding
        fraction is already carried in ``state.m``.
        """
        return Conductance(self.g_max * self.open_fraction(voltage, state))

    def current(self, voltage: Voltage, state: ChannelState, ligand: float = 0.0) -> Current:
        """Outward-positive ionic current (pA)."""
        return conductance_to_current(
            self.conductance(voltage, state, ligand), voltage, self.reversal_potential(state)
        )

    def reversal_potential(self, state: Optional[ChannelState] = None) -> Voltage:
        """Reversal potential (mV).

        Constant for every kind. Calcium-activated channels reflect the
        instantaneous calcium level through their activation (SK) or
        activation threshold (BK) rather than through the reversal.
        """
        return self.reversal

    def update_state(
        self,
        voltage: Voltage,
        state: ChannelState,
        dt: TimeMS,
        ligand: float = 0.0,
        temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C,
    ) -> ChannelState:
        """Advance all gates by one forward Euler step of ``dt`` ms.

        Gates are evaluated at ``voltage`` and the calcium level carried in
        ``state``. The result is not clamped to [0, 1].
        """
        spec = self._spec
        phi = q10_factor(self.q10, temperature, self.reference_temperature)
        m_gate, h_gate = spec.gates(voltage, state, ligand)

        m = m_gate.advance(state.m, dt, phi)
        h = h_gate.advance(state.h, dt, phi) if h_gate is not None else state.h
        ca_i = _advance_calcium(voltage, state.ca_i, dt) if spec.calcium else state.ca_i
        return ChannelState(m, h, ca_i)

    def steady_state(self, voltage: Voltage, ligand: float = 0.0) -> ChannelState:
        """Gating state in equilibrium at a clamped ``voltage``."""
        spec = self._spec
        ca_i = _steady_calcium(voltage) if spec.calcium else CA_REST_UM
        m_gate, h_gate = spec.gates(voltage, ChannelState(0.0, 1.0, ca_i), ligand)
        h = h_gate.steady() if h_gate is not None else 1.0
        return ChannelState(m_gate.steady(), h, ca_i)

    def fastest_rate(
        self,
        voltage: Voltage,
        state: ChannelState,
        temperature: float = GlobalConfig.DEFAULT_TEMPERATURE_C,
        ligand: float = 0.0,
    ) -> float:
        """Largest relaxation rate (1/ms) among this channel's state variables.

        Forward Euler keeps every gate inside [0, 1] as long as
        ``dt · fastest_rate ≤ 1``.
        """
        spec = self._spec
        phi = q10_factor(self.q10, temperature, self.reference_temperature)
        m_gate, h_gate = spec.gates(voltage, state, ligand)
        rate = m_gate.speed(phi)
        if h_gate is not None:
            rate = max(rate, h_gate.speed(phi))
        if spec.calcium:
            rate = max(rate, 1.0 / CA_DECAY_TAU_MS)
        return rate
