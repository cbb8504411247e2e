"""
Population kernel: one Hodgkin-Huxley point-neuron update per lane.

``update_neurons`` is the kernel entry point. It reads and writes the state
buffer (binding 0, ``[n_lanes, 8]`` float32 laid out as
``layout.NEURON_FIELDS``) and reads the constants buffer (binding 1, twelve
4-byte words laid out as ``layout.CONSTANTS_DTYPE``). ``n_lanes`` is a whole
number of 256-lane workgroups; lanes at or past ``num_neurons`` are masked
and keep their contents.

Per lane, with the pre-step voltage V:

    I_ion = g_na·m³h·(V - E_na) + g_k·n⁴·(V - E_k)
          + g_ca·m_ca²·h_ca·(V - E_ca) + g_leak·(V - E_leak)
    V'    = V + dt · (I_ext - I_ion) / C
    gates advance by forward Euler evaluated at V
    spike = 1 if V' ≥ threshold else 0

The kinetics are the HH_NA, HH_K and CA_L models of the channel library,
rewritten over tensors. No host synchronization happens inside the kernel.
"""

from __future__ import annotations

import torch

from neurocable.backends import layout

_EXP_LIMIT = 80.0


def _exp(x: torch.Tensor) -> torch.Tensor:
    return torch.exp(torch.clamp(x, max=_EXP_LIMIT))


def _vtrap(a: float, x: torch.Tensor, k: float) -> torch.Tensor:
    """a·x / (1 - exp(-x/k)), replaced by its expansion near x = 0."""
    ratio = x / k
    near_zero = ratio.abs() < 1e-6
    safe_ratio = torch.where(near_zero, torch.ones_like(ratio), ratio)
    regular = a * k * safe_ratio / (-torch.expm1(-torch.clamp(safe_ratio, min=-_EXP_LIMIT)))
    return torch.where(near_zero, a * k * (1.0 + ratio / 2.0), regular)


def _boltzmann(v: torch.Tensor, v_half: float, k: float) -> torch.Tensor:
    return 1.0 / (1.0 + _exp(-(v - v_half) / k))


def update_neurons(states: torch.Tensor, constants: torch.Tensor, lane_ids: torch.Tensor) -> None:
    """Advance every active lane of ``states`` by one step, in place.

    Args:
        states: [n_lanes, 8] float32 state buffer
        constants: [12] float32 constants buffer (``num_neurons`` holds uint32 bits)
        lane_ids: [n_lanes] int32 lane indices
    """
    dt = constants[layout.CONSTANT_INDEX["dt"]]
    num_neurons = constants[1:2].view(torch.int32)
    g_na = constants[layout.CONSTANT_INDEX["g_na"]]
    g_k = constants[layout.CONSTANT_INDEX["g_k"]]
    g_ca = constants[layout.CONSTANT_INDEX["g_ca"]]
    g_leak = constants[layout.CONSTANT_INDEX["g_leak"]]
    e_na = constants[layout.CONSTANT_INDEX["e_na"]]
    e_k = constants[layout.CONSTANT_INDEX["e_k"]]
    e_ca = constants[layout.CONSTANT_INDEX["e_ca"]]
    e_leak = constants[layout.CONSTANT_INDEX["e_leak"]]
    capacitance = constants[layout.CONSTANT_INDEX["capacitance"]]
    threshold = constants[layout.CONSTANT_INDEX["spike_threshold"]]

    v = states[:, layout.VOLTAGE]
    m = states[:, layout.NA_M]
    h = states[:, layout.NA_H]
    n = states[:, layout.K_N]
    ca_m = states[:, layout.CA_M]
    ca_h = states[:, layout.CA_H]
    i_ext = states[:, layout.EXTERNAL_CURRENT]

    # Phase 1: currents from the pre-step snapshot
    i_ion = (
        g_na * m ** 3 * h * (v - e_na)
        + g_k * n ** 4 * (v - e_k)
        + g_ca * ca_m ** 2 * ca_h * (v - e_ca)
        + g_leak * (v - e_leak)
    )
    v_new = v + dt * (i_ext - i_ion) / capacitance

    # HH_NA
    alpha_m = _vtrap(0.1, v + 40.0, 10.0)
    beta_m = 4.0 * _exp(-(v + 65.0) / 18.0)
    alpha_h = 0.07 * _exp(-(v + 65.0) / 20.0)
    beta_h = 1.0 / (1.0 + _exp(-(v + 35.0) / 10.0))
    # HH_K
    alpha_n = _vtrap(0.01, v + 55.0, 10.0)
    beta_n = 0.125 * _exp(-(v + 65.0) / 80.0)
    # CA_L
    ca_m_inf = _boltzmann(v, -20.0, 6.667)
    ca_h_inf = _boltzmann(v, -50.0, -5.0)

    updated = torch.stack(
        (
            v_new,
            m + dt * (alpha_m * (1.0 - m) - beta_m * m),
            h + dt * (alpha_h * (1.0 - h) - beta_h * h),
            n + dt * (alpha_n * (1.0 - n) - beta_n * n),
            ca_m + dt * (ca_m_inf - ca_m) / 0.5,
            ca_h + dt * (ca_h_inf - ca_h) / 20.0,
            i_ext,
            (v_new >= threshold).to(states.dtype),
        ),
        dim=1,
    )

    # Phase 2: commit active lanes only
    active = (lane_ids < num_neurons).unsqueeze(1)
    states.copy_(torch.where(active, updated, states))
