"""
Gating kinetics primitives shared by all channel kinds.

Gating variables follow first-order kinetics in one of two equivalent forms:

    rate form:   dx/dt = α(V)(1 - x) - β(V)x
    tau form:    dx/dt = (x∞(V) - x) / τ(V)

Both are advanced with a single forward Euler step. No clamping is applied:
keeping x in [0, 1] is the caller's responsibility through the time step
choice (dt·(α + β) ≤ 1, or dt/τ ≤ 1).
"""

from __future__ import annotations

import math

from neurocable.channels.constants import T_REFERENCE

# Keeps diverged states finite-or-inf instead of raising OverflowError.
_EXP_LIMIT = 700.0


def safe_exp(x: float) -> float:
    """Exponential that saturates rather than overflowing."""
    return math.exp(min(x, _EXP_LIMIT))


def q10_factor(q10: float, temperature: float, reference: float = T_REFERENCE) -> float:
    """Temperature scaling factor q10^((T - T_ref) / 10)."""
    if q10 == 1.0:
        return 1.0
    return q10 ** ((temperature - reference) / 10.0)


def boltzmann(v: float, v_half: float, k: float) -> float:
    """Steady-state activation 1 / (1 + exp(-(V - V½) / k)).

    A negative slope ``k`` gives an inactivation curve.
    """
    return 1.0 / (1.0 + safe_exp(-(v - v_half) / k))


def vtrap(a: float, x: float, k: float) -> float:
    """Rate of the form a·x / (1 - exp(-x / k)) with its removable singularity.

    At x = 0 the expression tends to a·k; a first-order expansion is used
    close to it.
    """
    if abs(x / k) < 1e-6:
        return a * k * (1.0 + x / (2.0 * k))
    return a * x / (1.0 - safe_exp(-x / k))


def hill(concentration: float, kd: float, n: float) -> float:
    """Hill binding curve c^n / (c^n + Kd^n)."""
    if concentration <= 0.0:
        return 0.0
    cn = concentration ** n
    return cn / (cn + kd ** n)


def rate_step(x: float, alpha: float, beta: float, dt: float) -> float:
    """Forward Euler step of a gate in rate form."""
    return x + dt * (alpha * (1.0 - x) - beta * x)


def relax_step(x: float, x_inf: float, tau: float, dt: float) -> float:
    """Forward Euler step of a gate in tau form."""
    return x + dt * (x_inf - x) / tau
