"""
Property-based tests using Hypothesis.

Gate updates and steady states must stay physical for any voltage in the
physiological range and any admissible starting state.
"""

import math

import pytest
from hypothesis import given, settings, strategies as st

from neurocable.channels.models import ChannelKind, IonChannel, mg_block
from neurocable.channels.state import ChannelState


def physiological_voltages():
    """Membrane voltages in [-100, 60] mV."""
    return st.floats(min_value=-100.0, max_value=60.0, allow_nan=False, allow_infinity=False)


def gate_values():
    return st.floats(min_value=0.0, max_value=1.0, allow_nan=False, allow_infinity=False)


@st.composite
def channel_states(draw):
    """Gating state with calcium between rest and a strong transient."""
    return ChannelState(
        draw(gate_values()),
        draw(gate_values()),
        draw(st.floats(min_value=0.05, max_value=10.0, allow_nan=False)),
    )


@pytest.mark.unit
class TestChannelProperties:
    """Invariants of every channel kind over random inputs."""

    @given(
        kind=st.sampled_from(list(ChannelKind)),
        voltage=physiological_voltages(),
        state=channel_states(),
        dt=st.floats(min_value=1e-4, max_value=0.01),
        ligand=st.floats(min_value=0.0, max_value=1.0),
    )
    @settings(max_examples=300, deadline=None)
    def test_update_keeps_gates_in_unit_interval(self, kind, voltage, state, dt, ligand):
        channel = IonChannel(kind, g_max=1.0)
        new = channel.update_state(voltage, state, dt=dt, ligand=ligand)
        assert 0.0 <= new.m <= 1.0
        assert 0.0 <= new.h <= 1.0
        assert math.isfinite(new.ca_i)

    @given(kind=st.sampled_from(list(ChannelKind)), voltage=physiological_voltages(), state=channel_states())
    @settings(max_examples=200, deadline=None)
    def test_conductance_bounded_by_g_max(self, kind, voltage, state):
        channel = IonChannel(kind, g_max=2.5)
        g = channel.conductance(voltage, state)
        assert 0.0 <= g <= 2.5

    @given(low=physiological_voltages(), high=physiological_voltages())
    def test_mg_block_monotonic(self, low, high):
        if low > high:
            low, high = high, low
        assert mg_block(low) <= mg_block(high)
        assert 0.0 < mg_block(low) < 1.0
