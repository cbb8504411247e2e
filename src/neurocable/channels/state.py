"""
Gating-variable storage for channels attached to a compartment.

ChannelState is an immutable tuple, so channel models can only produce new
states, never mutate the one they were handed. A ChannelStateBank holds one
state per channel kind of a single compartment and is replaced wholesale when
the integrator commits a step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterator, Mapping, NamedTuple, Tuple

from neurocable.channels.constants import CA_REST_UM

if TYPE_CHECKING:
    from neurocable.channels.models import ChannelKind


class ChannelState(NamedTuple):
    """Gating variables of one channel in one compartment.

    Attributes:
        m: Activation gate (dimensionless, valid range [0, 1])
        h: Inactivation gate (dimensionless, valid range [0, 1]); 1.0 for
            non-inactivating channels
        ca_i: Intracellular calcium concentration (µM), only evolved by
            calcium-activated channels
    """

    m: float
    h: float = 1.0
    ca_i: float = CA_REST_UM

    def gates(self) -> Tuple[float, float]:
        """Return the dimensionless gating variables (m, h)."""
        return (self.m, self.h)


class ChannelStateBank:
    """Per-compartment mapping from channel kind to gating state.

    The set of kinds is fixed at construction; ``commit`` replaces every state
    at once and refuses to add or drop kinds.
    """

    def __init__(self, states: Mapping["ChannelKind", ChannelState]):
        self._states: Dict["ChannelKind", ChannelState] = dict(states)

    def __getitem__(self, kind: "ChannelKind") -> ChannelState:
        return self._states[kind]

    def __contains__(self, kind: object) -> bool:
        return kind in self._states

    def __iter__(self) -> Iterator["ChannelKind"]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        entries = ", ".join(f"{kind.name}={state}" for kind, state in self._states.items())
        return f"ChannelStateBank({entries})"

    def items(self):
        return self._states.items()

    def copy(self) -> "ChannelStateBank":
        """Snapshot of the bank; later commits do not affect it."""
        return ChannelStateBank(self._states)

    def as_dict(self) -> Dict["ChannelKind", ChannelState]:
        return dict(self._states)

    def commit(self, new_states: Mapping["ChannelKind", ChannelState]) -> None:
        """Replace all states at once.

        Raises:
            KeyError: If ``new_states`` does not cover exactly the bank's kinds
        """
        if set(new_states) != set(self._states):
            missing = set(self._states) - set(new_states)
            extra = set(new_states) - set(self._states)
            raise KeyError(f"State commit mismatch: missing={missing}, unexpected={extra}")
        self._states = dict(new_states)
