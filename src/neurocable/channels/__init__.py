"""
Ion channel library.

Closed set of channel kinds (``ChannelKind``) evaluated through the
``IonChannel`` value type, plus the per-compartment gating storage.
"""

from neurocable.channels.kinetics import boltzmann, hill, q10_factor, vtrap
from neurocable.channels.models import ChannelKind, IonChannel, mg_block
from neurocable.channels.state import ChannelState, ChannelStateBank

__all__ = [
    "ChannelKind",
    "IonChannel",
    "ChannelState",
    "ChannelStateBank",
    "mg_block",
    "q10_factor",
    "boltzmann",
    "vtrap",
    "hill",
]
