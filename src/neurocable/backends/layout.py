"""
Fixed device record layouts shared by the host driver and the population kernel.

Every point neuron occupies one ``NEURON_RECORD_DTYPE`` record (eight float32
fields, 32 bytes). Shared parameters travel in one ``CONSTANTS_DTYPE``
record (twelve 4-byte fields, 48 bytes). On the device the state buffer is a
``[n_lanes, 8]`` float32 tensor whose columns follow ``NEURON_FIELDS``.

The kernel indexes columns by position, so the field order here and the
column constants below are one contract: changing either means changing the
kernel.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from neurocable.errors import LayoutError
from neurocable.global_config import GlobalConfig

NEURON_FIELDS = (
    "voltage",
    "na_m",
    "na_h",
    "k_n",
    "ca_m",
    "ca_h",
    "external_current",
    "spike",
)

NEURON_RECORD_DTYPE = np.dtype([(name, np.float32) for name in NEURON_FIELDS])

FIELD_INDEX: Dict[str, int] = {name: i for i, name in enumerate(NEURON_FIELDS)}
VOLTAGE = FIELD_INDEX["voltage"]
NA_M = FIELD_INDEX["na_m"]
NA_H = FIELD_INDEX["na_h"]
K_N = FIELD_INDEX["k_n"]
CA_M = FIELD_INDEX["ca_m"]
CA_H = FIELD_INDEX["ca_h"]
EXTERNAL_CURRENT = FIELD_INDEX["external_current"]
SPIKE = FIELD_INDEX["spike"]

CONSTANTS_FIELDS = (
    ("dt", np.float32),
    ("num_neurons", np.uint32),
    ("g_na", np.float32),
    ("g_k", np.float32),
    ("g_ca", np.float32),
    ("g_leak", np.float32),
    ("e_na", np.float32),
    ("e_k", np.float32),
    ("e_ca", np.float32),
    ("e_leak", np.float32),
    ("capacitance", np.float32),
    ("spike_threshold", np.float32),
)

CONSTANTS_DTYPE = np.dtype(list(CONSTANTS_FIELDS))

CONSTANT_INDEX: Dict[str, int] = {name: i for i, (name, _) in enumerate(CONSTANTS_FIELDS)}


def validate_layout(dtype: np.dtype, alignment: int = GlobalConfig.MIN_ALIGNMENT_BYTES) -> None:
    """Check that ``dtype`` can be handed to the kernel as packed 4-byte words.

    Raises:
        LayoutError: If the record size is not a multiple of ``alignment``,
            a field is not 4 bytes wide, or the fields are not densely packed
    """
    if dtype.fields is None:
        raise LayoutError(f"Expected a structured record dtype, got {dtype}")
    offset = 0
    for name in dtype.names:
        field_dtype, field_offset = dtype.fields[name][:2]
        if field_dtype.itemsize != 4:
            raise LayoutError(f"Field {name!r} is {field_dtype.itemsize} bytes, expected 4")
        if field_offset != offset:
            raise LayoutError(f"Field {name!r} at offset {field_offset}, expected {offset} (padding)")
        offset += 4
    if dtype.itemsize % alignment != 0:
        raise LayoutError(
            f"Record size {dtype.itemsize} bytes is not a multiple of the "
            f"{alignment}-byte device alignment"
        )


def pack_records(array: np.ndarray, dtype: np.dtype = NEURON_RECORD_DTYPE) -> np.ndarray:
    """View a C-contiguous ``[n, n_fields]`` float32 array as ``n`` structured records."""
    array = np.ascontiguousarray(array, dtype=np.float32)
    return array.view(dtype).reshape(array.shape[0])


def unpack_records(records: np.ndarray) -> np.ndarray:
    """View structured records as a ``[n, n_fields]`` float32 array."""
    return records.view(np.float32).reshape(records.shape[0], -1)
