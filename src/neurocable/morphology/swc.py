"""
SWC morphology import (NeuroMorpho.org reconstructions).

Each non-comment line of an SWC file describes one traced point:

    # n  T  x     y    z     R    parent
    1    1  0.0   0.0  0.0   10.0 -1      soma (root)
    2    3  0.0   0.0  15.0  2.0  1       basal dendrite
    3    3  5.0   0.0  20.0  1.5  2
    4    2  0.0 -10.0  0.0   0.5  1       axon

Point types: 1 soma, 2 axon, 3 basal dendrite, 4 apical dendrite; anything
else is treated as generic dendrite.

Conversion to compartments:
- the root point becomes a soma cylinder with length = diameter = 2R, whose
  lateral area equals the sphere surface 4πR²
- every other point becomes one compartment spanning the segment to its
  parent point (length = distance, diameter = 2R)
- compartments are numbered breadth-first from the root
"""

from __future__ import annotations

import logging
import math
from collections import deque
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple, Union

from neurocable.errors import ConfigurationError, MorphologyError
from neurocable.morphology.builders import (
    DENDRITE_DENSITIES,
    HH_SOMA_DENSITIES,
    Densities,
    TopologyBuilder,
)
from neurocable.morphology.compartment import CompartmentKind, CompartmentParams
from neurocable.morphology.topology import NeuronTopology

logger = logging.getLogger(__name__)

SWC_SOMA = 1
SWC_AXON = 2
SWC_BASAL = 3
SWC_APICAL = 4

_KIND_BY_TYPE = {
    SWC_SOMA: CompartmentKind.SOMA,
    SWC_AXON: CompartmentKind.AXON,
    SWC_BASAL: CompartmentKind.BASAL_DENDRITE,
    SWC_APICAL: CompartmentKind.APICAL_DENDRITE,
}

DEFAULT_DENSITIES_BY_KIND: Dict[CompartmentKind, Densities] = {
    CompartmentKind.SOMA: HH_SOMA_DENSITIES,
    CompartmentKind.AXON: HH_SOMA_DENSITIES,
}


class SWCPoint(NamedTuple):
    """One traced point of a reconstruction (coordinates and radius in µm)."""

    id: int
    point_type: int
    x: float
    y: float
    z: float
    radius: float
    parent_id: int

    def distance_to(self, other: "SWCPoint") -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)


def compartment_kind_for(point_type: int) -> CompartmentKind:
    return _KIND_BY_TYPE.get(point_type, CompartmentKind.DENDRITE)


class SWCMorphology:
    """Parsed SWC reconstruction.

    Example:
        >>> morph = SWCMorphology.from_file("l5_pyramidal.swc")
        >>> morph.total_dendritic_length(), morph.count_branch_points()
        >>> topology = morph.to_topology()
    """

    def __init__(self, points: Iterable[SWCPoint], name: str = "unknown"):
        self.points: List[SWCPoint] = list(points)
        self.name = name
        self._by_id: Dict[int, SWCPoint] = {}
        for point in self.points:
            if point.id in self._by_id:
                raise MorphologyError(f"{name}: duplicate SWC point id {point.id}")
            self._by_id[point.id] = point

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        return f"SWCMorphology(name={self.name!r}, n_points={len(self)})"

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SWCMorphology":
        """Parse an SWC file; the morphology is named after the file stem.

        Raises:
            MorphologyError: If the file cannot be read or a line is malformed
        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                lines = handle.readlines()
        except OSError as exc:
            raise MorphologyError(f"Cannot read SWC file {path}: {exc}") from exc
        return cls.from_lines(lines, name=path.stem)

    @classmethod
    def from_lines(cls, lines: Iterable[str], name: str = "unknown") -> "SWCMorphology":
        points = []
        for line_number, raw in enumerate(lines, start=1):
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            if len(parts) < 7:
                raise MorphologyError(
                    f"{name}:{line_number}: expected 7 columns (n T x y z R parent), got {len(parts)}"
                )
            try:
                point = SWCPoint(
                    id=int(parts[0]),
                    point_type=int(parts[1]),
                    x=float(parts[2]),
                    y=float(parts[3]),
                    z=float(parts[4]),
                    radius=float(parts[5]),
                    parent_id=int(parts[6]),
                )
            except ValueError as exc:
                raise MorphologyError(f"{name}:{line_number}: {exc}") from exc
            points.append(point)
        if not points:
            raise MorphologyError(f"{name}: SWC data contains no points")
        return cls(points, name=name)

    # =========================================================================
    # MORPHOMETRICS
    # =========================================================================

    def parent_of(self, point: SWCPoint) -> Optional[SWCPoint]:
        return self._by_id.get(point.parent_id)

    def _dendritic_segments(self) -> Iterator[Tuple[SWCPoint, SWCPoint]]:
        for point in self.points:
            if point.point_type not in (SWC_BASAL, SWC_APICAL):
                continue
            parent = self.parent_of(point)
            if parent is not None:
                yield point, parent

    def total_dendritic_length(self) -> float:
        """Summed length (µm) of basal and apical dendritic segments."""
        return sum((point.distance_to(parent) for point, parent in self._dendritic_segments()), 0.0)

    def total_dendritic_surface_area(self) -> float:
        """Summed lateral membrane area (µm²) of basal and apical segments.

        Each segment is treated as a cylinder with the mean diameter of its
        two end points; segments leaving the soma or axon use their own
        diameter throughout.
        """
        area = 0.0
        for point, parent in self._dendritic_segments():
            dendritic_parent = parent.point_type in (SWC_BASAL, SWC_APICAL)
            parent_radius = parent.radius if dendritic_parent else point.radius
            mean_diameter = point.radius + parent_radius
            area += math.pi * mean_diameter * point.distance_to(parent)
        return area

    def count_branch_points(self) -> int:
        """Number of points with more than one child."""
        children_count: Dict[int, int] = {}
        for point in self.points:
            if point.parent_id >= 0:
                children_count[point.parent_id] = children_count.get(point.parent_id, 0) + 1
        return sum(1 for count in children_count.values() if count > 1)

    # =========================================================================
    # CONVERSION
    # =========================================================================

    def to_topology(
        self,
        densities_by_kind: Optional[Mapping[CompartmentKind, Densities]] = None,
        params: Optional[CompartmentParams] = None,
        **overrides,
    ) -> NeuronTopology:
        """Build a compartment tree with one compartment per SWC point.

        Args:
            densities_by_kind: Channel densities per compartment kind; kinds
                not listed get the default dendritic complement
            params: Passive membrane parameters
            **overrides: Forwarded to ``TopologyBuilder``

        Raises:
            MorphologyError: On zero or several roots, dangling parents,
                points unreachable from the root, or degenerate segments
        """
        densities_by_kind = (
            DEFAULT_DENSITIES_BY_KIND if densities_by_kind is None else densities_by_kind
        )
        roots = [p for p in self.points if p.parent_id < 0]
        if len(roots) != 1:
            raise MorphologyError(f"{self.name}: expected exactly one root point, found {len(roots)}")

        children: Dict[int, List[SWCPoint]] = {}
        for point in self.points:
            if point.parent_id < 0:
                continue
            if point.parent_id not in self._by_id:
                raise MorphologyError(
                    f"{self.name}: point {point.id} references missing parent {point.parent_id}"
                )
            children.setdefault(point.parent_id, []).append(point)

        builder = TopologyBuilder(params=params, **overrides)
        index_of: Dict[int, int] = {}
        queue = deque([roots[0]])
        while queue:
            point = queue.popleft()
            parent = self.parent_of(point)
            kind = CompartmentKind.SOMA if parent is None else compartment_kind_for(point.point_type)
            diameter = 2.0 * point.radius
            length = diameter if parent is None else point.distance_to(parent)
            try:
                index_of[point.id] = builder.add_compartment(
                    kind,
                    length=length,
                    diameter=diameter,
                    parent=None if parent is None else index_of[parent.id],
                    channel_densities=densities_by_kind.get(kind, DENDRITE_DENSITIES),
                )
            except ConfigurationError as exc:
                if isinstance(exc, MorphologyError):
                    raise
                raise MorphologyError(f"{self.name}: point {point.id}: {exc}") from exc
            queue.extend(children.get(point.id, []))

        if len(index_of) != len(self.points):
            raise MorphologyError(
                f"{self.name}: {len(self.points) - len(index_of)} points are not connected to the root"
            )
        logger.info("Converted SWC morphology %s to %d compartments", self.name, len(index_of))
        return builder.build()
