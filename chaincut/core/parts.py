"""
Part/Nesting Detector

Closed chains are arranged into a containment forest. A chain at even depth
is material: the roots are part shells, deeper even levels islands standing
inside a hole. A chain at odd depth is a hole cut out of the material around
it. Open chains take no part in containment; the ones lying wholly inside a
part's material are attached to it as slots.
"""

from dataclasses import dataclass, field
from typing import List

from ..tools import polygon
from .diagnostics import WarningType, report
from .parameters import validated


@dataclass
class Hole:
    chain: object
    depth: int
    holes: List["Hole"] = field(default_factory=list)

    @property
    def role(self) -> str:
        return "hole" if self.depth % 2 else "island"


@dataclass
class Part:
    id: str
    shell: object
    holes: List[Hole] = field(default_factory=list)
    slots: List[object] = field(default_factory=list)

    def chains(self):
        """
        Every closed chain of the part, shell first, depth first.
        """
        result = [self.shell]
        pending = list(reversed(self.holes))
        while pending:
            hole = pending.pop()
            result.append(hole.chain)
            pending.extend(reversed(hole.holes))
        return result


class _Region:
    def __init__(self, index, chain, tolerance):
        self.index = index
        self.chain = chain
        self.polygon = polygon.as_array(chain.tessellate(tolerance))
        self.bbox = polygon.bbox(self.polygon)
        self.area = abs(polygon.signed_area(self.polygon))
        self.perimeter = polygon.perimeter(self.polygon)
        self.depth = 0
        self.parent = None
        self.node = None
        self._interior = None

    @property
    def interior(self):
        if self._interior is None:
            self._interior = polygon.interior_point(self.polygon)
        return self._interior

    def contains(self, point) -> bool:
        return polygon.point_in_polygon(point, self.polygon)


def bbox_contains(outer, inner, tolerance=0.0) -> bool:
    return (
        outer[0] <= inner[0] + tolerance
        and outer[1] <= inner[1] + tolerance
        and outer[2] >= inner[2] - tolerance
        and outer[3] >= inner[3] - tolerance
    )


def contains_point(chain, point, tolerance=0.01) -> bool:
    """
    Winding-number test of point against the tessellated closed chain.
    """
    return polygon.point_in_polygon(point, chain.tessellate(tolerance))


def chain_contains_chain(outer, inner, tolerance=0.01) -> bool:
    """
    True if the closed chain inner lies inside the closed chain outer. Every
    sample of inner has to be inside outer or on its boundary within
    tolerance, and inner's interior point has to be inside outer.
    """
    if not outer.closed or not inner.links:
        return False
    if not bbox_contains(outer.bbox(), inner.bbox(), tolerance):
        return False
    outer_polygon = polygon.as_array(outer.tessellate(tolerance))
    samples = inner.tessellate(tolerance)
    for point in samples:
        if polygon.point_in_polygon(point, outer_polygon):
            continue
        if polygon.distance_to_boundary(point, outer_polygon) <= tolerance:
            continue
        return False
    if inner.closed:
        return polygon.point_in_polygon(polygon.interior_point(samples), outer_polygon)
    return True


def _choose_parent(region, candidates, params, warnings, channel):
    """
    Pick the innermost container. Containers of nearly equal area are told
    apart by which boundary lies farther from the region's interior point.
    """
    candidates.sort(key=lambda c: (c.area, c.index))
    best = candidates[0]
    if len(candidates) == 1:
        return best
    runner_up = candidates[1]
    mean_perimeter = (best.perimeter + runner_up.perimeter) / 2.0
    if runner_up.area - best.area > params.containment_tolerance * mean_perimeter:
        return best
    point = region.interior
    best_distance = polygon.distance_to_boundary(point, best.polygon)
    other_distance = polygon.distance_to_boundary(point, runner_up.polygon)
    if abs(best_distance - other_distance) > params.containment_tolerance:
        return best if best_distance > other_distance else runner_up
    report(
        warnings,
        channel,
        WarningType.CONTAINMENT_AMBIGUITY,
        f"{region.chain.id} is inside {best.chain.id} and {runner_up.chain.id} "
        f"of nearly equal area, using {best.chain.id}",
        chain_id=region.chain.id,
        value=runner_up.area - best.area,
    )
    return best


def _deepest_container(regions, point):
    found = None
    for region in regions:
        if region.contains(point) and (found is None or region.depth > found.depth):
            found = region
    return found


def detect_parts(chains, parameters=None, channel=None):
    """
    Build parts from chains.

    @param chains: chains as returned by detect_chains
    @param parameters: Parameters, settings dict or None for defaults
    @param channel: optional channel receiving progress and warnings
    @return: (parts, warnings)
    """
    params = validated(parameters)
    warnings = []
    regions = []
    open_chains = []
    for index, chain in enumerate(chains):
        if chain.closed and chain.links:
            regions.append(_Region(index, chain, params.tessellation_tolerance))
        else:
            open_chains.append(chain)
            report(
                warnings,
                channel,
                WarningType.OPEN_CHAIN,
                f"{chain.id} is open and takes no part in containment",
                chain_id=chain.id,
            )
    if channel:
        channel(f"Part detection: {len(regions)} closed, {len(open_chains)} open chains")

    ordered = sorted(regions, key=lambda r: (-r.area, r.index))
    for position, region in enumerate(ordered):
        candidates = [
            other
            for other in ordered[:position]
            if bbox_contains(other.bbox, region.bbox, params.containment_tolerance)
            and other.contains(region.interior)
        ]
        if candidates:
            parent = _choose_parent(region, candidates, params, warnings, channel)
            region.parent = parent
            region.depth = parent.depth + 1

    parts = []
    for region in sorted(ordered, key=lambda r: (r.depth, r.index)):
        if region.parent is None:
            region.node = Part(f"part-{len(parts) + 1}", region.chain)
            parts.append(region.node)
        else:
            region.node = Hole(region.chain, region.depth)
            region.parent.node.holes.append(region.node)

    for chain in open_chains:
        if not chain.links:
            continue
        start = chain.start
        end = chain.end
        for region in regions:
            if region.contains(start) != region.contains(end):
                report(
                    warnings,
                    channel,
                    WarningType.BOUNDARY_CROSSING,
                    f"{chain.id} crosses the boundary of {region.chain.id}",
                    chain_id=chain.id,
                )
                break
        else:
            container = _deepest_container(regions, start)
            if container is None or container is not _deepest_container(regions, end):
                continue
            if container.depth % 2:
                continue
            root = container
            while root.parent is not None:
                root = root.parent
            root.node.slots.append(chain)

    if channel:
        holes = sum(1 for r in regions if r.depth % 2)
        channel(f"Part detection: {len(parts)} parts, {holes} holes")
    return parts, warnings
