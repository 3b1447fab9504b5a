"""
Chain Builder

Reconstructs continuous cut paths from a flat list of disconnected drawing
shapes. Endpoints are indexed in a spatial hash so that looking up the
neighbours of an endpoint stays near constant time, endpoints within tolerance
are merged into junctions with a disjoint-set, and the junction graph is then
walked into paths and cycles.

Traversal direction is a property of a ChainLink, never of a shape: linking
a shape backwards flips the link's flag and leaves the shape untouched.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..tools import polygon
from ..tools.shapes import bbox_union, check_shape, squared_distance
from .diagnostics import WarningType, report
from .exceptions import DisconnectedChainError
from .parameters import validated


class Winding(Enum):
    CLOCKWISE = "cw"
    COUNTERCLOCKWISE = "ccw"

    @property
    def opposite(self):
        if self is Winding.CLOCKWISE:
            return Winding.COUNTERCLOCKWISE
        return Winding.CLOCKWISE


@dataclass(frozen=True)
class ChainLink:
    shape: object
    reversed: bool = False

    @property
    def start(self) -> complex:
        return self.shape.end if self.reversed else self.shape.start

    @property
    def end(self) -> complex:
        return self.shape.start if self.reversed else self.shape.end

    @property
    def start_tangent(self) -> complex:
        if self.reversed:
            return -self.shape.end_tangent
        return self.shape.start_tangent

    @property
    def end_tangent(self) -> complex:
        if self.reversed:
            return -self.shape.start_tangent
        return self.shape.end_tangent

    def oriented(self):
        """
        The shape geometry in link traversal order.
        """
        if self.reversed:
            return self.shape.reversed()
        return self.shape

    def flipped(self) -> "ChainLink":
        return ChainLink(self.shape, not self.reversed)


@dataclass
class Chain:
    id: str
    links: List[ChainLink] = field(default_factory=list)
    closed: bool = False
    winding: Optional[Winding] = None

    def __len__(self):
        return len(self.links)

    @property
    def shapes(self) -> list:
        return [link.shape for link in self.links]

    def oriented_shapes(self) -> list:
        return [link.oriented() for link in self.links]

    @property
    def start(self) -> complex:
        return self.links[0].start

    @property
    def end(self) -> complex:
        return self.links[-1].end

    def copy(self) -> "Chain":
        return Chain(self.id, list(self.links), self.closed, self.winding)

    def tessellate(self, tolerance: float) -> List[complex]:
        points = []
        for shape in self.oriented_shapes():
            pts = shape.tessellate(tolerance)
            if points:
                pts = pts[1:]
            points.extend(pts)
        return points

    def decompose(self, tolerance: float) -> list:
        pieces = []
        for shape in self.oriented_shapes():
            pieces.extend(shape.decompose(tolerance))
        return pieces

    def bbox(self):
        return bbox_union([shape.bbox() for shape in self.shapes])


class EndpointIndex:
    """
    Spatial hash over endpoints. Buckets are tolerance wide so every point
    within tolerance of a query lies in the 3x3 block of buckets around it.
    """

    def __init__(self, tolerance):
        self.tolerance = tolerance
        self.buckets = defaultdict(list)
        self.points = []

    def _key(self, p):
        return int(round(p.real / self.tolerance)), int(round(p.imag / self.tolerance))

    def add(self, p) -> int:
        index = len(self.points)
        self.points.append(p)
        self.buckets[self._key(p)].append(index)
        return index

    def near(self, p):
        limit = self.tolerance * self.tolerance
        kx, ky = self._key(p)
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for index in self.buckets.get((kx + dx, ky + dy), ()):
                    if squared_distance(self.points[index], p) <= limit:
                        yield index


class DisjointSet:
    def __init__(self, size):
        self.parent = list(range(size))

    def find(self, i):
        parent = self.parent
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def union(self, a, b):
        ra = self.find(a)
        rb = self.find(b)
        if ra != rb:
            # Lower index wins so junction ids are stable.
            if ra < rb:
                self.parent[rb] = ra
            else:
                self.parent[ra] = rb


def _turn(arrive: complex, leave: complex) -> float:
    if arrive == 0 or leave == 0:
        return math.pi
    z = leave / arrive
    return abs(math.atan2(z.imag, z.real))


def _endpoint(shapes, e):
    shape = shapes[e // 2]
    return shape.end if e % 2 else shape.start


def _arriving(shapes, e):
    """Direction of travel when arriving at endpoint e from its own shape."""
    shape = shapes[e // 2]
    return shape.end_tangent if e % 2 else -shape.start_tangent


def _pair_junction(shapes, members, partner, tolerance):
    """
    Pair up the endpoints meeting at a branch point by the smallest change of
    direction. Only endpoints within tolerance of each other can pair, a
    junction grown through a run of close endpoints can be wider than that.
    Endpoints left over stay unpaired and end their chains.
    """
    limit = tolerance * tolerance
    candidates = []
    for i, e in enumerate(members):
        for f in members[i + 1 :]:
            if e // 2 == f // 2:
                continue
            if squared_distance(_endpoint(shapes, e), _endpoint(shapes, f)) > limit:
                continue
            # Leaving through f means travelling against its arriving direction.
            cost = _turn(_arriving(shapes, e), -_arriving(shapes, f))
            candidates.append((cost, e, f))
    candidates.sort()
    for cost, e, f in candidates:
        if e in partner or f in partner:
            continue
        partner[e] = f
        partner[f] = e


def _walk(shapes, first, partner, visited):
    """
    Follow the junction pairing from endpoint first. Returns the links and
    the indices of the shapes visited.
    """
    links = []
    indices = []
    e = first
    while True:
        k = e // 2
        visited[k] = True
        links.append(ChainLink(shapes[k], reversed=bool(e % 2)))
        indices.append(k)
        e = partner.get(e ^ 1)
        if e is None or visited[e // 2]:
            return links, indices


def _orient_majority(links):
    flipped = sum(1 for link in links if link.reversed)
    if flipped * 2 > len(links):
        return [link.flipped() for link in reversed(links)]
    return links


def detect_chains(shapes, parameters=None, channel=None):
    """
    Group shapes into chains of end-to-start connected links.

    @param shapes: iterable of shapes
    @param parameters: Parameters, settings dict or None for defaults
    @param channel: optional channel receiving progress and warnings
    @return: (chains, warnings)
    """
    params = validated(parameters)
    tolerance = params.tolerance
    warnings = []

    usable = []
    for index, shape in enumerate(shapes):
        check_shape(shape)
        if shape.is_degenerate(tolerance):
            report(
                warnings,
                channel,
                WarningType.DEGENERATE_SHAPE,
                f"Dropped degenerate {type(shape).__name__} {shape.id!r}",
                shape_ids=(shape.id,),
            )
            continue
        usable.append((index, shape))
    if channel:
        channel(f"Chain detection: {len(usable)} shapes, tolerance {tolerance}")

    limit = tolerance * tolerance
    found = []
    open_shapes = []
    open_order = []
    for index, shape in usable:
        if shape.is_closed(tolerance) or squared_distance(shape.start, shape.end) <= limit:
            found.append((index, [ChainLink(shape)]))
        else:
            open_shapes.append(shape)
            open_order.append(index)

    # Endpoint 2k is the start of open shape k, 2k + 1 its end.
    endpoints = EndpointIndex(tolerance)
    junctions = DisjointSet(2 * len(open_shapes))
    for k, shape in enumerate(open_shapes):
        for point in (shape.start, shape.end):
            e = endpoints.add(point)
            for other in endpoints.near(point):
                if other != e:
                    junctions.union(e, other)

    groups = defaultdict(list)
    for e in range(len(endpoints.points)):
        groups[junctions.find(e)].append(e)

    partner = {}
    for root in sorted(groups):
        members = groups[root]
        if len(members) == 2:
            e, f = members
            if e // 2 != f // 2 and squared_distance(
                _endpoint(open_shapes, e), _endpoint(open_shapes, f)
            ) <= limit:
                partner[e] = f
                partner[f] = e
        elif len(members) > 2:
            point = endpoints.points[members[0]]
            report(
                warnings,
                channel,
                WarningType.CONNECTIVITY,
                f"{len(members)} endpoints meet at ({point.real:.4f}, {point.imag:.4f})",
                shape_ids=tuple(open_shapes[e // 2].id for e in members),
                point=point,
            )
            _pair_junction(open_shapes, members, partner, tolerance)

    visited = [False] * len(open_shapes)
    # Paths start at unpaired endpoints, whatever remains afterwards is a cycle.
    for e in range(2 * len(open_shapes)):
        if e not in partner and not visited[e // 2]:
            links, indices = _walk(open_shapes, e, partner, visited)
            found.append((min(open_order[k] for k in indices), links))
    for k in range(len(open_shapes)):
        if not visited[k]:
            links, indices = _walk(open_shapes, 2 * k, partner, visited)
            found.append((min(open_order[i] for i in indices), links))

    found.sort(key=lambda item: item[0])
    chains = []
    for number, (_, links) in enumerate(found, start=1):
        chain = normalize_chain(Chain(f"chain-{number}", _orient_majority(links)), params)
        if not chain.closed:
            gap = abs(chain.end - chain.start)
            if gap <= params.closure_tolerance:
                report(
                    warnings,
                    channel,
                    WarningType.CLOSURE_MISMATCH,
                    f"{chain.id} is open with a gap of {gap:.6g}",
                    chain_id=chain.id,
                    point=chain.end,
                    value=gap,
                )
        chains.append(chain)
    if channel:
        closed = sum(1 for chain in chains if chain.closed)
        channel(f"Chain detection: {len(chains)} chains, {closed} closed")
    return chains, warnings


def _connected(links, tolerance):
    limit = tolerance * tolerance
    return all(
        squared_distance(a.end, b.start) <= limit for a, b in zip(links, links[1:])
    )


def _build_from(links, start, flip, tolerance):
    """
    Greedily grow a chain from links[start], taking at each step the first
    remaining link that continues from the current end, flipped if needed.
    Returns None when the links cannot all be connected this way.
    """
    limit = tolerance * tolerance
    first = links[start].flipped() if flip else links[start]
    remaining = [i for i in range(len(links)) if i != start]
    ordered = [first]
    while remaining:
        end = ordered[-1].end
        chosen = None
        for i in remaining:
            if squared_distance(links[i].start, end) <= limit:
                chosen = i
                ordered.append(links[i])
                break
        if chosen is None:
            for i in remaining:
                if squared_distance(links[i].end, end) <= limit:
                    chosen = i
                    ordered.append(links[i].flipped())
                    break
        if chosen is None:
            return None
        remaining.remove(chosen)
    return ordered


def _connect(links, tolerance):
    if _connected(links, tolerance):
        return list(links)
    for start in range(len(links)):
        for flip in (False, True):
            ordered = _build_from(links, start, flip, tolerance)
            if ordered is not None:
                return ordered
    return None


def chain_signed_area(chain, tolerance=0.01) -> float:
    """
    Shoelace area of the tessellated chain, positive for counter-clockwise.
    """
    if not chain.links:
        return 0.0
    return polygon.signed_area(chain.tessellate(tolerance))


def chain_bbox(chain):
    return chain.bbox()


def is_chain_closed(chain, tolerance) -> bool:
    if not chain.links:
        return False
    if squared_distance(chain.end, chain.start) > tolerance * tolerance:
        return False
    return sum(shape.length for shape in chain.shapes) > tolerance


def normalize_chain(chain, parameters=None):
    """
    Returns a chain whose links connect end to start, with closed and winding
    recomputed. Normalizing a normalized chain returns an equal chain.
    Raises DisconnectedChainError when the links do not form one path.
    """
    params = validated(parameters)
    if not chain.links:
        return Chain(chain.id, [], False, None)
    links = _connect(chain.links, params.tolerance)
    if links is None:
        raise DisconnectedChainError(
            f"Links of {chain.id!r} cannot be connected within tolerance {params.tolerance}"
        )
    result = Chain(chain.id, links)
    result.closed = is_chain_closed(result, params.tolerance)
    if result.closed:
        area = chain_signed_area(result, params.tessellation_tolerance)
        if area > params.tolerance * params.tolerance:
            result.winding = Winding.COUNTERCLOCKWISE
        elif area < -params.tolerance * params.tolerance:
            result.winding = Winding.CLOCKWISE
    return result


def reverse_chain(chain):
    links = [link.flipped() for link in reversed(chain.links)]
    winding = chain.winding.opposite if chain.winding is not None else None
    return Chain(chain.id, links, chain.closed, winding)


def set_chain_direction(chain, winding):
    """
    Returns the chain traversed in the requested winding. Open chains and
    chains without a winding are returned unchanged.
    """
    if chain.winding is None or chain.winding == winding:
        return chain
    return reverse_chain(chain)


@dataclass(frozen=True)
class TraversalIssue:
    kind: str
    first: int
    second: int
    point: complex
    description: str


@dataclass
class TraversalReport:
    chain_id: str
    issues: List[TraversalIssue]
    can_traverse: bool

    @property
    def description(self):
        status = "can be traversed" if self.can_traverse else "cannot be traversed"
        if not self.issues:
            return f"Chain {self.chain_id}: no traversal issues, chain {status}."
        return f"Chain {self.chain_id}: {len(self.issues)} issue(s), chain {status}."


def analyze_chain_traversal(chain, tolerance=0.01) -> TraversalReport:
    """
    Report places where a chain's links touch but do not connect end to
    start: two links ending or starting at the same point, coincident points
    of non-adjacent links, and consecutive links that do not meet.
    """
    issues = []
    links = chain.links
    limit = tolerance * tolerance
    count = len(links)
    for i in range(count):
        for j in range(i + 1, count):
            a = links[i]
            b = links[j]
            if squared_distance(a.end, b.end) <= limit:
                issues.append(
                    TraversalIssue(
                        "coincident_endpoints",
                        i,
                        j,
                        a.end,
                        f"Links {i} and {j} both end at ({a.end.real:.3f}, {a.end.imag:.3f})",
                    )
                )
            if squared_distance(a.start, b.start) <= limit:
                issues.append(
                    TraversalIssue(
                        "coincident_startpoints",
                        i,
                        j,
                        a.start,
                        f"Links {i} and {j} both start at ({a.start.real:.3f}, {a.start.imag:.3f})",
                    )
                )
            adjacent = j == i + 1 or (chain.closed and i == 0 and j == count - 1)
            if adjacent:
                continue
            if squared_distance(a.end, b.start) <= limit or squared_distance(a.start, b.end) <= limit:
                point = a.end if squared_distance(a.end, b.start) <= limit else a.start
                issues.append(
                    TraversalIssue(
                        "non_adjacent_coincident",
                        i,
                        j,
                        point,
                        f"Non-adjacent links {i} and {j} touch at ({point.real:.3f}, {point.imag:.3f})",
                    )
                )
    for i in range(count - 1):
        if squared_distance(links[i].end, links[i + 1].start) > limit:
            issues.append(
                TraversalIssue(
                    "broken_traversal",
                    i,
                    i + 1,
                    links[i].end,
                    f"Link {i} does not end where link {i + 1} starts",
                )
            )
    can_traverse = not any(issue.kind == "broken_traversal" for issue in issues)
    return TraversalReport(chain.id, issues, can_traverse)
