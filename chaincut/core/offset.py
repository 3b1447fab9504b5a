"""
Offset Engine

Computes the tool-compensated path of a chain at a signed distance. Lines
stay lines and arcs stay arcs: lines move along their normal, arcs keep
their center and change radius. The offset pieces are then joined, scanned
for self-intersections, split into simple loops and validated, strictly in
that order:

    SEGMENT_OFFSET -> JOIN_RESOLUTION -> SELF_INTERSECTION_SCAN
                   -> LOOP_SPLIT -> VALIDATE

A positive distance grows a closed chain, a negative one shrinks it. Open
chains are offset to the right of their travel direction for a positive
distance and to the left for a negative one.

Joins between neighbouring pieces fall back through three tiers. Gaps up to
snap_threshold are snapped to their midpoint. Otherwise both pieces are
trimmed or extended to the intersection of their extensions, if neither has
to grow by more than max_extension. Failing that, an opened (convex) corner
is closed with an arc around the original corner, or a straight bridge when
the gap is within offset_tolerance or the ends are off that arc's circle.
An overlapping (concave) corner is snapped with an EXTENSION_LIMIT warning.
"""

import cmath
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..tools import polygon
from ..tools.intersections import IntersectionType, intersect
from ..tools.shapes import (
    TAU,
    Arc,
    Circle,
    Line,
    angle_of,
    bboxes_overlap,
    cross,
    dot,
    shape_is_finite,
    squared_distance,
    unit,
)
from .chains import Chain, ChainLink, Winding
from .diagnostics import WarningType, report
from .exceptions import ConfigurationError
from .parameters import validated


class OffsetStage(Enum):
    SEGMENT_OFFSET = 1
    JOIN_RESOLUTION = 2
    SELF_INTERSECTION_SCAN = 3
    LOOP_SPLIT = 4
    VALIDATE = 5


@dataclass
class OffsetResult:
    operation_id: Optional[str]
    chain_id: str
    distance: float
    chains: List[Chain] = field(default_factory=list)
    intersections: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def key(self):
        return self.operation_id, self.chain_id, self.distance

    @property
    def success(self) -> bool:
        return len(self.chains) > 0


def _wrap(angle):
    """Angle folded into [-pi, pi)."""
    return (angle + math.pi) % TAU - math.pi


class _LineSegment:
    """
    Offset line while its ends are being joined. The direction it was
    created with is kept so a trim running past the other end shows up as
    an inverted segment.
    """

    def __init__(self, start, end, source=None, inserted=False):
        self.start = start
        self.end = end
        self.direction = end - start
        self.source = source
        self.inserted = inserted

    def copy(self):
        segment = _LineSegment(self.start, self.end, self.source, self.inserted)
        segment.direction = self.direction
        return segment

    @property
    def start_tangent(self):
        return unit(self.direction)

    @property
    def end_tangent(self):
        return unit(self.direction)

    @property
    def length(self):
        return abs(self.end - self.start)

    def set_start(self, p):
        self.start = p

    def set_end(self, p):
        self.end = p

    def inverted(self):
        return dot(self.end - self.start, self.direction) < 0

    def extended(self):
        return Line(self.start, self.start + self.direction)

    def shape(self, shape_id, layer):
        return Line(self.start, self.end, id=shape_id, layer=layer)


class _ArcSegment:
    """
    Offset arc while its ends are being joined. The sweep is signed and
    unbounded so trimming can move either end freely.
    """

    def __init__(self, center, radius, start_angle, sweep, source=None, inserted=False):
        self.center = center
        self.radius = radius
        self.start_angle = start_angle
        self.sweep = sweep
        self.initial_sweep = sweep
        self.source = source
        self.inserted = inserted

    def copy(self):
        segment = _ArcSegment(
            self.center, self.radius, self.start_angle, self.sweep, self.source, self.inserted
        )
        segment.initial_sweep = self.initial_sweep
        return segment

    def _point(self, angle):
        return self.center + cmath.rect(self.radius, angle)

    def _tangent(self, angle):
        direction = cmath.rect(1.0, angle) * 1j
        return direction if self.initial_sweep > 0 else -direction

    @property
    def start(self):
        return self._point(self.start_angle)

    @property
    def end(self):
        return self._point(self.start_angle + self.sweep)

    @property
    def start_tangent(self):
        return self._tangent(self.start_angle)

    @property
    def end_tangent(self):
        return self._tangent(self.start_angle + self.sweep)

    @property
    def length(self):
        return abs(self.sweep) * self.radius

    def set_start(self, p):
        delta = _wrap(angle_of(p - self.center) - self.start_angle)
        self.start_angle += delta
        self.sweep -= delta

    def set_end(self, p):
        self.sweep += _wrap(angle_of(p - self.center) - (self.start_angle + self.sweep))

    def inverted(self):
        return self.sweep * self.initial_sweep < 0

    def extended(self):
        return Circle(self.center, self.radius)

    def shape(self, shape_id, layer):
        if isinstance(self.source, Circle) and abs(self.sweep) >= TAU - 1e-12:
            return Circle(
                self.center, self.radius, self.sweep < 0, id=shape_id, layer=layer
            )
        sweep = max(-TAU, min(TAU, self.sweep))
        return Arc.from_sweep(
            self.center, self.radius, self.start_angle, sweep, id=shape_id, layer=layer
        )


class _OffsetJob:
    """
    State of one offset_chain() call as it runs through the stages.
    """

    def __init__(self, chain, distance, params, result, channel):
        self.chain = chain
        self.distance = distance
        self.params = params
        self.result = result
        self.channel = channel
        self.tolerance = params.tolerance
        # Signed distance to the right of the travel direction.
        if chain.closed and chain.winding == Winding.CLOCKWISE:
            self.right = -distance
        else:
            self.right = distance

    def log(self, stage, message):
        if self.channel:
            self.channel(f"{self.chain.id} {stage.name}: {message}")

    def warn(self, warning_type, message, **kwargs):
        kwargs.setdefault("chain_id", self.chain.id)
        report(self.result.warnings, self.channel, warning_type, message, **kwargs)

    # SEGMENT_OFFSET

    def offset_pieces(self):
        """
        Offset every primitive of the chain. Returns (segment, corner) pairs,
        corner being the original point the segment's end was joined at.
        """
        pieces = self.chain.decompose(self.params.tessellation_tolerance)
        r = self.right
        offsets = []
        for piece in pieces:
            if isinstance(piece, Line):
                shift = unit(piece.end - piece.start) * -1j * r
                segment = _LineSegment(piece.start + shift, piece.end + shift, piece)
                offsets.append((segment, piece.end))
                continue
            if isinstance(piece, Circle):
                arc = piece.as_arc()
            else:
                arc = piece
            clockwise = arc.clockwise
            radius = arc.radius - r if clockwise else arc.radius + r
            if abs(radius) <= self.tolerance:
                # The arc shrinks into a corner at its center.
                if offsets:
                    offsets[-1] = (offsets[-1][0], arc.center)
                continue
            if radius < 0:
                self.warn(
                    WarningType.OFFSET_COLLAPSE,
                    f"Arc {piece.id!r} of radius {arc.radius:.6g} collapses at offset {self.distance}",
                    shape_ids=(piece.id,),
                    value=radius,
                )
                if offsets:
                    offsets[-1] = (offsets[-1][0], arc.center)
                continue
            segment = _ArcSegment(arc.center, radius, arc.start_angle, arc.sweep, piece)
            offsets.append((segment, piece.end))
        self.log(OffsetStage.SEGMENT_OFFSET, f"{len(pieces)} pieces, {len(offsets)} offset")
        return offsets

    # JOIN_RESOLUTION

    def join_pair(self, a, b, corner, warnings):
        """
        Make a end where b starts. Returns a bridging segment to insert
        between them, or None.
        """
        params = self.params
        gap2 = squared_distance(a.end, b.start)
        if gap2 <= params.snap_threshold * params.snap_threshold:
            mid = (a.end + b.start) / 2.0
            a.set_end(mid)
            b.set_start(mid)
            return None
        best = None
        best_cost = float("inf")
        for hit in intersect(a.extended(), b.extended(), extended=True):
            cost = abs(hit.point - a.end) + abs(hit.point - b.start)
            if cost < best_cost:
                best = hit.point
                best_cost = cost
        if (
            best is not None
            and abs(best - a.end) <= params.max_extension
            and abs(best - b.start) <= params.max_extension
        ):
            a.set_end(best)
            b.set_start(best)
            return None
        turn = cross(a.end_tangent, b.start_tangent)
        convex = turn * self.right > 0 or (
            abs(turn) <= 1e-12 and dot(a.end_tangent, b.start_tangent) < 0
        )
        if convex:
            radius = abs(self.right)
            # Once a piece between them is consumed, the ends no longer lie
            # on a circle around the corner and an arc would fall short.
            on_circle = (
                abs(abs(a.end - corner) - radius) <= self.tolerance
                and abs(abs(b.start - corner) - radius) <= self.tolerance
            )
            if not on_circle or gap2 <= params.offset_tolerance * params.offset_tolerance:
                return _LineSegment(a.end, b.start, inserted=True)
            start_angle = angle_of(a.end - corner)
            end_angle = angle_of(b.start - corner)
            if self.right > 0:
                sweep = (end_angle - start_angle) % TAU
            else:
                sweep = -((start_angle - end_angle) % TAU)
            return _ArcSegment(corner, radius, start_angle, sweep, inserted=True)
        mid = (a.end + b.start) / 2.0
        warnings.append(
            (
                WarningType.EXTENSION_LIMIT,
                f"Joint at ({corner.real:.4f}, {corner.imag:.4f}) needs more than "
                f"{params.max_extension} extension, snapped",
                corner,
            )
        )
        a.set_end(mid)
        b.set_start(mid)
        return None

    def join(self, offsets):
        """
        Join the offset pieces. Pieces whose trims run past each other are
        consumed by the corner: they are removed and their neighbours joined
        again until nothing inverts.
        """
        closed = self.chain.closed
        pending = list(offsets)
        warnings = []
        joined = []
        for _ in range(len(offsets) + 1):
            segments = [segment.copy() for segment, _ in pending]
            corners = [corner for _, corner in pending]
            warnings = []
            count = len(segments)
            bridges = {}
            if count > 1:
                pairs = count if closed else count - 1
                for k in range(pairs):
                    bridge = self.join_pair(
                        segments[k], segments[(k + 1) % count], corners[k], warnings
                    )
                    if bridge is not None:
                        bridges[k] = bridge
            joined = []
            for k, segment in enumerate(segments):
                joined.append(segment)
                if k in bridges:
                    joined.append(bridges[k])
            consumed = {k for k, segment in enumerate(segments) if segment.inverted()}
            if not consumed:
                break
            pending = [item for k, item in enumerate(pending) if k not in consumed]
            self.log(OffsetStage.JOIN_RESOLUTION, f"{len(consumed)} pieces consumed by corners")
            if not pending:
                joined = []
                break
        for warning_type, message, point in warnings:
            self.warn(warning_type, message, point=point)
        shapes = []
        for k, segment in enumerate(joined):
            if segment.length <= self.tolerance:
                continue
            if segment.inserted:
                shape_id = f"{self.chain.id}-join-{k}"
                layer = None
            else:
                shape_id = segment.source.id
                layer = segment.source.layer
            shape = segment.shape(shape_id, layer)
            if not shape_is_finite(shape):
                self.warn(
                    WarningType.DEGENERATE_SHAPE,
                    f"Offset of {shape_id!r} is not finite, dropped",
                    shape_ids=(shape_id,),
                )
                continue
            shapes.append(shape)
        bridges = sum(1 for segment in joined if segment.inserted)
        self.log(OffsetStage.JOIN_RESOLUTION, f"{len(shapes)} shapes, {bridges} bridges")
        return shapes

    # SELF_INTERSECTION_SCAN

    def scan(self, shapes, closed):
        """
        Crossings of a loop or path as (i, j, hit) with i < j, sorted. Points
        where neighbours legitimately meet are not crossings.
        """
        tolerance = self.tolerance
        crossings = []
        count = len(shapes)
        boxes = [shape.bbox() for shape in shapes]
        for i in range(count):
            for j in range(i + 1, count):
                if not bboxes_overlap(boxes[i], boxes[j], tolerance):
                    continue
                joints = []
                if j == i + 1:
                    joints.append(shapes[i].end)
                if closed and i == 0 and j == count - 1:
                    joints.append(shapes[0].start)
                for hit in intersect(shapes[i], shapes[j], tolerance=tolerance):
                    if hit.type == IntersectionType.COINCIDENT:
                        continue
                    if any(squared_distance(hit.point, p) <= tolerance * tolerance for p in joints):
                        continue
                    crossings.append((i, j, hit))
        crossings.sort(key=lambda c: (c[0], c[1]))
        return crossings

    # LOOP_SPLIT

    def split_loops(self, shapes, crossings):
        closed = self.chain.closed
        limit = self.params.max_recursion_depth
        finished = []
        stack = [(shapes, 0, crossings)]
        while stack:
            loop, depth, found = stack.pop()
            if found is None:
                found = self.scan(loop, closed)
            if not found:
                finished.append(loop)
                continue
            if depth >= limit:
                self.warn(
                    WarningType.SELF_INTERSECTION_UNRESOLVED,
                    f"{len(found)} crossings left after {depth} splits",
                    point=found[0][2].point,
                )
                finished.append(loop)
                continue
            i, j, hit = found[0]
            before_i, after_i = split_shape(loop[i], hit.point, self.tolerance)
            before_j, after_j = split_shape(loop[j], hit.point, self.tolerance)
            if closed:
                inner = [after_i] + loop[i + 1 : j] + [before_j]
                outer = [after_j] + loop[j + 1 :] + loop[:i] + [before_i]
                stack.append((_present(outer), depth + 1, None))
                stack.append((_present(inner), depth + 1, None))
            else:
                # The sub-loop between the two visits is cut out.
                path = loop[:i] + [before_i, after_j] + loop[j + 1 :]
                stack.append((_present(path), depth + 1, None))
        self.log(OffsetStage.LOOP_SPLIT, f"{len(finished)} loops")
        return finished

    # VALIDATE

    def disconnected(self, loop):
        limit = self.tolerance * self.tolerance
        pairs = list(zip(loop, loop[1:]))
        if self.chain.closed:
            pairs.append((loop[-1], loop[0]))
        return any(squared_distance(a.end, b.start) > limit for a, b in pairs)

    def too_close(self, loop, source):
        """
        True if the loop runs nearer to the source chain than the offset
        distance, which marks the leftovers of a filled-in notch.
        """
        reach = abs(self.distance) - self.tolerance - self.params.tessellation_tolerance
        return any(polygon.distance_to_boundary(shape.point(0.5), source) < reach for shape in loop)

    def validate(self, loops, split):
        """
        Keep the loops that connect and wind like the source. Loops cut
        apart at crossings must also keep the offset distance from the
        source chain.
        """
        closed = self.chain.closed
        expected = 1.0 if self.chain.winding == Winding.COUNTERCLOCKWISE else -1.0
        minimum = self.tolerance * self.tolerance
        source = None
        if closed and split:
            source = polygon.as_array(self.chain.tessellate(self.params.tessellation_tolerance))
        valid = []
        for loop in loops:
            if not loop:
                continue
            if self.disconnected(loop):
                self.warn(
                    WarningType.OFFSET_COLLAPSE,
                    f"Discarded offset loop of {len(loop)} shapes that does not connect",
                )
                continue
            if not closed:
                valid.append(loop)
                continue
            points = []
            for shape in loop:
                pts = shape.tessellate(self.params.tessellation_tolerance)
                points.extend(pts[1:] if points else pts)
            area = polygon.signed_area(points)
            if area * expected <= minimum:
                self.warn(
                    WarningType.OFFSET_COLLAPSE,
                    f"Discarded offset loop of area {area:.6g}",
                    value=area,
                )
                continue
            if source is not None and self.too_close(loop, source):
                self.warn(
                    WarningType.OFFSET_COLLAPSE,
                    f"Discarded offset loop of area {area:.6g} lying within the offset distance",
                    value=area,
                )
                continue
            valid.append(loop)
        self.log(OffsetStage.VALIDATE, f"{len(valid)} of {len(loops)} loops valid")
        return valid

    def collapsed(self):
        if any(w.type == WarningType.OFFSET_COLLAPSE for w in self.result.warnings):
            return
        self.warn(
            WarningType.OFFSET_COLLAPSE,
            f"Nothing left of {self.chain.id} at offset {self.distance}",
            value=self.distance,
        )

    def run(self):
        chain = self.chain
        result = self.result
        shapes = self.join(self.offset_pieces())
        if not shapes:
            self.collapsed()
            return result
        crossings = self.scan(shapes, chain.closed)
        result.intersections.extend(hit for _, _, hit in crossings)
        self.log(OffsetStage.SELF_INTERSECTION_SCAN, f"{len(crossings)} crossings")
        loops = self.validate(self.split_loops(shapes, crossings), bool(crossings))
        if not loops:
            self.collapsed()
        for k, loop in enumerate(loops, start=1):
            result.chains.append(
                Chain(
                    f"{chain.id}-offset-{k}",
                    [ChainLink(shape) for shape in loop],
                    closed=chain.closed,
                    winding=chain.winding if chain.closed else None,
                )
            )
        return result


def _present(shapes):
    return [shape for shape in shapes if shape is not None]


def split_shape(shape, point, tolerance):
    """
    Split a Line, Arc or Circle at a point on it. Returns (before, after),
    a part being None when it would be shorter than tolerance.
    """
    if isinstance(shape, Line):
        before = Line(shape.start, point, id=shape.id, layer=shape.layer)
        after = Line(point, shape.end, id=shape.id, layer=shape.layer)
    else:
        arc = shape.as_arc() if isinstance(shape, Circle) else shape
        total = abs(arc.sweep)
        travel = arc.travel_to(angle_of(point - arc.center))
        if travel > total:
            # Within tolerance past either end.
            travel = total if travel - total < TAU - travel else 0.0
        sign = -1.0 if arc.clockwise else 1.0
        before = None
        after = None
        if travel * arc.radius > tolerance:
            before = Arc.from_sweep(
                arc.center, arc.radius, arc.start_angle, sign * travel, id=arc.id, layer=arc.layer
            )
        if (total - travel) * arc.radius > tolerance:
            after = Arc.from_sweep(
                arc.center,
                arc.radius,
                arc.start_angle + sign * travel,
                sign * (total - travel),
                id=arc.id,
                layer=arc.layer,
            )
        return before, after
    if before.length <= tolerance:
        before = None
    if after.length <= tolerance:
        after = None
    return before, after


def offset_chain(chain, distance, parameters=None, operation_id=None, channel=None):
    """
    Offset a chain by a signed distance.

    @param chain: normalized chain
    @param distance: positive grows closed chains, negative shrinks them
    @param parameters: Parameters, settings dict or None for defaults
    @param operation_id: caller's key, echoed in the result
    @param channel: optional channel receiving progress and warnings
    @return: OffsetResult
    """
    params = validated(parameters)
    try:
        distance = float(distance)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Offset distance is not a number: {distance!r}") from e
    if not math.isfinite(distance):
        raise ConfigurationError(f"Offset distance must be finite, got {distance}")
    if not chain.links:
        raise ConfigurationError(f"Cannot offset empty chain {chain.id!r}")
    result = OffsetResult(operation_id, chain.id, distance)
    if distance == 0:
        result.chains.append(chain.copy())
        return result
    if chain.closed and chain.winding is None:
        report(
            result.warnings,
            channel,
            WarningType.OFFSET_COLLAPSE,
            f"{chain.id} is closed but has no winding, cannot tell inside from outside",
            chain_id=chain.id,
        )
        return result
    return _OffsetJob(chain, distance, params, result, channel).run()


def offset_chains(chains, distance, parameters=None, operation_id=None, channel=None):
    """
    Offset every chain independently. Returns a list of OffsetResult.
    """
    params = validated(parameters)
    return [
        offset_chain(chain, distance, params, operation_id=operation_id, channel=channel)
        for chain in chains
    ]
