"""
The shape model: immutable 2D drawing primitives as they come out of a drawing
parser.

Points are complex numbers, x being the real and y the imaginary part, with the
y axis pointing up so a positive shoelace area means counter-clockwise. Every
shape carries a stable id and an optional layer tag and is never modified by
the geometry pipeline; orientation changes produce new shapes via reversed().

Shape is a closed union of Line, Arc, Circle, Polyline, Ellipse and Spline.
All of them share the same traversal interface:

    start, end                  first and last point along the traversal
    point(t)                    position at t in [0, 1] along the traversal
    start_tangent, end_tangent  unit direction of travel at the ends
    length                      curve length
    bbox()                      (min_x, min_y, max_x, max_y)
    reversed()                  same curve traversed the other way
    tessellate(tolerance)       points from start to end, chord error <= tolerance
    decompose(tolerance)        Line/Arc/Circle pieces in traversal order
    is_closed(tolerance)        whether the shape is a loop on its own
    is_degenerate(tolerance)    zero length, vanishing radius or non-finite data
"""

import cmath
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple, Union

from . import nurbs

TAU = math.tau

# Sweeps this close to zero denote a full turn for arcs and ellipses.
FULL_TURN_EPSILON = 1e-12

# Hard cap for the number of points a single shape tessellates into.
MAX_TESSELLATION = 4096

# Spline subdivision depth for adaptive tessellation.
MAX_SUBDIVISION_DEPTH = 10


def cross(a: complex, b: complex) -> float:
    return a.real * b.imag - a.imag * b.real


def dot(a: complex, b: complex) -> float:
    return a.real * b.real + a.imag * b.imag


def unit(z: complex) -> complex:
    length = abs(z)
    if length == 0 or not math.isfinite(length):
        return 0j
    return z / length


def is_finite_point(p: complex) -> bool:
    return math.isfinite(p.real) and math.isfinite(p.imag)


def squared_distance(p: complex, q: complex) -> float:
    d = p - q
    return d.real * d.real + d.imag * d.imag


def angle_of(z: complex) -> float:
    """
    Angle of the vector z in [0, tau).
    """
    return math.atan2(z.imag, z.real) % TAU


def signed_sweep(start_angle: float, end_angle: float, clockwise: bool) -> float:
    """
    Signed angular travel from start_angle to end_angle, positive for
    counter-clockwise travel. Equal angles denote a full turn.
    """
    if clockwise:
        sweep = (start_angle - end_angle) % TAU
    else:
        sweep = (end_angle - start_angle) % TAU
    if sweep < FULL_TURN_EPSILON or TAU - sweep < FULL_TURN_EPSILON:
        sweep = TAU
    return -sweep if clockwise else sweep


def arc_segment_count(radius: float, sweep: float, tolerance: float) -> int:
    """
    Number of chords needed so that no chord deviates from the arc by more
    than tolerance. At least one chord per eighth of a turn.
    """
    sweep = abs(sweep)
    minimum = max(1, int(math.ceil(sweep / (TAU / 8) - 1e-9)))
    if radius <= tolerance or tolerance <= 0:
        return minimum
    step = 2.0 * math.acos(1.0 - tolerance / radius)
    if step <= 0 or not math.isfinite(step):
        return MAX_TESSELLATION
    count = int(math.ceil(sweep / step))
    return min(MAX_TESSELLATION, max(minimum, count))


def adaptive_points(point_at, tolerance, initial=8, max_depth=MAX_SUBDIVISION_DEPTH):
    """
    Tessellate a parametric curve t -> complex on [0, 1] by recursive
    midpoint subdivision until each chord is within tolerance of the curve.
    """
    initial = max(1, initial)
    result = [point_at(0.0)]
    for i in range(initial):
        t0 = i / initial
        t1 = (i + 1) / initial
        pending = [(t0, t1, result[-1], point_at(t1), 0)]
        while pending:
            a, b, pa, pb, depth = pending.pop()
            mid = (a + b) / 2.0
            pm = point_at(mid)
            chord_mid = (pa + pb) / 2.0
            if depth >= max_depth or len(result) >= MAX_TESSELLATION or abs(pm - chord_mid) <= tolerance:
                result.append(pb)
                continue
            # Push the second half first so the first half is emitted first.
            pending.append((mid, b, pm, pb, depth + 1))
            pending.append((a, mid, pa, pm, depth + 1))
    return result


def _bbox_of_points(points):
    xs = [p.real for p in points]
    ys = [p.imag for p in points]
    return min(xs), min(ys), max(xs), max(ys)


@dataclass(frozen=True)
class Line:
    start: complex
    end: complex
    id: str = ""
    layer: Optional[str] = None

    def point(self, t: float) -> complex:
        return self.start + (self.end - self.start) * t

    @property
    def direction(self) -> complex:
        return self.end - self.start

    @property
    def start_tangent(self) -> complex:
        return unit(self.end - self.start)

    @property
    def end_tangent(self) -> complex:
        return unit(self.end - self.start)

    @property
    def length(self) -> float:
        return abs(self.end - self.start)

    def bbox(self):
        return _bbox_of_points((self.start, self.end))

    def reversed(self) -> "Line":
        return replace(self, start=self.end, end=self.start)

    def tessellate(self, tolerance: float) -> List[complex]:
        return [self.start, self.end]

    def decompose(self, tolerance: float) -> list:
        return [self]

    def is_closed(self, tolerance: float) -> bool:
        return False

    def is_degenerate(self, tolerance: float) -> bool:
        if not (is_finite_point(self.start) and is_finite_point(self.end)):
            return True
        return squared_distance(self.start, self.end) <= tolerance * tolerance


@dataclass(frozen=True)
class Arc:
    """
    Circular arc travelling from start_angle to end_angle around center,
    counter-clockwise unless clockwise is set. Angles are radians. Equal
    start and end angles describe a full turn.
    """

    center: complex
    radius: float
    start_angle: float
    end_angle: float
    clockwise: bool = False
    id: str = ""
    layer: Optional[str] = None

    @classmethod
    def from_sweep(cls, center, radius, start_angle, sweep, **kwargs):
        return cls(
            center=center,
            radius=radius,
            start_angle=start_angle % TAU,
            end_angle=(start_angle + sweep) % TAU,
            clockwise=sweep < 0,
            **kwargs,
        )

    @property
    def sweep(self) -> float:
        return signed_sweep(self.start_angle, self.end_angle, self.clockwise)

    def angle_at(self, t: float) -> float:
        return self.start_angle + self.sweep * t

    def point(self, t: float) -> complex:
        return self.center + cmath.rect(self.radius, self.angle_at(t))

    def point_at_angle(self, angle: float) -> complex:
        return self.center + cmath.rect(self.radius, angle)

    def tangent_at_angle(self, angle: float) -> complex:
        direction = cmath.rect(1.0, angle) * 1j
        return -direction if self.clockwise else direction

    @property
    def start(self) -> complex:
        return self.point_at_angle(self.start_angle)

    @property
    def end(self) -> complex:
        return self.point_at_angle(self.end_angle)

    @property
    def start_tangent(self) -> complex:
        return self.tangent_at_angle(self.start_angle)

    @property
    def end_tangent(self) -> complex:
        return self.tangent_at_angle(self.end_angle)

    @property
    def length(self) -> float:
        return abs(self.sweep) * self.radius

    def travel_to(self, angle: float) -> float:
        """
        Angular distance travelled from the start to reach angle, in [0, tau).
        """
        if self.clockwise:
            return (self.start_angle - angle) % TAU
        return (angle - self.start_angle) % TAU

    def contains_angle(self, angle: float, tolerance: float = 0.0) -> bool:
        travel = self.travel_to(angle)
        return travel <= abs(self.sweep) + tolerance or travel >= TAU - tolerance

    def bbox(self):
        points = [self.start, self.end]
        for quarter in range(4):
            angle = quarter * TAU / 4
            if self.contains_angle(angle):
                points.append(self.point_at_angle(angle))
        return _bbox_of_points(points)

    def reversed(self) -> "Arc":
        return replace(
            self,
            start_angle=self.end_angle,
            end_angle=self.start_angle,
            clockwise=not self.clockwise,
        )

    def tessellate(self, tolerance: float) -> List[complex]:
        count = arc_segment_count(self.radius, self.sweep, tolerance)
        return [self.point(i / count) for i in range(count + 1)]

    def decompose(self, tolerance: float) -> list:
        return [self]

    def is_closed(self, tolerance: float) -> bool:
        return abs(self.sweep) >= TAU - FULL_TURN_EPSILON

    def is_degenerate(self, tolerance: float) -> bool:
        values = (self.radius, self.start_angle, self.end_angle)
        if not is_finite_point(self.center) or not all(math.isfinite(v) for v in values):
            return True
        return self.radius <= tolerance


@dataclass(frozen=True)
class Circle:
    """
    Full circle. Traversal starts and ends at angle 0, counter-clockwise
    unless clockwise is set.
    """

    center: complex
    radius: float
    clockwise: bool = False
    id: str = ""
    layer: Optional[str] = None

    @property
    def sweep(self) -> float:
        return -TAU if self.clockwise else TAU

    def as_arc(self) -> Arc:
        return Arc(
            center=self.center,
            radius=self.radius,
            start_angle=0.0,
            end_angle=0.0,
            clockwise=self.clockwise,
            id=self.id,
            layer=self.layer,
        )

    def point(self, t: float) -> complex:
        return self.center + cmath.rect(self.radius, self.sweep * t)

    @property
    def start(self) -> complex:
        return self.center + self.radius

    @property
    def end(self) -> complex:
        return self.center + self.radius

    @property
    def start_tangent(self) -> complex:
        return -1j if self.clockwise else 1j

    @property
    def end_tangent(self) -> complex:
        return self.start_tangent

    @property
    def length(self) -> float:
        return TAU * self.radius

    def bbox(self):
        r = self.radius
        c = self.center
        return c.real - r, c.imag - r, c.real + r, c.imag + r

    def reversed(self) -> "Circle":
        return replace(self, clockwise=not self.clockwise)

    def tessellate(self, tolerance: float) -> List[complex]:
        count = arc_segment_count(self.radius, TAU, tolerance)
        return [self.point(i / count) for i in range(count + 1)]

    def decompose(self, tolerance: float) -> list:
        return [self]

    def is_closed(self, tolerance: float) -> bool:
        return True

    def is_degenerate(self, tolerance: float) -> bool:
        if not is_finite_point(self.center) or not math.isfinite(self.radius):
            return True
        return self.radius <= tolerance


def bulge_to_arc(start: complex, end: complex, bulge: float, **kwargs) -> Optional[Arc]:
    """
    Convert a DXF bulge (tan of a quarter of the included angle, positive
    for counter-clockwise) between two points into an Arc.
    """
    chord = end - start
    chord_length = abs(chord)
    if chord_length == 0 or bulge == 0 or not math.isfinite(bulge):
        return None
    sweep = 4.0 * math.atan(bulge)
    # Signed distance of the center from the chord midpoint, to the left.
    offset = chord_length * (1.0 - bulge * bulge) / (4.0 * bulge)
    center = (start + end) / 2.0 + unit(chord) * 1j * offset
    radius = abs(start - center)
    start_angle = angle_of(start - center)
    return Arc.from_sweep(center, radius, start_angle, sweep, **kwargs)


@dataclass(frozen=True)
class Polyline:
    """
    Sequence of vertices joined by straight or bulged segments. bulges[i]
    applies to the segment leaving vertices[i]; missing entries are straight.
    A closed polyline has a segment from the last vertex back to the first.
    """

    vertices: Tuple[complex, ...]
    bulges: Tuple[float, ...] = ()
    closed: bool = False
    id: str = ""
    layer: Optional[str] = None

    def bulge(self, index: int) -> float:
        if index < len(self.bulges):
            return self.bulges[index]
        return 0.0

    def segments(self) -> list:
        """
        The polyline as Lines and Arcs in traversal order. Zero-length
        segments are skipped.
        """
        count = len(self.vertices)
        pieces = []
        segment_count = count if self.closed else count - 1
        for i in range(max(0, segment_count)):
            a = self.vertices[i]
            b = self.vertices[(i + 1) % count]
            if a == b:
                continue
            piece_id = f"{self.id}:{i}"
            arc = bulge_to_arc(a, b, self.bulge(i), id=piece_id, layer=self.layer)
            if arc is not None:
                pieces.append(arc)
            else:
                pieces.append(Line(a, b, id=piece_id, layer=self.layer))
        return pieces

    @property
    def start(self) -> complex:
        return self.vertices[0]

    @property
    def end(self) -> complex:
        if self.closed:
            return self.vertices[0]
        return self.vertices[-1]

    @property
    def start_tangent(self) -> complex:
        pieces = self.segments()
        return pieces[0].start_tangent if pieces else 0j

    @property
    def end_tangent(self) -> complex:
        pieces = self.segments()
        return pieces[-1].end_tangent if pieces else 0j

    @property
    def length(self) -> float:
        return sum(piece.length for piece in self.segments())

    def point(self, t: float) -> complex:
        pieces = self.segments()
        if not pieces:
            return self.start
        total = sum(piece.length for piece in pieces)
        target = min(max(t, 0.0), 1.0) * total
        for piece in pieces:
            if target <= piece.length or piece is pieces[-1]:
                if piece.length == 0:
                    return piece.start
                return piece.point(min(1.0, target / piece.length))
            target -= piece.length
        return self.end

    def bbox(self):
        pieces = self.segments()
        if not pieces:
            return _bbox_of_points(self.vertices)
        boxes = [piece.bbox() for piece in pieces]
        return (
            min(b[0] for b in boxes),
            min(b[1] for b in boxes),
            max(b[2] for b in boxes),
            max(b[3] for b in boxes),
        )

    def reversed(self) -> "Polyline":
        count = len(self.vertices)
        if self.closed:
            # Walk back around the loop from the same first vertex. Reversed
            # segment j is original segment (count - 1 - j) walked backwards.
            vertices = tuple(self.vertices[(count - j) % count] for j in range(count))
            bulges = [-self.bulge((count - 1 - j) % count) for j in range(count)]
            return replace(self, vertices=vertices, bulges=tuple(bulges))
        vertices = tuple(reversed(self.vertices))
        # Reversed segment j is original segment (count - 2 - j) walked backwards.
        bulges = [-self.bulge(count - 2 - j) for j in range(count - 1)]
        if bulges:
            bulges.append(0.0)
        return replace(self, vertices=vertices, bulges=tuple(bulges))

    def tessellate(self, tolerance: float) -> List[complex]:
        points = [self.start]
        for piece in self.segments():
            points.extend(piece.tessellate(tolerance)[1:])
        return points

    def decompose(self, tolerance: float) -> list:
        return self.segments()

    def is_closed(self, tolerance: float) -> bool:
        if len(self.vertices) < 3 and not any(self.bulges):
            return False
        if self.closed:
            return True
        return squared_distance(self.vertices[0], self.vertices[-1]) <= tolerance * tolerance

    def is_degenerate(self, tolerance: float) -> bool:
        if len(self.vertices) < 2:
            return True
        if not all(is_finite_point(v) for v in self.vertices):
            return True
        if not all(math.isfinite(b) for b in self.bulges):
            return True
        return self.length <= tolerance


@dataclass(frozen=True)
class Ellipse:
    """
    Ellipse or elliptical arc. major_axis is the vector from the center to
    the end of the major axis, ratio the minor to major length ratio. The
    traversal runs over the parametric angle from start_param to end_param,
    equal params describing the full ellipse.
    """

    center: complex
    major_axis: complex
    ratio: float
    start_param: float = 0.0
    end_param: float = TAU
    clockwise: bool = False
    id: str = ""
    layer: Optional[str] = None

    @property
    def minor_axis(self) -> complex:
        return self.major_axis * 1j * self.ratio

    @property
    def sweep(self) -> float:
        return signed_sweep(self.start_param, self.end_param, self.clockwise)

    def point_at_param(self, u: float) -> complex:
        return self.center + self.major_axis * math.cos(u) + self.minor_axis * math.sin(u)

    def tangent_at_param(self, u: float) -> complex:
        derivative = -self.major_axis * math.sin(u) + self.minor_axis * math.cos(u)
        return unit(-derivative if self.clockwise else derivative)

    def point(self, t: float) -> complex:
        return self.point_at_param(self.start_param + self.sweep * t)

    @property
    def start(self) -> complex:
        return self.point_at_param(self.start_param)

    @property
    def end(self) -> complex:
        return self.point_at_param(self.end_param)

    @property
    def start_tangent(self) -> complex:
        return self.tangent_at_param(self.start_param)

    @property
    def end_tangent(self) -> complex:
        return self.tangent_at_param(self.end_param)

    @property
    def length(self) -> float:
        points = self.tessellate(abs(self.major_axis) * 1e-4)
        return sum(abs(b - a) for a, b in zip(points, points[1:]))

    def bbox(self):
        return _bbox_of_points(self.tessellate(abs(self.major_axis) * 1e-4))

    def reversed(self) -> "Ellipse":
        return replace(
            self,
            start_param=self.end_param,
            end_param=self.start_param,
            clockwise=not self.clockwise,
        )

    def tessellate(self, tolerance: float) -> List[complex]:
        count = arc_segment_count(abs(self.major_axis), self.sweep, tolerance)
        return [self.point(i / count) for i in range(count + 1)]

    def decompose(self, tolerance: float) -> list:
        points = self.tessellate(tolerance)
        return [
            Line(a, b, id=f"{self.id}:{i}", layer=self.layer)
            for i, (a, b) in enumerate(zip(points, points[1:]))
            if a != b
        ]

    def is_closed(self, tolerance: float) -> bool:
        return abs(self.sweep) >= TAU - FULL_TURN_EPSILON

    def is_degenerate(self, tolerance: float) -> bool:
        values = (self.ratio, self.start_param, self.end_param)
        if not (is_finite_point(self.center) and is_finite_point(self.major_axis)):
            return True
        if not all(math.isfinite(v) for v in values):
            return True
        return abs(self.major_axis) <= tolerance or abs(self.major_axis) * self.ratio <= tolerance


@dataclass(frozen=True)
class Spline:
    """
    Non-uniform rational B-spline. Without knots a clamped uniform knot vector
    is used, without weights every weight is 1.
    """

    control_points: Tuple[complex, ...]
    degree: int = 3
    knots: Tuple[float, ...] = ()
    weights: Tuple[float, ...] = ()
    fit_points: Tuple[complex, ...] = field(default=(), compare=False)
    id: str = ""
    layer: Optional[str] = None

    @property
    def knot_vector(self) -> Tuple[float, ...]:
        if self.knots:
            return tuple(self.knots)
        return tuple(nurbs.clamped_knots(len(self.control_points), self.degree))

    @property
    def weight_vector(self) -> Tuple[float, ...]:
        if self.weights:
            return tuple(self.weights)
        return (1.0,) * len(self.control_points)

    def _parameter(self, t: float) -> float:
        low, high = nurbs.domain(self.knot_vector, self.degree, len(self.control_points))
        return low + (high - low) * min(max(t, 0.0), 1.0)

    def point(self, t: float) -> complex:
        return nurbs.de_boor(
            self.control_points,
            self.weight_vector,
            self.knot_vector,
            self.degree,
            self._parameter(t),
        )

    def tangent(self, t: float) -> complex:
        h = 1e-6
        a = self.point(max(0.0, t - h))
        b = self.point(min(1.0, t + h))
        return unit(b - a)

    @property
    def start(self) -> complex:
        return self.point(0.0)

    @property
    def end(self) -> complex:
        return self.point(1.0)

    @property
    def start_tangent(self) -> complex:
        return self.tangent(0.0)

    @property
    def end_tangent(self) -> complex:
        return self.tangent(1.0)

    def _control_length(self) -> float:
        cps = self.control_points
        return sum(abs(b - a) for a, b in zip(cps, cps[1:]))

    @property
    def length(self) -> float:
        points = self.tessellate(max(self._control_length(), 1.0) * 1e-5)
        return sum(abs(b - a) for a, b in zip(points, points[1:]))

    def bbox(self):
        # The curve lies inside the convex hull of its control points.
        points = self.tessellate(max(self._control_length(), 1.0) * 1e-5)
        return _bbox_of_points(points)

    def reversed(self) -> "Spline":
        knots = self.knot_vector
        low, high = knots[0], knots[-1]
        return replace(
            self,
            control_points=tuple(reversed(self.control_points)),
            weights=tuple(reversed(self.weights)),
            knots=tuple(low + high - k for k in reversed(knots)),
            fit_points=tuple(reversed(self.fit_points)),
        )

    def tessellate(self, tolerance: float) -> List[complex]:
        initial = max(4, 2 * len(self.control_points))
        return adaptive_points(self.point, tolerance, initial=initial)

    def decompose(self, tolerance: float) -> list:
        points = self.tessellate(tolerance)
        return [
            Line(a, b, id=f"{self.id}:{i}", layer=self.layer)
            for i, (a, b) in enumerate(zip(points, points[1:]))
            if a != b
        ]

    def is_closed(self, tolerance: float) -> bool:
        return squared_distance(self.start, self.end) <= tolerance * tolerance

    def is_degenerate(self, tolerance: float) -> bool:
        count = len(self.control_points)
        if self.degree < 1 or count < self.degree + 1:
            return True
        if self.knots and len(self.knots) != count + self.degree + 1:
            return True
        if self.weights and (
            len(self.weights) != count or any(w <= 0 or not math.isfinite(w) for w in self.weights)
        ):
            return True
        if not all(is_finite_point(p) for p in self.control_points):
            return True
        if self.knots and not all(math.isfinite(k) for k in self.knots):
            return True
        return self._control_length() <= tolerance


Shape = Union[Line, Arc, Circle, Polyline, Ellipse, Spline]

SHAPE_TYPES = (Line, Arc, Circle, Polyline, Ellipse, Spline)

# The primitives the intersection library works on directly.
PRIMITIVE_TYPES = (Line, Arc, Circle)


def check_shape(shape):
    if not isinstance(shape, SHAPE_TYPES):
        raise TypeError(f"Unknown shape type {type(shape).__name__}")
    return shape


def bbox_union(boxes):
    boxes = [b for b in boxes if b is not None]
    if not boxes:
        return None
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )


def bboxes_overlap(a, b, tolerance: float = 0.0) -> bool:
    return not (
        a[0] > b[2] + tolerance
        or a[2] < b[0] - tolerance
        or a[1] > b[3] + tolerance
        or a[3] < b[1] - tolerance
    )


def shape_is_finite(shape) -> bool:
    """
    True if none of the shape's defining numbers is NaN or infinite.
    """
    if isinstance(shape, Line):
        return is_finite_point(shape.start) and is_finite_point(shape.end)
    if isinstance(shape, Arc):
        return is_finite_point(shape.center) and all(
            math.isfinite(v) for v in (shape.radius, shape.start_angle, shape.end_angle)
        )
    if isinstance(shape, Circle):
        return is_finite_point(shape.center) and math.isfinite(shape.radius)
    if isinstance(shape, Polyline):
        return all(is_finite_point(v) for v in shape.vertices) and all(
            math.isfinite(b) for b in shape.bulges
        )
    if isinstance(shape, Ellipse):
        return (
            is_finite_point(shape.center)
            and is_finite_point(shape.major_axis)
            and all(math.isfinite(v) for v in (shape.ratio, shape.start_param, shape.end_param))
        )
    if isinstance(shape, Spline):
        return all(is_finite_point(p) for p in shape.control_points) and all(
            math.isfinite(v) for v in tuple(shape.knots) + tuple(shape.weights)
        )
    raise TypeError(f"Unknown shape type {type(shape).__name__}")
