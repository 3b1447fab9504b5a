"""
Exact intersections between Line, Arc and Circle.

Every ordered pair of the three primitives is supported. Composite shapes
(polylines, ellipses, splines) go through intersect_shapes(), which
decomposes them first. Parameters of the returned points are 0-1 along a
line and the polar angle in radians around an arc or circle center.

With extended=True lines are treated as infinite and arcs as full circles,
which is what join trimming needs to find where two neighbours would meet.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List

from .shapes import (
    PRIMITIVE_TYPES,
    Circle,
    Line,
    angle_of,
    bboxes_overlap,
    cross,
    dot,
    is_finite_point,
    squared_distance,
)


class IntersectionType(Enum):
    ENDPOINT = "endpoint"
    INTERIOR = "interior"
    TANGENT = "tangent"
    COINCIDENT = "coincident"


@dataclass(frozen=True)
class IntersectionPoint:
    point: complex
    param1: float
    param2: float
    type: IntersectionType

    def swapped(self) -> "IntersectionPoint":
        return IntersectionPoint(self.point, self.param2, self.param1, self.type)


def _endpoints(shape):
    # A circle's start is a convention, not a real endpoint.
    if isinstance(shape, Circle):
        return ()
    return shape.start, shape.end


def _classify(point, a, b, tolerance, tangent=False):
    if tangent:
        return IntersectionType.TANGENT
    limit = tolerance * tolerance
    for end in _endpoints(a) + _endpoints(b):
        if squared_distance(point, end) <= limit:
            return IntersectionType.ENDPOINT
    return IntersectionType.INTERIOR


def _as_arc(shape):
    if isinstance(shape, Circle):
        return shape.as_arc()
    return shape


def _on_arc(arc, angle, tolerance, extended):
    if extended or arc.is_closed(tolerance):
        return True
    slack = tolerance / arc.radius if arc.radius > 0 else 0.0
    return arc.contains_angle(angle, slack)


def _add(results, hit, tolerance):
    if not is_finite_point(hit.point):
        return
    if not (math.isfinite(hit.param1) and math.isfinite(hit.param2)):
        return
    limit = tolerance * tolerance
    for existing in results:
        if squared_distance(existing.point, hit.point) <= limit:
            return
    results.append(hit)


def _line_param(line, point):
    d = line.end - line.start
    length2 = dot(d, d)
    if length2 == 0:
        return 0.0
    return dot(point - line.start, d) / length2


def intersect_line_line(a: Line, b: Line, tolerance=1e-9, extended=False):
    results = []
    d1 = a.end - a.start
    d2 = b.end - b.start
    r = b.start - a.start
    len1 = abs(d1)
    len2 = abs(d2)
    if len1 == 0 or len2 == 0:
        return results
    denom = cross(d1, d2)
    if abs(denom) <= 1e-12 * len1 * len2:
        # Parallel. Collinear overlaps report the shared stretch's ends.
        offset = cross(d1, r) / len1
        if offset * offset > tolerance * tolerance or extended:
            return results
        t0 = _line_param(a, b.start)
        t1 = _line_param(a, b.end)
        low = max(0.0, min(t0, t1))
        high = min(1.0, max(t0, t1))
        slack = tolerance / len1
        if low > high + slack:
            return results
        for t in (low, high):
            t = min(max(t, 0.0), 1.0)
            p = a.point(t)
            hit = IntersectionPoint(p, t, _line_param(b, p), IntersectionType.COINCIDENT)
            _add(results, hit, tolerance)
        return results
    t = cross(r, d2) / denom
    u = cross(r, d1) / denom
    if not extended:
        slack1 = tolerance / len1
        slack2 = tolerance / len2
        if t < -slack1 or t > 1 + slack1 or u < -slack2 or u > 1 + slack2:
            return results
        t = min(max(t, 0.0), 1.0)
        u = min(max(u, 0.0), 1.0)
    p = a.start + d1 * t
    _add(results, IntersectionPoint(p, t, u, _classify(p, a, b, tolerance)), tolerance)
    return results


def intersect_line_arc(line: Line, shape, tolerance=1e-9, extended=False):
    results = []
    arc = _as_arc(shape)
    d = line.end - line.start
    f = line.start - arc.center
    length2 = dot(d, d)
    if length2 == 0:
        return results
    length = math.sqrt(length2)
    # Distance from the center to the infinite line.
    h = abs(cross(d, f)) / length
    foot = -dot(f, d) / length2
    tangent = (h - arc.radius) ** 2 <= tolerance * tolerance
    if tangent:
        roots = (foot,)
    elif h > arc.radius:
        return results
    else:
        half = math.sqrt(arc.radius * arc.radius - h * h) / length
        roots = (foot - half, foot + half)
    slack = tolerance / length
    for t in roots:
        if not math.isfinite(t):
            continue
        if not extended:
            if t < -slack or t > 1 + slack:
                continue
            t = min(max(t, 0.0), 1.0)
        p = line.start + d * t
        angle = angle_of(p - arc.center)
        if not _on_arc(arc, angle, tolerance, extended):
            continue
        kind = _classify(p, line, shape, tolerance, tangent)
        _add(results, IntersectionPoint(p, t, angle, kind), tolerance)
    return results


def intersect_arc_arc(a, b, tolerance=1e-9, extended=False):
    results = []
    arc1 = _as_arc(a)
    arc2 = _as_arc(b)
    c1, r1 = arc1.center, arc1.radius
    c2, r2 = arc2.center, arc2.radius
    between = c2 - c1
    distance2 = dot(between, between)
    limit = tolerance * tolerance
    if distance2 <= limit:
        if (r1 - r2) ** 2 > limit or extended:
            return results
        # Coincident circles: report the ends of one arc lying on the other.
        candidates = list(_endpoints(a)) + list(_endpoints(b))
        if not candidates:
            candidates = [arc1.start]
        for p in candidates:
            angle = angle_of(p - c1)
            if _on_arc(arc1, angle, tolerance, False) and _on_arc(arc2, angle, tolerance, False):
                hit = IntersectionPoint(p, angle, angle, IntersectionType.COINCIDENT)
                _add(results, hit, tolerance)
        return results
    distance = math.sqrt(distance2)
    if distance > r1 + r2 + tolerance or distance < abs(r1 - r2) - tolerance:
        return results
    along = (distance2 + r1 * r1 - r2 * r2) / (2.0 * distance)
    axis = between / distance
    base = c1 + axis * along
    tangent = (distance - (r1 + r2)) ** 2 <= limit or (distance - abs(r1 - r2)) ** 2 <= limit
    if tangent:
        points = (base,)
    else:
        h = math.sqrt(max(r1 * r1 - along * along, 0.0))
        points = (base + axis * 1j * h, base - axis * 1j * h)
    for p in points:
        angle1 = angle_of(p - c1)
        angle2 = angle_of(p - c2)
        if not _on_arc(arc1, angle1, tolerance, extended):
            continue
        if not _on_arc(arc2, angle2, tolerance, extended):
            continue
        kind = _classify(p, a, b, tolerance, tangent)
        _add(results, IntersectionPoint(p, angle1, angle2, kind), tolerance)
    return results


def intersect(a, b, tolerance=1e-9, extended=False) -> List[IntersectionPoint]:
    """
    Intersection points of two primitives. Raises TypeError for anything
    other than Line, Arc or Circle.
    """
    for shape in (a, b):
        if not isinstance(shape, PRIMITIVE_TYPES):
            raise TypeError(f"Cannot intersect {type(shape).__name__}, decompose it first")
    if isinstance(a, Line):
        if isinstance(b, Line):
            return intersect_line_line(a, b, tolerance, extended)
        return intersect_line_arc(a, b, tolerance, extended)
    if isinstance(b, Line):
        return [hit.swapped() for hit in intersect_line_arc(b, a, tolerance, extended)]
    return intersect_arc_arc(a, b, tolerance, extended)


def intersect_shapes(a, b, tolerance=1e-9, decompose_tolerance=0.01) -> List[IntersectionPoint]:
    """
    Intersections of any two shapes. Composite shapes are decomposed into
    primitives first; the parameters then refer to the piece that was hit.
    """
    pieces_a = [a] if isinstance(a, PRIMITIVE_TYPES) else a.decompose(decompose_tolerance)
    pieces_b = [b] if isinstance(b, PRIMITIVE_TYPES) else b.decompose(decompose_tolerance)
    results = []
    for piece_a in pieces_a:
        box_a = piece_a.bbox()
        for piece_b in pieces_b:
            if not bboxes_overlap(box_a, piece_b.bbox(), tolerance):
                continue
            for hit in intersect(piece_a, piece_b, tolerance):
                _add(results, hit, tolerance)
    return results
