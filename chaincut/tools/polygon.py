"""
Polygon helpers over tessellated outlines.

A polygon is a sequence of complex vertices, implicitly closed; a repeated
closing vertex is tolerated. Positive signed area means counter-clockwise.
"""

import numpy as np


def as_array(points):
    pts = np.asarray(points, dtype=complex)
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts = pts[:-1]
    return pts


def _cross(a, b):
    return a.real * b.imag - a.imag * b.real


def signed_area(points) -> float:
    pts = as_array(points)
    if len(pts) < 3:
        return 0.0
    nxt = np.roll(pts, -1)
    return float(np.sum(_cross(pts, nxt)) / 2.0)


def perimeter(points) -> float:
    pts = as_array(points)
    if len(pts) < 2:
        return 0.0
    return float(np.sum(np.abs(np.roll(pts, -1) - pts)))


def centroid(points) -> complex:
    """
    Area centroid of the polygon, vertex mean if the area vanishes.
    """
    pts = as_array(points)
    if len(pts) == 0:
        return complex(np.nan, np.nan)
    nxt = np.roll(pts, -1)
    cross = _cross(pts, nxt)
    area = np.sum(cross) / 2.0
    if abs(area) < 1e-12:
        return complex(np.mean(pts))
    return complex(np.sum((pts + nxt) * cross) / (6.0 * area))


def is_left(p0: complex, p1: complex, p2: complex) -> float:
    """Test if point p2 is left|on|right of line p0p1"""
    return (p1.real - p0.real) * (p2.imag - p0.imag) - (p2.real - p0.real) * (
        p1.imag - p0.imag
    )


def winding_number(point: complex, polygon) -> int:
    """Calculate winding number for point with respect to polygon"""
    pts = as_array(polygon)
    wn = 0
    n = len(pts)
    for i in range(n):
        p1 = complex(pts[i])
        p2 = complex(pts[(i + 1) % n])
        if p1.imag <= point.imag:
            if p2.imag > point.imag:  # upward crossing
                if is_left(p1, p2, point) > 0:  # point left of edge
                    wn += 1
        else:
            if p2.imag <= point.imag:  # downward crossing
                if is_left(p1, p2, point) < 0:  # point right of edge
                    wn -= 1
    return wn


def point_in_polygon(point: complex, polygon) -> bool:
    return winding_number(point, polygon) != 0


def distance_to_boundary(point: complex, polygon) -> float:
    """
    Shortest distance from point to any polygon edge.
    """
    pts = as_array(polygon)
    if len(pts) == 0:
        return float("inf")
    if len(pts) == 1:
        return float(abs(point - pts[0]))
    starts = pts
    edges = np.roll(pts, -1) - pts
    lengths = np.abs(edges) ** 2
    with np.errstate(divide="ignore", invalid="ignore"):
        t = ((point - starts) * np.conj(edges)).real / lengths
    t = np.where(lengths > 0, np.clip(t, 0.0, 1.0), 0.0)
    nearest = starts + edges * t
    return float(np.min(np.abs(point - nearest)))


def bbox(points):
    pts = as_array(points)
    return (
        float(np.min(pts.real)),
        float(np.min(pts.imag)),
        float(np.max(pts.real)),
        float(np.max(pts.imag)),
    )


def interior_point(polygon, candidates=16) -> complex:
    """
    Point strictly inside the polygon, as far from the boundary as a cheap
    search finds. From the midpoints of the longest edges a ray is cast along
    the inward normal; the midpoint between the edge and the first boundary
    hit is inside. The deepest such point wins, the centroid is the fallback.
    """
    pts = as_array(polygon)
    n = len(pts)
    if n < 3:
        return centroid(pts)
    area = signed_area(pts)
    if area == 0:
        return centroid(pts)
    starts = pts
    edges = np.roll(pts, -1) - pts
    lengths = np.abs(edges)
    order = np.argsort(-lengths, kind="stable")[:candidates]
    best = None
    best_depth = 0.0
    for index in order:
        length = lengths[index]
        if length == 0:
            continue
        mid = starts[index] + edges[index] / 2.0
        normal = edges[index] / length * (1j if area > 0 else -1j)
        denom = _cross(np.full(n, normal), edges)
        rel = starts - mid
        with np.errstate(divide="ignore", invalid="ignore"):
            t = _cross(rel, edges) / denom
            s = _cross(rel, np.full(n, normal)) / denom
        valid = (np.abs(denom) > 1e-15) & (t > 1e-12) & (s >= 0) & (s <= 1)
        valid[index] = False
        if not np.any(valid):
            continue
        hit = float(np.min(t[valid]))
        candidate = complex(mid + normal * hit / 2.0)
        depth = distance_to_boundary(candidate, pts)
        if depth > best_depth and point_in_polygon(candidate, pts):
            best = candidate
            best_depth = depth
    if best is None:
        return centroid(pts)
    return best
