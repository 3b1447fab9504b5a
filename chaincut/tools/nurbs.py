"""
NURBS evaluation for spline shapes.

Control points are complex numbers. Rational curves are evaluated in
homogeneous coordinates with de Boor's algorithm, so a spline with unit
weights is an ordinary B-spline.
"""

import numpy as np


def clamped_knots(count, degree):
    """
    Open uniform knot vector for count control points, touching the first and
    last control point.
    """
    inner = count - degree - 1
    knots = [0.0] * (degree + 1)
    for i in range(1, inner + 1):
        knots.append(i / (inner + 1))
    knots.extend([1.0] * (degree + 1))
    return knots


def find_span(knots, degree, count, u):
    """
    Index of the knot span holding parameter u.
    """
    if u >= knots[count]:
        return count - 1
    if u <= knots[degree]:
        return degree
    low = degree
    high = count
    mid = (low + high) // 2
    while u < knots[mid] or u >= knots[mid + 1]:
        if u < knots[mid]:
            high = mid
        else:
            low = mid
        mid = (low + high) // 2
    return mid


def de_boor(control_points, weights, knots, degree, u):
    count = len(control_points)
    k = find_span(knots, degree, count, u)
    homogeneous = np.empty((degree + 1, 3), dtype=float)
    for j in range(degree + 1):
        p = control_points[j + k - degree]
        w = weights[j + k - degree]
        homogeneous[j] = (p.real * w, p.imag * w, w)
    for r in range(1, degree + 1):
        for j in range(degree, r - 1, -1):
            left = knots[j + k - degree]
            right = knots[j + 1 + k - r]
            denom = right - left
            alpha = 0.0 if denom == 0 else (u - left) / denom
            homogeneous[j] = (1.0 - alpha) * homogeneous[j - 1] + alpha * homogeneous[j]
    x, y, w = homogeneous[degree]
    if w == 0:
        return complex(np.nan, np.nan)
    return complex(x / w, y / w)


def evaluate(control_points, weights, knots, degree, positions):
    """
    Evaluate the curve at an iterable of parameters inside the knot domain.
    """
    return [de_boor(control_points, weights, knots, degree, u) for u in positions]


def domain(knots, degree, count):
    return knots[degree], knots[count]
