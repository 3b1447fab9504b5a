import math
import unittest

from chaincut.tools.intersections import (
    IntersectionType,
    intersect,
    intersect_shapes,
)
from chaincut.tools.shapes import Arc, Circle, Line, Polyline


def points_of(hits):
    return sorted(((round(h.point.real, 9), round(h.point.imag, 9)) for h in hits))


class TestLineLine(unittest.TestCase):
    def test_crossing(self):
        hits = intersect(Line(0j, 2 + 2j), Line(2j, 2 + 0j))
        self.assertEqual(len(hits), 1)
        hit = hits[0]
        self.assertAlmostEqual(hit.point, 1 + 1j)
        self.assertAlmostEqual(hit.param1, 0.5)
        self.assertAlmostEqual(hit.param2, 0.5)
        self.assertEqual(hit.type, IntersectionType.INTERIOR)

    def test_parallel(self):
        self.assertEqual(intersect(Line(0j, 2 + 0j), Line(1j, 2 + 1j)), [])

    def test_disjoint(self):
        self.assertEqual(intersect(Line(0j, 1 + 0j), Line(3 - 1j, 3 + 1j)), [])

    def test_collinear_overlap(self):
        hits = intersect(Line(0j, 4 + 0j), Line(2 + 0j, 6 + 0j))
        self.assertEqual(points_of(hits), [(2.0, 0.0), (4.0, 0.0)])
        self.assertTrue(all(h.type == IntersectionType.COINCIDENT for h in hits))

    def test_endpoint(self):
        hits = intersect(Line(0j, 2 + 0j), Line(1 + 0j, 1 + 2j))
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits[0].type, IntersectionType.ENDPOINT)
        self.assertAlmostEqual(hits[0].param2, 0.0)

    def test_extended(self):
        a = Line(0j, 1 + 0j)
        b = Line(3 + 1j, 3 + 2j)
        self.assertEqual(intersect(a, b), [])
        hits = intersect(a, b, extended=True)
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].point, 3)
        self.assertAlmostEqual(hits[0].param1, 3.0)
        self.assertAlmostEqual(hits[0].param2, -1.0)

    def test_non_finite_discarded(self):
        broken = Line(complex(math.nan, 0), 1 + 0j)
        self.assertEqual(intersect(broken, Line(0.5 - 1j, 0.5 + 1j)), [])


class TestLineArc(unittest.TestCase):
    def test_secant(self):
        hits = intersect(Line(-2 + 0j, 2 + 0j), Circle(0j, 1.0))
        self.assertEqual(points_of(hits), [(-1.0, 0.0), (1.0, 0.0)])
        by_x = sorted(hits, key=lambda h: h.point.real)
        self.assertAlmostEqual(by_x[0].param1, 0.25)
        self.assertAlmostEqual(by_x[0].param2, math.pi)
        self.assertAlmostEqual(by_x[1].param1, 0.75)
        self.assertAlmostEqual(by_x[1].param2, 0.0)
        self.assertTrue(all(h.type == IntersectionType.INTERIOR for h in hits))

    def test_tangent(self):
        hits = intersect(Line(-2 + 1j, 2 + 1j), Circle(0j, 1.0))
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].point, 1j)
        self.assertEqual(hits[0].type, IntersectionType.TANGENT)

    def test_miss(self):
        self.assertEqual(intersect(Line(-2 + 2j, 2 + 2j), Circle(0j, 1.0)), [])

    def test_arc_span(self):
        upper = Arc(0j, 1.0, 0.0, math.pi)
        self.assertEqual(intersect(Line(-2 - 0.5j, 2 - 0.5j), upper), [])
        hits = intersect(Line(-2 + 0.5j, 2 + 0.5j), upper)
        self.assertEqual(len(hits), 2)

    def test_arc_endpoint(self):
        upper = Arc(0j, 1.0, 0.0, math.pi)
        hits = intersect(Line(1 - 1j, 1 + 1j), upper)
        # Touching the circle at the arc's start is a tangent contact.
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].point, 1)
        hits = intersect(Line(0j, 2 + 0j), upper)
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits[0].type, IntersectionType.ENDPOINT)

    def test_arc_line_order(self):
        hits = intersect(Circle(0j, 1.0), Line(0j, 2 + 0j))
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].param1, 0.0)
        self.assertAlmostEqual(hits[0].param2, 0.5)

    def test_extended_arc(self):
        quarter = Arc(0j, 1.0, 0.0, math.pi / 2)
        line = Line(-2 + 0.5j, -1.5 + 0.5j)
        self.assertEqual(intersect(line, quarter), [])
        self.assertEqual(len(intersect(line, quarter, extended=True)), 2)


class TestArcArc(unittest.TestCase):
    def test_two_points(self):
        hits = intersect(Circle(0j, 1.0), Circle(1 + 0j, 1.0))
        half = round(math.sqrt(3) / 2, 9)
        self.assertEqual(points_of(hits), [(0.5, -half), (0.5, half)])

    def test_external_tangent(self):
        hits = intersect(Circle(0j, 1.0), Circle(2 + 0j, 1.0))
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].point, 1)
        self.assertEqual(hits[0].type, IntersectionType.TANGENT)

    def test_internal_tangent(self):
        hits = intersect(Circle(0j, 2.0), Circle(1 + 0j, 1.0))
        self.assertEqual(len(hits), 1)
        self.assertAlmostEqual(hits[0].point, 2)

    def test_separate_and_nested(self):
        self.assertEqual(intersect(Circle(0j, 1.0), Circle(5 + 0j, 1.0)), [])
        self.assertEqual(intersect(Circle(0j, 3.0), Circle(0.5 + 0j, 1.0)), [])

    def test_concentric(self):
        self.assertEqual(intersect(Circle(0j, 1.0), Circle(0j, 2.0)), [])

    def test_coincident(self):
        hits = intersect(Circle(0j, 1.0), Circle(0j, 1.0))
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits[0].type, IntersectionType.COINCIDENT)
        hits = intersect(Arc(0j, 1.0, 0.0, math.pi), Arc(0j, 1.0, math.pi / 2, 3 * math.pi / 2))
        self.assertEqual(points_of(hits), [(-1.0, 0.0), (0.0, 1.0)])
        self.assertTrue(all(h.type == IntersectionType.COINCIDENT for h in hits))

    def test_arc_span(self):
        right = Arc(0j, 1.0, -math.pi / 2, math.pi / 2)
        hits = intersect(right, Circle(1 + 0j, 1.0))
        self.assertEqual(len(hits), 2)
        left = Arc(0j, 1.0, math.pi / 2, 3 * math.pi / 2)
        self.assertEqual(intersect(left, Circle(1 + 0j, 1.0)), [])


class TestDispatch(unittest.TestCase):
    def test_composite_rejected(self):
        square = Polyline((0j, 1 + 0j, 1 + 1j), closed=True)
        with self.assertRaises(TypeError):
            intersect(square, Line(0j, 1j))

    def test_intersect_shapes(self):
        square = Polyline((0j, 10 + 0j, 10 + 10j, 10j), closed=True)
        hits = intersect_shapes(square, Line(5 - 5j, 5 + 15j))
        self.assertEqual(points_of(hits), [(5.0, 0.0), (5.0, 10.0)])

    def test_intersect_shapes_primitives(self):
        hits = intersect_shapes(Line(0j, 2 + 2j), Line(2j, 2 + 0j))
        self.assertEqual(len(hits), 1)
