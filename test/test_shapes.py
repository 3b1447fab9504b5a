import math
import unittest

from chaincut.core.chains import ChainLink
from chaincut.tools.shapes import (
    Arc,
    Circle,
    Ellipse,
    Line,
    Polyline,
    Spline,
    bulge_to_arc,
    check_shape,
    shape_is_finite,
    signed_sweep,
)


class TestLine(unittest.TestCase):
    def test_basics(self):
        line = Line(0j, 3 + 4j, id="l1", layer="cut")
        self.assertEqual(line.length, 5)
        self.assertEqual(line.point(0.5), 1.5 + 2j)
        self.assertEqual(line.bbox(), (0, 0, 3, 4))
        self.assertAlmostEqual(line.start_tangent, 0.6 + 0.8j)

    def test_reversed(self):
        line = Line(0j, 3 + 4j, id="l1", layer="cut")
        back = line.reversed()
        self.assertEqual(back.start, 3 + 4j)
        self.assertEqual(back.end, 0j)
        self.assertEqual(back.id, "l1")
        self.assertEqual(back.layer, "cut")
        # Shapes are never changed in place.
        self.assertEqual(line.start, 0j)

    def test_degenerate(self):
        self.assertTrue(Line(1 + 1j, 1 + 1j).is_degenerate(0.01))
        self.assertTrue(Line(0j, complex(math.nan, 0)).is_degenerate(0.01))
        self.assertFalse(Line(0j, 1j).is_degenerate(0.01))
        self.assertFalse(Line(0j, 1j).is_closed(0.01))


class TestArc(unittest.TestCase):
    def test_quarter(self):
        arc = Arc(0j, 1.0, 0.0, math.pi / 2)
        self.assertAlmostEqual(arc.start, 1)
        self.assertAlmostEqual(arc.end, 1j)
        self.assertAlmostEqual(arc.length, math.pi / 2)
        self.assertAlmostEqual(arc.start_tangent, 1j)
        self.assertAlmostEqual(arc.end_tangent, -1)
        for value, expected in zip(arc.bbox(), (0, 0, 1, 1)):
            self.assertAlmostEqual(value, expected)

    def test_clockwise(self):
        arc = Arc(0j, 2.0, math.pi / 2, 0.0, clockwise=True)
        self.assertAlmostEqual(arc.sweep, -math.pi / 2)
        self.assertAlmostEqual(arc.point(0.5), 2 * complex(math.cos(math.pi / 4), math.sin(math.pi / 4)))
        self.assertAlmostEqual(arc.start_tangent, 1)

    def test_bbox_crosses_axis(self):
        arc = Arc(0j, 1.0, math.pi / 4, 3 * math.pi / 4)
        box = arc.bbox()
        self.assertAlmostEqual(box[3], 1.0)
        self.assertAlmostEqual(box[1], math.sqrt(2) / 2)

    def test_reversed(self):
        arc = Arc(1j, 1.0, 0.0, math.pi, id="a")
        back = arc.reversed()
        self.assertTrue(back.clockwise)
        self.assertAlmostEqual(back.start, arc.end)
        self.assertAlmostEqual(back.end, arc.start)
        self.assertAlmostEqual(back.point(0.5), arc.point(0.5))

    def test_full_turn(self):
        arc = Arc(0j, 1.0, 1.0, 1.0)
        self.assertAlmostEqual(arc.sweep, math.tau)
        self.assertTrue(arc.is_closed(0.01))
        self.assertAlmostEqual(signed_sweep(0.0, 0.0, True), -math.tau)

    def test_from_sweep(self):
        arc = Arc.from_sweep(0j, 1.0, math.pi / 2, -math.pi)
        self.assertTrue(arc.clockwise)
        self.assertAlmostEqual(arc.end, -1j)

    def test_tessellation_tolerance(self):
        arc = Arc(0j, 10.0, 0.0, math.pi)
        tolerance = 0.01
        points = arc.tessellate(tolerance)
        self.assertAlmostEqual(points[0], arc.start)
        self.assertAlmostEqual(points[-1], arc.end)
        for a, b in zip(points, points[1:]):
            chord_mid = (a + b) / 2
            self.assertLessEqual(10.0 - abs(chord_mid), tolerance + 1e-9)

    def test_degenerate(self):
        self.assertTrue(Arc(0j, 0.0, 0.0, 1.0).is_degenerate(0.01))
        self.assertTrue(Arc(0j, 1.0, math.inf, 1.0).is_degenerate(0.01))


class TestCircle(unittest.TestCase):
    def test_basics(self):
        circle = Circle(1 + 1j, 2.0)
        self.assertEqual(circle.start, 3 + 1j)
        self.assertEqual(circle.end, 3 + 1j)
        self.assertEqual(circle.bbox(), (-1, -1, 3, 3))
        self.assertAlmostEqual(circle.length, 4 * math.pi)
        self.assertTrue(circle.is_closed(0.01))
        self.assertAlmostEqual(circle.point(0.25), 1 + 3j)

    def test_reversed(self):
        circle = Circle(0j, 1.0).reversed()
        self.assertTrue(circle.clockwise)
        self.assertAlmostEqual(circle.point(0.25), -1j)
        self.assertEqual(circle.start_tangent, -1j)

    def test_as_arc(self):
        arc = Circle(0j, 1.0, clockwise=True, id="c").as_arc()
        self.assertAlmostEqual(arc.sweep, -math.tau)
        self.assertEqual(arc.id, "c")


class TestPolyline(unittest.TestCase):
    def test_bulge_semicircle(self):
        arc = bulge_to_arc(0j, 2 + 0j, 1.0)
        self.assertAlmostEqual(arc.center, 1)
        self.assertAlmostEqual(arc.radius, 1)
        self.assertFalse(arc.clockwise)
        self.assertAlmostEqual(arc.point(0.5), 1 - 1j)
        self.assertAlmostEqual(arc.end, 2)

    def test_bulge_large(self):
        # Three quarters of a turn, the center lies right of the chord.
        bulge = math.tan(3 * math.pi / 2 / 4)
        arc = bulge_to_arc(0j, 2 + 0j, bulge)
        self.assertAlmostEqual(abs(arc.sweep), 3 * math.pi / 2)
        self.assertAlmostEqual(arc.center, 1 - 1j)
        self.assertAlmostEqual(arc.radius, math.sqrt(2))
        self.assertAlmostEqual(arc.start, 0)
        self.assertAlmostEqual(arc.end, 2)

    def test_segments(self):
        poly = Polyline((0j, 2 + 0j, 2 + 2j), bulges=(1.0,), id="p")
        pieces = poly.segments()
        self.assertIsInstance(pieces[0], Arc)
        self.assertIsInstance(pieces[1], Line)
        self.assertEqual(pieces[1].id, "p:1")
        self.assertAlmostEqual(poly.length, math.pi + 2)
        self.assertEqual(poly.end, 2 + 2j)
        self.assertFalse(poly.is_closed(0.01))

    def test_closed(self):
        poly = Polyline((0j, 1 + 0j, 1 + 1j, 1j), closed=True)
        self.assertEqual(len(poly.segments()), 4)
        self.assertEqual(poly.end, 0j)
        self.assertTrue(poly.is_closed(0.01))
        self.assertEqual(poly.bbox(), (0, 0, 1, 1))

    def test_reversed(self):
        poly = Polyline((0j, 2 + 0j, 2 + 2j), bulges=(1.0, 0.0))
        back = poly.reversed()
        self.assertEqual(back.vertices, (2 + 2j, 2 + 0j, 0j))
        self.assertEqual(back.bulges, (0.0, -1.0, 0.0))
        arc = back.segments()[1]
        self.assertTrue(arc.clockwise)
        self.assertAlmostEqual(arc.point(0.5), 1 - 1j)
        self.assertAlmostEqual(back.length, poly.length)

    def test_reversed_closed(self):
        poly = Polyline((0j, 2 + 0j, 2 + 2j, 2j), bulges=(0.0, 0.5, 0.0, 0.0), closed=True)
        back = poly.reversed()
        self.assertEqual(back.vertices, (0j, 2j, 2 + 2j, 2 + 0j))
        self.assertEqual(back.start, poly.end)
        self.assertEqual(back.end, poly.start)
        # Segment 1 (2 -> 2+2j) comes back as segment 2 (2+2j -> 2).
        self.assertEqual(back.bulges[2], -0.5)
        self.assertAlmostEqual(back.segments()[2].point(0.5), poly.segments()[1].point(0.5))
        self.assertAlmostEqual(back.length, poly.length)

    def test_reversed_closed_link(self):
        link = ChainLink(Polyline((0j, 2 + 0j, 2 + 2j, 2j), closed=True), reversed=True)
        self.assertEqual(link.start, link.oriented().start)
        self.assertEqual(link.end, link.oriented().end)
        self.assertAlmostEqual(link.start_tangent, link.oriented().start_tangent)

    def test_degenerate(self):
        self.assertTrue(Polyline((1j,)).is_degenerate(0.01))
        self.assertTrue(Polyline((0j, 0j)).is_degenerate(0.01))


class TestEllipse(unittest.TestCase):
    def test_points(self):
        ellipse = Ellipse(0j, 2 + 0j, 0.5)
        self.assertAlmostEqual(ellipse.point(0.0), 2)
        self.assertAlmostEqual(ellipse.point(0.25), 1j)
        self.assertTrue(ellipse.is_closed(0.01))
        box = ellipse.bbox()
        self.assertAlmostEqual(box[0], -2, places=3)
        self.assertAlmostEqual(box[3], 1, places=3)

    def test_decompose(self):
        ellipse = Ellipse(0j, 2 + 0j, 0.5, 0.0, math.pi)
        lines = ellipse.decompose(0.01)
        self.assertTrue(all(isinstance(line, Line) for line in lines))
        self.assertAlmostEqual(lines[0].start, 2)
        self.assertAlmostEqual(lines[-1].end, -2)

    def test_reversed(self):
        ellipse = Ellipse(0j, 2 + 0j, 0.5, 0.0, math.pi / 2)
        back = ellipse.reversed()
        self.assertAlmostEqual(back.start, ellipse.end)
        self.assertAlmostEqual(back.point(0.5), ellipse.point(0.5))


class TestSpline(unittest.TestCase):
    def setUp(self):
        self.spline = Spline((0j, 1 + 2j, 3 + 2j, 4 + 0j), id="s")

    def test_bezier_equivalent(self):
        self.assertAlmostEqual(self.spline.start, 0)
        self.assertAlmostEqual(self.spline.end, 4)
        self.assertAlmostEqual(self.spline.point(0.5), 2 + 1.5j)

    def test_reversed(self):
        back = self.spline.reversed()
        self.assertAlmostEqual(back.start, 4)
        self.assertAlmostEqual(back.point(0.25), self.spline.point(0.75))

    def test_rational(self):
        # Equal weights do not change the curve.
        weighted = Spline(self.spline.control_points, weights=(2.0, 2.0, 2.0, 2.0))
        self.assertAlmostEqual(weighted.point(0.3), self.spline.point(0.3))

    def test_tessellate(self):
        points = self.spline.tessellate(0.01)
        self.assertAlmostEqual(points[0], 0)
        self.assertAlmostEqual(points[-1], 4)
        self.assertGreater(len(points), 4)

    def test_degenerate(self):
        self.assertTrue(Spline((0j, 1j)).is_degenerate(0.01))
        self.assertTrue(Spline((0j, 1j, 2j, 3j), knots=(0, 1)).is_degenerate(0.01))
        self.assertFalse(self.spline.is_degenerate(0.01))


class TestShapeHelpers(unittest.TestCase):
    def test_check_shape(self):
        line = Line(0j, 1j)
        self.assertIs(check_shape(line), line)
        with self.assertRaises(TypeError):
            check_shape((0, 1))

    def test_shape_is_finite(self):
        self.assertTrue(shape_is_finite(Circle(0j, 1.0)))
        self.assertFalse(shape_is_finite(Circle(0j, math.nan)))
        self.assertFalse(shape_is_finite(Polyline((0j, complex(math.inf, 0)))))
        with self.assertRaises(TypeError):
            shape_is_finite("line")
