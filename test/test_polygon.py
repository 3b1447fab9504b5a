import unittest

from chaincut.tools import polygon

SQUARE = [0j, 2 + 0j, 2 + 2j, 2j]

# A "C" shape whose centroid lies in the gap, outside the polygon.
C_SHAPE = [0j, 6 + 0j, 6 + 1j, 1 + 1j, 1 + 5j, 6 + 5j, 6 + 6j, 6j]


class TestPolygon(unittest.TestCase):
    def test_signed_area(self):
        self.assertAlmostEqual(polygon.signed_area(SQUARE), 4.0)
        self.assertAlmostEqual(polygon.signed_area(list(reversed(SQUARE))), -4.0)
        # A repeated closing vertex changes nothing.
        self.assertAlmostEqual(polygon.signed_area(SQUARE + [0j]), 4.0)
        self.assertEqual(polygon.signed_area([0j, 1j]), 0.0)

    def test_perimeter(self):
        self.assertAlmostEqual(polygon.perimeter(SQUARE), 8.0)

    def test_centroid(self):
        self.assertAlmostEqual(polygon.centroid(SQUARE), 1 + 1j)
        self.assertAlmostEqual(polygon.centroid([0j, 2 + 0j, 4 + 0j]), 2)

    def test_winding_number(self):
        self.assertEqual(polygon.winding_number(1 + 1j, SQUARE), 1)
        self.assertEqual(polygon.winding_number(1 + 1j, list(reversed(SQUARE))), -1)
        self.assertEqual(polygon.winding_number(3 + 1j, SQUARE), 0)
        self.assertTrue(polygon.point_in_polygon(0.5 + 0.5j, SQUARE))
        self.assertFalse(polygon.point_in_polygon(-0.5 + 0.5j, SQUARE))

    def test_distance_to_boundary(self):
        self.assertAlmostEqual(polygon.distance_to_boundary(1 + 1j, SQUARE), 1.0)
        self.assertAlmostEqual(polygon.distance_to_boundary(1 + 0.25j, SQUARE), 0.25)
        self.assertAlmostEqual(polygon.distance_to_boundary(5 + 2j, SQUARE), 3.0)

    def test_bbox(self):
        self.assertEqual(polygon.bbox(C_SHAPE), (0.0, 0.0, 6.0, 6.0))

    def test_interior_point(self):
        centroid = polygon.centroid(C_SHAPE)
        self.assertFalse(polygon.point_in_polygon(centroid, C_SHAPE))
        point = polygon.interior_point(C_SHAPE)
        self.assertTrue(polygon.point_in_polygon(point, C_SHAPE))
        self.assertGreater(polygon.distance_to_boundary(point, C_SHAPE), 0.1)

    def test_interior_point_clockwise(self):
        point = polygon.interior_point(list(reversed(SQUARE)))
        self.assertTrue(polygon.point_in_polygon(point, SQUARE))
        self.assertAlmostEqual(point, 1 + 1j)
