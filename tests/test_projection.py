import unittest

from core.projection import CoordinateProvider

WEB_MERCATOR_HALF_WORLD = 20037508.342789244


class TestCoordinateProvider(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.provider = CoordinateProvider("EPSG:3857")

    def test_bounds_of_web_mercator(self):
        minx, miny, maxx, maxy = self.provider.bounds()
        self.assertAlmostEqual(minx, -WEB_MERCATOR_HALF_WORLD, delta=1.0)
        self.assertAlmostEqual(maxx, WEB_MERCATOR_HALF_WORLD, delta=1.0)
        self.assertLess(miny, 0)
        self.assertGreater(maxy, 0)

    def test_view_extent_doubles_x_range(self):
        minx, miny, maxx, maxy = self.provider.bounds()
        vminx, vminy, vmaxx, vmaxy = self.provider.view_extent()
        self.assertAlmostEqual(vminx, 2 * minx)
        self.assertAlmostEqual(vmaxx, 2 * maxx)
        self.assertEqual((vminy, vmaxy), (miny, maxy))

    def test_origin_is_null_island(self):
        lon, lat = self.provider.to_lonlat((0.0, 0.0))
        self.assertAlmostEqual(lon, 0.0, places=6)
        self.assertAlmostEqual(lat, 0.0, places=6)

    def test_lonlat_round_trip(self):
        x, y = self.provider.from_lonlat(-98.8, 38.1)
        lon, lat = self.provider.to_lonlat((x, y))
        self.assertAlmostEqual(lon, -98.8, places=6)
        self.assertAlmostEqual(lat, 38.1, places=6)

    def test_default_center_is_in_north_america(self):
        lon, lat = self.provider.to_lonlat((-11000000, 4600000))
        self.assertTrue(-100 < lon < -97)
        self.assertTrue(37 < lat < 40)

    def test_resolution_halves_per_zoom_level(self):
        self.assertAlmostEqual(CoordinateProvider.resolution(0), 156543.03392804097)
        self.assertAlmostEqual(CoordinateProvider.resolution(4), 156543.03392804097 / 16)
        self.assertAlmostEqual(CoordinateProvider.resolution(5) * 2, CoordinateProvider.resolution(4))


if __name__ == '__main__':
    unittest.main()
