import math
import unittest

import numpy as np

from airflow_core import (
    top_view_velocity, side_view_velocity, pressure_coeff, cp_to_color, stream_color,
    vortex_velocity, flow_velocity, trace_streamline_path, paths_to_array,
    flow_velocity_field, side_view_velocity_field, pressure_field, cp_to_color_array,
)


class TestTopViewVelocity(unittest.TestCase):
    def test_zero_inside_body(self):
        """Velocity is exactly zero inside and on the body surface"""
        for xi, eta in [(0, 0), (0.5, 0.5), (0, 1), (1, 0), (-0.6, 0.8), (0.3, -0.9)]:
            self.assertEqual(top_view_velocity(xi, eta), (0.0, 0.0))

    def test_freestream_recovery(self):
        vxi, veta = top_view_velocity(0, 100)
        self.assertAlmostEqual(vxi, 0.0, places=3)
        self.assertAlmostEqual(veta, 1.0, places=3)

    def test_stagnation_points(self):
        for eta in (-1.001, 1.001):
            vxi, veta = top_view_velocity(0, eta)
            self.assertLess(math.hypot(vxi, veta), 0.05)

    def test_shoulder_acceleration(self):
        vxi, veta = top_view_velocity(1.05, 0)
        self.assertGreater(math.hypot(vxi, veta), 1.5)

    def test_lateral_antisymmetry(self):
        for xi, eta in [(1.3, -2.0), (2.5, 0.4), (0.7, 1.9), (4.0, -7.5)]:
            pos = top_view_velocity(xi, eta)
            neg = top_view_velocity(-xi, eta)
            self.assertEqual(neg[0], -pos[0])
            self.assertEqual(neg[1], pos[1])

    def test_longitudinal_symmetry(self):
        top = top_view_velocity(1.4, 1.2)
        bot = top_view_velocity(1.4, -1.2)
        self.assertAlmostEqual(bot[1], top[1])
        self.assertAlmostEqual(bot[0], -top[0])

    def test_finite_far_away(self):
        vxi, veta = top_view_velocity(1e6, -1e6)
        self.assertTrue(math.isfinite(vxi) and math.isfinite(veta))


class TestSideViewVelocity(unittest.TestCase):
    def test_same_closed_form_in_side_plane(self):
        """(veta, vy) mirrors the top-view (veta, vxi) with the axes swapped"""
        veta, vy = side_view_velocity(-1.5, 0.8)
        vxi_top, veta_top = top_view_velocity(0.8, -1.5)
        self.assertAlmostEqual(veta, veta_top)
        self.assertAlmostEqual(vy, vxi_top)

    def test_deflects_up_over_the_nose(self):
        _, vy = side_view_velocity(-1.5, 0.5)
        self.assertGreater(vy, 0.0)

    def test_zero_inside_body(self):
        self.assertEqual(side_view_velocity(0.2, 0.3), (0.0, 0.0))


class TestPressureAndColor(unittest.TestCase):
    def test_pressure_coeff_reference_values(self):
        self.assertEqual(pressure_coeff(0, 0), 1)
        self.assertEqual(pressure_coeff(0, 1), 0)
        self.assertLess(pressure_coeff(1.2, 1.5), 0)

    def test_pressure_coeff_never_above_one(self):
        rng = np.random.default_rng(0)
        for vx, ve in rng.uniform(-50, 50, (200, 2)):
            self.assertLessEqual(pressure_coeff(vx, ve), 1.0)

    def test_stagnation_is_red(self):
        r, g, b = cp_to_color(1.0)
        self.assertGreater(r, 0.8)
        self.assertLess(b, 0.2)

    def test_suction_is_blue(self):
        r, g, b = cp_to_color(-3.0)
        self.assertGreater(b, 0.8)
        self.assertLess(r, 0.2)

    def test_freestream_is_green(self):
        self.assertGreater(cp_to_color(0.0)[1], 0.5)

    def test_channels_in_unit_range(self):
        for cp in np.linspace(-10, 10, 101):
            for channel in cp_to_color(cp):
                self.assertGreaterEqual(channel, 0.0)
                self.assertLessEqual(channel, 1.0)

    def test_out_of_range_clamps(self):
        self.assertAlmostEqual(cp_to_color(50.0)[0], 1.0, places=2)
        self.assertAlmostEqual(cp_to_color(-50.0)[2], 1.0, places=2)

    def test_color_array_matches_scalar(self):
        cps = np.linspace(-4, 2, 37)
        colors = cp_to_color_array(cps)
        self.assertEqual(colors.shape, (37, 3))
        for cp, rgb in zip(cps, colors):
            np.testing.assert_allclose(rgb, cp_to_color(cp), atol=1e-12)

    def test_stream_color_ramp(self):
        self.assertEqual(stream_color(-3.0), (0.20, 0.70, 1.00))
        r, g, b = stream_color(1.0)
        self.assertAlmostEqual(r, 1.0)
        self.assertAlmostEqual(g, 1.0)
        self.assertAlmostEqual(b, 0.45)


class TestVortexVelocity(unittest.TestCase):
    def test_zero_at_centre(self):
        self.assertEqual(vortex_velocity(0.3, -0.2, 0.3, -0.2, 1.0, 0.2), (0.0, 0.0))

    def test_purely_tangential(self):
        x0, e0 = 0.5, 1.0
        vxi, veta = vortex_velocity(x0 + 0.7, e0, x0, e0, 1.0, 0.2)
        radial = vxi * 1.0 + veta * 0.0
        self.assertAlmostEqual(radial, 0.0)
        self.assertGreater(veta, 0.0)

    def test_core_and_outer_profiles(self):
        def speed(r):
            return math.hypot(*vortex_velocity(r, 0.0, 0.0, 0.0, 1.0, 0.2))

        self.assertLess(speed(0.05), speed(0.1))
        self.assertLess(speed(0.1), speed(0.19))
        self.assertGreater(speed(0.3), speed(0.6))
        self.assertGreater(speed(0.6), speed(1.2))

    def test_core_edge_matches_outer_law(self):
        rc = 0.25
        inner = math.hypot(*vortex_velocity(rc - 1e-9, 0.0, 0.0, 0.0, 2.0, rc))
        self.assertAlmostEqual(inner, 2.0 / (2 * math.pi * rc), places=6)


class TestSuperposedField(unittest.TestCase):
    VORTICES = [(1.5, 2.0, 0.8, 0.1), (-1.5, 2.0, -0.8, 0.1)]

    def test_scalar_superposition(self):
        base = top_view_velocity(1.2, 1.8)
        total = flow_velocity(1.2, 1.8, self.VORTICES)
        extra = [vortex_velocity(1.2, 1.8, *v) for v in self.VORTICES]
        self.assertAlmostEqual(total[0], base[0] + sum(e[0] for e in extra))
        self.assertAlmostEqual(total[1], base[1] + sum(e[1] for e in extra))

    def test_field_matches_scalar(self):
        xi = np.linspace(-3, 3, 7)
        eta = np.linspace(-4, 4, 9)
        XI, ETA = np.meshgrid(xi, eta)
        VX, VE = flow_velocity_field(XI, ETA, self.VORTICES)
        self.assertEqual(VX.shape, XI.shape)
        for (i, j), x in np.ndenumerate(XI):
            expected = flow_velocity(x, ETA[i, j], self.VORTICES)
            self.assertAlmostEqual(VX[i, j], expected[0], places=9)
            self.assertAlmostEqual(VE[i, j], expected[1], places=9)

    def test_side_field_matches_scalar(self):
        eta = np.array([-3.0, -1.2, 0.1, 2.5])
        y = np.array([0.5, 0.4, 0.2, -1.1])
        VE, VY = side_view_velocity_field(eta, y)
        for k in range(len(eta)):
            expected = side_view_velocity(eta[k], y[k])
            self.assertAlmostEqual(VE[k], expected[0], places=9)
            self.assertAlmostEqual(VY[k], expected[1], places=9)

    def test_pressure_field_masks_body(self):
        XI, ETA = np.meshgrid(np.linspace(-2, 2, 21), np.linspace(-2, 2, 21))
        cp = pressure_field(XI, ETA)
        inside = XI**2 + ETA**2 <= 1.0
        self.assertTrue(np.all(np.isnan(cp[inside])))
        self.assertTrue(np.all(cp[~inside] <= 1.0))


class TestStreamlineTracer(unittest.TestCase):
    def test_first_sample_is_seed(self):
        path = trace_streamline_path(2.0, -5.0, 100, 0.1)
        self.assertGreater(len(path), 0)
        self.assertAlmostEqual(path[0][0], 2.0)
        self.assertAlmostEqual(path[0][1], -5.0)
        self.assertEqual(len(path[0]), 4)

    def test_length_bounded_by_steps(self):
        self.assertEqual(len(trace_streamline_path(2.0, -8.0, 50, 0.14)), 50)

    def test_never_enters_body(self):
        for seed_xi in (-2.2, -0.4, 0.0, 0.01, 0.4, 1.0, 3.5):
            path = trace_streamline_path(seed_xi, -8.0, 200, 0.14)
            for xi, eta, _, _ in path:
                self.assertGreater(xi * xi + eta * eta, 1.0)

    def test_axis_seed_stops_at_nose(self):
        path = trace_streamline_path(0.0, -8.0, 200, 0.14)
        self.assertLess(len(path), 200)
        self.assertLess(path[-1][1], -0.9)

    def test_constant_step_length(self):
        path = trace_streamline_path(1.2, -6.0, 80, 0.14)
        steps = [math.hypot(b[0] - a[0], b[1] - a[1]) for a, b in zip(path, path[1:])]
        for step in steps:
            self.assertAlmostEqual(step, 0.14, places=9)

    def test_mirrored_seed_mirrors_path(self):
        right = trace_streamline_path(1.1, -7.0, 200, 0.14)
        left = trace_streamline_path(-1.1, -7.0, 200, 0.14)
        self.assertEqual(len(left), len(right))
        for (xr, er, _, _), (xl, el, _, _) in zip(right, left):
            self.assertAlmostEqual(xl, -xr)
            self.assertAlmostEqual(el, er)

    def test_seed_inside_body_gives_empty_path(self):
        self.assertEqual(trace_streamline_path(0.2, 0.3, 10, 0.1), [])

    def test_paths_to_array_pads_with_last_sample(self):
        paths = [trace_streamline_path(1.0, -3.0, 5, 0.1), []]
        samples, lengths = paths_to_array(paths, 8)
        self.assertEqual(samples.shape, (2, 8, 4))
        self.assertEqual(list(lengths), [5, 0])
        np.testing.assert_allclose(samples[0, 7], paths[0][-1])


if __name__ == '__main__':
    unittest.main()
