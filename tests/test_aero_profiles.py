import copy
import unittest

from aero_profiles import (
    CAR_AERO, CAR_TYPES, SURFACE_LAYOUTS, DEFAULT_CAR_TYPE, SEED_ETA,
    get_profile, build_seed_list, apply_wing_stall, resolve_profile,
    stall_zone_marker, get_surface_layout, PressureMarker,
)


class TestProfileLookup(unittest.TestCase):
    def test_all_vehicle_classes_present(self):
        for car_type in CAR_TYPES:
            self.assertIn(car_type, CAR_AERO)
            self.assertIn(car_type, SURFACE_LAYOUTS)
            self.assertEqual(CAR_AERO[car_type].name, car_type)

    def test_unknown_type_falls_back_with_warning(self):
        with self.assertLogs('aero_profiles', level='WARNING'):
            profile = get_profile('XYZ')
        self.assertIs(profile, CAR_AERO[DEFAULT_CAR_TYPE])

    def test_unknown_layout_falls_back(self):
        with self.assertLogs('aero_profiles', level='WARNING'):
            layout = get_surface_layout('LMP')
        self.assertIs(layout, SURFACE_LAYOUTS[DEFAULT_CAR_TYPE])

    def test_body_vortices_normalized(self):
        profile = CAR_AERO['F1']
        vortices = profile.body_vortices()
        self.assertEqual(len(vortices), len(profile.vortex_defs))
        x0, e0, gamma, rc = vortices[0]
        vdef = profile.vortex_defs[0]
        self.assertAlmostEqual(x0, vdef.wx / profile.half_w)
        self.assertAlmostEqual(e0, vdef.wz / profile.half_l)
        self.assertAlmostEqual(gamma, vdef.sign * vdef.gamma)


class TestSeedList(unittest.TestCase):
    def test_group_order_and_counts(self):
        seeds = build_seed_list(CAR_AERO['F1'])
        self.assertEqual(len(seeds), 48)
        groups = [s.group for s in seeds]
        self.assertEqual(groups[:20], ['top'] * 20)
        self.assertEqual(groups[20:30], ['side'] * 10)
        self.assertEqual(groups[30:36], ['under'] * 6)
        self.assertEqual(groups[36:42], ['far'] * 6)
        self.assertEqual(groups[42:], ['fw'] * 6)

    def test_top_seeds_at_two_heights(self):
        seeds = [s for s in build_seed_list(CAR_AERO['F2']) if s.group == 'top']
        self.assertEqual(seeds[0].seed_xi, seeds[1].seed_xi)
        self.assertEqual((seeds[0].y, seeds[1].y), (0.38, 0.70))
        for s in seeds:
            self.assertEqual(s.seed_eta, SEED_ETA)

    def test_gt_has_no_front_wing_seeds(self):
        seeds = build_seed_list(CAR_AERO['GT'])
        self.assertEqual(len(seeds), 42)
        self.assertNotIn('fw', {s.group for s in seeds})

    def test_front_wing_seeds_one_unit_upstream(self):
        profile = CAR_AERO['F3']
        for s in build_seed_list(profile):
            if s.group == 'fw':
                self.assertAlmostEqual(s.seed_eta, profile.fw_eta - 1.0)
                self.assertEqual(s.y, profile.fw_y)

    def test_seeds_carry_half_height(self):
        profile = CAR_AERO['GT']
        self.assertTrue(all(s.half_h == profile.half_h for s in build_seed_list(profile)))


class TestWingStall(unittest.TestCase):
    def test_unstalled_returns_same_object(self):
        for car_type in CAR_TYPES:
            profile = CAR_AERO[car_type]
            self.assertIs(apply_wing_stall(profile, False), profile)

    def test_base_profile_not_modified(self):
        for car_type in CAR_TYPES:
            profile = CAR_AERO[car_type]
            snapshot = copy.deepcopy(profile)
            stalled = apply_wing_stall(profile, True)
            self.assertIsNot(stalled, profile)
            self.assertEqual(profile, snapshot)

    def test_rear_intensity_drops(self):
        for car_type in CAR_TYPES:
            profile = CAR_AERO[car_type]
            stalled = apply_wing_stall(profile)
            before = sum(m.intensity for m in profile.pressure_markers if m.is_rear)
            after = sum(m.intensity for m in stalled.pressure_markers if m.is_rear)
            self.assertGreater(before, 0)
            self.assertLess(after, before)

    def test_front_markers_untouched(self):
        profile = CAR_AERO['F1']
        stalled = apply_wing_stall(profile)
        for before, after in zip(profile.pressure_markers, stalled.pressure_markers):
            if not before.is_rear:
                self.assertEqual(before, after)

    def test_rear_vortices_removed(self):
        for car_type in CAR_TYPES:
            profile = CAR_AERO[car_type]
            stalled = apply_wing_stall(profile)
            rear_before = [v for v in profile.vortex_defs if v.is_rear]
            self.assertGreater(len(rear_before), 0)
            self.assertLess(len(stalled.vortex_defs), len(profile.vortex_defs))
            self.assertFalse(any(v.is_rear for v in stalled.vortex_defs))

    def test_f3_loses_all_vortices(self):
        self.assertEqual(len(apply_wing_stall(CAR_AERO['F3']).vortex_defs), 0)

    def test_wake_grows(self):
        for car_type in CAR_TYPES:
            profile = CAR_AERO[car_type]
            stalled = apply_wing_stall(profile)
            self.assertGreater(stalled.wake_count, profile.wake_count)
            self.assertGreater(stalled.wake_width, profile.wake_width)

    def test_resolve_profile_ownership(self):
        base = CAR_AERO['F2']
        shared = resolve_profile(base, False)
        self.assertIs(shared.profile, base)
        self.assertFalse(shared.owned)
        owned = resolve_profile(base, True)
        self.assertIsNot(owned.profile, base)
        self.assertTrue(owned.owned)


class TestStallZoneMarker(unittest.TestCase):
    MARKER = PressureMarker(color=0xff2200, radius=0.3, intensity=0.7,
                            position=(0, 0.98, 1.95), phase=0.8, role='rearWing')

    def test_unstalled_marker_unchanged(self):
        self.assertIs(stall_zone_marker(self.MARKER, False), self.MARKER)

    def test_stalled_rear_wing_is_faint_and_wide(self):
        stalled = stall_zone_marker(self.MARKER, True)
        self.assertAlmostEqual(stalled.intensity, 0.7 * 0.15)
        self.assertAlmostEqual(stalled.radius, 0.3 * 2.2)
        self.assertEqual(self.MARKER.intensity, 0.7)

    def test_other_roles_ignore_stall(self):
        marker = SURFACE_LAYOUTS['F1'].markers[0]
        self.assertIs(stall_zone_marker(marker, True), marker)


if __name__ == '__main__':
    unittest.main()
