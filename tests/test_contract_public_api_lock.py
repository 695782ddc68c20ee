from __future__ import annotations

import unittest


class TestPublicApiLockContract(unittest.TestCase):
    def test_api_module_exports_are_present(self) -> None:
        import dayplan.api as api

        self.assertTrue(hasattr(api, "__all__"))
        self.assertIsInstance(api.__all__, (list, tuple))
        self.assertEqual(len(api.__all__), len(set(api.__all__)), "duplicate names in dayplan.api.__all__")

        for name in api.__all__:
            self.assertIsInstance(name, str)
            self.assertTrue(hasattr(api, name), f"dayplan.api missing public name: {name}")
            self.assertIsNotNone(getattr(api, name), f"dayplan.api {name} is None")

    def test_engine_operations_are_exported(self) -> None:
        import dayplan.api as api

        for name in (
            "time_to_minutes",
            "minutes_to_time",
            "should_appear",
            "materialize",
            "available_slots",
            "place_one",
            "batch_schedule",
            "active_schedule",
            "cascade_completion",
        ):
            self.assertIn(name, api.__all__)

    def test_package_reexports_match_api_all(self) -> None:
        import dayplan
        import dayplan.api as api

        self.assertEqual(list(dayplan.__all__), list(api.__all__))
        for name in api.__all__:
            self.assertTrue(hasattr(dayplan, name), f"dayplan package does not re-export: {name}")
            self.assertIs(getattr(dayplan, name), getattr(api, name), f"dayplan.{name} must be same object as dayplan.api.{name}")


if __name__ == "__main__":
    unittest.main(verbosity=2)
