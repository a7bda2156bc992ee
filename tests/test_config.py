import sys
import os
import tempfile
import unittest

# Add the project root to sys.path
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from rigmirror.utils.config import RetargetConfig, RootMotionConfig
from rigmirror.utils.engine import RetargetEngine
from rigmirror.utils.solvers import DirectionSolver, RatioSolver, make_solver


class TestRetargetConfig(unittest.TestCase):
    def test_defaults(self):
        cfg = RetargetConfig.default()
        self.assertEqual(cfg.smoothing_factor, 0.35)
        self.assertEqual(cfg.strategy, "direction")
        self.assertEqual((cfg.arms_down_angle, cfg.t_pose_angle), (13.0, -48.0))
        self.assertEqual(cfg.ratio_axis_index, 1)
        self.assertTrue(cfg.mirror)
        self.assertEqual(cfg.rest_directions["leftUpperArm"], (1.0, 0.0, 0.0))
        self.assertFalse(cfg.root_motion.enabled)

    def test_invalid_values(self):
        for kwargs in (
            {"smoothing_factor": 0.0},
            {"smoothing_factor": 1.2},
            {"strategy": "ik"},
            {"ratio_axis": "w"},
            {"euler_order": "XXY"},
            {"euler_order": "XyZ"},
            {"spine_fraction": 1.5},
            {"min_visibility": -0.1},
            {"log_every": 0},
            {"rest_directions": {"leftUpperArm": (1.0, 0.0)}},
        ):
            with self.assertRaises(ValueError, msg=str(kwargs)):
                RetargetConfig(**kwargs)

    def test_root_motion_bounds(self):
        with self.assertRaises(ValueError):
            RootMotionConfig(min_x=1.0, max_x=0.0)
        with self.assertRaises(ValueError):
            RootMotionConfig(min_scale=0.0)

    def test_rest_direction_overrides_merge(self):
        cfg = RetargetConfig(rest_directions={"leftUpperArm": [0.0, -1.0, 0.0]})
        self.assertEqual(cfg.rest_directions["leftUpperArm"], (0.0, -1.0, 0.0))
        self.assertEqual(cfg.rest_directions["rightUpperArm"], (-1.0, 0.0, 0.0))

    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(ValueError):
            RetargetConfig.from_dict({"smoothing": 0.5})
        with self.assertRaises(ValueError):
            RetargetConfig.from_dict({"root_motion": {"bogus": 1}})

    def test_json_round_trip(self):
        cfg = RetargetConfig(
            strategy="ratio",
            smoothing_factor=0.5,
            ratio_axis="z",
            root_motion=RootMotionConfig(enabled=True, base_rotation=(3.14159, 0.0, 0.0)),
        )
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            cfg.to_json(path)
            loaded = RetargetConfig.from_json(path)
        self.assertEqual(loaded, cfg)
        self.assertIsInstance(loaded.root_motion, RootMotionConfig)

    def test_strategy_selects_solver(self):
        self.assertIsInstance(make_solver(RetargetConfig()), DirectionSolver)
        engine = RetargetEngine(RetargetConfig(strategy="ratio"))
        self.assertIsInstance(engine.solver, RatioSolver)
        self.assertEqual(engine.smoothing.mode, "linear")
        self.assertEqual(RetargetEngine().smoothing.mode, "slerp")


if __name__ == "__main__":
    unittest.main()
