import sys
import os
import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

import numpy as np

# Add the project root to sys.path
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)
sys.path.insert(0, script_dir)

from pose_fixtures import ARMS_DOWN, T_POSE, make_frame, make_rig
from rigmirror.utils.landmark_io import load_landmark_sequence, save_landmark_sequence
from rigmirror.utils.retarget_stream import main as retarget_main
from rigmirror.utils.retarget_utils import euler_xyz_to_quaternion, quaternion_angle
from rigmirror.utils.scene_graph import BoneData, Skeleton, load_rig, rig_to_dict, save_rig


class TestSceneGraph(unittest.TestCase):
    def test_world_matrix_propagates_to_children(self):
        skel = Skeleton("Arm")
        skel.add_bone(BoneData("shoulder", position=[0.0, 1.0, 0.0]))
        skel.add_bone(BoneData("elbow", "shoulder", position=[1.0, 0.0, 0.0]))
        skel.add_bone(BoneData("wrist", "elbow", position=[1.0, 0.0, 0.0]))
        skel.update_matrix_world()
        np.testing.assert_allclose(skel.bones["wrist"].world_position, [2.0, 1.0, 0.0])

        shoulder = skel.get_bone_case_insensitive("Shoulder")
        shoulder.set_euler([0.0, 0.0, np.pi / 2])
        shoulder.update_matrix_world()
        np.testing.assert_allclose(skel.bones["elbow"].world_position, [0.0, 2.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(skel.bones["wrist"].world_position, [0.0, 3.0, 0.0], atol=1e-9)

    def test_skeleton_lookup_and_roots(self):
        skel = Skeleton()
        skel.add_bone(BoneData("mixamorig:Hips"))
        skel.add_bone(BoneData("mixamorig:Spine", "mixamorig:Hips"))
        self.assertIs(skel.get_bone_case_insensitive("HIPS"), skel.bones["mixamorig:hips"])
        self.assertEqual([b.name for b in skel.roots()], ["mixamorig:Hips"])
        self.assertEqual([b.name for b in skel.get_children("mixamorig:hips")], ["mixamorig:Spine"])
        self.assertIsNone(skel.get_bone_case_insensitive("Head"))
        with self.assertRaises(ValueError):
            skel.add_bone(BoneData("MIXAMORIG:HIPS"))


class TestRigFiles(unittest.TestCase):
    def test_round_trip(self):
        rig = make_rig(n_skeletons=2, rotations={"upperarm_l": euler_xyz_to_quaternion([0.1, 0.2, 0.3])})
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "rig.json")
            save_rig(rig, path)
            loaded = load_rig(path)
        self.assertEqual(rig_to_dict(loaded)["name"], rig.name)
        self.assertEqual([s.name for s in loaded.skeletons], [s.name for s in rig.skeletons])
        for (_, a), (_, b) in zip(rig.traverse_bones(), loaded.traverse_bones()):
            self.assertEqual((a.name, a.parent_name), (b.name, b.parent_name))
            self.assertLess(quaternion_angle(a.rotation, b.rotation), 1e-9)
            np.testing.assert_allclose(a.position, b.position)

    def test_euler_degrees(self):
        data = {
            "name": "Euler",
            "skeletons": [{"name": "A", "bones": [{"name": "upperarm_l", "euler_deg": [0, 90, 0]}]}],
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "rig.json")
            with open(path, "w") as f:
                json.dump(data, f)
            rig = load_rig(path)
        q = rig.skeletons[0].bones["upperarm_l"].rotation
        self.assertAlmostEqual(np.degrees(quaternion_angle(q, [1.0, 0, 0, 0])), 90.0, places=6)

    def test_invalid_files(self):
        with self.assertRaises(FileNotFoundError):
            load_rig("/nonexistent/rig.json")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "rig.json")
            for payload in (
                "[1, 2]",
                '{"skeletons": [{"bones": [{"parent": "x"}]}]}',
                '{"skeletons": [{"bones": [{"name": "a", "rotation": [1, 0]}]}]}',
                "{broken",
            ):
                with open(path, "w") as f:
                    f.write(payload)
                with self.assertRaises(ValueError, msg=payload):
                    load_rig(path)


class TestLandmarkFiles(unittest.TestCase):
    def test_npz_round_trip(self):
        frames = [make_frame(T_POSE, timestamp=0.0), make_frame(ARMS_DOWN, timestamp=0.033)]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "frames.npz")
            save_landmark_sequence(frames, path)
            loaded = load_landmark_sequence(path)
        self.assertEqual(len(loaded), 2)
        np.testing.assert_allclose(loaded[1].data, frames[1].data)
        self.assertAlmostEqual(loaded[1].timestamp, 0.033)

    def test_npz_without_visibility(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "frames.npz")
            np.savez(path, landmarks=np.full((3, 33, 3), 0.5))
            loaded = load_landmark_sequence(path)
        self.assertEqual(len(loaded), 3)
        self.assertIsNone(loaded[0].timestamp)
        self.assertTrue(np.all(loaded[0].data[:, 3] == 1.0))

    def test_json_formats(self):
        plain = [{"x": 0.5, "y": 0.5} for _ in range(33)]
        data = [plain, {"landmarks": plain, "timestamp": 0.5}]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "frames.json")
            with open(path, "w") as f:
                json.dump(data, f)
            loaded = load_landmark_sequence(path)
        self.assertEqual(len(loaded), 2)
        self.assertIsNone(loaded[0].timestamp)
        self.assertEqual(loaded[1].timestamp, 0.5)
        self.assertTrue(loaded[1].is_valid())

    def test_malformed_files(self):
        with self.assertRaises(FileNotFoundError):
            load_landmark_sequence("/nonexistent/frames.npz")
        with tempfile.TemporaryDirectory() as tmp:
            bad_shape = os.path.join(tmp, "bad.npz")
            np.savez(bad_shape, landmarks=np.zeros((4, 17, 3)))
            with self.assertRaises(ValueError):
                load_landmark_sequence(bad_shape)

            no_key = os.path.join(tmp, "nokey.npz")
            np.savez(no_key, poses=np.zeros((4, 33, 3)))
            with self.assertRaises(ValueError):
                load_landmark_sequence(no_key)

            short = os.path.join(tmp, "short.json")
            with open(short, "w") as f:
                json.dump([[{"x": 0.1, "y": 0.2}]], f)
            with self.assertRaises(ValueError):
                load_landmark_sequence(short)

            other = os.path.join(tmp, "frames.csv")
            with open(other, "w") as f:
                f.write("x,y\n")
            with self.assertRaises(ValueError):
                load_landmark_sequence(other)


class TestRetargetCommand(unittest.TestCase):
    def run_main(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = retarget_main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_end_to_end(self):
        with tempfile.TemporaryDirectory() as tmp:
            rig_path = os.path.join(tmp, "rig.json")
            frames_path = os.path.join(tmp, "frames.npz")
            out_path = os.path.join(tmp, "out.npz")
            posed_path = os.path.join(tmp, "posed.json")
            save_rig(make_rig(n_skeletons=2), rig_path)
            save_landmark_sequence([make_frame(T_POSE), make_frame(ARMS_DOWN), make_frame(ARMS_DOWN)], frames_path)

            code, _, _ = self.run_main(
                [
                    "--rig", rig_path,
                    "--landmarks", frames_path,
                    "--output", out_path,
                    "--strategy", "ratio",
                    "--alpha", "1.0",
                    "--no-mirror",
                    "--save-rig", posed_path,
                    "--no-progress",
                ]
            )
            self.assertEqual(code, 0)
            result = np.load(out_path)
            bone_names = list(result["bone_names"])
            self.assertEqual(result["rotations"].shape, (3, len(bone_names), 4))
            self.assertEqual(bone_names.count("upperarm_l"), 2)
            self.assertEqual(set(result["skeleton_names"]), {"Armature_0", "Armature_1"})

            idx = bone_names.index("upperarm_l")
            q = result["rotations"][2, idx]
            self.assertAlmostEqual(
                np.degrees(quaternion_angle(q, euler_xyz_to_quaternion([0.0, np.radians(13.0), 0.0]))),
                0.0,
                places=5,
            )
            posed = load_rig(posed_path)
            self.assertLess(
                quaternion_angle(posed.skeletons[1].bones["upperarm_l"].rotation, q), 1e-9
            )

    def test_unreadable_input_exits_with_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            code, _, err = self.run_main(
                [
                    "--rig", os.path.join(tmp, "missing.json"),
                    "--landmarks", os.path.join(tmp, "missing.npz"),
                    "--output", os.path.join(tmp, "out.npz"),
                ]
            )
        self.assertEqual(code, 1)
        self.assertIn("Error", err)


if __name__ == "__main__":
    unittest.main()
