"""Dump which bones every joint key binds to, per armature."""
import argparse
import sys

import numpy as np

from rigmirror.utils.bone_resolver import BoneResolver
from rigmirror.utils.presets import JOINT_KEYS
from rigmirror.utils.retarget_utils import quaternion_to_euler_xyz
from rigmirror.utils.scene_graph import load_rig


def print_hierarchy(skeleton, bone, depth=0):
    print("  " * depth + bone.name)
    for child in skeleton.get_children(bone.name):
        print_hierarchy(skeleton, child, depth + 1)


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("rig")
    parser.add_argument("--mapping", "-m", default="")
    parser.add_argument("--hierarchy", action="store_true", help="Also print each bone hierarchy")
    args = parser.parse_args(argv)

    rig = load_rig(args.rig)
    resolver = BoneResolver()
    if args.mapping:
        resolver.load_pattern_overrides(args.mapping)

    print(f"=== {rig} ===")
    if args.hierarchy:
        for skeleton in rig.skeletons:
            print(f"\n--- {skeleton.name} ---")
            for root in skeleton.roots():
                print_hierarchy(skeleton, root)

    bindings = resolver.resolve_all(rig)
    skeleton_of = {id(b): s.name for s, b in rig.traverse_bones()}

    print("\n=== BINDINGS ===")
    for key in JOINT_KEYS:
        bones = bindings[key]
        if not bones:
            print(f"  {key:15s} -> (unresolved)")
            continue
        for bone in bones:
            euler = np.degrees(quaternion_to_euler_xyz(bone.rotation))
            print(
                f"  {key:15s} -> {skeleton_of[id(bone)]}/{bone.name}  "
                f"rest_euler=({euler[0]:.1f}, {euler[1]:.1f}, {euler[2]:.1f})"
            )

    missing = [k for k in JOINT_KEYS if not bindings[k]]
    print(f"\nBound {len(JOINT_KEYS) - len(missing)}/{len(JOINT_KEYS)} joint keys")
    return 0


if __name__ == "__main__":
    sys.exit(main())
