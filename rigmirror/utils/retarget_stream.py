"""
Offline retargeting: stream a recorded landmark sequence through the engine
and record the resulting local bone rotations per frame.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional

import numpy as np
from tqdm import tqdm

from .bone_resolver import BoneResolver
from .config import RetargetConfig
from .engine import RetargetEngine
from .landmark_io import load_landmark_sequence
from .scene_graph import Rig, load_rig, save_rig


def collect_driven_bones(engine: RetargetEngine) -> list[tuple[str, object]]:
    """(skeleton name, bone) for every bound bone, in skeleton then bone order, without duplicates."""
    bound = {id(b) for bones in engine.bindings.values() for b in bones}
    driven = []
    for skeleton in engine.rig.skeletons:
        for bone in skeleton.bones.values():
            if id(bone) in bound:
                driven.append((skeleton.name, bone))
    return driven


def run_retarget(
    rig: Rig,
    frames: list,
    config: RetargetConfig,
    resolver: Optional[BoneResolver] = None,
    progress: bool = True,
) -> dict:
    """
    Drive `rig` with every frame and sample the bound bones after each update.
    Frames the engine ignores repeat the previous pose.
    """
    engine = RetargetEngine(config, resolver=resolver)
    engine.bind(rig)
    if not engine.has_skeleton:
        raise ValueError(f"Rig '{rig.name}' has no skeleton to drive")

    driven = collect_driven_bones(engine)
    rotations = np.zeros((len(frames), len(driven), 4), dtype=np.float64)
    root_positions = np.zeros((len(frames), 3), dtype=np.float64)

    for t, frame in enumerate(tqdm(frames, desc="Retargeting", disable=not progress)):
        engine.update(frame)
        for b, (_, bone) in enumerate(driven):
            rotations[t, b] = bone.rotation
        root_positions[t] = rig.position

    print(f"[Retarget] {engine.frame_count}/{len(frames)} frames applied, {len(driven)} bones driven")
    return {
        "bone_names": np.array([bone.name for _, bone in driven]),
        "skeleton_names": np.array([name for name, _ in driven]),
        "rotations": rotations,
        "root_positions": root_positions,
    }


def save_result(result: dict, filepath: str):
    if filepath.lower().endswith(".json"):
        with open(filepath, "w") as f:
            json.dump({k: np.asarray(v).tolist() for k, v in result.items()}, f)
    else:
        np.savez(filepath, **result)


def build_config(args) -> RetargetConfig:
    data = {}
    if args.config:
        with open(args.config, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {args.config} must hold a JSON object")
    if args.strategy is not None:
        data["strategy"] = args.strategy
    if args.alpha is not None:
        data["smoothing_factor"] = args.alpha
    if args.no_mirror:
        data["mirror"] = False
    if args.verbose:
        data["verbose"] = True
    return RetargetConfig.from_dict(data)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Retarget recorded pose landmarks onto a rig")
    parser.add_argument("--rig", "-r", required=True, help="Rig JSON file")
    parser.add_argument("--landmarks", "-l", required=True, help="Landmark sequence (.npz or .json)")
    parser.add_argument("--output", "-o", required=True, help="Output rotations (.npz or .json)")
    parser.add_argument("--strategy", "-s", choices=["direction", "ratio"], default=None)
    parser.add_argument("--alpha", "-a", type=float, default=None, help="Smoothing factor in (0, 1]")
    parser.add_argument(
        "--no-mirror", action="store_true", help="Disable selfie mirroring of the landmarks"
    )
    parser.add_argument("--config", "-c", default="", help="Optional RetargetConfig JSON")
    parser.add_argument(
        "--mapping", "-m", default="", help="Optional bone mapping file prepended to the built-in patterns"
    )
    parser.add_argument("--save-rig", default="", help="Save the final posed rig to this JSON file")
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        rig = load_rig(args.rig)
        frames = load_landmark_sequence(args.landmarks)
        resolver = BoneResolver(verbose=config.verbose)
        if args.mapping:
            resolver.load_pattern_overrides(args.mapping)
    except (OSError, ValueError) as e:
        print(f"[Retarget] Error: {e}", file=sys.stderr)
        return 1

    print(f"[Retarget] Rig: {rig}")
    print(f"[Retarget] {len(frames)} frames from {os.path.basename(args.landmarks)}, strategy={config.strategy}")

    try:
        result = run_retarget(rig, frames, config, resolver=resolver, progress=not args.no_progress)
    except ValueError as e:
        print(f"[Retarget] Error: {e}", file=sys.stderr)
        return 1

    save_result(result, args.output)
    print(f"[Retarget] Saved rotations {result['rotations'].shape} to {args.output}")
    if args.save_rig:
        save_rig(rig, args.save_rig)
        print(f"[Retarget] Saved posed rig to {args.save_rig}")
    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
