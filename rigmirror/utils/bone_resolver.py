"""
Joint key -> bone resolution across arbitrary skeleton naming conventions.

Every key has an ordered list of lowercase name fragments. Resolution is
two-pass: exact (namespace-aware) name match first, then substring match
with secondary deformation bones filtered out. Each armature contributes at
most one bone per key (its first hit); duplicate armatures all get bound.
"""
from __future__ import annotations

import json
import os
from typing import Iterable, Optional

from .presets import (
    BONE_NAME_PATTERNS,
    EXCLUDED_MARKERS,
    JOINT_KEYS,
    UPPER_ARM_EXCLUDED_MARKERS,
    UPPER_ARM_KEYS,
)


def iter_skeleton_bones(skeleton) -> list:
    """Bones of a skeleton whether it stores them as a list or a name->bone mapping."""
    bones = getattr(skeleton, "bones", None)
    if bones is None:
        return []
    if isinstance(bones, dict):
        return list(bones.values())
    return list(bones)


def iter_rig_bones(rig) -> list:
    bones = []
    for skeleton in getattr(rig, "skeletons", None) or []:
        bones.extend(iter_skeleton_bones(skeleton))
    return bones


def has_skeleton(rig) -> bool:
    return rig is not None and any(
        iter_skeleton_bones(s) for s in (getattr(rig, "skeletons", None) or [])
    )


def excluded_markers_for(key: str) -> list[str]:
    if key in UPPER_ARM_KEYS:
        return EXCLUDED_MARKERS + UPPER_ARM_EXCLUDED_MARKERS
    return EXCLUDED_MARKERS


def is_excluded(bone_name: str, markers: Iterable[str]) -> bool:
    lower = bone_name.lower()
    return any(marker in lower for marker in markers)


def _exact_match(bone_name: str, fragment: str) -> bool:
    lower = bone_name.lower()
    return lower == fragment or lower.split(":")[-1] == fragment


class BoneResolver:
    def __init__(self, patterns: Optional[dict[str, list[str]]] = None, verbose: bool = False):
        source = BONE_NAME_PATTERNS if patterns is None else patterns
        self.patterns = {k: [f.lower() for f in v] for k, v in source.items()}
        self.verbose = verbose

    def load_pattern_overrides(self, filepath: str) -> dict[str, list[str]]:
        """
        Prepend fragments from a mapping file: {"bones": {"leftUpperArm": ["MyArm_L"]}}.
        Returns the fragments that were added per key.
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Bone mapping file not found: {filepath}")
        print(f"[Resolver] Loading Mapping File: {filepath}")
        with open(filepath, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Bone mapping file {filepath} is not valid JSON: {e}") from e

        bones = data.get("bones") if isinstance(data, dict) else None
        if not isinstance(bones, dict):
            raise ValueError(f"Bone mapping file {filepath} needs a 'bones' object")

        added = {}
        for key, names in bones.items():
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                raise ValueError(f"Mapping for '{key}' must be a name or a list of names")
            if key not in JOINT_KEYS:
                print(f"[Resolver] Ignoring unknown joint key '{key}'")
                continue
            fragments = [n.lower() for n in names]
            existing = [f for f in self.patterns.get(key, []) if f not in fragments]
            self.patterns[key] = fragments + existing
            added[key] = fragments
        return added

    def resolve_bones(self, bones: list, key: str):
        """First bone of one armature bound to `key`, or None."""
        fragments = self.patterns.get(key, [])

        # Pass 1: exact name
        for fragment in fragments:
            for bone in bones:
                if _exact_match(bone.name, fragment):
                    return bone

        # Pass 2: substring, skipping helper/corrective bones.
        # Segmented chains (upper_arm.L, upper_arm.L.001) bind the first segment only
        markers = excluded_markers_for(key)
        for fragment in fragments:
            for bone in bones:
                if fragment in bone.name.lower() and not is_excluded(bone.name, markers):
                    return bone
        return None

    def resolve(self, rig, key: str) -> list:
        """One bone per armature, in skeleton order."""
        matches = []
        for skeleton in getattr(rig, "skeletons", None) or []:
            bone = self.resolve_bones(iter_skeleton_bones(skeleton), key)
            if bone is not None:
                matches.append(bone)
        return matches

    def resolve_all(self, rig, keys: Optional[Iterable[str]] = None) -> dict[str, list]:
        bindings = {}
        for key in keys if keys is not None else JOINT_KEYS:
            bindings[key] = self.resolve(rig, key)
        if self.verbose:
            bound = [k for k, v in bindings.items() if v]
            missing = [k for k, v in bindings.items() if not v]
            print(f"[Resolver] {len(bound)}/{len(bindings)} joint keys bound")
            for key in bound:
                print(f"  {key}: {[b.name for b in bindings[key]]}")
            if missing:
                print(f"[Resolver] Unresolved: {missing}")
        return bindings
