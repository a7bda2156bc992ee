from __future__ import annotations

import json
import os

import numpy as np

from .data_types import LandmarkFrame
from .presets import NUM_LANDMARKS


def _frames_from_array(landmarks: np.ndarray, timestamps=None) -> list[LandmarkFrame]:
    if landmarks.ndim != 3 or landmarks.shape[1] != NUM_LANDMARKS or landmarks.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected landmarks of shape (T, {NUM_LANDMARKS}, 3|4), got {landmarks.shape}"
        )
    if timestamps is not None:
        timestamps = np.asarray(timestamps, dtype=np.float64).reshape(-1)
        if timestamps.shape[0] != landmarks.shape[0]:
            raise ValueError(
                f"timestamps has {timestamps.shape[0]} entries for {landmarks.shape[0]} frames"
            )
    return [
        LandmarkFrame.from_array(
            landmarks[t], None if timestamps is None else float(timestamps[t])
        )
        for t in range(landmarks.shape[0])
    ]


def load_npz_sequence(filepath: str) -> list[LandmarkFrame]:
    with np.load(filepath, allow_pickle=False) as data:
        if "landmarks" not in data.files:
            raise ValueError(f"{filepath}: missing 'landmarks' array (found {data.files})")
        landmarks = np.asarray(data["landmarks"], dtype=np.float64)
        timestamps = data["timestamps"] if "timestamps" in data.files else None
    return _frames_from_array(landmarks, timestamps)


def _frame_from_json(entry, index: int) -> LandmarkFrame:
    timestamp = None
    landmarks = entry
    if isinstance(entry, dict):
        landmarks = entry.get("landmarks")
        timestamp = entry.get("timestamp")
    if not isinstance(landmarks, list) or len(landmarks) != NUM_LANDMARKS:
        raise ValueError(f"Frame {index}: expected a list of {NUM_LANDMARKS} landmarks")
    try:
        if all(isinstance(lm, dict) for lm in landmarks):
            frame = LandmarkFrame.from_landmarks(landmarks, timestamp)
        else:
            frame = LandmarkFrame.from_array(np.asarray(landmarks, dtype=np.float64), timestamp)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Frame {index}: {e}") from e
    if timestamp is not None:
        frame.timestamp = float(timestamp)
    return frame


def load_json_sequence(filepath: str) -> list[LandmarkFrame]:
    with open(filepath, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{filepath} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("frames")
    if not isinstance(data, list):
        raise ValueError(f"{filepath}: expected a list of frames")
    return [_frame_from_json(entry, i) for i, entry in enumerate(data)]


def load_landmark_sequence(filepath: str) -> list[LandmarkFrame]:
    """Load recorded pose-estimation output from .npz or .json."""
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Landmark file not found: {filepath}")
    ext = os.path.splitext(filepath)[1].lower()
    if ext == ".npz":
        return load_npz_sequence(filepath)
    if ext == ".json":
        return load_json_sequence(filepath)
    raise ValueError(f"Unsupported landmark file type '{ext}' (use .npz or .json)")


def save_landmark_sequence(frames: list[LandmarkFrame], filepath: str):
    """Write frames to .npz in the layout load_landmark_sequence reads."""
    landmarks = np.stack([f.data for f in frames]) if frames else np.zeros((0, NUM_LANDMARKS, 4))
    arrays = {"landmarks": landmarks}
    if frames and all(f.timestamp is not None for f in frames):
        arrays["timestamps"] = np.array([f.timestamp for f in frames], dtype=np.float64)
    np.savez(filepath, **arrays)
