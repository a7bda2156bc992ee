"""Plot the raw solver target against the smoothed value for one joint key."""
import argparse
import sys

import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_agg import FigureCanvasAgg

from rigmirror.utils.config import RetargetConfig
from rigmirror.utils.engine import RetargetEngine
from rigmirror.utils.landmark_io import load_landmark_sequence
from rigmirror.utils.presets import JOINT_KEYS
from rigmirror.utils.retarget_utils import quaternion_angle, quaternion_identity
from rigmirror.utils.scene_graph import load_rig


def value_to_degrees(engine: RetargetEngine, value) -> float:
    if value is None:
        return np.nan
    if engine.solver.smoothing_mode == "slerp":
        return float(np.degrees(quaternion_angle(quaternion_identity(), value)))
    return float(np.degrees(value[engine.config.ratio_axis_index]))


def collect_series(engine: RetargetEngine, frames, key: str):
    raw, smoothed = [], []
    for frame in frames:
        target = None
        written = engine.update(frame)
        # Frames the engine dropped (stale, malformed) get no raw sample either
        if written:
            target = engine.solver.solve(engine.preprocessor.prepare(frame)).get(key)
        raw.append(value_to_degrees(engine, target))
        smoothed.append(value_to_degrees(engine, written.get(key)))
    return np.array(raw), np.array(smoothed)


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--rig", "-r", required=True)
    parser.add_argument("--landmarks", "-l", required=True)
    parser.add_argument("--key", "-k", default="leftUpperArm", choices=list(JOINT_KEYS))
    parser.add_argument("--out", "-o", default="smoothing.png")
    parser.add_argument("--config", "-c", default="")
    parser.add_argument("--strategy", "-s", choices=["direction", "ratio"], default=None)
    parser.add_argument("--alpha", "-a", type=float, default=None)
    parser.add_argument("--width", type=int, default=1000)
    parser.add_argument("--height", type=int, default=400)
    args = parser.parse_args(argv)

    config = RetargetConfig.from_json(args.config) if args.config else RetargetConfig()
    if args.strategy is not None:
        config.strategy = args.strategy
    if args.alpha is not None:
        config.smoothing_factor = args.alpha
    # Re-run validation after the overrides
    config = RetargetConfig.from_dict(config.to_dict())

    rig = load_rig(args.rig)
    frames = load_landmark_sequence(args.landmarks)
    engine = RetargetEngine(config)
    engine.bind(rig)
    if not engine.bindings.get(args.key):
        print(f"[Plot] '{args.key}' is not bound on rig '{rig.name}'")
        return 1

    raw, smoothed = collect_series(engine, frames, args.key)
    unit = "rotation angle (deg)" if engine.solver.smoothing_mode == "slerp" else f"{config.ratio_axis} angle (deg)"

    dpi = 100
    fig = plt.figure(figsize=(args.width / dpi, args.height / dpi), dpi=dpi)
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(111)
    t = np.arange(len(frames))
    ax.plot(t, raw, color="#bbbbbb", linewidth=1.0, label="raw target")
    ax.plot(t, smoothed, color="#1f77b4", linewidth=1.8, label=f"smoothed (alpha={config.smoothing_factor})")
    ax.set_xlabel("frame")
    ax.set_ylabel(unit)
    ax.set_title(f"{args.key} on {rig.name} [{config.strategy}]")
    ax.legend(loc="best")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(args.out)
    plt.close(fig)
    print(f"[Plot] Saved {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
