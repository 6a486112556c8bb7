"""
Reachable-workspace sweep for a Stewart platform.

Each of the six pose axes (x, y, z in mm; rx, ry, rz in deg) is discretized
from a Range, and every point of their Cartesian product is applied to the
platform and checked, first failure wins:

  IK            compute_angles() returned None or a NaN angle
  servo range   an angle lies outside servo_range()
  horn stretch  a horn tip is farther from its pivot than horn_length() + tol
  ball joint    a rod leans past ball_joint_limit_deg against the horn
                azimuth axis or the platform normal
  torque        static + cyclic leg load times horn length exceeds the limit

Checks whose platform queries return None are skipped. The platform pose is
restored after every sample.

Usage:
  python workspace_sweep.py --x=-20:20:10 --z=-10:10:5 --rx=-10:10:5
  python workspace_sweep.py --requirements req.json --out workspace.csv
"""

from __future__ import annotations

import argparse
import itertools
import logging
import math
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

import numpy as np

import coordinate_generator as cg
from platform_contract import Platform
from requirements_loader import RequirementsError, load_requirements
from results_export import export_results
from servo_platform import ServoHornPlatform
from workspace_types import (
    AXES,
    REASON_BALL_JOINT,
    REASON_HORN_STRETCH,
    REASON_IK,
    REASON_SERVO_RANGE,
    REASON_TORQUE,
    ConfigurationError,
    Failure,
    Layout,
    Pose,
    Range,
    Ranges,
    Violation,
    WorkspaceOptions,
    WorkspaceResult,
)

log = logging.getLogger(__name__)

DEFAULT_STEP = 5.0  # mm or deg
GRAVITY = 9.81  # m/s^2
PROGRESS_EVERY = 50  # samples between progress callbacks

PLATFORM_Z = np.array([0.0, 0.0, 1.0])


# ---------------- Discretization ----------------

def axis_values(ranges: Ranges, axis: str) -> List[float]:
    """
    Sample values for one axis: min, min+step, ... (floor((max-min)/step) + 1 terms).

    Values are accumulated by repeated addition, so float steps drift the same
    way on every run. A missing axis is pinned at 0.0; a span that is negative
    still yields [min].
    """
    r = ranges.get(axis)
    if r is None:
        return [0.0]
    lo, hi = float(r.min), float(r.max)
    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise ConfigurationError(f"axis {axis!r}: range bounds must be finite, got min={lo} max={hi}")

    step = float(r.step)
    if not step > 0.0:
        step = DEFAULT_STEP

    count = max(math.floor((hi - lo) / step), 0) + 1
    values = []
    v = lo
    for _ in range(count):
        values.append(v)
        v += step
    return values


def map_load_to_force(payload: float, stroke: float, frequency: float) -> float:
    """
    Force per leg (N): payload (kg) shared by six legs, plus the peak inertial
    load of a sinusoidal cycle with the given stroke (mm) and frequency (Hz).
    """
    accel = (2.0 * math.pi * frequency) ** 2 * (stroke / 1000.0)
    return payload * (GRAVITY + accel) / 6.0


# ---------------- Per-pose checks ----------------

@contextmanager
def _pose_restored(platform: Platform) -> Iterator[None]:
    prev_pos = platform.translation()
    prev_orient = platform.orientation()
    try:
        yield
    finally:
        platform.update(prev_pos, prev_orient)


def _first_violation(
    platform: Platform,
    options: WorkspaceOptions,
    horn_len: Optional[float],
    torque: float,
) -> Optional[str]:
    # Point sets depend on the pose just applied.
    b_points = platform.b_points()
    h_points = platform.h_points()
    p_points = platform.p_points()
    cos_beta = platform.cos_beta()
    sin_beta = platform.sin_beta()

    angles = platform.compute_angles()
    if angles is None:
        return REASON_IK
    angles = np.asarray(angles, dtype=float)
    if np.isnan(angles).any():
        return REASON_IK

    servo = platform.servo_range()
    if servo is not None:
        lo, hi = servo
        if ((angles < lo) | (angles > hi)).any():
            return REASON_SERVO_RANGE

    if b_points is not None and h_points is not None and horn_len is not None:
        tol = max(1e-3 * horn_len, 0.5)
        for b, h in zip(b_points, h_points):
            if np.linalg.norm(np.asarray(h, dtype=float) - np.asarray(b, dtype=float)) > horn_len + tol:
                return REASON_HORN_STRETCH

    if (
        options.ball_joint_clamp
        and h_points is not None
        and p_points is not None
        and cos_beta is not None
        and sin_beta is not None
    ):
        plat_normal = np.asarray(platform.orientation(), dtype=float) @ PLATFORM_Z
        for i in range(len(p_points)):
            rod = np.asarray(p_points[i], dtype=float) - np.asarray(h_points[i], dtype=float)
            mag = float(np.linalg.norm(rod))
            if mag == 0.0:
                continue
            base_axis = np.array([cos_beta[i], sin_beta[i], 0.0], dtype=float)
            cos_base = abs(float(np.dot(rod, base_axis))) / mag
            cos_plat = abs(float(np.dot(rod, plat_normal))) / mag
            ang_base = math.degrees(math.acos(min(cos_base, 1.0)))
            ang_plat = math.degrees(math.acos(min(cos_plat, 1.0)))
            if ang_base > options.ball_joint_limit_deg or ang_plat > options.ball_joint_limit_deg:
                return REASON_BALL_JOINT

    if torque > options.servo_torque_limit:
        return REASON_TORQUE

    return None


# ---------------- Sweep ----------------

def compute_workspace(
    platform: Platform,
    ranges: Ranges,
    options: Optional[WorkspaceOptions] = None,
    on_progress: Optional[Callable[[float], None]] = None,
) -> WorkspaceResult:
    """
    Sweep the grid defined by `ranges` and classify every pose.

    The platform is mutated while a sample is checked and put back to its
    previous pose afterwards, also when a platform call raises.
    on_progress, if given, receives the processed fraction every
    PROGRESS_EVERY samples and 1.0 at the end.
    """
    if options is None:
        options = WorkspaceOptions()

    leg_force = map_load_to_force(options.payload, options.stroke, options.frequency)
    horn_len = platform.horn_length()
    torque_per_force = horn_len if horn_len is not None else 1.0
    torque = leg_force * torque_per_force

    grid = [axis_values(ranges, axis) for axis in AXES]
    total = math.prod(len(vals) for vals in grid)
    log.debug("workspace sweep: grid %s (%d poses), leg force %.3f N",
              "x".join(str(len(vals)) for vals in grid), total, leg_force)

    reachable: List[Pose] = []
    failures: List[Failure] = []
    violation_counts: Dict[str, int] = {}

    processed = 0
    for x, y, z, rx, ry, rz in itertools.product(*grid):
        position = np.array([x, y, z], dtype=float)
        orient = cg.euler_to_rotmat(math.radians(rx), math.radians(ry), math.radians(rz))

        with _pose_restored(platform):
            platform.update(position, orient)
            reason = _first_violation(platform, options, horn_len, torque)

        pose = Pose(x=x, y=y, z=z, rx=rx, ry=ry, rz=rz)
        if reason is None:
            reachable.append(pose)
        else:
            failures.append(Failure(pose=pose, reason=reason))
            violation_counts[reason] = violation_counts.get(reason, 0) + 1

        processed += 1
        if on_progress is not None and processed % PROGRESS_EVERY == 0:
            on_progress(processed / total)

    if on_progress is not None:
        on_progress(1.0)

    coverage = len(reachable) / total if total else 0.0
    log.debug("workspace sweep done: coverage=%.4f violations=%s", coverage, violation_counts)

    return WorkspaceResult(
        coverage=coverage,
        violations=[Violation(reason=k, count=v) for k, v in violation_counts.items()],
        reachable=reachable,
        unreachable=failures,
    )


# ---------------- CLI ----------------

def setup_logging(level: str) -> logging.Logger:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return logging.getLogger("stewart_workspace")


def parse_range(text: str) -> Range:
    """Parse "min:max[:step]" (a single number pins the axis)."""
    parts = [p.strip() for p in str(text).split(":")]
    try:
        nums = [float(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected min:max[:step], got {text!r}")
    if len(nums) == 1:
        return Range(min=nums[0], max=nums[0], step=0.0)
    if len(nums) == 2:
        return Range(min=nums[0], max=nums[1], step=0.0)
    if len(nums) == 3:
        return Range(min=nums[0], max=nums[1], step=nums[2])
    raise argparse.ArgumentTypeError(f"expected min:max[:step], got {text!r}")


def add_sweep_arguments(p: argparse.ArgumentParser) -> None:
    """Options shared by the workspace and optimizer CLIs."""
    p.add_argument("--requirements", default=None, help="Requirements JSON (overrides the range/load flags)")
    for axis in AXES:
        unit = "deg" if axis.startswith("r") else "mm"
        p.add_argument(f"--{axis}", type=parse_range, default=None,
                       help=f"{axis} sweep as min:max[:step] ({unit}); write --{axis}=-10:10:5 for negative bounds")
    p.add_argument("--payload", type=float, default=0.0, help="Payload (kg)")
    p.add_argument("--stroke", type=float, default=0.0, help="Cycle stroke (mm)")
    p.add_argument("--frequency", type=float, default=0.0, help="Cycle frequency (Hz)")
    p.add_argument("--torque-limit", type=float, default=math.inf, help="Servo torque limit")
    p.add_argument("--ball-joint-limit", type=float, default=90.0, help="Ball joint limit (deg)")
    p.add_argument("--no-ball-joint-clamp", action="store_true", help="Skip the ball joint check")
    p.add_argument("--servo-min", type=float, default=None, help="Servo minimum angle (deg)")
    p.add_argument("--servo-max", type=float, default=None, help="Servo maximum angle (deg)")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def sweep_config_from_args(args: argparse.Namespace):
    """
    Returns (ranges, options, servo_limits, requirements_or_None).
    """
    if args.requirements:
        try:
            req = load_requirements(args.requirements)
        except (OSError, RequirementsError) as e:
            raise SystemExit(f"cannot load requirements: {e}")
        servo = req.servo_travel_bounds_deg
        if args.servo_min is not None or args.servo_max is not None:
            servo = (
                servo[0] if args.servo_min is None else float(args.servo_min),
                servo[1] if args.servo_max is None else float(args.servo_max),
            )
        return req.ranges, req.workspace_options(servo_torque_limit=float(args.torque_limit)), servo, req

    ranges = {axis: getattr(args, axis) for axis in AXES if getattr(args, axis) is not None}
    options = WorkspaceOptions(
        payload=float(args.payload),
        stroke=float(args.stroke),
        frequency=float(args.frequency),
        servo_torque_limit=float(args.torque_limit),
        ball_joint_limit_deg=float(args.ball_joint_limit),
        ball_joint_clamp=not bool(args.no_ball_joint_clamp),
    )
    servo = (
        -90.0 if args.servo_min is None else float(args.servo_min),
        90.0 if args.servo_max is None else float(args.servo_max),
    )
    return ranges, options, servo, None


def main() -> int:
    p = argparse.ArgumentParser(description="Sweep the reachable workspace of the servo-horn Stewart platform.")
    add_sweep_arguments(p)
    p.add_argument("--horn-len", type=float, default=None, help="Horn radius (mm). Defaults to current geometry.")
    p.add_argument("--rod-len", type=float, default=cg.LINK_LENGTH, help="Rod length (mm)")
    p.add_argument("--out", default=None, help="Write the result to this .json or .csv file")
    args = p.parse_args()
    setup_logging(args.log_level)

    ranges, options, servo, _ = sweep_config_from_args(args)

    platform = ServoHornPlatform(servo_min_deg=servo[0], servo_max_deg=servo[1])
    layout = platform.layout()
    if args.horn_len is not None or args.rod_len != layout.rod_length:
        layout = Layout(
            horn_length=layout.horn_length if args.horn_len is None else float(args.horn_len),
            rod_length=float(args.rod_len),
        )
        platform.apply_layout(layout)

    result = compute_workspace(platform, ranges, options)

    print("=== Stewart Platform Workspace Sweep ===")
    print(f"Horn length:   {layout.horn_length:.5f} mm")
    print(f"Rod length:    {layout.rod_length:.5f} mm")
    print(f"Servo limits:  [{servo[0]:.1f}°, {servo[1]:.1f}°]")
    print(f"Poses swept:   {result.total}")
    print(f"Coverage:      {100.0 * result.coverage:.2f}%")
    for v in sorted(result.violations, key=lambda v: -v.count):
        print(f"  {v.reason:<13} {v.count}")

    if args.out:
        path = export_results(result, args.out)
        print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
