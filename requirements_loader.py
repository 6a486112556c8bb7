"""
Parse a platform requirements file into sweep ranges, load options and layout bounds.

Two JSON layouts are accepted.

Nested:
  {
    "payload":     {"mass_kg": 2, "cycle_mm": 10, "frequency_hz": 1, "cycle_axis": "z"},
    "workspace":   {"x_range_mm": [-20, 20], "y_range_mm": [-20, 20], "z_range_mm": [-10, 10]},
    "rotations":   {"rx_range_deg": [-10, 10], "ry_range_deg": [-10, 10], "rz_range_deg": [0, 0]},
    "constraints": {"ball_joint_max_deg": 75, "servo_max_deg": 90}
  }

Flat: the same keys without the grouping objects.

A range may be written as [min, max], {"min": .., "max": ..} or {"from": .., "to": ..}.
Each swept axis gets ten steps across its span (5 mm / 5 deg when the span is zero).
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from workspace_types import LayoutBounds, Range, Ranges, WorkspaceOptions

DEFAULTS: Dict[str, Any] = {
    "ball_joint_max_deg": 90.0,  # vs. horizontal horn axis; home rods sit ~61 deg above it
    "servo_travel_bounds_deg": (-120.0, 120.0),
    "rod_length_bounds_mm": (160.0, 420.0),
    "horn_length_bounds_mm": (30.0, 110.0),
}

TRANSLATION_STEP = 5.0  # mm
ROTATION_STEP = 5.0  # deg
STEPS_PER_SPAN = 10

RANGE_FIELDS = {
    "x": "x_range_mm",
    "y": "y_range_mm",
    "z": "z_range_mm",
    "rx": "rx_range_deg",
    "ry": "ry_range_deg",
    "rz": "rz_range_deg",
}
PAYLOAD_FIELDS = ("mass_kg", "cycle_mm", "frequency_hz", "cycle_axis")


class RequirementsError(ValueError):
    pass


@dataclass(frozen=True)
class Requirements:
    mass_kg: float
    cycle_mm: float
    frequency_hz: float
    cycle_axis: str
    ranges: Ranges
    ball_joint_max_deg: float
    servo_travel_bounds_deg: Tuple[float, float]
    rod_length_bounds_mm: Tuple[float, float]
    horn_length_bounds_mm: Tuple[float, float]

    def workspace_options(self, servo_torque_limit: float = math.inf) -> WorkspaceOptions:
        return WorkspaceOptions(
            payload=self.mass_kg,
            stroke=self.cycle_mm,
            frequency=self.frequency_hz,
            servo_torque_limit=servo_torque_limit,
            ball_joint_limit_deg=self.ball_joint_max_deg,
            ball_joint_clamp=True,
        )

    def layout_bounds(self) -> LayoutBounds:
        return LayoutBounds(
            horn_min=self.horn_length_bounds_mm[0],
            horn_max=self.horn_length_bounds_mm[1],
            rod_min=self.rod_length_bounds_mm[0],
            rod_max=self.rod_length_bounds_mm[1],
        )


# ---------------- Field helpers ----------------

def _range_pair(value: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(value, (list, tuple)):
        return (value[0], value[1]) if len(value) == 2 else None
    if isinstance(value, dict):
        if "min" in value and "max" in value:
            return value["min"], value["max"]
        if "from" in value and "to" in value:
            return value["from"], value["to"]
    return None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _validate_range(value: Any, name: str) -> Tuple[float, float]:
    pair = _range_pair(value)
    if pair is None:
        raise RequirementsError(f"{name} must define min/max values.")
    lo, hi = pair
    if not (_is_number(lo) and _is_number(hi)) or hi < lo:
        raise RequirementsError(f"{name} must contain numeric min/max values with max >= min.")
    return float(lo), float(hi)


def _number(value: Any, name: str) -> float:
    if not _is_number(value):
        raise RequirementsError(f"{name} must be a finite number, got {value!r}.")
    return float(value)


def _cycle_axis(value: Any) -> str:
    if not isinstance(value, str):
        raise RequirementsError("cycle_axis must be a string.")
    axis = value.lower()
    if axis not in ("x", "y", "z"):
        raise RequirementsError('cycle_axis must be one of "x", "y", or "z".')
    return axis


def derive_step(lo: float, hi: float, fallback: float) -> float:
    span = abs(hi - lo)
    if span == 0:
        return fallback
    return span / STEPS_PER_SPAN


def _bounds(value: Any, default: Tuple[float, float], name: str) -> Tuple[float, float]:
    if value is None or _range_pair(value) is None:
        return default
    return _validate_range(value, name)


def _servo_bounds(data: Dict[str, Any]) -> Tuple[float, float]:
    travel = data.get("servo_travel_bounds_deg")
    if travel is not None:
        return _validate_range(travel, "servo_travel_bounds_deg")
    servo_max = data.get("servo_max_deg")
    if _is_number(servo_max):
        m = abs(float(servo_max))
        return -m, m
    return DEFAULTS["servo_travel_bounds_deg"]


# ---------------- Parsing ----------------

def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    payload = data.get("payload") or {}
    workspace = data.get("workspace") or {}
    rotations = data.get("rotations") or {}
    constraints = data.get("constraints") or {}

    for group, source, fields in (
        ("payload", payload, PAYLOAD_FIELDS),
        ("workspace", workspace, ("x_range_mm", "y_range_mm", "z_range_mm")),
        ("rotations", rotations, ("rx_range_deg", "ry_range_deg", "rz_range_deg")),
    ):
        for name in fields:
            if name not in source:
                raise RequirementsError(f"Requirements missing {group} field: {name}")

    flat: Dict[str, Any] = {}
    flat.update(payload)
    flat.update(workspace)
    flat.update(rotations)
    flat.update(constraints)
    return flat


def parse_requirements(text: str) -> Requirements:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RequirementsError("Requirements JSON is invalid.") from e
    if not isinstance(data, dict):
        raise RequirementsError("Requirements must be a JSON object.")

    nested = any(k in data for k in ("payload", "workspace", "rotations", "constraints"))
    if nested:
        data = _flatten(data)
    else:
        for name in PAYLOAD_FIELDS + tuple(RANGE_FIELDS.values()):
            if name not in data:
                raise RequirementsError(f"Requirements missing field: {name}")

    ranges: Ranges = {}
    for axis, name in RANGE_FIELDS.items():
        lo, hi = _validate_range(data[name], name)
        fallback = ROTATION_STEP if axis.startswith("r") else TRANSLATION_STEP
        ranges[axis] = Range(min=lo, max=hi, step=derive_step(lo, hi, fallback))

    ball_joint = data.get("ball_joint_max_deg")
    return Requirements(
        mass_kg=_number(data["mass_kg"], "mass_kg"),
        cycle_mm=_number(data["cycle_mm"], "cycle_mm"),
        frequency_hz=_number(data["frequency_hz"], "frequency_hz"),
        cycle_axis=_cycle_axis(data["cycle_axis"]),
        ranges=ranges,
        ball_joint_max_deg=(DEFAULTS["ball_joint_max_deg"] if ball_joint is None
                            else _number(ball_joint, "ball_joint_max_deg")),
        servo_travel_bounds_deg=_servo_bounds(data),
        rod_length_bounds_mm=_bounds(data.get("rod_length_bounds_mm"),
                                     DEFAULTS["rod_length_bounds_mm"], "rod_length_bounds_mm"),
        horn_length_bounds_mm=_bounds(data.get("horn_length_bounds_mm"),
                                      DEFAULTS["horn_length_bounds_mm"], "horn_length_bounds_mm"),
    )


def load_requirements(path) -> Requirements:
    return parse_requirements(Path(path).read_text(encoding="utf-8"))
