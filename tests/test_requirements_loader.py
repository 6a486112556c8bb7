"""Tests for requirements parsing."""

from __future__ import annotations

import json
import math

import pytest

from requirements_loader import (
    DEFAULTS,
    RequirementsError,
    derive_step,
    load_requirements,
    parse_requirements,
)
from workspace_types import LayoutBounds, Range

NESTED = {
    "payload": {"mass_kg": 2.0, "cycle_mm": 10.0, "frequency_hz": 1.5, "cycle_axis": "Z"},
    "workspace": {
        "x_range_mm": [-20, 20],
        "y_range_mm": {"min": -10, "max": 10},
        "z_range_mm": {"from": 0, "to": 0},
    },
    "rotations": {"rx_range_deg": [-10, 10], "ry_range_deg": [-5, 5], "rz_range_deg": [0, 0]},
    "constraints": {"ball_joint_max_deg": 40, "servo_max_deg": 100},
}

FLAT = {
    "mass_kg": 1,
    "cycle_mm": 0,
    "frequency_hz": 0,
    "cycle_axis": "x",
    "x_range_mm": [0, 10],
    "y_range_mm": [0, 10],
    "z_range_mm": [0, 10],
    "rx_range_deg": [0, 0],
    "ry_range_deg": [0, 0],
    "rz_range_deg": [0, 0],
}


def _with(base: dict, **changes) -> str:
    data = json.loads(json.dumps(base))
    data.update(changes)
    return json.dumps(data)


class TestParseRequirements:

    def test_nested(self):
        req = parse_requirements(json.dumps(NESTED))
        assert req.mass_kg == 2.0
        assert req.cycle_mm == 10.0
        assert req.frequency_hz == 1.5
        assert req.cycle_axis == "z"
        assert req.ranges["x"] == Range(min=-20.0, max=20.0, step=4.0)
        assert req.ranges["y"] == Range(min=-10.0, max=10.0, step=2.0)
        assert req.ranges["z"] == Range(min=0.0, max=0.0, step=5.0)
        assert req.ranges["rz"] == Range(min=0.0, max=0.0, step=5.0)
        assert req.ball_joint_max_deg == 40.0
        assert req.servo_travel_bounds_deg == (-100.0, 100.0)

    def test_flat_uses_defaults(self):
        req = parse_requirements(json.dumps(FLAT))
        assert set(req.ranges) == {"x", "y", "z", "rx", "ry", "rz"}
        assert req.ball_joint_max_deg == DEFAULTS["ball_joint_max_deg"]
        assert req.servo_travel_bounds_deg == DEFAULTS["servo_travel_bounds_deg"]
        assert req.rod_length_bounds_mm == DEFAULTS["rod_length_bounds_mm"]
        assert req.horn_length_bounds_mm == DEFAULTS["horn_length_bounds_mm"]

    def test_explicit_servo_travel_wins(self):
        req = parse_requirements(_with(FLAT, servo_travel_bounds_deg=[-60, 80], servo_max_deg=30))
        assert req.servo_travel_bounds_deg == (-60.0, 80.0)

    def test_layout_bounds(self):
        req = parse_requirements(_with(FLAT, rod_length_bounds_mm=[150, 300], horn_length_bounds_mm=[20, 60]))
        assert req.layout_bounds() == LayoutBounds(horn_min=20.0, horn_max=60.0, rod_min=150.0, rod_max=300.0)

    def test_workspace_options(self):
        options = parse_requirements(json.dumps(NESTED)).workspace_options()
        assert options.payload == 2.0
        assert options.stroke == 10.0
        assert options.frequency == 1.5
        assert options.ball_joint_limit_deg == 40.0
        assert options.ball_joint_clamp
        assert math.isinf(options.servo_torque_limit)

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "req.json"
        path.write_text(json.dumps(NESTED), encoding="utf-8")
        assert load_requirements(path).ranges["rx"].step == 2.0


class TestRequirementsErrors:

    def test_invalid_json(self):
        with pytest.raises(RequirementsError, match="invalid"):
            parse_requirements("{not json")

    def test_not_an_object(self):
        with pytest.raises(RequirementsError):
            parse_requirements("[1, 2]")

    def test_missing_nested_field(self):
        data = json.loads(json.dumps(NESTED))
        del data["rotations"]["ry_range_deg"]
        with pytest.raises(RequirementsError, match="rotations field: ry_range_deg"):
            parse_requirements(json.dumps(data))

    def test_missing_flat_field(self):
        data = dict(FLAT)
        del data["mass_kg"]
        with pytest.raises(RequirementsError, match="mass_kg"):
            parse_requirements(json.dumps(data))

    @pytest.mark.parametrize("value", [[10, -10], [0], "0:10", {"lo": 0, "hi": 1}, [0, "a"]])
    def test_bad_ranges(self, value):
        with pytest.raises(RequirementsError, match="x_range_mm"):
            parse_requirements(_with(FLAT, x_range_mm=value))

    def test_bad_cycle_axis(self):
        with pytest.raises(RequirementsError, match="cycle_axis"):
            parse_requirements(_with(FLAT, cycle_axis="w"))
        with pytest.raises(RequirementsError, match="cycle_axis"):
            parse_requirements(_with(FLAT, cycle_axis=3))

    def test_bad_number(self):
        with pytest.raises(RequirementsError, match="mass_kg"):
            parse_requirements(_with(FLAT, mass_kg="heavy"))


def test_derive_step():
    assert derive_step(-20.0, 20.0, 5.0) == 4.0
    assert derive_step(3.0, 3.0, 5.0) == 5.0
