"""
Value types shared by the workspace sweep and the layout optimizer.

Units follow the rest of the repo: translations in mm, rotations in degrees
as swept (radians only once a pose is applied to a platform).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, List

AXES = ("x", "y", "z", "rx", "ry", "rz")

# Failure reasons, in check order.
REASON_IK = "IK"
REASON_SERVO_RANGE = "servo range"
REASON_HORN_STRETCH = "horn stretch"
REASON_BALL_JOINT = "ball joint"
REASON_TORQUE = "torque"
REASONS = (REASON_IK, REASON_SERVO_RANGE, REASON_HORN_STRETCH, REASON_BALL_JOINT, REASON_TORQUE)


class ConfigurationError(ValueError):
    """Invalid sweep or optimizer configuration."""


class OptimizerStateError(RuntimeError):
    """Optimizer operation called in the wrong lifecycle state."""


@dataclass(frozen=True)
class Range:
    min: float = 0.0
    max: float = 0.0
    step: float = 0.0


Ranges = Dict[str, Range]


@dataclass(frozen=True)
class Pose:
    x: float
    y: float
    z: float
    rx: float
    ry: float
    rz: float


@dataclass(frozen=True)
class Layout:
    horn_length: float
    rod_length: float


@dataclass(frozen=True)
class LayoutBounds:
    """
    Admissible horn/rod lengths (mm).
    Used by the optimizer to keep mutated layouts buildable.
    """

    horn_min: float
    horn_max: float
    rod_min: float
    rod_max: float

    def clamp(self, layout: Layout) -> Layout:
        return Layout(
            horn_length=min(max(layout.horn_length, self.horn_min), self.horn_max),
            rod_length=min(max(layout.rod_length, self.rod_min), self.rod_max),
        )


@dataclass(frozen=True)
class WorkspaceOptions:
    payload: float = 0.0  # kg
    stroke: float = 0.0  # mm
    frequency: float = 0.0  # Hz
    servo_torque_limit: float = math.inf
    ball_joint_limit_deg: float = 90.0
    ball_joint_clamp: bool = True


@dataclass(frozen=True)
class Violation:
    reason: str
    count: int


@dataclass(frozen=True)
class Failure:
    pose: Pose
    reason: str


@dataclass
class WorkspaceResult:
    """
    Outcome of one workspace sweep.

    `violations` is a histogram of failure reasons. Its order is not meaningful;
    compare it through `violation_counts()`.
    """

    coverage: float
    violations: List[Violation] = field(default_factory=list)
    reachable: List[Pose] = field(default_factory=list)
    unreachable: List[Failure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.reachable) + len(self.unreachable)

    def violation_counts(self) -> Dict[str, int]:
        return {v.reason: v.count for v in self.violations}

    def to_dict(self) -> dict:
        return asdict(self)
