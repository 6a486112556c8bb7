"""
ServoHornPlatform: the rotary-servo Stewart platform from coordinate_generator,
exposed through the ConfigurablePlatform contract.

Layout parameters:
  horn_length  horn perpendicular radius (mm)
  rod_length   ball link center to center (mm)
Changing either re-homes the upper plate so that all servos read 0 deg at the
home pose.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

import coordinate_generator as cg
from platform_contract import ConfigurablePlatform
from workspace_types import Layout

log = logging.getLogger(__name__)

DEFAULT_SERVO_MIN_DEG = -90.0
DEFAULT_SERVO_MAX_DEG = 90.0


class ServoHornPlatform(ConfigurablePlatform):

    def __init__(
        self,
        layout: Optional[Layout] = None,
        servo_min_deg: float = DEFAULT_SERVO_MIN_DEG,
        servo_max_deg: float = DEFAULT_SERVO_MAX_DEG,
    ):
        self._bottom, self._horn_ref, self._upper_ref = cg.generate_coordinates()
        if layout is None:
            layout = Layout(
                horn_length=cg.horn_radius(self._bottom, self._horn_ref),
                rod_length=cg.LINK_LENGTH,
            )
        self._servo_range = (float(servo_min_deg), float(servo_max_deg))
        self._position = np.zeros(3, dtype=float)
        self._orientation = np.eye(3)
        self.apply_layout(layout)

    # ---------------- Layout ----------------

    def apply_layout(self, layout: Layout) -> None:
        self._layout = layout
        try:
            horn0 = cg.rebuild_horns_with_horn_len(self._bottom, self._horn_ref, float(layout.horn_length))
            upper_home = cg.auto_home_upper_z(self._upper_ref, horn0, float(layout.rod_length))
        except ValueError as e:
            log.warning("layout %s is not buildable: %s", layout, e)
            self._horn0 = None
            self._upper_home = None
            self._pivots = None
            self._beta = None
        else:
            self._horn0 = horn0
            self._upper_home = upper_home
            self._pivots = cg.horn_pivots(self._bottom, horn0)
            self._beta = cg.horn_azimuths(self._bottom, horn0)
        self._solve()

    def layout(self) -> Layout:
        return self._layout

    @property
    def buildable(self) -> bool:
        return self._horn0 is not None

    # ---------------- Pose ----------------

    def update(self, position: np.ndarray, orientation: np.ndarray) -> None:
        self._position = np.array(position, dtype=float).reshape(3)
        self._orientation = np.array(orientation, dtype=float).reshape(3, 3)
        self._solve()

    def _solve(self) -> None:
        if not self.buildable:
            self._upper_t = None
            self._angles = None
            self._horn_ik = None
            return
        self._upper_t = cg.transform_upper_anchors(self._upper_home, self._orientation, self._position)
        self._angles, self._horn_ik = cg.solve_leg_angles(
            self._bottom, self._horn0, self._upper_t, float(self._layout.rod_length)
        )

    def orientation(self) -> np.ndarray:
        return self._orientation.copy()

    def translation(self) -> np.ndarray:
        return self._position.copy()

    # ---------------- Kinematic queries ----------------

    def compute_angles(self) -> Optional[List[float]]:
        if self._angles is None:
            return None
        return [float(a) for a in self._angles]

    def servo_range(self) -> Optional[Tuple[float, float]]:
        return self._servo_range

    def horn_length(self) -> Optional[float]:
        if not self.buildable:
            return None
        return float(self._layout.horn_length)

    def b_points(self) -> Optional[np.ndarray]:
        return None if self._pivots is None else self._pivots.copy()

    def h_points(self) -> Optional[np.ndarray]:
        return None if self._horn_ik is None else self._horn_ik.copy()

    def p_points(self) -> Optional[np.ndarray]:
        return None if self._upper_t is None else self._upper_t.copy()

    def cos_beta(self) -> Optional[List[float]]:
        return None if self._beta is None else [float(c) for c in np.cos(self._beta)]

    def sin_beta(self) -> Optional[List[float]]:
        return None if self._beta is None else [float(s) for s in np.sin(self._beta)]
