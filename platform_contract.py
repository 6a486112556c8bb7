"""
Capability contracts the workspace sweep and the optimizer consume.

A platform must implement the four abstract methods. Every other query is
optional: the default returns None, meaning "not supported", and the sweep
then skips the check that depends on it.

Conventions:
  - position: (3,) float array, mm
  - orientation: (3,3) rotation matrix, platform frame -> base frame
  - point sets: (N,3) float arrays, one row per leg
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from workspace_types import Layout


class Platform(ABC):

    @abstractmethod
    def update(self, position: np.ndarray, orientation: np.ndarray) -> None:
        """Move the platform to the given pose."""

    @abstractmethod
    def compute_angles(self) -> Optional[Sequence[float]]:
        """
        Actuator angles (deg) for the current pose.
        None, or any NaN entry, means the pose is kinematically infeasible.
        """

    @abstractmethod
    def orientation(self) -> np.ndarray:
        ...

    @abstractmethod
    def translation(self) -> np.ndarray:
        ...

    def servo_range(self) -> Optional[Tuple[float, float]]:
        return None

    def horn_length(self) -> Optional[float]:
        return None

    def b_points(self) -> Optional[np.ndarray]:
        """Horn pivot (servo axle) per leg."""
        return None

    def h_points(self) -> Optional[np.ndarray]:
        """Horn tip (lower ball joint) per leg, for the current pose."""
        return None

    def p_points(self) -> Optional[np.ndarray]:
        """Platform-side ball joint per leg, for the current pose."""
        return None

    def cos_beta(self) -> Optional[Sequence[float]]:
        return None

    def sin_beta(self) -> Optional[Sequence[float]]:
        return None


class ConfigurablePlatform(Platform):
    """Platform whose geometry can be swapped by the layout optimizer."""

    @abstractmethod
    def apply_layout(self, layout: Layout) -> None:
        ...

    @abstractmethod
    def layout(self) -> Layout:
        ...
