"""Pytest fixtures and dummy platforms for the workspace tests."""

from __future__ import annotations

from typing import List, Optional

import numpy as np
import pytest

from platform_contract import ConfigurablePlatform, Platform
from workspace_types import AXES, Layout, Range


class DummyPlatform(Platform):
    """Six zero angles at every pose, no optional capabilities."""

    def __init__(self):
        self.position = np.zeros(3)
        self.orient = np.eye(3)
        self.updates = 0

    def update(self, position, orientation):
        self.position = np.array(position, dtype=float)
        self.orient = np.array(orientation, dtype=float)
        self.updates += 1

    def compute_angles(self) -> Optional[List[float]]:
        return [0.0] * 6

    def orientation(self):
        return self.orient.copy()

    def translation(self):
        return self.position.copy()


class LayoutDummy(ConfigurablePlatform, DummyPlatform):
    """
    Configurable dummy whose poses are reachable only while |x| <= horn_length / 10.
    Longer horns therefore always cover more of an x sweep.
    """

    def __init__(self, layout: Layout = Layout(horn_length=50.0, rod_length=200.0)):
        DummyPlatform.__init__(self)
        self._layout = layout
        self.applied: List[Layout] = []

    def apply_layout(self, layout: Layout) -> None:
        self._layout = layout
        self.applied.append(layout)

    def layout(self) -> Layout:
        return self._layout

    def horn_length(self) -> Optional[float]:
        return self._layout.horn_length

    def compute_angles(self) -> Optional[List[float]]:
        if abs(self.position[0]) > self._layout.horn_length / 10.0:
            return None
        return [0.0] * 6


@pytest.fixture
def dummy_platform() -> DummyPlatform:
    return DummyPlatform()


@pytest.fixture
def layout_dummy() -> LayoutDummy:
    return LayoutDummy()


@pytest.fixture
def all_zero_ranges():
    """Every axis pinned at 0."""
    return {axis: Range(min=0.0, max=0.0, step=1.0) for axis in AXES}
