"""
Genetic search over platform layouts (horn length, rod length) maximising
workspace coverage.

One generation:
  1. apply every layout of the population to the platform and sweep the workspace
  2. rank by coverage, best first (ties keep population order)
  3. keep the top half, refill with mutated copies of random survivors

Randomness comes from one seeded numpy Generator owned by the optimizer, drawn
in a fixed order, so a seed reproduces a run exactly:
  initialize(): per individual, one uniform draw for horn_length then one for rod_length
  step():       per child, one integer draw for the parent, then per field
                one uniform draw for the mutation test and, if it passes, one for the offset

Usage:
  python layout_optimizer.py --requirements req.json --generations 20 --seed 1
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from platform_contract import ConfigurablePlatform
from results_export import export_layout
from servo_platform import ServoHornPlatform
from workspace_sweep import (
    add_sweep_arguments,
    compute_workspace,
    map_load_to_force,
    setup_logging,
    sweep_config_from_args,
)
from workspace_types import (
    ConfigurationError,
    Layout,
    LayoutBounds,
    OptimizerStateError,
    Ranges,
    WorkspaceOptions,
    WorkspaceResult,
)

log = logging.getLogger(__name__)

PERTURBATION = 5.0  # mm, max offset of one random draw


@dataclass(frozen=True)
class LayoutScore:
    layout: Layout
    coverage: float
    torque: float


def layout_torque(layout: Layout, options: WorkspaceOptions) -> float:
    """Servo torque demanded by the per-leg load with this layout's horn as lever arm."""
    horn = layout.horn_length if layout.horn_length else 1.0
    return map_load_to_force(options.payload, options.stroke, options.frequency) * horn


class LayoutOptimizer:
    """
    Truncation-selection GA over Layouts.

    The optimizer owns `platform`; after step() it is left configured with the
    last evaluated layout, not necessarily the returned best one.
    `generations` is only consulted by run(); step() can be called any number
    of times.
    """

    def __init__(
        self,
        platform: ConfigurablePlatform,
        ranges: Ranges,
        options: Optional[WorkspaceOptions] = None,
        population_size: int = 20,
        generations: int = 10,
        mutation_rate: float = 0.2,
        seed: Optional[int] = None,
        bounds: Optional[LayoutBounds] = None,
    ):
        if not 0.0 <= float(mutation_rate) <= 1.0:
            raise ConfigurationError(f"mutation_rate must be within [0, 1], got {mutation_rate}")
        self.platform = platform
        self.ranges = ranges
        self.options = options if options is not None else WorkspaceOptions()
        self.population_size = int(population_size)
        self.generations = int(generations)
        self.mutation_rate = float(mutation_rate)
        self.bounds = bounds

        self.population: List[Layout] = []
        self.generation = 0
        self.scores: List[LayoutScore] = []  # last generation, best first
        self.history: List[LayoutScore] = []  # best of each generation
        self._rng = np.random.default_rng(seed)

    # ---------------- Random helpers ----------------

    def _offset(self) -> float:
        return (float(self._rng.random()) * 2.0 - 1.0) * PERTURBATION

    def _bounded(self, layout: Layout) -> Layout:
        return layout if self.bounds is None else self.bounds.clamp(layout)

    def _randomize(self, base: Layout) -> Layout:
        horn = base.horn_length + self._offset()
        rod = base.rod_length + self._offset()
        return self._bounded(Layout(horn_length=horn, rod_length=rod))

    def _mutate(self, layout: Layout) -> Layout:
        horn = layout.horn_length
        if self._rng.random() < self.mutation_rate:
            horn += self._offset()
        rod = layout.rod_length
        if self._rng.random() < self.mutation_rate:
            rod += self._offset()
        return self._bounded(Layout(horn_length=horn, rod_length=rod))

    # ---------------- Generations ----------------

    def _check_population_size(self) -> None:
        if self.population_size < 2:
            raise ConfigurationError(
                f"population_size must be >= 2 to keep any survivors, got {self.population_size}"
            )

    def initialize(self) -> None:
        """Seed the population around the platform's current layout."""
        base = self.platform.layout()
        self.population = [self._randomize(base) for _ in range(self.population_size)]
        self.generation = 0
        self.scores = []
        self.history = []
        log.debug("initialized %d layouts around %s", len(self.population), base)

    def evaluate(self, layout: Layout) -> WorkspaceResult:
        self.platform.apply_layout(layout)
        return compute_workspace(self.platform, self.ranges, self.options)

    def step(self) -> Layout:
        """Run one generation and return its best layout."""
        self._check_population_size()
        if not self.population:
            raise OptimizerStateError("population is empty; call initialize() first")

        scored = []
        for layout in self.population:
            result = self.evaluate(layout)
            scored.append(LayoutScore(layout, result.coverage, layout_torque(layout, self.options)))
        ranked = sorted(scored, key=lambda s: s.coverage, reverse=True)

        survivors = [s.layout for s in ranked[: self.population_size // 2]]
        next_gen = list(survivors)
        while len(next_gen) < self.population_size:
            parent = survivors[int(self._rng.integers(len(survivors)))]
            next_gen.append(self._mutate(parent))

        self.population = next_gen
        self.scores = ranked
        self.generation += 1
        best = ranked[0]
        self.history.append(best)
        log.info("generation %d: best coverage=%.4f horn=%.3f rod=%.3f",
                 self.generation, best.coverage, best.layout.horn_length, best.layout.rod_length)
        return best.layout

    def run(self, callback: Optional[Callable[[int, LayoutScore], None]] = None) -> LayoutScore:
        """
        Step `generations` times (initializing first if needed).
        Returns the best score seen over the whole run.
        """
        self._check_population_size()
        if self.generations < 1:
            raise ConfigurationError(f"generations must be >= 1 for run(), got {self.generations}")

        if not self.population:
            self.initialize()
        for _ in range(self.generations):
            self.step()
            if callback is not None:
                callback(self.generation, self.history[-1])
        return max(self.history, key=lambda s: s.coverage)


# ---------------- CLI ----------------

def main() -> int:
    p = argparse.ArgumentParser(description="Search horn/rod lengths that maximise Stewart platform workspace coverage.")
    add_sweep_arguments(p)
    p.add_argument("--population", type=int, default=20, help="Population size (>= 2)")
    p.add_argument("--generations", type=int, default=10)
    p.add_argument("--mutation-rate", type=float, default=0.2)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--no-bounds", action="store_true", help="Ignore the requirements' horn/rod bounds")
    p.add_argument("--out", default=None, help="Write the best layout to this JSON file")
    args = p.parse_args()
    setup_logging(args.log_level)

    if args.population < 2:
        raise SystemExit("--population must be >= 2")
    if args.generations < 1:
        raise SystemExit("--generations must be >= 1")

    ranges, options, servo, req = sweep_config_from_args(args)
    bounds = None if (req is None or args.no_bounds) else req.layout_bounds()

    platform = ServoHornPlatform(servo_min_deg=servo[0], servo_max_deg=servo[1])
    start = platform.layout()
    try:
        opt = LayoutOptimizer(
            platform,
            ranges,
            options,
            population_size=args.population,
            generations=args.generations,
            mutation_rate=args.mutation_rate,
            seed=args.seed,
            bounds=bounds,
        )
    except ConfigurationError as e:
        raise SystemExit(str(e))

    def report(gen: int, best: LayoutScore) -> None:
        print(f"gen {gen:3d}: coverage={100.0 * best.coverage:6.2f}%  "
              f"horn={best.layout.horn_length:8.3f} mm  rod={best.layout.rod_length:8.3f} mm")

    print("=== Stewart Platform Layout Optimization ===")
    print(f"Start layout:  horn={start.horn_length:.3f} mm  rod={start.rod_length:.3f} mm")
    best = opt.run(callback=report)
    print(f"Best layout:   horn={best.layout.horn_length:.3f} mm  rod={best.layout.rod_length:.3f} mm  "
          f"coverage={100.0 * best.coverage:.2f}%  torque={best.torque:.3f}")

    if args.out:
        path = export_layout(best.layout, args.out)
        print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
