"""
stopping.py

Stopping criteria of the training loop.

The criteria are checked once per iteration in a fixed order and the first
one satisfied wins:

    1) performance <= performance_goal
    2) gradient norm <= gradient_norm_goal
    3) parameters increment norm <= minimum_parameters_increment_norm
    4) performance increase <= minimum_performance_increase
    5) consecutive selection performance increases
           >= maximum_selection_performance_decreases
    6) elapsed time >= maximum_time
    7) iteration >= maximum_iterations_number

Criteria 3 and 4 need a previous iteration and are skipped on iteration 0.
Criterion 5 is only checked when a selection metric is available.
All comparisons are inclusive.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from .config import Configuration


class StoppingReason(str, Enum):
    PERFORMANCE_GOAL = "PerformanceGoalReached"
    GRADIENT_NORM_GOAL = "GradientNormGoalReached"
    MINIMUM_PARAMETERS_INCREMENT = "MinimumParametersIncrementReached"
    MINIMUM_PERFORMANCE_INCREASE = "PerformanceIncreaseBelowMinimum"
    EARLY_STOPPING_ON_SELECTION = "EarlyStoppingOnSelection"
    MAXIMUM_TIME = "MaximumTimeExceeded"
    MAXIMUM_ITERATIONS = "MaximumIterationsReached"
    NUMERICAL_FAILURE = "NumericalFailure"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StoppingSnapshot:
    """
    Quantities the criteria look at.

    parameters_increment_norm and performance_increase describe the step
    that led to the current iteration and are ignored on iteration 0.
    """
    iteration: int
    performance: float
    gradient_norm: float
    parameters_increment_norm: float
    performance_increase: float
    selection_failures: int
    has_selection: bool
    elapsed_time: float


class StoppingCriteria:
    """Evaluates the stopping criteria for a configuration."""

    def __init__(self, configuration: Configuration) -> None:
        self.configuration = configuration

    def _satisfied(self, snapshot: StoppingSnapshot) -> Iterator[StoppingReason]:
        cfg = self.configuration

        if snapshot.performance <= cfg.performance_goal:
            yield StoppingReason.PERFORMANCE_GOAL

        if snapshot.gradient_norm <= cfg.gradient_norm_goal:
            yield StoppingReason.GRADIENT_NORM_GOAL

        if snapshot.iteration > 0:
            if _le(snapshot.parameters_increment_norm, cfg.minimum_parameters_increment_norm):
                yield StoppingReason.MINIMUM_PARAMETERS_INCREMENT

            if _le(snapshot.performance_increase, cfg.minimum_performance_increase):
                yield StoppingReason.MINIMUM_PERFORMANCE_INCREASE

        if snapshot.has_selection and \
                snapshot.selection_failures >= cfg.maximum_selection_performance_decreases:
            yield StoppingReason.EARLY_STOPPING_ON_SELECTION

        if snapshot.elapsed_time >= cfg.maximum_time:
            yield StoppingReason.MAXIMUM_TIME

        if snapshot.iteration >= cfg.maximum_iterations_number:
            yield StoppingReason.MAXIMUM_ITERATIONS

    def check(self, snapshot: StoppingSnapshot) -> List[StoppingReason]:
        """All satisfied criteria, in priority order."""
        return list(self._satisfied(snapshot))

    def evaluate(self, snapshot: StoppingSnapshot) -> Optional[StoppingReason]:
        """The first satisfied criterion, or None to keep iterating."""
        return next(self._satisfied(snapshot), None)


def _le(value: float, threshold: float) -> bool:
    return not math.isnan(value) and value <= threshold


__all__ = [
    "StoppingReason",
    "StoppingSnapshot",
    "StoppingCriteria",
]
