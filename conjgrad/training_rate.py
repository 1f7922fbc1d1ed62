"""
training_rate.py

Training rate (step length) along the training direction.

Contents:
    - DirectionalPoint       - (parameters, performance, training_rate) after
                               a line search;
    - LineSearchMinimizer    - interface of any one-dimensional minimiser the
                               trainer can use;
    - TrainingRateAlgorithm  - default minimiser over a performance
                               functional, built on line_search.py;
    - LineSearchAdapter      - what the trainer actually calls: picks the
                               initial step, delegates, validates the result
                               and signals LineSearchFailure.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from .errors import LineSearchFailure
from .functions import ArrayLike, as_vector, check_same_dimension
from .line_search import (
    LINE_SEARCH_BRACKETING,
    LINE_SEARCH_GOLDEN_SECTION,
    LineSearchResult,
    line_search_1d,
)
from .objective import PerformanceFunctional

logger = logging.getLogger(__name__)

ARMIJO_BACKTRACKING = "armijo_backtracking"


@dataclass
class DirectionalPoint:
    """
    Point reached by a line search.

    Attributes:
        parameters     - x_k + α d_k;
        performance    - f(x_k + α d_k);
        training_rate  - α.
    """
    parameters: np.ndarray
    performance: float
    training_rate: float


@runtime_checkable
class LineSearchMinimizer(Protocol):
    """
    One-dimensional minimiser along a direction.

    minimize() returns the point reached, or raises LineSearchFailure when
    no minimum can be bracketed. performance and gradient at the starting
    point are passed when known so that the minimiser can skip evaluations.
    """

    def minimize(
        self,
        parameters: ArrayLike,
        direction: ArrayLike,
        initial_step: float,
        performance: Optional[float] = None,
        gradient: Optional[ArrayLike] = None,
    ) -> DirectionalPoint:
        ...


MinimizerOutput = Union[DirectionalPoint, Sequence[Any], None]


# ---------------------------------------------------------------------------
# Default minimiser
# ---------------------------------------------------------------------------

class TrainingRateAlgorithm:
    """
    Line minimisation of a performance functional.

    Methods:
        "golden_section"      - bracket the minimum by expanding from the
                                initial step, then golden section;
        "armijo_backtracking" - backtrack from the initial step until the
                                sufficient decrease condition holds.

    In both cases a zero step is returned when no decrease is found.
    LineSearchFailure is raised when the minimum cannot be bracketed or the
    performance is not finite at the starting point.
    """

    METHODS = (LINE_SEARCH_GOLDEN_SECTION, ARMIJO_BACKTRACKING)

    def __init__(
        self,
        objective: PerformanceFunctional,
        method: str = LINE_SEARCH_GOLDEN_SECTION,
        tolerance: float = 1e-6,
        max_iterations: int = 100,
        bracketing_factor: float = 1.618034,
        maximum_bracketing_steps: int = 60,
        c1: float = 1e-4,
        tau: float = 0.5,
    ) -> None:
        if method not in self.METHODS:
            raise ValueError(
                f"Unknown training rate method '{method}', expected one of {', '.join(self.METHODS)}."
            )
        if tolerance <= 0.0:
            raise ValueError("tolerance must be positive.")
        if max_iterations <= 0:
            raise ValueError("max_iterations must be positive.")
        if bracketing_factor <= 1.0:
            raise ValueError("bracketing_factor must be greater than 1.")
        if not 0.0 < tau < 1.0:
            raise ValueError("tau must lie in (0, 1).")

        self.objective = objective
        self.method = method
        self.tolerance = float(tolerance)
        self.max_iterations = int(max_iterations)
        self.bracketing_factor = float(bracketing_factor)
        self.maximum_bracketing_steps = int(maximum_bracketing_steps)
        self.c1 = float(c1)
        self.tau = float(tau)

    def minimize(
        self,
        parameters: ArrayLike,
        direction: ArrayLike,
        initial_step: float,
        performance: Optional[float] = None,
        gradient: Optional[ArrayLike] = None,
    ) -> DirectionalPoint:
        x_k = np.asarray(parameters, dtype=float)
        d_k = np.asarray(direction, dtype=float)

        def phi(alpha: float) -> float:
            return self.objective.calculate_performance(x_k + alpha * d_k)

        if performance is None:
            performance = phi(0.0)
        performance = float(performance)
        if not math.isfinite(performance):
            raise LineSearchFailure("Performance at the current point is not finite.")

        if not np.any(d_k):
            return DirectionalPoint(parameters=x_k.copy(), performance=performance, training_rate=0.0)

        if self.method == ARMIJO_BACKTRACKING:
            result = self._backtrack(phi, x_k, d_k, initial_step, performance, gradient)
        else:
            result = line_search_1d(
                phi=phi,
                a=0.0,
                b=float(initial_step),
                method=LINE_SEARCH_BRACKETING,
                tol=self.tolerance,
                max_iter=self.max_iterations,
                options={
                    "phi0": performance,
                    "expand_factor": self.bracketing_factor,
                    "max_bracketing_steps": self.maximum_bracketing_steps,
                },
            )

        alpha = float(result.alpha)
        phi_value = float(result.phi_value)
        if not (phi_value < performance):
            alpha, phi_value = 0.0, performance

        logger.debug(
            "Line search (%s): rate=%.6g performance=%.6g evals=%d stopped_by=%s",
            self.method,
            alpha,
            phi_value,
            result.func_evals,
            result.meta.get("stopped_by"),
        )

        return DirectionalPoint(
            parameters=x_k + alpha * d_k,
            performance=phi_value,
            training_rate=alpha,
        )

    def _backtrack(
        self,
        phi,
        x_k: np.ndarray,
        d_k: np.ndarray,
        initial_step: float,
        performance: float,
        gradient: Optional[ArrayLike],
    ) -> LineSearchResult:
        """
        Armijo backtracking: shrink α by tau until
            φ(α) <= φ(0) + c1 * α * φ'(0),
        at most max_iterations trials. The last trial is returned either way;
        minimize() turns a non-decreasing one into a zero step.
        """
        if gradient is None:
            _, gradient = self.objective.evaluate(x_k)
        slope = float(np.dot(np.asarray(gradient, dtype=float), d_k))

        alpha = float(initial_step)
        value = phi(alpha)
        trials = 1
        while not value <= performance + self.c1 * alpha * slope:
            if trials >= self.max_iterations:
                return LineSearchResult(alpha, value, trials, trials, {"stopped_by": "max_backtracking"})
            alpha *= self.tau
            value = phi(alpha)
            trials += 1

        return LineSearchResult(alpha, value, trials, trials, {"stopped_by": "armijo"})

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(method={self.method!r}, tolerance={self.tolerance!r})"


# ---------------------------------------------------------------------------
# Adapter used by the trainer
# ---------------------------------------------------------------------------

class LineSearchAdapter:
    """
    Wraps a LineSearchMinimizer for the training loop.

    - initial_step() seeds iteration 0 (and any degenerate previous rate)
      with first_training_rate, later iterations with the previous rate;
    - search() validates dimensions, normalises the minimiser output and
      turns missing or non-finite results into LineSearchFailure.
    """

    def __init__(self, minimizer: LineSearchMinimizer, first_training_rate: float = 0.01) -> None:
        if minimizer is None:
            raise TypeError("minimizer must not be None")
        if not (first_training_rate > 0.0 and math.isfinite(first_training_rate)):
            raise ValueError("first_training_rate must be positive and finite.")
        self.minimizer = minimizer
        self.first_training_rate = float(first_training_rate)

    def initial_step(self, iteration: int, previous_rate: Optional[float] = None) -> float:
        if iteration == 0 or previous_rate is None:
            return self.first_training_rate
        if not math.isfinite(previous_rate) or previous_rate <= 0.0:
            return self.first_training_rate
        return float(previous_rate)

    def search(
        self,
        parameters: ArrayLike,
        direction: ArrayLike,
        initial_step: float,
        performance: Optional[float] = None,
        gradient: Optional[ArrayLike] = None,
    ) -> DirectionalPoint:
        size = check_same_dimension(parameters=parameters, direction=direction)

        output = self.minimizer.minimize(
            parameters,
            direction,
            initial_step,
            performance=performance,
            gradient=gradient,
        )
        point = self._normalize(output)

        check_same_dimension(parameters=np.zeros(size), new_parameters=point.parameters)

        if not math.isfinite(point.training_rate) or point.training_rate < 0.0:
            raise LineSearchFailure(f"Line search returned an invalid training rate: {point.training_rate}.")
        if not math.isfinite(point.performance):
            raise LineSearchFailure("Line search returned a non-finite performance.")
        if not np.all(np.isfinite(point.parameters)):
            raise LineSearchFailure("Line search returned non-finite parameters.")

        return point

    @staticmethod
    def _normalize(output: MinimizerOutput) -> DirectionalPoint:
        if output is None:
            raise LineSearchFailure("Line search did not return a point.")
        if isinstance(output, DirectionalPoint):
            return DirectionalPoint(
                parameters=as_vector(output.parameters, "new_parameters"),
                performance=float(output.performance),
                training_rate=float(output.training_rate),
            )
        try:
            new_parameters, new_performance, step_length = output
        except (TypeError, ValueError):
            raise LineSearchFailure(
                f"Line search returned an unsupported value: {type(output).__name__}."
            ) from None
        return DirectionalPoint(
            parameters=as_vector(new_parameters, "new_parameters"),
            performance=float(new_performance),
            training_rate=float(step_length),
        )


__all__ = [
    "ARMIJO_BACKTRACKING",
    "DirectionalPoint",
    "LineSearchMinimizer",
    "TrainingRateAlgorithm",
    "LineSearchAdapter",
]
