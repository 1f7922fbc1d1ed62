"""
engine.py

Conjugate gradient training loop.

Functionality:
    - drives the iterations x_{k+1} = x_k + α_k d_k for a performance
      functional;
    - computes the PR/FR direction with the gradient descent restart;
    - delegates the step length to a line search minimiser;
    - records the reserved histories;
    - checks warning/error thresholds and the stopping criteria;
    - returns a ResultsRecord with the final values and the single reason
      the run stopped.

Per iteration k:
    selection counter -> direction d_k -> record -> error thresholds ->
    stopping criteria -> line search -> training rate threshold ->
    x_{k+1} and f, ∇f at x_{k+1}.

A numerical failure (error threshold or failed line search) does not raise:
the run terminates with reason "NumericalFailure" and the history recorded
so far.
"""

from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from .config import Configuration
from .direction import compute_direction
from .errors import InvalidConfiguration, LineSearchFailure
from .functions import ArrayLike, as_vector, check_same_dimension
from .history import HistoryRecorder
from .iteration_result import IterationState
from .objective import PerformanceFunctional, SelectionLike, selection_callable
from .results import ResultsRecord
from .stopping import StoppingCriteria, StoppingReason, StoppingSnapshot
from .training_rate import LineSearchAdapter, LineSearchMinimizer, TrainingRateAlgorithm

logger = logging.getLogger(__name__)

# Callback type for progress reporting / checkpoints
IterationCallback = Callable[[IterationState], None]


class TrainingState(Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    TERMINATED = "terminated"


class ConjugateGradient:
    """
    Conjugate gradient trainer.

    Usage:
        objective = FunctionObjective(func=rosenbrock, grad=grad_rosenbrock)
        trainer = ConjugateGradient(objective, Configuration(maximum_iterations_number=500))
        results = trainer.perform_training(np.array([-1.2, 1.0]))
        results.stopping_reason, results.final_parameters
    """

    def __init__(
        self,
        objective: PerformanceFunctional,
        configuration: Optional[Configuration] = None,
        training_rate_algorithm: Optional[LineSearchMinimizer] = None,
        selection: Optional[SelectionLike] = None,
        clock: Callable[[], float] = time.perf_counter,
        callback: Optional[IterationCallback] = None,
        checkpoint: Optional[IterationCallback] = None,
    ) -> None:
        """
        Parameters
        ----------
        objective : PerformanceFunctional
            Object with evaluate(parameters) -> (performance, gradient).
        configuration : Optional[Configuration]
            Thresholds, budgets and history flags (defaults if None).
        training_rate_algorithm : Optional[LineSearchMinimizer]
            One-dimensional minimiser. Defaults to a golden section
            TrainingRateAlgorithm over the objective.
        selection : Optional[SelectionLike]
            Held-out metric for early stopping; callable or object with
            evaluate_selection().
        clock : Callable[[], float]
            Time source in seconds, used for elapsed time and maximum_time.
        callback : Optional[IterationCallback]
            Called with the state of every recorded iteration.
        checkpoint : Optional[IterationCallback]
            Called every configuration.save_period iterations.
        """
        if objective is None:
            raise InvalidConfiguration("A performance functional is required.")
        if not callable(getattr(objective, "evaluate", None)):
            raise InvalidConfiguration(
                f"Objective {type(objective).__name__} does not provide evaluate(parameters)."
            )
        if configuration is None:
            configuration = Configuration()
        if not isinstance(configuration, Configuration):
            raise InvalidConfiguration(
                f"configuration must be a Configuration, got {type(configuration).__name__}."
            )

        self.objective = objective
        self.configuration = configuration
        self.training_rate_algorithm = training_rate_algorithm or TrainingRateAlgorithm(objective)
        self.line_search = LineSearchAdapter(
            self.training_rate_algorithm,
            first_training_rate=configuration.first_training_rate,
        )
        self.selection = selection_callable(selection)
        self.stopping_criteria = StoppingCriteria(configuration)
        self.clock = clock
        self.callback = callback
        self.checkpoint = checkpoint

        self.state: TrainingState = TrainingState.INITIALIZING

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    def _evaluate(self, parameters: np.ndarray) -> Tuple[float, np.ndarray]:
        performance, gradient = self.objective.evaluate(parameters)
        gradient = as_vector(gradient, "gradient").copy()
        check_same_dimension(parameters=parameters, gradient=gradient)
        return float(performance), gradient

    def _evaluate_selection(self, parameters: np.ndarray) -> float:
        if self.selection is None:
            return math.nan
        return float(self.selection(parameters))

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def _check_error_thresholds(self, state: IterationState) -> bool:
        """
        Log warnings and return True if an error threshold is breached.
        """
        cfg = self.configuration

        if not math.isfinite(state.performance) or not math.isfinite(state.gradient_norm):
            logger.error(
                "Iteration %d: performance (%s) or gradient norm (%s) is not finite.",
                state.index, state.performance, state.gradient_norm,
            )
            return True

        if state.parameters_norm >= cfg.error_parameters_norm:
            logger.error(
                "Iteration %d: parameters norm %.6g is greater than or equal to %.6g.",
                state.index, state.parameters_norm, cfg.error_parameters_norm,
            )
            return True

        if state.gradient_norm >= cfg.error_gradient_norm:
            logger.error(
                "Iteration %d: gradient norm %.6g is greater than or equal to %.6g.",
                state.index, state.gradient_norm, cfg.error_gradient_norm,
            )
            return True

        if state.parameters_norm >= cfg.warning_parameters_norm:
            logger.warning(
                "Iteration %d: parameters norm is %.6g.", state.index, state.parameters_norm
            )
        if state.gradient_norm >= cfg.warning_gradient_norm:
            logger.warning(
                "Iteration %d: gradient norm is %.6g.", state.index, state.gradient_norm
            )
        return False

    def _check_training_rate(self, iteration: int, training_rate: float) -> bool:
        cfg = self.configuration
        if training_rate >= cfg.error_training_rate:
            logger.error(
                "Iteration %d: training rate %.6g is greater than or equal to %.6g.",
                iteration, training_rate, cfg.error_training_rate,
            )
            return True
        if training_rate >= cfg.warning_training_rate:
            logger.warning("Iteration %d: training rate is %.6g.", iteration, training_rate)
        return False

    # ------------------------------------------------------------------
    # Training loop
    # ------------------------------------------------------------------

    def perform_training(self, initial_parameters: ArrayLike) -> ResultsRecord:
        """
        Run the training process from initial_parameters.

        Raises
        ------
        InvalidDimension
            If initial_parameters is empty or not a vector, or the gradient
            length differs from the number of parameters.
        """
        cfg = self.configuration
        self.state = TrainingState.INITIALIZING

        parameters = as_vector(initial_parameters, "initial_parameters").copy()
        recorder = HistoryRecorder(cfg, parameters.size)

        start_time = self.clock()
        performance, gradient = self._evaluate(parameters)
        selection_performance = self._evaluate_selection(parameters)

        old_gradient: Optional[np.ndarray] = None
        old_direction: Optional[np.ndarray] = None
        old_selection_performance = math.nan
        selection_failures = 0

        training_rate = 0.0
        parameters_increment_norm = math.nan
        performance_increase = math.nan
        restarts_number = 0

        stopping_reason: Optional[StoppingReason] = None
        state: Optional[IterationState] = None
        iteration = 0

        self.state = TrainingState.ITERATING

        while True:
            if iteration > 0 and selection_performance > old_selection_performance:
                selection_failures += 1
            else:
                selection_failures = 0

            direction, restarted = compute_direction(
                cfg.training_direction_method, gradient, old_gradient, old_direction
            )
            if restarted and iteration > 0:
                restarts_number += 1

            state = IterationState(
                index=iteration,
                parameters=parameters,
                performance=performance,
                gradient=gradient,
                parameters_norm=float(np.linalg.norm(parameters)),
                gradient_norm=float(np.linalg.norm(gradient)),
                selection_performance=selection_performance,
                training_direction=direction,
                training_rate=training_rate,
                elapsed_time=self.clock() - start_time,
                parameters_increment_norm=parameters_increment_norm,
                performance_increase=performance_increase,
                selection_failures=selection_failures,
                restarted=restarted,
            )
            recorder.record(state)

            if self.callback is not None:
                self.callback(state)

            if self._check_error_thresholds(state):
                stopping_reason = StoppingReason.NUMERICAL_FAILURE
                break

            stopping_reason = self.stopping_criteria.evaluate(
                StoppingSnapshot(
                    iteration=iteration,
                    performance=state.performance,
                    gradient_norm=state.gradient_norm,
                    parameters_increment_norm=state.parameters_increment_norm,
                    performance_increase=state.performance_increase,
                    selection_failures=state.selection_failures,
                    has_selection=state.has_selection,
                    elapsed_time=state.elapsed_time,
                )
            )
            if stopping_reason is not None:
                break

            if cfg.display and iteration % cfg.display_period == 0:
                logger.info(
                    "Iteration %d: performance=%.6g gradient_norm=%.6g "
                    "parameters_norm=%.6g training_rate=%.6g elapsed=%.3fs",
                    iteration, state.performance, state.gradient_norm,
                    state.parameters_norm, state.training_rate, state.elapsed_time,
                )
            if self.checkpoint is not None and cfg.save_period > 0 \
                    and iteration != 0 and iteration % cfg.save_period == 0:
                self.checkpoint(state)

            # --- Line search along d_k --------------------------------------
            initial_step = self.line_search.initial_step(iteration, training_rate)
            try:
                point = self.line_search.search(
                    parameters,
                    direction,
                    initial_step,
                    performance=performance,
                    gradient=gradient,
                )
            except LineSearchFailure as exc:
                logger.error("Iteration %d: line search failed: %s", iteration, exc)
                stopping_reason = StoppingReason.NUMERICAL_FAILURE
                break

            if self._check_training_rate(iteration, point.training_rate):
                stopping_reason = StoppingReason.NUMERICAL_FAILURE
                break

            # --- Move to x_{k+1} --------------------------------------------
            parameters_increment_norm = float(np.linalg.norm(point.parameters - parameters))

            old_gradient = gradient
            old_direction = direction
            old_selection_performance = selection_performance
            old_performance = performance

            parameters = point.parameters.copy()
            training_rate = point.training_rate
            performance, gradient = self._evaluate(parameters)
            performance_increase = old_performance - performance
            selection_performance = self._evaluate_selection(parameters)

            iteration += 1

        self.state = TrainingState.TERMINATED

        if cfg.display:
            logger.info(
                "Training finished after %d iterations: %s (performance=%.6g, gradient_norm=%.6g).",
                state.index, stopping_reason.value, state.performance, state.gradient_norm,
            )

        return ResultsRecord(
            final_parameters=state.parameters.copy(),
            final_parameters_norm=state.parameters_norm,
            final_performance=state.performance,
            final_selection_performance=state.selection_performance,
            final_gradient=state.gradient.copy(),
            final_gradient_norm=state.gradient_norm,
            final_training_direction=state.training_direction.copy(),
            final_training_rate=state.training_rate,
            elapsed_time=state.elapsed_time,
            iterations_number=state.index,
            stopping_reason=stopping_reason,
            restarts_number=restarts_number,
            final_parameters_increment_norm=state.parameters_increment_norm,
            final_performance_increase=state.performance_increase,
            final_selection_failures=state.selection_failures,
            history=recorder.trim(),
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"method={self.configuration.training_direction_method.write()}, "
            f"state={self.state.value})"
        )


__all__ = [
    "IterationCallback",
    "TrainingState",
    "ConjugateGradient",
]
