"""
iteration_result.py

State of one training iteration. Owned and mutated by the trainer during a
single run; the history recorder and the callbacks read it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

import numpy as np


@dataclass
class IterationState:
    """
    Iteration k of the training process.

    Attributes:
        index                     - iteration number (0, 1, 2, ...)
        parameters                - x_k
        parameters_norm           - ||x_k||
        performance               - f(x_k)
        gradient                  - ∇f(x_k)
        gradient_norm             - ||∇f(x_k)||
        selection_performance     - held-out metric at x_k (NaN if absent)
        training_direction        - direction d_k computed at x_k
        training_rate             - step α_{k-1} that produced x_k (0.0 for k = 0)
        elapsed_time              - seconds since the start of the run
        parameters_increment_norm - ||x_k - x_{k-1}|| (NaN for k = 0)
        performance_increase      - f(x_{k-1}) - f(x_k) (NaN for k = 0)
        selection_failures        - consecutive selection performance increases
        restarted                 - d_k is the gradient descent direction
    """
    index: int
    parameters: np.ndarray
    performance: float
    gradient: np.ndarray
    parameters_norm: float = 0.0
    gradient_norm: float = 0.0
    selection_performance: float = math.nan
    training_direction: np.ndarray = field(default_factory=lambda: np.zeros(0))
    training_rate: float = 0.0
    elapsed_time: float = 0.0
    parameters_increment_norm: float = math.nan
    performance_increase: float = math.nan
    selection_failures: int = 0
    restarted: bool = False

    @property
    def has_selection(self) -> bool:
        return not math.isnan(self.selection_performance)

    def copy(self) -> "IterationState":
        """Deep copy of the vectors, for callers that keep states around."""
        return replace(
            self,
            parameters=self.parameters.copy(),
            gradient=self.gradient.copy(),
            training_direction=self.training_direction.copy(),
        )


__all__ = [
    "IterationState",
]
