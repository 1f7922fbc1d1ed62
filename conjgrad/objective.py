"""
objective.py

Interfaces of the collaborators the trainer consumes, plus a default
adapter for plain Python callables.

Idea:
    - The trainer only needs an object with
          evaluate(parameters) -> (performance, gradient)
      and, for the built-in line search,
          calculate_performance(parameters) -> float.
    - FunctionObjective wraps f(x) and (optionally) grad(x). When grad is
      not known, the gradient is computed by central differences.
    - Evaluation counters are kept so that callers can compare the cost of
      different configurations.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Tuple, Union, runtime_checkable

import numpy as np

from .functions import (
    ArrayLike,
    ScalarFunction,
    VectorFunction,
    as_vector,
    numerical_gradient,
)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class PerformanceFunctional(Protocol):
    """Scalar performance function together with its gradient."""

    def evaluate(self, parameters: ArrayLike) -> Tuple[float, ArrayLike]:
        ...

    def calculate_performance(self, parameters: ArrayLike) -> float:
        ...


@runtime_checkable
class SelectionEvaluator(Protocol):
    """Held-out metric used by the early-stopping criterion."""

    def evaluate_selection(self, parameters: ArrayLike) -> float:
        ...


SelectionLike = Union[SelectionEvaluator, Callable[[ArrayLike], float]]


def selection_callable(
    selection: Optional[SelectionLike],
) -> Optional[Callable[[ArrayLike], float]]:
    """
    Normalise a selection evaluator to a plain callable.

    Accepts None, an object with evaluate_selection(), or any callable.
    """
    if selection is None:
        return None
    if isinstance(selection, SelectionEvaluator):
        return selection.evaluate_selection
    if callable(selection):
        return selection
    raise TypeError(
        "selection must be callable or provide evaluate_selection(), "
        f"got {type(selection).__name__}"
    )


# ---------------------------------------------------------------------------
# Default adapter for callables
# ---------------------------------------------------------------------------

class FunctionObjective:
    """
    Performance functional built from plain callables.

    Usage:
        objective = FunctionObjective(func=rosenbrock, grad=grad_rosenbrock)
        performance, gradient = objective.evaluate(x)
    """

    def __init__(
        self,
        func: ScalarFunction,
        grad: Optional[VectorFunction] = None,
        gradient_step: float = 1e-6,
        name: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        func : ScalarFunction
            Performance function f(x).
        grad : Optional[VectorFunction]
            Analytic gradient ∇f(x), if known. When None the gradient is
            computed with numerical_gradient().
        gradient_step : float
            Step h of the central differences.
        name : Optional[str]
            Human-readable name for logs and tables.
        """
        if func is None:
            raise TypeError("func must not be None")
        self.func = func
        self._grad = grad
        self.gradient_step = float(gradient_step)
        self.name: str = name or getattr(func, "__name__", self.__class__.__name__)

        self.func_evals: int = 0
        self.grad_evals: int = 0

    def reset(self) -> None:
        """Reset the evaluation counters."""
        self.func_evals = 0
        self.grad_evals = 0

    def calculate_performance(self, parameters: ArrayLike) -> float:
        """Evaluate f(x) and increment the function counter."""
        self.func_evals += 1
        return float(self.func(np.asarray(parameters, dtype=float)))

    def calculate_gradient(self, parameters: ArrayLike) -> ArrayLike:
        """
        Evaluate ∇f(x):
            - with the analytic grad if one was given;
            - otherwise numerically via numerical_gradient().
        """
        self.grad_evals += 1
        x_arr = np.asarray(parameters, dtype=float)
        if self._grad is not None:
            return as_vector(self._grad(x_arr), "gradient")
        return numerical_gradient(self.func, x_arr, h=self.gradient_step)

    def evaluate(self, parameters: ArrayLike) -> Tuple[float, ArrayLike]:
        return self.calculate_performance(parameters), self.calculate_gradient(parameters)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


__all__ = [
    "PerformanceFunctional",
    "SelectionEvaluator",
    "SelectionLike",
    "selection_callable",
    "FunctionObjective",
]
