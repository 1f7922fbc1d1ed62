"""
direction.py

Training direction formulas of the conjugate gradient method.

Idea:
    d_0 = -g_0
    d_k = -g_k + β_k * d_{k-1},

    Polak–Ribiere, clipped at zero:
        β_k^PR = max(0, (g_k^T (g_k - g_{k-1})) / (g_{k-1}^T g_{k-1}))

    Fletcher–Reeves:
        β_k^FR = (g_k^T g_k) / (g_{k-1}^T g_{k-1})

    Both coefficients are 0 when g_{k-1}^T g_{k-1} vanishes or the ratio is
    not finite. When d_k is not a descent direction (d_k^T (-g_k) <= 0) the
    method restarts from the gradient descent direction -g_k.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np

from .config import TrainingDirectionMethod
from .functions import ArrayLike, as_vector, check_same_dimension

logger = logging.getLogger(__name__)

# Denominators at or below this value are treated as zero.
DENOMINATOR_EPSILON = 1.0e-99


# ---------------------------------------------------------------------------
# β coefficients
# ---------------------------------------------------------------------------

def _safe_ratio(numerator: float, denominator: float) -> float:
    if not math.isfinite(denominator) or denominator <= DENOMINATOR_EPSILON:
        return 0.0
    ratio = numerator / denominator
    if not math.isfinite(ratio):
        return 0.0
    return ratio


def calculate_pr_parameter(old_gradient: ArrayLike, gradient: ArrayLike) -> float:
    """Polak–Ribiere coefficient β = max(0, g·(g - g_old) / (g_old·g_old))."""
    check_same_dimension(old_gradient=old_gradient, gradient=gradient)
    g_old = np.asarray(old_gradient, dtype=float)
    g = np.asarray(gradient, dtype=float)

    numerator = float(np.dot(g, g - g_old))
    denominator = float(np.dot(g_old, g_old))
    return max(0.0, _safe_ratio(numerator, denominator))


def calculate_fr_parameter(old_gradient: ArrayLike, gradient: ArrayLike) -> float:
    """Fletcher–Reeves coefficient β = (g·g) / (g_old·g_old)."""
    check_same_dimension(old_gradient=old_gradient, gradient=gradient)
    g_old = np.asarray(old_gradient, dtype=float)
    g = np.asarray(gradient, dtype=float)

    return _safe_ratio(float(np.dot(g, g)), float(np.dot(g_old, g_old)))


# ---------------------------------------------------------------------------
# Directions
# ---------------------------------------------------------------------------

def calculate_gradient_descent_training_direction(gradient: ArrayLike) -> ArrayLike:
    return -as_vector(gradient, "gradient")


def calculate_pr_training_direction(
    old_gradient: ArrayLike,
    gradient: ArrayLike,
    old_direction: ArrayLike,
) -> ArrayLike:
    check_same_dimension(old_gradient=old_gradient, gradient=gradient, old_direction=old_direction)
    beta = calculate_pr_parameter(old_gradient, gradient)
    return -np.asarray(gradient, dtype=float) + beta * np.asarray(old_direction, dtype=float)


def calculate_fr_training_direction(
    old_gradient: ArrayLike,
    gradient: ArrayLike,
    old_direction: ArrayLike,
) -> ArrayLike:
    check_same_dimension(old_gradient=old_gradient, gradient=gradient, old_direction=old_direction)
    beta = calculate_fr_parameter(old_gradient, gradient)
    return -np.asarray(gradient, dtype=float) + beta * np.asarray(old_direction, dtype=float)


def calculate_training_direction(
    method: TrainingDirectionMethod,
    old_gradient: ArrayLike,
    gradient: ArrayLike,
    old_direction: ArrayLike,
) -> ArrayLike:
    """Conjugate direction for the selected formula."""
    method = TrainingDirectionMethod.from_string(method)
    if method is TrainingDirectionMethod.PR:
        return calculate_pr_training_direction(old_gradient, gradient, old_direction)
    return calculate_fr_training_direction(old_gradient, gradient, old_direction)


def is_descent_direction(gradient: ArrayLike, direction: ArrayLike) -> bool:
    """True if d·(-g) > 0, i.e. a small step along d decreases the performance."""
    check_same_dimension(gradient=gradient, direction=direction)
    return float(np.dot(direction, -np.asarray(gradient, dtype=float))) > 0.0


def compute_direction(
    method: TrainingDirectionMethod,
    gradient: ArrayLike,
    old_gradient: Optional[ArrayLike] = None,
    old_direction: Optional[ArrayLike] = None,
) -> Tuple[ArrayLike, bool]:
    """
    Direction for the current iteration with the restart fallback.

    Returns
    -------
    (direction, restarted)
        restarted is True when the gradient descent direction was used:
        on the first iteration (no previous gradient or direction) or when
        the conjugate direction is not a descent direction.
    """
    gradient = as_vector(gradient, "gradient")

    if old_gradient is None or old_direction is None:
        return calculate_gradient_descent_training_direction(gradient), True

    direction = calculate_training_direction(method, old_gradient, gradient, old_direction)

    if not is_descent_direction(gradient, direction):
        logger.debug("Conjugate direction is not a descent direction; restarting from -gradient.")
        return calculate_gradient_descent_training_direction(gradient), True

    return direction, False


__all__ = [
    "DENOMINATOR_EPSILON",
    "calculate_pr_parameter",
    "calculate_fr_parameter",
    "calculate_gradient_descent_training_direction",
    "calculate_pr_training_direction",
    "calculate_fr_training_direction",
    "calculate_training_direction",
    "is_descent_direction",
    "compute_direction",
]
