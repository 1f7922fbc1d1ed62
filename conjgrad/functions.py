"""
functions.py

Type aliases, a finite-difference gradient and a small set of reference
performance functions with analytic gradients.

Format:
    - every function works on a vector x: numpy.ndarray of shape (n,);
    - implemented:
        sphere, shifted_quadratic, rosenbrock
        grad_sphere, grad_shifted_quadratic, grad_rosenbrock
    - the FUNCTIONS registry lets callers pick a function by key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from .errors import InvalidDimension

ArrayLike = np.ndarray
ScalarFunction = Callable[[ArrayLike], float]
VectorFunction = Callable[[ArrayLike], ArrayLike]


# ---------------------------------------------------------------------------
# Numerical derivatives (central differences)
# ---------------------------------------------------------------------------

def numerical_gradient(
    func: ScalarFunction,
    x: ArrayLike,
    h: float = 1e-6,
) -> ArrayLike:
    """
    Numerical gradient by central differences.

    ∂f/∂x_i ≈ (f(x + h e_i) - f(x - h e_i)) / (2h)
    """
    x = np.asarray(x, dtype=float)
    grad = np.zeros_like(x, dtype=float)

    for i in range(len(x)):
        x_fwd = x.copy()
        x_bwd = x.copy()
        x_fwd[i] += h
        x_bwd[i] -= h
        grad[i] = (func(x_fwd) - func(x_bwd)) / (2.0 * h)

    return grad


# ---------------------------------------------------------------------------
# Vector checks
# ---------------------------------------------------------------------------

def as_vector(x: ArrayLike, name: str = "vector") -> ArrayLike:
    """
    Convert x to a 1-D float array.

    Raises InvalidDimension if x is empty or not one-dimensional.
    """
    arr = np.asarray(x, dtype=float)
    if arr.ndim != 1:
        raise InvalidDimension(f"{name} must be one-dimensional, got shape {arr.shape}.")
    if arr.size == 0:
        raise InvalidDimension(f"{name} must not be empty.")
    return arr


def check_same_dimension(**vectors: ArrayLike) -> int:
    """
    Validate every keyword vector with as_vector() and return their common
    length. Raises InvalidDimension when the lengths differ.
    """
    sizes = {name: as_vector(v, name).size for name, v in vectors.items()}
    if len(set(sizes.values())) > 1:
        listing = ", ".join(f"{name}={size}" for name, size in sizes.items())
        raise InvalidDimension(f"vector dimensions do not match: {listing}.")
    return next(iter(sizes.values()))


# ---------------------------------------------------------------------------
# Reference performance functions
# ---------------------------------------------------------------------------

def sphere(x: ArrayLike) -> float:
    """
    sphere(x) = sum_i x_i^2
    """
    x = np.asarray(x, dtype=float)
    return float(np.dot(x, x))


def grad_sphere(x: ArrayLike) -> ArrayLike:
    return 2.0 * np.asarray(x, dtype=float)


def shifted_quadratic(x: ArrayLike) -> float:
    """
    shifted_quadratic(x) = sum_i (i + 1) * (x_i - 1)^2

    Ill-conditioned for larger n, minimum 0 at x = (1, ..., 1).
    """
    x = np.asarray(x, dtype=float)
    weights = np.arange(1, x.size + 1, dtype=float)
    diff = x - 1.0
    return float(np.dot(weights, diff * diff))


def grad_shifted_quadratic(x: ArrayLike) -> ArrayLike:
    x = np.asarray(x, dtype=float)
    weights = np.arange(1, x.size + 1, dtype=float)
    return 2.0 * weights * (x - 1.0)


def rosenbrock(x: ArrayLike) -> float:
    """
    rosenbrock(x) = sum_i 100 * (x_{i+1} - x_i^2)^2 + (1 - x_i)^2

    Minimum 0 at x = (1, ..., 1). Needs at least two components.
    """
    x = np.asarray(x, dtype=float)
    head = x[:-1]
    tail = x[1:]
    return float(np.sum(100.0 * (tail - head ** 2) ** 2 + (1.0 - head) ** 2))


def grad_rosenbrock(x: ArrayLike) -> ArrayLike:
    x = np.asarray(x, dtype=float)
    grad = np.zeros_like(x)
    head = x[:-1]
    tail = x[1:]
    inner = tail - head ** 2

    grad[:-1] += -400.0 * head * inner - 2.0 * (1.0 - head)
    grad[1:] += 200.0 * inner
    return grad


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetFunction:
    key: str
    name: str
    func: ScalarFunction
    grad: VectorFunction


FUNCTIONS: Dict[str, TargetFunction] = {
    "sphere": TargetFunction(
        key="sphere",
        name="sphere(x) = sum x_i^2",
        func=sphere,
        grad=grad_sphere,
    ),
    "shifted_quadratic": TargetFunction(
        key="shifted_quadratic",
        name="shifted_quadratic(x) = sum (i + 1) * (x_i - 1)^2",
        func=shifted_quadratic,
        grad=grad_shifted_quadratic,
    ),
    "rosenbrock": TargetFunction(
        key="rosenbrock",
        name="rosenbrock(x) = sum 100 * (x_{i+1} - x_i^2)^2 + (1 - x_i)^2",
        func=rosenbrock,
        grad=grad_rosenbrock,
    ),
}


__all__ = [
    "ArrayLike",
    "ScalarFunction",
    "VectorFunction",
    "numerical_gradient",
    "as_vector",
    "check_same_dimension",
    "sphere",
    "grad_sphere",
    "shifted_quadratic",
    "grad_shifted_quadratic",
    "rosenbrock",
    "grad_rosenbrock",
    "TargetFunction",
    "FUNCTIONS",
]
