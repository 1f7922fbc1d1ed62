"""
line_search.py

One-dimensional minimisation along a fixed direction.

Idea:
    - Work with the auxiliary function φ(α) = f(x_k + α d_k). This module
      only sees an abstract scalar function φ: float -> float; the training
      rate algorithm builds φ from the performance functional so that the
      evaluation counters stay correct.

Supported methods:

    1) golden section on a bracket [a, b];
    2) bracketing: expansion from an initial step until φ rises, followed
       by golden section inside the bracket.

Public interface:
    - LineSearchResult        - result of a 1-D search;
    - bracket_minimum(...)    - expansion phase only;
    - line_search_1d(...)     - dispatch by method name;
    - LINE_SEARCH_* constants - method names.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import LineSearchFailure

logger = logging.getLogger(__name__)

# Scalar function of the step α
Scalar1DFunction = Callable[[float], float]


# ---------------------------------------------------------------------------
# Method names
# ---------------------------------------------------------------------------

LINE_SEARCH_GOLDEN_SECTION = "golden_section"
LINE_SEARCH_BRACKETING = "bracketing"

LineSearchMethod = str

LINE_SEARCH_METHODS = (
    LINE_SEARCH_GOLDEN_SECTION,
    LINE_SEARCH_BRACKETING,
)

# 1/φ for the golden ratio φ = (1 + sqrt(5)) / 2
_INV_GOLDEN = (math.sqrt(5.0) - 1.0) / 2.0


# ---------------------------------------------------------------------------
# Result of a one-dimensional search
# ---------------------------------------------------------------------------

@dataclass
class LineSearchResult:
    """
    Result of a one-dimensional search.

    Attributes:
        alpha       - step α* that was found;
        phi_value   - φ(α*);
        iterations  - iterations of the 1-D algorithm;
        func_evals  - number of φ evaluations;
        meta        - bookkeeping (final interval, stopping reason, ...).
    """
    alpha: float
    phi_value: float
    iterations: int
    func_evals: int
    meta: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------

def line_search_1d(
    phi: Scalar1DFunction,
    a: float,
    b: float,
    method: LineSearchMethod = LINE_SEARCH_BRACKETING,
    tol: float = 1e-6,
    max_iter: int = 100,
    options: Optional[Dict[str, Any]] = None,
) -> LineSearchResult:
    """
    Minimise φ(α) starting from the interval [a, b].

    Parameters
    ----------
    phi : Callable[[float], float]
        φ(α) = f(x_k + α d_k).
    a, b : float
        Initial interval, a < b. For golden section it is the search
        interval; for bracketing b - a is the initial trial step.
    method : LineSearchMethod
        One of the LINE_SEARCH_* constants.
    tol : float
        Required accuracy in α.
    max_iter : int
        Iteration limit of the main loop.
    options : Optional[Dict[str, Any]]
        Method specific parameters.

    Returns
    -------
    LineSearchResult
    """
    if a >= b:
        raise ValueError("line_search_1d: the left end must be smaller than the right one (a < b).")

    options = options or {}

    if method == LINE_SEARCH_GOLDEN_SECTION:
        return _line_search_golden_section(phi, a, b, tol, max_iter, options)

    if method == LINE_SEARCH_BRACKETING:
        return _line_search_bracketing(phi, a, b, tol, max_iter, options)

    raise ValueError(
        f"Unknown line search method '{method}', expected one of {', '.join(LINE_SEARCH_METHODS)}."
    )


def bracket_minimum(
    phi: Scalar1DFunction,
    initial_step: float,
    phi0: Optional[float] = None,
    expand_factor: float = 1.618034,
    max_steps: int = 60,
) -> Tuple[float, float, float, float, int]:
    """
    Find a bracket [left, right] with an interior point mid such that
    φ(mid) < φ(left) and φ(mid) <= φ(right), moving forward from α = 0.

    Algorithm:
        1) Evaluate φ(initial_step). If it is not below φ(0), shrink the
           step until it is (the minimum lies in [0, step]).
        2) Otherwise keep expanding the step by expand_factor while φ keeps
           decreasing.

    Returns
    -------
    (left, mid, right, phi_mid, func_evals)
        mid == 0.0 means that no decrease was found along the direction.

    Raises
    ------
    LineSearchFailure
        When φ becomes non-finite at the origin, or when φ keeps
        decreasing for max_steps expansions (no minimum can be bracketed).
    """
    if not (initial_step > 0.0 and math.isfinite(initial_step)):
        raise LineSearchFailure(f"Initial step must be positive and finite, got {initial_step}.")
    if expand_factor <= 1.0:
        expand_factor = 1.618034

    func_evals = 0
    if phi0 is None:
        phi0 = phi(0.0)
        func_evals += 1
    if not math.isfinite(phi0):
        raise LineSearchFailure("Performance at the current point is not finite.")

    step = float(initial_step)
    phi_step = phi(step)
    func_evals += 1

    # Contraction: the first trial step overshoots
    contractions = 0
    while not (math.isfinite(phi_step) and phi_step < phi0):
        contractions += 1
        if contractions > max_steps or step <= 1e-300:
            logger.debug("Bracketing found no decrease after %d contractions.", contractions)
            return 0.0, 0.0, step, phi0, func_evals
        right = step
        step /= expand_factor
        phi_step = phi(step)
        func_evals += 1
        if math.isfinite(phi_step) and phi_step < phi0:
            return 0.0, step, right, phi_step, func_evals

    # Expansion: φ still decreases at the first trial step
    left, mid, phi_mid = 0.0, step, phi_step
    for _ in range(max_steps):
        right = mid * expand_factor
        phi_right = phi(right)
        func_evals += 1
        if not math.isfinite(phi_right) or phi_right >= phi_mid:
            return left, mid, right, phi_mid, func_evals
        left, mid, phi_mid = mid, right, phi_right

    raise LineSearchFailure(
        f"Could not bracket a minimum: performance still decreasing at step {mid:g}."
    )


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

def _line_search_golden_section(
    phi: Scalar1DFunction,
    a: float,
    b: float,
    tol: float,
    max_iter: int,
    options: Dict[str, Any],
) -> LineSearchResult:
    """
    Golden section search for the minimum of a unimodal φ(α) on [a, b].

    The probes lo < hi split [left, right] in the golden ratio, so after a
    comparison the surviving probe is reused and each iteration costs a
    single evaluation. The answer is the best of the final midpoint and
    the two probes.
    """
    left, right = float(a), float(b)

    lo = right - _INV_GOLDEN * (right - left)
    hi = left + _INV_GOLDEN * (right - left)
    f_lo, f_hi = phi(lo), phi(hi)
    func_evals = 2
    iterations = 0

    while right - left > tol and iterations < max_iter:
        iterations += 1
        if f_lo < f_hi:
            # keep [left, hi]
            right, hi, f_hi = hi, lo, f_lo
            lo = right - _INV_GOLDEN * (right - left)
            f_lo = phi(lo)
        else:
            # keep [lo, right]
            left, lo, f_lo = lo, hi, f_hi
            hi = left + _INV_GOLDEN * (right - left)
            f_hi = phi(hi)
        func_evals += 1

    mid = 0.5 * (left + right)
    phi_mid = phi(mid)
    func_evals += 1

    phi_star, alpha_star = min(
        ((phi_mid, mid), (f_lo, lo), (f_hi, hi)), key=lambda pair: pair[0]
    )

    return LineSearchResult(
        alpha=alpha_star,
        phi_value=phi_star,
        iterations=iterations,
        func_evals=func_evals,
        meta={
            "method": LINE_SEARCH_GOLDEN_SECTION,
            "interval": (left, right),
            "stopped_by": "tol" if right - left <= tol else "max_iter",
        },
    )


def _line_search_bracketing(
    phi: Scalar1DFunction,
    a: float,
    b: float,
    tol: float,
    max_iter: int,
    options: Dict[str, Any],
) -> LineSearchResult:
    """
    Expansion from the initial step b - a, then golden section refinement.

    Parameters from options:
        phi0          : φ(0) if already known (saves one evaluation);
        expand_factor : growth factor of the expansion (default: golden ratio);
        max_bracketing_steps : expansion limit (default: 60).
    """
    initial_step = float(b) - float(a)
    phi0 = options.get("phi0")
    expand_factor = float(options.get("expand_factor", 1.618034))
    max_steps = int(options.get("max_bracketing_steps", 60))

    left, mid, right, phi_mid, evals = bracket_minimum(
        lambda alpha: phi(float(a) + alpha),
        initial_step,
        phi0=None if phi0 is None else float(phi0),
        expand_factor=expand_factor,
        max_steps=max_steps,
    )

    if mid == 0.0:
        # No decrease along the direction: zero step
        phi_zero = float(phi0) if phi0 is not None else phi(float(a))
        return LineSearchResult(
            alpha=float(a),
            phi_value=phi_zero,
            iterations=0,
            func_evals=evals + (0 if phi0 is not None else 1),
            meta={
                "method": LINE_SEARCH_BRACKETING,
                "bracket": (float(a), float(a) + right),
                "stopped_by": "no_decrease",
            },
        )

    golden_res = _line_search_golden_section(
        phi, float(a) + left, float(a) + right, tol, max_iter, options
    )

    alpha_star, phi_star = golden_res.alpha, golden_res.phi_value
    if not (phi_star <= phi_mid):
        alpha_star, phi_star = float(a) + mid, phi_mid

    meta = dict(golden_res.meta)
    meta.update(
        {
            "method": LINE_SEARCH_BRACKETING,
            "inner_method": LINE_SEARCH_GOLDEN_SECTION,
            "bracket": (float(a) + left, float(a) + right),
        }
    )

    return LineSearchResult(
        alpha=alpha_star,
        phi_value=phi_star,
        iterations=golden_res.iterations,
        func_evals=evals + golden_res.func_evals,
        meta=meta,
    )


__all__ = [
    "Scalar1DFunction",
    "LineSearchResult",
    "LineSearchMethod",
    "LINE_SEARCH_GOLDEN_SECTION",
    "LINE_SEARCH_BRACKETING",
    "LINE_SEARCH_METHODS",
    "bracket_minimum",
    "line_search_1d",
]
