"""
errors.py

Exception types raised by the conjugate gradient trainer.

Taxonomy:
    - InvalidDimension      - empty or mismatched vectors; the run is
                              rejected before any iteration;
    - InvalidConfiguration  - a configuration that cannot be used
                              (negative thresholds, missing evaluator, ...);
    - LineSearchFailure     - the one-dimensional minimiser could not
                              bracket a minimum. The trainer turns it into
                              a terminated result with reason
                              "NumericalFailure" instead of propagating it.

Stopping criteria are never reported through exceptions.
"""

from __future__ import annotations


class ConjugateGradientError(Exception):
    """Base class for all errors of the package."""


class InvalidDimension(ConjugateGradientError, ValueError):
    """A vector is empty or its length does not match the others."""


class InvalidConfiguration(ConjugateGradientError, ValueError):
    """A configuration value is out of its admissible range."""


class LineSearchFailure(ConjugateGradientError, RuntimeError):
    """The line search could not produce a usable training rate."""


__all__ = [
    "ConjugateGradientError",
    "InvalidDimension",
    "InvalidConfiguration",
    "LineSearchFailure",
]
