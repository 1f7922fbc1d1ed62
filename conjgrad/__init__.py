"""
conjgrad

Nonlinear conjugate gradient training (Polak–Ribiere / Fletcher–Reeves)
with line search, stopping criteria and per-iteration history.
"""

from .config import Configuration, HistoryChannel, TrainingDirectionMethod
from .engine import ConjugateGradient, TrainingState
from .errors import (
    ConjugateGradientError,
    InvalidConfiguration,
    InvalidDimension,
    LineSearchFailure,
)
from .iteration_result import IterationState
from .objective import FunctionObjective
from .results import ResultsRecord
from .stopping import StoppingReason
from .training_rate import DirectionalPoint, LineSearchAdapter, TrainingRateAlgorithm

__version__ = "0.1.0"

__all__ = [
    "Configuration",
    "HistoryChannel",
    "TrainingDirectionMethod",
    "ConjugateGradient",
    "TrainingState",
    "ConjugateGradientError",
    "InvalidConfiguration",
    "InvalidDimension",
    "LineSearchFailure",
    "IterationState",
    "FunctionObjective",
    "ResultsRecord",
    "StoppingReason",
    "DirectionalPoint",
    "LineSearchAdapter",
    "TrainingRateAlgorithm",
]
