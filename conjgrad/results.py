"""
results.py

Results of one training run.

A ResultsRecord is created once by the trainer when the run terminates and
handed to the caller. It holds the final value of every iteration quantity,
the stopping reason and the reserved histories. Tabular views are provided
for logs, reports and (optionally) pandas.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np

from .config import HistoryChannel
from .history import empty_history
from .stopping import StoppingReason


@dataclass
class ResultsRecord:
    """
    Summary of one training run.

    Attributes:
        final_parameters            - x at the last completed iteration
        final_parameters_norm       - ||x||
        final_performance           - f(x)
        final_selection_performance - held-out metric (NaN if absent)
        final_gradient              - ∇f(x)
        final_gradient_norm         - ||∇f(x)||
        final_training_direction    - direction computed at x
        final_training_rate         - step that produced x
        elapsed_time                - seconds
        iterations_number           - completed iterations (without k = 0)
        stopping_reason             - the single criterion that ended the run
        restarts_number             - iterations after the first that fell
                                      back to the -gradient direction
        final_parameters_increment_norm - ||x - x_prev|| (NaN after k = 0)
        final_performance_increase  - f(x_prev) - f(x) (NaN after k = 0)
        final_selection_failures    - consecutive selection performance
                                      increases at the last iteration
        history                     - {HistoryChannel: np.ndarray}
    """
    final_parameters: np.ndarray
    final_parameters_norm: float
    final_performance: float
    final_selection_performance: float
    final_gradient: np.ndarray
    final_gradient_norm: float
    final_training_direction: np.ndarray
    final_training_rate: float
    elapsed_time: float
    iterations_number: int
    stopping_reason: StoppingReason
    restarts_number: int = 0
    final_parameters_increment_norm: float = math.nan
    final_performance_increase: float = math.nan
    final_selection_failures: int = 0
    history: Dict[HistoryChannel, np.ndarray] = field(default_factory=empty_history)

    # ------------------------------------------------------------------
    # History accessors
    # ------------------------------------------------------------------

    def get_history(self, channel) -> np.ndarray:
        return self.history[HistoryChannel.parse(channel)]

    @property
    def parameters_history(self) -> np.ndarray:
        return self.history[HistoryChannel.PARAMETERS]

    @property
    def parameters_norm_history(self) -> np.ndarray:
        return self.history[HistoryChannel.PARAMETERS_NORM]

    @property
    def performance_history(self) -> np.ndarray:
        return self.history[HistoryChannel.PERFORMANCE]

    @property
    def selection_performance_history(self) -> np.ndarray:
        return self.history[HistoryChannel.SELECTION_PERFORMANCE]

    @property
    def gradient_history(self) -> np.ndarray:
        return self.history[HistoryChannel.GRADIENT]

    @property
    def gradient_norm_history(self) -> np.ndarray:
        return self.history[HistoryChannel.GRADIENT_NORM]

    @property
    def training_direction_history(self) -> np.ndarray:
        return self.history[HistoryChannel.TRAINING_DIRECTION]

    @property
    def training_rate_history(self) -> np.ndarray:
        return self.history[HistoryChannel.TRAINING_RATE]

    @property
    def elapsed_time_history(self) -> np.ndarray:
        return self.history[HistoryChannel.ELAPSED_TIME]

    @property
    def failed(self) -> bool:
        return self.stopping_reason is StoppingReason.NUMERICAL_FAILURE

    # ------------------------------------------------------------------
    # Tabular views
    # ------------------------------------------------------------------

    def write_final_results(self, precision: int = 3) -> List[Tuple[str, str]]:
        """
        Rows (name, value) with the final values, numbers formatted with the
        given number of significant digits.
        """
        def fmt(value: float) -> str:
            return f"{float(value):.{precision}g}"

        return [
            ("Final parameters norm", fmt(self.final_parameters_norm)),
            ("Final performance", fmt(self.final_performance)),
            ("Final selection performance", fmt(self.final_selection_performance)),
            ("Final gradient norm", fmt(self.final_gradient_norm)),
            ("Final training rate", fmt(self.final_training_rate)),
            ("Iterations number", str(self.iterations_number)),
            ("Restarts number", str(self.restarts_number)),
            ("Selection failures", str(self.final_selection_failures)),
            ("Elapsed time", fmt(self.elapsed_time)),
            ("Stopping criterion", self.stopping_reason.value),
        ]

    def to_string(self, precision: int = 3) -> str:
        rows = self.write_final_results(precision)
        width = max(len(name) for name, _ in rows)
        return "\n".join(f"{name.ljust(width)} : {value}" for name, value in rows)

    def __str__(self) -> str:
        return self.to_string()

    def as_rows(self) -> List[Dict[str, Any]]:
        """
        One dict per recorded iteration with the reserved scalar channels,
        suitable for a pandas.DataFrame or a CSV writer.
        """
        scalar_channels = [
            channel for channel, values in self.history.items()
            if not channel.is_vector and len(values) > 0
        ]
        length = max((len(self.history[c]) for c in scalar_channels), default=0)

        rows: List[Dict[str, Any]] = []
        for k in range(length):
            row: Dict[str, Any] = {"iteration": k}
            for channel in scalar_channels:
                row[channel.value] = float(self.history[channel][k])
            rows.append(row)
        return rows

    def to_dataframe(self):
        """
        Return as_rows() as a pandas.DataFrame.

        Requires the pandas package.
        """
        try:
            import pandas as pd  # type: ignore
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "ResultsRecord.to_dataframe() requires the 'pandas' package."
            ) from exc

        return pd.DataFrame(self.as_rows())

    def to_dict(self) -> Dict[str, Any]:
        """Final values and histories as plain Python values."""
        return {
            "final_parameters": self.final_parameters.tolist(),
            "final_parameters_norm": float(self.final_parameters_norm),
            "final_performance": float(self.final_performance),
            "final_selection_performance": float(self.final_selection_performance),
            "final_gradient": self.final_gradient.tolist(),
            "final_gradient_norm": float(self.final_gradient_norm),
            "final_training_direction": self.final_training_direction.tolist(),
            "final_training_rate": float(self.final_training_rate),
            "elapsed_time": float(self.elapsed_time),
            "iterations_number": int(self.iterations_number),
            "stopping_reason": self.stopping_reason.value,
            "restarts_number": int(self.restarts_number),
            "final_parameters_increment_norm": float(self.final_parameters_increment_norm),
            "final_performance_increase": float(self.final_performance_increase),
            "final_selection_failures": int(self.final_selection_failures),
            "history": {
                channel.value: values.tolist() for channel, values in self.history.items()
            },
        }


def histories_equal(a: Mapping[HistoryChannel, np.ndarray], b: Mapping[HistoryChannel, np.ndarray]) -> bool:
    """Exact (bitwise for finite values, NaN-aware) comparison of two histories."""
    if set(a) != set(b):
        return False
    return all(np.array_equal(a[c], b[c], equal_nan=True) for c in a)


__all__ = [
    "ResultsRecord",
    "histories_equal",
]
