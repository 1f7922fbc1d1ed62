"""
config.py

Configuration of the conjugate gradient trainer.

Contents:
    - TrainingDirectionMethod - PR (Polak–Ribiere) or FR (Fletcher–Reeves);
    - HistoryChannel          - the nine quantities whose per-iteration
                                history can be reserved;
    - Configuration           - immutable set of thresholds, budgets and
                                history flags supplied once per trainer.

The configuration is validated on construction, so an invalid value is
rejected before any training run starts.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple, Union

from .errors import InvalidConfiguration


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TrainingDirectionMethod(Enum):
    """Formula for the conjugate direction coefficient β."""

    PR = "PR"
    FR = "FR"

    @classmethod
    def from_string(cls, value: Union[str, "TrainingDirectionMethod"]) -> "TrainingDirectionMethod":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {
            "pr": cls.PR,
            "polak_ribiere": cls.PR,
            "fr": cls.FR,
            "fletcher_reeves": cls.FR,
        }
        try:
            return aliases[key]
        except KeyError:
            raise InvalidConfiguration(
                f"Unknown training direction method: {value!r} (expected 'PR' or 'FR')."
            ) from None

    def write(self) -> str:
        return self.value


class HistoryChannel(str, Enum):
    """Per-iteration quantities that can be recorded."""

    PARAMETERS = "parameters"
    PARAMETERS_NORM = "parameters_norm"
    PERFORMANCE = "performance"
    SELECTION_PERFORMANCE = "selection_performance"
    GRADIENT = "gradient"
    GRADIENT_NORM = "gradient_norm"
    TRAINING_DIRECTION = "training_direction"
    TRAINING_RATE = "training_rate"
    ELAPSED_TIME = "elapsed_time"

    @property
    def is_vector(self) -> bool:
        return self in VECTOR_CHANNELS

    @classmethod
    def parse(cls, value: Union[str, "HistoryChannel"]) -> "HistoryChannel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidConfiguration(f"Unknown history channel: {value!r}.") from None


VECTOR_CHANNELS = frozenset(
    {
        HistoryChannel.PARAMETERS,
        HistoryChannel.GRADIENT,
        HistoryChannel.TRAINING_DIRECTION,
    }
)


def _default_reserve_history() -> Dict[HistoryChannel, bool]:
    flags = {channel: False for channel in HistoryChannel}
    flags[HistoryChannel.PERFORMANCE] = True
    return flags


def normalize_reserve_history(
    flags: Mapping[Union[str, HistoryChannel], bool],
) -> Dict[HistoryChannel, bool]:
    """
    Turn a mapping keyed by channel or channel name into a complete
    {HistoryChannel: bool} mapping. Missing channels are False.
    """
    normalized = {channel: False for channel in HistoryChannel}
    for key, flag in flags.items():
        normalized[HistoryChannel.parse(key)] = bool(flag)
    return normalized


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Integral):
        return True
    return isinstance(value, float) and value.is_integer()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_NON_NEGATIVE_FIELDS: Tuple[str, ...] = (
    "warning_parameters_norm",
    "warning_gradient_norm",
    "warning_training_rate",
    "minimum_parameters_increment_norm",
    "minimum_performance_increase",
    "gradient_norm_goal",
    "maximum_time",
)

_POSITIVE_FIELDS: Tuple[str, ...] = (
    "error_parameters_norm",
    "error_gradient_norm",
    "error_training_rate",
    "first_training_rate",
)


@dataclass(frozen=True)
class Configuration:
    """
    Training configuration.

    Attributes:
        training_direction_method - PR or FR;
        warning_*                 - values at which an advisory message is
                                    logged (parameters norm, gradient norm,
                                    training rate);
        error_*                   - values at which the run terminates with
                                    reason "NumericalFailure";
        minimum_parameters_increment_norm, minimum_performance_increase,
        performance_goal, gradient_norm_goal,
        maximum_selection_performance_decreases,
        maximum_iterations_number, maximum_time
                                  - stopping criteria;
        first_training_rate       - initial step estimate of the line search;
        reserve_history           - {HistoryChannel: bool};
        display, display_period   - progress logging cadence;
        save_period               - checkpoint cadence (0 disables it).
    """

    training_direction_method: TrainingDirectionMethod = TrainingDirectionMethod.PR

    warning_parameters_norm: float = 1.0e6
    warning_gradient_norm: float = 1.0e6
    warning_training_rate: float = 1.0e6

    error_parameters_norm: float = 1.0e10
    error_gradient_norm: float = 1.0e10
    error_training_rate: float = 1.0e10

    minimum_parameters_increment_norm: float = 0.0
    minimum_performance_increase: float = 0.0
    performance_goal: float = -math.inf
    gradient_norm_goal: float = 0.0
    maximum_selection_performance_decreases: int = 1000000
    maximum_iterations_number: int = 1000
    maximum_time: float = 1000.0

    first_training_rate: float = 0.01

    reserve_history: Mapping[HistoryChannel, bool] = field(
        default_factory=_default_reserve_history, hash=False
    )

    display: bool = True
    display_period: int = 10
    save_period: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "training_direction_method",
            TrainingDirectionMethod.from_string(self.training_direction_method),
        )
        object.__setattr__(
            self,
            "reserve_history",
            MappingProxyType(normalize_reserve_history(self.reserve_history)),
        )
        self.validate()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        for name in _NON_NEGATIVE_FIELDS:
            value = float(getattr(self, name))
            if math.isnan(value) or value < 0.0:
                raise InvalidConfiguration(f"{name} must be non-negative, got {value}.")

        for name in _POSITIVE_FIELDS:
            value = float(getattr(self, name))
            if math.isnan(value) or value <= 0.0:
                raise InvalidConfiguration(f"{name} must be positive, got {value}.")

        if math.isnan(float(self.performance_goal)):
            raise InvalidConfiguration("performance_goal must not be NaN.")

        for name in ("maximum_iterations_number", "maximum_selection_performance_decreases", "save_period"):
            value = getattr(self, name)
            if not _is_whole_number(value) or value < 0:
                raise InvalidConfiguration(f"{name} must be a non-negative integer, got {value!r}.")

        if not _is_whole_number(self.display_period) or self.display_period < 1:
            raise InvalidConfiguration(
                f"display_period must be a positive integer, got {self.display_period!r}."
            )

    # ------------------------------------------------------------------
    # History flags
    # ------------------------------------------------------------------

    def reserves(self, channel: Union[str, HistoryChannel]) -> bool:
        return self.reserve_history[HistoryChannel.parse(channel)]

    def reserved_channels(self) -> List[HistoryChannel]:
        return [channel for channel in HistoryChannel if self.reserve_history[channel]]

    def with_reserve_all_history(self, flag: bool) -> "Configuration":
        """Return a copy in which every history channel is set to flag."""
        return self.replace(reserve_history={channel: bool(flag) for channel in HistoryChannel})

    def replace(self, **changes: Any) -> "Configuration":
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Plain-data views
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Field set as plain Python values (enum members become strings)."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["training_direction_method"] = self.training_direction_method.write()
        data["reserve_history"] = {
            channel.value: flag for channel, flag in self.reserve_history.items()
        }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Configuration":
        """
        Build a configuration from to_dict()-style data.
        Unknown keys raise InvalidConfiguration; missing keys keep defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration fields: {', '.join(unknown)}.")
        return cls(**dict(data))

    def to_string_matrix(self) -> List[Tuple[str, str]]:
        """
        Rows (name, value) for tables and logs. History flags are listed as
        "reserve_<channel>_history".
        """
        rows: List[Tuple[str, str]] = [
            ("training_direction_method", self.training_direction_method.write()),
        ]
        for f in fields(self):
            if f.name in ("training_direction_method", "reserve_history"):
                continue
            rows.append((f.name, str(getattr(self, f.name))))
        for channel in HistoryChannel:
            rows.append((f"reserve_{channel.value}_history", str(self.reserve_history[channel])))
        return rows


__all__ = [
    "TrainingDirectionMethod",
    "HistoryChannel",
    "VECTOR_CHANNELS",
    "normalize_reserve_history",
    "Configuration",
]
