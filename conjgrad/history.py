"""
history.py

Per-iteration history of the reserved channels.

Buffers are allocated once, for maximum_iterations_number + 1 rows, when
the recorder is created, so the training loop never reallocates. trim()
returns copies cut to the number of recorded iterations. Channels that are
not reserved are never written and come back as empty arrays.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from .config import Configuration, HistoryChannel
from .iteration_result import IterationState


def _channel_value(state: IterationState, channel: HistoryChannel):
    if channel is HistoryChannel.PARAMETERS:
        return state.parameters
    if channel is HistoryChannel.PARAMETERS_NORM:
        return state.parameters_norm
    if channel is HistoryChannel.PERFORMANCE:
        return state.performance
    if channel is HistoryChannel.SELECTION_PERFORMANCE:
        return state.selection_performance
    if channel is HistoryChannel.GRADIENT:
        return state.gradient
    if channel is HistoryChannel.GRADIENT_NORM:
        return state.gradient_norm
    if channel is HistoryChannel.TRAINING_DIRECTION:
        return state.training_direction
    if channel is HistoryChannel.TRAINING_RATE:
        return state.training_rate
    return state.elapsed_time


def empty_history(parameters_number: int = 0) -> Dict[HistoryChannel, np.ndarray]:
    """A mapping with a zero-length array for every channel."""
    return {
        channel: np.empty((0, parameters_number)) if channel.is_vector else np.empty(0)
        for channel in HistoryChannel
    }


class HistoryRecorder:
    """
    Records one row per iteration for every reserved channel.

    Usage:
        recorder = HistoryRecorder(configuration, parameters_number=n)
        recorder.record(state)     # once per iteration, iteration 0 included
        history = recorder.trim()  # {HistoryChannel: np.ndarray}
    """

    def __init__(self, configuration: Configuration, parameters_number: int) -> None:
        if parameters_number <= 0:
            raise ValueError("parameters_number must be positive.")
        self.parameters_number = int(parameters_number)
        self.capacity = int(configuration.maximum_iterations_number) + 1
        self.channels = configuration.reserved_channels()
        self.size = 0

        self._buffers: Dict[HistoryChannel, np.ndarray] = {}
        for channel in self.channels:
            if channel.is_vector:
                self._buffers[channel] = np.empty((self.capacity, self.parameters_number))
            else:
                self._buffers[channel] = np.empty(self.capacity)

    def record(self, state: IterationState) -> None:
        if self.size >= self.capacity:
            raise IndexError(
                f"History capacity of {self.capacity} iterations exceeded."
            )
        row = self.size
        for channel, buffer in self._buffers.items():
            buffer[row] = _channel_value(state, channel)
        self.size += 1

    def __len__(self) -> int:
        return self.size

    def trim(self) -> Dict[HistoryChannel, np.ndarray]:
        """Recorded rows of every channel; empty arrays for the others."""
        history = empty_history(self.parameters_number)
        for channel, buffer in self._buffers.items():
            history[channel] = buffer[: self.size].copy()
        return history


__all__ = [
    "empty_history",
    "HistoryRecorder",
]
