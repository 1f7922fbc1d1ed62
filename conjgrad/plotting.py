"""
plotting.py

matplotlib plots of the reserved histories of a ResultsRecord.

Uses the object-oriented API (matplotlib.figure.Figure) so nothing touches
the global pyplot state; callers can pass their own Axes or save the
returned figure with fig.savefig(...).
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import HistoryChannel
from .results import ResultsRecord

_LABELS = {
    HistoryChannel.PARAMETERS_NORM: "||x_k||",
    HistoryChannel.PERFORMANCE: "f(x_k)",
    HistoryChannel.SELECTION_PERFORMANCE: "selection performance",
    HistoryChannel.GRADIENT_NORM: "||∇f(x_k)||",
    HistoryChannel.TRAINING_RATE: "α_k",
    HistoryChannel.ELAPSED_TIME: "elapsed time, s",
}


def plot_history(
    results: ResultsRecord,
    channel: HistoryChannel = HistoryChannel.PERFORMANCE,
    ax: Optional[Axes] = None,
    log_scale: bool = False,
) -> Axes:
    """
    Plot one scalar history channel against the iteration number.

    Raises ValueError for vector channels and for channels that were not
    reserved during the run.
    """
    channel = HistoryChannel.parse(channel)
    if channel.is_vector:
        raise ValueError(f"Channel '{channel.value}' is a vector channel and cannot be plotted.")

    values = np.asarray(results.get_history(channel), dtype=float)
    if values.size == 0:
        raise ValueError(f"History of '{channel.value}' was not reserved.")

    if ax is None:
        ax = Figure(figsize=(6.0, 4.0)).add_subplot(1, 1, 1)

    ks = np.arange(values.size)
    ax.plot(ks, values, marker="o", linestyle="-", linewidth=1.5, markersize=3)
    if log_scale and np.all(values > 0.0):
        ax.set_yscale("log")
    ax.set_xlabel("k (iteration)")
    ax.set_ylabel(_LABELS[channel])
    ax.set_title(f"{_LABELS[channel]} ({results.stopping_reason.value})")
    ax.grid(True, alpha=0.3)
    return ax


def plot_training_summary(
    results: ResultsRecord,
    channels: Optional[Sequence[HistoryChannel]] = None,
) -> Figure:
    """
    One subplot per reserved scalar channel (or per channel in channels).
    """
    if channels is None:
        channels = [
            channel for channel in HistoryChannel
            if not channel.is_vector and results.get_history(channel).size > 0
        ]
    channels = [HistoryChannel.parse(c) for c in channels]
    if not channels:
        raise ValueError("No scalar history was reserved during the run.")

    fig = Figure(figsize=(6.0, 2.5 * len(channels)), layout="constrained")
    for i, channel in enumerate(channels, start=1):
        ax = fig.add_subplot(len(channels), 1, i)
        plot_history(results, channel, ax=ax)
    return fig


__all__ = [
    "plot_history",
    "plot_training_summary",
]
