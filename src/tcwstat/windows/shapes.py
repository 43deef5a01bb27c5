"""Define transient window shapes and evaluate window functions.

A transient CW signal is modeled as a continuous wave multiplied by a window
function of start time ``t0`` and timescale ``tau``:

    - rectangular: 1 on ``[t0, t0 + tau)``, 0 elsewhere.
    - exponential: ``exp(-(t - t0) / tau)`` for ``t >= t0``, truncated after
      :data:`EXP_EFOLDING` e-foldings and 0 before ``t0``.

The shape set is closed, so dispatch is an explicit match over
:class:`TransientWindowType` rather than a class hierarchy.

See Also:
    tcwstat.windows.window_range.TransientWindowRange: Grids of windows.
    tcwstat.detect.bstat.compute_transient_bstat: Consumer of window values.
"""

from __future__ import annotations
import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

INT4_MAX: int = 2147483647
"""Largest representable window end time; used for the ``none`` window."""

EXP_EFOLDING: float = 20.0
"""Number of e-foldings after which exponential windows are set to 0."""


class TransientWindowType(IntEnum):
    NONE = 0
    RECTANGULAR = 1
    EXPONENTIAL = 2

    @classmethod
    def parse(cls, value: "str | int | TransientWindowType") -> "TransientWindowType":
        """Parse a window type from its name, short name or integer tag.

        Raises:
            ValueError: If ``value`` names no known window type.

        Examples:
            >>> TransientWindowType.parse("exp")
            <TransientWindowType.EXPONENTIAL: 2>
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _TYPE_NAMES:
                return _TYPE_NAMES[key]
            raise ValueError(
                f"invalid transient window type '{value}', expected one of {sorted(_TYPE_NAMES)}"
            )
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(
                f"invalid transient window type {value} not in [{cls.NONE.value}, {cls.EXPONENTIAL.value}]"
            ) from None


_TYPE_NAMES = {
    "none": TransientWindowType.NONE,
    "rect": TransientWindowType.RECTANGULAR,
    "rectangular": TransientWindowType.RECTANGULAR,
    "exp": TransientWindowType.EXPONENTIAL,
    "exponential": TransientWindowType.EXPONENTIAL,
}


@dataclass(frozen=True)
class TransientWindow:
    """A single transient window.

    Attributes:
        type (TransientWindowType): Window shape.
        t0 (int): Start time (GPS seconds).
        tau (int): Duration (rectangular) or decay time (exponential), seconds.
    """
    type: TransientWindowType
    t0: int = 0
    tau: int = 0


def get_transient_window_timespan(window: TransientWindow) -> tuple[int, int]:
    """Return the half-open interval ``[t0, t1)`` where the window is non-zero.

    Args:
        window (TransientWindow): Window parameters.

    Returns:
        tuple[int, int]: ``(t0, t1)`` in GPS seconds.

    Raises:
        ValueError: If the window type is not a known shape.

    Examples:
        >>> get_transient_window_timespan(TransientWindow(TransientWindowType.RECTANGULAR, 100, 50))
        (100, 150)
    """
    wtype = window.type
    if wtype == TransientWindowType.NONE:
        return 0, INT4_MAX
    if wtype == TransientWindowType.RECTANGULAR:
        return int(window.t0), int(window.t0) + int(window.tau)
    if wtype == TransientWindowType.EXPONENTIAL:
        return int(window.t0), int(window.t0) + int(math.ceil(EXP_EFOLDING * window.tau))
    raise ValueError(f"invalid transient window type {wtype!r}")


def rectangular_window_value(t, t0: int, t1: int):
    """Return the rectangular window at time(s) ``t``: 1 on ``[t0, t1)``, else 0."""
    t = np.asarray(t)
    out = np.where((t >= t0) & (t < t1), 1.0, 0.0)
    return out if out.ndim else float(out)


def exponential_window_value(t, t0: int, t1: int, tau: float):
    """Return the exponential window at time(s) ``t``.

    Args:
        t (int | numpy.ndarray): Evaluation time(s) (GPS seconds).
        t0 (int): Window start time.
        t1 (int): Truncation time from :func:`get_transient_window_timespan`.
        tau (float): Decay time (seconds).

    Returns:
        float | numpy.ndarray: ``exp(-(t - t0) / tau)`` on ``[t0, t1)``, 0
        elsewhere; scalar input gives a float.

    Notes:
        Buffered window weights are produced by this same function, so
        buffered and direct evaluation agree exactly.
    """
    t = np.asarray(t)
    dt = (t - t0).astype(float)
    inside = (t >= t0) & (t < t1)
    out = np.zeros(dt.shape, dtype=float)
    np.exp(-dt / tau, out=out, where=inside)
    return out if out.ndim else float(out)


def transient_window_value(t, window: TransientWindow):
    """Evaluate ``window`` at time(s) ``t`` for any window type."""
    t0, t1 = get_transient_window_timespan(window)
    wtype = window.type
    if wtype == TransientWindowType.NONE:
        out = np.ones(np.shape(t), dtype=float)
        return out if out.ndim else 1.0
    if wtype == TransientWindowType.RECTANGULAR:
        return rectangular_window_value(t, t0, t1)
    if wtype == TransientWindowType.EXPONENTIAL:
        return exponential_window_value(t, t0, t1, window.tau)
    raise ValueError(f"invalid transient window type {wtype!r}")


def apply_transient_window(
    series: np.ndarray,
    window: TransientWindow,
    *,
    epoch: float,
    delta_t: float,
) -> np.ndarray:
    """Multiply a regularly sampled time series by a transient window.

    Args:
        series (numpy.ndarray): Samples; not modified.
        window (TransientWindow): Window to apply.
        epoch (float): GPS time of the first sample.
        delta_t (float): Sampling interval (seconds).

    Returns:
        numpy.ndarray: Windowed copy of ``series``.

    Notes:
        Sample times are rounded to integer seconds with ``floor(x + 0.5)``
        before evaluating the window. A ``none`` window returns an unchanged
        copy.
    """
    out = np.array(series, copy=True)
    if window.type == TransientWindowType.NONE:
        return out
    ti = np.floor(epoch + np.arange(len(out)) * delta_t + 0.5).astype(np.int64)
    return out * transient_window_value(ti, window)


def apply_transient_window_to_weights(
    weights: Sequence[np.ndarray],
    timestamps: Sequence[np.ndarray],
    window: TransientWindow,
) -> list[np.ndarray]:
    """Apply a transient window to per-detector noise weights.

    Args:
        weights (Sequence[numpy.ndarray]): One noise-weight array per detector.
        timestamps (Sequence[numpy.ndarray]): Integer GPS timestamps aligned
            with ``weights``.
        window (TransientWindow): Window to apply.

    Returns:
        list[numpy.ndarray]: Windowed copies of the weights.

    Raises:
        ValueError: If inputs are empty, or detector counts or per-detector
            lengths differ.
    """
    if not weights:
        raise ValueError("empty input 'weights'")
    if not timestamps:
        raise ValueError("empty input 'timestamps'")
    if len(weights) != len(timestamps):
        raise ValueError(
            f"inconsistent number of detectors between 'weights' ({len(weights)}) "
            f"and 'timestamps' ({len(timestamps)})"
        )
    out = []
    for X, (w_X, ts_X) in enumerate(zip(weights, timestamps)):
        w_X = np.asarray(w_X, dtype=float)
        ts_X = np.asarray(ts_X, dtype=np.int64)
        if len(w_X) != len(ts_X):
            raise ValueError(
                f"inconsistent number of timesteps 'weights[{X}]' ({len(w_X)}) "
                f"and 'timestamps[{X}]' ({len(ts_X)})"
            )
        if window.type == TransientWindowType.NONE:
            out.append(w_X.copy())
        else:
            out.append(w_X * transient_window_value(ts_X, window))
    return out
