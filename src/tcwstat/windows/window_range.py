"""Describe 2-D ranges of transient windows and buffer their weights.

A :class:`TransientWindowRange` spans start times
``t0 + m * dt0`` for ``m < N_t0`` and timescales ``tau + n * dtau`` for
``n < N_tau``, with ``N = floor(band / step) + 1`` in each dimension.

Exponential window weights only depend on ``t - t0`` and ``tau``, so for
repeated B-statistic evaluations over the same range they can be computed
once into a ``(N_tau, N_ti)`` buffer attached to the range.
"""

from __future__ import annotations
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from tcwstat.windows.shapes import (
    TransientWindow,
    TransientWindowType,
    exponential_window_value,
    get_transient_window_timespan,
)


@dataclass
class ExpWindowBuffer:
    """Precomputed exponential-window weights.

    Attributes:
        values (numpy.ndarray): Read-only ``(N_tau, N_ti)`` array; entry
            ``[n, j]`` is the weight at offset ``j * t_step`` from the window
            start for timescale ``tau + n * dtau``.
        t_step (int): Time offset (seconds) between buffer columns.
        tau (int): Shortest timescale of the range when filled.
        dtau (int): Timescale step of the range when filled.
    """
    values: np.ndarray
    t_step: int
    tau: int = 0
    dtau: int = 0


@dataclass
class TransientWindowRange:
    """A grid of transient windows over start time and timescale.

    Attributes:
        type (TransientWindowType): Window shape.
        t0 (int): Earliest start time (GPS seconds).
        t0_band (int): Range of start times (seconds).
        dt0 (int): Start-time step (seconds).
        tau (int): Shortest timescale (seconds).
        tau_band (int): Range of timescales (seconds).
        dtau (int): Timescale step (seconds).
        exp_buffer (ExpWindowBuffer | None): Optional precomputed weights,
            managed by :meth:`fill_exp_buffer` / :meth:`release_exp_buffer`.

    Raises:
        ValueError: If a band is negative, or a step is not positive while
            its band is non-zero.

    Examples:
        >>> wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=0, t0_band=3600,
        ...                           dt0=1800, tau=3600, tau_band=0, dtau=1800)
        >>> wr.shape
        (3, 1)
    """
    type: TransientWindowType
    t0: int = 0
    t0_band: int = 0
    dt0: int = 0
    tau: int = 0
    tau_band: int = 0
    dtau: int = 0
    exp_buffer: ExpWindowBuffer | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.type = TransientWindowType.parse(self.type)
        for band, step, name in ((self.t0_band, self.dt0, "t0"), (self.tau_band, self.dtau, "tau")):
            if band < 0:
                raise ValueError(f"{name} band must be >= 0, got {band}")
            if step < 0 or (step == 0 and band > 0):
                raise ValueError(f"{name} step must be > 0 for band {band}, got {step}")

    @property
    def n_t0(self) -> int:
        return _grid_size(self.t0_band, self.dt0)

    @property
    def n_tau(self) -> int:
        return _grid_size(self.tau_band, self.dtau)

    @property
    def shape(self) -> tuple[int, int]:
        return self.n_t0, self.n_tau

    def start_time(self, m: int) -> int:
        return self.t0 + m * self.dt0

    def timescale(self, n: int) -> int:
        return self.tau + n * self.dtau

    def window(self, m: int, n: int) -> TransientWindow:
        """Return the window at grid cell ``(m, n)``."""
        return TransientWindow(self.type, self.start_time(m), self.timescale(n))

    def fill_exp_buffer(self, t_step: int | None = None) -> ExpWindowBuffer:
        """Precompute exponential window weights for every timescale.

        Args:
            t_step (int | None): Column spacing (seconds). Must equal the
                atom cadence for the buffer to be used by the B-statistic;
                defaults to ``dt0``.

        Returns:
            ExpWindowBuffer: The attached buffer.

        Raises:
            ValueError: If the range is not exponential, a buffer is already
                attached, or ``t_step <= 0``.
        """
        if self.type != TransientWindowType.EXPONENTIAL:
            raise ValueError(
                f"expected an exponential transient-window range, instead got {self.type.name}"
            )
        if self.exp_buffer is not None:
            raise ValueError("exponential-window buffer is already attached to this range")
        t_step = int(self.dt0 if t_step is None else t_step)
        if t_step <= 0:
            raise ValueError(f"buffer time step must be > 0, got {t_step}")

        tau_max = self.tau + self.tau_band
        _, t1 = get_transient_window_timespan(
            TransientWindow(TransientWindowType.EXPONENTIAL, 0, tau_max)
        )
        n_ti = int(math.ceil(t1 / t_step))
        t_i = t_step * np.arange(n_ti, dtype=np.int64)

        values = np.zeros((self.n_tau, n_ti), dtype=float)
        for n in range(self.n_tau):
            tau_n = self.timescale(n)
            _, t1_n = get_transient_window_timespan(
                TransientWindow(TransientWindowType.EXPONENTIAL, 0, tau_n)
            )
            values[n, :] = exponential_window_value(t_i, 0, t1_n, tau_n)
        values.setflags(write=False)

        self.exp_buffer = ExpWindowBuffer(values=values, t_step=t_step, tau=self.tau, dtau=self.dtau)
        return self.exp_buffer

    def release_exp_buffer(self) -> None:
        """Detach the exponential-window buffer (no-op if none attached)."""
        self.exp_buffer = None


def _grid_size(band: int, step: int) -> int:
    if band == 0:
        return 1
    return int(math.floor(band / step)) + 1


@contextmanager
def exp_window_buffer(
    window_range: TransientWindowRange, t_step: int | None = None
) -> Iterator[TransientWindowRange]:
    """Attach an exponential-window buffer for the duration of a block.

    The buffer is released on exit, including when the block raises.

    Examples:
        >>> with exp_window_buffer(wr, t_step=1800) as wr_buf:  # doctest: +SKIP
        ...     cand = compute_transient_bstat(atoms, wr_buf)
    """
    window_range.fill_exp_buffer(t_step)
    try:
        yield window_range
    finally:
        window_range.release_exp_buffer()
