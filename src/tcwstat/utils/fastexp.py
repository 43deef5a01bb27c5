"""Provide a lookup-table approximation of e^(-x) for x >= 0.

The B-statistic reduction sums terms ``e^(-ΔF)`` with ``ΔF >= 0``. Values
close to 1 dominate that sum while far tails contribute almost nothing, so
e^(-x) is tabulated once on ``[0, xmax)`` and set to exactly 0 beyond
``xmax``. The nearest tabulated sample is returned, which bounds the
absolute error by one grid spacing ``dx = xmax / resolution``.
"""

from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class ExpLUT:
    """Immutable lookup table of e^(-x) samples.

    Attributes:
        xmax (float): Upper bound of the tabulated domain.
        resolution (int): Number of samples.
        data (numpy.ndarray): Read-only array ``exp(-i * dx)``, ``i < resolution``.
    """
    xmax: float
    resolution: int
    data: np.ndarray = field(repr=False)

    @property
    def dx(self) -> float:
        return self.xmax / self.resolution

    @classmethod
    def build(cls, xmax: float = 20.0, resolution: int = 2000) -> "ExpLUT":
        """Tabulate e^(-x) at ``resolution`` points uniformly spaced from 0.

        Args:
            xmax (float): Upper bound of the domain, must be > 0.
            resolution (int): Number of samples, must be > 0.

        Returns:
            ExpLUT: The lookup table.

        Raises:
            ValueError: If ``xmax <= 0`` or ``resolution <= 0``.

        Examples:
            >>> lut = ExpLUT.build(20.0, 2000)
            >>> float(lut.lookup(0.0))
            1.0
        """
        xmax = float(xmax)
        if not xmax > 0:
            raise ValueError(f"xmax must be > 0, got {xmax}")
        if int(resolution) <= 0:
            raise ValueError(f"resolution must be > 0, got {resolution}")
        resolution = int(resolution)
        dx = xmax / resolution
        data = np.exp(-np.arange(resolution, dtype=float) * dx)
        data.setflags(write=False)
        return cls(xmax=xmax, resolution=resolution, data=data)

    def lookup(self, x: float) -> float:
        """Return the tabulated e^(-x) nearest to ``x``.

        Args:
            x (float): Argument, must be >= 0.

        Returns:
            float: ``0.0`` for ``x > xmax``, otherwise the sample at index
            ``floor(x / dx + 0.5)``.

        Raises:
            ValueError: If ``x < 0``.
        """
        if x < 0:
            raise ValueError(f"argument x={x} must be >= 0: we compute e^(-x)")
        if x > self.xmax:
            return 0.0
        i0 = int(x / self.dx + 0.5)
        # x == xmax rounds one past the last sample
        return float(self.data[min(i0, self.resolution - 1)])

    def lookup_array(self, x: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`lookup` over an array of non-negative values."""
        x = np.asarray(x, dtype=float)
        if np.any(x < 0):
            raise ValueError(f"all arguments must be >= 0, got min={float(np.min(x))}")
        idx = np.floor(x / self.dx + 0.5)
        idx = np.minimum(idx, self.resolution - 1)
        out = np.zeros(x.shape, dtype=float)
        keep = x <= self.xmax
        out[keep] = self.data[idx[keep].astype(np.int64)]
        return out
