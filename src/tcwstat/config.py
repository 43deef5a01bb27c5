"""Define configuration objects for the tcwstat pipeline.

This module centralizes the tuning knobs used by the B-statistic pipeline.
Defaults follow the values used for transient-CW searches and are safe for
typical atom cadences of a few hundred to a few thousand seconds.

All configuration classes are frozen dataclasses, making them hashable and
safe to share across runs.

See Also:
    tcwstat.pipeline.run_pipeline: Consumes these config objects.
"""

from __future__ import annotations
from dataclasses import dataclass

from tcwstat.windows.shapes import TransientWindowType
from tcwstat.windows.window_range import TransientWindowRange


@dataclass(frozen=True)
class MergeConfig:
    """Configure merging of multi-detector atoms.

    Attributes:
        t_atom (int | None): Output cadence (seconds) of the merged atoms. If
            None, the common input cadence is used.

    Examples:
        Bin atoms onto a coarser one-hour grid:

        >>> MergeConfig(t_atom=3600)
    """
    t_atom: int | None = None


@dataclass(frozen=True)
class WindowRangeConfig:
    """Configure the transient window range to search.

    Attributes:
        type (str): Window type, one of ``none``, ``rect`` or ``exp``.
        t0 (int | None): Earliest window start time (GPS seconds). If None,
            the first atom timestamp is used.
        t0_band (int): Width of the start-time band (seconds).
        dt0 (int | None): Start-time step (seconds). If None, the atom
            cadence is used.
        tau (int | None): Smallest window duration (seconds). If None, twice
            the atom cadence is used.
        tau_band (int): Width of the duration band (seconds).
        dtau (int | None): Duration step (seconds). If None, the atom cadence
            is used.

    Notes:
        Unset values are resolved against the merged atoms by
        :meth:`to_range`, so the same config can be reused across data sets.

    Examples:
        >>> WindowRangeConfig(type="exp", t0_band=86400, tau=7200, tau_band=86400)
    """
    type: str = "none"
    t0: int | None = None
    t0_band: int = 0
    dt0: int | None = None
    tau: int | None = None
    tau_band: int = 0
    dtau: int | None = None

    def to_range(self, *, t0_data: int, t_atom: int) -> TransientWindowRange:
        """Resolve unset fields and return a :class:`TransientWindowRange`.

        Args:
            t0_data (int): First atom timestamp of the merged atoms.
            t_atom (int): Cadence of the merged atoms.

        Returns:
            TransientWindowRange: Fully specified window range.
        """
        return TransientWindowRange(
            type=TransientWindowType.parse(self.type),
            t0=int(t0_data if self.t0 is None else self.t0),
            t0_band=int(self.t0_band),
            dt0=int(t_atom if self.dt0 is None else self.dt0),
            tau=int(2 * t_atom if self.tau is None else self.tau),
            tau_band=int(self.tau_band),
            dtau=int(t_atom if self.dtau is None else self.dtau),
        )


@dataclass(frozen=True)
class ExpLUTConfig:
    """Configure the e^(-x) lookup table used in the B-statistic reduction.

    Attributes:
        xmax (float): Upper bound of the tabulated domain; e^(-x) is treated
            as 0 beyond it.
        resolution (int): Number of table samples over ``[0, xmax)``.
    """
    xmax: float = 20.0
    resolution: int = 2000


@dataclass(frozen=True)
class BstatConfig:
    """Configure the transient B-statistic computation.

    Attributes:
        use_f_reg (bool): If True, marginalize the "regularized" statistic
            ``F + log(1/D)`` instead of ``F``.
        norm_const (float): Empirical calibration constant of the final
            normalization ``log(norm_const / (N_t0 * N_tau * TAtom^2))``.
        use_exp_buffer (bool): If True and the window type is exponential,
            precompute the window weights once per run.

    Notes:
        ``norm_const`` is a calibration value (assuming an expected maximal
        signal amplitude of 1); it shifts ``logBstat`` by a constant and does
        not affect the location of the loudest window.

    Examples:
        >>> BstatConfig(use_f_reg=True)
    """
    use_f_reg: bool = False
    norm_const: float = 70.0
    use_exp_buffer: bool = False
