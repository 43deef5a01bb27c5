"""Compute the transient B-statistic marginalized over window parameters.

For every window ``(t0_m, tau_n)`` of a :class:`TransientWindowRange` the
atoms inside the window are summed (weighted by the window function) into
``A, B, C, Fa, Fb`` and turned into the F-statistic

``F_mn = [B |Fa|^2 + A |Fb|^2 - 2 C Re(Fa Fb*)] / D``, ``D = A B - C^2``.

The B-statistic marginalizes ``e^F`` over all windows. ``e^F`` overflows
easily, so the sum is computed relative to the loudest window:

``log B = F_max + log( sum_mn e^-(F_max - F_mn) )``

with the exponentials taken from a lookup table. A calibration constant and
the grid size give the final normalization.

Atom indices ``i`` enumerate the binned atoms, while grid indices ``(m, n)``
enumerate window start times and timescales; gaps in the data are zero
atoms, so they need no special treatment.

See Also:
    tcwstat.io.merge.merge_atoms_binned: Produces the binned atoms.
    tcwstat.windows.window_range.TransientWindowRange: Window grid.
    tcwstat.utils.fastexp.ExpLUT: Lookup-table exponential.
"""

from __future__ import annotations
import math
from collections.abc import Callable

import numpy as np

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import DopplerParams, TransientCandidate
from tcwstat.io.merge import merge_atoms_binned
from tcwstat.utils.fastexp import ExpLUT
from tcwstat.utils.logging import debug
from tcwstat.windows.shapes import (
    TransientWindow,
    TransientWindowType,
    exponential_window_value,
    get_transient_window_timespan,
)
from tcwstat.windows.window_range import TransientWindowRange

BSTAT_NORM_CONST: float = 70.0
"""Empirical normalization of the B-statistic (for an expected amplitude of 1)."""


def fstat_from_accumulators(
    A: float, B: float, C: float, Fa: complex, Fb: complex, *, use_f_reg: bool = False
) -> float:
    """Return the F-statistic of summed atoms.

    Args:
        A (float): Summed ``a^2`` weights.
        B (float): Summed ``b^2`` weights.
        C (float): Summed ``a*b`` weights.
        Fa (complex): Summed ``Fa`` correlations.
        Fb (complex): Summed ``Fb`` correlations.
        use_f_reg (bool): If True, return ``F + log(1/D)``.

    Returns:
        float: The F-statistic.

    Raises:
        ValueError: If ``D = A*B - C^2`` is not positive and finite.

    Examples:
        >>> fstat_from_accumulators(16.0, 16.0, 0.0, 8 + 0j, 8 + 0j)
        8.0
    """
    D = A * B - C * C
    if not (math.isfinite(D) and D > 0):
        raise ValueError(
            f"degenerate antenna-pattern matrix: D = A*B - C^2 = {D} (A={A}, B={B}, C={C})"
        )
    DdInv = 1.0 / D
    F = DdInv * (
        B * (Fa.real ** 2 + Fa.imag ** 2)
        + A * (Fb.real ** 2 + Fb.imag ** 2)
        - 2.0 * C * (Fa.real * Fb.real + Fa.imag * Fb.imag)
    )
    if use_f_reg:
        F += math.log(DdInv)
    return F


def compute_two_f(atoms: FstatAtomVector) -> float:
    """Return the coherent 2F summed over all atoms (no transient window)."""
    tot = atoms.totals()
    F = fstat_from_accumulators(
        float(tot["a2"]),
        float(tot["b2"]),
        float(tot["ab"]),
        complex(tot["fa"]),
        complex(tot["fb"]),
    )
    return 2.0 * F


def _atom_index(t: int, t0_data: int, t_atom: int, n_atoms: int, shift: int = 0) -> int:
    # integer round: floor(x + 0.5)
    i = (t - t0_data + t_atom // 2) // t_atom - shift
    return min(max(i, 0), n_atoms - 1)


def compute_transient_bstat(
    atoms: FstatAtomVector | None,
    window_range: TransientWindowRange,
    *,
    use_f_reg: bool = False,
    lut: ExpLUT | None = None,
    norm_const: float = BSTAT_NORM_CONST,
    doppler: DopplerParams | None = None,
    return_fmn: bool = False,
    cancel: Callable[[], bool] | None = None,
) -> TransientCandidate | tuple[TransientCandidate, np.ndarray]:
    """Compute the B-statistic marginalized over a range of transient windows.

    Args:
        atoms (FstatAtomVector): Binned atoms with unique, regularly spaced
            timestamps (see :func:`tcwstat.io.merge.merge_atoms_binned`).
        window_range (TransientWindowRange): Windows to marginalize over. A
            ``none`` range is replaced by one rectangular window covering all
            the data.
        use_f_reg (bool): If True, marginalize ``(1/D) e^F`` instead of
            ``e^F``.
        lut (ExpLUT | None): Lookup table for e^(-x). If None, a default
            table (``xmax=20``, 2000 samples) is built for this call.
        norm_const (float): Calibration constant of the final normalization.
        doppler (DopplerParams | None): Template parameters copied into the
            returned candidate.
        return_fmn (bool): If True, also return the ``(N_t0, N_tau)`` grid of
            F values.
        cancel (Callable[[], bool] | None): Polled between start-time rows;
            returning True aborts the scan.

    Returns:
        TransientCandidate | tuple[TransientCandidate, numpy.ndarray]: The
        candidate, and the F grid if ``return_fmn`` is set.

    Raises:
        ValueError: If ``atoms`` is None or empty or not on a regular
            ``t_start + i*t_atom`` grid, the window type is unknown, a
            window covers a single atom (or none), a window sums to a
            degenerate ``D``, or an attached exponential buffer does not
            match the atom grid or the range timescales.
        RuntimeError: If ``cancel`` requests cancellation.

    Notes:
        For rectangular windows the sums at fixed start time are extended
        incrementally as the duration grows. Exponential windows change
        shape with ``tau``, so their sums are recomputed for every cell.
        The loudest window is the first one encountered (start time major,
        duration minor) among equal F values. The input atoms are never
        modified.

    Examples:
        >>> from tcwstat.atoms import FstatAtomVector
        >>> from tcwstat.windows.shapes import TransientWindowType
        >>> atoms = FstatAtomVector.from_constants(t_start=0, n=8, t_atom=1, a2=2, b2=2, ab=0, fa=1, fb=1)
        >>> cand = compute_transient_bstat(atoms, TransientWindowRange(TransientWindowType.NONE))
        >>> cand.max_two_f
        16.0
    """
    if atoms is None or len(atoms) == 0:
        raise ValueError("invalid empty or None input 'atoms'")
    wtype = TransientWindowType.parse(window_range.type)

    n_atoms = len(atoms)
    t_atom = atoms.t_atom
    t0_data = atoms.t_start
    ts = atoms.timestamps
    if not np.array_equal(ts, t0_data + t_atom * np.arange(n_atoms, dtype=np.int64)):
        raise ValueError(
            f"atoms must lie on a regular grid t_start + i*TAtom (TAtom={t_atom}) without gaps "
            f"or duplicates; bin them with tcwstat.io.merge.merge_atoms_binned first"
        )

    if wtype == TransientWindowType.NONE:
        window_range = TransientWindowRange(
            TransientWindowType.RECTANGULAR,
            t0=t0_data,
            t0_band=0,
            dt0=t_atom,
            tau=n_atoms * t_atom,
            tau_band=0,
            dtau=t_atom,
        )
        wtype = TransientWindowType.RECTANGULAR

    n_t0, n_tau = window_range.shape
    if n_t0 <= 0 or n_tau <= 0:
        raise ValueError(f"window range yields an empty grid {n_t0} x {n_tau}")

    buf = window_range.exp_buffer if wtype == TransientWindowType.EXPONENTIAL else None
    if buf is not None:
        if buf.t_step != t_atom:
            raise ValueError(
                f"exponential-window buffer step {buf.t_step} does not match atom cadence {t_atom}"
            )
        if buf.values.shape[0] != n_tau:
            raise ValueError(
                f"exponential-window buffer has {buf.values.shape[0]} timescales, range has {n_tau}"
            )
        if (buf.tau, buf.dtau) != (window_range.tau, window_range.dtau):
            raise ValueError(
                f"exponential-window buffer was filled for tau={buf.tau}, dtau={buf.dtau}, "
                f"range has tau={window_range.tau}, dtau={window_range.dtau}"
            )
        if (window_range.t0 - t0_data) % t_atom or window_range.dt0 % t_atom:
            raise ValueError("buffered exponential windows require start times on the atom grid")

    if lut is None:
        lut = ExpLUT.build()

    F_mn = np.zeros((n_t0, n_tau), dtype=float)
    max_f = -np.inf
    t0offs_max_f = 0
    tau_max_f = 0

    for m in range(n_t0):
        if cancel is not None and cancel():
            raise RuntimeError(f"transient B-statistic cancelled at start-time row {m} of {n_t0}")

        win_t0 = window_range.start_time(m)
        i_t0 = _atom_index(win_t0, t0_data, t_atom, n_atoms)

        Ad = Bd = Cd = 0.0
        Fa = Fb = 0j
        i_t1_last = i_t0

        for n in range(n_tau):
            window = TransientWindow(wtype, win_t0, window_range.timescale(n))
            t0, t1 = get_transient_window_timespan(window)
            i_t1 = _atom_index(t1, t0_data, t_atom, n_atoms, shift=1)

            if i_t1 <= i_t0:
                raise ValueError(
                    f"window m={m} (t0={win_t0} = t0_data + {win_t0 - t0_data}), "
                    f"n={n} (tau={window.tau}) covers a single atom: the F-statistic is degenerate. "
                    f"Start times must stay at least 2*TAtom={2 * t_atom}s away from the end "
                    f"of the data (t1_data={atoms.t_end})."
                )

            if wtype == TransientWindowType.RECTANGULAR:
                # extend the sums over [i_t0, i_t1_last) by the atoms [i_t1_last, i_t1]
                sl = slice(i_t1_last, i_t1 + 1)
                Ad += atoms.a2[sl].sum()
                Bd += atoms.b2[sl].sum()
                Cd += atoms.ab[sl].sum()
                Fa += atoms.fa[sl].sum()
                Fb += atoms.fb[sl].sum()
                i_t1_last = i_t1 + 1
            elif wtype == TransientWindowType.EXPONENTIAL:
                sl = slice(i_t0, i_t1 + 1)
                if buf is not None:
                    win = _buffered_weights(buf.values[n], ts[sl] - t0, t_atom)
                else:
                    win = exponential_window_value(ts[sl], t0, t1, window.tau)
                win2 = win * win
                Ad = float(np.sum(atoms.a2[sl] * win2))
                Bd = float(np.sum(atoms.b2[sl] * win2))
                Cd = float(np.sum(atoms.ab[sl] * win2))
                Fa = complex(np.sum(atoms.fa[sl] * win))
                Fb = complex(np.sum(atoms.fb[sl] * win))
            else:
                raise ValueError(f"invalid transient window type {wtype!r}")

            try:
                F = fstat_from_accumulators(
                    float(Ad), float(Bd), float(Cd), complex(Fa), complex(Fb), use_f_reg=use_f_reg
                )
            except ValueError as exc:
                raise ValueError(f"window m={m}, n={n} (t0={win_t0}, tau={window.tau}): {exc}") from exc

            if F > max_f:
                max_f = F
                t0offs_max_f = win_t0 - window_range.t0
                tau_max_f = window.tau

            F_mn[m, n] = F

    # always >= 0, exactly 0 at the loudest window
    delta_f = max_f - F_mn
    sum_eb = float(np.sum(lut.lookup_array(delta_f)))

    log_bhat = max_f + math.log(sum_eb)
    norm_bh = norm_const / (n_t0 * n_tau * t_atom * t_atom)
    log_bstat = math.log(norm_bh) + log_bhat
    debug(
        f"logBhat={log_bhat:.6g} normBh={norm_bh:.6g} N_t0={n_t0} N_tau={n_tau} maxF={max_f:.6g}"
    )

    cand = TransientCandidate(
        doppler=doppler if doppler is not None else DopplerParams(),
        t0offs_max_f=int(t0offs_max_f),
        tau_max_f=int(tau_max_f),
        max_two_f=2.0 * max_f,
        log_bstat=log_bstat,
    )
    if return_fmn:
        return cand, F_mn
    return cand


def _buffered_weights(row: np.ndarray, offsets: np.ndarray, t_step: int) -> np.ndarray:
    """Read window weights at time offsets from one buffer row."""
    cols = offsets // t_step
    valid = (offsets >= 0) & (cols < len(row))
    win = np.zeros(len(offsets), dtype=float)
    win[valid] = row[cols[valid]]
    return win


def compute_transient_bstat_multi(
    multi_atoms: MultiFstatAtomVector,
    window_range: TransientWindowRange,
    *,
    use_f_reg: bool = False,
    **kwargs,
) -> TransientCandidate | tuple[TransientCandidate, np.ndarray]:
    """Merge multi-detector atoms at their native cadence, then compute the B-statistic.

    Args:
        multi_atoms (MultiFstatAtomVector): Per-detector atoms.
        window_range (TransientWindowRange): Windows to marginalize over.
        use_f_reg (bool): See :func:`compute_transient_bstat`.
        **kwargs: Forwarded to :func:`compute_transient_bstat`.

    Returns:
        TransientCandidate | tuple[TransientCandidate, numpy.ndarray]: As
        :func:`compute_transient_bstat`.
    """
    if multi_atoms is None or len(multi_atoms) == 0:
        raise ValueError("invalid empty or None input 'multi_atoms'")
    t_atom = multi_atoms.data[0].t_atom
    atoms = merge_atoms_binned(multi_atoms, t_atom)
    return compute_transient_bstat(atoms, window_range, use_f_reg=use_f_reg, **kwargs)
