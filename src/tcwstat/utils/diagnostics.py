"""Provide diagnostics helpers for B-statistic outputs.

Summaries are printed in a human-readable form. Plotting is intentionally
kept out of this module to keep dependencies minimal.

See Also:
    tcwstat.utils.logging: Logging helpers used for summaries.
    tcwstat.pipeline.run_pipeline: Produces the objects summarized here.
"""

from __future__ import annotations
import numpy as np
import pandas as pd

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import TransientCandidate
from tcwstat.io.merge import count_empty_bins
from tcwstat.utils.logging import info, warn
from tcwstat.windows.window_range import TransientWindowRange


def summarize_atoms(multi_atoms: MultiFstatAtomVector, merged: FstatAtomVector | None = None) -> None:
    """Print a compact summary of per-detector and merged atoms.

    Args:
        multi_atoms (MultiFstatAtomVector): Input atoms.
        merged (FstatAtomVector | None): Merged atoms, if available.

    Examples:
        >>> summarize_atoms(multi_atoms, merged)  # doctest: +SKIP
    """
    names = multi_atoms.detectors or tuple(str(X) for X in range(len(multi_atoms)))
    for name, vec in zip(names, multi_atoms):
        info(
            f"{name}: {len(vec)} atoms, TAtom={vec.t_atom}s, "
            f"span=[{vec.t_start}, {vec.t_end}) ({(vec.t_end - vec.t_start) / 86400.0:.3f} d)"
        )
    if merged is not None:
        n_empty = count_empty_bins(merged)
        info(f"Merged: {len(merged)} bins of {merged.t_atom}s, {n_empty} empty")
        if n_empty == len(merged):
            warn("All merged atom bins are empty.")


def summarize_candidate(cand: TransientCandidate) -> None:
    """Print the loudest window and B-statistic of a candidate."""
    info(f"maxTwoF = {cand.max_two_f:.6g} at t0offs = {cand.t0offs_max_f}s, tau = {cand.tau_max_f}s")
    info(f"twoFtotal = {cand.two_f_total:.6g}")
    info(f"logBstat = {cand.log_bstat:.6g}")


def export_fstat_map(F_mn: np.ndarray, window_range: TransientWindowRange) -> pd.DataFrame:
    """Return a tidy table of per-window 2F values.

    Args:
        F_mn (numpy.ndarray): ``(N_t0, N_tau)`` F grid from
            :func:`tcwstat.detect.bstat.compute_transient_bstat` with
            ``return_fmn=True``.
        window_range (TransientWindowRange): Range the grid was computed on.

    Returns:
        pandas.DataFrame: One row per window with columns ``m``, ``n``,
        ``t0``, ``tau`` and ``twoF``.

    Raises:
        ValueError: If the grid shape does not match the range.

    Examples:
        >>> export_fstat_map(F_mn, window_range).shape[0] == F_mn.size  # doctest: +SKIP
        True
    """
    F_mn = np.asarray(F_mn, dtype=float)
    if F_mn.shape != window_range.shape:
        raise ValueError(f"F grid shape {F_mn.shape} does not match window range {window_range.shape}")
    m, n = np.meshgrid(np.arange(F_mn.shape[0]), np.arange(F_mn.shape[1]), indexing="ij")
    return pd.DataFrame(
        {
            "m": m.ravel(),
            "n": n.ravel(),
            "t0": window_range.t0 + m.ravel() * window_range.dt0,
            "tau": window_range.tau + n.ravel() * window_range.dtau,
            "twoF": 2.0 * F_mn.ravel(),
        }
    )
