"""Run the end-to-end transient B-statistic pipeline.

The primary entry point is :func:`run_pipeline`, which performs the standard
transient-CW post-processing workflow for one template:

1. Read per-detector F-statistic atom files.
2. Merge the atoms onto one binned time grid.
3. Resolve the transient window range against the merged atoms.
4. Compute the transient B-statistic (optionally with buffered
   exponential-window weights).
5. Compute the full-span 2F and assemble the candidate.

:func:`run_bstat` runs steps 2-5 on in-memory atoms.

See Also:
    tcwstat.io.atomfile.read_multi_atoms: Read atom files.
    tcwstat.io.merge.merge_atoms_binned: Merge multi-detector atoms.
    tcwstat.detect.bstat.compute_transient_bstat: The B-statistic engine.
"""

from __future__ import annotations
from contextlib import nullcontext
from dataclasses import dataclass, replace
from pathlib import Path

import pandas as pd

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import DopplerParams, TransientCandidate
from tcwstat.config import BstatConfig, ExpLUTConfig, MergeConfig, WindowRangeConfig
from tcwstat.detect.bstat import compute_transient_bstat, compute_two_f
from tcwstat.io.atomfile import read_multi_atoms
from tcwstat.io.merge import merge_atoms_binned
from tcwstat.utils.diagnostics import export_fstat_map, summarize_atoms, summarize_candidate
from tcwstat.utils.fastexp import ExpLUT
from tcwstat.utils.logging import info, warn
from tcwstat.utils.settings import write_run_settings_toml
from tcwstat.windows.shapes import TransientWindowType
from tcwstat.windows.window_range import TransientWindowRange, exp_window_buffer


@dataclass(frozen=True)
class BstatRunResult:
    """Outputs of a pipeline run.

    Attributes:
        candidate (TransientCandidate): The transient candidate.
        atoms (FstatAtomVector): Merged atoms the statistic was computed on.
        window_range (TransientWindowRange): Resolved window range.
        fstat_map (pandas.DataFrame | None): Per-window 2F table if requested.
    """
    candidate: TransientCandidate
    atoms: FstatAtomVector
    window_range: TransientWindowRange
    fstat_map: pd.DataFrame | None = None


def run_bstat(
    multi_atoms: MultiFstatAtomVector,
    *,
    merge_cfg: MergeConfig = MergeConfig(),
    window_cfg: WindowRangeConfig = WindowRangeConfig(),
    lut_cfg: ExpLUTConfig = ExpLUTConfig(),
    bstat_cfg: BstatConfig = BstatConfig(),
    doppler: DopplerParams = DopplerParams(),
    with_fstat_map: bool = False,
) -> BstatRunResult:
    """Merge atoms and compute the transient B-statistic.

    Args:
        multi_atoms (MultiFstatAtomVector): Per-detector atoms.
        merge_cfg (MergeConfig): Merge configuration.
        window_cfg (WindowRangeConfig): Transient window range.
        lut_cfg (ExpLUTConfig): Lookup-table configuration.
        bstat_cfg (BstatConfig): B-statistic configuration.
        doppler (DopplerParams): Template parameters for the candidate.
        with_fstat_map (bool): If True, also return the per-window 2F table.

    Returns:
        BstatRunResult: Candidate plus intermediate products.

    Raises:
        ValueError: On invalid atoms or window ranges (see
            :func:`tcwstat.detect.bstat.compute_transient_bstat`).

    Examples:
        >>> from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
        >>> h1 = FstatAtomVector.from_constants(t_start=0, n=8, t_atom=1800, a2=2, b2=2, ab=0, fa=1, fb=1)
        >>> res = run_bstat(MultiFstatAtomVector((h1,)))
        >>> res.candidate.max_two_f
        16.0
    """
    if multi_atoms is None or len(multi_atoms) == 0:
        raise ValueError("invalid empty or None input 'multi_atoms'")

    delta_t = merge_cfg.t_atom if merge_cfg.t_atom is not None else multi_atoms.data[0].t_atom
    info(f"Merging {len(multi_atoms)} detector(s) onto a {delta_t}s grid")
    atoms = merge_atoms_binned(multi_atoms, delta_t)
    summarize_atoms(multi_atoms, atoms)

    window_range = window_cfg.to_range(t0_data=atoms.t_start, t_atom=atoms.t_atom)
    info(
        f"Window range: type={window_range.type.name.lower()} "
        f"N_t0={window_range.n_t0} N_tau={window_range.n_tau}"
    )

    lut = ExpLUT.build(lut_cfg.xmax, lut_cfg.resolution)
    use_buffer = bstat_cfg.use_exp_buffer and window_range.type == TransientWindowType.EXPONENTIAL
    if bstat_cfg.use_exp_buffer and not use_buffer:
        warn("Exponential-window buffer requested for a non-exponential window range; ignoring.")

    ctx = exp_window_buffer(window_range, atoms.t_atom) if use_buffer else nullcontext(window_range)
    with ctx as wr:
        cand, F_mn = compute_transient_bstat(
            atoms,
            wr,
            use_f_reg=bstat_cfg.use_f_reg,
            lut=lut,
            norm_const=bstat_cfg.norm_const,
            doppler=doppler,
            return_fmn=True,
        )

    try:
        two_f_total = compute_two_f(atoms)
    except ValueError as exc:
        warn(f"Full-span 2F is undefined: {exc}")
        two_f_total = float("nan")
    cand = replace(cand, two_f_total=two_f_total)
    summarize_candidate(cand)

    fmap = None
    if with_fstat_map:
        if window_range.type == TransientWindowType.NONE:
            # the engine scanned a single full-span rectangular window
            fmap = export_fstat_map(
                F_mn,
                TransientWindowRange(
                    TransientWindowType.RECTANGULAR,
                    t0=atoms.t_start,
                    tau=len(atoms) * atoms.t_atom,
                ),
            )
        else:
            fmap = export_fstat_map(F_mn, window_range)

    return BstatRunResult(candidate=cand, atoms=atoms, window_range=window_range, fstat_map=fmap)


def run_pipeline(
    atom_files: list[str | Path],
    *,
    detectors: list[str] | None = None,
    t_atom: int | None = None,
    merge_cfg: MergeConfig = MergeConfig(),
    window_cfg: WindowRangeConfig = WindowRangeConfig(),
    lut_cfg: ExpLUTConfig = ExpLUTConfig(),
    bstat_cfg: BstatConfig = BstatConfig(),
    doppler: DopplerParams = DopplerParams(),
    with_fstat_map: bool = False,
    settings_out: str | Path | None = None,
) -> BstatRunResult:
    """Run the transient B-statistic for atoms stored in text files.

    Args:
        atom_files (list[str | Path]): One atom file per detector.
        detectors (list[str] | None): Detector names (default: file stems).
        t_atom (int | None): Input atom cadence; inferred from the files if
            None.
        merge_cfg (MergeConfig): Merge configuration.
        window_cfg (WindowRangeConfig): Transient window range.
        lut_cfg (ExpLUTConfig): Lookup-table configuration.
        bstat_cfg (BstatConfig): B-statistic configuration.
        doppler (DopplerParams): Template parameters for the candidate.
        with_fstat_map (bool): If True, also return the per-window 2F table.
        settings_out (str | Path | None): Optional TOML path for the run
            settings and result.

    Returns:
        BstatRunResult: Candidate plus intermediate products.

    Raises:
        FileNotFoundError: If an atom file is missing.
        ValueError: On malformed atom files or invalid window ranges.

    Examples:
        >>> res = run_pipeline(["H1_atoms.dat", "L1_atoms.dat"],  # doctest: +SKIP
        ...                    window_cfg=WindowRangeConfig(type="rect", t0_band=86400, tau_band=86400))
    """
    atom_files = [Path(p) for p in atom_files]
    for p in atom_files:
        if not p.exists():
            raise FileNotFoundError(str(p))

    info("[1/3] Read atom files")
    multi_atoms = read_multi_atoms(atom_files, t_atom=t_atom, detectors=detectors)

    info("[2/3] Merge atoms + compute transient B-statistic")
    res = run_bstat(
        multi_atoms,
        merge_cfg=merge_cfg,
        window_cfg=window_cfg,
        lut_cfg=lut_cfg,
        bstat_cfg=bstat_cfg,
        doppler=doppler,
        with_fstat_map=with_fstat_map,
    )

    if settings_out is not None:
        info("[3/3] Write run settings")
        write_run_settings_toml(
            settings_out,
            atom_files=atom_files,
            merge_cfg=merge_cfg,
            window_cfg=window_cfg,
            lut_cfg=lut_cfg,
            bstat_cfg=bstat_cfg,
            doppler=doppler,
            result=res.candidate,
        )
    return res
