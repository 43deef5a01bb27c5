"""Provide a command-line interface for the transient B-statistic pipeline.

This module wires CLI flags to :func:`tcwstat.pipeline.run_pipeline`. The CLI
is intentionally minimal and suitable for scripting: it reads one atom file
per detector, computes the transient B-statistic for one template and
appends a candidate line to the output file.

Examples:
    Basic usage from a module invocation:

    >>> # doctest: +SKIP
    >>> # python -m tcwstat.cli --atoms H1.dat L1.dat --out cands.dat

    Search an exponential window range over one day of start times:

    >>> # doctest: +SKIP
    >>> # tcwstat --atoms H1.dat --window-type exp --t0-band 86400 --tau 3600 --tau-band 86400 --out cands.dat

See Also:
    tcwstat.pipeline.run_pipeline: Python API for the same workflow.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from tcwstat.candidate import DopplerParams
from tcwstat.config import BstatConfig, ExpLUTConfig, MergeConfig, WindowRangeConfig
from tcwstat.io.records import write_transient_candidate
from tcwstat.pipeline import run_pipeline
from tcwstat.utils.logging import configure_logging, info


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured parser for transient B-stat options.
    """
    p = argparse.ArgumentParser(
        description="Transient CW B-statistic: marginalize F-stat atoms over transient windows"
    )

    p.add_argument(
        "--atoms", required=True, nargs="+", help="F-stat atom files, one per detector."
    )
    p.add_argument(
        "--detectors",
        default=None,
        help="Comma-separated detector names (default: atom file stems).",
    )
    p.add_argument("--out", required=True, help="Candidate output file (appended to).")
    p.add_argument(
        "--fstat-map-out", default=None, help="Optional CSV path for the per-window 2F map."
    )
    p.add_argument(
        "--settings-out",
        default=None,
        help="Optional TOML path to write run settings (default: alongside --out, with .tcw_settings.toml suffix).",
    )
    p.add_argument(
        "--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)."
    )
    p.add_argument("--log-format", default="%(message)s", help="Logging format string.")

    p.add_argument(
        "--t-atom",
        type=int,
        default=None,
        help="Input atom cadence in seconds (default: inferred from the files).",
    )
    p.add_argument(
        "--merge-t-atom",
        type=int,
        default=None,
        help="Bin width in seconds for merged atoms (default: input cadence).",
    )

    p.add_argument(
        "--window-type",
        choices=["none", "rect", "exp"],
        default="none",
        help="Transient window type (default: none = full-span rectangular window).",
    )
    p.add_argument("--t0", type=int, default=None, help="Earliest window start time [GPS s].")
    p.add_argument("--t0-band", type=int, default=0, help="Window start-time band [s].")
    p.add_argument("--dt0", type=int, default=None, help="Window start-time step [s].")
    p.add_argument("--tau", type=int, default=None, help="Shortest window timescale [s].")
    p.add_argument("--tau-band", type=int, default=0, help="Window timescale band [s].")
    p.add_argument("--dtau", type=int, default=None, help="Window timescale step [s].")

    p.add_argument(
        "--use-f-reg",
        action="store_true",
        help="Marginalize the regularized statistic (1/D) e^F instead of e^F.",
    )
    p.add_argument(
        "--use-exp-buffer",
        action="store_true",
        help="Precompute exponential window weights once per run.",
    )
    p.add_argument(
        "--norm-const",
        type=float,
        default=70.0,
        help="Calibration constant of the B-statistic normalization (default: 70).",
    )
    p.add_argument("--lut-xmax", type=float, default=20.0, help="Exponential LUT domain bound.")
    p.add_argument("--lut-resolution", type=int, default=2000, help="Exponential LUT samples.")

    p.add_argument("--ref-time", type=int, default=0, help="Template reference time [GPS s].")
    p.add_argument("--freq", type=float, default=0.0, help="Template frequency [Hz].")
    p.add_argument("--alpha", type=float, default=0.0, help="Template right ascension [rad].")
    p.add_argument("--delta", type=float, default=0.0, help="Template declination [rad].")
    p.add_argument("--f1dot", type=float, default=0.0, help="First spindown [Hz/s].")
    p.add_argument("--f2dot", type=float, default=0.0, help="Second spindown [Hz/s^2].")
    p.add_argument("--f3dot", type=float, default=0.0, help="Third spindown [Hz/s^3].")

    return p


def main(argv: list[str] | None = None) -> None:
    """Run the transient B-statistic pipeline from command-line arguments.

    This function parses CLI options, constructs configuration objects, runs
    the pipeline and appends one candidate line to ``--out`` (preceded by a
    header line when the file is new).

    Raises:
        FileNotFoundError: If an atom file is missing.
        ValueError: If the window range is degenerate for the data.

    Examples:
        >>> # doctest: +SKIP
        >>> # tcwstat --atoms H1.dat L1.dat --window-type rect --t0-band 86400 --out cands.dat
    """
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, fmt=args.log_format)
    out_path = Path(args.out)
    settings_out = args.settings_out
    if settings_out is None:
        settings_out = out_path.with_suffix(".tcw_settings.toml")

    detectors = None
    if args.detectors:
        detectors = [d.strip() for d in args.detectors.split(",") if d.strip()]

    merge_cfg = MergeConfig(t_atom=args.merge_t_atom)
    window_cfg = WindowRangeConfig(
        type=args.window_type,
        t0=args.t0,
        t0_band=args.t0_band,
        dt0=args.dt0,
        tau=args.tau,
        tau_band=args.tau_band,
        dtau=args.dtau,
    )
    lut_cfg = ExpLUTConfig(xmax=args.lut_xmax, resolution=args.lut_resolution)
    bstat_cfg = BstatConfig(
        use_f_reg=bool(args.use_f_reg),
        norm_const=args.norm_const,
        use_exp_buffer=bool(args.use_exp_buffer),
    )
    doppler = DopplerParams(
        ref_time=args.ref_time,
        alpha=args.alpha,
        delta=args.delta,
        fkdot=(args.freq, args.f1dot, args.f2dot, args.f3dot),
    )

    res = run_pipeline(
        args.atoms,
        detectors=detectors,
        t_atom=args.t_atom,
        merge_cfg=merge_cfg,
        window_cfg=window_cfg,
        lut_cfg=lut_cfg,
        bstat_cfg=bstat_cfg,
        doppler=doppler,
        with_fstat_map=args.fstat_map_out is not None,
        settings_out=settings_out,
    )

    is_new = not out_path.exists() or out_path.stat().st_size == 0
    with open(out_path, "a", encoding="utf-8") as fp:
        if is_new:
            write_transient_candidate(fp, None)
        write_transient_candidate(fp, res.candidate)
    info(f"Wrote candidate to {out_path}")

    if args.fstat_map_out and res.fstat_map is not None:
        res.fstat_map.to_csv(args.fstat_map_out, index=False)


if __name__ == "__main__":
    main()
