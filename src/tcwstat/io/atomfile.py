"""Read F-statistic atoms from text records.

The expected layout is the one produced by
:func:`tcwstat.io.records.write_atoms`: whitespace-separated columns
``GPS a2 b2 ab Re(Fa) Im(Fa) Re(Fb) Im(Fb)``, with ``%`` starting comment
lines.

See Also:
    tcwstat.io.records.write_atoms: Writer for the same layout.
    tcwstat.io.merge.merge_atoms_binned: Merge atoms read from several files.
"""

from __future__ import annotations
from pathlib import Path
from typing import TextIO

import numpy as np
import pandas as pd

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector

ATOM_COLUMNS: tuple[str, ...] = ("gps", "a2", "b2", "ab", "fa_re", "fa_im", "fb_re", "fb_im")
"""Column names of an atom record."""


def read_atoms_table(source: str | Path | TextIO) -> pd.DataFrame:
    """Parse an atom file into a DataFrame sorted by GPS time.

    Args:
        source (str | Path | TextIO): File path or open text stream.

    Returns:
        pandas.DataFrame: Columns :data:`ATOM_COLUMNS`.

    Raises:
        FileNotFoundError: If ``source`` is a path that does not exist.
        ValueError: If a record does not have exactly eight numeric fields.
    """
    if isinstance(source, (str, Path)) and not Path(source).exists():
        raise FileNotFoundError(str(source))
    try:
        df = pd.read_csv(
            source,
            sep=r"\s+",
            comment="%",
            header=None,
            engine="python",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=list(ATOM_COLUMNS))
    if df.shape[1] != len(ATOM_COLUMNS):
        raise ValueError(
            f"atom records must have {len(ATOM_COLUMNS)} columns, got {df.shape[1]} in {source}"
        )
    df.columns = list(ATOM_COLUMNS)
    df = df.apply(pd.to_numeric, errors="coerce")
    if df.isna().any().any():
        bad = int(df.isna().any(axis=1).sum())
        raise ValueError(f"{bad} malformed atom records in {source}")
    df["gps"] = df["gps"].astype(np.int64)
    return df.sort_values("gps", kind="stable").reset_index(drop=True)


def _infer_t_atom(gps: np.ndarray) -> int:
    steps = np.diff(np.unique(gps))
    if len(steps) == 0:
        raise ValueError("cannot infer the atom cadence from a single timestamp; pass t_atom")
    return int(steps.min())


def read_atoms(source: str | Path | TextIO, *, t_atom: int | None = None) -> FstatAtomVector:
    """Read one detector's atoms.

    Args:
        source (str | Path | TextIO): Atom file path or stream.
        t_atom (int | None): Atom cadence (seconds). If None, the smallest
            timestamp spacing is used.

    Returns:
        FstatAtomVector: Atoms ordered by timestamp.

    Examples:
        >>> atoms = read_atoms("H1_atoms.dat", t_atom=1800)  # doctest: +SKIP
    """
    df = read_atoms_table(source)
    if df.empty:
        raise ValueError(f"no atom records found in {source}")
    gps = df["gps"].to_numpy()
    if t_atom is None:
        t_atom = _infer_t_atom(gps)
    return FstatAtomVector(
        timestamps=gps,
        a2=df["a2"].to_numpy(dtype=float),
        b2=df["b2"].to_numpy(dtype=float),
        ab=df["ab"].to_numpy(dtype=float),
        fa=df["fa_re"].to_numpy(dtype=float) + 1j * df["fa_im"].to_numpy(dtype=float),
        fb=df["fb_re"].to_numpy(dtype=float) + 1j * df["fb_im"].to_numpy(dtype=float),
        t_atom=int(t_atom),
    )


def read_multi_atoms(
    sources: list[str | Path],
    *,
    t_atom: int | None = None,
    detectors: list[str] | None = None,
) -> MultiFstatAtomVector:
    """Read one atom file per detector.

    Args:
        sources (list[str | Path]): Atom files, one per detector.
        t_atom (int | None): Common atom cadence; inferred per file if None.
        detectors (list[str] | None): Detector names; defaults to the file
            stems.

    Returns:
        MultiFstatAtomVector: Per-detector atoms.
    """
    if not sources:
        raise ValueError("no atom files given")
    vectors = [read_atoms(src, t_atom=t_atom) for src in sources]
    if detectors is None:
        detectors = [Path(src).stem for src in sources]
    return MultiFstatAtomVector.from_vectors(vectors, detectors)
