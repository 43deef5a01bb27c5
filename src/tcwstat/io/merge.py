"""Merge per-detector F-statistic atoms onto a common time grid.

Atoms from all detectors are pre-summed into regular bins of width
``delta_t`` covering the full data span. Atoms with timestamps in bin
``i``, i.e. ``[t_min + i * delta_t, t_min + (i + 1) * delta_t)``, are summed
into output atom ``i``.

Pre-binning is equivalent to applying a rectangular window on the
``delta_t`` timescale, which is harmless for any transient window provided
``delta_t`` is much shorter than the window timescale.

See Also:
    tcwstat.atoms.MultiFstatAtomVector: Input container.
    tcwstat.detect.bstat.compute_transient_bstat: Consumer of merged atoms.
"""

from __future__ import annotations

import numpy as np

from tcwstat.atoms import ACCUMULATOR_FIELDS, FstatAtomVector, MultiFstatAtomVector
from tcwstat.utils.logging import warn


def merge_atoms_binned(
    multi_atoms: MultiFstatAtomVector | None,
    delta_t: int,
) -> FstatAtomVector:
    """Combine per-detector atoms into a single binned, ordered atom vector.

    Args:
        multi_atoms (MultiFstatAtomVector | None): Per-detector atoms. All
            detectors must share the same cadence.
        delta_t (int): Output bin width (seconds); may be coarser than the
            input cadence.

    Returns:
        FstatAtomVector: ``floor((t_max - t_min) / delta_t) + 1`` atoms with
        timestamps ``t_min + i * delta_t`` and cadence ``delta_t``.

    Raises:
        ValueError: If ``multi_atoms`` is None or empty, any detector has no
            atoms, the input cadences differ, or ``delta_t <= 0``.

    Notes:
        Bins that receive no atoms are kept with all accumulators equal to
        zero. Use :func:`count_empty_bins` to detect them.

    Examples:
        >>> from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
        >>> h1 = FstatAtomVector.from_constants(t_start=0, n=4, t_atom=10, a2=1, b2=1, ab=0, fa=1, fb=0)
        >>> l1 = FstatAtomVector.from_constants(t_start=20, n=4, t_atom=10, a2=1, b2=1, ab=0, fa=1, fb=0)
        >>> len(merge_atoms_binned(MultiFstatAtomVector((h1, l1)), 10))
        6
    """
    if multi_atoms is None or len(multi_atoms) == 0:
        raise ValueError("invalid empty or None input 'multi_atoms'")
    delta_t = int(delta_t)
    if delta_t <= 0:
        raise ValueError(f"output bin width delta_t must be > 0, got {delta_t}")

    t_atom = multi_atoms.data[0].t_atom
    for X, atoms_X in enumerate(multi_atoms):
        if len(atoms_X) == 0:
            raise ValueError(f"atom vector of detector {X} is empty")
        if atoms_X.t_atom != t_atom:
            raise ValueError(
                f"atoms cadence TAtom={t_atom} must be identical for all detectors "
                f"(detector {X}: TAtom={atoms_X.t_atom})"
            )

    t_min = min(int(atoms_X.timestamps[0]) for atoms_X in multi_atoms)
    t_max = max(int(atoms_X.timestamps[-1]) for atoms_X in multi_atoms)
    n_bins = (t_max - t_min) // delta_t + 1

    out = {
        "a2": np.zeros(n_bins),
        "b2": np.zeros(n_bins),
        "ab": np.zeros(n_bins),
        "fa": np.zeros(n_bins, dtype=complex),
        "fb": np.zeros(n_bins, dtype=complex),
    }
    for atoms_X in multi_atoms:
        j = (atoms_X.timestamps - t_min) // delta_t
        for name in ACCUMULATOR_FIELDS:
            # unbuffered add: several atoms may land in the same bin
            np.add.at(out[name], j, getattr(atoms_X, name))

    merged = FstatAtomVector(
        timestamps=t_min + delta_t * np.arange(n_bins, dtype=np.int64),
        t_atom=delta_t,
        **out,
    )

    n_empty = count_empty_bins(merged)
    if n_empty:
        warn(f"{n_empty} of {n_bins} merged atom bins received no atoms (all-zero).")
    return merged


def count_empty_bins(atoms: FstatAtomVector) -> int:
    """Return the number of atoms whose accumulators are all zero.

    Args:
        atoms (FstatAtomVector): Binned atoms.

    Returns:
        int: Count of zero-weight (gap) bins.
    """
    empty = np.ones(len(atoms), dtype=bool)
    for name in ACCUMULATOR_FIELDS:
        empty &= getattr(atoms, name) == 0
    return int(np.count_nonzero(empty))
