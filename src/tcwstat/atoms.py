"""Hold F-statistic atoms for one or more detectors.

An atom is the per-timestep sufficient statistic of the F-statistic: the
antenna-pattern weights ``a2`` (A), ``b2`` (B), ``ab`` (C) and the complex
matched-filter correlations ``Fa`` and ``Fb``. Atoms are additive, so atoms
from several detectors at the same time can be summed, and atoms over a time
interval can be summed into that interval's F-statistic.

Atoms are stored column-wise in numpy arrays rather than as a list of
records, which keeps window sums vectorizable.

See Also:
    tcwstat.io.merge.merge_atoms_binned: Merge per-detector atoms.
    tcwstat.io.records.write_atoms: Text output of atoms.
"""

from __future__ import annotations
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

ACCUMULATOR_FIELDS: tuple[str, ...] = ("a2", "b2", "ab", "fa", "fb")
"""Names of the summable atom columns."""


@dataclass(frozen=True)
class FstatAtomVector:
    """A sequence of F-statistic atoms with a fixed cadence.

    Attributes:
        timestamps (numpy.ndarray): Integer GPS start times (seconds) of
            each atom, non-decreasing.
        a2 (numpy.ndarray): A accumulators, ``a^2`` antenna-pattern weights.
        b2 (numpy.ndarray): B accumulators, ``b^2`` antenna-pattern weights.
        ab (numpy.ndarray): C accumulators, ``a*b`` cross terms.
        fa (numpy.ndarray): Complex ``Fa`` correlations.
        fb (numpy.ndarray): Complex ``Fb`` correlations.
        t_atom (int): Time step (seconds) covered by one atom.

    Raises:
        ValueError: If column lengths differ, ``t_atom <= 0`` or the
            timestamps decrease.

    Examples:
        >>> atoms = FstatAtomVector.from_constants(
        ...     t_start=0, n=4, t_atom=1800, a2=2.0, b2=2.0, ab=0.0, fa=1.0, fb=1.0
        ... )
        >>> len(atoms)
        4
    """
    timestamps: np.ndarray
    a2: np.ndarray
    b2: np.ndarray
    ab: np.ndarray
    fa: np.ndarray
    fb: np.ndarray
    t_atom: int = field(default=1800)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamps", np.asarray(self.timestamps, dtype=np.int64))
        for name in ("a2", "b2", "ab"):
            object.__setattr__(self, name, np.asarray(getattr(self, name), dtype=float))
        for name in ("fa", "fb"):
            object.__setattr__(self, name, np.asarray(getattr(self, name), dtype=complex))
        object.__setattr__(self, "t_atom", int(self.t_atom))

        n = len(self.timestamps)
        for name in ACCUMULATOR_FIELDS:
            if len(getattr(self, name)) != n:
                raise ValueError(
                    f"atom column '{name}' has length {len(getattr(self, name))}, expected {n}"
                )
        if self.t_atom <= 0:
            raise ValueError(f"atom cadence t_atom must be > 0, got {self.t_atom}")
        if n > 1 and np.any(np.diff(self.timestamps) < 0):
            raise ValueError("atom timestamps must be non-decreasing")

    def __len__(self) -> int:
        return len(self.timestamps)

    @classmethod
    def zeros(cls, timestamps: np.ndarray, t_atom: int) -> "FstatAtomVector":
        """Return atoms at ``timestamps`` with all accumulators set to zero."""
        n = len(timestamps)
        return cls(
            timestamps=timestamps,
            a2=np.zeros(n),
            b2=np.zeros(n),
            ab=np.zeros(n),
            fa=np.zeros(n, dtype=complex),
            fb=np.zeros(n, dtype=complex),
            t_atom=t_atom,
        )

    @classmethod
    def from_constants(
        cls,
        *,
        t_start: int,
        n: int,
        t_atom: int,
        a2: float,
        b2: float,
        ab: float,
        fa: complex,
        fb: complex,
    ) -> "FstatAtomVector":
        """Return ``n`` contiguous atoms that all carry the same values."""
        return cls(
            timestamps=t_start + t_atom * np.arange(n, dtype=np.int64),
            a2=np.full(n, a2, dtype=float),
            b2=np.full(n, b2, dtype=float),
            ab=np.full(n, ab, dtype=float),
            fa=np.full(n, fa, dtype=complex),
            fb=np.full(n, fb, dtype=complex),
            t_atom=t_atom,
        )

    @property
    def t_start(self) -> int:
        return int(self.timestamps[0])

    @property
    def t_end(self) -> int:
        """End of the data span, ``last timestamp + t_atom``."""
        return int(self.timestamps[-1]) + self.t_atom

    def totals(self) -> dict[str, complex]:
        """Return the sum of each accumulator column over all atoms."""
        return {name: getattr(self, name).sum() for name in ACCUMULATOR_FIELDS}


@dataclass(frozen=True)
class MultiFstatAtomVector:
    """Per-detector atom vectors.

    Attributes:
        data (tuple[FstatAtomVector, ...]): One atom vector per detector.
        detectors (tuple[str, ...] | None): Optional detector names aligned
            with ``data``.
    """
    data: tuple[FstatAtomVector, ...]
    detectors: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", tuple(self.data))
        if self.detectors is not None:
            object.__setattr__(self, "detectors", tuple(self.detectors))
            if len(self.detectors) != len(self.data):
                raise ValueError(
                    f"got {len(self.detectors)} detector names for {len(self.data)} atom vectors"
                )

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self):
        return iter(self.data)

    @classmethod
    def from_vectors(
        cls, vectors: Sequence[FstatAtomVector], detectors: Sequence[str] | None = None
    ) -> "MultiFstatAtomVector":
        return cls(data=tuple(vectors), detectors=None if detectors is None else tuple(detectors))
