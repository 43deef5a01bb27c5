"""Write transient candidates and F-statistic atoms as text records.

Both record types are whitespace-separated, fixed-precision lines. Header
lines start with ``%%`` so that they are skipped as comments by readers
such as :func:`tcwstat.io.atomfile.read_atoms`.

Candidate columns:
    ``fkdot[0] Alpha[rad] Delta[rad] fkdot[1] fkdot[2] fkdot[3] twoFtotal
    t0offs_maxF[d] tau_maxF[d] maxTwoF logBstat``

Atom columns:
    ``GPS[s] a^2 b^2 ab Re(Fa) Im(Fa) Re(Fb) Im(Fb)``

Write errors of the underlying stream propagate unchanged.
"""

from __future__ import annotations
from typing import TextIO

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import TransientCandidate

DAY24: float = 86400.0
"""Seconds per day; candidate offsets and durations are written in days."""

CANDIDATE_HEADER: str = (
    "%%        fkdot[0]         Alpha[rad]         Delta[rad]  fkdot[1] fkdot[2] fkdot[3]"
    "   twoFtotal  t0offs_maxF[d] tau_maxF[d]      maxTwoF       logBstat\n"
)
CANDIDATE_FORMAT: str = (
    "%18.16g %18.16g %18.16g %8.6g %8.5g %8.5g  %11.9g        %7.5f      %7.5f   %11.9g    %11.9g\n"
)
ATOMS_HEADER: str = (
    "%% GPS[s]     a^2(t_i)   b^2(t_i)  ab(t_i)            Fa(t_i)                  Fb(t_i)\n"
)
ATOM_FORMAT: str = "%d   % f  % f  %f    % f  % f     % f  % f\n"


def format_transient_candidate(cand: TransientCandidate | None) -> str:
    """Return the record line for ``cand``, or the header line for None."""
    if cand is None:
        return CANDIDATE_HEADER
    fk = cand.doppler.fkdot
    return CANDIDATE_FORMAT % (
        fk[0],
        cand.doppler.alpha,
        cand.doppler.delta,
        fk[1],
        fk[2],
        fk[3],
        cand.two_f_total,
        cand.t0offs_max_f / DAY24,
        cand.tau_max_f / DAY24,
        cand.max_two_f,
        cand.log_bstat,
    )


def write_transient_candidate(fp: TextIO, cand: TransientCandidate | None) -> None:
    """Write one candidate line to ``fp``.

    Args:
        fp (TextIO): Output stream.
        cand (TransientCandidate | None): Candidate to write. If None, a
            header comment line naming the columns is written instead.

    Raises:
        ValueError: If ``fp`` is None.

    Examples:
        >>> import io
        >>> buf = io.StringIO()
        >>> write_transient_candidate(buf, None)
        >>> buf.getvalue().startswith("%%")
        True
    """
    if fp is None:
        raise ValueError("invalid None output stream")
    fp.write(format_transient_candidate(cand))


def write_atoms(fp: TextIO, atoms: MultiFstatAtomVector | FstatAtomVector) -> None:
    """Write a header line followed by one line per atom.

    Args:
        fp (TextIO): Output stream.
        atoms (MultiFstatAtomVector | FstatAtomVector): Atoms to write; for
            multiple detectors the atoms are written detector by detector.

    Raises:
        ValueError: If ``fp`` or ``atoms`` is None.
    """
    if fp is None or atoms is None:
        raise ValueError("invalid None input")
    vectors = (atoms,) if isinstance(atoms, FstatAtomVector) else atoms.data

    fp.write(ATOMS_HEADER)
    for vec in vectors:
        for i in range(len(vec)):
            fa = vec.fa[i]
            fb = vec.fb[i]
            fp.write(
                ATOM_FORMAT
                % (
                    int(vec.timestamps[i]),
                    vec.a2[i],
                    vec.b2[i],
                    vec.ab[i],
                    fa.real,
                    fa.imag,
                    fb.real,
                    fb.imag,
                )
            )
