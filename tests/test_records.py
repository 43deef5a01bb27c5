import io

import numpy as np
import pytest

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import DopplerParams, TransientCandidate, doppler_params_to_string
from tcwstat.io.atomfile import read_atoms, read_atoms_table, read_multi_atoms
from tcwstat.io.records import CANDIDATE_HEADER, DAY24, write_atoms, write_transient_candidate


def test_candidate_header_for_none():
    buf = io.StringIO()
    write_transient_candidate(buf, None)
    assert buf.getvalue() == CANDIDATE_HEADER
    assert buf.getvalue().startswith("%%")
    assert "logBstat" in buf.getvalue()


def test_candidate_line_fields():
    cand = TransientCandidate(
        doppler=DopplerParams(ref_time=800000000, alpha=1.2345678901, delta=-0.25, fkdot=(123.456789, -1e-9)),
        two_f_total=42.123456,
        t0offs_max_f=43200,
        tau_max_f=2 * 86400,
        max_two_f=55.5,
        log_bstat=12.75,
    )
    buf = io.StringIO()
    write_transient_candidate(buf, cand)
    line = buf.getvalue()
    assert line.endswith("\n")

    fields = [float(x) for x in line.split()]
    assert len(fields) == 11
    assert fields[0] == pytest.approx(123.456789, rel=1e-15)
    assert fields[1] == pytest.approx(1.2345678901, rel=1e-15)
    assert fields[2] == pytest.approx(-0.25)
    assert fields[3] == pytest.approx(-1e-9, rel=1e-5)
    assert fields[4] == 0.0
    assert fields[5] == 0.0
    assert fields[6] == pytest.approx(42.123456, rel=1e-8)
    assert fields[7] == pytest.approx(43200 / DAY24, abs=1e-5)
    assert fields[8] == pytest.approx(2.0, abs=1e-5)
    assert fields[9] == pytest.approx(55.5)
    assert fields[10] == pytest.approx(12.75)


def test_write_candidate_requires_stream():
    with pytest.raises(ValueError):
        write_transient_candidate(None, TransientCandidate())


def test_write_errors_propagate():
    buf = io.StringIO()
    buf.close()
    with pytest.raises(ValueError):
        write_transient_candidate(buf, TransientCandidate())


def test_atoms_write_read_round_trip():
    atoms = FstatAtomVector(
        timestamps=[1000, 1060, 1120],
        a2=[1.5, 0.25, 2.0],
        b2=[0.5, 1.0, 1.25],
        ab=[-0.125, 0.0, 0.5],
        fa=[1 + 2j, -0.5j, 3.0],
        fb=[0.25 - 1j, 2j, -1.5],
        t_atom=60,
    )
    buf = io.StringIO()
    write_atoms(buf, atoms)
    text = buf.getvalue()
    assert text.startswith("%%")
    assert len(text.splitlines()) == 4

    buf.seek(0)
    back = read_atoms(buf)
    assert back.t_atom == 60
    np.testing.assert_array_equal(back.timestamps, atoms.timestamps)
    for name in ("a2", "b2", "ab", "fa", "fb"):
        np.testing.assert_allclose(getattr(back, name), getattr(atoms, name), atol=1e-6)


def test_write_atoms_multi_detector():
    h1 = FstatAtomVector.from_constants(t_start=0, n=2, t_atom=10, a2=1.0, b2=1.0, ab=0.0, fa=1.0, fb=1.0)
    l1 = FstatAtomVector.from_constants(t_start=5, n=3, t_atom=10, a2=1.0, b2=1.0, ab=0.0, fa=1.0, fb=1.0)
    buf = io.StringIO()
    write_atoms(buf, MultiFstatAtomVector((h1, l1)))
    lines = buf.getvalue().splitlines()
    assert len(lines) == 1 + 5
    assert [int(line.split()[0]) for line in lines[1:]] == [0, 10, 5, 15, 25]


def test_read_atoms_table_sorts_and_validates(tmp_path):
    path = tmp_path / "H1.dat"
    path.write_text(
        "%% comment\n"
        "1060 1 1 0 1 0 1 0\n"
        "1000 2 2 0 1 0 1 0\n",
        encoding="utf-8",
    )
    df = read_atoms_table(path)
    assert df["gps"].tolist() == [1000, 1060]
    assert df["a2"].tolist() == [2.0, 1.0]

    bad = tmp_path / "bad.dat"
    bad.write_text("1000 1 1 0 1 0\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_atoms_table(bad)

    junk = tmp_path / "junk.dat"
    junk.write_text("1000 1 1 0 1 0 1 x\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_atoms_table(junk)

    with pytest.raises(FileNotFoundError):
        read_atoms_table(tmp_path / "missing.dat")

    empty = tmp_path / "empty.dat"
    empty.write_text("%% header only\n", encoding="utf-8")
    assert read_atoms_table(empty).empty
    with pytest.raises(ValueError):
        read_atoms(empty)


def test_read_multi_atoms_uses_file_stems(tmp_path):
    for name in ("H1", "L1"):
        atoms = FstatAtomVector.from_constants(t_start=0, n=4, t_atom=30, a2=1.0, b2=1.0, ab=0.0, fa=1.0, fb=0.0)
        with open(tmp_path / f"{name}.dat", "w", encoding="utf-8") as fp:
            write_atoms(fp, atoms)
    multi = read_multi_atoms([tmp_path / "H1.dat", tmp_path / "L1.dat"])
    assert multi.detectors == ("H1", "L1")
    assert [v.t_atom for v in multi] == [30, 30]


def test_doppler_params_to_string():
    assert (
        doppler_params_to_string(DopplerParams(700000000, 1.0, -0.5, (100.0, -1e-9)))
        == "tRef700000000_RA1_DEC-0.5_Freq100_f1dot-1e-09"
    )
    assert doppler_params_to_string(DopplerParams(5, 0.5, 0.25, (50.5, 0.0, 2e-20))) == (
        "tRef000000005_RA0.5_DEC0.25_Freq50.5_f2dot2e-20"
    )
    with pytest.raises(ValueError):
        DopplerParams(fkdot=(1.0, 2.0, 3.0, 4.0, 5.0))
