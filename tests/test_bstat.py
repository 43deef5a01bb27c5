import math

import numpy as np
import pytest

from tcwstat.atoms import FstatAtomVector, MultiFstatAtomVector
from tcwstat.candidate import DopplerParams
from tcwstat.detect.bstat import (
    compute_transient_bstat,
    compute_transient_bstat_multi,
    compute_two_f,
    fstat_from_accumulators,
)
from tcwstat.io.merge import merge_atoms_binned
from tcwstat.utils.fastexp import ExpLUT
from tcwstat.windows.shapes import TransientWindowType
from tcwstat.windows.window_range import TransientWindowRange, exp_window_buffer

T_ATOM = 1800


def _constant_atoms(n: int = 8, t_atom: int = T_ATOM, t_start: int = 700000000) -> FstatAtomVector:
    return FstatAtomVector.from_constants(
        t_start=t_start, n=n, t_atom=t_atom, a2=2.0, b2=2.0, ab=0.0, fa=1.0, fb=1.0
    )


def _random_atoms(n: int, t_atom: int, seed: int = 7, t_start: int = 1000) -> FstatAtomVector:
    rng = np.random.default_rng(seed)
    return FstatAtomVector(
        timestamps=t_start + t_atom * np.arange(n),
        a2=rng.uniform(1.0, 2.0, size=n),
        b2=rng.uniform(1.0, 2.0, size=n),
        ab=rng.uniform(-0.5, 0.5, size=n),
        fa=rng.normal(size=n) + 1j * rng.normal(size=n),
        fb=rng.normal(size=n) + 1j * rng.normal(size=n),
        t_atom=t_atom,
    )


def test_fstat_from_accumulators():
    assert fstat_from_accumulators(16.0, 16.0, 0.0, 8 + 0j, 8 + 0j) == pytest.approx(8.0)
    # cross term enters with -2 C Re(Fa Fb*)
    F = fstat_from_accumulators(2.0, 3.0, 1.0, 1 + 1j, 2 - 1j)
    expected = (3.0 * 2.0 + 2.0 * 5.0 - 2.0 * 1.0 * (2.0 - 1.0)) / (6.0 - 1.0)
    assert F == pytest.approx(expected)
    assert fstat_from_accumulators(16.0, 16.0, 0.0, 8j, 8j, use_f_reg=True) == pytest.approx(
        8.0 - math.log(256.0)
    )
    with pytest.raises(ValueError, match="degenerate"):
        fstat_from_accumulators(0.0, 0.0, 0.0, 0j, 0j)
    with pytest.raises(ValueError):
        fstat_from_accumulators(1.0, 1.0, 1.0, 1j, 1j)


def test_constant_atoms_single_full_window():
    atoms = _constant_atoms()
    wr = TransientWindowRange(
        TransientWindowType.RECTANGULAR, t0=atoms.t_start, t0_band=0, dt0=0, tau=8 * T_ATOM, tau_band=0, dtau=0
    )
    cand = compute_transient_bstat(atoms, wr)
    assert cand.max_two_f == pytest.approx(16.0)
    assert cand.t0offs_max_f == 0
    assert cand.tau_max_f == 8 * T_ATOM
    assert cand.log_bstat == pytest.approx(8.0 + math.log(70.0 / T_ATOM**2))
    assert compute_two_f(atoms) == pytest.approx(16.0)


def test_none_window_matches_full_span_rectangle():
    atoms = _constant_atoms()
    doppler = DopplerParams(ref_time=atoms.t_start, alpha=1.0, delta=-0.5, fkdot=(100.0,))
    cand = compute_transient_bstat(atoms, TransientWindowRange(TransientWindowType.NONE), doppler=doppler)
    assert cand.max_two_f == pytest.approx(16.0)
    assert cand.tau_max_f == 8 * T_ATOM
    assert cand.log_bstat == pytest.approx(8.0 + math.log(70.0 / T_ATOM**2))
    assert cand.doppler == doppler


def test_norm_const_equal_to_cadence_squared_gives_max_f():
    atoms = _constant_atoms()
    cand = compute_transient_bstat(
        atoms, TransientWindowRange(TransientWindowType.NONE), norm_const=float(T_ATOM**2)
    )
    assert cand.log_bstat == pytest.approx(8.0)


def test_use_f_reg_adds_log_inverse_determinant():
    atoms = _constant_atoms()
    cand = compute_transient_bstat(atoms, TransientWindowRange(TransientWindowType.NONE), use_f_reg=True)
    assert cand.max_f == pytest.approx(8.0 - math.log(256.0))


def test_loudest_window_tie_prefers_earliest_start():
    # one loud atom; every 3-atom window containing it has F = 4/3
    n, t_atom = 10, 10
    fa = np.zeros(n, dtype=complex)
    fa[5] = 2.0
    atoms = FstatAtomVector(
        timestamps=1000 + t_atom * np.arange(n),
        a2=np.ones(n),
        b2=np.ones(n),
        ab=np.zeros(n),
        fa=fa,
        fb=np.zeros(n, dtype=complex),
        t_atom=t_atom,
    )
    wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=1000, t0_band=60, dt0=10, tau=30)
    cand, F_mn = compute_transient_bstat(atoms, wr, return_fmn=True)

    assert F_mn.shape == (7, 1)
    np.testing.assert_allclose(F_mn[3:6, 0], 4.0 / 3.0)
    assert cand.t0offs_max_f == 30
    assert cand.tau_max_f == 30
    assert cand.max_two_f == pytest.approx(8.0 / 3.0)


def test_loudest_window_tie_prefers_shortest_duration():
    # atoms after the first four are empty, so longer windows add nothing
    n, t_atom = 8, 10
    weight = np.array([1.0] * 4 + [0.0] * 4)
    atoms = FstatAtomVector(
        timestamps=t_atom * np.arange(n),
        a2=weight,
        b2=weight,
        ab=np.zeros(n),
        fa=weight.astype(complex),
        fb=np.zeros(n, dtype=complex),
        t_atom=t_atom,
    )
    wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=0, tau=40, tau_band=40, dtau=10)
    cand, F_mn = compute_transient_bstat(atoms, wr, return_fmn=True)

    np.testing.assert_allclose(F_mn, 4.0)
    assert cand.tau_max_f == 40
    assert cand.t0offs_max_f == 0
    # five equal terms: log(70 / (5 * T^2)) + F + log(5)
    assert cand.log_bstat == pytest.approx(math.log(70.0 / t_atom**2) + 4.0)


def test_reduction_uses_lookup_table():
    atoms = _constant_atoms(n=8, t_atom=10, t_start=0)
    wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=0, tau=20, tau_band=10, dtau=10)
    lut = ExpLUT.build(20.0, 2000)
    cand, F_mn = compute_transient_bstat(atoms, wr, lut=lut, return_fmn=True)

    # F over k constant atoms equals k
    np.testing.assert_allclose(F_mn, [[2.0, 3.0]])
    assert cand.tau_max_f == 30
    expected = math.log(70.0 / (2 * 100)) + 3.0 + math.log(1.0 + lut.lookup(1.0))
    assert cand.log_bstat == pytest.approx(expected, rel=1e-12)
    assert abs(lut.lookup(1.0) - math.exp(-1.0)) <= lut.dx


def test_rectangular_incremental_sums_match_direct_sums():
    t_atom = 10
    atoms = _random_atoms(40, t_atom)
    wr = TransientWindowRange(
        TransientWindowType.RECTANGULAR, t0=atoms.t_start, t0_band=100, dt0=10, tau=20, tau_band=150, dtau=10
    )
    cand, F_mn = compute_transient_bstat(atoms, wr, return_fmn=True)
    assert F_mn.shape == (11, 16)

    expected = np.zeros_like(F_mn)
    for m in range(11):
        for n in range(16):
            sl = slice(m, m + n + 2)
            expected[m, n] = fstat_from_accumulators(
                atoms.a2[sl].sum(),
                atoms.b2[sl].sum(),
                atoms.ab[sl].sum(),
                atoms.fa[sl].sum(),
                atoms.fb[sl].sum(),
            )
    np.testing.assert_allclose(F_mn, expected, rtol=1e-10)

    m_max, n_max = np.unravel_index(np.argmax(expected), expected.shape)
    assert cand.t0offs_max_f == m_max * 10
    assert cand.tau_max_f == 20 + n_max * 10
    assert cand.max_two_f == pytest.approx(2.0 * expected.max())


def test_exponential_window_direct_sum():
    t_atom = 10
    atoms = _random_atoms(60, t_atom, seed=3)
    wr = TransientWindowRange(
        TransientWindowType.EXPONENTIAL, t0=atoms.t_start, t0_band=50, dt0=10, tau=10, tau_band=20, dtau=10
    )
    _, F_mn = compute_transient_bstat(atoms, wr, return_fmn=True)

    m, n = 2, 1
    t0 = atoms.t_start + m * 10
    tau = 10 + n * 10
    t1 = t0 + math.ceil(20.0 * tau)
    A = B = C = 0.0
    Fa = Fb = 0j
    for i in range(len(atoms)):
        t = int(atoms.timestamps[i])
        if not t0 <= t < t1:
            continue
        w = math.exp(-(t - t0) / tau)
        A += atoms.a2[i] * w * w
        B += atoms.b2[i] * w * w
        C += atoms.ab[i] * w * w
        Fa += atoms.fa[i] * w
        Fb += atoms.fb[i] * w
    assert F_mn[m, n] == pytest.approx(fstat_from_accumulators(A, B, C, Fa, Fb), rel=1e-10)


def test_exponential_buffered_matches_unbuffered():
    t_atom = 10
    atoms = _random_atoms(60, t_atom, seed=11, t_start=700000000)
    wr = TransientWindowRange(
        TransientWindowType.EXPONENTIAL, t0=atoms.t_start, t0_band=50, dt0=10, tau=10, tau_band=20, dtau=10
    )
    cand, F_mn = compute_transient_bstat(atoms, wr, return_fmn=True)
    with exp_window_buffer(wr, t_step=t_atom) as wr_buf:
        cand_buf, F_mn_buf = compute_transient_bstat(atoms, wr_buf, return_fmn=True)

    np.testing.assert_array_equal(F_mn_buf, F_mn)
    assert cand_buf.t0offs_max_f == cand.t0offs_max_f
    assert cand_buf.tau_max_f == cand.tau_max_f
    assert cand_buf.log_bstat == cand.log_bstat
    assert wr.exp_buffer is None


def test_exponential_buffer_must_match_atom_grid():
    atoms = _random_atoms(60, 10)
    wr = TransientWindowRange(TransientWindowType.EXPONENTIAL, t0=atoms.t_start, tau=10)
    with exp_window_buffer(wr, t_step=20):
        with pytest.raises(ValueError, match="cadence"):
            compute_transient_bstat(atoms, wr)

    off_grid = TransientWindowRange(TransientWindowType.EXPONENTIAL, t0=atoms.t_start + 5, tau=10)
    with exp_window_buffer(off_grid, t_step=10):
        with pytest.raises(ValueError, match="atom grid"):
            compute_transient_bstat(atoms, off_grid)


def test_exponential_buffer_must_match_range_timescales():
    atoms = _random_atoms(60, 10)
    wr = TransientWindowRange(
        TransientWindowType.EXPONENTIAL, t0=atoms.t_start, tau=10, tau_band=20, dtau=10
    )
    with exp_window_buffer(wr, t_step=10):
        wr.tau = 20
        with pytest.raises(ValueError, match="filled for tau=10"):
            compute_transient_bstat(atoms, wr)
        wr.tau, wr.dtau, wr.tau_band = 10, 20, 40
        with pytest.raises(ValueError, match="dtau=10"):
            compute_transient_bstat(atoms, wr)


def test_atoms_off_regular_grid_are_rejected():
    # a gap between t=30 and t=100 must not be read as contiguous atoms
    atoms = FstatAtomVector(
        timestamps=[0, 10, 20, 30, 100, 110, 120, 130],
        a2=np.full(8, 2.0),
        b2=np.full(8, 2.0),
        ab=np.zeros(8),
        fa=np.ones(8, dtype=complex),
        fb=np.ones(8, dtype=complex),
        t_atom=10,
    )
    wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=0, tau=60)
    with pytest.raises(ValueError, match="merge_atoms_binned"):
        compute_transient_bstat(atoms, wr)

    duplicated = FstatAtomVector(
        timestamps=[0, 10, 10, 20],
        a2=np.ones(4),
        b2=np.ones(4),
        ab=np.zeros(4),
        fa=np.ones(4, dtype=complex),
        fb=np.zeros(4, dtype=complex),
        t_atom=10,
    )
    with pytest.raises(ValueError, match="regular grid"):
        compute_transient_bstat(duplicated, TransientWindowRange(TransientWindowType.NONE))

    # binning fills the gap with zero atoms, after which the window sees only real data
    merged = merge_atoms_binned(MultiFstatAtomVector((atoms,)), 10)
    cand = compute_transient_bstat(merged, wr)
    assert cand.max_two_f == pytest.approx(8.0)


def test_single_atom_window_is_rejected():
    atoms = _constant_atoms()
    short = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=atoms.t_start, tau=T_ATOM)
    with pytest.raises(ValueError, match="single atom"):
        compute_transient_bstat(atoms, short)

    late = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=atoms.t_start + 7 * T_ATOM, tau=2 * T_ATOM)
    with pytest.raises(ValueError, match="single atom"):
        compute_transient_bstat(atoms, late)


def test_window_over_data_gap_is_degenerate():
    weight = np.array([1.0] * 4 + [0.0] * 6)
    atoms = FstatAtomVector(
        timestamps=10 * np.arange(10),
        a2=weight,
        b2=weight,
        ab=np.zeros(10),
        fa=weight.astype(complex),
        fb=weight.astype(complex),
        t_atom=10,
    )
    wr = TransientWindowRange(TransientWindowType.RECTANGULAR, t0=50, tau=20)
    with pytest.raises(ValueError, match="degenerate"):
        compute_transient_bstat(atoms, wr)


def test_invalid_atoms():
    wr = TransientWindowRange(TransientWindowType.NONE)
    with pytest.raises(ValueError):
        compute_transient_bstat(None, wr)
    with pytest.raises(ValueError):
        compute_transient_bstat(FstatAtomVector.zeros(np.zeros(0, dtype=np.int64), 10), wr)


def test_atoms_are_not_modified():
    atoms = _random_atoms(30, 10)
    before = {name: getattr(atoms, name).copy() for name in ("timestamps", "a2", "b2", "ab", "fa", "fb")}
    wr = TransientWindowRange(
        TransientWindowType.EXPONENTIAL, t0=atoms.t_start, t0_band=40, dt0=10, tau=20, tau_band=20, dtau=10
    )
    compute_transient_bstat(atoms, wr)
    for name, arr in before.items():
        np.testing.assert_array_equal(getattr(atoms, name), arr)


def test_cancel_aborts_scan():
    atoms = _constant_atoms()
    calls = []

    def cancel():
        calls.append(1)
        return len(calls) > 1

    wr = TransientWindowRange(
        TransientWindowType.RECTANGULAR, t0=atoms.t_start, t0_band=2 * T_ATOM, dt0=T_ATOM, tau=2 * T_ATOM
    )
    with pytest.raises(RuntimeError, match="cancelled"):
        compute_transient_bstat(atoms, wr, cancel=cancel)
    assert len(calls) == 2


def test_multi_detector_wrapper_merges_first():
    h1 = FstatAtomVector.from_constants(t_start=0, n=8, t_atom=T_ATOM, a2=1.0, b2=1.0, ab=0.0, fa=0.5, fb=0.5)
    l1 = FstatAtomVector.from_constants(t_start=0, n=8, t_atom=T_ATOM, a2=1.0, b2=1.0, ab=0.0, fa=0.5, fb=0.5)
    cand = compute_transient_bstat_multi(
        MultiFstatAtomVector((h1, l1), detectors=("H1", "L1")), TransientWindowRange(TransientWindowType.NONE)
    )
    assert cand.max_two_f == pytest.approx(16.0)

    with pytest.raises(ValueError):
        compute_transient_bstat_multi(None, TransientWindowRange(TransientWindowType.NONE))
