"""Define transient-CW candidate records.

See Also:
    tcwstat.detect.bstat.compute_transient_bstat: Produces candidates.
    tcwstat.io.records.write_transient_candidate: Text output of candidates.
"""

from __future__ import annotations
from dataclasses import dataclass, field

PULSAR_MAX_SPINS: int = 4
"""Number of frequency derivatives (``fkdot[0..3]``) carried by a candidate."""


@dataclass(frozen=True)
class DopplerParams:
    """Phase-evolution parameters of a CW template.

    Attributes:
        ref_time (int): Reference time of the frequency derivatives (GPS s).
        alpha (float): Right ascension (rad).
        delta (float): Declination (rad).
        fkdot (tuple[float, ...]): Frequency and its first three derivatives
            ``(f, f1dot, f2dot, f3dot)``.
    """
    ref_time: int = 0
    alpha: float = 0.0
    delta: float = 0.0
    fkdot: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        fk = tuple(float(f) for f in self.fkdot)
        if len(fk) > PULSAR_MAX_SPINS:
            raise ValueError(f"at most {PULSAR_MAX_SPINS} fkdot values supported, got {len(fk)}")
        object.__setattr__(self, "fkdot", fk + (0.0,) * (PULSAR_MAX_SPINS - len(fk)))


@dataclass(frozen=True)
class TransientCandidate:
    """Result of a transient B-statistic computation.

    Attributes:
        doppler (DopplerParams): Template the atoms were computed for.
        two_f_total (float): Coherent 2F over the full data span.
        t0offs_max_f (int): Start-time offset (seconds) of the loudest
            window, relative to the earliest start time of the range.
        tau_max_f (int): Timescale (seconds) of the loudest window.
        max_two_f (float): 2F of the loudest window.
        log_bstat (float): Marginalized log Bayes factor.
    """
    doppler: DopplerParams = field(default_factory=DopplerParams)
    two_f_total: float = 0.0
    t0offs_max_f: int = 0
    tau_max_f: int = 0
    max_two_f: float = 0.0
    log_bstat: float = float("nan")

    @property
    def max_f(self) -> float:
        return 0.5 * self.max_two_f

    def as_dict(self) -> dict[str, float]:
        """Return a flat mapping of the candidate fields."""
        out = {
            "ref_time": self.doppler.ref_time,
            "alpha": self.doppler.alpha,
            "delta": self.doppler.delta,
        }
        for k, f in enumerate(self.doppler.fkdot):
            out[f"f{k}dot" if k else "freq"] = f
        out.update(
            two_f_total=self.two_f_total,
            t0offs_max_f=self.t0offs_max_f,
            tau_max_f=self.tau_max_f,
            max_two_f=self.max_two_f,
            log_bstat=self.log_bstat,
        )
        return out


def doppler_params_to_string(doppler: DopplerParams) -> str:
    """Turn Doppler parameters into a token usable in file names.

    The format is ``tRefNNNNNNNNN_RA<alpha>_DEC<delta>_Freq<f>`` followed by
    ``_f<k>dot<value>`` for every non-zero spindown.

    Examples:
        >>> doppler_params_to_string(DopplerParams(700000000, 1.0, -0.5, (100.0, -1e-9)))
        'tRef700000000_RA1_DEC-0.5_Freq100_f1dot-1e-09'
    """
    out = "tRef%09d_RA%.9g_DEC%.9g_Freq%.15g" % (
        doppler.ref_time,
        doppler.alpha,
        doppler.delta,
        doppler.fkdot[0],
    )
    for k in range(1, PULSAR_MAX_SPINS):
        if doppler.fkdot[k] != 0:
            out += "_f%ddot%.7g" % (k, doppler.fkdot[k])
    return out
