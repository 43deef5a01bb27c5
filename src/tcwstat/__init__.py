"""Provide transient continuous-wave (tCW) detection statistics.

tcwstat computes the transient B-statistic for continuous gravitational-wave
candidates: per-timestep F-statistic atoms from one or more detectors are
merged onto a common time grid, a 2-D range of transient windows (start
time and duration) is scanned, and the per-window F-statistics are
marginalized into a single log Bayes factor.

Key capabilities include:
    - Merging multi-detector F-statistic atoms into one binned atom vector.
    - Rectangular and exponential transient windows, with an optional
      precomputed exponential-window weight buffer.
    - A numerically stable log-sum-exp reduction using a fast lookup-table
      exponential.
    - Plain-text candidate and atom records.

Most users should start with :func:`tcwstat.pipeline.run_pipeline` or the CLI
entry point in :mod:`tcwstat.cli`.

See Also:
    tcwstat.detect.bstat.compute_transient_bstat: The marginalization engine.
    tcwstat.cli.main: CLI entry point for scripted runs.
"""

__all__ = []
