"""Provide IO helpers for tcwstat.

This subpackage contains the low-level building blocks used by the pipeline:
reading atom files, merging multi-detector atoms onto a common grid, and
writing candidate and atom records.

See Also:
    tcwstat.pipeline.run_pipeline: End-to-end pipeline that uses these helpers.
    tcwstat.io.atomfile: Atom file parsing.
    tcwstat.io.merge: Multi-detector atom merging.
    tcwstat.io.records: Text records for candidates and atoms.
"""
