"""Provide utility helpers for tcwstat.

Modules include logging helpers, the fast lookup-table exponential, run
settings export and diagnostics summaries.

See Also:
    tcwstat.pipeline.run_pipeline: Pipeline entry point using these helpers.
    tcwstat.utils.fastexp: Lookup-table exponential.
    tcwstat.utils.diagnostics: Summary utilities for B-statistic outputs.
"""
