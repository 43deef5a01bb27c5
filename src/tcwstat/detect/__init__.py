"""Provide detection statistics for transient CW signals.

See Also:
    tcwstat.detect.bstat: Transient B-statistic over window ranges.
"""
