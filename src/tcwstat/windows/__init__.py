"""Provide transient window shapes and window ranges.

See Also:
    tcwstat.windows.shapes: Window types, timespans and window values.
    tcwstat.windows.window_range: Window ranges and exponential weight buffers.
"""
