"""
Dead-Reckoning Core Package.

Robust vehicle position estimation from a continuous ENU velocity stream
and an intermittent, outlier-prone GNSS position stream.

Package structure:
- proto: Input/output message schemas and the fused per-tick Sample
- io: Latest-value slots for asynchronous input streams
- localization: Sample history, windowing, trajectory alignment, state machine
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
