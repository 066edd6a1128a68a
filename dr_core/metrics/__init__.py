"""
Metrics Module: Estimator diagnostics, counters, histograms.

Every estimation tick that does not produce an aligned estimate records a
reason code, so a silent fallback to dead reckoning can always be explained.

Usage:
    from dr_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('estimation_ticks')
    metrics.increment_drop('stale_gnss')
    metrics.record_histogram('alignment_iterations', 3)
"""

from .counters import MetricsCollector, CounterSnapshot

# Global singleton for easy access
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'CounterSnapshot', 'get_metrics', 'reset_metrics']
