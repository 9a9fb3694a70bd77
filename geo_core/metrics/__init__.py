"""
Metrics Module: Diagnostics, counters, histograms.

- Counters: readings_in, readings_accepted, positions_published, etc.
- Histograms: reading accuracy, published movement
- Drop reason codes: every discarded reading records why

Usage:
    from geo_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('readings_in')
    metrics.increment_drop('low_accuracy')
    metrics.record_histogram('reading_accuracy_m', 12.0)

Components take an optional collector so independent instances (tests,
several services in one process) do not have to share the default one.
"""

from .counters import MetricsCollector, CounterSnapshot

# Default collector for components constructed without one
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the default metrics collector.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset the default metrics collector (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'CounterSnapshot', 'get_metrics', 'reset_metrics']
