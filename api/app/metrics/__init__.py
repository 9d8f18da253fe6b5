"""Centralized metrics module for Prometheus instrumentation.

Usage:
    from app.metrics.code_metrics import TRIGGER_EVENTS
"""

from app.metrics import code_metrics

__all__ = ["code_metrics"]
