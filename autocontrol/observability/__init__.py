"""Observability layer: metrics and failure classification. No external SaaS."""

from autocontrol.observability.failure_classifier import FailureCategory, FailureClassifier
from autocontrol.observability.metrics import MetricsCollector

__all__ = [
    "FailureCategory",
    "FailureClassifier",
    "MetricsCollector",
]
