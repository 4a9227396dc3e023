"""
hsmsigner Retry Layer

Backoff schedule, transient error classification and the retry loop.
"""

from hsmsigner.retry.backoff import (
    ErrorClassifier,
    ExponentialBackoff,
    StatusCodeClassifier,
)
from hsmsigner.retry.executor import RetryExecutor

__all__ = [
    "ErrorClassifier",
    "ExponentialBackoff",
    "StatusCodeClassifier",
    "RetryExecutor",
]
