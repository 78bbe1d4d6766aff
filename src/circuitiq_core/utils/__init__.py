"""Utility Functions"""

from circuitiq_core.utils.resilience import (
    create_custom_retry,
    service_startup_retry,
)

__all__ = [
    "create_custom_retry",
    "service_startup_retry",
]
